import logging

import duckdb
import pytest

from feasibility.constants import PACKAGE_LOGGER_NAME
from feasibility.duckdb_utils import qualify
from feasibility.logging_utils import LogSinkRegistry
from feasibility.settings import RunConfiguration, create_connection_details


CDM_DDL = """
CREATE SCHEMA IF NOT EXISTS {cdm};
CREATE TABLE {cdm}.concept_ancestor (ancestor_concept_id BIGINT, descendant_concept_id BIGINT);
CREATE TABLE {cdm}.observation_period (
    person_id BIGINT,
    observation_period_start_date DATE,
    observation_period_end_date DATE
);
CREATE TABLE {cdm}.condition_occurrence (
    person_id BIGINT,
    condition_concept_id BIGINT,
    condition_start_date DATE
);
CREATE TABLE {cdm}.drug_exposure (
    person_id BIGINT,
    drug_concept_id BIGINT,
    drug_exposure_start_date DATE,
    drug_exposure_end_date DATE
);
"""

CDM_DATA = """
INSERT INTO {cdm}.concept_ancestor VALUES
    (80809, 80809), (80809, 4035611),
    (1305058, 1305058), (1305058, 19013970),
    (1777087, 1777087), (964339, 964339);

INSERT INTO {cdm}.observation_period VALUES
    (1, DATE '2010-01-01', DATE '2020-12-31'),
    (2, DATE '2010-01-01', DATE '2020-12-31'),
    (3, DATE '2010-01-01', DATE '2020-12-31'),
    (4, DATE '2010-01-01', DATE '2020-12-31'),
    (5, DATE '2010-01-01', DATE '2020-12-31'),
    (6, DATE '2010-01-01', DATE '2020-12-31'),
    (7, DATE '2010-01-01', DATE '2020-12-31'),
    (8, DATE '2010-01-01', DATE '2012-12-31');

-- person 8 is diagnosed outside observation
INSERT INTO {cdm}.condition_occurrence VALUES
    (1, 80809, DATE '2015-02-01'),
    (1, 80809, DATE '2017-06-01'),
    (2, 4035611, DATE '2015-03-01'),
    (3, 80809, DATE '2015-04-01'),
    (4, 80809, DATE '2015-05-01'),
    (5, 80809, DATE '2016-01-15'),
    (6, 4035611, DATE '2016-02-15'),
    (7, 80809, DATE '2016-03-15'),
    (8, 80809, DATE '2015-01-01');

INSERT INTO {cdm}.drug_exposure VALUES
    (1, 19013970, DATE '2016-03-01', DATE '2016-05-30'),
    (1, 19013970, DATE '2017-03-01', DATE '2017-05-30'),
    (2, 19013970, DATE '2016-03-01', DATE '2016-04-30'),
    (3, 1305058, DATE '2016-04-01', NULL),
    (4, 19013970, DATE '2016-05-01', DATE '2016-06-30'),
    (5, 19013970, DATE '2016-06-01', DATE '2016-07-30'),
    (6, 19013970, DATE '2016-07-01', DATE '2016-08-30'),
    (1, 1777087, DATE '2016-03-01', DATE '2016-09-30'),
    (2, 1777087, DATE '2016-04-01', DATE '2016-10-31');
"""


def build_cdm_database(db_path, schema="cdm"):
    """Write the small OMOP CDM extract into schema 'schema' of a DuckDB file."""
    conn = duckdb.connect(db_path)
    try:
        schema_ref = qualify(conn, schema)
        conn.execute(CDM_DDL.format(cdm=schema_ref))
        conn.execute(CDM_DATA.format(cdm=schema_ref))
    finally:
        conn.close()
    return db_path


@pytest.fixture
def cdm_database(tmp_path):
    """DuckDB file with a small OMOP CDM extract in schema 'cdm'."""
    return build_cdm_database(str(tmp_path / "warehouse.duckdb"))


@pytest.fixture
def make_cdm_database(tmp_path):
    def _make(file_name, schema="cdm"):
        return build_cdm_database(str(tmp_path / file_name), schema=schema)
    return _make


@pytest.fixture
def connection_details(cdm_database):
    return create_connection_details("duckdb", cdm_database)


@pytest.fixture
def output_folder(tmp_path):
    return str(tmp_path / "output")


@pytest.fixture
def make_config(connection_details, output_folder):
    def _make(**overrides):
        options = dict(
            connection_details=connection_details,
            cdm_database_schema="cdm",
            cohort_database_schema="results",
            output_folder=output_folder,
            database_id="TEST",
            database_name="Test database",
            database_description="Synthetic CDM extract",
        )
        options.update(overrides)
        return RunConfiguration(**options)
    return _make


@pytest.fixture
def log_registry():
    registry = LogSinkRegistry()
    yield registry
    for sink_id in registry.registered_sinks():
        registry.unregister(sink_id)


@pytest.fixture(autouse=True)
def reset_package_logger():
    logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    handlers = list(logger.handlers)
    level = logger.level
    yield
    for h in list(logger.handlers):
        if h not in handlers:
            logger.removeHandler(h)
            h.close()
    logger.setLevel(level)
