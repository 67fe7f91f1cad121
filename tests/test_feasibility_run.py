"""
End-to-end feasibility runs with the package's own cohort builder and diagnostics.
"""

import logging
import os

import duckdb
import pandas as pd
import pytest

from feasibility import run_feasibility
from feasibility.constants import DEFAULT_LOG_SINK_ID, PACKAGE_LOGGER_NAME
from feasibility.duckdb_utils import qualify
from feasibility.errors import DatabaseConnectionError, DiagnosticsError
from feasibility.logging_utils import default_registry
from feasibility.settings import create_connection_details


def test_full_run(connection_details, output_folder):
    config = run_feasibility(
        connection_details,
        cdm_database_schema="cdm",
        output_folder=output_folder,
        cohort_database_schema="results",
        database_id="TEST",
    )

    assert os.path.exists(os.path.join(output_folder, "CohortCounts.csv"))
    assert os.path.exists(os.path.join(config.export_folder, "Results_TEST.zip"))
    assert not default_registry.is_registered(DEFAULT_LOG_SINK_ID)

    with open(config.log_file, encoding="utf-8") as f:
        log = f.read()
    assert "Instantiating cohort ra_patients" in log
    assert "Results are ready for sharing" in log


def test_diagnostics_in_later_run(connection_details, output_folder, tmp_path):
    run_feasibility(
        connection_details,
        cdm_database_schema="cdm",
        output_folder=output_folder,
        cohort_database_schema="results",
        run_diagnostics=False,
    )
    assert not os.path.exists(os.path.join(output_folder, "feasibilityExport"))

    second_output = str(tmp_path / "second")
    config = run_feasibility(
        connection_details,
        cdm_database_schema="cdm",
        output_folder=second_output,
        cohort_database_schema="results",
        create_cohorts=False,
        database_id="LATER",
    )

    counts = pd.read_csv(os.path.join(config.export_folder, "cohort_count.csv")).set_index("cohort_id")
    assert counts.loc[101, "cohort_subjects"] == 7

    conn = duckdb.connect(connection_details.database)
    try:
        assert conn.execute("SELECT COUNT(*) FROM results.cohort").fetchone()[0] == 15
    finally:
        conn.close()


# =============================================================
# TEST: Schema named like the database file
# =============================================================

@pytest.mark.parametrize("file_name, cdm_schema, cohort_schema", [
    ("results.duckdb", "cdm", "results"),
    ("cdm.duckdb", "cdm", "results"),
    ("study.duckdb", "study", "study"),
])
def test_schema_named_like_database_file(make_cdm_database, output_folder,
                                         file_name, cdm_schema, cohort_schema):
    db_path = make_cdm_database(file_name, schema=cdm_schema)

    config = run_feasibility(
        create_connection_details("duckdb", db_path),
        cdm_database_schema=cdm_schema,
        output_folder=output_folder,
        cohort_database_schema=cohort_schema,
        database_id="TEST",
    )

    counts = pd.read_csv(os.path.join(config.export_folder, "cohort_count.csv")).set_index("cohort_id")
    assert counts.loc[101, "cohort_subjects"] == 7
    assert counts.loc[102, "cohort_subjects"] == 6

    conn = duckdb.connect(db_path)
    try:
        table_ref = qualify(conn, cohort_schema, "cohort")
        assert conn.execute(f"SELECT COUNT(*) FROM {table_ref}").fetchone()[0] == 15
    finally:
        conn.close()


def test_diagnostics_connection_failure_is_diagnostics_error(output_folder, tmp_path):
    details = create_connection_details("duckdb", str(tmp_path / "missing" / "warehouse.duckdb"))

    with pytest.raises(DiagnosticsError) as exc_info:
        run_feasibility(details, cdm_database_schema="cdm", output_folder=output_folder,
                        create_cohorts=False)

    assert isinstance(exc_info.value.__cause__, DatabaseConnectionError)
    assert not os.path.exists(os.path.join(output_folder, "feasibilityExport"))


def test_package_logger_level_restored(connection_details, output_folder):
    logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    logger.setLevel(logging.NOTSET)

    run_feasibility(connection_details, cdm_database_schema="cdm", output_folder=output_folder,
                    cohort_database_schema="results", run_diagnostics=False)

    assert logger.level == logging.NOTSET
