"""
Tests for run configuration and its one-shot default resolution.
"""

import dataclasses
import os

import pytest

from feasibility.errors import InvalidConfigurationError
from feasibility.settings import ConnectionDetails, RunConfiguration, create_connection_details


@pytest.fixture
def details():
    return ConnectionDetails(database=":memory:")


class TestCreateConnectionDetails:

    def test_normalizes_dbms(self):
        details = create_connection_details("DuckDB", "/data/cdm.duckdb", threads=4)
        assert details.dbms == "duckdb"
        assert details.database == "/data/cdm.duckdb"
        assert details.threads == 4

    def test_rejects_unsupported_dbms(self):
        with pytest.raises(InvalidConfigurationError, match="Unsupported dbms"):
            create_connection_details("oracle", "orcl")

    def test_rejects_empty_database(self):
        with pytest.raises(InvalidConfigurationError):
            create_connection_details("duckdb", "")


class TestResolve:

    def test_defaults(self, details):
        config = RunConfiguration(details, cdm_database_schema="cdm", output_folder="out")
        assert config.cohort_table == "cohort"
        assert config.database_id == config.database_name == config.database_description == "Unknown"
        assert config.create_cohorts is True
        assert config.run_diagnostics is True
        assert config.min_cell_count == 5

    def test_schema_chaining(self, details):
        resolved = RunConfiguration(details, cdm_database_schema="cdm", output_folder="out").resolve()
        assert resolved.cohort_database_schema == "cdm"
        assert resolved.oracle_temp_schema == "cdm"

    def test_temp_schema_follows_cohort_schema(self, details):
        resolved = RunConfiguration(
            details, cdm_database_schema="cdm", output_folder="out", cohort_database_schema="results"
        ).resolve()
        assert resolved.cohort_database_schema == "results"
        assert resolved.oracle_temp_schema == "results"

    def test_explicit_temp_schema_kept(self, details):
        resolved = RunConfiguration(
            details, cdm_database_schema="cdm", output_folder="out",
            cohort_database_schema="results", oracle_temp_schema="scratch",
        ).resolve()
        assert resolved.oracle_temp_schema == "scratch"

    def test_resolve_returns_new_instance(self, details):
        config = RunConfiguration(details, cdm_database_schema="cdm", output_folder="out")
        resolved = config.resolve()
        assert resolved is not config
        assert config.cohort_database_schema is None

    def test_configuration_is_immutable(self, details):
        config = RunConfiguration(details, cdm_database_schema="cdm", output_folder="out")
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.cohort_table = "other"

    def test_derived_paths(self, details, tmp_path):
        config = RunConfiguration(details, cdm_database_schema="cdm", output_folder=tmp_path).resolve()
        assert config.output_folder == str(tmp_path)
        assert config.export_folder == os.path.join(str(tmp_path), "feasibilityExport")
        assert config.log_file == os.path.join(str(tmp_path), "feasibilityLog.txt")

    @pytest.mark.parametrize("value", [0, -1, 2.5, "5", True, None])
    def test_invalid_min_cell_count(self, details, value):
        config = RunConfiguration(details, cdm_database_schema="cdm", output_folder="out", min_cell_count=value)
        with pytest.raises(InvalidConfigurationError):
            config.resolve()

    @pytest.mark.parametrize("field", ["cdm_database_schema", "output_folder", "cohort_table"])
    def test_required_fields(self, details, field):
        options = dict(connection_details=details, cdm_database_schema="cdm", output_folder="out")
        options[field] = ""
        with pytest.raises(InvalidConfigurationError):
            RunConfiguration(**options).resolve()

    def test_missing_connection_details(self):
        with pytest.raises(InvalidConfigurationError):
            RunConfiguration(None, cdm_database_schema="cdm", output_folder="out").resolve()
