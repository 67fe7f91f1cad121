"""
Run configuration for the feasibility study.

RunConfiguration is the immutable input bundle for one run. Defaults that depend on
other options (cohort schema <- CDM schema, temp schema <- cohort schema) are left
as None until resolve() is called once at the start of a run.
"""

import os
from dataclasses import dataclass, replace
from typing import Optional

from feasibility.constants import (
    DEFAULT_COHORT_TABLE,
    DEFAULT_MIN_CELL_COUNT,
    EXPORT_FOLDER_NAME,
    LOG_FILE_NAME,
    SUPPORTED_DBMS,
    UNKNOWN,
)
from feasibility.errors import InvalidConfigurationError


@dataclass(frozen=True)
class ConnectionDetails:
    """Descriptor of the target warehouse. Holds no open connection."""
    dbms: str = "duckdb"
    database: str = ":memory:"
    read_only: bool = False
    threads: Optional[int] = None
    memory_limit: Optional[str] = None
    s3_region: Optional[str] = None


def create_connection_details(dbms: str = "duckdb", database: str = ":memory:", **kwargs) -> ConnectionDetails:
    """Build and validate a ConnectionDetails descriptor."""
    dbms = (dbms or "").strip().lower()
    if dbms not in SUPPORTED_DBMS:
        raise InvalidConfigurationError(
            f"Unsupported dbms '{dbms}'. Supported: {', '.join(SUPPORTED_DBMS)}"
        )
    if not database:
        raise InvalidConfigurationError("database cannot be None or empty")
    return ConnectionDetails(dbms=dbms, database=str(database), **kwargs)


@dataclass(frozen=True)
class RunConfiguration:
    connection_details: ConnectionDetails
    cdm_database_schema: str
    output_folder: str
    cohort_database_schema: Optional[str] = None
    cohort_table: str = DEFAULT_COHORT_TABLE
    oracle_temp_schema: Optional[str] = None
    database_id: str = UNKNOWN
    database_name: str = UNKNOWN
    database_description: str = UNKNOWN
    create_cohorts: bool = True
    run_diagnostics: bool = True
    min_cell_count: int = DEFAULT_MIN_CELL_COUNT

    @property
    def export_folder(self) -> str:
        return os.path.join(self.output_folder, EXPORT_FOLDER_NAME)

    @property
    def log_file(self) -> str:
        return os.path.join(self.output_folder, LOG_FILE_NAME)

    def resolve(self) -> "RunConfiguration":
        """Validate options and return a copy with every chained default filled in."""
        if self.connection_details is None:
            raise InvalidConfigurationError("connection_details is required")
        if not self.cdm_database_schema:
            raise InvalidConfigurationError("cdm_database_schema cannot be None or empty")
        if not self.output_folder:
            raise InvalidConfigurationError("output_folder cannot be None or empty")
        if not self.cohort_table:
            raise InvalidConfigurationError("cohort_table cannot be None or empty")
        # bool is an int subclass; True is not a cell count
        if isinstance(self.min_cell_count, bool) or not isinstance(self.min_cell_count, int):
            raise InvalidConfigurationError(
                f"min_cell_count must be a positive integer, got {self.min_cell_count!r}"
            )
        if self.min_cell_count < 1:
            raise InvalidConfigurationError(
                f"min_cell_count must be a positive integer, got {self.min_cell_count}"
            )

        cohort_database_schema = self.cohort_database_schema or self.cdm_database_schema
        oracle_temp_schema = self.oracle_temp_schema or cohort_database_schema
        return replace(
            self,
            output_folder=str(self.output_folder),
            cohort_database_schema=cohort_database_schema,
            oracle_temp_schema=oracle_temp_schema,
            create_cohorts=bool(self.create_cohorts),
            run_diagnostics=bool(self.run_diagnostics),
        )
