#!/usr/bin/env python3
"""
Command-line entry point for the feasibility run.

Usage:
  feasibility --database /data/cdm.duckdb --cdm-database-schema cdm \
      --cohort-database-schema results --output-folder ./output \
      --database-id SYNPUF --min-cell-count 5
"""

import argparse
import logging
import sys

from feasibility.constants import (
    DEFAULT_COHORT_TABLE,
    DEFAULT_MIN_CELL_COUNT,
    SYMBOLS,
    UNKNOWN,
    get_log_level,
)
from feasibility.errors import FeasibilityError
from feasibility.logging_utils import setup_console_logging
from feasibility.runner import StudyRunner
from feasibility.settings import RunConfiguration, create_connection_details


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Create study cohorts and run study diagnostics for the feasibility assessment"
    )
    parser.add_argument("--dbms", default="duckdb", help="Database platform (only 'duckdb' is supported)")
    parser.add_argument("--database", required=True, help="DuckDB database file holding the CDM")
    parser.add_argument("--cdm-database-schema", required=True,
                        help="Schema where the patient-level data in OMOP CDM format resides")
    parser.add_argument("--cohort-database-schema", default=None,
                        help="Writable schema for the cohort table (default: CDM schema)")
    parser.add_argument("--cohort-table", default=DEFAULT_COHORT_TABLE,
                        help="Name of the cohort table created in the cohort schema")
    parser.add_argument("--oracle-temp-schema", default=None,
                        help="Scratch schema for platforms that need one (default: cohort schema)")
    parser.add_argument("--output-folder", required=True, help="Local folder for logs and results")
    parser.add_argument("--database-id", default=UNKNOWN, help="Short database identifier (e.g. 'Synpuf')")
    parser.add_argument("--database-name", default=UNKNOWN, help="Full name of the database")
    parser.add_argument("--database-description", default=UNKNOWN, help="Short description of the database")
    parser.add_argument("--no-create-cohorts", dest="create_cohorts", action="store_false",
                        help="Skip cohort creation (cohort table must exist from an earlier run)")
    parser.add_argument("--no-run-diagnostics", dest="run_diagnostics", action="store_false",
                        help="Skip the study diagnostics")
    parser.add_argument("--min-cell-count", type=int, default=DEFAULT_MIN_CELL_COUNT,
                        help="Minimum count before a number can be included in exported results")
    parser.add_argument("--log-level", default=None, help="Console logging level (default: FEASIBILITY_LOG_LEVEL or INFO)")
    return parser


def main(argv=None, runner: StudyRunner = None) -> int:
    args = build_parser().parse_args(argv)

    level = getattr(logging, args.log_level.upper(), None) if args.log_level else None
    logger = setup_console_logging(level if isinstance(level, int) else get_log_level())

    try:
        config = RunConfiguration(
            connection_details=create_connection_details(args.dbms, args.database),
            cdm_database_schema=args.cdm_database_schema,
            output_folder=args.output_folder,
            cohort_database_schema=args.cohort_database_schema,
            cohort_table=args.cohort_table,
            oracle_temp_schema=args.oracle_temp_schema,
            database_id=args.database_id,
            database_name=args.database_name,
            database_description=args.database_description,
            create_cohorts=args.create_cohorts,
            run_diagnostics=args.run_diagnostics,
            min_cell_count=args.min_cell_count,
        )
        (runner or StudyRunner()).run(config)
    except FeasibilityError as e:
        logger.error(f"{SYMBOLS['fail']} {type(e).__name__}: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
