"""
Cohort construction in the work schema.

Cohort definitions ship with the package: resources/CohortsToCreate.csv lists the
cohorts, sql/<name>.sql holds one jinja2 template per cohort. create_cohorts()
(re)creates the cohort table, instantiates every cohort and writes the cohort
counts to the output folder.
"""

import logging
import os
from typing import Optional

import duckdb
import pandas as pd
from jinja2 import Template

from feasibility import duckdb_utils
from feasibility.constants import COHORT_COUNTS_FILE_NAME, SYMBOLS
from feasibility.errors import CohortConstructionError

logger = logging.getLogger(__name__)

PACKAGE_ROOT = os.path.dirname(os.path.abspath(__file__))
RESOURCES_DIR = os.path.join(PACKAGE_ROOT, "resources")
SQL_DIR = os.path.join(PACKAGE_ROOT, "sql")
COHORTS_TO_CREATE_FILE = os.path.join(RESOURCES_DIR, "CohortsToCreate.csv")

COHORT_TABLE_DDL = """
CREATE OR REPLACE TABLE {table_ref} (
    cohort_definition_id BIGINT,
    subject_id BIGINT,
    cohort_start_date DATE,
    cohort_end_date DATE
);
"""


def load_cohorts_to_create(file_path: str = COHORTS_TO_CREATE_FILE) -> pd.DataFrame:
    """Load the cohort list (atlasId, cohortId, name)."""
    if not os.path.exists(file_path):
        raise CohortConstructionError(f"Cohort settings file not found: {file_path}")
    cohorts = pd.read_csv(file_path, dtype={"name": str})
    missing = {"cohortId", "name"} - set(cohorts.columns)
    if missing:
        raise CohortConstructionError(
            f"Cohort settings file {file_path} is missing columns: {sorted(missing)}"
        )
    return cohorts


def render_cohort_sql(cohort_name: str, sql_dir: str = SQL_DIR, **params) -> str:
    """Render the jinja2 SQL template of one cohort."""
    sql_path = os.path.join(sql_dir, f"{cohort_name}.sql")
    if not os.path.exists(sql_path):
        raise CohortConstructionError(f"No SQL definition for cohort '{cohort_name}': {sql_path}")
    with open(sql_path, "r", encoding="utf-8") as f:
        template = Template(f.read())
    return template.render(**params)


def get_cohort_counts(connection, cohort_database_schema: str, cohort_table: str,
                      cohorts: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """Entries and distinct subjects per cohort definition, including empty cohorts."""
    table_ref = duckdb_utils.qualify(connection, cohort_database_schema, cohort_table)
    counts = connection.execute(f"""
        SELECT cohort_definition_id AS "cohortDefinitionId",
               COUNT(*) AS "cohortEntries",
               COUNT(DISTINCT subject_id) AS "cohortSubjects"
        FROM {table_ref}
        GROUP BY cohort_definition_id
        ORDER BY cohort_definition_id
    """).df()

    if cohorts is None:
        return counts

    counts = cohorts[["cohortId", "name"]].merge(
        counts, how="left", left_on="cohortId", right_on="cohortDefinitionId"
    )
    counts["cohortDefinitionId"] = counts["cohortId"]
    counts["cohortEntries"] = counts["cohortEntries"].fillna(0).astype("int64")
    counts["cohortSubjects"] = counts["cohortSubjects"].fillna(0).astype("int64")
    return counts[["cohortDefinitionId", "name", "cohortEntries", "cohortSubjects"]].rename(
        columns={"name": "cohortName"}
    )


def create_cohorts(connection,
                   cdm_database_schema: str,
                   cohort_database_schema: str,
                   cohort_table: str,
                   oracle_temp_schema: str,
                   output_folder: str,
                   cohorts_to_create_file: str = COHORTS_TO_CREATE_FILE,
                   sql_dir: str = SQL_DIR) -> pd.DataFrame:
    """Create the cohort table and instantiate every study cohort in it.

    Args:
        connection: Open DuckDB connection (owned by the caller)
        cdm_database_schema: Schema holding the patient-level CDM tables
        cohort_database_schema: Writable schema for the cohort table
        cohort_table: Name of the cohort table, overwritten if it exists
        oracle_temp_schema: Scratch schema, passed through to the SQL templates
        output_folder: Folder receiving CohortCounts.csv

    Returns:
        DataFrame with the cohort counts written to CohortCounts.csv
    """
    cohorts = load_cohorts_to_create(cohorts_to_create_file)

    try:
        cdm_schema_ref = duckdb_utils.qualify(connection, cdm_database_schema)
        cohort_schema_ref = duckdb_utils.qualify(connection, cohort_database_schema)
        connection.execute(f"CREATE SCHEMA IF NOT EXISTS {cohort_schema_ref}")
        connection.execute(COHORT_TABLE_DDL.format(
            table_ref=duckdb_utils.qualify(connection, cohort_database_schema, cohort_table)
        ))
        logger.info(f"{SYMBOLS['arrow']} Created cohort table {cohort_database_schema}.{cohort_table}")

        for cohort in cohorts.itertuples(index=False):
            sql = render_cohort_sql(
                cohort.name,
                sql_dir=sql_dir,
                cdm_database_schema=cdm_schema_ref,
                target_database_schema=cohort_schema_ref,
                target_cohort_table=duckdb_utils.quote_identifier(cohort_table),
                target_cohort_id=int(cohort.cohortId),
                oracle_temp_schema=oracle_temp_schema,
            )
            logger.info(f"{SYMBOLS['arrow']} Instantiating cohort {cohort.name} (id {cohort.cohortId})")
            connection.execute(sql)

        counts = get_cohort_counts(connection, cohort_database_schema, cohort_table, cohorts)
    except duckdb.Error as e:
        logger.error(f"{SYMBOLS['fail']} Cohort instantiation failed: {e}")
        raise CohortConstructionError(f"Cohort instantiation failed: {e}") from e

    counts_path = os.path.join(output_folder, COHORT_COUNTS_FILE_NAME)
    counts.to_csv(counts_path, index=False)
    for row in counts.itertuples(index=False):
        logger.info(
            f"{SYMBOLS['info']} {row.cohortName}: {row.cohortEntries:,} entries, "
            f"{row.cohortSubjects:,} subjects"
        )
    logger.info(f"{SYMBOLS['success']} Cohort counts saved to {counts_path}")
    return counts
