"""
Study diagnostics: cohort-level summary statistics exported for aggregation
across databases.

Every count written to the export folder passes through enforce_min_cell_value(),
so no non-zero count below the minimum cell count leaves the database.
"""

import logging
import os
import zipfile
from datetime import datetime
from typing import Dict, List, Optional

import duckdb
import pandas as pd

from feasibility import duckdb_utils
from feasibility.cohort_utils import load_cohorts_to_create
from feasibility.constants import (
    COHORT_COUNTS_FILE_NAME,
    DEFAULT_MIN_CELL_COUNT,
    PACKAGE_VERSION,
    SYMBOLS,
)
from feasibility.errors import (
    CohortConstructionError,
    DatabaseConnectionError,
    DiagnosticsError,
)

logger = logging.getLogger(__name__)

DURATION_COLUMNS = ["min_days", "p25_days", "median_days", "p75_days", "max_days", "mean_days"]


def enforce_min_cell_value(data: pd.DataFrame, field_name: str, min_value: int,
                           silent: bool = False) -> pd.DataFrame:
    """Replace non-zero values below min_value with -min_value (read: "< min_value")."""
    data = data.copy()
    if data.empty or field_name not in data.columns:
        return data

    values = data[field_name]
    to_censor = values.notna() & (values < min_value) & (values != 0)
    n_censored = int(to_censor.sum())
    if n_censored > 0:
        data.loc[to_censor, field_name] = -min_value
        if not silent:
            percent = 100 * n_censored / len(data)
            logger.info(
                f"{SYMBOLS['clean']} Censoring {n_censored} values ({percent:.1f}%) from {field_name} "
                f"because value below minimum"
            )
    return data


def get_cohort_counts(connection, cohort_database_schema: str, cohort_table: str,
                      cohorts: pd.DataFrame) -> pd.DataFrame:
    table_ref = duckdb_utils.qualify(connection, cohort_database_schema, cohort_table)
    counts = connection.execute(f"""
        SELECT cohort_definition_id AS cohort_id,
               COUNT(*) AS cohort_entries,
               COUNT(DISTINCT subject_id) AS cohort_subjects
        FROM {table_ref}
        GROUP BY cohort_definition_id
    """).df()
    counts = cohorts[["cohortId", "name"]].rename(
        columns={"cohortId": "cohort_id", "name": "cohort_name"}
    ).merge(counts, how="left", on="cohort_id")
    counts["cohort_entries"] = counts["cohort_entries"].fillna(0).astype("int64")
    counts["cohort_subjects"] = counts["cohort_subjects"].fillna(0).astype("int64")
    return counts


def get_incidence_by_year(connection, cohort_database_schema: str, cohort_table: str) -> pd.DataFrame:
    table_ref = duckdb_utils.qualify(connection, cohort_database_schema, cohort_table)
    return connection.execute(f"""
        SELECT cohort_definition_id AS cohort_id,
               CAST(EXTRACT(year FROM cohort_start_date) AS INTEGER) AS calendar_year,
               COUNT(DISTINCT subject_id) AS subjects
        FROM {table_ref}
        GROUP BY 1, 2
        ORDER BY 1, 2
    """).df()


def get_cohort_duration(connection, cohort_database_schema: str, cohort_table: str) -> pd.DataFrame:
    table_ref = duckdb_utils.qualify(connection, cohort_database_schema, cohort_table)
    return connection.execute(f"""
        SELECT cohort_definition_id AS cohort_id,
               COUNT(*) AS cohort_entries,
               MIN(duration) AS min_days,
               QUANTILE_CONT(duration, 0.25) AS p25_days,
               MEDIAN(duration) AS median_days,
               QUANTILE_CONT(duration, 0.75) AS p75_days,
               MAX(duration) AS max_days,
               AVG(duration) AS mean_days
        FROM (
            SELECT cohort_definition_id,
                   DATEDIFF('day', cohort_start_date, cohort_end_date) AS duration
            FROM {table_ref}
        ) d
        GROUP BY cohort_definition_id
        ORDER BY cohort_id
    """).df()


def censor_cohort_duration(duration: pd.DataFrame, min_cell_count: int) -> pd.DataFrame:
    """Blank the distribution of cohorts whose entry count is censored."""
    duration = enforce_min_cell_value(duration, "cohort_entries", min_cell_count)
    if duration.empty:
        return duration
    censored = duration["cohort_entries"] < 0
    duration[DURATION_COLUMNS] = duration[DURATION_COLUMNS].astype("float64")
    duration.loc[censored, DURATION_COLUMNS] = float("nan")
    return duration


def load_inclusion_statistics(inclusion_statistics_folder: str) -> Optional[pd.DataFrame]:
    """Read the cohort counts written during cohort construction, if present."""
    path = os.path.join(inclusion_statistics_folder, COHORT_COUNTS_FILE_NAME)
    if not os.path.exists(path):
        logger.warning(f"{SYMBOLS['warning']} No inclusion statistics found at {path}")
        return None
    stats = pd.read_csv(path)
    return stats.rename(columns={
        "cohortDefinitionId": "cohort_id",
        "cohortName": "cohort_name",
        "cohortEntries": "cohort_entries",
        "cohortSubjects": "cohort_subjects",
    })


def write_export_table(data: pd.DataFrame, name: str, export_folder: str, database_id: str) -> str:
    data = data.copy()
    data.insert(0, "database_id", database_id)
    path = os.path.join(export_folder, f"{name}.csv")
    data.to_csv(path, index=False)
    logger.info(f"{SYMBOLS['arrow']} Exported {name}: {len(data):,} rows")
    return path


def zip_export(export_folder: str, database_id: str, files: List[str]) -> str:
    zip_path = os.path.join(export_folder, f"Results_{database_id}.zip")
    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for file_path in files:
            zf.write(file_path, arcname=os.path.basename(file_path))
    logger.info(f"{SYMBOLS['success']} Results are ready for sharing at {zip_path}")
    return zip_path


def run_study_diagnostics(package_name: str,
                          connection_details,
                          cdm_database_schema: str,
                          oracle_temp_schema: str,
                          cohort_database_schema: str,
                          cohort_table: str,
                          inclusion_statistics_folder: str,
                          export_folder: str,
                          database_id: str,
                          database_name: str,
                          database_description: str,
                          min_cell_count: int = DEFAULT_MIN_CELL_COUNT) -> str:
    """Compute cohort diagnostics and export them as CSV files plus a results zip.

    Opens and closes its own connection from connection_details; cohorts are read
    from the cohort table left behind by cohort construction (this run or an
    earlier one).

    Returns:
        Path of the results zip file in export_folder
    """
    start_time = datetime.now()
    try:
        cohorts = load_cohorts_to_create()
    except CohortConstructionError as e:
        raise DiagnosticsError(f"Could not load the cohort list: {e}") from e

    tables: Dict[str, pd.DataFrame] = {
        "database": pd.DataFrame([{
            "database_name": database_name,
            "description": database_description,
        }]),
    }

    try:
        conn = duckdb_utils.connect(connection_details)
    except DatabaseConnectionError as e:
        raise DiagnosticsError(f"Could not connect for diagnostics: {e}") from e
    try:
        logger.info(f"{SYMBOLS['arrow']} Counting cohort entries and subjects")
        counts = get_cohort_counts(conn, cohort_database_schema, cohort_table, cohorts)
        counts = enforce_min_cell_value(counts, "cohort_entries", min_cell_count)
        tables["cohort_count"] = enforce_min_cell_value(counts, "cohort_subjects", min_cell_count)

        logger.info(f"{SYMBOLS['arrow']} Computing incidence by calendar year")
        incidence = get_incidence_by_year(conn, cohort_database_schema, cohort_table)
        tables["incidence_by_year"] = enforce_min_cell_value(incidence, "subjects", min_cell_count)

        logger.info(f"{SYMBOLS['arrow']} Computing cohort duration distribution")
        duration = get_cohort_duration(conn, cohort_database_schema, cohort_table)
        tables["cohort_duration"] = censor_cohort_duration(duration, min_cell_count)
    except duckdb.Error as e:
        logger.error(f"{SYMBOLS['fail']} Diagnostics query failed: {e}")
        raise DiagnosticsError(
            f"Could not compute diagnostics on {cohort_database_schema}.{cohort_table}: {e}"
        ) from e
    finally:
        duckdb_utils.disconnect(conn)

    os.makedirs(export_folder, exist_ok=True)
    inclusion = load_inclusion_statistics(inclusion_statistics_folder)
    if inclusion is not None:
        inclusion = enforce_min_cell_value(inclusion, "cohort_entries", min_cell_count)
        tables["inclusion_stats"] = enforce_min_cell_value(inclusion, "cohort_subjects", min_cell_count)

    tables["metadata"] = pd.DataFrame([{
        "package_name": package_name,
        "package_version": PACKAGE_VERSION,
        "cdm_database_schema": cdm_database_schema,
        "min_cell_count": min_cell_count,
        "run_time_seconds": round((datetime.now() - start_time).total_seconds(), 2),
        "timestamp": start_time.isoformat(),
    }])

    files = [
        write_export_table(data, name, export_folder, database_id)
        for name, data in tables.items()
    ]
    return zip_export(export_folder, database_id, files)
