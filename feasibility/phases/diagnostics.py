"""
Diagnostics phase.

The diagnostics runner gets the connection descriptor, not a connection, and reads
cohorts only from the persisted cohort table.
"""

from feasibility.constants import PACKAGE_NAME, SYMBOLS
from feasibility.errors import DiagnosticsError

PHASE_TAG = "[DIAGNOSTICS]"


def run_diagnostics_phase(context):
    """Run and export the study diagnostics."""
    logger = context["logger"]
    config = context["config"]
    diagnostics_runner = context["diagnostics_runner"]
    package_name = context.get("package_name", PACKAGE_NAME)

    logger.info(f"{SYMBOLS['arrow']} {PHASE_TAG} Running study diagnostics")

    try:
        diagnostics_runner(
            package_name=package_name,
            connection_details=config.connection_details,
            cdm_database_schema=config.cdm_database_schema,
            oracle_temp_schema=config.oracle_temp_schema,
            cohort_database_schema=config.cohort_database_schema,
            cohort_table=config.cohort_table,
            inclusion_statistics_folder=config.output_folder,
            export_folder=config.export_folder,
            database_id=config.database_id,
            database_name=config.database_name,
            database_description=config.database_description,
            min_cell_count=config.min_cell_count,
        )
    except DiagnosticsError as e:
        logger.error(f"{SYMBOLS['fail']} {PHASE_TAG} Study diagnostics failed: {e}")
        raise
    except Exception as e:
        logger.error(f"{SYMBOLS['fail']} {PHASE_TAG} Study diagnostics failed: {e}")
        raise DiagnosticsError(f"Study diagnostics failed: {e}") from e

    logger.info(f"{SYMBOLS['success']} {PHASE_TAG} Study diagnostics completed")
