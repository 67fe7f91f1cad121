"""
Cohort construction phase.

Owns the only connection the runner opens itself: acquired here, released here,
never handed to the diagnostics phase.
"""

from feasibility.constants import SYMBOLS
from feasibility.errors import (
    CohortConstructionError,
    DatabaseConnectionError,
)

PHASE_TAG = "[COHORTS]"


def run_cohort_construction(context):
    """Build the exposure and outcome cohorts in the work schema."""
    logger = context["logger"]
    config = context["config"]
    connection_provider = context["connection_provider"]
    cohort_builder = context["cohort_builder"]

    logger.info(f"{SYMBOLS['arrow']} {PHASE_TAG} Creating exposure and outcome cohorts")

    try:
        connection = connection_provider.open(config.connection_details)
    except DatabaseConnectionError:
        logger.error(f"{SYMBOLS['fail']} {PHASE_TAG} Could not connect to the database")
        raise
    except Exception as e:
        logger.error(f"{SYMBOLS['fail']} {PHASE_TAG} Could not connect to the database: {e}")
        raise DatabaseConnectionError(f"Could not connect to the database: {e}") from e

    try:
        cohort_builder(
            connection=connection,
            cdm_database_schema=config.cdm_database_schema,
            cohort_database_schema=config.cohort_database_schema,
            cohort_table=config.cohort_table,
            oracle_temp_schema=config.oracle_temp_schema,
            output_folder=config.output_folder,
        )
    except CohortConstructionError as e:
        logger.error(f"{SYMBOLS['fail']} {PHASE_TAG} Cohort creation failed: {e}")
        raise
    except Exception as e:
        logger.error(f"{SYMBOLS['fail']} {PHASE_TAG} Cohort creation failed: {e}")
        raise CohortConstructionError(f"Cohort creation failed: {e}") from e
    finally:
        try:
            connection_provider.close(connection)
        except Exception as close_e:
            logger.warning(f"{PHASE_TAG} Could not close database connection: {close_e}")

    logger.info(f"{SYMBOLS['success']} {PHASE_TAG} Cohort creation completed")
