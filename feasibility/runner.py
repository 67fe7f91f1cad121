"""
Feasibility run orchestration.

StudyRunner.run() executes, in a fixed order:
  1. environment preparation (output folder, temp-storage folder)
  2. log sink registration (<output_folder>/feasibilityLog.txt), released on every exit path
  3. cohort construction, if create_cohorts
  4. study diagnostics, if run_diagnostics

The two phases share nothing in memory; diagnostics reads the cohort table, so it
can run in a later invocation than the one that built the cohorts.
"""

import logging
import traceback

from feasibility import cohort_utils, diagnostics_utils
from feasibility.constants import DEFAULT_LOG_SINK_ID, PACKAGE_NAME, SYMBOLS
from feasibility.duckdb_utils import DuckDBConnectionProvider
from feasibility.logging_utils import default_registry
from feasibility.phases import (
    prepare_environment,
    run_cohort_construction,
    run_diagnostics_phase,
)
from feasibility.settings import RunConfiguration

logger = logging.getLogger(__name__)

RUN_TAG = "[RUN]"


class StudyRunner:
    """Sequences the feasibility phases against one database.

    Collaborators default to the package implementations and can be replaced:
      cohort_builder(connection, cdm_database_schema, cohort_database_schema,
                     cohort_table, oracle_temp_schema, output_folder)
      diagnostics_runner(package_name, connection_details, ..., min_cell_count)
      connection_provider.open(connection_details) / .close(connection)
      log_registry.register(sink_id, file_path) / .unregister(sink_id)
    """

    def __init__(self,
                 cohort_builder=None,
                 diagnostics_runner=None,
                 connection_provider=None,
                 log_registry=None,
                 package_name: str = PACKAGE_NAME,
                 log_sink_id: str = DEFAULT_LOG_SINK_ID):
        self.cohort_builder = cohort_builder or cohort_utils.create_cohorts
        self.diagnostics_runner = diagnostics_runner or diagnostics_utils.run_study_diagnostics
        self.connection_provider = connection_provider or DuckDBConnectionProvider()
        self.log_registry = log_registry or default_registry
        self.package_name = package_name
        self.log_sink_id = log_sink_id

    def run(self, config: RunConfiguration) -> RunConfiguration:
        """Execute the selected phases. Returns the resolved configuration used."""
        config = config.resolve()

        prepare_environment(config, logger)

        sink = self.log_registry.register(self.log_sink_id, config.log_file)
        try:
            self._log_run_header(config)

            context = {
                "config": config,
                "logger": logger,
                "package_name": self.package_name,
                "connection_provider": self.connection_provider,
                "cohort_builder": self.cohort_builder,
                "diagnostics_runner": self.diagnostics_runner,
            }

            try:
                if config.create_cohorts:
                    run_cohort_construction(context)

                if config.run_diagnostics:
                    run_diagnostics_phase(context)
            except Exception as e:
                logger.error(f"{SYMBOLS['fail']} {RUN_TAG} Feasibility run failed: {e}")
                logger.debug(f"{RUN_TAG} Traceback: {traceback.format_exc()}")
                raise

            logger.info(f"{SYMBOLS['success']} {RUN_TAG} Feasibility run finished")
        finally:
            self.log_registry.unregister(sink.sink_id)

        return config

    def _log_run_header(self, config: RunConfiguration):
        logger.info("=" * 80)
        logger.info(f"{SYMBOLS['rocket']} {RUN_TAG} Feasibility run started ({self.package_name})")
        logger.info("=" * 80)
        logger.info(f"{SYMBOLS['info']} Database: {config.database_id} ({config.database_name})")
        logger.info(f"{SYMBOLS['info']} CDM schema: {config.cdm_database_schema}")
        logger.info(f"{SYMBOLS['info']} Cohort table: {config.cohort_database_schema}.{config.cohort_table}")
        logger.info(f"{SYMBOLS['info']} Output folder: {config.output_folder}")
        logger.info(f"{SYMBOLS['info']} Create cohorts: {config.create_cohorts}")
        logger.info(f"{SYMBOLS['info']} Run diagnostics: {config.run_diagnostics}")
        logger.info(f"{SYMBOLS['info']} Min cell count: {config.min_cell_count}")
        logger.info("=" * 80)


def run_feasibility(connection_details,
                    cdm_database_schema: str,
                    output_folder: str,
                    runner: StudyRunner = None,
                    **options) -> RunConfiguration:
    """Run the feasibility study with keyword options (see RunConfiguration for names and defaults)."""
    config = RunConfiguration(
        connection_details=connection_details,
        cdm_database_schema=cdm_database_schema,
        output_folder=output_folder,
        **options,
    )
    return (runner or StudyRunner()).run(config)
