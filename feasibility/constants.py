import os
import logging
import platform

# Study/package identity label embedded in exported diagnostics
PACKAGE_NAME = "EhdenRaDrugUtilization"
PACKAGE_VERSION = "0.1.0"

# Output layout
LOG_FILE_NAME = "feasibilityLog.txt"
EXPORT_FOLDER_NAME = "feasibilityExport"
COHORT_COUNTS_FILE_NAME = "CohortCounts.csv"

# Logger identifiers
PACKAGE_LOGGER_NAME = "feasibility"
DEFAULT_LOG_SINK_ID = "DEFAULT"
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

# Run defaults
DEFAULT_COHORT_TABLE = "cohort"
DEFAULT_MIN_CELL_COUNT = 5
UNKNOWN = "Unknown"

# Environment variables
# FEASIBILITY_TEMP_DIR is the process-wide spill-to-disk directory used by the database layer.
TEMP_DIR_ENV_VAR = "FEASIBILITY_TEMP_DIR"
LOG_LEVEL_ENV_VAR = "FEASIBILITY_LOG_LEVEL"

SUPPORTED_DBMS = ("duckdb",)

# Windows emoji compatibility
IS_WINDOWS = platform.system() == 'Windows'
SYMBOLS = {
    'rocket': '[START]' if IS_WINDOWS else '🚀',
    'arrow': '->' if IS_WINDOWS else '→',
    'info': '[INFO]' if IS_WINDOWS else '📊',
    'success': '[PASS]' if IS_WINDOWS else '✅',
    'fail': '[FAIL]' if IS_WINDOWS else '❌',
    'warning': '[WARN]' if IS_WINDOWS else '⚠️',
    'clean': '[CLEAN]' if IS_WINDOWS else '🧹',
}


def get_temp_dir():
    """Return the configured temp-storage directory, or None when not configured.

    Read at call time so a run always sees the current process setting.
    """
    value = os.environ.get(TEMP_DIR_ENV_VAR, '').strip()
    return value or None


def get_log_level() -> int:
    """Get log level from environment, default to INFO."""
    name = os.environ.get(LOG_LEVEL_ENV_VAR, 'INFO').strip().upper()
    level = getattr(logging, name, None)
    return level if isinstance(level, int) else logging.INFO
