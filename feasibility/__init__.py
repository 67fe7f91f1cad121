"""
Feasibility run for the EHDEN RA drug utilization study.

This package contains:
- run configuration and connection descriptors
- the study runner (cohort creation, study diagnostics)
- DuckDB, logging and S3 utilities
"""

from feasibility.errors import (
    CohortConstructionError,
    DatabaseConnectionError,
    DiagnosticsError,
    EnvironmentPreparationError,
    FeasibilityError,
    InvalidConfigurationError,
    LogSinkError,
    TempStorageMissingWarning,
)
from feasibility.runner import StudyRunner, run_feasibility
from feasibility.settings import ConnectionDetails, RunConfiguration, create_connection_details

__all__ = [
    'CohortConstructionError',
    'ConnectionDetails',
    'DatabaseConnectionError',
    'DiagnosticsError',
    'EnvironmentPreparationError',
    'FeasibilityError',
    'InvalidConfigurationError',
    'LogSinkError',
    'RunConfiguration',
    'StudyRunner',
    'TempStorageMissingWarning',
    'create_connection_details',
    'run_feasibility',
]
