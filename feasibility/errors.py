"""
Exception and warning types raised by the feasibility run.
"""


class FeasibilityError(Exception):
    """Base class for all feasibility run failures."""


class InvalidConfigurationError(FeasibilityError, ValueError):
    pass


class EnvironmentPreparationError(FeasibilityError):
    """Output or temp-storage directory could not be created."""


class DatabaseConnectionError(FeasibilityError, ConnectionError):
    """The warehouse connection could not be opened."""


class CohortConstructionError(FeasibilityError):
    pass


class DiagnosticsError(FeasibilityError):
    pass


class LogSinkError(FeasibilityError):
    """A log sink id was registered twice or is otherwise misused."""


class TempStorageMissingWarning(UserWarning):
    """Temp-storage directory was configured but missing, and has been created."""
