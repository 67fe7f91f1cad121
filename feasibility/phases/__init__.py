"""
Phases of a feasibility run.

Each phase is in its own file; the runner calls them in a fixed order.
"""

from .environment import prepare_environment
from .cohort_construction import run_cohort_construction
from .diagnostics import run_diagnostics_phase

__all__ = [
    'prepare_environment',
    'run_cohort_construction',
    'run_diagnostics_phase',
]
