"""
Runners module - test execution.

Runners are responsible for:
- Creating the run directory and summary log
- Sequencing iterations through an iteration controller
- Aggregating iteration outcomes into a RunSummary

Runners should NOT:
- Talk to docker or HTTP directly (the lib layer does that)
- Parse configuration (the parsers layer does that)
"""

from nrs.runners._base_runner import (
    BaseRunner,
    FailureReason,
    IterationResult,
    IterationState,
    IterationStatus,
    RunSummary,
)
from nrs.runners.iteration import EphemeralIterationController, IterationController, PersistentIterationController
from nrs.runners.stress import StressTestRunner

__all__ = [
    "BaseRunner",
    "FailureReason",
    "IterationResult",
    "IterationState",
    "IterationStatus",
    "RunSummary",
    "IterationController",
    "EphemeralIterationController",
    "PersistentIterationController",
    "StressTestRunner",
]
