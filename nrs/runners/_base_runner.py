"""
Base runner interface and common data structures.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional
import logging

log = logging.getLogger(__name__)


class IterationStatus(Enum):
    """Terminal outcome of one iteration; the value is used as the log file suffix."""

    SUCCESS = "SUCCESS"
    FAIL = "FAIL"


class FailureReason(Enum):
    """Why an iteration failed. Recorded on the result, never raised past the controller."""

    LAUNCH_FAILURE = "launch_failure"
    SERVER_START_FAILURE = "server_start_failure"
    READINESS_TIMEOUT = "readiness_timeout"
    ENVIRONMENT_DIED = "environment_died"
    PROMPT_CONNECTION_ERROR = "prompt_connection_error"
    PATTERN_MISMATCH = "pattern_mismatch"
    ERROR_PATTERN_DETECTED = "error_pattern_detected"


class IterationState(Enum):
    CREATED = "created"
    LAUNCHING = "launching"
    AWAITING_READY = "awaiting_ready"
    DRIVING = "driving"
    SCANNING = "scanning"
    CLASSIFIED = "classified"
    TORN_DOWN = "torn_down"


@dataclass(frozen=True)
class IterationResult:
    """
    Classified outcome of one iteration.

    Built by the iteration controller once the iteration is torn down and
    never modified afterwards.
    """

    index: int
    start_time: float
    end_time: float
    status: IterationStatus
    reason: Optional[FailureReason] = None
    detail: Optional[str] = None
    log_path: Optional[Path] = None

    @property
    def duration_seconds(self) -> float:
        return self.end_time - self.start_time

    @property
    def succeeded(self) -> bool:
        return self.status == IterationStatus.SUCCESS


@dataclass
class RunSummary:
    """
    Aggregated outcome of a whole run.

    Only the run aggregator records into it.
    """

    run_dir: Optional[Path] = None
    success_count: int = 0
    fail_count: int = 0
    iterations: List[IterationResult] = field(default_factory=list)
    aborted: bool = False
    error_message: Optional[str] = None

    @property
    def total(self) -> int:
        return self.success_count + self.fail_count

    @property
    def pass_rate(self) -> float:
        """Percentage of successful iterations, 0 for an empty run."""
        if self.total == 0:
            return 0.0
        return 100.0 * self.success_count / self.total

    @property
    def exit_code(self) -> int:
        if self.aborted or self.fail_count > 0:
            return 1
        return 0

    def record(self, result: IterationResult):
        self.iterations.append(result)
        if result.succeeded:
            self.success_count += 1
        else:
            self.fail_count += 1


class BaseRunner(ABC):
    """
    Abstract base class for runners.

    Runners follow a lifecycle:
    1. setup() - Prepare environment (result directory, persistent container)
    2. run() - Execute the iterations
    3. teardown() - Cleanup resources

    The execute() method orchestrates this lifecycle with proper error handling.
    """

    def __init__(self, config):
        self.config = config
        self._setup_complete = False

    @abstractmethod
    def setup(self) -> bool:
        """
        Prepare everything the iterations share.

        Returns:
            True if setup succeeded, False otherwise
        """
        pass

    @abstractmethod
    def run(self) -> RunSummary:
        pass

    @abstractmethod
    def teardown(self) -> bool:
        """
        Cleanup resources after the last iteration.

        Returns:
            True if teardown succeeded, False otherwise
        """
        pass

    def execute(self) -> RunSummary:
        """
        Full execution lifecycle: setup -> run -> teardown.

        Teardown is always attempted once setup has completed, including on
        KeyboardInterrupt and SystemExit, which propagate afterwards.

        Returns:
            RunSummary from the run, or an aborted summary if setup fails
        """
        try:
            log.info(f"Setting up {self.__class__.__name__}...")
            if not self.setup():
                return RunSummary(aborted=True, error_message="Setup failed")
            self._setup_complete = True

            log.info(f"Running {self.__class__.__name__}...")
            return self.run()

        except Exception as e:
            log.exception(f"Error during {self.__class__.__name__} execution")
            return RunSummary(aborted=True, error_message=str(e))

        finally:
            if self._setup_complete:
                log.info(f"Tearing down {self.__class__.__name__}...")
                try:
                    self.teardown()
                except Exception as e:
                    log.warning(f"Teardown error (non-fatal): {e}")
