"""
Iteration controller: one launch/ready/drive/scan/classify/teardown cycle.

The controller owns the watchdog and sequences the leaf libraries for a
single iteration. Failures of any phase are captured as a FailureReason on
the iteration result; they never propagate to the run aggregator.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import logging
import time

from nrs.lib.artifact_lib import IterationLog
from nrs.lib.environment_lib import Environment, LogCapture
from nrs.lib.errors import LaunchFailure
from nrs.lib.probe_lib import PollPolicy, Readiness, SystemClock
from nrs.lib.verify_lib import scan_error_patterns
from nrs.lib.watchdog_lib import Watchdog
from nrs.runners._base_runner import FailureReason, IterationResult, IterationState, IterationStatus

log = logging.getLogger(__name__)

SEPARATOR = "─" * 60
CONTAINER_LOG_NAME = "container.log"


@dataclass
class IterationContext:
    """Mutable state of the iteration in flight, threaded through every phase."""

    index: int
    iter_log: IterationLog
    start_time: float
    state: IterationState = IterationState.CREATED
    env: Optional[Environment] = None
    log_capture: Optional[LogCapture] = None
    status: Optional[IterationStatus] = None
    reason: Optional[FailureReason] = None
    detail: Optional[str] = None

    def advance(self, state: IterationState):
        log.debug(f"Iteration {self.index}: {self.state.value} -> {state.value}")
        self.state = state

    def classify(self, status: IterationStatus, reason: Optional[FailureReason] = None, detail: Optional[str] = None):
        self.status = status
        self.reason = reason
        self.detail = detail
        self.advance(IterationState.CLASSIFIED)

    def fail(self, reason: FailureReason, detail: Optional[str] = None):
        self.classify(IterationStatus.FAIL, reason, detail)


class IterationController(ABC):
    """
    Runs iterations for one mode.

    Subclasses decide how the serving workload is brought up and released;
    readiness, workload, scanning, classification and teardown ordering
    are shared.
    """

    def __init__(self, config, adapter, manager, prober, driver, prompts, run_dir, clock=None, timer_factory=None):
        self.config = config
        self.adapter = adapter
        self.manager = manager
        self.prober = prober
        self.driver = driver
        self.prompts = prompts
        self.run_dir = run_dir
        self.clock = clock or SystemClock()
        self.watchdog = Watchdog(self.kill, timer_factory=timer_factory)

    @property
    def base_url(self):
        return f"http://localhost:{self.config.server.port}"

    @property
    def health_url(self):
        return f"{self.base_url}{self.adapter.health_path()}"

    @property
    def chat_url(self):
        return f"{self.base_url}{self.adapter.chat_path()}"

    @property
    def poll_policy(self):
        return PollPolicy(
            interval=self.config.server.health_interval,
            ceiling=self.config.server.startup_timeout,
            request_timeout=self.config.server.health_timeout,
        )

    def open(self):
        """Prepare run-wide resources before the first iteration."""

    def close(self):
        """Release run-wide resources after the last iteration."""

    @abstractmethod
    def describe(self, index) -> str:
        """Short label for the iteration banner."""

    @abstractmethod
    def launch(self, ctx: IterationContext) -> bool:
        """Bring the serving workload up. On failure classify ctx and return False."""

    @abstractmethod
    def collect_logs(self, ctx: IterationContext):
        pass

    @abstractmethod
    def release(self, ctx: IterationContext):
        """Tear the workload down. Must not raise."""

    @abstractmethod
    def kill(self, env: Environment):
        """Watchdog callback, runs on the timer thread."""

    def run_iteration(self, index) -> IterationResult:
        ctx = IterationContext(index=index, iter_log=IterationLog(self.run_dir, index), start_time=time.time())
        log.info("")
        log.info(SEPARATOR)
        log.info(f"  Iteration {index} / {self.config.test.num_loops}   ({self.describe(index)})")
        log.info(SEPARATOR)

        try:
            self._run_phases(ctx)
        except Exception as e:
            # KeyboardInterrupt and SystemExit still end the run
            log.exception(f"Iteration {index} crashed while {ctx.state.value}")
            ctx.detail = f"crashed while {ctx.state.value}: {e}"
        finally:
            log_path = self._teardown(ctx)

        end_time = time.time()
        result = IterationResult(
            index=index,
            start_time=ctx.start_time,
            end_time=end_time,
            status=ctx.status,
            reason=ctx.reason,
            detail=ctx.detail,
            log_path=log_path,
        )
        outcome = result.status.value
        if result.reason is not None:
            outcome = f"{outcome} ({result.reason.value})"
        log.info(f"  Iteration {index} finished in {int(result.duration_seconds)}s - {outcome}")
        return result

    def _run_phases(self, ctx: IterationContext):
        ctx.advance(IterationState.LAUNCHING)
        if not self.launch(ctx):
            return

        self.watchdog.arm(ctx.env, self.config.timeouts.container, ctx.iter_log)

        ctx.advance(IterationState.AWAITING_READY)
        readiness, elapsed = self.prober.await_ready(
            lambda: self.manager.is_alive(ctx.env), self.health_url, self.poll_policy
        )
        if readiness != Readiness.READY:
            self.collect_logs(ctx)
            if readiness == Readiness.TIMEOUT or self.watchdog.fired:
                ctx.fail(FailureReason.READINESS_TIMEOUT, f"server not ready after {int(elapsed)}s")
            else:
                ctx.fail(FailureReason.ENVIRONMENT_DIED, "environment died before the server became ready")
            return

        ctx.advance(IterationState.DRIVING)
        workload = self.driver.drive(
            self.chat_url,
            self.config.server.model_path,
            self.config.test.prompts_per_loop,
            self.prompts.prompt_content,
            self.prompts.default_params,
            self.prompts.extra_params,
            self.config.timeouts.prompt,
            self.config.test.success_pattern,
            ctx.iter_log,
        )
        self.collect_logs(ctx)

        ctx.advance(IterationState.SCANNING)
        self.clock.sleep(self.config.test.log_flush_delay)
        error_pattern = scan_error_patterns(ctx.iter_log.read_text(), self.config.error_patterns)

        if not workload.all_delivered:
            ctx.fail(
                FailureReason.PROMPT_CONNECTION_ERROR,
                f"no response to prompt {workload.failed_at}/{self.config.test.prompts_per_loop}",
            )
        elif not workload.all_matched:
            ctx.fail(FailureReason.PATTERN_MISMATCH, f"answer did not match '{self.config.test.success_pattern}'")
        elif error_pattern is not None:
            ctx.fail(FailureReason.ERROR_PATTERN_DETECTED, f"found error pattern '{error_pattern}'")
        else:
            ctx.classify(IterationStatus.SUCCESS)

    def _teardown(self, ctx: IterationContext):
        if ctx.status is None:
            # interrupted or crashed before classification
            ctx.status = IterationStatus.FAIL
            if ctx.detail is None:
                ctx.detail = f"aborted while {ctx.state.value}"
        self.watchdog.disarm()
        if ctx.env is not None:
            self.release(ctx)
        if ctx.log_capture is not None and not ctx.log_capture.stop():
            log.warning(f"Log capture for iteration {ctx.index} did not finish")
        ctx.advance(IterationState.TORN_DOWN)
        return ctx.iter_log.finalize(ctx.status.value)


class EphemeralIterationController(IterationController):
    """Container mode: a new container per iteration, removed at teardown."""

    def describe(self, index):
        return f"container: {self.manager.environment_name(index)}"

    def launch(self, ctx):
        try:
            ctx.env = self.manager.create(ctx.index)
        except LaunchFailure as e:
            log.error(f"FAIL: {e}")
            ctx.iter_log.write(f"{e}\n")
            # remove whatever half-started container the name points at
            ctx.env = Environment(name=self.manager.environment_name(ctx.index))
            ctx.fail(FailureReason.LAUNCH_FAILURE, str(e))
            return False
        ctx.log_capture = self.manager.start_log_capture(ctx.env, ctx.iter_log)
        return True

    def collect_logs(self, ctx):
        # the capture thread streams container output continuously
        pass

    def release(self, ctx):
        log.info(f"  Stopping container {ctx.env.name} ...")
        self.manager.destroy(ctx.env)

    def kill(self, env):
        self.manager.destroy(env)


class PersistentIterationController(IterationController):
    """Server mode: one container for the run, the server process is restarted per iteration."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.env = None

    def open(self):
        log.info("")
        log.info(SEPARATOR)
        log.info(f"  Starting persistent container: {self.manager.environment_name()}")
        log.info(SEPARATOR)
        try:
            self.env = self.manager.create_persistent()
        except LaunchFailure:
            self.manager.destroy(Environment(name=self.manager.environment_name(), persistent=True))
            raise
        with open(Path(self.run_dir) / CONTAINER_LOG_NAME, "w", encoding="utf-8") as f:
            f.write(f"container: {self.env.name}\n")
            f.write(f"image: {self.config.docker.image}\n")
            f.write(f"server command: {self.manager.server_command}\n")

    def close(self):
        if self.env is not None:
            log.info("")
            log.info("  Stopping persistent container ...")
            self.manager.destroy(self.env)
            self.env = None

    def describe(self, index):
        return "server restart"

    def launch(self, ctx):
        ctx.env = self.env
        if not self.manager.start_workload(self.env):
            ctx.fail(FailureReason.SERVER_START_FAILURE, "server process failed to start inside the container")
            return False
        return True

    def collect_logs(self, ctx):
        self.manager.capture_workload_log(ctx.env, ctx.iter_log)

    def release(self, ctx):
        try:
            if not self.manager.stop_workload(ctx.env):
                log.warning(f"Server process in {ctx.env.name} is still running after force kill")
        except Exception as e:
            log.warning(f"Stopping server in {ctx.env.name} failed (non-fatal): {e}")

    def kill(self, env):
        # only the workload is killed; the container is shared by later iterations
        self.manager.stop_workload(env, force=True)
