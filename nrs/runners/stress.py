"""
Stress test runner: drives the configured number of iterations and aggregates
their outcomes into a RunSummary.

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

import logging

from tabulate import tabulate

from nrs.lib.artifact_lib import SUMMARY_LOG_NAME, attach_summary_log, create_run_dir, detach_summary_log
from nrs.lib.environment_lib import EnvironmentManager
from nrs.lib.errors import LaunchFailure
from nrs.lib.probe_lib import ReadinessProber, SystemClock
from nrs.lib.workload_lib import WorkloadDriver
from nrs.runners._base_runner import BaseRunner, RunSummary
from nrs.runners.iteration import EphemeralIterationController, PersistentIterationController, SEPARATOR

log = logging.getLogger(__name__)

BANNER = "═" * 60


class StressTestRunner(BaseRunner):
    """
    Runs iterations strictly one after another.

    Iteration i+1 never starts before iteration i is torn down, and every
    iteration runs regardless of how earlier ones ended.
    """

    def __init__(self, config, adapter, provider, http, prompts, clock=None, manager=None, timer_factory=None):
        super().__init__(config)
        self.adapter = adapter
        self.provider = provider
        self.http = http
        self.prompts = prompts
        self.clock = clock or SystemClock()
        self.timer_factory = timer_factory
        self.manager = manager or EnvironmentManager(provider, config, adapter, clock=self.clock)
        self.run_dir = None
        self.controller = None
        self._log_handler = None

    def build_controller(self):
        controller_cls = PersistentIterationController if self.config.persistent else EphemeralIterationController
        return controller_cls(
            self.config,
            self.adapter,
            self.manager,
            ReadinessProber(self.http, clock=self.clock),
            WorkloadDriver(self.http, self.adapter),
            self.prompts,
            self.run_dir,
            clock=self.clock,
            timer_factory=self.timer_factory,
        )

    def setup(self) -> bool:
        self.run_dir = create_run_dir(self.config.workspace.base_dir, self.config.framework, self.config.docker.image)
        self._log_handler = attach_summary_log(self.run_dir)
        self._log_banner()

        self.controller = self.build_controller()
        try:
            self.controller.open()
        except LaunchFailure as e:
            log.error(f"FATAL: {e}")
            self.controller.close()
            return False
        return True

    def run(self) -> RunSummary:
        summary = RunSummary(run_dir=self.run_dir)
        for index in range(1, self.config.test.num_loops + 1):
            result = self.controller.run_iteration(index)
            summary.record(result)
            log.info(f"  Running totals: {summary.success_count} passed, {summary.fail_count} failed")
        self._log_summary(summary)
        return summary

    def teardown(self) -> bool:
        try:
            if self.controller is not None:
                self.controller.close()
        finally:
            if self._log_handler is not None:
                detach_summary_log(self._log_handler)
                self._log_handler = None
        return True

    def execute(self) -> RunSummary:
        summary = super().execute()
        if summary.run_dir is None:
            summary.run_dir = self.run_dir
        if not self._setup_complete and self._log_handler is not None:
            # setup bailed out before teardown became responsible for the handler
            detach_summary_log(self._log_handler)
            self._log_handler = None
        return summary

    def _log_banner(self):
        config = self.config
        log.info(BANNER)
        log.info(f"  {config.framework.upper()} STRESS TEST")
        log.info(BANNER)
        log.info(f"  Framework        : {config.framework}")
        log.info(f"  Mode             : {config.mode.value}")
        log.info(f"  Image            : {config.docker.image}")
        log.info(f"  Model            : {config.server.model_path}")
        log.info(f"  Port             : {config.server.port}")
        log.info(f"  Loops            : {config.test.num_loops}")
        log.info(f"  Prompts per loop : {config.test.prompts_per_loop}")
        log.info(f"  Startup timeout  : {config.server.startup_timeout}s")
        log.info(f"  Container timeout: {config.timeouts.container}s")
        log.info(f"  Prompt timeout   : {config.timeouts.prompt}s")
        if config.test.success_pattern:
            log.info(f"  Success pattern  : {config.test.success_pattern}")
        log.info(f"  Server command   : {self.manager.server_command}")
        log.info(f"  Results          : {self.run_dir}")
        log.info(BANNER)

    def _log_summary(self, summary):
        log.info("")
        log.info(BANNER)
        log.info(f"  {self.config.framework.upper()} STRESS TEST SUMMARY")
        log.info(BANNER)
        log.info(f"  Total iterations : {summary.total}")
        log.info(f"  Passed           : {summary.success_count}")
        log.info(f"  Failed           : {summary.fail_count}")
        log.info(f"  Pass rate        : {summary.pass_rate:.1f}%")
        if summary.iterations:
            log.info(SEPARATOR)
            for line in self.results_table(summary).splitlines():
                log.info(f"  {line}")
            log.info(SEPARATOR)
        log.info(f"  Logs             : {self.run_dir}")
        log.info(f"  Summary log      : {self.run_dir / SUMMARY_LOG_NAME}")
        log.info(BANNER)

    @staticmethod
    def results_table(summary):
        headers = ["Iteration", "Status", "Duration (s)", "Reason", "Log"]
        rows = []
        for result in summary.iterations:
            reason = ""
            if result.reason is not None:
                reason = result.reason.value
            elif not result.succeeded:
                reason = "aborted"
            if result.detail:
                reason = f"{reason}: {result.detail}"
            log_name = result.log_path.name if result.log_path is not None else ""
            rows.append([result.index, result.status.value, int(result.duration_seconds), reason, log_name])
        return tabulate(rows, headers=headers, tablefmt="github")
