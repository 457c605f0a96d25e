'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''

import time
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Tuple

from nrs.lib.http_lib import HttpClient

log = logging.getLogger(__name__)


class SystemClock:
    """Wall clock used outside of tests; tests substitute a fake with the same two methods."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float):
        time.sleep(seconds)


@dataclass(frozen=True)
class PollPolicy:
    """
    How often and for how long to poll.

    interval: seconds between polls
    ceiling: total seconds before giving up
    request_timeout: upper bound for a single health request
    """

    interval: float = 5
    ceiling: float = 600
    request_timeout: float = 5


class Readiness(Enum):
    READY = "ready"
    ENVIRONMENT_DIED = "environment_died"
    TIMEOUT = "timeout"


class ReadinessProber:
    def __init__(self, http: HttpClient, clock=None):
        self.http = http
        self.clock = clock or SystemClock()

    def await_ready(self, is_alive: Callable[[], bool], url: str, policy: PollPolicy) -> Tuple[Readiness, float]:
        """
        Poll a health endpoint until it answers 200, the environment dies, or
        the ceiling elapses.

        Args:
            is_alive: Callable reporting whether the environment is still up
            url: Full health check URL
            policy: Poll interval, ceiling and per-request timeout

        Returns:
            Tuple of (Readiness, seconds elapsed)
        """
        log.info(f"Waiting for server to become ready (up to {policy.ceiling}s) ...")
        start = self.clock.monotonic()
        while True:
            elapsed = self.clock.monotonic() - start
            if elapsed >= policy.ceiling:
                break
            if not is_alive():
                log.info("Environment died before server became ready.")
                return Readiness.ENVIRONMENT_DIED, elapsed
            result = self.http.get(url, timeout=policy.request_timeout)
            if result.status_code == 200:
                log.info(f"Server is ready! (took ~{int(elapsed)}s)")
                return Readiness.READY, elapsed
            self.clock.sleep(policy.interval)

        log.error(f"FAIL: Server did not become ready within {policy.ceiling}s.")
        return Readiness.TIMEOUT, self.clock.monotonic() - start
