'''
Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved. This notice is intended as a precaution against inadvertent publication and does not imply publication or any waiver of confidentiality.
The year included in the foregoing notice is the year of creation of the work.
All code contained here is Property of Advanced Micro Devices, Inc.
'''

import logging
import threading
from contextlib import contextmanager

log = logging.getLogger(__name__)


class Watchdog:
    """
    Hard per-iteration deadline.

    arm() starts a timer thread. If the ceiling elapses before disarm() the
    kill callback is invoked with the environment, and a marker line is
    written to the iteration log. disarm() after the watchdog fired is a
    no-op apart from waiting for the kill to complete, so the next iteration
    never overlaps with a stale kill.
    """

    def __init__(self, kill, timer_factory=None):
        self._kill = kill
        # threading.Timer signature: (interval, function, args)
        self._timer_factory = timer_factory or threading.Timer
        self._lock = threading.Lock()
        self._timer = None
        self._armed = False
        self._fired = False

    @property
    def fired(self):
        return self._fired

    @property
    def armed(self):
        return self._armed

    def arm(self, env, ceiling, iter_log=None):
        with self._lock:
            if self._armed:
                raise RuntimeError("Watchdog is already armed")
            self._armed = True
            self._fired = False
            self._timer = self._timer_factory(ceiling, self._expire, args=(env, ceiling, iter_log))
            self._timer.daemon = True
            self._timer.name = f"watchdog-{env.name}"
            self._timer.start()
        log.debug(f"Watchdog armed for {env.name} ({ceiling}s)")

    def _expire(self, env, ceiling, iter_log):
        with self._lock:
            if not self._armed:
                return
            self._armed = False
            self._fired = True
        log.warning(f"[WATCHDOG] Timeout reached ({ceiling}s). Killing {env.name}")
        if iter_log is not None:
            iter_log.write(f"[WATCHDOG] Timeout reached ({ceiling}s). Killing {env.name}\n")
        try:
            self._kill(env)
        except Exception as e:
            log.warning(f"Watchdog kill of {env.name} failed: {e}")

    def disarm(self):
        """Cancel the timer. Returns True if it was cancelled before firing."""
        with self._lock:
            timer = self._timer
            cancelled = self._armed
            self._armed = False
            self._timer = None
        if timer is None:
            return False
        timer.cancel()
        if timer is not threading.current_thread():
            timer.join()
        return cancelled

    @contextmanager
    def guard(self, env, ceiling, iter_log=None):
        self.arm(env, ceiling, iter_log)
        try:
            yield self
        finally:
            self.disarm()
