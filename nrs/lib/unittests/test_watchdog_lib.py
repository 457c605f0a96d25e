# nrs/lib/unittests/test_watchdog_lib.py
import threading
import unittest
from unittest.mock import MagicMock

from nrs.lib.environment_lib import Environment
from nrs.lib.watchdog_lib import Watchdog


class TestWatchdog(unittest.TestCase):
    def setUp(self):
        self.killed = threading.Event()
        self.kill = MagicMock(side_effect=lambda env: self.killed.set())
        self.watchdog = Watchdog(self.kill)
        self.env = Environment(name='sglang_stress_iter1_1')

    def tearDown(self):
        self.watchdog.disarm()

    def test_fires_after_ceiling(self):
        iter_log = MagicMock()
        self.watchdog.arm(self.env, 0.05, iter_log)
        self.assertTrue(self.killed.wait(2))
        self.assertFalse(self.watchdog.disarm())
        self.assertTrue(self.watchdog.fired)
        self.kill.assert_called_once_with(self.env)
        iter_log.write.assert_called_once_with('[WATCHDOG] Timeout reached (0.05s). Killing sglang_stress_iter1_1\n')

    def test_disarm_before_ceiling(self):
        self.watchdog.arm(self.env, 5)
        self.assertTrue(self.watchdog.armed)
        self.assertTrue(self.watchdog.disarm())
        self.assertFalse(self.watchdog.armed)
        self.assertFalse(self.watchdog.fired)
        self.kill.assert_not_called()

    def test_disarm_is_idempotent(self):
        self.assertFalse(self.watchdog.disarm())
        self.watchdog.arm(self.env, 5)
        self.assertTrue(self.watchdog.disarm())
        self.assertFalse(self.watchdog.disarm())

    def test_double_arm_rejected(self):
        self.watchdog.arm(self.env, 5)
        with self.assertRaises(RuntimeError):
            self.watchdog.arm(self.env, 5)

    def test_rearm_resets_fired(self):
        self.watchdog.arm(self.env, 0.01)
        self.assertTrue(self.killed.wait(2))
        self.watchdog.disarm()
        self.watchdog.arm(self.env, 5)
        self.assertFalse(self.watchdog.fired)

    def test_kill_error_is_contained(self):
        called = threading.Event()

        def kill(env):
            called.set()
            raise RuntimeError('already gone')

        watchdog = Watchdog(kill)
        watchdog.arm(self.env, 0.01)
        self.assertTrue(called.wait(2))
        watchdog.disarm()
        self.assertTrue(watchdog.fired)
        self.assertFalse(watchdog.armed)

    def test_timer_factory(self):
        timers = []

        def timer_factory(interval, function, args=()):
            timer = MagicMock()
            timer.interval = interval
            timer.fire = lambda: function(*args)
            timers.append(timer)
            return timer

        watchdog = Watchdog(self.kill, timer_factory=timer_factory)
        watchdog.arm(self.env, 900)
        self.assertEqual(timers[0].interval, 900)
        timers[0].start.assert_called_once_with()
        timers[0].fire()
        self.assertTrue(watchdog.fired)
        self.kill.assert_called_once_with(self.env)
        self.assertFalse(watchdog.disarm())
        timers[0].cancel.assert_called_once_with()

    def test_guard(self):
        with self.watchdog.guard(self.env, 5) as wd:
            self.assertTrue(wd.armed)
        self.assertFalse(self.watchdog.armed)
        self.kill.assert_not_called()


if __name__ == '__main__':
    unittest.main()
