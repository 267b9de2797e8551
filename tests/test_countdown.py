"""카운트다운 엔진 테스트"""

import unittest
import datetime
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.bonus import BonusTracker
from core.countdown import CountdownEngine, format_countdown, round_half_up
from core.enums import TickEvent
from core.event_log import EventLog
from core.ledger import WorkerLedger
from core.models import TimeWindow
from core.pause import PauseStateMachine, Schedule

T0 = datetime.datetime(2024, 5, 6, 9, 0)


class TestFormatting(unittest.TestCase):

    def test_format_positive_and_negative(self):
        self.assertEqual(format_countdown(3661), "01:01:01")
        self.assertEqual(format_countdown(0), "00:00:00")
        self.assertEqual(format_countdown(-1), "-00:00:01")
        self.assertEqual(format_countdown(-3725), "-01:02:05")

    def test_round_half_up(self):
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(0.5), 1)
        self.assertEqual(round_half_up(0.49), 0)


class TestCountdownEngine(unittest.TestCase):

    def setUp(self):
        self.log = EventLog()
        self.ledger = WorkerLedger(self.log)
        self.machine = PauseStateMachine(self.log, BonusTracker(), Schedule())
        self.engine = CountdownEngine(self.machine, self.ledger)
        self.now = T0

    def tick(self, seconds=1.0):
        self.now += datetime.timedelta(seconds=seconds)
        return self.engine.tick(self.now)

    def test_drains_by_headcount(self):
        self.engine.start(100, self.now)
        self.ledger.clock_in("A1", self.now)
        self.ledger.clock_in("B2", self.now)
        self.ledger.clock_in("C3", self.now)
        result = self.tick()
        self.assertEqual(result.drained, 3)
        self.assertEqual(self.engine.countdown_seconds, 97)
        self.assertEqual(result.timer_text, "00:01:37")

    def test_no_drain_without_workers(self):
        self.engine.start(100, self.now)
        self.tick(5)
        self.assertEqual(self.engine.countdown_seconds, 100)

    def test_no_drain_while_paused(self):
        self.engine.start(100, self.now)
        self.ledger.clock_in("A1", self.now)
        self.machine.pause("340340", self.now)
        self.tick(10)
        self.machine.resume()
        # 정지 기간은 다음 tick 에서 소급 차감되지 않음
        self.tick(1)
        self.assertEqual(self.engine.countdown_seconds, 99)

    def test_minimum_one_second_per_tick(self):
        self.engine.start(100, self.now)
        self.ledger.clock_in("A1", self.now)
        self.tick(0.2)
        self.assertEqual(self.engine.countdown_seconds, 99)

    def test_drain_is_monotonic(self):
        self.engine.start(50, self.now)
        self.ledger.clock_in("A1", self.now)
        previous = self.engine.countdown_seconds
        for step in (1, 0.5, 2, 1.2, 3):
            self.tick(step)
            self.assertLess(self.engine.countdown_seconds, previous)
            previous = self.engine.countdown_seconds

    def test_overrun_buzzer_fires_once(self):
        self.engine.start(5, self.now)
        self.ledger.clock_in("A1", self.now)
        exhausted = 0
        for _ in range(6):
            result = self.tick()
            exhausted += result.events.count(TickEvent.BUDGET_EXHAUSTED)
        self.assertEqual(self.engine.countdown_seconds, -1)
        self.assertEqual(exhausted, 1)
        self.assertTrue(self.engine.has_played_buzzer)
        self.assertEqual(self.engine.timer_text, "-00:00:01")

    def test_auto_lunch_stops_drain(self):
        self.machine.schedule = Schedule(lunch_windows=[TimeWindow.parse(["09:00", "09:30"])])
        self.engine.start(100, self.now)
        self.ledger.clock_in("A1", self.now)
        result = self.tick()
        self.assertIn(TickEvent.AUTO_LUNCH_STARTED, result.events)
        self.assertEqual(self.engine.countdown_seconds, 100)


if __name__ == '__main__':
    unittest.main()
