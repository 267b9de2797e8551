"""작업자 원장 테스트"""

import unittest
import datetime
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.enums import ScanAction
from core.event_log import EventLog
from core.ledger import WorkerLedger, reconstruct
from core.models import ScanEvent

T0 = datetime.datetime(2024, 5, 6, 9, 0)


def at(minutes: float) -> datetime.datetime:
    return T0 + datetime.timedelta(minutes=minutes)


class TestReconstruct(unittest.TestCase):
    """로그 재생 테스트"""

    def test_matched_pairs_accumulate_minutes(self):
        events = [
            ScanEvent("A1", at(0), ScanAction.CLOCK_IN),
            ScanEvent("A1", at(30), ScanAction.CLOCK_OUT),
            ScanEvent("A1", at(60), ScanAction.CLOCK_IN),
            ScanEvent("A1", at(75), ScanAction.CLOCK_OUT),
        ]
        workers = reconstruct(events)
        self.assertAlmostEqual(workers["A1"].total_minutes, 45.0)
        self.assertFalse(workers["A1"].is_active)

    def test_unmatched_clock_out_is_ignored(self):
        workers = reconstruct([ScanEvent("A1", at(10), ScanAction.CLOCK_OUT)])
        self.assertNotIn("A1", workers)

        workers = reconstruct([
            ScanEvent("B2", at(0), ScanAction.CLOCK_IN),
            ScanEvent("B2", at(10), ScanAction.CLOCK_OUT),
            ScanEvent("B2", at(20), ScanAction.CLOCK_OUT),
        ])
        self.assertAlmostEqual(workers["B2"].total_minutes, 10.0)

    def test_open_clock_in_stays_active(self):
        workers = reconstruct([ScanEvent("A1", at(5), ScanAction.CLOCK_IN)])
        self.assertTrue(workers["A1"].is_active)
        self.assertEqual(workers["A1"].clock_in_time, at(5))

    def test_replay_sorts_by_timestamp(self):
        events = [
            ScanEvent("A1", at(20), ScanAction.CLOCK_OUT),
            ScanEvent("A1", at(0), ScanAction.CLOCK_IN),
        ]
        self.assertAlmostEqual(reconstruct(events)["A1"].total_minutes, 20.0)

    def test_replay_is_deterministic(self):
        events = [
            ScanEvent("A1", at(0), ScanAction.CLOCK_IN),
            ScanEvent("B2", at(3), ScanAction.CLOCK_IN),
            ScanEvent("A1", at(17), ScanAction.CLOCK_OUT),
        ]
        first = reconstruct(events)
        second = reconstruct(events)
        self.assertEqual(first, second)


class TestWorkerLedger(unittest.TestCase):
    """WorkerLedger 클래스 테스트"""

    def setUp(self):
        self.log = EventLog()
        self.ledger = WorkerLedger(self.log)

    def test_clock_in_out_writes_log(self):
        self.assertTrue(self.ledger.clock_in("A1", at(0)))
        self.assertEqual(self.ledger.headcount, 1)
        self.assertTrue(self.ledger.clock_out("A1", at(12)))
        self.assertEqual(self.ledger.headcount, 0)
        self.assertAlmostEqual(self.ledger.get("A1").total_minutes, 12.0)
        self.assertEqual([e.action for e in self.log.scan_events()],
                         [ScanAction.CLOCK_IN, ScanAction.CLOCK_OUT])

    def test_double_clock_in_is_noop(self):
        self.ledger.clock_in("A1", at(0))
        self.assertFalse(self.ledger.clock_in("A1", at(1)))
        self.assertEqual(self.log.scan_count, 1)

    def test_exists_differs_from_active(self):
        self.ledger.clock_in("A1", at(0))
        self.ledger.clock_out("A1", at(1))
        self.assertTrue(self.ledger.exists("A1"))
        self.assertFalse(self.ledger.is_active("A1"))
        self.assertFalse(self.ledger.exists("B2"))

    def test_clock_out_unknown_worker(self):
        self.assertFalse(self.ledger.clock_out("ghost", at(0)))
        self.assertEqual(self.log.scan_count, 0)

    def test_force_clock_out_all(self):
        self.ledger.clock_in("B2", at(0))
        self.ledger.clock_in("A1", at(0))
        self.assertEqual(self.ledger.force_clock_out_all(at(10)), ["A1", "B2"])
        self.assertEqual(self.ledger.headcount, 0)
        self.assertEqual(self.ledger.force_clock_out_all(at(11)), [])

    def test_rebuild_matches_live_state(self):
        self.ledger.clock_in("A1", at(0))
        self.ledger.clock_in("B2", at(5))
        self.ledger.clock_out("A1", at(25))
        live = self.ledger.minutes_by_worker()
        self.ledger.rebuild_from_log()
        self.assertEqual(self.ledger.minutes_by_worker(), live)
        self.assertEqual(self.ledger.active_ids(), ["B2"])

    def test_placeholder_is_not_logged(self):
        self.ledger.add_placeholder("A1", at(0))
        self.assertTrue(self.ledger.is_active("A1"))
        self.assertEqual(self.log.scan_count, 0)


if __name__ == '__main__':
    unittest.main()
