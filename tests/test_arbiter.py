"""원격 명령 중재기 테스트"""

import unittest
import datetime
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.arbiter import parse_command, parse_hms, FIRST_COMMAND_MAX_AGE_SEC
from core.enums import PauseKind, ScanAction
from utils.exceptions import CommandParseError
from fakes import make_controller


def stamp(clock, seconds_ago: float) -> str:
    return (clock.now - datetime.timedelta(seconds=seconds_ago)).isoformat()


class TestCommandParsing(unittest.TestCase):

    def test_parse_command_with_args(self):
        command = parse_command("set_time|1:30:00")
        self.assertEqual(command.action, "SET_TIME")
        self.assertEqual(command.args, ("1:30:00",))
        self.assertIsNone(command.arg(1))

    def test_parse_command_drops_empty_tokens(self):
        self.assertEqual(parse_command("CLOCK_OUT||A1|").args, ("A1",))

    def test_parse_command_rejects_empty(self):
        for text in ("", "  ", "|", None):
            with self.assertRaises(CommandParseError):
                parse_command(text)

    def test_parse_hms(self):
        self.assertEqual(parse_hms("1:02:03"), (1, 2, 3))
        for text in ("1:02", "a:b:c", "1:-2:0", None):
            with self.assertRaises(CommandParseError):
                parse_hms(text)


class TestSnapshotHandling(unittest.TestCase):
    """스냅샷 처리 순서 테스트"""

    def setUp(self):
        self.controller, self.clock, self.monotonic = make_controller()
        self.session = self.controller.session
        self.audit = self.controller.audit_logger

    def test_adopts_remote_session_when_empty(self):
        changed = self.controller.on_remote_snapshot({
            'secondsRemaining': 1200, 'companyName': 'ACME', 'projectName': 'Frame',
            'activeWorkers': ['A1', 'B2'],
        })
        self.assertTrue(changed)
        self.assertEqual(self.session.countdown.countdown_seconds, 1200)
        self.assertEqual(self.session.countdown.original_seconds, 1200)
        self.assertTrue(self.session.is_counting_down)
        self.assertEqual(self.session.pause.state.kind, PauseKind.MANUAL)
        self.assertEqual(self.session.headcount, 2)
        self.assertEqual(self.session.info.project, 'Frame')
        self.assertIn('REMOTE_RESTORE', self.audit.types())
        # 복구된 세션은 일반 재개로 이어서 진행
        self.controller.resume_generic()
        self.assertTrue(self.session.pause.state.is_running)

    def test_never_adopts_over_local_session(self):
        self.controller.start_session(0, 10, 0)
        self.controller.on_remote_snapshot({'secondsRemaining': 99999, 'projectName': 'Other'})
        self.assertEqual(self.session.countdown.countdown_seconds, 600)
        self.assertEqual(self.session.info.project, '')
        self.assertNotIn('REMOTE_RESTORE', self.audit.types())

    def test_adoption_rearmed_after_reset(self):
        self.controller.start_session(0, 10, 0)
        self.controller.reset_data()
        self.controller.on_remote_snapshot({'secondsRemaining': 300,
                                            'stateVersion': self.controller.state_version})
        self.assertEqual(self.session.countdown.countdown_seconds, 300)

    def test_snapshot_read_before_save_to_queue_is_not_adopted(self):
        self.session.info.company = 'ACME'
        self.session.info.project = 'Frame'
        self.controller.start_session(0, 10, 0)
        self.controller.scan('A1')
        before = self.controller.remote_payload()
        self.controller.save_to_queue()

        self.assertFalse(self.controller.on_remote_snapshot(before))
        self.assertTrue(self.session.is_empty())
        self.assertFalse(self.session.is_counting_down)
        self.assertEqual(self.session.scan_count, 0)
        self.assertEqual(self.session.headcount, 0)
        self.assertEqual(self.session.info.project, '')
        self.assertNotIn('REMOTE_RESTORE', self.audit.types())

    def test_snapshot_carrying_current_version_is_adopted(self):
        self.controller.start_session(0, 10, 0)
        self.controller.reset_data()
        pushed = self.controller.remote.pushes[-1][1]
        self.assertEqual(pushed['stateVersion'], 1)
        self.controller.on_remote_snapshot(dict(pushed, secondsRemaining=450))
        self.assertEqual(self.session.countdown.countdown_seconds, 450)

    def test_stale_snapshot_still_delivers_new_command(self):
        self.controller.start_session(0, 10, 0)
        self.controller.reset_data()
        self.controller.on_remote_snapshot({'secondsRemaining': 600, 'stateVersion': 0,
                                            'remoteCommand': 'SET_TIME|0:02:00',
                                            'commandTimestamp': stamp(self.clock, 1)})
        self.assertEqual(self.session.countdown.countdown_seconds, 120)

    def test_metadata_syncs_only_while_idle(self):
        self.controller.on_remote_snapshot({'companyName': 'ACME', 'projectName': 'Frame', 'projectSize': 'L'})
        self.assertEqual(self.session.info.size, 'L')
        self.controller.start_session(0, 10, 0)
        self.controller.on_remote_snapshot({'projectName': 'Changed'})
        self.assertEqual(self.session.info.project, 'Frame')

    def test_remote_logs_adopted_only_when_local_empty(self):
        remote_scans = [
            {'cardID': 'A1', 'action': 'Clocked In', 'timestamp': stamp(self.clock, 600)},
            {'cardID': 'A1', 'action': 'Clocked Out', 'timestamp': stamp(self.clock, 300)},
            {'cardID': 'B2', 'action': 'Clocked In', 'timestamp': stamp(self.clock, 200)},
        ]
        self.controller.on_remote_snapshot({'scanHistory': remote_scans,
                                            'projectEvents': [{'type': 'Pause', 'timestamp': stamp(self.clock, 100)}]})
        self.assertEqual(self.session.scan_count, 3)
        self.assertEqual(self.session.pause_count, 1)
        self.assertAlmostEqual(self.session.ledger.get('A1').total_minutes, 5.0)
        self.assertEqual(self.session.ledger.active_ids(), ['B2'])

        more = remote_scans + [{'cardID': 'C3', 'action': 'Clocked In', 'timestamp': stamp(self.clock, 50)}]
        self.controller.on_remote_snapshot({'scanHistory': more})
        self.assertEqual(self.session.scan_count, 3)

    def test_original_seconds_synced_when_countdown_zero(self):
        self.controller.on_remote_snapshot({'projectName': 'Frame', 'originalSeconds': 3600})
        self.assertEqual(self.session.countdown.original_seconds, 3600)

    def test_non_dict_snapshot_ignored(self):
        self.assertFalse(self.controller.on_remote_snapshot(None))
        self.assertFalse(self.controller.on_remote_snapshot(["PAUSE"]))


class TestCommandArbitration(unittest.TestCase):
    """타임스탬프 기반 명령 적용 테스트"""

    def setUp(self):
        self.controller, self.clock, self.monotonic = make_controller()
        self.session = self.controller.session
        self.audit = self.controller.audit_logger
        self.controller.start_session(1, 0, 0)
        self.controller.scan('A1')

    def send(self, command, seconds_ago=0.0):
        return self.controller.on_remote_snapshot({'remoteCommand': command,
                                                   'commandTimestamp': stamp(self.clock, seconds_ago)})

    def test_same_command_applied_once(self):
        data = {'remoteCommand': 'PAUSE', 'commandTimestamp': stamp(self.clock, 5)}
        self.controller.on_remote_snapshot(data)
        self.assertTrue(self.session.pause.is_paused)
        self.controller.resume_generic()
        self.controller.on_remote_snapshot(data)
        self.assertFalse(self.session.pause.is_paused)
        self.assertEqual(self.audit.types().count('REMOTE_COMMAND'), 1)

    def test_older_command_ignored(self):
        self.send('PAUSE', seconds_ago=5)
        self.controller.resume_generic()
        self.send('PAUSE', seconds_ago=10)
        self.assertFalse(self.session.pause.is_paused)

    def test_stale_first_command_is_recorded_not_applied(self):
        self.send('PAUSE', seconds_ago=FIRST_COMMAND_MAX_AGE_SEC + 60)
        self.assertFalse(self.session.pause.is_paused)
        self.assertIsNotNone(self.controller.arbiter.last_command_timestamp)
        self.send('PAUSE', seconds_ago=FIRST_COMMAND_MAX_AGE_SEC + 30)
        self.assertTrue(self.session.pause.is_paused)

    def test_malformed_command_is_ignored(self):
        self.send('SET_TIME|1:30', seconds_ago=3)
        self.assertEqual(self.session.countdown.countdown_seconds, 3600)
        self.assertIn('REMOTE_COMMAND_IGNORED', self.audit.types())
        self.send('DANCE', seconds_ago=2)
        self.assertEqual(self.audit.types().count('REMOTE_COMMAND_IGNORED'), 2)
        # 잘못된 명령 뒤에도 새 명령은 정상 처리
        self.send('SET_TIME|0:20:00', seconds_ago=1)
        self.assertEqual(self.session.countdown.countdown_seconds, 1200)

    def test_toggle_pauses_and_resumes(self):
        self.send('TOGGLE', seconds_ago=3)
        self.assertTrue(self.session.pause.is_paused)
        self.send('TOGGLE', seconds_ago=2)
        self.assertFalse(self.session.pause.is_paused)

    def test_qc_crew_command_bypasses_code(self):
        self.send('QC_CREW', seconds_ago=3)
        self.assertEqual(self.session.pause.state.kind, PauseKind.QC_CREW)
        self.assertFalse(self.session.bonus.eligible)
        self.send('QC_CREW', seconds_ago=2)
        self.assertTrue(self.session.pause.state.is_running)

    def test_technician_command_carries_line(self):
        self.send('TECHNICIAN|Line 3', seconds_ago=1)
        self.assertEqual(self.session.pause.state.line_name, 'Line 3')

    def test_clock_out_command(self):
        self.clock.advance(60)
        self.send('CLOCK_OUT|A1', seconds_ago=1)
        self.assertFalse(self.session.ledger.is_active('A1'))
        last = self.session.log.last_scan_for('A1')
        self.assertEqual(last.action, ScanAction.CLOCK_OUT)

    def test_edit_minutes_command(self):
        self.send('EDIT_MINUTES|A1|42.5', seconds_ago=2)
        self.assertEqual(self.session.ledger.get('A1').total_minutes, 42.5)
        self.assertFalse(self.session.bonus.eligible)
        self.send('EDIT_MINUTES|A1|lots', seconds_ago=1)
        self.assertEqual(self.session.ledger.get('A1').total_minutes, 42.5)

    def test_reset_with_time_restarts(self):
        self.send('RESET|0:05:00', seconds_ago=1)
        self.assertEqual(self.session.countdown.countdown_seconds, 300)
        self.assertTrue(self.session.is_counting_down)

    def test_finish_command(self):
        self.send('FINISH', seconds_ago=1)
        self.assertTrue(self.session.is_finished)
        self.assertEqual(self.session.headcount, 0)


if __name__ == '__main__':
    unittest.main()
