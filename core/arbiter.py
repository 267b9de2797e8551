"""원격 명령 중재기

공유 원격 문서 스냅샷을 받을 때마다
  1) 로컬이 비어 있으면 원격 세션을 일시정지 상태로 복구
  2) 진행 중인 작업이 없을 때 프로젝트 정보 동기화
  3) 로컬 로그가 비어 있으면 원격 로그를 통째로 채택하고 원장 재구성
  4) 마지막으로 적용한 명령보다 새로운 명령만 적용
  5) 로컬 카운트다운이 0 이면 원격 원래 예산 채택
순서로 처리합니다.
"""

import datetime
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

from core.enums import PauseKind
from core.models import ScanEvent, ProjectEvent, ProjectInfo, parse_wire_time
from utils.exceptions import CommandParseError

if TYPE_CHECKING:
    from core.session import SessionController

log = logging.getLogger(__name__)

# 처음 보는 명령은 이 시간 안에 발행된 것만 실행 (재시작 시 오래된 명령 재실행 방지)
FIRST_COMMAND_MAX_AGE_SEC = 60


@dataclass(frozen=True)
class RemoteCommand:
    action: str
    args: Tuple[str, ...] = ()

    def arg(self, index: int) -> Optional[str]:
        return self.args[index] if index < len(self.args) else None


def parse_command(text: str) -> RemoteCommand:
    """'ACTION' 또는 'ACTION|ARG1|ARG2' 형식을 해석합니다. 빈 토큰은 버립니다."""
    if not isinstance(text, str):
        raise CommandParseError(repr(text), "명령이 문자열이 아닙니다")
    parts = [p.strip() for p in text.split('|') if p.strip()]
    if not parts:
        raise CommandParseError(text, "빈 명령")
    return RemoteCommand(action=parts[0].upper(), args=tuple(parts[1:]))


def parse_hms(text: Optional[str]) -> Tuple[int, int, int]:
    """'H:M:S' 를 (h, m, s) 로 변환합니다."""
    if not text:
        raise CommandParseError(str(text), "시간 인자가 없습니다")
    pieces = text.split(':')
    if len(pieces) != 3:
        raise CommandParseError(text, "시간은 H:M:S 형식이어야 합니다")
    try:
        h, m, s = (int(p) for p in pieces)
    except ValueError:
        raise CommandParseError(text, "시간 값이 숫자가 아닙니다") from None
    if h < 0 or m < 0 or s < 0:
        raise CommandParseError(text, "시간 값은 음수일 수 없습니다")
    return h, m, s


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = int(value)
    return value if value > 0 else None


class RemoteCommandArbiter:

    def __init__(self, controller: "SessionController"):
        self._controller = controller
        self.last_command_timestamp: Optional[datetime.datetime] = None
        self._handlers: Dict[str, Callable[[RemoteCommand], None]] = {
            'PRELOAD': self._cmd_preload,
            'TOGGLE': self._cmd_toggle,
            'PAUSE': self._cmd_pause,
            'START': self._cmd_start,
            'LUNCH': self._cmd_lunch,
            'SAVE': self._cmd_save,
            'RESET': self._cmd_reset,
            'SET_TIME': self._cmd_set_time,
            'FINISH': self._cmd_finish,
            'CLOCK_OUT': self._cmd_clock_out,
            'EDIT_MINUTES': self._cmd_edit_minutes,
            'CANCEL_BONUS': self._cmd_cancel_bonus,
            'QC_CREW': self._cmd_qc_crew,
            'QC_COMPONENT': self._cmd_qc_component,
            'TECHNICIAN': self._cmd_technician,
        }

    @property
    def _session(self):
        return self._controller.session

    # ---------------------------------------------------------------
    # 스냅샷 처리
    # ---------------------------------------------------------------

    def on_snapshot(self, data: Dict[str, Any], now: datetime.datetime) -> bool:
        """스냅샷 하나를 처리합니다. 로컬 상태가 바뀌었으면 True."""
        if not isinstance(data, dict):
            return False
        changed = False
        if self.is_stale(data):
            log.info("로컬 초기화 이전의 원격 스냅샷이라 복구/병합을 건너뜁니다 (원격 %s, 로컬 %s)",
                     data.get('stateVersion'), self._controller.state_version)
        else:
            changed = self.adopt_if_empty(data, now)
            changed = self._sync_metadata(data) or changed
            changed = self.merge_logs(data) or changed
            changed = self._sync_original_seconds(data) or changed
        changed = self.arbitrate_command(data, now) or changed
        return changed

    def is_stale(self, data: Dict[str, Any]) -> bool:
        """스냅샷의 stateVersion 이 로컬보다 낮으면 마지막 초기화 전에 읽힌 문서입니다."""
        version = data.get('stateVersion')
        if not isinstance(version, int) or isinstance(version, bool):
            version = 0
        return version < self._controller.state_version

    def adopt_if_empty(self, data: Dict[str, Any], now: datetime.datetime) -> bool:
        """로컬 세션이 완전히 비어 있을 때만 원격 세션을 복구합니다. 항상 일시정지 상태로 복구합니다."""
        if not self._session.is_empty():
            return False
        seconds = _positive_int(data.get('secondsRemaining'))
        if seconds is None:
            return False

        session = self._session
        session.info = ProjectInfo.from_dict(data)
        session.countdown.countdown_seconds = seconds
        # 실제 원래 예산은 알 수 없으므로 남은 시간으로 대신함
        session.countdown.original_seconds = seconds
        session.countdown.mark(now)
        session.is_counting_down = True
        session.is_finished = False
        session.pause.force_paused()
        active = data.get('activeWorkers') or []
        if isinstance(active, list):
            for worker_id in active:
                if isinstance(worker_id, str) and worker_id:
                    session.ledger.add_placeholder(worker_id, now)
        log.warning("로컬 상태가 비어 있어 원격 세션을 복구했습니다 (남은 %s초, 작업자 %s명)",
                    seconds, session.ledger.headcount)
        self._controller.audit('REMOTE_RESTORE', {'seconds': seconds, 'active_workers': session.ledger.active_ids()})
        return True

    def _sync_metadata(self, data: Dict[str, Any]) -> bool:
        if self._session.is_counting_down:
            return False
        info = self._session.info
        changed = False
        for key, attr in (('companyName', 'company'), ('projectName', 'project'),
                          ('lineLeaderName', 'leader'), ('category', 'category'), ('projectSize', 'size')):
            value = data.get(key)
            if isinstance(value, str) and getattr(info, attr) != value:
                setattr(info, attr, value)
                changed = True
        return changed

    def merge_logs(self, data: Dict[str, Any]) -> bool:
        """로컬 로그가 비어 있을 때만 원격 로그를 채택합니다. 비어 있지 않은 두 로그는 절대 합치지 않습니다."""
        session = self._session
        changed = False

        scans = _parse_list(data.get('scanHistory'), ScanEvent.from_dict)
        if scans and not session.log.has_scans:
            session.log.replace_scans(scans)
            session.ledger.rebuild_from_log()
            changed = True
            log.info("원격 스캔 이력 %d건을 채택하고 작업자 원장을 재구성했습니다", len(scans))

        events = _parse_list(data.get('projectEvents'), ProjectEvent.from_dict)
        if events and not session.log.has_project_events:
            session.log.replace_project_events(events)
            changed = True
            log.info("원격 프로젝트 이벤트 %d건을 채택했습니다", len(events))
        return changed

    def _sync_original_seconds(self, data: Dict[str, Any]) -> bool:
        original = _positive_int(data.get('originalSeconds'))
        countdown = self._session.countdown
        if original is None or countdown.countdown_seconds != 0 or countdown.original_seconds == original:
            return False
        countdown.original_seconds = original
        return True

    # ---------------------------------------------------------------
    # 명령 중재
    # ---------------------------------------------------------------

    def arbitrate_command(self, data: Dict[str, Any], now: datetime.datetime) -> bool:
        """타임스탬프가 마지막 적용 명령보다 새로울 때만 명령을 적용합니다."""
        text = data.get('remoteCommand')
        stamp = parse_wire_time(data.get('commandTimestamp'))
        if not text or stamp is None:
            return False

        if self.last_command_timestamp is None:
            fresh = abs((now - stamp).total_seconds()) < FIRST_COMMAND_MAX_AGE_SEC
            self.last_command_timestamp = stamp
            if not fresh:
                log.info("오래된 원격 명령은 실행하지 않고 기록만 합니다: %s (%s)", text, stamp)
                return False
        elif stamp > self.last_command_timestamp:
            self.last_command_timestamp = stamp
        else:
            return False

        return self.apply(text)

    def apply(self, text: str) -> bool:
        """명령 문자열 하나를 적용합니다. 형식이 잘못된 명령은 로그만 남기고 무시합니다."""
        try:
            command = parse_command(text)
            handler = self._handlers.get(command.action)
            if handler is None:
                raise CommandParseError(text, "알 수 없는 명령")
            handler(command)
        except CommandParseError as e:
            log.warning("잘못된 원격 명령을 무시합니다: %s", e)
            self._controller.audit('REMOTE_COMMAND_IGNORED', {'command': str(text), 'reason': e.reason})
            return False
        log.info("원격 명령 적용: %s", text)
        self._controller.audit('REMOTE_COMMAND', {'command': text})
        return True

    # ---- 개별 명령 ----

    def _cmd_preload(self, command: RemoteCommand):
        h, m, s = parse_hms(command.arg(0))
        self._controller.preload(h * 3600 + m * 60 + s)

    def _cmd_toggle(self, command: RemoteCommand):
        if self._session.pause.is_paused:
            self._controller.resume_generic()
        else:
            self._controller.pause(None, authorized=True)

    def _cmd_pause(self, command: RemoteCommand):
        self._controller.pause(None, authorized=True)

    def _cmd_start(self, command: RemoteCommand):
        if command.args:
            self._controller.start_session(*parse_hms(command.arg(0)))
        else:
            self._controller.resume_generic()

    def _cmd_lunch(self, command: RemoteCommand):
        self._controller.take_lunch()

    def _cmd_save(self, command: RemoteCommand):
        self._controller.save_to_queue()

    def _cmd_reset(self, command: RemoteCommand):
        if command.args:
            self._controller.start_session(*parse_hms(command.arg(0)))
        else:
            self._controller.reset_data()

    def _cmd_set_time(self, command: RemoteCommand):
        self._controller.start_session(*parse_hms(command.arg(0)))

    def _cmd_finish(self, command: RemoteCommand):
        self._controller.finish()

    def _cmd_clock_out(self, command: RemoteCommand):
        worker_id = command.arg(0)
        if not worker_id:
            raise CommandParseError(command.action, "작업자 ID가 없습니다")
        self._controller.clock_out_worker(worker_id)

    def _cmd_edit_minutes(self, command: RemoteCommand):
        if len(command.args) != 2:
            raise CommandParseError(command.action, "EDIT_MINUTES|작업자ID|분 형식이어야 합니다")
        try:
            minutes = float(command.args[1])
        except ValueError:
            raise CommandParseError(command.args[1], "분 값이 숫자가 아닙니다") from None
        self._controller.edit_worker_minutes(command.args[0], minutes)

    def _cmd_cancel_bonus(self, command: RemoteCommand):
        self._controller.cancel_bonus(command.arg(0))

    def _cmd_qc_crew(self, command: RemoteCommand):
        self._controller.toggle_qc(PauseKind.QC_CREW, None, authorized=True)

    def _cmd_qc_component(self, command: RemoteCommand):
        self._controller.toggle_qc(PauseKind.QC_COMPONENT, None, authorized=True)

    def _cmd_technician(self, command: RemoteCommand):
        self._controller.toggle_technician(None, line_name=command.arg(0), authorized=True)


def _parse_list(raw: Any, factory) -> List[Any]:
    if not isinstance(raw, list):
        return []
    parsed = (factory(item) for item in raw if isinstance(item, dict))
    return [item for item in parsed if item is not None]
