"""세션 집합체와 컨트롤러

SessionController 의 모든 메서드는 하나의 직렬 실행기(core.executor.SerialExecutor)
위에서만 호출되어야 합니다. 컨트롤러 자체는 잠금을 사용하지 않습니다.
"""

import datetime
import json
import logging
import math
import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from core.arbiter import RemoteCommandArbiter
from core.bonus import BonusTracker, REASON_CANCELLED, REASON_HOURS_EDITED
from core.countdown import CountdownEngine, TickResult, format_countdown
from core.enums import (PauseKind, ProjectEventType, ScanFeedback, LunchFeedback, PauseFeedback,
                        QueueFeedback, EditFeedback, TickEvent)
from core.event_log import EventLog
from core.ledger import WorkerLedger
from core.models import (ProjectInfo, QueueItem, PauseState, Worker, ScanEvent, ProjectEvent,
                         to_wire_time)
from core.pause import PauseStateMachine, Schedule, Credentials
from utils.exceptions import TimeTrackerError, RemoteSyncError, StorageError, SessionError
from utils.file_handler import ensure_directory_exists, get_safe_filename

log = logging.getLogger(__name__)

PRELOAD_QUEUE_ID = "REMOTE_PRELOAD"
DEFAULT_PUSH_INTERVAL_SEC = 5.0

SOUND_PAUSE = "pause"
SOUND_BUZZER = "buzzer"
SOUND_FINISH = "cashier"


class Session:
    """카운트다운, 일시정지 상태, 작업자 원장, 이벤트 로그, 보너스 자격을 묶은 집합체"""

    def __init__(self, schedule: Optional[Schedule] = None, credentials: Optional[Credentials] = None):
        self.log = EventLog()
        self.ledger = WorkerLedger(self.log)
        self.bonus = BonusTracker()
        self.pause = PauseStateMachine(self.log, self.bonus, schedule, credentials)
        self.countdown = CountdownEngine(self.pause, self.ledger)
        self.info = ProjectInfo()
        self.is_counting_down = False
        self.is_finished = False

    @property
    def headcount(self) -> int:
        return self.ledger.headcount

    @property
    def pause_count(self) -> int:
        return self.log.count(ProjectEventType.PAUSE)

    @property
    def lunch_count(self) -> int:
        return self.log.count(ProjectEventType.LUNCH)

    @property
    def scan_count(self) -> int:
        return self.log.scan_count

    def is_empty(self) -> bool:
        """카운트다운 0, 작업자 없음, 프로젝트명 없음. 원격 복구가 허용되는 상태"""
        return self.countdown.countdown_seconds == 0 and self.ledger.is_empty() and not self.info.project

    def reset(self):
        self.log.reset()
        self.ledger.reset()
        self.bonus.reset()
        self.pause.reset()
        self.countdown.reset()
        self.info = ProjectInfo()
        self.is_counting_down = False
        self.is_finished = False

    # ---- 로컬 저장용 직렬화 ----

    def to_state(self) -> Dict[str, Any]:
        state = {
            'savedWorkers': [w.to_dict() for w in self.ledger.workers()],
            'scanHistory': [e.to_dict() for e in self.log.scan_events()],
            'projectEvents': [e.to_dict() for e in self.log.project_events()],
            'pauseState': self.pause.state.to_dict(),
            'hasUsedLunchBreak': self.pause.has_used_lunch_break,
            'countdownSeconds': self.countdown.countdown_seconds,
            'originalCountdownSeconds': self.countdown.original_seconds,
            'hasPlayedBuzzerAtZero': self.countdown.has_played_buzzer,
            'isCountingDown': self.is_counting_down,
            'isProjectFinished': self.is_finished,
            'bonusEligible': self.bonus.eligible,
            'bonusReason': self.bonus.reason,
        }
        state.update(self.info.to_dict())
        return state

    def load_state(self, state: Dict[str, Any]):
        """저장된 상태를 적용합니다. 형식이 잘못되면 빈 세션으로 되돌리고 SessionError."""
        try:
            self._apply_state(state)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            self.reset()
            raise SessionError(f"저장된 세션 상태가 올바르지 않습니다: {e}") from e

    def _apply_state(self, state: Dict[str, Any]):
        self.reset()
        self.ledger.load(Worker.from_dict(d) for d in state.get('savedWorkers') or [])
        scans = (ScanEvent.from_dict(d) for d in state.get('scanHistory') or [])
        self.log.replace_scans(e for e in scans if e is not None)
        events = (ProjectEvent.from_dict(d) for d in state.get('projectEvents') or [])
        self.log.replace_project_events(e for e in events if e is not None)
        self.pause.restore(PauseState.from_dict(state.get('pauseState')), bool(state.get('hasUsedLunchBreak')))
        self.countdown.countdown_seconds = int(state.get('countdownSeconds') or 0)
        self.countdown.original_seconds = int(state.get('originalCountdownSeconds') or 0)
        self.countdown.has_played_buzzer = bool(state.get('hasPlayedBuzzerAtZero'))
        self.is_counting_down = bool(state.get('isCountingDown'))
        self.is_finished = bool(state.get('isProjectFinished'))
        self.bonus.restore(state.get('bonusEligible', True) is not False, state.get('bonusReason'))
        self.info = ProjectInfo.from_dict(state)


@dataclass
class SessionView:
    """UI 계층에 노출하는 읽기 전용 상태"""
    timer_text: str
    countdown_seconds: int
    original_seconds: int
    pause_kind: PauseKind
    pause_line: Optional[str]
    is_paused: bool
    is_counting_down: bool
    is_finished: bool
    headcount: int
    worker_status: Dict[str, bool]
    worker_minutes: Dict[str, float]
    bonus_eligible: bool
    bonus_reason: Optional[str]
    info: ProjectInfo
    pause_count: int
    lunch_count: int
    scan_count: int
    has_used_lunch_break: bool
    pending_queue_item: Optional[QueueItem] = None
    queue: List[QueueItem] = field(default_factory=list)


class SessionController:
    """UI/RFID/원격 명령이 호출하는 세션 명령들의 진입점"""

    def __init__(self, session: Optional[Session] = None, store=None, remote=None, queue_store=None,
                 sound=None, audit=None, kiosk_id: str = "", report_folder: Optional[str] = None,
                 push_interval_sec: float = DEFAULT_PUSH_INTERVAL_SEC,
                 clock: Callable[[], datetime.datetime] = datetime.datetime.now,
                 monotonic: Callable[[], float] = time.monotonic):
        self.session = session or Session()
        self.store = store
        self.remote = remote
        self.queue_store = queue_store
        self.sound = sound
        self.audit_logger = audit
        self.kiosk_id = kiosk_id
        self.report_folder = report_folder
        self.push_interval_sec = push_interval_sec
        self._clock = clock
        self._monotonic = monotonic
        self._last_push: Optional[float] = None
        self._last_persist: Optional[float] = None
        self.arbiter = RemoteCommandArbiter(self)
        self.pending_queue_id: Optional[str] = None
        self.pending_queue_item: Optional[QueueItem] = None
        self.queue: List[QueueItem] = []
        self.worker_names: Dict[str, str] = {}
        self.final_report: Optional[Dict[str, Any]] = None
        self._pending_report: Optional[Dict[str, Any]] = None
        self.report_path: Optional[str] = None
        self.state_version = 0
        self.budget_exhausted_listeners: List[Callable[[], None]] = []

    # ---------------------------------------------------------------
    # 공통 헬퍼
    # ---------------------------------------------------------------

    def now(self) -> datetime.datetime:
        return self._clock()

    def audit(self, event_type: str, detail: Optional[Dict[str, Any]] = None):
        if self.audit_logger is not None:
            self.audit_logger.log_event(event_type, detail)

    def _play(self, name: str):
        if self.sound is not None:
            self.sound.play(name)

    def worker_name(self, worker_id: str) -> str:
        return self.worker_names.get(worker_id) or f"ID: {worker_id}"

    def _changed(self, force_push: bool = True):
        """상태 변경 후 로컬 저장과 원격 전송을 수행합니다."""
        self.persist()
        self.push(force=force_push)

    def persist(self):
        if self.store is None:
            return
        state = self.session.to_state()
        state['pendingQueueId'] = self.pending_queue_id
        state['stateVersion'] = self.state_version
        try:
            self.store.save_many(state)
        except StorageError as e:
            log.error("로컬 상태 저장 실패: %s", e)
        self._last_persist = self._monotonic()

    def load_persisted(self) -> bool:
        """로컬 저장소에서 마지막 상태를 불러옵니다. 저장된 상태가 없으면 False."""
        if self.store is None or not self.store.has('countdownSeconds'):
            return False
        keys = list(self.session.to_state().keys()) + ['pendingQueueId', 'stateVersion']
        state = {key: self.store.load(key) for key in keys if self.store.has(key)}
        self.session.load_state(state)
        self.pending_queue_id = state.get('pendingQueueId')
        version = state.get('stateVersion')
        self.state_version = version if isinstance(version, int) and not isinstance(version, bool) else 0
        self.session.countdown.mark(self.now())
        log.info("로컬 상태 복원: 남은 %s, 작업자 %d명", self.session.countdown.timer_text, self.session.headcount)
        return True

    def remote_payload(self) -> Dict[str, Any]:
        s = self.session
        payload = {
            'isPaused': s.pause.is_paused or not s.is_counting_down,
            'pauseState': s.pause.state.kind.value,
            'pauseLine': s.pause.state.line_name,
            'secondsRemaining': s.countdown.countdown_seconds,
            'originalSeconds': s.countdown.original_seconds,
            'timerText': s.countdown.timer_text,
            'workerCount': s.headcount,
            'activeWorkers': s.ledger.active_ids(),
            'scanHistory': [e.to_dict() for e in s.log.scan_events()],
            'projectEvents': [e.to_dict() for e in s.log.project_events()],
            'bonusEligible': s.bonus.eligible,
            'bonusReason': s.bonus.reason,
            'isFinished': s.is_finished,
            'hasUsedLunchBreak': s.pause.has_used_lunch_break,
            'stateVersion': self.state_version,
        }
        payload.update(s.info.to_dict())
        return payload

    def push(self, force: bool = False):
        """원격 문서로 상태를 보냅니다. force 가 아니면 최소 간격으로 제한됩니다."""
        if self.remote is None or not self.kiosk_id:
            return
        current = self._monotonic()
        if not force and self._last_push is not None and current - self._last_push < self.push_interval_sec:
            return
        self._last_push = current
        try:
            self.remote.push(self.kiosk_id, self.remote_payload(), merge=True)
        except RemoteSyncError as e:
            log.warning("원격 상태 전송 실패 (로컬 상태로 계속 진행): %s", e)

    def view(self) -> SessionView:
        s = self.session
        workers = s.ledger.workers()
        return SessionView(
            timer_text=s.countdown.timer_text,
            countdown_seconds=s.countdown.countdown_seconds,
            original_seconds=s.countdown.original_seconds,
            pause_kind=s.pause.state.kind,
            pause_line=s.pause.state.line_name,
            is_paused=s.pause.is_paused or not s.is_counting_down,
            is_counting_down=s.is_counting_down,
            is_finished=s.is_finished,
            headcount=s.headcount,
            worker_status={w.worker_id: w.is_active for w in workers},
            worker_minutes={w.worker_id: w.total_minutes for w in workers},
            bonus_eligible=s.bonus.eligible,
            bonus_reason=s.bonus.reason,
            info=ProjectInfo(**vars(s.info)),
            pause_count=s.pause_count,
            lunch_count=s.lunch_count,
            scan_count=s.scan_count,
            has_used_lunch_break=s.pause.has_used_lunch_break,
            pending_queue_item=self.pending_queue_item,
            queue=list(self.queue),
        )

    def _pause_guard(self) -> Optional[PauseFeedback]:
        if self.session.is_finished:
            return PauseFeedback.IGNORED_FINISHED
        if not self.session.is_counting_down:
            return PauseFeedback.IGNORED_NO_SESSION
        return None

    # ---------------------------------------------------------------
    # 세션 시작 / 대기열
    # ---------------------------------------------------------------

    def _consume_pending_queue_item(self):
        if self.pending_queue_id is None:
            return
        queue_id, self.pending_queue_id = self.pending_queue_id, None
        if self.queue_store is None:
            return
        try:
            self.queue_store.delete(queue_id)
        except RemoteSyncError as e:
            log.warning("대기열 항목 삭제 실패 (%s): %s", queue_id, e)

    def start_session(self, hours: int, minutes: int, seconds: int,
                      original_seconds: Optional[int] = None) -> bool:
        """예산을 설정하고 카운트다운을 시작합니다."""
        if min(hours, minutes, seconds) < 0:
            return False
        now = self.now()
        total = hours * 3600 + minutes * 60 + seconds
        self._consume_pending_queue_item()
        s = self.session
        s.countdown.start(total, now)
        if original_seconds:
            s.countdown.original_seconds = int(original_seconds)
        s.pause.state = PauseState.running()
        s.is_counting_down = True
        s.is_finished = False
        self.final_report = None
        self._pending_report = None
        self.report_path = None
        self.audit('SESSION_STARTED', {'seconds': total, 'project': s.info.project, 'company': s.info.company})
        log.info("세션 시작: %s (%s / %s)", format_countdown(total), s.info.company, s.info.project)
        self._changed()
        return True

    def preload(self, total_seconds: int):
        """원격에서 미리 배정한 작업을 확인 대기 상태로 올립니다."""
        s = self.session
        s.countdown.countdown_seconds = total_seconds
        s.countdown.original_seconds = total_seconds
        s.pause.state = PauseState.running()
        s.is_counting_down = False
        s.is_finished = False
        self.pending_queue_item = QueueItem(
            id=PRELOAD_QUEUE_ID,
            company=s.info.company,
            project=s.info.project,
            category=s.info.category,
            size=s.info.size,
            seconds=total_seconds,
            original_seconds=total_seconds,
            leader_name=s.info.leader or None,
            created_at=self.now(),
            scan_history=list(s.log.scan_events()),
            project_events=list(s.log.project_events()),
            bonus_eligible=s.bonus.eligible,
            bonus_reason=s.bonus.reason,
        )
        self.audit('PRELOAD', {'seconds': total_seconds, 'project': s.info.project})
        self._changed()

    def start_from_queue(self, item: QueueItem, leader_name: Optional[str] = None) -> QueueFeedback:
        """대기열 항목으로 세션을 시작합니다. 라인 리더 이름이 없으면 입력을 요청합니다."""
        leader = (leader_name or item.leader_name or "").strip()
        if not leader:
            self.pending_queue_item = item
            return QueueFeedback.NEEDS_LEADER

        s = self.session
        s.reset()
        s.log.replace_scans(item.scan_history)
        s.log.replace_project_events(item.project_events)
        s.ledger.rebuild_from_log()
        s.bonus.restore(item.bonus_eligible, item.bonus_reason)
        s.info = ProjectInfo(company=item.company, project=item.project, leader=leader,
                             category=item.category, size=item.size)
        self.pending_queue_item = None
        if item.id and item.id != PRELOAD_QUEUE_ID:
            self.pending_queue_id = item.id
        hours, rest = divmod(max(item.seconds, 0), 3600)
        minutes, seconds = divmod(rest, 60)
        self.audit('QUEUE_STARTED', {'queue_id': item.id, 'project': item.project, 'leader': leader})
        self.start_session(hours, minutes, seconds, original_seconds=item.original_seconds)
        if item.seconds < 0:
            # 초과 상태로 저장된 항목은 음수 그대로 이어감
            s.countdown.countdown_seconds = item.seconds
            s.countdown.has_played_buzzer = True
            self._changed()
        return QueueFeedback.STARTED

    def confirm_queue_start(self, leader_name: str) -> QueueFeedback:
        if self.pending_queue_item is None:
            return QueueFeedback.INVALID_METADATA
        return self.start_from_queue(self.pending_queue_item, leader_name)

    def save_to_queue(self) -> QueueFeedback:
        """현재 세션을 대기열에 저장하고 로컬 세션을 비웁니다."""
        s = self.session
        if not s.info.company.strip() or not s.info.project.strip():
            return QueueFeedback.INVALID_METADATA

        now = self.now()
        closed = s.ledger.force_clock_out_all(now)
        s.log.append_project(now, ProjectEventType.SAVE)
        item = QueueItem(
            company=s.info.company,
            project=s.info.project,
            category=s.info.category,
            size=s.info.size,
            seconds=s.countdown.countdown_seconds,
            original_seconds=s.countdown.original_seconds,
            leader_name=s.info.leader or None,
            created_at=now,
            scan_history=list(s.log.scan_events()),
            project_events=list(s.log.project_events()),
            bonus_eligible=s.bonus.eligible,
            bonus_reason=s.bonus.reason,
        )
        if self.queue_store is None:
            log.error("대기열 저장소가 설정되지 않아 저장할 수 없습니다")
            self._changed()
            return QueueFeedback.STORE_FAILED
        try:
            item.id = self.queue_store.insert(item)
        except RemoteSyncError as e:
            log.error("대기열 저장 실패: %s", e)
            self._changed()
            return QueueFeedback.STORE_FAILED

        self.audit('SAVED_TO_QUEUE', {'queue_id': item.id, 'seconds': item.seconds, 'clocked_out': closed})
        self.reset_data()
        return QueueFeedback.SAVED

    def set_queue(self, items: List[QueueItem]):
        self.queue = sorted(items, key=lambda i: i.created_at or datetime.datetime.min)

    def set_worker_names(self, names: Dict[str, str]):
        self.worker_names = dict(names)

    # ---------------------------------------------------------------
    # 스캔 / 작업자
    # ---------------------------------------------------------------

    def scan(self, worker_id: str) -> ScanFeedback:
        """RFID 스캔 한 번. 출근 중이면 퇴근, 아니면 출근 처리합니다."""
        s = self.session
        if s.is_finished:
            return ScanFeedback.IGNORED_FINISHED
        if not s.is_counting_down:
            return ScanFeedback.IGNORED_NO_SESSION
        if s.pause.is_paused:
            return ScanFeedback.IGNORED_PAUSED

        now = self.now()
        if s.ledger.is_active(worker_id):
            s.ledger.clock_out(worker_id, now)
            feedback = ScanFeedback.CLOCKED_OUT
        else:
            s.ledger.clock_in(worker_id, now)
            feedback = ScanFeedback.CLOCKED_IN
        self.audit('SCAN', {'worker_id': worker_id, 'result': feedback.value, 'headcount': s.headcount})
        self._changed()
        return feedback

    def clock_out_worker(self, worker_id: str) -> bool:
        """관리자 수동 퇴근 / 원격 퇴근. 일시정지 중에도 허용됩니다."""
        if self.session.is_finished:
            return False
        if not self.session.ledger.clock_out(worker_id, self.now()):
            return False
        self.audit('MANUAL_CLOCK_OUT', {'worker_id': worker_id})
        self._changed()
        return True

    def edit_worker_minutes(self, worker_id: str, total_minutes: float) -> EditFeedback:
        s = self.session
        if not s.ledger.exists(worker_id):
            return EditFeedback.UNKNOWN_WORKER
        if not isinstance(total_minutes, (int, float)) or not math.isfinite(total_minutes) or total_minutes < 0:
            return EditFeedback.INVALID_VALUE
        previous = s.ledger.get(worker_id).total_minutes
        s.ledger.set_total_minutes(worker_id, total_minutes)
        s.bonus.revoke(REASON_HOURS_EDITED)
        self.audit('WORKER_MINUTES_EDITED', {'worker_id': worker_id, 'from': previous, 'to': total_minutes})
        self._changed()
        return EditFeedback.UPDATED

    def cancel_bonus(self, reason: Optional[str] = None) -> bool:
        if not self.session.bonus.revoke(reason or REASON_CANCELLED):
            return False
        self.audit('BONUS_CANCELLED', {'reason': self.session.bonus.reason})
        self._changed()
        return True

    # ---------------------------------------------------------------
    # 일시정지
    # ---------------------------------------------------------------

    def _after_pause_change(self, feedback: PauseFeedback, event_type: str, detail: Optional[Dict] = None):
        if feedback == PauseFeedback.PAUSED:
            self._play(SOUND_PAUSE)
        if feedback in (PauseFeedback.PAUSED, PauseFeedback.RESUMED):
            self.session.countdown.mark(self.now())
            payload = {'result': feedback.value, 'state': self.session.pause.state.kind.value}
            payload.update(detail or {})
            self.audit(event_type, payload)
            self._changed()

    def pause(self, credential: Optional[str], authorized: bool = False) -> PauseFeedback:
        feedback = self._pause_guard() or self.session.pause.pause(credential, self.now(), authorized)
        self._after_pause_change(feedback, 'PAUSE')
        return feedback

    def resume_generic(self) -> PauseFeedback:
        feedback = self._pause_guard() or self.session.pause.resume()
        self._after_pause_change(feedback, 'RESUME')
        return feedback

    def toggle_qc(self, kind: PauseKind, credential: Optional[str], authorized: bool = False) -> PauseFeedback:
        feedback = self._pause_guard() or self.session.pause.toggle_qc(kind, credential, self.now(), authorized)
        self._after_pause_change(feedback, 'QC_HOLD', {'kind': kind.value, 'bonus_eligible': self.session.bonus.eligible})
        return feedback

    def toggle_technician(self, credential: Optional[str], line_name: Optional[str] = None,
                          authorized: bool = False) -> PauseFeedback:
        feedback = self._pause_guard() or self.session.pause.toggle_technician(
            credential, self.now(), line_name=line_name, authorized=authorized)
        self._after_pause_change(feedback, 'TECHNICIAN_HOLD', {'line': line_name})
        return feedback

    def take_lunch(self) -> LunchFeedback:
        s = self.session
        if s.is_finished:
            return LunchFeedback.IGNORED_FINISHED
        if not s.is_counting_down:
            return LunchFeedback.IGNORED_PAUSED
        now = self.now()
        feedback = s.pause.take_lunch(now, s.headcount)
        if feedback == LunchFeedback.SUCCESS:
            s.countdown.mark(now)
            self._play(SOUND_PAUSE)
            self.audit('LUNCH', {'kind': 'manual', 'headcount': s.headcount})
            self._changed()
        return feedback

    def clear_lunch_lock(self):
        """점심 사용 표시를 수동으로 해제합니다."""
        self.session.pause.clear_lunch_lock()
        self.audit('LUNCH_LOCK_CLEARED', {'manual': True})
        self._changed()

    # ---------------------------------------------------------------
    # tick
    # ---------------------------------------------------------------

    def tick(self) -> Optional[TickResult]:
        s = self.session
        if not s.is_counting_down or s.is_finished:
            return None
        result = s.countdown.tick(self.now())
        force = False
        for event in result.events:
            if event == TickEvent.BUDGET_EXHAUSTED:
                log.warning("예산 소진: %s / %s", s.info.company, s.info.project)
                self._play(SOUND_BUZZER)
                for listener in list(self.budget_exhausted_listeners):
                    listener()
            elif event == TickEvent.AUTO_LUNCH_STARTED:
                self._play(SOUND_PAUSE)
            self.audit('TICK_' + event.name, {'remaining': s.countdown.countdown_seconds})
            force = True

        if force:
            self._changed(force_push=True)
        else:
            if self._last_persist is None or self._monotonic() - self._last_persist >= self.push_interval_sec:
                self.persist()
            self.push(force=False)
        return result

    # ---------------------------------------------------------------
    # 원격 스냅샷
    # ---------------------------------------------------------------

    def on_remote_snapshot(self, data: Dict[str, Any]) -> bool:
        if not self.arbiter.on_snapshot(data, self.now()):
            return False
        self.persist()
        return True

    # ---------------------------------------------------------------
    # 종료 / 초기화
    # ---------------------------------------------------------------

    def finish(self) -> bool:
        """작업 종료. 각 단계는 독립적으로 재시도해도 안전하며 실패해도 이전 단계는 되돌리지 않습니다."""
        now = self.now()
        steps = [
            ('play_sound', self._finish_play_sound),
            ('clock_out', self._finish_clock_out),
            ('mark_finished', self._finish_mark),
            ('save_report', self._finish_save_report),
            ('persist', lambda _now: self.persist()),
            ('push', lambda _now: self.push(force=True)),
        ]
        ok = True
        for name, step in steps:
            try:
                step(now)
            except TimeTrackerError as e:
                ok = False
                log.error("작업 종료 단계 '%s' 실패: %s", name, e)
        return ok

    def _finish_play_sound(self, now: datetime.datetime):
        if not self.session.is_finished:
            self._play(SOUND_FINISH)

    def _finish_clock_out(self, now: datetime.datetime):
        closed = self.session.ledger.force_clock_out_all(now)
        if closed:
            self.audit('FORCED_CLOCK_OUT', {'workers': closed})

    def _finish_mark(self, now: datetime.datetime):
        s = self.session
        if s.is_finished:
            return
        s.is_finished = True
        s.is_counting_down = False
        s.pause.reset()
        self.audit('FINISHED', {'remaining': s.countdown.countdown_seconds, 'bonus_eligible': s.bonus.eligible})

    def build_report(self, now: datetime.datetime) -> Dict[str, Any]:
        s = self.session
        return {
            'kioskId': self.kiosk_id,
            'company': s.info.company,
            'project': s.info.project,
            'leader': s.info.leader,
            'category': s.info.category,
            'size': s.info.size,
            'originalSeconds': s.countdown.original_seconds,
            'secondsRemaining': s.countdown.countdown_seconds,
            'workerLog': [
                {'id': w.worker_id, 'name': self.worker_name(w.worker_id), 'minutes': round(w.total_minutes, 2)}
                for w in sorted(s.ledger.workers(), key=lambda w: w.worker_id)
            ],
            'pauseCount': s.pause_count,
            'lunchCount': s.lunch_count,
            'scanCount': s.scan_count,
            'bonusEligible': s.bonus.eligible,
            'bonusReason': s.bonus.reason,
            'bonusStatus': 'unpaid',
            'completedAt': to_wire_time(now),
        }

    def _finish_save_report(self, now: datetime.datetime):
        """로컬 파일과 원격 문서를 따로 기록합니다. 재시도 시 이미 끝난 쪽은 건너뜁니다."""
        if self.final_report is not None:
            return
        if self._pending_report is None:
            report = self.build_report(now)
            if self.report_folder:
                self.report_path = self._write_report_file(report, now)
            self._pending_report = report
        if self.remote is not None:
            self.remote.enqueue_set('reports', self.remote.new_document_id(), self._pending_report, merge=False)
        self.final_report = self._pending_report

    def _write_report_file(self, report: Dict[str, Any], now: datetime.datetime) -> str:
        if not ensure_directory_exists(self.report_folder):
            raise StorageError(f"보고서 폴더를 만들 수 없습니다: {self.report_folder}")
        name = get_safe_filename(f"report_{report['company']}_{report['project']}_{now.strftime('%Y%m%d_%H%M%S')}.json")
        path = os.path.join(self.report_folder, name)
        try:
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(report, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise StorageError(f"보고서 저장 실패: {e}") from e
        return path

    def reset_data(self):
        """세션을 완전히 비웁니다. 이후 원격 복구가 다시 가능해집니다."""
        self.session.reset()
        self.pending_queue_id = None
        self.pending_queue_item = None
        self.final_report = None
        self._pending_report = None
        self.report_path = None
        # 이전 버전을 담은 원격 스냅샷은 더 이상 복구 대상이 아님
        self.state_version += 1
        self.audit('RESET')
        self._changed()

    def reset_with_credential(self, credential: Optional[str]) -> bool:
        """관리자 비밀번호를 확인한 뒤 세션을 초기화합니다."""
        if credential != self.session.pause.credentials.reset_password:
            self.audit('RESET_REJECTED')
            return False
        self.reset_data()
        return True
