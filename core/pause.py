"""일시정지 상태 머신: 카운트다운이 멈춰 있는 이유를 하나만 관리합니다."""

import datetime
from dataclasses import dataclass, field
from typing import List, Optional

from core.bonus import BonusTracker, REASON_QC_CREW
from core.enums import PauseKind, PauseFeedback, LunchFeedback, TickEvent
from core.event_log import EventLog
from core.models import PauseState, TimeWindow

MANUAL_LUNCH_SECONDS = 30 * 60
SHIFT_START_TOLERANCE_MINUTES = 1


@dataclass
class Credentials:
    pause_password: str = "340340"
    reset_password: str = "465465"
    qc_code: str = "1111"
    technician_code: str = "2222"


@dataclass
class Schedule:
    lunch_windows: List[TimeWindow] = field(default_factory=list)
    shift_start_times: List[datetime.time] = field(default_factory=list)
    manual_lunch_seconds: int = MANUAL_LUNCH_SECONDS

    def in_lunch_window(self, now: datetime.datetime) -> bool:
        return any(window.contains(now) for window in self.lunch_windows)

    def at_shift_start(self, now: datetime.datetime) -> bool:
        return any(TimeWindow.starting_at(t, SHIFT_START_TOLERANCE_MINUTES).contains(now)
                   for t in self.shift_start_times)


class PauseStateMachine:
    """RUNNING / 수동 정지 / 점심(수동, 자동) / QC / 기술자 호출 상태 전이를 담당합니다.

    QC 와 기술자 호출은 같은 코드로만 해제할 수 있고, 일반 재개 요청은 거부됩니다.
    authorized=True 는 원격 명령처럼 이미 신뢰된 호출자이므로 코드 확인을 생략합니다.
    """

    def __init__(self, log: EventLog, bonus: BonusTracker,
                 schedule: Optional[Schedule] = None, credentials: Optional[Credentials] = None):
        self._log = log
        self._bonus = bonus
        self.schedule = schedule or Schedule()
        self.credentials = credentials or Credentials()
        self.state = PauseState.running()
        self.has_used_lunch_break = False

    @property
    def is_paused(self) -> bool:
        return not self.state.is_running

    def _enter(self, state: PauseState, now: datetime.datetime):
        self.state = state
        self._log.append_project(now, state.kind.event_type, state.line_name)

    # ---- 수동 정지 / 재개 ----

    def pause(self, credential: Optional[str], now: datetime.datetime, authorized: bool = False) -> PauseFeedback:
        if not authorized and credential != self.credentials.pause_password:
            return PauseFeedback.WRONG_CREDENTIAL
        if not self.state.is_running:
            return PauseFeedback.ALREADY_PAUSED
        self._enter(PauseState.manual(), now)
        return PauseFeedback.PAUSED

    def resume(self) -> PauseFeedback:
        """일반 재개. QC/기술자 호출 중에는 거부됩니다."""
        if self.state.is_running:
            return PauseFeedback.ALREADY_RUNNING
        if self.state.kind.is_credential_gated:
            return PauseFeedback.REJECTED_CREDENTIAL_GATED
        self.state = PauseState.running()
        return PauseFeedback.RESUMED

    # ---- 코드로 잠기는 정지 (QC / 기술자) ----

    def _toggle_gated(self, target: PauseState, expected: str, credential: Optional[str],
                      now: datetime.datetime, authorized: bool) -> PauseFeedback:
        if self.state.kind == target.kind:
            if not authorized and credential != expected:
                return PauseFeedback.WRONG_CREDENTIAL
            self.state = PauseState.running()
            return PauseFeedback.RESUMED
        if self.state.kind.is_credential_gated:
            return PauseFeedback.REJECTED_CREDENTIAL_GATED
        if not authorized and credential != expected:
            return PauseFeedback.WRONG_CREDENTIAL
        self._enter(target, now)
        return PauseFeedback.PAUSED

    def toggle_qc(self, kind: PauseKind, credential: Optional[str], now: datetime.datetime,
                  authorized: bool = False) -> PauseFeedback:
        if kind not in (PauseKind.QC_CREW, PauseKind.QC_COMPONENT):
            raise ValueError(f"QC 정지 종류가 아닙니다: {kind}")
        feedback = self._toggle_gated(PauseState(kind), self.credentials.qc_code, credential, now, authorized)
        if feedback == PauseFeedback.PAUSED and kind == PauseKind.QC_CREW:
            self._bonus.revoke(REASON_QC_CREW)
        return feedback

    def toggle_technician(self, credential: Optional[str], now: datetime.datetime,
                          line_name: Optional[str] = None, authorized: bool = False) -> PauseFeedback:
        return self._toggle_gated(PauseState.technician(line_name), self.credentials.technician_code,
                                  credential, now, authorized)

    # ---- 점심 ----

    def take_lunch(self, now: datetime.datetime, headcount: int) -> LunchFeedback:
        if not self.state.is_running:
            return LunchFeedback.IGNORED_PAUSED
        if headcount <= 0:
            return LunchFeedback.IGNORED_NO_WORKERS
        if self.has_used_lunch_break:
            return LunchFeedback.IGNORED_ALREADY_USED
        self.has_used_lunch_break = True
        self._enter(PauseState.manual_lunch(now), now)
        return LunchFeedback.SUCCESS

    def check_auto_lunch(self, now: datetime.datetime, headcount: int) -> bool:
        """점심 시간대에 들어왔으면 자동 점심을 시작합니다."""
        if not self.state.is_running or headcount <= 0 or self.has_used_lunch_break:
            return False
        if not self.schedule.in_lunch_window(now):
            return False
        self.has_used_lunch_break = True
        self._enter(PauseState.auto_lunch(), now)
        return True

    def check_lunch_end(self, now: datetime.datetime) -> Optional[TickEvent]:
        """점심 종료 조건을 확인하고 만족하면 RUNNING 으로 돌아갑니다."""
        if self.state.kind == PauseKind.MANUAL_LUNCH:
            since = self.state.since or now
            if (now - since).total_seconds() >= self.schedule.manual_lunch_seconds:
                self.state = PauseState.running()
                return TickEvent.MANUAL_LUNCH_ENDED
        elif self.state.kind == PauseKind.AUTO_LUNCH:
            if not self.schedule.in_lunch_window(now):
                self.state = PauseState.running()
                return TickEvent.AUTO_LUNCH_ENDED
        return None

    def auto_clear_lunch_lock(self, now: datetime.datetime) -> bool:
        if self.has_used_lunch_break and self.schedule.at_shift_start(now):
            self.has_used_lunch_break = False
            return True
        return False

    def clear_lunch_lock(self):
        self.has_used_lunch_break = False

    def restore(self, state: PauseState, has_used_lunch_break: bool):
        """저장된 상태를 그대로 적용합니다 (이벤트 기록 없음)."""
        self.state = state
        self.has_used_lunch_break = has_used_lunch_break

    def force_paused(self):
        """복구 시 안전을 위해 수동 정지 상태로 둡니다 (이벤트 기록 없음)."""
        self.state = PauseState.manual()

    def reset(self):
        self.state = PauseState.running()
        self.has_used_lunch_break = False
