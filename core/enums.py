"""세션 상태 머신에서 사용하는 열거형 정의"""

from enum import Enum


class ScanAction(str, Enum):
    """카드 스캔 시 수행된 동작"""
    CLOCK_IN = "Clocked In"
    CLOCK_OUT = "Clocked Out"


class ProjectEventType(str, Enum):
    """프로젝트 단위 이벤트 종류"""
    PAUSE = "Pause"
    LUNCH = "Lunch"
    SAVE = "Saved"
    QC_CREW = "QC (Crew)"
    QC_COMPONENT = "QC (Component)"
    TECHNICIAN = "Technician"


class PauseKind(str, Enum):
    """카운트다운이 멈춰 있는 이유. RUNNING 일 때만 예산이 차감됩니다."""
    RUNNING = "running"
    MANUAL = "manual"
    MANUAL_LUNCH = "manualLunch"
    AUTO_LUNCH = "autoLunch"
    QC_CREW = "qcCrew"
    QC_COMPONENT = "qcComponent"
    TECHNICIAN = "technician"

    @classmethod
    def from_wire(cls, value: str) -> "PauseKind":
        # 구버전 저장 데이터의 'lunch' 는 수동 점심으로 취급
        if value == "lunch":
            return cls.MANUAL_LUNCH
        return cls(value)

    @property
    def is_credential_gated(self) -> bool:
        return self in (PauseKind.QC_CREW, PauseKind.QC_COMPONENT, PauseKind.TECHNICIAN)

    @property
    def event_type(self) -> "ProjectEventType":
        return _PAUSE_EVENT_TYPES[self]


_PAUSE_EVENT_TYPES = {
    PauseKind.MANUAL: ProjectEventType.PAUSE,
    PauseKind.MANUAL_LUNCH: ProjectEventType.LUNCH,
    PauseKind.AUTO_LUNCH: ProjectEventType.LUNCH,
    PauseKind.QC_CREW: ProjectEventType.QC_CREW,
    PauseKind.QC_COMPONENT: ProjectEventType.QC_COMPONENT,
    PauseKind.TECHNICIAN: ProjectEventType.TECHNICIAN,
}


class ScanFeedback(Enum):
    CLOCKED_IN = "clocked_in"
    CLOCKED_OUT = "clocked_out"
    IGNORED_PAUSED = "ignored_paused"
    IGNORED_FINISHED = "ignored_finished"
    IGNORED_NO_SESSION = "ignored_no_session"


class LunchFeedback(Enum):
    SUCCESS = "success"
    IGNORED_PAUSED = "ignored_paused"
    IGNORED_NO_WORKERS = "ignored_no_workers"
    IGNORED_ALREADY_USED = "ignored_already_used"
    IGNORED_FINISHED = "ignored_finished"


class PauseFeedback(Enum):
    PAUSED = "paused"
    RESUMED = "resumed"
    WRONG_CREDENTIAL = "wrong_credential"
    ALREADY_PAUSED = "already_paused"
    ALREADY_RUNNING = "already_running"
    REJECTED_CREDENTIAL_GATED = "rejected_credential_gated"
    IGNORED_FINISHED = "ignored_finished"
    IGNORED_NO_SESSION = "ignored_no_session"


class QueueFeedback(Enum):
    SAVED = "saved"
    INVALID_METADATA = "invalid_metadata"
    STORE_FAILED = "store_failed"
    STARTED = "started"
    NEEDS_LEADER = "needs_leader"


class EditFeedback(Enum):
    UPDATED = "updated"
    UNKNOWN_WORKER = "unknown_worker"
    INVALID_VALUE = "invalid_value"


class TickEvent(Enum):
    MANUAL_LUNCH_ENDED = "manual_lunch_ended"
    AUTO_LUNCH_ENDED = "auto_lunch_ended"
    AUTO_LUNCH_STARTED = "auto_lunch_started"
    LUNCH_LOCK_CLEARED = "lunch_lock_cleared"
    BUDGET_EXHAUSTED = "budget_exhausted"
