"""데이터 모델 정의 모듈"""

import datetime
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any, Union

from core.enums import ScanAction, ProjectEventType, PauseKind


def to_wire_time(value: Optional[datetime.datetime]) -> Optional[str]:
    """datetime 을 ISO-8601 문자열로 변환합니다."""
    return value.isoformat() if value is not None else None


def _as_local_naive(value: datetime.datetime) -> datetime.datetime:
    # 시간대 정보가 있으면 로컬 시각으로 바꿔 naive 값과 비교할 수 있게 함
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def parse_wire_time(value: Any) -> Optional[datetime.datetime]:
    """ISO-8601 문자열 또는 epoch 초를 datetime 으로 변환합니다. 해석할 수 없으면 None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        return _as_local_naive(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.datetime.fromtimestamp(value)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            return _as_local_naive(datetime.datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


# ---------------------------------------------------------------------
# 작업자 출퇴근 상태
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class ClockOff:
    """출근하지 않은 상태"""


@dataclass(frozen=True)
class ClockOn:
    """출근 중. 출근 시각을 항상 가집니다."""
    since: datetime.datetime


ClockState = Union[ClockOff, ClockOn]


@dataclass
class Worker:
    """작업자 한 명의 누적 작업 시간(분)과 현재 출근 상태"""
    worker_id: str
    clock: ClockState = field(default_factory=ClockOff)
    total_minutes: float = 0.0

    @property
    def is_active(self) -> bool:
        return isinstance(self.clock, ClockOn)

    @property
    def clock_in_time(self) -> Optional[datetime.datetime]:
        return self.clock.since if isinstance(self.clock, ClockOn) else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.worker_id,
            'clockInTime': to_wire_time(self.clock_in_time),
            'totalMinutesWorked': self.total_minutes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Worker":
        since = parse_wire_time(data.get('clockInTime'))
        return cls(
            worker_id=str(data['id']),
            clock=ClockOn(since) if since is not None else ClockOff(),
            total_minutes=float(data.get('totalMinutesWorked', 0.0)),
        )


# ---------------------------------------------------------------------
# 이벤트 로그 레코드
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class ScanEvent:
    """카드 스캔(출근/퇴근) 기록"""
    worker_id: str
    timestamp: datetime.datetime
    action: ScanAction

    def to_dict(self) -> Dict[str, Any]:
        return {'cardID': self.worker_id, 'action': self.action.value, 'timestamp': to_wire_time(self.timestamp)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["ScanEvent"]:
        """원격/로컬 데이터에서 복원합니다. 필드가 잘못되면 None 을 반환합니다."""
        try:
            worker_id = data['cardID']
            action = ScanAction(data['action'])
        except (KeyError, ValueError, TypeError):
            return None
        stamp = parse_wire_time(data.get('timestamp'))
        if stamp is None or not isinstance(worker_id, str):
            return None
        return cls(worker_id=worker_id, timestamp=stamp, action=action)


@dataclass(frozen=True)
class ProjectEvent:
    """일시정지, 점심, 저장, QC/기술자 호출 등 프로젝트 단위 이벤트"""
    timestamp: datetime.datetime
    type: ProjectEventType
    value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type.value, 'timestamp': to_wire_time(self.timestamp), 'value': self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["ProjectEvent"]:
        try:
            event_type = ProjectEventType(data['type'])
        except (KeyError, ValueError, TypeError):
            return None
        stamp = parse_wire_time(data.get('timestamp'))
        if stamp is None:
            return None
        value = data.get('value')
        return cls(timestamp=stamp, type=event_type, value=str(value) if value is not None else None)


# ---------------------------------------------------------------------
# 일시정지 상태
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class PauseState:
    """현재 일시정지 사유와 그에 딸린 정보.

    line_name 은 TECHNICIAN 에서만, since(점심 시작 시각)는 MANUAL_LUNCH 에서만 의미가 있습니다.
    """
    kind: PauseKind = PauseKind.RUNNING
    line_name: Optional[str] = None
    since: Optional[datetime.datetime] = None

    @classmethod
    def running(cls) -> "PauseState":
        return cls(PauseKind.RUNNING)

    @classmethod
    def manual(cls) -> "PauseState":
        return cls(PauseKind.MANUAL)

    @classmethod
    def manual_lunch(cls, since: datetime.datetime) -> "PauseState":
        return cls(PauseKind.MANUAL_LUNCH, since=since)

    @classmethod
    def auto_lunch(cls) -> "PauseState":
        return cls(PauseKind.AUTO_LUNCH)

    @classmethod
    def technician(cls, line_name: Optional[str] = None) -> "PauseState":
        return cls(PauseKind.TECHNICIAN, line_name=line_name or None)

    @property
    def is_running(self) -> bool:
        return self.kind == PauseKind.RUNNING

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': self.kind.value, 'lineName': self.line_name, 'since': to_wire_time(self.since)}

    @classmethod
    def from_dict(cls, data: Any) -> "PauseState":
        if isinstance(data, str):
            data = {'kind': data}
        if not isinstance(data, dict):
            return cls.running()
        try:
            kind = PauseKind.from_wire(data.get('kind', PauseKind.RUNNING.value))
        except ValueError:
            return cls.running()
        line_name = data.get('lineName') if kind == PauseKind.TECHNICIAN else None
        since = parse_wire_time(data.get('since')) if kind == PauseKind.MANUAL_LUNCH else None
        return cls(kind=kind, line_name=line_name, since=since)


# ---------------------------------------------------------------------
# 프로젝트 정보 / 대기열
# ---------------------------------------------------------------------

@dataclass
class ProjectInfo:
    """회사, 프로젝트, 라인 리더, 분류, 규격"""
    company: str = ""
    project: str = ""
    leader: str = ""
    category: str = ""
    size: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            'companyName': self.company,
            'projectName': self.project,
            'lineLeaderName': self.leader,
            'category': self.category,
            'projectSize': self.size,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectInfo":
        return cls(
            company=str(data.get('companyName') or ""),
            project=str(data.get('projectName') or ""),
            leader=str(data.get('lineLeaderName') or ""),
            category=str(data.get('category') or ""),
            size=str(data.get('projectSize') or ""),
        )


@dataclass
class QueueItem:
    """저장만 되고 아직 시작하지 않은 세션 스냅샷"""
    company: str
    project: str
    category: str = ""
    size: str = ""
    seconds: int = 0
    original_seconds: Optional[int] = None
    leader_name: Optional[str] = None
    created_at: Optional[datetime.datetime] = None
    scan_history: List[ScanEvent] = field(default_factory=list)
    project_events: List[ProjectEvent] = field(default_factory=list)
    bonus_eligible: bool = True
    bonus_reason: Optional[str] = None
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'company': self.company,
            'project': self.project,
            'category': self.category,
            'size': self.size,
            'seconds': self.seconds,
            'originalSeconds': self.original_seconds,
            'lineLeaderName': self.leader_name,
            'createdAt': to_wire_time(self.created_at),
            'scanHistory': [e.to_dict() for e in self.scan_history],
            'projectEvents': [e.to_dict() for e in self.project_events],
            'bonusEligible': self.bonus_eligible,
            'bonusReason': self.bonus_reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], item_id: Optional[str] = None) -> "QueueItem":
        original = data.get('originalSeconds')
        scans = [ScanEvent.from_dict(d) for d in data.get('scanHistory') or [] if isinstance(d, dict)]
        events = [ProjectEvent.from_dict(d) for d in data.get('projectEvents') or [] if isinstance(d, dict)]
        return cls(
            company=str(data.get('company') or ""),
            project=str(data.get('project') or ""),
            category=str(data.get('category') or ""),
            size=str(data.get('size') or ""),
            seconds=int(data.get('seconds') or 0),
            original_seconds=int(original) if original is not None else None,
            leader_name=data.get('lineLeaderName') or None,
            created_at=parse_wire_time(data.get('createdAt')),
            scan_history=[e for e in scans if e is not None],
            project_events=[e for e in events if e is not None],
            bonus_eligible=bool(data.get('bonusEligible', True)),
            bonus_reason=data.get('bonusReason'),
            id=item_id if item_id is not None else data.get('id'),
        )


# ---------------------------------------------------------------------
# 시간대 설정
# ---------------------------------------------------------------------

def minute_of_day(value: Union[datetime.time, datetime.datetime]) -> int:
    return value.hour * 60 + value.minute


def parse_clock_time(text: str) -> datetime.time:
    """'HH:MM' 문자열을 time 으로 변환합니다."""
    hour, minute = text.strip().split(':')
    return datetime.time(int(hour), int(minute))


@dataclass(frozen=True)
class TimeWindow:
    """하루 중 시간 구간. start >= end 이면 자정을 넘어가는 구간입니다."""
    start: datetime.time
    end: datetime.time

    def contains(self, moment: Union[datetime.time, datetime.datetime]) -> bool:
        t = minute_of_day(moment)
        start = minute_of_day(self.start)
        end = minute_of_day(self.end)
        if start < end:
            return start <= t < end
        return t >= start or t < end

    @classmethod
    def starting_at(cls, start: datetime.time, minutes: int = 1) -> "TimeWindow":
        """start 부터 minutes 분 동안의 구간 (교대 시작 허용 범위 등)"""
        end_minute = (minute_of_day(start) + minutes) % (24 * 60)
        return cls(start, datetime.time(end_minute // 60, end_minute % 60))

    @classmethod
    def parse(cls, pair: List[str]) -> "TimeWindow":
        return cls(parse_clock_time(pair[0]), parse_clock_time(pair[1]))
