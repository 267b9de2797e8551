"""추가만 가능한 이벤트 로그 (스캔 이벤트 + 프로젝트 이벤트)"""

import datetime
from typing import Iterable, Iterator, List, Optional

from core.enums import ScanAction, ProjectEventType
from core.models import ScanEvent, ProjectEvent


class EventLog:
    """세션의 근거 데이터. 작업자 원장과 카운터는 모두 이 로그에서 계산됩니다."""

    def __init__(self):
        self._scans: List[ScanEvent] = []
        self._project_events: List[ProjectEvent] = []

    def append_scan(self, worker_id: str, timestamp: datetime.datetime, action: ScanAction) -> ScanEvent:
        event = ScanEvent(worker_id=worker_id, timestamp=timestamp, action=action)
        self._scans.append(event)
        return event

    def append_project(self, timestamp: datetime.datetime, event_type: ProjectEventType,
                       value: Optional[str] = None) -> ProjectEvent:
        event = ProjectEvent(timestamp=timestamp, type=event_type, value=value)
        self._project_events.append(event)
        return event

    def scan_events(self, action: Optional[ScanAction] = None) -> Iterator[ScanEvent]:
        """삽입 순서대로 스캔 이벤트를 돌려줍니다. 호출할 때마다 처음부터 다시 순회합니다."""
        return (e for e in list(self._scans) if action is None or e.action == action)

    def project_events(self, of_type: Optional[ProjectEventType] = None) -> Iterator[ProjectEvent]:
        return (e for e in list(self._project_events) if of_type is None or e.type == of_type)

    def sorted_scans(self) -> List[ScanEvent]:
        """타임스탬프 오름차순 (같은 시각은 삽입 순서 유지)"""
        return sorted(self._scans, key=lambda e: e.timestamp)

    def last_scan_for(self, worker_id: str) -> Optional[ScanEvent]:
        for event in reversed(self._scans):
            if event.worker_id == worker_id:
                return event
        return None

    def count(self, of_type: ProjectEventType) -> int:
        return sum(1 for _ in self.project_events(of_type))

    @property
    def scan_count(self) -> int:
        return len(self._scans)

    @property
    def has_scans(self) -> bool:
        return bool(self._scans)

    @property
    def has_project_events(self) -> bool:
        return bool(self._project_events)

    def replace_scans(self, events: Iterable[ScanEvent]):
        """다른 출처(원격, 대기열)의 로그로 통째로 교체합니다."""
        self._scans = list(events)

    def replace_project_events(self, events: Iterable[ProjectEvent]):
        self._project_events = list(events)

    def reset(self):
        self._scans = []
        self._project_events = []
