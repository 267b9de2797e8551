"""작업자 원장: 작업자별 누적 작업 시간과 현재 출근 상태"""

import datetime
from typing import Dict, Iterable, List, Optional

from core.enums import ScanAction
from core.event_log import EventLog
from core.models import Worker, ClockOn, ClockOff, ScanEvent


def elapsed_minutes(start: datetime.datetime, end: datetime.datetime) -> float:
    return (end - start).total_seconds() / 60


def reconstruct(events: Iterable[ScanEvent]) -> Dict[str, Worker]:
    """스캔 이벤트를 시간순으로 재생하여 작업자 원장을 새로 만듭니다.

    순수 함수이며 같은 로그를 몇 번 재생해도 같은 결과가 나옵니다.
    열린 출근 기록이 없는 퇴근 이벤트는 무시합니다.
    """
    workers: Dict[str, Worker] = {}
    for event in sorted(events, key=lambda e: e.timestamp):
        if event.action == ScanAction.CLOCK_IN:
            worker = workers.get(event.worker_id) or Worker(event.worker_id)
            worker.clock = ClockOn(event.timestamp)
            workers[event.worker_id] = worker
        else:
            worker = workers.get(event.worker_id)
            if worker is None or not worker.is_active:
                continue
            worker.total_minutes += elapsed_minutes(worker.clock_in_time, event.timestamp)
            worker.clock = ClockOff()
    return workers


class WorkerLedger:
    """작업자 ID -> Worker 매핑. 변경 시 이벤트 로그에 스캔 이벤트를 추가합니다."""

    def __init__(self, log: EventLog):
        self._log = log
        self._workers: Dict[str, Worker] = {}

    # ---- 조회 ----

    @property
    def headcount(self) -> int:
        return sum(1 for w in self._workers.values() if w.is_active)

    def exists(self, worker_id: str) -> bool:
        return worker_id in self._workers

    def is_active(self, worker_id: str) -> bool:
        worker = self._workers.get(worker_id)
        return worker is not None and worker.is_active

    def get(self, worker_id: str) -> Optional[Worker]:
        return self._workers.get(worker_id)

    def workers(self) -> List[Worker]:
        return list(self._workers.values())

    def active_ids(self) -> List[str]:
        return sorted(w.worker_id for w in self._workers.values() if w.is_active)

    def minutes_by_worker(self) -> Dict[str, float]:
        return {w.worker_id: w.total_minutes for w in self._workers.values()}

    def is_empty(self) -> bool:
        return not self._workers

    # ---- 변경 ----

    def clock_in(self, worker_id: str, now: datetime.datetime) -> bool:
        """출근 처리. 이미 출근 중이면 아무것도 하지 않고 False."""
        worker = self._workers.get(worker_id)
        if worker is not None and worker.is_active:
            return False
        if worker is None:
            worker = Worker(worker_id)
            self._workers[worker_id] = worker
        worker.clock = ClockOn(now)
        self._log.append_scan(worker_id, now, ScanAction.CLOCK_IN)
        return True

    def clock_out(self, worker_id: str, now: datetime.datetime) -> bool:
        """퇴근 처리. 열린 출근 기록이 없으면 False."""
        worker = self._workers.get(worker_id)
        if worker is None or not worker.is_active:
            return False
        worker.total_minutes += elapsed_minutes(worker.clock_in_time, now)
        worker.clock = ClockOff()
        # 수동 퇴근과 원격 퇴근이 겹쳐도 퇴근 이벤트는 한 번만 남김
        last = self._log.last_scan_for(worker_id)
        if last is None or last.action != ScanAction.CLOCK_OUT:
            self._log.append_scan(worker_id, now, ScanAction.CLOCK_OUT)
        return True

    def force_clock_out_all(self, now: datetime.datetime) -> List[str]:
        """출근 중인 모든 작업자를 퇴근 처리하고 처리된 ID 목록을 반환합니다."""
        closed = []
        for worker_id in self.active_ids():
            if self.clock_out(worker_id, now):
                closed.append(worker_id)
        return closed

    def set_total_minutes(self, worker_id: str, minutes: float) -> bool:
        worker = self._workers.get(worker_id)
        if worker is None:
            return False
        worker.total_minutes = float(minutes)
        return True

    def add_placeholder(self, worker_id: str, now: datetime.datetime):
        """복구 시 정확한 출근 시각을 모르는 작업자를 출근 상태로 등록합니다. 로그에는 남기지 않습니다."""
        if not self.is_active(worker_id):
            worker = self._workers.get(worker_id) or Worker(worker_id)
            worker.clock = ClockOn(now)
            self._workers[worker_id] = worker

    def rebuild_from_log(self):
        self._workers = reconstruct(self._log.sorted_scans())

    def load(self, workers: Iterable[Worker]):
        self._workers = {w.worker_id: w for w in workers}

    def reset(self):
        self._workers = {}
