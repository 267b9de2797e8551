"""카운트다운 엔진. 1초마다 호출되는 tick 으로 인원수에 비례해 예산을 차감합니다.

시간은 항상 인자로 주입받으므로 테스트에서 결정적으로 재현할 수 있습니다.
"""

import datetime
import math
from dataclasses import dataclass, field
from typing import List, Optional

from core.enums import TickEvent
from core.ledger import WorkerLedger
from core.pause import PauseStateMachine


def format_countdown(seconds: int) -> str:
    """남은 초를 부호 있는 HH:MM:SS 로 표시합니다. 초과분은 '-' 로 표시됩니다."""
    prefix = "-" if seconds < 0 else ""
    remaining = abs(seconds)
    hours, rest = divmod(remaining, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{prefix}{hours:02d}:{minutes:02d}:{secs:02d}"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class TickResult:
    events: List[TickEvent] = field(default_factory=list)
    drained: int = 0
    timer_text: str = "00:00:00"


class CountdownEngine:
    """남은 예산(초)과 마지막 tick 시각을 관리합니다."""

    def __init__(self, machine: PauseStateMachine, ledger: WorkerLedger):
        self._machine = machine
        self._ledger = ledger
        self.countdown_seconds: int = 0
        self.original_seconds: int = 0
        self.has_played_buzzer: bool = False
        self.last_tick: Optional[datetime.datetime] = None

    @property
    def timer_text(self) -> str:
        return format_countdown(self.countdown_seconds)

    def start(self, total_seconds: int, now: datetime.datetime):
        self.countdown_seconds = int(total_seconds)
        self.original_seconds = int(total_seconds)
        self.has_played_buzzer = False
        self.last_tick = now

    def mark(self, now: datetime.datetime):
        """정지/재개 등으로 경과 시간 기준점을 다시 잡습니다."""
        self.last_tick = now

    def tick(self, now: datetime.datetime) -> TickResult:
        result = TickResult()

        lunch_end = self._machine.check_lunch_end(now)
        if lunch_end is not None:
            result.events.append(lunch_end)

        headcount = self._ledger.headcount
        if self._machine.check_auto_lunch(now, headcount):
            result.events.append(TickEvent.AUTO_LUNCH_STARTED)
        if self._machine.auto_clear_lunch_lock(now):
            result.events.append(TickEvent.LUNCH_LOCK_CLEARED)

        if self._machine.state.is_running and headcount > 0 and self.last_tick is not None:
            elapsed = (now - self.last_tick).total_seconds()
            self.last_tick = now
            # 인원수만큼 빠르게 소진 (누적 인시 기준)
            to_subtract = max(1, round_half_up(elapsed * headcount))
            previous = self.countdown_seconds
            self.countdown_seconds -= to_subtract
            result.drained = to_subtract
            if previous > 0 >= self.countdown_seconds and not self.has_played_buzzer:
                self.has_played_buzzer = True
                result.events.append(TickEvent.BUDGET_EXHAUSTED)
        else:
            self.last_tick = now

        result.timer_text = self.timer_text
        return result

    def reset(self):
        self.countdown_seconds = 0
        self.original_seconds = 0
        self.has_played_buzzer = False
        self.last_tick = None
