"""키보드 웨지(HID) 방식 RFID 리더 입력 수집 (keyboard 라이브러리)

리더는 카드 UID 를 매우 빠르게 타이핑한 뒤 Enter 를 보냅니다.
사람이 천천히 입력한 키는 max_gap_sec 기준으로 걸러냅니다.
"""

import logging
import time
from typing import Callable, List, Optional

import keyboard

log = logging.getLogger(__name__)


class RfidKeyboardReader:

    def __init__(self, on_scan: Callable[[str], None], min_length: int = 4, max_gap_sec: float = 0.1,
                 clock: Callable[[], float] = time.monotonic):
        self.on_scan = on_scan
        self.min_length = min_length
        self.max_gap_sec = max_gap_sec
        self._clock = clock
        self._buffer: List[str] = []
        self._last_key_at: Optional[float] = None
        self._hook = None

    def start(self):
        if self._hook is None:
            self._hook = keyboard.on_press(self._on_key_event)

    def stop(self):
        if self._hook is not None:
            keyboard.unhook(self._hook)
            self._hook = None

    def _on_key_event(self, event):
        self.feed(event.name)

    def feed(self, key_name: Optional[str]):
        """키 하나를 처리합니다. Enter 가 들어오면 버퍼를 카드 ID 로 전달합니다."""
        now = self._clock()
        if key_name == 'enter':
            card_id = ''.join(self._buffer)
            self._buffer = []
            self._last_key_at = None
            if len(card_id) >= self.min_length:
                self.on_scan(card_id)
            elif card_id:
                log.debug("너무 짧은 RFID 입력을 무시합니다: %r", card_id)
            return
        if not key_name or len(key_name) != 1 or not key_name.isalnum():
            return
        if self._last_key_at is not None and now - self._last_key_at > self.max_gap_sec:
            self._buffer = []
        self._buffer.append(key_name)
        self._last_key_at = now
