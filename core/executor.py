"""직렬 실행기와 1Hz 틱 스레드

세션을 변경하는 모든 작업(tick, 스캔, 원격 스냅샷, 일시정지 등)은
SerialExecutor 하나를 통해 순서대로 실행됩니다.
"""

import logging
import queue
import threading
from concurrent.futures import Future
from typing import Any, Callable, Optional

log = logging.getLogger(__name__)

_STOP = object()


class SerialExecutor:
    """작업 큐를 하나의 작업 스레드가 차례로 처리합니다."""

    def __init__(self, name: str = "session-executor"):
        self._queue: queue.Queue = queue.Queue()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._running = False

    def start(self):
        if not self._running:
            self._running = True
            self._thread.start()

    def submit(self, fn: Callable[..., Any], *args, **kwargs) -> Future:
        """작업을 큐에 넣고 결과를 담을 Future 를 반환합니다."""
        future: Future = Future()
        if not self._running:
            future.set_exception(RuntimeError("executor is not running"))
            return future
        self._queue.put((future, fn, args, kwargs))
        return future

    def call(self, fn: Callable[..., Any], *args, timeout: Optional[float] = None, **kwargs) -> Any:
        """작업을 넣고 결과를 기다립니다. 실행기 스레드 안에서 호출하면 교착되므로 바로 실행합니다."""
        if threading.current_thread() is self._thread:
            return fn(*args, **kwargs)
        return self.submit(fn, *args, **kwargs).result(timeout=timeout)

    def _run(self):
        while True:
            item = self._queue.get()
            if item is _STOP:
                self._queue.task_done()
                break
            future, fn, args, kwargs = item
            if future.set_running_or_notify_cancel():
                try:
                    future.set_result(fn(*args, **kwargs))
                except Exception as e:
                    log.exception("세션 작업 실행 중 오류: %s", getattr(fn, '__name__', fn))
                    future.set_exception(e)
            self._queue.task_done()

    def join(self):
        """지금까지 넣은 작업이 모두 끝날 때까지 기다립니다."""
        self._queue.join()

    def stop(self, timeout: float = 2.0):
        if not self._running:
            return
        self._running = False
        self._queue.put(_STOP)
        self._thread.join(timeout=timeout)


class Ticker:
    """interval 초마다 콜백을 실행기에 넣는 스레드"""

    def __init__(self, executor: SerialExecutor, callback: Callable[[], Any], interval: float = 1.0):
        self._executor = executor
        self._callback = callback
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="session-ticker", daemon=True)
        self._thread.start()

    def _run(self):
        while not self._stop_event.wait(self.interval):
            self._executor.submit(self._callback)

    def stop(self):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval * 2)
            self._thread = None
