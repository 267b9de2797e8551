"""로깅 유틸리티 모듈

진단 로그는 표준 logging 으로, 작업 이력(감사 로그)은 CSV 파일로 남깁니다.
"""

import csv
import datetime
import json
import logging
import os
import queue
import threading
from typing import Dict, Any, Optional, List

from utils.file_handler import ensure_directory_exists, get_safe_filename

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """루트 로거를 설정합니다. 여러 번 호출해도 핸들러가 중복되지 않습니다."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if getattr(root, '_worktime_configured', False):
        return
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        ensure_directory_exists(os.path.dirname(log_file) or '.')
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
    for handler in handlers:
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root._worktime_configured = True


class EventLogger:
    """세션 이벤트(스캔, 일시정지, 원격 명령 등)를 일별 CSV 파일에 기록하는 클래스"""

    FIELDNAMES = ['timestamp', 'kiosk_id', 'event_type', 'detail']

    def __init__(self, log_folder: str, kiosk_id: str):
        self.log_folder = log_folder
        self.kiosk_id = kiosk_id
        self.log_queue: queue.Queue = queue.Queue()
        self.log_writer_running = True
        self._log = logging.getLogger(__name__)
        ensure_directory_exists(log_folder)
        self._writer_thread = threading.Thread(target=self._event_log_writer, daemon=True)
        self._writer_thread.start()

    def log_file_path(self, day: Optional[datetime.date] = None) -> str:
        """해당 날짜의 로그 파일 경로를 반환합니다."""
        day = day or datetime.date.today()
        kiosk = get_safe_filename(self.kiosk_id or 'local')
        return os.path.join(self.log_folder, f"session_events_{kiosk}_{day.strftime('%Y%m%d')}.csv")

    def _event_log_writer(self):
        """이벤트 로그를 파일에 작성하는 스레드 함수"""
        while self.log_writer_running:
            try:
                log_entry = self.log_queue.get(timeout=1)
            except queue.Empty:
                continue
            if log_entry is None:
                self.log_queue.task_done()
                break
            try:
                path = self.log_file_path(datetime.date.fromisoformat(log_entry['timestamp'][:10]))
                file_exists = os.path.exists(path)
                with open(path, mode='a', newline='', encoding='utf-8') as csvfile:
                    writer = csv.DictWriter(csvfile, fieldnames=self.FIELDNAMES)
                    if not file_exists:
                        writer.writeheader()
                    writer.writerow(log_entry)
            except OSError as e:
                self._log.error("이벤트 로그 작성 오류: %s", e)
            finally:
                self.log_queue.task_done()

    def log_event(self, event_type: str, detail: Optional[Dict[str, Any]] = None,
                  timestamp: Optional[datetime.datetime] = None):
        """이벤트를 로그 큐에 넣습니다."""
        stamp = timestamp or datetime.datetime.now()
        self.log_queue.put({
            'timestamp': stamp.strftime('%Y-%m-%d %H:%M:%S'),
            'kiosk_id': self.kiosk_id,
            'event_type': event_type,
            'detail': json.dumps(detail, ensure_ascii=False, default=str) if detail else "",
        })

    def flush(self):
        """큐에 쌓인 로그가 모두 기록될 때까지 기다립니다."""
        self.log_queue.join()

    def get_todays_logs(self, day: Optional[datetime.date] = None) -> List[Dict[str, Any]]:
        """해당 날짜(기본: 오늘)의 모든 로그를 반환합니다."""
        path = self.log_file_path(day)
        logs: List[Dict[str, Any]] = []
        if not os.path.exists(path):
            return logs
        try:
            with open(path, mode='r', encoding='utf-8') as csvfile:
                for row in csv.DictReader(csvfile):
                    try:
                        detail = json.loads(row['detail']) if row['detail'] else {}
                    except json.JSONDecodeError:
                        continue
                    logs.append({
                        'timestamp': row['timestamp'],
                        'event_type': row['event_type'],
                        'detail': detail,
                    })
        except OSError as e:
            self._log.error("로그 파일 읽기 오류: %s", e)
        return logs

    def stop_logger(self):
        """로깅을 중지합니다."""
        self.log_queue.put(None)  # 종료 신호
        self._writer_thread.join(timeout=2)
        self.log_writer_running = False
