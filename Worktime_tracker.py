"""작업 시간 트래커 키오스크 프로그램

RFID 출퇴근 스캔, 작업 예산 카운트다운, 일시정지/점심/QC 상태,
원격 관리자 명령과 작업 대기열을 하나의 세션 컨트롤러로 묶어 실행합니다.
"""

import datetime
import json
import logging
import os
import signal
import threading
from typing import Any, Dict, List, Optional

import pygame

from adapters.audio import SoundPlayer
from adapters.remote_store import (RemoteDocumentStore, QueueStore, WORKER_COLLECTION,
                                   worker_names_from_documents)
from adapters.rfid_reader import RfidKeyboardReader
from core.executor import SerialExecutor, Ticker
from core.models import TimeWindow, parse_clock_time
from core.pause import Credentials, Schedule, MANUAL_LUNCH_SECONDS
from core.session import Session, SessionController
from utils.exceptions import ConfigurationError, SessionError, StorageError
from utils.file_handler import ensure_directory_exists, resource_path
from utils.logger import EventLogger, setup_logging
from utils.state_store import JsonStateStore

log = logging.getLogger(__name__)


class ConfigManager:
    """애플리케이션 설정을 관리하는 클래스"""

    def __init__(self, config_file: str = "config.json", base_dir: Optional[str] = None):
        self.config_file = config_file
        self.base_dir = base_dir or os.path.dirname(os.path.abspath(__file__))
        self.config = self._load_config()

    @property
    def config_path(self) -> str:
        return os.path.join(self.base_dir, self.config_file)

    def _load_config(self) -> Dict[str, Any]:
        """설정 파일을 로드합니다. 파일이 없거나 깨져 있으면 기본 설정을 사용합니다."""
        try:
            if os.path.exists(self.config_path):
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    return self._merge_defaults(self._default_config(), loaded)
                log.error("설정 파일 형식 오류: 최상위가 객체가 아닙니다 (%s)", self.config_path)
                return self._default_config()
            return self._create_default_config()
        except (OSError, json.JSONDecodeError) as e:
            log.error("설정 파일 로드 오류: %s", e)
            return self._default_config()

    @staticmethod
    def _default_config() -> Dict[str, Any]:
        return {
            "app": {
                "name": "Worktime Tracker",
                "version": "v1.0.0",
                "description": "생산 라인 작업 시간 트래커"
            },
            "kiosk": {
                "id": "",
                "data_folder": "C:\\Sync\\worktime"
            },
            "credentials": {
                "pause_password": "340340",
                "reset_password": "465465",
                "qc_code": "1111",
                "technician_code": "2222"
            },
            "schedule": {
                "lunch_windows": [["11:30", "12:00"], ["18:30", "19:00"], ["03:00", "03:30"]],
                "shift_start_times": ["06:00", "14:00", "22:00"],
                "manual_lunch_seconds": MANUAL_LUNCH_SECONDS
            },
            "remote": {
                "base_url": "",
                "poll_interval_sec": 2.0,
                "push_interval_sec": 5.0,
                "timeout": 5
            },
            "audio": {
                "enabled": True,
                "folder": "assets"
            },
            "logging": {
                "level": "INFO",
                "log_folder": "logs"
            }
        }

    @classmethod
    def _merge_defaults(cls, defaults: Dict[str, Any], loaded: Dict[str, Any]) -> Dict[str, Any]:
        merged = dict(defaults)
        for key, value in loaded.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = cls._merge_defaults(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _create_default_config(self) -> Dict[str, Any]:
        """기본 설정을 생성하고 파일로 저장합니다."""
        default_config = self._default_config()
        self.save_config(default_config)
        return default_config

    def get(self, key_path: str, default=None):
        """점 표기법으로 설정값을 가져옵니다. 예: 'remote.base_url'"""
        keys = key_path.split('.')
        value = self.config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key_path: str, value):
        """점 표기법으로 설정값을 설정합니다."""
        keys = key_path.split('.')
        config = self.config

        for key in keys[:-1]:
            if key not in config or not isinstance(config[key], dict):
                config[key] = {}
            config = config[key]

        config[keys[-1]] = value

    def save_config(self, config_data=None):
        """설정을 파일로 저장합니다."""
        data = config_data if config_data is not None else self.config
        try:
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=4)
        except OSError as e:
            log.error("설정 파일 저장 오류: %s", e)

    # ---- 도메인 설정 변환 ----

    def schedule(self) -> Schedule:
        """schedule 섹션을 Schedule 로 변환합니다. 잘못된 값이면 ConfigurationError."""
        try:
            windows = [TimeWindow.parse(pair) for pair in self.get('schedule.lunch_windows', [])]
            starts = [parse_clock_time(text) for text in self.get('schedule.shift_start_times', [])]
            lunch_seconds = int(self.get('schedule.manual_lunch_seconds', MANUAL_LUNCH_SECONDS))
        except (TypeError, ValueError, IndexError, AttributeError) as e:
            raise ConfigurationError(f"schedule 설정 오류: {e}") from e
        if lunch_seconds <= 0:
            raise ConfigurationError("schedule.manual_lunch_seconds 는 양수여야 합니다")
        return Schedule(lunch_windows=windows, shift_start_times=starts, manual_lunch_seconds=lunch_seconds)

    def credentials(self) -> Credentials:
        defaults = Credentials()
        return Credentials(
            pause_password=str(self.get('credentials.pause_password', defaults.pause_password)),
            reset_password=str(self.get('credentials.reset_password', defaults.reset_password)),
            qc_code=str(self.get('credentials.qc_code', defaults.qc_code)),
            technician_code=str(self.get('credentials.technician_code', defaults.technician_code)),
        )


class TimeTrackerProgram:
    """키오스크 하나의 실행 단위. 협력 객체를 만들고 세션 컨트롤러에 연결합니다."""

    def __init__(self, config: ConfigManager):
        self.config = config
        self.kiosk_id = str(config.get('kiosk.id') or "")
        self._setup_paths()

        setup_logging(config.get('logging.level', 'INFO'),
                      os.path.join(self.log_folder, 'worktime_tracker.log'))
        log.info("%s %s 시작 (키오스크: %s)", config.get('app.name'), config.get('app.version'),
                 self.kiosk_id or '-')

        self.event_logger = EventLogger(self.log_folder, self.kiosk_id or "local")
        self.store = JsonStateStore(self.data_folder, self.kiosk_id or "local")
        self.sound = SoundPlayer(resource_path(config.get('audio.folder', 'assets')),
                                 enabled=bool(config.get('audio.enabled', True)))

        self.remote: Optional[RemoteDocumentStore] = None
        self.queue_store: Optional[QueueStore] = None
        base_url = config.get('remote.base_url')
        if base_url:
            self.remote = RemoteDocumentStore(
                base_url,
                timeout=float(config.get('remote.timeout', 5)),
                poll_interval=float(config.get('remote.poll_interval_sec', 2.0)),
            )
            self.queue_store = QueueStore(self.remote)
        else:
            log.warning("remote.base_url 이 설정되지 않아 로컬 전용으로 동작합니다")

        self.controller = SessionController(
            session=Session(config.schedule(), config.credentials()),
            store=self.store,
            remote=self.remote,
            queue_store=self.queue_store,
            sound=self.sound,
            audit=self.event_logger,
            kiosk_id=self.kiosk_id,
            report_folder=self.report_folder,
            push_interval_sec=float(config.get('remote.push_interval_sec', 5.0)),
        )
        self.controller.budget_exhausted_listeners.append(self._on_budget_exhausted)

        self.executor = SerialExecutor()
        self.ticker = Ticker(self.executor, self.controller.tick, interval=1.0)
        self.reader = RfidKeyboardReader(self.on_card_scanned)
        self._stop_event = threading.Event()

    def _setup_paths(self):
        data_folder = self.config.get('kiosk.data_folder') or os.path.join(os.path.expanduser('~'), 'worktime')
        self.data_folder = data_folder
        self.log_folder = os.path.join(data_folder, self.config.get('logging.log_folder', 'logs'))
        self.report_folder = os.path.join(data_folder, 'reports')
        for folder in (self.data_folder, self.log_folder, self.report_folder):
            if not ensure_directory_exists(folder):
                raise ConfigurationError(f"폴더를 만들 수 없습니다: {folder}")

    # ---- 콜백 (모두 실행기로 넘깁니다) ----

    def on_card_scanned(self, card_id: str):
        self.executor.submit(self._scan_and_report, card_id)

    def _scan_and_report(self, card_id: str):
        feedback = self.controller.scan(card_id)
        log.info("스캔 %s (%s): %s", card_id, self.controller.worker_name(card_id), feedback.value)
        return feedback

    def on_kiosk_snapshot(self, data: Dict[str, Any]):
        self.executor.submit(self.controller.on_remote_snapshot, data)

    def on_queue_list(self, items: List[Any]):
        self.executor.submit(self.controller.set_queue, items)

    def on_worker_documents(self, docs):
        self.executor.submit(self.controller.set_worker_names, worker_names_from_documents(docs))

    def _on_budget_exhausted(self):
        log.warning("작업 예산을 모두 사용했습니다. 남은 시간: %s", self.controller.session.countdown.timer_text)

    # ---- 실행 / 종료 ----

    def start(self):
        self.executor.start()
        try:
            restored = self.executor.call(self.controller.load_persisted)
        except (StorageError, SessionError) as e:
            log.error("저장된 상태를 불러올 수 없어 빈 세션으로 시작합니다: %s", e)
            restored = False
        self.event_logger.log_event('APP_START', {'restored': restored})

        if self.remote is not None and self.kiosk_id:
            self.remote.subscribe(self.kiosk_id, self.on_kiosk_snapshot)
            self.remote.subscribe_collection(WORKER_COLLECTION, self.on_worker_documents)
        if self.queue_store is not None:
            self.queue_store.subscribe(self.on_queue_list)

        self.ticker.start()
        self.reader.start()

    def run(self):
        self.start()
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)
        try:
            while not self._stop_event.wait(1.0):
                pass
        finally:
            self.on_closing()

    def _handle_signal(self, signum, frame):
        log.info("종료 신호 수신 (%s)", signum)
        self._stop_event.set()

    def on_closing(self):
        self.reader.stop()
        self.ticker.stop()
        try:
            self.executor.call(self.controller.persist, timeout=5.0)
        except RuntimeError as e:
            log.warning("종료 전 상태 저장을 건너뜁니다: %s", e)
        self.executor.stop()
        if self.remote is not None:
            self.remote.stop()
        self.event_logger.log_event('APP_END', {'at': datetime.datetime.now().isoformat()})
        self.event_logger.stop_logger()
        self.sound.close()
        pygame.quit()


def main():
    app = TimeTrackerProgram(ConfigManager())
    app.run()


if __name__ == "__main__":
    main()
