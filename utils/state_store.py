"""로컬 상태 저장소 (키-값 JSON 파일)"""

import json
import os
import threading
from typing import Any, Dict, Optional

from utils.exceptions import StorageError
from utils.file_handler import ensure_directory_exists, get_safe_filename


class JsonStateStore:
    """키 단위로 값을 저장하는 JSON 파일 저장소.

    값은 JSON으로 직렬화 가능한 형태(dict/list/str/int/float/bool/None)여야 하며,
    None 값도 그대로 저장되어 로드 시 구분됩니다.
    """

    def __init__(self, folder: str, kiosk_id: str = "local"):
        self.folder = folder
        self.file_path = os.path.join(folder, f"_session_state_{get_safe_filename(kiosk_id or 'local')}.json")
        self._lock = threading.Lock()
        self._data: Dict[str, Any] = {}
        ensure_directory_exists(folder)
        self._data = self._read_file()

    def _read_file(self) -> Dict[str, Any]:
        if not os.path.exists(self.file_path):
            return {}
        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"상태 파일을 읽을 수 없습니다: {self.file_path} ({e})") from e
        if not isinstance(data, dict):
            raise StorageError(f"상태 파일 형식이 올바르지 않습니다: {self.file_path}")
        return data

    def _write_file(self, data: Dict[str, Any]):
        tmp_path = self.file_path + ".tmp"
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.file_path)
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"상태 파일 저장 실패: {e}") from e

    def save(self, key: str, value: Any):
        with self._lock:
            data = dict(self._data)
            data[key] = value
            self._write_file(data)
            self._data = data

    def save_many(self, values: Dict[str, Any]):
        """여러 키를 한 번의 파일 쓰기로 저장합니다."""
        with self._lock:
            data = dict(self._data)
            data.update(values)
            self._write_file(data)
            self._data = data

    def load(self, key: str, default: Optional[Any] = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def remove(self, key: str):
        with self._lock:
            if key in self._data:
                data = {k: v for k, v in self._data.items() if k != key}
                self._write_file(data)
                self._data = data
