"""파일 처리 유틸리티 모듈"""

import os
import re
import sys
from typing import Optional


def resource_path(relative_path: str) -> str:
    """ PyInstaller로 패키징했을 때의 리소스 경로를 가져옵니다. """
    try:
        base_path = sys._MEIPASS
    except AttributeError:
        # 메인 스크립트의 디렉토리를 기준으로 설정
        base_path = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(base_path, relative_path)


def ensure_directory_exists(directory_path: str) -> bool:
    """디렉토리가 없으면 생성합니다."""
    try:
        os.makedirs(directory_path, exist_ok=True)
        return True
    except OSError:
        return False


def get_safe_filename(filename: str) -> str:
    """파일명에서 안전하지 않은 문자를 제거합니다."""
    safe_name = re.sub(r'[<>:"/\\|?*]', '_', filename)
    return safe_name.strip()


def find_sound_file(folder: str, name: str) -> Optional[str]:
    """사운드 이름에 해당하는 파일(.wav, .mp3, .ogg)을 찾습니다."""
    if not os.path.isdir(folder):
        return None
    for ext in ('.wav', '.mp3', '.ogg'):
        candidate = os.path.join(folder, f"{name}{ext}")
        if os.path.exists(candidate):
            return candidate
    return None
