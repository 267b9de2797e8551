"""효과음 재생 (pygame.mixer)"""

import logging
from typing import Dict, Optional

import pygame

from utils.file_handler import find_sound_file

log = logging.getLogger(__name__)


class SoundPlayer:
    """이름으로 효과음을 재생합니다. 재생 결과는 기다리지 않습니다."""

    def __init__(self, folder: str, enabled: bool = True):
        self.folder = folder
        self.enabled = enabled
        self._sounds: Dict[str, Optional[pygame.mixer.Sound]] = {}
        if self.enabled:
            try:
                pygame.mixer.init()
            except pygame.error as e:
                log.warning("오디오 장치를 초기화할 수 없어 소리를 끕니다: %s", e)
                self.enabled = False

    def _load(self, name: str) -> Optional[pygame.mixer.Sound]:
        if name in self._sounds:
            return self._sounds[name]
        sound = None
        path = find_sound_file(self.folder, name)
        if path is None:
            log.warning("사운드 파일을 찾을 수 없습니다: %s (%s)", name, self.folder)
        else:
            try:
                sound = pygame.mixer.Sound(path)
            except pygame.error as e:
                log.warning("사운드 파일을 불러올 수 없습니다: %s (%s)", path, e)
        self._sounds[name] = sound
        return sound

    def play(self, name: str):
        if not self.enabled:
            return
        sound = self._load(name)
        if sound is not None:
            sound.play()

    def close(self):
        if self.enabled:
            pygame.mixer.quit()
            self.enabled = False
        self._sounds.clear()
