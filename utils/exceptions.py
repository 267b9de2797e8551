"""커스텀 예외 클래스들"""


class TimeTrackerError(Exception):
    """작업 시간 추적 시스템의 기본 예외 클래스"""
    pass


class ConfigurationError(TimeTrackerError):
    """설정 관련 오류"""
    pass


class StorageError(TimeTrackerError):
    """로컬 상태 저장/로드 관련 오류"""
    pass


class RemoteSyncError(TimeTrackerError):
    """원격 문서 저장소 통신 관련 오류"""
    pass


class CommandParseError(TimeTrackerError):
    """원격 명령 형식 오류"""

    def __init__(self, command: str, reason: str):
        super().__init__(f"{reason}: {command!r}")
        self.command = command
        self.reason = reason


class SessionError(TimeTrackerError):
    """세션 관리 관련 오류"""
    pass
