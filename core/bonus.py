"""보너스 자격 추적 (한 번 취소되면 세션 안에서는 되돌릴 수 없음)"""

from typing import Optional

REASON_QC_CREW = "QC (Crew) hold"
REASON_HOURS_EDITED = "Worker hours edited"
REASON_CANCELLED = "Cancelled by operator"


class BonusTracker:

    def __init__(self, eligible: bool = True, reason: Optional[str] = None):
        self._eligible = eligible
        self._reason = None if eligible else reason

    @property
    def eligible(self) -> bool:
        return self._eligible

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def revoke(self, reason: str) -> bool:
        """자격을 취소합니다. 이미 취소된 경우 처음 사유를 유지하고 False."""
        if not self._eligible:
            return False
        self._eligible = False
        self._reason = reason
        return True

    def restore(self, eligible: bool, reason: Optional[str]):
        """저장된 스냅샷을 적용합니다. 취소된 자격을 되살리지는 않습니다."""
        if not eligible:
            self.revoke(reason or REASON_CANCELLED)

    def reset(self):
        """세션을 완전히 비울 때만 사용합니다 (새 세션 = 새 자격)."""
        self._eligible = True
        self._reason = None
