"""
구독 상태 → 사용자 프로필 플래그 투영
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from core.base_service import BaseService
from core.interfaces import IBillingStore

logger = logging.getLogger(__name__)


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    PAUSED = "paused"
    CANCELED = "canceled"
    EXPIRED = "expired"

    @classmethod
    def parse(cls, value: Any) -> Optional["SubscriptionStatus"]:
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        if normalized == "cancelled":
            normalized = "canceled"
        try:
            return cls(normalized)
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class ProfileFlags:
    active: bool
    on_trial: bool


_STATUS_FLAGS: Dict[SubscriptionStatus, ProfileFlags] = {
    SubscriptionStatus.ACTIVE: ProfileFlags(active=True, on_trial=False),
    SubscriptionStatus.TRIALING: ProfileFlags(active=False, on_trial=True),
    SubscriptionStatus.PAST_DUE: ProfileFlags(active=False, on_trial=False),
    SubscriptionStatus.PAUSED: ProfileFlags(active=False, on_trial=False),
    SubscriptionStatus.CANCELED: ProfileFlags(active=False, on_trial=False),
    SubscriptionStatus.EXPIRED: ProfileFlags(active=False, on_trial=False),
}


def project_status(status: Any) -> ProfileFlags:
    """구독 상태 문자열을 (active, on_trial) 플래그로 변환"""
    parsed = SubscriptionStatus.parse(status)
    if parsed is None:
        logger.warning("[PADDLE] unrecognized subscription status for profile: %r", status)
        return ProfileFlags(active=False, on_trial=False)
    return _STATUS_FLAGS[parsed]


class ProfileProjector(BaseService):
    """프로필 행은 구독 원장에서 파생된 읽기용 사본이므로 갱신 실패가 웹훅 실패로 번지지 않는다"""

    def __init__(self, store: IBillingStore):
        super().__init__(store)

    async def apply(self, user_id: str, status: Any, subscription_id: Optional[str] = None) -> bool:
        flags = project_status(status)
        parsed = SubscriptionStatus.parse(status)
        status_text = parsed.value if parsed else str(status or "")
        profile_data = {
            "subscription_active": flags.active,
            "is_on_free_trial": flags.on_trial,
            "subscription_status": status_text,
            # 해지된 구독은 프로필에서 연결을 끊는다
            "subscription_id": None if parsed is SubscriptionStatus.CANCELED else subscription_id,
        }
        try:
            await self.store.upsert_profile(user_id, profile_data)
        except Exception as e:
            self.logger.error(
                "[PADDLE] profile projection failed: user_id=%s status=%s error=%s",
                user_id,
                status_text,
                e,
            )
            return False

        self.logger.info(
            "[PADDLE] profile projected: user_id=%s active=%s on_trial=%s",
            user_id,
            flags.active,
            flags.on_trial,
        )
        return True
