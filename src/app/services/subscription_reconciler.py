"""
구독 원장 상태 머신
Paddle 이 보내는 상태 문자열을 그대로 신뢰하고(마지막 수신 우선), 전이 후에는
항상 프로필 플래그를 다시 계산한다.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.base_service import BaseService
from core.interfaces import IBillingStore
from services.field_extractor import (
    BillingDetails,
    extract_billing_details,
    resolve_user_id,
)
from services.profile_projector import ProfileProjector, SubscriptionStatus
from services.reconcile_result import ReconcileOutcome, ReconcileResult

# 생애주기 순서 - 낮은 단계로의 역행은 경고만 남긴다
_LIFECYCLE_RANK = {
    SubscriptionStatus.TRIALING: 0,
    SubscriptionStatus.ACTIVE: 1,
    SubscriptionStatus.PAST_DUE: 1,
    SubscriptionStatus.PAUSED: 1,
    SubscriptionStatus.CANCELED: 2,
    SubscriptionStatus.EXPIRED: 2,
}


def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def _billing_fields(details: BillingDetails) -> Dict[str, Any]:
    """이벤트에 실려 온 기간/가격 필드만 (없는 값으로 덮어쓰지 않음)"""
    return _compact({
        "paddle_customer_id": details.customer_id,
        "plan_id": details.price_id,
        "product_id": details.product_id,
        "price": details.unit_price,
        "currency_code": details.currency_code,
        "billing_interval": details.billing_interval,
        "billing_frequency": details.billing_frequency,
        "current_period_start": details.current_period_start,
        "current_period_end": details.current_period_end,
        "next_billed_at": details.next_billed_at,
        "trial_start_date": details.trial_start,
        "trial_end_date": details.trial_end,
    })


class SubscriptionReconciler(BaseService):
    """subscription.* 이벤트를 구독 원장에 반영"""

    def __init__(self, store: IBillingStore, projector: ProfileProjector):
        super().__init__(store)
        self.projector = projector

    async def create(self, event: Dict[str, Any], *, default_status: Optional[str] = None) -> ReconcileResult:
        """구독 생성 (이미 있으면 같은 키로 덮어써 재전달에도 한 행 유지)"""
        details = extract_billing_details(event)
        status = details.status or default_status

        if not details.subscription_id:
            self.logger.warning("[PADDLE] %s without subscription id; skipped", details.event_type)
            return ReconcileResult(ReconcileOutcome.SKIPPED, "missing_subscription_id")
        if not status:
            self.logger.warning(
                "[PADDLE] %s for %s without status; skipped",
                details.event_type,
                details.subscription_id,
            )
            return ReconcileResult(ReconcileOutcome.SKIPPED, "missing_status")

        user_id = await resolve_user_id(event, self.store)
        if not user_id:
            self.logger.warning(
                "[PADDLE] %s for %s has no resolvable user; skipped",
                details.event_type,
                details.subscription_id,
            )
            return ReconcileResult(
                ReconcileOutcome.SKIPPED,
                "user_not_found",
                {"subscription_id": details.subscription_id},
            )

        existing = await self.store.get_subscription_by_paddle_id(details.subscription_id)
        if existing:
            self._warn_on_regression(existing, status, details)

        row = {
            **_billing_fields(details),
            "user_id": user_id,
            "paddle_subscription_id": details.subscription_id,
            "status": status,
            "canceled_at": details.canceled_at,
            "last_event_type": details.event_type,
        }
        saved = await self.store.upsert_subscription(row)
        await self.projector.apply(user_id, status, details.subscription_id)

        outcome = ReconcileOutcome.UPDATED if existing else ReconcileOutcome.CREATED
        self.logger.info(
            "[PADDLE] subscription %s: id=%s user=%s status=%s",
            outcome.value,
            details.subscription_id,
            user_id,
            status,
        )
        return ReconcileResult(outcome, detail={"subscription_id": details.subscription_id, "status": status, "row_id": saved.get("id")})

    async def mark_trialing(self, event: Dict[str, Any]) -> ReconcileResult:
        """trialing 전이 - 행이 없으면 생성으로 취급"""
        details = extract_billing_details(event)
        if not details.subscription_id:
            self.logger.warning("[PADDLE] %s without subscription id; skipped", details.event_type)
            return ReconcileResult(ReconcileOutcome.SKIPPED, "missing_subscription_id")

        existing = await self.store.get_subscription_by_paddle_id(details.subscription_id)
        if not existing:
            return await self.create(event, default_status=SubscriptionStatus.TRIALING.value)

        update = {
            **_billing_fields(details),
            "status": SubscriptionStatus.TRIALING.value,
            "canceled_at": None,
            "last_event_type": details.event_type,
        }
        return await self._apply_update(existing, update, details)

    async def sync(self, event: Dict[str, Any], *, clear_cancellation: bool = False) -> ReconcileResult:
        """공급자 상태로 동기화 (updated / past_due / paused / resumed)"""
        details = extract_billing_details(event)
        if not details.subscription_id:
            self.logger.warning("[PADDLE] %s without subscription id; skipped", details.event_type)
            return ReconcileResult(ReconcileOutcome.SKIPPED, "missing_subscription_id")
        if not details.status:
            self.logger.warning(
                "[PADDLE] %s for %s without status; skipped",
                details.event_type,
                details.subscription_id,
            )
            return ReconcileResult(ReconcileOutcome.SKIPPED, "missing_status")

        existing = await self.store.get_subscription_by_paddle_id(details.subscription_id)
        if not existing:
            self.logger.warning(
                "[PADDLE] %s for unknown subscription %s; awaiting create or backfill",
                details.event_type,
                details.subscription_id,
            )
            return ReconcileResult(
                ReconcileOutcome.NOT_FOUND,
                "subscription_not_found",
                {"subscription_id": details.subscription_id},
            )

        update = {
            **_billing_fields(details),
            "status": details.status,
            "last_event_type": details.event_type,
        }
        if clear_cancellation:
            update["canceled_at"] = None
        elif "canceled_at" in details.raw:
            update["canceled_at"] = details.canceled_at
        return await self._apply_update(existing, update, details)

    async def cancel(self, event: Dict[str, Any]) -> ReconcileResult:
        """해지 - canceled_at 은 이벤트 값, 없으면 기존 값, 그것도 없으면 현재 시각"""
        details = extract_billing_details(event)
        if not details.subscription_id:
            self.logger.warning("[PADDLE] %s without subscription id; skipped", details.event_type)
            return ReconcileResult(ReconcileOutcome.SKIPPED, "missing_subscription_id")

        existing = await self.store.get_subscription_by_paddle_id(details.subscription_id)
        if not existing:
            self.logger.warning(
                "[PADDLE] cancellation for unknown subscription %s; nothing to update",
                details.subscription_id,
            )
            return ReconcileResult(
                ReconcileOutcome.NOT_FOUND,
                "subscription_not_found",
                {"subscription_id": details.subscription_id},
            )

        # 재전달 시 기존 해지 시각 유지
        canceled_at = details.canceled_at or existing.get("canceled_at") or datetime.now(timezone.utc)
        update = {
            **_billing_fields(details),
            "status": SubscriptionStatus.CANCELED.value,
            "canceled_at": canceled_at,
            "last_event_type": details.event_type,
        }
        return await self._apply_update(existing, update, details)

    async def promote_to_active(self, subscription_row: Dict[str, Any], *, reason: str) -> ReconcileResult:
        """체험 기간 중 결제 완료 → active 로 승격"""
        paddle_subscription_id = subscription_row.get("paddle_subscription_id")
        updated = await self.store.update_subscription(
            paddle_subscription_id,
            {"status": SubscriptionStatus.ACTIVE.value, "last_event_type": reason},
        )
        if not updated:
            return ReconcileResult(
                ReconcileOutcome.NOT_FOUND,
                "subscription_not_found",
                {"subscription_id": paddle_subscription_id},
            )

        user_id = updated.get("user_id") or subscription_row.get("user_id")
        if user_id:
            await self.projector.apply(user_id, SubscriptionStatus.ACTIVE.value, paddle_subscription_id)
        self.logger.info("[PADDLE] trial converted to paid: subscription=%s user=%s", paddle_subscription_id, user_id)
        return ReconcileResult(
            ReconcileOutcome.UPDATED,
            detail={"subscription_id": paddle_subscription_id, "status": SubscriptionStatus.ACTIVE.value},
        )

    async def _apply_update(
        self,
        existing: Dict[str, Any],
        update: Dict[str, Any],
        details: BillingDetails,
    ) -> ReconcileResult:
        status = update["status"]
        self._warn_on_regression(existing, status, details)

        updated = await self.store.update_subscription(details.subscription_id, update)
        if not updated:
            # 조회와 갱신 사이에 행이 사라진 경우
            self.logger.warning("[PADDLE] subscription %s vanished before update", details.subscription_id)
            return ReconcileResult(
                ReconcileOutcome.NOT_FOUND,
                "subscription_not_found",
                {"subscription_id": details.subscription_id},
            )

        user_id = updated.get("user_id") or existing.get("user_id")
        if user_id:
            await self.projector.apply(user_id, status, details.subscription_id)
        else:
            self.logger.warning("[PADDLE] subscription %s has no owner; profile not projected", details.subscription_id)

        self.logger.info(
            "[PADDLE] subscription updated: id=%s status=%s->%s event=%s",
            details.subscription_id,
            existing.get("status"),
            status,
            details.event_type,
        )
        return ReconcileResult(
            ReconcileOutcome.UPDATED,
            detail={"subscription_id": details.subscription_id, "status": status},
        )

    def _warn_on_regression(self, existing: Dict[str, Any], incoming: Any, details: BillingDetails) -> None:
        current = SubscriptionStatus.parse(existing.get("status"))
        target = SubscriptionStatus.parse(incoming)
        if current is None or target is None:
            return
        if _LIFECYCLE_RANK[target] < _LIFECYCLE_RANK[current]:
            self.logger.warning(
                "[PADDLE] subscription %s status regressed %s -> %s via %s (applied; provider is authoritative)",
                details.subscription_id,
                current.value,
                target.value,
                details.event_type,
            )
