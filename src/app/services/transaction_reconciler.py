"""
거래 원장 반영
paddle_transaction_id 를 키로 upsert 하므로 같은 이벤트가 몇 번 와도 한 행만 남는다.
"""
from decimal import Decimal
from typing import Any, Dict, Optional

from core.base_service import BaseService
from core.interfaces import IBillingStore
from services.field_extractor import extract_billing_details, resolve_user_id
from services.profile_projector import SubscriptionStatus
from services.reconcile_result import ReconcileOutcome, ReconcileResult
from services.subscription_reconciler import SubscriptionReconciler

TRANSACTION_STATUSES = {
    "billed",
    "paid",
    "past_due",
    "payment_failed",
    "canceled",
    "revised",
    "completed",
    "failed",
    "unknown",
}

UNKNOWN_STATUS = "unknown"


class TransactionReconciler(BaseService):
    """transaction.* 이벤트를 거래 원장에 반영"""

    def __init__(self, store: IBillingStore, subscriptions: SubscriptionReconciler):
        super().__init__(store)
        self.subscriptions = subscriptions

    async def upsert(self, event: Dict[str, Any], *, status: Optional[str] = None) -> ReconcileResult:
        """거래 생성/갱신

        status 가 주어지면 이벤트 종류에서 정해진 상태로 기록하고, 아니면 페이로드의
        상태 문자열을 그대로 쓴다.
        """
        details = extract_billing_details(event)
        if not details.transaction_id:
            self.logger.warning("[PADDLE] %s without transaction id; skipped", details.event_type)
            return ReconcileResult(ReconcileOutcome.SKIPPED, "missing_transaction_id")

        user_id = await resolve_user_id(event, self.store)
        if not user_id:
            self.logger.warning(
                "[PADDLE] skipping transaction %s: could not determine user_id (subscription=%s customer=%s event=%s)",
                details.transaction_id,
                details.subscription_id,
                details.customer_id,
                details.event_type,
            )
            return ReconcileResult(
                ReconcileOutcome.SKIPPED,
                "user_not_found",
                {"transaction_id": details.transaction_id},
            )

        subscription_row = None
        if details.subscription_id:
            subscription_row = await self.store.get_subscription_by_paddle_id(details.subscription_id)

        resolved_status = status or details.status or UNKNOWN_STATUS
        if resolved_status not in TRANSACTION_STATUSES:
            self.logger.info("[PADDLE] passing through provider transaction status %r", resolved_status)
        amount = details.total if details.total is not None else details.grand_total

        row = {
            "user_id": user_id,
            "subscription_id": subscription_row.get("id") if subscription_row else None,
            "paddle_subscription_id": details.subscription_id,
            "paddle_transaction_id": details.transaction_id,
            "amount": amount if amount is not None else Decimal("0.00"),
            "currency": details.currency_code,
            "status": resolved_status,
            "invoice_id": details.invoice_id,
            "invoice_number": details.invoice_number,
            "billed_at": details.billed_at,
            "customer_id": details.customer_id,
            "collection_mode": details.collection_mode,
            "origin": details.origin,
            "subtotal": details.subtotal,
            "tax_total": details.tax_total,
            "fee_total": details.fee_total,
            "discount_total": details.discount_total,
            "grand_total": details.grand_total,
            "payment_status": details.payment_status,
            "payment_method_type": details.payment_method_type,
            "billing_period_start": details.billing_period_start,
            "billing_period_end": details.billing_period_end,
            "raw_transaction_data": details.raw,
        }
        if details.created_at:
            row["created_at"] = details.created_at

        existing = await self.store.get_transaction_by_paddle_id(details.transaction_id)
        saved = await self.store.upsert_transaction(row)
        outcome = ReconcileOutcome.UPDATED if existing else ReconcileOutcome.CREATED

        self.logger.info(
            "[PADDLE] transaction %s: id=%s user=%s status=%s amount=%s %s",
            outcome.value,
            details.transaction_id,
            user_id,
            resolved_status,
            row["amount"],
            details.currency_code,
        )

        result = ReconcileResult(
            outcome,
            detail={
                "transaction_id": details.transaction_id,
                "status": resolved_status,
                "row_id": saved.get("id"),
            },
        )

        if resolved_status == "completed" and subscription_row:
            result.detail["subscription"] = (await self._sync_subscription_on_completion(subscription_row, amount)).to_dict()
        elif resolved_status == "completed" and details.subscription_id:
            self.logger.warning(
                "[PADDLE] completed transaction %s references unknown subscription %s",
                details.transaction_id,
                details.subscription_id,
            )

        return result

    async def _sync_subscription_on_completion(
        self,
        subscription_row: Dict[str, Any],
        amount: Optional[Decimal],
    ) -> ReconcileResult:
        """결제 완료 시 체험 중인 구독을 active 로 승격

        체험 가입 결제는 금액 0 으로 completed 가 오므로 승격하지 않는다.
        페이로드에 실린 구독 상태는 따르지 않는다.
        """
        current = SubscriptionStatus.parse(subscription_row.get("status"))
        if current is not SubscriptionStatus.TRIALING:
            return ReconcileResult(ReconcileOutcome.IGNORED, "subscription_unchanged")
        if amount is not None and amount <= 0:
            self.logger.info(
                "[PADDLE] zero-amount completed transaction for trialing subscription %s; trial kept",
                subscription_row.get("paddle_subscription_id"),
            )
            return ReconcileResult(ReconcileOutcome.IGNORED, "trial_signup")
        return await self.subscriptions.promote_to_active(subscription_row, reason="transaction.completed")
