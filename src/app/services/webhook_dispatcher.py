"""
Paddle event-type dispatch.

Event types form a closed enum; anything Paddle sends that is not listed maps
to ``PaddleEventType.UNKNOWN`` whose arm is an intentional no-op so the
provider never retries events this service does not track.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from services.reconcile_result import ReconcileOutcome, ReconcileResult
from services.subscription_reconciler import SubscriptionReconciler
from services.transaction_reconciler import TransactionReconciler

logger = logging.getLogger(__name__)


class PaddleEventType(str, Enum):
    SUBSCRIPTION_CREATED = "subscription.created"
    SUBSCRIPTION_ACTIVATED = "subscription.activated"
    SUBSCRIPTION_TRIALING = "subscription.trialing"
    SUBSCRIPTION_UPDATED = "subscription.updated"
    SUBSCRIPTION_PAST_DUE = "subscription.past_due"
    SUBSCRIPTION_PAUSED = "subscription.paused"
    SUBSCRIPTION_RESUMED = "subscription.resumed"
    SUBSCRIPTION_CANCELED = "subscription.canceled"

    TRANSACTION_CREATED = "transaction.created"
    TRANSACTION_READY = "transaction.ready"
    TRANSACTION_UPDATED = "transaction.updated"
    TRANSACTION_BILLED = "transaction.billed"
    TRANSACTION_PAID = "transaction.paid"
    TRANSACTION_COMPLETED = "transaction.completed"
    TRANSACTION_PAST_DUE = "transaction.past_due"
    TRANSACTION_PAYMENT_FAILED = "transaction.payment_failed"
    TRANSACTION_CANCELED = "transaction.canceled"
    TRANSACTION_REVISED = "transaction.revised"
    TRANSACTION_FAILED = "transaction.failed"

    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PaddleEventType":
        normalized = (value or "").strip().lower().replace("cancelled", "canceled")
        try:
            return cls(normalized)
        except ValueError:
            return cls.UNKNOWN


# 이벤트 종류 자체가 거래 상태를 결정하는 경우
TRANSACTION_STATUS_BY_EVENT: Dict[PaddleEventType, str] = {
    PaddleEventType.TRANSACTION_BILLED: "billed",
    PaddleEventType.TRANSACTION_PAID: "paid",
    PaddleEventType.TRANSACTION_COMPLETED: "completed",
    PaddleEventType.TRANSACTION_PAST_DUE: "past_due",
    PaddleEventType.TRANSACTION_PAYMENT_FAILED: "payment_failed",
    PaddleEventType.TRANSACTION_CANCELED: "canceled",
    PaddleEventType.TRANSACTION_REVISED: "revised",
    PaddleEventType.TRANSACTION_FAILED: "failed",
}


@dataclass(slots=True)
class DispatchResult:
    event_type: str
    handled: bool
    result: ReconcileResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "handled": self.handled,
            **self.result.to_dict(),
        }


class WebhookDispatcher:
    """검증된 이벤트를 알맞은 원장 반영기로 보낸다. 반영기 예외는 그대로 전파"""

    def __init__(self, subscriptions: SubscriptionReconciler, transactions: TransactionReconciler):
        self.subscriptions = subscriptions
        self.transactions = transactions

    async def dispatch(self, event_type: str, payload: Dict[str, Any]) -> DispatchResult:
        kind = PaddleEventType.parse(event_type)
        event = {**payload, "event_type": kind.value if kind is not PaddleEventType.UNKNOWN else event_type}

        match kind:
            case PaddleEventType.SUBSCRIPTION_CREATED | PaddleEventType.SUBSCRIPTION_ACTIVATED:
                result = await self.subscriptions.create(event)
            case PaddleEventType.SUBSCRIPTION_TRIALING:
                result = await self.subscriptions.mark_trialing(event)
            case PaddleEventType.SUBSCRIPTION_UPDATED | PaddleEventType.SUBSCRIPTION_PAST_DUE | PaddleEventType.SUBSCRIPTION_PAUSED:
                result = await self.subscriptions.sync(event)
            case PaddleEventType.SUBSCRIPTION_RESUMED:
                result = await self.subscriptions.sync(event, clear_cancellation=True)
            case PaddleEventType.SUBSCRIPTION_CANCELED:
                result = await self.subscriptions.cancel(event)
            case (
                PaddleEventType.TRANSACTION_CREATED
                | PaddleEventType.TRANSACTION_READY
                | PaddleEventType.TRANSACTION_UPDATED
            ):
                result = await self.transactions.upsert(event)
            case (
                PaddleEventType.TRANSACTION_BILLED
                | PaddleEventType.TRANSACTION_PAID
                | PaddleEventType.TRANSACTION_COMPLETED
                | PaddleEventType.TRANSACTION_PAST_DUE
                | PaddleEventType.TRANSACTION_PAYMENT_FAILED
                | PaddleEventType.TRANSACTION_CANCELED
                | PaddleEventType.TRANSACTION_REVISED
                | PaddleEventType.TRANSACTION_FAILED
            ):
                result = await self.transactions.upsert(event, status=TRANSACTION_STATUS_BY_EVENT[kind])
            case PaddleEventType.UNKNOWN:
                logger.info("[PADDLE] unhandled webhook event acknowledged: %s", event_type)
                return DispatchResult(
                    event_type=event_type or "",
                    handled=False,
                    result=ReconcileResult(ReconcileOutcome.IGNORED, "unhandled_event_type"),
                )

        logger.info("[PADDLE] dispatched %s -> %s", kind.value, result.outcome.value)
        return DispatchResult(event_type=kind.value, handled=True, result=result)
