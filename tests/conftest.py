"""공용 테스트 픽스처 - 메모리 기반 결제 저장소 더블"""
import itertools
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest

from core.interfaces import IBillingStore
from core.responses import StoreException
from services.event_store import EventStore
from services.profile_projector import ProfileProjector
from services.subscription_reconciler import SubscriptionReconciler
from services.transaction_reconciler import TransactionReconciler
from services.webhook_dispatcher import WebhookDispatcher
from services.webhook_processor import WebhookProcessor
from services.webhook_signature import compute_signature

WEBHOOK_SECRET = "pdl_ntfset_test_secret"


class InMemoryBillingStore(IBillingStore):
    """Supabase 테이블을 흉내 내는 저장소 더블

    fail_on 에 메서드 이름을 넣으면 해당 호출이 StoreException 을 낸다.
    """

    def __init__(self) -> None:
        self.webhook_events: List[Dict[str, Any]] = []
        self.subscriptions: Dict[str, Dict[str, Any]] = {}
        self.transactions: Dict[str, Dict[str, Any]] = {}
        self.profiles: Dict[str, Dict[str, Any]] = {}
        self.fail_on: Set[str] = set()
        self._ids = itertools.count(1)

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise StoreException(f"{operation} 실패: simulated", operation=operation)

    async def insert_webhook_event(self, event_type: str, event_id: Optional[str], payload: Dict[str, Any]) -> Dict[str, Any]:
        self._check("insert_webhook_event")
        row = {
            "id": next(self._ids),
            "event_type": event_type,
            "event_id": event_id,
            "payload": payload,
            "processed": False,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        self.webhook_events.append(row)
        return dict(row)

    async def mark_webhook_event_processed(self, record_id: Any) -> None:
        self._check("mark_webhook_event_processed")
        for row in self.webhook_events:
            if row["id"] == record_id:
                row["processed"] = True

    async def list_unprocessed_webhook_events(self, limit: int = 50) -> List[Dict[str, Any]]:
        self._check("list_unprocessed_webhook_events")
        return [dict(row) for row in self.webhook_events if not row["processed"]][:limit]

    async def get_subscription_by_paddle_id(self, paddle_subscription_id: str) -> Optional[Dict[str, Any]]:
        self._check("get_subscription_by_paddle_id")
        row = self.subscriptions.get(paddle_subscription_id)
        return dict(row) if row else None

    async def get_subscription_by_customer_id(self, paddle_customer_id: str) -> Optional[Dict[str, Any]]:
        self._check("get_subscription_by_customer_id")
        for row in reversed(list(self.subscriptions.values())):
            if row.get("paddle_customer_id") == paddle_customer_id:
                return dict(row)
        return None

    async def get_latest_subscription_for_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        self._check("get_latest_subscription_for_user")
        for row in reversed(list(self.subscriptions.values())):
            if row.get("user_id") == user_id:
                return dict(row)
        return None

    async def upsert_subscription(self, subscription_data: Dict[str, Any]) -> Dict[str, Any]:
        self._check("upsert_subscription")
        key = subscription_data["paddle_subscription_id"]
        row = self.subscriptions.get(key) or {"id": f"sub-row-{next(self._ids)}"}
        row.update(subscription_data)
        self.subscriptions[key] = row
        return dict(row)

    async def update_subscription(self, paddle_subscription_id: str, update_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self._check("update_subscription")
        row = self.subscriptions.get(paddle_subscription_id)
        if row is None:
            return None
        row.update(update_data)
        return dict(row)

    async def get_transaction_by_paddle_id(self, paddle_transaction_id: str) -> Optional[Dict[str, Any]]:
        self._check("get_transaction_by_paddle_id")
        row = self.transactions.get(paddle_transaction_id)
        return dict(row) if row else None

    async def upsert_transaction(self, transaction_data: Dict[str, Any]) -> Dict[str, Any]:
        self._check("upsert_transaction")
        key = transaction_data["paddle_transaction_id"]
        row = self.transactions.get(key) or {"id": f"txn-row-{next(self._ids)}"}
        row.update(transaction_data)
        self.transactions[key] = row
        return dict(row)

    async def upsert_profile(self, user_id: str, profile_data: Dict[str, Any]) -> Dict[str, Any]:
        self._check("upsert_profile")
        row = self.profiles.setdefault(user_id, {"id": user_id})
        row.update(profile_data)
        return dict(row)


@pytest.fixture
def store() -> InMemoryBillingStore:
    return InMemoryBillingStore()


@pytest.fixture
def projector(store) -> ProfileProjector:
    return ProfileProjector(store)


@pytest.fixture
def subscription_reconciler(store, projector) -> SubscriptionReconciler:
    return SubscriptionReconciler(store, projector)


@pytest.fixture
def transaction_reconciler(store, subscription_reconciler) -> TransactionReconciler:
    return TransactionReconciler(store, subscription_reconciler)


@pytest.fixture
def dispatcher(subscription_reconciler, transaction_reconciler) -> WebhookDispatcher:
    return WebhookDispatcher(subscription_reconciler, transaction_reconciler)


@pytest.fixture
def processor(store, dispatcher) -> WebhookProcessor:
    return WebhookProcessor(EventStore(store), dispatcher, WEBHOOK_SECRET)


def seed_subscription(store: InMemoryBillingStore, **fields: Any) -> Dict[str, Any]:
    """테스트용 구독 행 직접 삽입"""
    row = {
        "id": f"sub-row-{next(store._ids)}",
        "user_id": "u1",
        "paddle_subscription_id": "sub_1",
        "paddle_customer_id": "ctm_1",
        "status": "active",
        **fields,
    }
    store.subscriptions[row["paddle_subscription_id"]] = row
    return row


@pytest.fixture
def seed(store):
    def _seed(**fields: Any) -> Dict[str, Any]:
        return seed_subscription(store, **fields)

    return _seed


@pytest.fixture
def sign():
    """페이로드를 JSON 으로 직렬화하고 Paddle-Signature 헤더를 만든다"""
    def _sign(payload: Any, ts: str = "1700000000") -> Tuple[bytes, str]:
        raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        return raw, f"ts={ts};h1={compute_signature(raw, ts, WEBHOOK_SECRET)}"

    return _sign
