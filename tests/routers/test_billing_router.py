"""결제 관리 라우터 테스트"""
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from main import app
from routers.billing_router import get_billing_service, get_current_user
from services.billing_service import BillingService


class StubPaddleClient:
    def __init__(self):
        self.calls = []

    async def cancel_subscription(self, subscription_id, effective_from="next_billing_period"):
        self.calls.append(("cancel", subscription_id, effective_from))
        return {"data": {"id": subscription_id}}

    async def get_transaction(self, transaction_id):
        return {"data": {"id": transaction_id, "details": {"line_items": [{"id": "txnitm_1"}]}}}

    async def create_refund(self, transaction_id, items, reason="requested_by_customer"):
        self.calls.append(("refund", transaction_id, items, reason))
        return {"data": {"id": "adj_1", "status": "pending_approval"}}

    async def get_adjustment(self, adjustment_id):
        return {"data": {"id": adjustment_id, "transaction_id": "txn_1", "status": "approved"}}

    async def get_transaction_invoice(self, transaction_id):
        return {"data": {"url": f"https://cdn.example.com/{transaction_id}.pdf"}}


@pytest.fixture
def paddle():
    return StubPaddleClient()


@pytest.fixture
def client(store, seed, paddle):
    seed(status="active")
    store.transactions["txn_1"] = {"paddle_transaction_id": "txn_1", "user_id": "u1"}
    app.dependency_overrides[get_current_user] = lambda: SimpleNamespace(id="u1", email="u1@example.com")
    app.dependency_overrides[get_billing_service] = lambda: BillingService(store, paddle)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_cancel_subscription(client, paddle):
    response = client.post("/api/v1/billing/subscriptions/cancel", json={"effective_from": "immediately"})

    assert response.status_code == 200
    assert paddle.calls == [("cancel", "sub_1", "immediately")]


def test_cancel_rejects_unknown_timing(client, paddle):
    response = client.post("/api/v1/billing/subscriptions/cancel", json={"effective_from": "someday"})

    assert response.status_code == 422
    assert paddle.calls == []


def test_partial_refund(client, paddle):
    response = client.post("/api/v1/billing/refunds", json={"transaction_id": "txn_1", "amount": 2.5})

    assert response.status_code == 200
    assert response.json()["data"]["refund"]["id"] == "adj_1"
    assert paddle.calls[-1][2] == [{"item_id": "txnitm_1", "type": "partial", "amount": "250"}]


def test_refund_rejects_non_positive_amount(client):
    response = client.post("/api/v1/billing/refunds", json={"transaction_id": "txn_1", "amount": 0})

    assert response.status_code == 422


def test_refund_of_unknown_transaction_is_404(client):
    response = client.post("/api/v1/billing/refunds", json={"transaction_id": "txn_other"})

    assert response.status_code == 404


def test_refund_status(client):
    response = client.get("/api/v1/billing/refunds/adj_1")

    assert response.status_code == 200
    assert response.json()["data"]["refund"]["status"] == "approved"


def test_invoice_url(client):
    response = client.get("/api/v1/billing/transactions/txn_1/invoice")

    assert response.status_code == 200
    assert response.json()["data"]["url"] == "https://cdn.example.com/txn_1.pdf"


def test_requires_bearer_token(store, paddle):
    app.dependency_overrides[get_billing_service] = lambda: BillingService(store, paddle)
    try:
        response = TestClient(app).get("/api/v1/billing/transactions/txn_1/invoice")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code in (401, 403)
