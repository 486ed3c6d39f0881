"""PaddleBillingClient 단위 테스트"""
import asyncio
from typing import Any, Dict, List

import httpx
import pytest

from services.paddle_billing_client import PaddleAPIError, PaddleBillingClient


class _DummyAsyncClient:
    """httpx.AsyncClient 대체용 간단한 더블"""

    def __init__(self, responses: List[Any], calls: List[Dict[str, Any]]) -> None:
        self._responses = responses
        self._calls = calls

    async def __aenter__(self) -> "_DummyAsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False

    async def request(self, method: str, url: str, headers=None, json=None) -> httpx.Response:  # noqa: D401 - 테스트 더블
        self._calls.append({"method": method, "url": url, "headers": headers, "json": json})
        try:
            response = self._responses.pop(0)
        except IndexError as exc:  # pragma: no cover - 테스트 보조 코드
            raise AssertionError("예상보다 많은 요청이 발생했습니다") from exc
        if isinstance(response, Exception):
            raise response
        return response


def _patch_async_client(monkeypatch, responses: List[Any]) -> List[Dict[str, Any]]:
    """httpx.AsyncClient를 더블로 교체하고 요청 기록을 돌려준다"""

    response_queue = list(responses)
    calls: List[Dict[str, Any]] = []

    def _factory(*args, **kwargs):  # noqa: D401 - 테스트 헬퍼
        return _DummyAsyncClient(response_queue, calls)

    monkeypatch.setattr("services.paddle_billing_client.httpx.AsyncClient", _factory)
    return calls


def _client(**kwargs) -> PaddleBillingClient:
    options = {"api_key": "test-key", "base_url": "https://example.com/", "backoff_factor": 0}
    options.update(kwargs)
    return PaddleBillingClient(**options)


def test_cancel_subscription_success(monkeypatch):
    """성공 응답을 반환하면 JSON을 그대로 전달한다"""

    response = httpx.Response(status_code=200, json={"status": "ok"})
    calls = _patch_async_client(monkeypatch, [response])

    result = asyncio.run(_client().cancel_subscription("sub_123"))

    assert result == {"status": "ok"}
    assert calls[0]["method"] == "POST"
    assert calls[0]["url"] == "https://example.com/subscriptions/sub_123/cancel"
    assert calls[0]["json"] == {"effective_from": "next_billing_period"}
    assert calls[0]["headers"]["Authorization"] == "Bearer test-key"


def test_cancel_subscription_rejects_unknown_timing():
    with pytest.raises(ValueError):
        asyncio.run(_client().cancel_subscription("sub_123", "tomorrow"))


def test_cancel_subscription_retry_then_success(monkeypatch):
    """재시도 가능 오류 뒤 성공하면 최종 성공 결과를 반환한다"""

    first = httpx.Response(status_code=500, json={"error": {"code": "server_error", "message": "boom"}})
    second = httpx.Response(status_code=200, json={"status": "ok"})
    calls = _patch_async_client(monkeypatch, [first, second])

    result = asyncio.run(_client(max_retries=1).cancel_subscription("sub_123", "immediately"))

    assert result == {"status": "ok"}
    assert len(calls) == 2


def test_retries_exhausted_raises_last_error(monkeypatch):
    responses = [httpx.Response(status_code=503, json={}) for _ in range(3)]
    calls = _patch_async_client(monkeypatch, responses)

    with pytest.raises(PaddleAPIError) as excinfo:
        asyncio.run(_client(max_retries=2).get_transaction("txn_1"))

    assert excinfo.value.status_code == 503
    assert str(excinfo.value) == "Paddle API 서비스가 일시적으로 불가합니다."
    assert len(calls) == 3


def test_network_error_mapped(monkeypatch):
    request = httpx.Request("GET", "https://example.com/transactions/txn_1")
    _patch_async_client(monkeypatch, [httpx.ConnectError("refused", request=request)])

    with pytest.raises(PaddleAPIError) as excinfo:
        asyncio.run(_client(max_retries=0).get_transaction("txn_1"))

    assert excinfo.value.code == "network_error"
    assert excinfo.value.status_code == 0


def test_error_mapping_subscription_not_found(monkeypatch):
    """구독을 찾지 못한 경우 매핑된 오류 메시지를 반환한다"""

    response = httpx.Response(
        status_code=404,
        json={"error": {"code": "subscription_not_found", "message": "not found"}},
    )
    _patch_async_client(monkeypatch, [response])

    with pytest.raises(PaddleAPIError) as excinfo:
        asyncio.run(_client().cancel_subscription("sub_404"))

    error = excinfo.value
    assert error.status_code == 404
    assert error.code == "subscription_not_found"
    assert str(error) == "Paddle 구독 정보를 찾을 수 없습니다."


def test_error_detail_used_for_unmapped_code(monkeypatch):
    response = httpx.Response(
        status_code=400,
        json={"error": {"code": "bad_request", "detail": "items[0].amount is invalid"}},
    )
    _patch_async_client(monkeypatch, [response])

    with pytest.raises(PaddleAPIError) as excinfo:
        asyncio.run(_client().create_refund("txn_1", [{"item_id": "txnitm_1", "type": "full"}]))

    assert str(excinfo.value) == "items[0].amount is invalid"
    assert excinfo.value.code == "bad_request"


def test_create_refund_payload(monkeypatch):
    response = httpx.Response(status_code=201, json={"data": {"id": "adj_1", "status": "pending_approval"}})
    calls = _patch_async_client(monkeypatch, [response])
    items = [{"item_id": "txnitm_1", "type": "partial", "amount": "500"}]

    result = asyncio.run(_client().create_refund("txn_1", items))

    assert result["data"]["id"] == "adj_1"
    assert calls[0]["url"] == "https://example.com/adjustments"
    assert calls[0]["json"] == {
        "action": "refund",
        "transaction_id": "txn_1",
        "reason": "requested_by_customer",
        "items": items,
    }


def test_adjustment_and_invoice_paths(monkeypatch):
    calls = _patch_async_client(
        monkeypatch,
        [
            httpx.Response(status_code=200, json={"data": {"id": "adj_1"}}),
            httpx.Response(status_code=200, json={"data": {"url": "https://cdn.example.com/inv.pdf"}}),
        ],
    )

    async def _run():
        client = _client()
        await client.get_adjustment("adj_1")
        return await client.get_transaction_invoice("txn_1")

    invoice = asyncio.run(_run())

    assert invoice["data"]["url"] == "https://cdn.example.com/inv.pdf"
    assert [call["url"] for call in calls] == [
        "https://example.com/adjustments/adj_1",
        "https://example.com/transactions/txn_1/invoice",
    ]
    assert all(call["method"] == "GET" for call in calls)


def test_missing_api_key_error():
    """API 키가 없으면 명확한 ValueError를 발생시킨다"""

    with pytest.raises(ValueError) as excinfo:
        PaddleBillingClient(api_key=" ")

    assert "Paddle 관리자 API 키" in str(excinfo.value)
