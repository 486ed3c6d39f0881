"""
사용자 결제 관리 서비스
구독 해지, 환불 요청/조회, 인보이스 조회를 Paddle Billing API 로 위임한다.
로컬 원장은 웹훅으로만 갱신되므로 여기서는 읽기만 한다.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from core.base_service import BaseService
from core.interfaces import IBillingStore
from core.responses import BusinessException, ExternalServiceException, NotFoundException, ValidationException
from services.paddle_billing_client import PaddleAPIError, PaddleBillingClient
from services.profile_projector import SubscriptionStatus

DEFAULT_REFUND_REASON = "requested_by_customer"


def major_to_minor(amount: Decimal) -> str:
    """주 통화 단위 금액을 Paddle 최소 단위 문자열로 변환"""
    minor = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return str(minor)


class BillingService(BaseService):
    """로그인 사용자의 Paddle 결제 작업"""

    def __init__(self, store: IBillingStore, paddle_client: PaddleBillingClient):
        super().__init__(store)
        self.paddle = paddle_client

    async def cancel_subscription(self, user_id: str, effective_from: str = "next_billing_period") -> Dict[str, Any]:
        """사용자의 최신 구독을 해지 요청

        실제 상태 변경은 이후 도착하는 subscription.canceled/updated 웹훅이 반영한다.
        """
        subscription = await self.store.get_latest_subscription_for_user(user_id)
        if not subscription or not subscription.get("paddle_subscription_id"):
            raise NotFoundException("해지할 구독이 없습니다")

        status = SubscriptionStatus.parse(subscription.get("status"))
        if status is SubscriptionStatus.CANCELED:
            raise BusinessException("이미 해지된 구독입니다", "ALREADY_CANCELED", 409)

        paddle_subscription_id = subscription["paddle_subscription_id"]
        self.logger.info(
            "[PADDLE] cancel requested: user=%s subscription=%s effective_from=%s",
            user_id,
            paddle_subscription_id,
            effective_from,
        )
        response = await self._call(self.paddle.cancel_subscription(paddle_subscription_id, effective_from))
        return {
            "subscription_id": paddle_subscription_id,
            "effective_from": effective_from,
            "paddle": response.get("data"),
        }

    async def refund_transaction(
        self,
        user_id: str,
        transaction_id: str,
        reason: Optional[str] = None,
        amount: Optional[Decimal] = None,
    ) -> Dict[str, Any]:
        """거래 환불(adjustment) 생성

        amount 가 없으면 모든 항목을 전액 환불하고, 있으면 첫 항목에서 부분 환불한다.
        """
        await self._require_owned_transaction(user_id, transaction_id)

        transaction = await self._call(self.paddle.get_transaction(transaction_id))
        line_items = ((transaction.get("data") or {}).get("details") or {}).get("line_items") or []
        if not line_items:
            raise ValidationException("환불할 거래 항목이 없습니다")

        items = self._build_refund_items(line_items, amount)
        self.logger.info(
            "[PADDLE] refund requested: user=%s transaction=%s type=%s amount=%s",
            user_id,
            transaction_id,
            items[0]["type"],
            amount,
        )
        response = await self._call(
            self.paddle.create_refund(transaction_id, items, reason=reason or DEFAULT_REFUND_REASON)
        )
        return response.get("data") or {}

    async def get_refund(self, user_id: str, adjustment_id: str) -> Dict[str, Any]:
        """환불 처리 상태 조회"""
        response = await self._call(self.paddle.get_adjustment(adjustment_id))
        adjustment = response.get("data") or {}

        transaction_id = adjustment.get("transaction_id")
        if not transaction_id:
            raise NotFoundException("환불 요청을 찾을 수 없습니다")
        await self._require_owned_transaction(user_id, transaction_id)
        return adjustment

    async def get_invoice_url(self, user_id: str, transaction_id: str) -> str:
        """거래 인보이스 PDF 다운로드 URL"""
        await self._require_owned_transaction(user_id, transaction_id)

        response = await self._call(self.paddle.get_transaction_invoice(transaction_id))
        url = (response.get("data") or {}).get("url")
        if not url:
            raise NotFoundException("인보이스가 아직 발행되지 않았습니다")
        return url

    async def _require_owned_transaction(self, user_id: str, transaction_id: str) -> Dict[str, Any]:
        row = await self.store.get_transaction_by_paddle_id(transaction_id)
        # 다른 사용자의 거래는 존재 여부도 드러내지 않는다
        if not row or row.get("user_id") != user_id:
            raise NotFoundException("거래 정보를 찾을 수 없습니다")
        return row

    @staticmethod
    def _build_refund_items(line_items: List[Dict[str, Any]], amount: Optional[Decimal]) -> List[Dict[str, Any]]:
        if amount is None:
            return [{"item_id": item.get("id"), "type": "full"} for item in line_items if item.get("id")]

        if amount <= 0:
            raise ValidationException("환불 금액은 0보다 커야 합니다")
        first = line_items[0]
        return [{"item_id": first.get("id"), "type": "partial", "amount": major_to_minor(amount)}]

    async def _call(self, request) -> Dict[str, Any]:
        try:
            return await request
        except PaddleAPIError as e:
            status_code = e.status_code if 400 <= e.status_code < 500 else 502
            self.logger.error("[PADDLE] billing API error: status=%s code=%s message=%s", e.status_code, e.code, e)
            raise ExternalServiceException("Paddle", str(e), status_code) from e
