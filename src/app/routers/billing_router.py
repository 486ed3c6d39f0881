"""
결제 관리 API 라우터
로그인 사용자의 구독 해지, 환불 요청/조회, 인보이스 다운로드 URL 제공
"""
import logging

from fastapi import APIRouter, Depends, Path
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.factory import ServiceFactory
from core.responses import success_response
from schemas import CancelSubscriptionRequest, RefundRequest
from services.billing_service import BillingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/billing", tags=["billing"])
security = HTTPBearer()


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """현재 사용자 정보를 가져오는 의존성"""
    auth_service = ServiceFactory.get_auth_service()
    return await auth_service.verify_auth(credentials)


def get_billing_service() -> BillingService:
    return ServiceFactory.get_billing_service()


@router.post("/subscriptions/cancel")
async def cancel_subscription(
    request: CancelSubscriptionRequest,
    current_user=Depends(get_current_user),
    billing_service: BillingService = Depends(get_billing_service),
):
    result = await billing_service.cancel_subscription(current_user.id, request.effective_from)
    message = (
        "구독이 즉시 해지되었습니다."
        if request.effective_from == "immediately"
        else "현재 결제 기간이 끝나면 구독이 해지됩니다."
    )
    return success_response(data=result, message=message)


@router.post("/refunds")
async def request_refund(
    request: RefundRequest,
    current_user=Depends(get_current_user),
    billing_service: BillingService = Depends(get_billing_service),
):
    refund = await billing_service.refund_transaction(
        current_user.id,
        request.transaction_id,
        reason=request.reason,
        amount=request.amount,
    )
    return success_response(data={"refund": refund}, message="환불 요청을 접수했습니다.")


@router.get("/refunds/{adjustment_id}")
async def get_refund_status(
    adjustment_id: str = Path(..., min_length=1),
    current_user=Depends(get_current_user),
    billing_service: BillingService = Depends(get_billing_service),
):
    refund = await billing_service.get_refund(current_user.id, adjustment_id)
    return success_response(data={"refund": refund})


@router.get("/transactions/{transaction_id}/invoice")
async def get_transaction_invoice(
    transaction_id: str = Path(..., min_length=1),
    current_user=Depends(get_current_user),
    billing_service: BillingService = Depends(get_billing_service),
):
    url = await billing_service.get_invoice_url(current_user.id, transaction_id)
    return success_response(data={"transaction_id": transaction_id, "url": url})
