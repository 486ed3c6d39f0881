"""
운영자 전용 API 라우터
처리되지 못하고 남은 웹훅 이벤트(processed=false) 재처리
"""
import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query

from core.config import settings
from core.responses import AuthenticationException, AuthorizationException, success_response
from routers.paddle_router import get_webhook_processor
from services.webhook_processor import WebhookProcessor

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


async def authorize_admin(x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token")) -> None:
    """설정된 운영자 토큰과 비교해 권한을 검증한다."""
    expected = settings.ADMIN_API_TOKEN
    if not expected:
        raise AuthorizationException("관리자 API가 비활성화되어 있습니다.")

    if not x_admin_token:
        raise AuthenticationException("관리자 토큰이 필요합니다.")

    if not hmac.compare_digest(x_admin_token.encode("utf-8"), expected.encode("utf-8")):
        raise AuthorizationException("관리자 권한이 없습니다.")


@router.post("/webhooks/replay", dependencies=[Depends(authorize_admin)])
async def replay_webhook_events(
    limit: int = Query(50, ge=1, le=500),
    processor: WebhookProcessor = Depends(get_webhook_processor),
):
    summary = await processor.replay_pending(limit)
    return success_response(data=summary.to_dict(), message="미처리 웹훅 재처리를 완료했습니다.")


__all__ = ["router", "authorize_admin"]
