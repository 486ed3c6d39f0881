"""
Paddle Webhook Router

Receives Paddle Billing webhook deliveries and hands them to the
WebhookProcessor:
- signature verification (Billing, HMAC-SHA256) before any work
- raw event persisted with processed=false, then reconciled
- 401 for bad signatures, 500 on malformed JSON or store failure so that
  Paddle retries the delivery
"""
import logging

from fastapi import APIRouter, Depends, Header, Request

from core.factory import ServiceFactory
from core.responses import success_response
from services.webhook_processor import WebhookProcessor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks", "paddle"])


def get_webhook_processor() -> WebhookProcessor:
    return ServiceFactory.get_webhook_processor()


@router.get("/paddle")
async def paddle_webhook_get():
    return success_response(data={"ok": True}, message="paddle webhook alive")


@router.post("/paddle")
async def paddle_webhook(
    request: Request,
    paddle_signature: str | None = Header(default=None, alias="Paddle-Signature"),
    processor: WebhookProcessor = Depends(get_webhook_processor),
):
    raw = await request.body()
    logger.info(
        "[PADDLE] webhook received: len=%s, has_signature=%s",
        len(raw),
        bool(paddle_signature),
    )

    outcome = await processor.handle(raw, paddle_signature)

    message = "paddle webhook processed" if outcome.dispatch.handled else "event ignored"
    body = success_response(data=outcome.to_dict(), message=message).model_dump()
    # Paddle only inspects the status code; {success} mirrors the {error} shape of failures
    body["success"] = True
    return body
