"""
Paddle 웹훅 처리 파이프라인
서명 검증 → 원본 이벤트 기록 → 디스패치 → 처리 완료 표시
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.responses import (
    AuthenticationException,
    BusinessException,
    WebhookPayloadException,
    WebhookProcessingException,
)
from services.event_store import EventRecord, EventStore
from services.webhook_dispatcher import DispatchResult, WebhookDispatcher
from services.webhook_signature import verify_signature

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class WebhookOutcome:
    record_id: Any
    event_id: Optional[str]
    event_type: str
    dispatch: DispatchResult
    replayed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "event_id": self.event_id,
            "replayed": self.replayed,
            **self.dispatch.to_dict(),
        }


@dataclass(slots=True)
class ReplaySummary:
    processed: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed_count": len(self.processed),
            "failed_count": len(self.failed),
            "processed": self.processed,
            "failed": self.failed,
        }


class WebhookProcessor:
    """요청 단위 웹훅 처리

    이벤트 기록은 느린 작업보다 먼저 수행되므로, 처리 중 타임아웃이 나더라도
    processed=false 행이 남아 재전달 또는 운영자 재처리로 복구된다.
    """

    def __init__(
        self,
        event_store: EventStore,
        dispatcher: WebhookDispatcher,
        webhook_secret: Optional[str],
        *,
        max_skew_seconds: int = 0,
    ):
        self.event_store = event_store
        self.dispatcher = dispatcher
        self.webhook_secret = webhook_secret
        self.max_skew_seconds = max_skew_seconds

    async def handle(self, raw: bytes, signature: Optional[str]) -> WebhookOutcome:
        check = verify_signature(
            raw,
            signature,
            self.webhook_secret,
            max_skew_seconds=self.max_skew_seconds,
        )
        if not check:
            raise AuthenticationException(f"Invalid signature ({check.reason})")

        payload = self._parse(raw)
        event_type = str(payload.get("event_type") or payload.get("eventType") or "")
        event_id = payload.get("event_id") or payload.get("eventId") or payload.get("notification_id")
        if not event_id:
            logger.warning("[PADDLE] webhook payload missing event_id; audit trail limited")

        record = await self.event_store.record(event_type, event_id, payload)
        dispatch = await self._dispatch(record)
        await self.event_store.mark_processed(record.id)

        return WebhookOutcome(
            record_id=record.id,
            event_id=event_id,
            event_type=event_type,
            dispatch=dispatch,
        )

    async def replay_pending(self, limit: int = 50) -> ReplaySummary:
        """processed=false 로 남은 이벤트 재처리 (운영자용)"""
        summary = ReplaySummary()
        for record in await self.event_store.list_unprocessed(limit):
            try:
                dispatch = await self._dispatch(record)
                await self.event_store.mark_processed(record.id)
            except BusinessException as e:
                logger.error("[PADDLE] replay failed: record_id=%s error=%s", record.id, e.message)
                summary.failed.append({"record_id": record.id, "event_id": record.event_id, "error": e.message})
                continue

            outcome = WebhookOutcome(
                record_id=record.id,
                event_id=record.event_id,
                event_type=record.event_type,
                dispatch=dispatch,
                replayed=True,
            )
            summary.processed.append(outcome.to_dict())

        logger.info(
            "[PADDLE] replay finished: processed=%s failed=%s",
            len(summary.processed),
            len(summary.failed),
        )
        return summary

    async def _dispatch(self, record: EventRecord) -> DispatchResult:
        try:
            return await self.dispatcher.dispatch(record.event_type, record.payload)
        except BusinessException:
            raise
        except Exception as e:
            logger.error(
                "[PADDLE] reconciliation failed: record_id=%s type=%s error=%s",
                record.id,
                record.event_type,
                e,
                exc_info=True,
            )
            raise WebhookProcessingException(
                f"웹훅 처리 실패: {record.event_type}",
                event_type=record.event_type,
            ) from e

    @staticmethod
    def _parse(raw: bytes) -> Dict[str, Any]:
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error("[PADDLE] invalid webhook json: %s", e)
            raise WebhookPayloadException("invalid json") from e
        if not isinstance(payload, dict):
            raise WebhookPayloadException("webhook body must be a JSON object")
        return payload
