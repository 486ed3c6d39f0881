"""
웹훅 이벤트 로그 서비스
수신한 모든 전달을 processed=false 로 남기고, 처리 성공 후에만 완료 표시한다.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.base_service import BaseService
from core.interfaces import IBillingStore
from core.responses import StoreException
from services.field_extractor import parse_datetime


@dataclass(slots=True)
class EventRecord:
    id: Any
    event_type: str
    event_id: Optional[str]
    payload: Dict[str, Any] = field(default_factory=dict)
    processed: bool = False
    received_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "EventRecord":
        payload = row.get("payload")
        return cls(
            id=row.get("id"),
            event_type=row.get("event_type") or "",
            event_id=row.get("event_id"),
            payload=payload if isinstance(payload, dict) else {},
            processed=bool(row.get("processed")),
            received_at=parse_datetime(row.get("created_at")),
        )


class EventStore(BaseService):
    """webhook_events 테이블에 대한 기록/완료 표시

    같은 event_id 가 다시 와도 새 행으로 삽입한다(감사 목적). 재전달에 대한
    멱등성은 원장 upsert 가 보장한다.
    """

    def __init__(self, store: IBillingStore):
        super().__init__(store)

    async def record(self, event_type: str, event_id: Optional[str], payload: Dict[str, Any]) -> EventRecord:
        """수신 이벤트 기록 - 실패 시 StoreException 전파"""
        row = await self.store.insert_webhook_event(event_type, event_id, payload)
        record = EventRecord.from_row(row)
        if record.id is None:
            raise StoreException("웹훅 이벤트 ID가 반환되지 않았습니다", operation="insert_webhook_event")
        self.logger.info("[PADDLE] event recorded: record_id=%s event_id=%s type=%s", record.id, event_id, event_type)
        return record

    async def mark_processed(self, record_id: Any) -> None:
        """처리 완료 표시 (반복 호출해도 안전)"""
        await self.store.mark_webhook_event_processed(record_id)

    async def list_unprocessed(self, limit: int = 50) -> List[EventRecord]:
        rows = await self.store.list_unprocessed_webhook_events(limit)
        return [EventRecord.from_row(row) for row in rows]
