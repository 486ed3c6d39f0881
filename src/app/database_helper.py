"""
Supabase 기반 결제 원장 저장소 헬퍼
"""

from typing import Dict, List, Optional, Any
from datetime import datetime, timezone
from decimal import Decimal
from supabase import Client
import logging

from core.interfaces import IBillingStore
from core.responses import StoreException

logger = logging.getLogger(__name__)


def _serialize_value(value: Any) -> Any:
    """Supabase(JSON) 전송이 가능한 값으로 변환"""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def _serialize_row(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: _serialize_value(value) for key, value in data.items()}


class DatabaseHelper(IBillingStore):
    """webhook_events / subscriptions / transactions / profiles 테이블 접근

    웹훅 경로에서는 실패를 숨기지 않고 StoreException 으로 올려 보내
    공급자가 재시도하도록 한다.
    """

    def __init__(self, admin_client: Client):
        self.admin_client = admin_client

    def _get_client(self) -> Client:
        return self.admin_client

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    @staticmethod
    def _fail(operation: str, error: Exception) -> StoreException:
        logger.error(f"[STORE] {operation} 실패: {error}")
        return StoreException(f"{operation} 실패: {error}", operation=operation)

    # Webhook events
    async def insert_webhook_event(self, event_type: str, event_id: Optional[str], payload: Dict[str, Any]) -> Dict[str, Any]:
        """수신한 웹훅 이벤트 기록 - 중복 event_id 도 새 행으로 남긴다"""
        try:
            client = self._get_client()
            result = client.table('webhook_events').insert({
                'event_type': event_type,
                'event_id': event_id,
                'payload': payload,
                'processed': False,
            }).execute()
        except Exception as e:
            raise self._fail("웹훅 이벤트 기록", e) from e

        if not result.data:
            raise StoreException("웹훅 이벤트 기록 결과가 비어 있습니다", operation="insert_webhook_event")
        return result.data[0]

    async def mark_webhook_event_processed(self, record_id: Any) -> None:
        """웹훅 이벤트 처리 완료 표시"""
        try:
            client = self._get_client()
            client.table('webhook_events').update({
                'processed': True,
                'processed_at': self._now_iso(),
            }).eq('id', record_id).execute()
        except Exception as e:
            raise self._fail("웹훅 이벤트 처리 완료 표시", e) from e

    async def list_unprocessed_webhook_events(self, limit: int = 50) -> List[Dict[str, Any]]:
        """처리되지 않은 웹훅 이벤트 조회"""
        try:
            client = self._get_client()
            result = (
                client.table('webhook_events')
                .select('*')
                .eq('processed', False)
                .order('created_at', desc=False)
                .limit(limit)
                .execute()
            )
            return result.data or []
        except Exception as e:
            raise self._fail("미처리 웹훅 이벤트 조회", e) from e

    # Subscriptions
    async def get_subscription_by_paddle_id(self, paddle_subscription_id: str) -> Optional[Dict[str, Any]]:
        """Paddle 구독 ID로 구독 조회"""
        try:
            client = self._get_client()
            result = (
                client.table('subscriptions')
                .select('*')
                .eq('paddle_subscription_id', paddle_subscription_id)
                .limit(1)
                .execute()
            )
            return result.data[0] if result.data else None
        except Exception as e:
            raise self._fail("구독 조회", e) from e

    async def get_subscription_by_customer_id(self, paddle_customer_id: str) -> Optional[Dict[str, Any]]:
        """Paddle 고객 ID로 가장 최근 구독 조회"""
        try:
            client = self._get_client()
            result = (
                client.table('subscriptions')
                .select('*')
                .eq('paddle_customer_id', paddle_customer_id)
                .order('created_at', desc=True)
                .limit(1)
                .execute()
            )
            return result.data[0] if result.data else None
        except Exception as e:
            raise self._fail("고객 구독 조회", e) from e

    async def get_latest_subscription_for_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """사용자의 가장 최근 구독 조회"""
        try:
            client = self._get_client()
            result = (
                client.table('subscriptions')
                .select('*')
                .eq('user_id', user_id)
                .order('created_at', desc=True)
                .limit(1)
                .execute()
            )
            return result.data[0] if result.data else None
        except Exception as e:
            raise self._fail("사용자 구독 조회", e) from e

    async def upsert_subscription(self, subscription_data: Dict[str, Any]) -> Dict[str, Any]:
        """paddle_subscription_id 기준 구독 생성/갱신"""
        row = _serialize_row({**subscription_data, 'updated_at': self._now_iso()})
        try:
            client = self._get_client()
            result = (
                client.table('subscriptions')
                .upsert(row, on_conflict='paddle_subscription_id')
                .execute()
            )
        except Exception as e:
            raise self._fail("구독 저장", e) from e
        return result.data[0] if result.data else row

    async def update_subscription(self, paddle_subscription_id: str, update_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """기존 구독 갱신"""
        row = _serialize_row({**update_data, 'updated_at': self._now_iso()})
        try:
            client = self._get_client()
            result = (
                client.table('subscriptions')
                .update(row)
                .eq('paddle_subscription_id', paddle_subscription_id)
                .execute()
            )
        except Exception as e:
            raise self._fail("구독 갱신", e) from e
        return result.data[0] if result.data else None

    # Transactions
    async def get_transaction_by_paddle_id(self, paddle_transaction_id: str) -> Optional[Dict[str, Any]]:
        """Paddle 거래 ID로 거래 조회"""
        try:
            client = self._get_client()
            result = (
                client.table('transactions')
                .select('*')
                .eq('paddle_transaction_id', paddle_transaction_id)
                .limit(1)
                .execute()
            )
            return result.data[0] if result.data else None
        except Exception as e:
            raise self._fail("거래 조회", e) from e

    async def upsert_transaction(self, transaction_data: Dict[str, Any]) -> Dict[str, Any]:
        """paddle_transaction_id 기준 거래 생성/갱신 (동시 전달 경쟁에도 한 행 유지)"""
        row = _serialize_row({**transaction_data, 'updated_at': self._now_iso()})
        try:
            client = self._get_client()
            result = (
                client.table('transactions')
                .upsert(row, on_conflict='paddle_transaction_id', ignore_duplicates=False)
                .execute()
            )
        except Exception as e:
            raise self._fail("거래 저장", e) from e
        return result.data[0] if result.data else row

    # Profiles
    async def upsert_profile(self, user_id: str, profile_data: Dict[str, Any]) -> Dict[str, Any]:
        """사용자 프로필 구독 플래그 갱신"""
        row = _serialize_row({**profile_data, 'id': user_id, 'updated_at': self._now_iso()})
        try:
            client = self._get_client()
            result = client.table('profiles').upsert(row, on_conflict='id').execute()
        except Exception as e:
            raise self._fail("프로필 갱신", e) from e
        return result.data[0] if result.data else row
