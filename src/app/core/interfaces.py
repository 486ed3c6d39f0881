"""
서비스 인터페이스 정의
"""
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List


class IBillingStore(ABC):
    """결제 원장 저장소 인터페이스

    모든 메서드는 실패 시 StoreException 을 발생시켜야 하며, 조회 결과가 없으면
    None 을 돌려준다.
    """

    # 웹훅 이벤트 로그
    @abstractmethod
    async def insert_webhook_event(self, event_type: str, event_id: Optional[str], payload: Dict[str, Any]) -> Dict[str, Any]:
        """수신한 웹훅 이벤트 기록 (processed=false)"""
        pass

    @abstractmethod
    async def mark_webhook_event_processed(self, record_id: Any) -> None:
        """웹훅 이벤트 처리 완료 표시"""
        pass

    @abstractmethod
    async def list_unprocessed_webhook_events(self, limit: int = 50) -> List[Dict[str, Any]]:
        """처리되지 않은 웹훅 이벤트 조회 (오래된 순)"""
        pass

    # 구독 원장
    @abstractmethod
    async def get_subscription_by_paddle_id(self, paddle_subscription_id: str) -> Optional[Dict[str, Any]]:
        """Paddle 구독 ID로 구독 조회"""
        pass

    @abstractmethod
    async def get_subscription_by_customer_id(self, paddle_customer_id: str) -> Optional[Dict[str, Any]]:
        """Paddle 고객 ID로 가장 최근 구독 조회"""
        pass

    @abstractmethod
    async def get_latest_subscription_for_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """사용자의 가장 최근 구독 조회"""
        pass

    @abstractmethod
    async def upsert_subscription(self, subscription_data: Dict[str, Any]) -> Dict[str, Any]:
        """paddle_subscription_id 기준 구독 생성/갱신"""
        pass

    @abstractmethod
    async def update_subscription(self, paddle_subscription_id: str, update_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """기존 구독 갱신, 대상이 없으면 None"""
        pass

    # 거래 원장
    @abstractmethod
    async def get_transaction_by_paddle_id(self, paddle_transaction_id: str) -> Optional[Dict[str, Any]]:
        """Paddle 거래 ID로 거래 조회"""
        pass

    @abstractmethod
    async def upsert_transaction(self, transaction_data: Dict[str, Any]) -> Dict[str, Any]:
        """paddle_transaction_id 기준 거래 생성/갱신"""
        pass

    # 프로필 투영
    @abstractmethod
    async def upsert_profile(self, user_id: str, profile_data: Dict[str, Any]) -> Dict[str, Any]:
        """사용자 프로필 구독 플래그 갱신"""
        pass
