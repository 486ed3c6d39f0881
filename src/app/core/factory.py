"""
서비스 팩토리 - 의존성 주입 설정
"""
from supabase import Client, create_client
import logging

from core.config import settings
from core.container import container
from core.interfaces import IBillingStore
from core.responses import ExternalServiceException
from database_helper import DatabaseHelper
from services.auth_service import AuthService
from services.billing_service import BillingService
from services.event_store import EventStore
from services.paddle_billing_client import PaddleBillingClient
from services.profile_projector import ProfileProjector
from services.subscription_reconciler import SubscriptionReconciler
from services.transaction_reconciler import TransactionReconciler
from services.webhook_dispatcher import WebhookDispatcher
from services.webhook_processor import WebhookProcessor

logger = logging.getLogger(__name__)


def _create_supabase_admin() -> Client:
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("SUPABASE_URL과 SUPABASE_SERVICE_ROLE_KEY가 설정되어야 합니다")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


def _create_paddle_client() -> PaddleBillingClient:
    if not settings.PADDLE_API_KEY:
        raise ExternalServiceException("Paddle", "Paddle API 키가 설정되지 않았습니다", 503)
    return PaddleBillingClient(api_key=settings.PADDLE_API_KEY, base_url=settings.paddle_api_base_url)


class ServiceFactory:
    """서비스 의존성 등록 및 초기화"""

    @staticmethod
    def configure_dependencies():
        """의존성 주입 컨테이너 설정

        모든 항목은 최초 조회 시 한 번만 생성된다.
        """
        if not settings.PADDLE_WEBHOOK_SECRET:
            logger.warning("[PADDLE] PADDLE_WEBHOOK_SECRET이 없어 모든 웹훅이 거부됩니다.")
        if not settings.PADDLE_API_KEY:
            logger.warning("[PADDLE] PADDLE_API_KEY가 설정되지 않아 결제 관리 API를 사용할 수 없습니다.")

        container.register_lazy(Client, _create_supabase_admin)
        container.register_lazy(IBillingStore, lambda: DatabaseHelper(container.get(Client)))
        container.register_lazy(PaddleBillingClient, _create_paddle_client)
        container.register_lazy(AuthService, lambda: AuthService(container.get(Client)))

        container.register_lazy(ProfileProjector, lambda: ProfileProjector(container.get(IBillingStore)))
        container.register_lazy(
            SubscriptionReconciler,
            lambda: SubscriptionReconciler(container.get(IBillingStore), container.get(ProfileProjector)),
        )
        container.register_lazy(
            TransactionReconciler,
            lambda: TransactionReconciler(container.get(IBillingStore), container.get(SubscriptionReconciler)),
        )
        container.register_lazy(
            WebhookDispatcher,
            lambda: WebhookDispatcher(container.get(SubscriptionReconciler), container.get(TransactionReconciler)),
        )
        container.register_lazy(
            WebhookProcessor,
            lambda: WebhookProcessor(
                EventStore(container.get(IBillingStore)),
                container.get(WebhookDispatcher),
                settings.PADDLE_WEBHOOK_SECRET,
                max_skew_seconds=settings.PADDLE_WEBHOOK_MAX_SKEW_SECONDS,
            ),
        )
        container.register_lazy(
            BillingService,
            lambda: BillingService(container.get(IBillingStore), container.get(PaddleBillingClient)),
        )

    @staticmethod
    def get_auth_service() -> AuthService:
        """인증 서비스 조회"""
        return container.get(AuthService)

    @staticmethod
    def get_webhook_processor() -> WebhookProcessor:
        """웹훅 처리기 조회"""
        return container.get(WebhookProcessor)

    @staticmethod
    def get_billing_service() -> BillingService:
        """결제 관리 서비스 조회"""
        return container.get(BillingService)
