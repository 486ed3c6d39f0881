"""Core 패키지 초기화 (경량화)

설정 로딩은 core.config에서 직접 import 하도록 두고, 여기서는 순환 의존 없이
쓸 수 있는 심볼만 노출합니다.
"""
from .container import container
from .responses import (
    APIResponse, success_response, error_response,
    BusinessException, AuthenticationException,
    AuthorizationException, NotFoundException,
    StoreException, WebhookPayloadException,
)

__all__ = [
    'container',
    'APIResponse',
    'success_response',
    'error_response',
    'BusinessException',
    'AuthenticationException',
    'AuthorizationException',
    'NotFoundException',
    'StoreException',
    'WebhookPayloadException',
]
