"""API 요청 스키마"""
from .billing import CancelSubscriptionRequest, RefundRequest

__all__ = ["CancelSubscriptionRequest", "RefundRequest"]
