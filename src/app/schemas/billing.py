from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class CancelSubscriptionRequest(BaseModel):
    effective_from: Literal["immediately", "next_billing_period"] = Field(
        "next_billing_period",
        description="해지 적용 시점",
    )


class RefundRequest(BaseModel):
    transaction_id: str = Field(..., min_length=1, description="환불 처리할 Paddle 거래 ID")
    reason: Optional[str] = Field(None, description="환불 사유")
    amount: Optional[Decimal] = Field(
        None,
        gt=0,
        decimal_places=2,
        description="부분 환불 금액(주 통화 단위). 없으면 전액 환불",
    )
