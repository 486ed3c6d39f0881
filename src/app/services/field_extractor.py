"""
Paddle 웹훅 페이로드 필드 추출기

이벤트 종류와 API 버전에 따라 페이로드 모양이 달라지므로 모든 조회는 우선순위가
정해진 후보 경로를 차례로 시도하고, 값이 없으면 예외 대신 None 을 돌려준다.
금액(최소 단위 문자열)은 이 모듈에서 한 번만 주 단위 Decimal 로 변환한다.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")

# 사용자 ID 탐색 순서: 이벤트 data 의 custom_data → 내장 구독 → 내장 고객 → 레거시 passthrough
USER_ID_LOCATIONS: Tuple[Tuple[str, ...], ...] = (
    ("custom_data",),
    ("subscription", "custom_data"),
    ("customer", "custom_data"),
    ("passthrough",),
)
USER_ID_KEYS: Tuple[str, ...] = ("userId", "user_id")


def _get(d: Any, *keys: str, default=None):
    cur = d
    for k in keys:
        if not isinstance(cur, dict) or k not in cur:
            return default
        cur = cur[k]
    return cur


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_decimal(value: Any) -> Optional[Decimal]:
    try:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float, Decimal)):
            return Decimal(str(value))
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None


def minor_to_major(value: Any) -> Optional[Decimal]:
    """Paddle 최소 단위 금액("1000")을 주 단위(10.00)로 변환"""
    if isinstance(value, dict):
        value = _first(value.get("amount"), value.get("value"))
    amount = to_decimal(value)
    if amount is None:
        return None
    return (amount / Decimal(100)).quantize(_CENTS, rounding=ROUND_HALF_UP)


def parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            if raw.endswith('Z'):
                raw = raw[:-1] + '+00:00'
            dt = datetime.fromisoformat(raw)
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            return dt
        except ValueError:
            return None
    return None


def _decode_mapping(raw: Any) -> Dict[str, Any]:
    """custom_data / passthrough 는 dict 또는 JSON 문자열로 온다"""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("[PADDLE] custom data is not JSON: %s", raw[:200])
            return {}
        if isinstance(parsed, dict):
            return parsed
    return {}


def event_data(event: Dict[str, Any]) -> Dict[str, Any]:
    data = event.get("data") if isinstance(event, dict) else None
    return data if isinstance(data, dict) else {}


def event_type_of(event: Dict[str, Any]) -> str:
    if not isinstance(event, dict):
        return ""
    return str(event.get("event_type") or event.get("eventType") or "").strip().lower()


def extract_user_id(event: Dict[str, Any]) -> Optional[str]:
    """우선순위 경로에서 첫 번째로 비어 있지 않은 사용자 ID 반환"""
    data = event_data(event)
    for location in USER_ID_LOCATIONS:
        container = _get(data, *location)
        if container is None and location[-1] == "custom_data":
            # 일부 SDK 는 camelCase 컨테이너 키를 쓴다
            container = _get(data, *location[:-1], "customData")
        mapping = _decode_mapping(container)
        for key in USER_ID_KEYS:
            user_id = _str_or_none(mapping.get(key))
            if user_id:
                return user_id
    return None


def extract_subscription_id(event: Dict[str, Any]) -> Optional[str]:
    data = event_data(event)
    if event_type_of(event).startswith("subscription."):
        direct = _str_or_none(data.get("id"))
        if direct:
            return direct
    candidate = _first(
        data.get("subscription_id"),
        _get(data, "subscription", "id"),
    )
    if candidate:
        return _str_or_none(candidate)
    data_id = _str_or_none(data.get("id"))
    if data_id and data_id.startswith("sub_"):
        return data_id
    return None


def extract_customer_id(event: Dict[str, Any]) -> Optional[str]:
    data = event_data(event)
    return _str_or_none(_first(
        data.get("customer_id"),
        _get(data, "customer", "id"),
        _get(data, "subscription", "customer_id"),
    ))


def extract_transaction_id(event: Dict[str, Any]) -> Optional[str]:
    data = event_data(event)
    if event_type_of(event).startswith("transaction."):
        direct = _str_or_none(data.get("id"))
        if direct:
            return direct
    candidate = _str_or_none(data.get("transaction_id"))
    if candidate:
        return candidate
    data_id = _str_or_none(data.get("id"))
    if data_id and data_id.startswith("txn_"):
        return data_id
    return None


async def resolve_user_id(event: Dict[str, Any], store) -> Optional[str]:
    """페이로드에서 못 찾으면 로컬 구독(구독 ID → 고객 ID 순)의 소유자를 사용"""
    user_id = extract_user_id(event)
    if user_id:
        return user_id

    subscription_id = extract_subscription_id(event)
    if subscription_id:
        row = await store.get_subscription_by_paddle_id(subscription_id)
        if row and row.get("user_id"):
            logger.info("[PADDLE] user resolved via subscription %s", subscription_id)
            return row["user_id"]

    customer_id = extract_customer_id(event)
    if customer_id:
        row = await store.get_subscription_by_customer_id(customer_id)
        if row and row.get("user_id"):
            logger.info("[PADDLE] user resolved via customer %s", customer_id)
            return row["user_id"]

    return None


@dataclass(slots=True)
class BillingDetails:
    """평탄화된 결제 속성 - 모든 필드는 없으면 None"""

    event_type: str = ""
    transaction_id: Optional[str] = None
    subscription_id: Optional[str] = None
    customer_id: Optional[str] = None
    status: Optional[str] = None
    currency_code: Optional[str] = None

    price_id: Optional[str] = None
    product_id: Optional[str] = None
    unit_price: Optional[Decimal] = None
    quantity: Optional[int] = None
    billing_interval: Optional[str] = None
    billing_frequency: Optional[int] = None

    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    next_billed_at: Optional[datetime] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    canceled_at: Optional[datetime] = None

    invoice_id: Optional[str] = None
    invoice_number: Optional[str] = None
    billed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    collection_mode: Optional[str] = None
    origin: Optional[str] = None
    billing_period_start: Optional[datetime] = None
    billing_period_end: Optional[datetime] = None

    subtotal: Optional[Decimal] = None
    tax_total: Optional[Decimal] = None
    fee_total: Optional[Decimal] = None
    discount_total: Optional[Decimal] = None
    total: Optional[Decimal] = None
    grand_total: Optional[Decimal] = None

    payment_status: Optional[str] = None
    payment_method_type: Optional[str] = None

    raw: Dict[str, Any] = field(default_factory=dict)


def _first_item(data: Dict[str, Any]) -> Dict[str, Any]:
    for key_path in (("items",), ("details", "line_items"), ("subscription", "items")):
        items = _get(data, *key_path)
        if isinstance(items, list) and items and isinstance(items[0], dict):
            return items[0]
    return {}


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None and value != "" else None
    except (TypeError, ValueError):
        return None


def extract_billing_details(event: Dict[str, Any]) -> BillingDetails:
    data = event_data(event)
    item = _first_item(data)
    price = item.get("price") if isinstance(item.get("price"), dict) else {}
    totals = _get(data, "details", "totals")
    totals = totals if isinstance(totals, dict) else {}
    payments = data.get("payments")
    payment = payments[0] if isinstance(payments, list) and payments and isinstance(payments[0], dict) else {}

    current_period = _first(
        data.get("current_billing_period"),
        _get(data, "subscription", "current_billing_period"),
        _get(data, "subscription", "current_period"),
        data.get("current_period"),
    )
    current_period = current_period if isinstance(current_period, dict) else {}

    trial_dates = _first(
        data.get("trial_dates"),
        item.get("trial_dates"),
        _get(data, "subscription", "trial_dates"),
    )
    trial_dates = trial_dates if isinstance(trial_dates, dict) else {}

    billing_cycle = _first(
        data.get("billing_cycle"),
        price.get("billing_cycle"),
        _get(data, "subscription", "billing_cycle"),
    )
    billing_cycle = billing_cycle if isinstance(billing_cycle, dict) else {}

    billing_period = data.get("billing_period") if isinstance(data.get("billing_period"), dict) else {}

    currency = _first(
        data.get("currency_code"),
        data.get("currency"),
        _get(price, "unit_price", "currency_code"),
        _get(data, "details", "totals", "currency_code"),
    )

    status = _first(data.get("status"), _get(data, "subscription", "status"))

    return BillingDetails(
        event_type=event_type_of(event),
        transaction_id=extract_transaction_id(event),
        subscription_id=extract_subscription_id(event),
        customer_id=extract_customer_id(event),
        status=str(status).strip().lower() if status else None,
        currency_code=str(currency).upper() if currency else None,
        price_id=_str_or_none(_first(price.get("id"), item.get("price_id"))),
        product_id=_str_or_none(_first(price.get("product_id"), _get(item, "product", "id"))),
        unit_price=minor_to_major(_first(price.get("unit_price"), _get(item, "unit_totals", "total"))),
        quantity=_to_int(item.get("quantity")),
        billing_interval=_str_or_none(billing_cycle.get("interval")),
        billing_frequency=_to_int(billing_cycle.get("frequency")),
        current_period_start=parse_datetime(current_period.get("starts_at")),
        current_period_end=parse_datetime(current_period.get("ends_at")),
        next_billed_at=parse_datetime(_first(
            data.get("next_billed_at"),
            _get(data, "subscription", "next_billed_at"),
        )),
        trial_start=parse_datetime(trial_dates.get("starts_at")),
        trial_end=parse_datetime(trial_dates.get("ends_at")),
        canceled_at=parse_datetime(_first(
            data.get("canceled_at"),
            data.get("cancelled_at"),
            _get(data, "subscription", "canceled_at"),
        )),
        invoice_id=_str_or_none(data.get("invoice_id")),
        invoice_number=_str_or_none(data.get("invoice_number")),
        billed_at=parse_datetime(data.get("billed_at")),
        created_at=parse_datetime(data.get("created_at")),
        updated_at=parse_datetime(data.get("updated_at")),
        collection_mode=_str_or_none(data.get("collection_mode")),
        origin=_str_or_none(data.get("origin")),
        billing_period_start=parse_datetime(billing_period.get("starts_at")),
        billing_period_end=parse_datetime(billing_period.get("ends_at")),
        subtotal=minor_to_major(totals.get("subtotal")),
        tax_total=minor_to_major(totals.get("tax")),
        fee_total=minor_to_major(totals.get("fee")),
        discount_total=minor_to_major(totals.get("discount")),
        total=minor_to_major(totals.get("total")),
        grand_total=minor_to_major(totals.get("grand_total")),
        payment_status=_str_or_none(payment.get("status")),
        payment_method_type=_str_or_none(_get(payment, "method_details", "type")),
        raw=data,
    )
