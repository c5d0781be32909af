"""
Normalization of raw scraped reservation records into canonical store rows.

Scrapers deliver strings in whatever shape the channel's back office shows:
prices with currency symbols, phone numbers with dashes, dates in half a dozen
formats. Everything here is pure and never raises on malformed field values;
only normalize_reservation() raises, and only ValidationRejection.
"""

from __future__ import annotations

import json
import math
import re
from datetime import date, datetime
from enum import Enum
from typing import Any

import structlog
from dateutil import parser as date_parser

from sync_reservations.config import DEFAULT_CHECK_OUT_TIME, OTA_CHANNELS
from sync_reservations.exceptions import ValidationRejection
from sync_reservations.utils.datetime import localize, utc_now

logger = structlog.get_logger(__name__)

# Reservation numbers scrapers emit when the channel shows none
INVALID_RESERVATION_NUMBERS = {"", "N/A", "NA", "NONE", "NULL", "-"}

DEFAULT_STATUS = "Pending"
DEFAULT_PAYMENT_STATUS = "unconfirmed"

_TIME_RE = re.compile(r"\d{2}:\d{2}")
_PRICE_RE = re.compile(r"\d[\d,]*")
_KOREAN_DATE_RE = re.compile(r"(\d{4})\s*년\s*(\d{1,2})\s*월\s*(\d{1,2})\s*일")
_DOTTED_DATE_RE = re.compile(r"(\d{4})\.\s*(\d{1,2})\.\s*(\d{1,2})\.?")
_WEEKDAY_RE = re.compile(r"\([^)]*\)")


class PaymentMethod(str, Enum):
    CARD = "Card"
    CASH = "Cash"
    ACCOUNT_TRANSFER = "AccountTransfer"
    PENDING = "Pending"
    CHANNEL_BILLED = "ChannelBilled"


_PAYMENT_METHOD_ALIASES = {
    "card": PaymentMethod.CARD,
    "credit card": PaymentMethod.CARD,
    "카드": PaymentMethod.CARD,
    "cash": PaymentMethod.CASH,
    "현금": PaymentMethod.CASH,
    "accounttransfer": PaymentMethod.ACCOUNT_TRANSFER,
    "account transfer": PaymentMethod.ACCOUNT_TRANSFER,
    "bank transfer": PaymentMethod.ACCOUNT_TRANSFER,
    "계좌이체": PaymentMethod.ACCOUNT_TRANSFER,
    "pending": PaymentMethod.PENDING,
    "channelbilled": PaymentMethod.CHANNEL_BILLED,
    "ota": PaymentMethod.CHANNEL_BILLED,
}


def normalize_phone(raw: Any) -> str:
    """Strip every non-digit character. None and empty input yield ""."""
    if raw is None:
        return ""
    return re.sub(r"\D", "", str(raw))


def normalize_price(raw: Any) -> int:
    """
    Convert an upstream price into a non-negative integer amount.

    Numbers are taken as they are. Text yields its first run of digits with
    thousands separators removed, so "₩120,000" becomes 120000. Anything else,
    including None, NaN and infinity, yields 0.

    Example:
        >>> normalize_price("₩120,000"), normalize_price(None), normalize_price(75000)
        (120000, 0, 75000)
    """
    if raw is None or isinstance(raw, bool):
        return 0
    if isinstance(raw, float) and not math.isfinite(raw):
        return 0
    if isinstance(raw, (int, float)):
        return max(int(raw), 0)

    match = _PRICE_RE.search(str(raw))
    if not match:
        return 0
    try:
        return int(match.group(0).replace(",", ""))
    except ValueError:
        return 0


def normalize_check_out(raw: Any) -> Any:
    """Append the default check-out time when the raw value carries no HH:MM."""
    if not isinstance(raw, str) or not raw.strip():
        return raw
    if _TIME_RE.search(raw):
        return raw
    return f"{raw.strip()} {DEFAULT_CHECK_OUT_TIME}"


def parse_timestamp(raw: Any) -> datetime | None:
    """
    Parse a scraped date/time into an aware datetime.

    Accepts datetime/date objects, ISO strings, slash and dotted dates and the
    Korean "2024년 5월 10일 (금) 14:00" form. Naive values are localized to the
    hotel timezone.

    Returns:
        datetime | None: None when the value cannot be parsed; callers treat
        None as a reject signal, never as a zero value.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return localize(raw)
    if isinstance(raw, date):
        return localize(datetime(raw.year, raw.month, raw.day))
    if not isinstance(raw, str):
        return None

    cleaned = _KOREAN_DATE_RE.sub(r"\1-\2-\3", raw)
    cleaned = _DOTTED_DATE_RE.sub(r"\1-\2-\3", cleaned)
    cleaned = _WEEKDAY_RE.sub(" ", cleaned).strip()
    if not cleaned:
        return None

    try:
        return localize(date_parser.parse(cleaned))
    except (ValueError, OverflowError):
        return None


def is_ota_channel(channel: str) -> bool:
    return channel in OTA_CHANNELS


def resolve_payment_method(channel: str, explicit: Any) -> PaymentMethod:
    """
    Decide the canonical payment method of a reservation.

    OTA bookings are always settled through the channel, so any method the
    scraper reports for them is ignored. Other channels keep the reported
    method, defaulting to Pending.
    """
    if is_ota_channel(channel):
        return PaymentMethod.CHANNEL_BILLED
    if explicit is None or not str(explicit).strip():
        return PaymentMethod.PENDING

    label = str(explicit).strip()
    method = _PAYMENT_METHOD_ALIASES.get(label.lower())
    if method is None:
        logger.warning("unknown_payment_method", channel=channel, payment_method=label)
        return PaymentMethod.PENDING
    return method


def build_reservation_id(channel: str, reservation_number: str) -> str:
    return f"{channel}-{reservation_number}"


def extract_reservation_number(raw: dict[str, Any]) -> str | None:
    """Return the channel reservation number, or None when missing or a sentinel."""
    value = raw.get("reservationNo")
    if value is None:
        return None
    number = str(value).strip()
    if number.upper() in INVALID_RESERVATION_NUMBERS:
        return None
    return number


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_reservation(tenant_id: str, channel: str, raw: dict[str, Any]) -> dict[str, Any]:
    """
    Build the canonical store row for one raw scraped reservation.

    The returned dict has every Reservation column except is_canceled and the
    audit timestamps. booked_at is None when the channel reports no usable
    booking date; the writer fills in the ingestion time on insert only.

    Args:
        tenant_id: Tenant the batch belongs to
        channel: Channel the batch was scraped from (OTA name or walk-in)
        raw: Raw reservation dict as posted by the scraper

    Raises:
        ValidationRejection: missing reservation number or invalid stay dates
    """
    reservation_number = extract_reservation_number(raw)
    if reservation_number is None:
        raise ValidationRejection(
            "missing_reservation_number",
            f"invalid reservation number: {raw.get('reservationNo')!r}",
        )

    check_in = parse_timestamp(raw.get("checkIn"))
    check_out = parse_timestamp(normalize_check_out(raw.get("checkOut")))
    if check_in is None or check_out is None:
        raise ValidationRejection(
            "invalid_dates",
            f"unparseable dates checkIn={raw.get('checkIn')!r} checkOut={raw.get('checkOut')!r}",
        )
    if check_in >= check_out:
        raise ValidationRejection(
            "invalid_dates",
            f"checkIn {check_in.isoformat()} is not before checkOut {check_out.isoformat()}",
        )

    return {
        "tenant_id": tenant_id,
        "id": build_reservation_id(channel, reservation_number),
        "channel": channel,
        "reservation_number": reservation_number,
        "customer_name": _optional_text(raw.get("customerName")),
        "phone_number": normalize_phone(raw.get("phoneNumber")),
        "room_description": _optional_text(raw.get("roomInfo")) or "",
        "check_in": check_in,
        "check_out": check_out,
        "booked_at": parse_timestamp(raw.get("reservationDate")),
        "status": _optional_text(raw.get("reservationStatus")) or DEFAULT_STATUS,
        "price": normalize_price(raw.get("price")),
        "special_requests": _optional_text(raw.get("specialRequests")),
        "additional_fees": normalize_price(raw.get("additionalFees")),
        "coupon_info": _optional_text(raw.get("couponInfo")),
        "payment_status": _optional_text(raw.get("paymentStatus")) or DEFAULT_PAYMENT_STATUS,
        "payment_method": resolve_payment_method(channel, raw.get("paymentMethod")).value,
        # JSONB has no NaN or Infinity; keep them as their JSON spelling
        "raw_payload": json.loads(json.dumps(raw, default=str), parse_constant=str),
    }


def ingestion_defaults(row: dict[str, Any]) -> dict[str, Any]:
    """Fill values that default to the ingestion time on first insert."""
    filled = dict(row)
    if filled.get("booked_at") is None:
        filled["booked_at"] = utc_now()
    return filled
