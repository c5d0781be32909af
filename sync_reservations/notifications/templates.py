"""Guest notification templates and the walk-in notification rule."""

from __future__ import annotations

from typing import Any, Optional

from sync_reservations.config import WALK_IN_CHANNEL
from sync_reservations.utils.datetime import localize

WALK_IN_TEMPLATE_CODE = "WALK_IN_RESERVATION"

# Hourly ("대실") stays are settled at the desk and get no confirmation message
SHORT_STAY_MARKERS = ("대실", "hourly", "day use")


def is_short_stay(row: dict[str, Any]) -> bool:
    text = f"{row.get('room_description') or ''} {row.get('customer_name') or ''}".lower()
    return any(marker in text for marker in SHORT_STAY_MARKERS)


def should_notify_walk_in(row: dict[str, Any], tenant: Optional[dict[str, Any]]) -> bool:
    """
    Decide whether a newly created active reservation gets a guest message.

    Only walk-in bookings with a phone number that are not short stays qualify,
    and only for tenants that have notifications enabled.
    """
    if tenant is not None and not tenant.get("notifications_enabled", True):
        return False
    return (
        row.get("channel") == WALK_IN_CHANNEL
        and not is_short_stay(row)
        and bool(row.get("phone_number"))
    )


def render_walk_in_message(row: dict[str, Any], tenant: Optional[dict[str, Any]]) -> str:
    contact = (tenant or {}).get("contact_phone") or "-"
    check_in = localize(row["check_in"]).strftime("%Y-%m-%d %H:%M")
    check_out = localize(row["check_out"]).strftime("%Y-%m-%d %H:%M")
    return (
        "[현장예약 안내]\n"
        f"예약자명: {row.get('customer_name') or ''}\n"
        f"체크인: {check_in}\n"
        f"체크아웃: {check_out}\n"
        f"가격: {row.get('price', 0):,}원\n"
        f"문의: {contact}"
    )
