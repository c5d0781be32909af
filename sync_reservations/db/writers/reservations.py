import json
from typing import Any

import structlog
from sqlalchemy import delete, update
from sqlalchemy.engine import Connection

from sync_reservations.config import DEBUG
from sync_reservations.db.writers._upsert import insert_if_absent, update_if_distinct
from sync_reservations.models.reservations import Reservation
from sync_reservations.normalizers.reservations import ingestion_defaults
from sync_reservations.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

RESERVATION_COLUMNS = [
    "tenant_id",
    "id",
    "channel",
    "customer_name",
    "phone_number",
    "room_description",
    "check_in",
    "check_out",
    "booked_at",
    "status",
    "price",
    "special_requests",
    "additional_fees",
    "coupon_info",
    "payment_status",
    "payment_method",
    "raw_payload",
]

# raw_payload determines every normalized column, is_canceled can still change
# when the classifier ruleset changes
DISTINCT_COLUMNS = ["raw_payload", "is_canceled"]


def _to_columns(row: dict[str, Any], is_canceled: bool) -> dict[str, Any]:
    values = {col: row.get(col) for col in RESERVATION_COLUMNS}
    values["is_canceled"] = is_canceled
    return values


def insert_reservation(conn: Connection, row: dict[str, Any], is_canceled: bool) -> bool:
    """
    Insert a reservation that does not exist yet.

    Args:
        conn: Connection inside the record's transaction
        row: Normalized reservation row (see normalize_reservation)
        is_canceled: Partition flag from the classifier verdict

    Returns:
        bool: False when a concurrent transaction inserted the same key first
    """
    now = utc_now()
    values = _to_columns(ingestion_defaults(row), is_canceled)
    values["created_at"] = now
    values["updated_at"] = now

    if DEBUG:
        logger.debug("Reservation to insert:\n%s", json.dumps(values, indent=2, default=str))

    return insert_if_absent(conn, Reservation, values, conflict_columns=["tenant_id", "id"])


def overwrite_reservation(conn: Connection, row: dict[str, Any], is_canceled: bool) -> bool:
    """
    Overwrite an existing reservation in place, moving it when is_canceled flips.

    Every normalized column is replaced. booked_at is kept when the new record
    carries no booking date, so re-ingesting the same payload is a no-op.

    Args:
        conn: Connection inside the record's transaction (row already locked)
        row: Normalized reservation row
        is_canceled: Partition flag from the classifier verdict

    Returns:
        bool: True if the row changed, False if the payload was identical
    """
    values = _to_columns(row, is_canceled)
    key = {"tenant_id": values.pop("tenant_id"), "id": values.pop("id")}
    if values["booked_at"] is None:
        del values["booked_at"]
    values["updated_at"] = utc_now()

    return update_if_distinct(conn, Reservation, key, values, distinct_columns=DISTINCT_COLUMNS)


def update_reservation_status(
    conn: Connection, tenant_id: str, reservation_id: str, status: str
) -> None:
    """
    Set the status text of an active reservation.

    Args:
        conn: SQLAlchemy DB connection.
        tenant_id: Tenant owning the reservation.
        reservation_id: Composite reservation id.
        status: New status text.
    """
    stmt = (
        update(Reservation)
        .where(
            Reservation.tenant_id == tenant_id,
            Reservation.id == reservation_id,
            Reservation.is_canceled.is_(False),
        )
        .values(status=status, updated_at=utc_now())
    )
    conn.execute(stmt)


def delete_reservation(conn: Connection, tenant_id: str, reservation_id: str, channel: str) -> bool:
    """
    Permanently delete an active reservation.

    Args:
        conn: SQLAlchemy DB connection.
        tenant_id: Tenant owning the reservation.
        reservation_id: Composite reservation id.
        channel: Channel the reservation must belong to.

    Returns:
        bool: True if a row was deleted.
    """
    stmt = delete(Reservation).where(
        Reservation.tenant_id == tenant_id,
        Reservation.id == reservation_id,
        Reservation.channel == channel,
        Reservation.is_canceled.is_(False),
    )
    result = conn.execute(stmt)
    return bool(result.rowcount)
