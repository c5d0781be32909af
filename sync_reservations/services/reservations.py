"""Operator actions on reconciled reservations: export, confirm, delete."""

from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine

from sync_reservations.db.readers.reservations import get_reservation, list_reservations
from sync_reservations.db.writers.reservations import delete_reservation, update_reservation_status
from sync_reservations.exceptions import ReservationAlreadyConfirmed, ReservationNotFound
from sync_reservations.reconciliation.transitions import Partition

logger = structlog.get_logger(__name__)

CONFIRMED_STATUS = "confirmed"


def export_partition(
    engine: Engine,
    tenant_id: str,
    partition: Partition,
    customer_name: Optional[str] = None,
) -> list[dict[str, Any]]:
    """Return every reservation of one partition, newest first."""
    with engine.connect() as conn:
        return list_reservations(conn, tenant_id, partition, customer_name=customer_name)


def confirm_reservation(engine: Engine, tenant_id: str, reservation_id: str) -> dict[str, Any]:
    """
    Mark an active reservation as confirmed.

    Raises:
        ReservationNotFound: no active reservation with this id
        ReservationAlreadyConfirmed: status is already "confirmed"
    """
    with engine.begin() as conn:
        reservation = get_reservation(conn, tenant_id, reservation_id)
        if reservation is None or reservation["is_canceled"]:
            raise ReservationNotFound(f"Reservation {reservation_id} not found")
        if reservation["status"] == CONFIRMED_STATUS:
            raise ReservationAlreadyConfirmed(f"Reservation {reservation_id} is already confirmed")

        update_reservation_status(conn, tenant_id, reservation_id, CONFIRMED_STATUS)
        confirmed = get_reservation(conn, tenant_id, reservation_id)

    logger.info("reservation_confirmed", tenant_id=tenant_id, reservation_id=reservation_id)
    return confirmed or reservation


def remove_reservation(engine: Engine, tenant_id: str, reservation_id: str, channel: str) -> None:
    """
    Delete an active reservation on operator request.

    Raises:
        ReservationNotFound: no active reservation with this id and channel
    """
    with engine.begin() as conn:
        deleted = delete_reservation(conn, tenant_id, reservation_id, channel)

    if not deleted:
        raise ReservationNotFound(f"Reservation {reservation_id} not found")
    logger.info(
        "reservation_deleted", tenant_id=tenant_id, reservation_id=reservation_id, channel=channel
    )
