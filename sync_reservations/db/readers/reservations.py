from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from sync_reservations.models.reservations import Reservation
from sync_reservations.reconciliation.transitions import Partition


def lock_current_partition(
    conn: Connection, tenant_id: str, reservation_id: str
) -> Optional[Partition]:
    """
    Find which partition holds a reservation and lock its row.

    The row stays locked (SELECT ... FOR UPDATE) until the caller's
    transaction ends, so concurrent batches for the same key serialize on it.

    Args:
        conn (Connection): Connection with an open transaction.
        tenant_id (str): Tenant owning the reservation.
        reservation_id (str): Composite reservation id.

    Returns:
        Optional[Partition]: Current partition, or None if the reservation is absent.
    """
    result = conn.execute(
        select(Reservation.is_canceled)
        .where(Reservation.tenant_id == tenant_id, Reservation.id == reservation_id)
        .with_for_update()
    )
    row = result.fetchone()
    if row is None:
        return None
    return Partition.for_verdict(row[0])


def get_reservation(
    conn: Connection, tenant_id: str, reservation_id: str
) -> Optional[dict[str, Any]]:
    """
    Fetch a single reservation from either partition.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        tenant_id (str): Tenant owning the reservation.
        reservation_id (str): Composite reservation id.

    Returns:
        Optional[dict[str, Any]]: Reservation columns, or None if not found.
    """
    result = conn.execute(
        select(Reservation.__table__).where(
            Reservation.tenant_id == tenant_id, Reservation.id == reservation_id
        )
    )
    row = result.mappings().fetchone()
    return dict(row) if row else None


def list_reservations(
    conn: Connection,
    tenant_id: str,
    partition: Partition,
    customer_name: Optional[str] = None,
) -> list[dict[str, Any]]:
    """
    Export one partition of a tenant, newest first.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        tenant_id (str): Tenant to export.
        partition (Partition): ACTIVE or CANCELED.
        customer_name (Optional[str]): Case-insensitive exact customer name filter.

    Returns:
        list[dict[str, Any]]: Reservation rows.
    """
    stmt = select(Reservation.__table__).where(
        Reservation.tenant_id == tenant_id,
        Reservation.is_canceled.is_(partition is Partition.CANCELED),
    )
    if customer_name:
        stmt = stmt.where(func.lower(Reservation.customer_name) == customer_name.lower())
    stmt = stmt.order_by(Reservation.created_at.desc(), Reservation.id)

    result = conn.execute(stmt)
    return [dict(row) for row in result.mappings().all()]
