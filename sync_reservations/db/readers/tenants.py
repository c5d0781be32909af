from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from sync_reservations.models.tenants import Tenant


def get_tenant(conn: Connection, tenant_id: str) -> Optional[dict[str, Any]]:
    """
    Resolve a tenant identifier to its configuration.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        tenant_id (str): Tenant (hotel) identifier.

    Returns:
        Optional[dict[str, Any]]: tenant_id, name, contact_phone,
        notifications_enabled and is_active, or None if not provisioned.
    """
    result = conn.execute(
        select(
            Tenant.tenant_id,
            Tenant.name,
            Tenant.contact_phone,
            Tenant.notifications_enabled,
            Tenant.is_active,
        ).where(Tenant.tenant_id == tenant_id)
    )
    row = result.mappings().fetchone()
    return dict(row) if row else None
