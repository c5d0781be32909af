import structlog
from sqlalchemy.engine import Connection

from sync_reservations.db.writers._upsert import insert_if_absent
from sync_reservations.models.tenants import Tenant
from sync_reservations.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def ensure_tenant(conn: Connection, tenant_id: str) -> bool:
    """
    Provision a tenant if it does not exist yet. Safe to call on every batch.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        tenant_id (str): Tenant (hotel) identifier.

    Returns:
        bool: True if the tenant was created by this call.
    """
    now = utc_now()
    created = insert_if_absent(
        conn,
        Tenant,
        {
            "tenant_id": tenant_id,
            "notifications_enabled": True,
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        },
        conflict_columns=["tenant_id"],
    )
    if created:
        logger.info("tenant_provisioned", tenant_id=tenant_id)
    return created
