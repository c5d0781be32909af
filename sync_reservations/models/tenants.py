"""SQLAlchemy model for the tenant (hotel) directory."""

from sqlalchemy import Boolean, Column, DateTime, String, text
from sqlalchemy.sql import func

from sync_reservations.config import SCHEMA
from sync_reservations.models.base import Base


class Tenant(Base):
    """
    ORM model for provisioned tenants.

    Each tenant is one hotel identified by the caller-supplied tenant_id.
    Rows are created lazily the first time a batch arrives for the tenant.
    contact_phone is rendered into guest notifications; notifications_enabled
    lets a hotel opt out of them entirely.
    """

    __tablename__ = "tenants"
    __table_args__ = {"schema": SCHEMA}

    tenant_id = Column(String, primary_key=True)
    name = Column(String, nullable=True)
    contact_phone = Column(String, nullable=True)
    notifications_enabled = Column(Boolean, nullable=False, server_default=text("true"))
    is_active = Column(Boolean, nullable=False, server_default=text("true"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
