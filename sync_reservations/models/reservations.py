# models/reservations.py

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from sync_reservations.config import SCHEMA
from sync_reservations.models.base import Base


class Reservation(Base):
    """
    ORM model for reconciled reservations of every channel.

    Active and canceled reservations share this table: is_canceled is the
    partition flag, so a reservation can never sit in both partitions and moving
    between them is a single UPDATE. The id is "{channel}-{reservation number}"
    and is unique per tenant. raw_payload keeps the complete upstream record,
    including fields the normalized columns do not model.
    """

    __tablename__ = "reservations"
    __table_args__ = (
        Index("ix_reservations_tenant_partition", "tenant_id", "is_canceled", "created_at"),
        Index("ix_reservations_tenant_customer", "tenant_id", "customer_name"),
        {"schema": SCHEMA},
    )

    tenant_id = Column(
        String,
        ForeignKey(f"{SCHEMA}.tenants.tenant_id", ondelete="CASCADE"),
        primary_key=True,
    )
    id = Column(String, primary_key=True)
    channel = Column(String, nullable=False)
    customer_name = Column(String, nullable=True)
    phone_number = Column(String, nullable=False, server_default="")
    room_description = Column(String, nullable=False, server_default="")
    check_in = Column(DateTime(timezone=True), nullable=False)
    check_out = Column(DateTime(timezone=True), nullable=False)
    booked_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String, nullable=False)
    price = Column(Integer, nullable=False, server_default=text("0"))
    special_requests = Column(String, nullable=True)
    additional_fees = Column(Integer, nullable=False, server_default=text("0"))
    coupon_info = Column(String, nullable=True)
    payment_status = Column(String, nullable=False)
    payment_method = Column(String, nullable=False)
    is_canceled = Column(Boolean, nullable=False)
    raw_payload = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
