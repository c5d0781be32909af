from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class ReservationBatchPayload(BaseModel):
    """
    Schema for a batch of scraped reservations from one channel.
    Records stay raw so unknown upstream fields survive; elements that are
    not objects are reported as malformed_record instead of failing the batch.
    """

    tenant_id: str = Field(..., min_length=1, description="Tenant (hotel) identifier")
    channel: str = Field(..., min_length=1, description="OTA name or the walk-in channel")
    reservations: list[Any] = Field(
        ..., description="Raw reservation records as scraped; non-objects are skipped per record"
    )


class SkippedRecord(BaseModel):
    """A record from the batch that was not persisted."""

    index: int = Field(..., description="Position of the record in the batch")
    reservation_id: Optional[str] = Field(None, description="Composite id, when it could be built")
    reason: str = Field(..., description="missing_reservation_number, invalid_dates, ...")
    detail: Optional[str] = None


class BatchResult(BaseModel):
    """Summary returned for every reconciled batch, including partial failures."""

    tenant_id: str
    channel: str
    processed_count: int = 0
    skipped: list[SkippedRecord] = Field(default_factory=list)
    transitions: dict[str, int] = Field(
        default_factory=dict, description="Applied transition counts by name"
    )
    notifications_queued: int = 0
    cancelled: bool = Field(False, description="True if the batch was stopped early")


class ReservationOut(BaseModel):
    """Reservation as exported from the active or canceled partition."""

    tenant_id: str
    id: str
    channel: str
    customer_name: Optional[str] = None
    phone_number: str = ""
    room_description: str = ""
    check_in: datetime
    check_out: datetime
    booked_at: datetime
    status: str
    price: int
    special_requests: Optional[str] = None
    additional_fees: int = 0
    coupon_info: Optional[str] = None
    payment_status: str
    payment_method: str
    is_canceled: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ConfirmReservationPayload(BaseModel):
    tenant_id: str = Field(..., min_length=1, description="Tenant (hotel) identifier")
