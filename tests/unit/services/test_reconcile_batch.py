"""
Unit tests for the batch reconciler, run against the in-memory SQLite store.
"""

from __future__ import annotations

import threading
from unittest.mock import patch

import pytest
from sqlalchemy import insert, select
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from sync_reservations.db.writers.reservations import insert_reservation
from sync_reservations.exceptions import ProvisioningFailure, StoreUnavailable
from sync_reservations.models.reservations import Reservation
from sync_reservations.models.tenants import Tenant
from sync_reservations.normalizers.reservations import normalize_reservation
from sync_reservations.notifications.outbox import NotificationOutbox
from sync_reservations.services.reconcile import reconcile_batch

TENANT = "hotel-1"


def _rows(engine, tenant_id=TENANT):
    with engine.connect() as conn:
        result = conn.execute(
            select(Reservation.__table__)
            .where(Reservation.tenant_id == tenant_id)
            .order_by(Reservation.id)
        )
        return [dict(row) for row in result.mappings().all()]


@pytest.mark.unit
def test_new_records_are_created_active(sqlite_engine, fake_notifier, make_raw):
    """Test that a first ingestion inserts into the active partition."""
    result = reconcile_batch(
        sqlite_engine, TENANT, "Agoda", [make_raw()], notifier=fake_notifier
    )

    rows = _rows(sqlite_engine)
    assert result.processed_count == 1
    assert result.skipped == []
    assert result.transitions == {"create_active": 1}
    assert len(rows) == 1
    assert rows[0]["id"] == "Agoda-R1001"
    assert rows[0]["is_canceled"] is False
    assert rows[0]["payment_method"] == "ChannelBilled"


@pytest.mark.unit
def test_tenant_is_provisioned_on_first_batch(sqlite_engine, fake_notifier, make_raw):
    """Test that an unknown tenant is created before records are written."""
    reconcile_batch(sqlite_engine, "hotel-new", "Agoda", [make_raw()], notifier=fake_notifier)

    with sqlite_engine.connect() as conn:
        tenant = conn.execute(select(Tenant).where(Tenant.tenant_id == "hotel-new")).fetchone()

    assert tenant is not None
    assert tenant.is_active is True


@pytest.mark.unit
def test_reingestion_is_idempotent(sqlite_engine, fake_notifier, make_raw):
    """Test that ingesting the same batch twice changes nothing the second time."""
    batch = [make_raw(), make_raw(reservationNo="R1002", reservationDate=None)]

    reconcile_batch(sqlite_engine, TENANT, "Agoda", batch, notifier=fake_notifier)
    before = _rows(sqlite_engine)

    result = reconcile_batch(sqlite_engine, TENANT, "Agoda", batch, notifier=fake_notifier)
    after = _rows(sqlite_engine)

    assert result.transitions == {"update_active": 2}
    assert before == after


@pytest.mark.unit
def test_payload_change_overwrites_in_place(sqlite_engine, fake_notifier, make_raw):
    """Test that a changed payload replaces the stored record."""
    reconcile_batch(sqlite_engine, TENANT, "Agoda", [make_raw()], notifier=fake_notifier)
    reconcile_batch(
        sqlite_engine, TENANT, "Agoda", [make_raw(price="99,000")], notifier=fake_notifier
    )

    rows = _rows(sqlite_engine)
    assert len(rows) == 1
    assert rows[0]["price"] == 99000
    assert rows[0]["raw_payload"]["price"] == "99,000"


@pytest.mark.unit
def test_cancellation_moves_record(sqlite_engine, fake_notifier, make_raw):
    """Test active -> canceled and back, never present in both partitions."""
    reconcile_batch(sqlite_engine, TENANT, "Agoda", [make_raw()], notifier=fake_notifier)

    canceled = reconcile_batch(
        sqlite_engine,
        TENANT,
        "Agoda",
        [make_raw(reservationStatus="예약취소")],
        notifier=fake_notifier,
    )
    rows = _rows(sqlite_engine)
    assert canceled.transitions == {"move_to_canceled": 1}
    assert len(rows) == 1
    assert rows[0]["is_canceled"] is True
    assert rows[0]["status"] == "예약취소"

    restored = reconcile_batch(
        sqlite_engine, TENANT, "Agoda", [make_raw()], notifier=fake_notifier
    )
    rows = _rows(sqlite_engine)
    assert restored.transitions == {"move_to_active": 1}
    assert len(rows) == 1
    assert rows[0]["is_canceled"] is False


@pytest.mark.unit
def test_canceled_on_first_sight(sqlite_engine, fake_notifier, make_raw):
    """Test that a record first seen as canceled goes straight to the canceled partition."""
    result = reconcile_batch(
        sqlite_engine,
        TENANT,
        "walk-in",
        [make_raw(reservationStatus="Cancelled")],
        notifier=fake_notifier,
    )

    assert result.transitions == {"create_canceled": 1}
    assert _rows(sqlite_engine)[0]["is_canceled"] is True
    assert fake_notifier.sent == []


@pytest.mark.unit
def test_tenants_are_isolated(sqlite_engine, fake_notifier, make_raw):
    """Test that the same reservation number is stored separately per tenant."""
    reconcile_batch(sqlite_engine, "hotel-a", "Agoda", [make_raw()], notifier=fake_notifier)
    reconcile_batch(
        sqlite_engine,
        "hotel-b",
        "Agoda",
        [make_raw(reservationStatus="취소")],
        notifier=fake_notifier,
    )

    assert _rows(sqlite_engine, "hotel-a")[0]["is_canceled"] is False
    assert _rows(sqlite_engine, "hotel-b")[0]["is_canceled"] is True


@pytest.mark.unit
def test_invalid_record_does_not_abort_batch(sqlite_engine, fake_notifier, make_raw):
    """Test that 5 records with #3 invalid persist 4 and skip 1."""
    batch = [make_raw(reservationNo=f"R{i}") for i in range(5)]
    batch[2]["checkIn"] = "2024-05-10 14:00"
    batch[2]["checkOut"] = "2024-05-10"

    result = reconcile_batch(sqlite_engine, TENANT, "Agoda", batch, notifier=fake_notifier)

    assert result.processed_count == 4
    assert len(result.skipped) == 1
    assert result.skipped[0].index == 2
    assert result.skipped[0].reason == "invalid_dates"
    assert len(_rows(sqlite_engine)) == 4


@pytest.mark.unit
def test_rejection_reasons(sqlite_engine, fake_notifier, make_raw):
    """Test the skip reasons for missing numbers and malformed entries."""
    batch = [make_raw(reservationNo="N/A"), "not-a-record", make_raw()]

    result = reconcile_batch(sqlite_engine, TENANT, "Agoda", batch, notifier=fake_notifier)

    assert [s.reason for s in result.skipped] == [
        "missing_reservation_number",
        "malformed_record",
    ]
    assert result.processed_count == 1


@pytest.mark.unit
def test_classifier_failure_skips_record(sqlite_engine, fake_notifier, make_raw):
    """Test that a failing classifier only skips the affected record."""

    class ExplodingClassifier:
        def classify(self, status, customer_name, room_description, channel_reservation_number):
            if channel_reservation_number == "R2":
                raise RuntimeError("ruleset unavailable")
            return False

    batch = [make_raw(reservationNo="R1"), make_raw(reservationNo="R2")]
    result = reconcile_batch(
        sqlite_engine,
        TENANT,
        "Agoda",
        batch,
        classifier=ExplodingClassifier(),
        notifier=fake_notifier,
    )

    assert result.processed_count == 1
    assert result.skipped[0].reason == "classification_failed"
    assert result.skipped[0].reservation_id == "Agoda-R2"


@pytest.mark.unit
def test_store_failure_skips_record(sqlite_engine, fake_notifier, make_raw):
    """Test that a failed write is reported and the batch continues."""

    def flaky_insert(conn, row, is_canceled):
        if row["id"] == "Agoda-R2":
            raise SQLAlchemyError("disk full")
        return insert_reservation(conn, row, is_canceled)

    batch = [make_raw(reservationNo=f"R{i}") for i in range(1, 4)]
    with patch(
        "sync_reservations.services.reconcile.insert_reservation", side_effect=flaky_insert
    ):
        result = reconcile_batch(sqlite_engine, TENANT, "Agoda", batch, notifier=fake_notifier)

    assert result.processed_count == 2
    assert result.skipped[0].reason == "store_failure"
    assert [row["id"] for row in _rows(sqlite_engine)] == ["Agoda-R1", "Agoda-R3"]


@pytest.mark.unit
def test_lost_connection_aborts_batch(sqlite_engine, fake_notifier, make_raw):
    """Test that an invalidated connection raises StoreUnavailable."""
    lost = DBAPIError("INSERT", {}, Exception("server closed"), connection_invalidated=True)

    with patch("sync_reservations.services.reconcile.insert_reservation", side_effect=lost):
        with pytest.raises(StoreUnavailable):
            reconcile_batch(sqlite_engine, TENANT, "Agoda", [make_raw()], notifier=fake_notifier)


@pytest.mark.unit
def test_provisioning_failure_raises_before_records(sqlite_engine, fake_notifier, make_raw):
    """Test that a tenant directory failure aborts the batch up front."""
    with patch(
        "sync_reservations.services.reconcile.ensure_tenant",
        side_effect=SQLAlchemyError("directory down"),
    ):
        with pytest.raises(ProvisioningFailure):
            reconcile_batch(sqlite_engine, TENANT, "Agoda", [make_raw()], notifier=fake_notifier)

    assert _rows(sqlite_engine) == []


@pytest.mark.unit
def test_disabled_tenant_is_rejected(sqlite_engine, fake_notifier, make_raw):
    """Test that batches for a deactivated tenant are refused."""
    with sqlite_engine.begin() as conn:
        conn.execute(insert(Tenant).values(tenant_id=TENANT, is_active=False))

    with pytest.raises(ProvisioningFailure):
        reconcile_batch(sqlite_engine, TENANT, "Agoda", [make_raw()], notifier=fake_notifier)


@pytest.mark.unit
def test_stop_event_cancels_remaining_records(sqlite_engine, fake_notifier, make_raw):
    """Test that setting the stop event keeps committed writes and skips the rest."""
    stop_event = threading.Event()

    class StoppingClassifier:
        def classify(self, status, customer_name, room_description, channel_reservation_number):
            if channel_reservation_number == "R1":
                stop_event.set()
            return False

    batch = [make_raw(reservationNo=f"R{i}") for i in range(5)]
    result = reconcile_batch(
        sqlite_engine,
        TENANT,
        "Agoda",
        batch,
        classifier=StoppingClassifier(),
        notifier=fake_notifier,
        stop_event=stop_event,
    )

    assert result.cancelled is True
    assert result.processed_count == 2
    assert [s.index for s in result.skipped] == [2, 3, 4]
    assert {s.reason for s in result.skipped} == {"batch_cancelled"}
    assert len(_rows(sqlite_engine)) == 2


@pytest.mark.unit
def test_dry_run_writes_nothing(sqlite_engine, fake_notifier, make_raw):
    """Test that dry_run normalizes and classifies without touching the store."""
    result = reconcile_batch(
        sqlite_engine,
        TENANT,
        "walk-in",
        [make_raw()],
        notifier=fake_notifier,
        dry_run=True,
    )

    assert result.processed_count == 1
    assert result.transitions == {}
    assert _rows(sqlite_engine) == []
    assert fake_notifier.sent == []


@pytest.mark.unit
def test_walk_in_create_sends_one_notification(sqlite_engine, fake_notifier, make_raw):
    """Test that only the first ingestion of a walk-in booking notifies the guest."""
    reconcile_batch(sqlite_engine, TENANT, "walk-in", [make_raw()], notifier=fake_notifier)
    reconcile_batch(
        sqlite_engine, TENANT, "walk-in", [make_raw(price="130,000")], notifier=fake_notifier
    )

    assert len(fake_notifier.sent) == 1
    message = fake_notifier.sent[0]
    assert message["phone_number"] == "01012345678"
    assert message["template_code"] == "WALK_IN_RESERVATION"
    assert "120,000원" in message["text"]


@pytest.mark.unit
@pytest.mark.parametrize(
    "channel, overrides",
    [
        ("Agoda", {}),
        ("walk-in", {"roomInfo": "대실 3시간"}),
        ("walk-in", {"phoneNumber": None}),
    ],
)
def test_notification_not_sent(sqlite_engine, fake_notifier, make_raw, channel, overrides):
    """Test that OTA, short stay and phoneless bookings get no message."""
    reconcile_batch(sqlite_engine, TENANT, channel, [make_raw(**overrides)], notifier=fake_notifier)

    assert fake_notifier.sent == []


@pytest.mark.unit
def test_notifications_disabled_for_tenant(sqlite_engine, fake_notifier, make_raw):
    """Test that a tenant can opt out of guest notifications."""
    with sqlite_engine.begin() as conn:
        conn.execute(insert(Tenant).values(tenant_id=TENANT, notifications_enabled=False))

    result = reconcile_batch(sqlite_engine, TENANT, "walk-in", [make_raw()], notifier=fake_notifier)

    assert result.notifications_queued == 0
    assert fake_notifier.sent == []


@pytest.mark.unit
def test_caller_owned_outbox_is_not_drained(sqlite_engine, fake_notifier, make_raw):
    """Test that a caller-supplied outbox is left for the caller to drain."""
    outbox = NotificationOutbox()

    result = reconcile_batch(
        sqlite_engine, TENANT, "walk-in", [make_raw()], outbox=outbox, notifier=fake_notifier
    )

    assert result.notifications_queued == 1
    assert len(outbox) == 1
    assert fake_notifier.sent == []

    assert outbox.drain(fake_notifier) == (1, 0)
    assert len(fake_notifier.sent) == 1


@pytest.mark.unit
def test_notifier_failure_does_not_fail_batch(sqlite_engine, make_raw):
    """Test that delivery errors are swallowed after the records are committed."""

    class BrokenNotifier:
        def send(self, phone_number, template_code, text):
            raise ConnectionError("gateway down")

    result = reconcile_batch(
        sqlite_engine, TENANT, "walk-in", [make_raw()], notifier=BrokenNotifier()
    )

    assert result.processed_count == 1
    assert len(_rows(sqlite_engine)) == 1


@pytest.mark.unit
def test_non_finite_price_does_not_abort_batch(sqlite_engine, fake_notifier, make_raw):
    """Test that an infinite price is stored as 0 and later records still run."""
    batch = [
        make_raw(reservationNo="R1"),
        make_raw(reservationNo="R2", price=float("inf")),
        make_raw(reservationNo="R3"),
    ]

    result = reconcile_batch(sqlite_engine, TENANT, "Agoda", batch, notifier=fake_notifier)

    rows = {row["id"]: row for row in _rows(sqlite_engine)}
    assert result.processed_count == 3
    assert result.skipped == []
    assert rows["Agoda-R2"]["price"] == 0
    assert "Agoda-R3" in rows


@pytest.mark.unit
def test_unexpected_normalizer_error_skips_record(sqlite_engine, fake_notifier, make_raw):
    """Test that a normalizer bug only skips the affected record."""

    def fragile_normalize(tenant_id, channel, raw):
        if raw["reservationNo"] == "R2":
            raise OverflowError("cannot convert float infinity to integer")
        return normalize_reservation(tenant_id, channel, raw)

    batch = [make_raw(reservationNo=f"R{i}") for i in range(1, 4)]
    with patch(
        "sync_reservations.services.reconcile.normalize_reservation",
        side_effect=fragile_normalize,
    ):
        result = reconcile_batch(sqlite_engine, TENANT, "Agoda", batch, notifier=fake_notifier)

    assert result.processed_count == 2
    assert len(result.skipped) == 1
    assert result.skipped[0].index == 1
    assert result.skipped[0].reason == "normalization_failed"
    assert [row["id"] for row in _rows(sqlite_engine)] == ["Agoda-R1", "Agoda-R3"]


@pytest.mark.unit
def test_lost_insert_race_is_replanned_as_update(sqlite_engine, fake_notifier, make_raw):
    """Test that an insert losing to a concurrent batch is re-planned against its row."""
    calls = []

    def racing_insert(conn, row, is_canceled):
        calls.append(row["id"])
        # The row appears as if another batch committed it first
        insert_reservation(conn, row, is_canceled)
        return False

    with patch(
        "sync_reservations.services.reconcile.insert_reservation", side_effect=racing_insert
    ):
        result = reconcile_batch(
            sqlite_engine, TENANT, "walk-in", [make_raw()], notifier=fake_notifier
        )

    assert calls == ["walk-in-R1001"]
    assert result.transitions == {"update_active": 1}
    assert result.notifications_queued == 0
    assert fake_notifier.sent == []
    assert len(_rows(sqlite_engine)) == 1


@pytest.mark.unit
def test_persistent_insert_conflict_is_store_failure(sqlite_engine, fake_notifier, make_raw):
    """Test that a key that keeps conflicting is skipped after the retry budget."""

    def conflicting_insert(conn, row, is_canceled):
        if row["id"] == "Agoda-R1":
            return False
        return insert_reservation(conn, row, is_canceled)

    batch = [make_raw(reservationNo="R1"), make_raw(reservationNo="R2")]
    with patch(
        "sync_reservations.services.reconcile.insert_reservation",
        side_effect=conflicting_insert,
    ) as mock_insert:
        result = reconcile_batch(sqlite_engine, TENANT, "Agoda", batch, notifier=fake_notifier)

    assert mock_insert.call_count == 3  # two attempts for R1, one for R2
    assert result.processed_count == 1
    assert result.skipped[0].reason == "store_failure"
    assert result.skipped[0].reservation_id == "Agoda-R1"
    assert [row["id"] for row in _rows(sqlite_engine)] == ["Agoda-R2"]
