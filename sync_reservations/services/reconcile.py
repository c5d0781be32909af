"""Batch reconciler: scraped reservation batches into the active/canceled partitions."""

from __future__ import annotations

import threading
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from sync_reservations.classifiers.cancellation import (
    CancellationClassifier,
    KeywordCancellationClassifier,
)
from sync_reservations.config import DB_STATEMENT_TIMEOUT_MS
from sync_reservations.db.engine import apply_statement_timeout
from sync_reservations.db.readers.reservations import lock_current_partition
from sync_reservations.db.readers.tenants import get_tenant
from sync_reservations.db.writers.reservations import insert_reservation, overwrite_reservation
from sync_reservations.db.writers.tenants import ensure_tenant
from sync_reservations.exceptions import (
    ProvisioningFailure,
    StoreFailure,
    StoreUnavailable,
    ValidationRejection,
)
from sync_reservations.metrics import (
    batch_duration,
    batches_total,
    records_reconciled,
    transitions_total,
)
from sync_reservations.normalizers.reservations import normalize_reservation
from sync_reservations.notifications.alimtalk import AlimtalkNotifier, Notifier
from sync_reservations.notifications.outbox import NotificationMessage, NotificationOutbox
from sync_reservations.notifications.templates import (
    WALK_IN_TEMPLATE_CODE,
    render_walk_in_message,
    should_notify_walk_in,
)
from sync_reservations.reconciliation.transitions import Transition, plan_transition
from sync_reservations.schemas.reservations import BatchResult, SkippedRecord

logger = structlog.get_logger(__name__)

# A create that loses an insert race is re-planned once from a fresh read
MAX_APPLY_ATTEMPTS = 2


def provision_tenant(
    engine: Engine, tenant_id: str, statement_timeout_ms: Optional[int], dry_run: bool = False
) -> Optional[dict[str, Any]]:
    """
    Make sure the tenant exists and may receive reservations.

    Args:
        engine: SQLAlchemy Engine
        tenant_id: Tenant (hotel) identifier
        statement_timeout_ms: Per-statement timeout for the provisioning transaction
        dry_run: If True, only look the tenant up

    Returns:
        Tenant configuration, None only in dry_run mode for an unknown tenant

    Raises:
        ProvisioningFailure: the directory could not be written or the tenant is disabled
    """
    try:
        with engine.begin() as conn:
            apply_statement_timeout(conn, statement_timeout_ms)
            if not dry_run:
                ensure_tenant(conn, tenant_id)
            tenant = get_tenant(conn, tenant_id)
    except SQLAlchemyError as e:
        logger.exception("tenant_provisioning_failed", tenant_id=tenant_id, error=str(e))
        raise ProvisioningFailure(f"Could not provision tenant {tenant_id}") from e

    if tenant is not None and not tenant["is_active"]:
        raise ProvisioningFailure(f"Tenant {tenant_id} is disabled")
    return tenant


def apply_record(
    engine: Engine,
    row: dict[str, Any],
    is_canceled: bool,
    statement_timeout_ms: Optional[int] = DB_STATEMENT_TIMEOUT_MS,
) -> tuple[Transition, bool]:
    """
    Read the current partition, plan the transition and write it, atomically.

    The read locks the reservation row and the write happens in the same
    transaction, so two batches touching the same key cannot interleave. For an
    absent key the insert is conflict-checked instead; losing that race means
    another batch created the row, and the record is re-planned against it.

    Args:
        engine: SQLAlchemy Engine
        row: Normalized reservation row
        is_canceled: Classifier verdict
        statement_timeout_ms: Per-statement timeout for the record's transaction

    Returns:
        tuple[Transition, bool]: Applied transition and whether stored data changed

    Raises:
        StoreFailure: the transaction failed and was rolled back
        StoreUnavailable: the database connection was lost
    """
    tenant_id, reservation_id = row["tenant_id"], row["id"]

    for attempt in range(1, MAX_APPLY_ATTEMPTS + 1):
        try:
            with engine.begin() as conn:
                apply_statement_timeout(conn, statement_timeout_ms)
                current = lock_current_partition(conn, tenant_id, reservation_id)
                transition = plan_transition(current, is_canceled)

                if not transition.is_create:
                    changed = overwrite_reservation(conn, row, is_canceled)
                    return transition, changed

                if insert_reservation(conn, row, is_canceled):
                    return transition, True
        except DBAPIError as e:
            if e.connection_invalidated:
                raise StoreUnavailable("Lost connection to the reservation store") from e
            raise StoreFailure(str(e.orig)) from e
        except SQLAlchemyError as e:
            raise StoreFailure(str(e)) from e

        logger.info(
            "reservation_insert_conflict",
            reservation_id=reservation_id,
            attempt=attempt,
        )

    raise StoreFailure(f"Reservation {reservation_id} kept conflicting with concurrent inserts")


def reconcile_batch(
    engine: Engine,
    tenant_id: str,
    channel: str,
    records: list[Any],
    classifier: Optional[CancellationClassifier] = None,
    outbox: Optional[NotificationOutbox] = None,
    notifier: Optional[Notifier] = None,
    statement_timeout_ms: Optional[int] = DB_STATEMENT_TIMEOUT_MS,
    stop_event: Optional[threading.Event] = None,
    dry_run: bool = False,
) -> BatchResult:
    """
    Reconcile one scraped batch into the tenant's active and canceled partitions.

    Each record is normalized, classified and written in its own transaction.
    A rejected or failed record is reported in the result and the batch moves on.

    When no outbox is passed, notifications for new walk-in reservations are
    delivered through notifier (AlimtalkNotifier by default) after the last
    record. A caller passing its own outbox is responsible for draining it.

    Args:
        engine: SQLAlchemy Engine
        tenant_id: Tenant (hotel) identifier
        channel: Channel the batch was scraped from
        records: Raw reservation dicts
        classifier: Cancellation ruleset (KeywordCancellationClassifier by default)
        outbox: Notification outbox to enqueue into
        notifier: Delivery backend used when this call drains its own outbox
        statement_timeout_ms: Per-statement timeout for every store transaction
        stop_event: When set, no further records are written
        dry_run: If True, normalize and classify only

    Returns:
        BatchResult: Processed count, skipped records and transition counts

    Raises:
        ProvisioningFailure: before any record is processed
        StoreUnavailable: the store connection was lost mid-batch
    """
    classifier = classifier or KeywordCancellationClassifier()
    owns_outbox = outbox is None
    if outbox is None:
        outbox = NotificationOutbox()

    result = BatchResult(tenant_id=tenant_id, channel=channel)

    with structlog.contextvars.bound_contextvars(tenant_id=tenant_id, channel=channel):
        logger.info("batch_started", records_count=len(records), dry_run=dry_run)

        try:
            with batch_duration.labels(channel=channel).time():
                tenant = provision_tenant(engine, tenant_id, statement_timeout_ms, dry_run)
                _process_records(
                    engine,
                    tenant,
                    tenant_id,
                    channel,
                    records,
                    classifier,
                    outbox,
                    result,
                    statement_timeout_ms,
                    stop_event,
                    dry_run,
                )
        except (ProvisioningFailure, StoreUnavailable):
            batches_total.labels(channel=channel, status="failure").inc()
            raise
        finally:
            # Records committed before a failure still get their notification
            if owns_outbox and len(outbox):
                outbox.drain(notifier or AlimtalkNotifier())

        batches_total.labels(
            channel=channel, status="cancelled" if result.cancelled else "success"
        ).inc()

        logger.info(
            "batch_completed",
            processed_count=result.processed_count,
            skipped_count=len(result.skipped),
            transitions=result.transitions,
            notifications_queued=result.notifications_queued,
            cancelled=result.cancelled,
        )

    return result


def _skip(
    result: BatchResult,
    channel: str,
    index: int,
    reason: str,
    detail: Optional[str] = None,
    reservation_id: Optional[str] = None,
) -> None:
    result.skipped.append(
        SkippedRecord(index=index, reservation_id=reservation_id, reason=reason, detail=detail)
    )
    records_reconciled.labels(channel=channel, outcome=reason).inc()


def _process_records(
    engine: Engine,
    tenant: Optional[dict[str, Any]],
    tenant_id: str,
    channel: str,
    records: list[Any],
    classifier: CancellationClassifier,
    outbox: NotificationOutbox,
    result: BatchResult,
    statement_timeout_ms: Optional[int],
    stop_event: Optional[threading.Event],
    dry_run: bool,
) -> None:
    for index, raw in enumerate(records):
        if stop_event is not None and stop_event.is_set():
            result.cancelled = True
            for remaining in range(index, len(records)):
                _skip(result, channel, remaining, "batch_cancelled")
            logger.warning("batch_cancelled", remaining_count=len(records) - index)
            return

        if not isinstance(raw, dict):
            logger.warning("reservation_rejected", index=index, reason="malformed_record")
            _skip(
                result,
                channel,
                index,
                "malformed_record",
                f"expected object, got {type(raw).__name__}",
            )
            continue

        try:
            row = normalize_reservation(tenant_id, channel, raw)
        except ValidationRejection as e:
            logger.warning(
                "reservation_rejected",
                index=index,
                reservation_no=raw.get("reservationNo"),
                reason=e.reason,
                detail=e.detail,
            )
            _skip(result, channel, index, e.reason, e.detail)
            continue
        except Exception as e:
            logger.exception(
                "normalization_failed",
                index=index,
                reservation_no=raw.get("reservationNo"),
                error=str(e),
            )
            _skip(result, channel, index, "normalization_failed", str(e))
            continue

        try:
            is_canceled = classifier.classify(
                row["status"],
                row["customer_name"],
                row["room_description"],
                row["reservation_number"],
            )
        except Exception as e:
            logger.exception("classification_failed", reservation_id=row["id"], error=str(e))
            _skip(result, channel, index, "classification_failed", str(e), row["id"])
            continue

        if dry_run:
            logger.info(
                f"[DRY RUN] Would reconcile {row['id']}",
                reservation_id=row["id"],
                is_canceled=is_canceled,
            )
            result.processed_count += 1
            records_reconciled.labels(channel=channel, outcome="processed").inc()
            continue

        try:
            transition, changed = apply_record(engine, row, is_canceled, statement_timeout_ms)
        except StoreFailure as e:
            logger.error("reservation_store_failed", reservation_id=row["id"], error=str(e))
            _skip(result, channel, index, "store_failure", str(e), row["id"])
            continue

        logger.info(
            "reservation_reconciled",
            reservation_id=row["id"],
            transition=transition.value,
            changed=changed,
        )
        result.processed_count += 1
        result.transitions[transition.value] = result.transitions.get(transition.value, 0) + 1
        records_reconciled.labels(channel=channel, outcome="processed").inc()
        transitions_total.labels(transition=transition.value).inc()

        if transition is Transition.CREATE_ACTIVE and should_notify_walk_in(row, tenant):
            outbox.enqueue(
                NotificationMessage(
                    tenant_id=tenant_id,
                    reservation_id=row["id"],
                    phone_number=row["phone_number"],
                    template_code=WALK_IN_TEMPLATE_CODE,
                    text=render_walk_in_message(row, tenant),
                )
            )
            result.notifications_queued += 1
