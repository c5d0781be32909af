from typing import Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, status
from sqlalchemy.engine import Engine

from sync_reservations.classifiers.cancellation import CancellationClassifier
from sync_reservations.config import DRY_RUN
from sync_reservations.dependencies import get_classifier, get_db_engine, get_notifier
from sync_reservations.exceptions import (
    ProvisioningFailure,
    ReservationAlreadyConfirmed,
    ReservationNotFound,
    StoreUnavailable,
)
from sync_reservations.notifications.alimtalk import Notifier
from sync_reservations.notifications.outbox import NotificationOutbox
from sync_reservations.reconciliation.transitions import Partition
from sync_reservations.schemas.reservations import (
    BatchResult,
    ConfirmReservationPayload,
    ReservationBatchPayload,
    ReservationOut,
)
from sync_reservations.services.reconcile import reconcile_batch
from sync_reservations.services.reservations import (
    confirm_reservation,
    export_partition,
    remove_reservation,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/reservations", response_model=BatchResult, status_code=status.HTTP_201_CREATED)
def reconcile_reservations(
    payload: ReservationBatchPayload,
    background_tasks: BackgroundTasks,
    dry_run: Optional[bool] = Query(None, description="Override DRY_RUN setting"),
    engine: Engine = Depends(get_db_engine),
    classifier: CancellationClassifier = Depends(get_classifier),
    notifier: Notifier = Depends(get_notifier),
) -> BatchResult:
    """
    Reconcile a scraped batch into the tenant's active and canceled partitions.

    Guest notifications for new walk-in reservations are delivered in the
    background after the response is sent.

    Args:
        payload: tenant_id, channel and the raw reservations
        background_tasks: FastAPI background task runner
        dry_run: Override DRY_RUN setting (optional)

    Returns:
        BatchResult: processed count, skipped records and applied transitions
    """
    use_dry_run = DRY_RUN if dry_run is None else dry_run
    outbox = NotificationOutbox()

    try:
        result = reconcile_batch(
            engine,
            payload.tenant_id,
            payload.channel,
            payload.reservations,
            classifier=classifier,
            outbox=outbox,
            dry_run=use_dry_run,
        )
    except (ProvisioningFailure, StoreUnavailable) as e:
        logger.error("batch_rejected", tenant_id=payload.tenant_id, error=str(e))
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except Exception as e:
        logger.exception("batch_failed", tenant_id=payload.tenant_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")

    if len(outbox):
        background_tasks.add_task(outbox.drain, notifier)

    return result


@router.get("/reservations", response_model=list[ReservationOut])
def list_active_reservations(
    tenant_id: str = Query(..., min_length=1),
    name: Optional[str] = Query(None, description="Exact customer name, case-insensitive"),
    engine: Engine = Depends(get_db_engine),
) -> list[dict]:
    """List the tenant's active reservations, newest first."""
    return export_partition(engine, tenant_id, Partition.ACTIVE, customer_name=name)


@router.get("/reservations/canceled", response_model=list[ReservationOut])
def list_canceled_reservations(
    tenant_id: str = Query(..., min_length=1),
    engine: Engine = Depends(get_db_engine),
) -> list[dict]:
    """List the tenant's canceled reservations, newest first."""
    return export_partition(engine, tenant_id, Partition.CANCELED)


@router.post("/reservations/{reservation_id}/confirm", response_model=ReservationOut)
def confirm_reservation_endpoint(
    reservation_id: str,
    payload: ConfirmReservationPayload,
    engine: Engine = Depends(get_db_engine),
) -> dict:
    """
    Confirm an active reservation.

    Returns 404 if the reservation is not active and 400 if already confirmed.
    """
    try:
        return confirm_reservation(engine, payload.tenant_id, reservation_id)
    except ReservationNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ReservationAlreadyConfirmed as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/reservations/{reservation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reservation_endpoint(
    reservation_id: str,
    tenant_id: str = Query(..., min_length=1),
    channel: str = Query(..., min_length=1),
    engine: Engine = Depends(get_db_engine),
) -> Response:
    """Delete an active reservation. Returns 404 if it does not exist."""
    try:
        remove_reservation(engine, tenant_id, reservation_id, channel)
    except ReservationNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
