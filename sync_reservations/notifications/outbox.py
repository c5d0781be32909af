"""
Outbound queue for guest notifications.

The reconciler only enqueues messages after the reservation's transaction has
committed. Delivery happens later, in drain(), so a slow or failing gateway
never holds a store transaction open or delays the next record.
"""

from __future__ import annotations

import threading
from collections import deque
from datetime import datetime

import structlog
from pydantic import BaseModel, Field

from sync_reservations.metrics import notifications_total
from sync_reservations.notifications.alimtalk import Notifier
from sync_reservations.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


class NotificationMessage(BaseModel):
    """One message waiting for delivery."""

    tenant_id: str
    reservation_id: str
    phone_number: str
    template_code: str
    text: str
    queued_at: datetime = Field(default_factory=utc_now)


class NotificationOutbox:
    """
    Thread-safe FIFO of NotificationMessage.

    Each message is attempted at most once: drain() removes it before sending
    and failures are logged, not requeued.
    """

    def __init__(self) -> None:
        self._messages: deque[NotificationMessage] = deque()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    def enqueue(self, message: NotificationMessage) -> None:
        with self._lock:
            self._messages.append(message)
        logger.info(
            "notification_queued",
            tenant_id=message.tenant_id,
            reservation_id=message.reservation_id,
            template_code=message.template_code,
        )

    def _pop(self) -> NotificationMessage | None:
        with self._lock:
            return self._messages.popleft() if self._messages else None

    def drain(self, notifier: Notifier) -> tuple[int, int]:
        """
        Deliver every queued message once.

        Args:
            notifier: Delivery backend

        Returns:
            tuple[int, int]: (sent, failed) counts
        """
        sent = failed = 0
        while (message := self._pop()) is not None:
            try:
                ok = notifier.send(message.phone_number, message.template_code, message.text)
            except Exception as e:
                logger.exception(
                    "notification_failed",
                    tenant_id=message.tenant_id,
                    reservation_id=message.reservation_id,
                    error=str(e),
                )
                ok = False

            if ok:
                sent += 1
                notifications_total.labels(status="sent").inc()
            else:
                failed += 1
                notifications_total.labels(status="failed").inc()
                logger.warning(
                    "notification_not_delivered",
                    tenant_id=message.tenant_id,
                    reservation_id=message.reservation_id,
                )

        if sent or failed:
            logger.info("outbox_drained", sent=sent, failed=failed)
        return sent, failed
