"""
Cancellation verdicts for scraped reservations.

Channels rarely expose a clean "canceled" flag. The signal is spread over the
status text, placeholder customer names, markers appended to the room text and,
for a few channels, the shape of the reservation number itself. The reconciler
only sees the CancellationClassifier protocol; the keyword ruleset below is the
default implementation and can be swapped per deployment or in tests.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Protocol


class CancellationClassifier(Protocol):
    """Opaque predicate deciding whether a reservation is canceled."""

    def classify(
        self,
        status: Optional[str],
        customer_name: Optional[str],
        room_description: Optional[str],
        channel_reservation_number: Optional[str],
    ) -> bool: ...


DEFAULT_STATUS_KEYWORDS = ("cancel", "취소", "환불완료", "refunded")
DEFAULT_MARKER_KEYWORDS = ("취소", "[cancel", "(cancel", "canceled", "cancelled")
DEFAULT_NEGATIVE_MARKERS = (
    "취소불가",
    "취소 불가",
    "취소규정",
    "non-cancel",
    "noncancel",
    "non-refundable",
    "cancellation policy",
    "free cancellation",
)
DEFAULT_RESERVATION_NUMBER_PATTERN = r"(?i)(?:^|[-_])(?:cxl|cncl|cancel)(?:$|[-_])"


class KeywordCancellationClassifier:
    """
    Keyword ruleset used when no other classifier is configured.

    Text is lower-cased and stripped of negative markers ("취소불가",
    "non-refundable", ...) first, so a room sold as a non-cancellable deal is
    not mistaken for a canceled booking.

    Example:
        >>> classifier = KeywordCancellationClassifier()
        >>> classifier.classify("예약취소", "홍길동", "디럭스", "A123")
        True
        >>> classifier.classify("confirmed", "홍길동", "디럭스 (취소불가)", "A123")
        False
    """

    def __init__(
        self,
        status_keywords: Iterable[str] = DEFAULT_STATUS_KEYWORDS,
        marker_keywords: Iterable[str] = DEFAULT_MARKER_KEYWORDS,
        negative_markers: Iterable[str] = DEFAULT_NEGATIVE_MARKERS,
        reservation_number_pattern: str | None = DEFAULT_RESERVATION_NUMBER_PATTERN,
    ) -> None:
        self.status_keywords = tuple(k.lower() for k in status_keywords)
        self.marker_keywords = tuple(k.lower() for k in marker_keywords)
        self.negative_markers = tuple(k.lower() for k in negative_markers)
        self.reservation_number_re = (
            re.compile(reservation_number_pattern) if reservation_number_pattern else None
        )

    def _clean(self, value: Optional[str]) -> str:
        text = (value or "").lower()
        for marker in self.negative_markers:
            text = text.replace(marker, " ")
        return text

    def classify(
        self,
        status: Optional[str],
        customer_name: Optional[str],
        room_description: Optional[str],
        channel_reservation_number: Optional[str],
    ) -> bool:
        status_text = self._clean(status)
        if any(keyword in status_text for keyword in self.status_keywords):
            return True

        for field in (customer_name, room_description):
            text = self._clean(field)
            if any(marker in text for marker in self.marker_keywords):
                return True

        if self.reservation_number_re and channel_reservation_number:
            return bool(self.reservation_number_re.search(channel_reservation_number))

        return False
