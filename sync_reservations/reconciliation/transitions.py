"""Partition state machine for a single (tenant_id, reservation id) key."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class Partition(str, Enum):
    ACTIVE = "active"
    CANCELED = "canceled"

    @classmethod
    def for_verdict(cls, is_canceled: bool) -> "Partition":
        return cls.CANCELED if is_canceled else cls.ACTIVE


class Transition(str, Enum):
    CREATE_ACTIVE = "create_active"
    CREATE_CANCELED = "create_canceled"
    UPDATE_ACTIVE = "update_active"
    UPDATE_CANCELED = "update_canceled"
    MOVE_TO_CANCELED = "move_to_canceled"
    MOVE_TO_ACTIVE = "move_to_active"

    @property
    def is_create(self) -> bool:
        return self in (Transition.CREATE_ACTIVE, Transition.CREATE_CANCELED)

    @property
    def is_move(self) -> bool:
        return self in (Transition.MOVE_TO_CANCELED, Transition.MOVE_TO_ACTIVE)

    @property
    def target(self) -> Partition:
        if self in (
            Transition.CREATE_CANCELED,
            Transition.UPDATE_CANCELED,
            Transition.MOVE_TO_CANCELED,
        ):
            return Partition.CANCELED
        return Partition.ACTIVE


_TRANSITIONS = {
    (None, False): Transition.CREATE_ACTIVE,
    (None, True): Transition.CREATE_CANCELED,
    (Partition.ACTIVE, False): Transition.UPDATE_ACTIVE,
    (Partition.ACTIVE, True): Transition.MOVE_TO_CANCELED,
    (Partition.CANCELED, True): Transition.UPDATE_CANCELED,
    (Partition.CANCELED, False): Transition.MOVE_TO_ACTIVE,
}


def plan_transition(current: Optional[Partition], is_canceled: bool) -> Transition:
    """
    Decide what to do with a reservation given where it lives now.

    The classifier verdict alone picks the target partition; the current
    partition only decides between create, in-place update and move.

    Args:
        current: Partition holding the reservation, None when absent
        is_canceled: Classifier verdict for the freshly ingested record

    Returns:
        Transition: The store mutation to perform
    """
    return _TRANSITIONS[(current, bool(is_canceled))]
