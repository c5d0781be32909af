"""
FastAPI dependency injection providers.

Routes receive the engine, the cancellation classifier and the notifier through
these providers so tests can swap them with app.dependency_overrides.

Testing Example:
    >>> app.dependency_overrides[get_db_engine] = lambda: sqlite_engine
    >>> app.dependency_overrides[get_notifier] = lambda: FakeNotifier()
"""

from __future__ import annotations

from typing import Generator

from sqlalchemy.engine import Engine

from sync_reservations.classifiers.cancellation import (
    CancellationClassifier,
    KeywordCancellationClassifier,
)
from sync_reservations.db.engine import engine
from sync_reservations.notifications.alimtalk import AlimtalkNotifier, Notifier


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide database engine for dependency injection.

    Yields:
        Engine: SQLAlchemy database engine
    """
    yield engine


def get_classifier() -> CancellationClassifier:
    """Provide the cancellation ruleset used for incoming batches."""
    return KeywordCancellationClassifier()


def get_notifier() -> Notifier:
    """Provide the guest notification backend."""
    return AlimtalkNotifier()
