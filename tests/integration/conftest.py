"""
Shared fixtures for integration tests against PostgreSQL.

The schema must be migrated first (alembic upgrade head). Tests skip when the
database at DATABASE_URL cannot be reached.
"""

from __future__ import annotations

from typing import Any, Generator

import pytest
from sqlalchemy import text

from sync_reservations.db.engine import check_engine_health, engine


@pytest.fixture(autouse=True)
def require_database() -> None:
    if not check_engine_health():
        pytest.skip("PostgreSQL at DATABASE_URL is not reachable")


@pytest.fixture
def test_tenant(request: Any) -> Generator[str, None, None]:
    """
    Tenant id for a test; all of its rows are removed afterwards.

    The tenant itself is provisioned by the code under test.
    """
    tenant_id = getattr(request, "param", "it-hotel-1")

    yield tenant_id

    with engine.begin() as conn:
        conn.execute(
            text("DELETE FROM reservations.reservations WHERE tenant_id = :tenant_id"),
            {"tenant_id": tenant_id},
        )
        conn.execute(
            text("DELETE FROM reservations.tenants WHERE tenant_id = :tenant_id"),
            {"tenant_id": tenant_id},
        )
