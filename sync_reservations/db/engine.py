"""
SQLAlchemy engine singleton with connection pooling.

Overlapping scrape runs for the same tenant reconcile concurrently, each record
in its own short transaction, so the pool is sized for many small transactions
rather than long-lived sessions.
"""

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine

from sync_reservations.config import DATABASE_URL

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set.")

engine: Engine = create_engine(
    DATABASE_URL,
    future=True,
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,  # Detect connections dropped by the server
    pool_recycle=3600,
    echo=False,
)


def apply_statement_timeout(conn: Connection, timeout_ms: int | None) -> None:
    """
    Bound every statement of the current transaction to timeout_ms.

    Only PostgreSQL understands SET LOCAL statement_timeout; other dialects
    (SQLite in tests) are left untouched.

    Args:
        conn: Connection with an open transaction
        timeout_ms: Timeout in milliseconds, None or 0 disables the bound
    """
    if not timeout_ms or conn.dialect.name != "postgresql":
        return
    conn.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))


def check_engine_health() -> bool:
    """
    Check if database engine is healthy and connections are working.

    Used by the /ready endpoint before allowing traffic to the service.

    Returns:
        bool: True if database is reachable and healthy, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
