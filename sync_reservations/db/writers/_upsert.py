"""
Conflict-checked insert and IS DISTINCT FROM update helpers.

Shared by the tenant and reservation writers. Inserts never overwrite a row
another transaction created first, and updates skip rows whose data has not
changed so updated_at only moves on real changes.
"""

from typing import Any

from sqlalchemy import or_, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection


def dialect_insert(conn: Connection, table: type) -> Any:
    """
    Return an INSERT construct supporting ON CONFLICT for the connection's dialect.

    PostgreSQL in production, SQLite for the in-memory test store; both expose
    the same on_conflict_do_nothing / on_conflict_do_update API.
    """
    if conn.dialect.name == "sqlite":
        return sqlite.insert(table)
    return postgresql.insert(table)


def insert_if_absent(
    conn: Connection,
    table: type,
    row: dict[str, Any],
    conflict_columns: list[str],
) -> bool:
    """
    Insert a row unless a row with the same key already exists.

    Args:
        conn: Active database connection (within transaction)
        table: SQLAlchemy ORM table class (e.g., Tenant, Reservation)
        row: Column values to insert
        conflict_columns: Primary key columns for ON CONFLICT

    Returns:
        bool: True if the row was inserted, False if the key already existed

    Example:
        >>> with engine.begin() as conn:
        ...     insert_if_absent(conn, Tenant, {"tenant_id": "hotel-1"}, ["tenant_id"])
    """
    stmt = dialect_insert(conn, table).values(row)
    stmt = stmt.on_conflict_do_nothing(index_elements=conflict_columns)
    result = conn.execute(stmt)
    return bool(result.rowcount)


def update_if_distinct(
    conn: Connection,
    table: type,
    key: dict[str, Any],
    values: dict[str, Any],
    distinct_columns: list[str],
) -> bool:
    """
    Update one row only where at least one distinct_column value changed.

    Args:
        conn: Active database connection (within transaction)
        table: SQLAlchemy ORM table class
        key: Primary key column values identifying the row
        values: Column values to write
        distinct_columns: Columns compared with IS DISTINCT FROM

    Returns:
        bool: True if the row was written, False if nothing changed or no row matched

    Technical Details:
        - IS DISTINCT FROM is NULL-safe (rendered as IS NOT on SQLite)
        - Prevents updated_at from changing on no-op re-ingestion
    """
    conditions = [getattr(table, col) == value for col, value in key.items()]
    distinct_check = or_(
        *[getattr(table, col).is_distinct_from(values[col]) for col in distinct_columns]
    )

    stmt = update(table).where(*conditions, distinct_check).values(**values)
    result = conn.execute(stmt)
    return bool(result.rowcount)
