from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Declarative base shared by the tenant directory and reservation tables.

    Alembic autogenerate reads Base.metadata, so every model module must be
    imported in alembic/env.py.
    """

    pass
