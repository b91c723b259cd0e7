# medrecords/models/base.py
import uuid

from sqlalchemy.orm import DeclarativeBase


def new_id() -> str:
    """String primary keys, so rows travel unchanged between the SQL store and the local cache."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """
    Base class for all ORM models.

    The row stores work against Base.metadata, so every table the
    reconciliation layer touches must be declared on this base.
    """

    pass
