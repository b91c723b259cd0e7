# medrecords/stores/sql_store.py
"""
Remote row store over SQLAlchemy Core.

Driver errors are translated into the domain taxonomy so callers never see
SQLAlchemy exceptions: missing tables/columns become SchemaMismatch,
connectivity faults become BackendUnavailable.
"""

import logging
import re
from typing import Callable, Optional

from sqlalchemy import MetaData, Table, delete, insert, select, update
from sqlalchemy import exc as sa_exc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medrecords.core.errors import BackendError, BackendUnavailable, SchemaMismatch
from medrecords.models import Base
from medrecords.models.base import new_id
from medrecords.stores.base import Filters, Row, RowStore, is_multi, parse_order

logger = logging.getLogger(__name__)

# Postgres SQLSTATE codes for undefined table / undefined column
_SCHEMA_SQLSTATES = {"42P01", "42703"}
_SCHEMA_MARKERS = (
    "no such table",
    "no such column",
    "has no column",
    "undefinedtable",
    "undefinedcolumn",
)
# Only relations and columns; `database "x" does not exist` is a connectivity fault
_MISSING_RELATION = re.compile(r"\b(relation|table|column) \S+ does not exist")
_CONNECTIVITY_ERRORS = (
    sa_exc.OperationalError,
    sa_exc.InterfaceError,
    sa_exc.DisconnectionError,
    sa_exc.TimeoutError,
)


def translate_error(exc: SQLAlchemyError, table: str) -> BackendError:
    orig = getattr(exc, "orig", None)
    message = str(orig or exc).lower()
    pgcode = getattr(orig, "pgcode", None)
    if pgcode:
        is_schema = pgcode in _SCHEMA_SQLSTATES
    else:
        is_schema = any(marker in message for marker in _SCHEMA_MARKERS) or bool(
            _MISSING_RELATION.search(message)
        )
    if is_schema:
        return SchemaMismatch(table=table)
    if isinstance(exc, _CONNECTIVITY_ERRORS) or getattr(exc, "connection_invalidated", False):
        return BackendUnavailable(f"Backend unreachable while accessing '{table}': {exc}", table=table)
    return BackendError(f"Backend rejected operation on '{table}': {exc}", table=table)


class SqlRowStore(RowStore):
    def __init__(
        self,
        session_factory: Callable[[], Session],
        metadata: MetaData = Base.metadata,
    ):
        self._session_factory = session_factory
        self._metadata = metadata

    def _table(self, name: str) -> Table:
        table = self._metadata.tables.get(name)
        if table is None:
            raise SchemaMismatch(table=name)
        return table

    def _column(self, table: Table, name: str):
        if name not in table.c:
            raise SchemaMismatch(f"Column '{name}' does not exist on '{table.name}'.", table=table.name)
        return table.c[name]

    def _where(self, table: Table, filters: Optional[Filters]) -> list:
        clauses = []
        for name, value in (filters or {}).items():
            column = self._column(table, name)
            if is_multi(value):
                clauses.append(column.in_(list(value)))
            elif value is None:
                clauses.append(column.is_(None))
            else:
                clauses.append(column == value)
        return clauses

    def _check_columns(self, table: Table, row: Row) -> None:
        for name in row:
            self._column(table, name)

    def query(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
    ) -> list[Row]:
        sa_table = self._table(table)
        stmt = select(sa_table).where(*self._where(sa_table, filters))
        column_name, descending = parse_order(order_by)
        if column_name:
            column = self._column(sa_table, column_name)
            stmt = stmt.order_by(column.desc() if descending else column.asc())

        with self._session_factory() as db:
            try:
                return [dict(r._mapping) for r in db.execute(stmt)]
            except SQLAlchemyError as e:
                raise translate_error(e, table) from e

    def insert(self, table: str, row: Row) -> Row:
        sa_table = self._table(table)
        row = dict(row)
        row.setdefault("id", new_id())
        self._check_columns(sa_table, row)

        with self._session_factory() as db:
            try:
                db.execute(insert(sa_table).values(**row))
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise translate_error(e, table) from e
        logger.debug(f"Inserted row {row['id']} into {table}")
        return row

    def update(self, table: str, filters: Filters, patch: Row) -> int:
        sa_table = self._table(table)
        if not patch:
            return 0
        self._check_columns(sa_table, patch)
        stmt = update(sa_table).where(*self._where(sa_table, filters)).values(**patch)

        with self._session_factory() as db:
            try:
                result = db.execute(stmt)
                db.commit()
                return result.rowcount
            except SQLAlchemyError as e:
                db.rollback()
                raise translate_error(e, table) from e

    def delete(self, table: str, filters: Filters) -> int:
        sa_table = self._table(table)
        stmt = delete(sa_table).where(*self._where(sa_table, filters))

        with self._session_factory() as db:
            try:
                result = db.execute(stmt)
                db.commit()
                return result.rowcount
            except SQLAlchemyError as e:
                db.rollback()
                raise translate_error(e, table) from e
