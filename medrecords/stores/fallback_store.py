# medrecords/stores/fallback_store.py
"""
Remote store for profile data, local cache for tables the remote database
does not have yet (SchemaMismatch). Chosen once at construction (see
stores.factory).

Connectivity faults are not absorbed here: BackendUnavailable reaches the
caller, which retries required reads and degrades optional ones. A table is
missing from the remote side for the whole deployment, so each table always
resolves to the same backend.
"""

import logging
from typing import Callable, Optional, TypeVar

from medrecords.core.errors import SchemaMismatch
from medrecords.stores.base import Filters, Row, RowStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FallbackRowStore(RowStore):
    def __init__(self, primary: RowStore, fallback: RowStore):
        self.primary = primary
        self.fallback = fallback

    def _run(self, action: str, table: str, call: Callable[[RowStore], T]) -> T:
        try:
            return call(self.primary)
        except SchemaMismatch as e:
            logger.warning(f"Remote {action} on '{table}' unavailable ({e.message}); using local cache")
            return call(self.fallback)

    def query(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
    ) -> list[Row]:
        return self._run("query", table, lambda s: s.query(table, filters, order_by))

    def insert(self, table: str, row: Row) -> Row:
        return self._run("insert", table, lambda s: s.insert(table, row))

    def update(self, table: str, filters: Filters, patch: Row) -> int:
        return self._run("update", table, lambda s: s.update(table, filters, patch))

    def delete(self, table: str, filters: Filters) -> int:
        return self._run("delete", table, lambda s: s.delete(table, filters))
