# medrecords/stores/cache_store.py
"""
Row store kept in the device-local cache.

Each table is one JSON array under ``medrecords:<table>``. Every write
rewrites the whole array (last writer wins), which is fine for the small,
single-session data sets this store holds.
"""

import json
import logging
from datetime import date, datetime
from typing import Any, Optional

from medrecords.core.cache import LocalCache
from medrecords.models.base import new_id
from medrecords.stores.base import Filters, Row, RowStore, is_multi, parse_order

logger = logging.getLogger(__name__)

KEY_PREFIX = "medrecords:"


def _encode(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _matches(row: Row, filters: Optional[Filters]) -> bool:
    for name, expected in (filters or {}).items():
        actual = row.get(name)
        if is_multi(expected):
            if actual not in {_encode(v) for v in expected}:
                return False
        elif actual != _encode(expected):
            return False
    return True


class CacheRowStore(RowStore):
    def __init__(self, cache: LocalCache):
        self._cache = cache

    def _key(self, table: str) -> str:
        return f"{KEY_PREFIX}{table}"

    def _load(self, table: str) -> list[Row]:
        raw = self._cache.get(self._key(table))
        if not raw:
            return []
        try:
            rows = json.loads(raw)
        except (ValueError, UnicodeDecodeError):
            logger.warning(f"Discarding unreadable cache entry for '{table}'")
            return []
        return rows if isinstance(rows, list) else []

    def _save(self, table: str, rows: list[Row]) -> None:
        payload = json.dumps(rows, default=_encode).encode("utf-8")
        self._cache.set(self._key(table), payload)

    def query(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
    ) -> list[Row]:
        rows = [row for row in self._load(table) if _matches(row, filters)]
        column, descending = parse_order(order_by)
        if column:
            # Rows missing the column sort last in both directions
            present = [r for r in rows if r.get(column) is not None]
            missing = [r for r in rows if r.get(column) is None]
            present.sort(key=lambda r: r[column], reverse=descending)
            rows = present + missing
        return rows

    def insert(self, table: str, row: Row) -> Row:
        row = {name: _encode(value) for name, value in row.items()}
        row.setdefault("id", new_id())
        rows = self._load(table)
        rows.append(row)
        self._save(table, rows)
        return row

    def update(self, table: str, filters: Filters, patch: Row) -> int:
        rows = self._load(table)
        encoded = {name: _encode(value) for name, value in patch.items()}
        touched = 0
        for row in rows:
            if _matches(row, filters):
                row.update(encoded)
                touched += 1
        if touched:
            self._save(table, rows)
        return touched

    def delete(self, table: str, filters: Filters) -> int:
        rows = self._load(table)
        kept = [row for row in rows if not _matches(row, filters)]
        removed = len(rows) - len(kept)
        if removed:
            self._save(table, kept)
        return removed
