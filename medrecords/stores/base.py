# medrecords/stores/base.py
"""
Narrow row-level contract the reconciliation layer consumes.

Filters map a column to either a value (equality) or a list/tuple/set of
values (membership; an empty collection matches nothing). ``order_by`` is a
column name, prefixed with ``-`` for descending order.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from medrecords.core.errors import NotFound

# Canonical table names
USERS = "users"
PATIENTS = "patients"
PERSONAL_DATA = "patient_personal_data"
MEDICAL_DATA = "patient_medical_data"
OBSERVATIONS = "patient_medical_observations"
SHARING = "doctor_patient_sharing"
DIAGNOSES = "patient_diagnoses"

Row = dict[str, Any]
Filters = Mapping[str, Any]


def is_multi(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def parse_order(order_by: Optional[str]) -> tuple[Optional[str], bool]:
    """Return (column, descending) for an ``order_by`` value."""
    if not order_by:
        return None, False
    if order_by.startswith("-"):
        return order_by[1:], True
    return order_by, False


class RowStore(ABC):
    @abstractmethod
    def query(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
    ) -> list[Row]:
        ...

    def query_one(self, table: str, filters: Filters) -> Row:
        """First matching row; raises NotFound when there is none."""
        rows = self.query(table, filters)
        if not rows:
            raise NotFound(f"No row in '{table}' matching {dict(filters)}", table=table)
        return rows[0]

    @abstractmethod
    def insert(self, table: str, row: Row) -> Row:
        ...

    @abstractmethod
    def update(self, table: str, filters: Filters, patch: Row) -> int:
        """Apply ``patch`` to every matching row. Returns the number of rows touched."""

    @abstractmethod
    def delete(self, table: str, filters: Filters) -> int:
        """Delete every matching row. Returns the number of rows removed."""
