# medrecords/services/sharing_service.py
"""
Sharing graph: doctor <-> patient grants.

Grants are soft-deleted (is_active = false) and never removed. Revoking and
sharing again creates a fresh row, so the table keeps the full history.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from medrecords.core.config import Settings, get_settings
from medrecords.models.base import new_id
from medrecords.schemas.sharing import SharingGrant
from medrecords.stores.base import SHARING, Row, RowStore
from medrecords.utils.datetime_utils import utc_now
from medrecords.utils.retry import call_with_retry

logger = logging.getLogger(__name__)


def _to_grants(rows: list[Row]) -> list[SharingGrant]:
    grants = []
    for row in rows:
        try:
            grants.append(SharingGrant.model_validate(row))
        except PydanticValidationError:
            logger.warning(f"Skipping malformed sharing row {row.get('id')}", exc_info=True)
    return grants


def _latest_per(grants: list[SharingGrant], key: str) -> list[SharingGrant]:
    """
    One grant per ``key`` value, keeping the most recent shared_at.
    Output order follows the first appearance of each key.
    """
    latest: dict[str, SharingGrant] = {}
    for grant in grants:
        current = latest.get(getattr(grant, key))
        if current is None or grant.shared_at >= current.shared_at:
            latest[getattr(grant, key)] = grant
    return list(latest.values())


class SharingGraph:
    def __init__(self, store: RowStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    def _query_with_retry(self, filters: dict, description: str) -> list[Row]:
        return call_with_retry(
            lambda: self.store.query(SHARING, filters, order_by="shared_at"),
            attempts=self.settings.backend_retry_attempts,
            delay=self.settings.backend_retry_delay_seconds,
            description=description,
        )

    def find_active(self, patient_id: str, doctor_id: str) -> Optional[SharingGrant]:
        rows = self.store.query(
            SHARING,
            {"patient_id": patient_id, "doctor_id": doctor_id, "is_active": True},
            order_by="shared_at",
        )
        grants = _to_grants(rows)
        return grants[-1] if grants else None

    def grant(self, patient_id: str, doctor_id: str) -> SharingGrant:
        """
        Share ``patient_id`` with ``doctor_id``. Idempotent: an existing
        active grant for the pair is returned unchanged.
        """
        existing = self.find_active(patient_id, doctor_id)
        if existing is not None:
            return existing

        row = self.store.insert(
            SHARING,
            {
                "id": new_id(),
                "doctor_id": doctor_id,
                "patient_id": patient_id,
                "shared_at": utc_now(),
                "is_active": True,
            },
        )
        logger.info(f"Patient {patient_id} shared with doctor {doctor_id} (grant {row['id']})")
        return SharingGrant.model_validate(row)

    def revoke(self, patient_id: str, doctor_id: str) -> int:
        """Deactivate every active grant for the pair. Returns how many were deactivated."""
        count = self.store.update(
            SHARING,
            {"patient_id": patient_id, "doctor_id": doctor_id, "is_active": True},
            {"is_active": False},
        )
        logger.info(f"Revoked {count} grant(s) of patient {patient_id} for doctor {doctor_id}")
        return count

    def list_active_for_doctor(self, doctor_id: str) -> list[SharingGrant]:
        rows = self._query_with_retry(
            {"doctor_id": doctor_id, "is_active": True},
            f"grant listing for doctor {doctor_id}",
        )
        return _latest_per(_to_grants(rows), "patient_id")

    def list_active_for_patient(self, patient_id: str) -> list[SharingGrant]:
        rows = self._query_with_retry(
            {"patient_id": patient_id, "is_active": True},
            f"grant listing for patient {patient_id}",
        )
        return _latest_per(_to_grants(rows), "doctor_id")

    def list_history(self, patient_id: str, doctor_id: str) -> list[SharingGrant]:
        """Every grant row for the pair, active or not, oldest first."""
        rows = self.store.query(
            SHARING,
            {"patient_id": patient_id, "doctor_id": doctor_id},
            order_by="shared_at",
        )
        return _to_grants(rows)
