# medrecords/services/profile_service.py
"""
Patient profile data (personal + medical) and the doctor directory.

All functions take the profile store explicitly; whether that store is
remote-with-fallback or local-only was decided when it was built.
"""

import logging
from typing import Any, Optional

from medrecords.models.base import new_id
from medrecords.models.user import Profession
from medrecords.schemas.profile import (
    DoctorSummary,
    MedicalData,
    MedicalDataForm,
    PersonalData,
    PersonalDataForm,
)
from medrecords.services.identity_service import resolve_doctor_name
from medrecords.services.sharing_service import SharingGraph
from medrecords.stores.base import MEDICAL_DATA, PERSONAL_DATA, USERS, Row, RowStore
from medrecords.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


def upsert_by_user(store: RowStore, table: str, user_id: str, patch: dict[str, Any]) -> Row:
    """
    Merge ``patch`` into the row keyed by ``user_id``, creating it if absent.
    Fields not in ``patch`` keep their stored values.
    """
    now = utc_now()
    existing = store.query(table, {"user_id": user_id})
    if existing:
        store.update(table, {"user_id": user_id}, {**patch, "updated_at": now})
        merged = {**existing[0], **patch, "updated_at": now}
        logger.info(f"Updated {table} for user {user_id}")
        return merged

    row = store.insert(
        table,
        {
            "id": new_id(),
            "user_id": user_id,
            **patch,
            "created_at": now,
            "updated_at": now,
        },
    )
    logger.info(f"Created {table} for user {user_id}")
    return row


def get_personal_data(store: RowStore, user_id: str) -> Optional[PersonalData]:
    rows = store.query(PERSONAL_DATA, {"user_id": user_id})
    return PersonalData.model_validate(rows[0]) if rows else None


def save_personal_data(store: RowStore, user_id: str, form: PersonalDataForm) -> PersonalData:
    row = upsert_by_user(store, PERSONAL_DATA, user_id, form.model_dump(exclude_unset=True))
    return PersonalData.model_validate(row)


def get_medical_data(store: RowStore, user_id: str) -> Optional[MedicalData]:
    rows = store.query(MEDICAL_DATA, {"user_id": user_id})
    return MedicalData.model_validate(rows[0]) if rows else None


def save_medical_data(store: RowStore, user_id: str, form: MedicalDataForm) -> MedicalData:
    patch = form.model_dump(exclude_unset=True)
    if patch.get("weight") is not None:
        patch["weight"] = str(patch["weight"])
    row = upsert_by_user(store, MEDICAL_DATA, user_id, patch)
    return MedicalData.model_validate(row)


def to_doctor_summary(user: Row) -> DoctorSummary:
    return DoctorSummary(
        id=user["id"],
        name=resolve_doctor_name(user),
        crm=user.get("crm") or "",
        state=user.get("state") or "",
        specialty=user.get("specialty") or "",
        email=user.get("email"),
        city=user.get("city") or "",
        created_at=user.get("created_at"),
    )


def list_doctors(store: RowStore) -> list[DoctorSummary]:
    rows = store.query(USERS, {"profession": Profession.DOCTOR.value}, order_by="created_at")
    return [to_doctor_summary(row) for row in rows]


def _doctor_matches(doctor: DoctorSummary, term: str) -> bool:
    name = doctor.name.lower()
    if term in name:
        return True
    if term in doctor.crm.lower() or term in f"{doctor.crm}-{doctor.state}".lower():
        return True
    if term in doctor.specialty.lower() or term in doctor.state.lower() or term in doctor.city.lower():
        return True
    return all(word in name for word in term.split())


def search_doctors(store: RowStore, query: str) -> list[DoctorSummary]:
    """
    Match the query against name, CRM, "CRM-state", specialty, state and
    city, or every word of the query against the name. Empty query returns
    every doctor.
    """
    doctors = list_doctors(store)
    term = (query or "").strip().lower()
    if not term:
        return doctors
    return [d for d in doctors if _doctor_matches(d, term)]


def list_shared_doctors(store: RowStore, graph: SharingGraph, patient_id: str) -> list[DoctorSummary]:
    """Doctors that currently hold an active grant for ``patient_id``."""
    grants = graph.list_active_for_patient(patient_id)
    if not grants:
        return []
    doctor_ids = [g.doctor_id for g in grants]
    users = {row["id"]: row for row in store.query(USERS, {"id": doctor_ids})}
    return [to_doctor_summary(users[d]) for d in doctor_ids if d in users]
