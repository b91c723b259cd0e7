# medrecords/services/patient_service.py
"""
Patient reconciliation: the doctor's patient list (owned + shared) and the
per-patient operations, all gated on ownership or an active sharing grant.

The caller's identity is always an explicit argument.
"""

import logging
import math
from datetime import date
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from medrecords.core.config import Settings, get_settings
from medrecords.core.errors import NotFound, RecordsError, SchemaMismatch, Unauthorized, ValidationError
from medrecords.models.base import new_id
from medrecords.models.patient import PatientStatus
from medrecords.models.user import Profession
from medrecords.schemas.diagnosis import Diagnosis, DiagnosisCreate
from medrecords.schemas.patient import Pagination, PatientCreate, PatientPage, PatientUpdate, PatientView
from medrecords.schemas.profile import MedicalData, PersonalData
from medrecords.schemas.sharing import SharingGrant
from medrecords.services.assembler import SubRecords, assemble_view, fetch_subrecords
from medrecords.services.profile_service import upsert_by_user
from medrecords.services.sharing_service import SharingGraph
from medrecords.stores.base import (
    DIAGNOSES,
    MEDICAL_DATA,
    OBSERVATIONS,
    PATIENTS,
    PERSONAL_DATA,
    USERS,
    Row,
)
from medrecords.stores.factory import Stores
from medrecords.utils.datetime_utils import today as utc_today
from medrecords.utils.datetime_utils import utc_now
from medrecords.utils.retry import call_with_retry

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")

Form = Union[BaseModel, Mapping[str, Any]]


def approximate_birth_date(age: int, today: Optional[date] = None) -> date:
    """
    Birth date for a patient registered by age only: 1 January of the birth
    year, so the computed age matches ``age`` for the rest of this year.
    """
    today = today or utc_today()
    return date(today.year - age, 1, 1)


def _status(value: Any) -> PatientStatus:
    try:
        return PatientStatus(value)
    except ValueError:
        return PatientStatus.ACTIVE


def _validate(model: type[M], form: Form, label: str) -> M:
    if isinstance(form, model):
        return form
    if isinstance(form, BaseModel):
        form = form.model_dump(exclude_unset=True)
    try:
        return model.model_validate(form)
    except PydanticValidationError as e:
        errors = {
            ".".join(str(p) for p in err["loc"]) or "form": err["msg"]
            for err in e.errors()
        }
        raise ValidationError(f"Invalid {label}", errors=errors) from e


class PatientReconciliationService:
    def __init__(
        self,
        stores: Stores,
        settings: Optional[Settings] = None,
        sharing: Optional[SharingGraph] = None,
    ):
        self.records = stores.records
        self.profiles = stores.profiles
        self.settings = settings or get_settings()
        self.sharing = sharing or SharingGraph(stores.sharing, self.settings)

    # ------------------------------------------------------------------
    # Required lookups (bounded retry, errors surface)
    # ------------------------------------------------------------------

    def _required(self, call: Callable[[], T], description: str) -> T:
        return call_with_retry(
            call,
            attempts=self.settings.backend_retry_attempts,
            delay=self.settings.backend_retry_delay_seconds,
            description=description,
        )

    def _owned_records(self, doctor_id: str) -> list[Row]:
        return self._required(
            lambda: self.records.query(PATIENTS, {"doctor_id": doctor_id}, order_by="created_at"),
            f"owned patients of doctor {doctor_id}",
        )

    def _find_owned(self, doctor_id: str, patient_id: str) -> Optional[Row]:
        rows = self._required(
            lambda: self.records.query(PATIENTS, {"id": patient_id, "doctor_id": doctor_id}),
            f"ownership check {doctor_id}/{patient_id}",
        )
        return rows[0] if rows else None

    def _find_grant(self, doctor_id: str, patient_id: str) -> Optional[SharingGrant]:
        return self._required(
            lambda: self.sharing.find_active(patient_id, doctor_id),
            f"grant check {doctor_id}/{patient_id}",
        )

    def _identities(self, patient_ids: Iterable[str]) -> dict[str, Row]:
        """
        Identity rows by id: ``users`` first, then ``patients`` for ids that
        are doctor-owned records shared onwards. Two queries at most.
        """
        ids = list(dict.fromkeys(patient_ids))
        if not ids:
            return {}

        users = self._required(
            lambda: self.profiles.query(USERS, {"id": ids}),
            "identity listing (users)",
        )
        found = {row["id"]: row for row in users}

        missing = [i for i in ids if i not in found]
        if missing:
            records = self._required(
                lambda: self.records.query(PATIENTS, {"id": missing}),
                "identity listing (patients)",
            )
            for row in records:
                found.setdefault(row["id"], row)
        return found

    def authorize(self, doctor_id: str, patient_id: str) -> tuple[Optional[Row], Optional[SharingGrant]]:
        """Owned record or active grant, else Unauthorized."""
        owned = self._find_owned(doctor_id, patient_id)
        if owned is not None:
            return owned, None
        grant = self._find_grant(doctor_id, patient_id)
        if grant is None:
            raise Unauthorized(
                f"Doctor {doctor_id} has no access to patient {patient_id}",
                doctor_id=doctor_id,
                patient_id=patient_id,
            )
        return None, grant

    # ------------------------------------------------------------------
    # View builders
    # ------------------------------------------------------------------

    def _owned_view(self, record: Row, subrecords: SubRecords) -> PatientView:
        return assemble_view(
            record["id"],
            record,
            subrecords,
            doctor_id=record["doctor_id"],
            status=_status(record.get("status")),
            notes=record.get("notes"),
            created_at=record.get("created_at"),
        )

    def _shared_view(self, grant: SharingGrant, identity: Optional[Row], subrecords: SubRecords) -> PatientView:
        return assemble_view(
            grant.patient_id,
            identity,
            subrecords,
            shared_id=grant.id,
            status=PatientStatus.SHARED,
            created_at=grant.shared_at,
        )

    @staticmethod
    def _is_doctor_account(identity: Optional[Row]) -> bool:
        return bool(identity) and identity.get("profession") == Profession.DOCTOR.value

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_patients(self, doctor_id: str) -> list[PatientView]:
        """
        Owned patients (creation order) followed by actively shared ones.

        Round trips are constant in the number of patients: owned records,
        grants, identities, then one batch per sub-record type.
        """
        owned_rows = self._owned_records(doctor_id)
        grants = self.sharing.list_active_for_doctor(doctor_id)

        owned_ids = [row["id"] for row in owned_rows]
        owned_set = set(owned_ids)
        # A grant on a patient the doctor already owns adds nothing
        shared_grants = [g for g in grants if g.patient_id not in owned_set]
        identities = self._identities(g.patient_id for g in shared_grants)

        visible: list[tuple[SharingGrant, Optional[Row]]] = []
        for grant in shared_grants:
            identity = identities.get(grant.patient_id)
            if self._is_doctor_account(identity):
                logger.warning(f"Ignoring grant {grant.id}: {grant.patient_id} is a doctor account")
                continue
            if identity is None:
                logger.warning(f"Grant {grant.id} points at unknown patient {grant.patient_id}")
            visible.append((grant, identity))

        subrecords = fetch_subrecords(
            self.profiles,
            self.records,
            owned_ids + [grant.patient_id for grant, _ in visible],
            doctor_id,
        )

        patients = [self._owned_view(row, subrecords) for row in owned_rows]
        patients.extend(self._shared_view(grant, identity, subrecords) for grant, identity in visible)
        logger.info(
            f"Doctor {doctor_id}: {len(owned_rows)} owned + {len(visible)} shared patients"
        )
        return patients

    def list_patients_page(self, doctor_id: str, page: int = 1, per_page: int = 10) -> PatientPage:
        if page < 1 or per_page < 1:
            raise ValidationError(
                "Invalid pagination",
                errors={"page": "must be >= 1", "per_page": "must be >= 1"},
            )
        patients = self.list_patients(doctor_id)
        total = len(patients)
        start = (page - 1) * per_page
        return PatientPage(
            patients=patients[start:start + per_page],
            pagination=Pagination(
                current_page=page,
                total_pages=max(1, math.ceil(total / per_page)),
                total_items=total,
                items_per_page=per_page,
            ),
        )

    def get_patient(self, doctor_id: str, patient_id: str) -> PatientView:
        """
        Raises NotFound when the patient is neither owned by nor shared with
        the doctor, whether or not it exists.
        """
        owned = self._find_owned(doctor_id, patient_id)
        if owned is not None:
            subrecords = fetch_subrecords(self.profiles, self.records, [patient_id], doctor_id)
            return self._owned_view(owned, subrecords)

        grant = self._find_grant(doctor_id, patient_id)
        if grant is None:
            raise NotFound("Patient not found", patient_id=patient_id)

        identity = self._identities([patient_id]).get(patient_id)
        if self._is_doctor_account(identity):
            raise NotFound("Patient not found", patient_id=patient_id)

        subrecords = fetch_subrecords(self.profiles, self.records, [patient_id], doctor_id)
        return self._shared_view(grant, identity, subrecords)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_patient(self, doctor_id: str, form: Form) -> PatientView:
        """
        Create an owned patient. The base record is required; personal and
        medical rows are best effort and the returned view only reflects
        what was actually stored.
        """
        payload = _validate(PatientCreate, form, "patient data")
        now = utc_now()
        patient_id = new_id()

        record = {
            "id": patient_id,
            "doctor_id": doctor_id,
            "name": payload.name,
            "status": PatientStatus.ACTIVE.value,
            "notes": payload.notes or "",
            "created_at": now,
            "updated_at": now,
        }
        self.records.insert(PATIENTS, record)
        logger.info(f"Patient {patient_id} created by doctor {doctor_id}")

        persisted = SubRecords()
        try:
            row = self.profiles.insert(
                PERSONAL_DATA,
                {
                    "id": new_id(),
                    "user_id": patient_id,
                    "full_name": payload.name,
                    "birth_date": approximate_birth_date(payload.age),
                    "city": payload.city,
                    "state": payload.state,
                    "created_at": now,
                    "updated_at": now,
                },
            )
            persisted.personal[patient_id] = PersonalData.model_validate(row)
        except RecordsError as e:
            logger.warning(f"Patient {patient_id} saved without personal data: {e.message}")

        try:
            row = self.profiles.insert(
                MEDICAL_DATA,
                {
                    "id": new_id(),
                    "user_id": patient_id,
                    "weight": str(payload.weight),
                    "created_at": now,
                    "updated_at": now,
                },
            )
            persisted.medical[patient_id] = MedicalData.model_validate(row)
        except RecordsError as e:
            logger.warning(f"Patient {patient_id} saved without medical data: {e.message}")

        return self._owned_view(record, persisted)

    def update_patient(self, doctor_id: str, patient_id: str, form: Form) -> PatientView:
        """
        Merge the provided fields. Omitted (or null) fields stay unchanged;
        ``notes`` becomes this doctor's observation on the patient.
        """
        owned, _ = self.authorize(doctor_id, patient_id)
        payload = _validate(PatientUpdate, form, "patient data")
        changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
        now = utc_now()

        record_patch: dict[str, Any] = {}
        personal_patch: dict[str, Any] = {}
        if "name" in changes:
            if owned is not None:
                record_patch["name"] = changes["name"]
            personal_patch["full_name"] = changes["name"]
        if "status" in changes and owned is not None:
            record_patch["status"] = PatientStatus(changes["status"]).value
        for key in ("city", "state"):
            if key in changes:
                personal_patch[key] = changes[key]
        if "age" in changes:
            personal_patch["birth_date"] = approximate_birth_date(changes["age"])

        if record_patch:
            record_patch["updated_at"] = now
            self.records.update(PATIENTS, {"id": patient_id, "doctor_id": doctor_id}, record_patch)
        if personal_patch:
            upsert_by_user(self.profiles, PERSONAL_DATA, patient_id, personal_patch)
        if "weight" in changes:
            upsert_by_user(self.profiles, MEDICAL_DATA, patient_id, {"weight": str(changes["weight"])})
        if "notes" in changes:
            self._upsert_observation(patient_id, doctor_id, changes["notes"])

        logger.info(f"Patient {patient_id} updated by doctor {doctor_id}: {sorted(changes)}")
        return self.get_patient(doctor_id, patient_id)

    def _upsert_observation(self, patient_id: str, doctor_id: str, text: str) -> None:
        """Last write wins: one observation per (patient, doctor)."""
        now = utc_now()
        pair = {"patient_id": patient_id, "doctor_id": doctor_id}
        if self.records.query(OBSERVATIONS, pair):
            self.records.update(OBSERVATIONS, pair, {"text": text, "updated_at": now})
        else:
            self.records.insert(
                OBSERVATIONS,
                {"id": new_id(), **pair, "text": text, "created_at": now, "updated_at": now},
            )

    def delete_patients(self, doctor_id: str, patient_ids: Iterable[str]) -> list[str]:
        """
        Delete the given patients that ``doctor_id`` owns; other ids are
        skipped. The doctor's observations on them go too. Sharing grants
        are left as they are.
        """
        ids = list(dict.fromkeys(patient_ids))
        if not ids:
            return []

        owned = self.records.query(PATIENTS, {"doctor_id": doctor_id, "id": ids})
        owned_ids = [row["id"] for row in owned]
        skipped = [i for i in ids if i not in set(owned_ids)]
        if skipped:
            logger.info(f"Doctor {doctor_id} delete: skipping {len(skipped)} patient(s) not owned")
        if not owned_ids:
            return []

        try:
            self.records.delete(OBSERVATIONS, {"doctor_id": doctor_id, "patient_id": owned_ids})
        except SchemaMismatch as e:
            logger.warning(f"Observation cleanup skipped: {e.message}")
        self.records.delete(PATIENTS, {"doctor_id": doctor_id, "id": owned_ids})
        logger.info(f"Doctor {doctor_id} deleted {len(owned_ids)} patient(s)")
        return owned_ids

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    def share_patient(self, actor_id: str, patient_id: str, doctor_id: str) -> SharingGrant:
        """The patient themself or the owning doctor may share."""
        if actor_id != patient_id:
            if self._find_owned(actor_id, patient_id) is None:
                raise Unauthorized(
                    f"User {actor_id} cannot share patient {patient_id}",
                    patient_id=patient_id,
                )
            if doctor_id == actor_id:
                raise ValidationError(
                    "Cannot share a patient with its owner",
                    errors={"doctor_id": "already owns this patient"},
                )
        return self.sharing.grant(patient_id, doctor_id)

    def unshare_patient(self, actor_id: str, patient_id: str, doctor_id: str) -> int:
        """The patient, the grantee doctor or the owning doctor may revoke."""
        if actor_id not in (patient_id, doctor_id) and self._find_owned(actor_id, patient_id) is None:
            raise Unauthorized(
                f"User {actor_id} cannot revoke access to patient {patient_id}",
                patient_id=patient_id,
            )
        return self.sharing.revoke(patient_id, doctor_id)

    # ------------------------------------------------------------------
    # Diagnoses (append-only)
    # ------------------------------------------------------------------

    def add_diagnosis(self, doctor_id: str, patient_id: str, form: Form) -> Diagnosis:
        payload = _validate(DiagnosisCreate, form, "diagnosis")
        self.authorize(doctor_id, patient_id)

        row = {
            "id": new_id(),
            "patient_id": patient_id,
            "doctor_id": doctor_id,
            "date": payload.date,
            "code": payload.code,
            "diagnosis": payload.diagnosis,
            "created_at": utc_now(),
        }
        try:
            self.records.insert(DIAGNOSES, row)
        except SchemaMismatch as e:
            logger.error(f"Cannot store diagnosis: {e.message}")
            raise SchemaMismatch(
                f"Table '{DIAGNOSES}' is missing or lacks required columns. "
                "Run 'alembic upgrade head' to create it.",
                table=DIAGNOSES,
            ) from e
        logger.info(f"Diagnosis {row['id']} added to patient {patient_id} by doctor {doctor_id}")
        return Diagnosis.model_validate(row)

    def list_diagnoses(self, doctor_id: str, patient_id: str) -> list[Diagnosis]:
        """Newest first. An unmigrated deployment yields an empty list."""
        self.authorize(doctor_id, patient_id)
        try:
            rows = self.records.query(DIAGNOSES, {"patient_id": patient_id}, order_by="-created_at")
        except SchemaMismatch as e:
            logger.warning(f"Diagnoses unavailable, returning none: {e.message}")
            return []
        return [Diagnosis.model_validate(row) for row in rows]

    def update_diagnosis(self, doctor_id: str, diagnosis_id: str, form: Form) -> Diagnosis:
        raise NotImplementedError("Diagnoses are append-only; updating one is not supported")

    def delete_diagnosis(self, doctor_id: str, diagnosis_id: str) -> None:
        raise NotImplementedError("Diagnoses are append-only; deleting one is not supported")
