# medrecords/services/assembler.py
"""
Record assembly: join a patient's identity row with its optional
sub-records (personal data, medical data, the doctor's observation) into a
PatientView.

Sub-records are fetched in batches, one query per sub-record type for the
whole set of visible patients, then merged in memory. Any failure on these
optional lookups degrades the affected fields to their defaults.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from medrecords.core.errors import RecordsError
from medrecords.models.patient import PatientStatus
from medrecords.schemas.patient import Observation, PatientView
from medrecords.schemas.profile import MedicalData, PersonalData
from medrecords.services.identity_service import resolve_display_name
from medrecords.stores.base import MEDICAL_DATA, OBSERVATIONS, PERSONAL_DATA, Filters, Row, RowStore
from medrecords.utils.datetime_utils import to_utc, today as utc_today

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"

M = TypeVar("M", bound=BaseModel)


@dataclass
class SubRecords:
    personal: dict[str, PersonalData] = field(default_factory=dict)
    medical: dict[str, MedicalData] = field(default_factory=dict)
    observations: dict[str, Observation] = field(default_factory=dict)


def calculate_age(
    birth_date: Union[date, str, None],
    today: Optional[date] = None,
) -> Optional[int]:
    """
    Whole years between birth_date and today; one less if today's month/day
    precedes the birthday. None for missing, unparseable or future dates.
    """
    if birth_date is None:
        return None
    if isinstance(birth_date, datetime):
        birth_date = birth_date.date()
    elif isinstance(birth_date, str):
        try:
            birth_date = date.fromisoformat(birth_date[:10])
        except ValueError:
            return None

    today = today or utc_today()
    age = today.year - birth_date.year - ((today.month, today.day) < (birth_date.month, birth_date.day))
    return age if age >= 0 else None


def parse_weight(value: Any) -> Optional[float]:
    """Decimal weight, or None when the stored value is not a positive number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", ".")
        try:
            number = float(Decimal(text))
        except (InvalidOperation, ValueError):
            return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def _fetch_optional(store: RowStore, table: str, filters: Filters, order_by: Optional[str] = None) -> list[Row]:
    try:
        return store.query(table, filters, order_by)
    except RecordsError as e:
        logger.warning(f"Optional lookup on '{table}' failed, degrading to defaults: {e.message}")
        return []


def _parse_rows(rows: Iterable[Row], model: Type[M], key: str) -> dict[str, M]:
    """Index rows by ``key``; later rows win. Malformed rows are skipped."""
    parsed: dict[str, M] = {}
    for row in rows:
        try:
            item = model.model_validate(row)
        except PydanticValidationError as e:
            logger.warning(f"Skipping malformed {model.__name__} row {row.get('id')}: {e.error_count()} error(s)")
            continue
        parsed[getattr(item, key)] = item
    return parsed


def fetch_subrecords(
    profiles: RowStore,
    records: RowStore,
    patient_ids: Iterable[str],
    doctor_id: Optional[str] = None,
) -> SubRecords:
    """
    One query per sub-record type covering every id in ``patient_ids``.
    Observations are only fetched when a doctor is asking.
    """
    ids = list(dict.fromkeys(patient_ids))
    if not ids:
        return SubRecords()

    personal = _parse_rows(
        _fetch_optional(profiles, PERSONAL_DATA, {"user_id": ids}, order_by="updated_at"),
        PersonalData,
        "user_id",
    )
    medical = _parse_rows(
        _fetch_optional(profiles, MEDICAL_DATA, {"user_id": ids}, order_by="updated_at"),
        MedicalData,
        "user_id",
    )
    observations: dict[str, Observation] = {}
    if doctor_id:
        observations = _parse_rows(
            _fetch_optional(
                records,
                OBSERVATIONS,
                {"doctor_id": doctor_id, "patient_id": ids},
                order_by="updated_at",
            ),
            Observation,
            "patient_id",
        )
    return SubRecords(personal=personal, medical=medical, observations=observations)


def assemble_view(
    patient_id: str,
    identity: Optional[Mapping[str, Any]],
    subrecords: SubRecords,
    *,
    doctor_id: Optional[str] = None,
    shared_id: Optional[str] = None,
    status: Union[PatientStatus, str] = PatientStatus.ACTIVE,
    notes: Optional[str] = None,
    created_at: Any = None,
    today: Optional[date] = None,
) -> PatientView:
    """
    Build one PatientView. Pass ``doctor_id`` for an owned patient or
    ``shared_id`` for a shared one.
    """
    personal = subrecords.personal.get(patient_id)
    medical = subrecords.medical.get(patient_id)
    observation = subrecords.observations.get(patient_id)

    identity = dict(identity or {})
    identity.setdefault("id", patient_id)
    name = resolve_display_name(identity, personal.model_dump() if personal else None)

    city = state = NOT_AVAILABLE
    age = None
    if personal is not None:
        city = (personal.city or "").strip() or NOT_AVAILABLE
        state = (personal.state or "").strip() or NOT_AVAILABLE
        age = calculate_age(personal.birth_date, today)

    weight = parse_weight(medical.weight) if medical is not None else None

    if observation is not None:
        notes = observation.text

    try:
        created = to_utc(created_at)
    except (AttributeError, TypeError, ValueError):
        created = None

    return PatientView(
        id=patient_id,
        name=name,
        age=age,
        city=city,
        state=state,
        weight=weight,
        status=status,
        notes=notes or "",
        created_at=created,
        doctor_id=None if shared_id else doctor_id,
        is_shared=shared_id is not None,
        shared_id=shared_id,
    )
