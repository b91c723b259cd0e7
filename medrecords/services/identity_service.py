# medrecords/services/identity_service.py
from typing import Any, Mapping, Optional

UNNAMED = "Unnamed"


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def resolve_display_name(
    identity: Optional[Mapping[str, Any]],
    personal: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Display name for a patient, first non-empty of:

    1. full_name on the identity row (users.full_name / patients.name)
    2. full_name on the personal-data row
    3. "Patient " + local part of the email
    4. "Patient " + first 8 chars of the id

    Falls back to "Unnamed". Never raises.
    """
    identity = identity or {}
    personal = personal or {}

    name = _clean(identity.get("full_name")) or _clean(identity.get("name"))
    if name:
        return name

    name = _clean(personal.get("full_name"))
    if name:
        return name

    local_part = _clean(identity.get("email")).split("@", 1)[0].strip()
    if local_part:
        return f"Patient {local_part}"

    patient_id = _clean(identity.get("id")) or _clean(personal.get("user_id"))
    if patient_id:
        return f"Patient {patient_id[:8]}"

    return UNNAMED


def resolve_doctor_name(user: Optional[Mapping[str, Any]]) -> str:
    user = user or {}
    return _clean(user.get("full_name")) or _clean(user.get("name")) or UNNAMED
