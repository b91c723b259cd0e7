# medrecords/schemas/sharing.py
from datetime import datetime

from pydantic import BaseModel, field_validator

from medrecords.utils.datetime_utils import as_utc


class SharingGrant(BaseModel):
    id: str
    doctor_id: str
    patient_id: str
    shared_at: datetime
    is_active: bool = True

    @field_validator("shared_at")
    @classmethod
    def normalize_shared_at(cls, v: datetime) -> datetime:
        return as_utc(v)

    class Config:
        from_attributes = True


class SharingGrantCreate(BaseModel):
    patient_id: str
    doctor_id: str
