# medrecords/schemas/diagnosis.py
import datetime as dt
from typing import Optional

from pydantic import BaseModel, field_validator


class DiagnosisCreate(BaseModel):
    date: dt.date
    code: str = ""
    diagnosis: str

    @field_validator("diagnosis")
    @classmethod
    def validate_diagnosis(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Diagnosis is required")
        return v

    @field_validator("code")
    @classmethod
    def strip_code(cls, v: str) -> str:
        return v.strip()


class Diagnosis(BaseModel):
    id: str
    patient_id: str
    doctor_id: str
    date: dt.date
    code: str = ""
    diagnosis: str
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True
