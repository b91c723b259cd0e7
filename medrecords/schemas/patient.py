# medrecords/schemas/patient.py
import math
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from medrecords.models.patient import PatientStatus


def _require_text(v: str, label: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError(f"{label} is required")
    return v


def _check_weight(v: float) -> float:
    if not math.isfinite(v):
        raise ValueError("Weight must be a finite number")
    if v <= 0:
        raise ValueError("Weight must be greater than 0")
    return v


class PatientCreate(BaseModel):
    """Fields a doctor fills in when registering a patient they own."""

    name: str
    age: int
    city: str
    state: str
    weight: float
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _require_text(v, "Name")

    @field_validator("city")
    @classmethod
    def validate_city(cls, v: str) -> str:
        return _require_text(v, "City")

    @field_validator("state")
    @classmethod
    def validate_state(cls, v: str) -> str:
        return _require_text(v, "State")

    @field_validator("age")
    @classmethod
    def validate_age(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Age must be greater than 0")
        return v

    @field_validator("weight")
    @classmethod
    def validate_weight(cls, v: float) -> float:
        return _check_weight(v)

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else None


class PatientUpdate(BaseModel):
    """
    Partial update. Only fields explicitly sent are applied
    (model_dump(exclude_unset=True)); omitted fields stay unchanged.
    """

    name: Optional[str] = None
    age: Optional[int] = None
    city: Optional[str] = None
    state: Optional[str] = None
    weight: Optional[float] = None
    notes: Optional[str] = None
    status: Optional[PatientStatus] = None

    @field_validator("name", "city", "state")
    @classmethod
    def validate_text(cls, v: Optional[str], info) -> Optional[str]:
        if v is None:
            return None
        return _require_text(v, info.field_name.capitalize())

    @field_validator("age")
    @classmethod
    def validate_age(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("Age must be greater than 0")
        return v

    @field_validator("weight")
    @classmethod
    def validate_weight(cls, v: Optional[float]) -> Optional[float]:
        return _check_weight(v) if v is not None else None


class PatientView(BaseModel):
    """
    Assembled, never persisted. Either owned (doctor_id set) or shared
    (shared_id set, doctor_id None), never both.
    """

    id: str
    name: str
    age: Optional[int] = None
    city: str = "N/A"
    state: str = "N/A"
    weight: Optional[float] = None
    status: PatientStatus = PatientStatus.ACTIVE
    notes: str = ""
    created_at: Optional[datetime] = None
    doctor_id: Optional[str] = None
    is_shared: bool = False
    shared_id: Optional[str] = None

    @model_validator(mode="after")
    def check_ownership(self) -> "PatientView":
        if self.is_shared:
            if self.doctor_id is not None or not self.shared_id:
                raise ValueError("Shared patient views carry shared_id and no doctor_id")
        elif self.shared_id is not None or not self.doctor_id:
            raise ValueError("Owned patient views carry doctor_id and no shared_id")
        return self


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


class PatientPage(BaseModel):
    patients: list[PatientView] = Field(default_factory=list)
    pagination: Pagination


class PatientBulkDelete(BaseModel):
    patient_ids: list[str]


class Observation(BaseModel):
    id: str
    patient_id: str
    doctor_id: str
    text: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
