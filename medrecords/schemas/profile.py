# medrecords/schemas/profile.py
import math
from datetime import date, datetime
from typing import Optional, Union

from pydantic import BaseModel, field_validator


class DoctorSummary(BaseModel):
    """Doctor as shown in search results and sharing lists."""

    id: str
    name: str
    crm: str = ""
    state: str = ""
    specialty: str = ""
    email: Optional[str] = None
    city: str = ""
    created_at: Optional[datetime] = None


class PersonalData(BaseModel):
    id: str
    user_id: str
    full_name: Optional[str] = None
    birth_date: Optional[date] = None
    gender: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    health_plan: Optional[str] = None
    profile_image: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PersonalDataForm(BaseModel):
    full_name: Optional[str] = None
    birth_date: Optional[date] = None
    gender: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    health_plan: Optional[str] = None
    profile_image: Optional[str] = None

    @field_validator("birth_date")
    @classmethod
    def validate_birth_date(cls, v: Optional[date]) -> Optional[date]:
        if v is not None and v > date.today():
            raise ValueError("Birth date cannot be in the future")
        return v


class MedicalData(BaseModel):
    id: str
    user_id: str
    height: Optional[str] = None
    # Kept raw: legacy rows hold free-form text; parse with assembler.parse_weight
    weight: Optional[Union[float, str]] = None
    smoker: bool = False
    high_blood_pressure: bool = False
    physical_activity: bool = False
    exercise_frequency: Optional[str] = None
    healthy_diet: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("smoker", "high_blood_pressure", "physical_activity", "healthy_diet", mode="before")
    @classmethod
    def none_is_false(cls, v):
        return bool(v) if v is not None else False

    @field_validator("height", mode="before")
    @classmethod
    def height_as_text(cls, v):
        return str(v) if v is not None else None

    class Config:
        from_attributes = True


class MedicalDataForm(BaseModel):
    height: Optional[str] = None
    weight: Optional[float] = None
    smoker: Optional[bool] = None
    high_blood_pressure: Optional[bool] = None
    physical_activity: Optional[bool] = None
    exercise_frequency: Optional[str] = None
    healthy_diet: Optional[bool] = None

    @field_validator("weight")
    @classmethod
    def validate_weight(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and not math.isfinite(v):
            raise ValueError("Weight must be a finite number")
        if v is not None and v <= 0:
            raise ValueError("Weight must be greater than 0")
        return v
