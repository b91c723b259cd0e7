# medrecords/models/profile.py
"""
Optional per-patient sub-records. Absence of a row is a valid state.
"""

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, String, text
from sqlalchemy.orm import Mapped, mapped_column

from medrecords.models.base import Base, new_id


class PatientPersonalData(Base):
    __tablename__ = "patient_personal_data"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True, index=True)

    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    gender: Mapped[str | None] = mapped_column(String(20), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    health_plan: Mapped[str | None] = mapped_column(String(100), nullable=True)
    profile_image: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )


class PatientMedicalData(Base):
    __tablename__ = "patient_medical_data"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True, index=True)

    height: Mapped[str | None] = mapped_column(String(20), nullable=True)
    # Stored as text: legacy rows carry free-form values like "70,5"
    weight: Mapped[str | None] = mapped_column(String(20), nullable=True)
    smoker: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    high_blood_pressure: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    physical_activity: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    exercise_frequency: Mapped[str | None] = mapped_column(String(50), nullable=True)
    healthy_diet: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
