# medrecords/models/patient.py
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import DateTime, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from medrecords.models.base import Base, new_id


class PatientStatus(str, PyEnum):
    ACTIVE = "active"
    SHARED = "shared"
    ARCHIVED = "archived"


class PatientRecord(Base):
    """
    Doctor-owned patient record.

    NOTE:
    - Owned exclusively by the creating doctor; only that doctor deletes it.
    - Demographics live in patient_personal_data / patient_medical_data,
      keyed by this id.
    """

    __tablename__ = "patients"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    doctor_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PatientStatus.ACTIVE.value,
        server_default=text("'active'"),
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

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
