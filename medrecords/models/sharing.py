# medrecords/models/sharing.py
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from medrecords.models.base import Base, new_id


class DoctorPatientSharing(Base):
    """
    Authorization edge doctor -> patient.

    Rows are soft-deleted (is_active = false) and never removed, so the
    table doubles as the sharing audit trail.
    """

    __tablename__ = "doctor_patient_sharing"
    __table_args__ = (
        Index("idx_sharing_doctor_active", "doctor_id", "is_active"),
        Index("idx_sharing_patient_active", "patient_id", "is_active"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    doctor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    patient_id: Mapped[str] = mapped_column(String(36), nullable=False)
    shared_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )
