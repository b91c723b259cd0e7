# medrecords/models/diagnosis.py
import datetime as dt

from sqlalchemy import Date, DateTime, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from medrecords.models.base import Base, new_id


class PatientDiagnosis(Base):
    """
    Append-only: rows are never updated or deleted.
    """

    __tablename__ = "patient_diagnoses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    patient_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    doctor_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    code: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    diagnosis: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )
