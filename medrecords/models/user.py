# medrecords/models/user.py
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import DateTime, String, text
from sqlalchemy.orm import Mapped, mapped_column

from medrecords.models.base import Base, new_id


class Profession(str, PyEnum):
    DOCTOR = "doctor"
    PATIENT = "patient"


class User(Base):
    """
    Generic user profile. Profession is fixed at registration.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    profession: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Doctor-only fields
    crm: Mapped[str | None] = mapped_column(String(20), nullable=True)
    specialty: Mapped[str | None] = mapped_column(String(100), nullable=True)

    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
