"""create_reconciliation_tables

Revision ID: create_reconciliation_tables
Revises:
Create Date: 2025-02-10 09:30:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "create_reconciliation_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("profession", sa.String(length=20), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("crm", sa.String(length=20), nullable=True),
        sa.Column("specialty", sa.String(length=100), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("state", sa.String(length=50), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index(op.f("ix_users_profession"), "users", ["profession"])

    op.create_table(
        "patients",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("doctor_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_patients_doctor_id"), "patients", ["doctor_id"])

    op.create_table(
        "patient_personal_data",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("gender", sa.String(length=20), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("state", sa.String(length=50), nullable=True),
        sa.Column("health_plan", sa.String(length=100), nullable=True),
        sa.Column("profile_image", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_patient_personal_data_user_id"), "patient_personal_data", ["user_id"], unique=True
    )

    op.create_table(
        "patient_medical_data",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("height", sa.String(length=20), nullable=True),
        sa.Column("weight", sa.String(length=20), nullable=True),
        sa.Column("smoker", sa.Boolean(), nullable=True),
        sa.Column("high_blood_pressure", sa.Boolean(), nullable=True),
        sa.Column("physical_activity", sa.Boolean(), nullable=True),
        sa.Column("exercise_frequency", sa.String(length=50), nullable=True),
        sa.Column("healthy_diet", sa.Boolean(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_patient_medical_data_user_id"), "patient_medical_data", ["user_id"], unique=True
    )

    op.create_table(
        "patient_medical_observations",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("patient_id", sa.String(length=36), nullable=False),
        sa.Column("doctor_id", sa.String(length=36), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("patient_id", "doctor_id", name="uq_observation_patient_doctor"),
    )
    op.create_index(
        op.f("ix_patient_medical_observations_patient_id"), "patient_medical_observations", ["patient_id"]
    )
    op.create_index(
        op.f("ix_patient_medical_observations_doctor_id"), "patient_medical_observations", ["doctor_id"]
    )

    op.create_table(
        "doctor_patient_sharing",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("doctor_id", sa.String(length=36), nullable=False),
        sa.Column("patient_id", sa.String(length=36), nullable=False),
        sa.Column(
            "shared_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_sharing_doctor_active", "doctor_patient_sharing", ["doctor_id", "is_active"])
    op.create_index("idx_sharing_patient_active", "doctor_patient_sharing", ["patient_id", "is_active"])

    op.create_table(
        "patient_diagnoses",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("patient_id", sa.String(length=36), nullable=False),
        sa.Column("doctor_id", sa.String(length=36), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("diagnosis", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_patient_diagnoses_patient_id"), "patient_diagnoses", ["patient_id"])
    op.create_index(op.f("ix_patient_diagnoses_doctor_id"), "patient_diagnoses", ["doctor_id"])
    op.create_index(op.f("ix_patient_diagnoses_created_at"), "patient_diagnoses", ["created_at"])


def downgrade() -> None:
    op.drop_table("patient_diagnoses")
    op.drop_table("doctor_patient_sharing")
    op.drop_table("patient_medical_observations")
    op.drop_table("patient_medical_data")
    op.drop_table("patient_personal_data")
    op.drop_table("patients")
    op.drop_table("users")
