# hms_ledger/models/prescription.py
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from hms_ledger.models.base import Base, enum_column_type
from hms_ledger.utils.datetime_utils import utc_now


class PrescriptionStatus(str, PyEnum):
    PENDING = "pending"
    DISPENSED = "dispensed"
    CANCELLED = "cancelled"


class Prescription(Base):
    __tablename__ = "prescriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    encounter_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    patient_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    physician_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    drug_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("drugs.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    drug_name: Mapped[str] = mapped_column(String(255), nullable=False)

    dosage: Mapped[str | None] = mapped_column(String(100), nullable=True)  # e.g. "500mg"
    frequency: Mapped[str | None] = mapped_column(String(100), nullable=True)  # e.g. "TID"
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # days
    quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    instructions: Mapped[str | None] = mapped_column(String(500), nullable=True)

    instant_dispensing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    stock_reserved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    stock_reserved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    status: Mapped[PrescriptionStatus] = mapped_column(
        enum_column_type(PrescriptionStatus, "prescription_status_enum"),
        nullable=False,
        default=PrescriptionStatus.PENDING,
    )

    interaction_warnings: Mapped[list[dict] | None] = mapped_column(
        JSON,
        nullable=True,
        doc="Advisory drug-interaction findings; never block creation.",
    )

    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=utc_now,
    )


class Dispensation(Base):
    __tablename__ = "dispensations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    prescription_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("prescriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quantity_dispensed: Mapped[int] = mapped_column(Integer, nullable=False)
    dispensed_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    dispensed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
