# hms_ledger/models/appointment.py
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from hms_ledger.models.base import Base, enum_column_type


class AppointmentStatus(str, PyEnum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ConsultationType(str, PyEnum):
    OPD = "OPD"
    SPECIALIST = "Specialist"
    EMERGENCY = "Emergency"
    FOLLOW_UP = "FollowUp"


class Appointment(Base):
    """
    An OPD consultation. Its id is the encounter id every billing
    account, prescription and lab order hangs off.
    """

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    patient_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    physician_id: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        doc="Physician code, e.g. 'PHY004'",
    )

    consultation_type: Mapped[ConsultationType] = mapped_column(
        enum_column_type(ConsultationType, "consultation_type_enum"),
        nullable=False,
        default=ConsultationType.OPD,
    )
    status: Mapped[AppointmentStatus] = mapped_column(
        enum_column_type(AppointmentStatus, "appointment_status_enum"),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
    )

    # OPD Lifecycle fields
    consultation_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="When doctor started consultation",
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="When consultation was completed; cleared on reopen",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
