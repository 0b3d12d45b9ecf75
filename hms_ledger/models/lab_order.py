# hms_ledger/models/lab_order.py
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
from hms_ledger.utils.datetime_utils import utc_now


class LabOrderPriority(str, PyEnum):
    URGENT = "urgent"
    FAST = "fast"
    NORMAL = "normal"


class LabOrderStatus(str, PyEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LabOrder(Base):
    __tablename__ = "lab_orders"

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
    )

    test_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("test_catalogue.id", ondelete="SET NULL"),
        nullable=True,
    )
    test_name: Mapped[str] = mapped_column(String(255), nullable=False)

    priority: Mapped[LabOrderPriority] = mapped_column(
        enum_column_type(LabOrderPriority, "lab_order_priority_enum"),
        nullable=False,
        default=LabOrderPriority.NORMAL,
    )
    status: Mapped[LabOrderStatus] = mapped_column(
        enum_column_type(LabOrderStatus, "lab_order_status_enum"),
        nullable=False,
        default=LabOrderStatus.PENDING,
    )
    clinical_notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    ordered_by: Mapped[int | None] = mapped_column(Integer, nullable=True)

    expected_completion_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="When the order was sent to the laboratory",
    )

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
