# hms_ledger/models/stock_movement.py
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


class StockMovementType(str, PyEnum):
    RESERVATION = "RESERVATION"
    RETURN = "RETURN"


class StockMovement(Base):
    """
    Append-only audit trail of every stock reservation and release.

    Rows are inserted by services/stock_service.py and never updated or deleted.
    """

    __tablename__ = "stock_movements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    drug_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("drugs.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    movement_type: Mapped[StockMovementType] = mapped_column(
        enum_column_type(StockMovementType, "stock_movement_type_enum"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    reference_no: Mapped[str] = mapped_column(String(100), nullable=False)  # PRESCRIPTION-<id>
    prescription_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    actor_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
