# hms_ledger/models/drug.py
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from hms_ledger.models.base import Base, Money
from hms_ledger.utils.datetime_utils import utc_now


class Drug(Base):
    """
    A formulary drug and its dispensable stock.

    stock_quantity is only changed by the reservation protocol
    (services/stock_service.py); the check constraint keeps it non-negative
    even if a caller bypasses the conditional update.
    """

    __tablename__ = "drugs"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_drugs_stock_quantity_non_negative"),
        CheckConstraint("reorder_level >= 0", name="ck_drugs_reorder_level_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    generic_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    therapeutic_class: Mapped[str | None] = mapped_column(String(100), nullable=True)
    contraindications: Mapped[list[str] | None] = mapped_column(
        JSON,
        nullable=True,
        doc="Free-text contraindications, matched against other drugs' names.",
    )
    strength: Mapped[str | None] = mapped_column(String(50), nullable=True)
    form: Mapped[str | None] = mapped_column(String(50), nullable=True)

    stock_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("0"),
    )
    reorder_level: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("0"),
    )
    unit_price: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        server_default=text("0"),
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
