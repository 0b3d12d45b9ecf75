# hms_ledger/models/billing.py
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from hms_ledger.models.base import Base, Money, enum_column_type
from hms_ledger.utils.datetime_utils import utc_now


class BillingAccountStatus(str, PyEnum):
    OPEN = "open"
    CLOSED = "closed"


class BillingItemType(str, PyEnum):
    CONSULTATION = "consultation"
    LAB_TEST = "lab_test"
    IMAGING = "imaging"
    PROCEDURE = "procedure"
    PHARMACY = "pharmacy"
    BED_CHARGE = "bed_charge"


class BillingItemStatus(str, PyEnum):
    UNPAID = "unpaid"
    PAID = "paid"
    CANCELLED = "cancelled"


class BillingAccount(Base):
    """
    Ledger header, one per encounter.

    net_amount and balance are derived columns: they are only written by
    billing_service.recompute_account_totals().
    """

    __tablename__ = "billing_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    encounter_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("appointments.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    patient_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("patients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    account_no: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    status: Mapped[BillingAccountStatus] = mapped_column(
        enum_column_type(BillingAccountStatus, "billing_account_status_enum"),
        nullable=False,
        default=BillingAccountStatus.OPEN,
    )

    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    discount_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    net_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    amount_paid: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    balance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))

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


# At most one live consultation charge per encounter.
_ONE_CONSULTATION_WHERE = text("item_type = 'consultation' AND status <> 'cancelled'")


class BillingItem(Base):
    __tablename__ = "billing_items"
    __table_args__ = (
        Index(
            "uq_billing_items_one_consultation_per_encounter",
            "encounter_id",
            unique=True,
            postgresql_where=_ONE_CONSULTATION_WHERE,
            sqlite_where=_ONE_CONSULTATION_WHERE,
        ),
        Index("ix_billing_items_encounter_type", "encounter_id", "item_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    encounter_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("appointments.id", ondelete="RESTRICT"),
        nullable=False,
    )
    account_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("billing_accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    item_type: Mapped[BillingItemType] = mapped_column(
        enum_column_type(BillingItemType, "billing_item_type_enum"),
        nullable=False,
    )
    service_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("service_catalogue.id", ondelete="SET NULL"),
        nullable=True,
    )
    service_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Originating clinical event: prescription, lab_order, physician, bed_assignment, procedure
    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0.00"))
    net_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    status: Mapped[BillingItemStatus] = mapped_column(
        enum_column_type(BillingItemStatus, "billing_item_status_enum"),
        nullable=False,
        default=BillingItemStatus.UNPAID,
    )

    posted_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    posted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
