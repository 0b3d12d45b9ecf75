# hms_ledger/models/service_catalogue.py
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import Boolean, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from hms_ledger.models.base import Base, Money, enum_column_type


class ServiceCategory(str, PyEnum):
    CONSULTATION = "consultation"
    LAB_TEST = "lab_test"
    IMAGING = "imaging"
    PROCEDURE = "procedure"
    MEDICATION = "medication"
    BED_CHARGE = "bed_charge"
    NURSING = "nursing"
    OTHER = "other"


class ServiceCatalogueEntry(Base):
    """
    Priced, billable service definition.

    Reference data: maintained by the catalogue module, only read by the ledger.
    """

    __tablename__ = "service_catalogue"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    category: Mapped[ServiceCategory] = mapped_column(
        enum_column_type(ServiceCategory, "service_category_enum"),
        nullable=False,
        index=True,
    )
    unit_price: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
        server_default=text("0"),
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_billable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
