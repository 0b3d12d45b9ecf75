# hms_ledger/models/test_catalogue.py
from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from hms_ledger.models.base import Base


class TestCatalogueEntry(Base):
    __tablename__ = "test_catalogue"
    __test__ = False  # not a pytest test class

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    code: Mapped[str | None] = mapped_column(String(50), nullable=True, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    turnaround_time: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        doc="Standard turnaround in hours",
    )
