# hms_ledger/models/patient.py
from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from hms_ledger.models.base import Base


class Patient(Base):
    """
    Minimal patient record the ledger reads.

    Demographics are owned by the registration module; the ledger only
    needs identity and the recorded allergy list.
    """

    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    allergies: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        doc="Free-text allergy strings, e.g. ['penicillin', 'sulfa'].",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
