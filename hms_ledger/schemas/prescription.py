# hms_ledger/schemas/prescription.py
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, StringConstraints, field_validator

from hms_ledger.models.prescription import PrescriptionStatus

OptStr100 = (
    Annotated[
        str,
        StringConstraints(strip_whitespace=True, max_length=100),
    ]
    | None
)

OptStr500 = (
    Annotated[
        str,
        StringConstraints(strip_whitespace=True, max_length=500),
    ]
    | None
)


class PrescriptionBase(BaseModel):
    """
    Dosage, frequency, duration and quantity are required for a valid
    prescription, but the check lives in prescription_service so the same
    rule applies to updates that merge with stored values. Here they are
    optional and empty strings from the UI are normalized to None.
    """

    drug_id: int | None = None
    drug_name: OptStr100 = None
    dosage: OptStr100 = None
    frequency: OptStr100 = None
    duration: int | None = None
    quantity: int | None = None
    instructions: OptStr500 = None
    instant_dispensing: bool = False

    @field_validator("drug_name", "dosage", "frequency", "instructions", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class PrescriptionCreate(PrescriptionBase):
    encounter_id: int

    model_config = ConfigDict(extra="forbid")


class PrescriptionUpdate(BaseModel):
    """PUT semantics limited to the fields sent; omitted fields keep their value."""

    drug_id: int | None = None
    drug_name: OptStr100 = None
    dosage: OptStr100 = None
    frequency: OptStr100 = None
    duration: int | None = None
    quantity: int | None = None
    instructions: OptStr500 = None
    instant_dispensing: bool | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("drug_name", "dosage", "frequency", "instructions", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class PrescriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    encounter_id: int
    patient_id: int
    physician_id: str | None = None
    drug_id: int | None = None
    drug_name: str
    dosage: str | None
    frequency: str | None
    duration: int | None
    quantity: int | None
    instructions: str | None = None
    instant_dispensing: bool
    stock_reserved: bool
    stock_reserved_at: datetime | None = None
    status: PrescriptionStatus
    interaction_warnings: list[dict] | None = None
    created_at: datetime | None = None
