# hms_ledger/schemas/lab_order.py
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from hms_ledger.models.lab_order import LabOrderPriority, LabOrderStatus


class LabOrderCreate(BaseModel):
    encounter_id: int
    test_id: int | None = None
    test_name: str | None = None
    # Kept as a plain string so an unknown value surfaces as the ledger's
    # VALIDATION_ERROR instead of a generic request error.
    priority: str | None = None
    clinical_notes: str | None = None

    model_config = ConfigDict(extra="forbid")


class LabOrderPriorityUpdate(BaseModel):
    priority: str


class LabOrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    encounter_id: int
    patient_id: int
    test_id: int | None = None
    test_name: str
    priority: LabOrderPriority
    status: LabOrderStatus
    clinical_notes: str | None = None
    expected_completion_at: datetime | None = None
    submitted_at: datetime | None = None
    created_at: datetime | None = None
