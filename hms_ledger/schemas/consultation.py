# hms_ledger/schemas/consultation.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict

from hms_ledger.models.appointment import AppointmentStatus, ConsultationType
from hms_ledger.schemas.billing import BillingItemResponse
from hms_ledger.schemas.lab_order import LabOrderResponse
from hms_ledger.schemas.prescription import PrescriptionResponse


class ConsultationCompleteRequest(BaseModel):
    """Optional final SOAP edits applied before the note is locked."""

    subjective: str | None = None
    objective: str | None = None
    assessment: str | None = None
    plan: str | None = None


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    physician_id: str | None = None
    consultation_type: ConsultationType
    status: AppointmentStatus
    consultation_started_at: datetime | None = None
    completed_at: datetime | None = None


class SoapNoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appointment_id: int
    subjective: str | None = None
    objective: str | None = None
    assessment: str | None = None
    plan: str | None = None
    is_draft: bool
    completed_at: datetime | None = None


class DispensationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    prescription_id: int
    quantity_dispensed: int
    dispensed_by: int | None = None
    dispensed_at: datetime


class SkippedBillingItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    source_type: str
    source_id: Any
    item_type: str
    reason: str


class ConsultationStartResponse(BaseModel):
    appointment: AppointmentResponse
    soap_note: SoapNoteResponse


class CompletionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    appointment: AppointmentResponse
    soap_note: SoapNoteResponse | None = None
    prescriptions_processed: int
    lab_orders_submitted: int
    dispensations: list[DispensationResponse]
    billing_items: list[BillingItemResponse]
    skipped_billing_items: list[SkippedBillingItemResponse]


class ExpectedChargeResponse(BaseModel):
    item_type: str
    source_type: str
    source_id: Any
    service_code: str | None = None
    description: str
    quantity: int
    unit_price: Decimal
    amount: Decimal


class ConsultationSummaryResponse(BaseModel):
    appointment_id: int
    status: str
    consultation_type: str
    prescriptions: list[PrescriptionResponse]
    regular_prescriptions: list[PrescriptionResponse]
    instant_dispensing_prescriptions: list[PrescriptionResponse]
    lab_orders: list[LabOrderResponse]
    total_prescriptions: int
    total_lab_orders: int
    expected_charges: list[ExpectedChargeResponse]
    skipped_charges: list[SkippedBillingItemResponse]
    estimated_total: Decimal
