# hms_ledger/schemas/billing.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from hms_ledger.models.appointment import ConsultationType
from hms_ledger.models.billing import BillingItemStatus, BillingItemType


class BillingSummaryResponse(BaseModel):
    account_exists: bool
    account_no: str | None = None
    status: str | None = None
    total_amount: Decimal
    discount_amount: Decimal
    net_amount: Decimal
    amount_paid: Decimal
    balance: Decimal
    items_count: int


class BillingAccountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    encounter_id: int
    patient_id: int
    account_no: str
    total_amount: Decimal
    discount_amount: Decimal
    net_amount: Decimal
    amount_paid: Decimal
    balance: Decimal


class BillingItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    encounter_id: int
    account_id: int
    item_type: BillingItemType
    service_id: int | None = None
    service_code: str | None = None
    reference_type: str | None = None
    reference_id: str | None = None
    description: str
    quantity: int
    unit_price: Decimal
    amount: Decimal
    discount_amount: Decimal
    net_amount: Decimal
    status: BillingItemStatus
    posted_at: datetime | None = None


class ConsultationChargeRequest(BaseModel):
    physician_id: str | None = None
    consultation_type: ConsultationType = ConsultationType.OPD


class LabTestChargeRequest(BaseModel):
    test_id: int | None = None
    test_name: str = Field(min_length=1)


class ProcedureChargeRequest(BaseModel):
    procedure_id: int | None = None
    procedure_name: str = Field(min_length=1)


class MedicationChargeRequest(BaseModel):
    drug_id: int | None = None
    drug_name: str = Field(min_length=1)
    quantity: int = 1
    prescription_id: int | None = None


class BedChargeRequest(BaseModel):
    bed_id: int | None = None
    days: int = 1
    bed_type: str = "general"


class PaymentRequest(BaseModel):
    amount: Decimal


class DiscountRequest(BaseModel):
    amount: Decimal
