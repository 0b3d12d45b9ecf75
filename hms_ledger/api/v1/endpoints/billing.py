# hms_ledger/api/v1/endpoints/billing.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hms_ledger.core.database import get_db, unit_of_work
from hms_ledger.dependencies.actor import get_current_actor_id
from hms_ledger.schemas.billing import (
    BedChargeRequest,
    BillingAccountResponse,
    BillingItemResponse,
    BillingSummaryResponse,
    ConsultationChargeRequest,
    DiscountRequest,
    LabTestChargeRequest,
    MedicationChargeRequest,
    PaymentRequest,
    ProcedureChargeRequest,
)
from hms_ledger.services import billing_service

router = APIRouter()
logger = logging.getLogger(__name__)


def _db_failure(action: str) -> HTTPException:
    logger.exception("Failed to %s", action)
    return HTTPException(status_code=500, detail=f"Failed to {action}.")


@router.get("/{encounter_id}/summary", response_model=BillingSummaryResponse)
def billing_summary(
    encounter_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
) -> BillingSummaryResponse:
    return BillingSummaryResponse(**billing_service.get_billing_summary(db, encounter_id))


@router.get("/{encounter_id}/items", response_model=list[BillingItemResponse])
def billing_items(
    encounter_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    return billing_service.list_billing_items(db, encounter_id)


@router.post(
    "/{encounter_id}/charges/consultation",
    response_model=BillingItemResponse,
    status_code=status.HTTP_201_CREATED,
)
def post_consultation_charge(
    encounter_id: int,
    payload: ConsultationChargeRequest,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    try:
        with unit_of_work(db):
            item = billing_service.post_consultation_charge(
                db,
                encounter_id,
                payload.physician_id,
                payload.consultation_type,
                actor_id=actor_id,
            )
    except SQLAlchemyError:
        raise _db_failure("post consultation charge")
    db.refresh(item)
    return item


@router.post(
    "/{encounter_id}/charges/lab-test",
    response_model=BillingItemResponse,
    status_code=status.HTTP_201_CREATED,
)
def post_lab_test_charge(
    encounter_id: int,
    payload: LabTestChargeRequest,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    try:
        with unit_of_work(db):
            item = billing_service.post_lab_test_charge(
                db, encounter_id, payload.test_id, payload.test_name, actor_id=actor_id
            )
    except SQLAlchemyError:
        raise _db_failure("post lab test charge")
    db.refresh(item)
    return item


@router.post(
    "/{encounter_id}/charges/procedure",
    response_model=BillingItemResponse,
    status_code=status.HTTP_201_CREATED,
)
def post_procedure_charge(
    encounter_id: int,
    payload: ProcedureChargeRequest,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    try:
        with unit_of_work(db):
            item = billing_service.post_procedure_charge(
                db, encounter_id, payload.procedure_id, payload.procedure_name, actor_id=actor_id
            )
    except SQLAlchemyError:
        raise _db_failure("post procedure charge")
    db.refresh(item)
    return item


@router.post(
    "/{encounter_id}/charges/medication",
    response_model=BillingItemResponse,
    status_code=status.HTTP_201_CREATED,
)
def post_medication_charge(
    encounter_id: int,
    payload: MedicationChargeRequest,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    try:
        with unit_of_work(db):
            item = billing_service.post_medication_charge(
                db,
                encounter_id,
                payload.drug_id,
                payload.drug_name,
                payload.quantity,
                prescription_id=payload.prescription_id,
                actor_id=actor_id,
            )
    except SQLAlchemyError:
        raise _db_failure("post medication charge")
    db.refresh(item)
    return item


@router.post(
    "/{encounter_id}/charges/bed",
    response_model=BillingItemResponse,
    status_code=status.HTTP_201_CREATED,
)
def post_bed_charge(
    encounter_id: int,
    payload: BedChargeRequest,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    try:
        with unit_of_work(db):
            item = billing_service.post_bed_charge(
                db, encounter_id, payload.bed_id, payload.days, payload.bed_type, actor_id=actor_id
            )
    except SQLAlchemyError:
        raise _db_failure("post bed charge")
    db.refresh(item)
    return item


@router.post("/{encounter_id}/payments", response_model=BillingAccountResponse)
def record_payment(
    encounter_id: int,
    payload: PaymentRequest,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    try:
        with unit_of_work(db):
            account = billing_service.record_payment(db, encounter_id, payload.amount, actor_id=actor_id)
    except SQLAlchemyError:
        raise _db_failure("record payment")
    db.refresh(account)
    return account


@router.post("/{encounter_id}/discount", response_model=BillingAccountResponse)
def apply_discount(
    encounter_id: int,
    payload: DiscountRequest,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    try:
        with unit_of_work(db):
            account = billing_service.apply_account_discount(db, encounter_id, payload.amount, actor_id=actor_id)
    except SQLAlchemyError:
        raise _db_failure("apply discount")
    db.refresh(account)
    return account


@router.patch("/items/{item_id}/cancel", response_model=BillingItemResponse)
def cancel_item(
    item_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    try:
        with unit_of_work(db):
            item = billing_service.cancel_billing_item(db, item_id, actor_id=actor_id)
    except SQLAlchemyError:
        raise _db_failure("cancel billing item")
    db.refresh(item)
    return item
