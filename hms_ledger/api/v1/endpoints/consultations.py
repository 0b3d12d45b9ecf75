# hms_ledger/api/v1/endpoints/consultations.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hms_ledger.core.database import get_db, unit_of_work
from hms_ledger.dependencies.actor import get_current_actor_id
from hms_ledger.schemas.consultation import (
    AppointmentResponse,
    CompletionResponse,
    ConsultationCompleteRequest,
    ConsultationStartResponse,
    ConsultationSummaryResponse,
    SoapNoteResponse,
)
from hms_ledger.services.consultation_service import (
    complete_consultation,
    get_consultation_summary,
    reopen_consultation,
    start_consultation,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.patch("/{appointment_id}/start", response_model=ConsultationStartResponse)
def start_consultation_endpoint(
    appointment_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
) -> ConsultationStartResponse:
    try:
        with unit_of_work(db):
            appointment, soap_note = start_consultation(db, appointment_id, actor_id=actor_id)
    except SQLAlchemyError:
        logger.exception("Failed to start consultation %s", appointment_id)
        raise HTTPException(status_code=500, detail="Failed to start consultation.")
    return ConsultationStartResponse(
        appointment=AppointmentResponse.model_validate(appointment),
        soap_note=SoapNoteResponse.model_validate(soap_note),
    )


@router.patch("/{appointment_id}/complete", response_model=CompletionResponse)
def complete_consultation_endpoint(
    appointment_id: int,
    payload: ConsultationCompleteRequest | None = None,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
) -> CompletionResponse:
    """
    Finalise the consultation: lock the SOAP note, dispense reserved
    instant-dispensing prescriptions, submit lab orders and post charges.

    Charges that cannot be posted are listed in skipped_billing_items;
    they never block completion.
    """
    note_updates = payload.model_dump(exclude_none=True) if payload else None
    try:
        with unit_of_work(db):
            result = complete_consultation(db, appointment_id, actor_id=actor_id, note_updates=note_updates)
            response = CompletionResponse.model_validate(result)
    except SQLAlchemyError:
        logger.exception("Failed to complete consultation %s", appointment_id)
        raise HTTPException(status_code=500, detail="Failed to complete consultation.")
    return response


@router.patch("/{appointment_id}/reopen", response_model=AppointmentResponse)
def reopen_consultation_endpoint(
    appointment_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    try:
        with unit_of_work(db):
            appointment = reopen_consultation(db, appointment_id, actor_id=actor_id)
    except SQLAlchemyError:
        logger.exception("Failed to reopen consultation %s", appointment_id)
        raise HTTPException(status_code=500, detail="Failed to reopen consultation.")
    db.refresh(appointment)
    return appointment


@router.get("/{appointment_id}/summary", response_model=ConsultationSummaryResponse)
def consultation_summary_endpoint(
    appointment_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
) -> ConsultationSummaryResponse:
    summary = get_consultation_summary(db, appointment_id)
    return ConsultationSummaryResponse.model_validate(summary, from_attributes=True)
