# hms_ledger/api/v1/endpoints/prescriptions.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hms_ledger.core.database import get_db, unit_of_work
from hms_ledger.dependencies.actor import get_current_actor_id
from hms_ledger.schemas.prescription import (
    PrescriptionCreate,
    PrescriptionResponse,
    PrescriptionUpdate,
)
from hms_ledger.services.prescription_service import (
    create_prescription,
    delete_prescription,
    get_prescription,
    list_prescriptions_for_encounter,
    update_prescription,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=PrescriptionResponse, status_code=status.HTTP_201_CREATED)
def create_prescription_endpoint(
    payload: PrescriptionCreate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    try:
        with unit_of_work(db):
            prescription = create_prescription(db, payload, actor_id=actor_id)
    except SQLAlchemyError:
        logger.exception("Failed to create prescription for encounter=%s", payload.encounter_id)
        raise HTTPException(status_code=500, detail="Failed to create prescription.")
    db.refresh(prescription)
    return prescription


@router.get("/encounter/{encounter_id}", response_model=list[PrescriptionResponse])
def list_prescriptions_endpoint(
    encounter_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    return list_prescriptions_for_encounter(db, encounter_id)


@router.get("/{prescription_id}", response_model=PrescriptionResponse)
def get_prescription_endpoint(
    prescription_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    return get_prescription(db, prescription_id)


@router.put("/{prescription_id}", response_model=PrescriptionResponse)
def update_prescription_endpoint(
    prescription_id: int,
    payload: PrescriptionUpdate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    try:
        with unit_of_work(db):
            prescription = update_prescription(db, prescription_id, payload, actor_id=actor_id)
    except SQLAlchemyError:
        logger.exception("Failed to update prescription %s", prescription_id)
        raise HTTPException(status_code=500, detail="Failed to update prescription.")
    db.refresh(prescription)
    return prescription


@router.delete("/{prescription_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_prescription_endpoint(
    prescription_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
) -> Response:
    try:
        with unit_of_work(db):
            delete_prescription(db, prescription_id, actor_id=actor_id)
    except SQLAlchemyError:
        logger.exception("Failed to delete prescription %s", prescription_id)
        raise HTTPException(status_code=500, detail="Failed to delete prescription.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
