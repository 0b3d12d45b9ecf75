# hms_ledger/api/v1/endpoints/lab_orders.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hms_ledger.core.database import get_db, unit_of_work
from hms_ledger.dependencies.actor import get_current_actor_id
from hms_ledger.schemas.lab_order import LabOrderCreate, LabOrderPriorityUpdate, LabOrderResponse
from hms_ledger.services.lab_order_service import (
    create_lab_order,
    get_lab_order,
    submit_lab_order,
    update_lab_order_priority,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=LabOrderResponse, status_code=status.HTTP_201_CREATED)
def create_lab_order_endpoint(
    payload: LabOrderCreate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    try:
        with unit_of_work(db):
            lab_order = create_lab_order(db, payload, actor_id=actor_id)
    except SQLAlchemyError:
        logger.exception("Failed to create lab order for encounter=%s", payload.encounter_id)
        raise HTTPException(status_code=500, detail="Failed to create lab order.")
    db.refresh(lab_order)
    return lab_order


@router.get("/{lab_order_id}", response_model=LabOrderResponse)
def get_lab_order_endpoint(
    lab_order_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    return get_lab_order(db, lab_order_id)


@router.patch("/{lab_order_id}/priority", response_model=LabOrderResponse)
def update_priority_endpoint(
    lab_order_id: int,
    payload: LabOrderPriorityUpdate,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    try:
        with unit_of_work(db):
            lab_order = update_lab_order_priority(db, lab_order_id, payload.priority, actor_id=actor_id)
    except SQLAlchemyError:
        logger.exception("Failed to update priority of lab order %s", lab_order_id)
        raise HTTPException(status_code=500, detail="Failed to update lab order priority.")
    db.refresh(lab_order)
    return lab_order


@router.patch("/{lab_order_id}/submit", response_model=LabOrderResponse)
def submit_lab_order_endpoint(
    lab_order_id: int,
    db: Session = Depends(get_db),
    actor_id: int = Depends(get_current_actor_id),
):
    try:
        with unit_of_work(db):
            lab_order = submit_lab_order(db, lab_order_id, actor_id=actor_id)
    except SQLAlchemyError:
        logger.exception("Failed to submit lab order %s", lab_order_id)
        raise HTTPException(status_code=500, detail="Failed to submit lab order.")
    db.refresh(lab_order)
    return lab_order
