# hms_ledger/services/stock_service.py
"""
Stock reservation protocol for instant-dispensing prescriptions.

    unreserved --reserve_stock--> reserved --complete--> dispensed
                                      |
                                      +--release_stock--> unreserved

Drug stock is only ever changed here, through the conditional UPDATE in
DrugInventoryRepository, and every change appends a StockMovement row.
"""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from hms_ledger.core.errors import InsufficientStockError, NotFoundError, ValidationError
from hms_ledger.models.drug import Drug
from hms_ledger.models.prescription import Prescription
from hms_ledger.models.stock_movement import StockMovementType
from hms_ledger.repositories.inventory import DrugInventoryRepository, StockMovementRepository
from hms_ledger.utils.datetime_utils import utc_now
from hms_ledger.utils.id_generators import stock_reference_no

logger = logging.getLogger(__name__)


def _get_drug(db: Session, drug_id: int) -> Drug:
    drug = DrugInventoryRepository(db).get(drug_id)
    if not drug:
        raise NotFoundError("drug", drug_id)
    return drug


def reserve_stock(db: Session, prescription: Prescription, *, actor_id: int | None = None) -> Prescription:
    if prescription.stock_reserved:
        return prescription

    if not prescription.drug_id:
        raise ValidationError(
            "Drug selection is required for instant dispensing.",
            entity="prescription",
            id=prescription.id,
            field="drug_id",
        )
    quantity = prescription.quantity or 0
    if quantity <= 0:
        raise ValidationError(
            "Quantity must be greater than zero to reserve stock.",
            entity="prescription",
            id=prescription.id,
            field="quantity",
        )

    inventory = DrugInventoryRepository(db)
    drug = _get_drug(db, prescription.drug_id)

    if not inventory.try_decrement_stock(drug.id, quantity):
        drug = inventory.refresh(drug.id)
        logger.info(
            "Reservation refused for prescription=%s drug=%s requested=%s available=%s",
            prescription.id,
            drug.id,
            quantity,
            drug.stock_quantity,
        )
        raise InsufficientStockError(drug, requested=quantity)

    prescription.stock_reserved = True
    prescription.stock_reserved_at = utc_now()

    StockMovementRepository(db).append(
        drug_id=drug.id,
        movement_type=StockMovementType.RESERVATION,
        quantity=quantity,
        reference_no=stock_reference_no(prescription.id),
        prescription_id=prescription.id,
        actor_id=actor_id,
        remarks=f"Reserved for instant dispensing ({drug.name})",
    )
    db.flush()

    if drug.stock_quantity <= (drug.reorder_level or 0):
        logger.warning(
            "Low stock: drug=%s (%s) remaining=%s reorder_level=%s",
            drug.id,
            drug.name,
            drug.stock_quantity,
            drug.reorder_level,
        )

    logger.info(
        "Reserved %s of drug=%s for prescription=%s; remaining=%s",
        quantity,
        drug.id,
        prescription.id,
        drug.stock_quantity,
    )
    return prescription


def release_stock(db: Session, prescription: Prescription, *, actor_id: int | None = None) -> Prescription:
    """
    Give reserved stock back. Only meaningful while the prescription is
    still pending: once dispensed the reservation has been consumed.
    """
    if not prescription.stock_reserved:
        return prescription

    quantity = prescription.quantity or 0
    drug_id = prescription.drug_id

    if drug_id and quantity > 0:
        if not DrugInventoryRepository(db).increment_stock(drug_id, quantity):
            raise NotFoundError("drug", drug_id)

        StockMovementRepository(db).append(
            drug_id=drug_id,
            movement_type=StockMovementType.RETURN,
            quantity=quantity,
            reference_no=stock_reference_no(prescription.id),
            prescription_id=prescription.id,
            actor_id=actor_id,
            remarks="Reservation released",
        )

    prescription.stock_reserved = False
    prescription.stock_reserved_at = None
    db.flush()

    logger.info("Released %s of drug=%s for prescription=%s", quantity, drug_id, prescription.id)
    return prescription
