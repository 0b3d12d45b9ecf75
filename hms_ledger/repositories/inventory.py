# hms_ledger/repositories/inventory.py
from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.orm import Session

from hms_ledger.models.drug import Drug
from hms_ledger.models.stock_movement import StockMovement, StockMovementType


class DrugInventoryRepository:
    """
    Stock mutations are single UPDATE statements so the check and the
    decrement happen atomically inside the database.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, drug_id: int) -> Drug | None:
        return self.db.query(Drug).filter(Drug.id == drug_id).first()

    def refresh(self, drug_id: int) -> Drug | None:
        return self.db.get(Drug, drug_id, populate_existing=True)

    def try_decrement_stock(self, drug_id: int, quantity: int) -> bool:
        """
        UPDATE drugs SET stock_quantity = stock_quantity - :q
        WHERE id = :id AND stock_quantity >= :q

        Returns False (and changes nothing) when stock is short.
        """
        self.db.flush()
        result = self.db.execute(
            update(Drug)
            .where(Drug.id == drug_id, Drug.stock_quantity >= quantity)
            .values(stock_quantity=Drug.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        self.refresh(drug_id)
        return result.rowcount == 1

    def increment_stock(self, drug_id: int, quantity: int) -> bool:
        self.db.flush()
        result = self.db.execute(
            update(Drug)
            .where(Drug.id == drug_id)
            .values(stock_quantity=Drug.stock_quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        self.refresh(drug_id)
        return result.rowcount == 1


class StockMovementRepository:
    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        *,
        drug_id: int,
        movement_type: StockMovementType,
        quantity: int,
        reference_no: str,
        prescription_id: int | None,
        actor_id: int | None,
        remarks: str | None = None,
    ) -> StockMovement:
        movement = StockMovement(
            drug_id=drug_id,
            movement_type=movement_type,
            quantity=quantity,
            reference_no=reference_no,
            prescription_id=prescription_id,
            actor_id=actor_id,
            remarks=remarks,
        )
        self.db.add(movement)
        self.db.flush()
        return movement

    def list_for_prescription(self, prescription_id: int) -> list[StockMovement]:
        return (
            self.db.query(StockMovement)
            .filter(StockMovement.prescription_id == prescription_id)
            .order_by(StockMovement.id.asc())
            .all()
        )

    def list_for_drug(self, drug_id: int) -> list[StockMovement]:
        return (
            self.db.query(StockMovement)
            .filter(StockMovement.drug_id == drug_id)
            .order_by(StockMovement.id.asc())
            .all()
        )
