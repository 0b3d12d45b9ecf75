# hms_ledger/repositories/billing.py
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from hms_ledger.models.billing import BillingAccount, BillingItem, BillingItemStatus, BillingItemType


class BillingAccountRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_encounter(self, encounter_id: int, *, for_update: bool = False) -> BillingAccount | None:
        q = self.db.query(BillingAccount).filter(BillingAccount.encounter_id == encounter_id)
        if for_update:
            q = q.with_for_update()
        return q.first()

    def add(self, account: BillingAccount) -> BillingAccount:
        self.db.add(account)
        self.db.flush()
        return account


class BillingItemRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, item_id: int, *, for_update: bool = False) -> BillingItem | None:
        q = self.db.query(BillingItem).filter(BillingItem.id == item_id)
        if for_update:
            q = q.with_for_update()
        return q.first()

    def add(self, item: BillingItem) -> BillingItem:
        self.db.add(item)
        self.db.flush()
        return item

    def list_for_encounter(self, encounter_id: int) -> list[BillingItem]:
        q = self.db.query(BillingItem).filter(BillingItem.encounter_id == encounter_id)
        return q.order_by(BillingItem.posted_at.asc(), BillingItem.id.asc()).all()

    def active_net_total(self, encounter_id: int) -> Decimal:
        """
        Sum of net_amount over non-cancelled items, read from the source rows.
        """
        self.db.flush()
        total = (
            self.db.query(func.coalesce(func.sum(BillingItem.net_amount), 0))
            .filter(
                BillingItem.encounter_id == encounter_id,
                BillingItem.status != BillingItemStatus.CANCELLED,
            )
            .scalar()
        )
        return Decimal(str(total or 0))

    def count_active(self, encounter_id: int) -> int:
        return (
            self.db.query(func.count(BillingItem.id))
            .filter(
                BillingItem.encounter_id == encounter_id,
                BillingItem.status != BillingItemStatus.CANCELLED,
            )
            .scalar()
            or 0
        )

    def find_active(
        self,
        encounter_id: int,
        item_type: BillingItemType,
        *,
        reference_type: str | None = None,
        reference_id: str | None = None,
    ) -> BillingItem | None:
        q = self.db.query(BillingItem).filter(
            BillingItem.encounter_id == encounter_id,
            BillingItem.item_type == item_type,
            BillingItem.status != BillingItemStatus.CANCELLED,
        )
        if reference_type is not None:
            q = q.filter(BillingItem.reference_type == reference_type)
        if reference_id is not None:
            q = q.filter(BillingItem.reference_id == str(reference_id))
        return q.first()

    def mark_unpaid_as_paid(self, encounter_id: int) -> int:
        items = (
            self.db.query(BillingItem)
            .filter(
                BillingItem.encounter_id == encounter_id,
                BillingItem.status == BillingItemStatus.UNPAID,
            )
            .all()
        )
        for item in items:
            item.status = BillingItemStatus.PAID
        self.db.flush()
        return len(items)
