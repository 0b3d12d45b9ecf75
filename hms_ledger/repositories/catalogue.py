# hms_ledger/repositories/catalogue.py
from __future__ import annotations

from sqlalchemy.orm import Session

from hms_ledger.models.service_catalogue import ServiceCatalogueEntry, ServiceCategory
from hms_ledger.models.test_catalogue import TestCatalogueEntry


class ServiceCatalogueRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_billable(self, category: ServiceCategory | None = None) -> list[ServiceCatalogueEntry]:
        """
        Active + billable entries, optionally restricted to one category.
        Keyword matching and ranking happen in services/catalogue_matching.py.
        """
        q = self.db.query(ServiceCatalogueEntry).filter(
            ServiceCatalogueEntry.is_active.is_(True),
            ServiceCatalogueEntry.is_billable.is_(True),
        )
        if category is not None:
            q = q.filter(ServiceCatalogueEntry.category == category)
        return q.order_by(ServiceCatalogueEntry.id.asc()).all()


class TestCatalogueRepository:
    __test__ = False

    def __init__(self, db: Session):
        self.db = db

    def get(self, test_id: int) -> TestCatalogueEntry | None:
        return self.db.query(TestCatalogueEntry).filter(TestCatalogueEntry.id == test_id).first()
