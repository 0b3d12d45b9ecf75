# hms_ledger/models/__init__.py
"""
Import every model so Base.metadata is complete for create_all() and Alembic.
"""
from hms_ledger.models.base import Base
from hms_ledger.models.patient import Patient
from hms_ledger.models.appointment import Appointment, AppointmentStatus, ConsultationType
from hms_ledger.models.soap_note import SoapNote
from hms_ledger.models.service_catalogue import ServiceCatalogueEntry, ServiceCategory
from hms_ledger.models.drug import Drug
from hms_ledger.models.test_catalogue import TestCatalogueEntry
from hms_ledger.models.prescription import Dispensation, Prescription, PrescriptionStatus
from hms_ledger.models.lab_order import LabOrder, LabOrderPriority, LabOrderStatus
from hms_ledger.models.stock_movement import StockMovement, StockMovementType
from hms_ledger.models.billing import (
    BillingAccount,
    BillingAccountStatus,
    BillingItem,
    BillingItemStatus,
    BillingItemType,
)

__all__ = [
    "Base",
    "Patient",
    "Appointment",
    "AppointmentStatus",
    "ConsultationType",
    "SoapNote",
    "ServiceCatalogueEntry",
    "ServiceCategory",
    "Drug",
    "TestCatalogueEntry",
    "Dispensation",
    "Prescription",
    "PrescriptionStatus",
    "LabOrder",
    "LabOrderPriority",
    "LabOrderStatus",
    "StockMovement",
    "StockMovementType",
    "BillingAccount",
    "BillingAccountStatus",
    "BillingItem",
    "BillingItemStatus",
    "BillingItemType",
]
