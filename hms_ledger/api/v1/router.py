# hms_ledger/api/v1/router.py
from fastapi import APIRouter

from hms_ledger.api.v1.endpoints import (
    billing,
    prescriptions,
    lab_orders,
    consultations,
)

api_router = APIRouter()

api_router.include_router(billing.router, prefix="/billing", tags=["billing"])
api_router.include_router(prescriptions.router, prefix="/prescriptions", tags=["prescriptions"])
api_router.include_router(lab_orders.router, prefix="/lab-orders", tags=["lab-orders"])
api_router.include_router(consultations.router, prefix="/consultations", tags=["consultations"])
