# hms_ledger/core/errors.py
"""
Domain error taxonomy for the ledger core.

Every error carries a machine-readable code, the HTTP status it maps to,
and a context dict (entity, id, field) so the UI can render a message
without parsing text. main.py registers one handler for LedgerError.
"""
from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    code = "LEDGER_ERROR"
    http_status = 400

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, "context": self.context}


class ValidationError(LedgerError):
    code = "VALIDATION_ERROR"
    http_status = 422


class NotFoundError(LedgerError):
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, entity: str, entity_id: Any = None, message: str | None = None, **context: Any) -> None:
        super().__init__(message or f"{entity} not found", entity=entity, id=entity_id, **context)


class ServiceNotFoundError(NotFoundError):
    code = "SERVICE_NOT_FOUND"

    def __init__(self, category: str, keyword: str) -> None:
        super().__init__(
            "service_catalogue",
            message=f"No billable {category} service matches '{keyword}'.",
            category=category,
            keyword=keyword,
        )


class InsufficientStockError(LedgerError):
    code = "INSUFFICIENT_STOCK"
    http_status = 422

    def __init__(self, drug: Any, requested: int, available: int | None = None) -> None:
        available = drug.stock_quantity if available is None else available
        reorder_level = drug.reorder_level or 0
        if available <= 0:
            stock_status = "out_of_stock"
        elif available <= reorder_level:
            stock_status = "low_stock"
        else:
            stock_status = "in_stock"
        super().__init__(
            f"Insufficient stock for drug '{drug.name}'. Available: {available}, Requested: {requested}.",
            entity="drug",
            id=drug.id,
            field="quantity",
            drug_name=drug.name,
            available=available,
            requested=requested,
            reorder_level=reorder_level,
            stock_status=stock_status,
        )


class AllergyConflictError(LedgerError):
    code = "ALLERGY_CONFLICT"
    http_status = 422

    def __init__(self, patient_id: Any, drug: Any, allergy: str) -> None:
        super().__init__(
            f"Patient is allergic to this medication ({allergy}). Prescription blocked.",
            entity="drug",
            id=drug.id,
            field="drug_id",
            patient_id=patient_id,
            drug_name=drug.name,
            allergy=allergy,
        )


class AlreadyCompletedError(LedgerError):
    code = "ALREADY_COMPLETED"
    http_status = 422

    def __init__(self, appointment_id: Any) -> None:
        super().__init__(
            "Consultation is already completed and cannot be completed again.",
            entity="appointment",
            id=appointment_id,
        )


class ConsultationLockedError(AlreadyCompletedError):
    code = "CONSULTATION_LOCKED"

    def __init__(self, appointment_id: Any) -> None:
        LedgerError.__init__(
            self,
            "Cannot modify completed consultation",
            entity="appointment",
            id=appointment_id,
        )


class DuplicateChargeError(LedgerError):
    code = "DUPLICATE_CHARGE"
    http_status = 409

    def __init__(self, encounter_id: Any, item_type: str, existing_item_id: Any = None) -> None:
        super().__init__(
            f"A {item_type} charge already exists for encounter {encounter_id}.",
            entity="billing_item",
            id=existing_item_id,
            encounter_id=encounter_id,
            item_type=item_type,
        )
