# hms_ledger/services/prescription_service.py
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from hms_ledger.core.errors import AllergyConflictError, NotFoundError, ValidationError
from hms_ledger.models.drug import Drug
from hms_ledger.models.patient import Patient
from hms_ledger.models.prescription import Prescription, PrescriptionStatus
from hms_ledger.repositories.clinical import (
    AppointmentRepository,
    PatientRepository,
    PrescriptionRepository,
)
from hms_ledger.repositories.inventory import DrugInventoryRepository
from hms_ledger.schemas.prescription import PrescriptionCreate, PrescriptionUpdate
from hms_ledger.services.consultation_service import ensure_appointment_editable, ensure_consultation_editable
from hms_ledger.services.stock_service import release_stock, reserve_stock

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("dosage", "frequency", "duration", "quantity")


def _validate_required_fields(values: dict[str, Any]) -> None:
    missing = [f for f in REQUIRED_FIELDS if values.get(f) in (None, "")]
    if missing:
        raise ValidationError(
            f"Missing required prescription fields: {', '.join(missing)}",
            entity="prescription",
            field=missing[0],
            missing=missing,
        )
    for f in ("duration", "quantity"):
        if int(values[f]) <= 0:
            raise ValidationError(f"{f.capitalize()} must be greater than zero.", entity="prescription", field=f)


def _get_drug(db: Session, drug_id: int) -> Drug:
    drug = DrugInventoryRepository(db).get(drug_id)
    if not drug:
        raise NotFoundError("drug", drug_id)
    return drug


# ============================================================
# Clinical safety checks
# ============================================================
def check_allergies(patient: Patient, drug: Drug) -> str | None:
    """
    Return the first recorded allergy that matches the drug, else None.

    An allergy matches when it appears (case-insensitive) in the drug's
    name, generic name or therapeutic class, so "penicillin" blocks
    Amoxicillin filed under the "Penicillin" class.
    """
    haystacks = [
        (drug.name or "").casefold(),
        (drug.generic_name or "").casefold(),
        (drug.therapeutic_class or "").casefold(),
    ]
    for allergy in patient.allergies or []:
        needle = (allergy or "").strip().casefold()
        if needle and any(needle in h for h in haystacks if h):
            return allergy
    return None


def _mentions(contraindications: list[str] | None, other: Drug) -> str | None:
    names = [n.casefold() for n in (other.name, other.generic_name) if n]
    for entry in contraindications or []:
        text = (entry or "").casefold()
        if any(n in text for n in names):
            return entry
    return None


def check_drug_interactions(
    db: Session,
    patient_id: int,
    drug: Drug,
    *,
    exclude_prescription_id: int | None = None,
) -> list[dict]:
    """
    Compare drug against the patient's active prescriptions.

    Findings are advisory: they are stored on the prescription and never
    block it.
    """
    warnings: list[dict] = []
    inventory = DrugInventoryRepository(db)

    for other_rx in PrescriptionRepository(db).list_active_for_patient(patient_id, exclude_id=exclude_prescription_id):
        if not other_rx.drug_id or other_rx.drug_id == drug.id:
            continue
        other = inventory.get(other_rx.drug_id)
        if not other:
            continue

        if drug.therapeutic_class and (drug.therapeutic_class or "").casefold() == (other.therapeutic_class or "").casefold():
            warnings.append(
                {
                    "prescription_id": other_rx.id,
                    "drug_name": other.name,
                    "type": "therapeutic_duplication",
                    "message": f"{drug.name} and {other.name} are both {drug.therapeutic_class}.",
                }
            )

        hit = _mentions(drug.contraindications, other) or _mentions(other.contraindications, drug)
        if hit:
            warnings.append(
                {
                    "prescription_id": other_rx.id,
                    "drug_name": other.name,
                    "type": "contraindication",
                    "message": hit,
                }
            )

    if warnings:
        logger.info(
            "Interaction warnings for patient=%s drug=%s: %s",
            patient_id,
            drug.id,
            [w["type"] for w in warnings],
        )
    return warnings


def _allergy_gate(db: Session, patient_id: int, drug: Drug) -> None:
    patient = PatientRepository(db).get(patient_id)
    if not patient:
        raise NotFoundError("patient", patient_id)
    allergy = check_allergies(patient, drug)
    if allergy:
        logger.warning("Blocked prescription of drug=%s for patient=%s: allergy %r", drug.id, patient_id, allergy)
        raise AllergyConflictError(patient_id, drug, allergy)


# ============================================================
# CRUD
# ============================================================
def get_prescription(db: Session, prescription_id: int) -> Prescription:
    prescription = PrescriptionRepository(db).get(prescription_id)
    if not prescription:
        raise NotFoundError("prescription", prescription_id)
    return prescription


def list_prescriptions_for_encounter(db: Session, encounter_id: int) -> list[Prescription]:
    return PrescriptionRepository(db).list_for_encounter(encounter_id)


def create_prescription(db: Session, payload: PrescriptionCreate, *, actor_id: int | None = None) -> Prescription:
    """
    Create a prescription and, for instant dispensing, reserve its stock.

    Runs in one savepoint: if the reservation fails nothing about the
    prescription is kept.
    """
    with db.begin_nested():
        appointment = AppointmentRepository(db).get(payload.encounter_id)
        if not appointment:
            raise NotFoundError("encounter", payload.encounter_id)
        ensure_appointment_editable(appointment)

        _validate_required_fields(payload.model_dump())

        drug = _get_drug(db, payload.drug_id) if payload.drug_id else None
        if payload.instant_dispensing and not drug:
            raise ValidationError(
                "Drug selection is required for instant dispensing.",
                entity="prescription",
                field="drug_id",
            )
        drug_name = payload.drug_name or (drug.name if drug else None)
        if not drug_name:
            raise ValidationError("Either drug_id or drug_name is required.", entity="prescription", field="drug_name")

        warnings: list[dict] = []
        if drug:
            _allergy_gate(db, appointment.patient_id, drug)
            warnings = check_drug_interactions(db, appointment.patient_id, drug)

        prescription = PrescriptionRepository(db).add(
            Prescription(
                encounter_id=appointment.id,
                patient_id=appointment.patient_id,
                physician_id=appointment.physician_id,
                drug_id=drug.id if drug else None,
                drug_name=drug_name,
                dosage=payload.dosage,
                frequency=payload.frequency,
                duration=payload.duration,
                quantity=payload.quantity,
                instructions=payload.instructions,
                instant_dispensing=payload.instant_dispensing,
                stock_reserved=False,
                status=PrescriptionStatus.PENDING,
                interaction_warnings=warnings or None,
                created_by=actor_id,
            )
        )

        if prescription.instant_dispensing:
            reserve_stock(db, prescription, actor_id=actor_id)

    logger.info(
        "Prescription %s created for encounter=%s drug=%s instant=%s",
        prescription.id,
        prescription.encounter_id,
        prescription.drug_id,
        prescription.instant_dispensing,
    )
    return prescription


def update_prescription(
    db: Session,
    prescription_id: int,
    payload: PrescriptionUpdate,
    *,
    actor_id: int | None = None,
) -> Prescription:
    """
    Apply an edit and keep the reservation consistent with it.

    The old reservation is released when instant dispensing is switched
    off or the drug/quantity changes, and a fresh one is taken when the
    result is instant dispensing. The allergy gate runs before any new
    reservation, so an allergy recorded after creation still blocks it.
    Release and re-reserve share one savepoint so a failed re-reserve also
    undoes the release.
    """
    repo = PrescriptionRepository(db)

    with db.begin_nested():
        prescription = repo.get(prescription_id, for_update=True)
        if not prescription:
            raise NotFoundError("prescription", prescription_id)
        ensure_consultation_editable(db, prescription.encounter_id)
        if prescription.status != PrescriptionStatus.PENDING:
            raise ValidationError(
                f"Only pending prescriptions can be edited (status: {prescription.status.value}).",
                entity="prescription",
                id=prescription_id,
            )

        changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k == "drug_id"}

        merged = {f: changes.get(f, getattr(prescription, f)) for f in REQUIRED_FIELDS}
        _validate_required_fields(merged)

        new_drug_id = changes.get("drug_id", prescription.drug_id)
        new_instant = changes.get("instant_dispensing", prescription.instant_dispensing)
        drug_changed = new_drug_id != prescription.drug_id
        quantity_changed = merged["quantity"] != prescription.quantity

        drug = _get_drug(db, new_drug_id) if new_drug_id else None
        if new_instant and not drug:
            raise ValidationError(
                "Drug selection is required for instant dispensing.",
                entity="prescription",
                id=prescription_id,
                field="drug_id",
            )
        will_reserve = new_instant and (not prescription.stock_reserved or drug_changed or quantity_changed)
        if drug and (drug_changed or will_reserve):
            _allergy_gate(db, prescription.patient_id, drug)

        if prescription.stock_reserved and (not new_instant or drug_changed or quantity_changed):
            # Release against the stored drug/quantity before they change.
            release_stock(db, prescription, actor_id=actor_id)

        for field, value in changes.items():
            setattr(prescription, field, value)
        if drug_changed:
            prescription.drug_name = changes.get("drug_name") or (drug.name if drug else prescription.drug_name)
            prescription.interaction_warnings = (
                check_drug_interactions(db, prescription.patient_id, drug, exclude_prescription_id=prescription.id)
                if drug
                else None
            ) or None
        db.flush()

        if prescription.instant_dispensing:
            reserve_stock(db, prescription, actor_id=actor_id)

    logger.info(
        "Prescription %s updated by actor=%s (fields=%s, reserved=%s)",
        prescription.id,
        actor_id,
        sorted(changes),
        prescription.stock_reserved,
    )
    return prescription


def delete_prescription(db: Session, prescription_id: int, *, actor_id: int | None = None) -> None:
    repo = PrescriptionRepository(db)

    with db.begin_nested():
        prescription = repo.get(prescription_id, for_update=True)
        if not prescription:
            raise NotFoundError("prescription", prescription_id)
        ensure_consultation_editable(db, prescription.encounter_id)
        if prescription.status == PrescriptionStatus.DISPENSED:
            raise ValidationError(
                "Dispensed prescriptions cannot be deleted.",
                entity="prescription",
                id=prescription_id,
            )

        release_stock(db, prescription, actor_id=actor_id)
        repo.delete(prescription)

    logger.info("Prescription %s deleted by actor=%s", prescription_id, actor_id)
