# hms_ledger/services/consultation_service.py
"""
OPD consultation lifecycle:

    SCHEDULED --start--> IN_PROGRESS --complete--> COMPLETED --reopen--> IN_PROGRESS

Completion is the only place clinical events turn into billing lines. It
runs inside the caller's transaction with the appointment row locked, so
two concurrent completions serialize and the second one sees COMPLETED.

Billing failures during completion do not abort it: each post runs in
its own savepoint and a failure is returned as a SkippedBillingItem.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hms_ledger.core.errors import (
    AlreadyCompletedError,
    ConsultationLockedError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from hms_ledger.models.appointment import Appointment, AppointmentStatus
from hms_ledger.models.billing import BillingItem, BillingItemType
from hms_ledger.models.lab_order import LabOrderStatus
from hms_ledger.models.prescription import Dispensation, PrescriptionStatus
from hms_ledger.models.service_catalogue import ServiceCategory
from hms_ledger.models.soap_note import SoapNote
from hms_ledger.repositories.billing import BillingItemRepository
from hms_ledger.repositories.catalogue import ServiceCatalogueRepository
from hms_ledger.repositories.clinical import (
    AppointmentRepository,
    DispensationRepository,
    LabOrderRepository,
    PrescriptionRepository,
    SoapNoteRepository,
)
from hms_ledger.services import billing_service
from hms_ledger.services.catalogue_matching import select_consultation_service, select_service
from hms_ledger.services.lab_order_service import submit_to_laboratory
from hms_ledger.utils.datetime_utils import utc_now
from hms_ledger.utils.money import line_amounts, money2

logger = logging.getLogger(__name__)

SOAP_FIELDS = ("subjective", "objective", "assessment", "plan")


@dataclass
class SkippedBillingItem:
    source_type: str
    source_id: Any
    item_type: str
    reason: str


@dataclass
class CompletionResult:
    appointment: Appointment
    soap_note: SoapNote | None = None
    prescriptions_processed: int = 0
    lab_orders_submitted: int = 0
    dispensations: list[Dispensation] = field(default_factory=list)
    billing_items: list[BillingItem] = field(default_factory=list)
    skipped_billing_items: list[SkippedBillingItem] = field(default_factory=list)


# ============================================================
# Guards
# ============================================================
def ensure_appointment_editable(appointment: Appointment) -> None:
    if appointment.status == AppointmentStatus.COMPLETED:
        raise ConsultationLockedError(appointment.id)


def ensure_consultation_editable(db: Session, encounter_id: int) -> Appointment:
    """
    Raise ConsultationLockedError when the encounter is completed.
    Every prescription, lab order and charge mutation goes through here.
    """
    appointment = AppointmentRepository(db).get(encounter_id)
    if not appointment:
        raise NotFoundError("encounter", encounter_id)
    ensure_appointment_editable(appointment)
    return appointment


def _get_appointment(db: Session, appointment_id: int, *, for_update: bool = False) -> Appointment:
    appointment = AppointmentRepository(db).get(appointment_id, for_update=for_update)
    if not appointment:
        raise NotFoundError("appointment", appointment_id)
    return appointment


# ============================================================
# Lifecycle
# ============================================================
def start_consultation(db: Session, appointment_id: int, *, actor_id: int | None = None) -> tuple[Appointment, SoapNote]:
    appointment = _get_appointment(db, appointment_id, for_update=True)
    ensure_appointment_editable(appointment)
    if appointment.status == AppointmentStatus.CANCELLED:
        raise ValidationError("Cancelled appointments cannot be started.", entity="appointment", id=appointment_id)

    notes = SoapNoteRepository(db)

    if appointment.status == AppointmentStatus.IN_PROGRESS:
        note = notes.latest_for_appointment(appointment.id)
        if note:
            return appointment, note
    else:
        appointment.status = AppointmentStatus.IN_PROGRESS
        appointment.consultation_started_at = utc_now()

    note = notes.add(
        SoapNote(
            appointment_id=appointment.id,
            patient_id=appointment.patient_id,
            physician_id=appointment.physician_id,
            is_draft=True,
        )
    )
    logger.info("Consultation started for appointment=%s by actor=%s", appointment.id, actor_id)
    return appointment, note


def _finalise_soap_note(db: Session, appointment: Appointment, note_updates: dict | None) -> SoapNote | None:
    notes = SoapNoteRepository(db)
    note = notes.latest_for_appointment(appointment.id)
    updates = {k: v for k, v in (note_updates or {}).items() if k in SOAP_FIELDS}

    if note is None:
        if not updates:
            return None
        note = notes.add(
            SoapNote(
                appointment_id=appointment.id,
                patient_id=appointment.patient_id,
                physician_id=appointment.physician_id,
            )
        )

    for key, value in updates.items():
        setattr(note, key, value)
    note.is_draft = False
    note.completed_at = utc_now()
    db.flush()
    return note


def _post_degradable(
    db: Session,
    result: CompletionResult,
    *,
    source_type: str,
    source_id: Any,
    item_type: BillingItemType,
    post,
) -> None:
    """
    Run one billing post in its own savepoint. Failures roll back only
    that post and are recorded on the result.
    """
    try:
        with db.begin_nested():
            item = post()
    except (LedgerError, SQLAlchemyError) as exc:
        reason = exc.message if isinstance(exc, LedgerError) else "database error while posting charge"
        logger.exception(
            "Non-fatal: %s charge for %s=%s skipped during completion of encounter=%s",
            item_type.value,
            source_type,
            source_id,
            result.appointment.id,
        )
        result.skipped_billing_items.append(
            SkippedBillingItem(
                source_type=source_type,
                source_id=source_id,
                item_type=item_type.value,
                reason=reason,
            )
        )
        return
    result.billing_items.append(item)


def _already_billed(db: Session, encounter_id: int, item_type: BillingItemType, reference_type: str, reference_id: Any) -> bool:
    return (
        BillingItemRepository(db).find_active(
            encounter_id,
            item_type,
            reference_type=reference_type,
            reference_id=str(reference_id),
        )
        is not None
    )


def complete_consultation(
    db: Session,
    appointment_id: int,
    *,
    actor_id: int | None = None,
    note_updates: dict | None = None,
) -> CompletionResult:
    appointment = _get_appointment(db, appointment_id, for_update=True)
    if appointment.status == AppointmentStatus.COMPLETED:
        raise AlreadyCompletedError(appointment_id)
    if appointment.status == AppointmentStatus.CANCELLED:
        raise ValidationError("Cancelled appointments cannot be completed.", entity="appointment", id=appointment_id)

    result = CompletionResult(appointment=appointment)
    encounter_id = appointment.id

    # 1. SOAP note
    result.soap_note = _finalise_soap_note(db, appointment, note_updates)

    # 2. Instant dispensing
    prescriptions = PrescriptionRepository(db).list_for_encounter(encounter_id)
    dispensations = DispensationRepository(db)
    now = utc_now()
    result.prescriptions_processed = len(prescriptions)
    for rx in prescriptions:
        if rx.status == PrescriptionStatus.PENDING and rx.instant_dispensing and rx.stock_reserved:
            result.dispensations.append(
                dispensations.add(
                    Dispensation(
                        prescription_id=rx.id,
                        quantity_dispensed=rx.quantity,
                        dispensed_by=actor_id,
                        dispensed_at=now,
                    )
                )
            )
            rx.status = PrescriptionStatus.DISPENSED
            logger.info("Instant dispensing recorded for prescription=%s qty=%s", rx.id, rx.quantity)

    # 3. Lab submission
    lab_orders = LabOrderRepository(db).list_for_encounter(encounter_id)
    for order in lab_orders:
        if order.status == LabOrderStatus.PENDING:
            submit_to_laboratory(db, order)
            result.lab_orders_submitted += 1

    # 4. Pharmacy charges
    for rx in prescriptions:
        if rx.status == PrescriptionStatus.CANCELLED:
            continue
        if _already_billed(db, encounter_id, BillingItemType.PHARMACY, "prescription", rx.id):
            continue
        if not rx.drug_id:
            logger.warning("Non-fatal: prescription=%s has no drug reference; pharmacy charge skipped", rx.id)
            result.skipped_billing_items.append(
                SkippedBillingItem("prescription", rx.id, BillingItemType.PHARMACY.value, "missing drug reference")
            )
            continue
        _post_degradable(
            db,
            result,
            source_type="prescription",
            source_id=rx.id,
            item_type=BillingItemType.PHARMACY,
            post=lambda rx=rx: billing_service.post_medication_charge(
                db,
                encounter_id,
                rx.drug_id,
                rx.drug_name,
                rx.quantity or 1,
                prescription_id=rx.id,
                actor_id=actor_id,
            ),
        )

    # 5. Lab charges
    for order in lab_orders:
        if order.status == LabOrderStatus.CANCELLED:
            continue
        if _already_billed(db, encounter_id, BillingItemType.LAB_TEST, "lab_order", order.id):
            continue
        _post_degradable(
            db,
            result,
            source_type="lab_order",
            source_id=order.id,
            item_type=BillingItemType.LAB_TEST,
            post=lambda order=order: billing_service.post_lab_test_charge(
                db,
                encounter_id,
                order.test_id,
                order.test_name,
                lab_order_id=order.id,
                actor_id=actor_id,
            ),
        )

    # 6. Consultation charge
    if billing_service.find_active_consultation_item(db, encounter_id) is None:
        _post_degradable(
            db,
            result,
            source_type="appointment",
            source_id=encounter_id,
            item_type=BillingItemType.CONSULTATION,
            post=lambda: billing_service.post_consultation_charge(
                db,
                encounter_id,
                appointment.physician_id,
                appointment.consultation_type,
                actor_id=actor_id,
            ),
        )

    # 7. Lock
    appointment.status = AppointmentStatus.COMPLETED
    appointment.completed_at = utc_now()
    db.flush()

    logger.info(
        "Consultation %s completed by actor=%s: prescriptions=%s dispensed=%s labs=%s billed=%s skipped=%s",
        encounter_id,
        actor_id,
        result.prescriptions_processed,
        len(result.dispensations),
        result.lab_orders_submitted,
        len(result.billing_items),
        len(result.skipped_billing_items),
    )
    return result


def reopen_consultation(db: Session, appointment_id: int, *, actor_id: int | None = None) -> Appointment:
    """
    COMPLETED -> IN_PROGRESS. Dispensations, lab submissions and charges
    from the earlier completion stay in place.
    """
    appointment = _get_appointment(db, appointment_id, for_update=True)
    if appointment.status != AppointmentStatus.COMPLETED:
        raise ValidationError(
            "Consultation is not completed and cannot be reopened.",
            entity="appointment",
            id=appointment_id,
        )

    appointment.status = AppointmentStatus.IN_PROGRESS
    appointment.completed_at = None
    db.flush()

    logger.info("Consultation %s reopened by actor=%s", appointment_id, actor_id)
    return appointment


# ============================================================
# Preview
# ============================================================
def _preview_charge(
    entries: list,
    category: ServiceCategory,
    keyword: str,
    *,
    consultation_type: Any = None,
) -> Any:
    if category == ServiceCategory.CONSULTATION:
        return select_consultation_service(entries, consultation_type)
    return select_service(entries, category, keyword, strict=True)


def get_consultation_summary(db: Session, appointment_id: int) -> dict:
    """
    What completion would do right now, without writing anything.
    """
    appointment = _get_appointment(db, appointment_id)
    encounter_id = appointment.id
    prescriptions = PrescriptionRepository(db).list_for_encounter(encounter_id)
    lab_orders = LabOrderRepository(db).list_for_encounter(encounter_id)
    catalogue = ServiceCatalogueRepository(db).list_billable()

    expected: list[dict] = []
    skipped: list[SkippedBillingItem] = []

    def _add(item_type: BillingItemType, source_type: str, source_id: Any, category, keyword, quantity, **kw):
        try:
            service = _preview_charge(catalogue, category, keyword, **kw)
        except LedgerError as exc:
            skipped.append(SkippedBillingItem(source_type, source_id, item_type.value, exc.message))
            return
        amount, _ = line_amounts(quantity, service.unit_price)
        expected.append(
            {
                "item_type": item_type.value,
                "source_type": source_type,
                "source_id": source_id,
                "service_code": service.code,
                "description": service.name,
                "quantity": quantity,
                "unit_price": money2(service.unit_price),
                "amount": amount,
            }
        )

    for rx in prescriptions:
        if rx.status == PrescriptionStatus.CANCELLED:
            continue
        if _already_billed(db, encounter_id, BillingItemType.PHARMACY, "prescription", rx.id):
            continue
        if not rx.drug_id:
            skipped.append(
                SkippedBillingItem("prescription", rx.id, BillingItemType.PHARMACY.value, "missing drug reference")
            )
            continue
        _add(BillingItemType.PHARMACY, "prescription", rx.id, ServiceCategory.MEDICATION, rx.drug_name, rx.quantity or 1)

    for order in lab_orders:
        if order.status == LabOrderStatus.CANCELLED:
            continue
        if _already_billed(db, encounter_id, BillingItemType.LAB_TEST, "lab_order", order.id):
            continue
        _add(BillingItemType.LAB_TEST, "lab_order", order.id, ServiceCategory.LAB_TEST, order.test_name, 1)

    if billing_service.find_active_consultation_item(db, encounter_id) is None:
        _add(
            BillingItemType.CONSULTATION,
            "appointment",
            encounter_id,
            ServiceCategory.CONSULTATION,
            "",
            1,
            consultation_type=appointment.consultation_type,
        )

    return {
        "appointment_id": encounter_id,
        "status": appointment.status.value,
        "consultation_type": appointment.consultation_type.value,
        "prescriptions": prescriptions,
        "regular_prescriptions": [rx for rx in prescriptions if not rx.instant_dispensing],
        "instant_dispensing_prescriptions": [rx for rx in prescriptions if rx.instant_dispensing],
        "lab_orders": lab_orders,
        "total_prescriptions": len(prescriptions),
        "total_lab_orders": len(lab_orders),
        "expected_charges": expected,
        "skipped_charges": skipped,
        "estimated_total": money2(sum((c["amount"] for c in expected), Decimal("0"))),
    }
