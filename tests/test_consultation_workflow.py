# tests/test_consultation_workflow.py
import logging
from decimal import Decimal

import pytest

from hms_ledger.core.errors import (
    AlreadyCompletedError,
    ConsultationLockedError,
    ValidationError,
)
from hms_ledger.models import (
    AppointmentStatus,
    BillingItem,
    BillingItemType,
    ConsultationType,
    Drug,
    LabOrderStatus,
    PrescriptionStatus,
)
from hms_ledger.schemas.lab_order import LabOrderCreate
from hms_ledger.schemas.prescription import PrescriptionCreate, PrescriptionUpdate
from hms_ledger.services import (
    billing_service,
    consultation_service,
    lab_order_service,
    prescription_service,
)

ACTOR = 7


def prescribe(db, encounter_id, drug_id=None, quantity=1, *, instant=False, drug_name=None):
    return prescription_service.create_prescription(
        db,
        PrescriptionCreate(
            encounter_id=encounter_id,
            drug_id=drug_id,
            drug_name=drug_name,
            dosage="1 tab",
            frequency="BD",
            duration=3,
            quantity=quantity,
            instant_dispensing=instant,
        ),
        actor_id=ACTOR,
    )


def order_lab(db, encounter_id, test_id=None, *, test_name=None, priority="normal"):
    return lab_order_service.create_lab_order(
        db,
        LabOrderCreate(encounter_id=encounter_id, test_id=test_id, test_name=test_name, priority=priority),
        actor_id=ACTOR,
    )


@pytest.fixture
def busy_encounter(db, reference, make_encounter):
    """Paracetamol (instant, 10), Ibuprofen (6), a CBC and the OPD consultation."""
    encounter = make_encounter()
    drugs = reference["drugs"]
    paracetamol = prescribe(db, encounter.id, drugs["Paracetamol"].id, 10, instant=True)
    ibuprofen = prescribe(db, encounter.id, drugs["Ibuprofen"].id, 6)
    cbc = order_lab(db, encounter.id, reference["tests"]["CBC"].id)
    return encounter, paracetamol, ibuprofen, cbc


def test_completion_bills_every_clinical_event(db, busy_encounter):
    encounter, paracetamol, ibuprofen, cbc = busy_encounter

    result = consultation_service.complete_consultation(db, encounter.id, actor_id=ACTOR)

    assert result.appointment.status == AppointmentStatus.COMPLETED
    assert result.appointment.completed_at is not None
    assert result.prescriptions_processed == 2
    assert [d.prescription_id for d in result.dispensations] == [paracetamol.id]
    assert result.dispensations[0].quantity_dispensed == 10
    assert paracetamol.status == PrescriptionStatus.DISPENSED
    assert ibuprofen.status == PrescriptionStatus.PENDING
    assert result.lab_orders_submitted == 1
    assert cbc.status == LabOrderStatus.IN_PROGRESS
    assert result.skipped_billing_items == []

    amounts = {item.item_type: item.amount for item in result.billing_items if item.item_type != BillingItemType.PHARMACY}
    pharmacy = sorted(i.amount for i in result.billing_items if i.item_type == BillingItemType.PHARMACY)
    assert pharmacy == [Decimal("24.00"), Decimal("25.00")]
    assert amounts == {BillingItemType.LAB_TEST: Decimal("350.00"), BillingItemType.CONSULTATION: Decimal("500.00")}

    summary = billing_service.get_billing_summary(db, encounter.id)
    assert summary["total_amount"] == Decimal("899.00")
    assert summary["items_count"] == 4


def test_billing_failures_degrade_without_aborting_completion(db, reference, make_encounter, caplog):
    encounter = make_encounter()
    free_text = prescribe(db, encounter.id, drug_name="Cough syrup", quantity=1)
    # Warfarin is stocked but has no medication entry in the service catalogue.
    warfarin = prescribe(db, encounter.id, reference["drugs"]["Warfarin"].id, 5)
    order_lab(db, encounter.id, reference["tests"]["FBS"].id)

    with caplog.at_level(logging.WARNING, logger="hms_ledger.services.consultation_service"):
        result = consultation_service.complete_consultation(db, encounter.id, actor_id=ACTOR)

    assert result.appointment.status == AppointmentStatus.COMPLETED
    reasons = {s.source_id: s.reason for s in result.skipped_billing_items}
    assert reasons[free_text.id] == "missing drug reference"
    assert "No billable medication service" in reasons[warfarin.id]
    assert all(s.item_type == BillingItemType.PHARMACY.value for s in result.skipped_billing_items)
    assert sorted(i.item_type for i in result.billing_items) == sorted(
        [BillingItemType.LAB_TEST, BillingItemType.CONSULTATION]
    )
    assert billing_service.get_billing_summary(db, encounter.id)["total_amount"] == Decimal("620.00")
    assert any(r.getMessage().startswith("Non-fatal") for r in caplog.records)


def test_second_completion_is_rejected(db, busy_encounter):
    encounter = busy_encounter[0]
    consultation_service.complete_consultation(db, encounter.id, actor_id=ACTOR)

    with pytest.raises(AlreadyCompletedError) as exc_info:
        consultation_service.complete_consultation(db, encounter.id, actor_id=ACTOR)

    assert exc_info.value.code == "ALREADY_COMPLETED"
    assert db.query(BillingItem).count() == 4


def test_reopen_and_recomplete_bills_only_new_work(db, reference, busy_encounter):
    encounter = busy_encounter[0]
    consultation_service.complete_consultation(db, encounter.id, actor_id=ACTOR)

    appointment = consultation_service.reopen_consultation(db, encounter.id, actor_id=ACTOR)
    assert appointment.status == AppointmentStatus.IN_PROGRESS
    assert appointment.completed_at is None

    order_lab(db, encounter.id, reference["tests"]["FBS"].id)
    result = consultation_service.complete_consultation(db, encounter.id, actor_id=ACTOR)

    assert result.prescriptions_processed == 2
    assert result.dispensations == []
    assert result.lab_orders_submitted == 1
    assert [(i.item_type, i.amount) for i in result.billing_items] == [(BillingItemType.LAB_TEST, Decimal("120.00"))]
    consultations = (
        db.query(BillingItem)
        .filter(BillingItem.encounter_id == encounter.id, BillingItem.item_type == BillingItemType.CONSULTATION)
        .count()
    )
    assert consultations == 1
    assert billing_service.get_billing_summary(db, encounter.id)["total_amount"] == Decimal("1019.00")


def test_dispensing_does_not_touch_stock_again(db, reference, busy_encounter):
    paracetamol_drug = reference["drugs"]["Paracetamol"]
    stock_after_reservation = db.get(Drug, paracetamol_drug.id, populate_existing=True).stock_quantity
    assert stock_after_reservation == 490

    consultation_service.complete_consultation(db, busy_encounter[0].id, actor_id=ACTOR)

    assert db.get(Drug, paracetamol_drug.id, populate_existing=True).stock_quantity == 490


def test_completed_consultation_rejects_edits(db, reference, busy_encounter):
    encounter, _paracetamol, ibuprofen, cbc = busy_encounter
    consultation_service.complete_consultation(db, encounter.id, actor_id=ACTOR)

    with pytest.raises(ConsultationLockedError):
        prescribe(db, encounter.id, reference["drugs"]["Amoxicillin"].id, 2)
    with pytest.raises(ConsultationLockedError):
        prescription_service.update_prescription(db, ibuprofen.id, PrescriptionUpdate(quantity=2), actor_id=ACTOR)
    with pytest.raises(ConsultationLockedError):
        prescription_service.delete_prescription(db, ibuprofen.id, actor_id=ACTOR)
    with pytest.raises(ConsultationLockedError):
        order_lab(db, encounter.id, test_name="Lipid Profile")
    with pytest.raises(ConsultationLockedError):
        lab_order_service.update_lab_order_priority(db, cbc.id, "urgent", actor_id=ACTOR)
    with pytest.raises(ConsultationLockedError):
        billing_service.post_procedure_charge(db, encounter.id, 1, "Nebulization", actor_id=ACTOR)


def test_reopen_requires_completed_consultation(db, make_encounter):
    encounter = make_encounter()
    with pytest.raises(ValidationError):
        consultation_service.reopen_consultation(db, encounter.id, actor_id=ACTOR)


def test_cancelled_appointment_cannot_be_started_or_completed(db, reference, make_encounter):
    encounter = make_encounter(status=AppointmentStatus.CANCELLED)

    with pytest.raises(ValidationError):
        consultation_service.start_consultation(db, encounter.id, actor_id=ACTOR)
    with pytest.raises(ValidationError):
        consultation_service.complete_consultation(db, encounter.id, actor_id=ACTOR)
    assert db.query(BillingItem).count() == 0


def test_start_creates_draft_note_and_completion_finalises_it(db, reference, make_encounter):
    encounter = make_encounter(status=AppointmentStatus.SCHEDULED)

    appointment, note = consultation_service.start_consultation(db, encounter.id, actor_id=ACTOR)
    assert appointment.status == AppointmentStatus.IN_PROGRESS
    assert appointment.consultation_started_at is not None
    assert note.is_draft is True

    # Starting again hands back the same draft.
    _, again = consultation_service.start_consultation(db, encounter.id, actor_id=ACTOR)
    assert again.id == note.id

    result = consultation_service.complete_consultation(
        db,
        encounter.id,
        actor_id=ACTOR,
        note_updates={"assessment": "Viral fever", "plan": "Rest and fluids", "unknown": "ignored"},
    )
    assert result.soap_note.id == note.id
    assert result.soap_note.is_draft is False
    assert result.soap_note.completed_at is not None
    assert result.soap_note.assessment == "Viral fever"
    assert result.soap_note.plan == "Rest and fluids"


def test_start_on_completed_consultation_is_locked(db, make_encounter):
    encounter = make_encounter(status=AppointmentStatus.COMPLETED)
    with pytest.raises(ConsultationLockedError):
        consultation_service.start_consultation(db, encounter.id, actor_id=ACTOR)


def test_summary_previews_charges_without_writing(db, reference, busy_encounter):
    encounter, paracetamol, ibuprofen, _cbc = busy_encounter
    prescribe(db, encounter.id, drug_name="Cough syrup")

    summary = consultation_service.get_consultation_summary(db, encounter.id)

    assert summary["status"] == AppointmentStatus.IN_PROGRESS.value
    assert summary["total_prescriptions"] == 3
    assert summary["total_lab_orders"] == 1
    assert [rx.id for rx in summary["instant_dispensing_prescriptions"]] == [paracetamol.id]
    assert ibuprofen.id in [rx.id for rx in summary["regular_prescriptions"]]
    assert [c["item_type"] for c in summary["expected_charges"]] == [
        BillingItemType.PHARMACY.value,
        BillingItemType.PHARMACY.value,
        BillingItemType.LAB_TEST.value,
        BillingItemType.CONSULTATION.value,
    ]
    assert [s.reason for s in summary["skipped_charges"]] == ["missing drug reference"]
    assert summary["estimated_total"] == Decimal("899.00")

    assert db.query(BillingItem).count() == 0
    assert billing_service.get_billing_summary(db, encounter.id)["account_exists"] is False


def test_emergency_consultation_uses_emergency_tariff(db, reference, make_encounter):
    encounter = make_encounter(consultation_type=ConsultationType.EMERGENCY)
    result = consultation_service.complete_consultation(db, encounter.id, actor_id=ACTOR)

    [item] = result.billing_items
    assert item.amount == Decimal("1000.00")
    assert item.description == "Emergency Consultation (Emergency Consultation)"
