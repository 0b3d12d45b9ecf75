# tests/test_billing_service.py
import logging
from decimal import Decimal

import pytest

from hms_ledger.core.errors import (
    ConsultationLockedError,
    DuplicateChargeError,
    NotFoundError,
    ServiceNotFoundError,
    ValidationError,
)
from hms_ledger.models import (
    AppointmentStatus,
    BillingAccount,
    BillingItem,
    BillingItemStatus,
    BillingItemType,
    ConsultationType,
)
from hms_ledger.services import billing_service

ACTOR = 7


def _active_net_sum(db, encounter_id):
    items = (
        db.query(BillingItem)
        .filter(BillingItem.encounter_id == encounter_id, BillingItem.status != BillingItemStatus.CANCELLED)
        .all()
    )
    return sum((i.net_amount for i in items), Decimal("0.00"))


def test_first_consultation_charge_opens_padded_account(db, reference, make_encounter):
    encounter = make_encounter(encounter_id=42)
    assert db.query(BillingAccount).count() == 0

    item = billing_service.post_consultation_charge(db, 42, "PHY001", ConsultationType.OPD, actor_id=ACTOR)

    account = db.query(BillingAccount).filter(BillingAccount.encounter_id == encounter.id).one()
    assert account.account_no == "BA000042"
    assert item.item_type == BillingItemType.CONSULTATION
    assert item.amount == Decimal("500.00")
    assert item.net_amount == Decimal("500.00")
    assert item.reference_type == "physician"
    assert item.reference_id == "PHY001"
    assert item.posted_by == ACTOR
    assert account.total_amount == Decimal("500.00")
    assert account.net_amount == Decimal("500.00")
    assert account.balance == Decimal("500.00")


def test_get_or_create_account_is_idempotent(db, reference, make_encounter):
    encounter = make_encounter()
    first = billing_service.get_or_create_account(db, encounter.id, actor_id=ACTOR)
    second = billing_service.get_or_create_account(db, encounter.id, actor_id=ACTOR)

    assert first.id == second.id
    assert db.query(BillingAccount).count() == 1


def test_get_or_create_account_for_missing_encounter_raises(db, reference):
    with pytest.raises(NotFoundError):
        billing_service.get_or_create_account(db, 999)
    assert db.query(BillingAccount).count() == 0


def test_second_consultation_charge_is_rejected(db, reference, make_encounter):
    encounter = make_encounter()
    first = billing_service.post_consultation_charge(db, encounter.id, "PHY004", "OPD", actor_id=ACTOR)

    with pytest.raises(DuplicateChargeError) as exc_info:
        billing_service.post_consultation_charge(db, encounter.id, "PHY004", "OPD", actor_id=ACTOR)

    assert exc_info.value.http_status == 409
    assert exc_info.value.context["id"] == first.id
    assert db.query(BillingItem).filter(BillingItem.item_type == BillingItemType.CONSULTATION).count() == 1


def test_consultation_can_be_recharged_after_cancellation(db, reference, make_encounter):
    encounter = make_encounter()
    first = billing_service.post_consultation_charge(db, encounter.id, "PHY004", "OPD", actor_id=ACTOR)
    billing_service.cancel_billing_item(db, first.id, actor_id=ACTOR)

    second = billing_service.post_consultation_charge(
        db, encounter.id, "PHY004", ConsultationType.SPECIALIST, actor_id=ACTOR
    )

    assert second.amount == Decimal("800.00")
    account = billing_service.get_or_create_account(db, encounter.id)
    assert account.total_amount == Decimal("800.00")


def test_missing_catalogue_entry_writes_nothing(db, reference, make_encounter):
    encounter = make_encounter()
    billing_service.post_consultation_charge(db, encounter.id, "PHY004", "OPD", actor_id=ACTOR)
    before = billing_service.get_billing_summary(db, encounter.id)

    with pytest.raises(ServiceNotFoundError) as exc_info:
        billing_service.post_lab_test_charge(db, encounter.id, None, "MRI Brain", actor_id=ACTOR)

    assert isinstance(exc_info.value, NotFoundError)
    after = billing_service.get_billing_summary(db, encounter.id)
    assert after == before
    assert after["items_count"] == 1


def test_missing_catalogue_entry_does_not_create_account(db, reference, make_encounter):
    encounter = make_encounter()
    with pytest.raises(NotFoundError):
        billing_service.post_procedure_charge(db, encounter.id, 1, "Appendectomy", actor_id=ACTOR)

    assert db.query(BillingAccount).count() == 0
    assert db.query(BillingItem).count() == 0


def test_posting_against_missing_encounter_raises_not_found(db, reference):
    with pytest.raises(NotFoundError):
        billing_service.post_lab_test_charge(db, 12345, None, "Complete Blood Count", actor_id=ACTOR)
    assert db.query(BillingItem).count() == 0


def test_typed_charges_price_from_catalogue(db, reference, make_encounter):
    encounter = make_encounter()

    lab = billing_service.post_lab_test_charge(db, encounter.id, 1, "Complete Blood Count", actor_id=ACTOR)
    procedure = billing_service.post_procedure_charge(db, encounter.id, 3, "Wound Dressing", actor_id=ACTOR)
    medication = billing_service.post_medication_charge(
        db, encounter.id, 1, "Paracetamol", 10, prescription_id=55, actor_id=ACTOR
    )
    bed = billing_service.post_bed_charge(db, encounter.id, 11, days=3, bed_type="ICU", actor_id=ACTOR)

    assert lab.amount == Decimal("350.00")
    assert procedure.amount == Decimal("250.00")
    assert medication.item_type == BillingItemType.PHARMACY
    assert medication.amount == Decimal("25.00")
    assert (medication.reference_type, medication.reference_id) == ("prescription", "55")
    assert bed.quantity == 3
    assert bed.amount == Decimal("18000.00")

    account = billing_service.get_or_create_account(db, encounter.id)
    assert account.total_amount == Decimal("18625.00")
    assert account.total_amount == _active_net_sum(db, encounter.id)


@pytest.mark.parametrize("quantity, price", [(0, "10.00"), (-1, "10.00"), (1, "-0.01")])
def test_post_charge_rejects_bad_quantity_or_price(db, reference, make_encounter, quantity, price):
    encounter = make_encounter()
    with pytest.raises(ValidationError):
        billing_service.post_charge(
            db,
            encounter.id,
            BillingItemType.PROCEDURE,
            None,
            quantity,
            Decimal(price),
            "Manual charge",
            actor_id=ACTOR,
        )
    assert db.query(BillingItem).count() == 0


def test_posting_against_completed_consultation_is_locked(db, reference, make_encounter):
    encounter = make_encounter(status=AppointmentStatus.COMPLETED)

    with pytest.raises(ConsultationLockedError) as exc_info:
        billing_service.post_lab_test_charge(db, encounter.id, 1, "Complete Blood Count", actor_id=ACTOR)

    assert exc_info.value.message == "Cannot modify completed consultation"
    assert db.query(BillingItem).count() == 0


def test_cancel_recomputes_totals_from_items(db, reference, make_encounter):
    encounter = make_encounter()
    billing_service.post_consultation_charge(db, encounter.id, "PHY004", "OPD", actor_id=ACTOR)
    lab = billing_service.post_lab_test_charge(db, encounter.id, 1, "Liver Function Test", actor_id=ACTOR)

    cancelled = billing_service.cancel_billing_item(db, lab.id, actor_id=ACTOR)

    assert cancelled.status == BillingItemStatus.CANCELLED
    assert cancelled.cancelled_at is not None
    summary = billing_service.get_billing_summary(db, encounter.id)
    assert summary["total_amount"] == Decimal("500.00")
    assert summary["items_count"] == 1
    assert summary["total_amount"] == _active_net_sum(db, encounter.id)


def test_cancel_unknown_item_raises(db, reference):
    with pytest.raises(NotFoundError):
        billing_service.cancel_billing_item(db, 404, actor_id=ACTOR)


def test_payment_settles_account_and_marks_items_paid(db, reference, make_encounter):
    encounter = make_encounter()
    billing_service.post_consultation_charge(db, encounter.id, "PHY004", "OPD", actor_id=ACTOR)
    billing_service.post_lab_test_charge(db, encounter.id, 1, "Complete Blood Count", actor_id=ACTOR)

    account = billing_service.record_payment(db, encounter.id, Decimal("300.00"), actor_id=ACTOR)
    assert account.amount_paid == Decimal("300.00")
    assert account.balance == Decimal("550.00")
    assert all(i.status == BillingItemStatus.UNPAID for i in billing_service.list_billing_items(db, encounter.id))

    account = billing_service.record_payment(db, encounter.id, "550", actor_id=ACTOR)
    assert account.balance == Decimal("0.00")
    assert all(i.status == BillingItemStatus.PAID for i in billing_service.list_billing_items(db, encounter.id))


def test_paid_items_cannot_be_cancelled(db, reference, make_encounter):
    encounter = make_encounter()
    item = billing_service.post_consultation_charge(db, encounter.id, "PHY004", "OPD", actor_id=ACTOR)
    billing_service.record_payment(db, encounter.id, Decimal("500.00"), actor_id=ACTOR)

    with pytest.raises(ValidationError):
        billing_service.cancel_billing_item(db, item.id, actor_id=ACTOR)


def test_payment_requires_positive_amount_and_existing_account(db, reference, make_encounter):
    encounter = make_encounter()
    with pytest.raises(NotFoundError):
        billing_service.record_payment(db, encounter.id, Decimal("10.00"), actor_id=ACTOR)

    billing_service.post_consultation_charge(db, encounter.id, "PHY004", "OPD", actor_id=ACTOR)
    with pytest.raises(ValidationError):
        billing_service.record_payment(db, encounter.id, Decimal("0"), actor_id=ACTOR)


def test_discount_rederives_net_and_balance(db, reference, make_encounter):
    encounter = make_encounter()
    billing_service.post_consultation_charge(db, encounter.id, "PHY004", "OPD", actor_id=ACTOR)

    account = billing_service.apply_account_discount(db, encounter.id, Decimal("50.00"), actor_id=ACTOR)
    assert account.total_amount == Decimal("500.00")
    assert account.discount_amount == Decimal("50.00")
    assert account.net_amount == Decimal("450.00")
    assert account.balance == Decimal("450.00")

    # Totals stay derived when more items arrive.
    billing_service.post_lab_test_charge(db, encounter.id, 1, "Fasting Blood Sugar", actor_id=ACTOR)
    assert account.net_amount == Decimal("570.00")

    with pytest.raises(ValidationError):
        billing_service.apply_account_discount(db, encounter.id, Decimal("1000.00"), actor_id=ACTOR)
    with pytest.raises(ValidationError):
        billing_service.apply_account_discount(db, encounter.id, Decimal("-1"), actor_id=ACTOR)


def test_cancellation_below_discount_caps_the_discount(db, reference, make_encounter, caplog):
    encounter = make_encounter()
    consultation = billing_service.post_consultation_charge(db, encounter.id, "PHY004", "OPD", actor_id=ACTOR)
    billing_service.post_lab_test_charge(db, encounter.id, 1, "Complete Blood Count", actor_id=ACTOR)
    billing_service.apply_account_discount(db, encounter.id, Decimal("600.00"), actor_id=ACTOR)

    with caplog.at_level(logging.WARNING, logger="hms_ledger.services.billing_service"):
        billing_service.cancel_billing_item(db, consultation.id, actor_id=ACTOR)

    summary = billing_service.get_billing_summary(db, encounter.id)
    assert summary["total_amount"] == Decimal("350.00")
    assert summary["discount_amount"] == Decimal("350.00")
    assert summary["net_amount"] == Decimal("0.00")
    assert summary["balance"] == Decimal("0.00")
    assert any("capped" in r.getMessage() for r in caplog.records)


def test_summary_without_account_is_all_zero(db, reference, make_encounter):
    encounter = make_encounter()
    summary = billing_service.get_billing_summary(db, encounter.id)

    assert summary["account_exists"] is False
    assert summary["account_no"] is None
    assert summary["total_amount"] == Decimal("0.00")
    assert summary["balance"] == Decimal("0.00")
    assert summary["items_count"] == 0
