# hms_ledger/services/billing_service.py
"""
Per-encounter billing ledger.

Every function runs inside the caller's transaction (see
core.database.unit_of_work) and only flushes. Account totals are always
recomputed from the billing_items rows, never incremented, so a cancelled
or concurrently edited item can't leave the header out of step.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hms_ledger.core.errors import (
    DuplicateChargeError,
    NotFoundError,
    ValidationError,
)
from hms_ledger.models.appointment import Appointment, AppointmentStatus
from hms_ledger.models.billing import (
    BillingAccount,
    BillingAccountStatus,
    BillingItem,
    BillingItemStatus,
    BillingItemType,
)
from hms_ledger.models.service_catalogue import ServiceCatalogueEntry, ServiceCategory
from hms_ledger.repositories.billing import BillingAccountRepository, BillingItemRepository
from hms_ledger.repositories.catalogue import ServiceCatalogueRepository
from hms_ledger.repositories.clinical import AppointmentRepository
from hms_ledger.services.catalogue_matching import select_consultation_service, select_service
from hms_ledger.utils.datetime_utils import utc_now
from hms_ledger.utils.id_generators import generate_account_number
from hms_ledger.utils.money import line_amounts, money2, to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _get_encounter(db: Session, encounter_id: int) -> Appointment:
    appointment = AppointmentRepository(db).get(encounter_id)
    if not appointment:
        raise NotFoundError("encounter", encounter_id)
    return appointment


def _ensure_not_completed(appointment: Appointment) -> None:
    # Local import: consultation_service imports this module.
    from hms_ledger.services.consultation_service import ensure_appointment_editable

    ensure_appointment_editable(appointment)


# ============================================================
# Accounts
# ============================================================
def get_or_create_account(db: Session, encounter_id: int, *, actor_id: int | None = None) -> BillingAccount:
    """
    Idempotent find-or-create of the encounter's billing account.

    The existing row is locked FOR UPDATE so concurrent postings against
    the same account serialize. Creation races are resolved by the unique
    constraint on encounter_id: the loser's insert fails inside its
    savepoint and it re-reads the winner's row.
    """
    accounts = BillingAccountRepository(db)

    account = accounts.get_by_encounter(encounter_id, for_update=True)
    if account:
        return account

    appointment = _get_encounter(db, encounter_id)

    try:
        with db.begin_nested():
            account = accounts.add(
                BillingAccount(
                    encounter_id=encounter_id,
                    patient_id=appointment.patient_id,
                    account_no=generate_account_number(encounter_id),
                    status=BillingAccountStatus.OPEN,
                    total_amount=ZERO,
                    discount_amount=ZERO,
                    net_amount=ZERO,
                    amount_paid=ZERO,
                    balance=ZERO,
                    created_by=actor_id,
                )
            )
    except IntegrityError:
        logger.info("Billing account for encounter=%s created concurrently; re-reading", encounter_id)
        account = accounts.get_by_encounter(encounter_id, for_update=True)
        if not account:
            raise
        return account

    logger.info("Billing account %s opened for encounter=%s", account.account_no, encounter_id)
    return account


def recompute_account_totals(db: Session, account: BillingAccount) -> BillingAccount:
    """
    total   = sum(net_amount) over non-cancelled items
    net     = total - min(discount, total)
    balance = net - paid
    """
    total = money2(BillingItemRepository(db).active_net_total(account.encounter_id))
    discount = money2(account.discount_amount or 0)
    if discount > total:
        # A cancellation shrank the total below the discount.
        logger.warning(
            "Discount on account %s capped from %s to %s after total dropped",
            account.account_no,
            discount,
            total,
        )
        discount = total
        account.discount_amount = discount

    account.total_amount = total
    account.net_amount = money2(total - discount)
    account.balance = money2(account.net_amount - money2(account.amount_paid or 0))
    db.flush()
    return account


# ============================================================
# Posting
# ============================================================
def post_charge(
    db: Session,
    encounter_id: int,
    item_type: BillingItemType,
    service: ServiceCatalogueEntry | None,
    quantity: int,
    unit_price: Any,
    description: str,
    *,
    reference_type: str | None = None,
    reference_id: Any = None,
    actor_id: int | None = None,
) -> BillingItem:
    """
    Insert one billing line and recompute the account header.
    """
    if quantity is None or int(quantity) <= 0:
        raise ValidationError("Quantity must be greater than zero.", field="quantity", value=quantity)
    price = to_decimal(unit_price)
    if price < 0:
        raise ValidationError("Unit price cannot be negative.", field="unit_price", value=str(price))

    appointment = _get_encounter(db, encounter_id)
    _ensure_not_completed(appointment)

    account = get_or_create_account(db, encounter_id, actor_id=actor_id)

    amount, net_amount = line_amounts(quantity, price)
    item = BillingItemRepository(db).add(
        BillingItem(
            encounter_id=encounter_id,
            account_id=account.id,
            item_type=item_type,
            service_id=service.id if service else None,
            service_code=service.code if service else None,
            reference_type=reference_type,
            reference_id=str(reference_id) if reference_id is not None else None,
            description=description,
            quantity=int(quantity),
            unit_price=money2(price),
            amount=amount,
            discount_amount=ZERO,
            net_amount=net_amount,
            status=BillingItemStatus.UNPAID,
            posted_by=actor_id,
            posted_at=utc_now(),
        )
    )

    recompute_account_totals(db, account)

    logger.info(
        "Posted %s charge item=%s encounter=%s amount=%s account_total=%s",
        item_type.value,
        item.id,
        encounter_id,
        net_amount,
        account.total_amount,
    )
    return item


def _catalogue(db: Session, category: ServiceCategory | None = None) -> list[ServiceCatalogueEntry]:
    return ServiceCatalogueRepository(db).list_billable(category)


def find_service(db: Session, category: ServiceCategory, keyword: str) -> ServiceCatalogueEntry:
    return select_service(_catalogue(db, category), category, keyword, strict=True)


def find_consultation_service(db: Session, consultation_type: Any) -> ServiceCatalogueEntry:
    return select_consultation_service(_catalogue(db), consultation_type)


def find_active_consultation_item(db: Session, encounter_id: int) -> BillingItem | None:
    return BillingItemRepository(db).find_active(encounter_id, BillingItemType.CONSULTATION)


def post_consultation_charge(
    db: Session,
    encounter_id: int,
    physician_id: str | None,
    consultation_type: Any = "OPD",
    *,
    actor_id: int | None = None,
) -> BillingItem:
    existing = find_active_consultation_item(db, encounter_id)
    if existing:
        raise DuplicateChargeError(encounter_id, BillingItemType.CONSULTATION.value, existing.id)

    service = find_consultation_service(db, consultation_type)
    type_label = consultation_type.value if hasattr(consultation_type, "value") else str(consultation_type)

    try:
        with db.begin_nested():
            return post_charge(
                db,
                encounter_id,
                BillingItemType.CONSULTATION,
                service,
                1,
                service.unit_price,
                f"{type_label} Consultation ({service.name})",
                reference_type="physician",
                reference_id=physician_id,
                actor_id=actor_id,
            )
    except IntegrityError:
        # Lost the race against a concurrent completion; the partial unique index held.
        existing = find_active_consultation_item(db, encounter_id)
        raise DuplicateChargeError(
            encounter_id, BillingItemType.CONSULTATION.value, existing.id if existing else None
        ) from None


def post_lab_test_charge(
    db: Session,
    encounter_id: int,
    test_id: Any,
    test_name: str,
    *,
    lab_order_id: int | None = None,
    actor_id: int | None = None,
) -> BillingItem:
    service = find_service(db, ServiceCategory.LAB_TEST, test_name)
    return post_charge(
        db,
        encounter_id,
        BillingItemType.LAB_TEST,
        service,
        1,
        service.unit_price,
        service.name,
        reference_type="lab_order" if lab_order_id is not None else "lab_test",
        reference_id=lab_order_id if lab_order_id is not None else test_id,
        actor_id=actor_id,
    )


def post_procedure_charge(
    db: Session,
    encounter_id: int,
    procedure_id: Any,
    procedure_name: str,
    *,
    actor_id: int | None = None,
) -> BillingItem:
    service = find_service(db, ServiceCategory.PROCEDURE, procedure_name)
    return post_charge(
        db,
        encounter_id,
        BillingItemType.PROCEDURE,
        service,
        1,
        service.unit_price,
        service.name,
        reference_type="procedure",
        reference_id=procedure_id,
        actor_id=actor_id,
    )


def post_medication_charge(
    db: Session,
    encounter_id: int,
    drug_id: Any,
    drug_name: str,
    quantity: int = 1,
    *,
    prescription_id: int | None = None,
    actor_id: int | None = None,
) -> BillingItem:
    service = find_service(db, ServiceCategory.MEDICATION, drug_name)
    return post_charge(
        db,
        encounter_id,
        BillingItemType.PHARMACY,
        service,
        quantity,
        service.unit_price,
        service.name,
        reference_type="prescription" if prescription_id is not None else "medication",
        reference_id=prescription_id if prescription_id is not None else drug_id,
        actor_id=actor_id,
    )


def post_bed_charge(
    db: Session,
    encounter_id: int,
    bed_id: Any,
    days: int = 1,
    bed_type: str = "general",
    *,
    actor_id: int | None = None,
) -> BillingItem:
    service = find_service(db, ServiceCategory.BED_CHARGE, bed_type)
    return post_charge(
        db,
        encounter_id,
        BillingItemType.BED_CHARGE,
        service,
        days,
        service.unit_price,
        f"{service.name} ({days} day(s))",
        reference_type="bed_assignment",
        reference_id=bed_id,
        actor_id=actor_id,
    )


# ============================================================
# Status / payment updates
# ============================================================
def cancel_billing_item(db: Session, item_id: int, *, actor_id: int | None = None) -> BillingItem:
    items = BillingItemRepository(db)
    item = items.get(item_id)
    if not item:
        raise NotFoundError("billing_item", item_id)

    account = get_or_create_account(db, item.encounter_id, actor_id=actor_id)
    item = items.get(item_id, for_update=True)

    if item.status == BillingItemStatus.CANCELLED:
        return item
    if item.status == BillingItemStatus.PAID:
        raise ValidationError("Paid billing items cannot be cancelled.", entity="billing_item", id=item_id)

    item.status = BillingItemStatus.CANCELLED
    item.cancelled_at = utc_now()
    recompute_account_totals(db, account)

    logger.info("Cancelled billing item=%s encounter=%s by actor=%s", item_id, item.encounter_id, actor_id)
    return item


def record_payment(db: Session, encounter_id: int, amount: Any, *, actor_id: int | None = None) -> BillingAccount:
    paid = money2(amount)
    if paid <= 0:
        raise ValidationError("Payment amount must be greater than zero.", field="amount", value=str(paid))

    account = BillingAccountRepository(db).get_by_encounter(encounter_id, for_update=True)
    if not account:
        raise NotFoundError("billing_account", encounter_id, message="Billing account not found for encounter")

    account.amount_paid = money2((account.amount_paid or 0) + paid)
    recompute_account_totals(db, account)

    if account.balance <= 0:
        settled = BillingItemRepository(db).mark_unpaid_as_paid(encounter_id)
        logger.info("Account %s settled; %s item(s) marked paid", account.account_no, settled)

    logger.info(
        "Payment of %s recorded on account %s by actor=%s; balance=%s",
        paid,
        account.account_no,
        actor_id,
        account.balance,
    )
    return account


def apply_account_discount(
    db: Session,
    encounter_id: int,
    amount: Any,
    *,
    actor_id: int | None = None,
) -> BillingAccount:
    discount = money2(amount)
    account = BillingAccountRepository(db).get_by_encounter(encounter_id, for_update=True)
    if not account:
        raise NotFoundError("billing_account", encounter_id, message="Billing account not found for encounter")

    recompute_account_totals(db, account)
    if discount < 0 or discount > account.total_amount:
        raise ValidationError(
            "Discount must be between 0 and the account total.",
            field="amount",
            value=str(discount),
            total_amount=str(account.total_amount),
        )

    account.discount_amount = discount
    recompute_account_totals(db, account)
    logger.info("Discount %s applied to account %s by actor=%s", discount, account.account_no, actor_id)
    return account


# ============================================================
# Read side
# ============================================================
def list_billing_items(db: Session, encounter_id: int) -> list[BillingItem]:
    return BillingItemRepository(db).list_for_encounter(encounter_id)


def get_billing_summary(db: Session, encounter_id: int) -> dict:
    account = BillingAccountRepository(db).get_by_encounter(encounter_id)

    if not account:
        return {
            "account_exists": False,
            "account_no": None,
            "status": None,
            "total_amount": ZERO,
            "discount_amount": ZERO,
            "net_amount": ZERO,
            "amount_paid": ZERO,
            "balance": ZERO,
            "items_count": 0,
        }

    return {
        "account_exists": True,
        "account_no": account.account_no,
        "status": account.status.value,
        "total_amount": money2(account.total_amount),
        "discount_amount": money2(account.discount_amount),
        "net_amount": money2(account.net_amount),
        "amount_paid": money2(account.amount_paid),
        "balance": money2(account.balance),
        "items_count": BillingItemRepository(db).count_active(encounter_id),
    }
