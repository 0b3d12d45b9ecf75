# hms_ledger/services/lab_order_service.py
from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from hms_ledger.core.config import get_settings
from hms_ledger.core.errors import NotFoundError, ValidationError
from hms_ledger.models.lab_order import LabOrder, LabOrderPriority, LabOrderStatus
from hms_ledger.models.test_catalogue import TestCatalogueEntry
from hms_ledger.repositories.catalogue import TestCatalogueRepository
from hms_ledger.repositories.clinical import AppointmentRepository, LabOrderRepository
from hms_ledger.schemas.lab_order import LabOrderCreate
from hms_ledger.utils.datetime_utils import hours_from_now, utc_now

logger = logging.getLogger(__name__)


def _ensure_editable(db: Session, encounter_id: int) -> None:
    # Local import: consultation_service submits lab orders through this module.
    from hms_ledger.services.consultation_service import ensure_consultation_editable

    ensure_consultation_editable(db, encounter_id)


def parse_priority(value: Any) -> LabOrderPriority:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("Priority is required.", entity="lab_order", field="priority")
    try:
        return LabOrderPriority(value.strip().lower() if isinstance(value, str) else value)
    except ValueError:
        allowed = ", ".join(p.value for p in LabOrderPriority)
        raise ValidationError(
            f"Invalid priority '{value}'. Must be one of: {allowed}.",
            entity="lab_order",
            field="priority",
            value=value,
        ) from None


def get_expected_turnaround_hours(test: TestCatalogueEntry | None, priority: LabOrderPriority) -> int:
    """
    Hours until a result is expected.

    Without a test turnaround the configured base hours apply. With one,
    urgent and fast cap it at their base hours and normal uses it as is.
    """
    base = get_settings().lab_turnaround_hours
    priority = LabOrderPriority(priority)
    base_hours = int(base.get(priority.value, base.get(LabOrderPriority.NORMAL.value, 24)))

    test_hours = getattr(test, "turnaround_time", None) if test is not None else None
    if not test_hours:
        return base_hours

    if priority in (LabOrderPriority.URGENT, LabOrderPriority.FAST):
        return min(int(test_hours), base_hours)
    return int(test_hours)


def _get_test(db: Session, test_id: int | None) -> TestCatalogueEntry | None:
    if test_id is None:
        return None
    test = TestCatalogueRepository(db).get(test_id)
    if not test:
        raise NotFoundError("test", test_id)
    return test


def get_lab_order(db: Session, lab_order_id: int) -> LabOrder:
    lab_order = LabOrderRepository(db).get(lab_order_id)
    if not lab_order:
        raise NotFoundError("lab_order", lab_order_id)
    return lab_order


def create_lab_order(db: Session, payload: LabOrderCreate, *, actor_id: int | None = None) -> LabOrder:
    priority = parse_priority(payload.priority)
    if payload.test_id is None and not (payload.test_name or "").strip():
        raise ValidationError("Either test_id or test_name is required.", entity="lab_order", field="test_id")

    appointment = AppointmentRepository(db).get(payload.encounter_id)
    if not appointment:
        raise NotFoundError("encounter", payload.encounter_id)
    _ensure_editable(db, appointment.id)

    test = _get_test(db, payload.test_id)
    test_name = (payload.test_name or "").strip() or test.name

    lab_order = LabOrderRepository(db).add(
        LabOrder(
            encounter_id=appointment.id,
            patient_id=appointment.patient_id,
            test_id=test.id if test else None,
            test_name=test_name,
            priority=priority,
            status=LabOrderStatus.PENDING,
            clinical_notes=payload.clinical_notes,
            ordered_by=actor_id,
            expected_completion_at=hours_from_now(get_expected_turnaround_hours(test, priority)),
        )
    )

    logger.info(
        "Lab order %s (%s, %s) created for encounter=%s",
        lab_order.id,
        test_name,
        priority.value,
        appointment.id,
    )
    return lab_order


def update_lab_order_priority(
    db: Session,
    lab_order_id: int,
    priority: Any,
    *,
    actor_id: int | None = None,
) -> LabOrder:
    new_priority = parse_priority(priority)

    lab_order = LabOrderRepository(db).get(lab_order_id, for_update=True)
    if not lab_order:
        raise NotFoundError("lab_order", lab_order_id)
    _ensure_editable(db, lab_order.encounter_id)
    if lab_order.status != LabOrderStatus.PENDING:
        raise ValidationError(
            "Priority can only be changed on pending lab orders.",
            entity="lab_order",
            id=lab_order_id,
            field="priority",
        )

    old = lab_order.priority
    lab_order.priority = new_priority
    lab_order.expected_completion_at = hours_from_now(
        get_expected_turnaround_hours(_get_test(db, lab_order.test_id), new_priority)
    )
    db.flush()

    logger.info(
        "Lab order %s priority %s -> %s by actor=%s",
        lab_order_id,
        old.value,
        new_priority.value,
        actor_id,
    )
    return lab_order


def submit_to_laboratory(db: Session, lab_order: LabOrder) -> LabOrder:
    """
    pending -> in_progress. Orders in any other state are returned unchanged.
    """
    if lab_order.status != LabOrderStatus.PENDING:
        return lab_order

    lab_order.status = LabOrderStatus.IN_PROGRESS
    lab_order.submitted_at = utc_now()
    if lab_order.expected_completion_at is None:
        test = TestCatalogueRepository(db).get(lab_order.test_id) if lab_order.test_id else None
        lab_order.expected_completion_at = hours_from_now(get_expected_turnaround_hours(test, lab_order.priority))
    db.flush()

    if lab_order.priority == LabOrderPriority.URGENT:
        logger.info(
            "URGENT lab order %s (%s) submitted for encounter=%s",
            lab_order.id,
            lab_order.test_name,
            lab_order.encounter_id,
        )
    return lab_order


def submit_lab_order(db: Session, lab_order_id: int, *, actor_id: int | None = None) -> LabOrder:
    lab_order = LabOrderRepository(db).get(lab_order_id, for_update=True)
    if not lab_order:
        raise NotFoundError("lab_order", lab_order_id)
    if lab_order.status != LabOrderStatus.PENDING:
        raise ValidationError(
            f"Only pending lab orders can be submitted (status: {lab_order.status.value}).",
            entity="lab_order",
            id=lab_order_id,
        )
    logger.info("Lab order %s submitted manually by actor=%s", lab_order_id, actor_id)
    return submit_to_laboratory(db, lab_order)
