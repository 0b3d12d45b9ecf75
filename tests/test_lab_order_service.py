# tests/test_lab_order_service.py
from datetime import timedelta
from types import SimpleNamespace

import pytest

from hms_ledger.core.errors import ConsultationLockedError, NotFoundError, ValidationError
from hms_ledger.models import AppointmentStatus, LabOrderPriority, LabOrderStatus
from hms_ledger.schemas.lab_order import LabOrderCreate
from hms_ledger.services import lab_order_service
from hms_ledger.utils.datetime_utils import utc_now

ACTOR = 7


@pytest.mark.parametrize(
    "test_hours, priority, expected",
    [
        (None, LabOrderPriority.URGENT, 2),
        (None, LabOrderPriority.FAST, 6),
        (None, LabOrderPriority.NORMAL, 24),
        (4, LabOrderPriority.URGENT, 2),
        (1, LabOrderPriority.URGENT, 1),
        (24, LabOrderPriority.FAST, 6),
        (4, LabOrderPriority.FAST, 4),
        (48, LabOrderPriority.NORMAL, 48),
    ],
)
def test_expected_turnaround_hours(test_hours, priority, expected):
    test = SimpleNamespace(turnaround_time=test_hours) if test_hours is not None else None
    assert lab_order_service.get_expected_turnaround_hours(test, priority) == expected


@pytest.mark.parametrize("value", [None, "", "   ", "stat", "asap"])
def test_parse_priority_rejects_missing_or_unknown(value):
    with pytest.raises(ValidationError) as exc_info:
        lab_order_service.parse_priority(value)
    assert exc_info.value.context["field"] == "priority"


def test_parse_priority_is_case_insensitive():
    assert lab_order_service.parse_priority(" URGENT ") == LabOrderPriority.URGENT
    assert lab_order_service.parse_priority(LabOrderPriority.FAST) == LabOrderPriority.FAST


def test_create_lab_order_takes_name_from_catalogue(db, reference, make_encounter):
    encounter = make_encounter()
    cbc = reference["tests"]["CBC"]
    before = utc_now()

    order = lab_order_service.create_lab_order(
        db,
        LabOrderCreate(encounter_id=encounter.id, test_id=cbc.id, priority="normal"),
        actor_id=ACTOR,
    )

    assert order.test_name == "Complete Blood Count"
    assert order.status == LabOrderStatus.PENDING
    assert order.priority == LabOrderPriority.NORMAL
    assert order.ordered_by == ACTOR
    expected = before + timedelta(hours=4)
    assert abs((order.expected_completion_at - expected).total_seconds()) < 60


def test_create_lab_order_requires_test_and_priority(db, make_encounter):
    encounter = make_encounter()

    with pytest.raises(ValidationError):
        lab_order_service.create_lab_order(db, LabOrderCreate(encounter_id=encounter.id, priority="normal"))
    with pytest.raises(ValidationError):
        lab_order_service.create_lab_order(db, LabOrderCreate(encounter_id=encounter.id, test_name="CBC"))


def test_create_lab_order_unknown_test_or_encounter(db, reference, make_encounter):
    encounter = make_encounter()

    with pytest.raises(NotFoundError):
        lab_order_service.create_lab_order(
            db, LabOrderCreate(encounter_id=encounter.id, test_id=999, priority="fast")
        )
    with pytest.raises(NotFoundError):
        lab_order_service.create_lab_order(
            db, LabOrderCreate(encounter_id=999, test_name="Lipid Profile", priority="fast")
        )


def test_priority_update_recomputes_expected_completion(db, reference, make_encounter):
    encounter = make_encounter()
    lft = reference["tests"]["LFT"]
    order = lab_order_service.create_lab_order(
        db, LabOrderCreate(encounter_id=encounter.id, test_id=lft.id, priority="normal"), actor_id=ACTOR
    )
    normal_eta = order.expected_completion_at

    order = lab_order_service.update_lab_order_priority(db, order.id, "urgent", actor_id=ACTOR)

    assert order.priority == LabOrderPriority.URGENT
    assert order.expected_completion_at < normal_eta
    assert abs((order.expected_completion_at - (utc_now() + timedelta(hours=2))).total_seconds()) < 60


def test_submit_moves_pending_to_in_progress_once(db, make_encounter):
    encounter = make_encounter()
    order = lab_order_service.create_lab_order(
        db, LabOrderCreate(encounter_id=encounter.id, test_name="Urine Routine", priority="urgent"), actor_id=ACTOR
    )

    order = lab_order_service.submit_lab_order(db, order.id, actor_id=ACTOR)
    assert order.status == LabOrderStatus.IN_PROGRESS
    assert order.submitted_at is not None

    with pytest.raises(ValidationError):
        lab_order_service.submit_lab_order(db, order.id, actor_id=ACTOR)
    with pytest.raises(ValidationError):
        lab_order_service.update_lab_order_priority(db, order.id, "normal", actor_id=ACTOR)


def test_lab_orders_locked_after_completion(db, make_encounter):
    encounter = make_encounter()
    order = lab_order_service.create_lab_order(
        db, LabOrderCreate(encounter_id=encounter.id, test_name="Urine Routine", priority="normal"), actor_id=ACTOR
    )
    encounter.status = AppointmentStatus.COMPLETED
    db.flush()

    with pytest.raises(ConsultationLockedError):
        lab_order_service.create_lab_order(
            db, LabOrderCreate(encounter_id=encounter.id, test_name="Lipid Profile", priority="normal")
        )
    with pytest.raises(ConsultationLockedError):
        lab_order_service.update_lab_order_priority(db, order.id, "urgent", actor_id=ACTOR)


def test_get_lab_order_not_found(db):
    with pytest.raises(NotFoundError):
        lab_order_service.get_lab_order(db, 1)
