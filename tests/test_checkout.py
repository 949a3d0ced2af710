"""Single and group checkout and check-in."""

import pytest

from equiptrack.core.errors import (
    ConflictError,
    IneligibleStateError,
    NoMatchError,
    NotAvailableError,
    ValidationError,
)
from equiptrack.crud.equipment import list_by_work_order, list_equipment, require_equipment
from equiptrack.crud.history import list_history, recent_history
from equiptrack.services import checkout as checkout_service
from equiptrack.services.checkout import (
    GROUP_RETURN_NOTE,
    checkin_by_work_order,
    checkin_single,
    checkout_group,
    checkout_single,
)
from equiptrack.services.substitution import swap


@pytest.fixture()
def blue_system(make_item):
    make_item("PC-1", category="Computer", system_color="Blue")
    make_item("EG1", category="Transducer", system_color="Blue")
    make_item("EG2", category="DAQ", system_color="Blue")


def test_checkout_single_and_checkin(db_session, make_item):
    make_item("EQ-001", category="Measurement", notes="Calibrated last month")

    item = checkout_single(db_session, "eq-001", "WO-7", "Ana")
    assert item.status == "checked_out"
    assert item.work_order == "WO-7"
    assert item.checked_out_by == "Ana"
    assert item.checked_out_at.endswith("Z")

    item = checkin_single(db_session, "EQ-001")
    assert item.status == "available"
    assert item.checkout_triple() == (None, None, None)
    assert item.notes == "Calibrated last month"
    actions = [h.action for h in list_history(db_session, "EQ-001")]
    assert actions == ["create", "check_out", "check_in"]


def test_second_checkout_conflicts(db_session, make_item):
    make_item("EQ-001")
    checkout_single(db_session, "EQ-001", "WO-7", "Ana")

    with pytest.raises(ConflictError):
        checkout_single(db_session, "EQ-001", "WO-8", "Bo")
    assert require_equipment(db_session, "EQ-001").work_order == "WO-7"


def test_checkout_requires_work_order_and_tech(db_session, make_item):
    make_item("EQ-001")
    with pytest.raises(ValidationError):
        checkout_single(db_session, "EQ-001", " ", "Ana")
    with pytest.raises(ValidationError):
        checkout_single(db_session, "EQ-001", "WO-1", "")


def test_checkout_rejects_broken_and_repair(db_session, make_item):
    make_item("EQ-003", status="broken")
    make_item("EQ-004", location="Sent for Repair")
    with pytest.raises(NotAvailableError):
        checkout_single(db_session, "EQ-003", "WO-1", "Ana")
    with pytest.raises(NotAvailableError):
        checkout_single(db_session, "EQ-004", "WO-1", "Ana")


def test_checkin_reports_broken_with_notes(db_session, make_item):
    make_item("EQ-001")
    checkout_single(db_session, "EQ-001", "WO-7", "Ana")

    item = checkin_single(db_session, "EQ-001", notes="display cracked", is_broken=True)

    assert item.status == "broken"
    assert item.notes == "display cracked"
    assert list_history(db_session, "EQ-001")[-1].action == "report_broken"
    with pytest.raises(IneligibleStateError):
        checkin_single(db_session, "EQ-001")


def test_checkin_idle_item_requires_broken_flag(db_session, make_item):
    make_item("EQ-001")
    with pytest.raises(IneligibleStateError):
        checkin_single(db_session, "EQ-001")

    assert checkin_single(db_session, "EQ-001", is_broken=True).status == "broken"


def test_group_checkout(db_session, blue_system):
    items = checkout_group(db_session, "Blue", ["PC-1", "EG1", "EG2"], "WO-100", "Ana")

    assert [i.id for i in items] == ["PC-1", "EG1", "EG2"]
    assert {i.status for i in items} == {"checked_out"}
    assert len({i.checked_out_at for i in items}) == 1
    assert all(i.temporary_system_color is None for i in items)
    assert [i.id for i in list_by_work_order(db_session, "WO-100")] == ["EG1", "EG2", "PC-1"]
    assert "Blue System" in list_history(db_session, "EG2")[-1].details


def test_group_checkout_borrows_spare(db_session, blue_system, make_item):
    make_item("EG9", category="Transducer")

    checkout_group(db_session, "Blue", ["PC-1", "EG9", "EG2"], "WO-100", "Ana")

    spare = require_equipment(db_session, "EG9")
    assert spare.temporary_system_color == "Blue"
    assert spare.system_color is None
    assert "borrowed from spares" in list_history(db_session, "EG9")[-1].details


def test_group_checkout_is_all_or_nothing(db_session, blue_system):
    checkout_single(db_session, "EG2", "WO-50", "Bo")
    before = len(recent_history(db_session, 500))

    with pytest.raises(ConflictError) as exc:
        checkout_group(db_session, "Blue", ["PC-1", "EG1", "EG2"], "WO-100", "Ana")

    assert exc.value.details["items"] == [{"id": "EG2", "reason": "checked_out"}]
    assert require_equipment(db_session, "PC-1").status == "available"
    assert require_equipment(db_session, "EG1").status == "available"
    assert list_by_work_order(db_session, "WO-100") == []
    assert len(recent_history(db_session, 500)) == before


def test_group_checkout_location_rules(db_session, blue_system, make_item):
    make_item("EG3", category="Pressure", system_color="Blue")
    make_item("EG8", category="Transducer", location="Bay 2")
    make_item("EG7", category="Imaging", location="Bay 2")

    # Imaging has no Blue member left behind, so the off-site item is refused.
    with pytest.raises(NotAvailableError):
        checkout_group(db_session, "Blue", ["PC-1", "EG2", "EG3", "EG7"], "WO-1", "Ana")

    # EG8 fills in for the Transducer the system left behind.
    items = checkout_group(db_session, "Blue", ["PC-1", "EG2", "EG3", "EG8"], "WO-1", "Ana")
    assert len(items) == 4


def test_group_checkout_requires_matching_computer(db_session, blue_system, make_item):
    make_item("PC-2", category="Computer", system_color="Red")
    with pytest.raises(ValidationError):
        checkout_group(db_session, "Blue", ["EG1", "EG2"], "WO-1", "Ana")
    with pytest.raises(IneligibleStateError):
        checkout_group(db_session, "Blue", ["PC-2", "EG1"], "WO-1", "Ana")
    with pytest.raises(ValidationError):
        checkout_group(db_session, "Blue", [], "WO-1", "Ana")


def test_checkin_by_work_order_reverses_substitute(db_session, make_item):
    make_item("EQ-1", system_color="Blue")
    make_item("EQ-2")
    checkout_single(db_session, "EQ-1", "WO-100", "Ana")
    swap(db_session, "EQ-1", "EQ-2", "checked_out", "seal failed")

    items = checkin_by_work_order(db_session, "WO-100", {"EQ-2": {"is_broken": False, "notes": ""}})

    assert [i.id for i in items] == ["EQ-2"]
    spare = require_equipment(db_session, "EQ-2")
    assert spare.status == "available"
    assert spare.temporary_system_color is None
    assert spare.swapped_from_id is None
    assert spare.notes == GROUP_RETURN_NOTE
    assert require_equipment(db_session, "EQ-1").replacement_id is None
    assert list_history(db_session, "EQ-2")[-1].action == "check_in"


def test_checkin_by_work_order_mixed_reports(db_session, blue_system):
    checkout_group(db_session, "Blue", ["PC-1", "EG1", "EG2"], "WO-100", "Ana")

    checkin_by_work_order(
        db_session,
        "WO-100",
        {"eg1": {"is_broken": True, "notes": "diaphragm torn"}, "EQ-404": {"is_broken": True}},
    )

    statuses = {i.id: (i.status, i.notes) for i in list_equipment(db_session)}
    assert statuses["EG1"] == ("broken", "diaphragm torn")
    assert statuses["EG2"] == ("available", GROUP_RETURN_NOTE)
    assert statuses["PC-1"][0] == "available"
    assert list_history(db_session, "EG1")[-1].action == "report_broken"
    assert all(i.checkout_triple() == (None, None, None) for i in list_equipment(db_session))


def test_checkin_by_unknown_work_order(db_session):
    with pytest.raises(NoMatchError):
        checkin_by_work_order(db_session, "WO-404", {})


def test_checkin_by_work_order_is_all_or_nothing(db_session, blue_system, monkeypatch):
    checkout_group(db_session, "Blue", ["PC-1", "EG1", "EG2"], "WO-100", "Ana")
    before = len(recent_history(db_session, limit=500))
    real_append = checkout_service.append_history
    calls = []

    def failing_append(db, **entry):
        calls.append(entry["equipment_id"])
        if len(calls) == 2:
            raise RuntimeError("history store unavailable")
        return real_append(db, **entry)

    monkeypatch.setattr(checkout_service, "append_history", failing_append)

    with pytest.raises(RuntimeError):
        checkin_by_work_order(db_session, "WO-100", {"EG1": {"is_broken": True, "notes": "cracked"}})

    items = list_by_work_order(db_session, "WO-100")
    assert sorted(i.id for i in items) == ["EG1", "EG2", "PC-1"]
    assert all(i.status == "checked_out" for i in items)
    assert require_equipment(db_session, "EG1").notes != "cracked"
    assert len(recent_history(db_session, limit=500)) == before
