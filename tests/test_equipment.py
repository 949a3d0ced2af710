"""Record-level rules for equipment rows."""

import pytest

from equiptrack.core.errors import (
    AlreadyExistsError,
    IneligibleStateError,
    LinkedEquipmentError,
    NotFoundError,
    ValidationError,
)
from equiptrack.crud.equipment import (
    delete_equipment,
    get_equipment,
    list_equipment,
    require_equipment,
    update_equipment,
)
from equiptrack.crud.history import list_history
from equiptrack.services.substitution import swap


def test_create_defaults_to_available_at_home(make_item):
    item = make_item(" eg1616 ", system_color="Blue")

    assert item.id == "EG1616"
    assert item.status == "available"
    assert item.location == "Shop"
    assert item.original_system_color == "Blue"
    assert item.effective_system_color == "Blue"
    assert item.due_status == "none"
    assert item.version == 1
    assert item.created_at.endswith("Z")


def test_create_writes_history(db_session, make_item):
    make_item("EG1", name="0-100psi Transducer")

    history = list_history(db_session, "eg1")
    assert [h.action for h in history] == ["create"]
    assert "0-100psi Transducer" in history[0].details


def test_create_rejects_duplicate_and_missing_fields(make_item):
    make_item("EG1")
    with pytest.raises(AlreadyExistsError):
        make_item("eg1")
    with pytest.raises(ValidationError):
        make_item("EG2", category="  ")
    with pytest.raises(ValidationError):
        make_item("   ")


def test_create_rejects_managed_fields(make_item):
    with pytest.raises(ValidationError) as exc:
        make_item("EG1", replacement_id="EG2")
    assert exc.value.details == {"fields": ["replacement_id"]}


def test_checked_out_create_requires_whole_triple(make_item):
    with pytest.raises(ValidationError):
        make_item("EG1", status="checked_out", work_order="WO-1")

    item = make_item("EG2", status="checked_out", work_order="WO-1", checked_out_by="Ana")
    assert item.checked_out_at is not None


def test_leaving_checkout_clears_triple(db_session, make_item):
    make_item("EG1", status="checked_out", work_order="WO-1", checked_out_by="Ana")

    item = update_equipment(db_session, "EG1", {"status": "available"})

    assert (item.work_order, item.checked_out_by, item.checked_out_at) == (None, None, None)


def test_stray_triple_fields_are_dropped_when_not_checked_out(db_session, make_item):
    make_item("EG1")

    item = update_equipment(db_session, "EG1", {"work_order": "WO-9"})

    assert item.work_order is None


def test_update_unknown_raises_not_found(db_session):
    with pytest.raises(NotFoundError):
        update_equipment(db_session, "NOPE", {"name": "x"})
    assert get_equipment(db_session, "NOPE") is None
    with pytest.raises(NotFoundError):
        require_equipment(db_session, "NOPE")


def test_update_records_changed_fields_only(db_session, make_item):
    make_item("EG1", notes="old")

    update_equipment(db_session, "EG1", {"notes": "old"})
    item = update_equipment(db_session, "EG1", {"notes": "new", "location": "truck 4", "bogus": 1})

    assert item.location == "truck 4"
    actions = [(h.action, h.details) for h in list_history(db_session, "EG1")]
    assert actions == [("create", actions[0][1]), ("update", "Updated location, notes")]


def test_update_normalizes_reserved_locations(db_session, make_item):
    make_item("EG1")

    item = update_equipment(db_session, "EG1", {"location": "  sent  for repair "})

    assert item.location == "Sent for Repair"


def test_id_is_immutable(db_session, make_item):
    make_item("EG1")
    with pytest.raises(ValidationError):
        update_equipment(db_session, "EG1", {"id": "EG2"})
    # Same id in a different spelling is not a rename.
    item = update_equipment(db_session, "EG1", {"id": "eg1", "notes": "ok"})
    assert item.notes == "ok"


def test_system_color_frozen_while_broken(db_session, make_item):
    make_item("EG1", system_color="Blue", status="broken")
    with pytest.raises(IneligibleStateError):
        update_equipment(db_session, "EG1", {"system_color": "Red"})


def test_system_color_change_moves_original(db_session, make_item):
    make_item("EG1", system_color="Blue")

    item = update_equipment(db_session, "EG1", {"system_color": "Red"})

    assert item.original_system_color == "Red"


def test_list_filters(db_session, make_item):
    make_item("EG1", system_color="Blue")
    make_item("EG2", system_color="Red")
    make_item("EG3", category="DAQ", system_color="Blue")

    assert [i.id for i in list_equipment(db_session, system_color="Blue")] == ["EG1", "EG3"]
    assert [i.id for i in list_equipment(db_session, category="DAQ")] == ["EG3"]
    assert [i.id for i in list_equipment(db_session, location="shop")] == ["EG1", "EG2", "EG3"]


def test_delete_keeps_history(db_session, make_item):
    make_item("EG1")

    delete_equipment(db_session, "EG1")

    assert get_equipment(db_session, "EG1") is None
    assert [h.action for h in list_history(db_session, "EG1")] == ["create", "delete"]
    with pytest.raises(NotFoundError):
        delete_equipment(db_session, "EG1")


def test_delete_refuses_linked_items(db_session, make_item):
    make_item("EQ-1", system_color="Blue", status="broken")
    make_item("EQ-2")
    swap(db_session, "EQ-1", "EQ-2", "broken")

    with pytest.raises(LinkedEquipmentError):
        delete_equipment(db_session, "EQ-1")
    with pytest.raises(LinkedEquipmentError):
        delete_equipment(db_session, "EQ-2")
    with pytest.raises(LinkedEquipmentError):
        update_equipment(db_session, "EQ-2", {"category": "DAQ"})


def test_update_keeps_swap_partners_frozen(db_session, make_item):
    make_item("EQ-1", system_color="Blue", status="broken")
    make_item("EQ-2")
    swap(db_session, "EQ-1", "EQ-2", "broken")

    with pytest.raises(LinkedEquipmentError) as excinfo:
        update_equipment(db_session, "EQ-1", {"status": "available"})
    assert excinfo.value.details["fields"] == ["status"]
    with pytest.raises(LinkedEquipmentError):
        update_equipment(db_session, "EQ-1", {"system_color": "Green"})
    with pytest.raises(LinkedEquipmentError):
        update_equipment(db_session, "EQ-2", {"status": "broken"})

    broken = require_equipment(db_session, "EQ-1")
    assert (broken.status, broken.system_color, broken.replacement_id) == ("broken", "Blue", "EQ-2")
    assert require_equipment(db_session, "EQ-2").status == "available"

    # Unchanged values and other fields still go through.
    update_equipment(db_session, "EQ-1", {"status": "broken", "notes": "waiting on seal kit"})
    assert require_equipment(db_session, "EQ-1").notes == "waiting on seal kit"


def test_update_rejects_repair_location_for_substitute(db_session, make_item):
    make_item("EQ-1", system_color="Blue", status="broken")
    make_item("EQ-2")
    swap(db_session, "EQ-1", "EQ-2", "broken")
    before = len(list_history(db_session, "EQ-2"))

    with pytest.raises(IneligibleStateError):
        update_equipment(db_session, "EQ-2", {"location": "Sent for Repair"})

    spare = require_equipment(db_session, "EQ-2")
    assert spare.location == "Shop"
    assert spare.temporary_system_color == "Blue"
    assert spare.swapped_from_id == "EQ-1"
    assert len(list_history(db_session, "EQ-2")) == before
    assert all(entry.action != "update" for entry in list_history(db_session, "EQ-2"))


def test_update_rejects_non_text_values(db_session, make_item):
    make_item("EQ-1")

    with pytest.raises(ValidationError):
        update_equipment(db_session, "EQ-1", {"name": {"bad": 1}})
    with pytest.raises(ValidationError):
        update_equipment(db_session, "EQ-1", {"notes": 42})

    assert require_equipment(db_session, "EQ-1").name == "Transducer EQ-1"
