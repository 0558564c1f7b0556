import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))
from boxall.box_records import BoxRecordStore
from boxall.models import ItemRecord
from boxall.record_store import JsonFileStore
from boxall.registry import BoxRegistry


def make_records(tmp_path):
    store = JsonFileStore(str(tmp_path))
    registry = BoxRegistry(store)
    return registry, BoxRecordStore(store, registry)


def test_record_created_lazily_with_all_positions(tmp_path):
    registry, records = make_records(tmp_path)
    box = registry.create_box("Mixed", "BOXALL96AS")
    record = records.load_box(box.id)
    assert len(record.compartments) == 96
    assert record.compartments[0].position == "I-01"
    assert all(c.item is None for c in record.compartments)
    assert (tmp_path / "boxes" / box.filename).exists()


def test_unknown_box_has_no_record(tmp_path):
    _, records = make_records(tmp_path)
    assert records.load_box("box_ffff") is None
    assert records.get_item("box_ffff", "A-01") is None
    assert not records.set_item("box_ffff", "A-01", ItemRecord(part_number="X"))


def test_set_item_updates_registry_stats(tmp_path):
    registry, records = make_records(tmp_path)
    box = registry.create_box("Main")
    assert records.set_item(box.id, "A-01", ItemRecord(part_number="R1", quantity=5, min_stock=10))
    assert records.set_item(box.id, "A-02", ItemRecord(part_number="R2", quantity=50))
    info = registry.get_box(box.id)
    assert info.occupied_compartments == 2
    assert info.low_stock_count == 1

    data = json.loads((tmp_path / "boxes" / box.filename).read_text())
    assert data["box_id"] == box.id
    stored = [c for c in data["compartments"] if c["item"]]
    assert [c["position"] for c in stored] == ["A-01", "A-02"]


def test_set_item_rejects_invalid_position(tmp_path):
    registry, records = make_records(tmp_path)
    box = registry.create_box("Main")
    assert not records.set_item(box.id, "M-01", ItemRecord(part_number="R1"))


def test_move_item(tmp_path):
    registry, records = make_records(tmp_path)
    box = registry.create_box("Main")
    records.set_item(box.id, "A-01", ItemRecord(part_number="R1"))
    records.set_item(box.id, "B-01", ItemRecord(part_number="R2"))

    assert not records.move_item(box.id, "C-01", "A-01")
    assert records.move_item(box.id, "A-01", "B-01")
    assert records.get_item(box.id, "A-01") is None
    assert records.get_item(box.id, "B-01").part_number == "R1"
    assert registry.get_box(box.id).occupied_compartments == 1


def test_adjust_quantity_clamps_at_zero(tmp_path):
    registry, records = make_records(tmp_path)
    box = registry.create_box("Main")
    records.set_item(box.id, "A-01", ItemRecord(part_number="R1", quantity=3))
    assert records.adjust_quantity(box.id, "A-01", 4)
    assert records.get_item(box.id, "A-01").quantity == 7
    assert records.adjust_quantity(box.id, "A-01", -10)
    item = records.get_item(box.id, "A-01")
    assert item.quantity == 0
    assert item.is_out_of_stock
    assert not records.adjust_quantity(box.id, "A-02", 1)


def test_corrupt_record_loads_as_none(tmp_path):
    registry, records = make_records(tmp_path)
    box = registry.create_box("Main")
    (tmp_path / "boxes").mkdir(exist_ok=True)
    (tmp_path / "boxes" / box.filename).write_text("[broken")
    assert records.load_box(box.id) is None


def test_invalidate_rereads_store(tmp_path):
    registry, records = make_records(tmp_path)
    box = registry.create_box("Main")
    records.set_item(box.id, "A-01", ItemRecord(part_number="R1"))

    _, other = make_records(tmp_path)
    other.clear_item(box.id, "A-01")

    assert records.get_item(box.id, "A-01") is not None
    records.invalidate(box.id)
    assert records.get_item(box.id, "A-01") is None
