import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))
from boxall.database import SqlRecordStore
from boxall.record_store import JsonFileStore, RecordStore, sanitize_filename


@pytest.fixture(params=["json", "sql"])
def store(request, tmp_path):
    if request.param == "json":
        return JsonFileStore(str(tmp_path / "data"))
    return SqlRecordStore(f"sqlite:///{tmp_path / 'records.db'}")


def test_store_satisfies_protocol(store):
    assert isinstance(store, RecordStore)


def test_save_load_and_delete(store):
    assert store.load("boxes.json") is None
    assert store.save("boxes.json", '{"boxes": []}')
    assert store.load("boxes.json") == '{"boxes": []}'
    assert store.exists("boxes.json")
    assert store.save("boxes.json", "{}")
    assert store.load("boxes.json") == "{}"
    assert store.delete("boxes.json")
    assert not store.exists("boxes.json")
    assert not store.delete("boxes.json")


def test_rename_refuses_to_overwrite(store):
    store.save("boxes/box_a000_a.json", "a")
    store.save("boxes/box_a001_b.json", "b")
    assert not store.rename("boxes/box_a000_a.json", "boxes/box_a001_b.json")
    assert store.load("boxes/box_a001_b.json") == "b"
    assert store.rename("boxes/box_a000_a.json", "boxes/box_a000_c.json")
    assert store.load("boxes/box_a000_c.json") == "a"
    assert not store.exists("boxes/box_a000_a.json")
    assert not store.rename("boxes/missing.json", "boxes/other.json")


def test_keys_with_prefix(store):
    store.save("boxes.json", "{}")
    store.save("boxes/box_a000_a.json", "{}")
    store.save("boxes/box_1000_b.json", "{}")
    assert store.keys("boxes/") == ["boxes/box_1000_b.json", "boxes/box_a000_a.json"]
    assert "boxes.json" in store.keys()


def test_json_store_writes_files(tmp_path):
    store = JsonFileStore(str(tmp_path))
    store.save("boxes/box_a000_main.json", "{}")
    assert (tmp_path / "boxes" / "box_a000_main.json").read_text() == "{}"
    assert not list((tmp_path / "boxes").glob("*.tmp"))


def test_json_store_rejects_escaping_keys(tmp_path):
    store = JsonFileStore(str(tmp_path / "data"))
    with pytest.raises(ValueError):
        store.save("../outside.json", "{}")


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Main Box", "main_box"),
        ('SMD: 0603 / "R"', "smd_0603_r_"),
        ("a  b", "a_b"),
        ("x" * 80, "x" * 50),
    ],
)
def test_sanitize_filename(name, expected):
    assert sanitize_filename(name) == expected
