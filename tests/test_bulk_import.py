import io
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))
from boxall.box_records import BoxRecordStore
from boxall.bulk_import import (
    BulkImportValidator,
    ImportExecutor,
    ImportRow,
    RowStatus,
    count_statuses,
    parse_import_rows,
)
from boxall.ledger import ImportLedger
from boxall.models import ItemRecord
from boxall.record_store import JsonFileStore
from boxall.registry import BoxRegistry

HEADER = "BoxName,Position,PartNumber,Description,Quantity,MinStock,UnitPrice,Category\n"


@pytest.fixture
def env(tmp_path):
    store = JsonFileStore(str(tmp_path))
    registry = BoxRegistry(store)
    records = BoxRecordStore(store, registry)
    ledger = ImportLedger(store)
    main = registry.create_box("Main", "BOXALL144AS")
    mixed = registry.create_box("Mixed", "BOXALL96")
    validator = BulkImportValidator(registry, records, ledger)
    executor = ImportExecutor(records, ledger)
    return registry, records, ledger, validator, executor, main, mixed


def rows_from(text):
    return parse_import_rows(io.StringIO(HEADER + text))


def test_row_parsing_defaults():
    row = rows_from("Main,a-01,R1,,abc,,,\n")[0]
    assert row.row_number == 1
    assert row.position == "A-01"
    assert row.quantity == 0
    assert row.min_stock == 10
    assert row.unit_price == 0.0
    assert row.category == "Other"


def test_unit_price_strips_currency():
    rows = parse_import_rows(io.StringIO('BoxName,Position,UnitPrice\nMain,A-01,"$1,234.50"\n'))
    assert rows[0].unit_price == pytest.approx(1234.5)


def test_snake_case_headers_are_accepted():
    rows = parse_import_rows(io.StringIO("box_name,position,part_number,quantity\nMain,B-02,C1,5\n"))
    assert (rows[0].box_name, rows[0].position, rows[0].part_number, rows[0].quantity) == (
        "Main",
        "B-02",
        "C1",
        5,
    )


def test_classification_covers_every_status(env):
    registry, records, ledger, validator, executor, main, mixed = env
    records.set_item(main.id, "A-02", ItemRecord(part_number="OLD"))
    first = rows_from("Main,A-05,R5,,1,,,\n")
    executor.execute(validator.validate(first))

    rows = validator.validate(
        rows_from(
            ",A-01,R1,,1,,,\n"
            "Main,,R1,,1,,,\n"
            "Nowhere,A-01,R1,,1,,,\n"
            "Main,M-01,R1,,1,,,\n"
            "Mixed,G-07,R1,,1,,,\n"
            "main,a-05,r5,,1,,,\n"
            "Main,A-02,NEW,,1,,,\n"
            "MAIN,A-03,R3,,1,,,\n"
        )
    )
    assert [r.status for r in rows] == [
        RowStatus.SKIP,
        RowStatus.SKIP,
        RowStatus.INVALID_BOX,
        RowStatus.INVALID_POSITION,
        RowStatus.INVALID_POSITION,
        RowStatus.ALREADY_IMPORTED,
        RowStatus.CONFLICT,
        RowStatus.READY,
    ]
    assert rows[6].existing_part_number == "OLD"
    assert rows[7].box_id == main.id
    assert count_statuses(rows) == {"ready": 1, "conflict": 1, "skip": 3, "error": 3}


def test_ledger_match_wins_over_conflict(env):
    registry, records, ledger, validator, executor, main, mixed = env
    executor.execute(validator.validate(rows_from("Main,A-01,R1,,1,,,\n")))
    # the compartment is occupied by R1, and R1 is in the ledger for it
    row = validator.validate(rows_from("Main,A-01,R1,,1,,,\n"))[0]
    assert row.status is RowStatus.ALREADY_IMPORTED


def test_empty_part_number_is_not_a_conflict(env):
    registry, records, ledger, validator, executor, main, mixed = env
    records.set_item(main.id, "A-01", ItemRecord(part_number=""))
    row = validator.validate(rows_from("Main,A-01,R1,,1,,,\n"))[0]
    assert row.status is RowStatus.READY


def test_execute_without_overwrite_skips_conflicts(env):
    registry, records, ledger, validator, executor, main, mixed = env
    records.set_item(main.id, "A-01", ItemRecord(part_number="OLD"))
    rows = validator.validate(rows_from("Main,A-01,NEW,,1,,,\nMain,A-02,R2,,4,,,\nX,A-01,R,,1,,,\n"))

    summary = executor.execute(rows, overwrite_conflicts=False, source_file="parts.csv")

    assert (summary.imported, summary.overwritten, summary.skipped, summary.failed) == (1, 0, 2, 0)
    assert rows[0].status is RowStatus.SKIPPED
    assert rows[1].status is RowStatus.IMPORTED
    assert records.get_item(main.id, "A-01").part_number == "OLD"
    assert records.get_item(main.id, "A-02").quantity == 4
    assert ledger.entry_at(main.id, "A-02").source_file == "parts.csv"
    assert ledger.entry_at(main.id, "A-01") is None


def test_execute_with_overwrite(env):
    registry, records, ledger, validator, executor, main, mixed = env
    records.set_item(main.id, "A-01", ItemRecord(part_number="OLD"))
    rows = validator.validate(rows_from("Main,A-01,NEW,,3,,,\n"))

    summary = executor.execute(rows, overwrite_conflicts=True)

    assert (summary.imported, summary.overwritten) == (1, 1)
    assert records.get_item(main.id, "A-01").part_number == "NEW"
    assert ledger.entry_at(main.id, "A-01").overwritten
    assert "1 overwritten" in summary.describe()


def test_reimport_is_idempotent(env):
    registry, records, ledger, validator, executor, main, mixed = env
    text = "Main,A-01,R1,,1,,,\nMixed,I-01,C1,,2,,,\n"
    first = executor.execute(validator.validate(rows_from(text)))
    assert first.imported == 2
    before = records.load_box(main.id).model_dump(exclude={"last_modified"})

    rows = validator.validate(rows_from(text))
    assert {r.status for r in rows} == {RowStatus.ALREADY_IMPORTED}
    second = executor.execute(rows, overwrite_conflicts=True)

    assert second.imported == 0
    assert second.skipped == 2
    assert len(ledger.entries) == 2
    assert records.load_box(main.id).model_dump(exclude={"last_modified"}) == before


def test_failed_write_is_reported(env, monkeypatch):
    registry, records, ledger, validator, executor, main, mixed = env
    rows = validator.validate(rows_from("Main,A-01,R1,,1,,,\n"))
    monkeypatch.setattr(records, "set_item", lambda *a, **k: False)

    summary = executor.execute(rows)

    assert summary.failed == 1
    assert rows[0].status is RowStatus.FAILED
    assert ledger.entries == []


def test_item_fields_are_carried_over(env):
    registry, records, ledger, validator, executor, main, mixed = env
    rows = validator.validate(rows_from("Main,C-03,LM358,Dual op-amp,25,5,0.42,Op-Amp\n"))
    executor.execute(rows)
    item = records.get_item(main.id, "C-03")
    assert item.description == "Dual op-amp"
    assert (item.quantity, item.min_stock) == (25, 5)
    assert item.unit_price == pytest.approx(0.42)
    assert item.category == "Op-Amp"


def test_to_item_uses_default_category():
    item = ImportRow(row_number=1, part_number="X", category="").to_item()
    assert item.category == "Other"


def test_rows_targeting_same_compartment_conflict(env):
    registry, records, ledger, validator, executor, main, mixed = env
    rows = validator.validate(rows_from("Main,A-01,R1,,1,,,\nmain,a-01,R2,,1,,,\n"))
    assert [r.status for r in rows] == [RowStatus.READY, RowStatus.CONFLICT]
    assert rows[1].existing_part_number == "R1"

    summary = executor.execute(rows, overwrite_conflicts=False)

    assert (summary.imported, summary.overwritten, summary.skipped) == (1, 0, 1)
    assert records.get_item(main.id, "A-01").part_number == "R1"
    assert [(e.part_number, e.overwritten) for e in ledger.entries] == [("R1", False)]


def test_rows_targeting_same_compartment_with_overwrite(env):
    registry, records, ledger, validator, executor, main, mixed = env
    rows = validator.validate(rows_from("Main,A-01,R1,,1,,,\nMain,A-01,R2,,1,,,\n"))

    summary = executor.execute(rows, overwrite_conflicts=True)

    assert (summary.imported, summary.overwritten) == (2, 1)
    assert records.get_item(main.id, "A-01").part_number == "R2"
    assert [(e.part_number, e.overwritten) for e in ledger.entries] == [("R2", True)]
