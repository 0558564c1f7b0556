"""Bulk import of items from a spreadsheet.

Importing happens in two steps.  :class:`BulkImportValidator` turns raw CSV
rows into :class:`ImportRow` objects and classifies each one against the
registry, the box records and the import ledger.  The checks run in a fixed
order and stop at the first match:

``SKIP``
    box name or position is blank
``INVALID_BOX``
    no registered box has that name (ignoring case)
``INVALID_POSITION``
    the position does not exist in the box layout
``ALREADY_IMPORTED``
    the ledger already holds the same part for that compartment
``CONFLICT``
    the compartment holds another item
``READY``
    nothing stands in the way

:class:`ImportExecutor` then applies ``READY`` rows, and ``CONFLICT`` rows
only when the caller granted an overwrite for the whole session.  Every
applied row writes the item first and then records a ledger entry.  The two
writes are not atomic; a crash in between leaves an item without a ledger
entry, and re-importing it reports a conflict rather than duplicating it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import IO, Iterable, Mapping, Optional, Union

from .addressing import is_valid_position
from .box_records import BoxRecordStore
from .csv_utils import get_field, iter_rows, parse_decimal, parse_int
from .ledger import ImportLedger
from .models import BoxInfo, ItemRecord, LedgerEntry, utcnow
from .registry import BoxRegistry
from .storage_config import DEFAULT_CATEGORY, DEFAULT_MIN_STOCK

logger = logging.getLogger(__name__)


class RowStatus(str, Enum):
    READY = "ready"
    CONFLICT = "conflict"
    SKIP = "skip"
    ALREADY_IMPORTED = "already_imported"
    INVALID_BOX = "invalid_box"
    INVALID_POSITION = "invalid_position"
    # outcomes after an import run
    IMPORTED = "imported"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ImportRow:
    """One spreadsheet line during a single import session."""

    row_number: int
    box_name: str = ""
    position: str = ""
    part_number: str = ""
    description: str = ""
    manufacturer: str = ""
    category: str = DEFAULT_CATEGORY
    quantity: int = 0
    min_stock: int = DEFAULT_MIN_STOCK
    supplier: str = ""
    supplier_part_number: str = ""
    value: str = ""
    package: str = ""
    tolerance: str = ""
    voltage: str = ""
    unit_price: float = 0.0
    notes: str = ""
    datasheet_url: str = ""
    sales_order_number: str = ""
    status: Optional[RowStatus] = None
    box_id: Optional[str] = None
    box_type: Optional[str] = None
    existing_part_number: Optional[str] = None

    @classmethod
    def from_fields(cls, row_number: int, row: Mapping[str, str]) -> "ImportRow":
        return cls(
            row_number=row_number,
            box_name=get_field(row, "BoxName"),
            position=get_field(row, "Position").upper(),
            part_number=get_field(row, "PartNumber"),
            description=get_field(row, "Description"),
            manufacturer=get_field(row, "Manufacturer"),
            category=get_field(row, "Category", DEFAULT_CATEGORY),
            quantity=parse_int(get_field(row, "Quantity"), 0, minimum=0),
            min_stock=parse_int(get_field(row, "MinStock"), DEFAULT_MIN_STOCK, minimum=0),
            supplier=get_field(row, "Supplier"),
            supplier_part_number=get_field(row, "SupplierPartNumber"),
            value=get_field(row, "Value"),
            package=get_field(row, "Package"),
            tolerance=get_field(row, "Tolerance"),
            voltage=get_field(row, "Voltage"),
            unit_price=parse_decimal(get_field(row, "UnitPrice"), 0.0),
            notes=get_field(row, "Notes"),
            datasheet_url=get_field(row, "DatasheetUrl"),
            sales_order_number=get_field(row, "SalesOrderNumber"),
        )

    @property
    def label(self) -> str:
        if not self.position:
            return self.part_number
        return f"{self.part_number} -> {self.box_name}:{self.position}"

    def to_item(self) -> ItemRecord:
        return ItemRecord(
            part_number=self.part_number,
            description=self.description,
            manufacturer=self.manufacturer,
            category=self.category or DEFAULT_CATEGORY,
            quantity=self.quantity,
            min_stock=self.min_stock,
            supplier=self.supplier,
            supplier_part_number=self.supplier_part_number,
            value=self.value,
            package=self.package,
            tolerance=self.tolerance,
            voltage=self.voltage,
            unit_price=self.unit_price,
            notes=self.notes,
            datasheet_url=self.datasheet_url,
            sales_order_number=self.sales_order_number,
        )


def parse_import_rows(source: Union[str, IO[str]]) -> list[ImportRow]:
    """Read unclassified :class:`ImportRow` objects from a path or stream."""

    return [ImportRow.from_fields(number, row) for number, row in iter_rows(source)]


def count_statuses(rows: Iterable[ImportRow]) -> dict[str, int]:
    """Return preview counts: ready, conflict, skip and error rows."""

    counts = {"ready": 0, "conflict": 0, "skip": 0, "error": 0}
    for row in rows:
        if row.status is RowStatus.READY:
            counts["ready"] += 1
        elif row.status is RowStatus.CONFLICT:
            counts["conflict"] += 1
        elif row.status in (RowStatus.SKIP, RowStatus.ALREADY_IMPORTED):
            counts["skip"] += 1
        elif row.status in (RowStatus.INVALID_BOX, RowStatus.INVALID_POSITION):
            counts["error"] += 1
    return counts


class BulkImportValidator:
    """Classify import rows against the current inventory state."""

    def __init__(
        self, registry: BoxRegistry, records: BoxRecordStore, ledger: ImportLedger
    ) -> None:
        self.registry = registry
        self.records = records
        self.ledger = ledger

    def _box_lookup(self) -> dict[str, BoxInfo]:
        lookup: dict[str, BoxInfo] = {}
        for box in self.registry.get_all_boxes():
            key = box.name.casefold()
            if key in lookup:
                logger.warning("Duplicate box name %r, using %s", box.name, lookup[key].id)
                continue
            lookup[key] = box
        return lookup

    def classify(self, row: ImportRow, boxes: Optional[Mapping[str, BoxInfo]] = None) -> RowStatus:
        if boxes is None:
            boxes = self._box_lookup()

        if not row.box_name.strip() or not row.position.strip():
            row.status = RowStatus.SKIP
            return row.status

        box = boxes.get(row.box_name.strip().casefold())
        if box is None:
            row.status = RowStatus.INVALID_BOX
            return row.status
        row.box_id = box.id
        row.box_type = box.type

        if not is_valid_position(box.type, row.position):
            row.status = RowStatus.INVALID_POSITION
            return row.status

        if self.ledger.is_already_imported(row.part_number, row.position, box.id):
            row.status = RowStatus.ALREADY_IMPORTED
            return row.status

        existing = self.records.get_item(box.id, row.position)
        if existing is not None and existing.part_number:
            row.existing_part_number = existing.part_number
            row.status = RowStatus.CONFLICT
            return row.status

        row.status = RowStatus.READY
        return row.status

    def validate(self, rows: Iterable[ImportRow]) -> list[ImportRow]:
        """Classify ``rows`` in file order.

        A compartment already targeted by an earlier row of the same file
        counts as occupied by that row's part.
        """

        boxes = self._box_lookup()
        claimed: dict[tuple[str, str], str] = {}
        validated = []
        for row in rows:
            status = self.classify(row, boxes)
            if status in (RowStatus.READY, RowStatus.CONFLICT):
                key = (row.box_id, row.position)
                if key in claimed:
                    row.existing_part_number = claimed[key]
                    row.status = RowStatus.CONFLICT
                claimed[key] = row.part_number
            validated.append(row)
        logger.info("Validated %d rows: %s", len(validated), count_statuses(validated))
        return validated


@dataclass
class ImportSummary:
    imported: int = 0
    overwritten: int = 0
    skipped: int = 0
    failed: int = 0

    def describe(self) -> str:
        text = f"{self.imported} imported"
        if self.overwritten:
            text += f" ({self.overwritten} overwritten)"
        if self.skipped:
            text += f"\n{self.skipped} skipped"
        if self.failed:
            text += f"\n{self.failed} failed"
        return text


class ImportExecutor:
    """Apply classified rows to the box records and the import ledger."""

    def __init__(self, records: BoxRecordStore, ledger: ImportLedger) -> None:
        self.records = records
        self.ledger = ledger

    def execute(
        self,
        rows: Iterable[ImportRow],
        overwrite_conflicts: bool = False,
        source_file: str = "",
    ) -> ImportSummary:
        """Import ``rows``.

        ``overwrite_conflicts`` is the single overwrite decision for the
        session; without it every ``CONFLICT`` row becomes ``SKIPPED``.
        """

        rows = list(rows)
        summary = ImportSummary()

        for row in rows:
            if row.status is RowStatus.CONFLICT and not overwrite_conflicts:
                row.status = RowStatus.SKIPPED
                summary.skipped += 1

        for row in rows:
            if row.status not in (RowStatus.READY, RowStatus.CONFLICT):
                continue
            was_overwrite = row.status is RowStatus.CONFLICT
            if not self.records.set_item(row.box_id, row.position, row.to_item()):
                logger.warning("Failed to import row %d (%s)", row.row_number, row.label)
                row.status = RowStatus.FAILED
                summary.failed += 1
                continue

            entry = LedgerEntry(
                part_number=row.part_number,
                supplier_part_number=row.supplier_part_number,
                box_name=row.box_name,
                box_id=row.box_id,
                position=row.position,
                quantity=row.quantity,
                import_date=utcnow(),
                source_file=source_file,
                overwritten=was_overwrite,
            )
            if not self.ledger.record(entry):
                logger.warning("Row %d imported but not logged", row.row_number)

            row.status = RowStatus.IMPORTED
            summary.imported += 1
            if was_overwrite:
                summary.overwritten += 1

        summary.skipped += sum(
            1
            for row in rows
            if row.status
            in (
                RowStatus.SKIP,
                RowStatus.ALREADY_IMPORTED,
                RowStatus.INVALID_BOX,
                RowStatus.INVALID_POSITION,
            )
        )
        logger.info("Import finished: %s", summary.describe().replace("\n", ", "))
        return summary
