"""Persisted documents and their building blocks.

Every document written to the record store is one of the schemas below,
serialised with ``model_dump_json`` and read back with
``model_validate_json``.
"""

import datetime as dt
from typing import List, Optional

from sqlmodel import Field, SQLModel

from .storage_config import (
    APP_VERSION,
    DEFAULT_BOX_COLOR,
    DEFAULT_CATEGORY,
    DEFAULT_MIN_STOCK,
    SCHEMA_VERSION,
)


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _same(a: str, b: str) -> bool:
    return (a or "").casefold() == (b or "").casefold()


class ItemRecord(SQLModel):
    """Inventory item held by one compartment."""

    part_number: str = ""
    description: str = ""
    manufacturer: str = ""
    category: str = DEFAULT_CATEGORY
    quantity: int = Field(default=0, ge=0)
    min_stock: int = Field(default=DEFAULT_MIN_STOCK, ge=0)
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
    last_updated: dt.datetime = Field(default_factory=utcnow)

    @property
    def is_out_of_stock(self) -> bool:
        return self.quantity == 0

    @property
    def is_low_stock(self) -> bool:
        return 0 < self.quantity <= self.min_stock


class Compartment(SQLModel):
    position: str
    item: Optional[ItemRecord] = None

    @property
    def is_occupied(self) -> bool:
        return self.item is not None

    @property
    def is_low_stock(self) -> bool:
        return self.item is not None and self.item.is_low_stock

    @property
    def is_out_of_stock(self) -> bool:
        return self.item is not None and self.item.is_out_of_stock


class BoxInfo(SQLModel):
    """Registry entry describing one box."""

    id: str
    name: str
    type: str
    filename: str = ""
    color: str = DEFAULT_BOX_COLOR
    sort_order: int = 0
    rows: int = 12
    columns: int = 12
    total_compartments: int = 144
    occupied_compartments: int = 0
    low_stock_count: int = 0
    created: dt.datetime = Field(default_factory=utcnow)
    modified: dt.datetime = Field(default_factory=utcnow)


class RegistryDocument(SQLModel):
    version: str = SCHEMA_VERSION
    last_modified: dt.datetime = Field(default_factory=utcnow)
    boxes: List[BoxInfo] = Field(default_factory=list)


class BoxRecord(SQLModel):
    """Full compartment contents of one box."""

    version: str = SCHEMA_VERSION
    box_id: str
    last_modified: dt.datetime = Field(default_factory=utcnow)
    compartments: List[Compartment] = Field(default_factory=list)

    def get_compartment(self, position: str) -> Optional[Compartment]:
        for compartment in self.compartments:
            if compartment.position == position:
                return compartment
        return None

    def occupied(self) -> List[Compartment]:
        return [c for c in self.compartments if c.is_occupied]

    def occupied_count(self) -> int:
        return len(self.occupied())

    def low_stock_count(self) -> int:
        return sum(1 for c in self.compartments if c.is_low_stock)

    def out_of_stock_count(self) -> int:
        return sum(1 for c in self.compartments if c.is_out_of_stock)


class LedgerEntry(SQLModel):
    """One committed import; ``(box_id, position, part_number)`` is the key."""

    part_number: str = ""
    supplier_part_number: str = ""
    box_name: str = ""
    box_id: str = ""
    position: str = ""
    quantity: int = 0
    import_date: dt.datetime = Field(default_factory=utcnow)
    source_file: str = ""
    overwritten: bool = False

    def at(self, box_id: str, position: Optional[str] = None) -> bool:
        """Return ``True`` if the entry belongs to ``box_id`` (and ``position``)."""

        if not _same(self.box_id, box_id):
            return False
        return position is None or _same(self.position, position)

    def matches(self, part_number: str, position: str, box_id: str) -> bool:
        return self.at(box_id, position) and _same(self.part_number, part_number)


class ImportLedgerDocument(SQLModel):
    version: str = SCHEMA_VERSION
    imports: List[LedgerEntry] = Field(default_factory=list)


# Status export --------------------------------------------------------------


class StatusCompartment(SQLModel):
    position: str
    part_number: str = ""
    description: str = ""
    manufacturer: str = ""
    category: str = ""
    quantity: int = 0
    min_stock: int = 0
    value: str = ""
    package: str = ""
    supplier: str = ""
    supplier_part_number: str = ""
    unit_price: float = 0.0
    notes: str = ""
    sales_order_number: str = ""


class StatusBox(SQLModel):
    box_id: str
    name: str
    type: str
    rows: int
    columns: int
    total_compartments: int
    occupied_count: int = 0
    compartments: List[StatusCompartment] = Field(default_factory=list)


class StatusExport(SQLModel):
    export_date: str
    app_version: str = APP_VERSION
    boxes: List[StatusBox] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)


# Per-box backups ------------------------------------------------------------


class BoxMetadata(SQLModel):
    id: str
    name: str
    type: str
    rows: int = 12
    columns: int = 12
    total_compartments: int = 144


class BoxBackup(SQLModel):
    export_version: str = SCHEMA_VERSION
    export_date: dt.datetime = Field(default_factory=utcnow)
    box_metadata: Optional[BoxMetadata] = None
    box_data: Optional[BoxRecord] = None
