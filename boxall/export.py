"""Status export and per-box backups.

The status export is a read-only snapshot of every occupied compartment,
meant for other tools.  Backups hold the full record of selected boxes and
can be restored later, recreating boxes that no longer exist.
"""

from __future__ import annotations

import glob
import logging
import os
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from pydantic import ValidationError

from .box_records import BoxRecordStore
from .ledger import ImportLedger
from .models import (
    BoxBackup,
    BoxInfo,
    BoxMetadata,
    StatusBox,
    StatusCompartment,
    StatusExport,
    utcnow,
)
from .record_store import sanitize_filename
from .registry import BoxRegistry
from .storage_config import DEFAULT_CATEGORY, EXPORT_DIR, MASTER_CATEGORIES, STATUS_EXPORT_FILE

logger = logging.getLogger(__name__)

BACKUP_DATE_FORMAT = "%Y-%m-%d_%H%M%S"


def sort_categories(categories: Iterable[str]) -> list[str]:
    """Return unique ``categories`` sorted by name with the default one last."""

    unique = {c for c in categories if c}
    return sorted(unique, key=lambda c: (c == DEFAULT_CATEGORY, c.casefold()))


def build_status_export(registry: BoxRegistry, records: BoxRecordStore) -> StatusExport:
    boxes = []
    used_categories = set()
    for box in registry.get_all_boxes():
        record = records.load_box(box.id)
        compartments = []
        if record is not None:
            for compartment in record.occupied():
                item = compartment.item
                compartments.append(
                    StatusCompartment(
                        position=compartment.position,
                        part_number=item.part_number,
                        description=item.description,
                        manufacturer=item.manufacturer,
                        category=item.category,
                        quantity=item.quantity,
                        min_stock=item.min_stock,
                        value=item.value,
                        package=item.package,
                        supplier=item.supplier,
                        supplier_part_number=item.supplier_part_number,
                        unit_price=item.unit_price,
                        notes=item.notes,
                        sales_order_number=item.sales_order_number,
                    )
                )
                used_categories.add(item.category)
        boxes.append(
            StatusBox(
                box_id=box.id,
                name=box.name,
                type=box.type,
                rows=box.rows,
                columns=box.columns,
                total_compartments=box.total_compartments,
                occupied_count=len(compartments),
                compartments=compartments,
            )
        )

    return StatusExport(
        export_date=utcnow().isoformat(),
        boxes=boxes,
        categories=sort_categories([*MASTER_CATEGORIES, *used_categories]),
    )


def write_status_export(
    registry: BoxRegistry, records: BoxRecordStore, export_dir: Optional[str] = None
) -> Optional[str]:
    """Write the status export and return its path, or ``None`` on failure."""

    export_dir = export_dir or EXPORT_DIR
    path = os.path.join(export_dir, STATUS_EXPORT_FILE)
    document = build_status_export(registry, records)
    try:
        os.makedirs(export_dir, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(document.model_dump_json(indent=2))
    except OSError as exc:
        logger.error("Failed to write status export %s: %s", path, exc)
        return None
    logger.info("Exported status of %d boxes to %s", len(document.boxes), path)
    return path


# Backups ---------------------------------------------------------------------


def backup_filename(box: BoxInfo, when=None) -> str:
    when = when or utcnow()
    return f"{box.id}_{sanitize_filename(box.name)}_{when.strftime(BACKUP_DATE_FORMAT)}.json"


def export_boxes(
    registry: BoxRegistry,
    records: BoxRecordStore,
    box_ids: Iterable[str],
    export_dir: Optional[str] = None,
) -> list[str]:
    """Write one backup file per box and return the written paths.

    Unknown boxes are skipped with a warning.
    """

    export_dir = export_dir or EXPORT_DIR
    os.makedirs(export_dir, exist_ok=True)
    written = []
    for box_id in box_ids:
        box = registry.get_box(box_id)
        record = records.load_box(box_id)
        if box is None or record is None:
            logger.warning("Box %s not found, skipping backup", box_id)
            continue
        backup = BoxBackup(
            box_metadata=BoxMetadata(
                id=box.id,
                name=box.name,
                type=box.type,
                rows=box.rows,
                columns=box.columns,
                total_compartments=box.total_compartments,
            ),
            box_data=record,
        )
        path = os.path.join(export_dir, backup_filename(box, backup.export_date))
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(backup.model_dump_json(indent=2))
        except OSError as exc:
            logger.error("Failed to write backup %s: %s", path, exc)
            continue
        logger.info("Backed up box %s to %s", box_id, path)
        written.append(path)
    return written


def read_backup(path: str) -> Optional[BoxBackup]:
    try:
        with open(path, encoding="utf-8") as f:
            backup = BoxBackup.model_validate_json(f.read())
    except (OSError, ValidationError) as exc:
        logger.warning("Skipping unreadable backup %s: %s", path, exc)
        return None
    if backup.box_metadata is None or backup.box_data is None:
        logger.warning("Skipping incomplete backup %s", path)
        return None
    return backup


@dataclass
class BackupFileInfo:
    path: str
    box_id: str
    name: str
    type: str
    component_count: int
    export_date: str
    exists: bool


def list_backup_files(registry: BoxRegistry, directory: Optional[str] = None) -> list[BackupFileInfo]:
    """Describe every readable backup in ``directory``."""

    directory = directory or EXPORT_DIR
    found = []
    for path in sorted(glob.glob(os.path.join(directory, "box_*.json"))):
        backup = read_backup(path)
        if backup is None:
            continue
        meta = backup.box_metadata
        found.append(
            BackupFileInfo(
                path=path,
                box_id=meta.id,
                name=meta.name,
                type=meta.type,
                component_count=backup.box_data.occupied_count(),
                export_date=backup.export_date.isoformat(),
                exists=registry.get_box(meta.id) is not None,
            )
        )
    return found


@dataclass
class RestoreResult:
    imported: int = 0
    overwritten: int = 0
    created: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


def restore_backups(
    registry: BoxRegistry,
    records: BoxRecordStore,
    paths: Iterable[str],
    overwrite_decisions: Optional[Mapping[str, bool]] = None,
    ledger: Optional[ImportLedger] = None,
) -> RestoreResult:
    """Restore the boxes held in ``paths``.

    A box that still exists is replaced only when ``overwrite_decisions``
    maps its id to ``True``.  Missing boxes are registered again under
    their original identifier.  With a ``ledger``, entries for
    compartments that no longer hold their part are dropped.
    """

    overwrite_decisions = overwrite_decisions or {}
    result = RestoreResult()
    for path in paths:
        backup = read_backup(path)
        if backup is None:
            result.errors.append(f"Unreadable backup: {os.path.basename(path)}")
            continue
        meta = backup.box_metadata
        record = backup.box_data.model_copy(update={"box_id": meta.id})

        if registry.get_box(meta.id) is not None:
            if not overwrite_decisions.get(meta.id, False):
                logger.info("Box %s exists, not overwriting", meta.id)
                result.skipped += 1
                continue
            if not records.save_box(record):
                result.errors.append(f"Failed to overwrite {meta.name}")
                continue
            result.overwritten += 1
        else:
            box = registry.restore_box(BoxInfo(id=meta.id, name=meta.name, type=meta.type))
            if box is None or not records.save_box(record):
                result.errors.append(f"Failed to create {meta.name}")
                continue
            result.created += 1
        if ledger is not None:
            ledger.retain_matching(
                meta.id, {c.position: c.item.part_number for c in record.occupied()}
            )
        result.imported += 1
        logger.info("Restored box %s from %s", meta.id, path)
    return result
