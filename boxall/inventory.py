"""Session facade tying the registry, box records and import ledger together.

Operations that touch more than one of them live here so the ledger always
follows what happens to the compartments: deleting an item releases its
ledger entry, moving an item moves the entry, renaming or deleting a box
updates or drops every entry of that box.
"""

from __future__ import annotations

import logging
import os
from typing import IO, Iterable, Mapping, Optional, Union

from .box_records import BoxRecordStore
from .bulk_import import BulkImportValidator, ImportExecutor, ImportRow, ImportSummary, parse_import_rows
from .database import SqlRecordStore
from .export import (
    BackupFileInfo,
    RestoreResult,
    export_boxes,
    list_backup_files,
    restore_backups,
    write_status_export,
)
from .ledger import ImportLedger
from .models import BoxInfo, ItemRecord
from .record_store import JsonFileStore, RecordStore
from .registry import BoxRegistry
from .stats_utils import SearchHit, get_statistics, search_items
from .storage_config import DATA_DIR, DATABASE_URL, DEFAULT_BOX_TYPE, EXPORT_DIR, STORE_BACKEND

logger = logging.getLogger(__name__)


def open_store(
    data_dir: Optional[str] = None,
    backend: Optional[str] = None,
    database_url: Optional[str] = None,
) -> RecordStore:
    """Return the record store selected by ``backend`` (``json`` or ``sql``)."""

    backend = (backend or STORE_BACKEND).lower()
    if backend == "sql":
        return SqlRecordStore(database_url or DATABASE_URL)
    if backend != "json":
        raise ValueError(f"Unknown record store backend: {backend!r}")
    return JsonFileStore(data_dir or DATA_DIR)


class Inventory:
    def __init__(self, store: RecordStore, export_dir: Optional[str] = None) -> None:
        self.store = store
        self.export_dir = export_dir or EXPORT_DIR
        self.registry = BoxRegistry(store)
        self.records = BoxRecordStore(store, self.registry)
        self.ledger = ImportLedger(store)

    @classmethod
    def open(
        cls,
        data_dir: Optional[str] = None,
        backend: Optional[str] = None,
        database_url: Optional[str] = None,
        export_dir: Optional[str] = None,
    ) -> "Inventory":
        if export_dir is None and data_dir is not None:
            export_dir = os.path.join(data_dir, "exports")
        return cls(open_store(data_dir, backend, database_url), export_dir)

    def invalidate(self) -> None:
        """Forget every cached document."""

        self.registry.invalidate()
        self.records.invalidate()
        self.ledger.invalidate()

    # ------------------------------------------------------------------
    # boxes
    # ------------------------------------------------------------------
    def create_box(self, name: str, box_type: str = DEFAULT_BOX_TYPE) -> Optional[BoxInfo]:
        return self.registry.create_box(name, box_type)

    def get_all_boxes(self) -> list[BoxInfo]:
        return self.registry.get_all_boxes()

    def rename_box(self, box_id: str, new_name: str) -> bool:
        if not self.registry.rename_box(box_id, new_name):
            return False
        self.ledger.rename_box(box_id, new_name)
        return True

    def delete_box(self, box_id: str) -> bool:
        if not self.registry.delete_box(box_id):
            return False
        self.records.invalidate(box_id)
        self.ledger.remove_box(box_id)
        return True

    # ------------------------------------------------------------------
    # items
    # ------------------------------------------------------------------
    def get_item(self, box_id: str, position: str) -> Optional[ItemRecord]:
        return self.records.get_item(box_id, position.upper())

    def add_item(self, box_id: str, position: str, item: ItemRecord) -> bool:
        """Place ``item`` in an empty compartment."""

        position = position.upper()
        if self.records.get_item(box_id, position) is not None:
            logger.warning("Compartment %s in box %s is occupied", position, box_id)
            return False
        return self.records.set_item(box_id, position, item)

    def update_item(self, box_id: str, position: str, item: ItemRecord) -> bool:
        position = position.upper()
        if self.records.get_item(box_id, position) is None:
            return False
        return self.records.set_item(box_id, position, item)

    def delete_item(self, box_id: str, position: str) -> bool:
        position = position.upper()
        if not self.records.clear_item(box_id, position):
            return False
        self.ledger.remove_position(box_id, position)
        return True

    def adjust_quantity(self, box_id: str, position: str, delta: int) -> bool:
        return self.records.adjust_quantity(box_id, position.upper(), delta)

    def relocate_item(
        self, box_id: str, from_position: str, to_position: str, overwrite: bool = False
    ) -> bool:
        """Move an item to another compartment of the same box.

        An occupied target is replaced only when ``overwrite`` is set; its
        ledger entry is dropped together with it.
        """

        from_position = from_position.upper()
        to_position = to_position.upper()
        if from_position == to_position:
            return self.records.get_item(box_id, from_position) is not None
        if not overwrite and self.records.get_item(box_id, to_position) is not None:
            logger.info("Target %s in box %s is occupied", to_position, box_id)
            return False
        if not self.records.move_item(box_id, from_position, to_position):
            return False
        self.ledger.relocate(box_id, from_position, to_position)
        return True

    # ------------------------------------------------------------------
    # bulk import
    # ------------------------------------------------------------------
    def parse_import(self, source: Union[str, IO[str]]) -> list[ImportRow]:
        """Read and classify the rows of an import file."""

        validator = BulkImportValidator(self.registry, self.records, self.ledger)
        return validator.validate(parse_import_rows(source))

    def run_import(
        self,
        rows: Iterable[ImportRow],
        overwrite_conflicts: bool = False,
        source_file: str = "",
    ) -> ImportSummary:
        executor = ImportExecutor(self.records, self.ledger)
        return executor.execute(rows, overwrite_conflicts, source_file)

    def import_file(self, path: str, overwrite_conflicts: bool = False) -> ImportSummary:
        rows = self.parse_import(path)
        return self.run_import(rows, overwrite_conflicts, os.path.basename(path))

    # ------------------------------------------------------------------
    # exports, statistics and search
    # ------------------------------------------------------------------
    def export_status(self, sync_client=None) -> Optional[str]:
        """Write the status export; upload it when ``sync_client`` is given."""

        path = write_status_export(self.registry, self.records, self.export_dir)
        if path is not None and sync_client is not None:
            sync_client.upload_status(path)
        return path

    def backup_boxes(self, box_ids: Iterable[str]) -> list[str]:
        return export_boxes(self.registry, self.records, box_ids, self.export_dir)

    def list_backups(self, directory: Optional[str] = None) -> list[BackupFileInfo]:
        return list_backup_files(self.registry, directory or self.export_dir)

    def restore_backups(
        self, paths: Iterable[str], overwrite_decisions: Optional[Mapping[str, bool]] = None
    ) -> RestoreResult:
        return restore_backups(
            self.registry, self.records, paths, overwrite_decisions, ledger=self.ledger
        )

    def statistics(self, box_id: Optional[str] = None) -> dict:
        return get_statistics(self.registry, self.records, box_id)

    def search(self, query: str, box_id: Optional[str] = None) -> list[SearchHit]:
        return search_items(self.registry, self.records, query, box_id)
