"""Import ledger used to keep bulk imports idempotent.

Each entry records one committed ``(box, position, part number)`` import.
The ledger itself guarantees that a compartment has at most one entry:
recording, relocating and clearing positions all drop stale entries for the
affected compartment, so callers never have to tidy up by hand.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from .models import ImportLedgerDocument, LedgerEntry
from .record_store import RecordStore
from .storage_config import IMPORT_LOG_KEY

logger = logging.getLogger(__name__)


class ImportLedger:
    def __init__(self, store: RecordStore) -> None:
        self.store = store
        self._log: Optional[ImportLedgerDocument] = None

    def load(self) -> ImportLedgerDocument:
        if self._log is not None:
            return self._log

        payload = self.store.load(IMPORT_LOG_KEY)
        if payload is None:
            self._log = ImportLedgerDocument()
        else:
            try:
                self._log = ImportLedgerDocument.model_validate_json(payload)
            except ValidationError as exc:
                logger.error("Import log is unreadable: %s", exc)
                self._log = ImportLedgerDocument()
        return self._log

    def save(self) -> bool:
        log = self.load()
        saved = self.store.save(IMPORT_LOG_KEY, log.model_dump_json(indent=2))
        if saved:
            logger.debug("Saved %d import log entries", len(log.imports))
        return saved

    def invalidate(self) -> None:
        """Clear the cache so the next access re-reads the store."""

        self._log = None

    @property
    def entries(self) -> list[LedgerEntry]:
        return list(self.load().imports)

    def entry_at(self, box_id: str, position: str) -> Optional[LedgerEntry]:
        for entry in self.load().imports:
            if entry.at(box_id, position):
                return entry
        return None

    def entries_for_box(self, box_id: str) -> list[LedgerEntry]:
        return [e for e in self.load().imports if e.at(box_id)]

    def is_already_imported(self, part_number: str, position: str, box_id: str) -> bool:
        """Return ``True`` if the part was already imported into that compartment."""

        return any(e.matches(part_number, position, box_id) for e in self.load().imports)

    def _drop(self, box_id: str, position: Optional[str] = None) -> int:
        log = self.load()
        before = len(log.imports)
        log.imports = [e for e in log.imports if not e.at(box_id, position)]
        return before - len(log.imports)

    def record(self, entry: LedgerEntry) -> bool:
        """Append ``entry``, replacing any entry for the same compartment."""

        replaced = self._drop(entry.box_id, entry.position)
        if replaced:
            logger.debug(
                "Replaced %d entry(ies) for %s:%s", replaced, entry.box_id, entry.position
            )
        self.load().imports.append(entry)
        return self.save()

    def remove_position(self, box_id: str, position: str) -> int:
        """Release the compartment so its contents can be imported again."""

        removed = self._drop(box_id, position)
        if removed:
            logger.info("Removed %d entry(ies) for %s:%s", removed, box_id, position)
            self.save()
        return removed

    def remove_box(self, box_id: str) -> int:
        removed = self._drop(box_id)
        if removed:
            logger.info("Removed %d entry(ies) for box %s", removed, box_id)
            self.save()
        return removed

    def retain_matching(self, box_id: str, parts_by_position: dict[str, str]) -> int:
        """Drop entries of ``box_id`` whose compartment no longer holds their part.

        ``parts_by_position`` maps each occupied position to its part number.
        """

        wanted = {pos.casefold(): part.casefold() for pos, part in parts_by_position.items()}
        log = self.load()
        before = len(log.imports)
        log.imports = [
            e
            for e in log.imports
            if not e.at(box_id)
            or wanted.get(e.position.casefold()) == (e.part_number or "").casefold()
        ]
        removed = before - len(log.imports)
        if removed:
            logger.info("Removed %d stale entry(ies) for box %s", removed, box_id)
            self.save()
        return removed

    def relocate(self, box_id: str, old_position: str, new_position: str) -> bool:
        """Follow an item moved from ``old_position`` to ``new_position``.

        Any entry at the destination belongs to the overwritten item and is
        dropped.  Returns ``True`` if the ledger changed.
        """

        if old_position.casefold() == new_position.casefold():
            return False
        moved = self.entry_at(box_id, old_position)
        changed = self._drop(box_id, new_position) > 0
        if moved is not None:
            moved.position = new_position
            changed = True
            logger.info(
                "Updated position %s -> %s in box %s", old_position, new_position, box_id
            )
        if changed:
            self.save()
        return changed

    def rename_box(self, box_id: str, new_name: str) -> int:
        """Propagate a new box name to every entry of ``box_id``."""

        entries = self.entries_for_box(box_id)
        for entry in entries:
            entry.box_name = new_name
        if entries:
            logger.info("Updated box name to %r for box %s", new_name, box_id)
            self.save()
        return len(entries)
