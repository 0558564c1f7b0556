"""Registry of all boxes and their metadata."""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from .addressing import get_layout
from .box_ids import allocate_box_id, resolve_box_type
from .models import BoxInfo, RegistryDocument, utcnow
from .record_store import RecordStore, sanitize_filename
from .storage_config import BOX_RECORD_DIR, DEFAULT_BOX_TYPE, REGISTRY_KEY

logger = logging.getLogger(__name__)


def record_filename(box_id: str, name: str) -> str:
    return f"{box_id}_{sanitize_filename(name)}.json"


def record_key(box: BoxInfo) -> str:
    """Return the record store key holding the compartments of ``box``."""

    return f"{BOX_RECORD_DIR}/{box.filename}"


class BoxRegistry:
    """Durable index of boxes keyed by identifier.

    The registry document is loaded lazily and kept in memory until
    :meth:`invalidate` is called.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store
        self._registry: Optional[RegistryDocument] = None

    # ------------------------------------------------------------------
    # loading and saving
    # ------------------------------------------------------------------
    def load(self) -> RegistryDocument:
        if self._registry is not None:
            return self._registry

        payload = self.store.load(REGISTRY_KEY)
        if payload is None:
            logger.info("No registry found, starting with an empty one")
            self._registry = RegistryDocument()
            self.save()
        else:
            try:
                self._registry = RegistryDocument.model_validate_json(payload)
            except ValidationError as exc:
                # Keep the unreadable file on disk; it is only replaced by
                # the next successful mutation.
                logger.error("Registry %s is unreadable: %s", REGISTRY_KEY, exc)
                self._registry = RegistryDocument()
        return self._registry

    def save(self) -> bool:
        if self._registry is None:
            return False
        self._registry.last_modified = utcnow()
        return self.store.save(REGISTRY_KEY, self._registry.model_dump_json(indent=2))

    def invalidate(self) -> None:
        """Forget the cached registry so the next access re-reads it."""

        self._registry = None

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    def get_box(self, box_id: str) -> Optional[BoxInfo]:
        for box in self.load().boxes:
            if box.id == box_id:
                return box
        return None

    def find_box_by_name(self, name: str) -> Optional[BoxInfo]:
        """Return the box whose name matches ``name`` ignoring case."""

        wanted = (name or "").strip().casefold()
        for box in self.get_all_boxes():
            if box.name.casefold() == wanted:
                return box
        return None

    def get_all_boxes(self) -> list[BoxInfo]:
        """Return every box ordered by display name."""

        return sorted(self.load().boxes, key=lambda b: (b.name.casefold(), b.name))

    def box_ids(self) -> list[str]:
        return [box.id for box in self.load().boxes]

    # ------------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------------
    def create_box(self, name: str, box_type: str = DEFAULT_BOX_TYPE) -> Optional[BoxInfo]:
        """Allocate an identifier and register a new box.

        Raises :class:`~boxall.errors.CapacityExceededError` when the type
        has no identifiers left.  ``None`` is returned if the registry could
        not be written.
        """

        registry = self.load()
        type_token = resolve_box_type(box_type).token
        box_id = allocate_box_id(self.box_ids(), type_token)
        layout = get_layout(type_token)

        box = BoxInfo(
            id=box_id,
            name=name,
            type=type_token,
            filename=record_filename(box_id, name),
            sort_order=len(registry.boxes) + 1,
            rows=layout.rows,
            columns=layout.columns,
            total_compartments=layout.capacity,
        )
        registry.boxes.append(box)
        if not self.save():
            registry.boxes.remove(box)
            return None
        logger.info("Created box %s (%s) as %s", name, type_token, box_id)
        return box

    def restore_box(self, box: BoxInfo) -> Optional[BoxInfo]:
        """Register ``box`` under its existing identifier.

        Used when restoring backups.  Geometry is re-derived from the type.
        Returns ``None`` if the identifier is already taken or saving fails.
        """

        registry = self.load()
        if self.get_box(box.id) is not None:
            logger.warning("Box %s already registered", box.id)
            return None
        layout = get_layout(box.type)
        restored = box.model_copy(
            update={
                "filename": record_filename(box.id, box.name),
                "sort_order": len(registry.boxes) + 1,
                "rows": layout.rows,
                "columns": layout.columns,
                "total_compartments": layout.capacity,
                "modified": utcnow(),
            }
        )
        registry.boxes.append(restored)
        if not self.save():
            registry.boxes.remove(restored)
            return None
        return restored

    def rename_box(self, box_id: str, new_name: str) -> bool:
        """Rename a box and move its record to the matching filename.

        The record payload itself is left untouched.  If the registry cannot
        be saved the record is moved back and the box keeps its old name.
        """

        box = self.get_box(box_id)
        if box is None:
            return False

        old_key = record_key(box)
        new_filename = record_filename(box_id, new_name)
        new_key = f"{BOX_RECORD_DIR}/{new_filename}"
        moved = new_filename != box.filename and self.store.exists(old_key)
        if moved and not self.store.rename(old_key, new_key):
            return False

        previous = (box.name, box.filename, box.modified)
        box.name = new_name
        box.filename = new_filename
        box.modified = utcnow()
        if not self.save():
            box.name, box.filename, box.modified = previous
            if moved and not self.store.rename(new_key, old_key):
                logger.error("Record of box %s left at %s", box_id, new_key)
            return False
        logger.info("Renamed box %s to %s", box_id, new_name)
        return True

    def delete_box(self, box_id: str) -> bool:
        """Remove a box and its record.

        Import ledger entries of the box are left to the caller.
        """

        registry = self.load()
        box = self.get_box(box_id)
        if box is None:
            return False

        self.store.delete(record_key(box))
        registry.boxes.remove(box)
        for order, remaining in enumerate(
            sorted(registry.boxes, key=lambda b: b.sort_order), start=1
        ):
            remaining.sort_order = order
        logger.info("Deleted box %s", box_id)
        return self.save()

    def update_box_stats(self, box_id: str, occupied_count: int, low_stock_count: int) -> bool:
        box = self.get_box(box_id)
        if box is None:
            return False
        box.occupied_compartments = occupied_count
        box.low_stock_count = low_stock_count
        box.modified = utcnow()
        return self.save()
