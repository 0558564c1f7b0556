"""Per-box compartment contents."""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from .addressing import all_positions
from .models import BoxRecord, Compartment, ItemRecord, utcnow
from .record_store import RecordStore
from .registry import BoxRegistry, record_key

logger = logging.getLogger(__name__)


class BoxRecordStore:
    """Load, cache and mutate the record of each box.

    Records are located through the registry.  A record missing from the
    store is created on first load with every compartment of the box layout
    empty.  Each successful save writes the box's occupied and low stock
    counts back to the registry.
    """

    def __init__(self, store: RecordStore, registry: BoxRegistry) -> None:
        self.store = store
        self.registry = registry
        self._cache: dict[str, BoxRecord] = {}

    def invalidate(self, box_id: Optional[str] = None) -> None:
        """Drop the cached record of ``box_id`` or of every box."""

        if box_id is None:
            self._cache.clear()
        else:
            self._cache.pop(box_id, None)

    def load_box(self, box_id: str) -> Optional[BoxRecord]:
        cached = self._cache.get(box_id)
        if cached is not None:
            return cached

        box = self.registry.get_box(box_id)
        if box is None:
            logger.debug("Box %s not found in registry", box_id)
            return None

        payload = self.store.load(record_key(box))
        record = None
        if payload is not None:
            try:
                record = BoxRecord.model_validate_json(payload)
            except ValidationError as exc:
                logger.error("Record of box %s is unreadable: %s", box_id, exc)
                return None

        if record is None:
            record = BoxRecord(
                box_id=box_id,
                compartments=[Compartment(position=pos) for pos in all_positions(box.type)],
            )
            if not self.save_box(record):
                return None

        self._cache[box_id] = record
        return record

    def save_box(self, record: BoxRecord) -> bool:
        box = self.registry.get_box(record.box_id)
        if box is None:
            logger.warning("Box %s not found in registry", record.box_id)
            return False

        record.last_modified = utcnow()
        if not self.store.save(record_key(box), record.model_dump_json(indent=2)):
            return False
        self._cache[record.box_id] = record
        return self.registry.update_box_stats(
            record.box_id, record.occupied_count(), record.low_stock_count()
        )

    # ------------------------------------------------------------------
    # compartment operations
    # ------------------------------------------------------------------
    def get_item(self, box_id: str, position: str) -> Optional[ItemRecord]:
        record = self.load_box(box_id)
        if record is None:
            return None
        compartment = record.get_compartment(position)
        return compartment.item if compartment is not None else None

    def set_item(self, box_id: str, position: str, item: ItemRecord) -> bool:
        """Place ``item`` in ``position``, replacing whatever was there."""

        record = self.load_box(box_id)
        if record is None:
            return False
        compartment = record.get_compartment(position)
        if compartment is None:
            logger.warning("Compartment %s not found in box %s", position, box_id)
            return False
        item.last_updated = utcnow()
        compartment.item = item
        return self.save_box(record)

    def clear_item(self, box_id: str, position: str) -> bool:
        record = self.load_box(box_id)
        if record is None:
            return False
        compartment = record.get_compartment(position)
        if compartment is None:
            return False
        compartment.item = None
        return self.save_box(record)

    def move_item(self, box_id: str, from_position: str, to_position: str) -> bool:
        """Move the item at ``from_position`` to ``to_position``.

        Whatever occupied the target is replaced.  Returns ``False`` without
        changing anything when the source is empty or either compartment does
        not exist in the box.
        """

        record = self.load_box(box_id)
        if record is None:
            return False
        source = record.get_compartment(from_position)
        target = record.get_compartment(to_position)
        if source is None or source.item is None or target is None:
            return False
        if source is target:
            return True

        target.item = source.item
        source.item = None
        logger.info("Moved item in box %s from %s to %s", box_id, from_position, to_position)
        return self.save_box(record)

    def adjust_quantity(self, box_id: str, position: str, delta: int) -> bool:
        """Change the quantity at ``position`` by ``delta``, never below zero."""

        record = self.load_box(box_id)
        if record is None:
            return False
        compartment = record.get_compartment(position)
        if compartment is None or compartment.item is None:
            return False
        compartment.item.quantity = max(0, compartment.item.quantity + delta)
        compartment.item.last_updated = utcnow()
        return self.save_box(record)

    def occupied_compartments(self, box_id: str) -> list[Compartment]:
        record = self.load_box(box_id)
        return record.occupied() if record is not None else []
