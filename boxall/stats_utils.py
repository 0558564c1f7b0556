from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .box_records import BoxRecordStore
from .models import ItemRecord
from .registry import BoxRegistry

logger = logging.getLogger(__name__)


def get_statistics(
    registry: BoxRegistry, records: BoxRecordStore, box_id: Optional[str] = None
) -> Dict[str, int]:
    """Return inventory statistics for one box or for every box.

    Totals across boxes come from the counts cached in the registry so no
    record has to be loaded.  A single box is counted from its record, which
    also yields the number of empty-stock compartments.
    """

    if box_id is None:
        boxes = registry.get_all_boxes()
        return {
            "total_boxes": len(boxes),
            "total_compartments": sum(b.total_compartments for b in boxes),
            "occupied_compartments": sum(b.occupied_compartments for b in boxes),
            "low_stock_items": sum(b.low_stock_count for b in boxes),
        }

    record = records.load_box(box_id)
    if record is None:
        logger.warning("No statistics for unknown box %s", box_id)
        return {}
    return {
        "total_compartments": len(record.compartments),
        "occupied_compartments": record.occupied_count(),
        "low_stock_items": record.low_stock_count(),
        "out_of_stock_items": record.out_of_stock_count(),
    }


@dataclass
class SearchHit:
    box_id: str
    box_name: str
    position: str
    item: ItemRecord


def _matches(item: ItemRecord, needle: str) -> bool:
    return any(
        needle in (value or "").casefold()
        for value in (item.part_number, item.description, item.category, item.manufacturer)
    )


def search_items(
    registry: BoxRegistry,
    records: BoxRecordStore,
    query: str,
    box_id: Optional[str] = None,
) -> List[SearchHit]:
    """Find items whose part number, description, category or manufacturer
    contain ``query`` ignoring case."""

    needle = (query or "").strip().casefold()
    if not needle:
        return []

    if box_id is None:
        boxes = registry.get_all_boxes()
    else:
        box = registry.get_box(box_id)
        boxes = [box] if box is not None else []

    hits: List[SearchHit] = []
    for box in boxes:
        for compartment in records.occupied_compartments(box.id):
            if _matches(compartment.item, needle):
                hits.append(SearchHit(box.id, box.name, compartment.position, compartment.item))
    return hits
