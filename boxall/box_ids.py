"""Type-encoded box identifiers.

An identifier is ``box_`` followed by four lowercase hex digits.  The upper
seven bits carry the box type (see :class:`BoxType`) and the lower nine bits
a per-type counter, so allocation for one type never consumes counters of
another.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Iterable, Optional

from .errors import CapacityExceededError, UnknownBoxTypeError
from .storage_config import (
    BOX_ID_PREFIX,
    COUNTER_MASK,
    MAX_BOXES_PER_TYPE,
    STRICT_BOX_TYPES,
    TYPE_MASK,
)

logger = logging.getLogger(__name__)

_BOX_ID_RE = re.compile(rf"{BOX_ID_PREFIX}([0-9a-fA-F]{{4}})")


class BoxType(Enum):
    """Known box variants and their identifier base values."""

    BOXALL24 = 0x0200
    BOXALL40 = 0x0400
    BOXALL48 = 0x0800
    BOXALL96 = 0x1000
    BOXALL144 = 0x2000
    BOXALL96AS = 0x9000
    BOXALL144AS = 0xA000

    @property
    def token(self) -> str:
        return self.name


# Unrecognised tokens resolve to the most capable variant.
FALLBACK_TYPE = BoxType.BOXALL144AS

_SIZE_CODES = {
    ("144", True): BoxType.BOXALL144AS,
    ("144", False): BoxType.BOXALL144,
    ("96", True): BoxType.BOXALL96AS,
    ("96", False): BoxType.BOXALL96,
    ("48", False): BoxType.BOXALL48,
    ("40", False): BoxType.BOXALL40,
    ("24", False): BoxType.BOXALL24,
}


# Layout names accepted next to the product tokens, already normalised.
_ALIASES = {
    "UNIFORM144": BoxType.BOXALL144,
    "UNIFORM144AS": BoxType.BOXALL144AS,
    "UNIFORM144ANTISTATIC": BoxType.BOXALL144AS,
    "MIXED96": BoxType.BOXALL96,
    "MIXED96AS": BoxType.BOXALL96AS,
    "MIXED96ANTISTATIC": BoxType.BOXALL96AS,
}


def normalize_type_token(token: Optional[str]) -> str:
    """Return ``token`` upper-cased with dashes removed (``BOXALL-96`` -> ``BOXALL96``)."""

    return (token or "").replace("-", "").strip().upper()


def lookup_box_type(token: Optional[str]) -> Optional[BoxType]:
    """Return the :class:`BoxType` for ``token`` or ``None`` if unknown."""

    normalized = normalize_type_token(token)
    return BoxType.__members__.get(normalized) or _ALIASES.get(normalized)


def resolve_box_type(token: Optional[str], strict: Optional[bool] = None) -> BoxType:
    """Return the :class:`BoxType` for ``token``.

    Unknown tokens fall back to :data:`FALLBACK_TYPE` with a warning.  With
    ``strict`` (defaults to ``BOXALL_STRICT_BOX_TYPES``) they raise
    :class:`UnknownBoxTypeError` instead.
    """

    box_type = lookup_box_type(token)
    if box_type is not None:
        return box_type
    if strict is None:
        strict = STRICT_BOX_TYPES
    if strict:
        raise UnknownBoxTypeError(f"Unknown box type: {token!r}")
    logger.warning("Unknown box type %r, defaulting to %s", token, FALLBACK_TYPE.token)
    return FALLBACK_TYPE


def build_type_code(size: str, anti_static: bool = False) -> str:
    """Return the type token for a size option and anti-static flag.

    Only the 144 and 96 boxes come in an anti-static variant; the flag is
    ignored for the others.
    """

    size = str(size).strip()
    box_type = _SIZE_CODES.get((size, anti_static)) or _SIZE_CODES.get((size, False))
    return (box_type or FALLBACK_TYPE).token


def parse_box_id(box_id: Optional[str]) -> Optional[int]:
    """Return the numeric value of ``box_id`` or ``None`` if malformed."""

    match = _BOX_ID_RE.fullmatch(box_id or "")
    if not match:
        return None
    return int(match.group(1), 16)


def format_box_id(value: int) -> str:
    return f"{BOX_ID_PREFIX}{value:04x}"


def decode_box_id(box_id: Optional[str]) -> tuple[str, int]:
    """Return ``(type_token, counter)`` encoded in ``box_id``.

    ``("unknown", -1)`` is returned for malformed identifiers; a well formed
    identifier with an unknown type prefix yields ``"unknown"`` with its
    counter.
    """

    value = parse_box_id(box_id)
    if value is None:
        return "unknown", -1
    type_code = value & TYPE_MASK
    counter = value & COUNTER_MASK
    try:
        return BoxType(type_code).token, counter
    except ValueError:
        return "unknown", counter


def allocate_box_id(existing_ids: Iterable[str], box_type: Optional[str]) -> str:
    """Return the next free identifier for ``box_type``.

    The counter is one above the highest counter already used by boxes of the
    same type, or ``0`` when none exist.  Raises
    :class:`CapacityExceededError` once :data:`MAX_BOXES_PER_TYPE` boxes of
    the type have been allocated.
    """

    resolved = resolve_box_type(box_type)
    base = resolved.value

    max_counter = -1
    for box_id in existing_ids:
        value = parse_box_id(box_id)
        if value is None or value & TYPE_MASK != base:
            continue
        max_counter = max(max_counter, value & COUNTER_MASK)

    next_counter = max_counter + 1
    if next_counter >= MAX_BOXES_PER_TYPE:
        raise CapacityExceededError(
            f"Maximum number of boxes ({MAX_BOXES_PER_TYPE}) reached for type {resolved.token}"
        )
    return format_box_id(base | next_counter)
