"""Compartment labels for the supported box layouts.

Two layout families exist.  The uniform grid has twelve rows ``A``..``L`` of
twelve columns each.  The mixed grid has six rows ``A``..``F`` of twelve
small compartments and four rows ``G``..``J`` of six double-width ones.

Labels always look like ``<row>-<column:02d>`` (``L-01``, ``G-06``).  All
layout specific knowledge lives in the :class:`Layout` implementations below
and consumers go through :func:`get_layout` or the module level helpers.
"""

from __future__ import annotations

import re
from typing import Optional, Protocol

from .storage_config import (
    MIXED_CAPACITY,
    MIXED_COLUMNS,
    MIXED_LARGE_COLUMNS,
    MIXED_ROWS,
    MIXED_SMALL_COLUMNS,
    UNIFORM_CAPACITY,
    UNIFORM_COLUMNS,
    UNIFORM_ROWS,
)

MIXED_TYPE_TOKENS = {"BOXALL96", "BOXALL96AS"}


class Layout(Protocol):
    """Geometry contract shared by every box layout."""

    name: str
    rows: int
    columns: int
    capacity: int

    def columns_in_row(self, row: str) -> int: ...

    def all_positions(self) -> list[str]: ...

    def is_valid_position(self, label: Optional[str]) -> bool: ...


def format_label(row: str, column: int) -> str:
    """Return the compartment label for ``row`` and 1-based ``column``."""

    return f"{row}-{column:02d}"


def parse_label(label: Optional[str]) -> Optional[tuple[str, int]]:
    """Split ``label`` into ``(row, column)``.

    ``None`` is returned for anything that does not look like a label.  The
    result is not checked against a layout, use
    :meth:`Layout.is_valid_position` for that.
    """

    match = re.fullmatch(r"([A-Z])-([0-9]{2})", label or "")
    if not match:
        return None
    return match.group(1), int(match.group(2))


class _GridLayout:
    """Rows of compartments addressed by letter and column number."""

    name = ""
    rows = 0
    columns = 0
    capacity = 0
    # Row letters in presentation order and their column counts.
    row_order: tuple[tuple[str, int], ...] = ()

    def __init__(self) -> None:
        self._columns = dict(self.row_order)
        first = min(self._columns)
        last = max(self._columns)
        self._pattern = re.compile(rf"[{first}-{last}]-[0-9]{{2}}")

    def columns_in_row(self, row: str) -> int:
        return self._columns.get(row, 0)

    def all_positions(self) -> list[str]:
        return [
            format_label(row, column)
            for row, count in self.row_order
            for column in range(1, count + 1)
        ]

    def is_valid_position(self, label: Optional[str]) -> bool:
        if not label or not self._pattern.fullmatch(label):
            return False
        row, column = parse_label(label)
        return 1 <= column <= self.columns_in_row(row)


class UniformLayout(_GridLayout):
    """Twelve by twelve grid, enumerated ``A`` to ``L``."""

    name = "uniform-144"
    rows = UNIFORM_ROWS
    columns = UNIFORM_COLUMNS
    capacity = UNIFORM_CAPACITY
    row_order = tuple((chr(ord("A") + i), UNIFORM_COLUMNS) for i in range(UNIFORM_ROWS))


class MixedLayout(_GridLayout):
    """96 compartment box with small and double-width rows.

    Enumeration follows the physical layout from the top of the box: the
    medium rows ``I`` and ``J``, then the large rows ``G`` and ``H``, then
    the small rows ``A`` to ``F``.
    """

    name = "mixed-96"
    rows = MIXED_ROWS
    columns = MIXED_COLUMNS
    capacity = MIXED_CAPACITY
    row_order = (
        ("I", MIXED_LARGE_COLUMNS),
        ("J", MIXED_LARGE_COLUMNS),
        ("G", MIXED_LARGE_COLUMNS),
        ("H", MIXED_LARGE_COLUMNS),
    ) + tuple((row, MIXED_SMALL_COLUMNS) for row in "ABCDEF")


UNIFORM = UniformLayout()
MIXED = MixedLayout()


def is_96_type(box_type: Optional[str]) -> bool:
    """Return ``True`` when ``box_type`` uses the mixed 96 compartment grid."""

    return box_type is not None and ("96" in box_type or box_type in MIXED_TYPE_TOKENS)


def get_layout(box_type: Optional[str]) -> Layout:
    """Return the layout for ``box_type``.

    Anything that is not a 96 type uses the uniform grid.
    """

    return MIXED if is_96_type(box_type) else UNIFORM


def all_positions(box_type: Optional[str]) -> list[str]:
    return get_layout(box_type).all_positions()


def all_positions_except(box_type: Optional[str], label: str) -> list[str]:
    """Return every position of ``box_type`` apart from ``label``.

    Used to offer relocation targets.
    """

    return [pos for pos in all_positions(box_type) if pos != label]


def is_valid_position(box_type: Optional[str], label: Optional[str]) -> bool:
    return get_layout(box_type).is_valid_position(label)


def validation_pattern(box_type: Optional[str]) -> str:
    """Return the regular expression describing labels of ``box_type``."""

    return r"^[A-J]-[0-9]{2}$" if is_96_type(box_type) else r"^[A-L]-[0-9]{2}$"
