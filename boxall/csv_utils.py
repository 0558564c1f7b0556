"""Reading bulk-import spreadsheets exported as CSV.

Headers are matched ignoring case, spaces and underscores so ``PartNumber``,
``part_number`` and ``Part Number`` all name the same column.  Field values
are parsed leniently: malformed numbers fall back to the caller's default
instead of rejecting the row.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import IO, Iterator, Mapping, Optional, Union

logger = logging.getLogger(__name__)

# Column order written by the spreadsheet template.
IMPORT_FIELDNAMES = [
    "BoxName",
    "Position",
    "PartNumber",
    "Description",
    "Manufacturer",
    "Category",
    "Quantity",
    "MinStock",
    "Supplier",
    "SupplierPartNumber",
    "Value",
    "Package",
    "Tolerance",
    "Voltage",
    "UnitPrice",
    "Notes",
    "DatasheetUrl",
    "SalesOrderNumber",
]

_CURRENCY_RE = re.compile(r"[$€£¥\s]")


def norm_header(name: Optional[str]) -> str:
    """Return ``name`` lower-cased without spaces, underscores or dashes."""

    return re.sub(r"[\s_\-\ufeff]", "", (name or "").strip().lower())


def _sanitize_number(value: Optional[str]) -> str:
    """Return ``value`` without thousands separators or currency symbols."""

    return _CURRENCY_RE.sub("", (value or "").replace(",", ""))


def parse_int(value: Optional[str], default: int, minimum: Optional[int] = None) -> int:
    """Return ``value`` as ``int`` or ``default`` if it cannot be parsed.

    Values below ``minimum`` are treated as malformed.
    """

    text = _sanitize_number(value)
    try:
        result = int(text)
    except ValueError:
        return default
    if minimum is not None and result < minimum:
        return default
    return result


def parse_decimal(value: Optional[str], default: float = 0.0) -> float:
    """Return ``value`` as ``float`` ignoring ``$`` and ``,`` characters."""

    text = _sanitize_number(value)
    try:
        result = Decimal(text)
    except InvalidOperation:
        return default
    if not result.is_finite():
        return default
    return float(result)


def get_field(row: Mapping[str, str], column: str, default: str = "") -> str:
    """Return the trimmed value of ``column`` from a normalised row.

    Blank values yield ``default``.
    """

    value = (row.get(norm_header(column)) or "").strip()
    return value or default


def iter_rows(source: Union[str, IO[str]]) -> Iterator[tuple[int, dict[str, str]]]:
    """Yield ``(row_number, row)`` for every non-blank data line of ``source``.

    ``source`` is a path or an open text stream.  Row keys are normalised
    with :func:`norm_header`; row numbers count data lines from ``1``.
    """

    if isinstance(source, str):
        with open(source, encoding="utf-8-sig", newline="") as f:
            yield from iter_rows(f)
        return

    reader = csv.reader(source)
    header = next(reader, None)
    if header is None:
        return
    columns = [norm_header(name) for name in header]
    logger.debug("Found %d columns", len(columns))

    row_number = 0
    for fields in reader:
        if not any(field.strip() for field in fields):
            continue
        row_number += 1
        row: dict[str, str] = {}
        for idx, name in enumerate(columns):
            if name and idx < len(fields) and name not in row:
                row[name] = fields[idx]
        yield row_number, row


def read_rows(text: str) -> list[tuple[int, dict[str, str]]]:
    """Parse CSV ``text`` held in memory."""

    return list(iter_rows(io.StringIO(text)))
