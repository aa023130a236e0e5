"""
Type-aware conversion of raw cell input.

Every function here is total: malformed input degrades to the column type's
zero value instead of raising. Stored values are what goes into
``TableRow.row_data`` (``""``, a float, an ISO date string or text);
``CellValue`` is the typed projection used for display, search and sums.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Union

StoredValue = Union[str, float]


class ColumnType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    CURRENCY = "currency"
    DATE = "date"

    @classmethod
    def parse(cls, value: Any) -> "ColumnType":
        """Lenient lookup used when reading columns back from storage."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.TEXT

    @property
    def is_numeric(self) -> bool:
        return self in (ColumnType.NUMBER, ColumnType.CURRENCY)


class CellKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    EMPTY = "empty"


@dataclass(frozen=True)
class CellValue:
    kind: CellKind
    value: str | float | date | None = None

    @property
    def is_empty(self) -> bool:
        return self.kind is CellKind.EMPTY

    def as_number(self) -> float:
        if self.kind is CellKind.NUMBER:
            return float(self.value)
        return 0.0

    def stored(self) -> StoredValue:
        if self.kind is CellKind.EMPTY:
            return ""
        if self.kind is CellKind.DATE:
            return self.value.isoformat()
        return self.value

    def as_text(self) -> str:
        return display_text(self.stored())


EMPTY = CellValue(CellKind.EMPTY)

_NUMBER_NOISE = re.compile(r"[,\s₹$€£]")
_RS_PREFIX = re.compile(r"^\s*rs\.?\s*", re.IGNORECASE)

# Tried in order after ISO parsing. Month-first wins for ambiguous slashes.
_DATE_FORMATS = (
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%Y/%m/%d",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d %Y",
)

DISPLAY_DATE_FORMAT = "%d %b %Y"


def is_blank(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())


def to_number(raw: Any) -> float:
    """Permissive numeric parse; anything unusable is 0."""
    if is_blank(raw) or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        try:
            value = float(raw)
        except OverflowError:
            return 0.0
        return value if math.isfinite(value) else 0.0
    cleaned = _NUMBER_NOISE.sub("", _RS_PREFIX.sub("", str(raw)))
    try:
        value = float(cleaned)
    except (ValueError, OverflowError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def parse_date(raw: Any) -> date | None:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if is_blank(raw) or isinstance(raw, (bool, int, float)):
        return None
    text = str(raw).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def normalize_date(raw: Any) -> str:
    """``YYYY-MM-DD`` for valid input, ``""`` otherwise."""
    parsed = parse_date(raw)
    return parsed.isoformat() if parsed else ""


def display_text(stored: Any) -> str:
    """Comparable display string of a stored value (used by search)."""
    if stored is None:
        return ""
    if isinstance(stored, bool):
        return str(stored).lower()
    if isinstance(stored, float):
        if not math.isfinite(stored):
            return ""
        return str(int(stored)) if stored.is_integer() else repr(stored)
    if isinstance(stored, int):
        try:
            return str(stored)
        except ValueError:
            # past the interpreter's integer string conversion limit
            return ""
    return str(stored)


def coerce(raw: Any, column_type: ColumnType | str) -> CellValue:
    column_type = ColumnType.parse(column_type)
    if column_type.is_numeric:
        if is_blank(raw):
            return EMPTY
        return CellValue(CellKind.NUMBER, to_number(raw))
    if column_type is ColumnType.DATE:
        parsed = parse_date(raw)
        return CellValue(CellKind.DATE, parsed) if parsed else EMPTY
    text = display_text(raw)
    return CellValue(CellKind.TEXT, text) if text else EMPTY


def to_storage(raw: Any, column_type: ColumnType | str) -> StoredValue:
    return coerce(raw, column_type).stored()


def format_date(stored: Any) -> str:
    parsed = parse_date(stored)
    return parsed.strftime(DISPLAY_DATE_FORMAT) if parsed else ""
