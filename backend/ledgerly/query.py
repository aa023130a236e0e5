"""
Read-only views over a table's rows: search, sort, condition counts and
spreadsheet-style cursor movement.

Everything here is a pure function of its inputs. ``TableView`` recomputes on
every iteration, so it can be iterated any number of times and always yields
the same order for the same rows, columns, search term and sort.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Sequence

from .coercion import ColumnType, display_text, to_number
from .errors import ValidationError
from .models import TableColumn, TableRow
from .tables import row_value


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortSpec:
    column_id: int | None = None
    direction: SortDirection = SortDirection.ASC

    @classmethod
    def none(cls) -> "SortSpec":
        return cls()

    @property
    def active(self) -> bool:
        return self.column_id is not None

    def toggle(self, column_id: int) -> "SortSpec":
        """Clicking the sorted column flips direction; another column starts ascending."""
        if self.column_id == column_id:
            flipped = SortDirection.DESC if self.direction is SortDirection.ASC else SortDirection.ASC
            return SortSpec(column_id, flipped)
        return SortSpec(column_id, SortDirection.ASC)


def row_matches(row: TableRow, columns: Sequence[TableColumn], term: str) -> bool:
    needle = term.strip().lower()
    if not needle:
        return True
    return any(needle in display_text(row_value(row, column)).lower() for column in columns)


def filter_rows(rows: Iterable[TableRow], columns: Sequence[TableColumn], search: str | None) -> list[TableRow]:
    term = (search or "").strip()
    if not term:
        return list(rows)
    return [row for row in rows if row_matches(row, columns, term)]


def _sort_key(column: TableColumn):
    if ColumnType.parse(column.type).is_numeric:
        return lambda row: to_number(row_value(row, column))

    def text_key(row: TableRow) -> tuple[str, str]:
        text = display_text(row_value(row, column))
        return text.casefold(), text

    return text_key


def sort_rows(rows: Iterable[TableRow], columns: Sequence[TableColumn], sort: SortSpec | None) -> list[TableRow]:
    ordered = list(rows)
    if sort is None or not sort.active:
        return ordered
    column = next((c for c in columns if c.id == sort.column_id), None)
    if column is None:
        return ordered
    ordered.sort(key=_sort_key(column))
    if sort.direction is SortDirection.DESC:
        ordered.reverse()
    return ordered


def build_view(rows: Iterable[TableRow], columns: Sequence[TableColumn],
               search: str | None = None, sort: SortSpec | None = None) -> list[TableRow]:
    return sort_rows(filter_rows(rows, columns, search), columns, sort)


@dataclass(frozen=True)
class TableView:
    rows: Sequence[TableRow]
    columns: Sequence[TableColumn]
    search: str = ""
    sort: SortSpec = SortSpec()

    def __iter__(self) -> Iterator[TableRow]:
        return iter(build_view(self.rows, self.columns, self.search, self.sort))

    def __len__(self) -> int:
        return len(build_view(self.rows, self.columns, self.search, self.sort))


# ── EasyCount ─────────────────────────────────────────────────────────────────


class MatchMode(str, Enum):
    CONTAINS = "contains"
    EQUALS = "equals"


@dataclass(frozen=True)
class CountCondition:
    column: str
    criteria: str


def count_matching(rows: Iterable[TableRow], columns: Sequence[TableColumn],
                   conditions: Iterable[CountCondition],
                   mode: MatchMode = MatchMode.CONTAINS) -> int:
    """Number of rows satisfying every condition (matched by column name)."""
    by_name = {column.name: column for column in columns}
    active = [
        (c.column.strip(), c.criteria.strip().lower())
        for c in conditions
        if c.column.strip() and c.criteria.strip()
    ]
    if not active:
        raise ValidationError("Add at least 1 condition")

    def matches(row: TableRow, name: str, criteria: str) -> bool:
        column = by_name.get(name)
        value = display_text(row_value(row, column)).lower() if column is not None else ""
        if mode is MatchMode.EQUALS:
            return value == criteria
        return criteria in value

    return sum(1 for row in rows if all(matches(row, name, criteria) for name, criteria in active))


# ── grid navigation ───────────────────────────────────────────────────────────


class Direction(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"


def next_cell(view_rows: Sequence[TableRow], columns: Sequence[TableColumn],
              current: tuple[int, int], direction: Direction) -> tuple[int, int] | None:
    """(row id, column id) the cursor lands on, clamped to the grid edges."""
    row_id, column_id = current
    row_index = next((i for i, row in enumerate(view_rows) if row.id == row_id), -1)
    col_index = next((i for i, column in enumerate(columns) if column.id == column_id), -1)
    if row_index < 0 or col_index < 0:
        return None

    if direction is Direction.RIGHT:
        col_index = min(col_index + 1, len(columns) - 1)
    elif direction is Direction.LEFT:
        col_index = max(col_index - 1, 0)
    elif direction is Direction.DOWN:
        row_index = min(row_index + 1, len(view_rows) - 1)
    elif direction is Direction.UP:
        row_index = max(row_index - 1, 0)
    return view_rows[row_index].id, columns[col_index].id
