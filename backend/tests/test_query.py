from datetime import datetime, timedelta, timezone

import pytest

from ledgerly.errors import ValidationError
from ledgerly.models import TableColumn, TableRow
from ledgerly.query import (
    CountCondition,
    Direction,
    MatchMode,
    SortDirection,
    SortSpec,
    TableView,
    build_view,
    count_matching,
    filter_rows,
    next_cell,
    sort_rows,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _column(id_: int, name: str, type_: str) -> TableColumn:
    return TableColumn(id=id_, table_id=1, name=name, type=type_)


def _row(id_: int, **values) -> TableRow:
    return TableRow(id=id_, table_id=1, row_data={str(k[1:]): v for k, v in values.items()},
                    created_at=T0 + timedelta(minutes=id_))


ITEM = _column(1, "Item", "text")
AMOUNT = _column(2, "Amount", "currency")
CITY = _column(3, "City", "text")
COLUMNS = [ITEM, AMOUNT, CITY]

ROWS = [
    _row(1, c1="Pen", c2=100.0, c3="Pune"),
    _row(2, c1="book", c2=250.5, c3="Delhi"),
    _row(3, c1="Book", c2="", c3="Pune"),
    _row(4, c1="Apple", c2=100.0, c3="Mumbai"),
]


def _ids(rows) -> list[int]:
    return [row.id for row in rows]


def test_search_is_case_insensitive_substring() -> None:
    assert _ids(filter_rows(ROWS, COLUMNS, "BOOK")) == [2, 3]
    assert _ids(filter_rows(ROWS, COLUMNS, "250")) == [2]
    assert _ids(filter_rows(ROWS, COLUMNS, "   ")) == [1, 2, 3, 4]


def test_longer_search_never_grows_the_view() -> None:
    shorter = set(_ids(filter_rows(ROWS, COLUMNS, "pu")))
    longer = set(_ids(filter_rows(ROWS, COLUMNS, "pun")))
    assert longer <= shorter


def test_numeric_sort_treats_blank_as_zero() -> None:
    ordered = sort_rows(ROWS, COLUMNS, SortSpec(AMOUNT.id, SortDirection.ASC))
    assert _ids(ordered) == [3, 1, 4, 2]


def test_equal_keys_keep_creation_order() -> None:
    ordered = sort_rows(ROWS, COLUMNS, SortSpec(CITY.id))
    assert _ids(ordered) == [2, 4, 1, 3]


def test_descending_is_exact_reverse_of_ascending() -> None:
    for column in COLUMNS:
        asc = sort_rows(ROWS, COLUMNS, SortSpec(column.id, SortDirection.ASC))
        desc = sort_rows(ROWS, COLUMNS, SortSpec(column.id, SortDirection.DESC))
        assert _ids(desc) == list(reversed(_ids(asc)))


def test_text_sort_is_case_insensitive() -> None:
    ordered = sort_rows(ROWS, COLUMNS, SortSpec(ITEM.id))
    assert _ids(ordered) == [4, 3, 2, 1]


def test_unknown_sort_column_keeps_order() -> None:
    assert _ids(sort_rows(ROWS, COLUMNS, SortSpec(99))) == [1, 2, 3, 4]
    assert _ids(sort_rows(ROWS, COLUMNS, SortSpec.none())) == [1, 2, 3, 4]


def test_toggle() -> None:
    spec = SortSpec.none().toggle(AMOUNT.id)
    assert spec == SortSpec(AMOUNT.id, SortDirection.ASC)
    assert spec.toggle(AMOUNT.id).direction is SortDirection.DESC
    assert spec.toggle(AMOUNT.id).toggle(AMOUNT.id).direction is SortDirection.ASC
    assert spec.toggle(ITEM.id) == SortSpec(ITEM.id, SortDirection.ASC)


def test_view_is_repeatable() -> None:
    view = TableView(ROWS, COLUMNS, "pune", SortSpec(ITEM.id, SortDirection.DESC))
    assert _ids(view) == _ids(view) == [1, 3]
    assert len(view) == 2
    assert _ids(build_view(ROWS, COLUMNS, "pune", SortSpec(ITEM.id, SortDirection.DESC))) == [1, 3]


def test_count_contains_and_equals() -> None:
    city_pune = CountCondition("City", "pune")
    assert count_matching(ROWS, COLUMNS, [city_pune]) == 2
    assert count_matching(ROWS, COLUMNS, [city_pune, CountCondition("Item", "oo")]) == 1
    assert count_matching(ROWS, COLUMNS, [CountCondition("City", "pun")], MatchMode.EQUALS) == 0
    assert count_matching(ROWS, COLUMNS, [CountCondition("City", "PUNE")], MatchMode.EQUALS) == 2


def test_count_ignores_blank_conditions() -> None:
    conditions = [CountCondition("", "x"), CountCondition("City", " "), CountCondition("City", "delhi")]
    assert count_matching(ROWS, COLUMNS, conditions) == 1


def test_count_requires_a_condition() -> None:
    with pytest.raises(ValidationError, match="Add at least 1 condition"):
        count_matching(ROWS, COLUMNS, [CountCondition("City", "")])


def test_count_on_missing_column_matches_nothing() -> None:
    assert count_matching(ROWS, COLUMNS, [CountCondition("Ghost", "a")]) == 0


def test_next_cell_moves_and_clamps() -> None:
    view = ROWS
    assert next_cell(view, COLUMNS, (1, ITEM.id), Direction.RIGHT) == (1, AMOUNT.id)
    assert next_cell(view, COLUMNS, (1, ITEM.id), Direction.LEFT) == (1, ITEM.id)
    assert next_cell(view, COLUMNS, (1, ITEM.id), Direction.UP) == (1, ITEM.id)
    assert next_cell(view, COLUMNS, (1, CITY.id), Direction.DOWN) == (2, CITY.id)
    assert next_cell(view, COLUMNS, (4, CITY.id), Direction.DOWN) == (4, CITY.id)
    assert next_cell(view, COLUMNS, (4, CITY.id), Direction.RIGHT) == (4, CITY.id)


def test_next_cell_follows_the_view() -> None:
    view = sort_rows(ROWS, COLUMNS, SortSpec(AMOUNT.id, SortDirection.DESC))
    assert next_cell(view, COLUMNS, (view[0].id, ITEM.id), Direction.DOWN) == (view[1].id, ITEM.id)


def test_next_cell_unknown_position() -> None:
    assert next_cell(ROWS, COLUMNS, (99, ITEM.id), Direction.DOWN) is None
    assert next_cell(ROWS, COLUMNS, (1, 99), Direction.DOWN) is None
