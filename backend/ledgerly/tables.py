"""
Dynamic typed tables: columns, rows and the invariants that tie them.

Row values are keyed by column id. Renaming a column therefore never moves
data; retyping re-coerces every row's value in place. Whenever a column
exists, every row of its table carries a value for it (``""`` when empty).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .coercion import ColumnType, CellValue, StoredValue, coerce, to_storage
from .errors import NotFoundError, ValidationError
from .models import TableColumn, TableRow, UserTable
from .store import LedgerStore

logger = logging.getLogger(__name__)


def row_value(row: TableRow, column: TableColumn) -> StoredValue:
    return (row.row_data or {}).get(column.key, "")


def cell(row: TableRow, column: TableColumn) -> CellValue:
    return coerce(row_value(row, column), column.type)


def row_by_name(row: TableRow, columns: list[TableColumn]) -> dict[str, StoredValue]:
    """Name-keyed projection of a row, in column order."""
    return {column.name: row_value(row, column) for column in columns}


def empty_row_data(columns: list[TableColumn]) -> dict[str, StoredValue]:
    return {column.key: "" for column in columns}


def find_column(columns: list[TableColumn], ref: int | str) -> TableColumn:
    """Look a column up by id (int) or by display name (str)."""
    for column in columns:
        if isinstance(ref, int) and column.id == ref:
            return column
        if isinstance(ref, str) and column.name == ref:
            return column
    raise NotFoundError("Column", ref)


def _require_name(name: str | None, message: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError(message)
    return cleaned


def _require_type(column_type: Any) -> ColumnType:
    try:
        return ColumnType(str(column_type or "").strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown column type: {column_type!r}") from None


@dataclass
class TableSnapshot:
    """A table with its columns and rows, both in creation order."""

    table: UserTable
    columns: list[TableColumn] = field(default_factory=list)
    rows: list[TableRow] = field(default_factory=list)

    def column(self, ref: int | str) -> TableColumn:
        return find_column(self.columns, ref)


@dataclass
class TableSummary:
    id: int
    name: str
    row_count: int
    created_at: Any = None


class TableService:
    def __init__(self, store: LedgerStore):
        self.store = store

    # ── tables ────────────────────────────────────────────────────────────

    def list_tables(self) -> list[TableSummary]:
        tables = self.store.list_tables()
        counts = self.store.row_counts(table.id for table in tables)
        return [
            TableSummary(id=table.id, name=table.name, row_count=counts.get(table.id, 0),
                         created_at=table.created_at)
            for table in tables
        ]

    def load_table(self, table_id: int) -> TableSnapshot:
        table = self.store.get_table(table_id)
        return TableSnapshot(
            table=table,
            columns=self.store.list_columns(table.id),
            rows=self.store.list_rows(table.id),
        )

    def load_tables(self) -> list[TableSnapshot]:
        """Every table of the user, loaded with two queries."""
        tables = self.store.list_tables()
        ids = [table.id for table in tables]
        snapshots = {table.id: TableSnapshot(table=table) for table in tables}
        for column in self.store.list_columns(ids):
            snapshots[column.table_id].columns.append(column)
        for row in self.store.list_rows(ids):
            snapshots[row.table_id].rows.append(row)
        return [snapshots[table_id] for table_id in ids]

    def create_table(self, name: str | None) -> UserTable:
        name = _require_name(name, "Please enter a table name")
        with self.store.transaction("create table"):
            table = self.store.add_table(name)
        logger.info("Created table %s for user %s", table.id, self.store.user_id)
        return table

    def rename_table(self, table_id: int, name: str | None) -> UserTable:
        name = _require_name(name, "Please enter a table name")
        with self.store.transaction("rename table"):
            table = self.store.get_table(table_id)
            table.name = name
        return table

    def delete_table(self, table_id: int) -> None:
        with self.store.transaction("delete table"):
            table = self.store.get_table(table_id)
            self.store.delete_table(table)
        logger.info("Deleted table %s for user %s", table_id, self.store.user_id)

    # ── columns ───────────────────────────────────────────────────────────

    def add_column(self, table_id: int, name: str | None, column_type: Any = ColumnType.TEXT) -> TableColumn:
        name = _require_name(name, "Please enter a column name")
        column_type = _require_type(column_type)
        with self.store.transaction("add column"):
            table = self.store.get_table(table_id)
            column = self.store.add_column(table, name, column_type.value)
            rows = self.store.list_rows(table.id)
            for row in rows:
                data = dict(row.row_data or {})
                data.setdefault(column.key, "")
                self.store.set_row_data(row, data)
        logger.info("Added %s column %s to table %s (%d rows backfilled)",
                    column_type.value, column.id, table_id, len(rows))
        return column

    def delete_column(self, column_id: int) -> None:
        with self.store.transaction("delete column"):
            column = self.store.get_column(column_id)
            key = column.key
            for row in self.store.list_rows(column.table_id):
                data = dict(row.row_data or {})
                if key in data:
                    del data[key]
                    self.store.set_row_data(row, data)
            self.store.delete_column(column)

    def update_column(self, column_id: int, new_name: str | None, new_type: Any) -> TableColumn:
        new_name = _require_name(new_name, "Column name required")
        new_type = _require_type(new_type)
        with self.store.transaction("update column"):
            column = self.store.get_column(column_id)
            columns = self.store.list_columns(column.table_id)
            live_keys = {c.key for c in columns}
            column.name = new_name
            column.type = new_type.value
            for row in self.store.list_rows(column.table_id):
                data = {k: v for k, v in (row.row_data or {}).items() if k in live_keys}
                data[column.key] = to_storage(data.get(column.key, ""), new_type)
                self.store.set_row_data(row, data)
        return column

    # ── rows ──────────────────────────────────────────────────────────────

    def add_row(self, table_id: int) -> TableRow:
        with self.store.transaction("add row"):
            table = self.store.get_table(table_id)
            columns = self.store.list_columns(table.id)
            if not columns:
                raise ValidationError("Add columns first")
            row = self.store.add_row(table, empty_row_data(columns))
        return row

    def update_cell(self, row_id: int, column_ref: int | str, raw: Any) -> TableRow:
        with self.store.transaction("update cell"):
            row = self.store.get_row(row_id)
            columns = self.store.list_columns(row.table_id)
            column = find_column(columns, column_ref)
            data = dict(row.row_data or {})
            data[column.key] = to_storage(raw, column.type)
            self.store.set_row_data(row, data)
        return row

    def delete_row(self, row_id: int) -> None:
        with self.store.transaction("delete row"):
            row = self.store.get_row(row_id)
            self.store.delete_row(row)
