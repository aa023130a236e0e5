"""
Persistence for tables, columns, rows, documents and branding.

Every query is scoped to one owning user; records belonging to someone else
are indistinguishable from missing ones. Writers only stage changes on the
session; callers wrap a whole operation in ``transaction()`` so that a failure
rolls everything back.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import NotFoundError, StoreError
from .models import Branding, Document, TableColumn, TableRow, UserTable

logger = logging.getLogger(__name__)


class LedgerStore:
    def __init__(self, db: Session, user_id: int):
        self.db = db
        self.user_id = user_id

    @contextmanager
    def transaction(self, action: str) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Store failure during %s for user %s", action, self.user_id, exc_info=True)
            message = str(getattr(exc, "orig", None) or exc)
            raise StoreError(f"{action} failed: {message}") from exc
        except Exception:
            self.db.rollback()
            raise

    # ── tables ────────────────────────────────────────────────────────────

    def list_tables(self) -> list[UserTable]:
        stmt = (
            select(UserTable)
            .where(UserTable.user_id == self.user_id)
            .order_by(UserTable.created_at, UserTable.id)
        )
        return list(self.db.scalars(stmt))

    def get_table(self, table_id: int) -> UserTable:
        table = self.db.scalar(
            select(UserTable).where(UserTable.id == table_id, UserTable.user_id == self.user_id)
        )
        if table is None:
            raise NotFoundError("Table", table_id)
        return table

    def add_table(self, name: str) -> UserTable:
        table = UserTable(user_id=self.user_id, name=name)
        self.db.add(table)
        self.db.flush()
        return table

    def delete_table(self, table: UserTable) -> None:
        # children first; the backing database may not cascade
        self.db.execute(delete(TableRow).where(TableRow.table_id == table.id))
        self.db.execute(delete(TableColumn).where(TableColumn.table_id == table.id))
        self.db.delete(table)
        self.db.flush()

    def row_counts(self, table_ids: Iterable[int]) -> dict[int, int]:
        ids = list(table_ids)
        if not ids:
            return {}
        stmt = (
            select(TableRow.table_id, func.count(TableRow.id))
            .where(TableRow.table_id.in_(ids))
            .group_by(TableRow.table_id)
        )
        counts = {table_id: 0 for table_id in ids}
        counts.update({table_id: count for table_id, count in self.db.execute(stmt)})
        return counts

    # ── columns ───────────────────────────────────────────────────────────

    def list_columns(self, table_ids: int | Iterable[int]) -> list[TableColumn]:
        ids = [table_ids] if isinstance(table_ids, int) else list(table_ids)
        if not ids:
            return []
        stmt = (
            select(TableColumn)
            .join(UserTable, UserTable.id == TableColumn.table_id)
            .where(TableColumn.table_id.in_(ids), UserTable.user_id == self.user_id)
            .order_by(TableColumn.created_at, TableColumn.id)
        )
        return list(self.db.scalars(stmt))

    def get_column(self, column_id: int) -> TableColumn:
        column = self.db.scalar(
            select(TableColumn)
            .join(UserTable, UserTable.id == TableColumn.table_id)
            .where(TableColumn.id == column_id, UserTable.user_id == self.user_id)
        )
        if column is None:
            raise NotFoundError("Column", column_id)
        return column

    def add_column(self, table: UserTable, name: str, column_type: str) -> TableColumn:
        column = TableColumn(table_id=table.id, name=name, type=column_type)
        self.db.add(column)
        self.db.flush()
        return column

    def delete_column(self, column: TableColumn) -> None:
        self.db.delete(column)
        self.db.flush()

    # ── rows ──────────────────────────────────────────────────────────────

    def list_rows(self, table_ids: int | Iterable[int]) -> list[TableRow]:
        ids = [table_ids] if isinstance(table_ids, int) else list(table_ids)
        if not ids:
            return []
        stmt = (
            select(TableRow)
            .join(UserTable, UserTable.id == TableRow.table_id)
            .where(TableRow.table_id.in_(ids), UserTable.user_id == self.user_id)
            .order_by(TableRow.created_at, TableRow.id)
        )
        return list(self.db.scalars(stmt))

    def get_row(self, row_id: int) -> TableRow:
        row = self.db.scalar(
            select(TableRow)
            .join(UserTable, UserTable.id == TableRow.table_id)
            .where(TableRow.id == row_id, UserTable.user_id == self.user_id)
        )
        if row is None:
            raise NotFoundError("Row", row_id)
        return row

    def add_row(self, table: UserTable, row_data: dict[str, Any]) -> TableRow:
        row = TableRow(table_id=table.id, row_data=row_data)
        self.db.add(row)
        self.db.flush()
        return row

    def set_row_data(self, row: TableRow, row_data: dict[str, Any]) -> None:
        # assign a fresh dict so the JSON column is marked dirty
        row.row_data = dict(row_data)

    def delete_row(self, row: TableRow) -> None:
        self.db.delete(row)
        self.db.flush()

    # ── documents ─────────────────────────────────────────────────────────

    def list_documents(self) -> list[Document]:
        stmt = (
            select(Document)
            .where(Document.user_id == self.user_id)
            .order_by(Document.created_at.desc(), Document.id.desc())
        )
        return list(self.db.scalars(stmt))

    def get_document(self, document_id: int) -> Document:
        document = self.db.scalar(
            select(Document).where(Document.id == document_id, Document.user_id == self.user_id)
        )
        if document is None:
            raise NotFoundError("Document", document_id)
        return document

    def add_document(self, **fields: Any) -> Document:
        document = Document(user_id=self.user_id, **fields)
        self.db.add(document)
        self.db.flush()
        return document

    def update_document(self, document: Document, **fields: Any) -> Document:
        for key, value in fields.items():
            setattr(document, key, value)
        self.db.flush()
        return document

    def delete_document(self, document: Document) -> None:
        self.db.delete(document)
        self.db.flush()

    # ── branding ──────────────────────────────────────────────────────────

    def get_branding(self) -> Branding | None:
        return self.db.get(Branding, self.user_id)

    def upsert_branding(self, **fields: Any) -> Branding:
        branding = self.get_branding()
        if branding is None:
            branding = Branding(user_id=self.user_id)
            self.db.add(branding)
        for key, value in fields.items():
            setattr(branding, key, value)
        self.db.flush()
        return branding
