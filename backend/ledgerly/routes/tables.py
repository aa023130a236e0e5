from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from ..aggregation import column_totals
from ..coercion import ColumnType
from ..context import SessionContext
from ..deps import get_session_context, get_store
from ..exports import ExportFormat, export_table
from ..formatting import format_money, format_number
from ..models import TableColumn, TableRow, UserTable
from ..query import CountCondition, MatchMode, SortDirection, SortSpec, TableView, count_matching
from ..store import LedgerStore
from ..tables import TableService, row_by_name

router = APIRouter(tags=["tables"])


def get_table_service(store: LedgerStore = Depends(get_store)) -> TableService:
    return TableService(store)


class TableIn(BaseModel):
    name: str = ""


class ColumnIn(BaseModel):
    name: str = ""
    type: str = ColumnType.TEXT.value


class CellIn(BaseModel):
    column: int | str
    value: Any = None


class ConditionIn(BaseModel):
    column: str = ""
    criteria: str = ""


class CountIn(BaseModel):
    conditions: list[ConditionIn] = Field(default_factory=list)
    mode: MatchMode = MatchMode.CONTAINS


class TableOut(BaseModel):
    id: int
    name: str
    row_count: int = 0
    created_at: datetime | None = None


class ColumnOut(BaseModel):
    id: int
    table_id: int
    name: str
    type: str


class RowOut(BaseModel):
    id: int
    table_id: int
    values: dict[str, Any]
    by_name: dict[str, Any]
    created_at: datetime | None = None


class TotalOut(BaseModel):
    column_id: int
    name: str
    value: float
    display: str


class TableDetailOut(BaseModel):
    table: TableOut
    columns: list[ColumnOut]
    rows: list[RowOut]
    totals: list[TotalOut]
    search: str = ""
    sort_column: int | None = None
    direction: SortDirection = SortDirection.ASC


class CountOut(BaseModel):
    count: int


def _table_out(table: UserTable, row_count: int = 0) -> TableOut:
    return TableOut(id=table.id, name=table.name, row_count=row_count, created_at=table.created_at)


def _column_out(column: TableColumn) -> ColumnOut:
    return ColumnOut(id=column.id, table_id=column.table_id, name=column.name, type=column.type)


def _row_out(row: TableRow, columns: list[TableColumn]) -> RowOut:
    return RowOut(
        id=row.id,
        table_id=row.table_id,
        values=dict(row.row_data or {}),
        by_name=row_by_name(row, columns),
        created_at=row.created_at,
    )


@router.get("/tables", response_model=list[TableOut])
def list_tables(service: TableService = Depends(get_table_service)) -> list[TableOut]:
    return [
        TableOut(id=t.id, name=t.name, row_count=t.row_count, created_at=t.created_at)
        for t in service.list_tables()
    ]


@router.post("/tables", response_model=TableOut, status_code=status.HTTP_201_CREATED)
def create_table(payload: TableIn, service: TableService = Depends(get_table_service)) -> TableOut:
    return _table_out(service.create_table(payload.name))


@router.get("/tables/{table_id}", response_model=TableDetailOut)
def get_table(
    table_id: int,
    q: str = "",
    sort: int | None = None,
    direction: SortDirection = SortDirection.ASC,
    service: TableService = Depends(get_table_service),
    ctx: SessionContext = Depends(get_session_context),
) -> TableDetailOut:
    snapshot = service.load_table(table_id)
    view = TableView(snapshot.rows, snapshot.columns, q, SortSpec(sort, direction))
    totals = column_totals(snapshot.rows, snapshot.columns)
    by_id = {column.id: column for column in snapshot.columns}
    return TableDetailOut(
        table=_table_out(snapshot.table, len(snapshot.rows)),
        columns=[_column_out(column) for column in snapshot.columns],
        rows=[_row_out(row, snapshot.columns) for row in view],
        totals=[
            TotalOut(
                column_id=column_id,
                name=by_id[column_id].name,
                value=value,
                display=(format_money(value, ctx.currency_code)
                         if ColumnType.parse(by_id[column_id].type) is ColumnType.CURRENCY
                         else format_number(value, ctx.currency_code)),
            )
            for column_id, value in totals.items()
        ],
        search=q,
        sort_column=sort,
        direction=direction,
    )


@router.patch("/tables/{table_id}", response_model=TableOut)
def rename_table(table_id: int, payload: TableIn, service: TableService = Depends(get_table_service)) -> TableOut:
    return _table_out(service.rename_table(table_id, payload.name))


@router.delete("/tables/{table_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_table(table_id: int, service: TableService = Depends(get_table_service)) -> Response:
    service.delete_table(table_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/tables/{table_id}/columns", response_model=ColumnOut, status_code=status.HTTP_201_CREATED)
def add_column(table_id: int, payload: ColumnIn, service: TableService = Depends(get_table_service)) -> ColumnOut:
    return _column_out(service.add_column(table_id, payload.name, payload.type))


@router.patch("/columns/{column_id}", response_model=ColumnOut)
def update_column(column_id: int, payload: ColumnIn, service: TableService = Depends(get_table_service)) -> ColumnOut:
    return _column_out(service.update_column(column_id, payload.name, payload.type))


@router.delete("/columns/{column_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_column(column_id: int, service: TableService = Depends(get_table_service)) -> Response:
    service.delete_column(column_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/tables/{table_id}/rows", response_model=RowOut, status_code=status.HTTP_201_CREATED)
def add_row(table_id: int, service: TableService = Depends(get_table_service)) -> RowOut:
    row = service.add_row(table_id)
    return _row_out(row, service.store.list_columns(table_id))


@router.patch("/rows/{row_id}/cells", response_model=RowOut)
def update_cell(row_id: int, payload: CellIn, service: TableService = Depends(get_table_service)) -> RowOut:
    row = service.update_cell(row_id, payload.column, payload.value)
    return _row_out(row, service.store.list_columns(row.table_id))


@router.delete("/rows/{row_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_row(row_id: int, service: TableService = Depends(get_table_service)) -> Response:
    service.delete_row(row_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/tables/{table_id}/count", response_model=CountOut)
def count_rows(table_id: int, payload: CountIn, service: TableService = Depends(get_table_service)) -> CountOut:
    snapshot = service.load_table(table_id)
    conditions = [CountCondition(c.column, c.criteria) for c in payload.conditions]
    return CountOut(count=count_matching(snapshot.rows, snapshot.columns, conditions, payload.mode))


@router.get("/tables/{table_id}/export")
def export(
    table_id: int,
    fmt: ExportFormat = Query(ExportFormat.PDF),
    q: str = "",
    sort: int | None = None,
    direction: SortDirection = SortDirection.ASC,
    service: TableService = Depends(get_table_service),
    ctx: SessionContext = Depends(get_session_context),
) -> Response:
    snapshot = service.load_table(table_id)
    artifact = export_table(snapshot, ctx, fmt, search=q, sort=SortSpec(sort, direction))
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": artifact.content_disposition},
    )
