from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from ..aggregation import ChartPoint, DocumentsReport, MoneySummary, TablesReport, summarize_documents, summarize_tables
from ..context import SessionContext
from ..deps import get_session_context, get_store
from ..exports import export_analytics
from ..store import LedgerStore
from ..tables import TableService

router = APIRouter(prefix="/analytics", tags=["analytics"])


class SummaryOut(BaseModel):
    revenue: float
    expense: float
    net: float


class PointOut(BaseModel):
    key: str
    label: str
    revenue: float
    expense: float


class TableAnalyticsOut(BaseModel):
    id: int
    name: str
    row_count: int
    summary: SummaryOut


class StatusOut(BaseModel):
    label: str
    count: int
    total: float


class DocumentsOut(BaseModel):
    invoices: int
    quotations: int
    bills: int
    summary: SummaryOut
    statuses: list[StatusOut]
    series: list[PointOut]


class AnalyticsOut(BaseModel):
    currency_code: str
    summary: SummaryOut
    series: list[PointOut]
    tables: list[TableAnalyticsOut]
    documents: DocumentsOut


def _summary(summary: MoneySummary) -> SummaryOut:
    return SummaryOut(revenue=summary.revenue, expense=summary.expense, net=summary.net)


def _points(points: list[ChartPoint]) -> list[PointOut]:
    return [PointOut(key=p.key, label=p.label, revenue=p.revenue, expense=p.expense) for p in points]


def _build_reports(store: LedgerStore, ctx: SessionContext) -> tuple[TablesReport, DocumentsReport]:
    today = datetime.now(timezone.utc).astimezone(ctx.timezone).date()
    tables_report = summarize_tables(TableService(store).load_tables(), tz=ctx.timezone, today=today)
    documents_report = summarize_documents(store.list_documents(), tz=ctx.timezone, today=today)
    return tables_report, documents_report


@router.get("", response_model=AnalyticsOut)
def analytics(
    store: LedgerStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context),
) -> AnalyticsOut:
    tables_report, documents_report = _build_reports(store, ctx)
    return AnalyticsOut(
        currency_code=ctx.currency_code,
        summary=_summary(tables_report.summary),
        series=_points(tables_report.series),
        tables=[
            TableAnalyticsOut(id=t.id, name=t.name, row_count=t.row_count, summary=_summary(t.summary))
            for t in tables_report.tables
        ],
        documents=DocumentsOut(
            invoices=documents_report.invoices,
            quotations=documents_report.quotations,
            bills=documents_report.bills,
            summary=_summary(documents_report.summary),
            statuses=[StatusOut(label=s.label, count=s.count, total=s.total) for s in documents_report.statuses],
            series=_points(documents_report.series),
        ),
    )


@router.get("/report.pdf")
def analytics_report(
    store: LedgerStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context),
) -> Response:
    tables_report, documents_report = _build_reports(store, ctx)
    artifact = export_analytics(tables_report, ctx, documents_report)
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": artifact.content_disposition},
    )
