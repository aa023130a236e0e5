"""
Downloadable artifacts for tables, documents and the analytics report.

Row content always follows the caller's current view (search + sort) while
totals are computed over the whole table.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from urllib.parse import quote

from .aggregation import DocumentsReport, TablesReport, column_totals
from .config import settings
from .context import SessionContext
from .documents import DocumentDraft, document_title
from .errors import ValidationError
from .formatting import safe_file_name
from .models import Branding
from .pdf_utils import generate_analytics_pdf, generate_document_pdf, generate_table_pdf, load_logo
from .query import SortSpec, build_view
from .spreadsheet import generate_table_xlsx
from .tables import TableSnapshot

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class ExportFormat(str, Enum):
    PDF = "pdf"
    XLSX = "xlsx"


@dataclass(frozen=True)
class ExportArtifact:
    filename: str
    media_type: str
    content: bytes

    @property
    def content_disposition(self) -> str:
        fallback = self.filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
        return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(self.filename)}"


def _local_now(ctx: SessionContext) -> datetime:
    return datetime.now(timezone.utc).astimezone(ctx.timezone)


def export_table(snapshot: TableSnapshot, ctx: SessionContext, fmt: ExportFormat | str = ExportFormat.PDF,
                 search: str | None = None, sort: SortSpec | None = None) -> ExportArtifact:
    fmt = ExportFormat(fmt)
    if not snapshot.columns:
        raise ValidationError("No columns to export")

    view_rows = build_view(snapshot.rows, snapshot.columns, search, sort)
    totals = column_totals(snapshot.rows, snapshot.columns)
    show_totals = bool(snapshot.rows)
    base_name = f"{settings.brand_name}-{safe_file_name(snapshot.table.name)}"

    if fmt is ExportFormat.XLSX:
        content = generate_table_xlsx(snapshot.columns, view_rows, totals, show_totals=show_totals)
        artifact = ExportArtifact(f"{base_name}.xlsx", XLSX_MEDIA_TYPE, content)
    else:
        buffer = generate_table_pdf(
            snapshot.table.name,
            snapshot.columns,
            view_rows,
            totals,
            currency_code=ctx.currency_code,
            show_totals=show_totals,
            generated_at=_local_now(ctx),
            watermark=not ctx.is_premium,
        )
        artifact = ExportArtifact(f"{base_name}.pdf", PDF_MEDIA_TYPE, buffer.getvalue())
    logger.info("Exported table %s as %s (%d of %d rows)",
                snapshot.table.id, fmt.value, len(view_rows), len(snapshot.rows))
    return artifact


def export_document(draft: DocumentDraft, ctx: SessionContext, branding: Branding | None = None,
                    created_at: datetime | None = None) -> ExportArtifact:
    logo = load_logo(branding.logo_url) if branding is not None else None
    if created_at is None:
        created_at = _local_now(ctx)
    elif created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc).astimezone(ctx.timezone)
    buffer = generate_document_pdf(
        draft,
        branding=branding,
        created_at=created_at,
        watermark=not ctx.is_premium,
        logo=logo,
    )
    filename = f"{document_title(draft.type)}-{safe_file_name(draft.doc_no, fallback='document')}.pdf"
    return ExportArtifact(filename, PDF_MEDIA_TYPE, buffer.getvalue())


def export_analytics(tables_report: TablesReport, ctx: SessionContext,
                     documents_report: DocumentsReport | None = None) -> ExportArtifact:
    buffer = generate_analytics_pdf(
        tables_report,
        documents_report,
        currency_code=ctx.currency_code,
        generated_at=_local_now(ctx),
        watermark=not ctx.is_premium,
    )
    filename = f"{settings.brand_name}-Analytics-{_local_now(ctx):%Y-%m-%d}.pdf"
    return ExportArtifact(filename, PDF_MEDIA_TYPE, buffer.getvalue())
