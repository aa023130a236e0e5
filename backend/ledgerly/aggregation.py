"""
Column totals and revenue/expense analytics.

Totals are always taken over every row of a table, never over a filtered
view. Revenue/expense classification is a name heuristic behind a small
classifier interface so that explicit per-column overrides can be layered on
top of it.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

from .coercion import ColumnType, to_number
from .models import Document, TableColumn, TableRow
from .tables import TableSnapshot, row_value


def column_totals(rows: Iterable[TableRow], columns: Sequence[TableColumn]) -> dict[int, float]:
    """Sum of every number/currency column, keyed by column id."""
    rows = list(rows)
    return {
        column.id: math.fsum(to_number(row_value(row, column)) for row in rows)
        for column in columns
        if ColumnType.parse(column.type).is_numeric
    }


TOTAL_LABEL = "Total"


def totals_label_index(columns: Sequence[TableColumn], totals: Mapping[int, float]) -> int | None:
    """Position of the first column without a total, where the label goes."""
    for index, column in enumerate(columns):
        if column.id not in totals:
            return index
    return None


# ── classification ────────────────────────────────────────────────────────────


class Bucket(str, Enum):
    REVENUE = "revenue"
    EXPENSE = "expense"
    EXCLUDED = "excluded"


class ColumnClassifier:
    def classify(self, column_name: str) -> Bucket:
        raise NotImplementedError


AMOUNT_PATTERN = re.compile(r"(amount|revenue|income|sale|sales|price|paid|payment|total|subtotal)", re.IGNORECASE)
EXPENSE_PATTERN = re.compile(r"(expense|cost|spent|purchase|fee|charges|rent|salary|tax|gst|vat)", re.IGNORECASE)


class NamePatternClassifier(ColumnClassifier):
    """Expense-looking names are expenses, amount-looking names are revenue."""

    def __init__(self, amount_pattern: re.Pattern = AMOUNT_PATTERN,
                 expense_pattern: re.Pattern = EXPENSE_PATTERN):
        self.amount_pattern = amount_pattern
        self.expense_pattern = expense_pattern

    def classify(self, column_name: str) -> Bucket:
        name = (column_name or "").strip()
        if not name:
            return Bucket.EXCLUDED
        if self.expense_pattern.search(name):
            return Bucket.EXPENSE
        if self.amount_pattern.search(name):
            return Bucket.REVENUE
        return Bucket.EXCLUDED


class OverrideClassifier(ColumnClassifier):
    """Explicit buckets for known names (case-insensitive), else the fallback."""

    def __init__(self, overrides: Mapping[str, Bucket | str], fallback: ColumnClassifier | None = None):
        self.overrides = {name.strip().lower(): Bucket(bucket) for name, bucket in overrides.items()}
        self.fallback = fallback or NamePatternClassifier()

    def classify(self, column_name: str) -> Bucket:
        bucket = self.overrides.get((column_name or "").strip().lower())
        return bucket if bucket is not None else self.fallback.classify(column_name)


default_classifier = NamePatternClassifier()


def classify_columns(columns: Iterable[TableColumn],
                     classifier: ColumnClassifier | None = None) -> list[tuple[TableColumn, Bucket]]:
    """Number/currency columns that land in a revenue or expense bucket."""
    classifier = classifier or default_classifier
    result = []
    for column in columns:
        if not ColumnType.parse(column.type).is_numeric:
            continue
        bucket = classifier.classify(column.name)
        if bucket is not Bucket.EXCLUDED:
            result.append((column, bucket))
    return result


# ── summaries ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class MoneySummary:
    revenue: float = 0.0
    expense: float = 0.0

    @property
    def net(self) -> float:
        return self.revenue - self.expense

    def __add__(self, other: "MoneySummary") -> "MoneySummary":
        return MoneySummary(self.revenue + other.revenue, self.expense + other.expense)


def merge_summaries(summaries: Iterable[MoneySummary]) -> MoneySummary:
    items = list(summaries)
    return MoneySummary(
        revenue=math.fsum(s.revenue for s in items),
        expense=math.fsum(s.expense for s in items),
    )


@dataclass(frozen=True)
class ChartPoint:
    key: str
    label: str
    revenue: float
    expense: float


def local_day(moment: datetime | None, tz: tzinfo | None = None) -> date:
    if moment is None:
        moment = datetime.now(timezone.utc)
    if moment.tzinfo is None:
        # SQLite hands timestamps back without an offset; they are stored in UTC
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz or timezone.utc).date()


def day_label(key: str) -> str:
    return datetime.strptime(key, "%Y-%m-%d").strftime("%d %b")


class DaySeries:
    """Revenue/expense sums keyed by ``YYYY-MM-DD``."""

    def __init__(self) -> None:
        # day key -> (revenue amounts, expense amounts)
        self._days: dict[str, tuple[list[float], list[float]]] = {}

    def ensure(self, day: date) -> None:
        self._days.setdefault(day.isoformat(), ([], []))

    def add(self, day: date, bucket: Bucket, amount: float) -> None:
        self.ensure(day)
        revenue, expense = self._days[day.isoformat()]
        (revenue if bucket is Bucket.REVENUE else expense).append(amount)

    def merge(self, other: "DaySeries") -> None:
        for key, (revenue, expense) in other._days.items():
            mine = self._days.setdefault(key, ([], []))
            mine[0].extend(revenue)
            mine[1].extend(expense)

    def points(self) -> list[ChartPoint]:
        return [
            ChartPoint(
                key=key,
                label=day_label(key),
                revenue=math.fsum(self._days[key][0]),
                expense=math.fsum(self._days[key][1]),
            )
            for key in sorted(self._days)
        ]


@dataclass
class TableAnalytics:
    id: int
    name: str
    row_count: int
    summary: MoneySummary
    series: list[ChartPoint] = field(default_factory=list)

    @property
    def net(self) -> float:
        return self.summary.net


def _table_series(snapshot: TableSnapshot, classifier: ColumnClassifier | None,
                  tz: tzinfo | None) -> tuple[MoneySummary, DaySeries]:
    money_columns = classify_columns(snapshot.columns, classifier)
    series = DaySeries()
    revenue: list[float] = []
    expense: list[float] = []
    if not money_columns:
        return MoneySummary(), series
    for row in snapshot.rows:
        day = local_day(row.created_at, tz)
        series.ensure(day)
        for column, bucket in money_columns:
            amount = to_number(row_value(row, column))
            (revenue if bucket is Bucket.REVENUE else expense).append(amount)
            series.add(day, bucket, amount)
    return MoneySummary(math.fsum(revenue), math.fsum(expense)), series


def summarize_table(snapshot: TableSnapshot, classifier: ColumnClassifier | None = None,
                    tz: tzinfo | None = None, today: date | None = None) -> TableAnalytics:
    summary, series = _table_series(snapshot, classifier, tz)
    if today is not None:
        series.ensure(today)
    return TableAnalytics(
        id=snapshot.table.id,
        name=snapshot.table.name,
        row_count=len(snapshot.rows),
        summary=summary,
        series=series.points(),
    )


def daily_series(snapshot: TableSnapshot, classifier: ColumnClassifier | None = None,
                 tz: tzinfo | None = None, today: date | None = None) -> list[ChartPoint]:
    return summarize_table(snapshot, classifier, tz, today).series


@dataclass
class TablesReport:
    summary: MoneySummary
    series: list[ChartPoint]
    tables: list[TableAnalytics]


def summarize_tables(snapshots: Iterable[TableSnapshot], classifier: ColumnClassifier | None = None,
                     tz: tzinfo | None = None, today: date | None = None) -> TablesReport:
    """Per-table summaries merged by plain summation; input order is irrelevant."""
    combined = DaySeries()
    per_table = []
    for snapshot in snapshots:
        summary, series = _table_series(snapshot, classifier, tz)
        if today is not None:
            series.ensure(today)
        combined.merge(series)
        per_table.append(TableAnalytics(
            id=snapshot.table.id,
            name=snapshot.table.name,
            row_count=len(snapshot.rows),
            summary=summary,
            series=series.points(),
        ))
    if today is not None:
        combined.ensure(today)
    per_table.sort(key=lambda t: (-abs(t.net), t.id))
    return TablesReport(
        summary=merge_summaries(t.summary for t in per_table),
        series=combined.points(),
        tables=per_table,
    )


# ── documents ─────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class StatusBreakdown:
    label: str
    count: int
    total: float


@dataclass
class DocumentsReport:
    invoices: int
    quotations: int
    bills: int
    summary: MoneySummary
    statuses: list[StatusBreakdown]
    series: list[ChartPoint]


def document_grand_total(totals: Mapping[str, Any] | None) -> float:
    totals = totals or {}
    for key in ("total", "grand_total", "grandTotal"):
        if totals.get(key) not in (None, ""):
            return to_number(totals[key])
    return 0.0


def summarize_documents(documents: Iterable[Document], tz: tzinfo | None = None,
                        today: date | None = None) -> DocumentsReport:
    """Invoices and quotations count as revenue, bills as expense."""
    counts = {"invoice": 0, "quotation": 0, "bill": 0}
    revenue: list[float] = []
    expense: list[float] = []
    statuses: dict[str, list[float]] = {}
    series = DaySeries()
    for document in documents:
        total = document_grand_total(document.totals)
        doc_type = (document.type or "").lower()
        day = local_day(document.created_at, tz)
        series.ensure(day)
        statuses.setdefault((document.status or "unknown").lower(), []).append(total)
        if doc_type in counts:
            counts[doc_type] += 1
        if doc_type in ("invoice", "quotation"):
            revenue.append(total)
            series.add(day, Bucket.REVENUE, total)
        elif doc_type == "bill":
            expense.append(total)
            series.add(day, Bucket.EXPENSE, total)
    if today is not None:
        series.ensure(today)
    breakdown = sorted(
        (StatusBreakdown(label, len(totals), math.fsum(totals)) for label, totals in statuses.items()),
        key=lambda s: (-s.total, s.label),
    )
    return DocumentsReport(
        invoices=counts["invoice"],
        quotations=counts["quotation"],
        bills=counts["bill"],
        summary=MoneySummary(math.fsum(revenue), math.fsum(expense)),
        statuses=breakdown,
        series=series.points(),
    )
