from datetime import date, datetime, timezone
from itertools import permutations
from zoneinfo import ZoneInfo

from ledgerly.aggregation import (
    Bucket,
    MoneySummary,
    NamePatternClassifier,
    OverrideClassifier,
    classify_columns,
    column_totals,
    daily_series,
    document_grand_total,
    merge_summaries,
    summarize_documents,
    summarize_table,
    summarize_tables,
)
from ledgerly.models import Document, TableColumn, TableRow, UserTable
from ledgerly.tables import TableSnapshot


def _snapshot(table_id: int, name: str, columns: list[tuple[str, str]], rows: list[list], when=None) -> TableSnapshot:
    cols = [
        TableColumn(id=table_id * 100 + i, table_id=table_id, name=col_name, type=col_type)
        for i, (col_name, col_type) in enumerate(columns)
    ]
    created = when or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    row_objs = [
        TableRow(id=table_id * 1000 + i, table_id=table_id,
                 row_data={col.key: value for col, value in zip(cols, values)}, created_at=created)
        for i, values in enumerate(rows)
    ]
    return TableSnapshot(table=UserTable(id=table_id, user_id=1, name=name), columns=cols, rows=row_objs)


def sales() -> TableSnapshot:
    return _snapshot(1, "Sales", [("Amount", "currency"), ("Item", "text")], [[100.0, "Pen"], [250.5, "Book"]])


def test_sales_total() -> None:
    snapshot = sales()
    amount = snapshot.column("Amount")
    assert column_totals(snapshot.rows, snapshot.columns) == {amount.id: 350.5}


def test_empty_cells_count_as_zero() -> None:
    snapshot = _snapshot(2, "Gaps", [("Qty", "number")], [[""], [4.0], ["abc"]])
    assert list(column_totals(snapshot.rows, snapshot.columns).values()) == [4.0]


def test_sales_classification() -> None:
    buckets = {column.name: bucket for column, bucket in classify_columns(sales().columns)}
    assert buckets == {"Amount": Bucket.REVENUE}


def test_name_heuristic() -> None:
    classifier = NamePatternClassifier()
    assert classifier.classify("Sales Amount") is Bucket.REVENUE
    assert classifier.classify("Total") is Bucket.REVENUE
    assert classifier.classify("Office Rent") is Bucket.EXPENSE
    assert classifier.classify("GST Paid") is Bucket.EXPENSE
    assert classifier.classify("Quantity") is Bucket.EXCLUDED
    assert classifier.classify("") is Bucket.EXCLUDED


def test_text_columns_are_never_money() -> None:
    snapshot = _snapshot(3, "Notes", [("Payment note", "text")], [["paid"]])
    assert classify_columns(snapshot.columns) == []


def test_override_classifier() -> None:
    classifier = OverrideClassifier({"Tax Refund": "revenue", "Bonus": Bucket.EXPENSE})
    assert classifier.classify("tax refund") is Bucket.REVENUE
    assert classifier.classify("Bonus") is Bucket.EXPENSE
    assert classifier.classify("Rent") is Bucket.EXPENSE


def test_summarize_table() -> None:
    snapshot = _snapshot(4, "Shop", [("Sales", "currency"), ("Rent", "currency"), ("Qty", "number")],
                         [[1000.0, 300.0, 5.0], [500.0, "", 2.0]])
    analytics = summarize_table(snapshot)
    assert analytics.summary == MoneySummary(revenue=1500.0, expense=300.0)
    assert analytics.net == 1200.0
    assert analytics.row_count == 2


def test_daily_series_uses_local_day() -> None:
    late = datetime(2024, 5, 1, 20, 0, tzinfo=timezone.utc)
    snapshot = _snapshot(5, "Late", [("Amount", "number")], [[10.0]], when=late)
    points = daily_series(snapshot, tz=ZoneInfo("Asia/Kolkata"), today=date(2024, 5, 3))
    assert [(p.key, p.label, p.revenue) for p in points] == [
        ("2024-05-02", "02 May", 10.0),
        ("2024-05-03", "03 May", 0.0),
    ]


def test_naive_timestamps_are_utc() -> None:
    snapshot = _snapshot(6, "Naive", [("Amount", "number")], [[1.0]], when=datetime(2024, 5, 1, 23, 30))
    assert [p.key for p in daily_series(snapshot, tz=timezone.utc)] == ["2024-05-01"]


def test_merge_order_never_changes_result() -> None:
    snapshots = [
        sales(),
        _snapshot(7, "Costs", [("Cost", "currency")], [[0.1], [0.2], [0.3]]),
        _snapshot(8, "Mixed", [("Income", "number"), ("Fee", "number")], [[1e16, 1.0], [-1e16, 2.0]]),
    ]
    reports = [summarize_tables(order) for order in permutations(snapshots)]
    first = reports[0]
    for report in reports[1:]:
        assert report.summary == first.summary
        assert report.series == first.series
        assert [t.id for t in report.tables] == [t.id for t in first.tables]


def test_tables_sorted_by_absolute_net() -> None:
    report = summarize_tables([
        _snapshot(9, "Small", [("Amount", "number")], [[5.0]]),
        _snapshot(10, "Loss", [("Expense", "number")], [[50.0]]),
        _snapshot(11, "Big", [("Amount", "number")], [[20.0]]),
    ])
    assert [t.name for t in report.tables] == ["Loss", "Big", "Small"]
    assert report.summary.net == -25.0


def test_merge_summaries() -> None:
    merged = merge_summaries([MoneySummary(1, 2), MoneySummary(3, 4)])
    assert merged == MoneySummary(4, 6)
    assert MoneySummary(1, 2) + MoneySummary(3, 4) == merged


def _document(id_: int, type_: str, total, status: str = "draft") -> Document:
    return Document(id=id_, user_id=1, type=type_, doc_no=str(id_), customer_name="C",
                    totals={"total": total}, status=status,
                    created_at=datetime(2024, 5, id_, tzinfo=timezone.utc))


def test_summarize_documents() -> None:
    report = summarize_documents([
        _document(1, "invoice", 143.0, "paid"),
        _document(2, "quotation", 57.0),
        _document(3, "bill", 40.0, "paid"),
    ])
    assert (report.invoices, report.quotations, report.bills) == (1, 1, 1)
    assert report.summary == MoneySummary(revenue=200.0, expense=40.0)
    assert [(s.label, s.count, s.total) for s in report.statuses] == [("paid", 2, 183.0), ("draft", 1, 57.0)]
    assert [p.key for p in report.series] == ["2024-05-01", "2024-05-02", "2024-05-03"]


def test_document_grand_total_keys() -> None:
    assert document_grand_total({"grandTotal": "1,200"}) == 1200.0
    assert document_grand_total({"grand_total": 9}) == 9.0
    assert document_grand_total(None) == 0.0
