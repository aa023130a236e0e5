from datetime import datetime, timezone

from fastapi.testclient import TestClient


def _table(client: TestClient, headers: dict[str, str], name: str, columns: list[tuple[str, str]],
           rows: list[list]) -> int:
    table_id = client.post("/tables", json={"name": name}, headers=headers).json()["id"]
    column_ids = [
        client.post(f"/tables/{table_id}/columns", json={"name": col_name, "type": col_type},
                    headers=headers).json()["id"]
        for col_name, col_type in columns
    ]
    for values in rows:
        row_id = client.post(f"/tables/{table_id}/rows", headers=headers).json()["id"]
        for column_id, value in zip(column_ids, values):
            client.patch(f"/rows/{row_id}/cells", json={"column": column_id, "value": value}, headers=headers)
    return table_id


def test_analytics_summary(client: TestClient, auth_headers: dict[str, str]) -> None:
    _table(client, auth_headers, "Sales", [("Amount", "currency"), ("Item", "text")],
           [["100", "Pen"], ["250.50", "Book"]])
    _table(client, auth_headers, "Office", [("Rent", "currency"), ("Qty", "number")], [["80", "3"]])
    client.post("/documents", json={
        "type": "bill", "doc_no": "B-1", "customer_name": "Landlord",
        "items": [{"description": "Repairs", "qty": 1, "rate": 20}],
    }, headers=auth_headers)

    data = client.get("/analytics", headers=auth_headers).json()
    assert data["currency_code"] == "INR"
    assert data["summary"] == {"revenue": 350.5, "expense": 80.0, "net": 270.5}
    assert [t["name"] for t in data["tables"]] == ["Sales", "Office"]
    today = datetime.now(timezone.utc).date().isoformat()
    assert data["series"][-1]["key"] == today
    assert data["series"][-1]["revenue"] == 350.5

    documents = data["documents"]
    assert documents["bills"] == 1
    assert documents["summary"] == {"revenue": 0.0, "expense": 20.0, "net": -20.0}
    assert documents["statuses"] == [{"label": "draft", "count": 1, "total": 20.0}]


def test_analytics_empty(client: TestClient, auth_headers: dict[str, str]) -> None:
    data = client.get("/analytics", headers=auth_headers).json()
    assert data["summary"] == {"revenue": 0.0, "expense": 0.0, "net": 0.0}
    assert data["tables"] == []
    assert len(data["series"]) == 1


def test_analytics_report_pdf(client: TestClient, auth_headers: dict[str, str]) -> None:
    _table(client, auth_headers, "Sales", [("Amount", "currency")], [["100"]])
    response = client.get("/analytics/report.pdf", headers=auth_headers)
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert "Ledgerly-Analytics-" in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")
