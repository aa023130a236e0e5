from fastapi.testclient import TestClient


def _create_sales(client: TestClient, headers: dict[str, str]) -> dict:
    table = client.post("/tables", json={"name": "Sales"}, headers=headers).json()
    amount = client.post(f"/tables/{table['id']}/columns", json={"name": "Amount", "type": "currency"},
                         headers=headers).json()
    item = client.post(f"/tables/{table['id']}/columns", json={"name": "Item", "type": "text"},
                       headers=headers).json()
    for name, value in (("Pen", "100"), ("Book", "250.50")):
        row = client.post(f"/tables/{table['id']}/rows", headers=headers).json()
        client.patch(f"/rows/{row['id']}/cells", json={"column": amount["id"], "value": value}, headers=headers)
        client.patch(f"/rows/{row['id']}/cells", json={"column": "Item", "value": name}, headers=headers)
    return {"table": table, "amount": amount, "item": item}


def test_table_lifecycle(client: TestClient, auth_headers: dict[str, str]) -> None:
    sales = _create_sales(client, auth_headers)
    table_id = sales["table"]["id"]

    listing = client.get("/tables", headers=auth_headers).json()
    assert [(t["name"], t["row_count"]) for t in listing] == [("Sales", 2)]

    detail = client.get(f"/tables/{table_id}", headers=auth_headers).json()
    assert [c["name"] for c in detail["columns"]] == ["Amount", "Item"]
    assert [r["by_name"]["Item"] for r in detail["rows"]] == ["Pen", "Book"]
    assert detail["totals"] == [
        {"column_id": sales["amount"]["id"], "name": "Amount", "value": 350.5, "display": "₹350.5"}
    ]

    renamed = client.patch(f"/tables/{table_id}", json={"name": "Shop"}, headers=auth_headers)
    assert renamed.json()["name"] == "Shop"

    assert client.delete(f"/tables/{table_id}", headers=auth_headers).status_code == 204
    assert client.get(f"/tables/{table_id}", headers=auth_headers).status_code == 404


def test_search_and_sort_view(client: TestClient, auth_headers: dict[str, str]) -> None:
    sales = _create_sales(client, auth_headers)
    table_id = sales["table"]["id"]
    amount_id = sales["amount"]["id"]

    view = client.get(f"/tables/{table_id}", params={"sort": amount_id, "direction": "desc"},
                      headers=auth_headers).json()
    assert [r["by_name"]["Item"] for r in view["rows"]] == ["Book", "Pen"]

    searched = client.get(f"/tables/{table_id}", params={"q": "pen"}, headers=auth_headers).json()
    assert [r["by_name"]["Item"] for r in searched["rows"]] == ["Pen"]
    assert searched["table"]["row_count"] == 2
    assert searched["totals"][0]["value"] == 350.5


def test_column_rename_and_delete(client: TestClient, auth_headers: dict[str, str]) -> None:
    sales = _create_sales(client, auth_headers)
    amount_id = sales["amount"]["id"]
    table_id = sales["table"]["id"]

    response = client.patch(f"/columns/{amount_id}", json={"name": "Revenue", "type": "currency"},
                            headers=auth_headers)
    assert response.status_code == 200
    detail = client.get(f"/tables/{table_id}", headers=auth_headers).json()
    assert [r["by_name"]["Revenue"] for r in detail["rows"]] == [100.0, 250.5]

    assert client.delete(f"/columns/{amount_id}", headers=auth_headers).status_code == 204
    detail = client.get(f"/tables/{table_id}", headers=auth_headers).json()
    assert all(set(r["values"]) == {str(sales["item"]["id"])} for r in detail["rows"])
    assert detail["totals"] == []


def test_validation_errors(client: TestClient, auth_headers: dict[str, str]) -> None:
    response = client.post("/tables", json={"name": "  "}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json() == {"detail": "Please enter a table name"}

    table = client.post("/tables", json={"name": "Empty"}, headers=auth_headers).json()
    response = client.post(f"/tables/{table['id']}/rows", headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Add columns first"

    response = client.get(f"/tables/{table['id']}/export", params={"fmt": "pdf"}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "No columns to export"


def test_count(client: TestClient, auth_headers: dict[str, str]) -> None:
    sales = _create_sales(client, auth_headers)
    table_id = sales["table"]["id"]
    response = client.post(
        f"/tables/{table_id}/count",
        json={"conditions": [{"column": "Item", "criteria": "o"}], "mode": "contains"},
        headers=auth_headers,
    )
    assert response.json() == {"count": 1}

    response = client.post(f"/tables/{table_id}/count", json={"conditions": []}, headers=auth_headers)
    assert response.status_code == 400


def test_exports(client: TestClient, auth_headers: dict[str, str]) -> None:
    table_id = _create_sales(client, auth_headers)["table"]["id"]

    pdf = client.get(f"/tables/{table_id}/export", params={"fmt": "pdf"}, headers=auth_headers)
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert 'filename="Ledgerly-Sales.pdf"' in pdf.headers["content-disposition"]
    assert pdf.content.startswith(b"%PDF")

    xlsx = client.get(f"/tables/{table_id}/export", params={"fmt": "xlsx"}, headers=auth_headers)
    assert xlsx.status_code == 200
    assert 'filename="Ledgerly-Sales.xlsx"' in xlsx.headers["content-disposition"]

    assert client.get(f"/tables/{table_id}/export", params={"fmt": "csv"}, headers=auth_headers).status_code == 422


def test_tables_are_private(client: TestClient, auth_headers: dict[str, str], other_headers: dict[str, str]) -> None:
    sales = _create_sales(client, auth_headers)
    table_id = sales["table"]["id"]

    assert client.get("/tables", headers=other_headers).json() == []
    assert client.get(f"/tables/{table_id}", headers=other_headers).status_code == 404
    assert client.delete(f"/columns/{sales['amount']['id']}", headers=other_headers).status_code == 404
    assert client.post(f"/tables/{table_id}/rows", headers=other_headers).status_code == 404


def test_retype_to_date_clears_unparseable_text(client: TestClient, auth_headers: dict[str, str]) -> None:
    table = client.post("/tables", json={"name": "Events"}, headers=auth_headers).json()
    when = client.post(f"/tables/{table['id']}/columns", json={"name": "When", "type": "text"},
                       headers=auth_headers).json()
    row = client.post(f"/tables/{table['id']}/rows", headers=auth_headers).json()
    client.patch(f"/rows/{row['id']}/cells", json={"column": when["id"], "value": "garbage"}, headers=auth_headers)

    response = client.patch(f"/columns/{when['id']}", json={"name": "When", "type": "date"}, headers=auth_headers)
    assert response.status_code == 200
    detail = client.get(f"/tables/{table['id']}", headers=auth_headers).json()
    assert detail["rows"][0]["by_name"]["When"] == ""


def test_huge_integer_cell_is_stored_as_zero(client: TestClient, auth_headers: dict[str, str]) -> None:
    sales = _create_sales(client, auth_headers)
    row_id = client.get(f"/tables/{sales['table']['id']}", headers=auth_headers).json()["rows"][0]["id"]

    response = client.patch(f"/rows/{row_id}/cells", json={"column": sales["amount"]["id"], "value": 10**400},
                            headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["by_name"]["Amount"] == 0.0
