import pytest
from fastapi.testclient import TestClient

import api as api_module


@pytest.fixture
def client(lib, monkeypatch):
    # Point the module-level library at the per-test instance
    monkeypatch.setattr(api_module, "library", lib)
    return TestClient(api_module.app)


@pytest.fixture
def stocked(lib):
    lib.add_book(title="Clean Code", author="Robert C. Martin", copies=2)
    lib.add_member(name="Ann")
    lib.add_member(name="Bob")
    lib.add_member(name="Cem")
    return lib


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_book_lifecycle(client):
    response = client.post("/books", json={"title": "Dune", "author": "Frank Herbert", "copies": 3})
    assert response.status_code == 201
    book = response.json()
    assert book["id"] == "B1"
    assert book["available"] == 3

    response = client.put("/books/B1", json={"category": "Science Fiction"})
    assert response.status_code == 200
    assert response.json()["category"] == "Science Fiction"
    assert response.json()["title"] == "Dune"

    response = client.get("/books", params={"q": "science"})
    assert [b["id"] for b in response.json()] == ["B1"]

    assert client.delete("/books/B1").status_code == 200
    assert client.get("/books/B1").status_code == 404


def test_blank_title_is_rejected(client, lib):
    response = client.post("/books", json={"title": "  "})
    assert response.status_code == 400
    assert response.json()["detail"] == "Book title is required"
    assert lib.list_books() == []


def test_unknown_ids_return_404(client):
    assert client.get("/members/M9").status_code == 404
    assert client.put("/books/B9", json={"title": "X"}).status_code == 404
    assert client.delete("/members/M9").status_code == 404


def test_member_endpoints(client):
    response = client.post("/members", json={"name": "Ann", "email": "ann@example.com"})
    assert response.status_code == 201
    assert response.json()["id"] == "M1"

    response = client.put("/members/M1", json={"phone": "555"})
    assert response.json() == {"id": "M1", "name": "Ann", "email": "ann@example.com", "phone": "555"}

    assert client.post("/members", json={"name": ""}).status_code == 400


def test_issue_return_flow(client, stocked):
    first = client.post("/transactions/issue", json={"book_id": "B1", "member_id": "M1", "loan_days": 14})
    assert first.status_code == 201
    assert first.json()["kind"] == "issue"
    assert client.post("/transactions/issue", json={"book_id": "B1", "member_id": "M2"}).status_code == 201

    response = client.post("/transactions/issue", json={"book_id": "B1", "member_id": "M3"})
    assert response.status_code == 400
    assert response.json()["detail"] == "No available copies to issue"

    active = client.get("/transactions/active").json()
    assert [row["name"] for row in active] == ["Bob", "Ann"]

    tx_id = first.json()["id"]
    response = client.post(f"/transactions/{tx_id}/return")
    assert response.status_code == 200
    assert response.json()["returned"] is True

    assert client.post(f"/transactions/{tx_id}/return").status_code == 409
    assert client.post("/transactions/T404/return").status_code == 404
    assert client.get("/books/B1").json()["available"] == 1
    assert client.get("/stats").json() == {"total_books": 1, "total_members": 3, "total_active_issues": 1}


def test_delete_member_frees_copies(client, stocked):
    client.post("/transactions/issue", json={"book_id": "B1", "member_id": "M2"})
    assert client.get("/books/B1").json()["available"] == 1

    client.delete("/members/M2")
    assert client.get("/books/B1").json()["available"] == 2
    assert client.get("/transactions").json() == []


def test_export_csv(client, stocked):
    response = client.get("/export/members.csv")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.split("\n")
    assert lines[0] == "id,name,email,phone"
    assert len(lines) == 4

    assert client.get("/export/transactions.csv").status_code == 204
    assert client.get("/export/loans.csv").status_code == 404
