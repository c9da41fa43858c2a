"""Services, proposals and notes: the flat collections next to projects."""

import pytest
from fastapi.testclient import TestClient


def test_read_root(client: TestClient):
    response = client.get("/")
    assert response.status_code == 200
    assert "message" in response.json()


def test_service_crud(client: TestClient):
    response = client.post("/api/services", json={"name": "Vercel Pro", "price": 20, "billing_cycle": "monthly"})
    assert response.status_code == 201
    service = response.json()
    assert service["currency"] == "USD"  # Default value
    assert service["billing_cycle"] == "monthly"

    response = client.put(f"/api/services/{service['id']}", json={"billing_cycle": "yearly", "price": 200})
    assert response.json()["billing_cycle"] == "yearly"
    assert response.json()["price"] == 200

    assert client.delete(f"/api/services/{service['id']}").json() == {"success": True}
    assert client.get(f"/api/services/{service['id']}").status_code == 404


def test_services_ordered_by_status_then_name(client: TestClient):
    client.post("/api/services", json={"name": "Zapier"})
    client.post("/api/services", json={"name": "Algolia"})
    client.post("/api/services", json={"name": "Heroku", "status": "cancelled"})

    names = [s["name"] for s in client.get("/api/services").json()]
    assert names == ["Algolia", "Zapier", "Heroku"]


def test_service_rejects_unknown_billing_cycle(client: TestClient):
    response = client.post("/api/services", json={"name": "x", "billing_cycle": "weekly"})
    assert response.status_code == 422


def test_proposal_crud(client: TestClient):
    response = client.post("/api/proposals", json={"customer_name": "Acme", "title": "Landing page"})
    assert response.status_code == 201
    proposal = response.json()
    assert proposal["status"] == "draft"
    assert proposal["currency"] == "ILS"

    updated = client.put(f"/api/proposals/{proposal['id']}", json={"status": "sent"}).json()
    assert updated["status"] == "sent"
    assert updated["customer_name"] == "Acme"

    assert client.delete(f"/api/proposals/{proposal['id']}").status_code == 200
    assert client.delete(f"/api/proposals/{proposal['id']}").status_code == 404


def test_missing_proposal(client: TestClient):
    assert client.put("/api/proposals/999", json={"status": "sent"}).status_code == 404


def test_notes_filter_and_pinning(client: TestClient):
    client.post("/api/notes", json={"title": "Deploy checklist", "category": "ops", "tags": ["release"]})
    client.post("/api/notes", json={"title": "Ideas", "category": "misc", "is_pinned": True})

    notes = client.get("/api/notes").json()
    assert [n["title"] for n in notes] == ["Ideas", "Deploy checklist"]

    assert [n["title"] for n in client.get("/api/notes", params={"category": "ops"}).json()] == ["Deploy checklist"]
    assert [n["title"] for n in client.get("/api/notes", params={"q": "release"}).json()] == ["Deploy checklist"]


def test_note_update_clears_tags(client: TestClient):
    note = client.post("/api/notes", json={"title": "t", "tags": ["a"]}).json()

    updated = client.put(f"/api/notes/{note['id']}", json={"tags": None}).json()
    assert updated["tags"] == []


@pytest.mark.parametrize("field", ["name", "price", "currency", "billing_cycle", "auto_renew", "status"])
def test_service_update_rejects_null(client: TestClient, field):
    service = client.post("/api/services", json={"name": "Sentry", "price": 26}).json()

    response = client.put(f"/api/services/{service['id']}", json={field: None})
    assert response.status_code == 422
    assert client.get(f"/api/services/{service['id']}").json()["price"] == 26


def test_service_update_allows_clearing_optional_fields(client: TestClient):
    service = client.post("/api/services", json={"name": "Sentry", "category": "monitoring"}).json()

    response = client.put(f"/api/services/{service['id']}", json={"category": None, "next_billing_date": None})
    assert response.status_code == 200
    assert response.json()["category"] is None


@pytest.mark.parametrize("field", ["customer_name", "title", "currency", "status"])
def test_proposal_update_rejects_null(client: TestClient, field):
    proposal = client.post("/api/proposals", json={"customer_name": "Acme", "title": "Landing page"}).json()

    response = client.put(f"/api/proposals/{proposal['id']}", json={field: None})
    assert response.status_code == 422


@pytest.mark.parametrize("field", ["title", "is_pinned"])
def test_note_update_rejects_null(client: TestClient, field):
    note = client.post("/api/notes", json={"title": "t"}).json()

    response = client.put(f"/api/notes/{note['id']}", json={field: None})
    assert response.status_code == 422


def test_home_dashboard(client: TestClient, sample_task):
    client.post("/api/projects", json={"name": "Shop", "status": "in-development"})
    client.post("/api/services", json={"name": "Vercel Pro", "price": 20})
    client.post(
        "/api/services",
        json={"name": "Domain", "price": 120, "billing_cycle": "yearly", "remind_before_renew": True},
    )
    client.post("/api/services", json={"name": "Old VPS", "price": 40, "status": "cancelled"})
    client.post(
        "/api/proposals",
        json={"customer_name": "Acme", "title": "Redesign", "deadline": "2099-01-01T00:00:00", "estimated_price": 900},
    )

    response = client.get("/api/dashboard")
    assert response.status_code == 200
    dashboard = response.json()

    assert dashboard["projects"] == {"total": 2, "active": 1, "in_development": 1}
    assert dashboard["stats"]["open"] == 1
    assert dashboard["monthly_spend"] == 30
    assert [s["name"] for s in dashboard["renewal_alerts"]] == ["Domain"]
    assert [s["name"] for s in dashboard["top_services"]] == ["Vercel Pro", "Domain"]
    assert dashboard["proposals"]["pending"] == 1
    assert dashboard["proposals"]["pipeline_value"] == 900
    assert [(d["kind"], d["title"]) for d in dashboard["deadlines"]] == [("proposal", "Redesign")]
