import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from devdeck.models.models import Credential
from devdeck.models.models import EnvVariable
from devdeck.models.models import Project
from devdeck.models.models import Task


def test_create_and_read_project(client: TestClient):
    response = client.post("/api/projects", json={"name": "Blog", "tech_stack": ["astro"], "tags": ["writing"]})
    assert response.status_code == 201
    project = response.json()
    assert project["status"] == "active"  # Default value
    assert project["tech_stack"] == ["astro"]

    detail = client.get(f"/api/projects/{project['id']}").json()
    assert detail["name"] == "Blog"
    assert detail["credentials"] == []
    assert detail["env_variables"] == []


def test_read_missing_project(client: TestClient):
    assert client.get("/api/projects/999").status_code == 404


def test_update_project(client: TestClient, sample_project: Project):
    response = client.put(f"/api/projects/{sample_project.id}", json={"status": "archived", "tech_stack": None})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "archived"
    assert body["tech_stack"] == []
    assert body["name"] == sample_project.name


def test_project_listing_includes_counts(client: TestClient, sample_project: Project, sample_task: Task):
    client.post(f"/api/projects/{sample_project.id}/credentials", json={"label": "GitHub", "password": "pw"})
    client.post(f"/api/projects/{sample_project.id}/env", json={"key": "API_KEY", "value": "abc"})
    client.put(f"/api/tasks/{sample_task.id}", json={"status": "BLOCKED"})

    projects = client.get("/api/projects").json()
    assert len(projects) == 1
    summary = projects[0]
    assert summary["credential_count"] == 1
    assert summary["env_variable_count"] == 1
    assert summary["task_counts"]["total"] == 1
    assert summary["task_counts"]["blocked"] == 1
    assert summary["task_counts"]["last_activity_at"] is not None


def test_credentials_are_encrypted_at_rest(client: TestClient, db_session: Session, sample_project: Project):
    response = client.post(
        f"/api/projects/{sample_project.id}/credentials",
        json={"label": "Stripe", "username": "me@example.com", "password": "s3cret", "url": "https://stripe.com"},
    )
    assert response.status_code == 201
    created = response.json()
    assert created["password"] == "s3cret"

    row = db_session.query(Credential).filter(Credential.id == created["id"]).one()
    assert row.password != "s3cret"
    assert row.username != "me@example.com"
    assert row.url == "https://stripe.com"
    assert row.label == "Stripe"

    listed = client.get(f"/api/projects/{sample_project.id}/credentials").json()
    assert listed[0]["password"] == "s3cret"
    assert listed[0]["username"] == "me@example.com"


def test_update_credential_keeps_unsent_secrets(client: TestClient, sample_project: Project):
    created = client.post(
        f"/api/projects/{sample_project.id}/credentials", json={"label": "DB", "password": "old"}
    ).json()

    response = client.put(f"/api/projects/{sample_project.id}/credentials/{created['id']}", json={"label": "Postgres"})
    assert response.status_code == 200
    assert response.json()["label"] == "Postgres"
    assert response.json()["password"] == "old"


def test_credential_of_other_project_is_not_found(client: TestClient, sample_project: Project):
    other = client.post("/api/projects", json={"name": "Other"}).json()
    created = client.post(f"/api/projects/{sample_project.id}/credentials", json={"label": "x"}).json()

    assert client.delete(f"/api/projects/{other['id']}/credentials/{created['id']}").status_code == 404
    assert client.delete(f"/api/projects/{sample_project.id}/credentials/{created['id']}").status_code == 200


def test_credential_for_missing_project(client: TestClient):
    assert client.post("/api/projects/999/credentials", json={"label": "x"}).status_code == 404


def test_env_variables_encrypted_and_ordered(client: TestClient, db_session: Session, sample_project: Project):
    for env, key in (("production", "DATABASE_URL"), ("development", "DEBUG")):
        client.post(f"/api/projects/{sample_project.id}/env", json={"environment": env, "key": key, "value": "v"})

    rows = db_session.query(EnvVariable).all()
    assert all(r.value != "v" for r in rows)

    listed = client.get(f"/api/projects/{sample_project.id}/env").json()
    assert [(e["environment"], e["key"], e["value"]) for e in listed] == [
        ("development", "DEBUG", "v"),
        ("production", "DATABASE_URL", "v"),
    ]


def test_delete_project_cascades(client: TestClient, db_session: Session, sample_project: Project, sample_task: Task):
    response = client.delete(f"/api/projects/{sample_project.id}")
    assert response.status_code == 200
    assert response.json() == {"success": True}

    assert client.get(f"/api/projects/{sample_project.id}").status_code == 404
    assert client.get(f"/api/tasks/{sample_task.id}").status_code == 404
    assert db_session.query(Task).count() == 0


@pytest.mark.parametrize("field", ["name", "status"])
def test_update_project_rejects_null_for_required_field(client: TestClient, sample_project: Project, field):
    response = client.put(f"/api/projects/{sample_project.id}", json={field: None})
    assert response.status_code == 422

    assert client.get(f"/api/projects/{sample_project.id}").json()["name"] == "Portfolio Site"


def test_update_credential_rejects_null_label(client: TestClient, sample_project: Project):
    created = client.post(f"/api/projects/{sample_project.id}/credentials", json={"label": "DB"}).json()

    response = client.put(f"/api/projects/{sample_project.id}/credentials/{created['id']}", json={"label": None})
    assert response.status_code == 422


@pytest.mark.parametrize("field", ["environment", "key", "value"])
def test_update_env_variable_rejects_null(client: TestClient, sample_project: Project, field):
    created = client.post(f"/api/projects/{sample_project.id}/env", json={"key": "DEBUG", "value": "1"}).json()

    response = client.put(f"/api/projects/{sample_project.id}/env/{created['id']}", json={field: None})
    assert response.status_code == 422
    assert field in response.text
