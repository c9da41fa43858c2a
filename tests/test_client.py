"""DashboardClient against a mocked HTTP transport."""

import asyncio
import json
from collections import Counter
from datetime import datetime

import httpx
import pytest

from devdeck.client import DashboardClient

NOW = "2025-03-01T12:00:00"


def _task_row(task_id, title, status="TODO", **extra):
    row = {
        "id": task_id,
        "project_id": 1,
        "project": {"id": 1, "name": "Portfolio"},
        "title": title,
        "status": status,
        "priority": "MEDIUM",
        "labels": [],
        "due_date": None,
        "created_at": NOW,
        "updated_at": NOW,
    }
    row.update(extra)
    return row


def _project_row(project_id, name, status="active"):
    return {"id": project_id, "name": name, "status": status, "created_at": NOW, "updated_at": NOW}


def _service_row(service_id, name, price, billing_cycle="monthly", **extra):
    row = {
        "id": service_id,
        "name": name,
        "price": price,
        "billing_cycle": billing_cycle,
        "created_at": NOW,
        "updated_at": NOW,
    }
    row.update(extra)
    return row


class FakeApi:
    """Tiny in-memory stand-in for the list endpoints and task writes."""

    def __init__(self):
        self.tasks = {1: _task_row(1, "Write copy")}
        self.projects = [_project_row(1, "Portfolio")]
        self.services = []
        self.proposals = []
        self.gets = Counter()
        self.fail_next_get = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        key = path + (f"?{request.url.query.decode()}" if request.url.query else "")

        if request.method == "GET":
            self.gets[key] += 1
            if self.fail_next_get:
                self.fail_next_get = False
                return httpx.Response(503, json={"detail": "unavailable"})
            if path == "/api/tasks":
                return httpx.Response(200, json=list(self.tasks.values()))
            if path.startswith("/api/tasks/"):
                return httpx.Response(200, json=self.tasks[int(path.rsplit("/", 1)[1])])
            if path == "/api/projects":
                return httpx.Response(200, json=self.projects)
            if path == "/api/services":
                return httpx.Response(200, json=self.services)
            if path == "/api/proposals":
                return httpx.Response(200, json=self.proposals)
            if path == "/api/dashboard":
                return httpx.Response(200, json={"stats": {"open": len(self.tasks)}})
            return httpx.Response(404, json={"detail": "Not Found"})

        if request.method == "POST" and path == "/api/tasks":
            body = json.loads(request.content)
            task_id = max(self.tasks) + 1
            self.tasks[task_id] = _task_row(task_id, body["title"])
            return httpx.Response(201, json=self.tasks[task_id])

        if request.method == "PUT" and path.startswith("/api/tasks/"):
            task_id = int(path.rsplit("/", 1)[1])
            if task_id not in self.tasks:
                return httpx.Response(404, json={"detail": "Task not found"})
            self.tasks[task_id].update(json.loads(request.content))
            return httpx.Response(200, json=self.tasks[task_id])

        if request.method == "DELETE" and path.startswith("/api/tasks/"):
            self.tasks.pop(int(path.rsplit("/", 1)[1]), None)
            return httpx.Response(200, json={"success": True})

        return httpx.Response(405)


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def make_client(fake_api):
    def _make(**kwargs):
        return DashboardClient("http://devdeck.test", transport=httpx.MockTransport(fake_api), **kwargs)

    return _make


@pytest.mark.asyncio
async def test_reads_are_cached(make_client, fake_api):
    async with make_client() as client:
        first = await client.list_tasks()
        second = await client.list_tasks()

    assert first == second
    assert fake_api.gets["/api/tasks"] == 1


@pytest.mark.asyncio
async def test_concurrent_reads_share_one_request(make_client, fake_api):
    async with make_client() as client:
        results = await asyncio.gather(*(client.list_tasks() for _ in range(4)))

    assert all(r == results[0] for r in results)
    assert fake_api.gets["/api/tasks"] == 1


@pytest.mark.asyncio
async def test_update_invalidates_task_lists_and_item(make_client, fake_api):
    async with make_client() as client:
        await client.list_tasks()
        await client.list_tasks(status="TODO")
        await client.get_task(1)

        await client.update_task(1, {"status": "DONE"})

        tasks = await client.list_tasks()
        task = await client.get_task(1)
        await client.list_tasks(status="TODO")

    assert tasks[0]["status"] == "DONE"
    assert task["status"] == "DONE"
    assert fake_api.gets["/api/tasks"] == 2
    assert fake_api.gets["/api/tasks/1"] == 2
    assert fake_api.gets["/api/tasks?status=TODO"] == 2


@pytest.mark.asyncio
async def test_create_invalidates_project_list(make_client, fake_api):
    async with make_client() as client:
        await client.list_projects()
        await client.create_task({"project_id": 1, "title": "New"})
        await client.list_projects()
        tasks = await client.list_tasks()

    assert fake_api.gets["/api/projects"] == 2
    assert [t["title"] for t in tasks] == ["Write copy", "New"]


@pytest.mark.asyncio
async def test_unrelated_keys_survive_mutation(make_client, fake_api):
    async with make_client() as client:
        await client.list_services()
        await client.update_task(1, {"title": "Rename"})
        await client.list_services()

    assert fake_api.gets["/api/services"] == 1


@pytest.mark.asyncio
async def test_http_errors_propagate_and_are_not_cached(make_client, fake_api):
    fake_api.fail_next_get = True
    async with make_client() as client:
        with pytest.raises(httpx.HTTPStatusError):
            await client.list_tasks()

        assert await client.list_tasks() == list(fake_api.tasks.values())

    assert fake_api.gets["/api/tasks"] == 2


@pytest.mark.asyncio
async def test_failed_mutation_keeps_cache(make_client, fake_api):
    async with make_client() as client:
        await client.list_tasks()
        with pytest.raises(httpx.HTTPStatusError):
            await client.update_task(42, {"title": "nope"})
        await client.list_tasks()

    assert fake_api.gets["/api/tasks"] == 1


@pytest.mark.asyncio
async def test_stale_read_revalidates_in_background(make_client, fake_api):
    now = [0.0]
    async with make_client(ttl=30, clock=lambda: now[0]) as client:
        await client.list_tasks()
        fake_api.tasks[1]["title"] = "Changed elsewhere"

        now[0] = 20.0
        stale = await client.list_tasks()
        await client.cache.drain()
        fresh = await client.list_tasks()

    assert stale[0]["title"] == "Write copy"
    assert fresh[0]["title"] == "Changed elsewhere"
    assert fake_api.gets["/api/tasks"] == 2


@pytest.mark.asyncio
async def test_dashboard(make_client, fake_api):
    fake_api.tasks[2] = _task_row(2, "Blocked on DNS", status="BLOCKED")
    fake_api.tasks[3] = _task_row(3, "Shipped", status="DONE")

    async with make_client() as client:
        summary = await client.dashboard()

    assert summary["stats"]["open"] == 2
    assert summary["stats"]["blocked"] == 1
    assert [t.title for t in summary["urgent"]] == ["Blocked on DNS"]
    assert list(summary["by_project"]) == ["Portfolio"]
    assert len(summary["by_project"]["Portfolio"]) == 2


@pytest.mark.asyncio
async def test_dashboard_money_and_proposal_panels(make_client, fake_api):
    fake_api.projects.append(_project_row(2, "Shop", status="in-development"))
    fake_api.services = [
        _service_row(1, "Vercel", 20),
        _service_row(2, "Domain", 120, billing_cycle="yearly", remind_before_renew=True),
        _service_row(3, "Heroku", 50, status="cancelled"),
    ]
    fake_api.proposals = [
        {
            "id": 1,
            "customer_name": "Acme",
            "title": "Landing page",
            "status": "accepted",
            "estimated_price": 5000,
            "deadline": "2025-03-10T00:00:00",
            "created_at": NOW,
            "updated_at": NOW,
        },
    ]

    async with make_client() as client:
        summary = await client.dashboard(now=datetime(2025, 3, 1, 12, 0, 0))

    assert summary["projects"] == {"total": 2, "active": 1, "in_development": 1}
    assert summary["monthly_spend"] == 30
    assert [s.name for s in summary["renewal_alerts"]] == ["Domain"]
    assert [s["name"] for s in summary["top_services"]] == ["Vercel", "Domain"]
    assert summary["proposals"]["won_revenue"] == 5000
    assert [d["title"] for d in summary["deadlines"]] == ["Landing page"]
    assert fake_api.gets["/api/services"] == 1
    assert fake_api.gets["/api/proposals"] == 1


@pytest.mark.asyncio
async def test_writes_invalidate_server_dashboard(make_client, fake_api):
    async with make_client() as client:
        await client.fetch_dashboard()
        await client.fetch_dashboard()
        await client.update_task(1, {"title": "Rename"})
        await client.fetch_dashboard()

    assert fake_api.gets["/api/dashboard"] == 2
