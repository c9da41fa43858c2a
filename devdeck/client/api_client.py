"""Async client for the devdeck HTTP API.

Reads are served through a :class:`~devdeck.services.request_cache.RequestCache`
keyed by request path, so several widgets asking for ``/api/tasks`` at the
same time share one round-trip.  Writes bypass the cache and invalidate every
key they may have made stale.

Usage::

    async with DashboardClient() as client:
        tasks = await client.list_tasks()
        await client.update_task(tasks[0]["id"], {"status": "DONE"})
"""

from __future__ import annotations

import asyncio
from typing import Any
from typing import Callable
from typing import Dict
from typing import List
from typing import Optional
from urllib.parse import urlencode

import httpx

from devdeck.config import get_settings
from devdeck.constants import API_PREFIX
from devdeck.constants import DASHBOARD_PREFIX
from devdeck.constants import NOTES_PREFIX
from devdeck.constants import PROJECTS_PREFIX
from devdeck.constants import PROPOSALS_PREFIX
from devdeck.constants import SERVICES_PREFIX
from devdeck.constants import TASKS_PREFIX
from devdeck.schemas import schemas
from devdeck.services import overview
from devdeck.services import task_lifecycle
from devdeck.services.request_cache import RequestCache
from devdeck.services.request_cache import RevalidateCallback
from devdeck.utils.log import get_logger

PROJECTS = f"{API_PREFIX}{PROJECTS_PREFIX}"
TASKS = f"{API_PREFIX}{TASKS_PREFIX}"
SERVICES = f"{API_PREFIX}{SERVICES_PREFIX}"
PROPOSALS = f"{API_PREFIX}{PROPOSALS_PREFIX}"
NOTES = f"{API_PREFIX}{NOTES_PREFIX}"
DASHBOARD = f"{API_PREFIX}{DASHBOARD_PREFIX}"


def _with_query(path: str, params: Dict[str, Any]) -> str:
    # Key order must be stable so equal queries share a cache entry.
    query = {k: v for k, v in sorted(params.items()) if v is not None}
    return f"{path}?{urlencode(query)}" if query else path


class DashboardClient:
    """Cached API access for the dashboard pages."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        ttl: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
        timeout: float = 30.0,
    ):
        settings = get_settings()
        self.base_url = base_url or settings.api_base_url
        self._http = httpx.AsyncClient(base_url=self.base_url, transport=transport, timeout=timeout)

        cache_kwargs: Dict[str, Any] = {"ttl": ttl or settings.request_cache_ttl}
        if clock is not None:
            cache_kwargs["clock"] = clock
        self.cache = RequestCache(self._fetch, **cache_kwargs)
        self._log = get_logger(component="dashboard-client", base_url=self.base_url)

    async def __aenter__(self) -> "DashboardClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Let pending revalidations settle, then close the connection pool."""
        await self.cache.drain()
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _fetch(self, path: str) -> Any:
        response = await self._http.get(path)
        response.raise_for_status()
        self._log.debug("fetched", path=path, status=response.status_code)
        return response.json()

    async def _send(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._http.request(method, path, json=payload)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError:
            self._log.warning("request-failed", method=method, path=path, status=response.status_code)
            raise
        # Any write can change a home-page panel.
        self.cache.invalidate_cache(DASHBOARD)
        return response.json()

    async def _get(self, path: str, *, force: bool = False, on_revalidate: Optional[RevalidateCallback] = None):
        return await self.cache.fetch_with_cache(path, force=force, on_revalidate=on_revalidate)

    def _invalidate(self, *prefixes: str) -> None:
        """Drop every cached key equal to, or a query/sub-path of, *prefixes*."""
        for key in self.cache.keys():
            if any(key == p or key.startswith(p + "?") or key.startswith(p + "/") for p in prefixes):
                self.cache.invalidate_cache(key)

    def _invalidate_task(self, task: Dict[str, Any]) -> None:
        # Task lists, the task itself, the project's task list and the
        # project counters all embed task state.
        self._invalidate(TASKS)
        project_id = task.get("project_id")
        if project_id is not None:
            self.cache.invalidate_cache(f"{PROJECTS}/{project_id}/tasks")
        self.cache.invalidate_cache(PROJECTS)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def list_projects(self, **kwargs) -> List[Dict[str, Any]]:
        return await self._get(PROJECTS, **kwargs)

    async def get_project(self, project_id: int, **kwargs) -> Dict[str, Any]:
        return await self._get(f"{PROJECTS}/{project_id}", **kwargs)

    async def create_project(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        project = await self._send("POST", PROJECTS, fields)
        self.cache.invalidate_cache(PROJECTS)
        return project

    async def update_project(self, project_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        project = await self._send("PUT", f"{PROJECTS}/{project_id}", fields)
        self.cache.invalidate_cache(PROJECTS)
        self.cache.invalidate_cache(f"{PROJECTS}/{project_id}")
        # Task rows carry the project name.
        self._invalidate(TASKS)
        return project

    async def delete_project(self, project_id: int) -> Dict[str, Any]:
        result = await self._send("DELETE", f"{PROJECTS}/{project_id}")
        self._invalidate(PROJECTS, TASKS)
        return result

    async def add_credential(self, project_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        credential = await self._send("POST", f"{PROJECTS}/{project_id}/credentials", fields)
        self._invalidate_project_secrets(project_id)
        return credential

    async def add_env_variable(self, project_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        env = await self._send("POST", f"{PROJECTS}/{project_id}/env", fields)
        self._invalidate_project_secrets(project_id)
        return env

    def _invalidate_project_secrets(self, project_id: int) -> None:
        self.cache.invalidate_cache(PROJECTS)
        self._invalidate(f"{PROJECTS}/{project_id}")

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def list_tasks(
        self,
        *,
        project_id: Optional[int] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
        **kwargs,
    ) -> List[Dict[str, Any]]:
        path = _with_query(
            TASKS, {"project_id": project_id, "status": status, "priority": priority, "search": search}
        )
        return await self._get(path, **kwargs)

    async def list_project_tasks(self, project_id: int, **kwargs) -> List[Dict[str, Any]]:
        return await self._get(f"{PROJECTS}/{project_id}/tasks", **kwargs)

    async def get_task(self, task_id: int, **kwargs) -> Dict[str, Any]:
        return await self._get(f"{TASKS}/{task_id}", **kwargs)

    async def create_task(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        task = await self._send("POST", TASKS, fields)
        self._invalidate_task(task)
        return task

    async def update_task(self, task_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        task = await self._send("PUT", f"{TASKS}/{task_id}", changes)
        self._invalidate_task(task)
        return task

    async def delete_task(self, task_id: int, project_id: Optional[int] = None) -> Dict[str, Any]:
        result = await self._send("DELETE", f"{TASKS}/{task_id}")
        self._invalidate_task({"project_id": project_id})
        return result

    # ------------------------------------------------------------------
    # Services, proposals, notes
    # ------------------------------------------------------------------

    async def list_services(self, **kwargs) -> List[Dict[str, Any]]:
        return await self._get(SERVICES, **kwargs)

    async def list_proposals(self, **kwargs) -> List[Dict[str, Any]]:
        return await self._get(PROPOSALS, **kwargs)

    async def list_notes(self, *, q: Optional[str] = None, category: Optional[str] = None, **kwargs):
        return await self._get(_with_query(NOTES, {"q": q, "category": category}), **kwargs)

    async def create_resource(self, collection: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """POST to one of the flat collections (services, proposals, notes)."""
        row = await self._send("POST", collection, fields)
        self._invalidate(collection)
        return row

    async def update_resource(self, collection: str, row_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        row = await self._send("PUT", f"{collection}/{row_id}", fields)
        self._invalidate(collection)
        return row

    async def delete_resource(self, collection: str, row_id: int) -> Dict[str, Any]:
        result = await self._send("DELETE", f"{collection}/{row_id}")
        self._invalidate(collection)
        return result

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    async def dashboard(self, now=None) -> Dict[str, Any]:
        """Every home-page panel, computed client-side from cached lists.

        The four collections are fetched concurrently; each goes through the
        cache, so pages that already loaded them cost no extra round-trip.
        """

        project_rows, task_rows, service_rows, proposal_rows = await asyncio.gather(
            self.list_projects(), self.list_tasks(), self.list_services(), self.list_proposals()
        )
        projects = [schemas.Project.model_validate(row) for row in project_rows]
        tasks = [schemas.Task.model_validate(row) for row in task_rows]
        services = [schemas.Service.model_validate(row) for row in service_rows]
        proposals = [schemas.Proposal.model_validate(row) for row in proposal_rows]

        summary = overview.dashboard_overview(projects, tasks, services, proposals, now)
        summary["by_project"] = task_lifecycle.group_by_project(task_lifecycle.open_tasks(tasks))
        self._log.debug("dashboard", tasks=len(tasks), urgent=len(summary["urgent"]), services=len(services))
        return summary

    async def fetch_dashboard(self, **kwargs) -> Dict[str, Any]:
        """The same panels computed server-side (``GET /api/dashboard``)."""
        return await self._get(DASHBOARD, **kwargs)


__all__ = ["DashboardClient"]
