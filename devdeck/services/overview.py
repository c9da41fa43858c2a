"""Home-page views over projects, subscriptions and proposals.

Pure functions, like the task views in :mod:`devdeck.services.task_lifecycle`:
they take rows (ORM objects or validated schemas, anything with the right
attributes) and return plain dicts/lists.  :func:`dashboard_overview` bundles
the task widgets with these so the API and the client serve the same shape.

Subscriptions are compared by their monthly cost.  A yearly plan counts as a
twelfth of its price; a one-time purchase counts as nothing.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
from typing import Sequence

from devdeck.constants import DEADLINES_LIMIT
from devdeck.constants import TOP_SERVICES_LIMIT
from devdeck.models.enums import BillingCycle
from devdeck.services import task_lifecycle
from devdeck.utils.time import as_naive_utc
from devdeck.utils.time import utc_now_naive

PROJECT_ACTIVE = "active"
PROJECT_IN_DEVELOPMENT = "in-development"

SERVICE_ACTIVE = "active"

PENDING_PROPOSAL_STATUSES = ("draft", "sent")
PIPELINE_PROPOSAL_STATUSES = ("draft", "sent", "in-progress")
CLOSED_PROPOSAL_STATUSES = ("completed", "rejected")

# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


def project_stats(projects: Sequence[Any]) -> Dict[str, int]:
    return {
        "total": len(projects),
        "active": sum(1 for p in projects if p.status == PROJECT_ACTIVE),
        "in_development": sum(1 for p in projects if p.status == PROJECT_IN_DEVELOPMENT),
    }


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


def monthly_cost(service: Any) -> float:
    price = service.price or 0.0
    if service.billing_cycle == BillingCycle.MONTHLY:
        return price
    if service.billing_cycle == BillingCycle.YEARLY:
        return price / 12
    return 0.0


def active_services(services: Iterable[Any]) -> List[Any]:
    return [s for s in services if s.status == SERVICE_ACTIVE]


def monthly_spend(services: Iterable[Any]) -> float:
    """What the active subscriptions cost per month, combined."""
    return sum(monthly_cost(s) for s in active_services(services))


def renewal_alerts(services: Iterable[Any]) -> List[Any]:
    """Active services that renew on their own but should be reviewed first."""
    return [s for s in active_services(services) if s.auto_renew and s.remind_before_renew]


def top_services(services: Iterable[Any], limit: int = TOP_SERVICES_LIMIT) -> List[Dict[str, Any]]:
    ranked = sorted(active_services(services), key=monthly_cost, reverse=True)
    return [{"id": s.id, "name": s.name, "monthly_cost": monthly_cost(s)} for s in ranked[:limit]]


# ---------------------------------------------------------------------------
# Proposals
# ---------------------------------------------------------------------------


def _total_price(proposals: Iterable[Any]) -> float:
    return sum(p.estimated_price or 0.0 for p in proposals)


def proposal_stats(proposals: Sequence[Any]) -> Dict[str, Any]:
    accepted = [p for p in proposals if p.status == "accepted"]
    return {
        "pending": sum(1 for p in proposals if p.status in PENDING_PROPOSAL_STATUSES),
        "accepted": len(accepted),
        "in_progress": sum(1 for p in proposals if p.status == "in-progress"),
        "pipeline_value": _total_price(p for p in proposals if p.status in PIPELINE_PROPOSAL_STATUSES),
        "won_revenue": _total_price(accepted),
    }


# ---------------------------------------------------------------------------
# Combined
# ---------------------------------------------------------------------------


def deadlines(
    tasks: Iterable[Any],
    proposals: Iterable[Any],
    now: Optional[datetime] = None,
    limit: int = DEADLINES_LIMIT,
) -> List[Dict[str, Any]]:
    """Upcoming task due dates merged with open proposal deadlines, soonest first.

    Proposal deadlines that already passed stay in the list until the
    proposal is completed or rejected.
    """

    items = [
        {
            "kind": "task",
            "id": t.id,
            "title": t.title,
            "date": as_naive_utc(t.due_date),
            "context": task_lifecycle.project_name(t),
        }
        for t in task_lifecycle.upcoming_deadlines(tasks, now)
    ]
    items.extend(
        {
            "kind": "proposal",
            "id": p.id,
            "title": p.title,
            "date": as_naive_utc(p.deadline),
            "context": p.customer_name,
        }
        for p in proposals
        if p.deadline is not None and p.status not in CLOSED_PROPOSAL_STATUSES
    )
    items.sort(key=lambda item: item["date"])
    return items[:limit]


def dashboard_overview(
    projects: Sequence[Any],
    tasks: Sequence[Any],
    services: Sequence[Any],
    proposals: Sequence[Any],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """The task widgets plus the project, money and proposal panels."""

    now = now or utc_now_naive()
    overview = task_lifecycle.dashboard_summary(tasks, now)
    overview.update(
        projects=project_stats(projects),
        proposals=proposal_stats(proposals),
        monthly_spend=monthly_spend(services),
        renewal_alerts=renewal_alerts(services),
        top_services=top_services(services),
        deadlines=deadlines(tasks, proposals, now),
    )
    return overview


__all__ = [
    "project_stats",
    "monthly_cost",
    "active_services",
    "monthly_spend",
    "renewal_alerts",
    "top_services",
    "proposal_stats",
    "deadlines",
    "dashboard_overview",
]
