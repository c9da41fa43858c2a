"""Task status rules, activity-log derivation and read-side task views.

Everything in here is pure: functions receive the current state plus the
requested change and return *what should be written*.  Persisting the result
(task row and activity entries in a single commit) is the job of
:mod:`devdeck.crud.crud`.

Status transitions are unrestricted: any status may move to
any other.  The only rules are the side effects of entering or leaving
``DONE``:

=====================  ==================  =============================
previous → new         ``completed_at``    activity entry
=====================  ==================  =============================
X → X                  unchanged           none
non-DONE → DONE        set to *now*        COMPLETED ``{from, to}``
DONE → non-DONE        cleared             REOPENED ``{from, to}``
other change           unchanged           STATUS_CHANGED ``{from, to}``
=====================  ==================  =============================

A changed description additionally yields a DESCRIPTION_UPDATED entry, so a
single update may produce two entries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Literal
from typing import Optional
from typing import Sequence
from typing import Tuple

from devdeck.constants import RECENT_TASKS_LIMIT
from devdeck.constants import UNKNOWN_PROJECT
from devdeck.constants import URGENT_ITEMS_LIMIT
from devdeck.constants import WORKLOAD_LIMIT
from devdeck.errors import TaskValidationError
from devdeck.models.enums import TaskEventType
from devdeck.models.enums import TaskPriority
from devdeck.models.enums import TaskStatus
from devdeck.utils.time import as_naive_utc
from devdeck.utils.time import utc_now_naive

logger = logging.getLogger(__name__)

SortField = Literal["priority", "due_date", "created_at", "title"]
SortDirection = Literal["asc", "desc"]

# Lower rank == more urgent
PRIORITY_RANK: Dict[TaskPriority, int] = {
    TaskPriority.CRITICAL: 0,
    TaskPriority.HIGH: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 3,
}

# Fields a caller may change through an update.  ``project_id`` is fixed at
# creation and ``completed_at`` is derived.
UPDATABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "status",
        "priority",
        "labels",
        "due_date",
        "estimate_hours",
        "blocked_reason",
    }
)


@dataclass(frozen=True)
class ActivityEntry:
    """An activity-log row waiting to be persisted."""

    event_type: TaskEventType
    payload: Optional[Dict[str, Any]] = None


@dataclass
class TaskUpdatePlan:
    """Column assignments plus the activity entries they imply."""

    changes: Dict[str, Any] = field(default_factory=dict)
    activity: List[ActivityEntry] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Input normalisation
# ---------------------------------------------------------------------------


def coerce_status(value: Any) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        raise TaskValidationError(f"Invalid task status: {value!r}") from None


def coerce_priority(value: Any) -> TaskPriority:
    try:
        return TaskPriority(value)
    except ValueError:
        raise TaskValidationError(f"Invalid task priority: {value!r}") from None


def _coerce_labels(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise TaskValidationError("labels must be a list of strings")
    return [str(label) for label in value]


def _check_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise TaskValidationError("title is required")
    return title


def _check_estimate(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        estimate = float(value)
    except (TypeError, ValueError):
        raise TaskValidationError("estimate_hours must be a number") from None
    if estimate < 0:
        raise TaskValidationError("estimate_hours must not be negative")
    return estimate


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def prepare_new_task(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Validate creation input and fill in defaults.

    Raises :class:`TaskValidationError` before anything touches storage.
    """

    if fields.get("project_id") is None:
        raise TaskValidationError("project_id is required")

    return {
        "project_id": fields["project_id"],
        "title": _check_title(fields.get("title")),
        "description": fields.get("description") or None,
        "status": coerce_status(fields.get("status") or TaskStatus.TODO),
        "priority": coerce_priority(fields.get("priority") or TaskPriority.MEDIUM),
        "labels": _coerce_labels(fields.get("labels")),
        "due_date": fields.get("due_date"),
        "estimate_hours": _check_estimate(fields.get("estimate_hours")),
        "blocked_reason": fields.get("blocked_reason"),
    }


def creation_entry(title: str, status: Any, priority: Any) -> ActivityEntry:
    """The single TASK_CREATED entry every new task starts its log with."""

    return ActivityEntry(
        TaskEventType.TASK_CREATED,
        {"title": title, "status": coerce_status(status).value, "priority": coerce_priority(priority).value},
    )


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------


def plan_status_change(
    previous: Any, new: Any, now: Optional[datetime] = None
) -> Tuple[Dict[str, Any], Optional[ActivityEntry]]:
    """Return the ``completed_at`` assignment and activity entry for a transition.

    An unchanged status yields ``({}, None)``.
    """

    previous = coerce_status(previous)
    new = coerce_status(new)
    if previous == new:
        return {}, None

    payload = {"from": previous.value, "to": new.value}

    if new == TaskStatus.DONE:
        return {"completed_at": now or utc_now_naive()}, ActivityEntry(TaskEventType.COMPLETED, payload)
    if previous == TaskStatus.DONE:
        return {"completed_at": None}, ActivityEntry(TaskEventType.REOPENED, payload)
    return {}, ActivityEntry(TaskEventType.STATUS_CHANGED, payload)


def description_changed(old: Optional[str], new: Optional[str]) -> bool:
    # ``None`` and ``""`` are different stored values.
    return old != new


def plan_task_update(task: Any, changes: Dict[str, Any], now: Optional[datetime] = None) -> TaskUpdatePlan:
    """Turn a partial update into column assignments and activity entries.

    *changes* holds only the fields the caller actually sent; a key mapped to
    ``None`` clears that field.
    """

    if "project_id" in changes and changes["project_id"] != task.project_id:
        raise TaskValidationError("project_id cannot be changed")

    unknown = set(changes) - UPDATABLE_FIELDS - {"project_id"}
    if unknown:
        raise TaskValidationError(f"Unsupported task fields: {', '.join(sorted(unknown))}")

    plan = TaskUpdatePlan()

    for name, value in changes.items():
        if name == "project_id":
            continue
        if name == "title":
            value = _check_title(value)
        elif name == "status":
            value = coerce_status(value)
        elif name == "priority":
            value = coerce_priority(value)
        elif name == "labels":
            value = _coerce_labels(value)
        elif name == "estimate_hours":
            value = _check_estimate(value)
        plan.changes[name] = value

    if "status" in plan.changes:
        completed, entry = plan_status_change(task.status, plan.changes["status"], now)
        plan.changes.update(completed)
        if entry is not None:
            plan.activity.append(entry)

    if "description" in plan.changes and description_changed(task.description, plan.changes["description"]):
        plan.activity.append(ActivityEntry(TaskEventType.DESCRIPTION_UPDATED, None))

    if plan.activity:
        logger.debug("Task %s update yields %s", task.id, [e.event_type.value for e in plan.activity])

    return plan


# ---------------------------------------------------------------------------
# Read-side views
# ---------------------------------------------------------------------------


def is_open(task: Any) -> bool:
    return task.status != TaskStatus.DONE


def is_overdue(task: Any, now: Optional[datetime] = None) -> bool:
    """True when the task has a due date in the past and is not DONE."""

    if task.due_date is None or not is_open(task):
        return False
    now = now or utc_now_naive()
    return as_naive_utc(task.due_date) < as_naive_utc(now)


def open_tasks(tasks: Iterable[Any]) -> List[Any]:
    return [t for t in tasks if is_open(t)]


def project_name(task: Any) -> str:
    project = getattr(task, "project", None)
    name = getattr(project, "name", None) if project is not None else None
    return name or UNKNOWN_PROJECT


def group_by_project(tasks: Iterable[Any]) -> Dict[str, List[Any]]:
    """Partition *tasks* by project name, groups in first-seen order."""

    grouped: Dict[str, List[Any]] = {}
    for task in tasks:
        grouped.setdefault(project_name(task), []).append(task)
    return grouped


def filter_tasks(
    tasks: Iterable[Any],
    *,
    status: Optional[Any] = None,
    priority: Optional[Any] = None,
    label: Optional[str] = None,
) -> List[Any]:
    """Apply the list-view filters; *label* matches as case-insensitive substring."""

    result = list(tasks)
    if status:
        result = [t for t in result if t.status == coerce_status(status)]
    if priority:
        result = [t for t in result if t.priority == coerce_priority(priority)]
    if label:
        needle = label.lower()
        result = [t for t in result if any(needle in lbl.lower() for lbl in (t.labels or []))]
    return result


def _sort_key(field_name: SortField):
    if field_name == "priority":
        return lambda t: PRIORITY_RANK[coerce_priority(t.priority)]
    if field_name == "due_date":
        # Missing due dates compare greater than any real date.
        return lambda t: (t.due_date is None, as_naive_utc(t.due_date) if t.due_date else datetime.min)
    if field_name == "created_at":
        return lambda t: as_naive_utc(t.created_at) if t.created_at else datetime.min
    if field_name == "title":
        return lambda t: (t.title.casefold(), t.title)
    raise ValueError(f"Unknown sort field: {field_name!r}")


def sort_tasks(tasks: Iterable[Any], sort_field: SortField = "created_at", direction: SortDirection = "desc") -> List[Any]:
    """Stable sort by one field; ``desc`` reverses the comparison.

    Tasks without a due date stay at the end in both directions when sorting
    by ``due_date``.
    """

    reverse = direction == "desc"
    key = _sort_key(sort_field)
    if sort_field != "due_date":
        return sorted(tasks, key=key, reverse=reverse)

    tasks = list(tasks)
    dated = sorted((t for t in tasks if t.due_date is not None), key=key, reverse=reverse)
    return dated + [t for t in tasks if t.due_date is None]


def toggle_sort(
    current_field: SortField, current_direction: SortDirection, requested: SortField
) -> Tuple[SortField, SortDirection]:
    """Clicking the active column flips direction; a new column starts ascending."""

    if requested == current_field:
        return requested, "desc" if current_direction == "asc" else "asc"
    return requested, "asc"


def urgent_tasks(tasks: Iterable[Any], now: Optional[datetime] = None, limit: int = URGENT_ITEMS_LIMIT) -> List[Any]:
    """BLOCKED tasks first, then overdue open ones, truncated to *limit*."""

    now = now or utc_now_naive()
    urgent = [t for t in tasks if t.status == TaskStatus.BLOCKED or is_overdue(t, now)]
    urgent.sort(key=lambda t: t.status != TaskStatus.BLOCKED)
    return urgent[:limit]


def task_stats(tasks: Sequence[Any], now: Optional[datetime] = None) -> Dict[str, int]:
    now = now or utc_now_naive()
    return {
        "open": sum(1 for t in tasks if is_open(t)),
        "in_progress": sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS),
        "blocked": sum(1 for t in tasks if t.status == TaskStatus.BLOCKED),
        "overdue": sum(1 for t in tasks if is_overdue(t, now)),
        "done": sum(1 for t in tasks if t.status == TaskStatus.DONE),
    }


def recent_open_tasks(tasks: Iterable[Any], limit: int = RECENT_TASKS_LIMIT) -> List[Any]:
    """Most recently updated tasks that are not DONE."""

    candidates = open_tasks(tasks)
    candidates.sort(key=lambda t: as_naive_utc(t.updated_at) if t.updated_at else datetime.min, reverse=True)
    return candidates[:limit]


def upcoming_deadlines(tasks: Iterable[Any], now: Optional[datetime] = None) -> List[Any]:
    """Open tasks due now or later, soonest first."""

    now = as_naive_utc(now or utc_now_naive())
    upcoming = [t for t in tasks if is_open(t) and t.due_date is not None and as_naive_utc(t.due_date) >= now]
    upcoming.sort(key=lambda t: as_naive_utc(t.due_date))
    return upcoming


def project_workload(tasks: Iterable[Any], limit: int = WORKLOAD_LIMIT) -> List[Dict[str, Any]]:
    """Projects ranked by number of open tasks."""

    workload: Dict[Any, Dict[str, Any]] = {}
    for task in open_tasks(tasks):
        row = workload.setdefault(
            task.project_id, {"project_id": task.project_id, "name": project_name(task), "open": 0, "blocked": 0}
        )
        row["open"] += 1
        if task.status == TaskStatus.BLOCKED:
            row["blocked"] += 1
    return sorted(workload.values(), key=lambda r: r["open"], reverse=True)[:limit]


def project_task_counts(
    status_counts: Iterable[Tuple[Any, Any, int]],
    overdue_counts: Optional[Dict[Any, int]] = None,
    last_activity: Optional[Dict[Any, datetime]] = None,
) -> Dict[Any, Dict[str, Any]]:
    """Fold ``(project_id, status, count)`` rows into per-project counters."""

    overdue_counts = overdue_counts or {}
    last_activity = last_activity or {}
    counts: Dict[Any, Dict[str, Any]] = {}

    def _row(project_id):
        return counts.setdefault(
            project_id,
            {
                "total": 0,
                "open": 0,
                "in_progress": 0,
                "blocked": 0,
                "overdue": overdue_counts.get(project_id, 0),
                "last_activity_at": last_activity.get(project_id),
            },
        )

    for project_id, status, count in status_counts:
        status = coerce_status(status)
        row = _row(project_id)
        row["total"] += count
        if status != TaskStatus.DONE:
            row["open"] += count
        if status == TaskStatus.IN_PROGRESS:
            row["in_progress"] += count
        if status == TaskStatus.BLOCKED:
            row["blocked"] += count

    # Projects whose only signal is activity/overdue still get a row.
    for project_id in set(overdue_counts) | set(last_activity):
        _row(project_id)

    return counts


def dashboard_summary(tasks: Sequence[Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Everything the dashboard's task widgets show, computed in one pass."""

    now = now or utc_now_naive()
    return {
        "stats": task_stats(tasks, now),
        "urgent": urgent_tasks(tasks, now),
        "recent": recent_open_tasks(tasks),
        "upcoming": upcoming_deadlines(tasks, now),
        "workload": project_workload(tasks),
    }


__all__ = [
    "PRIORITY_RANK",
    "ActivityEntry",
    "TaskUpdatePlan",
    "coerce_status",
    "coerce_priority",
    "prepare_new_task",
    "creation_entry",
    "plan_status_change",
    "description_changed",
    "plan_task_update",
    "is_open",
    "is_overdue",
    "open_tasks",
    "project_name",
    "group_by_project",
    "filter_tasks",
    "sort_tasks",
    "toggle_sort",
    "urgent_tasks",
    "task_stats",
    "recent_open_tasks",
    "upcoming_deadlines",
    "project_workload",
    "project_task_counts",
    "dashboard_summary",
]
