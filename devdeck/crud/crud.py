import logging
from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from sqlalchemy import String
from sqlalchemy import case
from sqlalchemy import cast
from sqlalchemy import func
from sqlalchemy import or_
from sqlalchemy.orm import Session
from sqlalchemy.orm import selectinload

from devdeck.errors import NotFoundError
from devdeck.models.enums import TaskPriority
from devdeck.models.enums import TaskStatus
from devdeck.models.models import Credential
from devdeck.models.models import EnvVariable
from devdeck.models.models import Note
from devdeck.models.models import Project
from devdeck.models.models import Proposal
from devdeck.models.models import Service
from devdeck.models.models import Task
from devdeck.models.models import TaskActivityLog
from devdeck.services import task_lifecycle
from devdeck.utils.time import utc_now_naive

logger = logging.getLogger(__name__)

TASK_SORT_FIELDS = ("created_at", "updated_at", "priority", "due_date", "title")


def _apply(row: Any, fields: Dict[str, Any]) -> None:
    for name, value in fields.items():
        setattr(row, name, value)


def _commit_or_rollback(db: Session) -> None:
    """Commit the pending unit of work; on failure nothing of it survives."""

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def _delete_row(db: Session, row: Any) -> bool:
    if row is None:
        return False
    db.delete(row)
    _commit_or_rollback(db)
    return True


# ------------------------------------------------------------
# Project CRUD operations
# ------------------------------------------------------------


def get_projects(db: Session):
    """Return all projects, most recently updated first."""
    return db.query(Project).order_by(Project.updated_at.desc(), Project.id.desc()).all()


def get_project(db: Session, project_id: int):
    """Get a single project with its secrets eager-loaded."""
    return (
        db.query(Project)
        .options(selectinload(Project.credentials), selectinload(Project.env_variables))
        .filter(Project.id == project_id)
        .first()
    )


def create_project(db: Session, fields: Dict[str, Any]):
    db_project = Project(**fields)
    db.add(db_project)
    _commit_or_rollback(db)
    db.refresh(db_project)
    return db_project


def update_project(db: Session, project_id: int, fields: Dict[str, Any]):
    """Apply *fields* to a project; returns None if it does not exist."""
    db_project = db.query(Project).filter(Project.id == project_id).first()
    if db_project is None:
        return None
    _apply(db_project, fields)
    _commit_or_rollback(db)
    db.refresh(db_project)
    return db_project


def delete_project(db: Session, project_id: int) -> bool:
    """Delete a project together with its tasks, credentials and env vars."""
    return _delete_row(db, db.query(Project).filter(Project.id == project_id).first())


def get_project_counts(db: Session, now: Optional[datetime] = None) -> Dict[int, Dict[str, Any]]:
    """Per-project task counters computed with grouped queries.

    One query per counter family instead of one per project keeps the
    project listing cheap no matter how many projects exist.
    """
    now = now or utc_now_naive()

    status_rows = db.query(Task.project_id, Task.status, func.count(Task.id)).group_by(Task.project_id, Task.status)

    overdue_rows = (
        db.query(Task.project_id, func.count(Task.id))
        .filter(Task.status != TaskStatus.DONE, Task.due_date.isnot(None), Task.due_date < now)
        .group_by(Task.project_id)
    )

    activity_rows = (
        db.query(Task.project_id, func.max(TaskActivityLog.timestamp))
        .join(TaskActivityLog, TaskActivityLog.task_id == Task.id)
        .group_by(Task.project_id)
    )

    return task_lifecycle.project_task_counts(
        [(project_id, status, count) for project_id, status, count in status_rows],
        overdue_counts={project_id: count for project_id, count in overdue_rows},
        last_activity={project_id: ts for project_id, ts in activity_rows},
    )


def get_secret_counts(db: Session) -> Dict[int, Dict[str, int]]:
    counts: Dict[int, Dict[str, int]] = {}
    for project_id, count in db.query(Credential.project_id, func.count(Credential.id)).group_by(
        Credential.project_id
    ):
        counts.setdefault(project_id, {})["credential_count"] = count
    for project_id, count in db.query(EnvVariable.project_id, func.count(EnvVariable.id)).group_by(
        EnvVariable.project_id
    ):
        counts.setdefault(project_id, {})["env_variable_count"] = count
    return counts


# ------------------------------------------------------------
# Task CRUD operations
# ------------------------------------------------------------


def _task_query(db: Session):
    # Eager-load ``project`` so the response model can serialise it after the
    # request-scoped session is closed.
    return db.query(Task).options(selectinload(Task.project))


def _priority_rank_expr():
    return case(
        {priority.value: rank for priority, rank in task_lifecycle.PRIORITY_RANK.items()},
        value=Task.priority,
    )


def get_tasks(
    db: Session,
    *,
    project_id: Optional[int] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> List[Task]:
    """List tasks with the task page's filters.

    Unknown *status*/*priority* values are ignored rather than rejected, an
    unknown *sort_by* falls back to ``created_at`` and anything other than
    ``asc`` sorts descending.
    """

    query = _task_query(db)

    if project_id is not None:
        query = query.filter(Task.project_id == project_id)
    if status in TaskStatus.__members__:
        query = query.filter(Task.status == TaskStatus(status))
    if priority in TaskPriority.__members__:
        query = query.filter(Task.priority == TaskPriority(priority))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))

    if sort_by not in TASK_SORT_FIELDS:
        sort_by = "created_at"
    # Priority sorts by urgency rank, not by the stored label.
    column = _priority_rank_expr() if sort_by == "priority" else getattr(Task, sort_by)
    ordering = column.asc() if sort_order == "asc" else column.desc()

    return query.order_by(ordering, Task.id.desc()).all()


def search_tasks(db: Session, q: str) -> List[Task]:
    """Free-text search over title, description and labels."""
    pattern = f"%{q}%"
    return (
        _task_query(db)
        .filter(
            or_(
                Task.title.ilike(pattern),
                Task.description.ilike(pattern),
                cast(Task.labels, String).ilike(pattern),
            )
        )
        .order_by(Task.updated_at.desc(), Task.id.desc())
        .all()
    )


def get_task(db: Session, task_id: int):
    """Get a single task including its activity log (newest first)."""
    return (
        db.query(Task)
        .options(selectinload(Task.project), selectinload(Task.activity_log))
        .filter(Task.id == task_id)
        .populate_existing()
        .first()
    )


def get_task_activity(db: Session, task_id: int) -> List[TaskActivityLog]:
    return (
        db.query(TaskActivityLog)
        .filter(TaskActivityLog.task_id == task_id)
        .order_by(TaskActivityLog.timestamp.desc(), TaskActivityLog.id.desc())
        .all()
    )


def _append_activity(db: Session, task: Task, entries, now: datetime) -> None:
    for entry in entries:
        db.add(
            TaskActivityLog(
                task=task,
                event_type=entry.event_type,
                payload=entry.payload,
                timestamp=now,
            )
        )


def create_task(db: Session, fields: Dict[str, Any], now: Optional[datetime] = None) -> Task:
    """Create a task and its TASK_CREATED entry in one commit.

    Raises :class:`TaskValidationError` for bad input and
    :class:`NotFoundError` for an unknown project – in both cases nothing is
    written.
    """
    now = now or utc_now_naive()
    values = task_lifecycle.prepare_new_task(fields)

    if db.query(Project.id).filter(Project.id == values["project_id"]).first() is None:
        raise NotFoundError("Project", values["project_id"])

    if values["status"] == TaskStatus.DONE:
        values["completed_at"] = now

    db_task = Task(**values, created_at=now, updated_at=now)
    db.add(db_task)
    entry = task_lifecycle.creation_entry(values["title"], values["status"], values["priority"])
    _append_activity(db, db_task, [entry], now)

    _commit_or_rollback(db)
    db.refresh(db_task)
    logger.info("Created task %s in project %s", db_task.id, db_task.project_id)
    return db_task


def update_task(db: Session, task_id: int, changes: Dict[str, Any], now: Optional[datetime] = None):
    """Apply a partial update and the activity entries it implies.

    The task row and its new activity rows are committed together; if the
    commit fails both are rolled back.  Returns None for an unknown task.
    Concurrent writers are not detected – the last commit wins.
    """
    db_task = db.query(Task).filter(Task.id == task_id).first()
    if db_task is None:
        return None

    now = now or utc_now_naive()
    plan = task_lifecycle.plan_task_update(db_task, changes, now)

    _apply(db_task, plan.changes)
    db_task.updated_at = now
    _append_activity(db, db_task, plan.activity, now)

    _commit_or_rollback(db)
    return get_task(db, task_id)


def delete_task(db: Session, task_id: int) -> bool:
    """Delete a task; its activity log goes with it."""
    return _delete_row(db, db.query(Task).filter(Task.id == task_id).first())


# ------------------------------------------------------------
# Credential / env variable CRUD operations
# ------------------------------------------------------------


def get_credentials(db: Session, project_id: int) -> List[Credential]:
    return db.query(Credential).filter(Credential.project_id == project_id).order_by(Credential.id).all()


def get_credential(db: Session, credential_id: int):
    return db.query(Credential).filter(Credential.id == credential_id).first()


def create_credential(db: Session, project_id: int, fields: Dict[str, Any]):
    db_credential = Credential(project_id=project_id, **fields)
    db.add(db_credential)
    _commit_or_rollback(db)
    db.refresh(db_credential)
    return db_credential


def update_credential(db: Session, credential_id: int, fields: Dict[str, Any]):
    db_credential = get_credential(db, credential_id)
    if db_credential is None:
        return None
    _apply(db_credential, fields)
    _commit_or_rollback(db)
    db.refresh(db_credential)
    return db_credential


def delete_credential(db: Session, credential_id: int) -> bool:
    return _delete_row(db, get_credential(db, credential_id))


def get_env_variables(db: Session, project_id: int) -> List[EnvVariable]:
    return (
        db.query(EnvVariable)
        .filter(EnvVariable.project_id == project_id)
        .order_by(EnvVariable.environment.asc(), EnvVariable.key.asc())
        .all()
    )


def get_env_variable(db: Session, env_id: int):
    return db.query(EnvVariable).filter(EnvVariable.id == env_id).first()


def create_env_variable(db: Session, project_id: int, fields: Dict[str, Any]):
    db_env = EnvVariable(project_id=project_id, **fields)
    db.add(db_env)
    _commit_or_rollback(db)
    db.refresh(db_env)
    return db_env


def update_env_variable(db: Session, env_id: int, fields: Dict[str, Any]):
    db_env = get_env_variable(db, env_id)
    if db_env is None:
        return None
    _apply(db_env, fields)
    _commit_or_rollback(db)
    db.refresh(db_env)
    return db_env


def delete_env_variable(db: Session, env_id: int) -> bool:
    return _delete_row(db, get_env_variable(db, env_id))


# ------------------------------------------------------------
# Services, proposals, notes
# ------------------------------------------------------------


def get_services(db: Session) -> List[Service]:
    return db.query(Service).order_by(Service.status.asc(), Service.name.asc()).all()


def get_service(db: Session, service_id: int):
    return db.query(Service).filter(Service.id == service_id).first()


def create_service(db: Session, fields: Dict[str, Any]):
    db_service = Service(**fields)
    db.add(db_service)
    _commit_or_rollback(db)
    db.refresh(db_service)
    return db_service


def update_service(db: Session, service_id: int, fields: Dict[str, Any]):
    db_service = get_service(db, service_id)
    if db_service is None:
        return None
    _apply(db_service, fields)
    _commit_or_rollback(db)
    db.refresh(db_service)
    return db_service


def delete_service(db: Session, service_id: int) -> bool:
    return _delete_row(db, get_service(db, service_id))


def get_proposals(db: Session) -> List[Proposal]:
    return db.query(Proposal).order_by(Proposal.status.asc(), Proposal.updated_at.desc()).all()


def get_proposal(db: Session, proposal_id: int):
    return db.query(Proposal).filter(Proposal.id == proposal_id).first()


def create_proposal(db: Session, fields: Dict[str, Any]):
    db_proposal = Proposal(**fields)
    db.add(db_proposal)
    _commit_or_rollback(db)
    db.refresh(db_proposal)
    return db_proposal


def update_proposal(db: Session, proposal_id: int, fields: Dict[str, Any]):
    db_proposal = get_proposal(db, proposal_id)
    if db_proposal is None:
        return None
    _apply(db_proposal, fields)
    _commit_or_rollback(db)
    db.refresh(db_proposal)
    return db_proposal


def delete_proposal(db: Session, proposal_id: int) -> bool:
    return _delete_row(db, get_proposal(db, proposal_id))


def get_notes(db: Session, *, q: Optional[str] = None, category: Optional[str] = None) -> List[Note]:
    """Pinned notes first, then most recently updated."""
    query = db.query(Note)
    if q:
        pattern = f"%{q}%"
        query = query.filter(
            or_(Note.title.ilike(pattern), Note.content.ilike(pattern), cast(Note.tags, String).ilike(pattern))
        )
    if category:
        query = query.filter(Note.category == category)
    return query.order_by(Note.is_pinned.desc(), Note.updated_at.desc()).all()


def get_note(db: Session, note_id: int):
    return db.query(Note).filter(Note.id == note_id).first()


def create_note(db: Session, fields: Dict[str, Any]):
    db_note = Note(**fields)
    db.add(db_note)
    _commit_or_rollback(db)
    db.refresh(db_note)
    return db_note


def update_note(db: Session, note_id: int, fields: Dict[str, Any]):
    db_note = get_note(db, note_id)
    if db_note is None:
        return None
    _apply(db_note, fields)
    _commit_or_rollback(db)
    db.refresh(db_note)
    return db_note


def delete_note(db: Session, note_id: int) -> bool:
    return _delete_row(db, get_note(db, note_id))
