from sqlalchemy import JSON
from sqlalchemy import Boolean
from sqlalchemy import Column
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Float
from sqlalchemy import ForeignKey
from sqlalchemy import Integer
from sqlalchemy import String
from sqlalchemy import Text
from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy.orm import relationship

# Local helpers / enums
from devdeck.database import Base
from devdeck.models.enums import TaskEventType
from devdeck.models.enums import TaskPriority
from devdeck.models.enums import TaskStatus
from devdeck.utils.time import utc_now_naive

# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class Project(Base):
    """A tracked software project – the parent of tasks and secrets."""

    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    # Deployment links -------------------------------------------------------
    production_url = Column(String, nullable=True)
    staging_url = Column(String, nullable=True)
    vercel_project_url = Column(String, nullable=True)
    github_repo_url = Column(String, nullable=True)

    # Long-form documentation ------------------------------------------------
    readme = Column(Text, nullable=True)
    architecture = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Lists are stored as JSON arrays; Python code only ever sees ``list``.
    tech_stack = Column(MutableList.as_mutable(JSON), nullable=False, default=list)
    tags = Column(MutableList.as_mutable(JSON), nullable=False, default=list)

    status = Column(String, nullable=False, default="active")

    created_at = Column(DateTime, default=utc_now_naive)
    updated_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive)

    tasks = relationship("Task", back_populates="project", cascade="all, delete-orphan", passive_deletes=True)
    credentials = relationship(
        "Credential", back_populates="project", cascade="all, delete-orphan", passive_deletes=True
    )
    env_variables = relationship(
        "EnvVariable",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by=lambda: (EnvVariable.environment, EnvVariable.key),
    )


# ---------------------------------------------------------------------------
# Tasks & activity log
# ---------------------------------------------------------------------------


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    # Immutable after creation – the update path never touches it.
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(
        SAEnum(TaskStatus, native_enum=False, name="task_status_enum"),
        nullable=False,
        default=TaskStatus.TODO.value,
        index=True,
    )
    priority = Column(
        SAEnum(TaskPriority, native_enum=False, name="task_priority_enum"),
        nullable=False,
        default=TaskPriority.MEDIUM.value,
    )
    labels = Column(MutableList.as_mutable(JSON), nullable=False, default=list)

    due_date = Column(DateTime, nullable=True)
    # Derived from status transitions – never written by callers directly.
    completed_at = Column(DateTime, nullable=True)
    # Only meaningful while status == BLOCKED
    blocked_reason = Column(Text, nullable=True)
    estimate_hours = Column(Float, nullable=True)

    created_at = Column(DateTime, default=utc_now_naive)
    updated_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive)

    project = relationship("Project", back_populates="tasks")
    activity_log = relationship(
        "TaskActivityLog",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by=lambda: (TaskActivityLog.timestamp.desc(), TaskActivityLog.id.desc()),
    )


class TaskActivityLog(Base):
    """Append-only history entry for a task.

    Rows are only ever inserted by :mod:`devdeck.crud.crud` together with the
    task write that produced them; they disappear only when their task is
    deleted.
    """

    __tablename__ = "task_activity_log"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(
        SAEnum(TaskEventType, native_enum=False, name="task_event_type_enum"),
        nullable=False,
    )
    payload = Column(MutableDict.as_mutable(JSON), nullable=True)
    timestamp = Column(DateTime, nullable=False, default=utc_now_naive, index=True)

    task = relationship("Task", back_populates="activity_log")


# ---------------------------------------------------------------------------
# Secrets (values encrypted at rest by the API layer)
# ---------------------------------------------------------------------------


class Credential(Base):
    __tablename__ = "credentials"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(String, nullable=False)
    username = Column(Text, nullable=True)  # encrypted
    password = Column(Text, nullable=True)  # encrypted
    url = Column(String, nullable=True)
    notes = Column(Text, nullable=True)  # encrypted

    created_at = Column(DateTime, default=utc_now_naive)
    updated_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive)

    project = relationship("Project", back_populates="credentials")


class EnvVariable(Base):
    __tablename__ = "env_variables"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    environment = Column(String, nullable=False, default="development")
    key = Column(String, nullable=False)
    value = Column(Text, nullable=False)  # encrypted

    created_at = Column(DateTime, default=utc_now_naive)
    updated_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive)

    project = relationship("Project", back_populates="env_variables")


# ---------------------------------------------------------------------------
# Stand-alone records
# ---------------------------------------------------------------------------


class Service(Base):
    """Paid subscription (hosting, SaaS, domains …)."""

    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    price = Column(Float, nullable=False, default=0.0)
    currency = Column(String, nullable=False, default="USD")
    billing_cycle = Column(String, nullable=False, default="monthly")
    auto_renew = Column(Boolean, nullable=False, default=True)
    remind_before_renew = Column(Boolean, nullable=False, default=False)
    start_date = Column(DateTime, nullable=True)
    next_billing_date = Column(DateTime, nullable=True)
    status = Column(String, nullable=False, default="active")
    url = Column(String, nullable=True)
    account_email = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utc_now_naive)
    updated_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive)


class Proposal(Base):
    """Price proposal sent (or about to be sent) to a client."""

    __tablename__ = "proposals"

    id = Column(Integer, primary_key=True, index=True)
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=True)
    customer_phone = Column(String, nullable=True)
    customer_company = Column(String, nullable=True)
    title = Column(String, nullable=False)
    requirements = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    estimated_price = Column(Float, nullable=True)
    currency = Column(String, nullable=False, default="ILS")
    status = Column(String, nullable=False, default="draft")
    sent_at = Column(DateTime, nullable=True)
    responded_at = Column(DateTime, nullable=True)
    deadline = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utc_now_naive)
    updated_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive)


class Note(Base):
    __tablename__ = "notes"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=True)
    tags = Column(MutableList.as_mutable(JSON), nullable=False, default=list)
    category = Column(String, nullable=True)
    is_pinned = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utc_now_naive)
    updated_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive)
