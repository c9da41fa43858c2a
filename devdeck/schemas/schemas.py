from datetime import datetime
from typing import Any
from typing import ClassVar
from typing import Dict
from typing import List
from typing import Literal
from typing import Optional
from typing import Tuple

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import model_validator

from devdeck.models.enums import BillingCycle
from devdeck.models.enums import TaskEventType
from devdeck.models.enums import TaskPriority
from devdeck.models.enums import TaskStatus


class PartialUpdate(BaseModel):
    """Body of a PUT: omitted fields stay as they are.

    Columns listed in ``non_nullable`` may be left out but not sent as ``null``.
    """

    non_nullable: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def _reject_nulls(cls, data: Any):
        if not isinstance(data, dict):
            return data
        nulls = [name for name in cls.non_nullable if name in data and data[name] is None]
        if nulls:
            raise ValueError(f"{', '.join(nulls)} may not be null")
        return data


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class ProjectBase(BaseModel):
    name: str
    description: Optional[str] = None
    production_url: Optional[str] = None
    staging_url: Optional[str] = None
    vercel_project_url: Optional[str] = None
    github_repo_url: Optional[str] = None
    readme: Optional[str] = None
    architecture: Optional[str] = None
    notes: Optional[str] = None
    tech_stack: List[str] = Field(default_factory=list)
    status: str = "active"
    tags: List[str] = Field(default_factory=list)


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(PartialUpdate):
    non_nullable = ("name", "status")

    name: Optional[str] = None
    description: Optional[str] = None
    production_url: Optional[str] = None
    staging_url: Optional[str] = None
    vercel_project_url: Optional[str] = None
    github_repo_url: Optional[str] = None
    readme: Optional[str] = None
    architecture: Optional[str] = None
    notes: Optional[str] = None
    tech_stack: Optional[List[str]] = None
    status: Optional[str] = None
    tags: Optional[List[str]] = None


class ProjectTaskCounts(BaseModel):
    total: int = 0
    open: int = 0
    in_progress: int = 0
    blocked: int = 0
    overdue: int = 0
    last_activity_at: Optional[datetime] = None


class Project(ProjectBase):
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectSummary(Project):
    """Listing row: project plus secret/task counters."""

    credential_count: int = 0
    env_variable_count: int = 0
    task_counts: ProjectTaskCounts = Field(default_factory=ProjectTaskCounts)


class ProjectRef(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Credentials & env variables (always plaintext on the wire)
# ---------------------------------------------------------------------------


class CredentialBase(BaseModel):
    label: str
    username: Optional[str] = None
    password: Optional[str] = None
    url: Optional[str] = None
    notes: Optional[str] = None


class CredentialCreate(CredentialBase):
    pass


class CredentialUpdate(PartialUpdate):
    non_nullable = ("label",)

    label: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    url: Optional[str] = None
    notes: Optional[str] = None


class Credential(CredentialBase):
    id: int
    project_id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EnvVariableBase(BaseModel):
    environment: str = "development"
    key: str
    value: str


class EnvVariableCreate(EnvVariableBase):
    pass


class EnvVariableUpdate(PartialUpdate):
    non_nullable = ("environment", "key", "value")

    environment: Optional[str] = None
    key: Optional[str] = None
    value: Optional[str] = None


class EnvVariable(EnvVariableBase):
    id: int
    project_id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectDetail(Project):
    credentials: List[Credential] = Field(default_factory=list)
    env_variables: List[EnvVariable] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskCreate(BaseModel):
    # Title/project are validated by the lifecycle layer so a missing value
    # surfaces as the same 400 the rest of the task rules produce.
    project_id: Optional[int] = None
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    labels: List[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None
    estimate_hours: Optional[float] = Field(default=None, ge=0)
    blocked_reason: Optional[str] = None


class TaskUpdate(BaseModel):
    """Partial update – only fields present in the request body are applied.

    Sending ``null`` clears a field (e.g. ``"due_date": null``).
    """

    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    labels: Optional[List[str]] = None
    due_date: Optional[datetime] = None
    estimate_hours: Optional[float] = Field(default=None, ge=0)
    blocked_reason: Optional[str] = None


class TaskActivity(BaseModel):
    id: int
    task_id: int
    event_type: TaskEventType
    payload: Optional[Dict[str, Any]] = None
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class Task(BaseModel):
    id: int
    project_id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    labels: List[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    blocked_reason: Optional[str] = None
    estimate_hours: Optional[float] = None
    created_at: datetime
    updated_at: datetime
    project: Optional[ProjectRef] = None

    model_config = ConfigDict(from_attributes=True)


class TaskDetail(Task):
    activity_log: List[TaskActivity] = Field(default_factory=list)


class WorkloadRow(BaseModel):
    project_id: int
    name: str
    open: int
    blocked: int


class TaskDashboard(BaseModel):
    stats: Dict[str, int]
    urgent: List[Task]
    recent: List[Task]
    upcoming: List[Task]
    workload: List[WorkloadRow]


# ---------------------------------------------------------------------------
# Services (subscriptions)
# ---------------------------------------------------------------------------


class ServiceBase(BaseModel):
    name: str
    category: Optional[str] = None
    price: float = 0.0
    currency: str = "USD"
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    auto_renew: bool = True
    remind_before_renew: bool = False
    start_date: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    status: str = "active"
    url: Optional[str] = None
    account_email: Optional[str] = None
    notes: Optional[str] = None


class ServiceCreate(ServiceBase):
    pass


class ServiceUpdate(PartialUpdate):
    non_nullable = ("name", "price", "currency", "billing_cycle", "auto_renew", "remind_before_renew", "status")

    name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    billing_cycle: Optional[BillingCycle] = None
    auto_renew: Optional[bool] = None
    remind_before_renew: Optional[bool] = None
    start_date: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    status: Optional[str] = None
    url: Optional[str] = None
    account_email: Optional[str] = None
    notes: Optional[str] = None


class Service(ServiceBase):
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Proposals
# ---------------------------------------------------------------------------


class ProposalBase(BaseModel):
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_company: Optional[str] = None
    title: str
    requirements: Optional[str] = None
    notes: Optional[str] = None
    estimated_price: Optional[float] = None
    currency: str = "ILS"
    status: str = "draft"
    sent_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    deadline: Optional[datetime] = None


class ProposalCreate(ProposalBase):
    pass


class ProposalUpdate(PartialUpdate):
    non_nullable = ("customer_name", "title", "currency", "status")

    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_company: Optional[str] = None
    title: Optional[str] = None
    requirements: Optional[str] = None
    notes: Optional[str] = None
    estimated_price: Optional[float] = None
    currency: Optional[str] = None
    status: Optional[str] = None
    sent_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    deadline: Optional[datetime] = None


class Proposal(ProposalBase):
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


class NoteBase(BaseModel):
    title: str
    content: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    is_pinned: bool = False


class NoteCreate(NoteBase):
    pass


class NoteUpdate(PartialUpdate):
    non_nullable = ("title", "is_pinned")

    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[List[str]] = None
    category: Optional[str] = None
    is_pinned: Optional[bool] = None


class Note(NoteBase):
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DeleteResult(BaseModel):
    success: bool = True


# ---------------------------------------------------------------------------
# Home page
# ---------------------------------------------------------------------------


class ProjectStats(BaseModel):
    total: int
    active: int
    in_development: int


class ProposalStats(BaseModel):
    pending: int
    accepted: int
    in_progress: int
    pipeline_value: float
    won_revenue: float


class ServiceCost(BaseModel):
    id: int
    name: str
    monthly_cost: float


class Deadline(BaseModel):
    kind: Literal["task", "proposal"]
    id: int
    title: str
    date: datetime
    # Project name for tasks, customer name for proposals
    context: Optional[str] = None


class DashboardOverview(TaskDashboard):
    projects: ProjectStats
    proposals: ProposalStats
    monthly_spend: float
    renewal_alerts: List[Service]
    top_services: List[ServiceCost]
    deadlines: List[Deadline]
