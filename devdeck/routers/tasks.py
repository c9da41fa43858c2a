"""Task routes module.

Creation and updates go through :mod:`devdeck.crud.crud`, which applies the
task lifecycle rules and writes the activity log in the same commit.
"""

import logging
from typing import List
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import Query
from fastapi import status
from sqlalchemy.orm import Session

from devdeck.crud import crud
from devdeck.database import get_db
from devdeck.errors import NotFoundError
from devdeck.errors import TaskValidationError
from devdeck.schemas.schemas import DeleteResult
from devdeck.schemas.schemas import Task
from devdeck.schemas.schemas import TaskCreate
from devdeck.schemas.schemas import TaskDashboard
from devdeck.schemas.schemas import TaskDetail
from devdeck.schemas.schemas import TaskUpdate
from devdeck.services import task_lifecycle

logger = logging.getLogger(__name__)

router = APIRouter(tags=["tasks"])


@router.get("", response_model=List[Task])
def read_tasks(
    project_id: Optional[int] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    db: Session = Depends(get_db),
):
    """List tasks; unknown filter values are ignored."""
    return crud.get_tasks(
        db,
        project_id=project_id,
        status=status_filter,
        priority=priority,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.post("", response_model=Task, status_code=status.HTTP_201_CREATED)
def create_task(task: TaskCreate, db: Session = Depends(get_db)):
    try:
        return crud.create_task(db, task.model_dump())
    except TaskValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.get("/search", response_model=List[Task])
def search_tasks(q: Optional[str] = None, db: Session = Depends(get_db)):
    if not q:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Search query (q) is required")
    return crud.search_tasks(db, q)


@router.get("/dashboard", response_model=TaskDashboard)
def read_dashboard(db: Session = Depends(get_db)):
    """Stats, urgent items, recent tasks, deadlines and workload in one call."""
    return task_lifecycle.dashboard_summary(crud.get_tasks(db))


@router.get("/{task_id}", response_model=TaskDetail)
def read_task(task_id: int, db: Session = Depends(get_db)):
    db_task = crud.get_task(db, task_id)
    if db_task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return db_task


@router.put("/{task_id}", response_model=TaskDetail)
def update_task(task_id: int, task: TaskUpdate, db: Session = Depends(get_db)):
    """Partial update; only fields present in the body are applied."""
    try:
        db_task = crud.update_task(db, task_id, task.model_dump(exclude_unset=True))
    except TaskValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if db_task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return db_task


@router.delete("/{task_id}", response_model=DeleteResult)
def delete_task(task_id: int, db: Session = Depends(get_db)):
    if not crud.delete_task(db, task_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return DeleteResult()
