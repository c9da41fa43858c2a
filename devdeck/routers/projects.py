"""Project routes module."""

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
from devdeck.schemas.schemas import DeleteResult
from devdeck.schemas.schemas import Project
from devdeck.schemas.schemas import ProjectCreate
from devdeck.schemas.schemas import ProjectDetail
from devdeck.schemas.schemas import ProjectSummary
from devdeck.schemas.schemas import ProjectTaskCounts
from devdeck.schemas.schemas import ProjectUpdate
from devdeck.schemas.schemas import Task
from devdeck.services.secrets import credential_out
from devdeck.services.secrets import env_variable_out

logger = logging.getLogger(__name__)

router = APIRouter(tags=["projects"])


def _get_project_or_404(db: Session, project_id: int):
    db_project = crud.get_project(db, project_id)
    if db_project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return db_project


@router.get("", response_model=List[ProjectSummary])
def read_projects(db: Session = Depends(get_db)):
    """All projects with credential/env counts and task counters."""
    projects = crud.get_projects(db)
    task_counts = crud.get_project_counts(db)
    secret_counts = crud.get_secret_counts(db)

    return [
        ProjectSummary(
            **Project.model_validate(p).model_dump(),
            credential_count=secret_counts.get(p.id, {}).get("credential_count", 0),
            env_variable_count=secret_counts.get(p.id, {}).get("env_variable_count", 0),
            task_counts=ProjectTaskCounts(**task_counts.get(p.id, {})),
        )
        for p in projects
    ]


@router.post("", response_model=Project, status_code=status.HTTP_201_CREATED)
def create_project(project: ProjectCreate, db: Session = Depends(get_db)):
    return crud.create_project(db, project.model_dump())


@router.get("/{project_id}", response_model=ProjectDetail)
def read_project(project_id: int, db: Session = Depends(get_db)):
    """Project with its credentials and env variables decrypted."""
    db_project = _get_project_or_404(db, project_id)
    return ProjectDetail(
        **Project.model_validate(db_project).model_dump(),
        credentials=[credential_out(c) for c in db_project.credentials],
        env_variables=[env_variable_out(e) for e in db_project.env_variables],
    )


@router.put("/{project_id}", response_model=Project)
def update_project(project_id: int, project: ProjectUpdate, db: Session = Depends(get_db)):
    fields = project.model_dump(exclude_unset=True)
    # List columns are never NULL; an explicit null empties them.
    for name in ("tech_stack", "tags"):
        if name in fields and fields[name] is None:
            fields[name] = []
    db_project = crud.update_project(db, project_id, fields)
    if db_project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return db_project


@router.delete("/{project_id}", response_model=DeleteResult)
def delete_project(project_id: int, db: Session = Depends(get_db)):
    if not crud.delete_project(db, project_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    logger.info("Deleted project %s", project_id)
    return DeleteResult()


@router.get("/{project_id}/tasks", response_model=List[Task])
def read_project_tasks(
    project_id: int,
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Tasks of one project, newest first."""
    _get_project_or_404(db, project_id)
    return crud.get_tasks(db, project_id=project_id, status=status_filter, priority=priority)
