"""Home page route: every dashboard panel in one response."""

from fastapi import APIRouter
from fastapi import Depends
from sqlalchemy.orm import Session

from devdeck.crud import crud
from devdeck.database import get_db
from devdeck.schemas.schemas import DashboardOverview
from devdeck.services import overview

router = APIRouter(tags=["dashboard"])


@router.get("", response_model=DashboardOverview)
def read_dashboard(db: Session = Depends(get_db)):
    return overview.dashboard_overview(
        crud.get_projects(db),
        crud.get_tasks(db),
        crud.get_services(db),
        crud.get_proposals(db),
    )
