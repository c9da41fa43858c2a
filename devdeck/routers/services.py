"""Subscription service routes module."""

from typing import List

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import status
from sqlalchemy.orm import Session

from devdeck.crud import crud
from devdeck.database import get_db
from devdeck.schemas.schemas import DeleteResult
from devdeck.schemas.schemas import Service
from devdeck.schemas.schemas import ServiceCreate
from devdeck.schemas.schemas import ServiceUpdate

router = APIRouter(tags=["services"])


@router.get("", response_model=List[Service])
def read_services(db: Session = Depends(get_db)):
    """All services grouped by status, then alphabetical."""
    return crud.get_services(db)


@router.post("", response_model=Service, status_code=status.HTTP_201_CREATED)
def create_service(service: ServiceCreate, db: Session = Depends(get_db)):
    return crud.create_service(db, service.model_dump())


@router.get("/{service_id}", response_model=Service)
def read_service(service_id: int, db: Session = Depends(get_db)):
    db_service = crud.get_service(db, service_id)
    if db_service is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    return db_service


@router.put("/{service_id}", response_model=Service)
def update_service(service_id: int, service: ServiceUpdate, db: Session = Depends(get_db)):
    db_service = crud.update_service(db, service_id, service.model_dump(exclude_unset=True))
    if db_service is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    return db_service


@router.delete("/{service_id}", response_model=DeleteResult)
def delete_service(service_id: int, db: Session = Depends(get_db)):
    if not crud.delete_service(db, service_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    return DeleteResult()
