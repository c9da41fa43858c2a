"""Client proposal routes module."""

from typing import List

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import status
from sqlalchemy.orm import Session

from devdeck.crud import crud
from devdeck.database import get_db
from devdeck.schemas.schemas import DeleteResult
from devdeck.schemas.schemas import Proposal
from devdeck.schemas.schemas import ProposalCreate
from devdeck.schemas.schemas import ProposalUpdate

router = APIRouter(tags=["proposals"])


@router.get("", response_model=List[Proposal])
def read_proposals(db: Session = Depends(get_db)):
    """Proposals grouped by status, most recently updated first."""
    return crud.get_proposals(db)


@router.post("", response_model=Proposal, status_code=status.HTTP_201_CREATED)
def create_proposal(proposal: ProposalCreate, db: Session = Depends(get_db)):
    return crud.create_proposal(db, proposal.model_dump())


@router.get("/{proposal_id}", response_model=Proposal)
def read_proposal(proposal_id: int, db: Session = Depends(get_db)):
    db_proposal = crud.get_proposal(db, proposal_id)
    if db_proposal is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Proposal not found")
    return db_proposal


@router.put("/{proposal_id}", response_model=Proposal)
def update_proposal(proposal_id: int, proposal: ProposalUpdate, db: Session = Depends(get_db)):
    db_proposal = crud.update_proposal(db, proposal_id, proposal.model_dump(exclude_unset=True))
    if db_proposal is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Proposal not found")
    return db_proposal


@router.delete("/{proposal_id}", response_model=DeleteResult)
def delete_proposal(proposal_id: int, db: Session = Depends(get_db)):
    if not crud.delete_proposal(db, proposal_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Proposal not found")
    return DeleteResult()
