"""Note routes module."""

from typing import List
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import status
from sqlalchemy.orm import Session

from devdeck.crud import crud
from devdeck.database import get_db
from devdeck.schemas.schemas import DeleteResult
from devdeck.schemas.schemas import Note
from devdeck.schemas.schemas import NoteCreate
from devdeck.schemas.schemas import NoteUpdate

router = APIRouter(tags=["notes"])


@router.get("", response_model=List[Note])
def read_notes(q: Optional[str] = None, category: Optional[str] = None, db: Session = Depends(get_db)):
    """Pinned first; *q* matches title, content and tags."""
    return crud.get_notes(db, q=q, category=category)


@router.post("", response_model=Note, status_code=status.HTTP_201_CREATED)
def create_note(note: NoteCreate, db: Session = Depends(get_db)):
    return crud.create_note(db, note.model_dump())


@router.get("/{note_id}", response_model=Note)
def read_note(note_id: int, db: Session = Depends(get_db)):
    db_note = crud.get_note(db, note_id)
    if db_note is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    return db_note


@router.put("/{note_id}", response_model=Note)
def update_note(note_id: int, note: NoteUpdate, db: Session = Depends(get_db)):
    fields = note.model_dump(exclude_unset=True)
    if "tags" in fields and fields["tags"] is None:
        fields["tags"] = []
    db_note = crud.update_note(db, note_id, fields)
    if db_note is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    return db_note


@router.delete("/{note_id}", response_model=DeleteResult)
def delete_note(note_id: int, db: Session = Depends(get_db)):
    if not crud.delete_note(db, note_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    return DeleteResult()
