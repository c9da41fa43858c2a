"""Credential and env-variable routes, nested under a project.

Sensitive values are encrypted before they reach the database and decrypted
on the way out; write responses echo the plaintext the caller sent.
"""

import logging
from typing import List

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import status
from sqlalchemy.orm import Session

from devdeck.crud import crud
from devdeck.database import get_db
from devdeck.schemas.schemas import Credential
from devdeck.schemas.schemas import CredentialCreate
from devdeck.schemas.schemas import CredentialUpdate
from devdeck.schemas.schemas import DeleteResult
from devdeck.schemas.schemas import EnvVariable
from devdeck.schemas.schemas import EnvVariableCreate
from devdeck.schemas.schemas import EnvVariableUpdate
from devdeck.services.secrets import credential_out
from devdeck.services.secrets import encrypt_credential_fields
from devdeck.services.secrets import encrypt_env_fields
from devdeck.services.secrets import env_variable_out

logger = logging.getLogger(__name__)

router = APIRouter(tags=["credentials"])


def _require_project(db: Session, project_id: int) -> None:
    if crud.get_project(db, project_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")


def _echo(row_out, plaintext: dict):
    return row_out.model_copy(update=plaintext)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@router.get("/{project_id}/credentials", response_model=List[Credential])
def read_credentials(project_id: int, db: Session = Depends(get_db)):
    return [credential_out(c) for c in crud.get_credentials(db, project_id)]


@router.post("/{project_id}/credentials", response_model=Credential, status_code=status.HTTP_201_CREATED)
def create_credential(project_id: int, credential: CredentialCreate, db: Session = Depends(get_db)):
    _require_project(db, project_id)
    fields = credential.model_dump()
    db_credential = crud.create_credential(db, project_id, encrypt_credential_fields(fields))
    return _echo(Credential.model_validate(db_credential), fields)


@router.put("/{project_id}/credentials/{credential_id}", response_model=Credential)
def update_credential(
    project_id: int, credential_id: int, credential: CredentialUpdate, db: Session = Depends(get_db)
):
    fields = credential.model_dump(exclude_unset=True)
    db_credential = crud.get_credential(db, credential_id)
    if db_credential is None or db_credential.project_id != project_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Credential not found")

    db_credential = crud.update_credential(db, credential_id, encrypt_credential_fields(fields))
    return _echo(credential_out(db_credential), fields)


@router.delete("/{project_id}/credentials/{credential_id}", response_model=DeleteResult)
def delete_credential(project_id: int, credential_id: int, db: Session = Depends(get_db)):
    db_credential = crud.get_credential(db, credential_id)
    if db_credential is None or db_credential.project_id != project_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Credential not found")
    crud.delete_credential(db, credential_id)
    return DeleteResult()


# ---------------------------------------------------------------------------
# Environment variables
# ---------------------------------------------------------------------------


@router.get("/{project_id}/env", response_model=List[EnvVariable])
def read_env_variables(project_id: int, db: Session = Depends(get_db)):
    """Env variables ordered by environment, then key."""
    return [env_variable_out(e) for e in crud.get_env_variables(db, project_id)]


@router.post("/{project_id}/env", response_model=EnvVariable, status_code=status.HTTP_201_CREATED)
def create_env_variable(project_id: int, env: EnvVariableCreate, db: Session = Depends(get_db)):
    _require_project(db, project_id)
    fields = env.model_dump()
    db_env = crud.create_env_variable(db, project_id, encrypt_env_fields(fields))
    return _echo(EnvVariable.model_validate(db_env), fields)


@router.put("/{project_id}/env/{env_id}", response_model=EnvVariable)
def update_env_variable(project_id: int, env_id: int, env: EnvVariableUpdate, db: Session = Depends(get_db)):
    fields = env.model_dump(exclude_unset=True)
    db_env = crud.get_env_variable(db, env_id)
    if db_env is None or db_env.project_id != project_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Env variable not found")

    db_env = crud.update_env_variable(db, env_id, encrypt_env_fields(fields))
    return _echo(env_variable_out(db_env), fields)


@router.delete("/{project_id}/env/{env_id}", response_model=DeleteResult)
def delete_env_variable(project_id: int, env_id: int, db: Session = Depends(get_db)):
    db_env = crud.get_env_variable(db, env_id)
    if db_env is None or db_env.project_id != project_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Env variable not found")
    crud.delete_env_variable(db, env_id)
    return DeleteResult()
