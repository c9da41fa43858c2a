"""Encrypt-on-write / decrypt-on-read for credential and env-variable rows.

Only the sensitive columns go through :mod:`devdeck.utils.crypto`; labels,
URLs, keys and environment names stay in plaintext so they remain
searchable.
"""

from typing import Any
from typing import Dict

from devdeck.models.models import Credential as CredentialModel
from devdeck.models.models import EnvVariable as EnvVariableModel
from devdeck.schemas.schemas import Credential
from devdeck.schemas.schemas import EnvVariable
from devdeck.utils.crypto import decrypt
from devdeck.utils.crypto import encrypt

CREDENTIAL_SECRET_FIELDS = ("username", "password", "notes")
ENV_SECRET_FIELDS = ("value",)


def _encrypt_fields(fields: Dict[str, Any], names) -> Dict[str, Any]:
    encrypted = dict(fields)
    for name in names:
        if name in encrypted:
            encrypted[name] = encrypt(encrypted[name])
    return encrypted


def encrypt_credential_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return _encrypt_fields(fields, CREDENTIAL_SECRET_FIELDS)


def encrypt_env_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return _encrypt_fields(fields, ENV_SECRET_FIELDS)


def credential_out(row: CredentialModel) -> Credential:
    """Response model for *row* with secrets decrypted."""

    out = Credential.model_validate(row)
    return out.model_copy(update={name: decrypt(getattr(row, name)) for name in CREDENTIAL_SECRET_FIELDS})


def env_variable_out(row: EnvVariableModel) -> EnvVariable:
    out = EnvVariable.model_validate(row)
    return out.model_copy(update={"value": decrypt(row.value)})


__all__ = [
    "encrypt_credential_fields",
    "encrypt_env_fields",
    "credential_out",
    "env_variable_out",
]
