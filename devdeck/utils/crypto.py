"""*Fernet* encryption helper for credential and env-variable values.

The key is read from the ``ENCRYPTION_KEY`` setting (url-safe base64, 32
bytes – generate one with ``Fernet.generate_key()``).  It is resolved on every
call so tests and key rotations do not require a process restart.
"""

from __future__ import annotations

import logging
from typing import Optional

from cryptography.fernet import Fernet
from cryptography.fernet import InvalidToken

from devdeck.config import get_settings

logger = logging.getLogger(__name__)


def _get_fernet() -> Fernet:
    key = get_settings().encryption_key
    if not key:
        raise RuntimeError("ENCRYPTION_KEY environment variable is not set")

    try:
        return Fernet(key.encode())
    except (ValueError, TypeError) as exc:
        raise RuntimeError("ENCRYPTION_KEY is not a valid url-safe base64 32-byte key") from exc


# ---------------------------------------------------------------------------
# Public encryption helpers
# ---------------------------------------------------------------------------


def encrypt(text: Optional[str]) -> Optional[str]:  # noqa: D401 – thin wrapper
    """Encrypt *text* and return url-safe base64 ciphertext.

    Empty values are stored as-is, there is nothing to protect.
    """

    if not text:
        return text
    return _get_fernet().encrypt(text.encode()).decode()


def decrypt(token: Optional[str]) -> Optional[str]:
    """Decrypt *token* back to a UTF-8 string.

    Rows written before a key rotation (or never encrypted at all) cannot be
    decrypted with the current key.  Those values are returned unchanged so a
    single bad row does not break the whole credentials view.
    """

    if not token:
        return token

    fernet = _get_fernet()
    try:
        return fernet.decrypt(token.encode()).decode()
    except (InvalidToken, UnicodeDecodeError):
        logger.warning("Could not decrypt stored value – returning it unchanged")
        return token


__all__ = [
    "encrypt",
    "decrypt",
]
