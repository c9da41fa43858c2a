"""Centralised configuration helper.

This module eliminates scattered ``os.getenv`` calls by exposing a **single**
:class:`Settings` container (retrieved via :func:`get_settings`).  Values come
from the process environment, optionally seeded from a ``.env`` file in the
repository root through *python-dotenv*.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# ``_REPO_ROOT`` points to the top-level repository directory.  We use
# ``parents[2]`` because this file is located at ``devdeck/config/__init__.py``.

_REPO_ROOT = Path(__file__).resolve().parents[2]


def _truthy(value: str | None) -> bool:  # noqa: D401 – small helper
    """Return *True* when *value* looks like an affirmative string."""

    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:  # noqa: D401 – simple data container
    """Lightweight settings container populated from environment variables."""

    # Runtime flags -----------------------------------------------------
    testing: bool

    # Database ---------------------------------------------------------
    database_url: str

    # Cryptography -----------------------------------------------------
    encryption_key: Any

    # HTTP --------------------------------------------------------------
    allowed_cors_origins: str
    api_base_url: str

    # Request cache -----------------------------------------------------
    request_cache_ttl: float

    # Misc
    log_level: str

    @property
    def resolved_database_url(self) -> str:
        """Return the configured URL or the SQLite fallback."""

        if self.database_url:
            return self.database_url
        return "sqlite:///:memory:" if self.testing else "sqlite:///./devdeck.db"


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def _load_settings() -> Settings:  # noqa: D401 – helper
    """Populate :class:`Settings` from environment variables."""

    # ``.env.test`` wins during test runs so the developer's real database and
    # key never leak into the suite.
    testing = _truthy(os.getenv("TESTING"))
    if testing and (_REPO_ROOT / ".env.test").exists():
        env_path = _REPO_ROOT / ".env.test"
    else:
        env_path = _REPO_ROOT / ".env"

    if env_path.exists():
        # Variables already exported by the shell take precedence.
        load_dotenv(env_path, override=False)
        # TESTING itself may come from the file.
        testing = _truthy(os.getenv("TESTING"))

    return Settings(
        testing=testing,
        database_url=os.getenv("DATABASE_URL", ""),
        encryption_key=os.getenv("ENCRYPTION_KEY"),
        allowed_cors_origins=os.getenv("ALLOWED_CORS_ORIGINS", ""),
        api_base_url=os.getenv("API_BASE_URL", "http://localhost:8000"),
        request_cache_ttl=float(os.getenv("REQUEST_CACHE_TTL", "30")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


# ------------------------------------------------------------------
# Runtime validation – fail fast when *required* secrets are missing.
# ------------------------------------------------------------------


def _validate_required(settings: Settings) -> None:  # noqa: D401 – helper
    """Abort startup when mandatory configuration is missing.

    Credentials and env-variable values are stored encrypted, so running
    without ``ENCRYPTION_KEY`` would make every write to those tables fail.
    Tests supply their own key through the fixtures and are exempt.
    """

    if settings.testing:
        return

    missing_vars = []

    if not settings.database_url:
        missing_vars.append("DATABASE_URL")

    if not settings.encryption_key:
        missing_vars.append("ENCRYPTION_KEY")

    if settings.request_cache_ttl <= 0:
        missing_vars.append("REQUEST_CACHE_TTL (must be > 0)")

    if missing_vars:
        error_msg = (
            f"CRITICAL: Missing required environment variables: {', '.join(missing_vars)}\n"
            f"Set these in your .env file or deployment environment."
        )
        raise RuntimeError(error_msg)


def get_settings() -> Settings:  # noqa: D401 – public accessor
    """Return :class:`Settings` instance loaded from environment."""

    settings = _load_settings()
    _validate_required(settings)
    return settings


__all__ = [
    "Settings",
    "get_settings",
]
