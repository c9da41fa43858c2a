"""Structured logger for background work.

Request handlers log through the std-lib ``logging`` module.  Work that runs
detached from any request (cache revalidation, the dashboard client) emits
key/value events instead, so the fields survive into JSON log pipelines::

    from devdeck.utils.log import log

    log.warning("revalidate-failed", key=key, error=str(exc))
"""

from __future__ import annotations

from typing import Any

import structlog

# Keep the logger global so every import shares the same base instance.
log = structlog.get_logger("devdeck")

# Attach a default processor chain only if the application has not
# configured structlog already.
if not structlog.is_configured():
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ]
    )


def get_logger(**bindings: Any):  # noqa: D401 – factory helper
    """Return a child logger with optional key/value bindings."""

    return log.bind(**bindings)


__all__ = ["log", "get_logger"]
