"""Domain exceptions raised below the HTTP layer.

Routers translate these into ``HTTPException`` so that crud/service code
stays free of FastAPI imports.
"""


class DevdeckError(Exception):
    """Base class for all domain errors."""


class NotFoundError(DevdeckError):
    """Requested row does not exist."""

    def __init__(self, resource: str, resource_id):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} {resource_id} not found")


class TaskValidationError(DevdeckError, ValueError):
    """Task input rejected before anything is persisted."""


__all__ = [
    "DevdeckError",
    "NotFoundError",
    "TaskValidationError",
]
