import logging

from fastapi import FastAPI
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from devdeck.config import get_settings
from devdeck.constants import API_PREFIX
from devdeck.constants import DASHBOARD_PREFIX
from devdeck.constants import NOTES_PREFIX
from devdeck.constants import PROJECTS_PREFIX
from devdeck.constants import PROPOSALS_PREFIX
from devdeck.constants import SERVICES_PREFIX
from devdeck.constants import TASKS_PREFIX
from devdeck.database import initialize_database
from devdeck.routers.credentials import router as credentials_router
from devdeck.routers.dashboard import router as dashboard_router
from devdeck.routers.notes import router as notes_router
from devdeck.routers.projects import router as projects_router
from devdeck.routers.proposals import router as proposals_router
from devdeck.routers.services import router as services_router
from devdeck.routers.tasks import router as tasks_router

_settings = get_settings()

# --------------------------------------------------------------------------
# LOGGING CONFIGURATION
# --------------------------------------------------------------------------
#
# - Default log level: INFO (dev-friendly)
# - Can be set at runtime with LOG_LEVEL env (e.g. LOG_LEVEL=WARNING for CI)
#
_log_level = getattr(logging, _settings.log_level.upper(), logging.INFO)
logging.basicConfig(level=_log_level, format="%(levelname)s - %(message)s", handlers=[logging.StreamHandler()])

logger = logging.getLogger(__name__)

app = FastAPI(title="devdeck", redirect_slashes=True)

# ------------------------------------------------------------------
# CORS – open wildcard in tests, restricted otherwise unless
# `ALLOWED_CORS_ORIGINS` (comma-separated) says so.
# ------------------------------------------------------------------

if _settings.testing:
    cors_origins = ["*"]
elif _settings.allowed_cors_origins.strip():
    cors_origins = [o.strip() for o in _settings.allowed_cors_origins.split(",") if o.strip()]
else:
    cors_origins = ["http://localhost:3000"]


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    """Log the real error, hand the client a generic failure notice."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include our API routers with centralized prefixes
app.include_router(projects_router, prefix=f"{API_PREFIX}{PROJECTS_PREFIX}")
app.include_router(credentials_router, prefix=f"{API_PREFIX}{PROJECTS_PREFIX}")
app.include_router(tasks_router, prefix=f"{API_PREFIX}{TASKS_PREFIX}")
app.include_router(services_router, prefix=f"{API_PREFIX}{SERVICES_PREFIX}")
app.include_router(proposals_router, prefix=f"{API_PREFIX}{PROPOSALS_PREFIX}")
app.include_router(notes_router, prefix=f"{API_PREFIX}{NOTES_PREFIX}")
app.include_router(dashboard_router, prefix=f"{API_PREFIX}{DASHBOARD_PREFIX}")


@app.on_event("startup")
async def startup_event():
    """Create DB tables if they don't exist."""
    initialize_database()
    logger.info("Database tables initialized")


# Root endpoint
@app.get("/")
async def read_root():
    """Return a simple message to indicate the API is working."""
    return {"message": "devdeck API is running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
