# ---------------------------------------------------------------------------
# NOTE: Imported by routers, the client and the task views, so keep this
# module free of side-effects and heavyweight imports.
# ---------------------------------------------------------------------------

from typing import Final

# Base API prefix (all HTTP routes are served under /api/*)
API_PREFIX: Final = "/api"

# Router prefixes (relative to API_PREFIX)
PROJECTS_PREFIX: Final = "/projects"
TASKS_PREFIX: Final = "/tasks"
SERVICES_PREFIX: Final = "/services"
PROPOSALS_PREFIX: Final = "/proposals"
NOTES_PREFIX: Final = "/notes"
DASHBOARD_PREFIX: Final = "/dashboard"

# Request cache ---------------------------------------------------------------
# Entries younger than the TTL are served from memory; past half the TTL a
# background revalidation refreshes them.
DEFAULT_TTL_SECONDS: Final = 30.0

# Dashboard -------------------------------------------------------------------
UNKNOWN_PROJECT: Final = "Unknown Project"
URGENT_ITEMS_LIMIT: Final = 5
RECENT_TASKS_LIMIT: Final = 5
WORKLOAD_LIMIT: Final = 5
TOP_SERVICES_LIMIT: Final = 3
DEADLINES_LIMIT: Final = 8
