"""Route prefixes shared by ``main`` and the routers."""

# Base API prefix (all HTTP routes are served under /api/*)
API_PREFIX = "/api"

# Router prefixes (relative to API_PREFIX)
WORKSPACES_PREFIX = "/workspaces"
PROJECTS_PREFIX = "/projects"
TASKS_PREFIX = "/tasks"
SYNC_PREFIX = "/sync"
