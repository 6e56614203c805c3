import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from workspace_manager.config import get_settings
from workspace_manager.constants import API_PREFIX
from workspace_manager.constants import PROJECTS_PREFIX
from workspace_manager.constants import SYNC_PREFIX
from workspace_manager.constants import TASKS_PREFIX
from workspace_manager.constants import WORKSPACES_PREFIX
from workspace_manager.database import initialize_database
from workspace_manager.events import event_bus
from workspace_manager.events.audit import register_session_audit
from workspace_manager.routers.metrics import router as metrics_router
from workspace_manager.routers.projects import router as projects_router
from workspace_manager.routers.sessions import router as sessions_router
from workspace_manager.routers.sync import router as sync_router
from workspace_manager.routers.tasks import router as tasks_router
from workspace_manager.routers.users import router as users_router
from workspace_manager.routers.workspaces import router as workspaces_router

# Load environment variables from .env
load_dotenv()

_settings = get_settings()

_log_level = getattr(logging, _settings.log_level.upper(), logging.INFO)
logging.basicConfig(level=_log_level, format="%(levelname)s - %(message)s", handlers=[logging.StreamHandler()])

logger = logging.getLogger(__name__)

app = FastAPI(title="Workspace Manager API", redirect_slashes=True)

# ------------------------------------------------------------------
# CORS – open wildcard in dev/tests, restricted otherwise unless
# ``ALLOWED_CORS_ORIGINS`` (comma-separated) overrides it.
# ------------------------------------------------------------------

if _settings.auth_disabled:
    cors_origins = ["*"]
else:
    cors_origins_env = _settings.allowed_cors_origins
    if cors_origins_env.strip():
        cors_origins = [o.strip() for o in cors_origins_env.split(",") if o.strip()]
    else:
        cors_origins = ["http://localhost:3000"]


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    """Log the failure and return a generic body; internals never leak."""

    logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=True)

    origin = request.headers.get("origin", "*")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
        headers={
            "Access-Control-Allow-Origin": origin if origin in cors_origins or "*" in cors_origins else cors_origins[0],
            "Access-Control-Allow-Credentials": "true",
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users_router, prefix=API_PREFIX)
app.include_router(workspaces_router, prefix=f"{API_PREFIX}{WORKSPACES_PREFIX}")
app.include_router(projects_router, prefix=f"{API_PREFIX}{PROJECTS_PREFIX}")
app.include_router(tasks_router, prefix=f"{API_PREFIX}{TASKS_PREFIX}")
app.include_router(sessions_router, prefix=API_PREFIX)
app.include_router(sync_router, prefix=f"{API_PREFIX}{SYNC_PREFIX}")
app.include_router(metrics_router)  # no prefix – Prometheus expects /metrics

register_session_audit(event_bus)


@app.on_event("startup")
async def startup_event():
    """Create DB tables on startup."""
    try:
        initialize_database()
        logger.info("Database tables initialized")
    except Exception as e:
        logger.error(f"Error during startup: {e}")


@app.get("/")
async def read_root():
    """Return a simple message to indicate the API is working."""
    return {"message": "Workspace Manager API is running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
