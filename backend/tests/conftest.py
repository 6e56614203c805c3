import os

# Must be set before any workspace_manager import: settings are read at
# import time and TESTING switches on the auth bypass and short retry delays.
os.environ.setdefault("TESTING", "1")

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import workspace_manager.database as _db_mod  # noqa: E402
from workspace_manager.client.local_store import LocalStore  # noqa: E402
from workspace_manager.client.local_store import MemoryStorageBackend  # noqa: E402
from workspace_manager.config import get_settings  # noqa: E402
from workspace_manager.crud import crud  # noqa: E402
from workspace_manager.database import Base  # noqa: E402
from workspace_manager.database import get_db  # noqa: E402
from workspace_manager.database import make_engine  # noqa: E402
from workspace_manager.database import make_sessionmaker  # noqa: E402
from workspace_manager.dependencies.auth import get_current_user  # noqa: E402
from workspace_manager.utils.time import utc_now_naive  # noqa: E402

# Create a test database - using in-memory SQLite for tests
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

test_engine = make_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # one shared connection for the in-memory database
)

TestingSessionLocal = make_sessionmaker(test_engine)

# Scripts and services that open their own sessions must hit the test DB too.
_db_mod.default_engine = test_engine
_db_mod.default_session_factory = TestingSessionLocal

# Import app after all engine setup is in place
from workspace_manager.main import app  # noqa: E402


@pytest.fixture
def db_session():
    """Fresh schema per test, dropped afterwards."""

    Base.metadata.create_all(bind=test_engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db_session):
    """FastAPI TestClient bound to the test database."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    client = TestClient(app, backend="asyncio")
    yield client

    app.dependency_overrides = {}


@pytest.fixture
def act_as():
    """Make subsequent requests authenticate as *user*."""

    def _act_as(user):
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    yield _act_as
    app.dependency_overrides.pop(get_current_user, None)


# ---------------------------------------------------------------------------
# Users and a small workspace hierarchy
# ---------------------------------------------------------------------------


@pytest.fixture
def admin_user(db_session):
    return crud.create_user(db_session, email="admin@example.com", role="ADMIN", display_name="Admin")


@pytest.fixture
def owner_user(db_session):
    return crud.create_user(db_session, email="owner@example.com", display_name="Owner")


@pytest.fixture
def member_user(db_session):
    return crud.create_user(db_session, email="member@example.com", display_name="Member")


@pytest.fixture
def outsider_user(db_session):
    return crud.create_user(db_session, email="outsider@example.com", display_name="Outsider")


@pytest.fixture
def sample_workspace(db_session, owner_user, member_user):
    return crud.create_workspace(
        db_session,
        name="Sample Workspace",
        owner_id=owner_user.id,
        members=[{"user_id": member_user.id, "role": "member"}],
    )


@pytest.fixture
def sample_project(db_session, sample_workspace, owner_user):
    return crud.create_project(
        db_session,
        name="Sample Project",
        workspace_id=sample_workspace.id,
        created_by_id=owner_user.id,
    )


@pytest.fixture
def sample_task(db_session, sample_project, owner_user):
    return crud.create_task(
        db_session,
        title="Task 1: Research",
        project_id=sample_project.id,
        created_by_id=owner_user.id,
    )


@pytest.fixture
def make_work_session(db_session):
    """Create a session for *user* whose last activity was *idle* ago."""

    def _make(user, *, idle=timedelta(0), status="active", context=None):
        now = utc_now_naive()
        work_session = crud.create_session(db_session, user_id=user.id, context=context or {}, status=status)
        work_session.started_at = now - idle - timedelta(minutes=30)
        work_session.last_active = now - idle
        db_session.commit()
        return work_session

    return _make


# ---------------------------------------------------------------------------
# Client-side helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def client_settings():
    settings = get_settings(validate=False)
    settings.override(
        sync_max_attempts=3,
        sync_base_delay=0.001,
        sync_max_delay=0.002,
        sync_stuck_threshold=3,
        recovery_max_points=5,
    )
    return settings


@pytest.fixture
def local_store():
    return LocalStore(MemoryStorageBackend())
