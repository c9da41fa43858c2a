import os

# Settings are read at import time by ``devdeck.database``; configure the
# environment before anything from the package is imported.
os.environ["TESTING"] = "1"

from cryptography.fernet import Fernet  # noqa: E402

os.environ["ENCRYPTION_KEY"] = Fernet.generate_key().decode()

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import devdeck.database as _db_mod  # noqa: E402
from devdeck.crud import crud  # noqa: E402
from devdeck.database import Base  # noqa: E402
from devdeck.database import get_db  # noqa: E402
from devdeck.database import make_engine  # noqa: E402
from devdeck.database import make_sessionmaker  # noqa: E402
from devdeck.models import models  # noqa: E402,F401
from devdeck.models.models import Project  # noqa: E402
from devdeck.models.models import Task  # noqa: E402

# Create a test database - using in-memory SQLite for tests
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

test_engine = make_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool for in-memory database
)

TestingSessionLocal = make_sessionmaker(test_engine)

# ``get_db()`` outside the request override must hit the test DB too
_db_mod.default_session_factory = TestingSessionLocal

# Import app after the engine setup is in place
from devdeck.main import app  # noqa: E402


@pytest.fixture
def db_session():
    """
    Creates a fresh database for each test, then tears it down after the test is done.
    """
    Base.metadata.create_all(bind=test_engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db_session):
    """
    Create a FastAPI TestClient with the test database dependency.
    """

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
def sample_project(db_session) -> Project:
    """Create a sample project in the database"""
    return crud.create_project(
        db_session,
        {"name": "Portfolio Site", "description": "Personal portfolio", "tech_stack": ["nextjs", "tailwind"]},
    )


@pytest.fixture
def sample_task(db_session, sample_project) -> Task:
    """Create a sample TODO task with its TASK_CREATED entry"""
    return crud.create_task(
        db_session,
        {
            "project_id": sample_project.id,
            "title": "Write landing page copy",
            "description": "Hero + about sections",
            "priority": "HIGH",
            "labels": ["content"],
        },
    )


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2025, 3, 1, 12, 0, 0)
