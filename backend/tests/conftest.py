import os
from pathlib import Path

from dotenv import load_dotenv
import pytest

# Must be set before app.database is imported: selects the in-memory engine.
os.environ.setdefault("PYTEST_RUN", "1")

# Load environment variables for tests
load_dotenv(Path(__file__).resolve().parents[1] / '.env.test')

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api import dependencies  # noqa: E402
from app.main import app  # noqa: E402
from app.models.base import BaseModel  # noqa: E402
from backend.tests.google_mocks import google_dummy_flow  # noqa: E402,F401


def setup_db():
    engine = create_engine(
        "sqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    BaseModel.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    return Session()


@pytest.fixture
def db():
    session = setup_db()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def api_session():
    """Session factory shared by the test and the app under ``TestClient``."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    BaseModel.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, expire_on_commit=False)

    def override_db():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[dependencies.get_db] = override_db
    # Immediate push is exercised explicitly; keep it off for plain CRUD tests.
    app.dependency_overrides[dependencies.auto_sync_enabled] = lambda: False
    try:
        yield Session
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def client(api_session):
    return TestClient(app)
