import os

# Keep app startup off the on-disk default database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from doubles_scheduler.database import build_engine, get_session, init_db  # noqa: E402
from doubles_scheduler.main import app  # noqa: E402

# StaticPool keeps one connection, so every session (and the TestClient
# thread) sees the same in-memory database.
test_engine = build_engine("sqlite:///:memory:", poolclass=StaticPool)


def override_get_session():
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session")
def session_fixture():
    """Fresh schema per test"""
    init_db(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
