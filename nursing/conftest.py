import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from nursing.database import get_session, init_db
from nursing.factories import NOW, make_patient
from nursing.main import app
from nursing.models import ClinicalHistory
from nursing.queries import QueryEngine
from nursing.services import RelationshipManager
from nursing.store import Store

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture(name="engine")
def engine_fixture():
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(TEST_DATABASE_URL)
    init_db(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    """
    Provide a clean database session for each test.
    """
    with Session(engine) as session:
        yield session


@pytest.fixture
def store(session):
    return Store(session)


@pytest.fixture
def manager(store):
    return RelationshipManager(store)


@pytest.fixture
def queries(store):
    return QueryEngine(store, clock=lambda: NOW)


@pytest.fixture
def patient(manager):
    return manager.admit_patient(make_patient())


@pytest.fixture
def history(manager, patient):
    return manager.create_history(
        ClinicalHistory(sex="F", height=1.65, weight=60.5, blood_type="A+"), patient.id
    )


@pytest_asyncio.fixture
async def client(session):
    """
    Provide an async test client with the session override.
    """

    def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
