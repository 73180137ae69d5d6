import os

# Keep app startup (init_db) off the on-disk default database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine, select  # noqa: E402

from bracket_engine.database import get_session, use_immediate_transactions  # noqa: E402
from bracket_engine.main import app  # noqa: E402
from bracket_engine.models.event import Event  # noqa: E402
from bracket_engine.models.team import Team  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. Use sqlite:///:memory: with StaticPool so ALL sessions share same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models are imported in tests/__init__.py before create_all()
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables created before and dropped after every test
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() and stay in place
    for the entire duration. This ensures the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_event(session: Session):
    """Factory: event with teams numbered 1..team_count."""

    def _make(team_count: int = 8, seeding_rounds: int = 3, name: str = "Test Event") -> Event:
        event = Event(name=name, seeding_rounds=seeding_rounds)
        session.add(event)
        session.commit()
        session.refresh(event)
        for n in range(1, team_count + 1):
            session.add(Team(event_id=event.id, team_number=n, team_name=f"Team {n}"))
        session.commit()
        return event

    return _make


@pytest.fixture
def teams_of(session: Session):
    """Teams of an event ordered by team_number."""

    def _teams(event_id: int):
        return session.exec(select(Team).where(Team.event_id == event_id).order_by(Team.team_number)).all()

    return _teams


@pytest.fixture
def file_engine(tmp_path):
    """On-disk SQLite engine locked like the app's, for tests that run sessions side by side."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'brackets.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
    )
    use_immediate_transactions(engine)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def make_file_event(file_engine):
    """Factory: event with teams on file_engine. Returns (event_id, team ids by team_number)."""

    def _make(team_count: int = 4, seeding_rounds: int = 1):
        with Session(file_engine) as session:
            event = Event(name="Test Event", seeding_rounds=seeding_rounds)
            session.add(event)
            session.commit()
            event_id = event.id
            for n in range(1, team_count + 1):
                session.add(Team(event_id=event_id, team_number=n, team_name=f"Team {n}"))
            session.commit()
            team_ids = session.exec(
                select(Team.id).where(Team.event_id == event_id).order_by(Team.team_number)
            ).all()
        return event_id, list(team_ids)

    return _make
