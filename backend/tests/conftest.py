"""
Pytest fixtures for test database, client, identities and events.

Every test gets its own SQLite database file, so tests stay isolated and
two sessions can write to the same database (concurrency tests) the way
two requests would.
"""

import os

# Must be set before the app reads its settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["REDIS_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["EVENT_PUBLISHER"] = "logging"

from datetime import timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.main import app
from app.core.security import create_access_token
from app.db.base import Base, utcnow
from app.db.session import build_engine, get_db, session_scope
from app.models.enums import AdministrativeStatus, EligibilityRule, Role
from app.models.event import Event
from app.models.round import Round
from app.models.user import User
from app.services.interfaces.publisher import DomainEventPublisher
from app.services.publisher_factory import set_publisher


class RecordingPublisher(DomainEventPublisher):
    """Keeps published domain events in memory."""

    def __init__(self):
        self.events = []

    async def publish(self, event) -> None:
        self.events.append(event)

    def types(self) -> list:
        return [event.type.value for event in self.events]


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Fresh database file with all tables."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'lifecycle.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each get their own session on the test database."""

    async def override_get_db():
        async with session_scope(session_factory) as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def published():
    """Capture domain events published after commit."""
    publisher = RecordingPublisher()
    set_publisher(publisher)
    yield publisher
    set_publisher(None)


async def _add_user(db: AsyncSession, email: str, full_name: str, role: Role) -> User:
    user = User(email=email, full_name=full_name, role=role.value)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def organizer(db_session: AsyncSession) -> User:
    return await _add_user(db_session, "organizer@example.com", "Olive Organizer", Role.ORGANIZER)


@pytest_asyncio.fixture
async def other_organizer(db_session: AsyncSession) -> User:
    return await _add_user(db_session, "other@example.com", "Oscar Other", Role.ORGANIZER)


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await _add_user(db_session, "admin@example.com", "Ada Admin", Role.ADMIN)


@pytest_asyncio.fixture
async def participant(db_session: AsyncSession) -> User:
    return await _add_user(db_session, "student@example.com", "Sam Student", Role.STUDENT)


@pytest_asyncio.fixture
async def participants(db_session: AsyncSession) -> list[User]:
    return [
        await _add_user(db_session, f"student{i}@example.com", f"Student {i}", Role.STUDENT)
        for i in range(3)
    ]


def headers_for(user: User) -> dict:
    """Authorization headers as the auth service would mint them."""
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_headers():
    return headers_for


@pytest.fixture
def organizer_headers(organizer: User) -> dict:
    return headers_for(organizer)


@pytest.fixture
def admin_headers(admin: User) -> dict:
    return headers_for(admin)


@pytest.fixture
def participant_headers(participant: User) -> dict:
    return headers_for(participant)


@pytest_asyncio.fixture
async def make_event(db_session: AsyncSession, organizer: User):
    """
    Factory for committed events. Defaults: published, starts tomorrow,
    lasts two days, one unbounded round.
    """

    async def _make(
        title: str = "Spring Hackathon",
        rounds: int = 1,
        capacity: int = None,
        status: AdministrativeStatus = AdministrativeStatus.PUBLISHED,
        starts_in: timedelta = timedelta(days=1),
        lasts: timedelta = timedelta(days=2),
    ) -> Event:
        start = utcnow() + starts_in
        event = Event(
            title=title,
            venue="Main Hall",
            start_date=start,
            end_date=start + lasts,
            administrative_status=status.value,
            organizer_id=organizer.id,
            rounds=[
                Round(
                    sequence_number=i,
                    name=f"Round {i + 1}",
                    eligibility_rule=(EligibilityRule.OPEN if i == 0 else EligibilityRule.PASSED_PREVIOUS).value,
                    capacity=capacity if i == 0 else None,
                    admitted_count=0,
                )
                for i in range(rounds)
            ],
        )
        db_session.add(event)
        await db_session.commit()
        await db_session.refresh(event)
        return event

    return _make


@pytest_asyncio.fixture
async def published_event(make_event) -> Event:
    return await make_event()


@pytest_asyncio.fixture
async def two_round_event(make_event) -> Event:
    return await make_event(title="Code Sprint", rounds=2)
