"""
Tests for per-team event number allocation.
"""
import asyncio
import re
from datetime import datetime
import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from backend.database.db import Base, build_engine
from backend.database.init_defaults import seed_reference_data
from backend.database.models import Label, Team, User
from backend.models.schemas import CreateEventRequest, parse_payload
from backend.services import event_service, sequence_service
from backend.services.exceptions import NotFoundError
from backend.utils.constants import RoleId, TeamStatus, UserStatus


async def _team_sequence(session, team_id):
    result = await session.execute(select(Team.event_sequence).where(Team.id == team_id))
    return result.scalar_one()


def test_format_event_no():
    assert sequence_service.format_event_no("ACME", 1) == "ACME-1"
    assert sequence_service.format_event_no("ACME", 12) == "ACME-12"
    assert sequence_service.format_event_no("u15_blue", 100) == "u15_blue-100"


def test_format_event_no_rejects_non_positive_sequence():
    with pytest.raises(ValueError):
        sequence_service.format_event_no("ACME", 0)


@pytest.mark.asyncio
async def test_allocate_increments_counter(db_session, seeded):
    """Each allocation returns the incremented counter and its event number."""
    first = await sequence_service.allocate_event_no(db_session, seeded.team_id)
    second = await sequence_service.allocate_event_no(db_session, seeded.team_id)
    await db_session.commit()

    assert first == (1, "ACME-1")
    assert second == (2, "ACME-2")
    assert await _team_sequence(db_session, seeded.team_id) == 2


@pytest.mark.asyncio
async def test_allocate_is_rolled_back_with_transaction(db_session, seeded):
    await sequence_service.allocate_event_no(db_session, seeded.team_id)
    await db_session.rollback()

    assert await _team_sequence(db_session, seeded.team_id) == 0


@pytest.mark.asyncio
async def test_allocate_counters_are_per_team(db_session, seeded):
    await sequence_service.allocate_event_no(db_session, seeded.team_id)
    other = await sequence_service.allocate_event_no(db_session, seeded.other_team_id)
    await db_session.commit()

    assert other.event_no == "OTHER-1"


@pytest.mark.asyncio
async def test_allocate_unknown_team(db_session, seeded):
    with pytest.raises(NotFoundError):
        await sequence_service.allocate_event_no(db_session, 999999)


@pytest.mark.asyncio
async def test_created_events_are_numbered_in_order(db_session, seeded, event_payload):
    """ACME starts at 0; two creations yield ACME-1 then ACME-2."""
    payload = parse_payload(CreateEventRequest, event_payload())

    first = await event_service.create_event(db_session, seeded.team_id, seeded.owner_id, payload)
    assert first.event_no == "ACME-1"
    assert await _team_sequence(db_session, seeded.team_id) == 1

    second = await event_service.create_event(db_session, seeded.team_id, seeded.owner_id, payload)
    assert second.event_no == "ACME-2"
    assert await _team_sequence(db_session, seeded.team_id) == 2


@pytest.mark.asyncio
async def test_event_no_matches_counter_after_creation(db_session, seeded, event_payload):
    payload = parse_payload(CreateEventRequest, event_payload())
    for _ in range(3):
        created = await event_service.create_event(
            db_session, seeded.team_id, seeded.owner_id, payload
        )
        sequence = await _team_sequence(db_session, seeded.team_id)
        assert re.fullmatch(r"ACME-\d+", created.event_no)
        assert created.event_no == f"ACME-{sequence}"


@pytest.mark.asyncio
async def test_concurrent_creations_get_distinct_numbers(
    postgres_only, session_factory, seeded, event_payload
):
    """Parallel transactions serialize on the team row and never share a number."""
    payload = parse_payload(CreateEventRequest, event_payload())
    count = 10

    async def create_one():
        async with session_factory() as session:
            created = await event_service.create_event(
                session, seeded.team_id, seeded.owner_id, payload
            )
            return created.event_no

    event_nos = await asyncio.gather(*(create_one() for _ in range(count)))

    assert len(set(event_nos)) == count
    assert sorted(event_nos, key=lambda n: int(n.split("-")[1])) == [
        f"ACME-{i}" for i in range(1, count + 1)
    ]


@pytest_asyncio.fixture
async def file_sqlite_factory(tmp_path):
    """
    Session factory over a file-backed SQLite database with a normal
    connection pool, so every session gets its own connection.

    SQLite takes its write lock on the counter UPDATE; the other writers wait
    out the busy timeout and then see the committed counter.
    """
    engine = build_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'sequence.db'}", connect_args={"timeout": 30}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    yield factory
    await engine.dispose()


@pytest.mark.asyncio
async def test_concurrent_creations_on_sqlite_file(file_sqlite_factory):
    """Parallel creations over separate SQLite connections never share a number."""
    async with file_sqlite_factory() as session:
        await seed_reference_data(session)
        team = Team(name="Acme Youth", code="ACME", status=TeamStatus.ACTIVE, event_sequence=0)
        session.add(team)
        await session.flush()
        owner = User(
            auth_user_id="auth|owner", team_id=team.id, role_id=RoleId.OWNER,
            status=UserStatus.CONFIRMED, name="Olivia Owner", email="owner@example.com",
        )
        label = Label(team_id=team.id, name="Practice", color="#00ff00", type="event",
                      system_flag=False)
        session.add_all([owner, label])
        await session.commit()
        team_id, owner_id = team.id, owner.id
        payload = parse_payload(CreateEventRequest, {
            "title": "Tuesday practice",
            "label_id": label.id,
            "start_date_time": datetime(2026, 5, 5, 17, 0),
            "end_date_time": datetime(2026, 5, 5, 18, 30),
        })
    count = 10

    async def create_one():
        async with file_sqlite_factory() as session:
            created = await event_service.create_event(session, team_id, owner_id, payload)
            return created.event_no

    event_nos = await asyncio.gather(*(create_one() for _ in range(count)))

    assert len(set(event_nos)) == count
    assert sorted(event_nos, key=lambda n: int(n.split("-")[1])) == [
        f"ACME-{i}" for i in range(1, count + 1)
    ]
    async with file_sqlite_factory() as session:
        assert await _team_sequence(session, team_id) == count
