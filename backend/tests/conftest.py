"""
Shared pytest configuration for backend tests.

Runs against in-memory SQLite (aiosqlite) by default. Set TEST_DATABASE_URL
to run the same suite against PostgreSQL, which also enables the tests that
need real row locking.

SAFETY: a non-SQLite TEST_DATABASE_URL must name a database containing the
substring "test"; tables are dropped and recreated for every test.
"""

import os
from types import SimpleNamespace
from datetime import datetime
import pytest
import pytest_asyncio
from sqlalchemy import event as sa_event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from backend.database.db import Base, build_engine, is_sqlite_url
from backend.database.init_defaults import seed_reference_data
from backend.database.models import (
    AttendanceStatus, Label, Place, Player, Tag, Team, User,
)
from backend.utils.constants import RoleId, TeamStatus, UserStatus


def _resolve_test_database_url() -> str:
    """Build the test database URL with safety checks.

    Raises ``RuntimeError`` if a server database name does not contain "test".
    """
    url = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    if is_sqlite_url(url):
        return url

    # ── Safety gate: database name MUST contain "test" ──────────────────
    db_name = url.rsplit("/", 1)[-1].split("?")[0]  # strip query params
    if "test" not in db_name.lower():
        raise RuntimeError(
            f"\n{'=' * 70}\n"
            f"  SAFETY: Refusing to run tests against database '{db_name}'.\n"
            f"  The database name must contain 'test' to prevent accidental\n"
            f"  data loss in development or production databases.\n\n"
            f"  Fix: set TEST_DATABASE_URL to a test database, e.g.:\n"
            f"    export TEST_DATABASE_URL=postgresql+asyncpg://.../{db_name}_test\n"
            f"{'=' * 70}"
        )
    return url


TEST_DATABASE_URL = _resolve_test_database_url()
USING_SQLITE = is_sqlite_url(TEST_DATABASE_URL)

@pytest.fixture
def postgres_only():
    """Skip tests that need PostgreSQL row locking."""
    if USING_SQLITE:
        pytest.skip("needs PostgreSQL row locking (set TEST_DATABASE_URL)")


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a fresh schema for one test."""
    if USING_SQLITE:
        # One shared connection keeps the in-memory database alive
        engine = build_engine(
            TEST_DATABASE_URL,
            poolclass=StaticPool,
        )
    else:
        engine = build_engine(TEST_DATABASE_URL, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Database session for one test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def sql_recorder(test_engine):
    """
    Record the SQL statements sent to the database.

    Call ``sql_recorder.clear()`` right before the operation under test, then
    ``sql_recorder.count("INSERT", "taggables")``.
    """
    statements = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        statements.append(" ".join(statement.split()))

    sa_event.listen(test_engine.sync_engine, "before_cursor_execute", _record)

    def count(verb: str, table: str = None) -> int:
        return sum(
            1 for s in statements
            if s.upper().startswith(verb.upper()) and (table is None or table in s)
        )

    def writes() -> int:
        return sum(count(verb) for verb in ("INSERT", "UPDATE", "DELETE"))

    yield SimpleNamespace(statements=statements, clear=statements.clear, count=count, writes=writes)

    sa_event.remove(test_engine.sync_engine, "before_cursor_execute", _record)


@pytest_asyncio.fixture
async def seeded(db_session):
    """
    Reference data plus one team "ACME" with an owner, a manager, a member,
    three players, four team tags, an event label and a place.

    Returns plain ids so tests never touch expired ORM instances.
    """
    await seed_reference_data(db_session)

    team = Team(name="Acme Youth", code="ACME", status=TeamStatus.ACTIVE, event_sequence=0)
    other_team = Team(name="Other Club", code="OTHER", status=TeamStatus.ACTIVE, event_sequence=0)
    db_session.add_all([team, other_team])
    await db_session.flush()

    owner = User(
        auth_user_id="auth|owner", team_id=team.id, role_id=RoleId.OWNER,
        status=UserStatus.CONFIRMED, name="Olivia Owner", email="owner@example.com",
    )
    manager = User(
        auth_user_id="auth|manager", team_id=team.id, role_id=RoleId.MANAGER,
        status=UserStatus.CONFIRMED, name="Max Manager", email="manager@example.com",
    )
    member = User(
        auth_user_id="auth|member", team_id=team.id, role_id=RoleId.MEMBER,
        status=UserStatus.CONFIRMED, name="Mia Member", email="member@example.com",
    )
    outsider = User(
        auth_user_id="auth|outsider", team_id=other_team.id, role_id=RoleId.OWNER,
        status=UserStatus.CONFIRMED, name="Oscar Outsider", email="outsider@example.com",
    )
    db_session.add_all([owner, manager, member, outsider])
    await db_session.flush()

    players = [
        Player(team_id=team.id, parent_user_id=member.id, last_name="Tanaka", first_name="Ken"),
        Player(team_id=team.id, parent_user_id=member.id, last_name="Tanaka", first_name="Yui"),
        Player(team_id=team.id, parent_user_id=owner.id, last_name="Sato", first_name="Ren",
               nick_name="Rocket"),
    ]
    tags = [
        Tag(team_id=team.id, name=name, color="#123456", system_flag=False)
        for name in ("Forward", "Defense", "Goalie", "Captain")
    ]
    label = Label(team_id=team.id, name="Practice", color="#00ff00", type="event", system_flag=False)
    other_label = Label(team_id=team.id, name="Game", color="#ff0000", type="event", system_flag=False)
    place = Place(team_id=team.id, name="North Field")
    db_session.add_all(players + tags + [label, other_label, place])
    await db_session.flush()

    result = await db_session.execute(
        select(AttendanceStatus.id).order_by(AttendanceStatus.id)
    )
    status_ids = list(result.scalars().all())

    ids = SimpleNamespace(
        team_id=team.id,
        other_team_id=other_team.id,
        owner_id=owner.id,
        manager_id=manager.id,
        member_id=member.id,
        outsider_id=outsider.id,
        player_ids=[p.id for p in players],
        tag_ids=[t.id for t in tags],
        label_id=label.id,
        other_label_id=other_label.id,
        place_id=place.id,
        status_ids=status_ids,
    )
    ids.owner = SimpleNamespace(id=ids.owner_id, team_id=ids.team_id, role_id=RoleId.OWNER)
    ids.manager = SimpleNamespace(id=ids.manager_id, team_id=ids.team_id, role_id=RoleId.MANAGER)
    ids.member = SimpleNamespace(id=ids.member_id, team_id=ids.team_id, role_id=RoleId.MEMBER)
    ids.outsider = SimpleNamespace(
        id=ids.outsider_id, team_id=ids.other_team_id, role_id=RoleId.OWNER
    )

    await db_session.commit()
    return ids


@pytest.fixture
def event_payload(seeded):
    """Build a raw create-event payload for the seeded team."""
    def _build(**overrides) -> dict:
        data = {
            "title": "Tuesday practice",
            "details": "Bring water",
            "label_id": seeded.label_id,
            "place_id": seeded.place_id,
            "start_date_time": datetime(2026, 5, 5, 17, 0),
            "end_date_time": datetime(2026, 5, 5, 18, 30),
            "tag_ids": [],
            "attendances": [],
        }
        data.update(overrides)
        return data
    return _build
