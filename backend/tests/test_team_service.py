"""
Tests for team service - signup and account activation.
"""
import pytest
from sqlalchemy import select
from backend.database.models import Team, User
from backend.models.schemas import SignupRequest, parse_payload
from backend.services import team_service
from backend.services.exceptions import (
    ConstraintViolationError, InvalidInputError, NotFoundError,
)
from backend.utils.constants import RoleId, TeamStatus, UserStatus


def _signup(**overrides):
    data = {
        "auth_user_id": "auth|new-owner",
        "team_name": "Blue Jays",
        "team_code": "JAYS",
        "name": "Nora New",
        "email": "nora@example.com",
    }
    data.update(overrides)
    return parse_payload(SignupRequest, data)


@pytest.mark.asyncio
async def test_create_team_with_owner(db_session, seeded):
    result = await team_service.create_team_with_owner(db_session, _signup())

    assert result.team_code == "JAYS"
    team = await team_service.get_team(db_session, result.team_id)
    assert team.status == TeamStatus.CREATED
    assert team.event_sequence == 0

    row = (await db_session.execute(
        select(User.team_id, User.role_id, User.status).where(User.id == result.user_id)
    )).one()
    assert row == (result.team_id, RoleId.OWNER, UserStatus.TEMPORARY)


@pytest.mark.asyncio
async def test_duplicate_team_code_is_unique_violation(db_session, seeded):
    with pytest.raises(ConstraintViolationError) as exc_info:
        await team_service.create_team_with_owner(db_session, _signup(team_code="ACME"))

    assert exc_info.value.is_unique_violation is True
    count = (await db_session.execute(select(Team.id).where(Team.name == "Blue Jays"))).all()
    assert count == []


@pytest.mark.asyncio
async def test_duplicate_identity_rolls_back_team(db_session, seeded):
    with pytest.raises(ConstraintViolationError):
        await team_service.create_team_with_owner(
            db_session, _signup(auth_user_id="auth|owner")
        )

    with pytest.raises(NotFoundError):
        await team_service.get_team_by_code(db_session, "JAYS")


def test_signup_rejects_bad_team_code():
    with pytest.raises(InvalidInputError):
        _signup(team_code="has space")
    with pytest.raises(InvalidInputError):
        _signup(team_code="X" * 33)


@pytest.mark.asyncio
async def test_get_team_by_code(db_session, seeded):
    team = await team_service.get_team_by_code(db_session, "ACME")
    assert team.id == seeded.team_id
    assert team.name == "Acme Youth"

    with pytest.raises(NotFoundError):
        await team_service.get_team_by_code(db_session, "NOPE")
    with pytest.raises(NotFoundError):
        await team_service.get_team(db_session, 999999)


@pytest.mark.asyncio
async def test_activate_account(db_session, seeded):
    result = await team_service.create_team_with_owner(db_session, _signup())

    assert await team_service.activate_account(db_session, "auth|new-owner") is True
    team = await team_service.get_team(db_session, result.team_id)
    assert team.status == TeamStatus.ACTIVE

    # Second activation is a no-op
    assert await team_service.activate_account(db_session, "auth|new-owner") is False


@pytest.mark.asyncio
async def test_activate_unknown_account(db_session, seeded):
    with pytest.raises(NotFoundError):
        await team_service.activate_account(db_session, "auth|nobody")
