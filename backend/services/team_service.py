"""
Team service layer for signup and activation.
"""

import logging
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import atomic
from backend.database.models import Team, User
from backend.models.schemas import SignupRequest, SignupResponse, TeamResponse
from backend.services.exceptions import ConstraintViolationError, NotFoundError
from backend.utils.constants import RoleId, TeamStatus, UserStatus

logger = logging.getLogger(__name__)


async def create_team_with_owner(session: AsyncSession, payload: SignupRequest) -> SignupResponse:
    """
    Create a team and its owner account in one transaction.

    The team starts in CREATED status with its event counter at zero; the
    owner starts TEMPORARY until the account is activated.

    Args:
        session: Database session
        payload: Validated SignupRequest

    Returns:
        SignupResponse with the new team and user ids

    Raises:
        ConstraintViolationError: If the team code (is_unique_violation=True)
            or identity is already registered
    """
    try:
        async with atomic(session):
            team = Team(
                name=payload.team_name,
                code=payload.team_code,
                status=TeamStatus.CREATED,
                event_sequence=0,
            )
            session.add(team)
            await session.flush()  # Get the team ID

            owner = User(
                auth_user_id=payload.auth_user_id,
                team_id=team.id,
                role_id=RoleId.OWNER,
                status=UserStatus.TEMPORARY,
                name=payload.name,
                email=payload.email,
            )
            session.add(owner)
            await session.flush()
    except ConstraintViolationError as e:
        logger.warning("Signup for team code '%s' rejected: %s", payload.team_code, e)
        raise

    logger.info("Created team %d '%s' with owner user %d", team.id, team.code, owner.id)
    return SignupResponse(team_id=team.id, user_id=owner.id, team_code=team.code)


async def get_team(session: AsyncSession, team_id: int) -> TeamResponse:
    """
    Get a team by ID.

    Raises:
        NotFoundError: If the team does not exist
    """
    result = await session.execute(
        select(Team).where(Team.id == team_id).execution_options(populate_existing=True)
    )
    team = result.scalar_one_or_none()
    if team is None:
        raise NotFoundError(f"Team {team_id} not found")
    return TeamResponse.model_validate(team)


async def get_team_by_code(session: AsyncSession, code: str) -> TeamResponse:
    """
    Get a team by its unique code (used by the join-team flow).

    Raises:
        NotFoundError: If no team has this code
    """
    result = await session.execute(
        select(Team).where(Team.code == code).execution_options(populate_existing=True)
    )
    team = result.scalar_one_or_none()
    if team is None:
        raise NotFoundError(f"Team with code '{code}' not found")
    return TeamResponse.model_validate(team)


async def activate_account(session: AsyncSession, auth_user_id: str) -> bool:
    """
    Confirm a user and activate their team after email verification.

    Args:
        session: Database session
        auth_user_id: Identity provider subject of the user

    Returns:
        True if the account was activated, False if it already was

    Raises:
        NotFoundError: If no user has this identity
    """
    result = await session.execute(
        select(User.id, User.team_id, User.status).where(User.auth_user_id == auth_user_id)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError("User not found")

    user_id, team_id, status = row
    if status == UserStatus.CONFIRMED:
        return False

    async with atomic(session):
        await session.execute(
            update(User).where(User.id == user_id).values(status=UserStatus.CONFIRMED)
            .execution_options(synchronize_session=False)
        )
        await session.execute(
            update(Team).where(Team.id == team_id).values(status=TeamStatus.ACTIVE)
            .execution_options(synchronize_session=False)
        )

    logger.info("Activated user %d and team %d", user_id, team_id)
    return True
