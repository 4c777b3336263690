"""
User service layer for team member lookups, profiles and tags.
"""

from typing import Iterable, List
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from backend.database.db import atomic
from backend.database.models import TaggableType, User
from backend.models.schemas import TagResponse, UserResponse
from backend.services import association_service
from backend.services.exceptions import NotFoundError
import logging

logger = logging.getLogger(__name__)


def _to_response(user: User, tags=()) -> UserResponse:
    return UserResponse(
        id=user.id,
        auth_user_id=user.auth_user_id,
        team_id=user.team_id,
        role_id=user.role_id,
        status=user.status,
        name=user.name,
        email=user.email,
        tags=[TagResponse.model_validate(tag) for tag in tags],
    )


async def _find_user(session: AsyncSession, user_id: int) -> User:
    result = await session.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


async def get_user_by_auth_id(session: AsyncSession, auth_user_id: str) -> UserResponse:
    """
    Get the application user for an identity provider subject.

    Args:
        session: Database session
        auth_user_id: Subject claim of the verified token

    Returns:
        UserResponse (without tags)

    Raises:
        NotFoundError: If no user has this identity
    """
    result = await session.execute(
        select(User).where(User.auth_user_id == auth_user_id)
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return _to_response(user)


async def get_user_with_tags(session: AsyncSession, user_id: int) -> UserResponse:
    """
    Get a user with their tags.

    Raises:
        NotFoundError: If the user does not exist
    """
    user = await _find_user(session, user_id)
    tags = await association_service.list_tags_for(session, TaggableType.USER, user.id)
    return _to_response(user, tags)


async def update_user_profile(session: AsyncSession, user_id: int, name: str) -> UserResponse:
    """
    Update a user's display name.

    Raises:
        NotFoundError: If the user does not exist
    """
    async with atomic(session):
        result = await session.execute(
            update(User).where(User.id == user_id).values(name=name)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"User {user_id} not found")
    return await get_user_with_tags(session, user_id)


async def update_user_tags(
    session: AsyncSession, user_id: int, tag_ids: Iterable[int]
) -> List[TagResponse]:
    """
    Replace a user's tag set.

    Args:
        session: Database session
        user_id: User whose tags change
        tag_ids: Desired tag ids

    Returns:
        The user's tags after the update

    Raises:
        NotFoundError: If the user does not exist
        ConstraintViolationError: If a tag does not exist
    """
    async with atomic(session):
        user = await _find_user(session, user_id)
        outcome = await association_service.reconcile_tags(
            session, TaggableType.USER, user.id, tag_ids
        )

    if outcome.changed:
        logger.info(
            "Updated tags of user %d: +%d -%d", user_id, len(outcome.added), len(outcome.removed)
        )
    tags = await association_service.list_tags_for(session, TaggableType.USER, user_id)
    return [TagResponse.model_validate(tag) for tag in tags]


async def list_team_users(session: AsyncSession, team_id: int) -> List[UserResponse]:
    """List the users of a team, ordered by id."""
    result = await session.execute(
        select(User).where(User.team_id == team_id).order_by(User.id)
        .execution_options(populate_existing=True)
    )
    return [_to_response(user) for user in result.scalars().all()]
