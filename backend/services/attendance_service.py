"""
Attendance service layer.

Attendance rows are created and pruned together with their event (see
event_service). This module covers the status lookups and the per-row status
change made by a member for one of their players.
"""

import logging
from typing import Iterable, List
from sqlalchemy import select, update, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import atomic
from backend.database.models import Attendance, AttendanceStatus, Player
from backend.models.schemas import AttendanceResponse, AttendanceStatusResponse
from backend.services.exceptions import NotFoundError, PermissionDeniedError
from backend.utils.constants import MANAGING_ROLES
from backend.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


async def get_default_status(session: AsyncSession) -> AttendanceStatusResponse:
    """
    Get the status new attendance rows start with (the first system status).

    Raises:
        NotFoundError: If no system status has been seeded
    """
    result = await session.execute(
        select(AttendanceStatus)
        .where(AttendanceStatus.system_flag.is_(True))
        .order_by(AttendanceStatus.id)
        .limit(1)
    )
    status = result.scalar_one_or_none()
    if status is None:
        raise NotFoundError("No system attendance status configured")
    return AttendanceStatusResponse.model_validate(status)


def _visible_to_team(team_id: int):
    return or_(
        AttendanceStatus.team_id == team_id,
        and_(AttendanceStatus.team_id.is_(None), AttendanceStatus.system_flag.is_(True)),
    )


async def ensure_statuses_exist(
    session: AsyncSession, team_id: int, status_ids: Iterable[int]
) -> None:
    """
    Check that every status id is a system status or one of the team's own.

    Raises:
        NotFoundError: Naming the first missing status id
    """
    wanted = set(status_ids)
    if not wanted:
        return
    result = await session.execute(
        select(AttendanceStatus.id)
        .where(AttendanceStatus.id.in_(wanted), _visible_to_team(team_id))
    )
    missing = wanted - set(result.scalars().all())
    if missing:
        raise NotFoundError(f"Attendance status {min(missing)} not found")


async def list_statuses(session: AsyncSession, team_id: int) -> List[AttendanceStatusResponse]:
    """List the system statuses followed by the team's own, ordered by id."""
    result = await session.execute(
        select(AttendanceStatus)
        .where(_visible_to_team(team_id))
        .order_by(AttendanceStatus.system_flag.desc(), AttendanceStatus.id)
    )
    return [AttendanceStatusResponse.model_validate(s) for s in result.scalars().all()]


async def update_attendance_status(
    session: AsyncSession, user, attendance_id: int, status_id: int
) -> AttendanceResponse:
    """
    Set the status of one attendance row.

    Owners and managers may change any attendance of their team; other users
    only the attendance of players they are the parent of.

    Args:
        session: Database session
        user: Object with id, team_id and role_id attributes
        attendance_id: Attendance row to change
        status_id: New attendance status

    Returns:
        AttendanceResponse after the change

    Raises:
        NotFoundError: If the attendance does not exist in the user's team,
            or the status is neither a system status nor one of the team's own
        PermissionDeniedError: If the user may not answer for this player
    """
    async with atomic(session):
        result = await session.execute(
            select(Attendance.id, Player.parent_user_id)
            .join(Player, Player.id == Attendance.player_id)
            .where(Attendance.id == attendance_id, Attendance.team_id == user.team_id)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError(f"Attendance {attendance_id} not found")

        _, parent_user_id = row
        if user.role_id not in MANAGING_ROLES and parent_user_id != user.id:
            raise PermissionDeniedError("Only a team manager or the player's parent can answer")

        await ensure_statuses_exist(session, user.team_id, [status_id])

        await session.execute(
            update(Attendance)
            .where(Attendance.id == attendance_id)
            .values(attendance_status_ids=[status_id], updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    logger.info("User %d set attendance %d to status %d", user.id, attendance_id, status_id)
    result = await session.execute(
        select(Attendance).where(Attendance.id == attendance_id)
        .execution_options(populate_existing=True)
    )
    return AttendanceResponse.model_validate(result.scalar_one())
