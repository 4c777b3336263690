"""
Per-team event number allocation.

Each team carries a monotonic event_sequence counter. Allocating a number
increments it and reads it back in a single UPDATE ... RETURNING, so the row
lock taken by the UPDATE is the only serialization point between concurrent
event creations for the same team.
"""

import logging
from typing import NamedTuple
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.models import Team
from backend.services.exceptions import NotFoundError

logger = logging.getLogger(__name__)


class AllocatedEventNo(NamedTuple):
    sequence: int
    event_no: str


def format_event_no(team_code: str, sequence: int) -> str:
    """
    Render an event number as "{team_code}-{sequence}".

    Args:
        team_code: The team's short code
        sequence: Positive sequence number, rendered without padding

    Returns:
        Event number, e.g. "ACME-12"
    """
    if sequence < 1:
        raise ValueError(f"Event sequence must be positive, got {sequence}")
    return f"{team_code}-{sequence}"


async def allocate_event_no(session: AsyncSession, team_id: int) -> AllocatedEventNo:
    """
    Increment the team's event counter and derive the next event number.

    Runs inside the caller's transaction and does not commit; rolling the
    transaction back also rolls back the increment.

    Raises:
        NotFoundError: If the team does not exist
    """
    result = await session.execute(
        update(Team)
        .where(Team.id == team_id)
        .values(event_sequence=Team.event_sequence + 1)
        .returning(Team.event_sequence, Team.code)
        .execution_options(synchronize_session=False)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError(f"Team {team_id} not found")

    sequence, code = row
    allocated = AllocatedEventNo(sequence=sequence, event_no=format_event_no(code, sequence))
    logger.debug("Allocated event number %s for team %d", allocated.event_no, team_id)
    return allocated
