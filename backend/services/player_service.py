"""
Player service layer.

Handles roster CRUD. Every player carries a grade tag attached through the
taggables table; tag changes go through the association reconciler.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional
from sqlalchemy import select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import atomic
from backend.database.models import Player, Tag, Taggable, TaggableType
from backend.models.schemas import (
    CreatePlayerRequest, PlayerResponse, TagResponse, UpdatePlayerRequest,
)
from backend.services import association_service
from backend.services.exceptions import NotFoundError

logger = logging.getLogger(__name__)


def _to_response(player: Player, tags=()) -> PlayerResponse:
    return PlayerResponse(
        id=player.id,
        team_id=player.team_id,
        parent_user_id=player.parent_user_id,
        last_name=player.last_name,
        first_name=player.first_name,
        full_name=player.full_name,
        nick_name=player.nick_name,
        image_url=player.image_url,
        tags=[TagResponse.model_validate(tag) for tag in tags],
    )


async def _find_player(session: AsyncSession, team_id: int, player_id: int) -> Player:
    result = await session.execute(
        select(Player)
        .where(Player.id == player_id, Player.team_id == team_id)
        .execution_options(populate_existing=True)
    )
    player = result.scalar_one_or_none()
    if player is None:
        raise NotFoundError(f"Player {player_id} not found")
    return player


async def create_player(
    session: AsyncSession,
    team_id: int,
    parent_user_id: int,
    payload: CreatePlayerRequest,
) -> PlayerResponse:
    """
    Add a player to a team's roster with its grade tag.

    Args:
        session: Database session
        team_id: Team the player joins
        parent_user_id: Requesting user, used unless the payload names another parent
        payload: Validated CreatePlayerRequest

    Returns:
        PlayerResponse

    Raises:
        ConstraintViolationError: If the parent user or grade tag does not exist
    """
    async with atomic(session):
        player = Player(
            team_id=team_id,
            parent_user_id=payload.parent_user_id or parent_user_id,
            last_name=payload.last_name,
            first_name=payload.first_name,
            nick_name=payload.nick_name,
            image_url=payload.image_url,
        )
        session.add(player)
        await session.flush()  # Get the player ID
        player_id = player.id

        await association_service.reconcile_tags(
            session, TaggableType.PLAYER, player_id, [payload.tag_id]
        )

    logger.info("Created player %d for team %d", player_id, team_id)
    return await get_player(session, team_id, player_id)


async def get_player(session: AsyncSession, team_id: int, player_id: int) -> PlayerResponse:
    """
    Get a player of a team with tags.

    Raises:
        NotFoundError: If the player does not exist in this team
    """
    player = await _find_player(session, team_id, player_id)
    tags = await association_service.list_tags_for(session, TaggableType.PLAYER, player.id)
    return _to_response(player, tags)


async def update_player(
    session: AsyncSession,
    team_id: int,
    player_id: int,
    payload: UpdatePlayerRequest,
) -> PlayerResponse:
    """
    Apply a partial update to a player; tag_ids replaces the tag set when given.

    Raises:
        NotFoundError: If the player does not exist in this team
    """
    columns = {"last_name", "first_name", "nick_name", "image_url"}
    async with atomic(session):
        player = await _find_player(session, team_id, player_id)
        for name in payload.model_fields_set & columns:
            setattr(player, name, getattr(payload, name))
        await session.flush()

        if payload.tag_ids is not None:
            await association_service.reconcile_tags(
                session, TaggableType.PLAYER, player_id, payload.tag_ids
            )

    return await get_player(session, team_id, player_id)


async def list_players(
    session: AsyncSession,
    team_id: int,
    tag: Optional[str] = None,
    name: Optional[str] = None,
) -> List[PlayerResponse]:
    """
    List a team's players, optionally filtered.

    Args:
        session: Database session
        team_id: Team to list
        tag: Only players carrying a tag with this exact name
        name: Case-insensitive substring of last, first or nick name

    Returns:
        List of PlayerResponse ordered by id
    """
    query = select(Player).where(Player.team_id == team_id)

    if tag:
        query = (
            query.join(
                Taggable,
                and_(
                    Taggable.taggable_id == Player.id,
                    Taggable.taggable_type == TaggableType.PLAYER,
                ),
            )
            .join(Tag, and_(Tag.id == Taggable.tag_id, Tag.name == tag))
            .distinct()
        )

    if name:
        pattern = f"%{name}%"
        query = query.where(
            or_(
                Player.last_name.ilike(pattern),
                Player.first_name.ilike(pattern),
                Player.nick_name.ilike(pattern),
            )
        )

    result = await session.execute(
        query.order_by(Player.id).execution_options(populate_existing=True)
    )
    players = result.scalars().all()
    if not players:
        return []

    tag_rows = await session.execute(
        select(Taggable.taggable_id, Tag)
        .join(Tag, Tag.id == Taggable.tag_id)
        .where(
            Taggable.taggable_type == TaggableType.PLAYER,
            Taggable.taggable_id.in_([p.id for p in players]),
        )
        .order_by(Tag.id)
        .execution_options(populate_existing=True)
    )
    tags_by_player: Dict[int, List[Tag]] = defaultdict(list)
    for player_id, player_tag in tag_rows.all():
        tags_by_player[player_id].append(player_tag)

    return [_to_response(player, tags_by_player.get(player.id, [])) for player in players]
