"""
Tag service layer.

Teams manage their own tags; system tags (team_id null, system_flag set) are
shared by every team and read-only. Labels are attached to tags through the
labelables table.
"""

import logging
from collections import defaultdict
from typing import Dict, List
from sqlalchemy import select, delete, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import atomic
from backend.database.models import Label, Labelable, LabelableType, Tag
from backend.models.schemas import (
    CreateTagRequest, LabelResponse, TagResponse, TagWithLabelsResponse, UpdateTagRequest,
)
from backend.services import association_service
from backend.services.association_service import LABELABLES
from backend.services.exceptions import NotFoundError, PermissionDeniedError
from backend.utils.constants import GRADE_LABEL_TYPE

logger = logging.getLogger(__name__)


async def _find_team_tag(session: AsyncSession, team_id: int, tag_id: int) -> Tag:
    """Load a tag the team may modify."""
    result = await session.execute(
        select(Tag).where(Tag.id == tag_id).execution_options(populate_existing=True)
    )
    tag = result.scalar_one_or_none()
    if tag is None:
        raise NotFoundError(f"Tag {tag_id} not found")
    if tag.system_flag:
        raise PermissionDeniedError("System tags cannot be modified")
    if tag.team_id != team_id:
        raise NotFoundError(f"Tag {tag_id} not found")
    return tag


async def create_tag(session: AsyncSession, team_id: int, payload: CreateTagRequest) -> TagResponse:
    """Create a team tag."""
    async with atomic(session):
        tag = Tag(team_id=team_id, name=payload.name, color=payload.color, system_flag=False)
        session.add(tag)
        await session.flush()
        tag_id = tag.id

    logger.info("Created tag %d '%s' for team %d", tag_id, payload.name, team_id)
    result = await session.execute(
        select(Tag).where(Tag.id == tag_id).execution_options(populate_existing=True)
    )
    return TagResponse.model_validate(result.scalar_one())


async def update_tag(
    session: AsyncSession, team_id: int, tag_id: int, payload: UpdateTagRequest
) -> TagResponse:
    """
    Rename or recolor a team tag.

    Raises:
        NotFoundError: If the tag does not exist in this team
        PermissionDeniedError: If the tag is a system tag
    """
    async with atomic(session):
        tag = await _find_team_tag(session, team_id, tag_id)
        for name in payload.model_fields_set & {"name", "color"}:
            value = getattr(payload, name)
            if value is not None:
                setattr(tag, name, value)
        await session.flush()

    result = await session.execute(
        select(Tag).where(Tag.id == tag_id).execution_options(populate_existing=True)
    )
    return TagResponse.model_validate(result.scalar_one())


async def delete_tag(session: AsyncSession, team_id: int, tag_id: int) -> None:
    """
    Delete a team tag.

    Its taggables rows go through ON DELETE CASCADE; the labels attached to
    the tag are detached in the same transaction.

    Raises:
        NotFoundError: If the tag does not exist in this team
        PermissionDeniedError: If the tag is a system tag
    """
    async with atomic(session):
        tag = await _find_team_tag(session, team_id, tag_id)
        await association_service.remove_all_associations(
            session, LABELABLES, LabelableType.TAG, tag_id
        )
        await session.execute(
            delete(Tag).where(Tag.id == tag_id).execution_options(synchronize_session=False)
        )
        session.expunge(tag)

    logger.info("Deleted tag %d of team %d", tag_id, team_id)


async def list_team_tags(session: AsyncSession, team_id: int) -> List[TagWithLabelsResponse]:
    """
    List the team's tags plus all system tags, each with its labels.

    Returns:
        Tags ordered by id
    """
    result = await session.execute(
        select(Tag)
        .where(
            or_(
                Tag.team_id == team_id,
                and_(Tag.team_id.is_(None), Tag.system_flag.is_(True)),
            )
        )
        .order_by(Tag.id)
        .execution_options(populate_existing=True)
    )
    tags = result.scalars().all()
    if not tags:
        return []

    label_rows = await session.execute(
        select(Labelable.labelable_id, Label)
        .join(Label, Label.id == Labelable.label_id)
        .where(
            Labelable.labelable_type == LabelableType.TAG,
            Labelable.labelable_id.in_([tag.id for tag in tags]),
        )
        .order_by(Label.id)
        .execution_options(populate_existing=True)
    )
    labels_by_tag: Dict[int, List[Label]] = defaultdict(list)
    for tag_id, label in label_rows.all():
        labels_by_tag[tag_id].append(label)

    return [
        TagWithLabelsResponse(
            **TagResponse.model_validate(tag).model_dump(),
            labels=[LabelResponse.model_validate(label) for label in labels_by_tag.get(tag.id, [])],
        )
        for tag in tags
    ]


async def list_grade_tags(session: AsyncSession) -> List[TagResponse]:
    """List the system grade tags (tags whose label has type "grade")."""
    result = await session.execute(
        select(Tag)
        .join(Label, Label.id == Tag.label_id)
        .where(Label.type == GRADE_LABEL_TYPE, Tag.system_flag.is_(True))
        .order_by(Tag.id)
        .execution_options(populate_existing=True)
    )
    return [TagResponse.model_validate(tag) for tag in result.scalars().all()]


async def add_label_to_tag(session: AsyncSession, team_id: int, tag_id: int, label_id: int) -> None:
    """
    Attach a label to a team tag. Attaching an already attached label is a no-op.

    Raises:
        NotFoundError: If the tag does not exist in this team
        ConstraintViolationError: If the label does not exist
    """
    async with atomic(session):
        await _find_team_tag(session, team_id, tag_id)
        current = await association_service.get_associated_ids(
            session, LABELABLES, LabelableType.TAG, tag_id
        )
        await association_service.reconcile_labels(
            session, LabelableType.TAG, tag_id, current | {label_id}
        )


async def remove_label_from_tag(
    session: AsyncSession, team_id: int, tag_id: int, label_id: int
) -> None:
    """
    Detach a label from a team tag. Detaching a label that is not attached is a no-op.

    Raises:
        NotFoundError: If the tag does not exist in this team
    """
    async with atomic(session):
        await _find_team_tag(session, team_id, tag_id)
        current = await association_service.get_associated_ids(
            session, LABELABLES, LabelableType.TAG, tag_id
        )
        await association_service.reconcile_labels(
            session, LabelableType.TAG, tag_id, current - {label_id}
        )
