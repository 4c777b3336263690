"""
Event service layer.

Creates and updates events together with their dependent rows (event number,
label, tags, attendance stubs) as single all-or-nothing transactions, and
provides the event reads and deletes used by the calendar views.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence
from sqlalchemy import select, delete, insert
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import atomic
from backend.database.models import (
    Attendance, Event, Label, Labelable, LabelableType, Tag, Taggable, TaggableType,
)
from backend.models.schemas import (
    AttendanceInput,
    AttendanceResponse,
    CreateEventRequest,
    EventResponse,
    LabelResponse,
    TagResponse,
    UpdateEventRequest,
)
from backend.services import association_service, attendance_service, sequence_service
from backend.services.association_service import LABELABLES, TAGGABLES, ReconcileResult
from backend.services.exceptions import (
    ConstraintViolationError, InvalidInputError, NotFoundError, PermissionDeniedError,
)
from backend.utils.constants import MANAGING_ROLES
from backend.utils.datetime_utils import ensure_utc

logger = logging.getLogger(__name__)


def _to_response(
    event: Event,
    label: Optional[Label] = None,
    tags: Iterable[Tag] = (),
    attendances: Iterable[Attendance] = (),
) -> EventResponse:
    return EventResponse(
        id=event.id,
        team_id=event.team_id,
        owner_id=event.owner_id,
        place_id=event.place_id,
        event_no=event.event_no,
        title=event.title,
        details=event.details,
        start_date_time=event.start_date_time,
        end_date_time=event.end_date_time,
        label=LabelResponse.model_validate(label) if label is not None else None,
        tags=[TagResponse.model_validate(tag) for tag in tags],
        attendances=[AttendanceResponse.model_validate(a) for a in attendances],
        created_at=event.created_at,
        updated_at=event.updated_at,
    )


async def _find_event(
    session: AsyncSession, team_id: int, event_no: str, for_update: bool = False
) -> Event:
    """Load an event by its team-scoped number or raise NotFoundError."""
    query = (
        select(Event)
        .where(Event.team_id == team_id, Event.event_no == event_no)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    event = result.scalar_one_or_none()
    if event is None:
        raise NotFoundError(f"Event {event_no} not found")
    return event


async def _load_event_response(session: AsyncSession, event: Event) -> EventResponse:
    labels = await association_service.list_labels_for(session, LabelableType.EVENT, event.id)
    tags = await association_service.list_tags_for(session, TaggableType.EVENT, event.id)
    result = await session.execute(
        select(Attendance).where(Attendance.event_id == event.id).order_by(Attendance.id)
        .execution_options(populate_existing=True)
    )
    attendances = result.scalars().all()
    return _to_response(event, labels[0] if labels else None, tags, attendances)


async def _insert_attendances(
    session: AsyncSession, event: Event, attendances: Sequence[AttendanceInput]
) -> None:
    if not attendances:
        return
    await session.execute(
        insert(Attendance),
        [
            {
                "team_id": event.team_id,
                "event_id": event.id,
                "player_id": a.player_id,
                "attendance_status_ids": [a.attendance_status_id],
            }
            for a in attendances
        ],
    )


async def reconcile_attendances(
    session: AsyncSession, event: Event, attendances: Sequence[AttendanceInput]
) -> ReconcileResult:
    """
    Make the event's attendance rows match the given player list.

    Rows of players missing from the list are deleted and new players get a
    fresh row. Players present before and after keep their existing row and
    status; status changes go through attendance_service.update_attendance_status.
    Every status in the list must be a system status or one of the team's
    own, including those of retained players. Runs inside the caller's
    transaction.

    Returns:
        ReconcileResult with player ids added and removed

    Raises:
        NotFoundError: If an attendance status does not exist for the team
    """
    await attendance_service.ensure_statuses_exist(
        session, event.team_id, [a.attendance_status_id for a in attendances]
    )
    result = await session.execute(
        select(Attendance.player_id).where(Attendance.event_id == event.id)
    )
    current = set(result.scalars().all())
    target = {a.player_id: a for a in attendances}

    to_delete = current - set(target)
    to_add = [target[player_id] for player_id in target if player_id not in current]

    if to_delete:
        await session.execute(
            delete(Attendance)
            .where(Attendance.event_id == event.id, Attendance.player_id.in_(to_delete))
            .execution_options(synchronize_session=False)
        )
    await _insert_attendances(session, event, to_add)
    return ReconcileResult(added={a.player_id for a in to_add}, removed=to_delete)


async def create_event(
    session: AsyncSession,
    team_id: int,
    owner_id: int,
    payload: CreateEventRequest,
) -> EventResponse:
    """
    Create an event with its event number, label, tags and attendance stubs.

    Everything happens in one transaction: if any step fails, no event,
    association or attendance row persists and the team's event counter is
    left unchanged.

    Args:
        session: Database session
        team_id: Owning team
        owner_id: User creating the event
        payload: Validated CreateEventRequest

    Returns:
        EventResponse for the new event

    Raises:
        NotFoundError: If the team or an attendance status does not exist
        ConstraintViolationError: If a referenced label, tag, place or player
            does not exist
    """
    try:
        async with atomic(session):
            allocated = await sequence_service.allocate_event_no(session, team_id)

            event = Event(
                team_id=team_id,
                owner_id=owner_id,
                place_id=payload.place_id,
                title=payload.title,
                details=payload.details,
                start_date_time=payload.start_date_time,
                end_date_time=payload.end_date_time,
                local_sequence=allocated.sequence,
                event_no=allocated.event_no,
            )
            session.add(event)
            await session.flush()  # Get the event ID

            await association_service.reconcile_labels(
                session, LabelableType.EVENT, event.id, [payload.label_id]
            )
            await association_service.reconcile_tags(
                session, TaggableType.EVENT, event.id, payload.tag_ids
            )
            await attendance_service.ensure_statuses_exist(
                session, team_id, [a.attendance_status_id for a in payload.attendances]
            )
            await _insert_attendances(session, event, payload.attendances)
    except (NotFoundError, ConstraintViolationError) as e:
        logger.warning("Event creation for team %d rolled back: %s", team_id, e)
        raise

    logger.info("Created event %s for team %d", allocated.event_no, team_id)
    return await get_event_by_no(session, team_id, allocated.event_no)


async def update_event(
    session: AsyncSession,
    team_id: int,
    event_no: str,
    payload: UpdateEventRequest,
) -> EventResponse:
    """
    Apply a partial update to an event and optionally replace its tags and attendances.

    Only fields present in the payload are changed; an explicit null clears
    details or place_id. tag_ids and attendances, when given, replace the
    current sets using the same delete-missing / insert-new diff.

    Raises:
        NotFoundError: If no event matches (team_id, event_no)
        InvalidInputError: If the update leaves the event ending before it starts
        ConstraintViolationError: If a referenced tag, place or player does not exist
    """
    try:
        async with atomic(session):
            event = await _find_event(session, team_id, event_no, for_update=True)

            for name, value in payload.event_field_updates().items():
                setattr(event, name, value)
            if ensure_utc(event.end_date_time) < ensure_utc(event.start_date_time):
                raise InvalidInputError("end_date_time must not be before start_date_time")
            await session.flush()

            if payload.tag_ids is not None:
                await association_service.reconcile_tags(
                    session, TaggableType.EVENT, event.id, payload.tag_ids
                )
            if payload.attendances is not None:
                await reconcile_attendances(session, event, payload.attendances)
    except (NotFoundError, InvalidInputError, ConstraintViolationError) as e:
        logger.warning("Update of event %s rolled back: %s", event_no, e)
        raise

    logger.info("Updated event %s", event_no)
    return await get_event_by_no(session, team_id, event_no)


async def get_event_by_no(session: AsyncSession, team_id: int, event_no: str) -> EventResponse:
    """
    Get an event of a team with its label, tags and attendances.

    Raises:
        NotFoundError: If the event does not exist or belongs to another team
    """
    event = await _find_event(session, team_id, event_no)
    return await _load_event_response(session, event)


async def list_events_in_range(
    session: AsyncSession, team_id: int, start: datetime, end: datetime
) -> List[EventResponse]:
    """
    List a team's events starting in [start, end), ordered by start time.

    Each event carries its label and tags; attendances are not loaded.
    """
    result = await session.execute(
        select(Event)
        .where(
            Event.team_id == team_id,
            Event.start_date_time >= ensure_utc(start),
            Event.start_date_time < ensure_utc(end),
        )
        .order_by(Event.start_date_time, Event.id)
        .execution_options(populate_existing=True)
    )
    events = result.scalars().all()
    if not events:
        return []
    event_ids = [event.id for event in events]

    label_rows = await session.execute(
        select(Labelable.labelable_id, Label)
        .join(Label, Label.id == Labelable.label_id)
        .where(
            Labelable.labelable_type == LabelableType.EVENT,
            Labelable.labelable_id.in_(event_ids),
        )
        .order_by(Label.id)
        .execution_options(populate_existing=True)
    )
    labels_by_event: Dict[int, Label] = {}
    for event_id, label in label_rows.all():
        labels_by_event.setdefault(event_id, label)

    tag_rows = await session.execute(
        select(Taggable.taggable_id, Tag)
        .join(Tag, Tag.id == Taggable.tag_id)
        .where(
            Taggable.taggable_type == TaggableType.EVENT,
            Taggable.taggable_id.in_(event_ids),
        )
        .order_by(Tag.id)
        .execution_options(populate_existing=True)
    )
    tags_by_event: Dict[int, List[Tag]] = defaultdict(list)
    for event_id, tag in tag_rows.all():
        tags_by_event[event_id].append(tag)

    return [
        _to_response(event, labels_by_event.get(event.id), tags_by_event.get(event.id, []))
        for event in events
    ]


async def delete_event(session: AsyncSession, team_id: int, event_no: str) -> None:
    """
    Hard-delete an event.

    Attendance rows go with it through ON DELETE CASCADE; tag and label
    association rows are removed in the same transaction.

    Raises:
        NotFoundError: If no event matches (team_id, event_no)
    """
    async with atomic(session):
        event = await _find_event(session, team_id, event_no, for_update=True)
        event_id = event.id
        await association_service.remove_all_associations(
            session, TAGGABLES, TaggableType.EVENT, event_id
        )
        await association_service.remove_all_associations(
            session, LABELABLES, LabelableType.EVENT, event_id
        )
        await session.execute(
            delete(Event).where(Event.id == event_id).execution_options(synchronize_session=False)
        )
        session.expunge(event)

    logger.info("Deleted event %s of team %d", event_no, team_id)


def ensure_can_manage_event(user, event) -> None:
    """
    Check that a user may update or delete an event.

    The event owner and team owners / managers may; nobody outside the team may.

    Args:
        user: Object with id, team_id and role_id attributes
        event: Event or EventResponse

    Raises:
        PermissionDeniedError: If the user is not allowed
    """
    if user.team_id != event.team_id:
        raise PermissionDeniedError("Event belongs to another team")
    if event.owner_id != user.id and user.role_id not in MANAGING_ROLES:
        raise PermissionDeniedError("Only the event owner or a team manager can change this event")
