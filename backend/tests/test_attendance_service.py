"""
Tests for attendance service - statuses and per-row answers.
"""
import pytest
from sqlalchemy import select
from backend.database.models import Attendance, AttendanceStatus
from backend.models.schemas import CreateEventRequest, parse_payload
from backend.services import attendance_service, event_service
from backend.services.exceptions import NotFoundError, PermissionDeniedError


async def _event_with_attendances(session, seeded, event_payload):
    """Event where players 1 and 2 (parent: member) and 3 (parent: owner) are invited."""
    default_status = seeded.status_ids[0]
    payload = parse_payload(CreateEventRequest, event_payload(attendances=[
        {"player_id": player_id, "attendance_status_id": default_status}
        for player_id in seeded.player_ids
    ]))
    created = await event_service.create_event(session, seeded.team_id, seeded.owner_id, payload)
    return {a.player_id: a.id for a in created.attendances}


@pytest.mark.asyncio
async def test_default_status_is_first_system_status(db_session, seeded):
    status = await attendance_service.get_default_status(db_session)
    assert status.name == "No answer"
    assert status.id == seeded.status_ids[0]


@pytest.mark.asyncio
async def test_default_status_missing(db_session):
    with pytest.raises(NotFoundError):
        await attendance_service.get_default_status(db_session)


@pytest.mark.asyncio
async def test_list_statuses_system_first(db_session, seeded):
    db_session.add(AttendanceStatus(team_id=seeded.team_id, name="Injured", system_flag=False))
    db_session.add(AttendanceStatus(team_id=seeded.other_team_id, name="Away", system_flag=False))
    await db_session.commit()

    statuses = await attendance_service.list_statuses(db_session, seeded.team_id)
    names = [s.name for s in statuses]

    assert names[0] == "No answer"
    assert names[-1] == "Injured"
    assert "Away" not in names


@pytest.mark.asyncio
async def test_parent_can_answer_for_own_player(db_session, seeded, event_payload):
    attendance_ids = await _event_with_attendances(db_session, seeded, event_payload)
    attending = seeded.status_ids[1]
    p1 = seeded.player_ids[0]

    updated = await attendance_service.update_attendance_status(
        db_session, seeded.member, attendance_ids[p1], attending
    )

    assert updated.attendance_status_ids == [attending]
    assert updated.player_id == p1


@pytest.mark.asyncio
async def test_member_cannot_answer_for_other_players(db_session, seeded, event_payload):
    attendance_ids = await _event_with_attendances(db_session, seeded, event_payload)
    p3 = seeded.player_ids[2]
    attendance_id = attendance_ids[p3]
    default_status = seeded.status_ids[0]

    with pytest.raises(PermissionDeniedError):
        await attendance_service.update_attendance_status(
            db_session, seeded.member, attendance_id, seeded.status_ids[1]
        )

    result = await db_session.execute(
        select(Attendance.attendance_status_ids).where(Attendance.id == attendance_id)
    )
    assert result.scalar_one() == [default_status]


@pytest.mark.asyncio
async def test_manager_can_answer_for_any_player(db_session, seeded, event_payload):
    attendance_ids = await _event_with_attendances(db_session, seeded, event_payload)
    absent = seeded.status_ids[2]

    for attendance_id in attendance_ids.values():
        updated = await attendance_service.update_attendance_status(
            db_session, seeded.manager, attendance_id, absent
        )
        assert updated.attendance_status_ids == [absent]


@pytest.mark.asyncio
async def test_other_team_cannot_see_attendance(db_session, seeded, event_payload):
    attendance_ids = await _event_with_attendances(db_session, seeded, event_payload)

    with pytest.raises(NotFoundError):
        await attendance_service.update_attendance_status(
            db_session, seeded.outsider, attendance_ids[seeded.player_ids[0]], seeded.status_ids[1]
        )


@pytest.mark.asyncio
async def test_unknown_status(db_session, seeded, event_payload):
    attendance_ids = await _event_with_attendances(db_session, seeded, event_payload)

    with pytest.raises(NotFoundError):
        await attendance_service.update_attendance_status(
            db_session, seeded.owner, attendance_ids[seeded.player_ids[0]], 999999
        )


@pytest.mark.asyncio
async def test_status_of_other_team_is_not_found(db_session, seeded, event_payload):
    attendance_ids = await _event_with_attendances(db_session, seeded, event_payload)
    attendance_id = attendance_ids[seeded.player_ids[0]]
    owner = seeded.owner
    default_status = seeded.status_ids[0]
    away = AttendanceStatus(team_id=seeded.other_team_id, name="Away", system_flag=False)
    db_session.add(away)
    await db_session.commit()
    away_id = away.id

    with pytest.raises(NotFoundError):
        await attendance_service.update_attendance_status(db_session, owner, attendance_id, away_id)

    result = await db_session.execute(
        select(Attendance.attendance_status_ids).where(Attendance.id == attendance_id)
    )
    assert result.scalar_one() == [default_status]


@pytest.mark.asyncio
async def test_ensure_statuses_exist(db_session, seeded):
    await attendance_service.ensure_statuses_exist(db_session, seeded.team_id, seeded.status_ids)
    await attendance_service.ensure_statuses_exist(db_session, seeded.team_id, [])

    with pytest.raises(NotFoundError) as exc_info:
        await attendance_service.ensure_statuses_exist(
            db_session, seeded.team_id, [seeded.status_ids[0], 999999]
        )
    assert "999999" in str(exc_info.value)
