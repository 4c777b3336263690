#!/usr/bin/env python3
"""
Initialize default database values.
This script is run on startup to populate roles, system attendance statuses
and the system grade label with its tags. Running it again changes nothing.
"""

import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from backend.database.db import AsyncSessionLocal
from backend.database.models import AttendanceStatus, Label, Role, Tag
from backend.utils.constants import GRADE_LABEL_TYPE, RoleId
from backend.utils.logging_config import configure_logging

DEFAULT_ROLES = {
    RoleId.OWNER: "owner",
    RoleId.MANAGER: "manager",
    RoleId.MEMBER: "member",
}

# The first entry is the default status of new attendance rows
SYSTEM_ATTENDANCE_STATUSES = [
    ("No answer", "#9e9e9e"),
    ("Attending", "#4caf50"),
    ("Absent", "#f44336"),
    ("Late", "#ff9800"),
    ("Leaving early", "#2196f3"),
]

GRADE_LABEL = ("Grade", "#607d8b")

GRADE_TAGS = [
    ("Kindergarten", "#ffeb3b"),
    ("1st grade", "#ffc107"),
    ("2nd grade", "#ff9800"),
    ("3rd grade", "#ff5722"),
    ("4th grade", "#e91e63"),
    ("5th grade", "#9c27b0"),
    ("6th grade", "#673ab7"),
    ("7th grade", "#3f51b5"),
    ("8th grade", "#2196f3"),
    ("9th grade", "#03a9f4"),
    ("10th grade", "#00bcd4"),
    ("11th grade", "#009688"),
    ("12th grade", "#4caf50"),
    ("Adult", "#795548"),
]


async def seed_reference_data(session: AsyncSession) -> None:
    """
    Insert the rows every team relies on, skipping the ones already present.

    Does not commit.
    """
    result = await session.execute(select(Role.id))
    existing_roles = set(result.scalars().all())
    for role_id, name in DEFAULT_ROLES.items():
        if role_id not in existing_roles:
            session.add(Role(id=role_id, name=name))
            print(f"✓ Added role: {name}")

    result = await session.execute(
        select(AttendanceStatus.name).where(AttendanceStatus.system_flag.is_(True))
    )
    existing_statuses = set(result.scalars().all())
    for name, color in SYSTEM_ATTENDANCE_STATUSES:
        if name not in existing_statuses:
            session.add(AttendanceStatus(team_id=None, name=name, color=color, system_flag=True))
            print(f"✓ Added attendance status: {name}")

    result = await session.execute(
        select(Label).where(Label.type == GRADE_LABEL_TYPE, Label.system_flag.is_(True))
    )
    grade_label = result.scalars().first()
    if grade_label is None:
        name, color = GRADE_LABEL
        grade_label = Label(
            team_id=None, name=name, color=color, type=GRADE_LABEL_TYPE, system_flag=True
        )
        session.add(grade_label)
        await session.flush()  # Get the label ID
        print("✓ Added grade label")

    result = await session.execute(
        select(Tag.name).where(Tag.label_id == grade_label.id, Tag.system_flag.is_(True))
    )
    existing_tags = set(result.scalars().all())
    missing_tags = [(name, color) for name, color in GRADE_TAGS if name not in existing_tags]
    for name, color in missing_tags:
        session.add(
            Tag(team_id=None, name=name, color=color, system_flag=True, label_id=grade_label.id)
        )
    if missing_tags:
        print(f"✓ Added {len(missing_tags)} grade tag(s)")

    await session.flush()


async def init_defaults():
    """Initialize default database values."""
    print("Initializing default database values...")

    async with AsyncSessionLocal() as session:
        await seed_reference_data(session)
        await session.commit()

    print("✓ Default values initialized")


if __name__ == "__main__":
    configure_logging()
    asyncio.run(init_defaults())
