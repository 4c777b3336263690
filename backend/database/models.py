"""
SQLAlchemy ORM models for the team management backend.
"""

import enum
from sqlalchemy import (
    Column, Integer, SmallInteger, String, Text, Boolean, DateTime, Enum, JSON,
    ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.sql import func
from backend.database.db import Base
from backend.utils.constants import (
    TEAM_CODE_MAX_LENGTH, TeamStatus, UserStatus, DEFAULT_COLOR,
)


class TaggableType(str, enum.Enum):
    """Owner kinds a tag can be attached to."""
    EVENT = "event"
    PLAYER = "player"
    USER = "user"
    TEAM = "team"


class LabelableType(str, enum.Enum):
    """Owner kinds a label can be attached to."""
    EVENT = "event"
    PLAYER = "player"
    TEAM = "team"
    TAG = "tag"


class Team(Base):
    """Tenant boundary. Owns users, players, events, tags."""
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    code = Column(String(TEAM_CODE_MAX_LENGTH), nullable=False, unique=True)  # Prefix of every event_no
    description = Column(Text, nullable=True)
    status = Column(SmallInteger, default=TeamStatus.CREATED, nullable=False)
    event_sequence = Column(Integer, default=0, server_default="0", nullable=False)  # Only ever incremented
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Role(Base):
    """User roles. Ids are fixed: 0 owner, 1 manager, 2 member."""
    __tablename__ = "roles"

    id = Column(SmallInteger, primary_key=True, autoincrement=False)
    name = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class User(Base):
    """Team members. Credentials live with the identity provider."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    auth_user_id = Column(String(64), nullable=False, unique=True)  # Identity provider subject
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    role_id = Column(SmallInteger, ForeignKey("roles.id"), nullable=False)
    status = Column(SmallInteger, default=UserStatus.TEMPORARY, nullable=False)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_users_team", "team_id"),
    )


class Player(Base):
    """Roster entries. Each player belongs to a parent user of the same team."""
    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    parent_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    last_name = Column(Text, nullable=False)
    first_name = Column(Text, nullable=False)
    nick_name = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_players_team", "team_id"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.last_name} {self.first_name}"


class Place(Base):
    """Venues events can take place at."""
    __tablename__ = "places"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Label(Base):
    """Single-value classification. team_id is null for system labels."""
    __tablename__ = "labels"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True)
    name = Column(Text, nullable=False)
    color = Column(String(7), nullable=False, default=DEFAULT_COLOR)
    type = Column(String(32), nullable=False, default="event")
    system_flag = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Tag(Base):
    """Team or system tags. team_id is null for system tags."""
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True)
    name = Column(Text, nullable=False)
    color = Column(String(7), nullable=False)
    system_flag = Column(Boolean, nullable=False, default=False)
    label_id = Column(Integer, ForeignKey("labels.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_tags_team", "team_id"),
    )


class Taggable(Base):
    """
    Polymorphic tag association. One row per (tag, owner kind, owner id).

    Rows are only inserted or deleted, never updated.
    """
    __tablename__ = "taggables"

    tag_id = Column(Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True)
    taggable_type = Column(
        Enum(TaggableType, name="taggable_type", values_callable=lambda x: [e.value for e in x]),
        primary_key=True,
    )
    taggable_id = Column(Integer, primary_key=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_taggables_owner", "taggable_type", "taggable_id"),
    )


class Labelable(Base):
    """Polymorphic label association. One row per (label, owner kind, owner id)."""
    __tablename__ = "labelables"

    label_id = Column(Integer, ForeignKey("labels.id", ondelete="CASCADE"), primary_key=True)
    labelable_type = Column(
        Enum(LabelableType, name="labelable_type", values_callable=lambda x: [e.value for e in x]),
        primary_key=True,
    )
    labelable_id = Column(Integer, primary_key=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_labelables_owner", "labelable_type", "labelable_id"),
    )


class AttendanceStatus(Base):
    """Attendance answers (e.g. "Attending"). team_id is null for system statuses."""
    __tablename__ = "attendance_statuses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True)
    name = Column(Text, nullable=False)
    color = Column(String(7), nullable=False, default=DEFAULT_COLOR)
    system_flag = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Event(Base):
    """Scheduled practices, games, etc. event_no and team_id never change after insert."""
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    place_id = Column(Integer, ForeignKey("places.id", ondelete="SET NULL"), nullable=True)
    title = Column(Text, nullable=False)
    details = Column(Text, nullable=True)
    start_date_time = Column(DateTime(timezone=True), nullable=False)
    end_date_time = Column(DateTime(timezone=True), nullable=False)
    local_sequence = Column(Integer, nullable=False)
    event_no = Column(Text, nullable=False, unique=True)  # "{team.code}-{local_sequence}"
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("team_id", "local_sequence", name="uq_events_team_sequence"),
        Index("idx_events_team_start", "team_id", "start_date_time"),
    )


class Attendance(Base):
    """One row per (event, player)."""
    __tablename__ = "attendances"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    attendance_status_ids = Column(JSON, nullable=False)  # Always a one-element list
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("event_id", "player_id", name="uq_attendances_event_player"),
        Index("idx_attendances_event", "event_id"),
    )
