"""
Pydantic models for service-layer request/response validation.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar
from pydantic import (
    BaseModel, ConfigDict, Field, PositiveInt, ValidationError, field_validator, model_validator,
)

from backend.services.exceptions import InvalidInputError
from backend.utils.constants import COLOR_PATTERN, TEAM_CODE_MAX_LENGTH
from backend.utils.datetime_utils import ensure_utc

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_payload(model: Type[ModelT], data: Dict[str, Any]) -> ModelT:
    """
    Validate a raw payload against a request model.

    Raises:
        InvalidInputError: If the payload does not validate
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidInputError(
            f"Invalid {model.__name__}: {e.error_count()} error(s)", errors=e.errors()
        ) from e


# ============================================================================
# Events
# ============================================================================


class AttendanceInput(BaseModel):
    """Initial attendance answer for one player."""

    model_config = ConfigDict(extra="forbid")
    player_id: PositiveInt
    attendance_status_id: PositiveInt


def _check_unique_players(attendances: Optional[List[AttendanceInput]]) -> None:
    if attendances is None:
        return
    player_ids = [a.player_id for a in attendances]
    if len(player_ids) != len(set(player_ids)):
        raise ValueError("Each player may appear only once in attendances")


class CreateEventRequest(BaseModel):
    """Request to create an event with its label, tags and attendance stubs."""

    model_config = ConfigDict(extra="forbid")
    title: str = Field(min_length=1)
    details: Optional[str] = None
    label_id: PositiveInt
    place_id: Optional[PositiveInt] = None
    start_date_time: datetime
    end_date_time: datetime
    tag_ids: List[PositiveInt] = Field(default_factory=list)
    attendances: List[AttendanceInput] = Field(default_factory=list)

    @field_validator("start_date_time", "end_date_time")
    @classmethod
    def normalize_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def validate_event(self):
        """End must not precede start; no duplicate players."""
        if self.end_date_time < self.start_date_time:
            raise ValueError("end_date_time must not be before start_date_time")
        _check_unique_players(self.attendances)
        return self


class UpdateEventRequest(BaseModel):
    """
    Partial event update.

    Only fields present in the payload are applied. event_no and team_id are
    not fields of this model, so sending them is a validation error.
    """

    model_config = ConfigDict(extra="forbid")
    title: Optional[str] = Field(default=None, min_length=1)
    details: Optional[str] = None
    place_id: Optional[PositiveInt] = None
    start_date_time: Optional[datetime] = None
    end_date_time: Optional[datetime] = None
    tag_ids: Optional[List[PositiveInt]] = None
    attendances: Optional[List[AttendanceInput]] = None

    @field_validator("start_date_time", "end_date_time")
    @classmethod
    def normalize_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @model_validator(mode="after")
    def validate_update(self):
        """Required event columns cannot be cleared."""
        for name in ("title", "start_date_time", "end_date_time"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        if (
            self.start_date_time is not None
            and self.end_date_time is not None
            and self.end_date_time < self.start_date_time
        ):
            raise ValueError("end_date_time must not be before start_date_time")
        _check_unique_players(self.attendances)
        return self

    def event_field_updates(self) -> Dict[str, Any]:
        """Column values explicitly provided in the payload."""
        fields = {"title", "details", "place_id", "start_date_time", "end_date_time"}
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name in fields
        }


class LabelResponse(BaseModel):
    """Label data."""

    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    color: str
    type: str
    system_flag: bool
    team_id: Optional[int] = None


class TagResponse(BaseModel):
    """Tag data."""

    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    color: str
    system_flag: bool
    team_id: Optional[int] = None
    label_id: Optional[int] = None


class TagWithLabelsResponse(TagResponse):
    """Tag data with the labels attached to it."""

    labels: List[LabelResponse] = Field(default_factory=list)


class AttendanceResponse(BaseModel):
    """Attendance row."""

    model_config = ConfigDict(from_attributes=True)
    id: int
    event_id: int
    player_id: int
    attendance_status_ids: List[int]


class AttendanceStatusResponse(BaseModel):
    """Attendance status data."""

    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    color: str
    system_flag: bool
    team_id: Optional[int] = None


class EventResponse(BaseModel):
    """Event with its label, tags and attendances."""

    model_config = ConfigDict(from_attributes=True)
    id: int
    team_id: int
    owner_id: int
    place_id: Optional[int] = None
    event_no: str
    title: str
    details: Optional[str] = None
    start_date_time: datetime
    end_date_time: datetime
    label: Optional[LabelResponse] = None
    tags: List[TagResponse] = Field(default_factory=list)
    attendances: List[AttendanceResponse] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ============================================================================
# Teams & users
# ============================================================================


class SignupRequest(BaseModel):
    """Create a team together with its owner account."""

    model_config = ConfigDict(extra="forbid")
    auth_user_id: str = Field(min_length=1, max_length=64)
    team_name: str = Field(min_length=1)
    team_code: str = Field(min_length=1, max_length=TEAM_CODE_MAX_LENGTH, pattern=r"^[A-Za-z0-9_]+$")
    name: str = Field(min_length=1)
    email: str = Field(min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")


class TeamResponse(BaseModel):
    """Team data."""

    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    code: str
    description: Optional[str] = None
    status: int
    event_sequence: int


class SignupResponse(BaseModel):
    """Result of team signup."""

    team_id: int
    user_id: int
    team_code: str


class UserResponse(BaseModel):
    """User data with tags."""

    model_config = ConfigDict(from_attributes=True)
    id: int
    auth_user_id: str
    team_id: int
    role_id: int
    status: int
    name: str
    email: str
    tags: List[TagResponse] = Field(default_factory=list)


# ============================================================================
# Players
# ============================================================================


class CreatePlayerRequest(BaseModel):
    """Request to add a player to the roster."""

    model_config = ConfigDict(extra="forbid")
    last_name: str = Field(min_length=1)
    first_name: str = Field(min_length=1)
    nick_name: Optional[str] = None
    image_url: Optional[str] = Field(default=None, pattern=r"^https?://")
    tag_id: PositiveInt  # Grade tag
    parent_user_id: Optional[PositiveInt] = None


class UpdatePlayerRequest(BaseModel):
    """Partial player update. tag_ids replaces the player's tag set when given."""

    model_config = ConfigDict(extra="forbid")
    last_name: Optional[str] = Field(default=None, min_length=1)
    first_name: Optional[str] = Field(default=None, min_length=1)
    nick_name: Optional[str] = None
    image_url: Optional[str] = Field(default=None, pattern=r"^https?://")
    tag_ids: Optional[List[PositiveInt]] = None

    @model_validator(mode="after")
    def validate_names(self):
        for name in ("last_name", "first_name"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class PlayerResponse(BaseModel):
    """Player data with tags."""

    model_config = ConfigDict(from_attributes=True)
    id: int
    team_id: int
    parent_user_id: int
    last_name: str
    first_name: str
    full_name: str
    nick_name: Optional[str] = None
    image_url: Optional[str] = None
    tags: List[TagResponse] = Field(default_factory=list)


# ============================================================================
# Tags
# ============================================================================


class CreateTagRequest(BaseModel):
    """Request to create a team tag."""

    model_config = ConfigDict(extra="forbid")
    name: str = Field(min_length=1)
    color: str = Field(pattern=COLOR_PATTERN)


class UpdateTagRequest(BaseModel):
    """Partial tag update."""

    model_config = ConfigDict(extra="forbid")
    name: Optional[str] = Field(default=None, min_length=1)
    color: Optional[str] = Field(default=None, pattern=COLOR_PATTERN)
