"""
Constants used across the team management backend.
"""

import enum

TEAM_CODE_MAX_LENGTH = 32
DEFAULT_COLOR = "#000000"
COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"


class TeamStatus(enum.IntEnum):
    CREATED = 0
    ACTIVE = 1


class UserStatus(enum.IntEnum):
    TEMPORARY = 0
    CONFIRMED = 1


class RoleId(enum.IntEnum):
    OWNER = 0
    MANAGER = 1
    MEMBER = 2


# Roles that may edit any event or attendance of their team
MANAGING_ROLES = frozenset({RoleId.OWNER, RoleId.MANAGER})

GRADE_LABEL_TYPE = "grade"
