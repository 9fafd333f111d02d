"""
Role model - the ranked role table and its permissions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Tuple


class Role(str, Enum):
    """Roles an identity can hold, least to most privileged."""

    USER = "user"
    AGENT_INITIATE = "agent-initiate"
    AGENT_FIELD = "agent-field"
    AGENT_SENIOR = "agent-senior"
    AGENT_MASTER = "agent-master"
    ADMIN = "admin"


class Permission(str, Enum):
    """Permissions granted by roles."""

    READ_BASIC = "read:basic"
    WRITE_BASIC = "write:basic"
    READ_ADVANCED = "read:advanced"
    WRITE_ADVANCED = "write:advanced"
    ADMIN = "admin"


class RoleOperation(str, Enum):
    """Role mutation kinds."""

    ADD = "add"
    REMOVE = "remove"


@dataclass(frozen=True)
class RoleDefinition:
    """One row of the role table."""

    role: Role
    rank: int
    permissions: FrozenSet[Permission]


ROLE_TABLE: Tuple[RoleDefinition, ...] = (
    RoleDefinition(Role.USER, 0, frozenset({Permission.READ_BASIC})),
    RoleDefinition(
        Role.AGENT_INITIATE, 1, frozenset({Permission.READ_BASIC, Permission.WRITE_BASIC})
    ),
    RoleDefinition(
        Role.AGENT_FIELD,
        2,
        frozenset({Permission.READ_BASIC, Permission.WRITE_BASIC, Permission.READ_ADVANCED}),
    ),
    RoleDefinition(
        Role.AGENT_SENIOR,
        3,
        frozenset(
            {
                Permission.READ_BASIC,
                Permission.WRITE_BASIC,
                Permission.READ_ADVANCED,
                Permission.WRITE_ADVANCED,
            }
        ),
    ),
    RoleDefinition(Role.AGENT_MASTER, 4, frozenset(Permission)),
    RoleDefinition(Role.ADMIN, 5, frozenset(Permission)),
)

ROLE_RANKS: Dict[Role, int] = {definition.role: definition.rank for definition in ROLE_TABLE}
ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    definition.role: definition.permissions for definition in ROLE_TABLE
}

# Every identity holds the base role; the top role manages everything
BASE_ROLE = Role.USER
TOP_ROLE = max(ROLE_TABLE, key=lambda definition: definition.rank).role
