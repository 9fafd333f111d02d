"""
Role hierarchy checks over the static role table. No I/O.
"""

from typing import Iterable, List

from models.role import (
    BASE_ROLE,
    ROLE_PERMISSIONS,
    ROLE_RANKS,
    ROLE_TABLE,
    TOP_ROLE,
    Permission,
    Role,
)
from services.errors import InvalidOperationError


def parse_role(name: str | Role) -> Role:
    """
    Resolve a role name.

    Raises:
        InvalidOperationError: if the name is not in the role table
    """
    try:
        return Role(name)
    except ValueError:
        raise InvalidOperationError(f"Unknown role '{name}'") from None


def _known_roles(roles: Iterable[str | Role]) -> List[Role]:
    known = []
    for role in roles:
        try:
            known.append(Role(role))
        except ValueError:
            # Role names no longer in the table grant nothing
            continue
    return known or [BASE_ROLE]


def highest_role(roles: Iterable[str | Role]) -> Role:
    """Highest-ranked known role; the base role when none are held."""
    return max(_known_roles(roles), key=lambda role: ROLE_RANKS[role])


def can_manage(caller_roles: Iterable[str | Role], target_role: str | Role) -> bool:
    """
    Check whether a caller may grant or remove a role.

    The top role manages every role, itself included. Any other caller
    manages only roles ranked strictly below its highest role.

    Args:
        caller_roles: Roles held by the caller
        target_role: Role being granted or removed

    Returns:
        True if allowed
    """
    held = _known_roles(caller_roles)
    if TOP_ROLE in held:
        return True

    caller_level = max(ROLE_RANKS[role] for role in held)
    return caller_level > ROLE_RANKS[parse_role(target_role)]


def has_permission(roles: Iterable[str | Role], permission: Permission) -> bool:
    """True if any held role grants the permission."""
    return any(permission in ROLE_PERMISSIONS[role] for role in _known_roles(roles))


def available_roles() -> List[Role]:
    """All roles, lowest rank first."""
    return [definition.role for definition in sorted(ROLE_TABLE, key=lambda d: d.rank)]
