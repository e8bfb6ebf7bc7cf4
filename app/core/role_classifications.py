"""Supervisory vs supervised role tiers.

Supervisory roles see resources anchored at descendants of their membership
node. Supervised roles only see resources at their own node or above it.
"""

from collections.abc import Iterable
from enum import Enum

from app.core.exceptions import RoleClassificationError
from app.core.permissions import Role


class RoleTier(str, Enum):
    """Direction a role may look through the org tree."""

    SUPERVISORY = "supervisory"
    SUPERVISED = "supervised"


SUPERVISORY_ROLES: frozenset[Role] = frozenset(
    {
        Role.SYSTEM_ADMINISTRATOR,
        Role.DISTRICT_ADMINISTRATOR,
        Role.SITE_ADMINISTRATOR,
        Role.ADMINISTRATOR,
        Role.PRINCIPAL,
        Role.COUNSELOR,
        Role.TEACHER,
        Role.AIDE,
        Role.PROCTOR,
    }
)

SUPERVISED_ROLES: frozenset[Role] = frozenset(
    {
        Role.STUDENT,
        Role.GUARDIAN,
        Role.PARENT,
        Role.RELATIVE,
    }
)


def _as_role(value: str) -> Role | None:
    try:
        return Role(value)
    except ValueError:
        return None


def classify(role: Role | str) -> RoleTier:
    """Return the tier of a role. Unclassified values raise."""
    resolved = _as_role(role)
    if resolved in SUPERVISORY_ROLES:
        return RoleTier.SUPERVISORY
    if resolved in SUPERVISED_ROLES:
        return RoleTier.SUPERVISED
    raise RoleClassificationError(f"Role '{role}' has no tier classification")


def tier_or_none(role: Role | str) -> RoleTier | None:
    """Like classify(), but returns None for an unclassified value."""
    resolved = _as_role(role)
    if resolved in SUPERVISORY_ROLES:
        return RoleTier.SUPERVISORY
    if resolved in SUPERVISED_ROLES:
        return RoleTier.SUPERVISED
    return None


def has_supervisory_role(roles: Iterable[Role | str]) -> bool:
    """Check if any of *roles* is supervisory. Unknown strings never are."""
    return any(tier_or_none(role) is RoleTier.SUPERVISORY for role in roles)


def filter_supervisory_roles(roles: Iterable[Role | str]) -> list[Role]:
    """Keep only the supervisory roles, preserving order."""
    return [Role(role) for role in roles if tier_or_none(role) is RoleTier.SUPERVISORY]


def validate_role_classification(
    supervisory: frozenset[Role] | None = None,
    supervised: frozenset[Role] | None = None,
) -> None:
    """Ensure the two tiers partition the full Role enumeration."""
    supervisory = SUPERVISORY_ROLES if supervisory is None else supervisory
    supervised = SUPERVISED_ROLES if supervised is None else supervised

    overlap = supervisory & supervised
    if overlap:
        names = ", ".join(sorted(r.value for r in overlap))
        raise RoleClassificationError(f"Roles classified as both tiers: {names}")

    missing = set(Role) - (supervisory | supervised)
    if missing:
        names = ", ".join(sorted(r.value for r in missing))
        raise RoleClassificationError(f"Roles without a tier: {names}")
