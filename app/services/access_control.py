"""Access scope computation.

Users gain access to administrations through their memberships:

    User belongs to:    Can see administrations assigned to:
    District            that district (and descendants if supervisory)
    School              that school, parent district (and descendants if supervisory)
    Class               that class, parent school, parent district
    Group               that group only

Every role sees its own node and the nodes above it. Supervisory roles also
see everything below their node. Super admins see everything.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from pydantic import ValidationError

from app.core.enrollment import ensure_utc, is_enrollment_active
from app.core.exceptions import InvalidAccessFilterError, InvalidAccessInputError
from app.core.permissions import Role, roles_for_permission
from app.core.role_classifications import RoleTier, tier_or_none
from app.schemas.access_control import (
    AccessControlFilter,
    AdministrationAssignment,
    Membership,
    NodeType,
    TargetType,
)
from app.services.hierarchy import HierarchyIndex

logger = logging.getLogger(__name__)

# Membership target type each node type must be addressed with; the rest are orgs
_TARGET_TYPES = {
    NodeType.CLASS: TargetType.CLASS,
    NodeType.GROUP: TargetType.GROUP,
}


@dataclass(frozen=True)
class AccessScope:
    """
    Nodes and groups a user may see for one permission.

    An unrestricted scope (super admins) can view every assignment, including
    ones anchored outside the hierarchy snapshot.
    """

    node_ids: frozenset[str] = frozenset()
    group_ids: frozenset[str] = frozenset()
    unrestricted: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.unrestricted and not self.node_ids and not self.group_ids

    def can_view(self, assignment: AdministrationAssignment) -> bool:
        if self.unrestricted:
            return True
        if assignment.target_type == TargetType.GROUP:
            return assignment.target_id in self.group_ids
        return assignment.target_id in self.node_ids


def parse_access_control_filter(user_id: str, allowed_roles: Iterable[Role | str]) -> AccessControlFilter:
    """Validate a user id / allowed roles pair."""
    try:
        return AccessControlFilter(user_id=user_id, allowed_roles=list(allowed_roles))
    except ValidationError as exc:
        raise InvalidAccessFilterError(f"Invalid access control filter: {exc.errors()}") from exc


def _matches_filter(membership: Membership, access_filter: AccessControlFilter, now: datetime) -> bool:
    return (
        membership.user_id == access_filter.user_id
        and membership.role in access_filter.allowed_roles
        and is_enrollment_active(membership, now)
    )


def is_authorized_membership(
    membership: Membership,
    user_id: str,
    allowed_roles: Iterable[Role],
    now: datetime,
) -> bool:
    """Check that a membership is the user's, in an allowed role, and active at *now*."""
    return _matches_filter(membership, parse_access_control_filter(user_id, allowed_roles), now)


def _check_target_type(membership: Membership, hierarchy: HierarchyIndex) -> None:
    node = hierarchy.get(membership.node_id)
    if node is None:
        return
    expected = _TARGET_TYPES.get(node.node_type, TargetType.ORG)
    if membership.target_type != expected:
        raise InvalidAccessInputError(
            f"Membership of user {membership.user_id} targets {membership.target_type.value} "
            f"'{membership.node_id}', which is a {node.node_type.value} node"
        )


def _unrestricted_scope(hierarchy: HierarchyIndex) -> AccessScope:
    node_ids: set[str] = set()
    group_ids: set[str] = set()
    for node in hierarchy:
        if node.node_type == NodeType.GROUP:
            group_ids.add(node.id)
        else:
            node_ids.add(node.id)
    return AccessScope(node_ids=frozenset(node_ids), group_ids=frozenset(group_ids), unrestricted=True)


def compute_visible_nodes(
    user_id: str,
    memberships: Iterable[Membership],
    required_permission: str,
    now: datetime,
    *,
    hierarchy: HierarchyIndex,
    is_super_admin: bool = False,
) -> AccessScope:
    """
    Compute the nodes and groups visible to a user for a permission.

    Raises UnmappedPermissionError if no role holds *required_permission*.
    A user without authorized memberships gets an empty scope. Super admins
    bypass memberships and get an unrestricted scope.
    """
    allowed_roles = roles_for_permission(required_permission)
    access_filter = parse_access_control_filter(user_id, allowed_roles)
    now = ensure_utc(now)

    if is_super_admin:
        logger.info("Super admin %s granted unrestricted scope on %s", user_id, required_permission)
        return _unrestricted_scope(hierarchy)

    node_ids: set[str] = set()
    group_ids: set[str] = set()

    for membership in memberships:
        if not _matches_filter(membership, access_filter, now):
            continue
        _check_target_type(membership, hierarchy)

        if membership.target_type == TargetType.GROUP:
            group_ids.add(membership.node_id)
            continue

        tier = tier_or_none(membership.role)
        if tier is None:
            logger.error(
                "Role %s has no tier; membership at %s grants nothing",
                membership.role,
                membership.node_id,
            )
            continue

        node_ids |= hierarchy.ancestors_of(membership.node_id)
        if tier is RoleTier.SUPERVISORY:
            node_ids |= hierarchy.descendants_of(membership.node_id)

    logger.debug(
        "Access scope for user %s on %s: %d nodes, %d groups",
        user_id,
        required_permission,
        len(node_ids),
        len(group_ids),
    )
    return AccessScope(node_ids=frozenset(node_ids), group_ids=frozenset(group_ids))


def filter_visible_assignments(
    scope: AccessScope, assignments: Iterable[AdministrationAssignment]
) -> list[AdministrationAssignment]:
    """Keep the assignments anchored inside the scope, in input order."""
    return [a for a in assignments if scope.can_view(a)]


def visible_administration_ids(
    user_id: str,
    memberships: Iterable[Membership],
    assignments: Iterable[AdministrationAssignment],
    required_permission: str,
    now: datetime,
    *,
    hierarchy: HierarchyIndex,
    is_super_admin: bool = False,
) -> set[str]:
    """Ids of administrations the user may see for a permission."""
    scope = compute_visible_nodes(
        user_id,
        memberships,
        required_permission,
        now,
        hierarchy=hierarchy,
        is_super_admin=is_super_admin,
    )
    return {a.administration_id for a in filter_visible_assignments(scope, assignments)}
