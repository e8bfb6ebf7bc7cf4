"""Store-side access control filters.

Builds SQL queries that decide, inside the database, which administrations
and orgs a user can access. They apply the same rules as
``app.services.access_control`` so repositories can join against them
instead of loading every membership into memory:

- Ancestor access (all roles): a user sees administrations on their own
  org, class or group and on every org above it.
- Descendant access (supervisory roles only): a user also sees
  administrations on orgs and classes below their org.

Paths are compared with ``descendant_or_equal_clause`` /
``ancestor_or_equal_clause``, which match on whole segments.
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import and_, distinct, func, select, union, union_all
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
from sqlalchemy.sql import CompoundSelect

from app.core.enrollment import enrollment_active_clause
from app.core.exceptions import InvalidAccessFilterError, InvalidAccessInputError
from app.core.hierarchy import OrgPath, ancestor_or_equal_clause, descendant_or_equal_clause
from app.core.permissions import Role, roles_for_permission
from app.core.role_classifications import filter_supervisory_roles
from app.models.administration import (
    Administration,
    AdministrationClass,
    AdministrationGroup,
    AdministrationOrg,
)
from app.models.group import Group
from app.models.membership import UserClass, UserGroup, UserOrg
from app.models.org import Org
from app.models.school_class import SchoolClass
from app.schemas.access_control import (
    AccessControlFilter,
    AdministrationAssignment,
    HierarchyNode,
    Membership,
    NodeType,
    TargetType,
)
from app.services.access_control import parse_access_control_filter
from app.services.hierarchy import HierarchyIndex

logger = logging.getLogger(__name__)


def _user_uuid(user_id: str) -> UUID:
    try:
        return UUID(user_id)
    except ValueError as exc:
        raise InvalidAccessFilterError(f"user_id is not a valid UUID: {user_id!r}") from exc


def authorized_membership_clause(table, user_id: UUID, allowed_roles: Sequence[Role], now: datetime):
    """SQL condition: membership row is the user's, in an allowed role, and active."""
    return and_(
        table.user_id == user_id,
        table.role.in_([Role(r).value for r in allowed_roles]),
        enrollment_active_clause(table, now),
    )


def build_user_administration_ids_query(access_filter: AccessControlFilter, now: datetime) -> CompoundSelect:
    """
    Return a UNION of administration ids the user can access.

    Rows have a single ``administration_id`` column.
    """
    user_id = _user_uuid(access_filter.user_id)
    allowed_roles = access_filter.allowed_roles

    admin_org = aliased(Org, name="admin_org")  # org the administration is assigned to
    user_org = aliased(Org, name="user_org")  # org the user is enrolled at

    # User's org membership -> admins on that org or ancestor orgs
    via_user_org_to_admin_org = (
        select(AdministrationOrg.administration_id.label("administration_id"))
        .select_from(UserOrg)
        .join(user_org, user_org.id == UserOrg.org_id)
        .join(admin_org, descendant_or_equal_clause(user_org.path, admin_org.path))
        .join(AdministrationOrg, AdministrationOrg.org_id == admin_org.id)
        .where(authorized_membership_clause(UserOrg, user_id, allowed_roles, now))
    )

    # User's class membership -> admins on the class's school or ancestor orgs
    via_user_class_to_admin_org = (
        select(AdministrationOrg.administration_id.label("administration_id"))
        .select_from(UserClass)
        .join(SchoolClass, SchoolClass.id == UserClass.class_id)
        .join(admin_org, descendant_or_equal_clause(SchoolClass.path, admin_org.path))
        .join(AdministrationOrg, AdministrationOrg.org_id == admin_org.id)
        .where(authorized_membership_clause(UserClass, user_id, allowed_roles, now))
    )

    # User's class membership -> admins assigned to that class
    via_direct_class = (
        select(AdministrationClass.administration_id.label("administration_id"))
        .select_from(UserClass)
        .join(AdministrationClass, AdministrationClass.class_id == UserClass.class_id)
        .where(authorized_membership_clause(UserClass, user_id, allowed_roles, now))
    )

    # User's group membership -> admins assigned to that group
    via_direct_group = (
        select(AdministrationGroup.administration_id.label("administration_id"))
        .select_from(UserGroup)
        .join(AdministrationGroup, AdministrationGroup.group_id == UserGroup.group_id)
        .where(authorized_membership_clause(UserGroup, user_id, allowed_roles, now))
    )

    paths = [via_user_org_to_admin_org, via_user_class_to_admin_org, via_direct_class, via_direct_group]

    supervisory_roles = filter_supervisory_roles(allowed_roles)
    if not supervisory_roles:
        logger.debug(
            "No supervisory roles for user %s in %s, skipping descendant paths",
            access_filter.user_id,
            [r.value for r in allowed_roles],
        )
        return union(*paths)

    # User's org membership -> admins on descendant orgs
    via_user_org_to_descendant_org = (
        select(AdministrationOrg.administration_id.label("administration_id"))
        .select_from(UserOrg)
        .join(user_org, user_org.id == UserOrg.org_id)
        .join(admin_org, ancestor_or_equal_clause(user_org.path, admin_org.path))
        .join(AdministrationOrg, AdministrationOrg.org_id == admin_org.id)
        .where(authorized_membership_clause(UserOrg, user_id, supervisory_roles, now))
    )

    # User's org membership -> admins on classes within the org's subtree
    via_user_org_to_descendant_class = (
        select(AdministrationClass.administration_id.label("administration_id"))
        .select_from(UserOrg)
        .join(user_org, user_org.id == UserOrg.org_id)
        .join(SchoolClass, ancestor_or_equal_clause(user_org.path, SchoolClass.path))
        .join(AdministrationClass, AdministrationClass.class_id == SchoolClass.id)
        .where(authorized_membership_clause(UserOrg, user_id, supervisory_roles, now))
    )

    return union(*paths, via_user_org_to_descendant_org, via_user_org_to_descendant_class)


def build_user_accessible_org_ids_query(access_filter: AccessControlFilter, now: datetime) -> CompoundSelect:
    """Return a UNION of org ids the user can access (``org_id`` column)."""
    user_id = _user_uuid(access_filter.user_id)
    allowed_roles = access_filter.allowed_roles

    user_org = aliased(Org, name="user_org")
    accessible_org = aliased(Org, name="accessible_org")

    # User's org membership -> that org and ancestor orgs
    via_user_org_ancestors = (
        select(accessible_org.id.label("org_id"))
        .select_from(UserOrg)
        .join(user_org, user_org.id == UserOrg.org_id)
        .join(accessible_org, descendant_or_equal_clause(user_org.path, accessible_org.path))
        .where(authorized_membership_clause(UserOrg, user_id, allowed_roles, now))
    )

    # User's class membership -> the class's school and ancestor orgs
    via_user_class_org_ancestors = (
        select(accessible_org.id.label("org_id"))
        .select_from(UserClass)
        .join(SchoolClass, SchoolClass.id == UserClass.class_id)
        .join(accessible_org, descendant_or_equal_clause(SchoolClass.path, accessible_org.path))
        .where(authorized_membership_clause(UserClass, user_id, allowed_roles, now))
    )

    supervisory_roles = filter_supervisory_roles(allowed_roles)
    if not supervisory_roles:
        logger.debug(
            "No supervisory roles for user %s in %s, skipping descendant paths",
            access_filter.user_id,
            [r.value for r in allowed_roles],
        )
        return union(via_user_org_ancestors, via_user_class_org_ancestors)

    # User's org membership -> descendant orgs
    via_user_org_descendants = (
        select(accessible_org.id.label("org_id"))
        .select_from(UserOrg)
        .join(user_org, user_org.id == UserOrg.org_id)
        .join(accessible_org, ancestor_or_equal_clause(user_org.path, accessible_org.path))
        .where(authorized_membership_clause(UserOrg, user_id, supervisory_roles, now))
    )

    return union(via_user_org_ancestors, via_user_class_org_ancestors, via_user_org_descendants)


def build_administration_user_assignments_query(
    administration_ids: Sequence[UUID], now: datetime
) -> CompoundSelect:
    """
    Return ``(administration_id, user_id)`` rows for users assigned to administrations.

    Uses UNION ALL, so a user reachable by several paths appears several
    times; count with DISTINCT.
    """
    if not administration_ids:
        raise InvalidAccessInputError("administration_ids are required for building user assignments query")

    admin_org = aliased(Org, name="admin_org")
    user_org = aliased(Org, name="user_org")

    # Admin on org -> users in that org or descendant orgs
    via_org_to_org_users = (
        select(AdministrationOrg.administration_id.label("administration_id"), UserOrg.user_id.label("user_id"))
        .select_from(AdministrationOrg)
        .join(admin_org, admin_org.id == AdministrationOrg.org_id)
        .join(user_org, ancestor_or_equal_clause(admin_org.path, user_org.path))
        .join(UserOrg, and_(UserOrg.org_id == user_org.id, enrollment_active_clause(UserOrg, now)))
        .where(AdministrationOrg.administration_id.in_(administration_ids))
    )

    # Admin on org -> users in classes under that org
    via_org_to_class_users = (
        select(AdministrationOrg.administration_id.label("administration_id"), UserClass.user_id.label("user_id"))
        .select_from(AdministrationOrg)
        .join(admin_org, admin_org.id == AdministrationOrg.org_id)
        .join(SchoolClass, ancestor_or_equal_clause(admin_org.path, SchoolClass.path))
        .join(UserClass, and_(UserClass.class_id == SchoolClass.id, enrollment_active_clause(UserClass, now)))
        .where(AdministrationOrg.administration_id.in_(administration_ids))
    )

    # Admin on class -> users in that class
    via_direct_class = (
        select(AdministrationClass.administration_id.label("administration_id"), UserClass.user_id.label("user_id"))
        .select_from(AdministrationClass)
        .join(
            UserClass,
            and_(UserClass.class_id == AdministrationClass.class_id, enrollment_active_clause(UserClass, now)),
        )
        .where(AdministrationClass.administration_id.in_(administration_ids))
    )

    # Admin on group -> users in that group
    via_direct_group = (
        select(AdministrationGroup.administration_id.label("administration_id"), UserGroup.user_id.label("user_id"))
        .select_from(AdministrationGroup)
        .join(
            UserGroup,
            and_(UserGroup.group_id == AdministrationGroup.group_id, enrollment_active_clause(UserGroup, now)),
        )
        .where(AdministrationGroup.administration_id.in_(administration_ids))
    )

    return union_all(via_org_to_org_users, via_org_to_class_users, via_direct_class, via_direct_group)


async def get_accessible_administration_ids(
    db: AsyncSession, user_id: str, permission: str, now: datetime, *, is_super_admin: bool = False
) -> set[UUID]:
    """
    Get ids of administrations the user may see for a permission.

    Super admins bypass memberships and see every administration.
    """
    access_filter = parse_access_control_filter(user_id, roles_for_permission(permission))
    if is_super_admin:
        _user_uuid(access_filter.user_id)
        logger.info("Super admin %s granted all administrations on %s", user_id, permission)
        result = await db.execute(select(Administration.id))
        return set(result.scalars().all())
    result = await db.execute(build_user_administration_ids_query(access_filter, now))
    return set(result.scalars().all())


async def get_accessible_org_ids(
    db: AsyncSession, user_id: str, permission: str, now: datetime, *, is_super_admin: bool = False
) -> set[UUID]:
    """Get ids of orgs the user may see for a permission (every org for super admins)."""
    access_filter = parse_access_control_filter(user_id, roles_for_permission(permission))
    if is_super_admin:
        _user_uuid(access_filter.user_id)
        logger.info("Super admin %s granted all orgs on %s", user_id, permission)
        result = await db.execute(select(Org.id))
        return set(result.scalars().all())
    result = await db.execute(build_user_accessible_org_ids_query(access_filter, now))
    return set(result.scalars().all())


async def get_assigned_user_counts(
    db: AsyncSession, administration_ids: Sequence[UUID], now: datetime
) -> dict[UUID, int]:
    """
    Count unique users assigned to each administration.

    Administrations without users are absent from the result.
    """
    assignments = build_administration_user_assignments_query(administration_ids, now).subquery("assignments")
    result = await db.execute(
        select(
            assignments.c.administration_id,
            func.count(distinct(assignments.c.user_id)),
        ).group_by(assignments.c.administration_id)
    )
    return {administration_id: count for administration_id, count in result.all()}


def _as_utc(value: datetime | None) -> datetime | None:
    # Timestamps are stored in UTC; some drivers hand them back naive
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def load_memberships(db: AsyncSession, user_id: UUID) -> list[Membership]:
    """Load a snapshot of every membership the user holds."""
    memberships: list[Membership] = []
    sources = (
        (UserOrg, UserOrg.org_id, TargetType.ORG),
        (UserClass, UserClass.class_id, TargetType.CLASS),
        (UserGroup, UserGroup.group_id, TargetType.GROUP),
    )
    for table, target_column, target_type in sources:
        result = await db.execute(
            select(table, target_column).where(table.user_id == user_id).order_by(table.enrollment_start)
        )
        for row, target_id in result.all():
            memberships.append(
                Membership(
                    user_id=str(row.user_id),
                    node_id=str(target_id),
                    role=row.role,
                    enrollment_start=_as_utc(row.enrollment_start),
                    enrollment_end=_as_utc(row.enrollment_end),
                    target_type=target_type,
                )
            )
    return memberships


async def load_hierarchy(db: AsyncSession) -> HierarchyIndex:
    """Load orgs, classes and groups into a HierarchyIndex."""
    nodes: list[HierarchyNode] = []

    orgs = await db.execute(select(Org))
    for org in orgs.scalars().all():
        nodes.append(
            HierarchyNode(
                id=str(org.id),
                node_type=NodeType(org.org_type),
                parent_id=str(org.parent_org_id) if org.parent_org_id else None,
                path=OrgPath.parse(org.path),
            )
        )

    classes = await db.execute(select(SchoolClass))
    for school_class in classes.scalars().all():
        nodes.append(
            HierarchyNode(
                id=str(school_class.id),
                node_type=NodeType.CLASS,
                parent_id=str(school_class.org_id),
                path=OrgPath.parse(school_class.path),
            )
        )

    groups = await db.execute(select(Group.id))
    for group_id in groups.scalars().all():
        nodes.append(HierarchyNode(id=str(group_id), node_type=NodeType.GROUP))

    return HierarchyIndex(nodes)


async def load_assignments(db: AsyncSession) -> list[AdministrationAssignment]:
    """Load every administration assignment."""
    assignments: list[AdministrationAssignment] = []
    sources = (
        (AdministrationOrg.administration_id, AdministrationOrg.org_id, TargetType.ORG),
        (AdministrationClass.administration_id, AdministrationClass.class_id, TargetType.CLASS),
        (AdministrationGroup.administration_id, AdministrationGroup.group_id, TargetType.GROUP),
    )
    for administration_column, target_column, target_type in sources:
        result = await db.execute(select(administration_column, target_column))
        for administration_id, target_id in result.all():
            assignments.append(
                AdministrationAssignment(
                    administration_id=str(administration_id),
                    target_id=str(target_id),
                    target_type=target_type,
                )
            )
    return assignments
