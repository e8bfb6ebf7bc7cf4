"""User roles, the permission catalog and role permissions.

Permissions follow the pattern ``resource.action`` or
``resource.subresource.action``. A permission ending in ``.*`` grants the
resource itself and every action below it, so ``reports.score.*`` covers
``reports.score.read`` and ``reports.score.read_composite``.
"""

from collections.abc import Iterable, Mapping
from enum import Enum
from types import MappingProxyType

from app.core.exceptions import UnmappedPermissionError

WILDCARD_SUFFIX = ".*"


class Role(str, Enum):
    """Membership roles, as recorded on org, class and group enrollments."""

    SYSTEM_ADMINISTRATOR = "system_administrator"
    DISTRICT_ADMINISTRATOR = "district_administrator"
    SITE_ADMINISTRATOR = "site_administrator"
    ADMINISTRATOR = "administrator"
    PRINCIPAL = "principal"
    COUNSELOR = "counselor"
    TEACHER = "teacher"
    AIDE = "aide"
    PROCTOR = "proctor"
    STUDENT = "student"
    GUARDIAN = "guardian"
    PARENT = "parent"
    RELATIVE = "relative"


class Permission(str, Enum):
    """Every permission known to the system."""

    REPORTS_SCORE_ALL = "reports.score.*"
    REPORTS_SCORE_READ = "reports.score.read"
    REPORTS_SCORE_READ_COMPOSITE = "reports.score.read_composite"
    REPORTS_PROGRESS_ALL = "reports.progress.*"
    REPORTS_PROGRESS_READ = "reports.progress.read"
    REPORTS_STUDENT_ALL = "reports.student.*"
    REPORTS_STUDENT_READ = "reports.student.read"

    ORGANIZATIONS_ALL = "organizations.*"
    ORGANIZATIONS_LIST = "organizations.list"
    ORGANIZATIONS_CREATE = "organizations.create"
    ORGANIZATIONS_UPDATE = "organizations.update"

    CLASSES_ALL = "classes.*"
    CLASSES_LIST = "classes.list"

    GROUPS_ALL = "groups.*"
    GROUPS_LIST = "groups.list"

    TASK_VARIANTS_ALL = "task_variants.*"
    TASK_VARIANTS_LIST = "task_variants.list"

    ADMINISTRATIONS_ALL = "administrations.*"
    ADMINISTRATIONS_LIST = "administrations.list"
    ADMINISTRATIONS_READ = "administrations.read"
    ADMINISTRATIONS_CREATE = "administrations.create"
    ADMINISTRATIONS_UPDATE = "administrations.update"

    ADMINISTRATORS_ALL = "administrators.*"
    ADMINISTRATORS_READ = "administrators.read"
    ADMINISTRATORS_CREATE = "administrators.create"
    ADMINISTRATORS_UPDATE = "administrators.update"
    ADMINISTRATORS_CREDENTIALS_UPDATE = "administrators.credentials.update"

    PROFILE_ALL = "profile.*"
    PROFILE_READ = "profile.read"

    USERS_ALL = "users.*"
    USERS_LIST = "users.list"
    USERS_CREATE = "users.create"
    USERS_UPDATE = "users.update"
    USERS_UNENROLL = "users.unenroll"
    USERS_SET_PID = "users.set_pid"
    USERS_CREDENTIALS_UPDATE = "users.credentials.update"

    TASKS_ALL = "tasks.*"
    TASKS_CREATE = "tasks.create"
    TASKS_UPDATE = "tasks.update"
    TASKS_LAUNCH = "tasks.launch"

    RUNS_ALL = "runs.*"
    RUNS_DELETE = "runs.delete"
    RUNS_SCORES_MARK_INELIGIBLE = "runs.scores.mark_ineligible"

    TESTDATA_CREATE = "testdata.create"

    @property
    def is_wildcard(self) -> bool:
        return self.value.endswith(WILDCARD_SUFFIX)


def permission_matches(granted: str, requested: str) -> bool:
    """Check if a granted permission (possibly a wildcard) covers *requested*."""
    granted = str(getattr(granted, "value", granted))
    requested = str(getattr(requested, "value", requested))

    if granted == requested:
        return True

    if granted.endswith(WILDCARD_SUFFIX):
        prefix = granted[: -len(WILDCARD_SUFFIX)]
        return requested == prefix or requested.startswith(prefix + ".")

    return False


# Wildcard -> concrete permissions it covers
WILDCARD_GRANTS: Mapping[Permission, frozenset[Permission]] = MappingProxyType(
    {
        wildcard: frozenset(
            p for p in Permission if not p.is_wildcard and permission_matches(wildcard, p)
        )
        for wildcard in Permission
        if wildcard.is_wildcard
    }
)


_SUPERVISED_FAMILY_PERMISSIONS = frozenset(
    {
        Permission.ADMINISTRATIONS_LIST,
        Permission.REPORTS_STUDENT_READ,
        Permission.PROFILE_READ,
    }
)

ROLE_PERMISSIONS: Mapping[Role, frozenset[Permission]] = MappingProxyType(
    {
        Role.SYSTEM_ADMINISTRATOR: frozenset(
            {
                Permission.ADMINISTRATIONS_ALL,
                Permission.ORGANIZATIONS_ALL,
                Permission.CLASSES_ALL,
                Permission.GROUPS_ALL,
                Permission.TASK_VARIANTS_ALL,
                Permission.USERS_ALL,
                Permission.ADMINISTRATORS_ALL,
                Permission.REPORTS_SCORE_ALL,
                Permission.REPORTS_PROGRESS_ALL,
                Permission.REPORTS_STUDENT_ALL,
                Permission.TASKS_ALL,
                Permission.RUNS_ALL,
                Permission.PROFILE_ALL,
                Permission.TESTDATA_CREATE,
            }
        ),
        Role.SITE_ADMINISTRATOR: frozenset(
            {
                Permission.ADMINISTRATIONS_ALL,
                Permission.ORGANIZATIONS_ALL,
                Permission.CLASSES_ALL,
                Permission.GROUPS_ALL,
                Permission.TASK_VARIANTS_ALL,
                Permission.USERS_ALL,
                Permission.ADMINISTRATORS_ALL,
                Permission.REPORTS_SCORE_ALL,
                Permission.REPORTS_PROGRESS_ALL,
                Permission.REPORTS_STUDENT_ALL,
                Permission.TASKS_ALL,
                Permission.RUNS_ALL,
                Permission.PROFILE_ALL,
                Permission.TESTDATA_CREATE,
            }
        ),
        Role.DISTRICT_ADMINISTRATOR: frozenset(
            {
                Permission.ADMINISTRATIONS_ALL,
                Permission.ORGANIZATIONS_ALL,
                Permission.CLASSES_ALL,
                Permission.GROUPS_ALL,
                Permission.USERS_ALL,
                Permission.ADMINISTRATORS_READ,
                Permission.REPORTS_SCORE_ALL,
                Permission.REPORTS_PROGRESS_ALL,
                Permission.REPORTS_STUDENT_ALL,
                Permission.TASKS_ALL,
                Permission.PROFILE_ALL,
            }
        ),
        Role.ADMINISTRATOR: frozenset(
            {
                Permission.ADMINISTRATIONS_ALL,
                Permission.ORGANIZATIONS_ALL,
                Permission.USERS_ALL,
                Permission.ADMINISTRATORS_READ,
                Permission.REPORTS_SCORE_ALL,
                Permission.REPORTS_PROGRESS_ALL,
                Permission.REPORTS_STUDENT_ALL,
                Permission.TASKS_ALL,
                Permission.PROFILE_ALL,
            }
        ),
        Role.PRINCIPAL: frozenset(
            {
                Permission.ADMINISTRATIONS_LIST,
                Permission.ADMINISTRATIONS_READ,
                Permission.ORGANIZATIONS_LIST,
                Permission.CLASSES_LIST,
                Permission.GROUPS_LIST,
                Permission.USERS_LIST,
                Permission.ADMINISTRATORS_READ,
                Permission.REPORTS_SCORE_ALL,
                Permission.REPORTS_PROGRESS_ALL,
                Permission.REPORTS_STUDENT_ALL,
                Permission.TASKS_LAUNCH,
                Permission.PROFILE_READ,
            }
        ),
        Role.COUNSELOR: frozenset(
            {
                Permission.ADMINISTRATIONS_LIST,
                Permission.ADMINISTRATIONS_READ,
                Permission.USERS_LIST,
                Permission.REPORTS_SCORE_READ,
                Permission.REPORTS_PROGRESS_READ,
                Permission.REPORTS_STUDENT_READ,
                Permission.PROFILE_READ,
            }
        ),
        Role.TEACHER: frozenset(
            {
                Permission.ADMINISTRATIONS_LIST,
                Permission.ORGANIZATIONS_LIST,
                Permission.USERS_LIST,
                Permission.ADMINISTRATORS_READ,
                Permission.REPORTS_SCORE_READ,
                Permission.REPORTS_PROGRESS_READ,
                Permission.REPORTS_STUDENT_READ,
                Permission.TASKS_LAUNCH,
                Permission.PROFILE_READ,
            }
        ),
        Role.AIDE: frozenset(
            {
                Permission.ADMINISTRATIONS_LIST,
                Permission.USERS_LIST,
                Permission.REPORTS_PROGRESS_READ,
                Permission.TASKS_LAUNCH,
                Permission.PROFILE_READ,
            }
        ),
        Role.PROCTOR: frozenset(
            {
                Permission.ADMINISTRATIONS_LIST,
                Permission.TASKS_LAUNCH,
                Permission.PROFILE_READ,
            }
        ),
        Role.STUDENT: frozenset(
            {
                Permission.ADMINISTRATIONS_LIST,
                Permission.TASKS_LAUNCH,
                Permission.PROFILE_READ,
            }
        ),
        Role.GUARDIAN: _SUPERVISED_FAMILY_PERMISSIONS,
        Role.PARENT: _SUPERVISED_FAMILY_PERMISSIONS,
        Role.RELATIVE: _SUPERVISED_FAMILY_PERMISSIONS,
    }
)


def has_permission(role: Role, permission: str) -> bool:
    """Check if a role has a specific permission, honouring wildcards."""
    return any(permission_matches(granted, permission) for granted in ROLE_PERMISSIONS.get(role, ()))


def is_catalogued(permission: str) -> bool:
    """Check if *permission* is a catalog entry (wildcards included)."""
    return str(getattr(permission, "value", permission)) in Permission._value2member_map_


def roles_for_permission(permission: str) -> list[Role]:
    """
    Get all roles that hold the given permission, exactly or by wildcard.

    Raises UnmappedPermissionError when the permission is not in the catalog
    or no role matches, so an unknown or never-granted permission is never
    mistaken for "nobody may see this". A string under a granted wildcard
    prefix is still unknown unless the catalog lists it.
    """
    requested = str(getattr(permission, "value", permission))
    if not is_catalogued(requested):
        raise UnmappedPermissionError(requested)
    roles = [role for role in Role if has_permission(role, requested)]
    if not roles:
        raise UnmappedPermissionError(requested)
    return roles


def get_permission_catalog() -> list[Permission]:
    """Return the full permission catalog in declaration order."""
    return list(Permission)


def get_role_permissions(role: Role) -> frozenset[Permission]:
    """Return the permissions granted to a role (wildcards unexpanded)."""
    return ROLE_PERMISSIONS.get(role, frozenset())


def get_role_permission_map() -> Mapping[Role, frozenset[Permission]]:
    """Read-only view of the role -> permissions map."""
    return ROLE_PERMISSIONS


def expand_permissions(permissions: Iterable[Permission]) -> frozenset[Permission]:
    """Expand wildcards into the concrete permissions they cover."""
    expanded: set[Permission] = set()
    for permission in permissions:
        if permission.is_wildcard:
            expanded.update(WILDCARD_GRANTS[permission])
        else:
            expanded.add(permission)
    return frozenset(expanded)
