"""Startup self-check for the static access control configuration."""

import logging

from app.core.exceptions import AccessControlConfigError
from app.core.permissions import (
    ROLE_PERMISSIONS,
    Permission,
    Role,
    roles_for_permission,
)
from app.core.role_classifications import validate_role_classification

logger = logging.getLogger(__name__)


def validate_access_control_config() -> None:
    """
    Fail fast on any defect in roles, tiers or role permissions.

    Checks that:
    - supervisory and supervised tiers partition every role
    - every role has an entry in the role permission map
    - every granted entry is a catalog permission
    - every catalog permission is held by at least one role
    """
    validate_role_classification()

    unmapped_roles = [role.value for role in Role if role not in ROLE_PERMISSIONS]
    if unmapped_roles:
        raise AccessControlConfigError(
            f"Roles without a permission entry: {', '.join(unmapped_roles)}"
        )

    for role, granted in ROLE_PERMISSIONS.items():
        unknown = [p for p in granted if not isinstance(p, Permission)]
        if unknown:
            raise AccessControlConfigError(
                f"Role '{role.value}' is granted unknown permissions: {unknown}"
            )

    # Raises UnmappedPermissionError naming the first unreachable permission
    for permission in Permission:
        roles_for_permission(permission)

    logger.info(
        "Access control config OK: %d roles, %d permissions",
        len(Role),
        len(Permission),
    )
