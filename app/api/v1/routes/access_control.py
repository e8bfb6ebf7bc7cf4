"""Access control introspection API routes."""

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.permissions import (
    WILDCARD_GRANTS,
    Role,
    get_permission_catalog,
    get_role_permission_map,
    get_role_permissions,
    roles_for_permission,
)
from app.core.role_classifications import classify
from app.schemas.access_control import (
    AccessScopeRequest,
    AccessScopeResponse,
    PermissionResponse,
    PermissionRolesResponse,
    RoleResponse,
    UserAdministrationsResponse,
    UserOrgsResponse,
)
from app.services.access_control import compute_visible_nodes, filter_visible_assignments
from app.services.access_control_queries import get_accessible_administration_ids, get_accessible_org_ids
from app.services.hierarchy import HierarchyIndex

router = APIRouter(prefix="/access-control", tags=["Access Control"])


def _role_response(role: Role) -> RoleResponse:
    return RoleResponse(
        role=role,
        tier=classify(role),
        permissions=sorted(get_role_permissions(role), key=lambda p: p.value),
    )


@router.get("/permissions", response_model=list[PermissionResponse])
async def list_permissions():
    """List the permission catalog."""
    return [
        PermissionResponse(
            permission=permission,
            is_wildcard=permission.is_wildcard,
            covers=sorted(WILDCARD_GRANTS.get(permission, ()), key=lambda p: p.value),
        )
        for permission in get_permission_catalog()
    ]


@router.get("/permissions/{permission}/roles", response_model=PermissionRolesResponse)
async def get_permission_roles(permission: str):
    """List roles holding a permission, exactly or by wildcard."""
    return PermissionRolesResponse(permission=permission, roles=roles_for_permission(permission))


@router.get("/roles", response_model=list[RoleResponse])
async def list_roles():
    """List every role with its tier and permissions."""
    return [_role_response(role) for role in get_role_permission_map()]


@router.get("/roles/{role}", response_model=RoleResponse)
async def get_role(role: Role):
    """Get a role's tier and permissions."""
    return _role_response(role)


@router.post("/scope", response_model=AccessScopeResponse)
async def compute_scope(request: AccessScopeRequest):
    """Compute the nodes, groups and administrations visible in a snapshot."""
    hierarchy = HierarchyIndex(request.nodes)
    scope = compute_visible_nodes(
        request.user_id,
        request.memberships,
        request.permission,
        request.now,
        hierarchy=hierarchy,
        is_super_admin=request.is_super_admin,
    )
    visible = filter_visible_assignments(scope, request.assignments)
    return AccessScopeResponse(
        node_ids=sorted(scope.node_ids),
        group_ids=sorted(scope.group_ids),
        administration_ids=sorted({a.administration_id for a in visible}),
        unrestricted=scope.unrestricted,
    )


@router.get("/users/{user_id}/administrations", response_model=UserAdministrationsResponse)
async def list_user_administrations(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    permission: str = Query(..., description="Permission the user needs"),
    is_super_admin: bool = Query(False, description="Bypass memberships"),
) -> UserAdministrationsResponse:
    """List administrations a stored user may see for a permission, as of now."""
    administration_ids = await get_accessible_administration_ids(
        db,
        user_id,
        permission,
        datetime.now(timezone.utc),
        is_super_admin=is_super_admin,
    )
    return UserAdministrationsResponse(
        user_id=user_id,
        permission=permission,
        administration_ids=sorted(administration_ids, key=str),
    )


@router.get("/users/{user_id}/orgs", response_model=UserOrgsResponse)
async def list_user_orgs(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    permission: str = Query(..., description="Permission the user needs"),
    is_super_admin: bool = Query(False, description="Bypass memberships"),
) -> UserOrgsResponse:
    """List orgs a stored user may see for a permission, as of now."""
    org_ids = await get_accessible_org_ids(
        db,
        user_id,
        permission,
        datetime.now(timezone.utc),
        is_super_admin=is_super_admin,
    )
    return UserOrgsResponse(user_id=user_id, permission=permission, org_ids=sorted(org_ids, key=str))
