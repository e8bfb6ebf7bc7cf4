"""Pydantic schemas."""

from app.schemas.access_control import (
    AccessControlFilter,
    AdministrationAssignment,
    HierarchyNode,
    Membership,
    NodeType,
    TargetType,
    AccessScopeRequest,
    AccessScopeResponse,
    PermissionResponse,
    PermissionRolesResponse,
    RoleResponse,
)

__all__ = [
    # Snapshot inputs
    "HierarchyNode",
    "Membership",
    "AdministrationAssignment",
    "AccessControlFilter",
    "NodeType",
    "TargetType",
    # API
    "AccessScopeRequest",
    "AccessScopeResponse",
    "PermissionResponse",
    "PermissionRolesResponse",
    "RoleResponse",
]
