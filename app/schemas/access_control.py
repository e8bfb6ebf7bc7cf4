"""Schemas for access control inputs and results."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, Field, field_validator, model_validator

from app.core.enrollment import ensure_utc
from app.core.hierarchy import OrgPath
from app.core.permissions import Permission, Role
from app.core.role_classifications import RoleTier


class TargetType(str, Enum):
    """Kind of entity a membership or assignment points at."""

    ORG = "org"
    CLASS = "class"
    GROUP = "group"


class NodeType(str, Enum):
    """Hierarchy node types."""

    NATIONAL = "national"
    STATE = "state"
    LOCAL = "local"
    DISTRICT = "district"
    SCHOOL = "school"
    DEPARTMENT = "department"
    CLASS = "class"
    GROUP = "group"


class HierarchyNode(BaseModel):
    """An org tree node or a flat group."""

    id: str = Field(..., min_length=1)
    node_type: NodeType
    parent_id: str | None = None
    path: OrgPath | None = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_path(self) -> "HierarchyNode":
        if self.node_type == NodeType.GROUP:
            if self.path is not None or self.parent_id is not None:
                raise ValueError("Groups are not part of the org tree")
        elif self.path is None:
            raise ValueError(f"Node '{self.id}' requires a path")
        return self


class Membership(BaseModel):
    """A user's enrollment at a node in a given role."""

    user_id: str = Field(..., min_length=1)
    node_id: str = Field(..., min_length=1)
    role: Role
    enrollment_start: AwareDatetime
    enrollment_end: AwareDatetime | None = None
    target_type: TargetType = TargetType.ORG

    model_config = {"frozen": True}

    @field_validator("enrollment_start", "enrollment_end")
    @classmethod
    def normalize_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v) if v is not None else None


class AdministrationAssignment(BaseModel):
    """An administration anchored at exactly one org, class or group."""

    administration_id: str = Field(..., min_length=1)
    target_id: str = Field(..., min_length=1)
    target_type: TargetType = TargetType.ORG

    model_config = {"frozen": True}


class AccessControlFilter(BaseModel):
    """Who is asking, and which roles qualify."""

    user_id: str = Field(..., min_length=1)
    allowed_roles: list[Role] = Field(..., min_length=1)

    @field_validator("user_id")
    @classmethod
    def user_id_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("user_id must not be blank")
        return v


class AccessScopeResponse(BaseModel):
    """Visible nodes and groups."""

    node_ids: list[str]
    group_ids: list[str]
    administration_ids: list[str] = []
    unrestricted: bool = False


class AccessScopeRequest(BaseModel):
    """Snapshot to evaluate a user's access scope against."""

    user_id: str
    permission: str
    now: AwareDatetime
    is_super_admin: bool = False
    memberships: list[Membership] = []
    nodes: list[HierarchyNode] = []
    assignments: list[AdministrationAssignment] = []


class RoleResponse(BaseModel):
    """A role with its tier and granted permissions."""

    role: Role
    tier: RoleTier
    permissions: list[Permission]


class PermissionResponse(BaseModel):
    """A catalog permission."""

    permission: Permission
    is_wildcard: bool
    covers: list[Permission] = []


class PermissionRolesResponse(BaseModel):
    """Roles holding a permission."""

    permission: str
    roles: list[Role]


class UserAdministrationsResponse(BaseModel):
    """Administrations a stored user may see."""

    user_id: str
    permission: str
    administration_ids: list[UUID]


class UserOrgsResponse(BaseModel):
    """Orgs a stored user may see."""

    user_id: str
    permission: str
    org_ids: list[UUID]
