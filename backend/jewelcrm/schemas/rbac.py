"""Pydantic schemas for roles, permissions, profiles, teams and the
administrative requests that mutate them."""

from datetime import date, datetime, timezone

from pydantic import BaseModel, EmailStr, Field, field_validator

from jewelcrm.auth.permissions import has_permission
from jewelcrm.auth.roles import JewelryUserRole


# ── Catalog ──────────────────────────────────────────────────

class PermissionOut(BaseModel):
    id: str
    name: str
    category: str
    description: str | None = None
    resource_type: str = "global"
    resource_id: str | None = None
    is_sensitive: bool = False
    requires_approval: bool = False
    is_active: bool = True

    model_config = {"from_attributes": True}


class UserPermissionOut(BaseModel):
    """A custom grant together with the permission it grants."""
    id: str
    user_id: str
    permission_id: str
    granted_by: str | None = None
    granted_at: datetime
    expires_at: datetime | None = None
    reason: str | None = None
    is_active: bool
    permission: PermissionOut

    model_config = {"from_attributes": True}


class UserPermissions(BaseModel):
    role: JewelryUserRole
    permissions: list[PermissionOut]
    custom_permissions: list[UserPermissionOut]
    department_permissions: list[PermissionOut]
    team_permissions: list[PermissionOut]
    effective_permissions: list[PermissionOut]

    def allows(
        self,
        permission_name: str,
        resource_type: str = "global",
        resource_id: str | None = None,
    ) -> bool:
        return has_permission(
            self.effective_permissions, permission_name, resource_type, resource_id
        )

    @property
    def permission_names(self) -> list[str]:
        return sorted({p.name for p in self.effective_permissions})


# ── Profiles ─────────────────────────────────────────────────

class UserProfileOut(BaseModel):
    id: str
    user_id: str
    role: JewelryUserRole
    department_id: str | None = None
    manager_id: str | None = None
    employee_id: str | None = None
    hire_date: date | None = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class RoleInfo(BaseModel):
    role: str
    level: int
    display_name: str
    description: str
    color: str
    icon: str
    permissions_count: int = 0


class PermissionMatrix(BaseModel):
    roles: list[JewelryUserRole]
    permissions: list[PermissionOut]
    matrix: dict[str, dict[str, bool]]


# ── Organization ─────────────────────────────────────────────

class DepartmentOut(BaseModel):
    id: str
    name: str
    description: str | None = None
    manager_id: str | None = None
    parent_department_id: str | None = None
    is_active: bool

    model_config = {"from_attributes": True}


class TeamMemberOut(BaseModel):
    user_id: str
    role: str
    joined_at: datetime

    model_config = {"from_attributes": True}


class TeamOut(BaseModel):
    id: str
    name: str
    description: str | None = None
    department_id: str | None = None
    team_lead_id: str | None = None
    is_active: bool
    members: list[TeamMemberOut] = []

    model_config = {"from_attributes": True}


# ── Requests ─────────────────────────────────────────────────

def naive_utc(value: datetime | None) -> datetime | None:
    """Expiry columns are naive UTC; convert offset-aware input to match."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class CreateUserRequest(BaseModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=255)
    role: JewelryUserRole
    department_id: str | None = None
    manager_id: str | None = None
    employee_id: str | None = None
    hire_date: date | None = None
    created_by: str | None = None


class UpdateUserRoleRequest(BaseModel):
    user_id: str
    role: JewelryUserRole
    reason: str | None = None
    # Recorded in the security event only; the role change itself is
    # not time-limited.
    expires_at: datetime | None = None
    changed_by: str | None = None

    @field_validator("expires_at")
    @classmethod
    def expiry_as_naive_utc(cls, v: datetime | None) -> datetime | None:
        return naive_utc(v)


class GrantPermissionRequest(BaseModel):
    user_id: str
    permission_id: str
    reason: str | None = None
    expires_at: datetime | None = None
    granted_by: str | None = None

    @field_validator("expires_at")
    @classmethod
    def expiry_as_naive_utc(cls, v: datetime | None) -> datetime | None:
        return naive_utc(v)


class RevokePermissionRequest(BaseModel):
    user_id: str
    permission_id: str
    reason: str | None = None
    revoked_by: str | None = None


class CreateTeamRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    department_id: str | None = None
    team_lead_id: str | None = None
    members: list[str] = []
    created_by: str | None = None


# ── HTTP bodies ──────────────────────────────────────────────

class PermissionCheckRequest(BaseModel):
    permission: str
    resource_type: str = "global"
    resource_id: str | None = None


class PermissionCheckResponse(BaseModel):
    user_id: str
    permission: str
    resource_type: str
    resource_id: str | None = None
    granted: bool


class RoleChangeBody(BaseModel):
    role: JewelryUserRole
    reason: str | None = None
    expires_at: datetime | None = None

    @field_validator("expires_at")
    @classmethod
    def expiry_as_naive_utc(cls, v: datetime | None) -> datetime | None:
        return naive_utc(v)


class GrantBody(BaseModel):
    permission_id: str
    reason: str | None = None
    expires_at: datetime | None = None

    @field_validator("expires_at")
    @classmethod
    def expiry_as_naive_utc(cls, v: datetime | None) -> datetime | None:
        return naive_utc(v)


class DeactivateBody(BaseModel):
    reason: str | None = None
