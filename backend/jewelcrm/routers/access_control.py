"""Access-control router: permission checks, role administration, teams
and the compliance logs.

Endpoints:
    GET    /api/access/me/permissions                     Caller's permission breakdown
    POST   /api/access/check                              Point-in-time permission check
    GET    /api/access/roles                              Role hierarchy with permission counts
    GET    /api/access/permissions                        Active permission catalog
    GET    /api/access/matrix                             Role × permission matrix
    GET    /api/access/departments                        Active departments
    GET    /api/access/teams                              Active teams with members
    POST   /api/access/users                              Create user + profile
    PATCH  /api/access/users/{user_id}/role               Change a user's role
    POST   /api/access/users/{user_id}/deactivate         Soft-delete a user's profile
    POST   /api/access/users/{user_id}/permissions        Grant a custom permission
    DELETE /api/access/users/{user_id}/permissions/{pid}  Revoke a custom permission
    POST   /api/access/teams                              Create a team
    GET    /api/access/audit-logs                         Administrative audit trail
    GET    /api/access/security-events                    Security events
    GET    /api/access/access-attempts                    Permission check log
"""

from fastapi import APIRouter, Depends, Query, status

from jewelcrm.auth.deps import get_current_user_id, get_rbac_service, require_permission
from jewelcrm.auth.roles import JewelryUserRole, role_level
from jewelcrm.middleware.exceptions import (
    BusinessLogicError,
    PermissionDeniedError,
    ResourceNotFoundError,
)
from jewelcrm.schemas.audit import AccessAttemptEntry, AuditLogEntry, SecurityEventEntry, Severity
from jewelcrm.schemas.rbac import (
    CreateTeamRequest,
    CreateUserRequest,
    DeactivateBody,
    DepartmentOut,
    GrantBody,
    GrantPermissionRequest,
    PermissionCheckRequest,
    PermissionCheckResponse,
    PermissionMatrix,
    PermissionOut,
    RevokePermissionRequest,
    RoleChangeBody,
    RoleInfo,
    TeamOut,
    UpdateUserRoleRequest,
    UserPermissions,
    UserProfileOut,
)
from jewelcrm.services.rbac import RBACService

router = APIRouter()


async def _ensure_can_manage(rbac: RBACService, actor_id: str, target_id: str) -> None:
    if not await rbac.can_manage_user(actor_id, target_id):
        raise PermissionDeniedError("Cannot manage a user with a higher role")


async def _ensure_can_assign(rbac: RBACService, actor_id: str, role: JewelryUserRole) -> None:
    actor_role = await rbac.get_user_role(actor_id)
    if actor_role is None or role_level(role) > role_level(actor_role):
        raise PermissionDeniedError("Cannot assign a role above your own")


# ── Caller ───────────────────────────────────────────────────

@router.get("/me/permissions", response_model=UserPermissions)
async def my_permissions(
    user_id: str = Depends(get_current_user_id),
    rbac: RBACService = Depends(get_rbac_service),
):
    resolved = await rbac.get_user_permissions(user_id)
    if resolved is None:
        raise ResourceNotFoundError("Active profile", user_id)
    return resolved


@router.post("/check", response_model=PermissionCheckResponse)
async def check_permission(
    body: PermissionCheckRequest,
    user_id: str = Depends(get_current_user_id),
    rbac: RBACService = Depends(get_rbac_service),
):
    granted = await rbac.has_permission(
        user_id, body.permission, body.resource_type, body.resource_id
    )
    return PermissionCheckResponse(
        user_id=user_id,
        permission=body.permission,
        resource_type=body.resource_type,
        resource_id=body.resource_id,
        granted=granted,
    )


# ── Catalog & organization ──────────────────────────────────

@router.get("/roles", response_model=list[RoleInfo])
async def list_roles(
    _: str = Depends(get_current_user_id),
    rbac: RBACService = Depends(get_rbac_service),
):
    return await rbac.list_roles()


@router.get("/permissions", response_model=list[PermissionOut])
async def list_permissions(
    _: str = Depends(get_current_user_id),
    rbac: RBACService = Depends(get_rbac_service),
):
    return await rbac.get_all_permissions()


@router.get("/matrix", response_model=PermissionMatrix)
async def permission_matrix(
    _: str = Depends(get_current_user_id),
    rbac: RBACService = Depends(get_rbac_service),
):
    matrix = await rbac.get_permission_matrix()
    if matrix is None:
        raise BusinessLogicError("Permission matrix unavailable", "MATRIX_UNAVAILABLE")
    return matrix


@router.get("/departments", response_model=list[DepartmentOut])
async def list_departments(
    _: str = Depends(get_current_user_id),
    rbac: RBACService = Depends(get_rbac_service),
):
    return await rbac.get_departments()


@router.get("/teams", response_model=list[TeamOut])
async def list_teams(
    _: str = Depends(get_current_user_id),
    rbac: RBACService = Depends(get_rbac_service),
):
    return await rbac.get_teams()


# ── User administration ─────────────────────────────────────

@router.post("/users", response_model=UserProfileOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: CreateUserRequest,
    actor_id: str = Depends(require_permission("manage_users")),
    rbac: RBACService = Depends(get_rbac_service),
):
    await _ensure_can_assign(rbac, actor_id, body.role)
    profile = await rbac.create_user(body.model_copy(update={"created_by": actor_id}))
    if profile is None:
        raise BusinessLogicError("User could not be created", "USER_NOT_CREATED")
    return profile


@router.patch("/users/{user_id}/role")
async def change_role(
    user_id: str,
    body: RoleChangeBody,
    actor_id: str = Depends(require_permission("manage_roles")),
    rbac: RBACService = Depends(get_rbac_service),
):
    await _ensure_can_manage(rbac, actor_id, user_id)
    await _ensure_can_assign(rbac, actor_id, body.role)
    changed = await rbac.update_user_role(
        UpdateUserRoleRequest(
            user_id=user_id,
            role=body.role,
            reason=body.reason,
            expires_at=body.expires_at,
            changed_by=actor_id,
        )
    )
    if not changed:
        raise BusinessLogicError("Role was not changed", "ROLE_NOT_CHANGED")
    return {"user_id": user_id, "role": body.role.value}


@router.post("/users/{user_id}/deactivate")
async def deactivate_user(
    user_id: str,
    body: DeactivateBody,
    actor_id: str = Depends(require_permission("manage_users")),
    rbac: RBACService = Depends(get_rbac_service),
):
    await _ensure_can_manage(rbac, actor_id, user_id)
    if not await rbac.deactivate_user(user_id, body.reason, actor_id):
        raise BusinessLogicError("User was not deactivated", "USER_NOT_DEACTIVATED")
    return {"user_id": user_id, "is_active": False}


@router.post("/users/{user_id}/permissions", status_code=status.HTTP_201_CREATED)
async def grant_permission(
    user_id: str,
    body: GrantBody,
    actor_id: str = Depends(require_permission("manage_roles")),
    rbac: RBACService = Depends(get_rbac_service),
):
    granted = await rbac.grant_permission(
        GrantPermissionRequest(
            user_id=user_id,
            permission_id=body.permission_id,
            reason=body.reason,
            expires_at=body.expires_at,
            granted_by=actor_id,
        )
    )
    if not granted:
        raise BusinessLogicError("Permission was not granted", "PERMISSION_NOT_GRANTED")
    return {"user_id": user_id, "permission_id": body.permission_id, "granted": True}


@router.delete("/users/{user_id}/permissions/{permission_id}")
async def revoke_permission(
    user_id: str,
    permission_id: str,
    reason: str | None = Query(None),
    actor_id: str = Depends(require_permission("manage_roles")),
    rbac: RBACService = Depends(get_rbac_service),
):
    revoked = await rbac.revoke_permission(
        RevokePermissionRequest(
            user_id=user_id,
            permission_id=permission_id,
            reason=reason,
            revoked_by=actor_id,
        )
    )
    if not revoked:
        raise BusinessLogicError("Permission was not revoked", "PERMISSION_NOT_REVOKED")
    return {"user_id": user_id, "permission_id": permission_id, "revoked": True}


# ── Teams ────────────────────────────────────────────────────

@router.post("/teams", response_model=TeamOut, status_code=status.HTTP_201_CREATED)
async def create_team(
    body: CreateTeamRequest,
    actor_id: str = Depends(require_permission("manage_teams")),
    rbac: RBACService = Depends(get_rbac_service),
):
    team = await rbac.create_team(body.model_copy(update={"created_by": actor_id}))
    if team is None:
        raise BusinessLogicError("Team could not be created", "TEAM_NOT_CREATED")
    return team


# ── Compliance logs ─────────────────────────────────────────

@router.get("/audit-logs", response_model=list[AuditLogEntry])
async def audit_logs(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    user_id: str | None = Query(None),
    action: str | None = Query(None),
    _: str = Depends(require_permission("view_audit_logs")),
    rbac: RBACService = Depends(get_rbac_service),
):
    return await rbac.get_audit_logs(limit, offset, user_id, action)


@router.get("/security-events", response_model=list[SecurityEventEntry])
async def security_events(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    severity: Severity | None = Query(None),
    _: str = Depends(require_permission("view_security_events")),
    rbac: RBACService = Depends(get_rbac_service),
):
    return await rbac.get_security_events(limit, offset, severity)


@router.get("/access-attempts", response_model=list[AccessAttemptEntry])
async def access_attempts(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    user_id: str | None = Query(None),
    access_granted: bool | None = Query(None),
    _: str = Depends(require_permission("view_security_events")),
    rbac: RBACService = Depends(get_rbac_service),
):
    return await rbac.get_access_attempts(limit, offset, user_id, access_granted)
