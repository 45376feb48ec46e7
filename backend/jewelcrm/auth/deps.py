"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_user_id     → decode the bearer token, return its subject
  get_rbac_service        → the shared RBACService (overridable in tests)
  require_permission(...) → restrict to users holding a permission
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from jewelcrm.auth.jwt import decode_token
from jewelcrm.middleware.exceptions import PermissionDeniedError
from jewelcrm.services.rbac import RBACService, rbac_service

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


# ── Core user dependency ────────────────────────────────────

async def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type", "access") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


def get_rbac_service() -> RBACService:
    return rbac_service


# ── Permission-based access control ─────────────────────────

def require_permission(permission: str, resource_type: str = "global"):
    """Dependency factory: restrict to users who hold `permission`.

    The check runs through the same resolver as every other caller, so it
    is recorded as an access attempt and fails closed.

    Usage:
        @router.get("/audit-logs")
        async def audit_logs(user_id: str = Depends(require_permission("view_audit_logs"))):
            ...
    """
    async def _check(
        user_id: str = Depends(get_current_user_id),
        rbac: RBACService = Depends(get_rbac_service),
    ) -> str:
        if not await rbac.has_permission(user_id, permission, resource_type):
            raise PermissionDeniedError(f"Missing permission: {permission}")
        return user_id

    return _check
