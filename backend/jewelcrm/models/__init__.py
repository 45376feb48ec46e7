"""Aggregate model imports for Alembic auto-detection."""

from jewelcrm.models.user import User, UserProfile
from jewelcrm.models.permission import Permission, RolePermission, UserPermission
from jewelcrm.models.organization import (
    Department,
    DepartmentPermission,
    Team,
    TeamMember,
    TeamPermission,
)
from jewelcrm.models.audit import AccessAttempt, AuditLog, SecurityEvent

__all__ = [
    # Identity
    "User", "UserProfile",
    # Catalog & bindings
    "Permission", "RolePermission", "UserPermission",
    # Organization
    "Department", "DepartmentPermission", "Team", "TeamMember", "TeamPermission",
    # Compliance logs
    "AuditLog", "SecurityEvent", "AccessAttempt",
]
