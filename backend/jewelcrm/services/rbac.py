"""Permission resolution and administrative mutations for jewelry-store RBAC.

Resolution (`get_user_permissions`, `has_permission`):
  1. Load the user's active profile → role.            (required)
  2. Active, unexpired role bindings for that role.      (required)
  3. Active, unexpired custom grants for the user.       (required)
  4. Department contribution, if the profile has one.   (optional)
  5. Team contribution for every active membership.     (optional)
  6. Effective set = union of 2-5, de-duplicated by permission id.

A failure in a required step aborts the call; a failure in an optional
step yields an empty contribution. Both public entry points share
`_resolve`, so the point-in-time check and the full listing always agree.

Contract visible to callers:
  - `has_permission` fails closed (False) and never raises.
  - Lookups return None / [] when the subject is missing or the store errors.
  - Mutations return False / None for every failure, expected or not.
  - Every check and every successful mutation is handed to the audit
    writer, which can never affect the result.
"""

import logging
from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jewelcrm.auth.permissions import merge_effective
from jewelcrm.auth.roles import (
    JewelryUserRole,
    can_manage_level,
    role_color,
    role_description,
    role_display_name,
    role_icon,
    role_level,
    roles_by_level,
)
from jewelcrm.config import settings
from jewelcrm.database import async_session
from jewelcrm.models.organization import (
    Department,
    DepartmentPermission,
    Team,
    TeamMember,
    TeamPermission,
)
from jewelcrm.models.permission import Permission, RolePermission, UserPermission
from jewelcrm.models.user import UserProfile
from jewelcrm.schemas.audit import (
    AccessAttemptEntry,
    AuditLogEntry,
    SecurityEventEntry,
)
from jewelcrm.schemas.rbac import (
    CreateTeamRequest,
    CreateUserRequest,
    DepartmentOut,
    GrantPermissionRequest,
    PermissionMatrix,
    PermissionOut,
    RevokePermissionRequest,
    RoleInfo,
    TeamMemberOut,
    TeamOut,
    UpdateUserRoleRequest,
    UserPermissionOut,
    UserPermissions,
    UserProfileOut,
)
from jewelcrm.services import audit as audit_queries
from jewelcrm.services.audit import AuditLogger, audit_logger
from jewelcrm.services.identity import DatabaseIdentityProvider, IdentityProvider

logger = logging.getLogger(__name__)

GROUP_SOURCES = ("bindings", "role")


def _unexpired(column, now: datetime):
    return or_(column.is_(None), column > now)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class RBACService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session,
        audit: AuditLogger | None = None,
        identity: IdentityProvider | None = None,
        group_permission_source: str | None = None,
    ):
        self._session_factory = session_factory
        self.audit = audit or audit_logger
        self.identity = identity or DatabaseIdentityProvider(session_factory)

        source = group_permission_source or settings.group_permission_source
        if source not in GROUP_SOURCES:
            raise ValueError(
                f"group_permission_source must be one of {GROUP_SOURCES}, got {source!r}"
            )
        self.group_permission_source = source

    # ══════════════════════════════════════════════════════════
    # RESOLUTION
    # ══════════════════════════════════════════════════════════

    async def has_permission(
        self,
        user_id: str,
        permission_name: str,
        resource_type: str = "global",
        resource_id: str | None = None,
    ) -> bool:
        """Point-in-time check. Unknown permissions, missing profiles and
        store errors all resolve to False. Exactly one access attempt is
        recorded per call."""
        granted = False
        if user_id and permission_name:
            try:
                async with self._session_factory() as db:
                    resolved = await self._resolve(db, user_id)
                granted = resolved is not None and resolved.allows(
                    permission_name, resource_type, resource_id
                )
            except Exception:
                logger.exception(
                    "Permission check failed for user %s (%s on %s)",
                    user_id, permission_name, resource_type,
                )
                granted = False

        logger.debug(
            "Permission check: user=%s permission=%s resource=%s/%s granted=%s",
            user_id, permission_name, resource_type, resource_id, granted,
        )
        self.audit.log_access_attempt(
            user_id or None, resource_type, resource_id, permission_name, granted
        )
        return granted

    async def get_user_permissions(self, user_id: str) -> UserPermissions | None:
        """Full breakdown of a user's permissions, or None without an
        active profile (or when a required read fails)."""
        try:
            async with self._session_factory() as db:
                return await self._resolve(db, user_id)
        except Exception:
            logger.exception("Failed to resolve permissions for user %s", user_id)
            return None

    async def get_user_role(self, user_id: str) -> JewelryUserRole | None:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(UserProfile.role).where(
                        UserProfile.user_id == user_id,
                        UserProfile.is_active == True,  # noqa: E712
                    )
                )
                role = result.scalar_one_or_none()
        except Exception:
            logger.exception("Failed to load role for user %s", user_id)
            return None

        if role is None:
            return None
        try:
            return JewelryUserRole(role)
        except ValueError:
            logger.warning("User %s has unknown role %r", user_id, role)
            return None

    async def can_manage_user(self, manager_id: str, target_user_id: str) -> bool:
        """True when the manager's hierarchy level is >= the target's."""
        manager_role = await self.get_user_role(manager_id)
        target_role = await self.get_user_role(target_user_id)
        if manager_role is None or target_role is None:
            return False
        return can_manage_level(manager_role, target_role)

    # ── Shared resolution path ──────────────────────────────

    async def _resolve(self, db: AsyncSession, user_id: str) -> UserPermissions | None:
        now = datetime.utcnow()

        result = await db.execute(
            select(UserProfile).where(
                UserProfile.user_id == user_id,
                UserProfile.is_active == True,  # noqa: E712
            )
        )
        profile = result.scalar_one_or_none()
        if profile is None:
            logger.info("No active profile for user %s", user_id)
            return None
        role, department_id = profile.role, profile.department_id

        role_permissions = await self._role_permissions(db, role, now)
        custom_grants = await self._custom_grants(db, user_id, now)

        department_permissions = await self._absorb(
            db, "department", user_id,
            self._department_permissions(db, department_id, role_permissions, now),
        )
        team_permissions = await self._absorb(
            db, "team", user_id,
            self._team_permissions(db, user_id, role_permissions, now),
        )

        return UserPermissions(
            role=role,
            permissions=role_permissions,
            custom_permissions=custom_grants,
            department_permissions=department_permissions,
            team_permissions=team_permissions,
            effective_permissions=merge_effective(
                role_permissions,
                [g.permission for g in custom_grants],
                department_permissions,
                team_permissions,
            ),
        )

    async def _absorb(self, db: AsyncSession, source: str, user_id: str, pending) -> list:
        """Await an optional contribution; errors degrade to []."""
        try:
            return await pending
        except Exception:
            logger.exception("Ignoring %s permissions for user %s after read error", source, user_id)
            await db.rollback()
            return []

    async def _role_permissions(
        self, db: AsyncSession, role: str, now: datetime
    ) -> list[PermissionOut]:
        result = await db.execute(
            select(Permission)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(
                RolePermission.role == role,
                RolePermission.is_active == True,  # noqa: E712
                _unexpired(RolePermission.expires_at, now),
                Permission.is_active == True,  # noqa: E712
            )
            .order_by(Permission.category, Permission.name)
        )
        return [PermissionOut.model_validate(p) for p in result.scalars().all()]

    async def _custom_grants(
        self, db: AsyncSession, user_id: str, now: datetime
    ) -> list[UserPermissionOut]:
        result = await db.execute(
            select(UserPermission)
            .join(Permission, UserPermission.permission_id == Permission.id)
            .where(
                UserPermission.user_id == user_id,
                UserPermission.is_active == True,  # noqa: E712
                _unexpired(UserPermission.expires_at, now),
                Permission.is_active == True,  # noqa: E712
            )
            .order_by(UserPermission.granted_at)
        )
        return [UserPermissionOut.model_validate(g) for g in result.scalars().all()]

    async def _department_permissions(
        self,
        db: AsyncSession,
        department_id: str | None,
        role_permissions: list[PermissionOut],
        now: datetime,
    ) -> list[PermissionOut]:
        if not department_id:
            return []
        if self.group_permission_source == "role":
            return list(role_permissions)

        result = await db.execute(
            select(Permission)
            .join(DepartmentPermission, DepartmentPermission.permission_id == Permission.id)
            .join(Department, Department.id == DepartmentPermission.department_id)
            .where(
                DepartmentPermission.department_id == department_id,
                DepartmentPermission.is_active == True,  # noqa: E712
                _unexpired(DepartmentPermission.expires_at, now),
                Department.is_active == True,  # noqa: E712
                Permission.is_active == True,  # noqa: E712
            )
            .order_by(Permission.category, Permission.name)
        )
        return [PermissionOut.model_validate(p) for p in result.scalars().all()]

    async def _team_permissions(
        self,
        db: AsyncSession,
        user_id: str,
        role_permissions: list[PermissionOut],
        now: datetime,
    ) -> list[PermissionOut]:
        result = await db.execute(
            select(TeamMember.team_id)
            .join(Team, Team.id == TeamMember.team_id)
            .where(
                TeamMember.user_id == user_id,
                TeamMember.is_active == True,  # noqa: E712
                Team.is_active == True,  # noqa: E712
            )
        )
        team_ids = [row[0] for row in result.all()]
        if not team_ids:
            return []
        if self.group_permission_source == "role":
            return list(role_permissions)

        result = await db.execute(
            select(Permission)
            .join(TeamPermission, TeamPermission.permission_id == Permission.id)
            .where(
                TeamPermission.team_id.in_(team_ids),
                TeamPermission.is_active == True,  # noqa: E712
                _unexpired(TeamPermission.expires_at, now),
                Permission.is_active == True,  # noqa: E712
            )
            .order_by(Permission.category, Permission.name)
        )
        # A permission bound to several of the user's teams appears once
        return merge_effective(
            [PermissionOut.model_validate(p) for p in result.scalars().all()]
        )

    # ══════════════════════════════════════════════════════════
    # ADMINISTRATIVE MUTATIONS
    # ══════════════════════════════════════════════════════════

    async def create_user(self, request: CreateUserRequest) -> UserProfileOut | None:
        """Create the identity account, then its profile.

        If the profile insert fails the account is deleted again, so a
        failed call never leaves an account without a profile.
        """
        role = request.role.value
        try:
            user_id = await self.identity.create_account(
                request.email,
                request.full_name,
                {"full_name": request.full_name, "role": role},
            )
        except Exception:
            logger.exception("Failed to create account for %s", request.email)
            return None

        try:
            async with self._session_factory() as db:
                profile = UserProfile(
                    user_id=user_id,
                    role=role,
                    department_id=request.department_id,
                    manager_id=request.manager_id,
                    employee_id=request.employee_id,
                    hire_date=request.hire_date,
                    is_active=True,
                )
                db.add(profile)
                await db.flush()
                created = UserProfileOut.model_validate(profile)
                await db.commit()
        except Exception:
            logger.exception(
                "Failed to create profile for %s, removing account %s",
                request.email, user_id,
            )
            await self._remove_orphaned_account(user_id)
            return None

        self.audit.log_security_event(
            user_id,
            "user_created",
            "high",
            f"User created with role: {role}",
            {"role": role, "department_id": request.department_id, "created_by": request.created_by},
        )
        self.audit.log_audit(
            request.created_by,
            "user.created",
            "user",
            user_id,
            new_values={
                "email": request.email,
                "role": role,
                "department_id": request.department_id,
                "employee_id": request.employee_id,
            },
        )
        logger.info("Created user %s with role %s", user_id, role)
        return created

    async def _remove_orphaned_account(self, user_id: str) -> None:
        try:
            await self.identity.delete_account(user_id)
        except Exception:
            logger.exception("Account %s could not be removed and has no profile", user_id)

    async def update_user_role(self, request: UpdateUserRoleRequest) -> bool:
        role = request.role.value
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(UserProfile).where(
                        UserProfile.user_id == request.user_id,
                        UserProfile.is_active == True,  # noqa: E712
                    )
                )
                profile = result.scalar_one_or_none()
                if profile is None:
                    logger.info("No active profile for %s, role unchanged", request.user_id)
                    return False

                previous_role = profile.role
                profile.role = role
                await db.commit()
        except Exception:
            logger.exception("Failed to update role for user %s", request.user_id)
            return False

        self.audit.log_security_event(
            request.user_id,
            "role_changed",
            "high",
            f"User role changed to: {role}",
            {
                "new_role": role,
                "previous_role": previous_role,
                "reason": request.reason,
                "expires_at": _iso(request.expires_at),
                "changed_by": request.changed_by,
            },
        )
        self.audit.log_audit(
            request.changed_by,
            "user.role_changed",
            "user",
            request.user_id,
            old_values={"role": previous_role},
            new_values={"role": role},
        )
        logger.info("User %s role changed %s → %s", request.user_id, previous_role, role)
        return True

    async def grant_permission(self, request: GrantPermissionRequest) -> bool:
        """Insert an active custom grant. Past expiry dates are accepted
        and simply never take effect."""
        try:
            async with self._session_factory() as db:
                permission = (
                    await db.execute(
                        select(Permission).where(
                            Permission.id == request.permission_id,
                            Permission.is_active == True,  # noqa: E712
                        )
                    )
                ).scalar_one_or_none()
                if permission is None:
                    logger.info("Cannot grant unknown permission %s", request.permission_id)
                    return False

                profile_id = (
                    await db.execute(
                        select(UserProfile.id).where(
                            UserProfile.user_id == request.user_id,
                            UserProfile.is_active == True,  # noqa: E712
                        )
                    )
                ).scalar_one_or_none()
                if profile_id is None:
                    logger.info("Cannot grant to user %s without an active profile", request.user_id)
                    return False

                grant = UserPermission(
                    user_id=request.user_id,
                    permission_id=request.permission_id,
                    reason=request.reason,
                    expires_at=request.expires_at,
                    granted_by=request.granted_by,
                    is_active=True,
                )
                db.add(grant)
                await db.flush()
                grant_id, permission_name = grant.id, permission.name
                await db.commit()
        except Exception:
            logger.exception(
                "Failed to grant %s to user %s", request.permission_id, request.user_id
            )
            return False

        self.audit.log_security_event(
            request.user_id,
            "permission_granted",
            "medium",
            "Custom permission granted",
            {
                "permission_id": request.permission_id,
                "permission_name": permission_name,
                "reason": request.reason,
                "expires_at": _iso(request.expires_at),
                "granted_by": request.granted_by,
            },
        )
        self.audit.log_audit(
            request.granted_by,
            "permission.granted",
            "user_permission",
            grant_id,
            new_values={
                "user_id": request.user_id,
                "permission": permission_name,
                "expires_at": _iso(request.expires_at),
            },
        )
        return True

    async def revoke_permission(self, request: RevokePermissionRequest) -> bool:
        """Deactivate the user's active grants of a permission.

        Idempotent: revoking something that is not active succeeds and
        records nothing.
        """
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    update(UserPermission)
                    .where(
                        UserPermission.user_id == request.user_id,
                        UserPermission.permission_id == request.permission_id,
                        UserPermission.is_active == True,  # noqa: E712
                    )
                    .values(is_active=False, updated_at=datetime.utcnow())
                )
                revoked = result.rowcount or 0
                await db.commit()
        except Exception:
            logger.exception(
                "Failed to revoke %s from user %s", request.permission_id, request.user_id
            )
            return False

        if not revoked:
            logger.debug(
                "No active grant of %s for user %s, nothing to revoke",
                request.permission_id, request.user_id,
            )
            return True

        self.audit.log_security_event(
            request.user_id,
            "permission_revoked",
            "medium",
            "Custom permission revoked",
            {
                "permission_id": request.permission_id,
                "reason": request.reason,
                "revoked_by": request.revoked_by,
            },
        )
        self.audit.log_audit(
            request.revoked_by,
            "permission.revoked",
            "user",
            request.user_id,
            old_values={"permission_id": request.permission_id, "is_active": True},
            new_values={"permission_id": request.permission_id, "is_active": False},
        )
        return True

    async def deactivate_user(
        self, user_id: str, reason: str | None = None, actor_id: str | None = None
    ) -> bool:
        """Soft-delete the user's profile. Their permissions resolve to
        nothing from the next check on."""
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    update(UserProfile)
                    .where(
                        UserProfile.user_id == user_id,
                        UserProfile.is_active == True,  # noqa: E712
                    )
                    .values(is_active=False, updated_at=datetime.utcnow())
                )
                if not result.rowcount:
                    logger.info("No active profile for %s, nothing to deactivate", user_id)
                    return False
                await db.commit()
        except Exception:
            logger.exception("Failed to deactivate user %s", user_id)
            return False

        self.audit.log_security_event(
            user_id,
            "user_deactivated",
            "high",
            "User deactivated",
            {"reason": reason, "deactivated_by": actor_id},
        )
        self.audit.log_audit(
            actor_id,
            "user.deactivated",
            "user",
            user_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )
        return True

    async def create_team(self, request: CreateTeamRequest) -> TeamOut | None:
        """Create a team, then add its members best-effort.

        A failed member insert is logged and the team is still returned,
        without those members.
        """
        try:
            async with self._session_factory() as db:
                team = Team(
                    name=request.name,
                    description=request.description,
                    department_id=request.department_id,
                    team_lead_id=request.team_lead_id,
                    is_active=True,
                    members=[],
                )
                db.add(team)
                await db.flush()
                created = TeamOut.model_validate(team)
                await db.commit()
        except Exception:
            logger.exception("Failed to create team %s", request.name)
            return None

        added = 0
        if request.members:
            added = await self.add_team_members(created.id, request.members)
            if added < len(set(request.members)):
                logger.warning(
                    "Team %s created with %d of %d requested members",
                    created.id, added, len(set(request.members)),
                )

        self.audit.log_audit(
            request.created_by,
            "team.created",
            "team",
            created.id,
            new_values={
                "name": request.name,
                "department_id": request.department_id,
                "members_added": added,
            },
        )
        return await self._load_team(created.id) or created

    async def add_team_members(self, team_id: str, user_ids: list[str]) -> int:
        """Add users to a team, skipping current members. Returns the
        number added; 0 when the insert fails."""
        try:
            async with self._session_factory() as db:
                current = set(
                    (
                        await db.execute(
                            select(TeamMember.user_id).where(
                                TeamMember.team_id == team_id,
                                TeamMember.is_active == True,  # noqa: E712
                            )
                        )
                    ).scalars().all()
                )
                new_ids = [u for u in dict.fromkeys(user_ids) if u not in current]
                db.add_all([
                    TeamMember(team_id=team_id, user_id=u, role="member", is_active=True)
                    for u in new_ids
                ])
                await db.commit()
        except Exception:
            logger.exception("Failed to add members to team %s", team_id)
            return 0
        return len(new_ids)

    async def _load_team(self, team_id: str) -> TeamOut | None:
        try:
            async with self._session_factory() as db:
                team = (
                    await db.execute(select(Team).where(Team.id == team_id))
                ).scalar_one_or_none()
                return self._team_out(team) if team else None
        except Exception:
            logger.exception("Failed to reload team %s", team_id)
            return None

    @staticmethod
    def _team_out(team: Team) -> TeamOut:
        out = TeamOut.model_validate(team)
        out.members = [
            TeamMemberOut.model_validate(m) for m in team.members if m.is_active
        ]
        return out

    # ══════════════════════════════════════════════════════════
    # LOOKUPS
    # ══════════════════════════════════════════════════════════

    async def get_all_permissions(self) -> list[PermissionOut]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(Permission)
                    .where(Permission.is_active == True)  # noqa: E712
                    .order_by(Permission.category, Permission.name)
                )
                return [PermissionOut.model_validate(p) for p in result.scalars().all()]
        except Exception:
            logger.exception("Failed to load permission catalog")
            return []

    async def get_departments(self) -> list[DepartmentOut]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(Department)
                    .where(Department.is_active == True)  # noqa: E712
                    .order_by(Department.name)
                )
                return [DepartmentOut.model_validate(d) for d in result.scalars().all()]
        except Exception:
            logger.exception("Failed to load departments")
            return []

    async def get_teams(self) -> list[TeamOut]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(Team)
                    .where(Team.is_active == True)  # noqa: E712
                    .order_by(Team.name)
                )
                return [self._team_out(t) for t in result.scalars().all()]
        except Exception:
            logger.exception("Failed to load teams")
            return []

    @staticmethod
    def get_role_info(role: JewelryUserRole | str, permissions_count: int = 0) -> RoleInfo:
        return RoleInfo(
            role=role.value if isinstance(role, JewelryUserRole) else str(role),
            level=role_level(role),
            display_name=role_display_name(role),
            description=role_description(role),
            color=role_color(role),
            icon=role_icon(role),
            permissions_count=permissions_count,
        )

    async def list_roles(self) -> list[RoleInfo]:
        """Every role, highest authority first, with its bound-permission count."""
        counts: dict[str, int] = {}
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(RolePermission.role, func.count())
                    .join(Permission, Permission.id == RolePermission.permission_id)
                    .where(
                        RolePermission.is_active == True,  # noqa: E712
                        Permission.is_active == True,  # noqa: E712
                    )
                    .group_by(RolePermission.role)
                )
                counts = {row[0]: row[1] for row in result.all()}
        except Exception:
            logger.exception("Failed to count role permissions")
        return [self.get_role_info(r, counts.get(r, 0)) for r in roles_by_level()]

    async def get_permission_matrix(self) -> PermissionMatrix | None:
        try:
            async with self._session_factory() as db:
                permissions = [
                    PermissionOut.model_validate(p)
                    for p in (
                        await db.execute(
                            select(Permission)
                            .where(Permission.is_active == True)  # noqa: E712
                            .order_by(Permission.category, Permission.name)
                        )
                    ).scalars().all()
                ]
                bindings = (
                    await db.execute(
                        select(RolePermission.role, RolePermission.permission_id).where(
                            RolePermission.is_active == True  # noqa: E712
                        )
                    )
                ).all()
        except Exception:
            logger.exception("Failed to build permission matrix")
            return None

        bound = {(role, pid) for role, pid in bindings}
        roles = roles_by_level()
        return PermissionMatrix(
            roles=roles,
            permissions=permissions,
            matrix={
                role: {p.name: (role, p.id) in bound for p in permissions}
                for role in roles
            },
        )

    # ── Compliance log reads ────────────────────────────────

    async def get_audit_logs(
        self,
        limit: int = 100,
        offset: int = 0,
        user_id: str | None = None,
        action: str | None = None,
    ) -> list[AuditLogEntry]:
        try:
            async with self._session_factory() as db:
                return await audit_queries.get_audit_logs(db, limit, offset, user_id, action)
        except Exception:
            logger.exception("Failed to load audit logs")
            return []

    async def get_security_events(
        self,
        limit: int = 100,
        offset: int = 0,
        severity: str | None = None,
    ) -> list[SecurityEventEntry]:
        try:
            async with self._session_factory() as db:
                return await audit_queries.get_security_events(db, limit, offset, severity)
        except Exception:
            logger.exception("Failed to load security events")
            return []

    async def get_access_attempts(
        self,
        limit: int = 100,
        offset: int = 0,
        user_id: str | None = None,
        access_granted: bool | None = None,
    ) -> list[AccessAttemptEntry]:
        try:
            async with self._session_factory() as db:
                return await audit_queries.get_access_attempts(
                    db, limit, offset, user_id, access_granted
                )
        except Exception:
            logger.exception("Failed to load access attempts")
            return []


rbac_service = RBACService()
