"""Seed the permission catalog and the default role bindings."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from jewelcrm.auth.permissions import PERMISSION_CATALOG, ROLE_DEFAULTS
from jewelcrm.models.permission import Permission, RolePermission

logger = logging.getLogger(__name__)


async def seed_rbac(db: AsyncSession) -> dict[str, int]:
    """Insert catalog permissions and role bindings that don't exist yet.

    Safe to run repeatedly; existing rows (including ones an admin has
    deactivated) are left untouched. Returns how many rows were added.
    """
    existing = {
        p.name: p for p in (await db.execute(select(Permission))).scalars().all()
    }

    added_permissions = 0
    for name, entry in PERMISSION_CATALOG.items():
        if name in existing:
            continue
        perm = Permission(
            name=name,
            category=entry.category,
            description=entry.description,
            resource_type="global",
            is_sensitive=entry.is_sensitive,
            is_active=True,
        )
        db.add(perm)
        existing[name] = perm
        added_permissions += 1
    await db.flush()

    bound = {
        (role, pid)
        for role, pid in (
            await db.execute(select(RolePermission.role, RolePermission.permission_id))
        ).all()
    }

    added_bindings = 0
    for role, names in ROLE_DEFAULTS.items():
        for name in sorted(names):
            pid = existing[name].id
            if (role, pid) in bound:
                continue
            db.add(RolePermission(role=role, permission_id=pid, is_active=True))
            added_bindings += 1

    await db.commit()
    logger.info(
        "Seeded %d permissions and %d role bindings", added_permissions, added_bindings
    )
    return {"permissions": added_permissions, "role_permissions": added_bindings}
