"""Management CLI for access-control data.

Usage:
    python -m jewelcrm.cli seed     # Insert catalog permissions and role defaults
    python -m jewelcrm.cli roles    # Show the role hierarchy
"""

import asyncio
import sys

from jewelcrm.auth.permissions import ROLE_DEFAULTS
from jewelcrm.auth.roles import role_display_name, role_level, roles_by_level
from jewelcrm.database import async_session, engine
from jewelcrm.services.seed import seed_rbac


async def _seed() -> dict[str, int]:
    try:
        async with async_session() as db:
            return await seed_rbac(db)
    finally:
        await engine.dispose()


def seed():
    counts = asyncio.run(_seed())
    print(f"  Permissions added:   {counts['permissions']}")
    print(f"  Role bindings added: {counts['role_permissions']}")


def list_roles():
    roles = roles_by_level()
    for role in roles:
        defaults = len(ROLE_DEFAULTS.get(role, ()))
        print(f"  {role_level(role)}  {role:<24} {role_display_name(role):<24} {defaults} default permission(s)")
    print(f"\n{len(roles)} role(s)")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "seed":
        seed()
    elif cmd == "roles":
        list_roles()
    else:
        print("Usage: python -m jewelcrm.cli [seed|roles]")
