"""Jewelry-store role enumeration and its static lookup tables.

All tables are read-only mappings built once at import time. Presentation
lookups never raise: unknown roles resolve to a generic fallback entry.
"""

from __future__ import annotations

import enum
from types import MappingProxyType
from typing import Mapping


class JewelryUserRole(str, enum.Enum):
    # Management
    STORE_OWNER = "store_owner"
    STORE_MANAGER = "store_manager"
    ASSISTANT_MANAGER = "assistant_manager"

    # Sales
    SENIOR_SALES_ASSOCIATE = "senior_sales_associate"
    SALES_ASSOCIATE = "sales_associate"
    CUSTOMER_SERVICE_REP = "customer_service_rep"

    # Technical
    JEWELRY_DESIGNER = "jewelry_designer"
    GOLDSMITH = "goldsmith"
    JEWELER = "jeweler"
    APPRAISER = "appraiser"

    # Support
    INVENTORY_MANAGER = "inventory_manager"
    BOOKKEEPER = "bookkeeper"
    ACCOUNTANT = "accountant"

    # System
    SYSTEM_ADMIN = "system_admin"
    VIEWER = "viewer"
    GUEST = "guest"


R = JewelryUserRole

# Higher = more authority. Levels are shared by peers (e.g. the technical
# roles all sit at 3); equal levels may manage each other.
ROLE_HIERARCHY: Mapping[str, int] = MappingProxyType({
    R.STORE_OWNER.value: 5,
    R.STORE_MANAGER.value: 4,
    R.ASSISTANT_MANAGER.value: 3,
    R.SENIOR_SALES_ASSOCIATE.value: 3,
    R.SALES_ASSOCIATE.value: 2,
    R.CUSTOMER_SERVICE_REP.value: 2,
    R.JEWELRY_DESIGNER.value: 3,
    R.GOLDSMITH.value: 3,
    R.JEWELER.value: 3,
    R.APPRAISER.value: 2,
    R.INVENTORY_MANAGER.value: 3,
    R.BOOKKEEPER.value: 3,
    R.ACCOUNTANT.value: 4,
    R.SYSTEM_ADMIN.value: 5,
    R.VIEWER.value: 1,
    R.GUEST.value: 1,
})

ROLE_DISPLAY_NAMES: Mapping[str, str] = MappingProxyType({
    R.STORE_OWNER.value: "Store Owner",
    R.STORE_MANAGER.value: "Store Manager",
    R.ASSISTANT_MANAGER.value: "Assistant Manager",
    R.SENIOR_SALES_ASSOCIATE.value: "Senior Sales Associate",
    R.SALES_ASSOCIATE.value: "Sales Associate",
    R.CUSTOMER_SERVICE_REP.value: "Customer Service Rep",
    R.JEWELRY_DESIGNER.value: "Jewelry Designer",
    R.GOLDSMITH.value: "Goldsmith",
    R.JEWELER.value: "Jeweler",
    R.APPRAISER.value: "Appraiser",
    R.INVENTORY_MANAGER.value: "Inventory Manager",
    R.BOOKKEEPER.value: "Bookkeeper",
    R.ACCOUNTANT.value: "Accountant",
    R.SYSTEM_ADMIN.value: "System Administrator",
    R.VIEWER.value: "Viewer",
    R.GUEST.value: "Guest",
})

ROLE_DESCRIPTIONS: Mapping[str, str] = MappingProxyType({
    R.STORE_OWNER.value: "Full system access with complete control over all operations",
    R.STORE_MANAGER.value: "Can manage staff, inventory, customers, and generate reports",
    R.ASSISTANT_MANAGER.value: "Can manage most operations except user management",
    R.SENIOR_SALES_ASSOCIATE.value: "Can handle complex sales and view financial information",
    R.SALES_ASSOCIATE.value: "Can handle standard sales with limited financial access",
    R.CUSTOMER_SERVICE_REP.value: "Can handle customer inquiries and basic sales",
    R.JEWELRY_DESIGNER.value: "Can manage designs, CAD files, and production processes",
    R.GOLDSMITH.value: "Can manage production and quality control processes",
    R.JEWELER.value: "Can handle repairs and custom jewelry work",
    R.APPRAISER.value: "Can assess jewelry value and create appraisals",
    R.INVENTORY_MANAGER.value: "Can manage inventory, suppliers, and pricing",
    R.BOOKKEEPER.value: "Can manage financial data and reports",
    R.ACCOUNTANT.value: "Can access all financial data and tax reports",
    R.SYSTEM_ADMIN.value: "Can manage system settings and user accounts",
    R.VIEWER.value: "Read-only access to most system data",
    R.GUEST.value: "Limited access for temporary users",
})

ROLE_COLORS: Mapping[str, str] = MappingProxyType({
    R.STORE_OWNER.value: "#8B5CF6",
    R.STORE_MANAGER.value: "#3B82F6",
    R.ASSISTANT_MANAGER.value: "#06B6D4",
    R.SENIOR_SALES_ASSOCIATE.value: "#10B981",
    R.SALES_ASSOCIATE.value: "#84CC16",
    R.CUSTOMER_SERVICE_REP.value: "#F59E0B",
    R.JEWELRY_DESIGNER.value: "#EF4444",
    R.GOLDSMITH.value: "#F97316",
    R.JEWELER.value: "#EC4899",
    R.APPRAISER.value: "#6366F1",
    R.INVENTORY_MANAGER.value: "#14B8A6",
    R.BOOKKEEPER.value: "#8B5CF6",
    R.ACCOUNTANT.value: "#DC2626",
    R.SYSTEM_ADMIN.value: "#7C2D12",
    R.VIEWER.value: "#6B7280",
    R.GUEST.value: "#9CA3AF",
})

ROLE_ICONS: Mapping[str, str] = MappingProxyType({
    R.STORE_OWNER.value: "👑",
    R.STORE_MANAGER.value: "👔",
    R.ASSISTANT_MANAGER.value: "👨‍💼",
    R.SENIOR_SALES_ASSOCIATE.value: "💎",
    R.SALES_ASSOCIATE.value: "💍",
    R.CUSTOMER_SERVICE_REP.value: "📞",
    R.JEWELRY_DESIGNER.value: "🎨",
    R.GOLDSMITH.value: "🔨",
    R.JEWELER.value: "⚒️",
    R.APPRAISER.value: "🔍",
    R.INVENTORY_MANAGER.value: "📦",
    R.BOOKKEEPER.value: "📊",
    R.ACCOUNTANT.value: "💰",
    R.SYSTEM_ADMIN.value: "⚙️",
    R.VIEWER.value: "👁️",
    R.GUEST.value: "👋",
})

# ── Fallbacks for roles outside the enumeration ─────────────

DEFAULT_LEVEL = 0
DEFAULT_DISPLAY_NAME = "Unknown Role"
DEFAULT_DESCRIPTION = "No description available"
DEFAULT_COLOR = "#6B7280"
DEFAULT_ICON = "👤"


def _key(role: JewelryUserRole | str) -> str:
    return role.value if isinstance(role, JewelryUserRole) else str(role)


def role_level(role: JewelryUserRole | str) -> int:
    return ROLE_HIERARCHY.get(_key(role), DEFAULT_LEVEL)


def role_display_name(role: JewelryUserRole | str) -> str:
    return ROLE_DISPLAY_NAMES.get(_key(role), DEFAULT_DISPLAY_NAME)


def role_description(role: JewelryUserRole | str) -> str:
    return ROLE_DESCRIPTIONS.get(_key(role), DEFAULT_DESCRIPTION)


def role_color(role: JewelryUserRole | str) -> str:
    return ROLE_COLORS.get(_key(role), DEFAULT_COLOR)


def role_icon(role: JewelryUserRole | str) -> str:
    return ROLE_ICONS.get(_key(role), DEFAULT_ICON)


def can_manage_level(manager_role: JewelryUserRole | str, target_role: JewelryUserRole | str) -> bool:
    """A manager may manage users at an equal or lower hierarchy level."""
    return role_level(manager_role) >= role_level(target_role)


def roles_by_level() -> list[str]:
    """All roles, highest authority first (ties keep declaration order)."""
    return sorted(ROLE_HIERARCHY, key=lambda r: -ROLE_HIERARCHY[r])
