"""Permission catalog and resolution rules for jewelry-store RBAC.

Design:
  - Every permission is a named capability in one of ten categories.
    The catalog below is the seed source for the `permissions` table.
  - Each role has a DEFAULT permission set (`ROLE_DEFAULTS`), seeded into
    `role_permissions`.
  - Admins add per-user grants (`user_permissions`), optionally expiring.
  - Departments and teams contribute further permissions to members.
  - The effective set is the union of all sources, de-duplicated by
    permission id (`merge_effective`). Both the point-in-time check and
    the full listing go through the same merge, so they cannot diverge.

Permission naming: `<verb>_<subject>`, e.g. `view_customers`,
`manage_inventory`, `export_reports`.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping, NamedTuple, Protocol

from jewelcrm.auth.roles import JewelryUserRole as R


class PermissionSpec(NamedTuple):
    category: str
    description: str
    is_sensitive: bool = False


# ── All known permissions ───────────────────────────────────

PERMISSION_CATALOG: Mapping[str, PermissionSpec] = MappingProxyType({
    # Customers
    "view_customers": PermissionSpec("customer_management", "View customer records"),
    "manage_customers": PermissionSpec("customer_management", "Create and edit customer records"),
    "delete_customers": PermissionSpec("customer_management", "Delete customer records", True),

    # Inventory & consignment
    "view_inventory": PermissionSpec("inventory_management", "View inventory items"),
    "manage_inventory": PermissionSpec("inventory_management", "Create, edit and adjust inventory"),
    "manage_consignment": PermissionSpec("inventory_management", "Manage consignment agreements"),
    "manage_pricing": PermissionSpec("inventory_management", "Set retail and wholesale pricing", True),

    # Sales
    "view_orders": PermissionSpec("sales_management", "View orders and quotes"),
    "manage_orders": PermissionSpec("sales_management", "Create and edit orders and quotes"),
    "process_sales": PermissionSpec("sales_management", "Ring up sales at the counter"),
    "process_returns": PermissionSpec("sales_management", "Process returns and refunds", True),
    "manage_trade_ins": PermissionSpec("sales_management", "Accept and value trade-ins"),

    # Financial (strictly restricted)
    "view_financials": PermissionSpec("financial_management", "View financial data", True),
    "manage_finances": PermissionSpec("financial_management", "Edit ledgers, invoices and payments", True),
    "view_tax_reports": PermissionSpec("financial_management", "View tax reports", True),

    # Production
    "view_production": PermissionSpec("production_management", "View production boards"),
    "manage_production": PermissionSpec("production_management", "Move jobs through production stages"),
    "manage_designs": PermissionSpec("production_management", "Manage designs and CAD files"),
    "perform_quality_control": PermissionSpec("production_management", "Sign off quality control"),
    "manage_repairs": PermissionSpec("production_management", "Take in and complete repairs"),
    "create_appraisals": PermissionSpec("production_management", "Create and sign appraisals"),

    # Users & roles
    "view_users": PermissionSpec("user_management", "View staff accounts"),
    "manage_users": PermissionSpec("user_management", "Create and deactivate staff accounts", True),
    "manage_roles": PermissionSpec("user_management", "Change roles and grant custom permissions", True),
    "manage_teams": PermissionSpec("user_management", "Create teams and assign members"),

    # System
    "manage_settings": PermissionSpec("system_administration", "Change system settings", True),
    "view_audit_logs": PermissionSpec("system_administration", "Read the administrative audit log", True),
    "view_security_events": PermissionSpec("system_administration", "Read security events and access attempts", True),

    # Reporting
    "view_analytics": PermissionSpec("reporting_analytics", "View dashboards and analytics"),
    "view_reports": PermissionSpec("reporting_analytics", "View business reports"),
    "export_reports": PermissionSpec("reporting_analytics", "Export reports and data", True),

    # Network
    "view_network": PermissionSpec("network_collaboration", "Browse partner network inventory"),
    "share_inventory": PermissionSpec("network_collaboration", "Share inventory with partners"),

    # Files
    "view_files": PermissionSpec("file_management", "View documents and attachments"),
    "manage_files": PermissionSpec("file_management", "Upload and delete documents"),
})

ALL_PERMISSIONS: frozenset[str] = frozenset(PERMISSION_CATALOG)


def _all_except(*names: str) -> frozenset[str]:
    return ALL_PERMISSIONS - set(names)


# ── Role → default permissions ──────────────────────────────

ROLE_DEFAULTS: Mapping[str, frozenset[str]] = MappingProxyType({
    R.STORE_OWNER.value: ALL_PERMISSIONS,
    R.SYSTEM_ADMIN.value: ALL_PERMISSIONS,

    R.STORE_MANAGER.value: _all_except("delete_customers", "manage_settings"),

    R.ASSISTANT_MANAGER.value: frozenset({
        "view_customers", "manage_customers",
        "view_inventory", "manage_inventory", "manage_consignment",
        "view_orders", "manage_orders", "process_sales", "process_returns", "manage_trade_ins",
        "view_production", "manage_production",
        "view_users",
        "view_analytics", "view_reports", "export_reports",
        "view_network", "share_inventory",
        "view_files", "manage_files",
    }),

    R.SENIOR_SALES_ASSOCIATE.value: frozenset({
        "view_customers", "manage_customers",
        "view_inventory",
        "view_orders", "manage_orders", "process_sales", "process_returns", "manage_trade_ins",
        "view_financials",
        "view_analytics", "view_reports",
        "view_network",
        "view_files",
    }),

    R.SALES_ASSOCIATE.value: frozenset({
        "view_customers", "manage_customers",
        "view_inventory",
        "view_orders", "manage_orders", "process_sales",
        "view_analytics",
        "view_files",
    }),

    R.CUSTOMER_SERVICE_REP.value: frozenset({
        "view_customers", "manage_customers",
        "view_inventory",
        "view_orders", "process_sales",
        "view_files",
    }),

    R.JEWELRY_DESIGNER.value: frozenset({
        "view_customers",
        "view_inventory",
        "view_orders",
        "view_production", "manage_production", "manage_designs",
        "view_files", "manage_files",
    }),

    R.GOLDSMITH.value: frozenset({
        "view_inventory",
        "view_orders",
        "view_production", "manage_production", "perform_quality_control", "manage_repairs",
        "view_files",
    }),

    R.JEWELER.value: frozenset({
        "view_customers",
        "view_inventory",
        "view_orders",
        "view_production", "manage_production", "manage_repairs",
        "view_files",
    }),

    R.APPRAISER.value: frozenset({
        "view_customers",
        "view_inventory",
        "view_production", "create_appraisals",
        "view_files",
    }),

    R.INVENTORY_MANAGER.value: frozenset({
        "view_inventory", "manage_inventory", "manage_consignment", "manage_pricing",
        "view_orders",
        "view_production",
        "view_reports", "export_reports",
        "view_network", "share_inventory",
        "view_files", "manage_files",
    }),

    R.BOOKKEEPER.value: frozenset({
        "view_customers",
        "view_orders",
        "view_financials", "manage_finances",
        "view_reports", "export_reports",
        "view_files",
    }),

    R.ACCOUNTANT.value: frozenset({
        "view_customers",
        "view_orders",
        "view_financials", "manage_finances", "view_tax_reports",
        "view_analytics", "view_reports", "export_reports",
        "view_files",
    }),

    R.VIEWER.value: frozenset({
        "view_customers", "view_inventory", "view_orders",
        "view_production", "view_analytics",
    }),

    R.GUEST.value: frozenset({"view_inventory"}),
})


# ── Resolution ──────────────────────────────────────────────

class PermissionLike(Protocol):
    id: str
    name: str
    resource_type: str
    resource_id: str | None


def merge_effective(*sources: Iterable[PermissionLike]) -> list:
    """Union the given permission lists, keeping the first entry per id.

    Order is stable: role permissions first, then custom grants, then
    department, then team contributions.
    """
    seen: set[str] = set()
    merged = []
    for source in sources:
        for perm in source:
            if perm.id in seen:
                continue
            seen.add(perm.id)
            merged.append(perm)
    return merged


def permission_applies(
    perm: PermissionLike,
    name: str,
    resource_type: str = "global",
    resource_id: str | None = None,
) -> bool:
    """Does a held permission satisfy a check for `name` on a resource?

    Global permissions satisfy any resource. A scoped permission only
    satisfies checks of its own resource type, and, when it names a
    resource id, only that instance.
    """
    if perm.name != name:
        return False
    if perm.resource_type == "global":
        return True
    if perm.resource_type != resource_type:
        return False
    return perm.resource_id is None or perm.resource_id == resource_id


def has_permission(
    permissions: Iterable[PermissionLike],
    required: str,
    resource_type: str = "global",
    resource_id: str | None = None,
) -> bool:
    """Check whether a permission set satisfies a requirement."""
    return any(
        permission_applies(p, required, resource_type, resource_id)
        for p in permissions
    )
