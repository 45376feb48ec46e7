"""Tests for the role tables and the pure permission rules."""

from types import SimpleNamespace

import pytest

from jewelcrm.auth.permissions import (
    ALL_PERMISSIONS,
    PERMISSION_CATALOG,
    ROLE_DEFAULTS,
    has_permission,
    merge_effective,
    permission_applies,
)
from jewelcrm.auth.roles import (
    DEFAULT_COLOR,
    DEFAULT_DESCRIPTION,
    DEFAULT_DISPLAY_NAME,
    DEFAULT_ICON,
    ROLE_HIERARCHY,
    JewelryUserRole,
    can_manage_level,
    role_color,
    role_description,
    role_display_name,
    role_icon,
    role_level,
    roles_by_level,
)


def perm(pid: str, name: str, resource_type: str = "global", resource_id: str | None = None):
    return SimpleNamespace(id=pid, name=name, resource_type=resource_type, resource_id=resource_id)


@pytest.mark.unit
class TestRoleTables:
    def test_every_role_has_a_level(self):
        assert set(ROLE_HIERARCHY) == {r.value for r in JewelryUserRole}

    def test_tables_are_read_only(self):
        with pytest.raises(TypeError):
            ROLE_HIERARCHY["guest"] = 99  # type: ignore[index]

    def test_known_role_lookups(self):
        assert role_level(JewelryUserRole.STORE_OWNER) == 5
        assert role_level("sales_associate") == 2
        assert role_display_name("system_admin") == "System Administrator"
        assert role_color(JewelryUserRole.VIEWER) == "#6B7280"
        assert role_icon("store_owner") == "👑"

    def test_unknown_role_falls_back(self):
        assert role_level("apprentice") == 0
        assert role_display_name("apprentice") == DEFAULT_DISPLAY_NAME
        assert role_description("apprentice") == DEFAULT_DESCRIPTION
        assert role_color("apprentice") == DEFAULT_COLOR
        assert role_icon("apprentice") == DEFAULT_ICON

    def test_roles_by_level_is_descending(self):
        levels = [role_level(r) for r in roles_by_level()]
        assert levels == sorted(levels, reverse=True)
        assert len(levels) == len(JewelryUserRole)


@pytest.mark.unit
class TestHierarchy:
    def test_manager_over_associate(self):
        assert can_manage_level("store_manager", "sales_associate") is True
        assert can_manage_level("sales_associate", "store_manager") is False

    def test_equal_levels_manage_each_other(self):
        assert can_manage_level("goldsmith", "jeweler") is True
        assert can_manage_level("jeweler", "goldsmith") is True

    def test_monotonic_over_all_pairs(self):
        for a in JewelryUserRole:
            for b in JewelryUserRole:
                expected = ROLE_HIERARCHY[a.value] >= ROLE_HIERARCHY[b.value]
                assert can_manage_level(a, b) is expected


@pytest.mark.unit
class TestCatalog:
    def test_role_defaults_reference_catalog(self):
        for role, names in ROLE_DEFAULTS.items():
            assert names <= ALL_PERMISSIONS, role

    def test_every_role_has_defaults(self):
        assert set(ROLE_DEFAULTS) == {r.value for r in JewelryUserRole}

    def test_owner_holds_everything(self):
        assert ROLE_DEFAULTS["store_owner"] == ALL_PERMISSIONS

    def test_sales_associate_defaults(self):
        assert "view_customers" in ROLE_DEFAULTS["sales_associate"]
        assert "export_reports" not in ROLE_DEFAULTS["sales_associate"]
        assert "manage_inventory" not in ROLE_DEFAULTS["sales_associate"]

    def test_store_manager_can_manage_inventory(self):
        assert "manage_inventory" in ROLE_DEFAULTS["store_manager"]
        assert "manage_settings" not in ROLE_DEFAULTS["store_manager"]

    def test_financial_permissions_are_sensitive(self):
        for name, entry in PERMISSION_CATALOG.items():
            if entry.category == "financial_management":
                assert entry.is_sensitive, name


@pytest.mark.unit
class TestMergeEffective:
    def test_dedupes_by_id_keeping_first(self):
        a = perm("1", "view_customers")
        b = perm("2", "view_inventory")
        dup = perm("1", "view_customers")
        merged = merge_effective([a], [dup, b], [], [b])
        assert merged == [a, b]
        assert merged[0] is a

    def test_empty_sources(self):
        assert merge_effective([], [], [], []) == []


@pytest.mark.unit
class TestPermissionApplies:
    def test_global_satisfies_any_resource(self):
        p = perm("1", "view_customers")
        assert permission_applies(p, "view_customers")
        assert permission_applies(p, "view_customers", "customer", "c-1")

    def test_name_must_match(self):
        assert not permission_applies(perm("1", "view_customers"), "manage_customers")

    def test_scoped_to_type(self):
        p = perm("1", "view_financials", "financial_report")
        assert permission_applies(p, "view_financials", "financial_report", "r-9")
        assert not permission_applies(p, "view_financials", "customer", "r-9")
        assert not permission_applies(p, "view_financials")

    def test_scoped_to_instance(self):
        p = perm("1", "manage_inventory", "inventory_item", "ring-42")
        assert permission_applies(p, "manage_inventory", "inventory_item", "ring-42")
        assert not permission_applies(p, "manage_inventory", "inventory_item", "ring-43")

    def test_has_permission_over_set(self):
        held = [perm("1", "view_customers"), perm("2", "view_inventory")]
        assert has_permission(held, "view_inventory")
        assert not has_permission(held, "export_reports")
        assert not has_permission([], "view_customers")
