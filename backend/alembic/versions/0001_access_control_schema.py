"""Access-control schema: identities, profiles, permission catalog and
bindings, departments, teams and the compliance logs.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-19

Run with:
    alembic upgrade head
    python -m jewelcrm.cli seed
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def _id():
    return sa.Column("id", sa.String(36), primary_key=True)


def _timestamps(updated: bool = True):
    cols = [sa.Column("created_at", sa.DateTime(), server_default=sa.func.now())]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()))
    return cols


def upgrade() -> None:
    # ── Identity ─────────────────────────────────────────────

    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("user_metadata", sa.JSON()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        *_timestamps(updated=False),
    )
    op.create_index("ix_users_email", "users", ["email"])

    # ── Organization ─────────────────────────────────────────

    op.create_table(
        "departments",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("manager_id", sa.String(36)),
        sa.Column("parent_department_id", sa.String(36), sa.ForeignKey("departments.id")),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "user_profiles",
        _id(),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("department_id", sa.String(36), sa.ForeignKey("departments.id")),
        sa.Column("manager_id", sa.String(36)),
        sa.Column("employee_id", sa.String(50), unique=True),
        sa.Column("hire_date", sa.Date()),
        sa.Column("termination_date", sa.Date()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_user_profiles_user_id", "user_profiles", ["user_id"])
    op.create_index("ix_user_profiles_role", "user_profiles", ["role"])
    op.create_index("ix_user_profiles_is_active", "user_profiles", ["is_active"])

    op.create_table(
        "teams",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("department_id", sa.String(36), sa.ForeignKey("departments.id")),
        sa.Column("team_lead_id", sa.String(36)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "team_members",
        _id(),
        sa.Column("team_id", sa.String(36), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("role", sa.String(50), server_default="member"),
        sa.Column("joined_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("left_at", sa.DateTime()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
    )
    op.create_index("ix_team_members_team_id", "team_members", ["team_id"])
    op.create_index("ix_team_members_user_id", "team_members", ["user_id"])

    # ── Permission catalog & bindings ────────────────────────

    op.create_table(
        "permissions",
        _id(),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("resource_type", sa.String(50), server_default="global"),
        sa.Column("resource_id", sa.String(36)),
        sa.Column("is_sensitive", sa.Boolean(), server_default=sa.false()),
        sa.Column("requires_approval", sa.Boolean(), server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_permissions_name", "permissions", ["name"])
    op.create_index("ix_permissions_category", "permissions", ["category"])

    op.create_table(
        "role_permissions",
        _id(),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("permission_id", sa.String(36), sa.ForeignKey("permissions.id"), nullable=False),
        sa.Column("granted_by", sa.String(36)),
        sa.Column("expires_at", sa.DateTime()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        *_timestamps(updated=False),
        sa.UniqueConstraint("role", "permission_id", name="uq_role_permission"),
    )
    op.create_index("ix_role_permissions_role", "role_permissions", ["role"])

    op.create_table(
        "user_permissions",
        _id(),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("permission_id", sa.String(36), sa.ForeignKey("permissions.id"), nullable=False),
        sa.Column("granted_by", sa.String(36)),
        sa.Column("granted_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime()),
        sa.Column("reason", sa.Text()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_user_permissions_user_id", "user_permissions", ["user_id"])

    op.create_table(
        "department_permissions",
        _id(),
        sa.Column("department_id", sa.String(36), sa.ForeignKey("departments.id"), nullable=False),
        sa.Column("permission_id", sa.String(36), sa.ForeignKey("permissions.id"), nullable=False),
        sa.Column("expires_at", sa.DateTime()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        *_timestamps(updated=False),
    )
    op.create_index(
        "ix_department_permissions_department_id", "department_permissions", ["department_id"]
    )

    op.create_table(
        "team_permissions",
        _id(),
        sa.Column("team_id", sa.String(36), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("permission_id", sa.String(36), sa.ForeignKey("permissions.id"), nullable=False),
        sa.Column("expires_at", sa.DateTime()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        *_timestamps(updated=False),
    )
    op.create_index("ix_team_permissions_team_id", "team_permissions", ["team_id"])

    # ── Compliance logs (append-only) ────────────────────────

    op.create_table(
        "audit_logs",
        _id(),
        sa.Column("user_id", sa.String(36)),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("resource_type", sa.String(50), nullable=False),
        sa.Column("resource_id", sa.String(36)),
        sa.Column("old_values", sa.JSON()),
        sa.Column("new_values", sa.JSON()),
        sa.Column("success", sa.Boolean(), server_default=sa.true()),
        sa.Column("error_message", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])

    op.create_table(
        "security_events",
        _id(),
        sa.Column("user_id", sa.String(36)),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("metadata", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_security_events_user_id", "security_events", ["user_id"])
    op.create_index("ix_security_events_event_type", "security_events", ["event_type"])
    op.create_index("ix_security_events_severity", "security_events", ["severity"])
    op.create_index("ix_security_events_created_at", "security_events", ["created_at"])

    op.create_table(
        "access_attempts",
        _id(),
        sa.Column("user_id", sa.String(36)),
        sa.Column("resource_type", sa.String(50), nullable=False),
        sa.Column("resource_id", sa.String(36)),
        sa.Column("permission_required", sa.String(100)),
        sa.Column("access_granted", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_access_attempts_user_id", "access_attempts", ["user_id"])
    op.create_index("ix_access_attempts_created_at", "access_attempts", ["created_at"])


def downgrade() -> None:
    for table in (
        "access_attempts",
        "security_events",
        "audit_logs",
        "team_permissions",
        "department_permissions",
        "user_permissions",
        "role_permissions",
        "permissions",
        "team_members",
        "teams",
        "user_profiles",
        "departments",
        "users",
    ):
        op.drop_table(table)
