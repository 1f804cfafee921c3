"""demand_engine_initial

Create organizations, units, users, members, applicants, demands and
demand_status_audit_log, including the partial unique slot index.

Revision ID: 0001_demand_engine
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "0001_demand_engine"
down_revision = None
branch_labels = None
depends_on = None

_LIVE_SLOT = "status NOT IN ('REJECTED', 'BILLED')"


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "organizations" not in existing_tables:
        op.create_table(
            "organizations",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("slug", sa.String(length=100), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("slug"),
        )

    if "units" not in existing_tables:
        op.create_table(
            "units",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("slug", sa.String(length=100), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("organization_id", "slug", name="uq_units_org_slug"),
        )
        op.create_index("ix_units_organization_id", "units", ["organization_id"])

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )

    if "members" not in existing_tables:
        op.create_table(
            "members",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=False),
            sa.Column("unit_id", sa.Integer(), nullable=True),
            sa.Column("organization_role", sa.String(length=20), nullable=False),
            sa.Column("unit_role", sa.String(length=20), nullable=True),
            sa.Column("job_title", sa.String(length=60), nullable=True),
            sa.Column("working_days", sa.JSON(), nullable=True),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["unit_id"], ["units.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id", "organization_id", "unit_id", name="uq_members_user_org_unit"),
        )
        op.create_index("ix_members_user_id", "members", ["user_id"])
        op.create_index("ix_members_organization_id", "members", ["organization_id"])
        op.create_index("ix_members_unit_id", "members", ["unit_id"])

    if "applicants" not in existing_tables:
        op.create_table(
            "applicants",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_applicants_organization_id", "applicants", ["organization_id"])

    if "demands" not in existing_tables:
        op.create_table(
            "demands",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
            sa.Column("priority", sa.String(length=20), nullable=False),
            sa.Column("category", sa.String(length=60), nullable=False),
            sa.Column("scheduled_date", sa.Date(), nullable=True),
            sa.Column("scheduled_time", sa.Time(), nullable=True),
            sa.Column("responsible_id", sa.Integer(), nullable=True),
            sa.Column("unit_id", sa.Integer(), nullable=False),
            sa.Column("applicant_id", sa.Integer(), nullable=False),
            sa.Column("owner_id", sa.Integer(), nullable=True),
            sa.Column("created_by_member_name", sa.String(length=200), nullable=False),
            sa.Column("updated_by_member_name", sa.String(length=200), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["responsible_id"], ["members.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["unit_id"], ["units.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["applicant_id"], ["applicants.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_demands_responsible_id", "demands", ["responsible_id"])
        op.create_index("ix_demands_unit_id", "demands", ["unit_id"])
        op.create_index("ix_demands_applicant_id", "demands", ["applicant_id"])
        op.create_index("ix_demands_unit_status", "demands", ["unit_id", "status"])
        op.create_index("ix_demands_member_date", "demands", ["responsible_id", "scheduled_date"])
        op.create_index(
            "uq_demands_member_slot",
            "demands",
            ["responsible_id", "scheduled_date", "scheduled_time"],
            unique=True,
            postgresql_where=sa.text(_LIVE_SLOT),
            sqlite_where=sa.text(_LIVE_SLOT),
        )

    if "demand_status_audit_log" not in existing_tables:
        op.create_table(
            "demand_status_audit_log",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("demand_id", sa.Integer(), nullable=False),
            sa.Column("previous_status", sa.String(length=20), nullable=False),
            sa.Column("new_status", sa.String(length=20), nullable=False),
            sa.Column("changed_by_user_id", sa.Integer(), nullable=True),
            sa.Column("changed_by_member_id", sa.Integer(), nullable=True),
            sa.Column("changed_by_user_name", sa.String(length=200), nullable=False),
            sa.Column("changed_by_role", sa.String(length=20), nullable=False),
            sa.Column("reason", sa.Text(), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["demand_id"], ["demands.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["changed_by_user_id"], ["users.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["changed_by_member_id"], ["members.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_demand_audit_demand_ts", "demand_status_audit_log", ["demand_id", "changed_at"])
        op.create_index("idx_demand_audit_user_ts", "demand_status_audit_log", ["changed_by_user_id", "changed_at"])


def downgrade():
    op.drop_table("demand_status_audit_log")
    op.drop_index("uq_demands_member_slot", table_name="demands")
    op.drop_table("demands")
    op.drop_table("applicants")
    op.drop_table("members")
    op.drop_table("users")
    op.drop_table("units")
    op.drop_table("organizations")
