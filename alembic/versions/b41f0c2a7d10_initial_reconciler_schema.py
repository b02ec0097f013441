"""initial_reconciler_schema

Revision ID: b41f0c2a7d10
Revises:
Create Date: 2026-09-02 10:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "b41f0c2a7d10"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _create_radius_tables() -> None:
    op.create_table(
        "radacct",
        sa.Column("radacctid", sa.BigInteger(), primary_key=True),
        sa.Column("acctsessionid", sa.String(64), nullable=False),
        sa.Column("acctuniqueid", sa.String(32), nullable=False),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("nasipaddress", sa.String(45), nullable=False),
        sa.Column("framedipaddress", sa.String(45), nullable=True),
        sa.Column("acctstarttime", sa.DateTime(timezone=False), nullable=True),
        sa.Column("acctstoptime", sa.DateTime(timezone=False), nullable=True),
        sa.UniqueConstraint("acctuniqueid", name="uq_radacct_acctuniqueid"),
    )
    op.create_index("idx_radacct_username_start", "radacct", ["username", "acctstarttime"])
    op.create_index("idx_radacct_open_sessions", "radacct", ["acctstoptime"])

    op.create_table(
        "radcheck",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(64), nullable=False, server_default=sa.text("''")),
        sa.Column("attribute", sa.String(64), nullable=False, server_default=sa.text("''")),
        sa.Column("op", sa.String(2), nullable=False, server_default=sa.text("'=='")),
        sa.Column("value", sa.String(253), nullable=False, server_default=sa.text("''")),
        sa.UniqueConstraint("username", "attribute", name="uq_radcheck_username_attribute"),
    )

    op.create_table(
        "radreply",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(64), nullable=False, server_default=sa.text("''")),
        sa.Column("attribute", sa.String(64), nullable=False, server_default=sa.text("''")),
        sa.Column("op", sa.String(2), nullable=False, server_default=sa.text("'='")),
        sa.Column("value", sa.String(253), nullable=False, server_default=sa.text("''")),
    )
    op.create_index("idx_radreply_username", "radreply", ["username"])

    op.create_table(
        "radusergroup",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(64), nullable=False, server_default=sa.text("''")),
        sa.Column("groupname", sa.String(64), nullable=False, server_default=sa.text("''")),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("1")),
    )
    op.create_index("idx_radusergroup_username", "radusergroup", ["username"])

    op.create_table(
        "nas",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("nasname", sa.String(128), nullable=False),
        sa.Column("shortname", sa.String(32), nullable=True),
        sa.Column("secret", sa.String(60), nullable=False),
        sa.UniqueConstraint("nasname", name="uq_nas_nasname"),
    )


def upgrade() -> None:
    _create_radius_tables()

    op.create_table(
        "hotspot_profiles",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("group_name", sa.String(64), nullable=False),
        sa.Column("cost_price", sa.Integer(), nullable=False),
        sa.Column("selling_price", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reseller_fee", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("validity_value", sa.Integer(), nullable=False),
        sa.Column("validity_unit", sa.String(16), nullable=False),
        sa.CheckConstraint(
            "validity_unit IN ('MINUTES','HOURS','DAYS','MONTHS')",
            name="ck_hotspot_profiles_validity_unit",
        ),
        sa.CheckConstraint("validity_value > 0", name="ck_hotspot_profiles_validity_positive"),
        sa.CheckConstraint("cost_price >= 0", name="ck_hotspot_profiles_cost_non_negative"),
        sa.CheckConstraint("reseller_fee >= 0", name="ck_hotspot_profiles_fee_non_negative"),
        sa.UniqueConstraint("name", name="uq_hotspot_profiles_name"),
    )

    op.create_table(
        "agents",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.UniqueConstraint("name", name="uq_agents_name"),
    )

    op.create_table(
        "hotspot_vouchers",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("profile_id", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'WAITING'")),
        sa.Column("batch_code", sa.String(64), nullable=True),
        sa.Column("order_id", sa.String(64), nullable=True),
        sa.Column("first_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("status IN ('WAITING','ACTIVE','EXPIRED')", name="ck_hotspot_vouchers_status"),
        sa.CheckConstraint(
            "(first_login_at IS NULL) = (expires_at IS NULL)",
            name="ck_hotspot_vouchers_activation_pair",
        ),
        sa.ForeignKeyConstraint(["profile_id"], ["hotspot_profiles.id"]),
        sa.UniqueConstraint("code", name="uq_hotspot_vouchers_code"),
    )
    op.create_index("idx_hotspot_vouchers_status_expires", "hotspot_vouchers", ["status", "expires_at"])

    op.create_table(
        "agent_sales",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("agent_id", sa.BigInteger(), nullable=False),
        sa.Column("voucher_code", sa.String(64), nullable=False),
        sa.Column("profile_name", sa.String(64), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["agent_id"], ["agents.id"]),
        sa.UniqueConstraint("voucher_code", name="uq_agent_sales_voucher_code"),
    )
    op.create_index("idx_agent_sales_agent_created", "agent_sales", ["agent_id", "created_at"])

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("direction", sa.String(8), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("reference", sa.String(128), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("amount > 0", name="ck_ledger_entries_amount_positive"),
        sa.CheckConstraint("direction IN ('INCOME','EXPENSE')", name="ck_ledger_entries_direction"),
        sa.UniqueConstraint("reference", name="uq_ledger_entries_reference"),
    )
    op.create_index("idx_ledger_entries_category_occurred", "ledger_entries", ["category", "occurred_at"])

    op.create_table(
        "pppoe_profiles",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("group_name", sa.String(64), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.UniqueConstraint("name", name="uq_pppoe_profiles_name"),
    )

    op.create_table(
        "pppoe_users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("username", sa.String(64), nullable=False),
        sa.Column("password", sa.String(128), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'active'")),
        sa.Column("profile_id", sa.BigInteger(), nullable=False),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("expired_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('active','isolated','blocked')", name="ck_pppoe_users_status"),
        sa.ForeignKeyConstraint(["profile_id"], ["pppoe_profiles.id"]),
        sa.UniqueConstraint("username", name="uq_pppoe_users_username"),
    )
    op.create_index("idx_pppoe_users_status_expired", "pppoe_users", ["status", "expired_at"])

    op.create_table(
        "invoices",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("invoice_number", sa.String(64), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("customer_name", sa.String(128), nullable=True),
        sa.Column("customer_phone", sa.String(32), nullable=True),
        sa.Column("customer_username", sa.String(64), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("payment_link", sa.String(512), nullable=True),
        sa.Column(
            "sent_reminders",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("status IN ('PENDING','PAID','OVERDUE','CANCELLED')", name="ck_invoices_status"),
        sa.CheckConstraint("amount > 0", name="ck_invoices_amount_positive"),
        sa.ForeignKeyConstraint(["user_id"], ["pppoe_users.id"]),
        sa.UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
    )
    op.create_index("idx_invoices_status_due", "invoices", ["status", "due_date"])

    op.create_table(
        "reminder_settings",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "reminder_days",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[-3, -1, 0]'::jsonb"),
        ),
        sa.Column("reminder_time", sa.String(5), nullable=False, server_default=sa.text("'09:00'")),
    )

    op.create_table(
        "message_templates",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.UniqueConstraint("key", name="uq_message_templates_key"),
    )

    op.create_table(
        "companies",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
    )

    op.create_table(
        "job_runs",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("job_type", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("result", sa.Text(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.CheckConstraint("status IN ('running','success','error')", name="ck_job_runs_status"),
    )
    op.create_index("idx_job_runs_type_started", "job_runs", ["job_type", "started_at"])
    op.create_index("idx_job_runs_started", "job_runs", ["started_at"])


def downgrade() -> None:
    op.drop_index("idx_job_runs_started", table_name="job_runs")
    op.drop_index("idx_job_runs_type_started", table_name="job_runs")
    op.drop_table("job_runs")
    op.drop_table("companies")
    op.drop_table("message_templates")
    op.drop_table("reminder_settings")
    op.drop_index("idx_invoices_status_due", table_name="invoices")
    op.drop_table("invoices")
    op.drop_index("idx_pppoe_users_status_expired", table_name="pppoe_users")
    op.drop_table("pppoe_users")
    op.drop_table("pppoe_profiles")
    op.drop_index("idx_ledger_entries_category_occurred", table_name="ledger_entries")
    op.drop_table("ledger_entries")
    op.drop_index("idx_agent_sales_agent_created", table_name="agent_sales")
    op.drop_table("agent_sales")
    op.drop_index("idx_hotspot_vouchers_status_expires", table_name="hotspot_vouchers")
    op.drop_table("hotspot_vouchers")
    op.drop_table("agents")
    op.drop_table("hotspot_profiles")
    op.drop_table("nas")
    op.drop_index("idx_radusergroup_username", table_name="radusergroup")
    op.drop_table("radusergroup")
    op.drop_index("idx_radreply_username", table_name="radreply")
    op.drop_table("radreply")
    op.drop_table("radcheck")
    op.drop_index("idx_radacct_open_sessions", table_name="radacct")
    op.drop_index("idx_radacct_username_start", table_name="radacct")
    op.drop_table("radacct")
