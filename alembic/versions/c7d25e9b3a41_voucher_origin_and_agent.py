"""voucher_origin_and_agent

Revision ID: c7d25e9b3a41
Revises: b41f0c2a7d10
Create Date: 2026-09-09 14:30:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "c7d25e9b3a41"
down_revision: str | None = "b41f0c2a7d10"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

# Legacy agent batches were named "<AGENTNAME>-<millis>" with the agent name
# upper-cased and stripped to [A-Z0-9]. Ambiguous prefixes resolve to the oldest agent.
BACKFILL_AGENT_ORIGIN_SQL = """
UPDATE hotspot_vouchers AS v
SET origin = 'AGENT', agent_id = matched.agent_id
FROM (
    SELECT DISTINCT ON (hv.id) hv.id AS voucher_id, a.id AS agent_id
    FROM hotspot_vouchers AS hv
    JOIN agents AS a
      ON split_part(hv.batch_code, '-', 1) = regexp_replace(upper(a.name), '[^A-Z0-9]', '', 'g')
    WHERE hv.order_id IS NULL
      AND hv.batch_code LIKE '%-%'
    ORDER BY hv.id, a.id
) AS matched
WHERE v.id = matched.voucher_id
"""


def upgrade() -> None:
    op.add_column(
        "hotspot_vouchers",
        sa.Column("origin", sa.String(16), nullable=False, server_default=sa.text("'MANUAL'")),
    )
    op.add_column("hotspot_vouchers", sa.Column("agent_id", sa.BigInteger(), nullable=True))
    op.create_foreign_key(
        "fk_hotspot_vouchers_agent_id_agents",
        "hotspot_vouchers",
        "agents",
        ["agent_id"],
        ["id"],
    )

    op.execute("UPDATE hotspot_vouchers SET origin = 'SELF_SERVICE' WHERE order_id IS NOT NULL")
    op.execute(BACKFILL_AGENT_ORIGIN_SQL)

    op.create_check_constraint(
        "ck_hotspot_vouchers_origin",
        "hotspot_vouchers",
        "origin IN ('SELF_SERVICE','MANUAL','AGENT')",
    )
    op.create_check_constraint(
        "ck_hotspot_vouchers_agent_origin",
        "hotspot_vouchers",
        "(origin = 'AGENT') = (agent_id IS NOT NULL)",
    )
    op.create_index("idx_hotspot_vouchers_agent", "hotspot_vouchers", ["agent_id"])


def downgrade() -> None:
    op.drop_index("idx_hotspot_vouchers_agent", table_name="hotspot_vouchers")
    op.drop_constraint("ck_hotspot_vouchers_agent_origin", "hotspot_vouchers", type_="check")
    op.drop_constraint("ck_hotspot_vouchers_origin", "hotspot_vouchers", type_="check")
    op.drop_constraint("fk_hotspot_vouchers_agent_id_agents", "hotspot_vouchers", type_="foreignkey")
    op.drop_column("hotspot_vouchers", "agent_id")
    op.drop_column("hotspot_vouchers", "origin")
