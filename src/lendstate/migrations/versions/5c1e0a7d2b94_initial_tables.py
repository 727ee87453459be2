"""Initial tables

Revision ID: 5c1e0a7d2b94
Revises:
Create Date: 2026-10-19 09:12:44.201733

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

import lendstate.database.models

# revision identifiers, used by Alembic.
revision: str = "5c1e0a7d2b94"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

TRANSACTION_TABLES = ("deposits", "withdraws", "borrows", "repays", "liquidates")


def upgrade() -> None:
    """Upgrade schema."""

    op.create_table(
        "accounts",
        sa.Column("id", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "daily_active_accounts",
        sa.Column("id", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "protocols",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("schema_version", sa.Text(), nullable=False),
        sa.Column("subgraph_version", sa.Text(), nullable=False),
        sa.Column("methodology_version", sa.Text(), nullable=False),
        sa.Column("network", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("lending_type", sa.Text(), nullable=False),
        sa.Column("risk_type", sa.Text(), nullable=False),
        *(
            sa.Column(
                column_name,
                lendstate.database.models.base.DecimalMappedToString(),
                nullable=False,
            )
            for column_name in (
                "total_value_locked_usd",
                "total_deposit_usd",
                "total_borrow_usd",
                "cumulative_total_revenue_usd",
                "cumulative_protocol_side_revenue_usd",
                "cumulative_supply_side_revenue_usd",
            )
        ),
        sa.Column("total_unique_users", sa.Integer(), nullable=False),
        sa.Column("market_ids", sa.JSON(), nullable=False),
        sa.Column("price_oracle", sa.String(length=42), nullable=True),
        sa.Column(
            "liquidation_incentive",
            lendstate.database.models.base.DecimalMappedToString(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "tokens",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("symbol", sa.Text(), nullable=False),
        sa.Column("decimals", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "markets",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("protocol_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("input_token_id", sa.Text(), nullable=True),
        sa.Column(
            "input_token_balance",
            lendstate.database.models.base.IntMappedToString(),
            nullable=False,
        ),
        sa.Column(
            "input_token_price_usd",
            lendstate.database.models.base.DecimalMappedToString(),
            nullable=False,
        ),
        sa.Column("output_token_id", sa.Text(), nullable=True),
        sa.Column(
            "output_token_supply",
            lendstate.database.models.base.IntMappedToString(),
            nullable=False,
        ),
        *(
            sa.Column(
                column_name,
                lendstate.database.models.base.DecimalMappedToString(),
                nullable=False,
            )
            for column_name in (
                "output_token_price_usd",
                "total_value_locked_usd",
                "total_deposit_usd",
                "total_borrow_usd",
                "maximum_ltv",
                "liquidation_threshold",
                "liquidation_penalty",
                "deposit_rate",
                "variable_borrow_rate",
                "reserve_factor",
                "total_revenue_usd_per_block",
                "protocol_side_revenue_usd_per_block",
                "supply_side_revenue_usd_per_block",
            )
        ),
        sa.Column("accrual_block_number", sa.Integer(), nullable=False),
        sa.Column("created_timestamp", sa.Integer(), nullable=False),
        sa.Column("created_block_number", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("can_use_as_collateral", sa.Boolean(), nullable=False),
        sa.Column("can_borrow_from", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(
            ["input_token_id"],
            ["tokens.id"],
        ),
        sa.ForeignKeyConstraint(
            ["output_token_id"],
            ["tokens.id"],
        ),
        sa.ForeignKeyConstraint(
            ["protocol_id"],
            ["protocols.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("markets", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_markets_protocol_id"), ["protocol_id"], unique=False)
        batch_op.create_index(
            batch_op.f("ix_markets_input_token_id"), ["input_token_id"], unique=False
        )
        batch_op.create_index(
            batch_op.f("ix_markets_output_token_id"), ["output_token_id"], unique=False
        )

    for table_name in TRANSACTION_TABLES:
        extra_columns = (
            [
                sa.Column(
                    "loss_usd",
                    lendstate.database.models.base.DecimalMappedToString(),
                    nullable=False,
                ),
                sa.Column(
                    "profit_usd",
                    lendstate.database.models.base.DecimalMappedToString(),
                    nullable=False,
                ),
            ]
            if table_name == "liquidates"
            else []
        )
        op.create_table(
            table_name,
            sa.Column("id", sa.Text(), nullable=False),
            sa.Column("hash", sa.Text(), nullable=False),
            sa.Column("log_index", sa.Integer(), nullable=False),
            sa.Column("protocol_id", sa.Text(), nullable=False),
            sa.Column("to", sa.String(length=42), nullable=False),
            sa.Column("from_", sa.String(length=42), nullable=False),
            sa.Column("block_number", sa.Integer(), nullable=False),
            sa.Column("timestamp", sa.Integer(), nullable=False),
            sa.Column("market_id", sa.Text(), nullable=False),
            sa.Column("asset_id", sa.Text(), nullable=False),
            sa.Column(
                "amount",
                lendstate.database.models.base.IntMappedToString(),
                nullable=False,
            ),
            sa.Column(
                "amount_usd",
                lendstate.database.models.base.DecimalMappedToString(),
                nullable=False,
            ),
            *extra_columns,
            sa.ForeignKeyConstraint(
                ["asset_id"],
                ["tokens.id"],
            ),
            sa.ForeignKeyConstraint(
                ["market_id"],
                ["markets.id"],
            ),
            sa.ForeignKeyConstraint(
                ["protocol_id"],
                ["protocols.id"],
            ),
            sa.PrimaryKeyConstraint("id"),
        )
        with op.batch_alter_table(table_name, schema=None) as batch_op:
            for column_name in ("protocol_id", "market_id", "asset_id"):
                batch_op.create_index(
                    batch_op.f(f"ix_{table_name}_{column_name}"), [column_name], unique=False
                )

    op.create_table(
        "market_daily_snapshots",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("protocol_id", sa.Text(), nullable=False),
        sa.Column("market_id", sa.Text(), nullable=False),
        *(
            sa.Column(
                column_name,
                lendstate.database.models.base.DecimalMappedToString(),
                nullable=False,
            )
            for column_name in (
                "total_value_locked_usd",
                "total_deposit_usd",
                "total_borrow_usd",
            )
        ),
        sa.Column(
            "input_token_balance",
            lendstate.database.models.base.IntMappedToString(),
            nullable=False,
        ),
        sa.Column(
            "input_token_price_usd",
            lendstate.database.models.base.DecimalMappedToString(),
            nullable=False,
        ),
        sa.Column(
            "output_token_supply",
            lendstate.database.models.base.IntMappedToString(),
            nullable=False,
        ),
        *(
            sa.Column(
                column_name,
                lendstate.database.models.base.DecimalMappedToString(),
                nullable=False,
            )
            for column_name in (
                "output_token_price_usd",
                "deposit_rate",
                "variable_borrow_rate",
            )
        ),
        sa.Column("block_number", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["market_id"],
            ["markets.id"],
        ),
        sa.ForeignKeyConstraint(
            ["protocol_id"],
            ["protocols.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("market_daily_snapshots", schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f("ix_market_daily_snapshots_protocol_id"), ["protocol_id"], unique=False
        )
        batch_op.create_index(
            batch_op.f("ix_market_daily_snapshots_market_id"), ["market_id"], unique=False
        )

    op.create_table(
        "financials_daily_snapshots",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("day", sa.Integer(), nullable=False),
        sa.Column("protocol_id", sa.Text(), nullable=False),
        *(
            sa.Column(
                column_name,
                lendstate.database.models.base.DecimalMappedToString(),
                nullable=False,
            )
            for column_name in (
                "total_value_locked_usd",
                "total_deposit_usd",
                "total_borrow_usd",
                "total_revenue_usd",
                "protocol_side_revenue_usd",
                "supply_side_revenue_usd",
            )
        ),
        sa.Column("block_number", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["protocol_id"],
            ["protocols.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("financials_daily_snapshots", schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f("ix_financials_daily_snapshots_day"), ["day"], unique=False
        )
        batch_op.create_index(
            batch_op.f("ix_financials_daily_snapshots_protocol_id"), ["protocol_id"], unique=False
        )

    op.create_table(
        "usage_metrics_daily_snapshots",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("protocol_id", sa.Text(), nullable=False),
        sa.Column("active_users", sa.Integer(), nullable=False),
        sa.Column("total_unique_users", sa.Integer(), nullable=False),
        sa.Column("daily_transaction_count", sa.Integer(), nullable=False),
        sa.Column("block_number", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["protocol_id"],
            ["protocols.id"],
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("usage_metrics_daily_snapshots", schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f("ix_usage_metrics_daily_snapshots_protocol_id"),
            ["protocol_id"],
            unique=False,
        )


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_table("usage_metrics_daily_snapshots")
    op.drop_table("financials_daily_snapshots")
    op.drop_table("market_daily_snapshots")
    for table_name in reversed(TRANSACTION_TABLES):
        op.drop_table(table_name)
    op.drop_table("markets")
    op.drop_table("tokens")
    op.drop_table("protocols")
    op.drop_table("daily_active_accounts")
    op.drop_table("accounts")
