from sqlalchemy.orm import Mapped, mapped_column

from lendstate.fixed_point import ZERO

from .base import Base, BigDecimal, BigInteger
from .types import ForeignKeyMarketId, ForeignKeyProtocolId, PrimaryKeyId


class MarketDailySnapshotTable(Base):
    """
    End-of-day copy of a market's aggregates, keyed by "{market}-{day}". Rewritten in place by
    every accrual within the same day.
    """

    __tablename__ = "market_daily_snapshots"

    id: Mapped[PrimaryKeyId]
    protocol_id: Mapped[ForeignKeyProtocolId]
    market_id: Mapped[ForeignKeyMarketId]

    total_value_locked_usd: Mapped[BigDecimal]
    total_deposit_usd: Mapped[BigDecimal]
    total_borrow_usd: Mapped[BigDecimal]
    input_token_balance: Mapped[BigInteger]
    input_token_price_usd: Mapped[BigDecimal]
    output_token_supply: Mapped[BigInteger]
    output_token_price_usd: Mapped[BigDecimal]
    deposit_rate: Mapped[BigDecimal]
    variable_borrow_rate: Mapped[BigDecimal]

    block_number: Mapped[int]
    timestamp: Mapped[int]


class FinancialsDailySnapshotTable(Base):
    """
    Protocol-wide financials for a day, keyed by "{day}". Totals are overwritten with the latest
    protocol values; revenue lines accumulate across the day's accruals.
    """

    __tablename__ = "financials_daily_snapshots"

    id: Mapped[PrimaryKeyId]
    day: Mapped[int] = mapped_column(index=True)
    protocol_id: Mapped[ForeignKeyProtocolId]

    total_value_locked_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)
    total_deposit_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)
    total_borrow_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)
    total_revenue_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)
    protocol_side_revenue_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)
    supply_side_revenue_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)

    # Last height folded into the revenue lines
    block_number: Mapped[int]
    timestamp: Mapped[int]


class UsageMetricsDailySnapshotTable(Base):
    __tablename__ = "usage_metrics_daily_snapshots"

    id: Mapped[PrimaryKeyId]
    protocol_id: Mapped[ForeignKeyProtocolId]

    active_users: Mapped[int] = mapped_column(default=0)
    total_unique_users: Mapped[int] = mapped_column(default=0)
    daily_transaction_count: Mapped[int] = mapped_column(default=0)

    block_number: Mapped[int]
    timestamp: Mapped[int]


class DailyActiveAccountTable(Base):
    """
    Marker recording that an account was active on a day, keyed by "{day}-{account}".
    """

    __tablename__ = "daily_active_accounts"

    id: Mapped[PrimaryKeyId]
