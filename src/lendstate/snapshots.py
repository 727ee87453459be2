"""
Day-bucketed history for markets, protocol financials and usage.

Every snapshot is keyed by the day bucket of the triggering block's timestamp. Market and financials
snapshots copy the current aggregates with overwrite semantics, so repeated calls within a day keep
the latest values. Financials revenue lines are the exception: they accumulate the per-block revenue
rates over the blocks elapsed since the snapshot was last updated, holding the current rates
constant over that range.
"""

from sqlalchemy import select

from lendstate.constants import SECONDS_PER_DAY
from lendstate.context import LendingContext
from lendstate.database.models import (
    AccountTable,
    DailyActiveAccountTable,
    FinancialsDailySnapshotTable,
    MarketDailySnapshotTable,
    MarketTable,
    UsageMetricsDailySnapshotTable,
)
from lendstate.fixed_point import ZERO
from lendstate.logging import logger
from lendstate.protocol import get_protocol, iter_listed_markets
from lendstate.types import BlockNumber, DayBucket, Timestamp


def day_bucket(timestamp: Timestamp) -> DayBucket:
    return timestamp // SECONDS_PER_DAY


def snapshot_market(
    context: LendingContext,
    market_id: str,
    block_number: BlockNumber,
    timestamp: Timestamp,
) -> None:
    session = context.session

    if (market := session.get(MarketTable, market_id)) is None:
        logger.warning(f"[snapshot_market] Market not found: {market_id}")
        return

    snapshot_id = f"{market_id}-{day_bucket(timestamp)}"
    snapshot = session.get(MarketDailySnapshotTable, snapshot_id) or MarketDailySnapshotTable(
        id=snapshot_id,
        protocol_id=market.protocol_id,
        market_id=market.id,
    )

    snapshot.total_value_locked_usd = market.total_value_locked_usd
    snapshot.total_deposit_usd = market.total_deposit_usd
    snapshot.total_borrow_usd = market.total_borrow_usd
    snapshot.input_token_balance = market.input_token_balance
    snapshot.input_token_price_usd = market.input_token_price_usd
    snapshot.output_token_supply = market.output_token_supply
    snapshot.output_token_price_usd = market.output_token_price_usd
    snapshot.deposit_rate = market.deposit_rate
    snapshot.variable_borrow_rate = market.variable_borrow_rate
    snapshot.block_number = block_number
    snapshot.timestamp = timestamp
    session.add(snapshot)


def _get_or_create_financials_snapshot(
    context: LendingContext,
    protocol_id: str,
    block_number: BlockNumber,
    timestamp: Timestamp,
) -> FinancialsDailySnapshotTable:
    """
    Get the financials snapshot for the day, or create a new one. A new snapshot starts counting
    revenue from the last block recorded by the most recent earlier snapshot. The first snapshot
    ever starts from the given block.
    """

    session = context.session
    day = day_bucket(timestamp)

    if (snapshot := session.get(FinancialsDailySnapshotTable, str(day))) is None:
        previous_snapshot = session.scalar(
            select(FinancialsDailySnapshotTable)
            .where(
                FinancialsDailySnapshotTable.protocol_id == protocol_id,
                FinancialsDailySnapshotTable.day < day,
            )
            .order_by(FinancialsDailySnapshotTable.day.desc())
            .limit(1)
        )
        snapshot = FinancialsDailySnapshotTable(
            id=str(day),
            day=day,
            protocol_id=protocol_id,
            block_number=(
                block_number if previous_snapshot is None else previous_snapshot.block_number
            ),
            timestamp=timestamp,
        )
        session.add(snapshot)
        session.flush()
    return snapshot


def snapshot_financials(
    context: LendingContext,
    block_number: BlockNumber,
    timestamp: Timestamp,
) -> None:
    """
    Copy the protocol totals into the day's financials snapshot, and add the revenue accrued since
    the snapshot's last recorded block. A block at or below that height adds nothing.
    """

    protocol = get_protocol(context, "snapshot_financials")
    snapshot = _get_or_create_financials_snapshot(
        context,
        protocol_id=protocol.id,
        block_number=block_number,
        timestamp=timestamp,
    )

    snapshot.total_value_locked_usd = protocol.total_value_locked_usd
    snapshot.total_deposit_usd = protocol.total_deposit_usd
    snapshot.total_borrow_usd = protocol.total_borrow_usd

    if block_number <= snapshot.block_number:
        return

    block_delta = block_number - snapshot.block_number
    total_revenue_delta = ZERO
    protocol_side_revenue_delta = ZERO
    supply_side_revenue_delta = ZERO
    for market in iter_listed_markets(context, protocol, "snapshot_financials"):
        total_revenue_delta += market.total_revenue_usd_per_block * block_delta
        protocol_side_revenue_delta += market.protocol_side_revenue_usd_per_block * block_delta
        supply_side_revenue_delta += market.supply_side_revenue_usd_per_block * block_delta

    snapshot.total_revenue_usd += total_revenue_delta
    snapshot.protocol_side_revenue_usd += protocol_side_revenue_delta
    snapshot.supply_side_revenue_usd += supply_side_revenue_delta

    protocol.cumulative_total_revenue_usd += total_revenue_delta
    protocol.cumulative_protocol_side_revenue_usd += protocol_side_revenue_delta
    protocol.cumulative_supply_side_revenue_usd += supply_side_revenue_delta

    snapshot.block_number = block_number
    snapshot.timestamp = timestamp


def snapshot_usage(
    context: LendingContext,
    account_id: str,
    block_number: BlockNumber,
    timestamp: Timestamp,
) -> None:
    """
    Count one transaction by the account in the day's usage snapshot.

    The account is counted once per day as an active user, and once per lifetime as a unique user.
    """

    session = context.session
    protocol = get_protocol(context, "snapshot_usage")
    day = day_bucket(timestamp)

    if (snapshot := session.get(UsageMetricsDailySnapshotTable, str(day))) is None:
        snapshot = UsageMetricsDailySnapshotTable(
            id=str(day),
            protocol_id=protocol.id,
            active_users=0,
            total_unique_users=protocol.total_unique_users,
            daily_transaction_count=0,
            block_number=block_number,
            timestamp=timestamp,
        )
        session.add(snapshot)

    if session.get(AccountTable, account_id) is None:
        session.add(AccountTable(id=account_id))
        protocol.total_unique_users += 1

    daily_active_account_id = f"{day}-{account_id}"
    if session.get(DailyActiveAccountTable, daily_active_account_id) is None:
        session.add(DailyActiveAccountTable(id=daily_active_account_id))
        snapshot.active_users += 1

    snapshot.total_unique_users = protocol.total_unique_users
    snapshot.daily_transaction_count += 1
    snapshot.block_number = block_number
    snapshot.timestamp = timestamp
