"""
Event handlers. Each handler translates one typed event into state changes.

Transaction handlers (mint, redeem, borrow, repay, liquidate) value amounts at the market's stored
input token price, which is only refreshed by interest accrual. They never query a price source.
"""

from collections.abc import Callable
from decimal import Decimal
from typing import Any

from lendstate.constants import POOL_TOKEN_DECIMALS
from lendstate.context import LendingContext
from lendstate.database.models import (
    BorrowTable,
    DepositTable,
    LiquidateTable,
    MarketTable,
    RepayTable,
    TokenTable,
    WithdrawTable,
)
from lendstate.database.models.transactions import TransactionRecordMixin
from lendstate.events import (
    AccrueInterestEvent,
    BorrowEvent,
    EventMeta,
    LiquidateBorrowEvent,
    MarketListedEvent,
    MintEvent,
    NewCollateralFactorEvent,
    NewLiquidationIncentiveEvent,
    NewPriceOracleEvent,
    NewReserveFactorEvent,
    RedeemEvent,
    RepayBorrowEvent,
)
from lendstate.fixed_point import amount_to_decimal
from lendstate.logging import logger
from lendstate.market import list_market, set_collateral_factor, set_reserve_factor, update_market
from lendstate.protocol import (
    get_or_create_protocol,
    set_liquidation_incentive,
    set_price_oracle,
    update_protocol,
)
from lendstate.snapshots import snapshot_financials, snapshot_market, snapshot_usage


def _is_recorded(
    context: LendingContext,
    table: type[TransactionRecordMixin],
    meta: EventMeta,
) -> bool:
    """
    Check whether the event has already produced its transaction record. A re-delivered event is
    skipped entirely, so its balance change is never applied twice.
    """

    if context.session.get(table, meta.record_id) is not None:
        logger.debug(f"Skipping re-delivered event {meta.record_id}")
        return True
    return False


def _load_market_with_input_token(
    context: LendingContext,
    operation: str,
    market_id: str,
) -> tuple[MarketTable, TokenTable] | None:
    if (market := context.session.get(MarketTable, market_id)) is None:
        logger.warning(f"[{operation}] Market not found: {market_id}")
        return None
    if market.input_token_id is None:
        logger.warning(f"[{operation}] Market {market_id} has no input tokens")
        return None
    if (underlying := market.input_token) is None:
        logger.warning(f"[{operation}] Failed to load underlying token: {market.input_token_id}")
        return None
    return market, underlying


def _amount_usd(market: MarketTable, underlying: TokenTable, amount: int) -> Decimal:
    return market.input_token_price_usd * amount_to_decimal(amount, underlying.decimals)


def _record_fields(
    context: LendingContext,
    meta: EventMeta,
    market: MarketTable,
) -> dict[str, Any]:
    protocol = get_or_create_protocol(context, meta.block_number)
    return {
        "id": meta.record_id,
        "hash": meta.transaction_hash,
        "log_index": meta.log_index,
        "protocol_id": protocol.id,
        "block_number": meta.block_number,
        "timestamp": meta.timestamp,
        "market_id": market.id,
    }


def process_new_price_oracle_event(context: LendingContext, event: NewPriceOracleEvent) -> None:
    set_price_oracle(context, event.new_price_oracle, event.meta.block_number)


def process_market_listed_event(context: LendingContext, event: MarketListedEvent) -> None:
    list_market(
        context,
        pool_token=event.pool_token,
        block_number=event.meta.block_number,
        timestamp=event.meta.timestamp,
    )


def process_new_collateral_factor_event(
    context: LendingContext, event: NewCollateralFactorEvent
) -> None:
    set_collateral_factor(context, event.pool_token, event.new_collateral_factor_mantissa)


def process_new_liquidation_incentive_event(
    context: LendingContext, event: NewLiquidationIncentiveEvent
) -> None:
    set_liquidation_incentive(
        context, event.new_liquidation_incentive_mantissa, event.meta.block_number
    )


def process_new_reserve_factor_event(context: LendingContext, event: NewReserveFactorEvent) -> None:
    set_reserve_factor(context, event.meta.address, event.new_reserve_factor_mantissa)


def process_mint_event(context: LendingContext, event: MintEvent) -> None:
    """
    Record a deposit and add the underlying amount to the market balance.
    """

    meta = event.meta
    if _is_recorded(context, DepositTable, meta):
        return
    if (
        loaded := _load_market_with_input_token(context, "process_mint_event", meta.address)
    ) is None:
        return
    market, underlying = loaded

    context.session.add(
        DepositTable(
            **_record_fields(context, meta, market),
            to=market.id,
            from_=event.minter,
            asset_id=underlying.id,
            amount=event.mint_amount,
            amount_usd=_amount_usd(market, underlying, event.mint_amount),
        )
    )
    market.input_token_balance += event.mint_amount

    snapshot_usage(context, event.minter, meta.block_number, meta.timestamp)


def process_redeem_event(context: LendingContext, event: RedeemEvent) -> None:
    """
    Record a withdrawal and subtract the underlying amount from the market balance.
    """

    meta = event.meta
    if _is_recorded(context, WithdrawTable, meta):
        return
    if (
        loaded := _load_market_with_input_token(context, "process_redeem_event", meta.address)
    ) is None:
        return
    market, underlying = loaded

    context.session.add(
        WithdrawTable(
            **_record_fields(context, meta, market),
            to=event.redeemer,
            from_=market.id,
            asset_id=underlying.id,
            amount=event.redeem_amount,
            amount_usd=_amount_usd(market, underlying, event.redeem_amount),
        )
    )
    market.input_token_balance -= event.redeem_amount

    snapshot_usage(context, event.redeemer, meta.block_number, meta.timestamp)


def process_borrow_event(context: LendingContext, event: BorrowEvent) -> None:
    meta = event.meta
    if _is_recorded(context, BorrowTable, meta):
        return
    if (
        loaded := _load_market_with_input_token(context, "process_borrow_event", meta.address)
    ) is None:
        return
    market, underlying = loaded

    context.session.add(
        BorrowTable(
            **_record_fields(context, meta, market),
            to=event.borrower,
            from_=market.id,
            asset_id=underlying.id,
            amount=event.borrow_amount,
            amount_usd=_amount_usd(market, underlying, event.borrow_amount),
        )
    )

    snapshot_usage(context, event.borrower, meta.block_number, meta.timestamp)


def process_repay_borrow_event(context: LendingContext, event: RepayBorrowEvent) -> None:
    meta = event.meta
    if _is_recorded(context, RepayTable, meta):
        return
    if (
        loaded := _load_market_with_input_token(
            context, "process_repay_borrow_event", meta.address
        )
    ) is None:
        return
    market, underlying = loaded

    context.session.add(
        RepayTable(
            **_record_fields(context, meta, market),
            to=market.id,
            from_=event.payer,
            asset_id=underlying.id,
            amount=event.repay_amount,
            amount_usd=_amount_usd(market, underlying, event.repay_amount),
        )
    )

    snapshot_usage(context, event.payer, meta.block_number, meta.timestamp)


def process_liquidate_borrow_event(context: LendingContext, event: LiquidateBorrowEvent) -> None:
    """
    Record a liquidation on the repaid market.

    The gain is the value of the seized collateral pool tokens, the loss is the value of the repaid
    underlying, and the profit is their difference. Both markets must be loadable, otherwise no
    record is written.
    """

    meta = event.meta
    if _is_recorded(context, LiquidateTable, meta):
        return
    if (
        loaded := _load_market_with_input_token(
            context, "process_liquidate_borrow_event", meta.address
        )
    ) is None:
        return
    repay_market, repay_token = loaded

    collateral_market_id = event.collateral_pool_token
    if (collateral_market := context.session.get(MarketTable, collateral_market_id)) is None:
        logger.warning(
            f"[process_liquidate_borrow_event] Liquidated pool token market not found: "
            f"{collateral_market_id}"
        )
        return
    if collateral_market.output_token_id is None:
        logger.warning(
            f"[process_liquidate_borrow_event] Liquidated pool token market "
            f"{collateral_market_id} has no output token"
        )
        return

    gain_usd = (
        amount_to_decimal(event.seize_tokens, POOL_TOKEN_DECIMALS)
        * collateral_market.output_token_price_usd
    )
    loss_usd = _amount_usd(repay_market, repay_token, event.repay_amount)

    context.session.add(
        LiquidateTable(
            **_record_fields(context, meta, repay_market),
            to=repay_market.id,
            from_=event.liquidator,
            asset_id=collateral_market.output_token_id,
            amount=event.seize_tokens,
            amount_usd=gain_usd,
            loss_usd=loss_usd,
            profit_usd=gain_usd - loss_usd,
        )
    )

    snapshot_usage(context, event.liquidator, meta.block_number, meta.timestamp)


def process_accrue_interest_event(context: LendingContext, event: AccrueInterestEvent) -> None:
    """
    Refresh the market, then the protocol totals, then the snapshots that copy them.
    """

    meta = event.meta
    update_market(context, meta.address, meta.block_number)
    update_protocol(context)
    snapshot_market(context, meta.address, meta.block_number, meta.timestamp)
    snapshot_financials(context, meta.block_number, meta.timestamp)


EVENT_HANDLERS: dict[type[Any], Callable[[LendingContext, Any], None]] = {
    NewPriceOracleEvent: process_new_price_oracle_event,
    MarketListedEvent: process_market_listed_event,
    NewCollateralFactorEvent: process_new_collateral_factor_event,
    NewLiquidationIncentiveEvent: process_new_liquidation_incentive_event,
    NewReserveFactorEvent: process_new_reserve_factor_event,
    MintEvent: process_mint_event,
    RedeemEvent: process_redeem_event,
    BorrowEvent: process_borrow_event,
    RepayBorrowEvent: process_repay_borrow_event,
    LiquidateBorrowEvent: process_liquidate_borrow_event,
    AccrueInterestEvent: process_accrue_interest_event,
}
