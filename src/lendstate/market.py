"""
Market lifecycle and derived state.

A market is created when its pool token is listed, has its risk parameters set by governance events,
and has its derived fields (prices, totals, rates and per-block revenue) recomputed from contract
state on every interest accrual.

Derived field refresh is fault tolerant per field: a failed contract read logs a warning and leaves
that field's prior value in place, while the rest of the refresh continues.
"""

from decimal import Decimal
from typing import Protocol

from lendstate.constants import MANTISSA_FACTOR, POOL_TOKEN_DECIMALS, UNKNOWN_NAME, UNKNOWN_SYMBOL
from lendstate.context import LendingContext
from lendstate.database.models import MarketTable, TokenTable
from lendstate.fixed_point import (
    ZERO,
    amount_to_decimal,
    mantissa_to_decimal,
    rate_per_block_to_apy,
)
from lendstate.logging import logger
from lendstate.protocol import get_or_create_protocol, get_protocol
from lendstate.types import BlockNumber, PricingMode, Timestamp


class MarketValuation(Protocol):
    """Protocol for the source of a market's underlying USD price during a refresh."""

    def underlying_price_usd(
        self,
        context: LendingContext,
        market: MarketTable,
        underlying: TokenTable,
        block_number: BlockNumber,
    ) -> Decimal: ...


class PriceAwareValuation:
    """Resolve the price from the price source active at the refresh block."""

    def underlying_price_usd(
        self,
        context: LendingContext,
        market: MarketTable,
        underlying: TokenTable,
        block_number: BlockNumber,
    ) -> Decimal:
        protocol = get_protocol(context, "update_market")
        return context.price_resolver.resolve_price_usd(
            pool_token=market.id,
            underlying=underlying.id,
            underlying_decimals=underlying.decimals,
            block_number=block_number,
            price_oracle=protocol.price_oracle,
        )


class BalanceOnlyValuation:
    """Never query a price source. The stored price is carried forward unchanged."""

    def underlying_price_usd(
        self,
        context: LendingContext,  # noqa: ARG002
        market: MarketTable,
        underlying: TokenTable,  # noqa: ARG002
        block_number: BlockNumber,  # noqa: ARG002
    ) -> Decimal:
        return market.input_token_price_usd


VALUATIONS: dict[PricingMode, MarketValuation] = {
    PricingMode.PRICE_AWARE: PriceAwareValuation(),
    PricingMode.BALANCE_ONLY: BalanceOnlyValuation(),
}


def _warn_failed_read(function_name: str, market_id: str) -> None:
    logger.warning(f"[update_market] Failed to get {function_name} of Market {market_id}")


def update_market(context: LendingContext, market_id: str, block_number: BlockNumber) -> None:
    """
    Recompute the market's derived fields from contract state at the given block.

    A block at or below the market's last accrual block is a replay and does nothing.
    """

    session = context.session
    reader = context.reader

    if (market := session.get(MarketTable, market_id)) is None:
        logger.warning(f"[update_market] Market not found: {market_id}")
        return

    if block_number <= market.accrual_block_number:
        return

    if (underlying := market.input_token) is None:
        logger.warning(f"[update_market] Underlying token not found for Market {market_id}")
        return

    underlying_price_usd = VALUATIONS[context.mode].underlying_price_usd(
        context=context,
        market=market,
        underlying=underlying,
        block_number=block_number,
    )
    market.input_token_price_usd = underlying_price_usd

    total_supply = reader.total_supply(market_id, block_number)
    if total_supply.is_reverted:
        _warn_failed_read("totalSupply", market_id)
    else:
        market.output_token_supply = total_supply.unwrap()

    # Pooled lending treats every deposited unit as locked
    underlying_supply_usd = (
        amount_to_decimal(market.input_token_balance, underlying.decimals) * underlying_price_usd
    )
    market.total_value_locked_usd = underlying_supply_usd
    market.total_deposit_usd = underlying_supply_usd

    exchange_rate = reader.exchange_rate_stored(market_id, block_number)
    if exchange_rate.is_reverted:
        _warn_failed_read("exchangeRateStored", market_id)
    else:
        one_pool_token_in_underlying = mantissa_to_decimal(
            exchange_rate.unwrap(),
            MANTISSA_FACTOR + underlying.decimals - POOL_TOKEN_DECIMALS,
        )
        market.output_token_price_usd = one_pool_token_in_underlying * underlying_price_usd

    # Includes accrued interest
    total_borrows = reader.total_borrows(market_id, block_number)
    total_borrow_usd = ZERO
    if total_borrows.is_reverted:
        _warn_failed_read("totalBorrows", market_id)
    else:
        total_borrow_usd = (
            amount_to_decimal(total_borrows.unwrap(), underlying.decimals) * underlying_price_usd
        )
        market.total_borrow_usd = total_borrow_usd

    supply_rate = reader.supply_rate_per_block(market_id, block_number)
    if supply_rate.is_reverted:
        _warn_failed_read("supplyRatePerBlock", market_id)
    else:
        market.deposit_rate = rate_per_block_to_apy(supply_rate.unwrap())

    borrow_rate = reader.borrow_rate_per_block(market_id, block_number)
    borrow_rate_per_block = ZERO
    if borrow_rate.is_reverted:
        _warn_failed_read("borrowRatePerBlock", market_id)
    else:
        market.variable_borrow_rate = rate_per_block_to_apy(borrow_rate.unwrap())
        borrow_rate_per_block = mantissa_to_decimal(borrow_rate.unwrap())

    # Interest accumulated per block = total borrows * borrow rate per block
    total_revenue_usd_per_block = total_borrow_usd * borrow_rate_per_block
    protocol_side_revenue_usd_per_block = total_revenue_usd_per_block * market.reserve_factor
    market.total_revenue_usd_per_block = total_revenue_usd_per_block
    market.protocol_side_revenue_usd_per_block = protocol_side_revenue_usd_per_block
    market.supply_side_revenue_usd_per_block = (
        total_revenue_usd_per_block - protocol_side_revenue_usd_per_block
    )

    market.accrual_block_number = block_number


def _get_or_create_token(
    context: LendingContext,
    address: str,
    name: str,
    symbol: str,
    decimals: int,
) -> TokenTable:
    """
    Get existing token or create new one.
    """

    session = context.session
    if (token := session.get(TokenTable, address)) is None:
        token = TokenTable(id=address, name=name, symbol=symbol, decimals=decimals)
        session.add(token)
        session.flush()
    return token


def _describe_underlying(
    context: LendingContext,
    address: str,
    block_number: BlockNumber,
) -> tuple[str, str, int]:
    deployment = context.deployment

    if address == deployment.native_underlying:
        return deployment.native_name, deployment.native_symbol, 18

    # Some early tokens do not implement name() and symbol()
    if (hardcoded := deployment.hardcoded_token(address)) is not None:
        return hardcoded

    reader = context.reader
    return (
        reader.name(address, block_number).value_or(UNKNOWN_NAME),
        reader.symbol(address, block_number).value_or(UNKNOWN_SYMBOL),
        reader.decimals(address, block_number).value_or(0),
    )


def list_market(
    context: LendingContext,
    pool_token: str,
    block_number: BlockNumber,
    timestamp: Timestamp,
) -> MarketTable | None:
    """
    Create the pool token, its underlying token and the market for a newly listed pool token, then
    append the market to the protocol's market list.

    Listing an existing pool token does nothing. Returns the new market, or None if the listing was
    skipped.
    """

    session = context.session
    reader = context.reader
    deployment = context.deployment

    if session.get(TokenTable, pool_token) is not None:
        return None

    if pool_token == deployment.native_pool_token:
        underlying_address = deployment.native_underlying
        pool_token_name = deployment.native_pool_token_name
        pool_token_symbol = deployment.native_pool_token_symbol
    else:
        underlying_result = reader.underlying(pool_token, block_number)
        if underlying_result.is_reverted:
            logger.warning(
                f"[list_market] Could not fetch underlying token of pool token: {pool_token}"
            )
            return None
        underlying_address = underlying_result.unwrap()
        pool_token_name = reader.name(pool_token, block_number).value_or(UNKNOWN_NAME)
        pool_token_symbol = reader.symbol(pool_token, block_number).value_or(UNKNOWN_SYMBOL)

    output_token = _get_or_create_token(
        context,
        address=pool_token,
        name=pool_token_name,
        symbol=pool_token_symbol,
        decimals=POOL_TOKEN_DECIMALS,
    )

    underlying_name, underlying_symbol, underlying_decimals = _describe_underlying(
        context, underlying_address, block_number
    )
    input_token = _get_or_create_token(
        context,
        address=underlying_address,
        name=underlying_name,
        symbol=underlying_symbol,
        decimals=underlying_decimals,
    )

    protocol = get_or_create_protocol(context, block_number)

    reserve_factor = reader.reserve_factor_mantissa(pool_token, block_number)
    if reserve_factor.is_reverted:
        logger.warning(f"[list_market] Failed to get reserveFactorMantissa of Market {pool_token}")

    market = MarketTable(
        id=pool_token,
        protocol_id=protocol.id,
        name=output_token.name,
        input_token_id=input_token.id,
        input_token_balance=0,
        input_token_price_usd=ZERO,
        output_token_id=output_token.id,
        created_timestamp=timestamp,
        created_block_number=block_number,
        is_active=True,
        can_use_as_collateral=True,
        can_borrow_from=True,
        liquidation_penalty=protocol.liquidation_incentive,
        reserve_factor=mantissa_to_decimal(reserve_factor.value_or(0)),
    )
    session.add(market)
    session.flush()

    protocol.market_ids = [*protocol.market_ids, market.id]
    logger.info(
        f"Listed market {market.name} ({market.id}) with underlying {input_token.symbol} "
        f"({input_token.id}) at block {block_number}"
    )
    return market


def set_collateral_factor(
    context: LendingContext,
    market_id: str,
    collateral_factor_mantissa: int,
) -> None:
    if (market := context.session.get(MarketTable, market_id)) is None:
        logger.warning(f"[set_collateral_factor] Market not found: {market_id}")
        return

    collateral_factor = mantissa_to_decimal(collateral_factor_mantissa)
    market.maximum_ltv = collateral_factor
    market.liquidation_threshold = collateral_factor


def set_reserve_factor(
    context: LendingContext,
    market_id: str,
    reserve_factor_mantissa: int,
) -> None:
    if (market := context.session.get(MarketTable, market_id)) is None:
        logger.warning(f"[set_reserve_factor] Market not found: {market_id}")
        return

    market.reserve_factor = mantissa_to_decimal(reserve_factor_mantissa)
