from collections.abc import Iterator

from lendstate.context import LendingContext
from lendstate.database.models import MarketTable, ProtocolTable
from lendstate.exceptions import ProtocolNotFound
from lendstate.fixed_point import ZERO, mantissa_to_decimal
from lendstate.logging import logger
from lendstate.types import BlockNumber


def get_protocol(context: LendingContext, operation: str) -> ProtocolTable:
    """
    Load the protocol singleton, which must already exist.

    Raises ProtocolNotFound if it does not.
    """

    if (protocol := context.session.get(ProtocolTable, context.protocol_id)) is None:
        raise ProtocolNotFound(operation=operation)
    return protocol


def get_or_create_protocol(context: LendingContext, block_number: BlockNumber) -> ProtocolTable:
    """
    Get the protocol singleton, creating it from the deployment description on first reference.
    """

    session = context.session
    if (protocol := session.get(ProtocolTable, context.protocol_id)) is None:
        deployment = context.deployment

        liquidation_incentive = context.reader.liquidation_incentive_mantissa(
            deployment.comptroller, block_number
        )
        if liquidation_incentive.is_reverted:
            logger.warning(
                f"[get_or_create_protocol] Failed to get liquidationIncentiveMantissa of "
                f"Comptroller {deployment.comptroller}"
            )

        protocol = ProtocolTable(
            id=context.protocol_id,
            name=deployment.name,
            slug=deployment.slug,
            schema_version=deployment.schema_version,
            subgraph_version=deployment.subgraph_version,
            methodology_version=deployment.methodology_version,
            network=deployment.network,
            type=deployment.protocol_type,
            lending_type=deployment.lending_type,
            risk_type=deployment.risk_type,
            market_ids=[],
            price_oracle=None,
            liquidation_incentive=mantissa_to_decimal(liquidation_incentive.value_or(0)),
        )
        session.add(protocol)
        session.flush()
        logger.info(f"Created protocol {deployment.name} at {protocol.id}")

    return protocol


def iter_listed_markets(
    context: LendingContext,
    protocol: ProtocolTable,
    operation: str,
) -> Iterator[MarketTable]:
    """
    Yield the protocol's markets in listing order, skipping any listed ID that is not in storage.
    """

    for market_id in protocol.market_ids:
        if (market := context.session.get(MarketTable, market_id)) is None:
            logger.warning(f"[{operation}] Market not found: {market_id}")
            continue
        yield market


def update_protocol(context: LendingContext) -> None:
    """
    Re-sum the protocol totals over all listed markets.
    """

    protocol = get_protocol(context, "update_protocol")

    total_value_locked_usd = ZERO
    total_deposit_usd = ZERO
    total_borrow_usd = ZERO
    for market in iter_listed_markets(context, protocol, "update_protocol"):
        total_value_locked_usd += market.total_value_locked_usd
        total_deposit_usd += market.total_deposit_usd
        total_borrow_usd += market.total_borrow_usd

    protocol.total_value_locked_usd = total_value_locked_usd
    protocol.total_deposit_usd = total_deposit_usd
    protocol.total_borrow_usd = total_borrow_usd


def set_price_oracle(context: LendingContext, price_oracle: str, block_number: BlockNumber) -> None:
    protocol = get_or_create_protocol(context, block_number)
    protocol.price_oracle = price_oracle
    logger.info(f"Price oracle set to {price_oracle} at block {block_number}")


def set_liquidation_incentive(
    context: LendingContext,
    liquidation_incentive_mantissa: int,
    block_number: BlockNumber,
) -> None:
    """
    Record the new liquidation incentive on the protocol, and apply it as the liquidation penalty of
    every listed market.
    """

    protocol = get_or_create_protocol(context, block_number)
    liquidation_incentive = mantissa_to_decimal(liquidation_incentive_mantissa)
    protocol.liquidation_incentive = liquidation_incentive

    for market in iter_listed_markets(context, protocol, "set_liquidation_incentive"):
        market.liquidation_penalty = liquidation_incentive
