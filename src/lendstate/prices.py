"""
USD price resolution for a market's underlying asset.

The deployment has used three price sources over its lifetime, selected purely by block height:

    LEGACY                     block <= legacy_oracle_end_block
        The original oracle, queried by underlying asset address. Answers in ETH, scaled by 1e18.

    VERSIONED_BEFORE_CUTOVER   legacy_oracle_end_block < block <= eth_pricing_end_block
        The Comptroller's current oracle, queried by pool token address. Answers in ETH, scaled by
        10**(36 - underlying decimals).

    VERSIONED_AFTER_CUTOVER    block > eth_pricing_end_block
        Same query and scaling as above, but the oracle answers in USD.

ETH-denominated prices are converted to USD through the reference stablecoin's ETH price at the
same block. A failed query resolves to a zero price, never an exception.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import ClassVar, Protocol

from lendstate.constants import MANTISSA_FACTOR
from lendstate.deployments import LendingDeployment
from lendstate.fixed_point import ONE, ZERO, mantissa_to_decimal, truncate
from lendstate.introspection import MarketReader
from lendstate.logging import logger
from lendstate.types import BlockNumber


class PriceSourceVariant(Enum):
    LEGACY = "legacy"
    VERSIONED_BEFORE_CUTOVER = "versioned-before-cutover"
    VERSIONED_AFTER_CUTOVER = "versioned-after-cutover"

    @property
    def is_eth_denominated(self) -> bool:
        return self is not PriceSourceVariant.VERSIONED_AFTER_CUTOVER


def select_price_source(
    block_number: BlockNumber,
    deployment: LendingDeployment,
) -> PriceSourceVariant:
    if block_number <= deployment.legacy_oracle_end_block:
        return PriceSourceVariant.LEGACY
    if block_number <= deployment.eth_pricing_end_block:
        return PriceSourceVariant.VERSIONED_BEFORE_CUTOVER
    return PriceSourceVariant.VERSIONED_AFTER_CUTOVER


class PriceSource(Protocol):
    """Protocol for a price source query and its normalization."""

    def query(
        self,
        reader: MarketReader,
        pool_token: str,
        underlying: str,
        underlying_decimals: int,
        block_number: BlockNumber,
    ) -> Decimal: ...


@dataclass(frozen=True, slots=True)
class LegacyPriceSource:
    """The original oracle, keyed by underlying asset. Prices carry a fixed 18 decimal mantissa."""

    oracle: str

    def query(
        self,
        reader: MarketReader,
        pool_token: str,  # noqa: ARG002
        underlying: str,
        underlying_decimals: int,  # noqa: ARG002
        block_number: BlockNumber,
    ) -> Decimal:
        result = reader.get_price(self.oracle, underlying, block_number)
        if result.is_reverted:
            logger.warning(
                f"[LegacyPriceSource] getPrice({underlying}) failed at block {block_number}"
            )
        return mantissa_to_decimal(result.value_or(0))


@dataclass(frozen=True, slots=True)
class VersionedPriceSource:
    """
    The Comptroller's configured oracle, keyed by pool token. The raw price is scaled so that one
    whole unit of the underlying is priced with an 18 decimal mantissa.
    """

    oracle: str | None

    def query(
        self,
        reader: MarketReader,
        pool_token: str,
        underlying: str,  # noqa: ARG002
        underlying_decimals: int,
        block_number: BlockNumber,
    ) -> Decimal:
        if self.oracle is None:
            logger.warning(
                f"[VersionedPriceSource] No price oracle has been set, cannot price {pool_token}"
            )
            return ZERO

        result = reader.get_underlying_price(self.oracle, pool_token, block_number)
        if result.is_reverted:
            logger.warning(
                f"[VersionedPriceSource] getUnderlyingPrice({pool_token}) failed at block "
                f"{block_number}"
            )
        return mantissa_to_decimal(
            result.value_or(0),
            MANTISSA_FACTOR - underlying_decimals + MANTISSA_FACTOR,
        )


class PriceSourceFactory:
    """Factory for creating price sources by variant."""

    PRICE_SOURCES: ClassVar[
        dict[PriceSourceVariant, type[LegacyPriceSource] | type[VersionedPriceSource]]
    ] = {
        PriceSourceVariant.LEGACY: LegacyPriceSource,
        PriceSourceVariant.VERSIONED_BEFORE_CUTOVER: VersionedPriceSource,
        PriceSourceVariant.VERSIONED_AFTER_CUTOVER: VersionedPriceSource,
    }

    @classmethod
    def get_price_source(
        cls,
        variant: PriceSourceVariant,
        deployment: LendingDeployment,
        price_oracle: str | None,
    ) -> PriceSource:
        source_class = cls.PRICE_SOURCES.get(variant)
        if source_class is None:
            msg = f"No price source for variant {variant}"
            raise ValueError(msg)

        oracle = (
            deployment.legacy_price_oracle
            if variant is PriceSourceVariant.LEGACY
            else price_oracle
        )
        logger.debug(f"Using {source_class.__name__} ({oracle}) for variant {variant.name}")
        return source_class(oracle=oracle)


class PriceResolver:
    """
    Resolves USD prices for a deployment. The current versioned oracle address is passed per call,
    since it changes over the life of the protocol.
    """

    def __init__(self, reader: MarketReader, deployment: LendingDeployment) -> None:
        self.reader = reader
        self.deployment = deployment

    def _query(
        self,
        variant: PriceSourceVariant,
        price_oracle: str | None,
        pool_token: str,
        underlying: str,
        underlying_decimals: int,
        block_number: BlockNumber,
    ) -> Decimal:
        return PriceSourceFactory.get_price_source(
            variant=variant,
            deployment=self.deployment,
            price_oracle=price_oracle,
        ).query(
            reader=self.reader,
            pool_token=pool_token,
            underlying=underlying,
            underlying_decimals=underlying_decimals,
            block_number=block_number,
        )

    def resolve_price_usd(
        self,
        pool_token: str,
        underlying: str,
        underlying_decimals: int,
        block_number: BlockNumber,
        price_oracle: str | None,
    ) -> Decimal:
        variant = select_price_source(block_number, self.deployment)

        if not variant.is_eth_denominated:
            return self._query(
                variant, price_oracle, pool_token, underlying, underlying_decimals, block_number
            )

        reference_price_eth = self._query(
            variant,
            price_oracle,
            self.deployment.reference_pool_token,
            self.deployment.reference_token,
            self.deployment.reference_token_decimals,
            block_number,
        )

        if reference_price_eth == ZERO:
            logger.warning(
                f"[resolve_price_usd] Reference price is zero at block {block_number}, cannot "
                f"convert {pool_token} to USD"
            )
            return ZERO

        # The native asset is priced at exactly 1 ETH, so only the reference rate applies
        price_eth = (
            ONE
            if pool_token == self.deployment.native_pool_token
            else self._query(
                variant, price_oracle, pool_token, underlying, underlying_decimals, block_number
            )
        )

        try:
            return truncate(
                truncate(price_eth, underlying_decimals) / reference_price_eth,
                underlying_decimals,
            )
        except InvalidOperation:
            # The quotient has more digits than the decimal context can hold
            logger.warning(
                f"[resolve_price_usd] Price of {pool_token} at block {block_number} is out of "
                f"range ({price_eth} ETH at {reference_price_eth} ETH per USD)"
            )
            return ZERO
