"""
Point-in-time contract reads against pool tokens, ERC-20 tokens, the Comptroller and price sources.

Every read is pinned to a block and returns a `CallResult`. A reverted or undecodable call, or one
that never reaches the node, is reported as `CallResult.reverted(...)` instead of raising, and is
never retried.
"""

from typing import Any, Protocol

from eth_abi.exceptions import DecodingError
from requests.exceptions import RequestException
from web3 import Web3
from web3._utils.threads import Timeout
from web3.exceptions import Web3Exception

from lendstate.checksum_cache import get_checksum_address
from lendstate.functions import encode_function_calldata, raw_call
from lendstate.logging import logger
from lendstate.types import BlockNumber, CallResult


class MarketReader(Protocol):
    """Protocol for the contract reads consumed by the state engine."""

    def underlying(self, pool_token: str, block_number: BlockNumber) -> CallResult[str]: ...
    def name(self, token: str, block_number: BlockNumber) -> CallResult[str]: ...
    def symbol(self, token: str, block_number: BlockNumber) -> CallResult[str]: ...
    def decimals(self, token: str, block_number: BlockNumber) -> CallResult[int]: ...
    def total_supply(self, pool_token: str, block_number: BlockNumber) -> CallResult[int]: ...
    def exchange_rate_stored(
        self, pool_token: str, block_number: BlockNumber
    ) -> CallResult[int]: ...
    def total_borrows(self, pool_token: str, block_number: BlockNumber) -> CallResult[int]: ...
    def supply_rate_per_block(
        self, pool_token: str, block_number: BlockNumber
    ) -> CallResult[int]: ...
    def borrow_rate_per_block(
        self, pool_token: str, block_number: BlockNumber
    ) -> CallResult[int]: ...
    def reserve_factor_mantissa(
        self, pool_token: str, block_number: BlockNumber
    ) -> CallResult[int]: ...
    def liquidation_incentive_mantissa(
        self, comptroller: str, block_number: BlockNumber
    ) -> CallResult[int]: ...
    def get_underlying_price(
        self, oracle: str, pool_token: str, block_number: BlockNumber
    ) -> CallResult[int]: ...
    def get_price(self, oracle: str, asset: str, block_number: BlockNumber) -> CallResult[int]: ...


class Web3MarketReader:
    """
    `MarketReader` backed by `eth_call` against a Web3 connection.
    """

    def __init__(self, w3: Web3) -> None:
        self.w3 = w3

    def _call(
        self,
        address: str,
        function_prototype: str,
        function_arguments: list[Any] | None,
        return_type: str,
        block_number: BlockNumber,
    ) -> CallResult[Any]:
        try:
            (result,) = raw_call(
                w3=self.w3,
                address=get_checksum_address(address),
                calldata=encode_function_calldata(
                    function_prototype=function_prototype,
                    function_arguments=function_arguments,
                ),
                return_types=[return_type],
                block_identifier=block_number,
            )
        except (Web3Exception, DecodingError) as exc:
            logger.debug(f"Call to {function_prototype} at {address} reverted: {exc}")
            return CallResult.reverted(str(exc))
        except (RequestException, Timeout, OSError) as exc:
            logger.warning(f"Call to {function_prototype} at {address} failed in transport: {exc}")
            return CallResult.reverted(str(exc))

        return CallResult.ok(result)

    def underlying(self, pool_token: str, block_number: BlockNumber) -> CallResult[str]:
        result = self._call(pool_token, "underlying()", None, "address", block_number)
        if result.is_reverted:
            return result
        return CallResult.ok(result.unwrap().lower())

    def name(self, token: str, block_number: BlockNumber) -> CallResult[str]:
        return self._call(token, "name()", None, "string", block_number)

    def symbol(self, token: str, block_number: BlockNumber) -> CallResult[str]:
        return self._call(token, "symbol()", None, "string", block_number)

    def decimals(self, token: str, block_number: BlockNumber) -> CallResult[int]:
        return self._call(token, "decimals()", None, "uint8", block_number)

    def total_supply(self, pool_token: str, block_number: BlockNumber) -> CallResult[int]:
        return self._call(pool_token, "totalSupply()", None, "uint256", block_number)

    def exchange_rate_stored(self, pool_token: str, block_number: BlockNumber) -> CallResult[int]:
        return self._call(pool_token, "exchangeRateStored()", None, "uint256", block_number)

    def total_borrows(self, pool_token: str, block_number: BlockNumber) -> CallResult[int]:
        return self._call(pool_token, "totalBorrows()", None, "uint256", block_number)

    def supply_rate_per_block(self, pool_token: str, block_number: BlockNumber) -> CallResult[int]:
        return self._call(pool_token, "supplyRatePerBlock()", None, "uint256", block_number)

    def borrow_rate_per_block(self, pool_token: str, block_number: BlockNumber) -> CallResult[int]:
        return self._call(pool_token, "borrowRatePerBlock()", None, "uint256", block_number)

    def reserve_factor_mantissa(
        self, pool_token: str, block_number: BlockNumber
    ) -> CallResult[int]:
        return self._call(pool_token, "reserveFactorMantissa()", None, "uint256", block_number)

    def liquidation_incentive_mantissa(
        self, comptroller: str, block_number: BlockNumber
    ) -> CallResult[int]:
        return self._call(
            comptroller, "liquidationIncentiveMantissa()", None, "uint256", block_number
        )

    def get_underlying_price(
        self, oracle: str, pool_token: str, block_number: BlockNumber
    ) -> CallResult[int]:
        return self._call(
            oracle,
            "getUnderlyingPrice(address)",
            [get_checksum_address(pool_token)],
            "uint256",
            block_number,
        )

    def get_price(self, oracle: str, asset: str, block_number: BlockNumber) -> CallResult[int]:
        return self._call(
            oracle,
            "getPrice(address)",
            [get_checksum_address(asset)],
            "uint256",
            block_number,
        )
