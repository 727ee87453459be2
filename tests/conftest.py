import logging
from collections.abc import Generator
from typing import Any

import pytest
from sqlalchemy.orm import Session

from lendstate.context import LendingContext
from lendstate.database.operations import get_in_memory_session
from lendstate.deployments import EthereumMainnetCompoundV2, LendingDeployment
from lendstate.engine import LendingStateEngine
from lendstate.logging import logger
from lendstate.types import CallResult, PricingMode


class FakeMarketReader:
    """
    A MarketReader that serves canned results keyed by (function name, *addresses), e.g.
    `reader.results["total_supply", pool_token] = 1000`. Any read without a canned result reverts.

    Block numbers are ignored. Every read is logged to `calls`.
    """

    def __init__(self) -> None:
        self.results: dict[tuple[str, ...], Any] = {}
        self.calls: list[tuple[str, ...]] = []

    def _read(self, function: str, *addresses: str) -> CallResult[Any]:
        key = (function, *addresses)
        self.calls.append(key)
        if key not in self.results:
            return CallResult.reverted()
        return CallResult.ok(self.results[key])

    def underlying(self, pool_token: str, block_number: int) -> CallResult[str]:  # noqa: ARG002
        return self._read("underlying", pool_token)

    def name(self, token: str, block_number: int) -> CallResult[str]:  # noqa: ARG002
        return self._read("name", token)

    def symbol(self, token: str, block_number: int) -> CallResult[str]:  # noqa: ARG002
        return self._read("symbol", token)

    def decimals(self, token: str, block_number: int) -> CallResult[int]:  # noqa: ARG002
        return self._read("decimals", token)

    def total_supply(self, pool_token: str, block_number: int) -> CallResult[int]:  # noqa: ARG002
        return self._read("total_supply", pool_token)

    def exchange_rate_stored(
        self,
        pool_token: str,
        block_number: int,  # noqa: ARG002
    ) -> CallResult[int]:
        return self._read("exchange_rate_stored", pool_token)

    def total_borrows(self, pool_token: str, block_number: int) -> CallResult[int]:  # noqa: ARG002
        return self._read("total_borrows", pool_token)

    def supply_rate_per_block(
        self,
        pool_token: str,
        block_number: int,  # noqa: ARG002
    ) -> CallResult[int]:
        return self._read("supply_rate_per_block", pool_token)

    def borrow_rate_per_block(
        self,
        pool_token: str,
        block_number: int,  # noqa: ARG002
    ) -> CallResult[int]:
        return self._read("borrow_rate_per_block", pool_token)

    def reserve_factor_mantissa(
        self,
        pool_token: str,
        block_number: int,  # noqa: ARG002
    ) -> CallResult[int]:
        return self._read("reserve_factor_mantissa", pool_token)

    def liquidation_incentive_mantissa(
        self,
        comptroller: str,
        block_number: int,  # noqa: ARG002
    ) -> CallResult[int]:
        return self._read("liquidation_incentive_mantissa", comptroller)

    def get_underlying_price(
        self,
        oracle: str,
        pool_token: str,
        block_number: int,  # noqa: ARG002
    ) -> CallResult[int]:
        return self._read("get_underlying_price", oracle, pool_token)

    def get_price(
        self,
        oracle: str,
        asset: str,
        block_number: int,  # noqa: ARG002
    ) -> CallResult[int]:
        return self._read("get_price", oracle, asset)


@pytest.fixture(scope="session", autouse=True)
def _set_lendstate_logging():
    """
    Set the logging level to DEBUG for the test run
    """
    logger.setLevel(logging.DEBUG)


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    A session bound to a fresh in-memory database
    """
    db_session = get_in_memory_session()
    yield db_session
    db_session.close()


@pytest.fixture
def reader() -> FakeMarketReader:
    return FakeMarketReader()


@pytest.fixture
def deployment() -> LendingDeployment:
    return EthereumMainnetCompoundV2


@pytest.fixture
def context(
    session: Session,
    reader: FakeMarketReader,
    deployment: LendingDeployment,
) -> LendingContext:
    return LendingContext(session=session, reader=reader, deployment=deployment)


@pytest.fixture
def balance_only_context(
    session: Session,
    reader: FakeMarketReader,
    deployment: LendingDeployment,
) -> LendingContext:
    return LendingContext(
        session=session,
        reader=reader,
        deployment=deployment,
        mode=PricingMode.BALANCE_ONLY,
    )


@pytest.fixture
def engine(
    session: Session,
    reader: FakeMarketReader,
    deployment: LendingDeployment,
) -> LendingStateEngine:
    return LendingStateEngine(session=session, reader=reader, deployment=deployment)


@pytest.fixture
def fake_reader_class() -> type[FakeMarketReader]:
    """
    The reader class, for tests that build their own stores (e.g. inside hypothesis examples)
    """
    return FakeMarketReader
