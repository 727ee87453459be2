from typing import Any

import eth_abi.abi
import pytest
from eth_utils.crypto import keccak
from requests.exceptions import ConnectionError as RequestsConnectionError
from web3.exceptions import ContractLogicError

from lendstate.checksum_cache import get_checksum_address
from lendstate.introspection import Web3MarketReader
from lendstate.types import CallResult

CDAI = "0x5d3a536e4d6dbd6114cc1ead35777bab948e3643"
DAI = "0x6b175474e89094c44da98b954eedeac495271d0f"
ORACLE = "0x922018674c12a7f0d394ebeef9b58f186cde13c1"


def _selector(function_prototype: str) -> bytes:
    return keccak(text=function_prototype)[:4]


class FakeEth:
    """
    Answers eth_call by function selector. Unknown selectors revert.
    """

    def __init__(self, responses: dict[bytes, bytes]) -> None:
        self.responses = responses
        self.calls: list[tuple[str, bytes, Any]] = []

    def call(self, transaction: Any, block_identifier: Any) -> bytes:
        selector = transaction["data"][:4]
        self.calls.append((transaction["to"], selector, block_identifier))
        if selector not in self.responses:
            msg = "execution reverted"
            raise ContractLogicError(msg)
        return self.responses[selector]


class FakeWeb3:
    def __init__(self, eth: FakeEth) -> None:
        self.eth = eth


@pytest.fixture
def fake_eth() -> FakeEth:
    return FakeEth(
        responses={
            _selector("totalSupply()"): eth_abi.abi.encode(["uint256"], [5 * 10**12]),
            _selector("underlying()"): eth_abi.abi.encode(["address"], [DAI]),
            _selector("symbol()"): eth_abi.abi.encode(["string"], ["cDAI"]),
            _selector("getUnderlyingPrice(address)"): eth_abi.abi.encode(["uint256"], [10**18]),
            # Not ABI-encoded
            _selector("decimals()"): b"",
        }
    )


@pytest.fixture
def market_reader(fake_eth: FakeEth) -> Web3MarketReader:
    w3: Any = FakeWeb3(fake_eth)
    return Web3MarketReader(w3)


def test_successful_reads(market_reader: Web3MarketReader, fake_eth: FakeEth):
    assert market_reader.total_supply(CDAI, 11_000_000) == CallResult.ok(5 * 10**12)
    assert market_reader.symbol(CDAI, 11_000_000).unwrap() == "cDAI"
    assert market_reader.get_underlying_price(ORACLE, CDAI, 11_000_000).unwrap() == 10**18

    to, selector, block_identifier = fake_eth.calls[0]
    assert to == get_checksum_address(CDAI)
    assert selector == _selector("totalSupply()")
    assert block_identifier == 11_000_000


def test_underlying_is_lowercase(market_reader: Web3MarketReader):
    assert market_reader.underlying(CDAI, 11_000_000).unwrap() == DAI


def test_reverted_read(market_reader: Web3MarketReader):
    result = market_reader.borrow_rate_per_block(CDAI, 11_000_000)
    assert result.is_reverted
    assert result.value_or(0) == 0
    assert "execution reverted" in str(result.revert_reason)


def test_undecodable_read(market_reader: Web3MarketReader):
    assert market_reader.decimals(DAI, 11_000_000).is_reverted


class UnreachableEth:
    def __init__(self, error: Exception) -> None:
        self.error = error

    def call(self, transaction: Any, block_identifier: Any) -> bytes:
        raise self.error


@pytest.mark.parametrize(
    "error",
    [
        RequestsConnectionError("node unreachable"),
        TimeoutError("timed out"),
        OSError("broken pipe"),
    ],
)
def test_transport_failure_is_reverted(error: Exception):
    w3: Any = FakeWeb3(UnreachableEth(error))  # type: ignore[arg-type]
    market_reader = Web3MarketReader(w3)

    result = market_reader.total_supply(CDAI, 11_000_000)
    assert result.is_reverted
    assert result.value_or(0) == 0
    assert str(error) in str(result.revert_reason)


def test_call_result():
    ok = CallResult.ok(42)
    assert not ok.is_reverted
    assert ok.value_or(0) == 42
    assert ok.unwrap() == 42

    reverted: CallResult[int] = CallResult.reverted("out of gas")
    assert reverted.is_reverted
    assert reverted.value_or(7) == 7
    with pytest.raises(ValueError, match="out of gas"):
        reverted.unwrap()
