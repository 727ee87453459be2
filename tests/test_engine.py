from dataclasses import dataclass

import pytest

from lendstate.context import LendingContext
from lendstate.database.models import DepositTable, MarketTable, ProtocolTable, TokenTable
from lendstate.deployments import EthereumMainnetCompoundV2
from lendstate.engine import LendingStateEngine
from lendstate.events import (
    AccrueInterestEvent,
    EventMeta,
    MarketListedEvent,
    MintEvent,
    NewPriceOracleEvent,
)
from lendstate.exceptions import LendstateError, LendstateValueError
from lendstate.handlers import EVENT_HANDLERS

COMPTROLLER = EthereumMainnetCompoundV2.comptroller
CDAI = "0x5d3a536e4d6dbd6114cc1ead35777bab948e3643"
DAI = "0x6b175474e89094c44da98b954eedeac495271d0f"
ORACLE = "0x922018674c12a7f0d394ebeef9b58f186cde13c1"
ALICE = "0x00000000000000000000000000000000000a11ce"


def _meta(address: str, block_number: int, log_index: int = 0) -> EventMeta:
    return EventMeta(
        address=address,
        block_number=block_number,
        timestamp=1_600_000_000 + 12 * (block_number - 10_900_000),
        transaction_hash=f"0x{block_number:064x}",
        log_index=log_index,
    )


def _listing_events() -> list[MarketListedEvent]:
    return [MarketListedEvent(meta=_meta(COMPTROLLER, 10_900_000), pool_token=CDAI)]


@pytest.fixture(autouse=True)
def _dai_reads(reader) -> None:
    reader.results["underlying", CDAI] = DAI
    reader.results["decimals", DAI] = 18


def test_events_are_applied_in_block_and_log_order(engine: LendingStateEngine):
    mint = MintEvent(
        meta=_meta(CDAI, 10_900_001, 0),
        minter=ALICE,
        mint_amount=10**18,
        mint_tokens=50 * 10**8,
    )
    listing = MarketListedEvent(meta=_meta(COMPTROLLER, 10_900_000, 5), pool_token=CDAI)

    assert engine.process_events([mint, listing]) == 2

    market = engine.session.get(MarketTable, CDAI)
    assert market is not None
    assert market.input_token_balance == 10**18
    assert engine.session.get(DepositTable, mint.meta.record_id) is not None


def test_missing_protocol_rolls_back_event(engine: LendingStateEngine, reader):
    assert engine.process_events(_listing_events()) == 1

    # Remove the protocol to simulate a corrupted store
    protocol = engine.session.get(ProtocolTable, COMPTROLLER)
    assert protocol is not None
    engine.session.delete(protocol)
    engine.session.commit()

    reader.results["total_supply", CDAI] = 5 * 10**12
    accrual = AccrueInterestEvent(
        meta=_meta(CDAI, 11_000_000),
        interest_accumulated=0,
        borrow_index=10**18,
        total_borrows=0,
    )
    assert engine.process_event(accrual) is False

    market = engine.session.get(MarketTable, CDAI)
    assert market is not None
    assert market.accrual_block_number == 0
    assert market.output_token_supply == 0

    # The engine keeps processing after a rolled back event
    assert engine.process_event(
        NewPriceOracleEvent(
            meta=_meta(COMPTROLLER, 11_000_001),
            old_price_oracle="0x0000000000000000000000000000000000000000",
            new_price_oracle=ORACLE,
        )
    )
    protocol = engine.session.get(ProtocolTable, COMPTROLLER)
    assert protocol is not None
    assert protocol.price_oracle == ORACLE


def test_failed_handler_changes_are_discarded(
    engine: LendingStateEngine,
    monkeypatch: pytest.MonkeyPatch,
):
    assert engine.process_events(_listing_events()) == 1

    def failing_handler(context: LendingContext, event: MintEvent) -> None:  # noqa: ARG001
        context.session.add(TokenTable(id=ALICE, name="Partial", symbol="P", decimals=0))
        context.session.flush()
        raise LendstateError(message="Handler failed")

    monkeypatch.setitem(EVENT_HANDLERS, MintEvent, failing_handler)

    mint = MintEvent(
        meta=_meta(CDAI, 10_900_001),
        minter=ALICE,
        mint_amount=10**18,
        mint_tokens=50 * 10**8,
    )
    assert engine.process_events([mint]) == 0
    assert engine.session.get(TokenTable, ALICE) is None

    monkeypatch.undo()
    assert engine.process_event(mint)
    market = engine.session.get(MarketTable, CDAI)
    assert market is not None
    assert market.input_token_balance == 10**18


def test_unsupported_event_type(engine: LendingStateEngine):
    @dataclass(frozen=True)
    class UnsupportedEvent:
        meta: EventMeta

    event = UnsupportedEvent(meta=_meta(CDAI, 11_000_000))
    with pytest.raises(LendstateValueError):
        engine.process_event(event)  # type: ignore[arg-type]


def _oracle_event(block_number: int) -> NewPriceOracleEvent:
    return NewPriceOracleEvent(
        meta=_meta(COMPTROLLER, block_number),
        old_price_oracle="0x0000000000000000000000000000000000000000",
        new_price_oracle=ORACLE,
    )


def test_unexpected_handler_error_is_rolled_back(
    engine: LendingStateEngine,
    monkeypatch: pytest.MonkeyPatch,
):
    assert engine.process_events(_listing_events()) == 1

    def broken_handler(context: LendingContext, event: AccrueInterestEvent) -> None:  # noqa: ARG001
        context.session.add(TokenTable(id=ALICE, name="Partial", symbol="P", decimals=0))
        context.session.flush()
        raise ZeroDivisionError

    monkeypatch.setitem(EVENT_HANDLERS, AccrueInterestEvent, broken_handler)

    accrual = AccrueInterestEvent(
        meta=_meta(CDAI, 10_900_001, 0),
        interest_accumulated=0,
        borrow_index=10**18,
        total_borrows=0,
    )
    mint = MintEvent(
        meta=_meta(CDAI, 10_900_001, 1),
        minter=ALICE,
        mint_amount=10**18,
        mint_tokens=50 * 10**8,
    )
    assert engine.process_events([accrual, mint]) == 1

    assert engine.session.get(TokenTable, ALICE) is None
    assert engine.session.get(DepositTable, mint.meta.record_id) is not None
    market = engine.session.get(MarketTable, CDAI)
    assert market is not None
    assert market.input_token_balance == 10**18


def test_unexpected_reader_error_is_rolled_back(
    engine: LendingStateEngine,
    reader,
    monkeypatch: pytest.MonkeyPatch,
):
    assert engine.process_events([_oracle_event(10_899_999), *_listing_events()]) == 2

    # After the cutover the oracle answers in USD: 1 DAI = 1 USD
    reader.results["get_underlying_price", ORACLE, CDAI] = 10**18

    def unreachable(pool_token: str, block_number: int):
        msg = "node unreachable"
        raise RuntimeError(msg)

    monkeypatch.setattr(reader, "total_supply", unreachable)

    accrual = AccrueInterestEvent(
        meta=_meta(CDAI, 11_000_000, 0),
        interest_accumulated=0,
        borrow_index=10**18,
        total_borrows=0,
    )
    mint = MintEvent(
        meta=_meta(CDAI, 11_000_000, 1),
        minter=ALICE,
        mint_amount=10**18,
        mint_tokens=50 * 10**8,
    )
    assert engine.process_events([accrual, mint]) == 1

    market = engine.session.get(MarketTable, CDAI)
    assert market is not None
    # The price written before the failed read was discarded with the rest of the accrual
    assert market.input_token_price_usd == 0
    assert market.accrual_block_number == 0
    assert market.input_token_balance == 10**18
    assert engine.session.get(DepositTable, mint.meta.record_id) is not None


def test_out_of_range_price_does_not_stop_batch(engine: LendingStateEngine, reader):
    ceth = EthereumMainnetCompoundV2.native_pool_token
    cusdc = EthereumMainnetCompoundV2.reference_pool_token

    assert (
        engine.process_events(
            [
                _oracle_event(9_999_000),
                MarketListedEvent(meta=_meta(COMPTROLLER, 9_999_001, 0), pool_token=CDAI),
                MarketListedEvent(meta=_meta(COMPTROLLER, 9_999_001, 1), pool_token=ceth),
            ]
        )
        == 3
    )

    # 1 USDC = 1e-30 ETH, so 1 ETH is worth more USD than the decimal context can represent
    reader.results["get_underlying_price", ORACLE, cusdc] = 1

    accrual = AccrueInterestEvent(
        meta=_meta(ceth, 10_000_000, 0),
        interest_accumulated=0,
        borrow_index=10**18,
        total_borrows=0,
    )
    mint = MintEvent(
        meta=_meta(CDAI, 10_000_000, 1),
        minter=ALICE,
        mint_amount=10**18,
        mint_tokens=50 * 10**8,
    )
    assert engine.process_events([accrual, mint]) == 2

    eth_market = engine.session.get(MarketTable, ceth)
    assert eth_market is not None
    assert eth_market.accrual_block_number == 10_000_000
    assert eth_market.input_token_price_usd == 0

    dai_market = engine.session.get(MarketTable, CDAI)
    assert dai_market is not None
    assert dai_market.input_token_balance == 10**18
    assert engine.session.get(DepositTable, mint.meta.record_id) is not None
