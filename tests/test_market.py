from decimal import Decimal

import hypothesis
import hypothesis.strategies

from lendstate.context import LendingContext
from lendstate.database.models import MarketTable, ProtocolTable, TokenTable
from lendstate.database.operations import get_in_memory_session
from lendstate.deployments import EthereumMainnetCompoundV2
from lendstate.market import list_market, set_collateral_factor, set_reserve_factor, update_market
from lendstate.protocol import set_price_oracle

COMPTROLLER = EthereumMainnetCompoundV2.comptroller
CETH = EthereumMainnetCompoundV2.native_pool_token
CDAI = "0x5d3a536e4d6dbd6114cc1ead35777bab948e3643"
DAI = "0x6b175474e89094c44da98b954eedeac495271d0f"
CSAI = "0xf5dce57282a584d2746faf1593d3121fcac444dc"
SAI = "0x89d24a6b4ccb1b6faa2625fe562bdd9a23260359"
ORACLE = "0x922018674c12a7f0d394ebeef9b58f186cde13c1"

LISTING_BLOCK = 10_900_000
LISTING_TIMESTAMP = 1_600_000_000
ACCRUAL_BLOCK = 11_000_000


def _list_dai_market(context: LendingContext, reader) -> MarketTable:
    reader.results["liquidation_incentive_mantissa", COMPTROLLER] = 1_080_000_000_000_000_000
    reader.results["underlying", CDAI] = DAI
    reader.results["name", CDAI] = "Compound Dai"
    reader.results["symbol", CDAI] = "cDAI"
    reader.results["name", DAI] = "Dai Stablecoin"
    reader.results["symbol", DAI] = "DAI"
    reader.results["decimals", DAI] = 18
    reader.results["reserve_factor_mantissa", CDAI] = 10**17

    market = list_market(context, CDAI, LISTING_BLOCK, LISTING_TIMESTAMP)
    assert market is not None
    return market


def _set_dai_market_state(context: LendingContext, reader) -> None:
    set_price_oracle(context, ORACLE, LISTING_BLOCK)
    reader.results["get_underlying_price", ORACLE, CDAI] = 10**18
    reader.results["total_supply", CDAI] = 5 * 10**12
    reader.results["exchange_rate_stored", CDAI] = 2 * 10**26
    reader.results["total_borrows", CDAI] = 400 * 10**18
    reader.results["supply_rate_per_block", CDAI] = 10**10
    reader.results["borrow_rate_per_block", CDAI] = 2 * 10**10


def test_list_market(context: LendingContext, reader):
    market = _list_dai_market(context, reader)

    assert market.id == CDAI
    assert market.name == "Compound Dai"
    assert market.input_token_id == DAI
    assert market.output_token_id == CDAI
    assert market.input_token_balance == 0
    assert market.reserve_factor == Decimal("0.1")
    assert market.liquidation_penalty == Decimal("1.08")
    assert market.created_block_number == LISTING_BLOCK
    assert market.created_timestamp == LISTING_TIMESTAMP
    assert market.is_active
    assert market.can_use_as_collateral
    assert market.can_borrow_from

    pool_token = context.session.get(TokenTable, CDAI)
    assert pool_token is not None
    assert pool_token.symbol == "cDAI"
    assert pool_token.decimals == 8

    underlying = context.session.get(TokenTable, DAI)
    assert underlying is not None
    assert underlying.name == "Dai Stablecoin"
    assert underlying.decimals == 18

    protocol = context.session.get(ProtocolTable, COMPTROLLER)
    assert protocol is not None
    assert protocol.market_ids == [CDAI]


def test_list_market_twice_is_ignored(context: LendingContext, reader):
    _list_dai_market(context, reader)
    assert list_market(context, CDAI, LISTING_BLOCK + 1, LISTING_TIMESTAMP + 12) is None

    protocol = context.session.get(ProtocolTable, COMPTROLLER)
    assert protocol is not None
    assert protocol.market_ids == [CDAI]


def test_list_native_market(context: LendingContext, reader):
    market = list_market(context, CETH, LISTING_BLOCK, LISTING_TIMESTAMP)
    assert market is not None
    assert market.name == "Compound Ether"
    assert market.input_token_id == EthereumMainnetCompoundV2.native_underlying

    underlying = context.session.get(TokenTable, EthereumMainnetCompoundV2.native_underlying)
    assert underlying is not None
    assert underlying.symbol == "ETH"
    assert underlying.decimals == 18

    assert ("underlying", CETH) not in reader.calls


def test_list_market_with_hardcoded_underlying(context: LendingContext, reader):
    reader.results["underlying", CSAI] = SAI
    reader.results["name", CSAI] = "Compound Dai"
    reader.results["symbol", CSAI] = "cDAI"

    assert list_market(context, CSAI, 7_710_760, 1_557_192_000) is not None

    underlying = context.session.get(TokenTable, SAI)
    assert underlying is not None
    assert underlying.name == "Dai Stablecoin v1.0 (DAI)"
    assert underlying.symbol == "DAI"
    assert underlying.decimals == 18
    assert ("name", SAI) not in reader.calls


def test_list_market_with_failed_metadata_reads(context: LendingContext, reader):
    reader.results["underlying", CDAI] = DAI

    market = list_market(context, CDAI, LISTING_BLOCK, LISTING_TIMESTAMP)
    assert market is not None
    assert market.name == "unknown"
    assert market.reserve_factor == Decimal(0)

    underlying = context.session.get(TokenTable, DAI)
    assert underlying is not None
    assert underlying.symbol == "unknown"
    assert underlying.decimals == 0


def test_list_market_without_underlying_is_skipped(context: LendingContext):
    assert list_market(context, CDAI, LISTING_BLOCK, LISTING_TIMESTAMP) is None
    assert context.session.get(TokenTable, CDAI) is None
    assert context.session.get(MarketTable, CDAI) is None


def test_update_market(context: LendingContext, reader):
    market = _list_dai_market(context, reader)
    _set_dai_market_state(context, reader)
    market.input_token_balance = 1000 * 10**18

    update_market(context, CDAI, ACCRUAL_BLOCK)

    assert market.input_token_price_usd == Decimal(1)
    assert market.output_token_supply == 5 * 10**12
    assert market.output_token_price_usd == Decimal("0.02")
    assert market.total_value_locked_usd == Decimal(1000)
    assert market.total_deposit_usd == Decimal(1000)
    assert market.total_borrow_usd == Decimal(400)
    assert market.deposit_rate == Decimal("0.0239805")
    assert market.variable_borrow_rate == Decimal("0.047961")
    assert market.total_revenue_usd_per_block == Decimal("0.000008")
    assert market.protocol_side_revenue_usd_per_block == Decimal("0.0000008")
    assert market.supply_side_revenue_usd_per_block == Decimal("0.0000072")
    assert market.accrual_block_number == ACCRUAL_BLOCK


def test_update_market_revenue_split_sums_to_total(context: LendingContext, reader):
    market = _list_dai_market(context, reader)
    _set_dai_market_state(context, reader)
    set_reserve_factor(context, CDAI, 123_456_789_000_000_000)

    update_market(context, CDAI, ACCRUAL_BLOCK)

    assert (
        market.protocol_side_revenue_usd_per_block + market.supply_side_revenue_usd_per_block
        == market.total_revenue_usd_per_block
    )


def test_update_market_ignores_replayed_blocks(context: LendingContext, reader):
    market = _list_dai_market(context, reader)
    _set_dai_market_state(context, reader)
    update_market(context, CDAI, ACCRUAL_BLOCK)

    reader.results["total_supply", CDAI] = 1
    reader.results["total_borrows", CDAI] = 1

    for block_number in (ACCRUAL_BLOCK, ACCRUAL_BLOCK - 1):
        update_market(context, CDAI, block_number)
        assert market.output_token_supply == 5 * 10**12
        assert market.total_borrow_usd == Decimal(400)
        assert market.accrual_block_number == ACCRUAL_BLOCK


def test_update_market_keeps_prior_values_on_failed_reads(context: LendingContext, reader):
    market = _list_dai_market(context, reader)
    _set_dai_market_state(context, reader)
    update_market(context, CDAI, ACCRUAL_BLOCK)

    del reader.results["total_supply", CDAI]
    del reader.results["exchange_rate_stored", CDAI]
    del reader.results["total_borrows", CDAI]
    del reader.results["borrow_rate_per_block", CDAI]
    reader.results["supply_rate_per_block", CDAI] = 2 * 10**10

    update_market(context, CDAI, ACCRUAL_BLOCK + 100)

    assert market.output_token_supply == 5 * 10**12
    assert market.output_token_price_usd == Decimal("0.02")
    assert market.total_borrow_usd == Decimal(400)
    assert market.variable_borrow_rate == Decimal("0.047961")

    # Successful reads are still applied
    assert market.deposit_rate == Decimal("0.047961")
    assert market.accrual_block_number == ACCRUAL_BLOCK + 100

    # Revenue for the refresh falls back to zero
    assert market.total_revenue_usd_per_block == Decimal(0)
    assert market.protocol_side_revenue_usd_per_block == Decimal(0)
    assert market.supply_side_revenue_usd_per_block == Decimal(0)


def test_update_market_balance_only(balance_only_context: LendingContext, reader):
    context = balance_only_context
    market = _list_dai_market(context, reader)
    _set_dai_market_state(context, reader)
    market.input_token_price_usd = Decimal(2)
    market.input_token_balance = 10 * 10**18
    reader.calls.clear()

    update_market(context, CDAI, ACCRUAL_BLOCK)

    assert market.input_token_price_usd == Decimal(2)
    assert market.total_value_locked_usd == Decimal(20)
    assert market.total_borrow_usd == Decimal(800)
    assert not [call for call in reader.calls if call[0] in {"get_price", "get_underlying_price"}]


def test_update_missing_market(context: LendingContext, reader):
    update_market(context, CDAI, ACCRUAL_BLOCK)
    assert reader.calls == []


@hypothesis.settings(
    max_examples=25,
    suppress_health_check=[hypothesis.HealthCheck.function_scoped_fixture],
)
@hypothesis.given(
    block_numbers=hypothesis.strategies.lists(
        hypothesis.strategies.integers(min_value=11_000_000, max_value=11_000_050),
        min_size=1,
        max_size=10,
    )
)
def test_accrual_block_never_decreases(block_numbers: list[int], fake_reader_class):
    session = get_in_memory_session()
    reader = fake_reader_class()
    context = LendingContext(
        session=session,
        reader=reader,
        deployment=EthereumMainnetCompoundV2,
    )
    market = _list_dai_market(context, reader)

    for i, block_number in enumerate(block_numbers):
        update_market(context, CDAI, block_number)
        assert market.accrual_block_number == max(block_numbers[: i + 1])

    session.close()


def test_set_collateral_factor(context: LendingContext, reader):
    market = _list_dai_market(context, reader)
    set_collateral_factor(context, CDAI, 75 * 10**16)

    assert market.maximum_ltv == Decimal("0.75")
    assert market.liquidation_threshold == Decimal("0.75")


def test_set_reserve_factor(context: LendingContext, reader):
    market = _list_dai_market(context, reader)
    set_reserve_factor(context, CDAI, 15 * 10**16)

    assert market.reserve_factor == Decimal("0.15")


def test_governance_updates_for_missing_market(context: LendingContext):
    set_collateral_factor(context, CDAI, 75 * 10**16)
    set_reserve_factor(context, CDAI, 15 * 10**16)
    assert context.session.get(MarketTable, CDAI) is None
