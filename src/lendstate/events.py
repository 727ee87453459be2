"""
Typed lending events and decoding of raw event logs.

All parameters of the decoded events are non-indexed, so topic 0 selects the event type and the
ABI-encoded log data carries the values. Addresses are normalized to lowercase hex strings to match
entity storage keys.
"""

from dataclasses import dataclass
from enum import Enum

import eth_abi.abi
from eth_utils.crypto import keccak
from hexbytes import HexBytes
from web3.types import LogReceipt

from lendstate.checksum_cache import get_entity_id
from lendstate.exceptions import UnknownEventTopic
from lendstate.types import BlockNumber, Timestamp


def _event_topic(event_signature: str) -> HexBytes:
    return HexBytes(keccak(text=event_signature))


class CompoundV2Event(Enum):
    # Comptroller
    MARKET_LISTED = _event_topic("MarketListed(address)")
    NEW_COLLATERAL_FACTOR = _event_topic("NewCollateralFactor(address,uint256,uint256)")
    NEW_LIQUIDATION_INCENTIVE = _event_topic("NewLiquidationIncentive(uint256,uint256)")
    NEW_PRICE_ORACLE = _event_topic("NewPriceOracle(address,address)")

    # Pool token
    NEW_RESERVE_FACTOR = _event_topic("NewReserveFactor(uint256,uint256)")
    MINT = _event_topic("Mint(address,uint256,uint256)")
    REDEEM = _event_topic("Redeem(address,uint256,uint256)")
    BORROW = _event_topic("Borrow(address,uint256,uint256,uint256)")
    REPAY_BORROW = _event_topic("RepayBorrow(address,address,uint256,uint256,uint256)")
    LIQUIDATE_BORROW = _event_topic("LiquidateBorrow(address,address,uint256,address,uint256)")
    ACCRUE_INTEREST = _event_topic("AccrueInterest(uint256,uint256,uint256)")
    # Pool tokens upgraded after 2019 also report the cash balance prior to accrual
    ACCRUE_INTEREST_WITH_CASH_PRIOR = _event_topic(
        "AccrueInterest(uint256,uint256,uint256,uint256)"
    )


COMPTROLLER_EVENTS = (
    CompoundV2Event.MARKET_LISTED,
    CompoundV2Event.NEW_COLLATERAL_FACTOR,
    CompoundV2Event.NEW_LIQUIDATION_INCENTIVE,
    CompoundV2Event.NEW_PRICE_ORACLE,
)
POOL_TOKEN_EVENTS = (
    CompoundV2Event.NEW_RESERVE_FACTOR,
    CompoundV2Event.MINT,
    CompoundV2Event.REDEEM,
    CompoundV2Event.BORROW,
    CompoundV2Event.REPAY_BORROW,
    CompoundV2Event.LIQUIDATE_BORROW,
    CompoundV2Event.ACCRUE_INTEREST,
    CompoundV2Event.ACCRUE_INTEREST_WITH_CASH_PRIOR,
)


@dataclass(frozen=True, slots=True)
class EventMeta:
    """Where and when an event was emitted."""

    address: str
    block_number: BlockNumber
    timestamp: Timestamp
    transaction_hash: str
    log_index: int

    @property
    def record_id(self) -> str:
        return f"{self.transaction_hash}-{self.log_index}"

    @property
    def order_key(self) -> tuple[BlockNumber, int]:
        return self.block_number, self.log_index


@dataclass(frozen=True, slots=True)
class NewPriceOracleEvent:
    meta: EventMeta
    old_price_oracle: str
    new_price_oracle: str


@dataclass(frozen=True, slots=True)
class MarketListedEvent:
    meta: EventMeta
    pool_token: str


@dataclass(frozen=True, slots=True)
class NewCollateralFactorEvent:
    meta: EventMeta
    pool_token: str
    old_collateral_factor_mantissa: int
    new_collateral_factor_mantissa: int


@dataclass(frozen=True, slots=True)
class NewLiquidationIncentiveEvent:
    meta: EventMeta
    old_liquidation_incentive_mantissa: int
    new_liquidation_incentive_mantissa: int


@dataclass(frozen=True, slots=True)
class NewReserveFactorEvent:
    meta: EventMeta
    old_reserve_factor_mantissa: int
    new_reserve_factor_mantissa: int


@dataclass(frozen=True, slots=True)
class MintEvent:
    """Underlying deposited (`mint_amount`) in exchange for pool tokens (`mint_tokens`)."""

    meta: EventMeta
    minter: str
    mint_amount: int
    mint_tokens: int


@dataclass(frozen=True, slots=True)
class RedeemEvent:
    """Pool tokens (`redeem_tokens`) burned in exchange for underlying (`redeem_amount`)."""

    meta: EventMeta
    redeemer: str
    redeem_amount: int
    redeem_tokens: int


@dataclass(frozen=True, slots=True)
class BorrowEvent:
    meta: EventMeta
    borrower: str
    borrow_amount: int
    account_borrows: int
    total_borrows: int


@dataclass(frozen=True, slots=True)
class RepayBorrowEvent:
    meta: EventMeta
    payer: str
    borrower: str
    repay_amount: int
    account_borrows: int
    total_borrows: int


@dataclass(frozen=True, slots=True)
class LiquidateBorrowEvent:
    """
    The liquidator repaid `repay_amount` of the borrower's debt on the emitting market, and seized
    `seize_tokens` pool tokens of the collateral market.
    """

    meta: EventMeta
    liquidator: str
    borrower: str
    repay_amount: int
    collateral_pool_token: str
    seize_tokens: int


@dataclass(frozen=True, slots=True)
class AccrueInterestEvent:
    meta: EventMeta
    interest_accumulated: int
    borrow_index: int
    total_borrows: int
    cash_prior: int | None = None


type LendingEvent = (
    NewPriceOracleEvent
    | MarketListedEvent
    | NewCollateralFactorEvent
    | NewLiquidationIncentiveEvent
    | NewReserveFactorEvent
    | MintEvent
    | RedeemEvent
    | BorrowEvent
    | RepayBorrowEvent
    | LiquidateBorrowEvent
    | AccrueInterestEvent
)


def decode_event(event: LogReceipt, timestamp: Timestamp) -> LendingEvent:
    """
    Decode a raw event log emitted by the Comptroller or a pool token.

    Raises UnknownEventTopic if topic 0 does not match a known event.
    """

    meta = EventMeta(
        address=get_entity_id(event["address"]),
        block_number=event["blockNumber"],
        timestamp=timestamp,
        transaction_hash=HexBytes(event["transactionHash"]).to_0x_hex(),
        log_index=event["logIndex"],
    )
    topic = HexBytes(event["topics"][0])
    data = event["data"]

    match topic:
        case CompoundV2Event.NEW_PRICE_ORACLE.value:
            old_price_oracle, new_price_oracle = eth_abi.abi.decode(
                types=["address", "address"], data=data
            )
            return NewPriceOracleEvent(
                meta=meta,
                old_price_oracle=get_entity_id(old_price_oracle),
                new_price_oracle=get_entity_id(new_price_oracle),
            )
        case CompoundV2Event.MARKET_LISTED.value:
            (pool_token,) = eth_abi.abi.decode(types=["address"], data=data)
            return MarketListedEvent(meta=meta, pool_token=get_entity_id(pool_token))
        case CompoundV2Event.NEW_COLLATERAL_FACTOR.value:
            pool_token, old_mantissa, new_mantissa = eth_abi.abi.decode(
                types=["address", "uint256", "uint256"], data=data
            )
            return NewCollateralFactorEvent(
                meta=meta,
                pool_token=get_entity_id(pool_token),
                old_collateral_factor_mantissa=old_mantissa,
                new_collateral_factor_mantissa=new_mantissa,
            )
        case CompoundV2Event.NEW_LIQUIDATION_INCENTIVE.value:
            old_mantissa, new_mantissa = eth_abi.abi.decode(
                types=["uint256", "uint256"], data=data
            )
            return NewLiquidationIncentiveEvent(
                meta=meta,
                old_liquidation_incentive_mantissa=old_mantissa,
                new_liquidation_incentive_mantissa=new_mantissa,
            )
        case CompoundV2Event.NEW_RESERVE_FACTOR.value:
            old_mantissa, new_mantissa = eth_abi.abi.decode(
                types=["uint256", "uint256"], data=data
            )
            return NewReserveFactorEvent(
                meta=meta,
                old_reserve_factor_mantissa=old_mantissa,
                new_reserve_factor_mantissa=new_mantissa,
            )
        case CompoundV2Event.MINT.value:
            minter, mint_amount, mint_tokens = eth_abi.abi.decode(
                types=["address", "uint256", "uint256"], data=data
            )
            return MintEvent(
                meta=meta,
                minter=get_entity_id(minter),
                mint_amount=mint_amount,
                mint_tokens=mint_tokens,
            )
        case CompoundV2Event.REDEEM.value:
            redeemer, redeem_amount, redeem_tokens = eth_abi.abi.decode(
                types=["address", "uint256", "uint256"], data=data
            )
            return RedeemEvent(
                meta=meta,
                redeemer=get_entity_id(redeemer),
                redeem_amount=redeem_amount,
                redeem_tokens=redeem_tokens,
            )
        case CompoundV2Event.BORROW.value:
            borrower, borrow_amount, account_borrows, total_borrows = eth_abi.abi.decode(
                types=["address", "uint256", "uint256", "uint256"], data=data
            )
            return BorrowEvent(
                meta=meta,
                borrower=get_entity_id(borrower),
                borrow_amount=borrow_amount,
                account_borrows=account_borrows,
                total_borrows=total_borrows,
            )
        case CompoundV2Event.REPAY_BORROW.value:
            payer, borrower, repay_amount, account_borrows, total_borrows = eth_abi.abi.decode(
                types=["address", "address", "uint256", "uint256", "uint256"], data=data
            )
            return RepayBorrowEvent(
                meta=meta,
                payer=get_entity_id(payer),
                borrower=get_entity_id(borrower),
                repay_amount=repay_amount,
                account_borrows=account_borrows,
                total_borrows=total_borrows,
            )
        case CompoundV2Event.LIQUIDATE_BORROW.value:
            liquidator, borrower, repay_amount, collateral_pool_token, seize_tokens = (
                eth_abi.abi.decode(
                    types=["address", "address", "uint256", "address", "uint256"], data=data
                )
            )
            return LiquidateBorrowEvent(
                meta=meta,
                liquidator=get_entity_id(liquidator),
                borrower=get_entity_id(borrower),
                repay_amount=repay_amount,
                collateral_pool_token=get_entity_id(collateral_pool_token),
                seize_tokens=seize_tokens,
            )
        case CompoundV2Event.ACCRUE_INTEREST.value:
            interest_accumulated, borrow_index, total_borrows = eth_abi.abi.decode(
                types=["uint256", "uint256", "uint256"], data=data
            )
            return AccrueInterestEvent(
                meta=meta,
                interest_accumulated=interest_accumulated,
                borrow_index=borrow_index,
                total_borrows=total_borrows,
            )
        case CompoundV2Event.ACCRUE_INTEREST_WITH_CASH_PRIOR.value:
            cash_prior, interest_accumulated, borrow_index, total_borrows = eth_abi.abi.decode(
                types=["uint256", "uint256", "uint256", "uint256"], data=data
            )
            return AccrueInterestEvent(
                meta=meta,
                interest_accumulated=interest_accumulated,
                borrow_index=borrow_index,
                total_borrows=total_borrows,
                cash_prior=cash_prior,
            )
        case _:
            raise UnknownEventTopic(topic=topic.to_0x_hex())
