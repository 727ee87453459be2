from sqlalchemy import JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lendstate.fixed_point import ZERO

from .base import Address, Base, BigDecimal, BigInteger
from .types import ForeignKeyProtocolId, PrimaryKeyId


class ProtocolTable(Base):
    """
    The protocol singleton, keyed by the Comptroller address.

    Market membership is held as an ordered list of market IDs rather than a relationship, so a
    listed ID may point to a market that is missing from storage. Aggregation skips those.
    """

    __tablename__ = "protocols"

    id: Mapped[PrimaryKeyId]
    name: Mapped[str]
    slug: Mapped[str]
    schema_version: Mapped[str]
    subgraph_version: Mapped[str]
    methodology_version: Mapped[str]
    network: Mapped[str]
    type: Mapped[str]
    lending_type: Mapped[str]
    risk_type: Mapped[str]

    total_value_locked_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)
    total_deposit_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)
    total_borrow_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)
    cumulative_total_revenue_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)
    cumulative_protocol_side_revenue_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)
    cumulative_supply_side_revenue_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)
    total_unique_users: Mapped[int] = mapped_column(default=0)

    market_ids: Mapped[list[str]] = mapped_column(JSON)
    price_oracle: Mapped[Address | None]
    liquidation_incentive: Mapped[BigDecimal] = mapped_column(default=ZERO)


class TokenTable(Base):
    __tablename__ = "tokens"

    id: Mapped[PrimaryKeyId]
    name: Mapped[str]
    symbol: Mapped[str]
    decimals: Mapped[int]


class MarketTable(Base):
    __tablename__ = "markets"

    id: Mapped[PrimaryKeyId]
    protocol_id: Mapped[ForeignKeyProtocolId]
    name: Mapped[str]

    # Underlying asset. A market without one cannot accept transactions.
    input_token_id: Mapped[str | None] = mapped_column(ForeignKey("tokens.id"), index=True)
    input_token_balance: Mapped[BigInteger] = mapped_column(default=0)
    input_token_price_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)

    # Pool (share) token
    output_token_id: Mapped[str | None] = mapped_column(ForeignKey("tokens.id"), index=True)
    output_token_supply: Mapped[BigInteger] = mapped_column(default=0)
    output_token_price_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)

    total_value_locked_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)
    total_deposit_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)
    total_borrow_usd: Mapped[BigDecimal] = mapped_column(default=ZERO)

    maximum_ltv: Mapped[BigDecimal] = mapped_column(default=ZERO)
    liquidation_threshold: Mapped[BigDecimal] = mapped_column(default=ZERO)
    liquidation_penalty: Mapped[BigDecimal] = mapped_column(default=ZERO)
    deposit_rate: Mapped[BigDecimal] = mapped_column(default=ZERO)
    variable_borrow_rate: Mapped[BigDecimal] = mapped_column(default=ZERO)
    reserve_factor: Mapped[BigDecimal] = mapped_column(default=ZERO)

    # Revenue rates, integrated over block ranges by the financials snapshot
    total_revenue_usd_per_block: Mapped[BigDecimal] = mapped_column(default=ZERO)
    protocol_side_revenue_usd_per_block: Mapped[BigDecimal] = mapped_column(default=ZERO)
    supply_side_revenue_usd_per_block: Mapped[BigDecimal] = mapped_column(default=ZERO)

    accrual_block_number: Mapped[int] = mapped_column(default=0)
    created_timestamp: Mapped[int]
    created_block_number: Mapped[int]
    is_active: Mapped[bool] = mapped_column(default=True)
    can_use_as_collateral: Mapped[bool] = mapped_column(default=True)
    can_borrow_from: Mapped[bool] = mapped_column(default=True)

    # Relationships
    input_token: Mapped["TokenTable | None"] = relationship(
        "TokenTable",
        foreign_keys="MarketTable.input_token_id",
    )
    output_token: Mapped["TokenTable | None"] = relationship(
        "TokenTable",
        foreign_keys="MarketTable.output_token_id",
    )


class AccountTable(Base):
    """
    A participant address. Existence of the row is the record.
    """

    __tablename__ = "accounts"

    id: Mapped[PrimaryKeyId]
