from sqlalchemy.orm import Mapped

from .base import Address, Base, BigDecimal, BigInteger
from .types import ForeignKeyMarketId, ForeignKeyProtocolId, ForeignKeyTokenId, PrimaryKeyId


class TransactionRecordMixin:
    """
    Columns shared by all immutable transaction records. The ID is "{hash}-{log index}" of the
    originating event, so a re-delivered event maps to the existing record.
    """

    id: Mapped[PrimaryKeyId]
    hash: Mapped[str]
    log_index: Mapped[int]
    protocol_id: Mapped[ForeignKeyProtocolId]
    to: Mapped[Address]
    from_: Mapped[Address]
    block_number: Mapped[int]
    timestamp: Mapped[int]
    market_id: Mapped[ForeignKeyMarketId]
    asset_id: Mapped[ForeignKeyTokenId]
    amount: Mapped[BigInteger]
    amount_usd: Mapped[BigDecimal]


class DepositTable(TransactionRecordMixin, Base):
    __tablename__ = "deposits"


class WithdrawTable(TransactionRecordMixin, Base):
    __tablename__ = "withdraws"


class BorrowTable(TransactionRecordMixin, Base):
    __tablename__ = "borrows"


class RepayTable(TransactionRecordMixin, Base):
    __tablename__ = "repays"


class LiquidateTable(TransactionRecordMixin, Base):
    """
    A liquidation, recorded on the repaid market. The asset is the seized pool token, `amount` is
    the number of pool tokens seized, and `amount_usd` is the value of the seized collateral.
    """

    __tablename__ = "liquidates"

    loss_usd: Mapped[BigDecimal]
    profit_usd: Mapped[BigDecimal]
