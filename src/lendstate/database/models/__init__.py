from .base import Base, DecimalMappedToString, IntMappedToString
from .lending import AccountTable, MarketTable, ProtocolTable, TokenTable
from .snapshots import (
    DailyActiveAccountTable,
    FinancialsDailySnapshotTable,
    MarketDailySnapshotTable,
    UsageMetricsDailySnapshotTable,
)
from .transactions import BorrowTable, DepositTable, LiquidateTable, RepayTable, WithdrawTable

__all__ = (
    "AccountTable",
    "Base",
    "BorrowTable",
    "DailyActiveAccountTable",
    "DecimalMappedToString",
    "DepositTable",
    "FinancialsDailySnapshotTable",
    "IntMappedToString",
    "LiquidateTable",
    "MarketDailySnapshotTable",
    "MarketTable",
    "ProtocolTable",
    "RepayTable",
    "TokenTable",
    "UsageMetricsDailySnapshotTable",
    "WithdrawTable",
)
