from lendstate.types.aliases import BlockNumber, ChainId, DayBucket, Timestamp
from lendstate.types.call_result import CallResult
from lendstate.types.modes import PricingMode

__all__ = (
    "BlockNumber",
    "CallResult",
    "ChainId",
    "DayBucket",
    "PricingMode",
    "Timestamp",
)
