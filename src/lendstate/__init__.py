from .checksum_cache import get_checksum_address
from .config import settings
from .logging import logger
from .version import __version__

# isort: split

from . import exceptions, types
from .deployments import EthereumMainnetCompoundV2, LendingDeployment
from .engine import LendingStateEngine
from .events import CompoundV2Event, decode_event
from .introspection import MarketReader, Web3MarketReader
from .prices import PriceResolver, PriceSourceVariant, select_price_source
from .types import CallResult, PricingMode

__all__ = (
    "CallResult",
    "CompoundV2Event",
    "EthereumMainnetCompoundV2",
    "LendingDeployment",
    "LendingStateEngine",
    "MarketReader",
    "PriceResolver",
    "PriceSourceVariant",
    "PricingMode",
    "Web3MarketReader",
    "__version__",
    "decode_event",
    "exceptions",
    "get_checksum_address",
    "logger",
    "select_price_source",
    "settings",
    "types",
)
