__all__ = (
    "BLOCKS_PER_DAY",
    "BLOCKS_PER_YEAR",
    "DECIMAL_PRECISION",
    "MANTISSA_FACTOR",
    "POOL_TOKEN_DECIMALS",
    "SECONDS_PER_DAY",
    "UNKNOWN_NAME",
    "UNKNOWN_SYMBOL",
    "ZERO_ADDRESS",
)

# Rates, prices, collateral factors and reserve factors are all 18-decimal mantissas
MANTISSA_FACTOR = 18

# Every pool (share) token uses 8 decimals, regardless of the underlying asset
POOL_TOKEN_DECIMALS = 8

SECONDS_PER_DAY = 86_400

# Approximate block production rate used to annualize per-block rates
BLOCKS_PER_DAY = 6_570
BLOCKS_PER_YEAR = 365 * BLOCKS_PER_DAY

# Significant digits carried by decimal arithmetic during event processing
DECIMAL_PRECISION = 34

UNKNOWN_NAME = "unknown"
UNKNOWN_SYMBOL = "unknown"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
