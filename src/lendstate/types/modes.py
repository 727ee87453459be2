from enum import Enum


class PricingMode(Enum):
    """
    Selects how market accruals treat the underlying asset price.

    PRICE_AWARE resolves the price from the price source active at the accrual block.
    BALANCE_ONLY never queries a price source and values positions at the stored price.
    """

    PRICE_AWARE = "price-aware"
    BALANCE_ONLY = "balance-only"
