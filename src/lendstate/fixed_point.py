"""
Exact decimal helpers for mantissa-scaled integers.

Contract values arrive as integers scaled by a power of ten. These helpers convert them to
`Decimal` without passing through floating point, and truncate results to a fixed number of
fractional digits so precision never exceeds what the asset can represent.
"""

import decimal
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import ROUND_DOWN, Decimal

from lendstate.constants import BLOCKS_PER_YEAR, DECIMAL_PRECISION, MANTISSA_FACTOR

ZERO = Decimal(0)
ONE = Decimal(1)


@contextmanager
def decimal_context() -> Iterator[decimal.Context]:
    """
    Run the enclosed block with the precision used for all state derivation.
    """

    with decimal.localcontext(prec=DECIMAL_PRECISION) as ctx:
        yield ctx


def exponent_to_decimal(exponent: int) -> Decimal:
    """
    Return 10**exponent as an exact Decimal.
    """

    return Decimal(1).scaleb(exponent)


def mantissa_to_decimal(value: int, decimals: int = MANTISSA_FACTOR) -> Decimal:
    """
    Convert an integer mantissa to a Decimal, e.g. 5 * 10**17 with 18 decimals -> 0.5
    """

    return Decimal(value) / exponent_to_decimal(decimals)


def amount_to_decimal(raw_amount: int, decimals: int) -> Decimal:
    """
    Convert a raw token amount to a nominal amount using the token's decimal precision.
    """

    return mantissa_to_decimal(raw_amount, decimals)


def truncate(value: Decimal, places: int) -> Decimal:
    """
    Drop all fractional digits past `places`, rounding toward zero.
    """

    if not value.is_finite():
        return value
    return value.quantize(exponent_to_decimal(-places), rounding=ROUND_DOWN)


def rate_per_block_to_apy(rate_per_block: int) -> Decimal:
    """
    Annualize a per-block rate mantissa with simple (non-compounding) interest.
    """

    return mantissa_to_decimal(rate_per_block * BLOCKS_PER_YEAR)
