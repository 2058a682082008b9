"""Fixed-point integer arithmetic across token decimal precisions.

All amounts, rates and balances are int in the token's smallest unit.
No float, no Decimal. Rates are 18-decimal fixed point (1.0 == 10**18).
"""

from src.fm_common.errors import InvalidTokenDecimalsError

INTERNAL_DECIMALS = 18
ONE = 10**INTERNAL_DECIMALS

MIN_TOKEN_DECIMALS = 1
MAX_TOKEN_DECIMALS = 24


def validate_decimals(decimals: int) -> int:
    """Return decimals unchanged if within [1, 24], else raise InvalidTokenDecimalsError."""
    if not (MIN_TOKEN_DECIMALS <= decimals <= MAX_TOKEN_DECIMALS):
        raise InvalidTokenDecimalsError(decimals)
    return decimals


def normalize(amount: int, from_decimals: int, to_decimals: int) -> int:
    """Re-express amount from one decimal precision in another.

    Up-scaling is exact. Down-scaling floors: the remainder below the target
    precision is dropped, so normalize(1, 18, 6) == 0.
    """
    if from_decimals < to_decimals:
        return amount * 10 ** (to_decimals - from_decimals)
    if from_decimals > to_decimals:
        return amount // 10 ** (from_decimals - to_decimals)
    return amount


def to_internal(amount: int, decimals: int) -> int:
    return normalize(amount, decimals, INTERNAL_DECIMALS)


def from_internal(amount: int, decimals: int) -> int:
    return normalize(amount, INTERNAL_DECIMALS, decimals)


def mul_rate(amount: int, rate: int) -> int:
    """Multiply an 18-decimal amount by an 18-decimal rate, flooring."""
    return amount * rate // ONE


def amount_to_display(amount: int, decimals: int) -> str:
    """Render a smallest-unit amount: (1_500_000, 6) -> '1.500000'."""
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10**decimals)
    return f"{sign}{whole:,}.{frac:0{decimals}d}"
