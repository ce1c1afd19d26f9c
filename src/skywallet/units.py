"""
Exact coin/hours arithmetic.

Amounts are decimal.Decimal everywhere. Conversion to integer droplets and
integer hours happens only when serializing, and truncates toward zero.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation, localcontext

from skywallet.constants import COIN_DECIMALS
from skywallet.errors import InvalidAmountError

ZERO = Decimal("0")

_DROPLET_QUANTUM = Decimal(1).scaleb(-COIN_DECIMALS)


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Parse an amount into a Decimal.

    Floats are rejected since they cannot carry exact coin amounts.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(f"Amount must be str, int or Decimal, got {type(value).__name__}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise InvalidAmountError(f"Invalid amount: {value!r}") from e
    if not result.is_finite():
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    return result


def coins_to_droplets(coins: Decimal | int | str) -> int:
    """Convert coins to droplets, truncating any sub-droplet fraction."""
    amount = to_decimal(coins)
    if amount < 0:
        raise InvalidAmountError(f"Negative coin amount: {amount}")
    # Truncate at the droplet quantum before scaling, with enough precision
    # that neither step rounds
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + COIN_DECIMALS + 2)
        truncated = amount.quantize(_DROPLET_QUANTUM, rounding=ROUND_DOWN)
        return int(truncated.scaleb(COIN_DECIMALS))


def droplets_to_coins(droplets: int | str) -> Decimal:
    """Convert droplets back to coins (exact)."""
    amount = to_decimal(droplets)
    if amount != amount.to_integral_value():
        raise InvalidAmountError(f"Droplets must be integral: {droplets!r}")
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, amount.adjusted() + COIN_DECIMALS + 2)
        return amount.scaleb(-COIN_DECIMALS).quantize(_DROPLET_QUANTUM)


def hours_to_int(hours: Decimal | int | str) -> int:
    """Hours are integral; a fractional value is an error."""
    amount = to_decimal(hours)
    if amount < 0:
        raise InvalidAmountError(f"Negative hours amount: {amount}")
    if amount != amount.to_integral_value():
        raise InvalidAmountError(f"Hours must be integral: {hours!r}")
    return int(amount)


def format_coins(coins: Decimal) -> str:
    """Plain string form with no exponent and no trailing zeros."""
    text = format(coins, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"
