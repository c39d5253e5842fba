"""Conversion between user-facing major units and on-chain smallest units.

Conversion to the smallest unit always floors so a user is never debited more
than the amount they typed.
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Union

from ..domain.errors import InvalidAmountError
from ..program.constants import DEFAULT_MINT_DECIMALS

MajorAmount = Union[Decimal, str, int, float]


def parse_major_amount(amount: MajorAmount) -> Decimal:
    """Parse a major-unit amount. Floats go through ``str`` to avoid binary noise."""
    if isinstance(amount, bool):
        raise InvalidAmountError(f"Invalid amount: {amount!r}")
    try:
        value = Decimal(str(amount)) if isinstance(amount, float) else Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(f"Invalid amount: {amount!r}")
    if not value.is_finite():
        raise InvalidAmountError(f"Invalid amount: {amount!r}")
    return value


def to_smallest_unit(amount: MajorAmount, decimals: int = DEFAULT_MINT_DECIMALS) -> int:
    """Convert a positive major-unit amount to the smallest unit, flooring.

    Raises:
        InvalidAmountError: If the amount does not parse or floors to zero or less.
    """
    value = parse_major_amount(amount)
    scaled = (value * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_FLOOR)
    if scaled <= 0:
        raise InvalidAmountError(f"Amount must be positive, got {amount!r}")
    return int(scaled)


def to_major_units(amount: int, decimals: int = DEFAULT_MINT_DECIMALS) -> Decimal:
    return Decimal(amount).scaleb(-decimals)
