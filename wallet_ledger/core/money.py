"""Conversion between Decimal amounts and integer minor units (cents)."""
from decimal import Decimal, InvalidOperation

from wallet_ledger.core.exceptions import InvalidAmountError

CENTS_PER_UNIT = 100

# Largest value a DECIMAL(15,2) column can hold, in cents
MAX_MINOR_UNITS = 10**15 - 1
MAX_AMOUNT = Decimal(MAX_MINOR_UNITS).scaleb(-2)
CENT = Decimal("0.01")


def to_minor_units(amount: Decimal | int | str) -> int:
    """
    Parse a positive monetary amount into cents.

    Floats are accepted only through their shortest repr so that ``10.1``
    means ten units and ten cents, not the binary approximation.

    Raises:
        InvalidAmountError: amount is not a finite number, is <= 0, has more
            than 2 fractional digits, or exceeds the storable maximum
    """
    if isinstance(amount, bool):
        raise InvalidAmountError("Amount must be a number")
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except InvalidOperation:
        raise InvalidAmountError("Amount must be a number") from None

    if not value.is_finite():
        raise InvalidAmountError("Amount must be a number")
    if value <= 0:
        raise InvalidAmountError("Amount must be greater than zero")
    # Comparisons are exact; nothing before this point rounds
    if value > MAX_AMOUNT:
        raise InvalidAmountError("Amount exceeds the maximum allowed value")

    cents = value.quantize(CENT)
    if cents != value:
        raise InvalidAmountError("Amount can have maximum 2 decimal places")
    return int(cents * CENTS_PER_UNIT)


def from_minor_units(minor_units: int) -> Decimal:
    """Cents to a Decimal with exactly 2 fractional digits."""
    return Decimal(minor_units).scaleb(-2)
