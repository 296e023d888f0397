"""Currency conversion between the ledger and the application.

The ledger stores integer wei (10**-18 of its native unit). The application
stores integer fiat minor units (e.g. paise). The path between them is always
wei -> native Decimal -> fiat major (x NATIVE_TO_FIAT_RATE) -> fiat minor
(x FIAT_MINOR_UNITS), rounded half-up to a whole minor unit.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

from web3 import Web3

Amount = Union[Decimal, str, int]


def to_decimal(amount: Amount) -> Decimal:
    if isinstance(amount, float):
        # floats carry binary rounding error; go through their repr
        amount = repr(amount)
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f'Invalid amount: {amount!r}')
    if not value.is_finite():
        raise ValueError(f'Invalid amount: {amount!r}')
    return value


def to_smallest_unit(amount: Amount) -> int:
    """Native units (e.g. '0.1') to wei. Sub-wei fractions are rejected."""
    value = to_decimal(amount)
    if value < 0:
        raise ValueError('Amount must not be negative')
    wei = value * Decimal(10) ** 18
    if wei != wei.to_integral_value():
        raise ValueError(f'Amount {amount!r} has more than 18 decimal places')
    return Web3.to_wei(value, 'ether')


def from_smallest_unit(wei: int) -> Decimal:
    return Decimal(Web3.from_wei(int(wei), 'ether'))


def format_native(value: Decimal) -> str:
    """Plain decimal string without exponent or trailing zeros."""
    value = to_decimal(value)
    if value == 0:
        return '0'
    return format(value.normalize(), 'f')


def native_to_fiat_minor(wei: int, rate: Amount = Decimal('1'), minor_units: int = 100) -> int:
    fiat = from_smallest_unit(wei) * to_decimal(rate) * minor_units
    return int(fiat.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def fiat_minor_to_major(amount: int, minor_units: int = 100) -> Decimal:
    return Decimal(int(amount)) / Decimal(minor_units)
