"""Tests for wei / native / fiat conversions."""
from decimal import Decimal

import pytest

from dataledger.ledger.units import (
    to_decimal, to_smallest_unit, from_smallest_unit, format_native,
    native_to_fiat_minor, fiat_minor_to_major
)


@pytest.mark.parametrize('amount,wei', [
    ('0.1', 10 ** 17),
    (Decimal('1'), 10 ** 18),
    (2, 2 * 10 ** 18),
    ('0.000000000000000001', 1),
    (0.5, 5 * 10 ** 17),
])
def test_to_smallest_unit(amount, wei):
    assert to_smallest_unit(amount) == wei


@pytest.mark.parametrize('amount', ['-1', 'abc', 'NaN', 'Infinity', '0.0000000000000000001'])
def test_to_smallest_unit_rejects_invalid(amount):
    with pytest.raises(ValueError):
        to_smallest_unit(amount)


def test_from_smallest_unit():
    assert from_smallest_unit(10 ** 17) == Decimal('0.1')
    assert from_smallest_unit(0) == 0


def test_format_native():
    assert format_native(Decimal('0')) == '0'
    assert format_native(Decimal('0.100')) == '0.1'
    assert format_native(Decimal('1E+2')) == '100'
    assert format_native(from_smallest_unit(1)) == '0.000000000000000001'


def test_to_decimal_float_uses_repr():
    assert to_decimal(0.1) == Decimal('0.1')


class TestFiatConversion:
    def test_default_rate_and_minor_units(self):
        assert native_to_fiat_minor(10 ** 18) == 100
        assert native_to_fiat_minor(5 * 10 ** 15) == 1  # 0.005 rounds half up

    def test_rate_applied(self):
        assert native_to_fiat_minor(10 ** 18, rate=Decimal('2500.50')) == 250050

    def test_rounds_half_up(self):
        assert native_to_fiat_minor(4 * 10 ** 15) == 0
        assert native_to_fiat_minor(15 * 10 ** 15) == 2

    def test_minor_to_major(self):
        assert fiat_minor_to_major(1999) == Decimal('19.99')
        assert fiat_minor_to_major(5, minor_units=1) == Decimal('5')
