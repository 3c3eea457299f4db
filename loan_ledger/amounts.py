"""
Amount Handling Module

Decimal helpers for ledger amounts. Contracts are held in a single currency;
scheduled amounts (principal, interest, installments) are whole units, while
money actually received (slip amounts, payments, total paid) keeps the
currency's minor unit so nothing a customer paid is rounded away. NEVER uses
float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Union
import re

# Set global decimal context for financial precision
getcontext().prec = 28

ZERO = Decimal('0')
UNIT = Decimal('1')
CENT = Decimal('0.01')   # Minor unit of received money (satang)

AmountLike = Union[Decimal, int, str]


def to_amount(value: AmountLike) -> Decimal:
    """
    Convert a value to a whole-unit Decimal, rounding half-up.

    Floats are rejected outright; use a string if the source is textual.
    """
    if isinstance(value, float):
        raise TypeError("Amounts must not be floats; pass a Decimal, int or string")
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Cannot convert '{value}' to an amount")
    return value.quantize(UNIT, rounding=ROUND_HALF_UP)


def to_money(value: AmountLike) -> Decimal:
    """
    Validate a received amount, keeping its minor-unit precision.

    Unlike to_amount nothing is rounded: a value finer than the minor unit
    cannot be money and is refused.

    Raises:
        ValueError: If the value is not a number or has more than two decimals
    """
    if isinstance(value, float):
        raise TypeError("Amounts must not be floats; pass a Decimal, int or string")
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Cannot convert '{value}' to an amount")
    if not value.is_finite():
        raise ValueError(f"Amount must be finite, got {value}")
    if value.quantize(CENT) != value:
        raise ValueError(f"Amount {value} is finer than {CENT}")
    return value


def to_rate(value: AmountLike) -> Decimal:
    """Convert an interest rate (percent per month) to Decimal without rounding"""
    if isinstance(value, float):
        raise TypeError("Rates must not be floats; pass a Decimal, int or string")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to a rate")


def parse_amount(value: str) -> Decimal:
    """
    Parse an amount as printed on a transfer slip or typed by staff.

    Handles currency symbols, thousands separators and a decimal comma,
    e.g. "฿9,833.00", "THB 9 833", "9833,50".

    Raises:
        ValueError: If the string does not contain a number
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    clean_value = re.sub(r'[^\d.,\-+]', '', value.strip())

    if ',' in clean_value and '.' in clean_value:
        # Both comma and dot - comma is the thousands separator
        clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:  # Decimal comma
            clean_value = clean_value.replace(',', '.')
        else:
            clean_value = clean_value.replace(',', '')
    elif ',' in clean_value:
        clean_value = clean_value.replace(',', '')

    try:
        return to_money(Decimal(clean_value))
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to an amount")


def format_amount(amount: Decimal, currency_code: str = "THB") -> str:
    """Format for display, e.g. 'THB 118,000' or 'THB 9,833.40'"""
    if amount == amount.to_integral_value():
        return f"{currency_code} {amount:,.0f}"
    return f"{currency_code} {to_money(amount):,.2f}"
