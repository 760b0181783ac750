"""
Currency helpers: display formatting and per-currency amount rules.
"""
from __future__ import annotations

import re

SUPPORTED_CURRENCIES: dict[str, tuple[str, str]] = {
    "INR": ("₹", "Indian Rupee"),
    "NGN": ("₦", "Nigerian Naira"),
    "USD": ("$", "US Dollar"),
    "EUR": ("€", "Euro"),
    "GBP": ("£", "British Pound"),
}

MINIMUM_AMOUNTS: dict[str, float] = {
    "NGN": 100.0,
    "INR": 10.0,
    "USD": 1.0,
    "EUR": 1.0,
    "GBP": 1.0,
}

_COUNTRY_CURRENCY: dict[str, str] = {
    "IN": "INR",
    "NG": "NGN",
    "US": "USD",
    "GB": "GBP",
    "DE": "EUR",
    "FR": "EUR",
    "IT": "EUR",
    "ES": "EUR",
}

_TRAILING_ZERO_CENTS = re.compile(r"(?<=\d)\.00(?!\d)")


def currency_symbol(currency: str) -> str:
    code = currency.upper()
    if code in SUPPORTED_CURRENCIES:
        return SUPPORTED_CURRENCIES[code][0]
    return currency


def is_supported_currency(currency: str) -> bool:
    return currency.upper() in SUPPORTED_CURRENCIES


def format_amount(amount: float, currency: str) -> str:
    """
    Format an amount for display: symbol, thousands separators, two decimals.

    >>> format_amount(5000, "INR")
    '₹5,000.00'
    >>> format_amount(12.5, "XOF")
    'XOF 12.50'
    """
    code = currency.upper()
    if code in SUPPORTED_CURRENCIES:
        return f"{SUPPORTED_CURRENCIES[code][0]}{amount:,.2f}"
    return f"{currency} {amount:,.2f}"


def format_amount_tidy(amount: float, currency: str) -> str:
    """Like format_amount but drops a trailing '.00' (₹5,000 instead of ₹5,000.00)."""
    return _TRAILING_ZERO_CENTS.sub("", format_amount(amount, currency))


def minimum_amount(currency: str) -> float:
    return MINIMUM_AMOUNTS.get(currency.upper(), 1.0)


def default_currency_for_country(country: str) -> str:
    return _COUNTRY_CURRENCY.get(country.upper(), "INR")
