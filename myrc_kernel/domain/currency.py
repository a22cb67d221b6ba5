"""
Currency -- supported currencies and CAD conversion.

Responsibility:
    Defines the closed set of currencies an amount may be recorded in, and
    the rules for pairing a currency with an exchange rate to CAD.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.  Used by every module that
    stores an amount with a currency (funding, spending, procurement,
    invoices, quotes, training and travel costs).

Invariants enforced:
    - CAD is the base currency: CAD amounts never carry an exchange rate.
    - Any other currency requires an exchange rate strictly greater than 0.
    - CAD equivalents are rounded half-up to cents.

Failure modes:
    - InvalidCurrencyError for codes outside the supported set.
    - InvalidExchangeRateError for a missing or non-positive rate.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from myrc_kernel.exceptions import InvalidCurrencyError, InvalidExchangeRateError

_CENTS = Decimal("0.01")


class Currency(str, Enum):
    """Supported currencies, valued by ISO 4217 code."""

    CAD = "CAD"
    GBP = "GBP"
    AUD = "AUD"
    NZD = "NZD"
    USD = "USD"
    EUR = "EUR"

    @property
    def display_name(self) -> str:
        return _CURRENCY_INFO[self].name

    @property
    def symbol(self) -> str:
        return _CURRENCY_INFO[self].symbol

    @classmethod
    def from_code(cls, code: str | None) -> Currency | None:
        """Case-insensitive lookup; None for blank or unknown codes."""
        if code is None or not code.strip():
            return None
        try:
            return cls(code.strip().upper())
        except ValueError:
            return None


@dataclass(frozen=True)
class CurrencyInfo:
    """Display information for a single currency."""

    code: str
    name: str
    symbol: str


_CURRENCY_INFO: dict[Currency, CurrencyInfo] = {
    Currency.CAD: CurrencyInfo("CAD", "Canadian Dollar", "$"),
    Currency.GBP: CurrencyInfo("GBP", "Pound Sterling", "£"),
    Currency.AUD: CurrencyInfo("AUD", "Australian Dollar", "A$"),
    Currency.NZD: CurrencyInfo("NZD", "New Zealand Dollar", "NZ$"),
    Currency.USD: CurrencyInfo("USD", "US Dollar", "$"),
    Currency.EUR: CurrencyInfo("EUR", "Euro", "€"),
}

DEFAULT_CURRENCY = Currency.CAD


def default_currency() -> CurrencyInfo:
    return _CURRENCY_INFO[DEFAULT_CURRENCY]


def list_currencies() -> list[CurrencyInfo]:
    """All supported currencies in declaration order."""
    return [_CURRENCY_INFO[c] for c in Currency]


def resolve_currency(
    code: str | None,
    exchange_rate: Decimal | None,
) -> tuple[Currency, Decimal | None]:
    """
    Validate a (currency, exchange rate) pair as submitted by a client.

    Preconditions:
        - ``code`` may be None or blank, meaning CAD.
    Postconditions:
        - Returns (CAD, None) for CAD regardless of the submitted rate.
        - Returns (currency, rate) with rate > 0 otherwise.
    Raises:
        InvalidCurrencyError: unknown currency code.
        InvalidExchangeRateError: non-CAD currency without a positive rate.
    """
    if code is None or not str(code).strip():
        return DEFAULT_CURRENCY, None
    currency = Currency.from_code(str(code))
    if currency is None:
        raise InvalidCurrencyError(str(code))
    if currency is DEFAULT_CURRENCY:
        return currency, None
    if exchange_rate is None or Decimal(exchange_rate) <= 0:
        raise InvalidExchangeRateError(currency.value, exchange_rate)
    return currency, Decimal(exchange_rate)


def parse_currency(code: str | None) -> Currency:
    """Strict parse used for secondary currencies (participant costs etc.)."""
    if code is None or not str(code).strip():
        return DEFAULT_CURRENCY
    currency = Currency.from_code(str(code))
    if currency is None:
        raise InvalidCurrencyError(str(code))
    return currency


def to_cad(
    amount: Decimal | None,
    currency: Currency | str | None,
    exchange_rate: Decimal | None,
) -> Decimal | None:
    """
    CAD equivalent of ``amount``.

    CAD (or missing currency) passes through; other currencies are multiplied
    by ``exchange_rate``.  Returns None when the amount or a required rate is
    missing.
    """
    if amount is None:
        return None
    if currency is None or Currency(currency) is DEFAULT_CURRENCY:
        return Decimal(amount).quantize(_CENTS, rounding=ROUND_HALF_UP)
    if exchange_rate is None:
        return None
    return (Decimal(amount) * Decimal(exchange_rate)).quantize(_CENTS, rounding=ROUND_HALF_UP)
