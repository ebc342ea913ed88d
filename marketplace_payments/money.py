"""
Fixed-point money helpers.

Amounts are stored as integers in the currency's minor unit (cents for USD,
kobo for NGN, whole yen for JPY) and handled in Python as decimal.Decimal.
Binary floats never touch a monetary value.

The exponent table covers the currencies the two gateways settle in. A code
missing from it is rejected rather than guessed, since a wrong exponent
charges the customer 100x too much or too little.
"""

from decimal import Decimal, InvalidOperation

from marketplace_payments.exceptions import InvalidAmountError, InvalidCurrencyError

# ISO-4217 minor-unit exponents
CURRENCY_EXPONENTS: dict[str, int] = {
    # Two-decimal currencies
    "AED": 2, "AUD": 2, "BRL": 2, "CAD": 2, "CHF": 2, "CNY": 2, "CZK": 2,
    "DKK": 2, "EGP": 2, "EUR": 2, "GBP": 2, "GHS": 2, "HKD": 2, "INR": 2,
    "KES": 2, "MAD": 2, "MWK": 2, "MXN": 2, "MYR": 2, "NGN": 2, "NOK": 2,
    "NZD": 2, "PLN": 2, "SEK": 2, "SGD": 2, "TZS": 2, "USD": 2, "ZAR": 2,
    "ZMW": 2,
    # Zero-decimal currencies
    "CLP": 0, "JPY": 0, "KRW": 0, "RWF": 0, "UGX": 0, "VND": 0, "XAF": 0,
    "XOF": 0,
    # Three-decimal currencies
    "BHD": 3, "JOD": 3, "KWD": 3, "OMR": 3, "TND": 3,
}


def normalize_currency(currency: str) -> str:
    """Upper-case a currency code and check it is supported."""
    code = currency.strip().upper()
    if code not in CURRENCY_EXPONENTS:
        raise InvalidCurrencyError(currency)
    return code


def to_minor_units(amount: Decimal, currency: str) -> int:
    """
    Convert a major-unit amount to an integer count of minor units.

    Raises:
        InvalidAmountError: If the amount is not positive or carries more
            fractional digits than the currency allows (e.g. 10.005 USD).
        InvalidCurrencyError: If the currency is unknown.
    """
    code = normalize_currency(currency)
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(f"Invalid amount: {amount!r}")

    if not value.is_finite() or value <= 0:
        raise InvalidAmountError("Amount must be greater than zero")

    scaled = value.scaleb(CURRENCY_EXPONENTS[code])
    if scaled != scaled.to_integral_value():
        raise InvalidAmountError(
            f"{code} amounts allow at most {CURRENCY_EXPONENTS[code]} decimal places"
        )
    return int(scaled)


def from_minor_units(amount_minor: int, currency: str) -> Decimal:
    """Convert stored minor units back to a Decimal quantized to the currency."""
    exponent = CURRENCY_EXPONENTS[normalize_currency(currency)]
    return Decimal(amount_minor).scaleb(-exponent)
