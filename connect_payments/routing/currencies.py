"""
Currency support, minimum charge amounts and minor-unit conversion.

Persisted payment amounts are in major units (e.g. 12.50 EUR) while every
processor call uses minor units (1250). All conversions across that boundary
go through to_minor_units / to_major_units so the factor always comes from the
currency's decimal class:

  - zero-decimal (JPY, KRW, ...)  x1
  - two-decimal (default)         x100
  - three-decimal (BHD, KWD, ...) x1000
"""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Union

from connect_payments.routing.countries import normalize_country

Number = Union[Decimal, int, float, str]


class DecimalClass(int, Enum):
    """Number of minor-unit digits a currency carries."""

    ZERO = 0
    TWO = 2
    THREE = 3

    @property
    def factor(self) -> int:
        return 10 ** self.value


ZERO_DECIMAL_CURRENCIES: frozenset[str] = frozenset({
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
})

THREE_DECIMAL_CURRENCIES: frozenset[str] = frozenset({"bhd", "jod", "kwd", "omr", "tnd"})


# ─── Country → receivable currencies ───────────────────────────────────
# Native currency first, "usd" always present as the fallback.
_EUR = ("eur", "usd")

COUNTRY_CURRENCIES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "US": ("usd",),
    "PR": ("usd",),
    "CA": ("cad", "usd"),
    "MX": ("mxn", "usd"),
    "GB": ("gbp", "eur", "usd"),
    "CH": ("chf", "eur", "usd"),
    "LI": ("chf", "eur", "usd"),
    "NO": ("nok", "eur", "usd"),
    "IS": ("isk", "eur", "usd"),
    # Eurozone
    "AT": _EUR, "BE": _EUR, "BG": _EUR, "HR": _EUR, "CY": _EUR, "EE": _EUR,
    "FI": _EUR, "FR": _EUR, "DE": _EUR, "GR": _EUR, "IE": _EUR, "IT": _EUR,
    "LV": _EUR, "LT": _EUR, "LU": _EUR, "MT": _EUR, "NL": _EUR, "PT": _EUR,
    "SK": _EUR, "SI": _EUR, "ES": _EUR,
    # EU, non-euro
    "CZ": ("czk", "eur", "usd"),
    "DK": ("dkk", "eur", "usd"),
    "HU": ("huf", "eur", "usd"),
    "PL": ("pln", "eur", "usd"),
    "RO": ("ron", "eur", "usd"),
    "SE": ("sek", "eur", "usd"),
    # Asia-Pacific
    "AU": ("aud", "usd"),
    "NZ": ("nzd", "usd"),
    "JP": ("jpy", "usd"),
    "SG": ("sgd", "usd"),
    "HK": ("hkd", "usd"),
    "MY": ("myr", "usd"),
    "TH": ("thb", "usd"),
    "IN": ("inr", "usd"),
    # Latin America / Middle East
    "BR": ("brl", "usd"),
    "AE": ("aed", "usd"),
    # Cross-border payout countries: received in USD and converted on payout.
    "PH": ("usd",), "SA": ("usd",), "EG": ("usd",), "TR": ("usd",),
    "AR": ("usd",), "NG": ("usd",), "KE": ("usd",), "ZA": ("usd",),
})

# ─── Minimum chargeable amount, in minor units ─────────────────────────
MINIMUM_CHARGE_AMOUNTS: Mapping[str, int] = MappingProxyType({
    "usd": 50, "eur": 50, "gbp": 30, "cad": 50, "aud": 50, "nzd": 50,
    "chf": 50, "sgd": 50, "jpy": 50, "inr": 50, "brl": 50,
    "hkd": 400, "nok": 300, "sek": 300, "dkk": 250, "pln": 200, "ron": 200,
    "aed": 200, "myr": 200, "czk": 1500, "huf": 17500,
    "mxn": 1000, "thb": 1000,
})

DEFAULT_MINIMUM_CHARGE = 50


def normalize_currency(currency: Optional[str]) -> str:
    code = (currency or "").strip().lower()
    if not code:
        raise ValueError("currency is required")
    return code


def decimal_class(currency: str) -> DecimalClass:
    code = normalize_currency(currency)
    if code in ZERO_DECIMAL_CURRENCIES:
        return DecimalClass.ZERO
    if code in THREE_DECIMAL_CURRENCIES:
        return DecimalClass.THREE
    return DecimalClass.TWO


def currencies_for(country_code: Optional[str]) -> list[str]:
    """Ordered currencies a payee in this country can receive. ["usd"] if unknown."""
    return list(COUNTRY_CURRENCIES.get(normalize_country(country_code), ("usd",)))


def is_supported(country_code: Optional[str], currency: Optional[str]) -> bool:
    try:
        code = normalize_currency(currency)
    except ValueError:
        return False
    return code in currencies_for(country_code)


def minimum_charge(
    currency: str,
    overrides: Optional[Mapping[str, int]] = None,
    default: int = DEFAULT_MINIMUM_CHARGE,
) -> int:
    """Smallest chargeable amount in minor units."""
    code = normalize_currency(currency)
    if overrides and code in overrides:
        return overrides[code]
    return MINIMUM_CHARGE_AMOUNTS.get(code, default)


def _to_decimal(amount: Number) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    # str() first so 0.1 becomes Decimal("0.1"), not the binary float expansion
    return Decimal(str(amount))


def to_minor_units(amount: Number, currency: str) -> int:
    """Major units -> integer minor units, rounding half-up."""
    factor = decimal_class(currency).factor
    return int((_to_decimal(amount) * factor).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_major_units(amount_minor: int, currency: str) -> Decimal:
    """Minor units -> Decimal major units at the currency's precision."""
    klass = decimal_class(currency)
    exponent = Decimal(1).scaleb(-klass.value)
    return (Decimal(int(amount_minor)) / klass.factor).quantize(exponent)


def quantize_major(amount: Number, currency: str) -> Decimal:
    """Round a major-unit amount to the precision the currency can carry."""
    return to_major_units(to_minor_units(amount, currency), currency)


def percentage_of(amount_minor: int, rate: Decimal) -> int:
    """rate * amount, rounded half-up to a whole minor unit."""
    return int((Decimal(amount_minor) * rate).quantize(Decimal(1), rounding=ROUND_HALF_UP))
