"""
Country-specific account capability configuration.

When a payee account is created the processor must be told which payout and
acquiring rails to request. Asking for a capability a country cannot hold
(e.g. card acquiring in Mexico for a payee-type account) makes account
creation fail upstream, so the request is derived from this table.
"""

from types import MappingProxyType
from typing import Mapping, Optional

from connect_payments.routing.countries import SEPA_COUNTRIES, SUPPORTED_COUNTRIES, normalize_country

TRANSFERS = "transfers"
CARD_PAYMENTS = "card_payments"

# Countries where a payee account cannot request card acquiring.
CARD_PAYMENTS_EXCLUDED: frozenset[str] = frozenset({"MX", "HK", "TH", "IS"})

# Local bank-debit capabilities, keyed by country.
_LOCAL_DEBIT: dict[str, tuple[str, ...]] = {
    "US": ("us_bank_account_ach_payments",),
    "GB": ("bacs_debit_payments",),
    "CA": ("acss_debit_payments",),
    "AU": ("au_becs_debit_payments",),
}
for _country in SEPA_COUNTRIES:
    _LOCAL_DEBIT[_country] = ("sepa_debit_payments",)
_LOCAL_DEBIT["NL"] = ("sepa_debit_payments", "ideal_payments")


def _build(country: str) -> Mapping[str, bool]:
    caps = {TRANSFERS: True}
    if country not in CARD_PAYMENTS_EXCLUDED:
        caps[CARD_PAYMENTS] = True
    for name in _LOCAL_DEBIT.get(country, ()):
        caps[name] = True
    return MappingProxyType(caps)


COUNTRY_CAPABILITIES: Mapping[str, Mapping[str, bool]] = MappingProxyType(
    {country: _build(country) for country in SUPPORTED_COUNTRIES}
)

_DEFAULT_CAPABILITIES: Mapping[str, bool] = MappingProxyType({TRANSFERS: True, CARD_PAYMENTS: True})


def capabilities_for(country_code: Optional[str]) -> dict[str, bool]:
    """
    Capabilities to request for a payee account in the given country.

    Returns a fresh dict of capability name -> requested flag. Unknown
    countries get transfers + card payments.
    """
    country = normalize_country(country_code)
    return dict(COUNTRY_CAPABILITIES.get(country, _DEFAULT_CAPABILITIES))


def supports_card_payments(country_code: Optional[str]) -> bool:
    return CARD_PAYMENTS in capabilities_for(country_code)


def capability_request(country_code: Optional[str]) -> dict[str, dict[str, bool]]:
    """Processor wire shape: {"transfers": {"requested": True}, ...}."""
    return {name: {"requested": flag} for name, flag in capabilities_for(country_code).items()}
