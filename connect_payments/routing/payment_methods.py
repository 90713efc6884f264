"""Payment methods a payer can use, by country."""

from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from connect_payments.routing.countries import SEPA_COUNTRIES, normalize_country


class PaymentMethod(str, Enum):
    CARD = "card"
    LINK = "link"
    US_BANK_ACCOUNT = "us_bank_account"
    SEPA_DEBIT = "sepa_debit"
    IDEAL = "ideal"
    BACS_DEBIT = "bacs_debit"
    ACSS_DEBIT = "acss_debit"
    AU_BECS_DEBIT = "au_becs_debit"


# Available everywhere.
GLOBAL_METHODS: frozenset[str] = frozenset({PaymentMethod.CARD.value, PaymentMethod.LINK.value})

_local: dict[str, set[str]] = {
    "US": {PaymentMethod.US_BANK_ACCOUNT.value},
    "GB": {PaymentMethod.BACS_DEBIT.value},
    "CA": {PaymentMethod.ACSS_DEBIT.value},
    "AU": {PaymentMethod.AU_BECS_DEBIT.value},
}
for _country in SEPA_COUNTRIES:
    _local.setdefault(_country, set()).add(PaymentMethod.SEPA_DEBIT.value)
_local["NL"].add(PaymentMethod.IDEAL.value)

LOCAL_METHODS: Mapping[str, frozenset[str]] = MappingProxyType(
    {country: frozenset(methods) for country, methods in _local.items()}
)


def methods_for(country_code: Optional[str]) -> frozenset[str]:
    """Card and Link everywhere, plus the country's local debit rails."""
    return GLOBAL_METHODS | LOCAL_METHODS.get(normalize_country(country_code), frozenset())


def payment_method_types(method: str) -> list[str]:
    """
    Processor method list for a chosen method.

    Link rides on card, so it must be sent together with card.
    """
    if method == PaymentMethod.LINK.value:
        return [PaymentMethod.LINK.value, PaymentMethod.CARD.value]
    return [method]
