"""
Cross-border payment routing policy.

The processor needs a different payment-intent shape depending on whether
payer platform and payee settle in the same jurisdiction:

  - Same country → destination charge: application_fee_amount +
    transfer_data.destination. Funds are split atomically at capture.
  - Different country → on_behalf_of the payee account. The processor refuses
    an application fee on this shape, so the platform fee is withheld later
    when the net amount is transferred on settlement.

Two SEPA members still count as cross-border here. Sending a destination
charge across that border is rejected by the processor, so the branch is
decided before the request is built.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from connect_payments.routing.countries import normalize_country


class RoutingStrategy(str, Enum):
    DESTINATION_CHARGE = "destination_charge"
    ON_BEHALF_OF = "on_behalf_of"


@dataclass(frozen=True)
class RoutingDecision:
    """Result of the routing policy for one payee/platform pair."""

    strategy: RoutingStrategy
    payee_country: str
    platform_country: str
    label: str  # "Destination charge (US)", "On behalf of (US → DE)"

    @property
    def is_cross_border(self) -> bool:
        return self.strategy == RoutingStrategy.ON_BEHALF_OF


def needs_cross_border(payee_country: Optional[str], platform_country: Optional[str]) -> bool:
    return normalize_country(payee_country) != normalize_country(platform_country)


def select_routing(payee_country: Optional[str], platform_country: Optional[str]) -> RoutingDecision:
    payee = normalize_country(payee_country)
    platform = normalize_country(platform_country)

    if not needs_cross_border(payee, platform):
        return RoutingDecision(
            strategy=RoutingStrategy.DESTINATION_CHARGE,
            payee_country=payee,
            platform_country=platform,
            label=f"Destination charge ({payee})",
        )

    return RoutingDecision(
        strategy=RoutingStrategy.ON_BEHALF_OF,
        payee_country=payee,
        platform_country=platform,
        label=f"On behalf of ({platform or 'unknown'} → {payee or 'unknown'})",
    )
