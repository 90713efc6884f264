from connect_payments.routing.capabilities import capabilities_for
from connect_payments.routing.countries import SUPPORTED_COUNTRIES
from connect_payments.routing.cross_border import RoutingDecision, needs_cross_border, select_routing
from connect_payments.routing.currencies import currencies_for, is_supported, to_major_units, to_minor_units
from connect_payments.routing.payment_methods import methods_for

__all__ = [
    "SUPPORTED_COUNTRIES",
    "capabilities_for",
    "currencies_for",
    "is_supported",
    "methods_for",
    "needs_cross_border",
    "select_routing",
    "RoutingDecision",
    "to_minor_units",
    "to_major_units",
]
