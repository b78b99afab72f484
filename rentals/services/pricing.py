# rentals/services/pricing.py
"""
What the customer owes in total. Every balance or remaining-amount figure,
displayed or persisted, goes through grand_total().
"""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from rentals.models import Extension, Rental, RentalType
from rentals.utils import ZERO, as_decimal

from .extensions import approved_fees


def extensions_of(rental: Rental) -> list:
    # always a fresh read; a prefetched cache would miss a just-approved extension
    if rental.pk is None:
        return []
    return list(Extension.objects.filter(rental_id=rental.pk))


def base_amount(rental: Rental) -> Decimal:
    """
    Base rate before overage and extensions.
    Hourly rentals: unit_price * quantity_hours. Otherwise unit_price, falling
    back to total_amount. An applied manual override owns the base price.
    """
    if rental.manual_price:
        return as_decimal(rental.total_amount)
    unit_price = as_decimal(rental.unit_price)
    if rental.rental_type == RentalType.HOURLY and rental.quantity_hours:
        return unit_price * rental.quantity_hours
    return unit_price or as_decimal(rental.total_amount)


def grand_total(rental: Rental, extensions: Optional[Iterable[Extension]] = None) -> Decimal:
    if extensions is None:
        extensions = extensions_of(rental)
    return base_amount(rental) + as_decimal(rental.overage_charge) + approved_fees(extensions)


def balance_due(rental: Rental, paid: Optional[Decimal] = None) -> Decimal:
    if paid is None:
        paid = as_decimal(rental.deposit_amount)
    return max(ZERO, grand_total(rental) - paid)
