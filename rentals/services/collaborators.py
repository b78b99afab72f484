# rentals/services/collaborators.py
"""
Services the rental engine consumes but does not own. Each base class is
the interface; the ORM-backed defaults read the reference tables of this app.
"""
from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import List, NamedTuple

from django.conf import settings

from rentals.exceptions import PricingUnavailable
from rentals.models import BasePrice, PricingTier, Rental, RentalMedia, RentalType, Vehicle
from rentals.utils import ZERO, as_decimal


# ---------------- Media ----------------

class MediaStore:
    def has_media(self, rental_id, phase: str) -> bool:
        raise NotImplementedError

    def record_media(self, rental_id, phase: str, file_url: str):
        raise NotImplementedError


class DatabaseMediaStore(MediaStore):
    def has_media(self, rental_id, phase: str) -> bool:
        return RentalMedia.objects.filter(rental_id=rental_id, phase=phase).exists()

    def record_media(self, rental_id, phase: str, file_url: str):
        return RentalMedia.objects.create(rental_id=rental_id, phase=phase, file_url=file_url)


def get_media_store() -> MediaStore:
    base_url = getattr(settings, "RENTALS_MEDIA_BASE_URL", "")
    if base_url:
        from integrations.services import RemoteMediaStore

        return RemoteMediaStore(base_url)
    return DatabaseMediaStore()


# ---------------- Vehicles ----------------

class VehicleAvailability:
    def get_status(self, vehicle_id) -> str:
        raise NotImplementedError

    def set_status(self, vehicle_id, status: str):
        raise NotImplementedError


class OrmVehicleAvailability(VehicleAvailability):
    def get_status(self, vehicle_id) -> str:
        return Vehicle.objects.values_list("status", flat=True).get(pk=vehicle_id)

    def set_status(self, vehicle_id, status: str):
        if not Vehicle.objects.filter(pk=vehicle_id).update(status=status):
            raise Vehicle.DoesNotExist(f"Vehicle {vehicle_id} not found")


# ---------------- Extension pricing ----------------

class ExtensionQuote(NamedTuple):
    hours: int
    price: Decimal
    tier_breakdown: List[dict]


class ExtensionPricer:
    def price_extension(self, rental: Rental, hours: int) -> ExtensionQuote:
        raise NotImplementedError


def _active_hourly_price(vehicle_model_id) -> Decimal:
    base = (
        BasePrice.objects.filter(vehicle_model_id=vehicle_model_id, is_active=True, hourly_price__gt=0)
        .order_by("id")
        .first()
    )
    if base is None:
        raise PricingUnavailable("No hourly rate configured for this vehicle model.")
    return base.hourly_price


class TieredExtensionPricer(ExtensionPricer):
    """
    Hourly rate of the vehicle model, adjusted by the best matching active
    tier (highest min_hours that still covers the requested hours).
    """

    def price_extension(self, rental: Rental, hours: int) -> ExtensionQuote:
        model_id = rental.vehicle.vehicle_model_id
        hourly = _active_hourly_price(model_id)
        rate, discount = hourly, ZERO

        tiers = PricingTier.objects.filter(
            vehicle_model_id=model_id, is_active=True, min_hours__lte=hours
        ).order_by("-min_hours")
        for tier in tiers:
            if tier.max_hours is not None and hours > tier.max_hours:
                continue
            if tier.calculation_method == PricingTier.Method.PERCENTAGE and tier.discount_percentage:
                discount = tier.discount_percentage
                rate = hourly * (1 - discount / 100)
            elif tier.calculation_method == PricingTier.Method.FIXED:
                rate = tier.price_amount
            break

        total = (rate * hours).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        breakdown = [{
            "hours": hours,
            "rate": str(rate.quantize(Decimal("0.01"))),
            "discount": str(discount),
            "subtotal": str(total),
        }]
        return ExtensionQuote(hours=hours, price=total, tier_breakdown=breakdown)


# ---------------- Pricing rules ----------------

class PricingRules:
    def calculate_price(self, vehicle_id, start, end, rental_type: str) -> Decimal:
        raise NotImplementedError


class BasePricePricingRules(PricingRules):
    """Rental-type base price of the vehicle's model times the number of periods."""

    PERIOD_HOURS = {
        RentalType.DAILY: 24,
        RentalType.WEEKLY: 24 * 7,
        RentalType.MONTHLY: 24 * 30,
    }

    def calculate_price(self, vehicle_id, start, end, rental_type: str) -> Decimal:
        if not (start and end) or end <= start:
            raise PricingUnavailable("Rental dates are missing or inverted.")
        vehicle = Vehicle.objects.get(pk=vehicle_id)
        base = (
            BasePrice.objects.filter(
                vehicle_model_id=vehicle.vehicle_model_id, rental_type=rental_type, is_active=True
            )
            .order_by("id")
            .first()
        )
        if base is None:
            raise PricingUnavailable(f"No {rental_type} base price for {vehicle}.")

        hours = math.ceil((end - start).total_seconds() / 3600)
        if rental_type == RentalType.HOURLY:
            hourly = as_decimal(base.hourly_price) or as_decimal(base.base_price)
            return hourly * hours
        periods = max(1, math.ceil(hours / self.PERIOD_HOURS.get(rental_type, 24)))
        return as_decimal(base.base_price) * periods
