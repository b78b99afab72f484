# rentals/services/overage.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import NamedTuple, Optional, Tuple

from django.conf import settings
from django.db.models import F
from django.db.models.functions import Greatest

from rentals.exceptions import InvalidOdometerReading, PreconditionNotMet
from rentals.models import Rental, RentalPackage, Vehicle
from rentals.utils import as_decimal, money

from .audit import log_action
from .patches import RentalPatch, committing, preview
from .payments import payment_fields

logger = logging.getLogger(__name__)

DEFAULT_INCLUDED_KM = 100
DEFAULT_EXTRA_KM_RATE = Decimal("1.50")


class OverageResult(NamedTuple):
    distance: int
    extra_km: int
    overage_charge: Decimal


def _reading(value, name: str) -> int:
    if value is None or value == "":
        raise InvalidOdometerReading(f"{name} is missing.")
    try:
        reading = int(value)
    except (TypeError, ValueError):
        raise InvalidOdometerReading(f"{name} must be a whole number of kilometers, got {value!r}.")
    if reading < 0:
        raise InvalidOdometerReading(f"{name} cannot be negative.")
    return reading


def compute_overage(start_odometer, end_odometer, included_kilometers, extra_km_rate) -> OverageResult:
    start = _reading(start_odometer, "Start odometer")
    end = _reading(end_odometer, "Ending odometer")
    if end < start:
        raise InvalidOdometerReading(
            f"Ending odometer ({end}) cannot be lower than start odometer ({start})."
        )
    distance = end - start
    extra_km = max(0, distance - int(included_kilometers or 0))
    return OverageResult(distance, extra_km, money(extra_km * as_decimal(extra_km_rate)))


def default_package_terms() -> Tuple[int, Decimal]:
    """(included km, extra km rate) used when no package applies; from settings."""
    included = getattr(settings, "RENTALS_DEFAULT_INCLUDED_KM", DEFAULT_INCLUDED_KM)
    rate = as_decimal(getattr(settings, "RENTALS_DEFAULT_EXTRA_KM_RATE", DEFAULT_EXTRA_KM_RATE))
    return int(included), rate


def assign_package(rental: Rental) -> Optional[RentalPackage]:
    """Active package of the vehicle's model with the fewest included km, if any."""
    if rental.package_id:
        return rental.package
    model_id = getattr(rental.vehicle, "vehicle_model_id", None)
    if not model_id:
        return None
    return (
        RentalPackage.objects.filter(vehicle_model_id=model_id, is_active=True)
        .order_by("included_kilometers", "id")
        .first()
    )


def package_terms(package: Optional[RentalPackage]) -> Tuple[int, Decimal]:
    if package is None:
        return default_package_terms()
    return package.included_kilometers, as_decimal(package.extra_km_rate)


def end_odometer_patch(rental: Rental, ending_odometer) -> RentalPatch:
    """
    Distance and overage for the given reading. Touches ending_odometer,
    total_distance, overage_charge (and package when one gets assigned) plus
    the derived payment fields; the base total_amount is left alone.
    """
    if rental.start_odometer is None:
        raise PreconditionNotMet("start_odometer", "Start odometer was never recorded.")
    package = assign_package(rental)
    included, rate = package_terms(package)
    result = compute_overage(rental.start_odometer, ending_odometer, included, rate)

    patch = RentalPatch(
        ending_odometer=int(ending_odometer),
        total_distance=result.distance,
        overage_charge=result.overage_charge,
    )
    if package is not None and not rental.package_id:
        patch["package"] = package
    logger.info(
        "Overage for %s: %s km driven, %s km included, %s extra -> %s",
        rental.rental_code, result.distance, included, result.extra_km, result.overage_charge,
    )
    return patch | payment_fields(preview(rental, patch))


def bump_vehicle_odometer(vehicle_id, reading: int):
    Vehicle.objects.filter(pk=vehicle_id).update(
        current_odometer=Greatest(F("current_odometer"), reading)
    )


def record_end_odometer(rental: Rental, ending_odometer, actor=None) -> Rental:
    if rental.rental_status not in (Rental.Status.ACTIVE, Rental.Status.COMPLETED):
        raise PreconditionNotMet("rental_active", f"Rental is {rental.rental_status}.")
    patch = end_odometer_patch(rental, ending_odometer)
    with committing(rental, patch):
        bump_vehicle_odometer(rental.vehicle_id, patch["ending_odometer"])
        log_action(
            rental, "end_odometer_recorded", actor,
            ending_odometer=patch["ending_odometer"], overage_charge=patch["overage_charge"],
        )
    return rental


def record_start_odometer(rental: Rental, start_odometer, actor=None) -> Rental:
    from .overrides import ensure_workflow_unlocked

    ensure_workflow_unlocked(rental, actor)
    if rental.rental_status != Rental.Status.SCHEDULED:
        raise PreconditionNotMet("rental_scheduled", "Start odometer is taken before the rental starts.")
    reading = _reading(start_odometer, "Start odometer")
    with committing(rental, RentalPatch(start_odometer=reading)):
        log_action(rental, "start_odometer_recorded", actor, start_odometer=reading)
    return rental
