# rentals/services/patches.py
from __future__ import annotations

import copy
import logging
from contextlib import contextmanager

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from rentals.exceptions import StaleWrite
from rentals.models import Rental

logger = logging.getLogger(__name__)


class RentalPatch(dict):
    """
    Field changes for one Rental, keyed by model field name.
    Built from the latest loaded instance and applied to it only
    after the write is confirmed.
    """

    def changed_against(self, rental: Rental) -> "RentalPatch":
        return RentalPatch({k: v for k, v in self.items() if getattr(rental, k) != v})

    def __or__(self, other):
        merged = RentalPatch(self)
        merged.update(other)
        return merged


def preview(rental: Rental, patch: dict) -> Rental:
    """Unsaved copy of ``rental`` with ``patch`` applied, for computing derived fields."""
    clone = copy.copy(rental)
    for field, value in patch.items():
        setattr(clone, field, value)
    return clone


@contextmanager
def committing(rental: Rental, patch: dict):
    """
    Version-checked write of ``patch`` plus whatever the block writes, in one
    transaction. The instance only receives the patch once the transaction
    has committed; on StaleWrite or any error in the block it is left as read.
    """
    now = timezone.now()
    with transaction.atomic():
        if patch:
            updated = Rental.objects.filter(pk=rental.pk, version=rental.version).update(
                **patch, version=F("version") + 1, updated_at=now
            )
            if not updated:
                logger.warning("Stale write on rental %s (version %s)", rental.pk, rental.version)
                raise StaleWrite(rental.pk)
        yield
    if patch:
        for field, value in patch.items():
            setattr(rental, field, value)
        rental.version += 1
        rental.updated_at = now


def commit(rental: Rental, patch: dict) -> Rental:
    with committing(rental, patch):
        pass
    return rental


def load_rental(pk, *, persist: bool = True) -> Rental:
    """
    Fresh read of a rental with its payment fields re-derived.
    Drifted fields are written back (version-checked) unless ``persist`` is False.
    """
    from .payments import payment_fields

    rental = (
        Rental.objects.select_related("vehicle", "vehicle__vehicle_model", "package")
        .get(pk=pk)
    )
    drift = payment_fields(rental).changed_against(rental)
    if drift:
        if persist:
            commit(rental, drift)
        else:
            for field, value in drift.items():
                setattr(rental, field, value)
    return rental
