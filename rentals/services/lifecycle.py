# rentals/services/lifecycle.py
"""
Rental state machine.

    scheduled → active → completed
    scheduled | active → cancelled
    scheduled | active → void        (administrative)

Every transition is checked against the latest loaded record, written with
a version check and mirrored onto the vehicle in the same transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from django.utils import timezone

from rentals import roles
from rentals.exceptions import InvalidTransition, PreconditionNotMet, UnauthorizedAction
from rentals.models import Rental, RentalMedia, Vehicle
from rentals.utils import ZERO, as_decimal

from .audit import log_action
from .collaborators import MediaStore, OrmVehicleAvailability, VehicleAvailability, get_media_store
from .overage import bump_vehicle_odometer, end_odometer_patch
from .overrides import ensure_workflow_unlocked, workflow_locked
from .patches import RentalPatch, committing
from .payments import resolve_payment_status
from .pricing import grand_total

logger = logging.getLogger(__name__)

Status = Rental.Status

# requirement names reported by PreconditionNotMet
PAYMENT = "payment"
OPENING_VIDEO = "opening_video"
CLOSING_VIDEO = "closing_video"
START_ODOMETER = "start_odometer"
ENDING_ODOMETER = "ending_odometer"
CONTRACT_SIGNED = "contract_signed"
PRICE_APPROVAL = "price_approval"
CONFIRMATION = "confirmation"
VEHICLE_AVAILABLE = "vehicle_available"

MESSAGES = {
    PAYMENT: "The rental must be fully paid.",
    OPENING_VIDEO: "Record the opening video first.",
    CLOSING_VIDEO: "Record the closing video first.",
    START_ODOMETER: "Record the start odometer reading.",
    ENDING_ODOMETER: "Enter the ending odometer reading.",
    CONTRACT_SIGNED: "The customer must sign the contract.",
    PRICE_APPROVAL: "A manual price is waiting for approval by an owner or admin.",
    CONFIRMATION: "Cancellation must be confirmed.",
    VEHICLE_AVAILABLE: "The vehicle is out on another active rental.",
}


@dataclass
class TransitionResult:
    rental: Rental
    changed: bool
    deposit_reconciliation_available: bool = False


def deposit_reconciliation_available(rental: Rental) -> bool:
    return (
        rental.rental_status == Status.COMPLETED
        and as_decimal(rental.damage_deposit) > ZERO
        and not rental.deposit_returned_at
    )


class RentalStateMachine:
    def __init__(
        self,
        media_store: Optional[MediaStore] = None,
        vehicles: Optional[VehicleAvailability] = None,
        clock=timezone.now,
    ):
        self.media_store = media_store or get_media_store()
        self.vehicles = vehicles or OrmVehicleAvailability()
        self.clock = clock

    # ---------------- checks ----------------

    def _is_paid(self, rental: Rental) -> bool:
        status = resolve_payment_status(rental.deposit_amount, grand_total(rental), rental.payment_status)
        return status == Rental.PaymentStatus.PAID

    def _contract_signed(self, rental: Rental) -> bool:
        return bool(rental.contract_signed or rental.signature_url)

    def _vehicle_held_elsewhere(self, rental: Rental) -> bool:
        return (
            Rental.objects.filter(vehicle_id=rental.vehicle_id, rental_status=Status.ACTIVE)
            .exclude(pk=rental.pk)
            .exists()
        )

    def _fail(self, requirement: str):
        raise PreconditionNotMet(requirement, MESSAGES.get(requirement, ""))

    def start_requirements(self, rental: Rental, actor) -> List[str]:
        """Every unmet start requirement, in the order they are checked."""
        missing = []
        if not self._is_paid(rental):
            missing.append(PAYMENT)
        if not self.media_store.has_media(rental.pk, RentalMedia.Phase.OPENING):
            missing.append(OPENING_VIDEO)
        if rental.start_odometer is None:
            missing.append(START_ODOMETER)
        if not self._contract_signed(rental):
            missing.append(CONTRACT_SIGNED)
        if workflow_locked(rental, actor):
            missing.append(PRICE_APPROVAL)
        if self._vehicle_held_elsewhere(rental):
            missing.append(VEHICLE_AVAILABLE)
        return missing

    def complete_requirements(self, rental: Rental, ending_odometer=None) -> List[str]:
        missing = []
        if not self.media_store.has_media(rental.pk, RentalMedia.Phase.CLOSING):
            missing.append(CLOSING_VIDEO)
        if ending_odometer is None and rental.ending_odometer is None:
            missing.append(ENDING_ODOMETER)
        return missing

    def _transition(self, rental: Rental, patch: RentalPatch, action: str, actor, vehicle_status: str, **details):
        old_status = rental.rental_status
        with committing(rental, patch):
            # another active rental on the same vehicle keeps it rented
            if vehicle_status == Vehicle.Status.AVAILABLE and self._vehicle_held_elsewhere(rental):
                vehicle_status = Vehicle.Status.RENTED
            self.vehicles.set_status(rental.vehicle_id, vehicle_status)
            if "ending_odometer" in patch:
                bump_vehicle_odometer(rental.vehicle_id, patch["ending_odometer"])
            log_action(rental, action, actor, old_status, patch["rental_status"], **details)
        logger.info("Rental %s: %s -> %s", rental.rental_code, old_status, rental.rental_status)

    # ---------------- transitions ----------------

    def start(self, rental: Rental, actor) -> TransitionResult:
        if rental.rental_status == Status.ACTIVE:
            return TransitionResult(rental, changed=False)
        if rental.rental_status != Status.SCHEDULED:
            raise InvalidTransition(rental.rental_status, Status.ACTIVE)
        missing = self.start_requirements(rental, actor)
        if missing:
            self._fail(missing[0])

        patch = RentalPatch(rental_status=Status.ACTIVE, started_at=self.clock())
        self._transition(rental, patch, "start", actor, Vehicle.Status.RENTED)
        return TransitionResult(rental, changed=True)

    def complete(self, rental: Rental, actor, ending_odometer=None) -> TransitionResult:
        """
        Finish an active rental. Without a known ending odometer this stops
        with PreconditionNotMet("ending_odometer") so the operator can supply it.
        """
        if rental.rental_status == Status.COMPLETED:
            return TransitionResult(
                rental, changed=False,
                deposit_reconciliation_available=deposit_reconciliation_available(rental),
            )
        if rental.rental_status != Status.ACTIVE:
            raise InvalidTransition(rental.rental_status, Status.COMPLETED)
        missing = self.complete_requirements(rental, ending_odometer)
        if missing:
            self._fail(missing[0])

        reading = ending_odometer if ending_odometer is not None else rental.ending_odometer
        patch = end_odometer_patch(rental, reading) | RentalPatch(
            rental_status=Status.COMPLETED, completed_at=self.clock()
        )
        self._transition(
            rental, patch, "complete", actor, Vehicle.Status.AVAILABLE,
            total_distance=patch["total_distance"], overage_charge=patch["overage_charge"],
        )
        return TransitionResult(
            rental, changed=True,
            deposit_reconciliation_available=deposit_reconciliation_available(rental),
        )

    def cancel(self, rental: Rental, actor, confirmed: bool = False) -> TransitionResult:
        if rental.rental_status == Status.CANCELLED:
            return TransitionResult(rental, changed=False)
        if not rental.is_open:
            raise InvalidTransition(rental.rental_status, Status.CANCELLED)
        if not confirmed:
            self._fail(CONFIRMATION)

        patch = RentalPatch(rental_status=Status.CANCELLED, cancelled_at=self.clock())
        self._transition(rental, patch, "cancel", actor, Vehicle.Status.AVAILABLE)
        return TransitionResult(rental, changed=True)

    def void(self, rental: Rental, actor) -> TransitionResult:
        if not roles.has_capability(actor, roles.VOID_RENTAL):
            raise UnauthorizedAction("void rentals", roles.role_of(actor))
        if rental.rental_status == Status.VOID:
            return TransitionResult(rental, changed=False)
        if not rental.is_open:
            raise InvalidTransition(rental.rental_status, Status.VOID)

        patch = RentalPatch(rental_status=Status.VOID, cancelled_at=self.clock())
        self._transition(rental, patch, "void", actor, Vehicle.Status.AVAILABLE)
        return TransitionResult(rental, changed=True)

    # ---------------- workflow steps before start ----------------

    def sign_contract(self, rental: Rental, actor, signature_url: str) -> Rental:
        ensure_workflow_unlocked(rental, actor)
        if self._contract_signed(rental):
            return rental
        if rental.rental_status != Status.SCHEDULED:
            raise InvalidTransition(rental.rental_status, "signed")
        if not self._is_paid(rental):
            self._fail(PAYMENT)
        if not self.media_store.has_media(rental.pk, RentalMedia.Phase.OPENING):
            self._fail(OPENING_VIDEO)
        if rental.start_odometer is None:
            self._fail(START_ODOMETER)
        if not signature_url:
            raise PreconditionNotMet("signature", "A signature is required.")

        with committing(rental, RentalPatch(contract_signed=True, signature_url=signature_url)):
            log_action(rental, "contract_signed", actor)
        return rental

    def attach_media(self, rental: Rental, phase: str, file_url: str, actor):
        ensure_workflow_unlocked(rental, actor)
        if phase not in RentalMedia.Phase.values:
            raise PreconditionNotMet("media_phase", f"Unknown media phase {phase!r}.")
        media = self.media_store.record_media(rental.pk, phase, file_url)
        logger.info("Rental %s: %s media attached", rental.rental_code, phase)
        return media
