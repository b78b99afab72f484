# rentals/services/overrides.py
"""
Manual price overrides. Owners/admins apply a price at once; anyone else
files a request that waits for approval and, meanwhile, locks the rental's
workflow for them.
"""
from __future__ import annotations

import logging

from rentals import roles
from rentals.exceptions import InvalidPrice, PreconditionNotMet, UnauthorizedAction
from rentals.models import Rental
from rentals.utils import ZERO, as_decimal, money

from .audit import log_action
from .patches import RentalPatch, committing, preview
from .payments import payment_fields

logger = logging.getLogger(__name__)

Approval = Rental.ApprovalStatus


def workflow_locked(rental: Rental, actor) -> bool:
    return rental.approval_status == Approval.PENDING and not roles.has_capability(
        actor, roles.BYPASS_APPROVAL_GATE
    )


def ensure_workflow_unlocked(rental: Rental, actor):
    if workflow_locked(rental, actor):
        raise PreconditionNotMet(
            "price_approval", "A manual price is waiting for approval by an owner or admin."
        )


def _valid_price(new_price):
    price = as_decimal(new_price, default=None)
    if price is None or price <= ZERO:
        raise InvalidPrice(f"Price must be greater than zero, got {new_price!r}.")
    return money(price)


def _applied_price(rental: Rental, price) -> RentalPatch:
    patch = RentalPatch(
        total_amount=price,
        manual_price=True,
        approval_status=Approval.AUTO,
        pending_total_request=None,
    )
    return patch | payment_fields(preview(rental, patch))


def propose(rental: Rental, new_price, reason: str, actor) -> RentalPatch:
    price = _valid_price(new_price)
    requester = actor if getattr(actor, "pk", None) else None
    if roles.can_approve_price_override(actor):
        return _applied_price(rental, price) | RentalPatch(
            price_override_reason=reason or "", requested_by=requester
        )
    return RentalPatch(
        approval_status=Approval.PENDING,
        pending_total_request=price,
        price_override_reason=reason or "",
        requested_by=requester,
    )


def _ensure_can_decide(rental: Rental, actor, action: str):
    if not roles.can_approve_price_override(actor):
        raise UnauthorizedAction(action, roles.role_of(actor))
    if rental.approval_status != Approval.PENDING or rental.pending_total_request is None:
        raise PreconditionNotMet("approval_pending", "No price override is waiting for a decision.")


def approve(rental: Rental, actor) -> RentalPatch:
    _ensure_can_decide(rental, actor, "approve price overrides")
    return _applied_price(rental, money(rental.pending_total_request))


def decline(rental: Rental, actor, pricing_rules=None) -> RentalPatch:
    """
    Drop the pending price and go back to the automatic one. If the pricing
    rules cannot produce a positive price the current total_amount stays.
    """
    from .collaborators import BasePricePricingRules

    _ensure_can_decide(rental, actor, "decline price overrides")
    rules = pricing_rules or BasePricePricingRules()
    auto_price = as_decimal(rental.total_amount)
    try:
        calculated = as_decimal(
            rules.calculate_price(
                rental.vehicle_id, rental.rental_start_date, rental.rental_end_date, rental.rental_type
            )
        )
        if calculated > ZERO:
            auto_price = calculated
    except Exception as exc:
        logger.warning("Could not recalculate price for %s, keeping %s: %s", rental.rental_code, auto_price, exc)

    patch = RentalPatch(
        total_amount=money(auto_price),
        manual_price=False,
        approval_status=Approval.DECLINED,
        pending_total_request=None,
    )
    return patch | payment_fields(preview(rental, patch))


# ---------------- Committing entry points ----------------

def override_price(rental: Rental, new_price, reason: str, actor) -> Rental:
    patch = propose(rental, new_price, reason, actor)
    with committing(rental, patch):
        log_action(
            rental, "price_override_" + ("applied" if patch.get("manual_price") else "requested"), actor,
            price=new_price, reason=reason or "",
        )
    return rental


def approve_override(rental: Rental, actor) -> Rental:
    price = rental.pending_total_request
    with committing(rental, approve(rental, actor)):
        log_action(rental, "price_override_approved", actor, price=price)
    return rental


def decline_override(rental: Rental, actor, pricing_rules=None) -> Rental:
    price = rental.pending_total_request
    patch = decline(rental, actor, pricing_rules)
    with committing(rental, patch):
        log_action(rental, "price_override_declined", actor, declined_price=price, total_amount=patch["total_amount"])
    return rental
