# rentals/services/extensions.py
from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Iterable

from django.db import transaction
from django.utils import timezone

from rentals import roles
from rentals.exceptions import PreconditionNotMet, UnauthorizedAction
from rentals.models import Extension, Rental
from rentals.utils import ZERO, as_decimal, money

logger = logging.getLogger(__name__)


# ---------------- Ledger ----------------

def approved_fees(extensions: Iterable[Extension]) -> Decimal:
    """Sum of approved extension prices; pending and rejected count as zero."""
    return sum(
        (as_decimal(e.price) for e in extensions if e.status == Extension.Status.APPROVED),
        ZERO,
    )


def approved_hours(extensions: Iterable[Extension]) -> int:
    return sum(e.hours for e in extensions if e.status == Extension.Status.APPROVED)


# ---------------- Workflow ----------------

def request_extension(rental: Rental, hours, actor, pricer=None, notes: str = "") -> Extension:
    """
    Create a pending extension priced by the extension pricing collaborator.
    The ledger never prices anything itself.
    """
    from .collaborators import TieredExtensionPricer
    from .overrides import ensure_workflow_unlocked

    ensure_workflow_unlocked(rental, actor)
    if not rental.is_open:
        raise PreconditionNotMet("rental_open", f"Rental is {rental.rental_status}; it cannot be extended.")
    try:
        hours = int(hours)
    except (TypeError, ValueError):
        hours = 0
    if hours <= 0:
        raise PreconditionNotMet("extension_hours", "Extension hours must be positive.")

    quote = (pricer or TieredExtensionPricer()).price_extension(rental, hours)
    extension = Extension.objects.create(
        rental=rental,
        hours=quote.hours,
        price=money(quote.price),
        requested_by=actor if getattr(actor, "pk", None) else None,
        notes=notes,
        tier_breakdown=quote.tier_breakdown,
    )
    logger.info("Extension requested for %s: +%sh at %s", rental.rental_code, extension.hours, extension.price)
    return extension


def _ensure_pending(extension: Extension):
    if extension.status != Extension.Status.PENDING:
        raise PreconditionNotMet("extension_pending", f"Extension is already {extension.status}.")


def _decide(status: str, actor, now, notes=None) -> dict:
    changes = {
        "status": status,
        "decided_by": actor if getattr(actor, "pk", None) else None,
        "decided_at": now,
    }
    if notes is not None:
        changes["notes"] = notes
    return changes


def approve_extension(extension: Extension, actor, now=None) -> Extension:
    """Approve, push the rental's end date and re-derive its balance."""
    from .audit import log_action
    from .patches import RentalPatch, committing, preview
    from .payments import payment_fields
    from .pricing import extensions_of

    if not roles.has_capability(actor, roles.DECIDE_EXTENSION):
        raise UnauthorizedAction("approve extensions", roles.role_of(actor))
    _ensure_pending(extension)
    now = now or timezone.now()
    rental = extension.rental

    patch = RentalPatch(
        extension_count=rental.extension_count + 1,
        total_extended_hours=rental.total_extended_hours + extension.hours,
    )
    if rental.rental_end_date:
        patch["rental_end_date"] = rental.rental_end_date + timedelta(hours=extension.hours)
        if not rental.original_end_date:
            patch["original_end_date"] = rental.rental_end_date

    decision = _decide(Extension.Status.APPROVED, actor, now)
    ledger = [e for e in extensions_of(rental) if e.pk != extension.pk]
    ledger.append(preview(extension, decision))
    patch |= payment_fields(preview(rental, patch), extensions=ledger)

    with committing(rental, patch):
        _write_decision(extension, decision)
        log_action(
            rental, "extension_approved", actor,
            hours=extension.hours, price=extension.price, extension_id=extension.pk,
        )
    for field, value in decision.items():
        setattr(extension, field, value)
    logger.info("Extension %s approved; %s now ends %s", extension.pk, rental.rental_code, rental.rental_end_date)
    return extension


def reject_extension(extension: Extension, actor, notes: str = "", now=None) -> Extension:
    """Reject by a privileged role, or cancel by the operator who requested it."""
    from .audit import log_action

    is_requester = (
        extension.requested_by_id is not None
        and getattr(actor, "pk", None) == extension.requested_by_id
    )
    if not (is_requester or roles.has_capability(actor, roles.DECIDE_EXTENSION)):
        raise UnauthorizedAction("reject extensions", roles.role_of(actor))
    _ensure_pending(extension)

    decision = _decide(
        Extension.Status.REJECTED, actor, now or timezone.now(),
        notes=notes or ("Cancelled by requester" if is_requester else extension.notes),
    )
    with transaction.atomic():
        _write_decision(extension, decision)
        log_action(extension.rental, "extension_rejected", actor, extension_id=extension.pk)
    for field, value in decision.items():
        setattr(extension, field, value)
    return extension


def _write_decision(extension: Extension, decision: dict):
    updated = Extension.objects.filter(
        pk=extension.pk, status=Extension.Status.PENDING
    ).update(**decision)
    if not updated:
        raise PreconditionNotMet("extension_pending", "Extension was decided by someone else.")
