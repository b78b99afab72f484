# rentals/services/payments.py
"""
Payment status derivation, payments, overdue marking and damage-deposit return.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import NamedTuple, Optional

from django.utils import timezone

from rentals.exceptions import InvalidAmount, PreconditionNotMet
from rentals.models import Rental
from rentals.utils import ZERO, as_decimal, clamp_zero, money

from .audit import log_action
from .patches import RentalPatch, committing, preview
from .pricing import grand_total

logger = logging.getLogger(__name__)

PaymentStatus = Rental.PaymentStatus


def resolve_payment_status(deposit_amount, total_amount, current_status=None) -> str:
    """
    Derive payment status from amounts. OVERDUE is absorbing: it is only
    ever set and cleared by explicit actions, never by this rule.
    """
    if current_status == PaymentStatus.OVERDUE:
        return PaymentStatus.OVERDUE
    total = as_decimal(total_amount)
    deposit = as_decimal(deposit_amount)
    if total <= ZERO:
        return PaymentStatus.UNPAID
    if deposit <= ZERO:
        return PaymentStatus.UNPAID
    if deposit >= total:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


def settled_by_deposit(rental: Rental) -> bool:
    return bool(rental.deposit_returned_at) and as_decimal(rental.deposit_deduction_amount) > ZERO


def payment_fields(rental: Rental, extensions=None) -> RentalPatch:
    """
    ``payment_status`` and ``remaining_amount`` derived from the rental's
    amounts. Empty while overdue, and once a deposit deduction settled the
    balance (a finalized return is never recomputed).
    """
    if rental.payment_status == PaymentStatus.OVERDUE or settled_by_deposit(rental):
        return RentalPatch()
    total = grand_total(rental, extensions)
    paid = as_decimal(rental.deposit_amount)
    return RentalPatch(
        payment_status=resolve_payment_status(paid, total, rental.payment_status),
        remaining_amount=money(clamp_zero(total - paid)),
    )


def record_payment(rental: Rental, amount, actor) -> Rental:
    """Add a payment to ``deposit_amount``. An explicit payment clears OVERDUE."""
    from .overrides import ensure_workflow_unlocked

    ensure_workflow_unlocked(rental, actor)
    amount = as_decimal(amount, default=None)
    if amount is None or amount <= ZERO:
        raise InvalidAmount("Payment amount must be greater than zero.")

    patch = RentalPatch(deposit_amount=money(as_decimal(rental.deposit_amount) + amount))
    if rental.payment_status == PaymentStatus.OVERDUE:
        patch["payment_status"] = PaymentStatus.UNPAID
    patch |= payment_fields(preview(rental, patch))

    with committing(rental, patch):
        log_action(rental, "payment_recorded", actor, amount=amount, payment_status=patch.get("payment_status", ""))
    return rental


def mark_overdue(rental: Rental, now=None, actor=None) -> bool:
    """
    The only way into OVERDUE: an active or completed rental past its end
    date with money still owed. Returns True when the rental was marked.
    """
    now = now or timezone.now()
    if rental.payment_status == PaymentStatus.OVERDUE or settled_by_deposit(rental):
        return False
    if rental.rental_status not in (Rental.Status.ACTIVE, Rental.Status.COMPLETED):
        return False
    if not rental.rental_end_date or rental.rental_end_date >= now:
        return False
    derived = payment_fields(rental)
    if derived["remaining_amount"] <= ZERO:
        return False

    patch = derived | RentalPatch(payment_status=PaymentStatus.OVERDUE)
    with committing(rental, patch):
        log_action(rental, "marked_overdue", actor, remaining_amount=patch["remaining_amount"])
    return True


# ---------------- Damage deposit ----------------

class DepositReturn(NamedTuple):
    balance_due: Decimal
    deposit_return: Decimal
    additional_owed: Decimal
    deduction_applied: bool
    finalized: bool = False


def compute_deposit_return(damage_deposit, grand_total_amount, deposit_paid, deduct_balance: bool) -> DepositReturn:
    damage_deposit = as_decimal(damage_deposit)
    balance_due = clamp_zero(as_decimal(grand_total_amount) - as_decimal(deposit_paid))
    if deduct_balance and balance_due > ZERO:
        return DepositReturn(
            balance_due=balance_due,
            deposit_return=clamp_zero(damage_deposit - balance_due),
            additional_owed=clamp_zero(balance_due - damage_deposit),
            deduction_applied=True,
        )
    return DepositReturn(
        balance_due=balance_due,
        deposit_return=damage_deposit,
        additional_owed=ZERO,
        deduction_applied=False,
    )


def preview_deposit_return(rental: Rental, deduct_balance: bool = False) -> DepositReturn:
    """Advisory figures for the operator; the stored ones once finalized."""
    if rental.deposit_returned_at:
        deducted = as_decimal(rental.deposit_deduction_amount)
        owed = as_decimal(rental.deposit_additional_owed)
        return DepositReturn(
            balance_due=as_decimal(rental.deposit_balance_due),
            deposit_return=as_decimal(rental.deposit_return_amount),
            additional_owed=owed,
            deduction_applied=deducted > ZERO,
            finalized=True,
        )
    return compute_deposit_return(
        rental.damage_deposit, grand_total(rental), rental.deposit_amount, deduct_balance
    )


def finalize_deposit_return(
    rental: Rental, actor, signature_url: Optional[str], deduct_balance: bool = False, now=None
) -> DepositReturn:
    """
    Persist the deposit return once the customer signed for it.
    A deduction settles the balance: payment_status becomes PAID and
    remaining_amount 0, even though no new money changed hands.
    """
    if rental.deposit_returned_at:
        return preview_deposit_return(rental)
    if rental.rental_status != Rental.Status.COMPLETED:
        raise PreconditionNotMet("rental_completed", "The deposit is returned after the rental is completed.")
    if as_decimal(rental.damage_deposit) <= ZERO:
        raise PreconditionNotMet("damage_deposit", "This rental holds no damage deposit.")
    if not signature_url:
        raise PreconditionNotMet("deposit_signature", "The customer must sign for the deposit return.")

    calc = compute_deposit_return(
        rental.damage_deposit, grand_total(rental), rental.deposit_amount, deduct_balance
    )
    deducted = calc.balance_due - calc.additional_owed if calc.deduction_applied else ZERO
    patch = RentalPatch(
        deposit_returned_at=now or timezone.now(),
        deposit_return_amount=money(calc.deposit_return),
        deposit_balance_due=money(calc.balance_due),
        deposit_deduction_amount=money(deducted),
        deposit_additional_owed=money(calc.additional_owed if calc.deduction_applied else ZERO),
        deposit_deduction_reason=(
            f"Unpaid rental balance: {money(calc.balance_due)}" if calc.deduction_applied else ""
        ),
        deposit_return_signature_url=signature_url,
    )
    if calc.deduction_applied:
        patch["payment_status"] = PaymentStatus.PAID
        patch["remaining_amount"] = ZERO

    with committing(rental, patch):
        log_action(
            rental, "deposit_returned", actor,
            deposit_return=calc.deposit_return, deducted=deducted, additional_owed=calc.additional_owed,
        )
    logger.info("Deposit returned on %s: %s (deducted %s)", rental.rental_code, calc.deposit_return, deducted)
    return preview_deposit_return(rental)
