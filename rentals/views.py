from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.db.models import Q
from django.http import Http404, HttpResponseNotAllowed
from django.shortcuts import get_object_or_404, redirect, render

from .exceptions import PreconditionNotMet, RentalError
from .forms import (
    CancelRentalForm,
    DepositReturnForm,
    ExtensionRequestForm,
    MediaForm,
    OdometerForm,
    PaymentForm,
    PriceOverrideForm,
    SignatureForm,
)
from .models import Extension, Rental
from .roles import can_approve_price_override
from .services import extensions, overage, overrides, payments
from .services.lifecycle import RentalStateMachine, deposit_reconciliation_available
from .services.patches import load_rental
from .services.pricing import base_amount, extensions_of, grand_total


def _company_rentals(user):
    qs = Rental.objects.all()
    if user.is_superuser:
        return qs
    return qs.filter(Q(company__user=user) | Q(company__staff__user=user)).distinct()


def _get_rental(request, rental_id: int) -> Rental:
    get_object_or_404(_company_rentals(request.user), id=rental_id)
    return load_rental(rental_id)


def _back(rental_id):
    return redirect("rentals:rental_detail", rental_id=rental_id)


def _form_errors(request, form):
    for errors in form.errors.values():
        for error in errors:
            messages.error(request, error)


# ---------------- List / detail ----------------

@login_required
def rentals_list(request):
    q = _company_rentals(request.user).select_related("vehicle").order_by("-created_at")
    status = request.GET.get("status")
    if status:
        q = q.filter(rental_status=status)
    return render(request, "rentals/rentals_list.html", {"rentals": q, "status": status})


@login_required
def rental_detail(request, rental_id: int):
    rental = _get_rental(request, rental_id)
    machine = RentalStateMachine()
    deduct = request.GET.get("deduct") == "1"
    context = {
        "rental": rental,
        "extensions": extensions_of(rental),
        "base_amount": base_amount(rental),
        "grand_total": grand_total(rental),
        "workflow_locked": overrides.workflow_locked(rental, request.user),
        "is_admin": can_approve_price_override(request.user),
        "start_requirements": (
            machine.start_requirements(rental, request.user)
            if rental.rental_status == Rental.Status.SCHEDULED else []
        ),
        "deposit": (
            payments.preview_deposit_return(rental, deduct)
            if deposit_reconciliation_available(rental) or rental.deposit_returned_at else None
        ),
        "deduct": deduct,
    }
    return render(request, "rentals/rental_detail.html", context)


# ---------------- Transitions ----------------

@login_required
def rental_transition(request, rental_id: int, action: str):
    """Allowed actions: start, complete, cancel, void."""
    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])
    rental = _get_rental(request, rental_id)
    machine = RentalStateMachine()

    try:
        if action == "start":
            machine.start(rental, request.user)
        elif action == "complete":
            reading = request.POST.get("ending_odometer") or None
            result = machine.complete(rental, request.user, ending_odometer=reading)
            if result.deposit_reconciliation_available:
                messages.info(request, "Damage deposit can now be returned.")
        elif action == "cancel":
            form = CancelRentalForm(request.POST)
            confirmed = form.is_valid() and form.cleaned_data["confirm"]
            machine.cancel(rental, request.user, confirmed=confirmed)
        elif action == "void":
            machine.void(rental, request.user)
        else:
            messages.error(request, "Invalid action.")
            return _back(rental_id)
    except PreconditionNotMet as exc:
        if exc.requirement == "ending_odometer":
            messages.warning(request, "Enter the ending odometer to complete the rental.")
        else:
            messages.error(request, str(exc))
        return _back(rental_id)
    except RentalError as exc:
        messages.error(request, str(exc))
        return _back(rental_id)

    messages.success(request, f"Rental {rental.rental_code} is now {rental.rental_status}.")
    return _back(rental_id)


def _post_action(request, rental_id, form_class, action, success):
    """Validate ``form_class``, run ``action(rental, cleaned_data)`` and report."""
    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])
    rental = _get_rental(request, rental_id)
    form = form_class(request.POST)
    if not form.is_valid():
        _form_errors(request, form)
        return _back(rental_id)
    try:
        action(rental, form.cleaned_data)
    except RentalError as exc:
        messages.error(request, str(exc))
    else:
        messages.success(request, success)
    return _back(rental_id)


@login_required
def record_odometer(request, rental_id: int, which: str):
    if which == "start":
        fn = lambda r, d: overage.record_start_odometer(r, d["reading"], request.user)  # noqa: E731
    elif which == "end":
        fn = lambda r, d: overage.record_end_odometer(r, d["reading"], request.user)  # noqa: E731
    else:
        raise Http404("Unknown odometer reading")
    return _post_action(request, rental_id, OdometerForm, fn, "Odometer recorded.")


@login_required
def record_payment(request, rental_id: int):
    return _post_action(
        request, rental_id, PaymentForm,
        lambda r, d: payments.record_payment(r, d["amount"], request.user),
        "Payment recorded.",
    )


@login_required
def attach_media(request, rental_id: int):
    return _post_action(
        request, rental_id, MediaForm,
        lambda r, d: RentalStateMachine().attach_media(r, d["phase"], d["file_url"], request.user),
        "Video saved.",
    )


@login_required
def sign_contract(request, rental_id: int):
    return _post_action(
        request, rental_id, SignatureForm,
        lambda r, d: RentalStateMachine().sign_contract(r, request.user, d["signature_url"]),
        "Contract signed.",
    )


# ---------------- Price ----------------

@login_required
def price_override(request, rental_id: int):
    success = (
        "Price updated."
        if can_approve_price_override(request.user)
        else "Price override request submitted for admin approval."
    )
    return _post_action(
        request, rental_id, PriceOverrideForm,
        lambda r, d: overrides.override_price(r, d["new_price"], d["reason"], request.user),
        success,
    )


@login_required
def price_decision(request, rental_id: int, decision: str):
    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])
    rental = _get_rental(request, rental_id)
    try:
        if decision == "approve":
            overrides.approve_override(rental, request.user)
            messages.success(request, "Price override approved.")
        elif decision == "decline":
            overrides.decline_override(rental, request.user)
            messages.success(request, "Price override declined. Price recalculated.")
        else:
            messages.error(request, "Invalid action.")
    except RentalError as exc:
        messages.error(request, str(exc))
    return _back(rental_id)


# ---------------- Extensions ----------------

@login_required
def extension_request(request, rental_id: int):
    return _post_action(
        request, rental_id, ExtensionRequestForm,
        lambda r, d: extensions.request_extension(r, d["hours"], request.user, notes=d["notes"]),
        "Extension requested.",
    )


@login_required
def extension_decision(request, extension_id: int, decision: str):
    if request.method != "POST":
        return HttpResponseNotAllowed(["POST"])
    extension = get_object_or_404(
        Extension.objects.select_related("rental"),
        id=extension_id,
        rental__in=_company_rentals(request.user),
    )
    try:
        if decision == "approve":
            extensions.approve_extension(extension, request.user)
            messages.success(request, "Extension approved.")
        elif decision == "reject":
            extensions.reject_extension(extension, request.user, notes=request.POST.get("notes", ""))
            messages.success(request, "Extension request cancelled.")
        else:
            messages.error(request, "Invalid action.")
    except RentalError as exc:
        messages.error(request, str(exc))
    return _back(extension.rental_id)


# ---------------- Damage deposit ----------------

@login_required
def deposit_return(request, rental_id: int):
    def finalize(rental, data):
        calc = payments.finalize_deposit_return(
            rental, request.user, data["signature_url"], data["deduct_balance"]
        )
        messages.info(request, f"Amount returned: {calc.deposit_return}")

    return _post_action(request, rental_id, DepositReturnForm, finalize, "Deposit return confirmed.")
