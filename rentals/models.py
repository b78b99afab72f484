from decimal import Decimal

from django.conf import settings
from django.db import models

from .roles import Role

MONEY = dict(max_digits=10, decimal_places=2)


class Company(models.Model):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE)
    name = models.CharField(max_length=100)
    email = models.EmailField(unique=True)

    def __str__(self):
        return self.name


class StaffMember(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="staff_profile"
    )
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="staff")
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.EMPLOYEE)

    def __str__(self):
        return f"{self.user} ({self.role})"


class VehicleModel(models.Model):
    name = models.CharField(max_length=80, unique=True)

    def __str__(self):
        return self.name


class Vehicle(models.Model):
    class Status(models.TextChoices):
        AVAILABLE = "available", "Available"
        RENTED = "rented", "Rented"
        RESERVED = "reserved", "Reserved"
        MAINTENANCE = "maintenance", "Maintenance"

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="vehicles")
    vehicle_model = models.ForeignKey(
        VehicleModel, null=True, blank=True, on_delete=models.SET_NULL, related_name="vehicles"
    )
    name = models.CharField(max_length=80)
    plate_number = models.CharField(max_length=20, null=True, blank=True)
    current_odometer = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=12, choices=Status.choices, default=Status.AVAILABLE)

    def __str__(self):
        return f"{self.name} ({self.plate_number or '-'})"

    @property
    def is_rented(self) -> bool:
        return self.status == self.Status.RENTED

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["company", "plate_number"],
                name="uniq_plate_per_company",
            ),
        ]
        indexes = [
            models.Index(fields=["company", "status"], name="rentals_veh_company_6d0b1c_idx"),
        ]


class RentalPackage(models.Model):
    """Kilometer package: distance included in the base price and the rate beyond it."""

    vehicle_model = models.ForeignKey(VehicleModel, on_delete=models.CASCADE, related_name="packages")
    name = models.CharField(max_length=80)
    included_kilometers = models.PositiveIntegerField()
    extra_km_rate = models.DecimalField(**MONEY)
    is_active = models.BooleanField(default=True)

    def __str__(self):
        return f"{self.name} ({self.included_kilometers} km)"


class RentalType(models.TextChoices):
    HOURLY = "hourly", "Hourly"
    DAILY = "daily", "Daily"
    WEEKLY = "weekly", "Weekly"
    MONTHLY = "monthly", "Monthly"


class BasePrice(models.Model):
    vehicle_model = models.ForeignKey(VehicleModel, on_delete=models.CASCADE, related_name="base_prices")
    rental_type = models.CharField(max_length=10, choices=RentalType.choices, default=RentalType.DAILY)
    base_price = models.DecimalField(**MONEY)
    hourly_price = models.DecimalField(**MONEY, default=Decimal("0"))
    is_active = models.BooleanField(default=True)

    def __str__(self):
        return f"{self.vehicle_model} {self.rental_type}: {self.base_price}"


class PricingTier(models.Model):
    class Method(models.TextChoices):
        PERCENTAGE = "percentage", "Percentage discount"
        FIXED = "fixed", "Fixed hourly price"

    vehicle_model = models.ForeignKey(VehicleModel, on_delete=models.CASCADE, related_name="pricing_tiers")
    min_hours = models.PositiveIntegerField()
    max_hours = models.PositiveIntegerField(null=True, blank=True)
    calculation_method = models.CharField(max_length=10, choices=Method.choices, default=Method.PERCENTAGE)
    discount_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0"))
    price_amount = models.DecimalField(**MONEY, default=Decimal("0"))
    is_active = models.BooleanField(default=True)

    def __str__(self):
        return f"{self.vehicle_model} {self.min_hours}-{self.max_hours or '∞'}h"


class Rental(models.Model):
    """
    A vehicle rental. Status: scheduled / active / completed / cancelled / void.
    Field names are the stable persistence contract shared with other clients.
    """

    class Status(models.TextChoices):
        SCHEDULED = "scheduled", "Scheduled"
        ACTIVE = "active", "Active"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"
        VOID = "void", "Void"

    class PaymentStatus(models.TextChoices):
        UNPAID = "unpaid", "Unpaid"
        PARTIAL = "partial", "Partial"
        PAID = "paid", "Paid"
        # set only by mark_overdue; absorbing for the derivation rule
        OVERDUE = "overdue", "Overdue"

    class ApprovalStatus(models.TextChoices):
        AUTO = "auto", "Auto"
        PENDING = "pending", "Pending"
        DECLINED = "declined", "Declined"

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name="rentals")
    vehicle = models.ForeignKey(Vehicle, on_delete=models.PROTECT, related_name="rentals")
    rental_code = models.CharField(max_length=20, blank=True)

    customer_name = models.CharField(max_length=120, blank=True)
    customer_phone = models.CharField(max_length=50, blank=True)

    rental_type = models.CharField(max_length=10, choices=RentalType.choices, default=RentalType.DAILY)
    quantity_hours = models.PositiveIntegerField(null=True, blank=True)
    rental_start_date = models.DateTimeField(null=True, blank=True)
    rental_end_date = models.DateTimeField(null=True, blank=True)
    original_end_date = models.DateTimeField(null=True, blank=True)

    rental_status = models.CharField(max_length=10, choices=Status.choices, default=Status.SCHEDULED)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # money
    total_amount = models.DecimalField(**MONEY, default=Decimal("0"))
    unit_price = models.DecimalField(**MONEY, null=True, blank=True)
    deposit_amount = models.DecimalField(**MONEY, default=Decimal("0"))
    remaining_amount = models.DecimalField(**MONEY, default=Decimal("0"))
    damage_deposit = models.DecimalField(**MONEY, default=Decimal("0"))
    payment_status = models.CharField(
        max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.UNPAID
    )

    # manual price override
    approval_status = models.CharField(
        max_length=10, choices=ApprovalStatus.choices, default=ApprovalStatus.AUTO
    )
    pending_total_request = models.DecimalField(**MONEY, null=True, blank=True)
    price_override_reason = models.CharField(max_length=255, blank=True)
    manual_price = models.BooleanField(default=False)
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )

    # distance
    package = models.ForeignKey(RentalPackage, null=True, blank=True, on_delete=models.SET_NULL)
    start_odometer = models.PositiveIntegerField(null=True, blank=True)
    ending_odometer = models.PositiveIntegerField(null=True, blank=True)
    total_distance = models.PositiveIntegerField(null=True, blank=True)
    overage_charge = models.DecimalField(**MONEY, default=Decimal("0"))

    # extensions
    extension_count = models.PositiveIntegerField(default=0)
    total_extended_hours = models.PositiveIntegerField(default=0)

    # contract
    contract_signed = models.BooleanField(default=False)
    signature_url = models.URLField(max_length=500, blank=True)

    # damage deposit return
    deposit_returned_at = models.DateTimeField(null=True, blank=True)
    deposit_return_amount = models.DecimalField(**MONEY, null=True, blank=True)
    deposit_balance_due = models.DecimalField(**MONEY, default=Decimal("0"))
    deposit_deduction_amount = models.DecimalField(**MONEY, default=Decimal("0"))
    deposit_additional_owed = models.DecimalField(**MONEY, default=Decimal("0"))
    deposit_deduction_reason = models.CharField(max_length=255, blank=True)
    deposit_return_signature_url = models.URLField(max_length=500, blank=True)

    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Rental {self.rental_code or self.pk} ({self.rental_status})"

    def save(self, *args, **kwargs):
        creating = self.pk is None
        super().save(*args, **kwargs)
        if creating and not self.rental_code:
            self.rental_code = f"RNT-{self.id:05d}"
            super().save(update_fields=["rental_code"])

    @property
    def total_extension_fees(self) -> Decimal:
        from .services.extensions import approved_fees

        return approved_fees(self.extensions.all())

    @property
    def is_open(self) -> bool:
        return self.rental_status in (self.Status.SCHEDULED, self.Status.ACTIVE)

    class Meta:
        indexes = [
            models.Index(fields=["company", "rental_status"], name="rentals_ren_company_3f2a9e_idx"),
            models.Index(fields=["payment_status"], name="rentals_ren_payment_8c41d7_idx"),
        ]


class Extension(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    rental = models.ForeignKey(Rental, on_delete=models.CASCADE, related_name="extensions")
    hours = models.PositiveIntegerField()
    price = models.DecimalField(**MONEY)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    decided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    requested_at = models.DateTimeField(auto_now_add=True)
    decided_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    tier_breakdown = models.JSONField(default=list, blank=True)

    def __str__(self):
        return f"Extension +{self.hours}h for {self.rental} ({self.status})"

    class Meta:
        ordering = ["-requested_at"]
        indexes = [
            models.Index(fields=["rental", "status"], name="rentals_ext_rental__5e7b20_idx"),
        ]


class RentalMedia(models.Model):
    class Phase(models.TextChoices):
        OPENING = "opening", "Opening"
        CLOSING = "closing", "Closing"

    rental = models.ForeignKey(Rental, on_delete=models.CASCADE, related_name="media")
    phase = models.CharField(max_length=10, choices=Phase.choices)
    file_url = models.URLField(max_length=500)
    uploaded_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.phase} media for {self.rental}"


class RentalActionLog(models.Model):
    rental = models.ForeignKey(Rental, on_delete=models.CASCADE, related_name="action_log")
    action = models.CharField(max_length=40)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    old_status = models.CharField(max_length=10, blank=True)
    new_status = models.CharField(max_length=10, blank=True)
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.action} on {self.rental_id} at {self.created_at:%Y-%m-%d %H:%M}"

    class Meta:
        ordering = ["-created_at"]
