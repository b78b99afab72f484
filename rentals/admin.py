from django.contrib import admin, messages

from .exceptions import RentalError
from .models import (
    BasePrice,
    Company,
    Extension,
    PricingTier,
    Rental,
    RentalActionLog,
    RentalMedia,
    RentalPackage,
    StaffMember,
    Vehicle,
    VehicleModel,
)
from .services.patches import load_rental
from .services.payments import mark_overdue


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ('name', 'email')
    search_fields = ('name', 'email')


@admin.register(StaffMember)
class StaffMemberAdmin(admin.ModelAdmin):
    list_display = ('user', 'company', 'role')
    list_filter = ('company', 'role')


@admin.register(Vehicle)
class VehicleAdmin(admin.ModelAdmin):
    list_display = ('name', 'plate_number', 'vehicle_model', 'company', 'status', 'current_odometer')
    list_filter = ('company', 'status', 'vehicle_model')
    search_fields = ('name', 'plate_number')


admin.site.register(VehicleModel)


@admin.register(RentalPackage)
class RentalPackageAdmin(admin.ModelAdmin):
    list_display = ('name', 'vehicle_model', 'included_kilometers', 'extra_km_rate', 'is_active')
    list_filter = ('vehicle_model', 'is_active')


@admin.register(BasePrice)
class BasePriceAdmin(admin.ModelAdmin):
    list_display = ('vehicle_model', 'rental_type', 'base_price', 'hourly_price', 'is_active')
    list_filter = ('vehicle_model', 'rental_type', 'is_active')


@admin.register(PricingTier)
class PricingTierAdmin(admin.ModelAdmin):
    list_display = ('vehicle_model', 'min_hours', 'max_hours', 'calculation_method', 'discount_percentage', 'price_amount', 'is_active')
    list_filter = ('vehicle_model', 'calculation_method', 'is_active')


class ExtensionInline(admin.TabularInline):
    model = Extension
    extra = 0
    fields = ('hours', 'price', 'status', 'requested_by', 'decided_by', 'decided_at')
    readonly_fields = fields
    can_delete = False


class RentalMediaInline(admin.TabularInline):
    model = RentalMedia
    extra = 0


@admin.action(description="Mark overdue (past end date, money still owed)")
def mark_rentals_overdue(modeladmin, request, queryset):
    marked = 0
    skipped = 0
    for rental in queryset.order_by('id'):
        try:
            if mark_overdue(load_rental(rental.pk), actor=request.user):
                marked += 1
            else:
                skipped += 1
        except RentalError as exc:
            messages.error(request, f"{rental.rental_code}: {exc}")
    if marked:
        messages.success(request, f"Marked {marked} rental(s) overdue.")
    if skipped:
        messages.warning(request, f"Skipped {skipped} (not past due or nothing owed).")


@admin.action(description="Re-derive payment status and remaining amount")
def rederive_payment_fields(modeladmin, request, queryset):
    fixed = 0
    for rental in queryset.order_by('id'):
        before = (rental.payment_status, rental.remaining_amount)
        try:
            after = load_rental(rental.pk)
        except RentalError as exc:
            messages.error(request, f"{rental.rental_code}: {exc}")
            continue
        if (after.payment_status, after.remaining_amount) != before:
            fixed += 1
    messages.success(request, f"Updated {fixed} of {queryset.count()} rental(s).")


@admin.register(Rental)
class RentalAdmin(admin.ModelAdmin):
    list_display = (
        'rental_code',
        'company',
        'vehicle',
        'customer_name',
        'rental_start_date',
        'rental_end_date',
        'rental_status',
        'payment_status',
        'approval_status',
        'remaining_amount',
    )
    list_filter = (
        'company',
        'rental_status',
        'payment_status',
        'approval_status',
        'rental_type',
    )
    search_fields = (
        'rental_code',
        'customer_name',
        'customer_phone',
        'vehicle__plate_number',
    )
    readonly_fields = (
        'rental_code',
        'payment_status',
        'remaining_amount',
        'total_distance',
        'overage_charge',
        'extension_count',
        'total_extended_hours',
        'deposit_returned_at',
        'deposit_return_amount',
        'deposit_balance_due',
        'deposit_deduction_amount',
        'deposit_additional_owed',
        'version',
    )
    inlines = [ExtensionInline, RentalMediaInline]
    actions = [mark_rentals_overdue, rederive_payment_fields]


@admin.register(RentalActionLog)
class RentalActionLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'rental', 'action', 'actor', 'old_status', 'new_status')
    list_filter = ('action',)
    search_fields = ('rental__rental_code',)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
