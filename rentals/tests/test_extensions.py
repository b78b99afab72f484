from datetime import timedelta
from decimal import Decimal

from django.test import TestCase

from rentals.exceptions import PreconditionNotMet, PricingUnavailable, UnauthorizedAction
from rentals.models import BasePrice, Extension, PricingTier, Rental, RentalType
from rentals.roles import Role
from rentals.services.extensions import approve_extension, reject_extension, request_extension
from rentals.services.patches import load_rental

from .helpers import make_owner, make_rental, make_staff, make_vehicle


class ExtensionWorkflowTests(TestCase):
    def setUp(self):
        self.owner, self.company = make_owner()
        self.admin = make_staff(self.company, 'amine', Role.ADMIN)
        self.employee = make_staff(self.company, 'sara', Role.EMPLOYEE)
        self.vehicle = make_vehicle(self.company)
        model = self.vehicle.vehicle_model
        BasePrice.objects.create(
            vehicle_model=model, rental_type=RentalType.DAILY,
            base_price=Decimal('300'), hourly_price=Decimal('20'),
        )
        PricingTier.objects.create(vehicle_model=model, min_hours=5, discount_percentage=Decimal('10'))
        self.rental = make_rental(self.company, self.vehicle, rental_status=Rental.Status.ACTIVE)

    def test_request_prices_at_hourly_rate(self):
        ext = request_extension(self.rental, 3, self.employee)
        self.assertEqual(ext.status, Extension.Status.PENDING)
        self.assertEqual(ext.price, Decimal('60'))
        self.assertEqual(ext.requested_by, self.employee)
        # pending extensions are not billed
        self.assertEqual(load_rental(self.rental.pk).remaining_amount, Decimal('300'))

    def test_request_uses_tier_discount(self):
        ext = request_extension(self.rental, 6, self.employee)
        self.assertEqual(ext.price, Decimal('108'))
        self.assertEqual(ext.tier_breakdown[0]['discount'], '10.00')

    def test_request_needs_positive_hours(self):
        with self.assertRaises(PreconditionNotMet) as ctx:
            request_extension(self.rental, 0, self.employee)
        self.assertEqual(ctx.exception.requirement, 'extension_hours')

    def test_request_needs_open_rental(self):
        rental = make_rental(self.company, make_vehicle(self.company, plate='1-D-1'), rental_status=Rental.Status.COMPLETED)
        with self.assertRaises(PreconditionNotMet) as ctx:
            request_extension(rental, 2, self.employee)
        self.assertEqual(ctx.exception.requirement, 'rental_open')

    def test_request_without_hourly_rate(self):
        BasePrice.objects.all().delete()
        with self.assertRaises(PricingUnavailable):
            request_extension(self.rental, 2, self.employee)

    def test_approve_extends_rental_and_bills_it(self):
        end = self.rental.rental_end_date
        ext = request_extension(self.rental, 3, self.employee)
        approve_extension(ext, self.admin)

        self.assertEqual(ext.status, Extension.Status.APPROVED)
        self.assertEqual(ext.decided_by, self.admin)
        self.assertEqual(self.rental.rental_end_date, end + timedelta(hours=3))
        self.assertEqual(self.rental.original_end_date, end)
        self.assertEqual(self.rental.extension_count, 1)
        self.assertEqual(self.rental.total_extended_hours, 3)
        self.assertEqual(self.rental.remaining_amount, Decimal('360'))

        stored = load_rental(self.rental.pk)
        self.assertEqual(stored.rental_end_date, end + timedelta(hours=3))
        self.assertEqual(stored.remaining_amount, Decimal('360'))
        self.assertEqual(stored.total_extension_fees, Decimal('60'))

    def test_second_extension_keeps_original_end_date(self):
        end = self.rental.rental_end_date
        approve_extension(request_extension(self.rental, 2, self.employee), self.owner)
        approve_extension(request_extension(self.rental, 1, self.employee), self.owner)
        self.assertEqual(self.rental.original_end_date, end)
        self.assertEqual(self.rental.extension_count, 2)
        self.assertEqual(self.rental.total_extended_hours, 3)

    def test_employee_cannot_approve(self):
        ext = request_extension(self.rental, 3, self.employee)
        with self.assertRaises(UnauthorizedAction):
            approve_extension(ext, self.employee)
        self.assertEqual(Extension.objects.get(pk=ext.pk).status, Extension.Status.PENDING)

    def test_decided_extension_cannot_be_decided_again(self):
        ext = request_extension(self.rental, 3, self.employee)
        approve_extension(ext, self.admin)
        with self.assertRaises(PreconditionNotMet):
            approve_extension(ext, self.admin)
        with self.assertRaises(PreconditionNotMet):
            reject_extension(ext, self.admin)

    def test_requester_can_cancel(self):
        ext = request_extension(self.rental, 3, self.employee)
        reject_extension(ext, self.employee)
        self.assertEqual(ext.status, Extension.Status.REJECTED)
        self.assertEqual(Extension.objects.get(pk=ext.pk).notes, 'Cancelled by requester')
        self.assertEqual(load_rental(self.rental.pk).remaining_amount, Decimal('300'))

    def test_other_employee_cannot_reject(self):
        ext = request_extension(self.rental, 3, self.employee)
        other = make_staff(self.company, 'youssef', Role.EMPLOYEE)
        with self.assertRaises(UnauthorizedAction):
            reject_extension(ext, other)
