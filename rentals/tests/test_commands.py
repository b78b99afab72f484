from io import StringIO
from decimal import Decimal

from django.core.management import CommandError, call_command
from django.test import TestCase

from rentals.models import Rental
from rentals.services.patches import load_rental

from .helpers import make_owner, make_rental, make_vehicle


class MarkOverdueCommandTests(TestCase):
    def setUp(self):
        self.owner, self.company = make_owner()
        self.owing = make_rental(self.company, make_vehicle(self.company, plate='1-A-1'), rental_status=Rental.Status.ACTIVE)
        self.paid = make_rental(
            self.company, make_vehicle(self.company, plate='2-A-2'),
            rental_status=Rental.Status.COMPLETED, deposit_amount=Decimal('300'),
        )
        self.scheduled = make_rental(self.company, make_vehicle(self.company, plate='3-A-3'))

    def test_marks_only_rentals_that_owe_money(self):
        out = StringIO()
        call_command('mark_overdue_rentals', as_of='2026-04-01', stdout=out)
        self.assertIn('Marked 1 rental(s) overdue', out.getvalue())
        self.assertEqual(load_rental(self.owing.pk).payment_status, Rental.PaymentStatus.OVERDUE)
        self.assertEqual(load_rental(self.paid.pk).payment_status, Rental.PaymentStatus.PAID)
        self.assertEqual(load_rental(self.scheduled.pk).payment_status, Rental.PaymentStatus.UNPAID)

    def test_nothing_due_before_end_date(self):
        out = StringIO()
        call_command('mark_overdue_rentals', as_of='2026-03-02 09:00', stdout=out)
        self.assertIn('Marked 0 rental(s) overdue', out.getvalue())

    def test_dry_run_writes_nothing(self):
        out = StringIO()
        call_command('mark_overdue_rentals', as_of='2026-04-01', dry_run=True, stdout=out)
        self.assertIn(self.owing.rental_code, out.getvalue())
        self.assertEqual(Rental.objects.get(pk=self.owing.pk).payment_status, Rental.PaymentStatus.UNPAID)

    def test_bad_date(self):
        with self.assertRaises(CommandError):
            call_command('mark_overdue_rentals', as_of='not a date', stdout=StringIO())
