from decimal import Decimal

from django.test import SimpleTestCase

from rentals.models import Extension, Rental, RentalType
from rentals.services.extensions import approved_fees, approved_hours
from rentals.services.pricing import base_amount, grand_total


def _ext(hours, price, status):
    return Extension(hours=hours, price=Decimal(price), status=status)


class BaseAmountTests(SimpleTestCase):
    def test_hourly_rental(self):
        rental = Rental(rental_type=RentalType.HOURLY, unit_price=Decimal('50'), quantity_hours=4, total_amount=Decimal('180'))
        self.assertEqual(base_amount(rental), Decimal('200'))

    def test_unit_price_wins_over_total(self):
        rental = Rental(rental_type=RentalType.DAILY, unit_price=Decimal('300'), total_amount=Decimal('250'))
        self.assertEqual(base_amount(rental), Decimal('300'))

    def test_falls_back_to_total(self):
        rental = Rental(rental_type=RentalType.DAILY, total_amount=Decimal('250'))
        self.assertEqual(base_amount(rental), Decimal('250'))

    def test_manual_price_owns_base(self):
        rental = Rental(rental_type=RentalType.HOURLY, unit_price=Decimal('50'), quantity_hours=4,
                        total_amount=Decimal('150'), manual_price=True)
        self.assertEqual(base_amount(rental), Decimal('150'))


class LedgerTests(SimpleTestCase):
    def test_only_approved_count(self):
        exts = [
            _ext(2, '40', Extension.Status.APPROVED),
            _ext(5, '90', Extension.Status.PENDING),
            _ext(3, '60', Extension.Status.REJECTED),
            _ext(1, '20', Extension.Status.APPROVED),
        ]
        self.assertEqual(approved_fees(exts), Decimal('60'))
        self.assertEqual(approved_hours(exts), 3)

    def test_empty(self):
        self.assertEqual(approved_fees([]), Decimal('0'))
        self.assertEqual(approved_hours([]), 0)


class GrandTotalTests(SimpleTestCase):
    def setUp(self):
        self.rental = Rental(total_amount=Decimal('300'))

    def test_base_only(self):
        self.assertEqual(grand_total(self.rental), Decimal('300'))

    def test_overage_and_approved_extensions_add_up(self):
        self.rental.overage_charge = Decimal('225')
        exts = [_ext(2, '40', Extension.Status.APPROVED)]
        self.assertEqual(grand_total(self.rental, exts), Decimal('565'))

    def test_never_decreases_as_charges_are_added(self):
        totals = [grand_total(self.rental, [])]
        self.rental.overage_charge = Decimal('10')
        totals.append(grand_total(self.rental, []))
        exts = [_ext(1, '0', Extension.Status.APPROVED)]
        totals.append(grand_total(self.rental, exts))
        exts.append(_ext(2, '35', Extension.Status.APPROVED))
        totals.append(grand_total(self.rental, exts))
        exts.append(_ext(2, '99', Extension.Status.PENDING))
        totals.append(grand_total(self.rental, exts))
        self.assertEqual(totals, sorted(totals))
        self.assertEqual(totals[-1], Decimal('345'))
