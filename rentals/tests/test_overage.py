from decimal import Decimal

from django.test import SimpleTestCase, TestCase, override_settings

from rentals.exceptions import InvalidOdometerReading, PreconditionNotMet
from rentals.models import Rental, RentalPackage, Vehicle
from rentals.services.overage import compute_overage, record_end_odometer, record_start_odometer

from .helpers import make_owner, make_rental, make_vehicle


class ComputeOverageTests(SimpleTestCase):
    def test_distance_beyond_package(self):
        result = compute_overage(1000, 1250, 100, Decimal('1.50'))
        self.assertEqual(result.distance, 250)
        self.assertEqual(result.extra_km, 150)
        self.assertEqual(result.overage_charge, Decimal('225.00'))

    def test_within_package_costs_nothing(self):
        result = compute_overage(1000, 1080, 100, Decimal('1.50'))
        self.assertEqual(result.extra_km, 0)
        self.assertEqual(result.overage_charge, Decimal('0'))

    def test_zero_distance(self):
        self.assertEqual(compute_overage(500, 500, 100, 2).distance, 0)

    def test_end_lower_than_start(self):
        with self.assertRaises(InvalidOdometerReading):
            compute_overage(1000, 900, 100, Decimal('1.50'))

    def test_bad_readings(self):
        for start, end in [(None, 100), (100, None), (-5, 100), ('abc', 100), (100, '')]:
            with self.assertRaises(InvalidOdometerReading):
                compute_overage(start, end, 100, Decimal('1.50'))


class RecordOdometerTests(TestCase):
    def setUp(self):
        self.owner, self.company = make_owner()
        self.vehicle = make_vehicle(self.company)
        self.vehicle.current_odometer = 1000
        self.vehicle.save()
        self.rental = make_rental(
            self.company, self.vehicle,
            rental_status=Rental.Status.ACTIVE, start_odometer=1000,
        )

    @override_settings(RENTALS_DEFAULT_INCLUDED_KM=100, RENTALS_DEFAULT_EXTRA_KM_RATE=Decimal('1.50'))
    def test_default_terms_without_package(self):
        record_end_odometer(self.rental, 1250, self.owner)
        self.assertEqual(self.rental.total_distance, 250)
        self.assertEqual(self.rental.overage_charge, Decimal('225.00'))
        # base price untouched, overage billed on top
        self.assertEqual(self.rental.total_amount, Decimal('300'))
        self.assertEqual(self.rental.remaining_amount, Decimal('525.00'))
        self.assertEqual(Vehicle.objects.get(pk=self.vehicle.pk).current_odometer, 1250)

    def test_smallest_active_package_is_assigned(self):
        model = self.vehicle.vehicle_model
        RentalPackage.objects.create(vehicle_model=model, name='Big', included_kilometers=500, extra_km_rate=Decimal('1'))
        small = RentalPackage.objects.create(vehicle_model=model, name='Small', included_kilometers=200, extra_km_rate=Decimal('2'))
        RentalPackage.objects.create(vehicle_model=model, name='Old', included_kilometers=50, extra_km_rate=Decimal('5'), is_active=False)

        record_end_odometer(self.rental, 1250, self.owner)
        self.assertEqual(self.rental.package, small)
        self.assertEqual(self.rental.overage_charge, Decimal('100.00'))
        self.assertEqual(Rental.objects.get(pk=self.rental.pk).package_id, small.pk)

    def test_vehicle_odometer_never_goes_back(self):
        Vehicle.objects.filter(pk=self.vehicle.pk).update(current_odometer=5000)
        record_end_odometer(self.rental, 1250, self.owner)
        self.assertEqual(Vehicle.objects.get(pk=self.vehicle.pk).current_odometer, 5000)

    def test_requires_start_odometer(self):
        rental = make_rental(self.company, make_vehicle(self.company, plate='55-X-1'), rental_status=Rental.Status.ACTIVE)
        with self.assertRaises(PreconditionNotMet) as ctx:
            record_end_odometer(rental, 1250, self.owner)
        self.assertEqual(ctx.exception.requirement, 'start_odometer')

    def test_lower_reading_leaves_rental_unchanged(self):
        version = self.rental.version
        with self.assertRaises(InvalidOdometerReading):
            record_end_odometer(self.rental, 900, self.owner)
        self.assertIsNone(self.rental.ending_odometer)
        self.assertEqual(self.rental.version, version)

    def test_start_odometer_only_before_start(self):
        with self.assertRaises(PreconditionNotMet):
            record_start_odometer(self.rental, 1000, self.owner)

        rental = make_rental(self.company, make_vehicle(self.company, plate='66-Y-2'))
        record_start_odometer(rental, '4200', self.owner)
        self.assertEqual(Rental.objects.get(pk=rental.pk).start_odometer, 4200)
