from decimal import Decimal
from unittest import mock

from django.test import TestCase

from rentals.exceptions import InvalidTransition, PreconditionNotMet, StaleWrite, UnauthorizedAction
from rentals.models import Rental, RentalMedia, Vehicle
from rentals.roles import Role
from rentals.services.collaborators import DatabaseMediaStore, OrmVehicleAvailability
from rentals.services.lifecycle import RentalStateMachine
from rentals.services.overage import record_start_odometer
from rentals.services.overrides import override_price
from rentals.services.patches import load_rental
from rentals.services.payments import record_payment

from .helpers import add_media, make_owner, make_rental, make_staff, make_vehicle

Status = Rental.Status


class StartRentalTests(TestCase):
    def setUp(self):
        self.owner, self.company = make_owner()
        self.employee = make_staff(self.company, 'sara', Role.EMPLOYEE)
        self.vehicle = make_vehicle(self.company)
        self.rental = make_rental(self.company, self.vehicle)
        self.machine = RentalStateMachine(media_store=DatabaseMediaStore())

    def _ready(self):
        record_payment(self.rental, 300, self.employee)
        add_media(self.rental, RentalMedia.Phase.OPENING)
        record_start_odometer(self.rental, 1000, self.employee)
        self.machine.sign_contract(self.rental, self.employee, 'https://sign.example.com/c.png')

    def test_unpaid_rental_cannot_start(self):
        with self.assertRaises(PreconditionNotMet) as ctx:
            self.machine.start(self.rental, self.employee)
        self.assertEqual(ctx.exception.requirement, 'payment')

    def test_paid_rental_still_needs_opening_video(self):
        record_payment(self.rental, 300, self.employee)
        self.assertEqual(self.rental.payment_status, Rental.PaymentStatus.PAID)
        with self.assertRaises(PreconditionNotMet) as ctx:
            self.machine.start(self.rental, self.employee)
        self.assertEqual(ctx.exception.requirement, 'opening_video')
        self.assertEqual(Rental.objects.get(pk=self.rental.pk).rental_status, Status.SCHEDULED)

    def test_requirements_listed_in_order(self):
        self.assertEqual(
            self.machine.start_requirements(self.rental, self.employee),
            ['payment', 'opening_video', 'start_odometer', 'contract_signed'],
        )

    def test_contract_needs_earlier_steps(self):
        record_payment(self.rental, 300, self.employee)
        with self.assertRaises(PreconditionNotMet) as ctx:
            self.machine.sign_contract(self.rental, self.employee, 'https://sign.example.com/c.png')
        self.assertEqual(ctx.exception.requirement, 'opening_video')

    def test_start(self):
        self._ready()
        result = self.machine.start(self.rental, self.employee)
        self.assertTrue(result.changed)
        self.assertEqual(self.rental.rental_status, Status.ACTIVE)
        self.assertIsNotNone(self.rental.started_at)
        self.assertEqual(Vehicle.objects.get(pk=self.vehicle.pk).status, Vehicle.Status.RENTED)
        log = self.rental.action_log.get(action='start')
        self.assertEqual((log.old_status, log.new_status), (Status.SCHEDULED, Status.ACTIVE))

    def test_vehicle_out_on_another_rental_blocks_start(self):
        self._ready()
        other = make_rental(self.company, self.vehicle, rental_status=Status.ACTIVE)
        self.assertEqual(self.machine.start_requirements(self.rental, self.employee), ['vehicle_available'])
        with self.assertRaises(PreconditionNotMet) as ctx:
            self.machine.start(self.rental, self.employee)
        self.assertEqual(ctx.exception.requirement, 'vehicle_available')
        self.assertEqual(Rental.objects.get(pk=self.rental.pk).rental_status, Status.SCHEDULED)

        self.machine.cancel(other, self.owner, confirmed=True)
        self.assertTrue(self.machine.start(self.rental, self.employee).changed)

    def test_start_twice_is_noop(self):
        self._ready()
        self.machine.start(self.rental, self.employee)
        version = self.rental.version
        result = self.machine.start(self.rental, self.employee)
        self.assertFalse(result.changed)
        self.assertEqual(self.rental.version, version)

    def test_pending_price_blocks_start_for_employee(self):
        self._ready()
        override_price(self.rental, Decimal('250'), '', self.employee)
        self.assertIn('price_approval', self.machine.start_requirements(self.rental, self.employee))
        self.assertNotIn('price_approval', self.machine.start_requirements(self.rental, self.owner))

    def test_stale_instance_is_left_untouched(self):
        self._ready()
        other = load_rental(self.rental.pk)
        self.machine.cancel(other, self.owner, confirmed=True)

        version = self.rental.version
        with self.assertRaises(StaleWrite):
            self.machine.start(self.rental, self.employee)
        self.assertEqual(self.rental.rental_status, Status.SCHEDULED)
        self.assertIsNone(self.rental.started_at)
        self.assertEqual(self.rental.version, version)
        self.assertEqual(Rental.objects.get(pk=self.rental.pk).rental_status, Status.CANCELLED)
        self.assertEqual(Vehicle.objects.get(pk=self.vehicle.pk).status, Vehicle.Status.AVAILABLE)


class CompleteRentalTests(TestCase):
    def setUp(self):
        self.owner, self.company = make_owner()
        self.vehicle = make_vehicle(self.company)
        Vehicle.objects.filter(pk=self.vehicle.pk).update(status=Vehicle.Status.RENTED)
        self.rental = make_rental(
            self.company, self.vehicle,
            rental_status=Status.ACTIVE, start_odometer=1000,
            deposit_amount=Decimal('300'), damage_deposit=Decimal('500'),
        )
        self.machine = RentalStateMachine(media_store=DatabaseMediaStore())

    def test_needs_closing_video(self):
        with self.assertRaises(PreconditionNotMet) as ctx:
            self.machine.complete(self.rental, self.owner, ending_odometer=1250)
        self.assertEqual(ctx.exception.requirement, 'closing_video')

    def test_asks_for_ending_odometer(self):
        add_media(self.rental, RentalMedia.Phase.CLOSING)
        with self.assertRaises(PreconditionNotMet) as ctx:
            self.machine.complete(self.rental, self.owner)
        self.assertEqual(ctx.exception.requirement, 'ending_odometer')
        self.assertEqual(self.rental.rental_status, Status.ACTIVE)

    def test_complete_bills_overage_and_frees_vehicle(self):
        add_media(self.rental, RentalMedia.Phase.CLOSING)
        result = self.machine.complete(self.rental, self.owner, ending_odometer=1250)
        self.assertTrue(result.changed)
        self.assertTrue(result.deposit_reconciliation_available)
        self.assertEqual(self.rental.rental_status, Status.COMPLETED)
        self.assertEqual(self.rental.overage_charge, Decimal('225.00'))
        self.assertEqual(self.rental.remaining_amount, Decimal('225.00'))
        self.assertEqual(self.rental.payment_status, Rental.PaymentStatus.PARTIAL)

        vehicle = Vehicle.objects.get(pk=self.vehicle.pk)
        self.assertEqual(vehicle.status, Vehicle.Status.AVAILABLE)
        self.assertEqual(vehicle.current_odometer, 1250)

    def test_uses_recorded_ending_odometer(self):
        add_media(self.rental, RentalMedia.Phase.CLOSING)
        Rental.objects.filter(pk=self.rental.pk).update(ending_odometer=1050)
        rental = load_rental(self.rental.pk)
        self.machine.complete(rental, self.owner)
        self.assertEqual(rental.total_distance, 50)
        self.assertEqual(rental.overage_charge, Decimal('0'))

    def test_complete_twice_writes_vehicle_once(self):
        add_media(self.rental, RentalMedia.Phase.CLOSING)
        vehicles = mock.Mock(wraps=OrmVehicleAvailability())
        machine = RentalStateMachine(media_store=DatabaseMediaStore(), vehicles=vehicles)

        machine.complete(self.rental, self.owner, ending_odometer=1250)
        result = machine.complete(self.rental, self.owner, ending_odometer=1300)

        self.assertFalse(result.changed)
        vehicles.set_status.assert_called_once_with(self.vehicle.pk, Vehicle.Status.AVAILABLE)
        self.assertEqual(Rental.objects.get(pk=self.rental.pk).ending_odometer, 1250)

    def test_vehicle_held_by_another_active_rental_stays_rented(self):
        other = make_rental(self.company, self.vehicle, rental_status=Status.ACTIVE, start_odometer=1000)
        add_media(self.rental, RentalMedia.Phase.CLOSING)
        self.machine.complete(self.rental, self.owner, ending_odometer=1250)
        self.assertEqual(Vehicle.objects.get(pk=self.vehicle.pk).status, Vehicle.Status.RENTED)

        self.machine.cancel(make_rental(self.company, self.vehicle), self.owner, confirmed=True)
        self.assertEqual(Vehicle.objects.get(pk=self.vehicle.pk).status, Vehicle.Status.RENTED)

        self.machine.void(other, self.owner)
        self.assertEqual(Vehicle.objects.get(pk=self.vehicle.pk).status, Vehicle.Status.AVAILABLE)

    def test_cannot_complete_scheduled(self):
        rental = make_rental(self.company, make_vehicle(self.company, plate='3-F-3'))
        with self.assertRaises(InvalidTransition) as ctx:
            self.machine.complete(rental, self.owner, ending_odometer=10)
        self.assertEqual((ctx.exception.current, ctx.exception.target), (Status.SCHEDULED, Status.COMPLETED))


class CancelAndVoidTests(TestCase):
    def setUp(self):
        self.owner, self.company = make_owner()
        self.employee = make_staff(self.company, 'sara', Role.EMPLOYEE)
        self.vehicle = make_vehicle(self.company)
        self.rental = make_rental(self.company, self.vehicle)
        self.machine = RentalStateMachine(media_store=DatabaseMediaStore())

    def test_cancel_needs_confirmation(self):
        with self.assertRaises(PreconditionNotMet) as ctx:
            self.machine.cancel(self.rental, self.employee)
        self.assertEqual(ctx.exception.requirement, 'confirmation')
        self.assertEqual(self.rental.rental_status, Status.SCHEDULED)

    def test_cancel(self):
        result = self.machine.cancel(self.rental, self.employee, confirmed=True)
        self.assertTrue(result.changed)
        self.assertEqual(Rental.objects.get(pk=self.rental.pk).rental_status, Status.CANCELLED)
        self.assertIsNotNone(self.rental.cancelled_at)
        self.assertFalse(self.machine.cancel(self.rental, self.employee, confirmed=True).changed)

    def test_cannot_cancel_completed(self):
        Rental.objects.filter(pk=self.rental.pk).update(rental_status=Status.COMPLETED)
        rental = load_rental(self.rental.pk)
        with self.assertRaises(InvalidTransition):
            self.machine.cancel(rental, self.employee, confirmed=True)

    def test_cannot_start_cancelled(self):
        self.machine.cancel(self.rental, self.employee, confirmed=True)
        with self.assertRaises(InvalidTransition):
            self.machine.start(self.rental, self.employee)

    def test_void_is_for_owner_and_admin(self):
        with self.assertRaises(UnauthorizedAction) as ctx:
            self.machine.void(self.rental, self.employee)
        self.assertEqual(ctx.exception.role, Role.EMPLOYEE)

        self.machine.void(self.rental, self.owner)
        self.assertEqual(Rental.objects.get(pk=self.rental.pk).rental_status, Status.VOID)
