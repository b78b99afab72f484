from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

from django.contrib.auth.models import User

from rentals.models import Company, Rental, RentalMedia, StaffMember, Vehicle, VehicleModel
from rentals.roles import Role
from rentals.services.patches import load_rental

START = datetime(2026, 3, 1, 10, 0, tzinfo=dt_timezone.utc)


def make_owner(username='owner'):
    user = User.objects.create_user(username=username, email=f'{username}@example.com', password='pass123')
    company = Company.objects.create(user=user, name=f'{username.title()} Co', email=f'{username}@example.com')
    return user, company


def make_staff(company, username, role=Role.EMPLOYEE):
    user = User.objects.create_user(username=username, email=f'{username}@example.com', password='pass123')
    StaffMember.objects.create(user=user, company=company, role=role)
    return user


def make_vehicle(company, model_name='Dacia Logan', plate='12345-A-6'):
    vehicle_model, _ = VehicleModel.objects.get_or_create(name=model_name)
    return Vehicle.objects.create(
        company=company, vehicle_model=vehicle_model, name=model_name, plate_number=plate
    )


def make_rental(company, vehicle, **fields):
    data = dict(
        customer_name='John Doe',
        customer_phone='+212600000000',
        total_amount=Decimal('300'),
        rental_start_date=START,
        rental_end_date=START + timedelta(days=3),
    )
    data.update(fields)
    rental = Rental.objects.create(company=company, vehicle=vehicle, **data)
    return load_rental(rental.pk)


def add_media(rental, phase=RentalMedia.Phase.OPENING):
    return RentalMedia.objects.create(rental=rental, phase=phase, file_url=f'https://media.example.com/{rental.pk}/{phase}.mp4')
