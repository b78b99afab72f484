from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Company',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('email', models.EmailField(max_length=254, unique=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name='VehicleModel',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=80, unique=True)),
            ],
        ),
        migrations.CreateModel(
            name='StaffMember',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(choices=[('owner', 'Owner'), ('admin', 'Admin'), ('employee', 'Employee'), ('guide', 'Guide')], default='employee', max_length=10)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='staff', to='rentals.company')),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='staff_profile', to=settings.AUTH_USER_MODEL)),
            ],
        ),
        migrations.CreateModel(
            name='Vehicle',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=80)),
                ('plate_number', models.CharField(blank=True, max_length=20, null=True)),
                ('current_odometer', models.PositiveIntegerField(default=0)),
                ('status', models.CharField(choices=[('available', 'Available'), ('rented', 'Rented'), ('reserved', 'Reserved'), ('maintenance', 'Maintenance')], default='available', max_length=12)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='vehicles', to='rentals.company')),
                ('vehicle_model', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='vehicles', to='rentals.vehiclemodel')),
            ],
            options={
                'indexes': [models.Index(fields=['company', 'status'], name='rentals_veh_company_6d0b1c_idx')],
            },
        ),
        migrations.AddConstraint(
            model_name='vehicle',
            constraint=models.UniqueConstraint(fields=('company', 'plate_number'), name='uniq_plate_per_company'),
        ),
        migrations.CreateModel(
            name='RentalPackage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=80)),
                ('included_kilometers', models.PositiveIntegerField()),
                ('extra_km_rate', models.DecimalField(decimal_places=2, max_digits=10)),
                ('is_active', models.BooleanField(default=True)),
                ('vehicle_model', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='packages', to='rentals.vehiclemodel')),
            ],
        ),
        migrations.CreateModel(
            name='BasePrice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rental_type', models.CharField(choices=[('hourly', 'Hourly'), ('daily', 'Daily'), ('weekly', 'Weekly'), ('monthly', 'Monthly')], default='daily', max_length=10)),
                ('base_price', models.DecimalField(decimal_places=2, max_digits=10)),
                ('hourly_price', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('is_active', models.BooleanField(default=True)),
                ('vehicle_model', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='base_prices', to='rentals.vehiclemodel')),
            ],
        ),
        migrations.CreateModel(
            name='PricingTier',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('min_hours', models.PositiveIntegerField()),
                ('max_hours', models.PositiveIntegerField(blank=True, null=True)),
                ('calculation_method', models.CharField(choices=[('percentage', 'Percentage discount'), ('fixed', 'Fixed hourly price')], default='percentage', max_length=10)),
                ('discount_percentage', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=5)),
                ('price_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('is_active', models.BooleanField(default=True)),
                ('vehicle_model', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='pricing_tiers', to='rentals.vehiclemodel')),
            ],
        ),
        migrations.CreateModel(
            name='Rental',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rental_code', models.CharField(blank=True, max_length=20)),
                ('customer_name', models.CharField(blank=True, max_length=120)),
                ('customer_phone', models.CharField(blank=True, max_length=50)),
                ('rental_type', models.CharField(choices=[('hourly', 'Hourly'), ('daily', 'Daily'), ('weekly', 'Weekly'), ('monthly', 'Monthly')], default='daily', max_length=10)),
                ('quantity_hours', models.PositiveIntegerField(blank=True, null=True)),
                ('rental_start_date', models.DateTimeField(blank=True, null=True)),
                ('rental_end_date', models.DateTimeField(blank=True, null=True)),
                ('original_end_date', models.DateTimeField(blank=True, null=True)),
                ('rental_status', models.CharField(choices=[('scheduled', 'Scheduled'), ('active', 'Active'), ('completed', 'Completed'), ('cancelled', 'Cancelled'), ('void', 'Void')], default='scheduled', max_length=10)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('total_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('unit_price', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('deposit_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('remaining_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('damage_deposit', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('payment_status', models.CharField(choices=[('unpaid', 'Unpaid'), ('partial', 'Partial'), ('paid', 'Paid'), ('overdue', 'Overdue')], default='unpaid', max_length=10)),
                ('approval_status', models.CharField(choices=[('auto', 'Auto'), ('pending', 'Pending'), ('declined', 'Declined')], default='auto', max_length=10)),
                ('pending_total_request', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('price_override_reason', models.CharField(blank=True, max_length=255)),
                ('manual_price', models.BooleanField(default=False)),
                ('start_odometer', models.PositiveIntegerField(blank=True, null=True)),
                ('ending_odometer', models.PositiveIntegerField(blank=True, null=True)),
                ('total_distance', models.PositiveIntegerField(blank=True, null=True)),
                ('overage_charge', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('extension_count', models.PositiveIntegerField(default=0)),
                ('total_extended_hours', models.PositiveIntegerField(default=0)),
                ('contract_signed', models.BooleanField(default=False)),
                ('signature_url', models.URLField(blank=True, max_length=500)),
                ('deposit_returned_at', models.DateTimeField(blank=True, null=True)),
                ('deposit_return_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('deposit_balance_due', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('deposit_deduction_amount', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('deposit_additional_owed', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=10)),
                ('deposit_deduction_reason', models.CharField(blank=True, max_length=255)),
                ('deposit_return_signature_url', models.URLField(blank=True, max_length=500)),
                ('version', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='rentals', to='rentals.company')),
                ('package', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to='rentals.rentalpackage')),
                ('requested_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('vehicle', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='rentals', to='rentals.vehicle')),
            ],
            options={
                'indexes': [
                    models.Index(fields=['company', 'rental_status'], name='rentals_ren_company_3f2a9e_idx'),
                    models.Index(fields=['payment_status'], name='rentals_ren_payment_8c41d7_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Extension',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('hours', models.PositiveIntegerField()),
                ('price', models.DecimalField(decimal_places=2, max_digits=10)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected')], default='pending', max_length=10)),
                ('requested_at', models.DateTimeField(auto_now_add=True)),
                ('decided_at', models.DateTimeField(blank=True, null=True)),
                ('notes', models.TextField(blank=True)),
                ('tier_breakdown', models.JSONField(blank=True, default=list)),
                ('decided_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('rental', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='extensions', to='rentals.rental')),
                ('requested_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-requested_at'],
                'indexes': [models.Index(fields=['rental', 'status'], name='rentals_ext_rental__5e7b20_idx')],
            },
        ),
        migrations.CreateModel(
            name='RentalMedia',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('phase', models.CharField(choices=[('opening', 'Opening'), ('closing', 'Closing')], max_length=10)),
                ('file_url', models.URLField(max_length=500)),
                ('uploaded_at', models.DateTimeField(auto_now_add=True)),
                ('rental', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='media', to='rentals.rental')),
            ],
        ),
        migrations.CreateModel(
            name='RentalActionLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=40)),
                ('old_status', models.CharField(blank=True, max_length=10)),
                ('new_status', models.CharField(blank=True, max_length=10)),
                ('details', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('actor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('rental', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='action_log', to='rentals.rental')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
    ]
