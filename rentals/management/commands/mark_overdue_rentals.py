# rentals/management/commands/mark_overdue_rentals.py
from __future__ import annotations

from dateutil.parser import parse as parse_dt
from django.core.management.base import BaseCommand, CommandError, CommandParser
from django.utils import timezone

from rentals.exceptions import RentalError
from rentals.models import Rental
from rentals.services.patches import load_rental
from rentals.services.payments import mark_overdue, settled_by_deposit

class Command(BaseCommand):
    help = "Mark active/completed rentals past their end date with money still owed as overdue."

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument(
            "--as-of",
            dest="as_of",
            default=None,
            help="Reference date/time (any format dateutil understands). Default: now.",
        )
        parser.add_argument("--dry-run", action="store_true", help="Only list the rentals that would be marked.")

    def handle(self, *args, **options):
        now = timezone.now()
        if options["as_of"]:
            try:
                now = parse_dt(options["as_of"])
            except (ValueError, OverflowError) as exc:
                raise CommandError(f"Invalid --as-of: {exc}")
            if timezone.is_naive(now):
                now = timezone.make_aware(now)

        candidates = (
            Rental.objects.filter(
                rental_status__in=[Rental.Status.ACTIVE, Rental.Status.COMPLETED],
                rental_end_date__lt=now,
            )
            .exclude(payment_status=Rental.PaymentStatus.OVERDUE)
            .order_by("id")
            .values_list("id", flat=True)
        )

        marked = 0
        for rental_id in candidates:
            rental = load_rental(rental_id, persist=not options["dry_run"])
            if options["dry_run"]:
                if rental.remaining_amount > 0 and not settled_by_deposit(rental):
                    self.stdout.write(f"{rental.rental_code}: would be marked ({rental.remaining_amount} owed)")
                continue
            try:
                if mark_overdue(rental, now=now):
                    marked += 1
                    self.stdout.write(f"{rental.rental_code}: overdue ({rental.remaining_amount} owed)")
            except RentalError as exc:
                self.stderr.write(self.style.WARNING(f"{rental.rental_code}: {exc}"))

        self.stdout.write(self.style.SUCCESS(f"Marked {marked} rental(s) overdue as of {now:%Y-%m-%d %H:%M}."))
