from django.conf import settings
from django.core.management.base import BaseCommand

from integrations.services import apply_change_notification, read_notification_files

class Command(BaseCommand):
    help = "Applies external rental/vehicle change notifications (JSON files), each one only once."

    def add_arguments(self, parser):
        parser.add_argument("--dir", default=None, help="Notifications directory (default: RENTALS_NOTIFICATIONS_DIR)")

    def handle(self, *args, **opts):
        base = opts["dir"] or settings.RENTALS_NOTIFICATIONS_DIR
        self.stdout.write(self.style.NOTICE(f"Reading notifications from {base}"))

        applied = 0
        skipped = 0
        for message in read_notification_files(base):
            try:
                if apply_change_notification(message):
                    applied += 1
                else:
                    skipped += 1
            except ValueError as exc:
                self.stderr.write(self.style.ERROR(f"{message.get('id')}: {exc}"))
                skipped += 1

        self.stdout.write(self.style.SUCCESS(f"Done. Applied: {applied}, skipped: {skipped}"))
