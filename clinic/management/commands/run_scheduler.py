import time

from django.conf import settings
from django.core.management.base import BaseCommand

from clinic.services.scheduler import NotificationScheduler


class Command(BaseCommand):
    help = "Run the appointment reminder scheduler in the foreground until interrupted."

    def add_arguments(self, parser):
        parser.add_argument('--interval', type=int, default=None,
                            help='Seconds between scans (default NOTIFICATION_INTERVAL_SECONDS).')

    def handle(self, *args, **options):
        interval = options['interval'] or settings.NOTIFICATION_INTERVAL_SECONDS
        scheduler = NotificationScheduler(interval_seconds=interval, enabled=True)
        scheduler.start()
        self.stdout.write(self.style.SUCCESS(f"scheduler running every {interval}s, Ctrl+C to stop"))
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            pass
        finally:
            scheduler.stop()
            self.stdout.write("scheduler stopped")
