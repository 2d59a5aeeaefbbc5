from django.core.management.base import BaseCommand

from clinic.services.notifications import dispatch_due_reminders


class Command(BaseCommand):
    help = "Send reminders for confirmed appointments inside the lead window (one shot, cron friendly)."

    def add_arguments(self, parser):
        parser.add_argument('--lead-minutes', type=int, default=None,
                            help='Override REMINDER_LEAD_MINUTES for this run.')

    def handle(self, *args, **options):
        sent = dispatch_due_reminders(lead_minutes=options['lead_minutes'])
        self.stdout.write(self.style.SUCCESS(f"reminders sent: {sent}"))
