from django.conf import settings
from django.core.management.base import BaseCommand

from portal.services.schedules import send_reminders


class Command(BaseCommand):
    help = "Create reminder notifications for schedules starting soon. Run it from cron every few minutes."

    def add_arguments(self, parser):
        parser.add_argument('--minutes', type=int, default=settings.SCHEDULE_REMINDER_MINUTES,
                            help='look-ahead window in minutes')

    def handle(self, *args, **options):
        sent = send_reminders(minutes=options['minutes'])
        self.stdout.write(self.style.SUCCESS(f"Sent {sent} schedule reminders"))
