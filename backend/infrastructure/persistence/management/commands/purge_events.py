"""
Purge Events Command.

Deletes events (and their notifications) past the retention period.
"""

from django.core.management.base import BaseCommand, CommandError


class Command(BaseCommand):
    help = 'Delete events and notifications older than the retention period'

    def add_arguments(self, parser):
        parser.add_argument(
            '--days',
            type=int,
            default=None,
            help='Retention in days (default: EVENT_RETENTION_DAYS)'
        )

    def handle(self, *args, **options):
        from application.services.events import EventLog

        days = options['days']
        if days is not None and days < 0:
            raise CommandError('--days must be positive')

        events, notifications = EventLog().purge_older_than(days)
        self.stdout.write(
            self.style.SUCCESS(f'Purged {events} events and {notifications} notifications')
        )
