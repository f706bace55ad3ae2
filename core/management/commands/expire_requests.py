"""
Management command to expire overdue blood requests and stale locks
Usage: python manage.py expire_requests
"""
from django.core.management.base import BaseCommand
from core.services import RequestService


class Command(BaseCommand):
    help = 'Expire pending blood requests past their required-by date and release expired locks'

    def handle(self, *args, **options):
        self.stdout.write('Starting request expiry...')

        expired = RequestService.expire_overdue_requests()
        released = RequestService.release_expired_locks()

        self.stdout.write(
            self.style.SUCCESS(f'✓ Expired {expired} request(s), released {released} lock(s)')
        )
