"""
Management command to run the unmatched request fallback once
Usage: python manage.py run_fallback [--threshold-hours N]
"""
from django.core.management.base import BaseCommand
from core.services import FallbackService


class Command(BaseCommand):
    help = 'Expand search radius, alert donors and notify admins for unmatched blood requests'

    def add_arguments(self, parser):
        parser.add_argument(
            '--threshold-hours',
            type=int,
            default=None,
            help='Hours a pending request may stay unmatched (defaults to system configuration)',
        )

    def handle(self, *args, **options):
        self.stdout.write('Starting fallback run...')

        summary = FallbackService.run_fallback_system(threshold_hours=options['threshold_hours'])

        self.stdout.write(
            self.style.SUCCESS(
                f"✓ Processed {summary['total']} unmatched request(s): "
                f"{summary['successful']} succeeded, {summary['failed']} failed"
            )
        )
        for detail in summary['details']:
            if 'error' in detail:
                self.stdout.write(self.style.ERROR(f"✗ Request {detail['request_id']}: {detail['error']}"))
            else:
                self.stdout.write(f"  - Request {detail['request_id']}: {', '.join(detail['actions']) or 'no action'}")
