"""
Management command to recompute donor totals from verified donations
Usage: python manage.py sync_donation_counts
"""
from django.core.management.base import BaseCommand
from core.services import DonationService


class Command(BaseCommand):
    help = 'Recompute total_donations for every donor from verified donation records'

    def handle(self, *args, **options):
        self.stdout.write('Starting donation count sync...')

        result = DonationService.sync_all_donation_counts()

        self.stdout.write(
            self.style.SUCCESS(
                f"✓ Checked {result['checked']} donor(s), fixed {result['fixed']}"
            )
        )
