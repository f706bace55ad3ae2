"""
Donation Eligibility Service - cooldown, age and account checks
"""
from django.core.exceptions import ObjectDoesNotExist
from django.db.models import Max, Min, Sum, Count, Q
from django.utils import timezone
from datetime import timedelta, datetime
from typing import Optional, Dict, Any, List
import logging

from core.models import DonationRecord, DonorProfile, User
from core.cache import CacheManager
from core.services.base import BaseService

logger = logging.getLogger(__name__)


class EligibilityService(BaseService):
    """Decides whether a donor may donate now and when they next can"""

    COUNTED_STATUSES = [DonationRecord.PENDING, DonationRecord.VERIFIED]

    @classmethod
    def _donation_settings(cls) -> Dict[str, int]:
        from core.services.config_services import ConfigService
        return ConfigService.get_section('donation_settings')

    @classmethod
    def calculate_next_eligible_date(cls, last_donation: Optional[datetime]) -> Optional[datetime]:
        if not last_donation:
            return None
        return last_donation + timedelta(days=cls._donation_settings()['cooldown_days'])

    @classmethod
    def validate_donation_date(cls, donation_date) -> Optional[str]:
        """Error message for an invalid donation date, None when valid"""
        if not donation_date:
            return "Donation date is required"
        if donation_date > timezone.now():
            return "Donation date cannot be in the future"
        return None

    @classmethod
    def get_last_donation_date(cls, donor: User, exclude_id: Optional[int] = None) -> Optional[datetime]:
        """Latest non-rejected donation, falling back to the profile field"""
        records = DonationRecord.objects.filter(
            donor=donor,
            verification_status__in=cls.COUNTED_STATUSES,
        )
        if exclude_id:
            records = records.exclude(id=exclude_id)
        last_record = records.aggregate(last=Max('donation_date'))['last']

        profile_date = getattr(getattr(donor, 'donor_profile', None), 'last_donation_date', None)
        candidates = [d for d in (last_record, profile_date) if d]
        return max(candidates) if candidates else None

    @classmethod
    def check_donation_eligibility(cls, donor: Optional[User], use_cache: bool = False) -> Dict[str, Any]:
        """
        Eligibility summary for a donor.
        Keys: eligible, reason and, when relevant, days_remaining,
        next_eligible_date, last_donation_date, is_first_time.

        Cached entries remember the donation settings they were computed
        under and are recomputed once those settings change.
        """
        if donor is None:
            return {'eligible': False, 'reason': 'Donor not found'}

        if not use_cache:
            return cls._evaluate(donor)

        settings = cls._donation_settings()
        settings_key = [settings['cooldown_days'], settings['min_age'], settings['max_age']]
        cached = CacheManager.get_eligibility(donor.id)
        if cached is not None and cached.get('settings') == settings_key:
            return cached['result']

        result = cls._evaluate(donor)
        CacheManager.set_eligibility(donor.id, {'settings': settings_key, 'result': result})
        return result

    @classmethod
    def _evaluate(cls, donor: User) -> Dict[str, Any]:
        try:
            donor_profile = donor.donor_profile
            profile = donor.profile
        except ObjectDoesNotExist:
            return {'eligible': False, 'reason': 'Donor not found'}

        if not donor_profile.is_available:
            return {'eligible': False, 'reason': 'Donor marked as unavailable'}

        if not profile.is_verified:
            return {'eligible': False, 'reason': 'Donor account not verified'}

        settings = cls._donation_settings()
        age = profile.age
        if age is not None:
            if age < settings['min_age']:
                return {
                    'eligible': False,
                    'reason': f"Donor must be at least {settings['min_age']} years old",
                    'age': age,
                }
            if age > settings['max_age']:
                return {
                    'eligible': False,
                    'reason': f"Donor must be at most {settings['max_age']} years old",
                    'age': age,
                }

        last_donation = cls.get_last_donation_date(donor)
        if not last_donation:
            return {'eligible': True, 'reason': 'First time donor', 'is_first_time': True}

        cooldown = settings['cooldown_days']
        days_since = (timezone.now() - last_donation).days
        next_eligible = cls.calculate_next_eligible_date(last_donation)

        if days_since < cooldown:
            return {
                'eligible': False,
                'reason': f"Must wait {cooldown} days between donations",
                'days_remaining': cooldown - days_since,
                'next_eligible_date': next_eligible.isoformat(),
                'last_donation_date': last_donation.isoformat(),
            }

        return {
            'eligible': True,
            'reason': 'Eligible to donate',
            'last_donation_date': last_donation.isoformat(),
            'days_since_last_donation': days_since,
        }

    @classmethod
    def is_eligible(cls, donor: User) -> bool:
        return cls.check_donation_eligibility(donor)['eligible']

    @classmethod
    def get_newly_eligible_donors(cls) -> List[User]:
        """Donors whose last verified donation was exactly one cooldown ago"""
        cooldown = cls._donation_settings()['cooldown_days']
        target_date = timezone.localdate() - timedelta(days=cooldown)

        profiles = DonorProfile.objects.filter(
            is_available=True,
            notification_enabled=True,
            user__is_active=True,
        ).annotate(
            last_verified=Max(
                'user__donation_records__donation_date',
                filter=Q(user__donation_records__verification_status=DonationRecord.VERIFIED),
            )
        ).filter(last_verified__date=target_date).select_related('user')

        return [profile.user for profile in profiles]

    @classmethod
    def get_donor_statistics(cls, donor: User) -> Dict[str, Any]:
        stats = DonationRecord.objects.filter(
            donor=donor,
            verification_status=DonationRecord.VERIFIED,
        ).aggregate(
            total=Count('id'),
            units=Sum('units_provided'),
            first=Min('donation_date'),
            last=Max('donation_date'),
        )

        average_days = None
        if stats['total'] > 1:
            span = (stats['last'] - stats['first']).days
            average_days = round(span / (stats['total'] - 1), 1)

        return {
            'total_donations': stats['total'],
            'total_units': stats['units'] or 0,
            'first_donation': stats['first'].isoformat() if stats['first'] else None,
            'last_donation': stats['last'].isoformat() if stats['last'] else None,
            'average_days_between_donations': average_days,
            'eligibility': cls.check_donation_eligibility(donor),
        }
