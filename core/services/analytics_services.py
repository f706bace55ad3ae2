"""
Analytics Service - admin dashboard aggregates
Results are cached for a short window through CacheManager.
"""
from django.contrib.auth.models import User
from django.db.models import Count, Q, Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List
import logging

from core import choices
from core.cache import CacheManager
from core.models import (
    BloodCampEvent, BloodRequest, BlogPost, DonationRecord, Review, UserProfile,
)

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Read-only aggregates for the admin dashboard"""

    RECENT_DONATION_DAYS = 90
    MAX_TREND_MONTHS = 36

    @staticmethod
    def _months_ago(months: int) -> datetime:
        today = timezone.localdate()
        year, month = today.year, today.month - (months - 1)
        while month <= 0:
            month += 12
            year -= 1
        return timezone.make_aware(datetime.combine(date(year, month, 1), time.min))

    @staticmethod
    def get_dashboard_stats() -> Dict[str, Any]:
        cached = CacheManager.get_analytics('dashboard')
        if cached:
            return cached

        users = UserProfile.objects.aggregate(
            total=Count('id'),
            donors=Count('id', filter=Q(role=UserProfile.DONOR)),
            recipients=Count('id', filter=Q(role=UserProfile.RECIPIENT)),
            admins=Count('id', filter=Q(role=UserProfile.ADMIN)),
            verified=Count('id', filter=Q(verification_status=UserProfile.VERIFIED)),
            pending_verification=Count('id', filter=Q(verification_status=UserProfile.PENDING)),
        )
        requests = BloodRequest.objects.aggregate(
            total=Count('id'),
            active=Count('id', filter=Q(status__in=BloodRequest.ACTIVE_STATUSES)),
            fulfilled=Count('id', filter=Q(status=BloodRequest.FULFILLED)),
            cancelled=Count('id', filter=Q(status=BloodRequest.CANCELLED)),
            expired=Count('id', filter=Q(status=BloodRequest.EXPIRED)),
            critical=Count('id', filter=Q(urgency=choices.URGENCY_CRITICAL)),
        )
        donations = DonationRecord.objects.aggregate(
            total=Count('id'),
            verified=Count('id', filter=Q(verification_status=DonationRecord.VERIFIED)),
            pending=Count('id', filter=Q(verification_status=DonationRecord.PENDING)),
            units=Sum('units_provided', filter=Q(verification_status=DonationRecord.VERIFIED)),
        )
        donations['units'] = donations['units'] or 0

        stats = {
            'users': users,
            'requests': requests,
            'donations': donations,
            'engagement': {
                'upcoming_events': BloodCampEvent.objects.filter(
                    is_published=True, start_datetime__gte=timezone.now()
                ).count(),
                'published_posts': BlogPost.objects.filter(status=BlogPost.PUBLISHED).count(),
                'approved_reviews': Review.objects.filter(status=Review.APPROVED).count(),
            },
            'generated_at': timezone.now().isoformat(),
        }
        CacheManager.set_analytics('dashboard', stats)
        logger.info("Dashboard analytics recomputed")
        return stats

    @staticmethod
    def get_donation_trends(months: int = 12) -> List[Dict[str, Any]]:
        """Verified donations and units per month"""
        cache_key = f'donation_trends_{months}'
        cached = CacheManager.get_analytics(cache_key)
        if cached is not None:
            return cached

        rows = DonationRecord.objects.filter(
            verification_status=DonationRecord.VERIFIED,
            donation_date__gte=AnalyticsService._months_ago(months),
        ).annotate(month=TruncMonth('donation_date')).values('month').annotate(
            count=Count('id'),
            units=Sum('units_provided'),
        ).order_by('month')

        trends = [
            {'month': row['month'].strftime('%Y-%m'), 'count': row['count'], 'units': row['units'] or 0}
            for row in rows
        ]
        CacheManager.set_analytics(cache_key, trends)
        return trends

    @staticmethod
    def get_request_trends(months: int = 12) -> List[Dict[str, Any]]:
        """Requests created per month and how many of them were fulfilled"""
        cache_key = f'request_trends_{months}'
        cached = CacheManager.get_analytics(cache_key)
        if cached is not None:
            return cached

        rows = BloodRequest.objects.filter(
            created_at__gte=AnalyticsService._months_ago(months),
        ).annotate(month=TruncMonth('created_at')).values('month').annotate(
            count=Count('id'),
            fulfilled=Count('id', filter=Q(status=BloodRequest.FULFILLED)),
        ).order_by('month')

        trends = [
            {'month': row['month'].strftime('%Y-%m'), 'count': row['count'], 'fulfilled': row['fulfilled']}
            for row in rows
        ]
        CacheManager.set_analytics(cache_key, trends)
        return trends

    @staticmethod
    def get_blood_group_analysis() -> List[Dict[str, Any]]:
        """
        Supply (verified active donors) against demand (open requests) per blood type.
        Status is Adequate when supply covers demand, Low when some supply
        exists and Critical when there is none.
        """
        cached = CacheManager.get_analytics('blood_groups')
        if cached is not None:
            return cached

        supply = dict(
            UserProfile.objects.filter(
                role=UserProfile.DONOR,
                verification_status=UserProfile.VERIFIED,
                is_active=True,
                user__is_active=True,
            ).values_list('blood_type').annotate(count=Count('id'))
        )
        demand = dict(
            BloodRequest.objects.filter(
                status__in=BloodRequest.ACTIVE_STATUSES,
            ).values_list('blood_type').annotate(count=Count('id'))
        )
        recent = dict(
            DonationRecord.objects.filter(
                verification_status=DonationRecord.VERIFIED,
                donation_date__gte=timezone.now() - timedelta(days=AnalyticsService.RECENT_DONATION_DAYS),
            ).values_list('blood_type').annotate(count=Count('id'))
        )

        analysis = []
        for blood_type in choices.BLOOD_TYPES:
            donors = supply.get(blood_type, 0)
            needed = demand.get(blood_type, 0)
            if needed:
                ratio = round(donors / needed, 2)
            else:
                ratio = None
            if donors >= needed:
                status = 'Adequate'
            elif donors > 0:
                status = 'Low'
            else:
                status = 'Critical'
            analysis.append({
                'blood_type': blood_type,
                'supply': donors,
                'demand': needed,
                'recent_donations': recent.get(blood_type, 0),
                'supply_demand_ratio': ratio,
                'status': status,
            })

        CacheManager.set_analytics('blood_groups', analysis)
        return analysis

    @staticmethod
    def get_urgency_distribution() -> List[Dict[str, Any]]:
        rows = {
            row['urgency']: row
            for row in BloodRequest.objects.values('urgency').annotate(
                total=Count('id'),
                active=Count('id', filter=Q(status__in=BloodRequest.ACTIVE_STATUSES)),
                completed=Count('id', filter=Q(status=BloodRequest.FULFILLED)),
            )
        }

        distribution = []
        for urgency, _label in choices.URGENCY_CHOICES:
            row = rows.get(urgency, {'total': 0, 'active': 0, 'completed': 0})
            rate = round(row['completed'] / row['total'] * 100, 1) if row['total'] else 0.0
            distribution.append({
                'urgency': urgency,
                'total': row['total'],
                'active': row['active'],
                'completed': row['completed'],
                'fulfillment_rate': rate,
            })
        return distribution

    @staticmethod
    def get_custom_range(start: date, end: date) -> Dict[str, Any]:
        """Totals between two dates, both inclusive"""
        if start > end:
            raise ValueError("Start date must be before or equal to end date")

        range_start = timezone.make_aware(datetime.combine(start, time.min))
        range_end = timezone.make_aware(datetime.combine(end, time.max))
        requests = BloodRequest.objects.filter(created_at__range=(range_start, range_end))

        top_blood_types = requests.values('blood_type').annotate(count=Count('id')).order_by('-count')[:5]

        return {
            'start_date': start.isoformat(),
            'end_date': end.isoformat(),
            'donations': DonationRecord.objects.filter(
                verification_status=DonationRecord.VERIFIED,
                donation_date__range=(range_start, range_end),
            ).count(),
            'requests': requests.count(),
            'new_users': User.objects.filter(date_joined__range=(range_start, range_end)).count(),
            'blood_camps': BloodCampEvent.objects.filter(
                start_datetime__range=(range_start, range_end),
            ).count(),
            'top_blood_types': list(top_blood_types),
        }
