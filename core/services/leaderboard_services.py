"""
Leaderboard Service - points, milestones and rankings per period
"""
from django.db import transaction
from typing import Optional, Dict, Any, Tuple
import logging

from core import choices
from core.models import Leaderboard, LeaderboardEntry, DonationRecord, User
from core.cache import CacheManager
from core.services.base import BaseService, ServiceResponse
from core.services.config_services import ConfigService

logger = logging.getLogger(__name__)


class LeaderboardService(BaseService):
    """Gamification: donation points feed every leaderboard period"""

    EXTRA_UNIT_POINTS = choices.LEADERBOARD_POINTS['EXTRA_UNIT']

    @classmethod
    def _points(cls) -> Dict[str, int]:
        return ConfigService.get_section('points_settings')

    @classmethod
    def split_donation_points(cls, units: int = 1, urgency: Optional[str] = None) -> Tuple[int, int]:
        """(donation points, urgency bonus) for a donation"""
        points = cls._points()
        base = points['per_donation'] + max(units - 1, 0) * cls.EXTRA_UNIT_POINTS

        bonus = 0
        if urgency == choices.URGENCY_CRITICAL:
            bonus = points['critical_bonus']
        elif urgency == choices.URGENCY_URGENT:
            bonus = points['urgent_bonus']
        return base, bonus

    @classmethod
    def calculate_donation_points(cls, units: int = 1, urgency: Optional[str] = None) -> int:
        base, bonus = cls.split_donation_points(units, urgency)
        return base + bonus

    @classmethod
    def milestone_bonus(cls, verified_count: int) -> int:
        if verified_count == 1:
            return cls._points()['first_donation_bonus']
        return choices.MILESTONES.get(verified_count, 0)

    # =========================================================================
    # AWARDING
    # =========================================================================

    @classmethod
    def award_donation_points(cls, donation: DonationRecord) -> Optional[LeaderboardEntry]:
        """Credit a verified donation to every period; returns the all-time entry"""
        urgency = donation.blood_request.urgency if donation.blood_request_id else None
        base, bonus = cls.split_donation_points(donation.units_provided, urgency)

        verified_count = DonationRecord.objects.filter(
            donor=donation.donor,
            verification_status=DonationRecord.VERIFIED,
        ).count()
        milestone = cls.milestone_bonus(verified_count)
        badge = choices.calculate_badge_tier(verified_count)

        all_time_entry = None
        with transaction.atomic():
            for period in Leaderboard.PERIODS:
                leaderboard = Leaderboard.get_current(period)
                entry, _created = LeaderboardEntry.objects.select_for_update().get_or_create(
                    leaderboard=leaderboard,
                    donor=donation.donor,
                )
                entry.donation_points += base
                entry.bonus_points += bonus
                entry.milestone_points += milestone
                entry.points += base + bonus + milestone
                entry.total_donations = verified_count
                entry.badge = badge
                entry.save()

                cls.update_rankings(leaderboard)
                if period == Leaderboard.ALL_TIME:
                    all_time_entry = entry

        CacheManager.invalidate_leaderboard()
        logger.info(
            f"Awarded {base + bonus + milestone} points to {donation.donor.username} "
            f"for donation {donation.id}"
        )
        if all_time_entry is not None:
            all_time_entry.refresh_from_db()
        return all_time_entry

    @classmethod
    def update_rankings(cls, leaderboard: Leaderboard) -> int:
        entries = list(
            LeaderboardEntry.objects.filter(leaderboard=leaderboard)
            .order_by('-points', '-total_donations', 'created_at')
        )

        for position, entry in enumerate(entries, start=1):
            previous = entry.rank or None
            entry.previous_rank = previous
            if previous is None:
                entry.rank_change = LeaderboardEntry.NEW
            elif position < previous:
                entry.rank_change = LeaderboardEntry.UP
            elif position > previous:
                entry.rank_change = LeaderboardEntry.DOWN
            else:
                entry.rank_change = LeaderboardEntry.SAME
            entry.rank = position

        LeaderboardEntry.objects.bulk_update(entries, ['rank', 'previous_rank', 'rank_change'])
        return len(entries)

    @classmethod
    def add_review_points(cls, donor: User, points: Optional[int] = None) -> Optional[LeaderboardEntry]:
        """Review bonus on the all-time board for donors already ranked"""
        points = cls._points()['review_bonus'] if points is None else points
        leaderboard = Leaderboard.get_current(Leaderboard.ALL_TIME)

        with transaction.atomic():
            entry = LeaderboardEntry.objects.select_for_update().filter(
                leaderboard=leaderboard, donor=donor
            ).first()
            if entry is None:
                return None

            entry.points += points
            entry.review_points += points
            entry.save(update_fields=['points', 'review_points', 'updated_at'])
            cls.update_rankings(leaderboard)

        CacheManager.invalidate_leaderboard(Leaderboard.ALL_TIME)
        entry.refresh_from_db()
        return entry

    # =========================================================================
    # QUERIES
    # =========================================================================

    @classmethod
    def _entry_dict(cls, entry: LeaderboardEntry) -> Dict[str, Any]:
        donor = entry.donor
        profile = getattr(donor, 'profile', None)
        return {
            'rank': entry.rank,
            'donor_id': donor.id,
            'donor_name': donor.get_full_name() or donor.username,
            'blood_type': profile.blood_type if profile else '',
            'points': entry.points,
            'total_donations': entry.total_donations,
            'badge': entry.badge,
            'rank_change': entry.rank_change,
        }

    @classmethod
    def get_leaderboard(cls, period: str = Leaderboard.ALL_TIME, limit: int = 100) -> ServiceResponse:
        if period not in Leaderboard.PERIODS:
            return cls.error(f"Invalid period. Use one of: {', '.join(Leaderboard.PERIODS)}")

        limit = min(max(int(limit), 1), 500)
        cached = CacheManager.get_leaderboard(period, limit)
        if cached is not None:
            return cls.success(cached)

        leaderboard = Leaderboard.get_current(period)
        entries = (
            LeaderboardEntry.objects.filter(leaderboard=leaderboard)
            .select_related('donor', 'donor__profile')
            .order_by('rank')[:limit]
        )
        data = {
            'period': period,
            'year': leaderboard.year,
            'month': leaderboard.month,
            'week': leaderboard.week,
            'entries': [cls._entry_dict(entry) for entry in entries],
        }
        data['total_entries'] = len(data['entries'])

        CacheManager.set_leaderboard(period, limit, data)
        return cls.success(data)

    @classmethod
    def get_donor_rank(cls, donor: User, period: str = Leaderboard.ALL_TIME) -> ServiceResponse:
        if period not in Leaderboard.PERIODS:
            return cls.error(f"Invalid period. Use one of: {', '.join(Leaderboard.PERIODS)}")

        leaderboard = Leaderboard.get_current(period)
        entry = LeaderboardEntry.objects.filter(leaderboard=leaderboard, donor=donor).first()
        if entry is None:
            return cls.success({
                'rank': None,
                'points': 0,
                'total_donations': 0,
                'message': 'Not ranked yet',
            })

        total = LeaderboardEntry.objects.filter(leaderboard=leaderboard).count()
        nearby = (
            LeaderboardEntry.objects.filter(
                leaderboard=leaderboard,
                rank__gte=max(1, entry.rank - 2),
                rank__lte=entry.rank + 2,
            )
            .select_related('donor', 'donor__profile')
            .order_by('rank')
        )

        return cls.success({
            'rank': entry.rank,
            'points': entry.points,
            'total_donations': entry.total_donations,
            'badge': entry.badge,
            'rank_change': entry.rank_change,
            'total_entries': total,
            'percentile': round((total - entry.rank + 1) / total * 100, 1),
            'nearby_ranks': [cls._entry_dict(item) for item in nearby],
            'points_breakdown': entry.points_breakdown,
        })

    @classmethod
    def get_top_donors_by_blood_type(cls, blood_type: str, limit: int = 10) -> ServiceResponse:
        if blood_type not in choices.BLOOD_TYPES:
            return cls.error(f"Invalid blood type: {blood_type}")

        leaderboard = Leaderboard.get_current(Leaderboard.ALL_TIME)
        entries = (
            LeaderboardEntry.objects.filter(
                leaderboard=leaderboard,
                donor__profile__blood_type=blood_type,
            )
            .select_related('donor', 'donor__profile')
            .order_by('rank')[:limit]
        )
        return cls.success([cls._entry_dict(entry) for entry in entries])

