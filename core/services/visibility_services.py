"""
Request Visibility Service - which blood requests a donor gets to see
"""
from django.db.models import Count
from django.utils import timezone
from typing import Optional, Dict, Any, List
import logging

from core import choices
from core.models import BloodRequest, RequestMatch, UserProfile, User
from core.cache import CacheManager, cached_result
from core.services.base import BaseService, ServiceResponse
from core.utils import calculate_distance

logger = logging.getLogger(__name__)


class VisibilityService(BaseService):
    """
    Radius and compatibility rules for request visibility.
    Critical and urgent requests bypass the donor's radius.
    """

    ALREADY_MATCHED = 'already_matched'
    INCOMPATIBLE = 'blood_type_incompatible'
    URGENT_BYPASS = 'critical_urgent_bypass'
    OUTSIDE_RADIUS = 'outside_radius'
    WITHIN_CRITERIA = 'within_criteria'

    SORT_OPTIONS = ('urgency', 'distance', 'created_at')
    BYPASS_URGENCIES = (choices.URGENCY_CRITICAL, choices.URGENCY_URGENT)

    @classmethod
    def check_request_visibility(cls, blood_request: BloodRequest, donor: User,
                                 matched_request_ids: Optional[set] = None) -> Dict[str, Any]:
        if matched_request_ids is None:
            already_matched = RequestMatch.objects.filter(
                blood_request=blood_request, donor=donor
            ).exists()
        else:
            already_matched = blood_request.id in matched_request_ids

        if already_matched:
            return {'visible': True, 'reason': cls.ALREADY_MATCHED}

        profile = donor.profile
        if not choices.check_compatibility(profile.blood_type, blood_request.blood_type):
            return {'visible': False, 'reason': cls.INCOMPATIBLE}

        distance = calculate_distance(
            profile.latitude, profile.longitude,
            blood_request.latitude, blood_request.longitude,
        )
        distance_km = None if distance == float('inf') else round(distance, 1)
        radius = donor.donor_profile.availability_radius

        if distance > radius:
            if blood_request.urgency in cls.BYPASS_URGENCIES:
                return {'visible': True, 'reason': cls.URGENT_BYPASS, 'distance_km': distance_km}
            return {'visible': False, 'reason': cls.OUTSIDE_RADIUS, 'distance_km': distance_km}

        return {'visible': True, 'reason': cls.WITHIN_CRITERIA, 'distance_km': distance_km}

    @classmethod
    def _candidate_requests(cls, donor: User):
        return BloodRequest.objects.filter(
            status__in=BloodRequest.ACTIVE_STATUSES,
            required_by__gte=timezone.now(),
            blood_type__in=choices.get_compatible_recipient_types(donor.profile.blood_type),
        ).select_related('recipient')

    @classmethod
    def _visible_entries(cls, donor: User) -> List[Dict[str, Any]]:
        matched_ids = set(
            RequestMatch.objects.filter(donor=donor).values_list('blood_request_id', flat=True)
        )
        entries = []
        for blood_request in cls._candidate_requests(donor):
            visibility = cls.check_request_visibility(blood_request, donor, matched_ids)
            if visibility['visible']:
                entries.append({'request': blood_request, 'visibility': visibility})
        return entries

    @classmethod
    def get_visible_request_ids(cls, donor: User) -> List[int]:
        return [entry['request'].id for entry in cls._visible_entries(donor)]

    @classmethod
    def _sort_entries(cls, entries: List[Dict], sort_by: str) -> List[Dict]:
        if sort_by == 'distance':
            return sorted(
                entries,
                key=lambda e: (
                    e['visibility'].get('distance_km') is None,
                    e['visibility'].get('distance_km') or 0,
                ),
            )
        if sort_by == 'created_at':
            return sorted(entries, key=lambda e: e['request'].created_at, reverse=True)
        return sorted(
            entries,
            key=lambda e: (choices.URGENCY_ORDER.get(e['request'].urgency, 99), e['request'].required_by),
        )

    @classmethod
    def get_visible_requests_for_donor(cls, donor: User, sort_by: str = 'urgency',
                                       page: int = 1, limit: int = 20) -> ServiceResponse:
        """Paginated visible requests plus a summary by visibility reason"""
        if sort_by not in cls.SORT_OPTIONS:
            return cls.error(f"sort_by must be one of: {', '.join(cls.SORT_OPTIONS)}")

        try:
            entries = cls._sort_entries(cls._visible_entries(donor), sort_by)

            by_reason = {}
            for entry in entries:
                reason = entry['visibility']['reason']
                by_reason[reason] = by_reason.get(reason, 0) + 1

            page = max(int(page), 1)
            limit = min(max(int(limit), 1), 100)
            start = (page - 1) * limit

            return cls.success({
                'results': entries[start:start + limit],
                'pagination': {
                    'page': page,
                    'limit': limit,
                    'total': len(entries),
                    'pages': (len(entries) + limit - 1) // limit,
                },
                'summary': {
                    'total_visible': len(entries),
                    'by_reason': by_reason,
                    'critical_count': sum(
                        1 for e in entries if e['request'].urgency == choices.URGENCY_CRITICAL
                    ),
                },
            })

        except Exception as e:
            return cls.handle_exception(e, "visible requests")

    @classmethod
    def check_single_request_visibility(cls, request_id: int, donor: User) -> ServiceResponse:
        try:
            blood_request = BloodRequest.objects.get(id=request_id)
        except BloodRequest.DoesNotExist:
            return cls.not_found("Blood request not found")

        visibility = cls.check_request_visibility(blood_request, donor)
        return cls.success({'request_id': blood_request.id, **visibility})

    @classmethod
    @cached_result(
        lambda *args, **kwargs: CacheManager.make_key('visibility', 'stats'),
        timeout=CacheManager.TIMEOUTS['visibility_stats'],
    )
    def get_visibility_statistics(cls) -> Dict[str, Any]:
        active = BloodRequest.objects.filter(status__in=BloodRequest.ACTIVE_STATUSES)

        by_urgency = {row['urgency']: row['count'] for row in active.values('urgency').annotate(count=Count('id'))}
        by_status = {row['status']: row['count'] for row in active.values('status').annotate(count=Count('id'))}

        donors = list(
            User.objects.filter(
                profile__role=UserProfile.DONOR,
                profile__verification_status=UserProfile.VERIFIED,
                profile__is_active=True,
                donor_profile__is_available=True,
            ).select_related('profile', 'donor_profile')
        )

        requests = list(active.filter(status=BloodRequest.PENDING))
        candidate_total = 0
        for blood_request in requests:
            matched_ids = set(blood_request.matches.values_list('donor_id', flat=True))
            for donor in donors:
                if donor.id in matched_ids:
                    candidate_total += 1
                    continue
                if cls.check_request_visibility(blood_request, donor, matched_request_ids=set())['visible']:
                    candidate_total += 1

        return {
            'total_active': active.count(),
            'by_urgency': by_urgency,
            'by_status': by_status,
            'available_donors': len(donors),
            'average_candidates_per_request': (
                round(candidate_total / len(requests), 1) if requests else 0
            ),
        }
