"""
Donor Matching Service - compatible donor search and ranking
"""
from django.utils import timezone
from datetime import timedelta
from typing import Optional, List, Dict, Any, Iterable
import logging

from core import choices
from core.models import UserProfile
from core.services.base import BaseService, ServiceResponse
from core.services.eligibility_services import EligibilityService
from core.utils import calculate_distance, get_bounding_box, format_distance

logger = logging.getLogger(__name__)


class MatchingService(BaseService):
    """Finds and scores donors for a blood request location"""

    BASE_SCORE = 100
    DISTANCE_PENALTY = 0.5
    DONATION_BONUS = 5
    CRITICAL_PENALTY = 20
    EXACT_MATCH_BONUS = 10
    RECENT_LOGIN_BONUS = 15
    ACTIVE_LOGIN_BONUS = 5

    @classmethod
    def calculate_match_score(cls, distance_km: float, total_donations: int, urgency: str,
                              urgent_only: bool, exact_match: bool,
                              last_login=None) -> float:
        score = cls.BASE_SCORE
        score -= distance_km * cls.DISTANCE_PENALTY
        score += total_donations * cls.DONATION_BONUS

        if urgency == choices.URGENCY_CRITICAL and not urgent_only:
            score -= cls.CRITICAL_PENALTY

        if exact_match:
            score += cls.EXACT_MATCH_BONUS

        if last_login:
            idle = timezone.now() - last_login
            if idle < timedelta(days=7):
                score += cls.RECENT_LOGIN_BONUS
            elif idle < timedelta(days=30):
                score += cls.ACTIVE_LOGIN_BONUS

        return max(score, 0)

    @classmethod
    def _candidate_profiles(cls, blood_type: str, latitude: float, longitude: float,
                            radius_km: float, exclude: Iterable[int]):
        box = get_bounding_box(latitude, longitude, radius_km)
        queryset = UserProfile.objects.filter(
            role=UserProfile.DONOR,
            verification_status=UserProfile.VERIFIED,
            is_active=True,
            user__is_active=True,
            blood_type__in=choices.get_compatible_donor_types(blood_type),
            user__donor_profile__is_available=True,
            latitude__gte=box['min_lat'],
            latitude__lte=box['max_lat'],
            longitude__gte=box['min_lng'],
            longitude__lte=box['max_lng'],
        ).select_related('user', 'user__donor_profile')

        exclude = list(exclude or [])
        if exclude:
            queryset = queryset.exclude(user_id__in=exclude)
        return queryset

    @classmethod
    def find_compatible_donors(
        cls,
        blood_type: str,
        latitude: float,
        longitude: float,
        radius_km: Optional[float] = None,
        urgency: str = choices.URGENCY_NORMAL,
        limit: int = 50,
        exclude: Iterable[int] = (),
    ) -> List[Dict[str, Any]]:
        """
        Ranked donors able to give to blood_type within radius_km.
        Each result: donor, distance_km, distance_display, score, eligibility.
        """
        if radius_km is None:
            from core.services.config_services import ConfigService
            radius_km = ConfigService.get_setting('matching_settings', 'default_search_radius')

        now = timezone.now()
        results = []

        for profile in cls._candidate_profiles(blood_type, latitude, longitude, radius_km, exclude):
            distance = calculate_distance(latitude, longitude, profile.latitude, profile.longitude)
            if distance > radius_km:
                continue

            donor = profile.user
            donor_profile = donor.donor_profile

            eligibility = EligibilityService.check_donation_eligibility(donor, use_cache=True)
            if not eligibility['eligible']:
                continue
            if not donor_profile.is_available_at(now):
                continue

            score = cls.calculate_match_score(
                distance_km=distance,
                total_donations=donor_profile.total_donations,
                urgency=urgency,
                urgent_only=donor_profile.urgent_only,
                exact_match=profile.blood_type == blood_type,
                last_login=donor.last_login,
            )

            results.append({
                'donor': donor,
                'distance_km': round(distance, 1),
                'distance_display': format_distance(distance),
                'score': round(score, 1),
                'eligibility': eligibility,
            })

        results.sort(key=lambda item: item['score'], reverse=True)
        return results[:limit]

    @classmethod
    def search_donors(cls, params: Dict) -> ServiceResponse:
        """Donor search from query params: blood_type, latitude, longitude, radius, urgency, limit"""
        missing = cls.validate_required_fields(params, ['blood_type', 'latitude', 'longitude'])
        if missing:
            return cls.error(missing)

        blood_type = params['blood_type']
        if blood_type not in choices.BLOOD_TYPES:
            return cls.error(f"Invalid blood type: {blood_type}")

        try:
            latitude = float(params['latitude'])
            longitude = float(params['longitude'])
            radius = float(params['radius']) if params.get('radius') else None
            limit = int(params.get('limit') or 50)
        except (TypeError, ValueError):
            return cls.error("latitude, longitude, radius and limit must be numeric")

        if not (-90 <= latitude <= 90) or not (-180 <= longitude <= 180):
            return cls.error("Coordinates out of range")

        try:
            matches = cls.find_compatible_donors(
                blood_type=blood_type,
                latitude=latitude,
                longitude=longitude,
                radius_km=radius,
                urgency=params.get('urgency') or choices.URGENCY_NORMAL,
                limit=min(max(limit, 1), 100),
            )
            return cls.success(matches, message=f"Found {len(matches)} compatible donors")

        except Exception as e:
            return cls.handle_exception(e, "donor search")
