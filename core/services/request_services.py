"""
Blood Request Service - lifecycle, donor responses and locking
"""
from django.utils import timezone
from django.db import transaction
from django.db.models import F, Q
from typing import Optional, Dict, Any
import logging

from core import choices
from core.models import BloodRequest, RequestMatch, RecipientProfile, DonorProfile, User
from core.services.base import BaseService, ServiceResponse
from core.services.config_services import ConfigService
from core.services.eligibility_services import EligibilityService
from core.services.matching_services import MatchingService
from core.services.notification_services import NotificationService
from core.services.visibility_services import VisibilityService

logger = logging.getLogger(__name__)


class RequestService(BaseService):
    """Blood request management with optimistic donor locking"""

    AUTO_MATCH_LIMIT = 20
    NOTIFY_LIMIT = 10
    UPDATABLE_FIELDS = ('units_required', 'required_by', 'notes')

    ACCEPT = 'accept'
    DECLINE = 'decline'

    # =========================================================================
    # CREATION
    # =========================================================================

    @classmethod
    def _validate_creation(cls, recipient: User, data: Dict) -> Optional[str]:
        profile = getattr(recipient, 'profile', None)
        if profile is None or not profile.is_recipient:
            return "Only recipients can create blood requests"

        max_active = ConfigService.get_setting('request_settings', 'max_active_requests_per_user')
        active_count = BloodRequest.objects.filter(
            recipient=recipient,
            status__in=BloodRequest.ACTIVE_STATUSES,
        ).count()
        if active_count >= max_active:
            return f"You can have at most {max_active} active requests"

        required_by = data.get('required_by')
        if not required_by or required_by <= timezone.now():
            return "Required by date must be in the future"

        return None

    @classmethod
    def create_request(cls, recipient: User, data: Dict) -> ServiceResponse:
        """Create a request and notify the best matching donors"""
        try:
            validation_error = cls._validate_creation(recipient, data)
            if validation_error:
                return cls.error(validation_error)

            with transaction.atomic():
                blood_request = BloodRequest(recipient=recipient, **data)
                if 'search_radius' not in data:
                    blood_request.search_radius = ConfigService.get_setting(
                        'matching_settings', 'default_search_radius'
                    )
                blood_request.full_clean()
                blood_request.save()

                RecipientProfile.objects.filter(user=recipient).update(
                    total_requests=F('total_requests') + 1
                )

                notified = 0
                if ConfigService.get_setting('request_settings', 'auto_match_enabled'):
                    notified = cls._auto_match(blood_request)

            logger.info(
                f"Blood request {blood_request.id} created by {recipient.username} "
                f"({blood_request.blood_type} x{blood_request.units_required}, {notified} donors notified)"
            )
            return cls.success(
                data={'request': blood_request, 'donors_notified': notified},
                message="Blood request created successfully"
            )

        except Exception as e:
            return cls.handle_exception(e, "blood request creation")

    @classmethod
    def _auto_match(cls, blood_request: BloodRequest) -> int:
        if not blood_request.has_valid_coordinates:
            logger.info(f"Request {blood_request.id} has no coordinates, skipping auto-match")
            return 0

        latitude, longitude = blood_request.coordinates
        matches = MatchingService.find_compatible_donors(
            blood_type=blood_request.blood_type,
            latitude=latitude,
            longitude=longitude,
            radius_km=blood_request.search_radius,
            urgency=blood_request.urgency,
            limit=cls.AUTO_MATCH_LIMIT,
            exclude=[blood_request.recipient_id],
        )

        now = timezone.now()
        RequestMatch.objects.bulk_create([
            RequestMatch(
                blood_request=blood_request,
                donor=match['donor'],
                score=match['score'],
                distance_km=match['distance_km'],
                notified_at=now if index < cls.NOTIFY_LIMIT else None,
            )
            for index, match in enumerate(matches)
        ], ignore_conflicts=True)

        top_donors = [match['donor'] for match in matches[:cls.NOTIFY_LIMIT]]
        return NotificationService.notify_request_created(blood_request, top_donors)

    # =========================================================================
    # QUERIES
    # =========================================================================

    @classmethod
    def get_requests_for_user(cls, user: User):
        """Role scoped queryset of blood requests"""
        queryset = BloodRequest.objects.select_related('recipient', 'locked_by')
        profile = getattr(user, 'profile', None)

        if user.is_superuser or (profile and profile.is_admin):
            return queryset
        if profile and profile.is_donor:
            return queryset.filter(id__in=VisibilityService.get_visible_request_ids(user))
        return queryset.filter(recipient=user)

    @classmethod
    def get_donor_matches(cls, donor: User):
        return RequestMatch.objects.filter(donor=donor).select_related(
            'blood_request', 'blood_request__recipient'
        ).order_by('-created_at')

    @classmethod
    def _can_manage(cls, blood_request: BloodRequest, user: User) -> bool:
        profile = getattr(user, 'profile', None)
        return blood_request.recipient_id == user.id or user.is_superuser or bool(profile and profile.is_admin)

    # =========================================================================
    # UPDATES & CANCELLATION
    # =========================================================================

    @classmethod
    def update_request(cls, request_id: int, user: User, data: Dict) -> ServiceResponse:
        """Owner/admin update of units, deadline, notes or cancellation"""
        try:
            with transaction.atomic():
                blood_request = BloodRequest.objects.select_for_update().get(id=request_id)

                if not cls._can_manage(blood_request, user):
                    return cls.forbidden("You can only update your own requests")

                if blood_request.status in BloodRequest.FINAL_STATUSES:
                    return cls.error(f"Cannot update a {blood_request.status} request")

                status = data.get('status')
                if status and status != blood_request.status:
                    if status != BloodRequest.CANCELLED:
                        return cls.error("Status can only be changed to cancelled")
                    return cls.cancel_request(request_id, user, data.get('cancelled_reason', ''))

                if 'required_by' in data and data['required_by'] <= timezone.now():
                    return cls.error("Required by date must be in the future")

                changed = []
                for field in cls.UPDATABLE_FIELDS:
                    if field in data:
                        setattr(blood_request, field, data[field])
                        changed.append(field)

                if not changed:
                    return cls.error("No updatable fields provided")

                blood_request.full_clean()
                blood_request.save(update_fields=changed + ['updated_at'])
                cls.mark_fulfillment(blood_request)

            return cls.success(data=blood_request, message="Blood request updated")

        except Exception as e:
            return cls.handle_exception(e, "blood request update")

    @classmethod
    def cancel_request(cls, request_id: int, user: User, reason: str = '') -> ServiceResponse:
        try:
            with transaction.atomic():
                blood_request = BloodRequest.objects.select_for_update().get(id=request_id)

                if not cls._can_manage(blood_request, user):
                    return cls.forbidden("You can only cancel your own requests")

                blood_request.cancel(user, reason)

                RecipientProfile.objects.filter(user=blood_request.recipient).update(
                    cancelled_requests=F('cancelled_requests') + 1
                )

                donors = User.objects.filter(
                    request_matches__blood_request=blood_request,
                    request_matches__response__in=[RequestMatch.PENDING, RequestMatch.ACCEPTED],
                )
                NotificationService.notify_request_cancelled(blood_request, donors)

            logger.info(f"Blood request {blood_request.id} cancelled by {user.username}")
            return cls.success(data=blood_request, message="Blood request cancelled")

        except Exception as e:
            return cls.handle_exception(e, "blood request cancellation")

    # =========================================================================
    # DONOR RESPONSES
    # =========================================================================

    @classmethod
    def _validate_response(cls, blood_request: BloodRequest, donor: User, action: str) -> Optional[str]:
        profile = getattr(donor, 'profile', None)
        if profile is None or not profile.is_donor:
            return "Only donors can respond to blood requests"

        if action not in (cls.ACCEPT, cls.DECLINE):
            return "Action must be 'accept' or 'decline'"

        if action == cls.DECLINE:
            holds_lock = blood_request.locked_by_id == donor.id
            if blood_request.status == BloodRequest.PENDING:
                return None
            if blood_request.status == BloodRequest.MATCHED and holds_lock:
                return None
            return f"Cannot decline a {blood_request.status} request"

        if blood_request.status != BloodRequest.PENDING:
            return f"Cannot accept a {blood_request.status} request"

        if not choices.check_compatibility(profile.blood_type, blood_request.blood_type):
            return f"Blood type {profile.blood_type} is not compatible with {blood_request.blood_type}"

        eligibility = EligibilityService.check_donation_eligibility(donor)
        if not eligibility['eligible']:
            return eligibility['reason']

        return None

    @classmethod
    def respond_to_request(cls, request_id: int, donor: User, action: str, reason: str = '') -> ServiceResponse:
        """Accept or decline a request; accepting locks it for this donor"""
        try:
            with transaction.atomic():
                blood_request = BloodRequest.objects.select_for_update().get(id=request_id)

                # Lazily clear a stale lock
                if blood_request.is_locked and not blood_request.has_active_lock():
                    blood_request.release_lock()

                if cls.expire_if_overdue(blood_request):
                    return cls.error("This request has passed its required by date and has expired")

                validation_error = cls._validate_response(blood_request, donor, action)
                if validation_error:
                    return cls.error(validation_error)

                if action == cls.ACCEPT and not blood_request.can_be_accepted_by(donor):
                    return cls.error(
                        "This request is currently being handled by another donor",
                        code=ServiceResponse.CONFLICT
                    )

                match, _created = RequestMatch.objects.get_or_create(
                    blood_request=blood_request,
                    donor=donor,
                )
                match.responded_at = timezone.now()

                if action == cls.ACCEPT:
                    blood_request.acquire_lock(donor, minutes=choices.REQUEST_LOCK_MINUTES)
                    blood_request.status = BloodRequest.MATCHED
                    blood_request.save(update_fields=['status', 'updated_at'])

                    match.response = RequestMatch.ACCEPTED
                    match.decline_reason = ''
                    match.save(update_fields=['response', 'responded_at', 'decline_reason', 'updated_at'])

                    NotificationService.notify_request_matched(blood_request, donor)
                    others = User.objects.filter(
                        request_matches__blood_request=blood_request,
                        request_matches__response=RequestMatch.PENDING,
                    ).exclude(id=donor.id)
                    NotificationService.notify_request_taken(blood_request, others)
                    message = "Request accepted. Please proceed to the hospital."
                else:
                    match.response = RequestMatch.DECLINED
                    match.decline_reason = reason or ''
                    match.save(update_fields=['response', 'responded_at', 'decline_reason', 'updated_at'])

                    if blood_request.locked_by_id == donor.id:
                        blood_request.release_lock(donor)
                        if blood_request.status == BloodRequest.MATCHED:
                            blood_request.status = BloodRequest.PENDING
                            blood_request.save(update_fields=['status', 'updated_at'])
                    message = "Request declined"

            logger.info(f"Donor {donor.username} {action}ed request {blood_request.id}")
            return cls.success(data={'request': blood_request, 'match': match}, message=message)

        except Exception as e:
            return cls.handle_exception(e, "request response")

    @classmethod
    def expire_if_overdue(cls, blood_request: BloodRequest) -> bool:
        """Persist the expired status of a pending request past required_by"""
        if not blood_request.is_expired:
            return False
        blood_request.save(update_fields=['status', 'updated_at'])
        logger.info(f"Blood request {blood_request.id} expired on access")
        return True

    @classmethod
    def mark_fulfillment(cls, blood_request: BloodRequest) -> bool:
        """Run check_fulfillment and bump the recipient's fulfilled counter"""
        fulfilled = blood_request.check_fulfillment()
        if fulfilled:
            RecipientProfile.objects.filter(user=blood_request.recipient).update(
                fulfilled_requests=F('fulfilled_requests') + 1
            )
            logger.info(f"Blood request {blood_request.id} fulfilled")
        return fulfilled

    # =========================================================================
    # DONOR SETTINGS
    # =========================================================================

    @classmethod
    def update_search_radius(cls, donor: User, radius: Any) -> ServiceResponse:
        try:
            radius = int(radius)
        except (TypeError, ValueError):
            return cls.error("Radius must be a whole number of kilometres")

        if not (1 <= radius <= choices.MAX_SEARCH_RADIUS_KM):
            return cls.error(f"Radius must be between 1 and {choices.MAX_SEARCH_RADIUS_KM} km")

        try:
            donor_profile = DonorProfile.objects.get(user=donor)
        except DonorProfile.DoesNotExist:
            return cls.not_found("Donor profile not found")

        donor_profile.availability_radius = radius
        donor_profile.save(update_fields=['availability_radius', 'updated_at'])
        return cls.success({'availability_radius': radius}, message="Search radius updated")

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    @classmethod
    def release_expired_locks(cls) -> int:
        count = BloodRequest.objects.filter(
            is_locked=True,
        ).filter(
            Q(lock_expires_at__lte=timezone.now()) | Q(lock_expires_at__isnull=True)
        ).update(is_locked=False, locked_by=None, lock_expires_at=None)

        if count:
            logger.info(f"Released {count} expired request locks")
        return count

    @classmethod
    def expire_overdue_requests(cls) -> int:
        count = BloodRequest.objects.filter(
            status=BloodRequest.PENDING,
            required_by__lt=timezone.now(),
        ).update(
            status=BloodRequest.EXPIRED,
            is_locked=False,
            locked_by=None,
            lock_expires_at=None,
            updated_at=timezone.now(),
        )

        if count:
            logger.info(f"Expired {count} overdue blood requests")
        return count
