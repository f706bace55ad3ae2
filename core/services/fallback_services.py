"""
Fallback Service - escalation for requests nobody has accepted
"""
from django.utils import timezone
from django.db import transaction
from datetime import timedelta
from typing import Optional, List, Dict, Any
import logging

from django_celery_beat.models import IntervalSchedule, PeriodicTask

from core import choices
from core.models import BloodRequest, RequestMatch, UserProfile, User, Notification
from core.services.base import BaseService, ServiceResponse
from core.services.config_services import ConfigService
from core.services.notification_services import NotificationService
from core.utils import calculate_distance, get_bounding_box

logger = logging.getLogger(__name__)


class FallbackService(BaseService):
    """
    Escalation ladder for unmatched requests:
    expand radius, ask unavailable donors, suggest facilities, alert admins.
    """

    SCHEDULE_NAME = 'run-fallback-system'

    FACILITY_DIRECTORY = [
        {
            'facility_type': 'blood_bank',
            'name': 'Central Blood Bank',
            'address': 'Dhaka Medical College, Dhaka',
            'contact_number': '+880-2-9668690',
            'distance': 5.2,
        },
        {
            'facility_type': 'hospital',
            'name': 'Dhaka Medical College Hospital',
            'address': 'Secretariat Road, Dhaka',
            'contact_number': '+880-2-8626812',
            'distance': 5.5,
        },
        {
            'facility_type': 'blood_bank',
            'name': 'Sandhani Blood Bank',
            'address': 'Dhaka University, Dhaka',
            'contact_number': '+880-2-9661900',
            'distance': 7.8,
        },
    ]

    @classmethod
    def _settings(cls) -> Dict[str, Any]:
        return ConfigService.get_section('fallback_settings')

    @classmethod
    def detect_unmatched_requests(cls, threshold_hours: Optional[int] = None):
        """Pending, not yet due requests older than the threshold with no accepted donor"""
        if threshold_hours is None:
            threshold_hours = cls._settings()['unmatched_threshold_hours']

        now = timezone.now()
        return BloodRequest.objects.filter(
            status=BloodRequest.PENDING,
            created_at__lte=now - timedelta(hours=threshold_hours),
            required_by__gte=now,
        ).exclude(
            matches__response=RequestMatch.ACCEPTED,
        ).select_related('recipient').distinct()

    @classmethod
    def suggest_radius_expansion(cls, request_id: int, new_radius: Optional[int] = None) -> ServiceResponse:
        if new_radius is None:
            new_radius = ConfigService.get_setting('matching_settings', 'expanded_search_radius')

        max_radius = ConfigService.get_setting('matching_settings', 'max_search_radius')
        try:
            new_radius = int(new_radius)
        except (TypeError, ValueError):
            return cls.error("Radius must be a whole number of kilometres")
        if not (1 <= new_radius <= max_radius):
            return cls.error(f"Radius must be between 1 and {max_radius} km")

        try:
            with transaction.atomic():
                blood_request = BloodRequest.objects.select_for_update().get(id=request_id)
                if blood_request.status != BloodRequest.PENDING:
                    return cls.error("Can only expand radius for pending requests")

                blood_request.search_radius = new_radius
                blood_request.radius_expanded = True
                blood_request.fallback_attempts += 1
                blood_request.last_fallback_attempt = timezone.now()
                blood_request.save(update_fields=[
                    'search_radius', 'radius_expanded', 'fallback_attempts',
                    'last_fallback_attempt', 'updated_at'
                ])

                NotificationService.create_notification(
                    user=blood_request.recipient,
                    notification_type=Notification.SYSTEM,
                    title="Search Radius Expanded",
                    message=(
                        f"We've expanded the search radius to {new_radius}km to help find donors "
                        f"for your blood request. You'll be notified if we find any matches."
                    ),
                    data={'request_id': blood_request.id, 'new_radius': new_radius},
                    related_model='BloodRequest',
                    related_id=blood_request.id,
                )

            logger.info(f"Search radius for request {request_id} expanded to {new_radius}km")
            return cls.success(blood_request, message=f"Search radius expanded to {new_radius}km")

        except Exception as e:
            return cls.handle_exception(e, "radius expansion")

    @classmethod
    def _unavailable_donors(cls, blood_request: BloodRequest) -> List[User]:
        if not blood_request.has_valid_coordinates:
            return []

        latitude, longitude = blood_request.coordinates
        radius = blood_request.search_radius
        box = get_bounding_box(latitude, longitude, radius)

        profiles = UserProfile.objects.filter(
            role=UserProfile.DONOR,
            verification_status=UserProfile.VERIFIED,
            is_active=True,
            user__is_active=True,
            blood_type__in=choices.get_compatible_donor_types(blood_request.blood_type),
            user__donor_profile__is_available=False,
            latitude__range=(box['min_lat'], box['max_lat']),
            longitude__range=(box['min_lng'], box['max_lng']),
        ).select_related('user')

        return [
            profile.user for profile in profiles
            if calculate_distance(latitude, longitude, profile.latitude, profile.longitude) <= radius
        ]

    @classmethod
    def notify_unavailable_donors(cls, request_id: int) -> ServiceResponse:
        try:
            blood_request = BloodRequest.objects.get(id=request_id)
        except BloodRequest.DoesNotExist:
            return cls.not_found("Blood request not found")

        try:
            donors = cls._unavailable_donors(blood_request)
            label = 'CRITICAL' if blood_request.urgency == choices.URGENCY_CRITICAL else 'urgent'
            notified = NotificationService.notify_many(
                donors,
                notification_type=Notification.SYSTEM,
                title="Critical Blood Request - Your Help Needed",
                message=(
                    f"A {label} blood request for {blood_request.blood_type} is pending. "
                    f"Even if you're unavailable, you might know someone who can help. "
                    f"Hospital: {blood_request.hospital_name}"
                ),
                data={
                    'request_id': blood_request.id,
                    'blood_type': blood_request.blood_type,
                    'urgency': blood_request.urgency,
                    'hospital': blood_request.hospital_name,
                },
                priority=Notification.URGENT,
                related_model='BloodRequest',
                related_id=blood_request.id,
            )
            return cls.success({'notified': notified}, message=f"Notified {notified} unavailable donors")

        except Exception as e:
            return cls.handle_exception(e, "notify unavailable donors")

    @classmethod
    def suggest_nearby_facilities(cls, request_id: int) -> ServiceResponse:
        try:
            blood_request = BloodRequest.objects.get(id=request_id)
        except BloodRequest.DoesNotExist:
            return cls.not_found("Blood request not found")

        try:
            suggested_at = timezone.now().isoformat()
            facilities = [dict(facility, suggested_at=suggested_at) for facility in cls.FACILITY_DIRECTORY]
            blood_request.nearby_facilities = facilities
            blood_request.save(update_fields=['nearby_facilities', 'updated_at'])

            NotificationService.create_notification(
                user=blood_request.recipient,
                notification_type=Notification.SYSTEM,
                title="Nearby Blood Facilities Found",
                message=(
                    f"We found {len(facilities)} nearby blood banks and hospitals that might be able "
                    f"to help. Check your request details for contact information."
                ),
                data={'request_id': blood_request.id, 'facilities_count': len(facilities)},
                related_model='BloodRequest',
                related_id=blood_request.id,
            )
            return cls.success(facilities, message="Nearby facilities suggested")

        except Exception as e:
            return cls.handle_exception(e, "suggest facilities")

    @classmethod
    def notify_admin_critical(cls, request_id: int) -> ServiceResponse:
        try:
            blood_request = BloodRequest.objects.select_related('recipient').get(id=request_id)
        except BloodRequest.DoesNotExist:
            return cls.not_found("Blood request not found")

        try:
            recipient = blood_request.recipient
            notified = NotificationService.notify_admins(
                title="Critical Unmatched Blood Request",
                message=(
                    f"URGENT: Blood request for {blood_request.blood_type} "
                    f"({blood_request.units_required} units) has no matches. "
                    f"Patient: {blood_request.patient_name}, Hospital: {blood_request.hospital_name}, "
                    f"Required by: {timezone.localtime(blood_request.required_by):%Y-%m-%d %H:%M}"
                ),
                data={
                    'request_id': blood_request.id,
                    'blood_type': blood_request.blood_type,
                    'urgency': blood_request.urgency,
                    'recipient_name': recipient.get_full_name() or recipient.username,
                },
                priority=Notification.URGENT,
                related_model='BloodRequest',
                related_id=blood_request.id,
            )

            blood_request.admin_notified = True
            blood_request.admin_notified_at = timezone.now()
            blood_request.save(update_fields=['admin_notified', 'admin_notified_at', 'updated_at'])
            return cls.success({'notified': notified}, message=f"Notified {notified} administrators")

        except Exception as e:
            return cls.handle_exception(e, "notify admins")

    @classmethod
    def process_fallback(cls, request_id: int) -> ServiceResponse:
        """Run every applicable escalation step for one request"""
        try:
            blood_request = BloodRequest.objects.get(id=request_id)
        except BloodRequest.DoesNotExist:
            return cls.not_found("Blood request not found")

        actions = []

        if not blood_request.radius_expanded:
            response = cls.suggest_radius_expansion(request_id)
            if not response:
                return response
            actions.append('radius_expanded')

        if blood_request.urgency in (choices.URGENCY_CRITICAL, choices.URGENCY_URGENT):
            response = cls.notify_unavailable_donors(request_id)
            if not response:
                return response
            actions.append(f"notified_{response.data['notified']}_unavailable_donors")

        response = cls.suggest_nearby_facilities(request_id)
        if not response:
            return response
        actions.append('facilities_suggested')

        if (
            blood_request.urgency == choices.URGENCY_CRITICAL
            and not blood_request.admin_notified
            and cls._settings()['notify_admins_for_critical']
        ):
            response = cls.notify_admin_critical(request_id)
            if not response:
                return response
            actions.append('admin_notified')

        return cls.success({'request_id': request_id, 'actions': actions}, message="Fallback processed")

    @classmethod
    def run_fallback_system(cls, threshold_hours: Optional[int] = None) -> Dict[str, Any]:
        unmatched = list(cls.detect_unmatched_requests(threshold_hours))
        results = {'total': len(unmatched), 'successful': 0, 'failed': 0, 'details': []}

        for blood_request in unmatched:
            response = cls.process_fallback(blood_request.id)
            if response:
                results['successful'] += 1
                results['details'].append(response.data)
            else:
                results['failed'] += 1
                results['details'].append({'request_id': blood_request.id, 'error': response.message})

        logger.info(
            f"Fallback run: {results['total']} unmatched, "
            f"{results['successful']} processed, {results['failed']} failed"
        )
        return results

    @classmethod
    def sync_schedule(cls, fallback_settings: Optional[Dict[str, Any]] = None) -> PeriodicTask:
        """
        Mirror auto_run_enabled and auto_run_interval_hours onto the beat
        entry that celery's DatabaseScheduler reads.
        """
        fallback_settings = fallback_settings or cls._settings()
        interval, _created = IntervalSchedule.objects.get_or_create(
            every=fallback_settings['auto_run_interval_hours'],
            period=IntervalSchedule.HOURS,
        )
        task, _created = PeriodicTask.objects.update_or_create(
            name=cls.SCHEDULE_NAME,
            defaults={
                'task': 'core.tasks.run_fallback_system',
                'interval': interval,
                'enabled': bool(fallback_settings['auto_run_enabled']),
                'queue': 'matching',
                'description': 'Escalate blood requests nobody has accepted',
            },
        )
        logger.info(
            f"Fallback schedule every {interval.every}h, "
            f"{'enabled' if task.enabled else 'disabled'}"
        )
        return task

    @classmethod
    def set_expansion_consent(cls, request_id: int, user: User, consent: bool) -> ServiceResponse:
        """Recipient consent to widen the search; consent expands immediately"""
        try:
            blood_request = BloodRequest.objects.get(id=request_id)
        except BloodRequest.DoesNotExist:
            return cls.not_found("Blood request not found")

        if blood_request.recipient_id != user.id:
            return cls.forbidden("Only the requesting recipient can give consent")

        blood_request.radius_expansion_consent = consent is True
        blood_request.save(update_fields=['radius_expansion_consent', 'updated_at'])

        if consent is True and not blood_request.radius_expanded:
            response = cls.suggest_radius_expansion(request_id)
            if not response:
                return response
            blood_request.refresh_from_db()

        message = "Consent given. Radius will be expanded." if consent is True else "Consent withdrawn"
        return cls.success(blood_request, message=message)
