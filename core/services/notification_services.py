"""
Notification Service - creation, delivery fan-out and read state
"""
from django.utils import timezone
from django.db import transaction
from typing import Optional, List, Iterable, Dict, Any
from datetime import timedelta
import logging

from core.models import Notification, User, UserProfile
from core.services.base import BaseService, ServiceResponse
from core.cache import CacheManager
from core.utils import store_notification

logger = logging.getLogger(__name__)


class NotificationService(BaseService):
    """
    Notification management with cached unread counts
    """

    CLEANUP_THRESHOLD_DAYS = 30
    EMAIL_PRIORITIES = (Notification.HIGH, Notification.URGENT)

    # Types a donor can mute with notification_enabled=False
    MUTABLE_TYPES = (Notification.REQUEST_CREATED, Notification.REMINDER, Notification.SYSTEM)

    @classmethod
    def _is_muted(cls, user, notification_type: str, priority: str) -> bool:
        donor_profile = getattr(user, 'donor_profile', None)
        if donor_profile is None or donor_profile.notification_enabled:
            return False
        return notification_type in cls.MUTABLE_TYPES and priority not in cls.EMAIL_PRIORITIES

    @classmethod
    def _wants_email(cls, user, priority: str) -> bool:
        from core.services.config_services import ConfigService

        if priority not in cls.EMAIL_PRIORITIES or not user.email:
            return False
        if not ConfigService.get_setting('notification_settings', 'email_enabled'):
            return False
        donor_profile = getattr(user, 'donor_profile', None)
        return donor_profile is None or donor_profile.email_notifications

    @classmethod
    def _queue_email(cls, notification: Notification) -> None:
        from core.tasks import send_notification_email

        def _send():
            try:
                send_notification_email.delay(notification.id)
            except Exception as e:
                logger.warning(f"Could not queue email for notification {notification.id}: {e}")

        transaction.on_commit(_send)

    @classmethod
    def create_notification(
        cls,
        user,
        notification_type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        priority: str = Notification.MEDIUM,
        related_model: str = '',
        related_id: Any = '',
    ) -> Optional[Notification]:
        """
        Create notification with cache invalidation and optional email delivery
        """
        if cls._is_muted(user, notification_type, priority):
            logger.debug(f"Notification {notification_type} muted for user {user.id}")
            return None

        notification = store_notification(
            user=user,
            notification_type=notification_type,
            title=title,
            message=message,
            data=data,
            priority=priority,
            related_model=related_model,
            related_id=related_id,
        )

        CacheManager.invalidate_notification_count(user.id)

        if cls._wants_email(user, priority):
            cls._queue_email(notification)

        return notification

    @classmethod
    def notify_many(cls, users: Iterable, **kwargs) -> int:
        sent = 0
        for user in users:
            if cls.create_notification(user=user, **kwargs):
                sent += 1
        return sent

    @classmethod
    def notify_admins(cls, title: str, message: str, data: Optional[Dict] = None,
                      priority: str = Notification.HIGH, **kwargs) -> int:
        admins = User.objects.filter(
            profile__role=UserProfile.ADMIN,
            profile__is_active=True,
            is_active=True,
        )
        return cls.notify_many(
            admins,
            notification_type=Notification.SYSTEM,
            title=title,
            message=message,
            data=data,
            priority=priority,
            **kwargs
        )

    # =========================================================================
    # BLOOD REQUEST EVENTS
    # =========================================================================

    @classmethod
    def _request_priority(cls, blood_request) -> str:
        if blood_request.urgency == 'critical':
            return Notification.URGENT
        if blood_request.urgency == 'urgent':
            return Notification.HIGH
        return Notification.MEDIUM

    @classmethod
    def notify_request_created(cls, blood_request, donors: Iterable) -> int:
        return cls.notify_many(
            donors,
            notification_type=Notification.REQUEST_CREATED,
            title=f"{blood_request.blood_type} blood needed",
            message=(
                f"{blood_request.units_required} unit(s) of {blood_request.blood_type} needed at "
                f"{blood_request.hospital_name} by {timezone.localtime(blood_request.required_by):%b %d, %I:%M %p}."
            ),
            data={
                'request_id': blood_request.id,
                'blood_type': blood_request.blood_type,
                'urgency': blood_request.urgency,
            },
            priority=cls._request_priority(blood_request),
            related_model='BloodRequest',
            related_id=blood_request.id,
        )

    @classmethod
    def notify_request_matched(cls, blood_request, donor) -> Optional[Notification]:
        return cls.create_notification(
            user=blood_request.recipient,
            notification_type=Notification.REQUEST_MATCHED,
            title="Donor Found!",
            message=f"{donor.get_full_name() or donor.username} accepted your request for {blood_request.blood_type} blood.",
            data={'request_id': blood_request.id, 'donor_id': donor.id},
            priority=Notification.HIGH,
            related_model='BloodRequest',
            related_id=blood_request.id,
        )

    @classmethod
    def notify_request_taken(cls, blood_request, donors: Iterable) -> int:
        return cls.notify_many(
            donors,
            notification_type=Notification.SYSTEM,
            title="Request Matched",
            message=f"The {blood_request.blood_type} request at {blood_request.hospital_name} has been matched with another donor.",
            data={'request_id': blood_request.id},
            priority=Notification.LOW,
            related_model='BloodRequest',
            related_id=blood_request.id,
        )

    @classmethod
    def notify_request_cancelled(cls, blood_request, donors: Iterable) -> int:
        return cls.notify_many(
            donors,
            notification_type=Notification.SYSTEM,
            title="Request Cancelled",
            message=f"The {blood_request.blood_type} request at {blood_request.hospital_name} was cancelled.",
            data={'request_id': blood_request.id},
            priority=Notification.LOW,
            related_model='BloodRequest',
            related_id=blood_request.id,
        )

    # =========================================================================
    # DONATION EVENTS
    # =========================================================================

    @classmethod
    def notify_donation_recorded(cls, donation) -> Optional[Notification]:
        if not donation.recipient:
            return None
        return cls.create_notification(
            user=donation.recipient,
            notification_type=Notification.DONATION_RECORDED,
            title="Donation Recorded",
            message=(
                f"{donation.donor.get_full_name() or donation.donor.username} donated "
                f"{donation.units_provided} unit(s) of {donation.blood_type} for your request."
            ),
            data={'donation_id': donation.id, 'request_id': donation.blood_request_id},
            priority=Notification.HIGH,
            related_model='DonationRecord',
            related_id=donation.id,
        )

    @classmethod
    def notify_donation_verified(cls, donation, card=None) -> Optional[Notification]:
        return cls.create_notification(
            user=donation.donor,
            notification_type=Notification.DONATION_VERIFIED,
            title="Donation Verified",
            message=(
                f"Your donation on {donation.donation_date:%b %d, %Y} was verified. "
                f"You earned {donation.points_earned} points."
            ),
            data={
                'donation_id': donation.id,
                'card_number': card.card_number if card else None,
                'points': donation.points_earned,
            },
            priority=Notification.MEDIUM,
            related_model='DonationRecord',
            related_id=donation.id,
        )

    @classmethod
    def notify_donation_rejected(cls, donation) -> Optional[Notification]:
        return cls.create_notification(
            user=donation.donor,
            notification_type=Notification.SYSTEM,
            title="Donation Not Verified",
            message=f"Your donation record could not be verified: {donation.rejection_reason}",
            data={'donation_id': donation.id},
            priority=Notification.HIGH,
            related_model='DonationRecord',
            related_id=donation.id,
        )

    @classmethod
    def notify_newly_eligible(cls, donor_user) -> Optional[Notification]:
        return cls.create_notification(
            user=donor_user,
            notification_type=Notification.REMINDER,
            title="You can donate again!",
            message="Your cooldown period is over. You are eligible to donate blood again.",
            priority=Notification.MEDIUM,
        )

    # =========================================================================
    # ACCOUNT EVENTS
    # =========================================================================

    @classmethod
    def notify_verification(cls, user, notification_type: str, title: str, message: str,
                            reason: str = '') -> Optional[Notification]:
        return cls.create_notification(
            user=user,
            notification_type=notification_type,
            title=title,
            message=message,
            data={'reason': reason} if reason else {},
            priority=Notification.HIGH,
            related_model='User',
            related_id=user.id,
        )

    @classmethod
    def notify_badge_awarded(cls, user_badge) -> Optional[Notification]:
        return cls.create_notification(
            user=user_badge.user,
            notification_type=Notification.BADGE_AWARDED,
            title=f"New badge: {user_badge.badge.name}",
            message=user_badge.badge.description,
            data={'badge_id': user_badge.badge_id},
            priority=Notification.LOW,
            related_model='Badge',
            related_id=user_badge.badge_id,
        )

    # =========================================================================
    # READ STATE
    # =========================================================================

    @classmethod
    def get_unread_count(cls, user) -> int:
        """Get count of unread notifications with caching"""
        cached_count = CacheManager.get_notification_count(user.id)
        if cached_count is not None:
            return cached_count

        count = Notification.objects.filter(user=user, is_read=False).count()
        CacheManager.set_notification_count(user.id, count)
        return count

    @classmethod
    def mark_notification_read(cls, notification_id: int, user) -> ServiceResponse:
        """Mark a specific notification as read"""
        try:
            notification = Notification.objects.get(id=notification_id, user=user)
            notification.mark_as_read()
            CacheManager.invalidate_notification_count(user.id)
            return cls.success(data=notification, message="Notification marked as read")

        except Notification.DoesNotExist:
            return cls.not_found("Notification not found")
        except Exception as e:
            return cls.handle_exception(e, "mark notification read")

    @classmethod
    def delete_notification(cls, notification_id: int, user) -> ServiceResponse:
        deleted, _ = Notification.objects.filter(id=notification_id, user=user).delete()
        if not deleted:
            return cls.not_found("Notification not found")

        CacheManager.invalidate_notification_count(user.id)
        return cls.success(message="Notification deleted")

    @classmethod
    def mark_all_read(cls, user) -> ServiceResponse:
        """Mark all notifications as read for user"""
        try:
            count = Notification.objects.filter(
                user=user,
                is_read=False
            ).update(
                is_read=True,
                read_at=timezone.now()
            )

            CacheManager.invalidate_notification_count(user.id)

            return cls.success(
                data={'count': count},
                message=f"Marked {count} notifications as read"
            )

        except Exception as e:
            return cls.handle_exception(e, "mark all read")

    @classmethod
    def cleanup_old_notifications(cls, days: int = None) -> int:
        """
        Cleanup read notifications older than specified days
        Can be called as a scheduled task
        """
        days = days or cls.CLEANUP_THRESHOLD_DAYS
        cutoff_date = timezone.now() - timedelta(days=days)

        deleted_count, _ = Notification.objects.filter(
            is_read=True,
            created_at__lt=cutoff_date
        ).delete()

        logger.info(f"Cleaned up {deleted_count} old notifications")
        return deleted_count

    @classmethod
    def get_user_notifications(cls, user, unread_only: bool = False,
                               notification_type: Optional[str] = None) -> List[Notification]:
        queryset = Notification.objects.filter(user=user).order_by('-created_at')
        if unread_only:
            queryset = queryset.filter(is_read=False)
        if notification_type:
            queryset = queryset.filter(notification_type=notification_type)
        return queryset
