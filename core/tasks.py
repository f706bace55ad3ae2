"""
Celery Tasks for BloodBond

Periodic maintenance of requests, locks and donor data, plus email delivery.
All tasks use the service layer and return a summary dict.
"""

from celery import shared_task
import logging

from .models import Notification
from .services import (
    ConfigService, DonationService, EligibilityService, EmailService,
    FallbackService, NotificationService, RequestService,
)

logger = logging.getLogger(__name__)


# ============================================================================
# EMAIL TASKS
# ============================================================================

@shared_task(bind=True, max_retries=3)
def send_notification_email(self, notification_id: int):
    """
    Deliver a high priority notification by email with retry logic
    """
    notification = Notification.objects.select_related('user').filter(id=notification_id).first()
    if notification is None:
        logger.warning(f"Notification {notification_id} vanished before email delivery")
        return {'success': False, 'notification_id': notification_id}

    response = EmailService.send_notification_email(notification)
    if not response and response.code == response.SERVER_ERROR:
        # Retry with exponential backoff
        raise self.retry(
            exc=RuntimeError(response.message),
            countdown=60 * (2 ** self.request.retries)
        )

    return {'success': response.success, 'notification_id': notification_id}


# ============================================================================
# REQUEST MAINTENANCE
# ============================================================================

@shared_task
def expire_overdue_requests():
    expired = RequestService.expire_overdue_requests()
    return {'expired': expired}


@shared_task
def release_expired_locks():
    released = RequestService.release_expired_locks()
    return {'released': released}


@shared_task
def run_fallback_system():
    """
    Fallback for unmatched requests.
    Dispatched by the 'run-fallback-system' beat entry, whose interval and
    enabled flag follow fallback_settings.
    """
    fallback_settings = ConfigService.get_section('fallback_settings')
    if not fallback_settings.get('auto_run_enabled'):
        return {'skipped': True, 'reason': 'Automatic fallback is disabled'}

    results = FallbackService.run_fallback_system()
    return {
        'total': results['total'],
        'successful': results['successful'],
        'failed': results['failed'],
    }


# ============================================================================
# DONOR TASKS
# ============================================================================

@shared_task
def notify_newly_eligible_donors():
    """
    Remind donors whose cooldown ended today
    """
    donors = EligibilityService.get_newly_eligible_donors()
    notified = 0
    for donor in donors:
        if NotificationService.notify_newly_eligible(donor):
            notified += 1

    logger.info(f"Sent eligibility reminders to {notified} donors")
    return {'eligible': len(donors), 'notified': notified}


@shared_task
def sync_donation_counts():
    return DonationService.sync_all_donation_counts()


# ============================================================================
# CLEANUP
# ============================================================================

@shared_task
def cleanup_old_notifications(days: int = None):
    deleted = NotificationService.cleanup_old_notifications(days)
    return {'deleted': deleted}
