"""
Email Service - plain text delivery of high priority notifications
"""
from django.core.mail import EmailMultiAlternatives
from django.conf import settings
from django.utils.html import escape
import logging

from core.models import Notification
from core.services.base import BaseService, ServiceResponse

logger = logging.getLogger(__name__)


class EmailService(BaseService):
    """
    Streamlined email service for notification delivery
    """

    @classmethod
    def _site(cls):
        config = settings.BLOODBOND_CONFIG
        return config.get('SITE_NAME', 'BloodBond'), config.get('SITE_URL', 'http://127.0.0.1:8000')

    @classmethod
    def send_notification_email(cls, notification: Notification) -> ServiceResponse:
        """Send a notification to its user's inbox"""
        user = notification.user
        if not user.email:
            return cls.error("User has no email address")

        site_name, site_url = cls._site()
        greeting = user.get_full_name() or user.username
        text_content = (
            f"Hello {greeting},\n\n"
            f"{notification.message}\n\n"
            f"Open {site_name}: {site_url}\n"
        )
        html_content = (
            f"<p>Hello {escape(greeting)},</p>"
            f"<p>{escape(notification.message)}</p>"
            f"<p><a href=\"{escape(site_url)}\">Open {escape(site_name)}</a></p>"
        )

        try:
            email = EmailMultiAlternatives(
                subject=f"[{site_name}] {notification.title}",
                body=text_content,
                from_email=settings.DEFAULT_FROM_EMAIL,
                to=[user.email],
            )
            email.attach_alternative(html_content, "text/html")
            email.send()

            logger.info(f"Notification email {notification.id} sent to {user.email}")
            return cls.success(message="Email sent")

        except Exception as e:
            return cls.handle_exception(e, "send notification email")
