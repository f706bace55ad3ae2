"""
BloodBond Services Package
Centralized service layer for business logic
"""

from .account_services import AccountService
from .analytics_services import AnalyticsService
from .audit_services import AuditService
from .availability_services import AvailabilityService
from .badge_services import BadgeService
from .card_services import CardService
from .chat_services import ChatService
from .config_services import ConfigService
from .content_services import BlogService, EventService
from .donation_services import DonationService
from .eligibility_services import EligibilityService
from .email_services import EmailService
from .fallback_services import FallbackService
from .leaderboard_services import LeaderboardService
from .matching_services import MatchingService
from .notification_services import NotificationService
from .request_services import RequestService
from .review_services import ReviewService
from .verification_services import VerificationService
from .visibility_services import VisibilityService

__all__ = [
    'AccountService',
    'AnalyticsService',
    'AuditService',
    'AvailabilityService',
    'BadgeService',
    'BlogService',
    'CardService',
    'ChatService',
    'ConfigService',
    'DonationService',
    'EligibilityService',
    'EmailService',
    'EventService',
    'FallbackService',
    'LeaderboardService',
    'MatchingService',
    'NotificationService',
    'RequestService',
    'ReviewService',
    'VerificationService',
    'VisibilityService',
]
