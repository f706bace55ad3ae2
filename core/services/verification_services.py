"""
Verification Service - admin review of user accounts
"""
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone
from typing import Dict, Optional
import logging

from core.models import UserProfile, DonationRecord, BloodRequest, Notification, User
from core.cache import CacheManager
from core.services.base import BaseService, ServiceResponse
from core.services.audit_services import AuditService
from core.services.notification_services import NotificationService

logger = logging.getLogger(__name__)


class VerificationService(BaseService):
    """
    Account verification workflow.
    Every transition notifies the user and leaves an audit entry.
    """

    MIN_REVOKE_REASON_LENGTH = 10

    @classmethod
    def _load(cls, user_id: int) -> UserProfile:
        return UserProfile.objects.select_for_update().select_related('user').get(user_id=user_id)

    # =========================================================================
    # QUERIES
    # =========================================================================

    @classmethod
    def filter_users(cls, params: Dict):
        queryset = UserProfile.objects.select_related('user', 'verified_by')

        role = params.get('role')
        if role:
            queryset = queryset.filter(role=role)

        status = params.get('verification_status')
        if status:
            queryset = queryset.filter(verification_status=status)

        is_active = params.get('is_active')
        if is_active in ('true', 'false'):
            queryset = queryset.filter(is_active=is_active == 'true')

        search = params.get('search')
        if search:
            queryset = queryset.filter(
                Q(user__email__icontains=search)
                | Q(user__first_name__icontains=search)
                | Q(user__last_name__icontains=search)
                | Q(phone_number__icontains=search)
            )
        return queryset.order_by('-created_at')

    @classmethod
    def get_pending(cls) -> Dict:
        return {
            'users': UserProfile.objects.filter(
                verification_status=UserProfile.PENDING
            ).select_related('user').order_by('created_at'),
            'donations': DonationRecord.objects.filter(
                verification_status=DonationRecord.PENDING
            ).select_related('donor').order_by('donation_date'),
        }

    @classmethod
    def get_dashboard(cls) -> Dict:
        users = UserProfile.objects.aggregate(
            total=Count('id'),
            donors=Count('id', filter=Q(role=UserProfile.DONOR)),
            recipients=Count('id', filter=Q(role=UserProfile.RECIPIENT)),
            admins=Count('id', filter=Q(role=UserProfile.ADMIN)),
            pending=Count('id', filter=Q(verification_status=UserProfile.PENDING)),
            verified=Count('id', filter=Q(verification_status=UserProfile.VERIFIED)),
            rejected=Count('id', filter=Q(verification_status=UserProfile.REJECTED)),
            inactive=Count('id', filter=Q(is_active=False)),
        )
        requests = BloodRequest.objects.aggregate(
            total=Count('id'),
            active=Count('id', filter=Q(status__in=BloodRequest.ACTIVE_STATUSES)),
            critical=Count('id', filter=Q(status=BloodRequest.PENDING, urgency='critical')),
            fulfilled=Count('id', filter=Q(status=BloodRequest.FULFILLED)),
        )
        donations = DonationRecord.objects.aggregate(
            total=Count('id'),
            pending=Count('id', filter=Q(verification_status=DonationRecord.PENDING)),
            verified=Count('id', filter=Q(verification_status=DonationRecord.VERIFIED)),
        )
        return {'users': users, 'requests': requests, 'donations': donations}

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    @classmethod
    def verify_user(cls, user_id: int, admin: User, notes: str = '', request=None) -> ServiceResponse:
        try:
            with transaction.atomic():
                profile = cls._load(user_id)
                before = profile.verification_status

                profile.verification_status = UserProfile.VERIFIED
                profile.verified_by = admin
                profile.verified_at = timezone.now()
                profile.verification_notes = notes or ''
                profile.rejection_reason = ''
                profile.resubmission_requested = False
                profile.resubmission_reason = ''
                profile.save()

            NotificationService.notify_verification(
                profile.user,
                Notification.VERIFICATION_APPROVED,
                "Account Verified",
                "Your account has been verified. You now have full access to BloodBond.",
            )
            AuditService.log_user_verification(
                admin, profile.user, 'user_verified', before, profile.verification_status,
                reason=notes, request=request,
            )
            CacheManager.invalidate_all_user_cache(user_id)

            logger.info(f"User {profile.user.email} verified by {admin.username}")
            return cls.success(profile, message="User verified successfully")

        except UserProfile.DoesNotExist:
            return cls.not_found("User not found")
        except Exception as e:
            return cls.handle_exception(e, "user verification")

    @classmethod
    def reject_user(cls, user_id: int, admin: User, reason: str, request=None) -> ServiceResponse:
        if not reason or not reason.strip():
            return cls.error("A rejection reason is required")

        try:
            with transaction.atomic():
                profile = cls._load(user_id)
                before = profile.verification_status

                profile.verification_status = UserProfile.REJECTED
                profile.verified_by = admin
                profile.verified_at = timezone.now()
                profile.rejection_reason = reason.strip()
                profile.save()

            NotificationService.notify_verification(
                profile.user,
                Notification.VERIFICATION_REJECTED,
                "Verification Rejected",
                f"Your account verification was rejected. Reason: {reason}",
                reason=reason,
            )
            AuditService.log_user_verification(
                admin, profile.user, 'user_rejected', before, profile.verification_status,
                reason=reason, request=request,
            )
            CacheManager.invalidate_all_user_cache(user_id)
            return cls.success(profile, message="User verification rejected")

        except UserProfile.DoesNotExist:
            return cls.not_found("User not found")
        except Exception as e:
            return cls.handle_exception(e, "user rejection")

    @classmethod
    def request_resubmission(cls, user_id: int, admin: User, reason: str = '',
                             message: Optional[str] = None, request=None) -> ServiceResponse:
        try:
            with transaction.atomic():
                profile = cls._load(user_id)
                if profile.is_verified:
                    return cls.error("Cannot request resubmission from a verified user")

                before = profile.verification_status
                profile.verification_status = UserProfile.PENDING
                profile.resubmission_requested = True
                profile.resubmission_reason = reason or ''
                profile.save()

            text = message or (
                "The admin has requested you to resubmit your verification documents."
                + (f" Reason: {reason}" if reason else "")
            )
            NotificationService.notify_verification(
                profile.user,
                Notification.VERIFICATION_RESUBMISSION,
                "Resubmission Requested",
                text,
                reason=reason,
            )
            AuditService.log_user_verification(
                admin, profile.user, 'user_resubmission_requested', before, profile.verification_status,
                reason=reason, request=request,
            )
            return cls.success(profile, message="Resubmission request sent to user")

        except UserProfile.DoesNotExist:
            return cls.not_found("User not found")
        except Exception as e:
            return cls.handle_exception(e, "resubmission request")

    @classmethod
    def revoke_verification(cls, user_id: int, admin: User, reason: str, request=None) -> ServiceResponse:
        if not reason or len(reason.strip()) < cls.MIN_REVOKE_REASON_LENGTH:
            return cls.error(
                f"A reason of at least {cls.MIN_REVOKE_REASON_LENGTH} characters is required"
            )

        try:
            with transaction.atomic():
                profile = cls._load(user_id)
                if not profile.is_verified:
                    return cls.error("Only verified users can have their verification revoked")

                before = profile.verification_status
                profile.verification_status = UserProfile.PENDING
                profile.verified_by = None
                profile.verified_at = None
                profile.save()

            NotificationService.notify_verification(
                profile.user,
                Notification.VERIFICATION_REVOKED,
                "Verification Revoked",
                (
                    f"Your verification status has been revoked by an administrator. Reason: {reason}. "
                    f"Please resubmit your verification documents for review."
                ),
                reason=reason,
            )
            AuditService.log_user_verification(
                admin, profile.user, 'user_verification_revoked', before, profile.verification_status,
                reason=reason, request=request, severity='high',
            )
            CacheManager.invalidate_all_user_cache(user_id)

            logger.warning(f"Verification of {profile.user.email} revoked by {admin.username}")
            return cls.success(profile, message="User verification revoked successfully")

        except UserProfile.DoesNotExist:
            return cls.not_found("User not found")
        except Exception as e:
            return cls.handle_exception(e, "verification revoke")

    @classmethod
    def set_active(cls, user_id: int, admin: User, active: bool, reason: str = '',
                   request=None) -> ServiceResponse:
        if user_id == admin.id and not active:
            return cls.error("You cannot deactivate your own account")

        try:
            with transaction.atomic():
                profile = cls._load(user_id)
                before = profile.is_active
                profile.is_active = active
                profile.save(update_fields=['is_active', 'updated_at'])
                User.objects.filter(id=user_id).update(is_active=active)

            action = 'user_activated' if active else 'user_deactivated'
            AuditService.log_action(
                performed_by=admin,
                action=action,
                category='user_management',
                description=f"{'Activated' if active else 'Deactivated'} {profile.user.email}",
                target_model='User',
                target_id=user_id,
                target_identifier=profile.user.email,
                before={'is_active': before},
                after={'is_active': active},
                reason=reason,
                request=request,
            )
            return cls.success(profile, message="User activated" if active else "User deactivated")

        except UserProfile.DoesNotExist:
            return cls.not_found("User not found")
        except Exception as e:
            return cls.handle_exception(e, "user activation")
