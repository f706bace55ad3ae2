"""
Donation Service - recording, verification and record immutability
"""
from django.utils import timezone
from django.db import transaction
from django.db.models import F, Max, Count, Q
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, Dict, Any
import logging

from core import choices
from core.models import DonationRecord, BloodRequest, RequestMatch, DonorProfile, User
from core.cache import CacheManager
from core.validators import validate_change_reason
from core.services.base import BaseService, ServiceResponse
from core.services.audit_services import AuditService
from core.services.badge_services import BadgeService
from core.services.card_services import CardService
from core.services.eligibility_services import EligibilityService
from core.services.leaderboard_services import LeaderboardService
from core.services.notification_services import NotificationService
from core.services.request_services import RequestService

logger = logging.getLogger(__name__)


def _json_value(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


class DonationService(BaseService):
    """Donation lifecycle: pending record, admin verification, locked history"""

    EDITABLE_FIELDS = (
        'donation_date', 'units_provided', 'center_name', 'center_address',
        'center_latitude', 'center_longitude', 'health_check_before',
        'health_check_after', 'notes', 'complications', 'follow_up',
    )
    OVERRIDE_FIELDS = EDITABLE_FIELDS + ('blood_type', 'verification_status', 'points_earned')

    @classmethod
    def _is_admin(cls, user: User) -> bool:
        profile = getattr(user, 'profile', None)
        return user.is_superuser or bool(profile and profile.is_admin)

    # =========================================================================
    # RECORDING
    # =========================================================================

    @classmethod
    def _resolve_donor(cls, user: User, data: Dict):
        """(donor, error) for a self-record or an admin recording on behalf"""
        if cls._is_admin(user):
            donor = data.get('donor')
            if donor is None:
                return None, "Donor is required when recording on behalf of a donor"
            if isinstance(donor, int):
                donor = User.objects.filter(id=donor).first()
                if donor is None:
                    return None, "Donor not found"
        else:
            donor = user

        profile = getattr(donor, 'profile', None)
        if profile is None or not profile.is_donor:
            return None, "Only donors can record donations"
        return donor, None

    @classmethod
    def record_donation(cls, user: User, data: Dict) -> ServiceResponse:
        """Record a pending donation, optionally against a blood request"""
        try:
            donor, error = cls._resolve_donor(user, data)
            if error:
                return cls.error(error)

            donation_date = data.get('donation_date') or timezone.now()
            date_error = EligibilityService.validate_donation_date(donation_date)
            if date_error:
                return cls.error(date_error)

            eligibility = EligibilityService.check_donation_eligibility(donor)
            if not eligibility['eligible']:
                return cls.error(eligibility['reason'], data=eligibility)

            blood_type = donor.profile.blood_type
            units = data.get('units_provided') or 1

            with transaction.atomic():
                blood_request = None
                request_ref = data.get('blood_request')
                if request_ref is not None:
                    request_id = getattr(request_ref, 'id', request_ref)
                    blood_request = BloodRequest.objects.select_for_update().get(id=request_id)
                    if RequestService.expire_if_overdue(blood_request):
                        return cls.error("This request has passed its required by date and has expired")
                    if blood_request.status not in BloodRequest.ACTIVE_STATUSES:
                        return cls.error(f"Cannot donate to a {blood_request.status} request")
                    if not choices.check_compatibility(blood_type, blood_request.blood_type):
                        return cls.error(
                            f"Blood type {blood_type} is not compatible with {blood_request.blood_type}"
                        )
                    if not blood_request.can_be_accepted_by(donor):
                        return cls.error(
                            "This request is currently being handled by another donor",
                            code=ServiceResponse.CONFLICT
                        )

                urgency = blood_request.urgency if blood_request else None
                donation = DonationRecord(
                    donor=donor,
                    recipient=blood_request.recipient if blood_request else None,
                    blood_request=blood_request,
                    blood_type=blood_type,
                    units_provided=units,
                    points_earned=LeaderboardService.calculate_donation_points(units, urgency),
                    **{
                        field: data[field] for field in cls.EDITABLE_FIELDS
                        if field in data and field not in ('units_provided', 'donation_date')
                    }
                )
                donation.donation_date = donation_date
                donation.full_clean()
                donation.save()

                donor_profile = DonorProfile.objects.select_for_update().get(user=donor)
                if not donor_profile.last_donation_date or donation_date > donor_profile.last_donation_date:
                    donor_profile.last_donation_date = donation_date
                    donor_profile.save(update_fields=['last_donation_date', 'updated_at'])

                if blood_request is not None:
                    cls._apply_to_request(blood_request, donor, units)

                NotificationService.notify_donation_recorded(donation)

            CacheManager.invalidate_eligibility(donor.id)
            logger.info(f"Donation {donation.id} recorded for {donor.username} ({units} unit(s))")
            return cls.success(data=donation, message="Donation recorded and awaiting verification")

        except BloodRequest.DoesNotExist:
            return cls.not_found("Blood request not found")
        except Exception as e:
            return cls.handle_exception(e, "donation recording")

    @classmethod
    def _apply_to_request(cls, blood_request: BloodRequest, donor: User, units: int) -> None:
        blood_request.total_units_fulfilled = F('total_units_fulfilled') + units
        blood_request.save(update_fields=['total_units_fulfilled', 'updated_at'])
        blood_request.refresh_from_db()

        RequestService.mark_fulfillment(blood_request)

        match, _created = RequestMatch.objects.get_or_create(blood_request=blood_request, donor=donor)
        if match.response != RequestMatch.ACCEPTED:
            match.response = RequestMatch.ACCEPTED
            match.responded_at = timezone.now()
            match.save(update_fields=['response', 'responded_at', 'updated_at'])

        if blood_request.locked_by_id == donor.id:
            blood_request.release_lock(donor)

    # =========================================================================
    # VERIFICATION
    # =========================================================================

    @classmethod
    def sync_donor_stats(cls, donor: User) -> Optional[DonorProfile]:
        """Recompute total_donations, badge and last donation from verified records"""
        donor_profile = DonorProfile.objects.filter(user=donor).first()
        if donor_profile is None:
            return None

        stats = DonationRecord.objects.filter(
            donor=donor, verification_status=DonationRecord.VERIFIED
        ).aggregate(total=Count('id'), last=Max('donation_date'))

        donor_profile.total_donations = stats['total']
        donor_profile.update_badge()
        if stats['last'] and (
            not donor_profile.last_donation_date or stats['last'] > donor_profile.last_donation_date
        ):
            donor_profile.last_donation_date = stats['last']
        donor_profile.save(update_fields=['total_donations', 'badge', 'last_donation_date', 'updated_at'])
        return donor_profile

    @classmethod
    def verify_donation(cls, donation_id: int, admin: User, request=None) -> ServiceResponse:
        """Verify, lock, award points and issue the digital card"""
        try:
            with transaction.atomic():
                donation = DonationRecord.objects.select_for_update().select_related(
                    'donor', 'blood_request'
                ).get(id=donation_id)
                donation.verify(admin)

                cls.sync_donor_stats(donation.donor)
                LeaderboardService.award_donation_points(donation)
                card = CardService.issue_card(donation)

            BadgeService.auto_assign_badges(donation.donor)
            NotificationService.notify_donation_verified(donation, card)
            AuditService.log_donation_verification(admin, donation, 'donation_verified', request=request)
            CacheManager.invalidate_donation_related(donation.donor_id)

            logger.info(f"Donation {donation.id} verified by {admin.username}, card {card.card_number}")
            return cls.success(
                data={'donation': donation, 'card': card},
                message="Donation verified and digital card issued"
            )

        except DonationRecord.DoesNotExist:
            return cls.not_found("Donation record not found")
        except Exception as e:
            return cls.handle_exception(e, "donation verification")

    @classmethod
    def reject_donation(cls, donation_id: int, admin: User, reason: str, request=None) -> ServiceResponse:
        if not reason or not reason.strip():
            return cls.error("A rejection reason is required")

        try:
            with transaction.atomic():
                donation = DonationRecord.objects.select_for_update().select_related('donor').get(id=donation_id)
                donation.reject(admin, reason.strip())

            NotificationService.notify_donation_rejected(donation)
            AuditService.log_donation_verification(
                admin, donation, 'donation_rejected', reason=reason, request=request
            )
            CacheManager.invalidate_eligibility(donation.donor_id)

            logger.info(f"Donation {donation.id} rejected by {admin.username}")
            return cls.success(data=donation, message="Donation rejected")

        except DonationRecord.DoesNotExist:
            return cls.not_found("Donation record not found")
        except Exception as e:
            return cls.handle_exception(e, "donation rejection")

    # =========================================================================
    # QUERIES
    # =========================================================================

    @classmethod
    def get_donations_for_user(cls, user: User, params: Optional[Dict] = None):
        """Role scoped donation history with status and date filters"""
        params = params or {}
        queryset = DonationRecord.objects.select_related('donor', 'recipient', 'blood_request')
        profile = getattr(user, 'profile', None)

        if cls._is_admin(user):
            donor_id = params.get('donor')
            if donor_id:
                queryset = queryset.filter(donor_id=donor_id)
        elif profile and profile.is_recipient:
            queryset = queryset.filter(recipient=user)
        else:
            queryset = queryset.filter(donor=user)

        status = params.get('verification_status') or params.get('status')
        if status:
            queryset = queryset.filter(verification_status=status)

        start_date = params.get('start_date')
        if start_date:
            queryset = queryset.filter(donation_date__date__gte=start_date)
        end_date = params.get('end_date')
        if end_date:
            queryset = queryset.filter(donation_date__date__lte=end_date)

        return queryset

    # =========================================================================
    # IMMUTABILITY
    # =========================================================================

    @classmethod
    def get_immutability_status(cls, donation: DonationRecord) -> Dict[str, Any]:
        return {
            'donation_id': donation.id,
            'is_locked': donation.is_locked,
            'locked_at': donation.locked_at.isoformat() if donation.locked_at else None,
            'locked_by': donation.locked_by_id,
            'verification_status': donation.verification_status,
            'can_edit': not donation.is_locked,
            'override_count': len(donation.override_history or []),
        }

    @classmethod
    def update_donation(cls, donation_id: int, admin: User, data: Dict) -> ServiceResponse:
        """Plain admin edit, refused while the record is locked"""
        try:
            with transaction.atomic():
                donation = DonationRecord.objects.select_for_update().get(id=donation_id)
                donation.ensure_mutable()

                changed = [field for field in cls.EDITABLE_FIELDS if field in data]
                if not changed:
                    return cls.error("No editable fields provided")
                for field in changed:
                    setattr(donation, field, data[field])

                donation.full_clean()
                donation.save(update_fields=changed + ['updated_at'])

            CacheManager.invalidate_eligibility(donation.donor_id)
            return cls.success(data=donation, message="Donation updated")

        except DonationRecord.DoesNotExist:
            return cls.not_found("Donation record not found")
        except Exception as e:
            return cls.handle_exception(e, "donation update")

    @classmethod
    def lock_donation(cls, donation_id: int, admin: User, request=None) -> ServiceResponse:
        try:
            with transaction.atomic():
                donation = DonationRecord.objects.select_for_update().get(id=donation_id)
                donation.lock(admin)

            AuditService.log_action(
                performed_by=admin,
                action='donation_locked',
                category='data_correction',
                description=f"Locked donation record #{donation.id}",
                target_model='DonationRecord',
                target_id=donation.id,
                before={'is_locked': False},
                after={'is_locked': True},
                request=request,
            )
            return cls.success(data=donation, message="Donation record locked")

        except DonationRecord.DoesNotExist:
            return cls.not_found("Donation record not found")
        except Exception as e:
            return cls.handle_exception(e, "donation lock")

    @classmethod
    def unlock_donation(cls, donation_id: int, admin: User, reason: str, request=None) -> ServiceResponse:
        try:
            validate_change_reason(reason)
            with transaction.atomic():
                donation = DonationRecord.objects.select_for_update().get(id=donation_id)
                donation.unlock()

            AuditService.log_action(
                performed_by=admin,
                action='donation_unlocked',
                category='data_correction',
                description=f"Unlocked donation record #{donation.id}",
                target_model='DonationRecord',
                target_id=donation.id,
                before={'is_locked': True},
                after={'is_locked': False},
                reason=reason,
                severity='high',
                request=request,
            )
            return cls.success(data=donation, message="Donation record unlocked")

        except DonationRecord.DoesNotExist:
            return cls.not_found("Donation record not found")
        except Exception as e:
            return cls.handle_exception(e, "donation unlock")

    @classmethod
    def admin_override(cls, donation_id: int, admin: User, fields: Dict, reason: str,
                       request=None) -> ServiceResponse:
        """Correct a locked record; every change is kept in override_history"""
        try:
            validate_change_reason(reason)
            if not isinstance(fields, dict) or not fields:
                return cls.error("No fields provided for override")

            unknown = [field for field in fields if field not in cls.OVERRIDE_FIELDS]
            if unknown:
                return cls.error(f"Fields cannot be overridden: {', '.join(sorted(unknown))}")

            with transaction.atomic():
                donation = DonationRecord.objects.select_for_update().select_related('donor').get(id=donation_id)

                before = {field: _json_value(getattr(donation, field)) for field in fields}
                for field, value in fields.items():
                    setattr(donation, field, value)
                donation.full_clean()
                after = {field: _json_value(getattr(donation, field)) for field in fields}

                donation.override_history = list(donation.override_history or []) + [{
                    'changed_by': admin.id,
                    'changed_at': timezone.now().isoformat(),
                    'reason': reason,
                    'before': before,
                    'after': after,
                }]
                donation.save()

                if 'verification_status' in fields or 'donation_date' in fields:
                    cls.sync_donor_stats(donation.donor)

            AuditService.log_data_correction(
                admin,
                target_model='DonationRecord',
                target_id=donation.id,
                before=before,
                after=after,
                reason=reason,
                identifier=f"{donation.blood_type} {donation.donation_date:%Y-%m-%d}",
                request=request,
            )
            CacheManager.invalidate_donation_related(donation.donor_id)

            logger.info(f"Donation {donation.id} overridden by {admin.username}: {', '.join(fields)}")
            return cls.success(data=donation, message="Donation record overridden")

        except DonationRecord.DoesNotExist:
            return cls.not_found("Donation record not found")
        except Exception as e:
            return cls.handle_exception(e, "donation override")

    # =========================================================================
    # COUNT INTEGRITY
    # =========================================================================

    @classmethod
    def validate_donation_count(cls, donor: User) -> ServiceResponse:
        donor_profile = DonorProfile.objects.filter(user=donor).first()
        if donor_profile is None:
            return cls.not_found("Donor profile not found")

        verified = DonationRecord.objects.filter(
            donor=donor, verification_status=DonationRecord.VERIFIED
        ).count()
        return cls.success({
            'donor_id': donor.id,
            'recorded_total': donor_profile.total_donations,
            'verified_count': verified,
            'is_valid': donor_profile.total_donations == verified,
        })

    @classmethod
    def sync_all_donation_counts(cls) -> Dict[str, int]:
        """Repair every donor whose total_donations drifted from verified records"""
        profiles = DonorProfile.objects.annotate(
            verified=Count(
                'user__donation_records',
                filter=Q(user__donation_records__verification_status=DonationRecord.VERIFIED),
            )
        ).select_related('user')

        checked = 0
        fixed = 0
        for donor_profile in profiles:
            checked += 1
            if donor_profile.total_donations != donor_profile.verified:
                cls.sync_donor_stats(donor_profile.user)
                fixed += 1

        logger.info(f"Donation count sync: {checked} donors checked, {fixed} corrected")
        return {'checked': checked, 'fixed': fixed}
