"""
Availability Service - donor weekly schedule and date overrides
"""
from django.utils import timezone
from typing import Dict, Any, Optional
import logging

from core.models import DonorProfile, WeeklySlot, CustomAvailability, User
from core.services.base import BaseService, ServiceResponse

logger = logging.getLogger(__name__)


class AvailabilityService(BaseService):

    SLOT_FIELDS = ('day_of_week', 'start_time', 'end_time', 'is_active')
    CUSTOM_FIELDS = ('start_date', 'end_date', 'start_time', 'end_time', 'is_available', 'reason')

    @staticmethod
    def _donor_profile(user: User) -> Optional[DonorProfile]:
        return DonorProfile.objects.filter(user=user).first()

    @classmethod
    def schedule_dict(cls, donor_profile: DonorProfile, moment=None) -> Dict[str, Any]:
        available, reason = donor_profile.availability_at(moment)
        return {
            'donor_id': donor_profile.user_id,
            'donor_name': donor_profile.user.get_full_name() or donor_profile.user.username,
            'enabled': donor_profile.schedule_enabled,
            'timezone': donor_profile.schedule_timezone,
            'is_available': donor_profile.is_available,
            'weekly_slots': list(donor_profile.weekly_slots.all()),
            'custom_availability': list(donor_profile.custom_availability.all()),
            'is_currently_available': available,
            'availability_reason': reason,
        }

    # =========================================================================
    # SCHEDULE
    # =========================================================================

    @classmethod
    def get_schedule(cls, user: User) -> ServiceResponse:
        donor_profile = cls._donor_profile(user)
        if donor_profile is None:
            return cls.not_found("Donor profile not found")
        return cls.success(cls.schedule_dict(donor_profile))

    @classmethod
    def toggle_schedule(cls, user: User, enabled, timezone_name: Optional[str] = None) -> ServiceResponse:
        if not isinstance(enabled, bool):
            return cls.error("Enabled field must be a boolean")

        donor_profile = cls._donor_profile(user)
        if donor_profile is None:
            return cls.not_found("Donor profile not found")

        donor_profile.schedule_enabled = enabled
        fields = ['schedule_enabled', 'updated_at']
        if timezone_name:
            donor_profile.schedule_timezone = timezone_name
            fields.append('schedule_timezone')
        donor_profile.save(update_fields=fields)

        logger.info(f"Scheduled availability {'enabled' if enabled else 'disabled'} for {user.username}")
        return cls.success(
            cls.schedule_dict(donor_profile),
            message=f"Scheduled availability {'enabled' if enabled else 'disabled'}"
        )

    # =========================================================================
    # WEEKLY SLOTS
    # =========================================================================

    @classmethod
    def add_weekly_slot(cls, user: User, data: Dict) -> ServiceResponse:
        error = cls.validate_required_fields(data, ['day_of_week', 'start_time', 'end_time'])
        if error:
            return cls.error(error)

        donor_profile = cls._donor_profile(user)
        if donor_profile is None:
            return cls.not_found("Donor profile not found")

        try:
            slot = WeeklySlot(donor=donor_profile, **{k: v for k, v in data.items() if k in cls.SLOT_FIELDS})
            slot.full_clean()
            slot.save()
            return cls.success(slot, message="Weekly availability slot added")
        except Exception as e:
            return cls.handle_exception(e, "adding weekly slot")

    @classmethod
    def update_weekly_slot(cls, user: User, slot_id: int, data: Dict) -> ServiceResponse:
        slot = WeeklySlot.objects.filter(id=slot_id, donor__user=user).first()
        if slot is None:
            return cls.not_found("Weekly slot not found")

        try:
            for field in cls.SLOT_FIELDS:
                if field in data:
                    setattr(slot, field, data[field])
            slot.full_clean()
            slot.save()
            return cls.success(slot, message="Weekly slot updated")
        except Exception as e:
            return cls.handle_exception(e, "updating weekly slot")

    @classmethod
    def delete_weekly_slot(cls, user: User, slot_id: int) -> ServiceResponse:
        deleted, _ = WeeklySlot.objects.filter(id=slot_id, donor__user=user).delete()
        if not deleted:
            return cls.not_found("Weekly slot not found")
        return cls.success(message="Weekly slot deleted")

    # =========================================================================
    # CUSTOM AVAILABILITY
    # =========================================================================

    @classmethod
    def add_custom_availability(cls, user: User, data: Dict) -> ServiceResponse:
        error = cls.validate_required_fields(data, ['start_date', 'end_date'])
        if error:
            return cls.error(error)

        donor_profile = cls._donor_profile(user)
        if donor_profile is None:
            return cls.not_found("Donor profile not found")

        try:
            entry = CustomAvailability(
                donor=donor_profile,
                **{k: v for k, v in data.items() if k in cls.CUSTOM_FIELDS}
            )
            entry.full_clean()
            entry.save()
            return cls.success(entry, message="Custom availability added")
        except Exception as e:
            return cls.handle_exception(e, "adding custom availability")

    @classmethod
    def update_custom_availability(cls, user: User, entry_id: int, data: Dict) -> ServiceResponse:
        entry = CustomAvailability.objects.filter(id=entry_id, donor__user=user).first()
        if entry is None:
            return cls.not_found("Custom availability not found")

        try:
            for field in cls.CUSTOM_FIELDS:
                if field in data:
                    setattr(entry, field, data[field])
            entry.full_clean()
            entry.save()
            return cls.success(entry, message="Custom availability updated")
        except Exception as e:
            return cls.handle_exception(e, "updating custom availability")

    @classmethod
    def delete_custom_availability(cls, user: User, entry_id: int) -> ServiceResponse:
        deleted, _ = CustomAvailability.objects.filter(id=entry_id, donor__user=user).delete()
        if not deleted:
            return cls.not_found("Custom availability not found")
        return cls.success(message="Custom availability deleted")

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    @classmethod
    def check_availability(cls, donor_id: int, moment=None) -> ServiceResponse:
        donor_profile = DonorProfile.objects.select_related('user').filter(user_id=donor_id).first()
        if donor_profile is None:
            return cls.not_found("Donor not found")

        moment = moment or timezone.now()
        available, reason = donor_profile.availability_at(moment)
        return cls.success({
            'donor_id': donor_profile.user_id,
            'donor_name': donor_profile.user.get_full_name() or donor_profile.user.username,
            'check_time': moment.isoformat(),
            'is_available': available,
            'reason': reason,
            'scheduled_availability_enabled': donor_profile.schedule_enabled,
        })

    @classmethod
    def get_public_schedule(cls, donor_id: int) -> ServiceResponse:
        donor_profile = DonorProfile.objects.select_related('user').filter(user_id=donor_id).first()
        if donor_profile is None:
            return cls.not_found("Donor not found")
        return cls.success(cls.schedule_dict(donor_profile))
