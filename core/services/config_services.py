"""
System Configuration Service - cached access and validated updates
"""
from django.db import transaction
from typing import Any, Dict
import logging

from core.models import SystemConfig
from core.cache import CacheManager
from core.services.base import BaseService, ServiceResponse
from core.services.audit_services import AuditService

logger = logging.getLogger(__name__)


class ConfigService(BaseService):
    """Read-through cache over the SystemConfig singleton"""

    MIN_REASON_LENGTH = 10

    PUBLIC_SECTIONS = ['donation_settings', 'matching_settings', 'points_settings']

    @classmethod
    def get_config(cls) -> Dict[str, Any]:
        data = CacheManager.get_system_config()
        if data is None:
            data = SystemConfig.load().as_dict()
            CacheManager.set_system_config(data)
        return data

    @classmethod
    def get_section(cls, section: str) -> Dict[str, Any]:
        return cls.get_config()[section]

    @classmethod
    def get_setting(cls, section: str, key: str) -> Any:
        return cls.get_section(section)[key]

    @classmethod
    def get_public_config(cls) -> Dict[str, Any]:
        config = cls.get_config()
        public = {section: config[section] for section in cls.PUBLIC_SECTIONS}
        public['maintenance_mode'] = config['maintenance_mode']
        return public

    @classmethod
    def get_history(cls):
        return SystemConfig.load().change_history

    # =========================================================================
    # UPDATES
    # =========================================================================

    @classmethod
    def _validate_section(cls, section: str, values: Dict, merged: Dict) -> Dict[str, str]:
        errors = {}
        defaults = SystemConfig.DEFAULTS[section]
        ranges = SystemConfig.RANGES.get(section, {})

        for key, value in values.items():
            if key not in defaults:
                errors[key] = "Unknown setting"
                continue

            if isinstance(defaults[key], bool):
                if not isinstance(value, bool):
                    errors[key] = "Must be true or false"
                continue

            if isinstance(value, bool) or not isinstance(value, (int, float)):
                errors[key] = "Must be a number"
                continue

            if key in ranges:
                low, high = ranges[key]
                if not (low <= value <= high):
                    errors[key] = f"Must be between {low} and {high}"

        if errors:
            return errors

        if section == 'donation_settings' and merged['min_age'] >= merged['max_age']:
            errors['max_age'] = "Maximum age must be greater than minimum age"
        if section == 'matching_settings':
            if merged['default_search_radius'] > merged['max_search_radius']:
                errors['default_search_radius'] = "Default radius cannot exceed the maximum radius"
            if merged['expanded_search_radius'] > merged['max_search_radius']:
                errors['expanded_search_radius'] = "Expanded radius cannot exceed the maximum radius"
        return errors

    @classmethod
    def update_section(cls, user, section: str, values: Dict, reason: str, request=None) -> ServiceResponse:
        """Validate and persist one settings section"""
        if section not in SystemConfig.SECTIONS:
            return cls.error(f"Unknown configuration section: {section}")

        if not reason or len(reason.strip()) < cls.MIN_REASON_LENGTH:
            return cls.error(f"A reason of at least {cls.MIN_REASON_LENGTH} characters is required")

        if not isinstance(values, dict) or not values:
            return cls.error("No settings provided")

        try:
            with transaction.atomic():
                config = SystemConfig.objects.select_for_update().get_or_create(pk=1)[0]
                before = config.section(section)
                merged = dict(before)
                merged.update(values)

                errors = cls._validate_section(section, values, merged)
                if errors:
                    return cls.error("Invalid configuration values", errors=errors)

                setattr(config, section, merged)
                changes = {
                    key: {'from': before.get(key), 'to': value}
                    for key, value in values.items() if before.get(key) != value
                }
                config.record_change(user, section, changes, reason)
                config.save()

                if section == 'fallback_settings':
                    from core.services.fallback_services import FallbackService
                    FallbackService.sync_schedule(merged)

            CacheManager.invalidate_system_config()
            AuditService.log_config_change(user, section, before, merged, reason, request=request)
            logger.info(f"System config '{section}' updated by {user.username}")
            return cls.success(config.as_dict(), message=f"{section} updated")

        except Exception as e:
            return cls.handle_exception(e, "config update")

    @classmethod
    def set_maintenance_mode(cls, user, enabled: bool, message: str, reason: str, request=None) -> ServiceResponse:
        if not reason or len(reason.strip()) < cls.MIN_REASON_LENGTH:
            return cls.error(f"A reason of at least {cls.MIN_REASON_LENGTH} characters is required")

        try:
            with transaction.atomic():
                config = SystemConfig.objects.select_for_update().get_or_create(pk=1)[0]
                before = {'enabled': config.maintenance_mode, 'message': config.maintenance_message}
                config.maintenance_mode = bool(enabled)
                config.maintenance_message = message or ''
                after = {'enabled': config.maintenance_mode, 'message': config.maintenance_message}
                config.record_change(user, 'maintenance_mode', {'from': before, 'to': after}, reason)
                config.save()

            CacheManager.invalidate_system_config()
            AuditService.log_config_change(user, 'maintenance_mode', before, after, reason, request=request)
            return cls.success(config.as_dict(), message="Maintenance mode updated")

        except Exception as e:
            return cls.handle_exception(e, "maintenance mode update")
