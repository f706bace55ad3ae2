"""
Custom validators for BloodBond application
Consolidated and comprehensive validation logic
"""
from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _
from django.core.files.images import get_image_dimensions
import logging
import re

from .choices import BLOOD_TYPES

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r'^(\+8801|01)[3-9]\d{8}$')
TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')
HEX_COLOR_PATTERN = re.compile(r'^#[0-9A-Fa-f]{6}$')


def validate_phone_number(value):
    """
    Validate Bangladeshi mobile number format
    Accepts formats like: +8801712345678, 01712345678
    """
    if not value:
        return

    cleaned = re.sub(r'[\s\-\(\)]', '', value)

    if not PHONE_PATTERN.match(cleaned):
        raise ValidationError(
            _('Enter a valid Bangladeshi phone number (e.g., +8801712345678, 01712345678)')
        )


def validate_blood_type(value):
    if value not in BLOOD_TYPES:
        raise ValidationError(
            _('Invalid blood type: %(value)s. Valid types are: %(valid)s'),
            params={'value': value, 'valid': ', '.join(BLOOD_TYPES)}
        )


def validate_coordinates(latitude, longitude):
    """
    Validate a latitude/longitude pair
    """
    if latitude is None or longitude is None:
        raise ValidationError(_('Both latitude and longitude are required'))

    if not (-90 <= float(latitude) <= 90):
        raise ValidationError(_('Latitude must be between -90 and 90'))

    if not (-180 <= float(longitude) <= 180):
        raise ValidationError(_('Longitude must be between -180 and 180'))


def validate_image_size(image):
    """
    Validate uploaded image size and dimensions
    Max file size: 5MB
    Max dimensions: 4000x4000
    """
    if not image:
        return

    if not hasattr(image, 'size') or image.size is None:
        return

    max_size = 5 * 1024 * 1024
    if image.size > max_size:
        raise ValidationError(
            _('Image file size must be less than 5MB. Current size: %(size).1f MB'),
            params={'size': image.size / (1024 * 1024)}
        )

    try:
        if hasattr(image, 'seek'):
            image.seek(0)

        width, height = get_image_dimensions(image)

        if hasattr(image, 'seek'):
            image.seek(0)
    except (OSError, TypeError, ValueError) as e:
        logger.warning(f"Image validation error: {e}")
        raise ValidationError(_("Invalid image file. Please upload a valid image."))

    if not width or not height:
        raise ValidationError(_("Unable to read image dimensions. The file may be corrupted."))

    max_dimension = 4000
    if width > max_dimension or height > max_dimension:
        raise ValidationError(
            _('Image dimensions must be less than %(max)dx%(max)d pixels. '
              'Current dimensions: %(width)dx%(height)d'),
            params={'max': max_dimension, 'width': width, 'height': height}
        )


def validate_time_string(value):
    """
    Validate HH:MM 24-hour time strings used by availability slots
    """
    if value and not TIME_PATTERN.match(value):
        raise ValidationError(_('Time must be in HH:MM format'))


def validate_hex_color(value):
    if value and not HEX_COLOR_PATTERN.match(value):
        raise ValidationError(_('Color must be a hex value like #DC2626'))


def validate_change_reason(reason, min_length=10):
    """
    Validate the justification given for admin actions
    """
    if not reason or len(reason.strip()) < min_length:
        raise ValidationError(
            _('A reason of at least %(min)d characters is required'),
            params={'min': min_length}
        )


def validate_emergency_contact(value):
    """
    Validate recipient emergency contact payload
    """
    if not isinstance(value, dict):
        raise ValidationError(_('Emergency contact must be an object'))

    missing = [key for key in ('name', 'phone') if not value.get(key)]
    if missing:
        raise ValidationError(
            _('Emergency contact is missing: %(fields)s'),
            params={'fields': ', '.join(missing)}
        )

    validate_phone_number(value['phone'])
