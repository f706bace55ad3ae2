"""
Models for BloodBond
Donor/recipient accounts, blood requests, donation records, digital cards,
leaderboards and supporting content.
"""
from django.db import models
from django.conf import settings
from django.contrib.auth.models import User
from django.utils import timezone
from django.utils.text import slugify
from django.core.validators import MinValueValidator, MaxValueValidator, MinLengthValidator
from django.core.exceptions import ValidationError
from geopy.geocoders import Nominatim
from geopy.exc import GeocoderServiceError
from datetime import timedelta, date
from zoneinfo import ZoneInfo
import logging
import secrets
import string
import time
import uuid

from . import choices
from .validators import (
    validate_phone_number, validate_coordinates, validate_image_size,
    validate_time_string, validate_hex_color, validate_blood_type,
)

logger = logging.getLogger(__name__)


class TimeStampedModel(models.Model):
    """Abstract base model with created/updated timestamps"""
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class LocationAwareModel(models.Model):
    """Abstract base model for location data"""
    location = models.CharField(max_length=255, blank=True)
    latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        # If location exists but coords are missing, fetch them here.
        geocode_enabled = settings.BLOODBOND_CONFIG.get('GEOCODE_ON_SAVE', True)
        if geocode_enabled and self.location and not self.has_valid_coordinates:
            self._geocode_location()
        super().save(*args, **kwargs)

    def _geocode_location(self):
        try:
            geolocator = Nominatim(user_agent="bloodbond_app")
            location = geolocator.geocode(self.location, timeout=5)
            if location:
                self.latitude = round(location.latitude, 6)
                self.longitude = round(location.longitude, 6)
        except (GeocoderServiceError, ValueError) as e:
            # Log error but don't stop the save
            logger.warning(f"Geocoding failed for {self.location}: {e}")

    @property
    def has_valid_coordinates(self):
        """Check if location has valid GPS coordinates"""
        return self.latitude is not None and self.longitude is not None

    @property
    def coordinates(self):
        if not self.has_valid_coordinates:
            return None, None
        return float(self.latitude), float(self.longitude)

    def clean(self):
        """Validate coordinates"""
        super().clean()
        if self.latitude is not None or self.longitude is not None:
            validate_coordinates(self.latitude, self.longitude)


def user_profile_picture_path(instance, filename):
    """Generate upload path for user profile pictures"""
    ext = filename.split('.')[-1]
    filename = f'profile_{instance.user.id}_{uuid.uuid4().hex[:8]}.{ext}'
    return f'profiles/{filename}'


def hospital_id_path(instance, filename):
    ext = filename.split('.')[-1]
    return f'hospital_ids/hospital_id_{instance.user.id}_{uuid.uuid4().hex[:8]}.{ext}'


def blog_cover_path(instance, filename):
    ext = filename.split('.')[-1]
    return f'blog/cover_{uuid.uuid4().hex[:12]}.{ext}'


# =============================================================================
# ACCOUNTS
# =============================================================================

class UserProfile(TimeStampedModel, LocationAwareModel):
    """
    Shared account data for every role.
    Role specific data lives on DonorProfile, RecipientProfile and AdminProfile.
    """
    DONOR = choices.ROLE_DONOR
    RECIPIENT = choices.ROLE_RECIPIENT
    ADMIN = choices.ROLE_ADMIN

    PENDING = choices.VERIFICATION_PENDING
    VERIFIED = choices.VERIFICATION_VERIFIED
    REJECTED = choices.VERIFICATION_REJECTED

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='profile',
        db_index=True
    )
    role = models.CharField(
        max_length=20,
        choices=choices.ROLE_CHOICES,
        db_index=True,
        help_text="Type of user account"
    )
    phone_number = models.CharField(
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        validators=[validate_phone_number],
        help_text="Contact phone number"
    )
    blood_type = models.CharField(
        max_length=3,
        choices=choices.BLOOD_TYPE_CHOICES,
        blank=True,
        db_index=True
    )
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=10, choices=choices.GENDER_CHOICES, blank=True)
    profile_picture = models.ImageField(
        upload_to=user_profile_picture_path,
        blank=True,
        null=True,
        validators=[validate_image_size],
        help_text="Profile picture (max 5MB)"
    )

    # Verification workflow
    verification_status = models.CharField(
        max_length=20,
        choices=choices.VERIFICATION_STATUS_CHOICES,
        default=PENDING,
        db_index=True
    )
    verified_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='verified_profiles'
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)
    verification_notes = models.TextField(blank=True)
    resubmission_requested = models.BooleanField(default=False)
    resubmission_reason = models.TextField(blank=True)
    hospital_id_document = models.ImageField(
        upload_to=hospital_id_path,
        blank=True,
        null=True,
        validators=[validate_image_size],
    )
    hospital_id_uploaded_at = models.DateTimeField(null=True, blank=True)

    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        db_table = 'user_profiles'
        indexes = [
            models.Index(fields=['role', 'verification_status']),
            models.Index(fields=['latitude', 'longitude']),
            models.Index(fields=['blood_type', 'role']),
        ]
        verbose_name = 'User Profile'
        verbose_name_plural = 'User Profiles'

    def __str__(self):
        return f"{self.full_name} ({self.get_role_display()})"

    @property
    def full_name(self):
        return self.user.get_full_name() or self.user.username

    @property
    def is_verified(self):
        return self.verification_status == self.VERIFIED

    @property
    def is_admin(self):
        return self.role == self.ADMIN

    @property
    def is_donor(self):
        return self.role == self.DONOR

    @property
    def is_recipient(self):
        return self.role == self.RECIPIENT

    @property
    def age(self):
        """Age in whole years, None when date of birth is unknown"""
        if not self.date_of_birth:
            return None
        today = timezone.localdate()
        dob = self.date_of_birth
        return today.year - dob.year - ((today.month, today.day) < (dob.month, dob.day))


class DonorProfile(TimeStampedModel):
    """
    Donor-specific data, availability and gamification state
    """
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='donor_profile'
    )
    last_donation_date = models.DateTimeField(null=True, blank=True, db_index=True)
    total_donations = models.PositiveIntegerField(default=0)
    is_available = models.BooleanField(default=True, db_index=True)
    availability_radius = models.PositiveIntegerField(
        default=choices.DEFAULT_SEARCH_RADIUS_KM,
        validators=[MinValueValidator(1), MaxValueValidator(choices.MAX_SEARCH_RADIUS_KM)],
        help_text="Distance in km the donor is willing to travel"
    )
    medical_history = models.JSONField(default=dict, blank=True)

    # Preferences
    preferred_donation_center = models.CharField(max_length=200, blank=True)
    notification_enabled = models.BooleanField(default=True)
    sms_notifications = models.BooleanField(default=True)
    email_notifications = models.BooleanField(default=True)
    urgent_only = models.BooleanField(default=False)

    badge = models.CharField(
        max_length=20,
        choices=choices.BADGE_TIER_CHOICES,
        default=choices.BADGE_NONE
    )
    achievements = models.JSONField(default=list, blank=True)

    # Availability schedule
    schedule_enabled = models.BooleanField(default=False)
    schedule_timezone = models.CharField(max_length=50, default=choices.DEFAULT_TIMEZONE)

    class Meta:
        db_table = 'donor_profiles'
        verbose_name = 'Donor Profile'
        verbose_name_plural = 'Donor Profiles'

    def __str__(self):
        return f"Donor {self.user.get_full_name() or self.user.username}"

    @property
    def profile(self):
        return self.user.profile

    def update_badge(self):
        """Sync badge tier with donation count"""
        self.badge = choices.calculate_badge_tier(self.total_donations)
        return self.badge

    def availability_at(self, moment=None):
        """
        Resolve availability for a moment.
        Returns (is_available, reason).
        """
        moment = moment or timezone.now()

        if not self.is_available:
            return False, "Donor marked as unavailable"

        if not self.schedule_enabled:
            return True, "Scheduled availability disabled"

        try:
            tz = ZoneInfo(self.schedule_timezone)
        except (KeyError, ValueError):
            tz = ZoneInfo(choices.DEFAULT_TIMEZONE)

        local = moment.astimezone(tz)
        local_date = local.date()
        local_time = local.strftime('%H:%M')

        # Custom entries override the weekly schedule, newest first
        custom_entries = self.custom_availability.filter(
            start_date__lte=local_date,
            end_date__gte=local_date,
        ).order_by('-created_at')
        for entry in custom_entries:
            if entry.covers_time(local_time):
                reason = f"Custom availability: {entry.reason}" if entry.reason else "Custom availability"
                return entry.is_available, reason

        # Sunday = 0
        day_of_week = (local.weekday() + 1) % 7
        slots = self.weekly_slots.filter(day_of_week=day_of_week, is_active=True)
        for slot in slots:
            if slot.start_time <= local_time < slot.end_time:
                return True, f"Weekly slot {slot.start_time}-{slot.end_time}"

        return False, "Outside scheduled availability"

    def is_available_at(self, moment=None):
        available, _reason = self.availability_at(moment)
        return available


class WeeklySlot(TimeStampedModel):
    """Recurring weekly availability window"""
    DAY_CHOICES = [
        (0, 'Sunday'),
        (1, 'Monday'),
        (2, 'Tuesday'),
        (3, 'Wednesday'),
        (4, 'Thursday'),
        (5, 'Friday'),
        (6, 'Saturday'),
    ]

    donor = models.ForeignKey(
        DonorProfile,
        on_delete=models.CASCADE,
        related_name='weekly_slots'
    )
    day_of_week = models.PositiveSmallIntegerField(
        choices=DAY_CHOICES,
        validators=[MaxValueValidator(6)]
    )
    start_time = models.CharField(max_length=5, validators=[validate_time_string])
    end_time = models.CharField(max_length=5, validators=[validate_time_string])
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'weekly_slots'
        ordering = ['day_of_week', 'start_time']

    def __str__(self):
        return f"{self.get_day_of_week_display()} {self.start_time}-{self.end_time}"

    def clean(self):
        super().clean()
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValidationError("End time must be after start time")


class CustomAvailability(TimeStampedModel):
    """Date-range override of the weekly schedule (vacations, special days)"""
    donor = models.ForeignKey(
        DonorProfile,
        on_delete=models.CASCADE,
        related_name='custom_availability'
    )
    start_date = models.DateField()
    end_date = models.DateField()
    start_time = models.CharField(max_length=5, blank=True, validators=[validate_time_string])
    end_time = models.CharField(max_length=5, blank=True, validators=[validate_time_string])
    is_available = models.BooleanField(default=False)
    reason = models.CharField(max_length=200, blank=True)

    class Meta:
        db_table = 'custom_availability'
        ordering = ['start_date']
        verbose_name_plural = 'Custom Availability'

    def __str__(self):
        state = 'available' if self.is_available else 'unavailable'
        return f"{self.start_date} - {self.end_date} ({state})"

    def clean(self):
        super().clean()
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValidationError("End date cannot be before start date")

    def covers_time(self, hhmm):
        if self.start_time and hhmm < self.start_time:
            return False
        if self.end_time and hhmm >= self.end_time:
            return False
        return True


class RecipientProfile(TimeStampedModel):
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='recipient_profile'
    )
    emergency_contact = models.JSONField(default=dict)
    medical_condition = models.TextField(blank=True)
    total_requests = models.PositiveIntegerField(default=0)
    fulfilled_requests = models.PositiveIntegerField(default=0)
    cancelled_requests = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'recipient_profiles'
        verbose_name = 'Recipient Profile'
        verbose_name_plural = 'Recipient Profiles'

    def __str__(self):
        return f"Recipient {self.user.get_full_name() or self.user.username}"


class AdminProfile(TimeStampedModel):
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='admin_profile'
    )
    department = models.CharField(max_length=100)
    employee_id = models.CharField(max_length=50, unique=True)
    permissions = models.JSONField(default=list, blank=True)
    last_action_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'admin_profiles'
        verbose_name = 'Administrator Profile'
        verbose_name_plural = 'Administrator Profiles'

    def __str__(self):
        return f"Admin {self.employee_id}"


# =============================================================================
# BLOOD REQUESTS
# =============================================================================

class BloodRequest(TimeStampedModel, LocationAwareModel):
    """
    Recipient request for blood units at a hospital.
    The inherited location fields hold the hospital address and coordinates.
    """
    PENDING = 'pending'
    MATCHED = 'matched'
    FULFILLED = 'fulfilled'
    CANCELLED = 'cancelled'
    EXPIRED = 'expired'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (MATCHED, 'Matched'),
        (FULFILLED, 'Fulfilled'),
        (CANCELLED, 'Cancelled'),
        (EXPIRED, 'Expired'),
    ]

    ACTIVE_STATUSES = [PENDING, MATCHED]
    FINAL_STATUSES = [FULFILLED, CANCELLED, EXPIRED]

    recipient = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='blood_requests',
        db_index=True
    )
    patient_name = models.CharField(max_length=150)
    blood_type = models.CharField(
        max_length=3,
        choices=choices.BLOOD_TYPE_CHOICES,
        validators=[validate_blood_type],
        db_index=True
    )
    units_required = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(10)]
    )
    urgency = models.CharField(
        max_length=10,
        choices=choices.URGENCY_CHOICES,
        default=choices.URGENCY_NORMAL,
        db_index=True
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=PENDING,
        db_index=True
    )

    hospital_name = models.CharField(max_length=200)
    hospital_contact = models.CharField(max_length=30, blank=True)

    required_by = models.DateTimeField(db_index=True)
    medical_reason = models.TextField(blank=True)
    notes = models.TextField(blank=True)

    total_units_fulfilled = models.PositiveIntegerField(default=0)

    # Cancellation
    cancelled_reason = models.TextField(blank=True)
    cancelled_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='cancelled_requests'
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)

    # Fallback tracking
    search_radius = models.PositiveIntegerField(default=choices.DEFAULT_SEARCH_RADIUS_KM)
    radius_expanded = models.BooleanField(default=False)
    fallback_attempts = models.PositiveIntegerField(default=0)
    last_fallback_attempt = models.DateTimeField(null=True, blank=True)
    nearby_facilities = models.JSONField(default=list, blank=True)
    admin_notified = models.BooleanField(default=False)
    admin_notified_at = models.DateTimeField(null=True, blank=True)
    radius_expansion_consent = models.BooleanField(null=True, blank=True)

    # Response lock
    is_locked = models.BooleanField(default=False)
    locked_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='locked_requests'
    )
    lock_expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'blood_requests'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'required_by']),
            models.Index(fields=['blood_type', 'status']),
            models.Index(fields=['recipient', 'status']),
            models.Index(fields=['urgency', 'status']),
            models.Index(fields=['latitude', 'longitude', 'status']),
        ]
        verbose_name = 'Blood Request'
        verbose_name_plural = 'Blood Requests'

    def __str__(self):
        return f"{self.blood_type} x{self.units_required} for {self.patient_name} ({self.status})"

    def save(self, *args, **kwargs):
        if self.is_expired:
            self.status = self.EXPIRED
            update_fields = kwargs.get('update_fields')
            if update_fields is not None and 'status' not in update_fields:
                kwargs['update_fields'] = list(update_fields) + ['status']
        super().save(*args, **kwargs)

    @property
    def is_expired(self):
        return (
            self.status == self.PENDING
            and self.required_by is not None
            and self.required_by < timezone.now()
        )

    @property
    def is_urgent(self):
        if self.urgency == choices.URGENCY_CRITICAL:
            return True
        return self.required_by is not None and self.required_by <= timezone.now() + timedelta(hours=24)

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES

    @property
    def is_fulfilled_by_units(self):
        return self.total_units_fulfilled >= self.units_required

    @property
    def units_remaining(self):
        return max(self.units_required - self.total_units_fulfilled, 0)

    def has_active_lock(self):
        return bool(
            self.is_locked
            and self.lock_expires_at
            and self.lock_expires_at > timezone.now()
        )

    def can_be_accepted_by(self, user):
        """A donor can respond when no other donor holds an unexpired lock"""
        if not self.has_active_lock():
            return True
        return self.locked_by_id == user.id

    def acquire_lock(self, user, minutes=choices.REQUEST_LOCK_MINUTES):
        if not self.can_be_accepted_by(user):
            raise ValidationError("This request is currently being handled by another donor")

        self.is_locked = True
        self.locked_by = user
        self.lock_expires_at = timezone.now() + timedelta(minutes=minutes)
        self.save(update_fields=['is_locked', 'locked_by', 'lock_expires_at', 'updated_at'])

    def release_lock(self, user=None):
        """Release the lock; when a user is given only their own lock is released"""
        if user is not None and self.locked_by_id not in (None, user.id):
            return False

        self.is_locked = False
        self.locked_by = None
        self.lock_expires_at = None
        self.save(update_fields=['is_locked', 'locked_by', 'lock_expires_at', 'updated_at'])
        return True

    def cancel(self, user, reason=''):
        if self.status in self.FINAL_STATUSES:
            raise ValidationError(f"Cannot cancel {self.status} request")

        self.status = self.CANCELLED
        self.cancelled_reason = reason
        self.cancelled_by = user
        self.cancelled_at = timezone.now()
        self.is_locked = False
        self.locked_by = None
        self.lock_expires_at = None
        self.save()

    def check_fulfillment(self):
        """Mark fulfilled once delivered units cover the requirement"""
        if self.status in (self.CANCELLED, self.EXPIRED, self.FULFILLED):
            return False

        if self.is_fulfilled_by_units:
            self.status = self.FULFILLED
            self.save(update_fields=['status', 'updated_at'])
            return True
        return False


class RequestMatch(TimeStampedModel):
    """Donor matched to a blood request and their response"""
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    DECLINED = 'declined'

    RESPONSE_CHOICES = [
        (PENDING, 'Pending'),
        (ACCEPTED, 'Accepted'),
        (DECLINED, 'Declined'),
    ]

    blood_request = models.ForeignKey(
        BloodRequest,
        on_delete=models.CASCADE,
        related_name='matches'
    )
    donor = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='request_matches'
    )
    score = models.FloatField(default=0)
    distance_km = models.FloatField(null=True, blank=True)
    notified_at = models.DateTimeField(null=True, blank=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    response = models.CharField(max_length=10, choices=RESPONSE_CHOICES, default=PENDING, db_index=True)
    decline_reason = models.TextField(blank=True)

    class Meta:
        db_table = 'request_matches'
        unique_together = ['blood_request', 'donor']
        ordering = ['-score']

    def __str__(self):
        return f"{self.donor.username} -> request {self.blood_request_id} ({self.response})"


# =============================================================================
# DONATIONS & CARDS
# =============================================================================

class DonationRecord(TimeStampedModel):
    """
    Recorded blood donation.
    Verified records are locked and only change through an admin override.
    """
    PENDING = choices.VERIFICATION_PENDING
    VERIFIED = choices.VERIFICATION_VERIFIED
    REJECTED = choices.VERIFICATION_REJECTED

    donor = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='donation_records',
        db_index=True
    )
    recipient = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='received_donations'
    )
    blood_request = models.ForeignKey(
        BloodRequest,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='fulfilled_by'
    )
    donation_date = models.DateTimeField(default=timezone.now, db_index=True)
    blood_type = models.CharField(max_length=3, choices=choices.BLOOD_TYPE_CHOICES)
    units_provided = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1)])

    center_name = models.CharField(max_length=200, blank=True)
    center_address = models.CharField(max_length=255, blank=True)
    center_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    center_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)

    health_check_before = models.JSONField(default=dict, blank=True)
    health_check_after = models.JSONField(default=dict, blank=True)

    verification_status = models.CharField(
        max_length=20,
        choices=choices.VERIFICATION_STATUS_CHOICES,
        default=PENDING,
        db_index=True
    )
    verified_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='verified_donations'
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)

    points_earned = models.PositiveIntegerField(default=0)
    notes = models.TextField(blank=True)
    complications = models.TextField(blank=True)
    follow_up = models.JSONField(default=dict, blank=True)

    # Immutability
    is_locked = models.BooleanField(default=False)
    locked_at = models.DateTimeField(null=True, blank=True)
    locked_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='locked_donations'
    )
    override_history = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = 'donation_records'
        ordering = ['-donation_date']
        indexes = [
            models.Index(fields=['donor', 'verification_status', '-donation_date']),
            models.Index(fields=['recipient', '-donation_date']),
        ]
        verbose_name = 'Donation Record'
        verbose_name_plural = 'Donation Records'

    def __str__(self):
        return f"{self.blood_type} donation by {self.donor.username} on {self.donation_date:%Y-%m-%d}"

    @property
    def is_verified(self):
        return self.verification_status == self.VERIFIED

    def verify(self, admin):
        if self.verification_status != self.PENDING:
            raise ValidationError(f"Only pending donations can be verified (current: {self.verification_status})")

        now = timezone.now()
        self.verification_status = self.VERIFIED
        self.verified_by = admin
        self.verified_at = now
        self.is_locked = True
        self.locked_at = now
        self.locked_by = admin
        self.save(update_fields=[
            'verification_status', 'verified_by', 'verified_at',
            'is_locked', 'locked_at', 'locked_by', 'updated_at'
        ])

    def reject(self, admin, reason):
        if self.verification_status != self.PENDING:
            raise ValidationError(f"Only pending donations can be rejected (current: {self.verification_status})")

        self.verification_status = self.REJECTED
        self.verified_by = admin
        self.verified_at = timezone.now()
        self.rejection_reason = reason
        self.save(update_fields=[
            'verification_status', 'verified_by', 'verified_at', 'rejection_reason', 'updated_at'
        ])

    def lock(self, admin):
        if self.is_locked:
            raise ValidationError("Donation record is already locked")
        self.is_locked = True
        self.locked_at = timezone.now()
        self.locked_by = admin
        self.save(update_fields=['is_locked', 'locked_at', 'locked_by', 'updated_at'])

    def unlock(self):
        if not self.is_locked:
            raise ValidationError("Donation record is not locked")
        self.is_locked = False
        self.locked_at = None
        self.locked_by = None
        self.save(update_fields=['is_locked', 'locked_at', 'locked_by', 'updated_at'])

    def ensure_mutable(self):
        if self.is_locked:
            raise ValidationError("Donation record is locked and cannot be modified")


class DigitalDonationCard(TimeStampedModel):
    """QR-backed proof of a verified donation"""
    card_number = models.CharField(max_length=40, unique=True, db_index=True)
    donor = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='donation_cards'
    )
    donation = models.OneToOneField(
        DonationRecord,
        on_delete=models.CASCADE,
        related_name='digital_card'
    )
    qr_payload = models.JSONField(default=dict)
    qr_image = models.TextField(blank=True, help_text="PNG data URL")
    issued_at = models.DateTimeField(default=timezone.now)
    valid_until = models.DateTimeField()

    verification_count = models.PositiveIntegerField(default=0)
    last_verified_at = models.DateTimeField(null=True, blank=True)

    is_revoked = models.BooleanField(default=False, db_index=True)
    revoked_at = models.DateTimeField(null=True, blank=True)
    revoked_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='revoked_cards'
    )
    revoke_reason = models.TextField(blank=True)

    class Meta:
        db_table = 'digital_donation_cards'
        ordering = ['-issued_at']
        verbose_name = 'Digital Donation Card'
        verbose_name_plural = 'Digital Donation Cards'

    def __str__(self):
        return self.card_number

    @staticmethod
    def generate_card_number():
        """BB-<base36 millisecond timestamp>-<6 random uppercase chars>"""
        alphabet = string.digits + string.ascii_uppercase
        millis = int(time.time() * 1000)
        encoded = ''
        while millis:
            millis, remainder = divmod(millis, 36)
            encoded = alphabet[remainder] + encoded
        suffix = ''.join(secrets.choice(alphabet) for _ in range(6))
        return f"BB-{encoded or '0'}-{suffix}"

    @property
    def is_valid(self):
        return not self.is_revoked and self.valid_until > timezone.now()

    def record_verification(self):
        if self.is_revoked:
            raise ValidationError("Card has been revoked")
        self.verification_count += 1
        self.last_verified_at = timezone.now()
        self.save(update_fields=['verification_count', 'last_verified_at', 'updated_at'])

    def revoke(self, admin, reason):
        if self.is_revoked:
            raise ValidationError("Card is already revoked")
        self.is_revoked = True
        self.revoked_at = timezone.now()
        self.revoked_by = admin
        self.revoke_reason = reason
        self.save(update_fields=['is_revoked', 'revoked_at', 'revoked_by', 'revoke_reason', 'updated_at'])


# =============================================================================
# LEADERBOARD & BADGES
# =============================================================================

class Leaderboard(TimeStampedModel):
    ALL_TIME = 'all-time'
    YEARLY = 'yearly'
    MONTHLY = 'monthly'
    WEEKLY = 'weekly'

    PERIOD_CHOICES = [
        (ALL_TIME, 'All Time'),
        (YEARLY, 'Yearly'),
        (MONTHLY, 'Monthly'),
        (WEEKLY, 'Weekly'),
    ]

    PERIODS = [ALL_TIME, YEARLY, MONTHLY, WEEKLY]

    period = models.CharField(max_length=10, choices=PERIOD_CHOICES, db_index=True)
    year = models.PositiveIntegerField(default=0)
    month = models.PositiveSmallIntegerField(default=0)
    week = models.PositiveSmallIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'leaderboards'
        unique_together = ['period', 'year', 'month', 'week']

    def __str__(self):
        return f"{self.get_period_display()} leaderboard {self.year or ''}".strip()

    @staticmethod
    def week_number(day):
        first_day = date(day.year, 1, 1)
        past_days = (day - first_day).days
        # Weekday offset with Sunday = 0
        offset = (first_day.weekday() + 1) % 7
        return (past_days + offset) // 7 + 1

    @classmethod
    def get_current(cls, period=ALL_TIME, moment=None):
        """Get or create the leaderboard for the current period window"""
        if period not in cls.PERIODS:
            raise ValidationError(f"Invalid leaderboard period: {period}")

        today = timezone.localdate(moment) if moment else timezone.localdate()
        lookup = {'period': period, 'year': 0, 'month': 0, 'week': 0}
        if period == cls.YEARLY:
            lookup['year'] = today.year
        elif period == cls.MONTHLY:
            lookup.update(year=today.year, month=today.month)
        elif period == cls.WEEKLY:
            lookup.update(year=today.year, week=cls.week_number(today))

        leaderboard, _created = cls.objects.get_or_create(**lookup, defaults={'is_active': True})
        return leaderboard


class LeaderboardEntry(TimeStampedModel):
    UP = 'up'
    DOWN = 'down'
    SAME = 'same'
    NEW = 'new'

    RANK_CHANGE_CHOICES = [
        (UP, 'Up'),
        (DOWN, 'Down'),
        (SAME, 'Same'),
        (NEW, 'New'),
    ]

    leaderboard = models.ForeignKey(Leaderboard, on_delete=models.CASCADE, related_name='entries')
    donor = models.ForeignKey(User, on_delete=models.CASCADE, related_name='leaderboard_entries')
    points = models.PositiveIntegerField(default=0, db_index=True)
    total_donations = models.PositiveIntegerField(default=0)
    donation_points = models.PositiveIntegerField(default=0)
    bonus_points = models.PositiveIntegerField(default=0)
    milestone_points = models.PositiveIntegerField(default=0)
    review_points = models.PositiveIntegerField(default=0)
    badge = models.CharField(max_length=20, choices=choices.BADGE_TIER_CHOICES, default=choices.BADGE_NONE)
    rank = models.PositiveIntegerField(default=0, db_index=True)
    previous_rank = models.PositiveIntegerField(null=True, blank=True)
    rank_change = models.CharField(max_length=5, choices=RANK_CHANGE_CHOICES, default=NEW)

    class Meta:
        db_table = 'leaderboard_entries'
        unique_together = ['leaderboard', 'donor']
        ordering = ['rank']

    def __str__(self):
        return f"#{self.rank} {self.donor.username} ({self.points} pts)"

    @property
    def points_breakdown(self):
        return {
            'donation_points': self.donation_points,
            'bonus_points': self.bonus_points,
            'milestone_points': self.milestone_points,
            'review_points': self.review_points,
        }


class Badge(TimeStampedModel):
    CATEGORY_CHOICES = [
        ('donation', 'Donation'),
        ('milestone', 'Milestone'),
        ('community', 'Community'),
        ('special', 'Special'),
    ]

    name = models.CharField(max_length=50, unique=True, validators=[MinLengthValidator(3)])
    description = models.CharField(max_length=300)
    icon = models.CharField(max_length=50, default='award')
    color = models.CharField(max_length=7, default='#DC2626', validators=[validate_hex_color])
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='donation')
    is_active = models.BooleanField(default=True, db_index=True)
    criteria = models.JSONField(default=dict, blank=True)
    auto_assign = models.BooleanField(default=False)
    priority = models.PositiveSmallIntegerField(default=0, validators=[MaxValueValidator(100)])
    assignment_count = models.PositiveIntegerField(default=0)
    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_badges'
    )

    class Meta:
        db_table = 'badges'
        ordering = ['-priority', 'name']

    def __str__(self):
        return self.name


class UserBadge(TimeStampedModel):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='user_badges')
    badge = models.ForeignKey(Badge, on_delete=models.CASCADE, related_name='assignments')
    assigned_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_badges'
    )
    reason = models.TextField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    revoked_at = models.DateTimeField(null=True, blank=True)
    revoked_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='revoked_badges'
    )
    revoke_reason = models.TextField(blank=True)

    class Meta:
        db_table = 'user_badges'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.badge.name} -> {self.user.username}"


# =============================================================================
# NOTIFICATIONS & AUDIT
# =============================================================================

class Notification(TimeStampedModel):
    """
    Notification system
    Optimized with selective indexes
    """
    REQUEST_CREATED = 'request_created'
    REQUEST_MATCHED = 'request_matched'
    DONATION_RECORDED = 'donation_recorded'
    DONATION_VERIFIED = 'donation_verified'
    VERIFICATION_APPROVED = 'verification_approved'
    VERIFICATION_REJECTED = 'verification_rejected'
    VERIFICATION_RESUBMISSION = 'verification_resubmission_requested'
    VERIFICATION_REVOKED = 'verification_revoked'
    REMINDER = 'reminder'
    BADGE_AWARDED = 'badge_awarded'
    CHAT_MESSAGE = 'chat_message'
    SYSTEM = 'system'

    NOTIFICATION_TYPE_CHOICES = [
        (REQUEST_CREATED, 'Request Created'),
        (REQUEST_MATCHED, 'Request Matched'),
        (DONATION_RECORDED, 'Donation Recorded'),
        (DONATION_VERIFIED, 'Donation Verified'),
        (VERIFICATION_APPROVED, 'Verification Approved'),
        (VERIFICATION_REJECTED, 'Verification Rejected'),
        (VERIFICATION_RESUBMISSION, 'Resubmission Requested'),
        (VERIFICATION_REVOKED, 'Verification Revoked'),
        (REMINDER, 'Reminder'),
        (BADGE_AWARDED, 'Badge Awarded'),
        (CHAT_MESSAGE, 'Chat Message'),
        (SYSTEM, 'System Notification'),
    ]

    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    URGENT = 'urgent'

    PRIORITY_CHOICES = [
        (LOW, 'Low'),
        (MEDIUM, 'Medium'),
        (HIGH, 'High'),
        (URGENT, 'Urgent'),
    ]

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='notifications',
        db_index=True
    )
    notification_type = models.CharField(
        max_length=50,
        choices=NOTIFICATION_TYPE_CHOICES,
        db_index=True
    )
    title = models.CharField(max_length=200)
    message = models.TextField()
    data = models.JSONField(default=dict, blank=True)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default=MEDIUM)

    is_read = models.BooleanField(default=False, db_index=True)
    read_at = models.DateTimeField(null=True, blank=True)

    related_model = models.CharField(max_length=50, blank=True)
    related_id = models.CharField(max_length=50, blank=True)

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read', '-created_at']),
            models.Index(fields=['user', 'notification_type']),
        ]
        verbose_name = 'Notification'
        verbose_name_plural = 'Notifications'

    def __str__(self):
        return f"{self.get_notification_type_display()} for {self.user.username}"

    def mark_as_read(self):
        """Mark notification as read"""
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
            self.save(update_fields=['is_read', 'read_at'])


class AuditLog(models.Model):
    """Append-only record of administrative actions"""
    CATEGORY_CHOICES = [
        ('verification', 'Verification'),
        ('moderation', 'Moderation'),
        ('data_correction', 'Data Correction'),
        ('user_management', 'User Management'),
        ('system_config', 'System Configuration'),
        ('security', 'Security'),
    ]

    ACTION_CHOICES = [
        ('user_verified', 'User Verified'),
        ('user_rejected', 'User Rejected'),
        ('user_resubmission_requested', 'Resubmission Requested'),
        ('user_verification_revoked', 'Verification Revoked'),
        ('user_activated', 'User Activated'),
        ('user_deactivated', 'User Deactivated'),
        ('donation_verified', 'Donation Verified'),
        ('donation_rejected', 'Donation Rejected'),
        ('donation_locked', 'Donation Locked'),
        ('donation_unlocked', 'Donation Unlocked'),
        ('donation_override', 'Donation Override'),
        ('card_revoked', 'Card Revoked'),
        ('review_approved', 'Review Approved'),
        ('review_rejected', 'Review Rejected'),
        ('review_reports_cleared', 'Review Reports Cleared'),
        ('badge_assigned', 'Badge Assigned'),
        ('badge_revoked', 'Badge Revoked'),
        ('config_updated', 'Configuration Updated'),
        ('message_flagged', 'Message Flagged'),
        ('message_hidden', 'Message Hidden'),
        ('message_unhidden', 'Message Unhidden'),
        ('other', 'Other'),
    ]

    SEVERITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('critical', 'Critical'),
    ]

    performed_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        related_name='audit_actions'
    )
    performer_role = models.CharField(max_length=20, blank=True)
    performer_name = models.CharField(max_length=150, blank=True)
    performer_email = models.EmailField(blank=True)

    action = models.CharField(max_length=40, choices=ACTION_CHOICES, db_index=True)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, db_index=True)
    description = models.TextField()

    target_model = models.CharField(max_length=50, db_index=True)
    target_id = models.CharField(max_length=50, db_index=True)
    target_identifier = models.CharField(max_length=200, blank=True)

    changes_before = models.JSONField(default=dict, blank=True)
    changes_after = models.JSONField(default=dict, blank=True)
    fields_changed = models.JSONField(default=list, blank=True)

    reason = models.TextField(blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=255, blank=True)
    severity = models.CharField(max_length=10, choices=SEVERITY_CHOICES, default='medium', db_index=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['target_model', 'target_id']),
            models.Index(fields=['performed_by', '-created_at']),
            models.Index(fields=['category', '-created_at']),
        ]

    def __str__(self):
        return f"{self.get_action_display()} on {self.target_model}#{self.target_id}"


# =============================================================================
# CHAT
# =============================================================================

class Chat(TimeStampedModel):
    """One-to-one conversation, optionally about a blood request"""
    participants = models.ManyToManyField(User, related_name='chats')
    blood_request = models.ForeignKey(
        BloodRequest,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='chats'
    )
    last_message = models.CharField(max_length=200, blank=True)
    last_message_at = models.DateTimeField(null=True, blank=True, db_index=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'chats'
        ordering = ['-last_message_at', '-created_at']

    def __str__(self):
        return f"Chat {self.id}"

    def has_participant(self, user) -> bool:
        return self.participants.filter(id=user.id).exists()

    def other_participant(self, user):
        return self.participants.exclude(id=user.id).first()

    def unread_count(self, user) -> int:
        return self.messages.filter(is_read=False, is_hidden=False).exclude(sender=user).count()


class ChatMessage(TimeStampedModel):
    TEXT = 'text'
    SYSTEM = 'system'

    TYPE_CHOICES = [
        (TEXT, 'Text'),
        (SYSTEM, 'System'),
    ]

    REPORT_CATEGORIES = ['spam', 'harassment', 'inappropriate', 'scam', 'other']

    chat = models.ForeignKey(Chat, on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(User, on_delete=models.CASCADE, related_name='chat_messages')
    content = models.TextField(max_length=2000)
    message_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default=TEXT)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)

    is_flagged = models.BooleanField(default=False, db_index=True)
    flagged_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='flagged_messages'
    )
    flagged_at = models.DateTimeField(null=True, blank=True)
    flag_reason = models.TextField(blank=True)

    is_hidden = models.BooleanField(default=False, db_index=True)
    hidden_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='hidden_messages'
    )
    hidden_at = models.DateTimeField(null=True, blank=True)
    hidden_reason = models.TextField(blank=True)

    report_count = models.PositiveIntegerField(default=0, db_index=True)
    reports = models.JSONField(default=list, blank=True)

    class Meta:
        db_table = 'chat_messages'
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['chat', 'created_at'], name='chat_msg_chat_created_idx'),
        ]

    def __str__(self):
        return f"{self.sender.username}: {self.content[:40]}"

    def has_report_from(self, user) -> bool:
        return any(report.get('user_id') == user.id for report in self.reports)


# =============================================================================
# CONTENT: BLOG, EVENTS, REVIEWS
# =============================================================================

class BlogPost(TimeStampedModel):
    DRAFT = 'draft'
    PUBLISHED = 'published'
    ARCHIVED = 'archived'

    STATUS_CHOICES = [
        (DRAFT, 'Draft'),
        (PUBLISHED, 'Published'),
        (ARCHIVED, 'Archived'),
    ]

    CATEGORY_CHOICES = [
        ('awareness', 'Awareness'),
        ('health_tips', 'Health Tips'),
        ('success_stories', 'Success Stories'),
        ('news', 'News'),
        ('events', 'Events'),
        ('research', 'Research'),
    ]

    title = models.CharField(max_length=200)
    slug = models.SlugField(max_length=255, unique=True, db_index=True)
    excerpt = models.CharField(max_length=500, blank=True)
    content = models.TextField()
    cover_image = models.ImageField(upload_to=blog_cover_path, blank=True, null=True, validators=[validate_image_size])
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='awareness', db_index=True)
    tags = models.JSONField(default=list, blank=True)
    author = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='blog_posts')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=DRAFT, db_index=True)
    published_at = models.DateTimeField(null=True, blank=True)
    view_count = models.PositiveIntegerField(default=0)
    likes = models.ManyToManyField(User, related_name='liked_posts', blank=True)

    class Meta:
        db_table = 'blog_posts'
        ordering = ['-published_at', '-created_at']

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = f"{slugify(self.title)[:200]}-{int(time.time() * 1000)}"
        if self.status == self.PUBLISHED and not self.published_at:
            self.published_at = timezone.now()
        super().save(*args, **kwargs)


class BlogComment(TimeStampedModel):
    post = models.ForeignKey(BlogPost, on_delete=models.CASCADE, related_name='comments')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='blog_comments')
    content = models.TextField(max_length=1000)

    class Meta:
        db_table = 'blog_comments'
        ordering = ['created_at']

    def __str__(self):
        return f"Comment by {self.user.username} on {self.post.title}"


class BloodCampEvent(TimeStampedModel, LocationAwareModel):
    """Blood donation camp; location fields hold the venue address"""
    UPCOMING = 'upcoming'
    ONGOING = 'ongoing'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (UPCOMING, 'Upcoming'),
        (ONGOING, 'Ongoing'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    ]

    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    organizer = models.CharField(max_length=200, blank=True)
    venue_name = models.CharField(max_length=200)
    start_datetime = models.DateTimeField(db_index=True)
    end_datetime = models.DateTimeField()
    target_donors = models.PositiveIntegerField(default=0, help_text="0 means unlimited")
    registered_donors = models.ManyToManyField(User, related_name='registered_events', blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=UPCOMING, db_index=True)
    is_published = models.BooleanField(default=False, db_index=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='created_events')

    class Meta:
        db_table = 'blood_camp_events'
        ordering = ['start_datetime']

    def __str__(self):
        return f"{self.title} @ {self.venue_name}"

    def clean(self):
        super().clean()
        if self.start_datetime and self.end_datetime and self.end_datetime <= self.start_datetime:
            raise ValidationError("Event end must be after start")

    @property
    def is_full(self):
        return bool(self.target_donors) and self.registered_donors.count() >= self.target_donors

    def register(self, user):
        if not self.is_published or self.status != self.UPCOMING:
            raise ValidationError("Registration is only open for upcoming published events")
        if self.registered_donors.filter(id=user.id).exists():
            raise ValidationError("Already registered for this event")
        if self.is_full:
            raise ValidationError("This event has reached its donor capacity")
        self.registered_donors.add(user)


class Review(TimeStampedModel):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'

    STATUS_CHOICES = [
        (PENDING, 'Pending'),
        (APPROVED, 'Approved'),
        (REJECTED, 'Rejected'),
    ]

    TYPE_CHOICES = [
        ('donor_review', 'Donor Review'),
        ('recipient_review', 'Recipient Review'),
        ('platform_review', 'Platform Review'),
    ]

    AUTO_HIDE_REPORTS = 5

    reviewer = models.ForeignKey(User, on_delete=models.CASCADE, related_name='reviews_given')
    reviewee = models.ForeignKey(User, on_delete=models.CASCADE, related_name='reviews_received')
    blood_request = models.ForeignKey(
        BloodRequest,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviews'
    )
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    comment = models.TextField(blank=True, max_length=1000)
    review_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='donor_review')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=APPROVED, db_index=True)
    report_count = models.PositiveIntegerField(default=0)
    reports = models.JSONField(default=list, blank=True)
    moderated_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='moderated_reviews'
    )
    moderated_at = models.DateTimeField(null=True, blank=True)
    moderation_note = models.TextField(blank=True)

    class Meta:
        db_table = 'reviews'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['reviewee', 'status']),
        ]

    def __str__(self):
        return f"{self.reviewer.username} rated {self.reviewee.username}: {self.rating}/5"

    def clean(self):
        super().clean()
        if self.reviewer_id and self.reviewer_id == self.reviewee_id:
            raise ValidationError("You cannot review yourself")


# =============================================================================
# SYSTEM CONFIGURATION
# =============================================================================

class SystemConfig(TimeStampedModel):
    """
    Singleton holding admin-tunable runtime settings.
    Each JSON section is merged over its defaults on read.
    """
    DEFAULTS = {
        'donation_settings': {
            'cooldown_days': choices.DONATION_COOLDOWN_DAYS,
            'min_age': choices.MIN_DONOR_AGE,
            'max_age': choices.MAX_DONOR_AGE,
        },
        'matching_settings': {
            'default_search_radius': choices.DEFAULT_SEARCH_RADIUS_KM,
            'max_search_radius': choices.MAX_SEARCH_RADIUS_KM,
            'expanded_search_radius': choices.EXPANDED_SEARCH_RADIUS_KM,
        },
        'fallback_settings': {
            'unmatched_threshold_hours': 6,
            'auto_run_enabled': False,
            'auto_run_interval_hours': 12,
            'notify_admins_for_critical': True,
        },
        'points_settings': {
            'per_donation': choices.LEADERBOARD_POINTS['DONATION'],
            'urgent_bonus': choices.LEADERBOARD_POINTS['URGENT_BONUS'],
            'critical_bonus': choices.LEADERBOARD_POINTS['CRITICAL_BONUS'],
            'review_bonus': choices.LEADERBOARD_POINTS['REVIEW_BONUS'],
            'first_donation_bonus': choices.LEADERBOARD_POINTS['FIRST_DONATION'],
        },
        'request_settings': {
            'expiration_days': 30,
            'max_active_requests_per_user': 3,
            'auto_match_enabled': True,
        },
        'notification_settings': {
            'email_enabled': True,
            'sms_enabled': False,
        },
    }

    # Allowed (min, max) for numeric settings
    RANGES = {
        'donation_settings': {
            'cooldown_days': (30, 365),
            'min_age': (16, 25),
            'max_age': (50, 80),
        },
        'matching_settings': {
            'default_search_radius': (10, 500),
            'max_search_radius': (50, 1000),
            'expanded_search_radius': (50, 500),
        },
        'fallback_settings': {
            'unmatched_threshold_hours': (1, 72),
            'auto_run_interval_hours': (1, 168),
        },
        'points_settings': {
            'per_donation': (0, 10000),
            'urgent_bonus': (0, 10000),
            'critical_bonus': (0, 10000),
            'review_bonus': (0, 1000),
            'first_donation_bonus': (0, 10000),
        },
        'request_settings': {
            'expiration_days': (1, 365),
            'max_active_requests_per_user': (1, 50),
        },
    }

    SECTIONS = list(DEFAULTS.keys())
    MAX_HISTORY = 10

    donation_settings = models.JSONField(default=dict, blank=True)
    matching_settings = models.JSONField(default=dict, blank=True)
    fallback_settings = models.JSONField(default=dict, blank=True)
    points_settings = models.JSONField(default=dict, blank=True)
    request_settings = models.JSONField(default=dict, blank=True)
    notification_settings = models.JSONField(default=dict, blank=True)
    maintenance_mode = models.BooleanField(default=False)
    maintenance_message = models.CharField(max_length=500, blank=True)
    change_history = models.JSONField(default=list, blank=True)
    last_modified_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='config_changes'
    )

    class Meta:
        db_table = 'system_config'
        verbose_name = 'System Configuration'
        verbose_name_plural = 'System Configuration'

    def __str__(self):
        return "BloodBond system configuration"

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("System configuration cannot be deleted")

    @classmethod
    def load(cls):
        config, _created = cls.objects.get_or_create(pk=1)
        return config

    def section(self, name):
        """Section values merged over defaults"""
        merged = dict(self.DEFAULTS[name])
        merged.update(getattr(self, name) or {})
        return merged

    def get(self, name, key):
        return self.section(name)[key]

    def as_dict(self):
        data = {name: self.section(name) for name in self.SECTIONS}
        data['maintenance_mode'] = {
            'enabled': self.maintenance_mode,
            'message': self.maintenance_message,
        }
        return data

    def record_change(self, user, section, changes, reason):
        entry = {
            'section': section,
            'changes': changes,
            'reason': reason,
            'changed_by': user.id if user else None,
            'changed_at': timezone.now().isoformat(),
        }
        self.change_history = ([entry] + list(self.change_history or []))[:self.MAX_HISTORY]
        self.last_modified_by = user
