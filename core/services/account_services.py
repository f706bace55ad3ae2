"""
Account Service - registration, profile maintenance and credentials
"""
from django.contrib.auth.password_validation import validate_password
from django.db import transaction
from django.utils import timezone
from rest_framework_simplejwt.tokens import RefreshToken
from typing import Dict, Any
import logging

from core.models import UserProfile, DonorProfile, RecipientProfile, AdminProfile, User
from core.services.base import BaseService, ServiceResponse
from core.utils import normalize_phone_number
from core.validators import validate_emergency_contact

logger = logging.getLogger(__name__)


class AccountService(BaseService):

    USER_FIELDS = ('first_name', 'last_name')
    PROFILE_FIELDS = ('phone_number', 'blood_type', 'date_of_birth', 'gender',
                      'location', 'latitude', 'longitude')
    DONOR_FIELDS = ('availability_radius', 'medical_history', 'preferred_donation_center',
                    'notification_enabled', 'sms_notifications', 'email_notifications',
                    'urgent_only', 'is_available')
    RECIPIENT_FIELDS = ('emergency_contact', 'medical_condition')
    ADMIN_FIELDS = ('department',)

    @staticmethod
    def issue_tokens(user: User) -> Dict[str, str]:
        refresh = RefreshToken.for_user(user)
        return {'refresh': str(refresh), 'access': str(refresh.access_token)}

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    @classmethod
    def _validate_registration(cls, data: Dict) -> Dict[str, str]:
        errors = {}
        email = (data.get('email') or '').strip().lower()
        if User.objects.filter(email__iexact=email).exists():
            errors['email'] = "A user with this email already exists"

        phone = data.get('phone_number')
        if phone and UserProfile.objects.filter(phone_number=normalize_phone_number(phone)).exists():
            errors['phone_number'] = "A user with this phone number already exists"

        role = data.get('role')
        if role == UserProfile.DONOR and not data.get('blood_type'):
            errors['blood_type'] = "Blood type is required for donors"
        elif role == UserProfile.RECIPIENT and not data.get('emergency_contact'):
            errors['emergency_contact'] = "Emergency contact is required for recipients"
        elif role == UserProfile.ADMIN:
            if not data.get('department'):
                errors['department'] = "Department is required for administrators"
            if not data.get('employee_id'):
                errors['employee_id'] = "Employee ID is required for administrators"
            elif AdminProfile.objects.filter(employee_id=data['employee_id']).exists():
                errors['employee_id'] = "This employee ID is already registered"
        elif role not in (UserProfile.DONOR, UserProfile.RECIPIENT, UserProfile.ADMIN):
            errors['role'] = "Invalid role specified"

        return errors

    @classmethod
    def register(cls, data: Dict) -> ServiceResponse:
        """Create user, profile and role profile in one transaction"""
        errors = cls._validate_registration(data)
        if errors:
            return cls.error("User already exists or registration data is incomplete", errors=errors)

        try:
            with transaction.atomic():
                email = data['email'].strip().lower()
                user = User.objects.create_user(
                    username=email,
                    email=email,
                    password=data['password'],
                    first_name=data.get('first_name', ''),
                    last_name=data.get('last_name', ''),
                )

                profile = UserProfile(user=user, role=data['role'])
                for field in cls.PROFILE_FIELDS:
                    if data.get(field) not in (None, ''):
                        setattr(profile, field, data[field])
                profile.phone_number = normalize_phone_number(profile.phone_number) if profile.phone_number else None
                profile.full_clean(exclude=['user'])
                profile.save()

                role = data['role']
                if role == UserProfile.DONOR:
                    DonorProfile.objects.create(
                        user=user,
                        availability_radius=data.get('availability_radius') or 50,
                        medical_history=data.get('medical_history') or {},
                    )
                elif role == UserProfile.RECIPIENT:
                    validate_emergency_contact(data['emergency_contact'])
                    RecipientProfile.objects.create(
                        user=user,
                        emergency_contact=data['emergency_contact'],
                        medical_condition=data.get('medical_condition', ''),
                    )
                else:
                    AdminProfile.objects.create(
                        user=user,
                        department=data['department'],
                        employee_id=data['employee_id'],
                        permissions=data.get('permissions') or ['view_analytics'],
                    )

            logger.info(f"Registered {role} account {email}")
            return cls.success(
                data={'user': user, 'tokens': cls.issue_tokens(user)},
                message="User registered successfully"
            )

        except Exception as e:
            return cls.handle_exception(e, "registration")

    # =========================================================================
    # PROFILE
    # =========================================================================

    @classmethod
    def update_profile(cls, user: User, data: Dict[str, Any]) -> ServiceResponse:
        """Update own profile; email, role and verification are never written here"""
        try:
            with transaction.atomic():
                profile = UserProfile.objects.select_for_update().get(user=user)

                user_changed = [f for f in cls.USER_FIELDS if f in data]
                for field in user_changed:
                    setattr(user, field, data[field])
                if user_changed:
                    user.save(update_fields=user_changed)

                for field in cls.PROFILE_FIELDS:
                    if field in data:
                        setattr(profile, field, data[field])
                if 'location' in data and 'latitude' not in data:
                    # New address, coordinates are resolved again on save
                    profile.latitude = None
                    profile.longitude = None
                profile.phone_number = normalize_phone_number(profile.phone_number) if profile.phone_number else None
                profile.full_clean(exclude=['user'])
                profile.save()

                if profile.is_donor:
                    cls._update_role_profile(DonorProfile, user, cls.DONOR_FIELDS, data)
                elif profile.is_recipient:
                    if 'emergency_contact' in data:
                        validate_emergency_contact(data['emergency_contact'])
                    cls._update_role_profile(RecipientProfile, user, cls.RECIPIENT_FIELDS, data)
                elif profile.is_admin:
                    cls._update_role_profile(AdminProfile, user, cls.ADMIN_FIELDS, data)

            return cls.success(user, message="Profile updated successfully")

        except UserProfile.DoesNotExist:
            return cls.not_found("Profile not found")
        except Exception as e:
            return cls.handle_exception(e, "profile update")

    @staticmethod
    def _update_role_profile(model, user, fields, data):
        changed = [f for f in fields if f in data]
        if not changed:
            return
        role_profile = model.objects.select_for_update().get(user=user)
        for field in changed:
            setattr(role_profile, field, data[field])
        role_profile.full_clean(exclude=['user'])
        role_profile.save()

    @classmethod
    def change_password(cls, user: User, current_password: str, new_password: str) -> ServiceResponse:
        if not user.check_password(current_password or ''):
            return cls.error("Current password is incorrect")

        try:
            validate_password(new_password, user)
            user.set_password(new_password)
            user.save(update_fields=['password'])
            logger.info(f"Password changed for {user.email}")
            return cls.success(message="Password changed successfully")
        except Exception as e:
            return cls.handle_exception(e, "password change")

    # =========================================================================
    # HOSPITAL ID
    # =========================================================================

    @classmethod
    def upload_hospital_id(cls, user: User, document) -> ServiceResponse:
        """Store the ID document; a rejected account goes back to pending review"""
        if not document:
            return cls.error("A hospital ID document is required")

        try:
            profile = UserProfile.objects.get(user=user)
            profile.hospital_id_document = document
            profile.hospital_id_uploaded_at = timezone.now()
            if profile.verification_status == UserProfile.REJECTED:
                profile.verification_status = UserProfile.PENDING
                profile.rejection_reason = ''
            profile.resubmission_requested = False
            profile.full_clean(exclude=['user'])
            profile.save()

            logger.info(f"Hospital ID uploaded by {user.email}")
            return cls.success(cls.hospital_id_status(profile), message="Hospital ID uploaded")

        except UserProfile.DoesNotExist:
            return cls.not_found("Profile not found")
        except Exception as e:
            return cls.handle_exception(e, "hospital ID upload")

    @staticmethod
    def hospital_id_status(profile: UserProfile) -> Dict[str, Any]:
        return {
            'has_document': bool(profile.hospital_id_document),
            'uploaded_at': profile.hospital_id_uploaded_at.isoformat() if profile.hospital_id_uploaded_at else None,
            'verification_status': profile.verification_status,
            'rejection_reason': profile.rejection_reason,
            'resubmission_requested': profile.resubmission_requested,
            'resubmission_reason': profile.resubmission_reason,
        }
