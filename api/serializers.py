from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password

from core import choices
from core.models import (
    UserProfile, DonorProfile, RecipientProfile, AdminProfile,
    WeeklySlot, CustomAvailability,
    BloodRequest, RequestMatch, DonationRecord, DigitalDonationCard,
    Badge, UserBadge, Notification, AuditLog,
    BlogPost, BlogComment, BloodCampEvent, Review,
    Chat, ChatMessage,
)
from core.validators import validate_phone_number

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """Custom JWT serializer with role and verification claims"""

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        profile = getattr(user, 'profile', None)
        token['role'] = profile.role if profile else None
        token['is_verified'] = profile.is_verified if profile else False
        token['email'] = user.email
        token['full_name'] = user.get_full_name()
        return token

    def validate(self, attrs):
        data = super().validate(attrs)
        profile = getattr(self.user, 'profile', None)

        data['user'] = {
            'id': self.user.id,
            'email': self.user.email,
            'username': self.user.username,
            'role': profile.role if profile else None,
            'full_name': self.user.get_full_name(),
            'is_verified': profile.is_verified if profile else False,
            'verification_status': profile.verification_status if profile else None,
        }
        return data


# =============================================================================
# ACCOUNTS
# =============================================================================

class RegisterSerializer(serializers.Serializer):
    """Registration payload; role specific requirements are checked by AccountService"""
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    first_name = serializers.CharField(max_length=150)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    role = serializers.ChoiceField(choices=choices.ROLE_CHOICES)
    phone_number = serializers.CharField(required=False, allow_blank=True, validators=[validate_phone_number])
    blood_type = serializers.ChoiceField(choices=choices.BLOOD_TYPE_CHOICES, required=False, allow_blank=True)
    date_of_birth = serializers.DateField(required=False, allow_null=True)
    gender = serializers.ChoiceField(choices=choices.GENDER_CHOICES, required=False, allow_blank=True)
    location = serializers.CharField(max_length=255, required=False, allow_blank=True)
    latitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, allow_null=True)
    longitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, allow_null=True)

    # Donor
    availability_radius = serializers.IntegerField(
        required=False, min_value=1, max_value=choices.MAX_SEARCH_RADIUS_KM
    )
    medical_history = serializers.JSONField(required=False)

    # Recipient
    emergency_contact = serializers.JSONField(required=False)
    medical_condition = serializers.CharField(required=False, allow_blank=True)

    # Admin
    department = serializers.CharField(max_length=100, required=False)
    employee_id = serializers.CharField(max_length=50, required=False)

    def validate_password(self, value):
        validate_password(value)
        return value


class DonorProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = DonorProfile
        fields = [
            'last_donation_date', 'total_donations', 'is_available',
            'availability_radius', 'medical_history', 'preferred_donation_center',
            'notification_enabled', 'sms_notifications', 'email_notifications',
            'urgent_only', 'badge', 'achievements', 'schedule_enabled', 'schedule_timezone',
        ]
        read_only_fields = fields


class RecipientProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = RecipientProfile
        fields = [
            'emergency_contact', 'medical_condition',
            'total_requests', 'fulfilled_requests', 'cancelled_requests',
        ]
        read_only_fields = fields


class AdminProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = AdminProfile
        fields = ['department', 'employee_id', 'permissions', 'last_action_at']
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model with Profile data flattened"""
    full_name = serializers.SerializerMethodField()
    role = serializers.CharField(source='profile.role', read_only=True)
    phone_number = serializers.CharField(source='profile.phone_number', read_only=True)
    blood_type = serializers.CharField(source='profile.blood_type', read_only=True)
    date_of_birth = serializers.DateField(source='profile.date_of_birth', read_only=True)
    gender = serializers.CharField(source='profile.gender', read_only=True)
    age = serializers.IntegerField(source='profile.age', read_only=True)
    location = serializers.CharField(source='profile.location', read_only=True)
    latitude = serializers.DecimalField(source='profile.latitude', max_digits=9, decimal_places=6, read_only=True)
    longitude = serializers.DecimalField(source='profile.longitude', max_digits=9, decimal_places=6, read_only=True)
    profile_picture = serializers.ImageField(source='profile.profile_picture', read_only=True)
    verification_status = serializers.CharField(source='profile.verification_status', read_only=True)
    is_verified = serializers.BooleanField(source='profile.is_verified', read_only=True)
    donor_profile = serializers.SerializerMethodField()
    recipient_profile = serializers.SerializerMethodField()
    admin_profile = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'username', 'email', 'first_name', 'last_name', 'full_name',
            'role', 'phone_number', 'blood_type', 'date_of_birth', 'gender', 'age',
            'location', 'latitude', 'longitude', 'profile_picture',
            'verification_status', 'is_verified', 'date_joined', 'last_login',
            'donor_profile', 'recipient_profile', 'admin_profile',
        ]
        read_only_fields = fields

    def get_full_name(self, obj):
        return obj.get_full_name()

    def _role_profile(self, obj, attr, serializer_class):
        role_profile = getattr(obj, attr, None)
        return serializer_class(role_profile).data if role_profile else None

    def get_donor_profile(self, obj):
        return self._role_profile(obj, 'donor_profile', DonorProfileSerializer)

    def get_recipient_profile(self, obj):
        return self._role_profile(obj, 'recipient_profile', RecipientProfileSerializer)

    def get_admin_profile(self, obj):
        return self._role_profile(obj, 'admin_profile', AdminProfileSerializer)


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user representation for nested payloads"""
    full_name = serializers.SerializerMethodField()
    role = serializers.CharField(source='profile.role', read_only=True)
    blood_type = serializers.CharField(source='profile.blood_type', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'email', 'full_name', 'role', 'blood_type']
        read_only_fields = fields

    def get_full_name(self, obj):
        return obj.get_full_name() or obj.username


class ProfileUpdateSerializer(serializers.Serializer):
    """Writable profile fields; email, role and verification are not accepted"""
    first_name = serializers.CharField(max_length=150, required=False)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    phone_number = serializers.CharField(required=False, allow_blank=True, validators=[validate_phone_number])
    blood_type = serializers.ChoiceField(choices=choices.BLOOD_TYPE_CHOICES, required=False, allow_blank=True)
    date_of_birth = serializers.DateField(required=False, allow_null=True)
    gender = serializers.ChoiceField(choices=choices.GENDER_CHOICES, required=False, allow_blank=True)
    location = serializers.CharField(max_length=255, required=False, allow_blank=True)
    latitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, allow_null=True)
    longitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, allow_null=True)

    availability_radius = serializers.IntegerField(
        required=False, min_value=1, max_value=choices.MAX_SEARCH_RADIUS_KM
    )
    medical_history = serializers.JSONField(required=False)
    preferred_donation_center = serializers.CharField(max_length=200, required=False, allow_blank=True)
    notification_enabled = serializers.BooleanField(required=False)
    sms_notifications = serializers.BooleanField(required=False)
    email_notifications = serializers.BooleanField(required=False)
    urgent_only = serializers.BooleanField(required=False)
    is_available = serializers.BooleanField(required=False)

    emergency_contact = serializers.JSONField(required=False)
    medical_condition = serializers.CharField(required=False, allow_blank=True)

    department = serializers.CharField(max_length=100, required=False)


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, min_length=8)


class VerificationUserSerializer(serializers.ModelSerializer):
    """Admin view of a profile under review"""
    id = serializers.IntegerField(source='user.id', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    full_name = serializers.CharField(read_only=True)
    verified_by = serializers.CharField(source='verified_by.email', read_only=True, default=None)

    class Meta:
        model = UserProfile
        fields = [
            'id', 'email', 'full_name', 'role', 'phone_number', 'blood_type',
            'verification_status', 'verified_by', 'verified_at', 'rejection_reason',
            'verification_notes', 'resubmission_requested', 'resubmission_reason',
            'hospital_id_document', 'hospital_id_uploaded_at', 'is_active', 'created_at',
        ]
        read_only_fields = fields


# =============================================================================
# AVAILABILITY
# =============================================================================

class WeeklySlotSerializer(serializers.ModelSerializer):
    day_name = serializers.CharField(source='get_day_of_week_display', read_only=True)

    class Meta:
        model = WeeklySlot
        fields = ['id', 'day_of_week', 'day_name', 'start_time', 'end_time', 'is_active']
        read_only_fields = ['id']


class CustomAvailabilitySerializer(serializers.ModelSerializer):
    class Meta:
        model = CustomAvailability
        fields = ['id', 'start_date', 'end_date', 'start_time', 'end_time', 'is_available', 'reason']
        read_only_fields = ['id']


class ScheduleSerializer(serializers.Serializer):
    donor_id = serializers.IntegerField()
    donor_name = serializers.CharField()
    enabled = serializers.BooleanField()
    timezone = serializers.CharField()
    is_available = serializers.BooleanField()
    weekly_slots = WeeklySlotSerializer(many=True)
    custom_availability = CustomAvailabilitySerializer(many=True)
    is_currently_available = serializers.BooleanField()
    availability_reason = serializers.CharField()


# =============================================================================
# BLOOD REQUESTS
# =============================================================================

class BloodRequestSerializer(serializers.ModelSerializer):
    """Serializer for BloodRequest model"""
    recipient_name = serializers.SerializerMethodField()
    units_remaining = serializers.IntegerField(read_only=True)
    is_urgent = serializers.BooleanField(read_only=True)
    has_active_lock = serializers.SerializerMethodField()

    class Meta:
        model = BloodRequest
        fields = [
            'id', 'recipient', 'recipient_name', 'patient_name', 'blood_type',
            'units_required', 'urgency', 'status', 'hospital_name', 'hospital_contact',
            'location', 'latitude', 'longitude', 'required_by', 'medical_reason', 'notes',
            'total_units_fulfilled', 'units_remaining', 'is_urgent',
            'is_locked', 'locked_by', 'lock_expires_at', 'has_active_lock',
            'search_radius', 'radius_expanded', 'fallback_attempts', 'last_fallback_attempt',
            'nearby_facilities', 'admin_notified', 'radius_expansion_consent',
            'cancelled_reason', 'cancelled_at', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'recipient', 'status', 'total_units_fulfilled',
            'is_locked', 'locked_by', 'lock_expires_at',
            'search_radius', 'radius_expanded', 'fallback_attempts', 'last_fallback_attempt',
            'nearby_facilities', 'admin_notified', 'radius_expansion_consent',
            'cancelled_reason', 'cancelled_at', 'created_at', 'updated_at',
        ]

    def get_recipient_name(self, obj):
        return obj.recipient.get_full_name() or obj.recipient.username

    def get_has_active_lock(self, obj):
        return obj.has_active_lock()


class BloodRequestUpdateSerializer(serializers.Serializer):
    units_required = serializers.IntegerField(required=False, min_value=1, max_value=10)
    required_by = serializers.DateTimeField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=BloodRequest.STATUS_CHOICES, required=False)
    cancelled_reason = serializers.CharField(required=False, allow_blank=True)


class RespondSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['accept', 'decline'])
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class RequestMatchSerializer(serializers.ModelSerializer):
    blood_request = BloodRequestSerializer(read_only=True)

    class Meta:
        model = RequestMatch
        fields = [
            'id', 'blood_request', 'score', 'distance_km', 'notified_at',
            'responded_at', 'response', 'decline_reason', 'created_at',
        ]
        read_only_fields = fields


class VisibleRequestSerializer(serializers.Serializer):
    request = BloodRequestSerializer()
    visibility = serializers.DictField()


class DonorMatchSerializer(serializers.Serializer):
    """One ranked result of a compatible donor search"""
    donor = UserSummarySerializer()
    total_donations = serializers.IntegerField(source='donor.donor_profile.total_donations')
    badge = serializers.CharField(source='donor.donor_profile.badge')
    distance_km = serializers.FloatField()
    distance_display = serializers.CharField()
    score = serializers.FloatField()
    eligibility = serializers.DictField()


# =============================================================================
# DONATIONS & CARDS
# =============================================================================

class DonationRecordSerializer(serializers.ModelSerializer):
    """Serializer for DonationRecord model"""
    donor_name = serializers.SerializerMethodField()
    recipient_name = serializers.SerializerMethodField()
    card_number = serializers.SerializerMethodField()

    class Meta:
        model = DonationRecord
        fields = [
            'id', 'donor', 'donor_name', 'recipient', 'recipient_name', 'blood_request',
            'donation_date', 'blood_type', 'units_provided',
            'center_name', 'center_address', 'center_latitude', 'center_longitude',
            'health_check_before', 'health_check_after',
            'verification_status', 'verified_by', 'verified_at', 'rejection_reason',
            'points_earned', 'notes', 'complications', 'follow_up',
            'is_locked', 'locked_at', 'locked_by', 'override_history',
            'card_number', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_donor_name(self, obj):
        return obj.donor.get_full_name() or obj.donor.username

    def get_recipient_name(self, obj):
        if obj.recipient is None:
            return None
        return obj.recipient.get_full_name() or obj.recipient.username

    def get_card_number(self, obj):
        card = getattr(obj, 'digital_card', None)
        return card.card_number if card else None


class DonationCreateSerializer(serializers.Serializer):
    """Payload for recording a donation; `donor` is only honoured for admins"""
    donor = serializers.PrimaryKeyRelatedField(queryset=User.objects.all(), required=False)
    blood_request = serializers.PrimaryKeyRelatedField(
        queryset=BloodRequest.objects.all(), required=False, allow_null=True
    )
    donation_date = serializers.DateTimeField(required=False)
    units_provided = serializers.IntegerField(required=False, min_value=1)
    center_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    center_address = serializers.CharField(max_length=255, required=False, allow_blank=True)
    center_latitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, allow_null=True)
    center_longitude = serializers.DecimalField(max_digits=9, decimal_places=6, required=False, allow_null=True)
    health_check_before = serializers.JSONField(required=False)
    health_check_after = serializers.JSONField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    complications = serializers.CharField(required=False, allow_blank=True)
    follow_up = serializers.JSONField(required=False)


class DonationUpdateSerializer(DonationCreateSerializer):
    donor = None
    blood_request = None


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class DigitalDonationCardSerializer(serializers.ModelSerializer):
    """Serializer for DigitalDonationCard model"""
    donor_name = serializers.SerializerMethodField()
    blood_type = serializers.CharField(source='donation.blood_type', read_only=True)
    donation_date = serializers.DateTimeField(source='donation.donation_date', read_only=True)
    units_provided = serializers.IntegerField(source='donation.units_provided', read_only=True)
    is_valid = serializers.BooleanField(read_only=True)

    class Meta:
        model = DigitalDonationCard
        fields = [
            'id', 'card_number', 'donor', 'donor_name', 'donation',
            'blood_type', 'donation_date', 'units_provided',
            'qr_payload', 'qr_image', 'issued_at', 'valid_until', 'is_valid',
            'verification_count', 'last_verified_at',
            'is_revoked', 'revoked_at', 'revoke_reason',
        ]
        read_only_fields = fields

    def get_donor_name(self, obj):
        return obj.donor.get_full_name() or obj.donor.username


# =============================================================================
# BADGES
# =============================================================================

class BadgeSerializer(serializers.ModelSerializer):
    class Meta:
        model = Badge
        fields = [
            'id', 'name', 'description', 'icon', 'color', 'category', 'is_active',
            'criteria', 'auto_assign', 'priority', 'assignment_count', 'created_at',
        ]
        read_only_fields = ['id', 'assignment_count', 'created_at']


class UserBadgeSerializer(serializers.ModelSerializer):
    badge = BadgeSerializer(read_only=True)
    user_name = serializers.SerializerMethodField()

    class Meta:
        model = UserBadge
        fields = [
            'id', 'user', 'user_name', 'badge', 'assigned_by', 'reason',
            'is_active', 'revoked_at', 'revoked_by', 'revoke_reason', 'created_at',
        ]
        read_only_fields = fields

    def get_user_name(self, obj):
        return obj.user.get_full_name() or obj.user.username


class BadgeAssignmentSerializer(serializers.Serializer):
    user = serializers.PrimaryKeyRelatedField(queryset=User.objects.all())
    reason = serializers.CharField(required=False, allow_blank=True, default='')


# =============================================================================
# NOTIFICATIONS & AUDIT
# =============================================================================

class NotificationSerializer(serializers.ModelSerializer):
    """Serializer for Notification model"""

    class Meta:
        model = Notification
        fields = [
            'id', 'notification_type', 'title', 'message', 'data', 'priority',
            'is_read', 'read_at', 'related_model', 'related_id', 'created_at',
        ]
        read_only_fields = fields


class AuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditLog
        fields = [
            'id', 'performed_by', 'performer_role', 'performer_name', 'performer_email',
            'action', 'category', 'description',
            'target_model', 'target_id', 'target_identifier',
            'changes_before', 'changes_after', 'fields_changed',
            'reason', 'ip_address', 'user_agent', 'severity', 'created_at',
        ]
        read_only_fields = fields


# =============================================================================
# CONTENT
# =============================================================================

class BlogCommentSerializer(serializers.ModelSerializer):
    user_name = serializers.SerializerMethodField()

    class Meta:
        model = BlogComment
        fields = ['id', 'post', 'user', 'user_name', 'content', 'created_at']
        read_only_fields = ['id', 'post', 'user', 'created_at']

    def get_user_name(self, obj):
        return obj.user.get_full_name() or obj.user.username


class BlogPostSerializer(serializers.ModelSerializer):
    """Serializer for BlogPost model"""
    author_name = serializers.SerializerMethodField()
    like_count = serializers.SerializerMethodField()
    comment_count = serializers.SerializerMethodField()

    class Meta:
        model = BlogPost
        fields = [
            'id', 'title', 'slug', 'excerpt', 'content', 'cover_image', 'category', 'tags',
            'author', 'author_name', 'status', 'published_at', 'view_count',
            'like_count', 'comment_count', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'slug', 'author', 'published_at', 'view_count', 'created_at', 'updated_at',
        ]

    def get_author_name(self, obj):
        if obj.author is None:
            return None
        return obj.author.get_full_name() or obj.author.username

    def get_like_count(self, obj):
        if hasattr(obj, 'like_count'):
            return obj.like_count
        return obj.likes.count()

    def get_comment_count(self, obj):
        if hasattr(obj, 'comment_count'):
            return obj.comment_count
        return obj.comments.count()


class BlogPostDetailSerializer(BlogPostSerializer):
    comments = BlogCommentSerializer(many=True, read_only=True)

    class Meta(BlogPostSerializer.Meta):
        fields = BlogPostSerializer.Meta.fields + ['comments']


class BloodCampEventSerializer(serializers.ModelSerializer):
    """Serializer for BloodCampEvent model"""
    registered_count = serializers.SerializerMethodField()
    is_full = serializers.BooleanField(read_only=True)
    is_registered = serializers.SerializerMethodField()

    class Meta:
        model = BloodCampEvent
        fields = [
            'id', 'title', 'description', 'organizer', 'venue_name',
            'location', 'latitude', 'longitude', 'start_datetime', 'end_datetime',
            'target_donors', 'registered_count', 'is_full', 'is_registered',
            'status', 'is_published', 'created_by', 'created_at',
        ]
        read_only_fields = ['id', 'created_by', 'created_at']

    def get_registered_count(self, obj):
        if hasattr(obj, 'registered_count'):
            return obj.registered_count
        return obj.registered_donors.count()

    def get_is_registered(self, obj):
        request = self.context.get('request')
        if not request or not request.user.is_authenticated:
            return False
        return obj.registered_donors.filter(id=request.user.id).exists()


# =============================================================================
# REVIEWS
# =============================================================================

class ReviewSerializer(serializers.ModelSerializer):
    """Serializer for Review model"""
    reviewer_name = serializers.SerializerMethodField()
    reviewee_name = serializers.SerializerMethodField()

    class Meta:
        model = Review
        fields = [
            'id', 'reviewer', 'reviewer_name', 'reviewee', 'reviewee_name',
            'blood_request', 'rating', 'comment', 'review_type',
            'status', 'report_count', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'reviewer', 'status', 'report_count', 'created_at', 'updated_at']

    def get_reviewer_name(self, obj):
        return obj.reviewer.get_full_name() or obj.reviewer.username

    def get_reviewee_name(self, obj):
        return obj.reviewee.get_full_name() or obj.reviewee.username


class ReviewModerationSerializer(ReviewSerializer):
    class Meta(ReviewSerializer.Meta):
        fields = ReviewSerializer.Meta.fields + [
            'reports', 'moderated_by', 'moderated_at', 'moderation_note',
        ]
        read_only_fields = fields


# =============================================================================
# CHAT
# =============================================================================

class ChatParticipantSerializer(serializers.ModelSerializer):
    full_name = serializers.SerializerMethodField()
    role = serializers.CharField(source='profile.role', read_only=True, default=None)

    class Meta:
        model = User
        fields = ['id', 'username', 'full_name', 'role']

    def get_full_name(self, obj):
        return obj.get_full_name() or obj.username


class ChatSerializer(serializers.ModelSerializer):
    participants = ChatParticipantSerializer(many=True, read_only=True)
    unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Chat
        fields = [
            'id', 'participants', 'blood_request', 'last_message', 'last_message_at',
            'unread_count', 'is_active', 'created_at',
        ]
        read_only_fields = fields

    def get_unread_count(self, obj):
        request = self.context.get('request')
        if request is None or not request.user.is_authenticated:
            return 0
        return obj.unread_count(request.user)


class ChatCreateSerializer(serializers.Serializer):
    participant_id = serializers.IntegerField()
    blood_request_id = serializers.IntegerField(required=False, allow_null=True)


class ChatMessageSerializer(serializers.ModelSerializer):
    sender_name = serializers.SerializerMethodField()

    class Meta:
        model = ChatMessage
        fields = [
            'id', 'chat', 'sender', 'sender_name', 'content', 'message_type',
            'is_read', 'read_at', 'created_at',
        ]
        read_only_fields = ['id', 'chat', 'sender', 'message_type', 'is_read', 'read_at', 'created_at']

    def get_sender_name(self, obj):
        return obj.sender.get_full_name() or obj.sender.username


class ChatMessageModerationSerializer(ChatMessageSerializer):
    class Meta(ChatMessageSerializer.Meta):
        fields = ChatMessageSerializer.Meta.fields + [
            'is_flagged', 'flagged_by', 'flagged_at', 'flag_reason',
            'is_hidden', 'hidden_by', 'hidden_at', 'hidden_reason',
            'report_count', 'reports',
        ]
        read_only_fields = fields


class MessageReportSerializer(serializers.Serializer):
    reason = serializers.CharField(min_length=10)
    category = serializers.ChoiceField(choices=ChatMessage.REPORT_CATEGORIES)
