from django.contrib import admin
from .models import (
    UserProfile, DonorProfile, WeeklySlot, CustomAvailability, RecipientProfile, AdminProfile,
    BloodRequest, RequestMatch, DonationRecord, DigitalDonationCard, Leaderboard, LeaderboardEntry,
    Badge, UserBadge, Notification, AuditLog, Chat, ChatMessage, BlogPost, BlogComment, BloodCampEvent,
    Review, SystemConfig,
)

TIMESTAMPS = ('Timestamps', {
    'fields': ('created_at', 'updated_at'),
    'classes': ('collapse',)
})


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'role', 'blood_type', 'verification_status', 'is_active', 'created_at']
    list_filter = ['role', 'verification_status', 'blood_type', 'is_active']
    search_fields = ['user__username', 'user__email', 'location', 'phone_number']
    readonly_fields = ['created_at', 'updated_at', 'verified_at', 'hospital_id_uploaded_at']

    fieldsets = (
        ('User Info', {
            'fields': ('user', 'role', 'blood_type', 'date_of_birth', 'gender', 'is_active')
        }),
        ('Contact & Location', {
            'fields': ('phone_number', 'location', 'latitude', 'longitude')
        }),
        ('Verification', {
            'fields': ('verification_status', 'verified_by', 'verified_at', 'verification_notes',
                       'rejection_reason', 'resubmission_requested', 'resubmission_reason',
                       'hospital_id_document', 'hospital_id_uploaded_at')
        }),
        TIMESTAMPS,
    )

    def get_queryset(self, request):
        """Optimize queryset with select_related"""
        return super().get_queryset(request).select_related('user', 'verified_by')


class WeeklySlotInline(admin.TabularInline):
    model = WeeklySlot
    extra = 0


class CustomAvailabilityInline(admin.TabularInline):
    model = CustomAvailability
    extra = 0


@admin.register(DonorProfile)
class DonorProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'total_donations', 'badge', 'is_available', 'last_donation_date']
    list_filter = ['is_available', 'badge', 'schedule_enabled']
    search_fields = ['user__username', 'user__email']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [WeeklySlotInline, CustomAvailabilityInline]


@admin.register(RecipientProfile)
class RecipientProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'total_requests', 'fulfilled_requests', 'cancelled_requests']
    search_fields = ['user__username', 'user__email']


@admin.register(AdminProfile)
class AdminProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'department', 'employee_id', 'last_action_at']
    search_fields = ['user__username', 'employee_id', 'department']


class RequestMatchInline(admin.TabularInline):
    model = RequestMatch
    extra = 0
    readonly_fields = ['donor', 'score', 'distance_km', 'notified_at', 'responded_at']


@admin.register(BloodRequest)
class BloodRequestAdmin(admin.ModelAdmin):
    list_display = [
        'patient_name', 'blood_type', 'units_required', 'urgency',
        'status', 'hospital_name', 'required_by', 'created_at'
    ]
    list_filter = ['status', 'urgency', 'blood_type', 'radius_expanded']
    search_fields = ['patient_name', 'hospital_name', 'recipient__username']
    readonly_fields = ['created_at', 'updated_at', 'cancelled_at', 'last_fallback_attempt', 'admin_notified_at']
    inlines = [RequestMatchInline]

    fieldsets = (
        ('Request', {
            'fields': ('recipient', 'patient_name', 'blood_type', 'units_required', 'urgency',
                       'status', 'required_by', 'medical_reason', 'notes')
        }),
        ('Hospital', {
            'fields': ('hospital_name', 'hospital_contact', 'location', 'latitude', 'longitude')
        }),
        ('Fulfillment', {
            'fields': ('total_units_fulfilled', 'cancelled_reason', 'cancelled_by', 'cancelled_at')
        }),
        ('Fallback', {
            'fields': ('search_radius', 'radius_expanded', 'radius_expansion_consent', 'fallback_attempts',
                       'last_fallback_attempt', 'admin_notified', 'admin_notified_at', 'nearby_facilities'),
            'classes': ('collapse',)
        }),
        ('Lock', {
            'fields': ('is_locked', 'locked_by', 'lock_expires_at'),
            'classes': ('collapse',)
        }),
        TIMESTAMPS,
    )

    def get_queryset(self, request):
        """Optimize queryset with select_related"""
        return super().get_queryset(request).select_related('recipient', 'locked_by')


@admin.register(DonationRecord)
class DonationRecordAdmin(admin.ModelAdmin):
    list_display = ['donor', 'blood_type', 'units_provided', 'donation_date', 'verification_status', 'is_locked']
    list_filter = ['verification_status', 'blood_type', 'is_locked']
    search_fields = ['donor__username', 'donor__email', 'center_name']
    readonly_fields = ['created_at', 'updated_at', 'verified_at', 'locked_at', 'override_history']

    def has_change_permission(self, request, obj=None):
        # Locked records change through the override workflow only
        if obj is not None and obj.is_locked:
            return False
        return super().has_change_permission(request, obj)


@admin.register(DigitalDonationCard)
class DigitalDonationCardAdmin(admin.ModelAdmin):
    list_display = ['card_number', 'donor', 'issued_at', 'valid_until', 'verification_count', 'is_revoked']
    list_filter = ['is_revoked']
    search_fields = ['card_number', 'donor__username']
    readonly_fields = ['qr_payload', 'qr_image', 'verification_count', 'last_verified_at']


class LeaderboardEntryInline(admin.TabularInline):
    model = LeaderboardEntry
    extra = 0
    readonly_fields = ['donor', 'points', 'rank', 'rank_change', 'total_donations', 'badge']


@admin.register(Leaderboard)
class LeaderboardAdmin(admin.ModelAdmin):
    list_display = ['period', 'year', 'month', 'week', 'is_active']
    list_filter = ['period', 'is_active']
    inlines = [LeaderboardEntryInline]


@admin.register(Badge)
class BadgeAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'is_active', 'auto_assign', 'assignment_count', 'priority']
    list_filter = ['category', 'is_active', 'auto_assign']
    search_fields = ['name', 'description']


@admin.register(UserBadge)
class UserBadgeAdmin(admin.ModelAdmin):
    list_display = ['user', 'badge', 'is_active', 'assigned_by', 'created_at']
    list_filter = ['is_active', 'badge']
    search_fields = ['user__username', 'badge__name']


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['title', 'user', 'notification_type', 'priority', 'is_read', 'created_at']
    list_filter = ['notification_type', 'priority', 'is_read', 'created_at']
    search_fields = ['user__username', 'title', 'message']
    readonly_fields = ['created_at', 'updated_at', 'read_at']

    fieldsets = (
        ('Notification Info', {
            'fields': ('user', 'notification_type', 'priority', 'title', 'message', 'is_read', 'read_at')
        }),
        ('Related Objects', {
            'fields': ('related_model', 'related_id', 'data'),
            'classes': ('collapse',)
        }),
        TIMESTAMPS,
    )


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['action', 'category', 'performer_name', 'target_model', 'target_id', 'severity', 'created_at']
    list_filter = ['category', 'action', 'severity']
    search_fields = ['performer_name', 'performer_email', 'target_identifier', 'description']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Chat)
class ChatAdmin(admin.ModelAdmin):
    list_display = ['id', 'blood_request', 'last_message_at', 'is_active']
    list_filter = ['is_active']
    filter_horizontal = ['participants']


@admin.register(ChatMessage)
class ChatMessageAdmin(admin.ModelAdmin):
    list_display = ['chat', 'sender', 'created_at', 'is_flagged', 'is_hidden', 'report_count']
    list_filter = ['is_flagged', 'is_hidden']
    search_fields = ['content', 'sender__username']
    readonly_fields = ['reports', 'flagged_by', 'flagged_at', 'hidden_by', 'hidden_at']


@admin.register(BlogPost)
class BlogPostAdmin(admin.ModelAdmin):
    list_display = ['title', 'category', 'status', 'author', 'published_at', 'view_count']
    list_filter = ['status', 'category']
    search_fields = ['title', 'content']
    readonly_fields = ['slug', 'view_count', 'published_at']


@admin.register(BlogComment)
class BlogCommentAdmin(admin.ModelAdmin):
    list_display = ['post', 'user', 'created_at']
    search_fields = ['content', 'user__username']


@admin.register(BloodCampEvent)
class BloodCampEventAdmin(admin.ModelAdmin):
    list_display = ['title', 'venue_name', 'start_datetime', 'status', 'is_published', 'target_donors']
    list_filter = ['status', 'is_published']
    search_fields = ['title', 'venue_name', 'organizer']
    filter_horizontal = ['registered_donors']


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ['reviewer', 'reviewee', 'rating', 'review_type', 'status', 'report_count', 'created_at']
    list_filter = ['status', 'review_type', 'rating']
    search_fields = ['reviewer__username', 'reviewee__username', 'comment']


@admin.register(SystemConfig)
class SystemConfigAdmin(admin.ModelAdmin):
    list_display = ['id', 'updated_at']
    readonly_fields = ['change_history']

    def has_add_permission(self, request):
        return not SystemConfig.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False
