from rest_framework import viewsets, mixins, status, filters
from rest_framework.decorators import action
from rest_framework.parsers import MultiPartParser, FormParser, JSONParser
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView
from django_filters.rest_framework import DjangoFilterBackend
from django.contrib.auth import get_user_model
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
import logging

from core.models import (
    DonationRecord, DigitalDonationCard, Badge, Review, BlogPost, BloodCampEvent,
)
from core.services import (
    AccountService, AnalyticsService, AuditService, AvailabilityService, BadgeService, BlogService,
    CardService, ChatService,
    ConfigService, DonationService, EligibilityService, EventService, FallbackService,
    LeaderboardService, MatchingService, NotificationService, RequestService, ReviewService,
    VerificationService, VisibilityService,
)
from core.services.base import ServiceResponse
from .serializers import (
    CustomTokenObtainPairSerializer,
    RegisterSerializer, UserSerializer, ProfileUpdateSerializer, ChangePasswordSerializer,
    VerificationUserSerializer,
    WeeklySlotSerializer, CustomAvailabilitySerializer, ScheduleSerializer,
    BloodRequestSerializer, BloodRequestUpdateSerializer, RespondSerializer,
    RequestMatchSerializer, VisibleRequestSerializer, DonorMatchSerializer,
    DonationRecordSerializer, DonationCreateSerializer, DonationUpdateSerializer, ReasonSerializer,
    DigitalDonationCardSerializer,
    BadgeSerializer, UserBadgeSerializer, BadgeAssignmentSerializer,
    NotificationSerializer, AuditLogSerializer,
    BlogPostSerializer, BlogPostDetailSerializer, BlogCommentSerializer, BloodCampEventSerializer,
    ReviewSerializer, ReviewModerationSerializer,
    ChatSerializer, ChatCreateSerializer, ChatMessageSerializer, ChatMessageModerationSerializer,
    MessageReportSerializer,
)
from .permissions import IsAdminRole, IsDonor, IsRecipient, IsOwnerOrAdmin
from .throttles import BurstRateThrottle, SustainedRateThrottle, AuthRateThrottle, VerifyQRRateThrottle

User = get_user_model()
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ServiceResponse.INVALID: status.HTTP_400_BAD_REQUEST,
    ServiceResponse.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ServiceResponse.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ServiceResponse.CONFLICT: status.HTTP_409_CONFLICT,
    ServiceResponse.SERVER_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

ADMIN_PERMISSIONS = [IsAuthenticated, IsAdminRole]


def error_response(response):
    """Translate a failed ServiceResponse into an API error"""
    body = {'error': response.message}
    if response.errors:
        body['errors'] = response.errors
    return Response(body, status=ERROR_STATUS.get(response.code, status.HTTP_400_BAD_REQUEST))


def service_result(response, serializer_class=None, status_code=status.HTTP_200_OK, context=None, many=False):
    """Serialized payload of a successful ServiceResponse, or its error"""
    if not response:
        return error_response(response)
    if serializer_class is not None:
        return Response(serializer_class(response.data, many=many, context=context).data, status=status_code)
    if response.data is None:
        return Response({'status': response.message}, status=status_code)
    return Response(response.data, status=status_code)


def is_admin_user(user):
    if not user or not user.is_authenticated:
        return False
    profile = getattr(user, 'profile', None)
    return user.is_superuser or bool(profile and profile.is_admin)


def parse_moment(value):
    """Aware datetime from an ISO query param, or None when absent or unparseable"""
    if not value:
        return None
    moment = parse_datetime(value)
    if moment is not None and timezone.is_naive(moment):
        moment = timezone.make_aware(moment)
    return moment


def parse_threshold_hours(value):
    """Positive whole hours, or None when absent; raises ValueError otherwise"""
    if value in (None, ''):
        return None
    hours = int(value)
    if hours < 1:
        raise ValueError("threshold_hours must be positive")
    return hours


# =============================================================================
# AUTHENTICATION & ACCOUNTS
# =============================================================================

class CustomTokenObtainPairView(TokenObtainPairView):
    """Custom JWT token view with role and verification claims"""
    serializer_class = CustomTokenObtainPairSerializer
    throttle_classes = [BurstRateThrottle]


class RegisterView(APIView):
    """Create a donor, recipient or admin account and return JWT tokens"""
    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [AuthRateThrottle]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        response = AccountService.register(serializer.validated_data)
        if not response:
            return error_response(response)

        return Response({
            'message': response.message,
            'user': UserSerializer(response.data['user']).data,
            'tokens': response.data['tokens'],
        }, status=status.HTTP_201_CREATED)


class UserViewSet(viewsets.ReadOnlyModelViewSet):
    """ViewSet for user accounts and the caller's own profile"""
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated]
    throttle_classes = [SustainedRateThrottle]
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        """Users can only see their own data unless admin"""
        queryset = User.objects.select_related('profile')
        if is_admin_user(self.request.user):
            return queryset.order_by('id')
        return queryset.filter(id=self.request.user.id)

    @action(detail=False, methods=['get', 'patch'])
    def me(self, request):
        """Get or update the current user's profile"""
        if request.method == 'GET':
            return Response(self.get_serializer(request.user).data)

        serializer = ProfileUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        response = AccountService.update_profile(request.user, serializer.validated_data)
        if not response:
            return error_response(response)

        user = User.objects.select_related('profile').get(id=request.user.id)
        return Response(self.get_serializer(user).data)

    @action(detail=False, methods=['post'])
    def change_password(self, request):
        serializer = ChangePasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        response = AccountService.change_password(
            request.user,
            serializer.validated_data['current_password'],
            serializer.validated_data['new_password'],
        )
        return service_result(response)

    @action(detail=False, methods=['get', 'post'], parser_classes=[MultiPartParser, FormParser, JSONParser])
    def hospital_id(self, request):
        """Upload the hospital ID document or read its review status"""
        if request.method == 'GET':
            return Response(AccountService.hospital_id_status(request.user.profile))

        response = AccountService.upload_hospital_id(request.user, request.FILES.get('document'))
        return service_result(response)

    @action(detail=False, methods=['patch'], permission_classes=[IsAuthenticated, IsDonor])
    def search_radius(self, request):
        """Update the donor's availability radius (1-200 km)"""
        response = RequestService.update_search_radius(request.user, request.data.get('radius'))
        return service_result(response)


class VerificationViewSet(viewsets.GenericViewSet):
    """
    Admin review of accounts.
    Detail routes take the user id.
    """
    serializer_class = VerificationUserSerializer
    permission_classes = ADMIN_PERMISSIONS
    throttle_classes = [BurstRateThrottle]
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        return VerificationService.filter_users(self.request.query_params)

    def list(self, request):
        """List users filtered by role, verification_status, is_active and search"""
        page = self.paginate_queryset(self.get_queryset())
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    @action(detail=False, methods=['get'])
    def pending(self, request):
        pending = VerificationService.get_pending()
        return Response({
            'users': VerificationUserSerializer(pending['users'], many=True).data,
            'donations': DonationRecordSerializer(pending['donations'], many=True).data,
        })

    @action(detail=False, methods=['get'])
    def dashboard(self, request):
        return Response(VerificationService.get_dashboard())

    @action(detail=True, methods=['post'])
    def verify(self, request, pk=None):
        response = VerificationService.verify_user(
            int(pk), request.user, notes=request.data.get('notes', ''), request=request
        )
        return service_result(response, VerificationUserSerializer)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        response = VerificationService.reject_user(
            int(pk), request.user, request.data.get('reason', ''), request=request
        )
        return service_result(response, VerificationUserSerializer)

    @action(detail=True, methods=['post'])
    def request_resubmission(self, request, pk=None):
        response = VerificationService.request_resubmission(
            int(pk), request.user, request.data.get('reason', ''), request=request
        )
        return service_result(response, VerificationUserSerializer)

    @action(detail=True, methods=['post'])
    def revoke(self, request, pk=None):
        response = VerificationService.revoke_verification(
            int(pk), request.user, request.data.get('reason', ''), request=request
        )
        return service_result(response, VerificationUserSerializer)

    @action(detail=True, methods=['post'])
    def activate(self, request, pk=None):
        response = VerificationService.set_active(
            int(pk), request.user, True, request.data.get('reason', ''), request=request
        )
        return service_result(response, VerificationUserSerializer)

    @action(detail=True, methods=['post'])
    def deactivate(self, request, pk=None):
        response = VerificationService.set_active(
            int(pk), request.user, False, request.data.get('reason', ''), request=request
        )
        return service_result(response, VerificationUserSerializer)


# =============================================================================
# DONORS & AVAILABILITY
# =============================================================================

class DonorViewSet(viewsets.GenericViewSet):
    """Donor search, eligibility and public availability"""
    permission_classes = [IsAuthenticated]
    throttle_classes = [BurstRateThrottle, SustainedRateThrottle]
    lookup_value_regex = r'\d+'

    def _check_access(self, request, donor_id):
        return donor_id == request.user.id or is_admin_user(request.user)

    @action(detail=False, methods=['get'])
    def search(self, request):
        """Compatible donors ranked by match score"""
        response = MatchingService.search_donors(request.query_params)
        if not response:
            return error_response(response)
        return Response({
            'message': response.message,
            'count': len(response.data),
            'results': DonorMatchSerializer(response.data, many=True).data,
        })

    @action(detail=False, methods=['get'], permission_classes=[IsAuthenticated, IsDonor])
    def eligibility(self, request):
        return Response(EligibilityService.check_donation_eligibility(request.user, use_cache=True))

    @action(detail=False, methods=['get'], permission_classes=[IsAuthenticated, IsDonor])
    def statistics(self, request):
        return Response(EligibilityService.get_donor_statistics(request.user))

    @action(detail=True, methods=['get'], url_path='eligibility', url_name='donor-eligibility')
    def donor_eligibility(self, request, pk=None):
        donor_id = int(pk)
        if not self._check_access(request, donor_id):
            return Response({'error': 'You can only view your own eligibility'}, status=status.HTTP_403_FORBIDDEN)
        donor = User.objects.filter(id=donor_id).first()
        return Response(EligibilityService.check_donation_eligibility(donor, use_cache=True))

    @action(detail=True, methods=['get'])
    def schedule(self, request, pk=None):
        """Public view of a donor's weekly schedule and overrides"""
        response = AvailabilityService.get_public_schedule(int(pk))
        return service_result(response, ScheduleSerializer)

    @action(detail=True, methods=['get'])
    def availability(self, request, pk=None):
        """Whether the donor is available at ?at=<ISO datetime> (default now)"""
        response = AvailabilityService.check_availability(int(pk), parse_moment(request.query_params.get('at')))
        return service_result(response)


class AvailabilityViewSet(viewsets.ViewSet):
    """The current donor's scheduled availability"""
    permission_classes = [IsAuthenticated, IsDonor]
    throttle_classes = [BurstRateThrottle]

    def list(self, request):
        response = AvailabilityService.get_schedule(request.user)
        return service_result(response, ScheduleSerializer)

    @action(detail=False, methods=['post'])
    def toggle(self, request):
        response = AvailabilityService.toggle_schedule(
            request.user, request.data.get('enabled'), request.data.get('timezone')
        )
        return service_result(response, ScheduleSerializer)

    @action(detail=False, methods=['get'])
    def check(self, request):
        response = AvailabilityService.check_availability(
            request.user.id, parse_moment(request.query_params.get('at'))
        )
        return service_result(response)

    @action(detail=False, methods=['get', 'post'])
    def slots(self, request):
        if request.method == 'GET':
            slots = request.user.donor_profile.weekly_slots.all()
            return Response(WeeklySlotSerializer(slots, many=True).data)

        serializer = WeeklySlotSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        response = AvailabilityService.add_weekly_slot(request.user, serializer.validated_data)
        return service_result(response, WeeklySlotSerializer, status.HTTP_201_CREATED)

    @action(detail=False, methods=['patch', 'delete'], url_path=r'slots/(?P<slot_id>\d+)')
    def slot_detail(self, request, slot_id=None):
        if request.method == 'DELETE':
            return service_result(AvailabilityService.delete_weekly_slot(request.user, int(slot_id)))

        serializer = WeeklySlotSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        response = AvailabilityService.update_weekly_slot(request.user, int(slot_id), serializer.validated_data)
        return service_result(response, WeeklySlotSerializer)

    @action(detail=False, methods=['get', 'post'])
    def custom(self, request):
        if request.method == 'GET':
            entries = request.user.donor_profile.custom_availability.all()
            return Response(CustomAvailabilitySerializer(entries, many=True).data)

        serializer = CustomAvailabilitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        response = AvailabilityService.add_custom_availability(request.user, serializer.validated_data)
        return service_result(response, CustomAvailabilitySerializer, status.HTTP_201_CREATED)

    @action(detail=False, methods=['patch', 'delete'], url_path=r'custom/(?P<entry_id>\d+)')
    def custom_detail(self, request, entry_id=None):
        if request.method == 'DELETE':
            return service_result(AvailabilityService.delete_custom_availability(request.user, int(entry_id)))

        serializer = CustomAvailabilitySerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        response = AvailabilityService.update_custom_availability(
            request.user, int(entry_id), serializer.validated_data
        )
        return service_result(response, CustomAvailabilitySerializer)


# =============================================================================
# BLOOD REQUESTS
# =============================================================================

class BloodRequestViewSet(viewsets.ModelViewSet):
    """
    ViewSet for blood requests.
    Recipients see their own requests, donors the ones visible to them, admins all.
    """
    serializer_class = BloodRequestSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['status', 'urgency', 'blood_type']
    search_fields = ['patient_name', 'hospital_name', 'location']
    ordering_fields = ['created_at', 'required_by', 'units_required']
    ordering = ['-created_at']
    throttle_classes = [BurstRateThrottle, SustainedRateThrottle]
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        return RequestService.get_requests_for_user(self.request.user)

    def get_permissions(self):
        if self.action == 'create':
            return [IsAuthenticated(), IsRecipient()]
        return super().get_permissions()

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        response = RequestService.create_request(request.user, serializer.validated_data)
        if not response:
            return error_response(response)

        return Response({
            'message': response.message,
            'request': BloodRequestSerializer(response.data['request']).data,
            'donors_notified': response.data['donors_notified'],
        }, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        """Owner/admin update of units_required, required_by, notes or status=cancelled"""
        serializer = BloodRequestUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        response = RequestService.update_request(kwargs['pk'], request.user, serializer.validated_data)
        return service_result(response, BloodRequestSerializer)

    def destroy(self, request, *args, **kwargs):
        """Cancel rather than delete; the history is kept"""
        reason = request.data.get('reason', '') if hasattr(request.data, 'get') else ''
        response = RequestService.cancel_request(kwargs['pk'], request.user, reason)
        return service_result(response, BloodRequestSerializer)

    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, IsDonor])
    def respond(self, request, pk=None):
        """Accept (and lock) or decline a request"""
        serializer = RespondSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        response = RequestService.respond_to_request(
            pk, request.user,
            serializer.validated_data['action'],
            serializer.validated_data['reason'],
        )
        if not response:
            return error_response(response)

        return Response({
            'message': response.message,
            'request': BloodRequestSerializer(response.data['request']).data,
            'response': response.data['match'].response,
        })

    @action(detail=False, methods=['get'], permission_classes=[IsAuthenticated, IsDonor])
    def my_matches(self, request):
        matches = RequestService.get_donor_matches(request.user)
        response_filter = request.query_params.get('response')
        if response_filter:
            matches = matches.filter(response=response_filter)

        page = self.paginate_queryset(matches)
        serializer = RequestMatchSerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    @action(detail=False, methods=['get'], permission_classes=[IsAuthenticated, IsDonor])
    def visible(self, request):
        """Requests visible to the donor with a summary by visibility reason"""
        params = request.query_params
        try:
            page = int(params.get('page', 1))
            limit = int(params.get('limit', 20))
        except ValueError:
            return Response({'error': 'page and limit must be integers'}, status=status.HTTP_400_BAD_REQUEST)

        response = VisibilityService.get_visible_requests_for_donor(
            request.user, sort_by=params.get('sort_by', 'urgency'), page=page, limit=limit
        )
        if not response:
            return error_response(response)

        return Response({
            'results': VisibleRequestSerializer(response.data['results'], many=True).data,
            'pagination': response.data['pagination'],
            'summary': response.data['summary'],
        })

    @action(detail=True, methods=['get'], permission_classes=[IsAuthenticated, IsDonor])
    def visibility(self, request, pk=None):
        return service_result(VisibilityService.check_single_request_visibility(pk, request.user))

    @action(detail=False, methods=['get'], permission_classes=ADMIN_PERMISSIONS)
    def visibility_stats(self, request):
        return Response(VisibilityService.get_visibility_statistics())

    # -------------------------------------------------------------------------
    # Fallback
    # -------------------------------------------------------------------------

    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, IsRecipient])
    def consent(self, request, pk=None):
        """Recipient consent to widen the donor search"""
        consent = request.data.get('consent')
        if not isinstance(consent, bool):
            return Response({'error': 'consent must be true or false'}, status=status.HTTP_400_BAD_REQUEST)

        response = FallbackService.set_expansion_consent(pk, request.user, consent)
        return service_result(response, BloodRequestSerializer)

    @action(detail=False, methods=['get'], permission_classes=ADMIN_PERMISSIONS)
    def unmatched(self, request):
        try:
            threshold = parse_threshold_hours(request.query_params.get('threshold_hours'))
        except (TypeError, ValueError):
            return Response({'error': 'threshold_hours must be a positive integer'}, status=status.HTTP_400_BAD_REQUEST)

        requests = FallbackService.detect_unmatched_requests(threshold)
        return Response({
            'count': requests.count(),
            'results': BloodRequestSerializer(requests, many=True).data,
        })

    @action(detail=True, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def expand_radius(self, request, pk=None):
        response = FallbackService.suggest_radius_expansion(pk, request.data.get('radius'))
        return service_result(response)

    @action(detail=True, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def notify_unavailable(self, request, pk=None):
        return service_result(FallbackService.notify_unavailable_donors(pk))

    @action(detail=True, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def suggest_facilities(self, request, pk=None):
        return service_result(FallbackService.suggest_nearby_facilities(pk))

    @action(detail=True, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def notify_admins(self, request, pk=None):
        return service_result(FallbackService.notify_admin_critical(pk))

    @action(detail=True, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def process_fallback(self, request, pk=None):
        return service_result(FallbackService.process_fallback(int(pk)))

    @action(detail=False, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def run_fallback(self, request):
        try:
            threshold = parse_threshold_hours(request.data.get('threshold_hours'))
        except (TypeError, ValueError):
            return Response({'error': 'threshold_hours must be a positive integer'}, status=status.HTTP_400_BAD_REQUEST)
        return Response(FallbackService.run_fallback_system(threshold))


# =============================================================================
# DONATIONS & CARDS
# =============================================================================

class DonationViewSet(viewsets.ModelViewSet):
    """
    ViewSet for donation records.
    Verified records are locked and change only through an admin override.
    """
    serializer_class = DonationRecordSerializer
    permission_classes = [IsAuthenticated, IsOwnerOrAdmin]
    throttle_classes = [BurstRateThrottle, SustainedRateThrottle]
    http_method_names = ['get', 'post', 'patch', 'head', 'options']
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        params = self.request.query_params if self.action == 'list' else {}
        return DonationService.get_donations_for_user(self.request.user, params).order_by('-donation_date')

    def get_permissions(self):
        if self.action in ('update', 'partial_update'):
            return [IsAuthenticated(), IsAdminRole()]
        return super().get_permissions()

    def create(self, request, *args, **kwargs):
        """Record a donation for the caller, or on behalf of `donor` when admin"""
        serializer = DonationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        response = DonationService.record_donation(request.user, serializer.validated_data)
        if not response and isinstance(response.data, dict):
            return Response(
                {'error': response.message, 'eligibility': response.data},
                status=status.HTTP_400_BAD_REQUEST
            )
        return service_result(response, DonationRecordSerializer, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        serializer = DonationUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        response = DonationService.update_donation(kwargs['pk'], request.user, serializer.validated_data)
        return service_result(response, DonationRecordSerializer)

    @action(detail=False, methods=['get'], permission_classes=ADMIN_PERMISSIONS)
    def pending(self, request):
        donations = DonationRecord.objects.filter(
            verification_status=DonationRecord.PENDING
        ).select_related('donor', 'recipient').order_by('donation_date')
        page = self.paginate_queryset(donations)
        return self.get_paginated_response(DonationRecordSerializer(page, many=True).data)

    @action(detail=True, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def verify(self, request, pk=None):
        """Verify, lock, award points and issue the digital card"""
        response = DonationService.verify_donation(pk, request.user, request=request)
        if not response:
            return error_response(response)

        return Response({
            'message': response.message,
            'donation': DonationRecordSerializer(response.data['donation']).data,
            'card': DigitalDonationCardSerializer(response.data['card']).data,
        })

    @action(detail=True, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def reject(self, request, pk=None):
        response = DonationService.reject_donation(
            pk, request.user, request.data.get('reason', ''), request=request
        )
        return service_result(response, DonationRecordSerializer)

    @action(detail=True, methods=['get'])
    def immutability(self, request, pk=None):
        donation = self.get_object()
        return Response(DonationService.get_immutability_status(donation))

    @action(detail=True, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def lock(self, request, pk=None):
        return service_result(
            DonationService.lock_donation(pk, request.user, request=request), DonationRecordSerializer
        )

    @action(detail=True, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def unlock(self, request, pk=None):
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        response = DonationService.unlock_donation(
            pk, request.user, serializer.validated_data['reason'], request=request
        )
        return service_result(response, DonationRecordSerializer)

    @action(detail=True, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def override(self, request, pk=None):
        """Correct a locked record; body is {fields: {...}, reason}"""
        response = DonationService.admin_override(
            pk, request.user,
            request.data.get('fields'),
            request.data.get('reason', ''),
            request=request,
        )
        return service_result(response, DonationRecordSerializer)

    @action(detail=False, methods=['get'])
    def validate_count(self, request):
        """Compare a donor's total_donations with their verified records"""
        donor = request.user
        donor_id = request.query_params.get('donor')
        if donor_id and is_admin_user(request.user):
            donor = User.objects.filter(id=donor_id).first()
            if donor is None:
                return Response({'error': 'Donor not found'}, status=status.HTTP_404_NOT_FOUND)
        return service_result(DonationService.validate_donation_count(donor))

    @action(detail=False, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def sync_counts(self, request):
        return Response(DonationService.sync_all_donation_counts())


class CardViewSet(viewsets.ReadOnlyModelViewSet):
    """Digital donation cards looked up by card number"""
    serializer_class = DigitalDonationCardSerializer
    permission_classes = [IsAuthenticated, IsOwnerOrAdmin]
    throttle_classes = [BurstRateThrottle]
    lookup_field = 'card_number'

    def get_queryset(self):
        queryset = DigitalDonationCard.objects.select_related('donor', 'donation').order_by('-issued_at')
        if is_admin_user(self.request.user):
            donor_id = self.request.query_params.get('donor')
            return queryset.filter(donor_id=donor_id) if donor_id else queryset
        return queryset.filter(donor=self.request.user)

    def retrieve(self, request, *args, **kwargs):
        response = CardService.get_card(kwargs['card_number'], request.user)
        return service_result(response, DigitalDonationCardSerializer)

    def _card_id(self, card_number):
        return DigitalDonationCard.objects.filter(card_number=card_number).values_list('id', flat=True).first()

    @action(detail=False, methods=['get'], url_path=r'donor/(?P<donor_id>\d+)')
    def by_donor(self, request, donor_id=None):
        response = CardService.get_cards_for_donor(int(donor_id), request.user)
        return service_result(response, DigitalDonationCardSerializer, many=True)

    @action(detail=True, methods=['post'])
    def regenerate(self, request, card_number=None):
        card_id = self._card_id(card_number)
        if card_id is None:
            return Response({'error': 'Card not found'}, status=status.HTTP_404_NOT_FOUND)
        return service_result(CardService.regenerate_qr(card_id, request.user), DigitalDonationCardSerializer)

    @action(detail=True, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def revoke(self, request, card_number=None):
        card_id = self._card_id(card_number)
        if card_id is None:
            return Response({'error': 'Card not found'}, status=status.HTTP_404_NOT_FOUND)
        response = CardService.revoke_card(card_id, request.user, request.data.get('reason', ''), request=request)
        return service_result(response, DigitalDonationCardSerializer)

    @action(
        detail=False, methods=['post'],
        permission_classes=[AllowAny], authentication_classes=[],
        throttle_classes=[VerifyQRRateThrottle],
    )
    def verify(self, request):
        """Public check of a scanned card QR; accepts the payload as JSON text or an object"""
        qr_data = request.data.get('qr_data')
        if qr_data is None:
            return Response({'error': 'qr_data is required'}, status=status.HTTP_400_BAD_REQUEST)
        return service_result(CardService.verify_qr(qr_data))


# =============================================================================
# LEADERBOARD & BADGES
# =============================================================================

class LeaderboardViewSet(viewsets.ViewSet):
    permission_classes = [IsAuthenticated]
    throttle_classes = [SustainedRateThrottle]

    def list(self, request):
        """Ranked entries for ?period=all-time|yearly|monthly|weekly"""
        try:
            limit = int(request.query_params.get('limit', 100))
        except ValueError:
            return Response({'error': 'limit must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
        response = LeaderboardService.get_leaderboard(request.query_params.get('period', 'all-time'), limit)
        return service_result(response)

    @action(detail=False, methods=['get'], permission_classes=[IsAuthenticated, IsDonor])
    def my_rank(self, request):
        response = LeaderboardService.get_donor_rank(request.user, request.query_params.get('period', 'all-time'))
        return service_result(response)

    @action(detail=False, methods=['get'])
    def by_blood_type(self, request):
        blood_type = request.query_params.get('blood_type', '')
        try:
            limit = int(request.query_params.get('limit', 10))
        except ValueError:
            return Response({'error': 'limit must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
        return service_result(LeaderboardService.get_top_donors_by_blood_type(blood_type, limit))


class BadgeViewSet(viewsets.ModelViewSet):
    """Badges are soft deleted; assignments keep their history"""
    serializer_class = BadgeSerializer
    permission_classes = [IsAuthenticated]
    throttle_classes = [BurstRateThrottle]
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        include_inactive = (
            self.request.query_params.get('include_inactive') == 'true'
            and is_admin_user(self.request.user)
        )
        return BadgeService.list_badges(include_inactive=include_inactive).order_by('-priority', 'name')

    def get_permissions(self):
        if self.action in ('create', 'update', 'partial_update', 'destroy'):
            return [IsAuthenticated(), IsAdminRole()]
        return super().get_permissions()

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        response = BadgeService.create_badge(request.user, serializer.validated_data)
        return service_result(response, BadgeSerializer, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        badge = Badge.objects.filter(id=kwargs['pk']).first()
        if badge is None:
            return Response({'error': 'Badge not found'}, status=status.HTTP_404_NOT_FOUND)
        serializer = self.get_serializer(badge, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        response = BadgeService.update_badge(badge.id, serializer.validated_data)
        return service_result(response, BadgeSerializer)

    def destroy(self, request, *args, **kwargs):
        return service_result(BadgeService.deactivate_badge(kwargs['pk']))

    @action(detail=True, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def assign(self, request, pk=None):
        serializer = BadgeAssignmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        response = BadgeService.assign_badge(
            int(pk), serializer.validated_data['user'],
            assigned_by=request.user,
            reason=serializer.validated_data['reason'],
            request=request,
        )
        return service_result(response, UserBadgeSerializer, status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def revoke(self, request, pk=None):
        serializer = BadgeAssignmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        response = BadgeService.revoke_badge(
            int(pk), serializer.validated_data['user'], request.user,
            reason=serializer.validated_data['reason'],
            request=request,
        )
        return service_result(response, UserBadgeSerializer)

    @action(detail=False, methods=['get'])
    def mine(self, request):
        return Response(UserBadgeSerializer(BadgeService.get_user_badges(request.user), many=True).data)

    @action(detail=False, methods=['get'], url_path=r'user/(?P<user_id>\d+)')
    def user_badges(self, request, user_id=None):
        user = User.objects.filter(id=user_id).first()
        if user is None:
            return Response({'error': 'User not found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(UserBadgeSerializer(BadgeService.get_user_badges(user), many=True).data)

    @action(detail=False, methods=['get'], permission_classes=ADMIN_PERMISSIONS)
    def stats(self, request):
        return Response(BadgeService.get_badge_stats())

    @action(detail=False, methods=['get'], url_path=r'history/(?P<user_id>\d+)', permission_classes=ADMIN_PERMISSIONS)
    def history(self, request, user_id=None):
        user = User.objects.filter(id=user_id).first()
        if user is None:
            return Response({'error': 'User not found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(UserBadgeSerializer(BadgeService.get_assignment_history(user), many=True).data)


# =============================================================================
# NOTIFICATIONS & AUDIT
# =============================================================================

class NotificationViewSet(mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          mixins.DestroyModelMixin,
                          viewsets.GenericViewSet):
    """ViewSet for the current user's notifications"""
    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]
    throttle_classes = [SustainedRateThrottle]
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        """Own notifications, optionally ?unread=true and ?type=<notification_type>"""
        return NotificationService.get_user_notifications(
            self.request.user,
            unread_only=self.request.query_params.get('unread') == 'true',
            notification_type=self.request.query_params.get('type'),
        )

    def destroy(self, request, *args, **kwargs):
        response = NotificationService.delete_notification(kwargs['pk'], request.user)
        if not response:
            return error_response(response)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'])
    def mark_read(self, request, pk=None):
        """Mark notification as read"""
        response = NotificationService.mark_notification_read(pk, request.user)
        if response.success:
            return Response({'status': 'Notification marked as read'})
        return error_response(response)

    @action(detail=False, methods=['post'])
    def mark_all_read(self, request):
        """Mark all notifications as read"""
        response = NotificationService.mark_all_read(request.user)
        if response.success:
            return Response({'status': response.message, 'count': response.data['count']})
        return error_response(response)

    @action(detail=False, methods=['get'])
    def unread_count(self, request):
        """Get count of unread notifications"""
        return Response({'unread_count': NotificationService.get_unread_count(request.user)})


class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    """Admin read access to the audit trail"""
    serializer_class = AuditLogSerializer
    permission_classes = ADMIN_PERMISSIONS
    throttle_classes = [BurstRateThrottle]
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        return AuditService.filter_logs(self.request.query_params)

    def _paginated(self, queryset):
        page = self.paginate_queryset(queryset)
        return self.get_paginated_response(self.get_serializer(page, many=True).data)

    @action(detail=False, methods=['get'])
    def statistics(self, request):
        try:
            days = int(request.query_params.get('days', 30))
        except ValueError:
            return Response({'error': 'days must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
        return service_result(AuditService.get_statistics(days))

    @action(detail=False, methods=['get'])
    def critical(self, request):
        return Response(self.get_serializer(AuditService.get_critical(), many=True).data)

    @action(detail=False, methods=['get'])
    def mine(self, request):
        return self._paginated(AuditService.filter_logs({'performed_by': request.user.id}))

    @action(detail=False, methods=['get'], url_path=r'user/(?P<user_id>\d+)')
    def for_user(self, request, user_id=None):
        return self._paginated(AuditService.filter_logs({'target_model': 'User', 'target_id': user_id}))

    @action(detail=False, methods=['get'], url_path=r'target/(?P<target_model>\w+)/(?P<target_id>[^/.]+)')
    def for_target(self, request, target_model=None, target_id=None):
        return self._paginated(AuditService.filter_logs({'target_model': target_model, 'target_id': target_id}))


# =============================================================================
# CONTENT
# =============================================================================

class BlogPostViewSet(viewsets.ModelViewSet):
    """Blog posts by slug; writing is admin only"""
    serializer_class = BlogPostSerializer
    permission_classes = [IsAuthenticated]
    throttle_classes = [BurstRateThrottle]
    lookup_field = 'slug'
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def get_queryset(self):
        return BlogService.list_posts(self.request.user, self.request.query_params).order_by('-created_at')

    def get_permissions(self):
        if self.action in ('list', 'retrieve'):
            return [AllowAny()]
        if self.action in ('create', 'update', 'partial_update', 'destroy'):
            return [IsAuthenticated(), IsAdminRole()]
        return super().get_permissions()

    def retrieve(self, request, *args, **kwargs):
        response = BlogService.get_post(kwargs['slug'], request.user)
        return service_result(response, BlogPostDetailSerializer)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        response = BlogService.create_post(request.user, serializer.validated_data)
        return service_result(response, BlogPostSerializer, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        post = BlogPost.objects.filter(slug=kwargs['slug']).first()
        if post is None:
            return Response({'error': 'Blog post not found'}, status=status.HTTP_404_NOT_FOUND)
        serializer = self.get_serializer(post, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        return service_result(BlogService.update_post(post.id, serializer.validated_data), BlogPostSerializer)

    def destroy(self, request, *args, **kwargs):
        post = BlogPost.objects.filter(slug=kwargs['slug']).first()
        if post is None:
            return Response({'error': 'Blog post not found'}, status=status.HTTP_404_NOT_FOUND)
        return service_result(BlogService.delete_post(post.id))

    @action(detail=True, methods=['post'])
    def like(self, request, slug=None):
        post = BlogPost.objects.filter(slug=slug).first()
        if post is None:
            return Response({'error': 'Blog post not found'}, status=status.HTTP_404_NOT_FOUND)
        return service_result(BlogService.toggle_like(post.id, request.user))

    @action(detail=True, methods=['get', 'post'])
    def comments(self, request, slug=None):
        post = BlogPost.objects.filter(slug=slug, status=BlogPost.PUBLISHED).first()
        if post is None:
            return Response({'error': 'Blog post not found'}, status=status.HTTP_404_NOT_FOUND)

        if request.method == 'GET':
            comments = post.comments.select_related('user').order_by('created_at')
            return Response(BlogCommentSerializer(comments, many=True).data)

        response = BlogService.add_comment(post.id, request.user, request.data.get('content', ''))
        return service_result(response, BlogCommentSerializer, status.HTTP_201_CREATED)


class EventViewSet(viewsets.ModelViewSet):
    """Blood camp events; registration returns a signed check-in QR"""
    serializer_class = BloodCampEventSerializer
    permission_classes = [IsAuthenticated]
    throttle_classes = [BurstRateThrottle]
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        return EventService.list_events(self.request.user, self.request.query_params).order_by('start_datetime')

    def get_permissions(self):
        if self.action in ('list', 'retrieve'):
            return [AllowAny()]
        if self.action in ('create', 'update', 'partial_update', 'destroy'):
            return [IsAuthenticated(), IsAdminRole()]
        return super().get_permissions()

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        response = EventService.create_event(request.user, serializer.validated_data)
        return service_result(response, BloodCampEventSerializer, status.HTTP_201_CREATED,
                              context=self.get_serializer_context())

    def update(self, request, *args, **kwargs):
        event = BloodCampEvent.objects.filter(id=kwargs['pk']).first()
        if event is None:
            return Response({'error': 'Event not found'}, status=status.HTTP_404_NOT_FOUND)
        serializer = self.get_serializer(event, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        response = EventService.update_event(event.id, serializer.validated_data)
        return service_result(response, BloodCampEventSerializer, context=self.get_serializer_context())

    def destroy(self, request, *args, **kwargs):
        return service_result(EventService.delete_event(kwargs['pk']))

    @action(detail=True, methods=['post'])
    def register(self, request, pk=None):
        response = EventService.register_donor(int(pk), request.user)
        if not response:
            return error_response(response)

        return Response({
            'message': response.message,
            'event': BloodCampEventSerializer(response.data['event'], context=self.get_serializer_context()).data,
            'registered_count': response.data['registered_count'],
            'qr_code': response.data['qr_code'],
            'qr_data': response.data['qr_data'],
        }, status=status.HTTP_201_CREATED)


# =============================================================================
# REVIEWS
# =============================================================================

class ReviewViewSet(viewsets.ModelViewSet):
    """Approved reviews; reporting and admin moderation"""
    serializer_class = ReviewSerializer
    permission_classes = [IsAuthenticated]
    throttle_classes = [BurstRateThrottle]
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        return ReviewService.list_reviews(self.request.query_params.get('reviewee')).order_by('-created_at')

    def get_permissions(self):
        if self.action in ('list', 'retrieve', 'average'):
            return [AllowAny()]
        return super().get_permissions()

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        response = ReviewService.create_review(request.user, serializer.validated_data)
        return service_result(response, ReviewSerializer, status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        review = Review.objects.filter(id=kwargs['pk']).first()
        if review is None:
            return Response({'error': 'Review not found'}, status=status.HTTP_404_NOT_FOUND)
        serializer = self.get_serializer(review, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        response = ReviewService.update_review(review.id, request.user, serializer.validated_data)
        return service_result(response, ReviewSerializer)

    def destroy(self, request, *args, **kwargs):
        return service_result(ReviewService.delete_review(kwargs['pk'], request.user))

    @action(detail=True, methods=['post'])
    def report(self, request, pk=None):
        return service_result(ReviewService.report_review(pk, request.user, request.data.get('reason', '')))

    @action(detail=False, methods=['get'], url_path=r'average/(?P<user_id>\d+)')
    def average(self, request, user_id=None):
        return Response(ReviewService.get_average_rating(int(user_id)))

    @action(detail=False, methods=['get'], permission_classes=ADMIN_PERMISSIONS)
    def moderation(self, request):
        """Moderation queue for ?status=pending|reported|all"""
        queue = ReviewService.get_moderation_queue(request.query_params.get('status', 'pending'))
        page = self.paginate_queryset(queue)
        return self.get_paginated_response(ReviewModerationSerializer(page, many=True).data)

    @action(detail=False, methods=['get'], permission_classes=ADMIN_PERMISSIONS)
    def moderation_stats(self, request):
        return Response(ReviewService.get_moderation_stats())

    @action(detail=True, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def approve(self, request, pk=None):
        response = ReviewService.approve_review(pk, request.user, request.data.get('reason', ''), request=request)
        return service_result(response, ReviewModerationSerializer)

    @action(detail=True, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def reject(self, request, pk=None):
        response = ReviewService.reject_review(pk, request.user, request.data.get('reason', ''), request=request)
        return service_result(response, ReviewModerationSerializer)

    @action(detail=True, methods=['post'], permission_classes=ADMIN_PERMISSIONS)
    def clear_reports(self, request, pk=None):
        response = ReviewService.clear_reports(pk, request.user, request.data.get('reason', ''), request=request)
        return service_result(response, ReviewModerationSerializer)


# =============================================================================
# CHAT
# =============================================================================

class ChatViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """The current user's conversations; admin moderation under /chats/admin/"""
    serializer_class = ChatSerializer
    permission_classes = [IsAuthenticated]
    throttle_classes = [SustainedRateThrottle]
    lookup_value_regex = r'\d+'

    def get_queryset(self):
        return ChatService.list_chats(self.request.user)

    def _paginated(self, queryset, serializer_class):
        page = self.paginate_queryset(queryset)
        data = serializer_class(page, many=True, context=self.get_serializer_context()).data
        return self.get_paginated_response(data)

    def create(self, request, *args, **kwargs):
        """Body: {participant_id, blood_request_id?}; returns the existing chat when there is one"""
        serializer = ChatCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        response = ChatService.get_or_create_chat(
            request.user,
            serializer.validated_data['participant_id'],
            serializer.validated_data.get('blood_request_id'),
        )
        if not response:
            return error_response(response)
        status_code = status.HTTP_201_CREATED if response.data['created'] else status.HTTP_200_OK
        return Response(self.get_serializer(response.data['chat']).data, status=status_code)

    @action(detail=True, methods=['get', 'post'])
    def messages(self, request, pk=None):
        if request.method == 'POST':
            response = ChatService.send_message(pk, request.user, request.data.get('content', ''))
            return service_result(response, ChatMessageSerializer, status.HTTP_201_CREATED)

        response = ChatService.get_messages(pk, request.user)
        if not response:
            return error_response(response)
        return self._paginated(response.data, ChatMessageSerializer)

    @action(detail=False, methods=['post'], url_path=r'messages/(?P<message_id>\d+)/report')
    def report_message(self, request, message_id=None):
        serializer = MessageReportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        response = ChatService.report_message(
            message_id, request.user,
            serializer.validated_data['reason'],
            serializer.validated_data['category'],
        )
        return service_result(response)

    # Moderation

    @action(detail=False, methods=['get'], permission_classes=ADMIN_PERMISSIONS, url_path='admin/stats')
    def admin_stats(self, request):
        return Response(ChatService.get_moderation_stats())

    @action(detail=False, methods=['get'], permission_classes=ADMIN_PERMISSIONS, url_path='admin/all')
    def admin_all(self, request):
        return self._paginated(ChatService.list_all_chats(request.query_params.get('search')), ChatSerializer)

    @action(detail=True, methods=['get'], permission_classes=ADMIN_PERMISSIONS, url_path='admin/messages')
    def admin_messages(self, request, pk=None):
        response = ChatService.get_chat_messages_admin(pk)
        if not response:
            return error_response(response)
        return self._paginated(response.data, ChatMessageModerationSerializer)

    @action(detail=False, methods=['get'], permission_classes=ADMIN_PERMISSIONS, url_path='admin/flagged')
    def admin_flagged(self, request):
        return self._paginated(ChatService.flagged_messages(), ChatMessageModerationSerializer)

    @action(detail=False, methods=['get'], permission_classes=ADMIN_PERMISSIONS, url_path='admin/reported')
    def admin_reported(self, request):
        return self._paginated(ChatService.reported_messages(), ChatMessageModerationSerializer)

    @action(detail=False, methods=['post'], permission_classes=ADMIN_PERMISSIONS,
            url_path=r'admin/messages/(?P<message_id>\d+)/flag')
    def flag_message(self, request, message_id=None):
        response = ChatService.flag_message(message_id, request.user, request.data.get('reason', ''), request=request)
        return service_result(response, ChatMessageModerationSerializer)

    @action(detail=False, methods=['post'], permission_classes=ADMIN_PERMISSIONS,
            url_path=r'admin/messages/(?P<message_id>\d+)/hide')
    def hide_message(self, request, message_id=None):
        response = ChatService.hide_message(message_id, request.user, request.data.get('reason', ''), request=request)
        return service_result(response, ChatMessageModerationSerializer)

    @action(detail=False, methods=['post'], permission_classes=ADMIN_PERMISSIONS,
            url_path=r'admin/messages/(?P<message_id>\d+)/unhide')
    def unhide_message(self, request, message_id=None):
        response = ChatService.unhide_message(message_id, request.user, request.data.get('reason', ''), request=request)
        return service_result(response, ChatMessageModerationSerializer)


# =============================================================================
# ANALYTICS
# =============================================================================

class AnalyticsViewSet(viewsets.ViewSet):
    """Admin dashboard aggregates"""
    permission_classes = ADMIN_PERMISSIONS
    throttle_classes = [BurstRateThrottle]

    def _months(self, request):
        months = int(request.query_params.get('months', 12))
        if not 1 <= months <= AnalyticsService.MAX_TREND_MONTHS:
            raise ValueError
        return months

    def list(self, request):
        return Response(AnalyticsService.get_dashboard_stats())

    @action(detail=False, methods=['get'])
    def donation_trends(self, request):
        try:
            months = self._months(request)
        except ValueError:
            return Response(
                {'error': f'months must be between 1 and {AnalyticsService.MAX_TREND_MONTHS}'},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return Response(AnalyticsService.get_donation_trends(months))

    @action(detail=False, methods=['get'])
    def request_trends(self, request):
        try:
            months = self._months(request)
        except ValueError:
            return Response(
                {'error': f'months must be between 1 and {AnalyticsService.MAX_TREND_MONTHS}'},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return Response(AnalyticsService.get_request_trends(months))

    @action(detail=False, methods=['get'])
    def blood_groups(self, request):
        return Response(AnalyticsService.get_blood_group_analysis())

    @action(detail=False, methods=['get'])
    def urgency(self, request):
        return Response(AnalyticsService.get_urgency_distribution())

    @action(detail=False, methods=['get'])
    def custom_range(self, request):
        """?start_date=YYYY-MM-DD&end_date=YYYY-MM-DD"""
        try:
            start = parse_date(request.query_params.get('start_date') or '')
            end = parse_date(request.query_params.get('end_date') or '')
        except ValueError:
            start = end = None
        if start is None or end is None:
            return Response(
                {'error': 'start_date and end_date are required in YYYY-MM-DD format'},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            return Response(AnalyticsService.get_custom_range(start, end))
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)


# =============================================================================
# SYSTEM CONFIGURATION
# =============================================================================

class ConfigViewSet(viewsets.ViewSet):
    """Runtime configuration; only the public subset is readable without admin rights"""
    permission_classes = ADMIN_PERMISSIONS
    throttle_classes = [BurstRateThrottle]

    def list(self, request):
        return Response(ConfigService.get_config())

    @action(detail=False, methods=['get'], permission_classes=[AllowAny])
    def public(self, request):
        return Response(ConfigService.get_public_config())

    @action(detail=False, methods=['get'])
    def history(self, request):
        return Response(ConfigService.get_history())

    @action(detail=False, methods=['put', 'patch'], url_path=r'sections/(?P<section>[a-z_]+)')
    def update_section(self, request, section=None):
        """Body: {values: {...}, reason}"""
        response = ConfigService.update_section(
            request.user, section,
            request.data.get('values'),
            request.data.get('reason', ''),
            request=request,
        )
        return service_result(response)

    @action(detail=False, methods=['post'])
    def maintenance(self, request):
        enabled = request.data.get('enabled')
        if not isinstance(enabled, bool):
            return Response({'error': 'enabled must be true or false'}, status=status.HTTP_400_BAD_REQUEST)

        response = ConfigService.set_maintenance_mode(
            request.user, enabled,
            request.data.get('message', ''),
            request.data.get('reason', ''),
            request=request,
        )
        return service_result(response)
