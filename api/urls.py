from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView
from .views import (
    UserViewSet,
    VerificationViewSet,
    DonorViewSet,
    AvailabilityViewSet,
    BloodRequestViewSet,
    DonationViewSet,
    CardViewSet,
    LeaderboardViewSet,
    BadgeViewSet,
    NotificationViewSet,
    AuditLogViewSet,
    BlogPostViewSet,
    EventViewSet,
    ReviewViewSet,
    ConfigViewSet,
    ChatViewSet,
    AnalyticsViewSet,
    CustomTokenObtainPairView,
    RegisterView,
)

app_name = 'api'

# API v1 Router
router_v1 = DefaultRouter()
router_v1.register(r'users', UserViewSet, basename='user')
router_v1.register(r'admin/users', VerificationViewSet, basename='verification')
router_v1.register(r'donors', DonorViewSet, basename='donor')
router_v1.register(r'availability', AvailabilityViewSet, basename='availability')
router_v1.register(r'requests', BloodRequestViewSet, basename='request')
router_v1.register(r'donations', DonationViewSet, basename='donation')
router_v1.register(r'cards', CardViewSet, basename='card')
router_v1.register(r'leaderboard', LeaderboardViewSet, basename='leaderboard')
router_v1.register(r'badges', BadgeViewSet, basename='badge')
router_v1.register(r'notifications', NotificationViewSet, basename='notification')
router_v1.register(r'audit-logs', AuditLogViewSet, basename='audit-log')
router_v1.register(r'blog', BlogPostViewSet, basename='blog')
router_v1.register(r'events', EventViewSet, basename='event')
router_v1.register(r'reviews', ReviewViewSet, basename='review')
router_v1.register(r'config', ConfigViewSet, basename='config')
router_v1.register(r'chats', ChatViewSet, basename='chat')
router_v1.register(r'analytics', AnalyticsViewSet, basename='analytics')

urlpatterns = [
    # API Version 1
    path('v1/', include([
        path('', include(router_v1.urls)),
        path('auth/token/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
        path('auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
        path('auth/register/', RegisterView.as_view(), name='register'),
    ])),
]
