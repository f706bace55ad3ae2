"""
Badge Service - admin curated and automatic achievement badges
"""
from django.db import transaction
from django.db.models import Count, F, Q
from django.utils import timezone
from typing import Dict, List, Optional
import logging

from core.models import Badge, UserBadge, User
from core.services.base import BaseService, ServiceResponse
from core.services.audit_services import AuditService
from core.services.notification_services import NotificationService

logger = logging.getLogger(__name__)


class BadgeService(BaseService):

    EDITABLE_FIELDS = ('name', 'description', 'icon', 'color', 'category', 'is_active',
                       'criteria', 'auto_assign', 'priority')

    @classmethod
    def list_badges(cls, include_inactive: bool = False):
        queryset = Badge.objects.all()
        if not include_inactive:
            queryset = queryset.filter(is_active=True)
        return queryset

    @classmethod
    def create_badge(cls, admin: User, data: Dict) -> ServiceResponse:
        try:
            badge = Badge(created_by=admin, **{k: v for k, v in data.items() if k in cls.EDITABLE_FIELDS})
            badge.full_clean()
            badge.save()
            logger.info(f"Badge '{badge.name}' created by {admin.username}")
            return cls.success(badge, message="Badge created")
        except Exception as e:
            return cls.handle_exception(e, "badge creation")

    @classmethod
    def update_badge(cls, badge_id: int, data: Dict) -> ServiceResponse:
        try:
            badge = Badge.objects.get(id=badge_id)
            for field in cls.EDITABLE_FIELDS:
                if field in data:
                    setattr(badge, field, data[field])
            badge.full_clean()
            badge.save()
            return cls.success(badge, message="Badge updated")
        except Badge.DoesNotExist:
            return cls.not_found("Badge not found")
        except Exception as e:
            return cls.handle_exception(e, "badge update")

    @classmethod
    def deactivate_badge(cls, badge_id: int) -> ServiceResponse:
        """Badges are never hard deleted; assignments keep their history"""
        updated = Badge.objects.filter(id=badge_id).update(is_active=False, updated_at=timezone.now())
        if not updated:
            return cls.not_found("Badge not found")
        return cls.success(message="Badge deactivated")

    # =========================================================================
    # ASSIGNMENT
    # =========================================================================

    @classmethod
    def assign_badge(cls, badge_id: int, user: User, assigned_by: Optional[User] = None,
                     reason: str = '', request=None) -> ServiceResponse:
        try:
            with transaction.atomic():
                badge = Badge.objects.select_for_update().get(id=badge_id)
                if not badge.is_active:
                    return cls.error("Cannot assign an inactive badge")

                if UserBadge.objects.filter(user=user, badge=badge, is_active=True).exists():
                    return cls.error("User already has this badge", code=ServiceResponse.CONFLICT)

                user_badge = UserBadge.objects.create(
                    user=user,
                    badge=badge,
                    assigned_by=assigned_by,
                    reason=reason or '',
                )
                Badge.objects.filter(id=badge.id).update(assignment_count=F('assignment_count') + 1)

            NotificationService.notify_badge_awarded(user_badge)
            if assigned_by is not None:
                AuditService.log_action(
                    performed_by=assigned_by,
                    action='badge_assigned',
                    category='user_management',
                    description=f"Assigned badge '{badge.name}' to {user.email or user.username}",
                    target_model='User',
                    target_id=user.id,
                    target_identifier=user.email,
                    after={'badge': badge.name},
                    reason=reason,
                    severity='low',
                    request=request,
                )
            return cls.success(user_badge, message=f"Badge '{badge.name}' assigned")

        except Badge.DoesNotExist:
            return cls.not_found("Badge not found")
        except Exception as e:
            return cls.handle_exception(e, "badge assignment")

    @classmethod
    def revoke_badge(cls, badge_id: int, user: User, admin: User, reason: str = '',
                     request=None) -> ServiceResponse:
        user_badge = UserBadge.objects.select_related('badge').filter(
            badge_id=badge_id, user=user, is_active=True
        ).first()
        if user_badge is None:
            return cls.not_found("Active badge assignment not found")

        user_badge.is_active = False
        user_badge.revoked_at = timezone.now()
        user_badge.revoked_by = admin
        user_badge.revoke_reason = reason or ''
        user_badge.save(update_fields=['is_active', 'revoked_at', 'revoked_by', 'revoke_reason', 'updated_at'])

        AuditService.log_action(
            performed_by=admin,
            action='badge_revoked',
            category='user_management',
            description=f"Revoked badge '{user_badge.badge.name}' from {user.email or user.username}",
            target_model='User',
            target_id=user.id,
            target_identifier=user.email,
            before={'badge': user_badge.badge.name},
            reason=reason,
            request=request,
        )
        return cls.success(user_badge, message="Badge revoked")

    @classmethod
    def auto_assign_badges(cls, user: User) -> List[UserBadge]:
        """Award auto badges whose criteria.min_donations the donor now meets"""
        donor_profile = getattr(user, 'donor_profile', None)
        if donor_profile is None:
            return []

        held = UserBadge.objects.filter(user=user, is_active=True).values_list('badge_id', flat=True)
        candidates = Badge.objects.filter(is_active=True, auto_assign=True).exclude(id__in=list(held))

        awarded = []
        for badge in candidates:
            threshold = (badge.criteria or {}).get('min_donations')
            if threshold is None or donor_profile.total_donations < int(threshold):
                continue
            response = cls.assign_badge(badge.id, user, reason="Automatically awarded")
            if response:
                awarded.append(response.data)
        return awarded

    # =========================================================================
    # QUERIES
    # =========================================================================

    @classmethod
    def get_user_badges(cls, user: User):
        return UserBadge.objects.filter(user=user, is_active=True).select_related('badge')

    @classmethod
    def get_assignment_history(cls, user: User):
        return UserBadge.objects.filter(user=user).select_related('badge', 'assigned_by', 'revoked_by')

    @classmethod
    def get_badge_stats(cls) -> Dict:
        badges = Badge.objects.annotate(
            active_holders=Count('assignments', filter=Q(assignments__is_active=True))
        ).order_by('-active_holders')

        return {
            'total_badges': Badge.objects.count(),
            'active_badges': Badge.objects.filter(is_active=True).count(),
            'total_assignments': UserBadge.objects.count(),
            'active_assignments': UserBadge.objects.filter(is_active=True).count(),
            'by_category': {
                row['category']: row['count']
                for row in Badge.objects.values('category').annotate(count=Count('id'))
            },
            'most_awarded': [
                {'id': badge.id, 'name': badge.name, 'holders': badge.active_holders}
                for badge in badges[:5]
            ],
        }
