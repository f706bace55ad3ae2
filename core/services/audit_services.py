"""
Audit Service - append-only trail of administrative actions
"""
from django.db import DatabaseError
from django.db.models import Count, Q
from django.utils import timezone
from datetime import timedelta
from typing import Optional, Dict, List, Any
import logging

from core.models import AuditLog, User
from core.services.base import BaseService, ServiceResponse
from core.utils import get_client_info

logger = logging.getLogger(__name__)


class AuditService(BaseService):
    """Writes and queries AuditLog entries"""

    @classmethod
    def log_action(
        cls,
        performed_by: Optional[User],
        action: str,
        category: str,
        description: str,
        target_model: str,
        target_id: Any,
        target_identifier: str = '',
        before: Optional[Dict] = None,
        after: Optional[Dict] = None,
        reason: str = '',
        severity: str = 'medium',
        request=None,
    ) -> Optional[AuditLog]:
        """
        Record an admin action.
        Failures are logged and never break the calling workflow.
        """
        before = before or {}
        after = after or {}
        fields_changed = sorted(
            key for key in set(before) | set(after)
            if before.get(key) != after.get(key)
        )
        ip_address, user_agent = get_client_info(request)

        performer_role = ''
        performer_name = ''
        performer_email = ''
        if performed_by is not None:
            profile = getattr(performed_by, 'profile', None)
            performer_role = profile.role if profile else ''
            performer_name = performed_by.get_full_name() or performed_by.username
            performer_email = performed_by.email

        try:
            entry = AuditLog.objects.create(
                performed_by=performed_by,
                performer_role=performer_role,
                performer_name=performer_name,
                performer_email=performer_email,
                action=action,
                category=category,
                description=description,
                target_model=target_model,
                target_id=str(target_id),
                target_identifier=target_identifier,
                changes_before=before,
                changes_after=after,
                fields_changed=fields_changed,
                reason=reason or '',
                ip_address=ip_address,
                user_agent=user_agent,
                severity=severity,
            )
            if performed_by is not None and hasattr(performed_by, 'admin_profile'):
                admin_profile = performed_by.admin_profile
                admin_profile.last_action_at = timezone.now()
                admin_profile.save(update_fields=['last_action_at'])
            return entry
        except DatabaseError as e:
            logger.error(f"Audit log write failed for {action} on {target_model}#{target_id}: {e}")
            return None

    # =========================================================================
    # HELPERS
    # =========================================================================

    @classmethod
    def log_user_verification(cls, admin, target_user, action, before_status, after_status,
                              reason='', request=None, severity='medium'):
        return cls.log_action(
            performed_by=admin,
            action=action,
            category='verification',
            description=f"{action.replace('_', ' ').capitalize()}: {target_user.email}",
            target_model='User',
            target_id=target_user.id,
            target_identifier=target_user.email,
            before={'verification_status': before_status},
            after={'verification_status': after_status},
            reason=reason,
            severity=severity,
            request=request,
        )

    @classmethod
    def log_donation_verification(cls, admin, donation, action, reason='', request=None):
        return cls.log_action(
            performed_by=admin,
            action=action,
            category='verification',
            description=f"Donation #{donation.id} by {donation.donor.email} marked {donation.verification_status}",
            target_model='DonationRecord',
            target_id=donation.id,
            target_identifier=f"{donation.blood_type} {donation.donation_date:%Y-%m-%d}",
            before={'verification_status': 'pending'},
            after={'verification_status': donation.verification_status},
            reason=reason,
            request=request,
        )

    @classmethod
    def log_data_correction(cls, admin, target_model, target_id, before, after, reason,
                            identifier='', request=None, action='donation_override'):
        return cls.log_action(
            performed_by=admin,
            action=action,
            category='data_correction',
            description=f"Data correction on {target_model}#{target_id}",
            target_model=target_model,
            target_id=target_id,
            target_identifier=identifier,
            before=before,
            after=after,
            reason=reason,
            severity='high',
            request=request,
        )

    @classmethod
    def log_config_change(cls, admin, section, before, after, reason, request=None):
        return cls.log_action(
            performed_by=admin,
            action='config_updated',
            category='system_config',
            description=f"Updated {section}",
            target_model='SystemConfig',
            target_id=1,
            target_identifier=section,
            before=before,
            after=after,
            reason=reason,
            severity='high',
            request=request,
        )

    # =========================================================================
    # QUERIES
    # =========================================================================

    @classmethod
    def filter_logs(cls, params: Dict) -> Any:
        """Queryset of audit logs narrowed by request query params"""
        queryset = AuditLog.objects.select_related('performed_by')

        for field in ('category', 'action', 'severity', 'target_model', 'target_id'):
            value = params.get(field)
            if value:
                queryset = queryset.filter(**{field: value})

        performer = params.get('performed_by')
        if performer:
            queryset = queryset.filter(performed_by_id=performer)

        start_date = params.get('start_date')
        if start_date:
            queryset = queryset.filter(created_at__date__gte=start_date)
        end_date = params.get('end_date')
        if end_date:
            queryset = queryset.filter(created_at__date__lte=end_date)

        search = params.get('search')
        if search:
            queryset = queryset.filter(
                Q(description__icontains=search)
                | Q(target_identifier__icontains=search)
                | Q(performer_email__icontains=search)
            )
        return queryset

    @classmethod
    def get_statistics(cls, days: int = 30) -> ServiceResponse:
        since = timezone.now() - timedelta(days=days)
        logs = AuditLog.objects.filter(created_at__gte=since)

        by_category = {row['category']: row['count'] for row in logs.values('category').annotate(count=Count('id'))}
        by_severity = {row['severity']: row['count'] for row in logs.values('severity').annotate(count=Count('id'))}
        top_performers = list(
            logs.exclude(performed_by=None)
            .values('performed_by', 'performer_name')
            .annotate(count=Count('id'))
            .order_by('-count')[:5]
        )

        return cls.success({
            'period_days': days,
            'total': logs.count(),
            'by_category': by_category,
            'by_severity': by_severity,
            'top_performers': top_performers,
        })

    @classmethod
    def get_critical(cls, limit: int = 50) -> List[AuditLog]:
        return list(
            AuditLog.objects.filter(severity__in=['high', 'critical'])
            .select_related('performed_by')[:limit]
        )
