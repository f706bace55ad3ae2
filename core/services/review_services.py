"""
Review Service - ratings between users and admin moderation
"""
from django.db import transaction
from django.db.models import Avg, Count, Q, Sum
from django.utils import timezone
from typing import Dict, Optional
import logging

from core.models import Review, Notification, User
from core.services.base import BaseService, ServiceResponse
from core.services.audit_services import AuditService
from core.services.leaderboard_services import LeaderboardService
from core.services.notification_services import NotificationService

logger = logging.getLogger(__name__)


class ReviewService(BaseService):

    EDITABLE_FIELDS = ('rating', 'comment', 'review_type')
    MIN_REJECT_REASON_LENGTH = 10

    @staticmethod
    def _is_admin(user: User) -> bool:
        profile = getattr(user, 'profile', None)
        return user.is_superuser or bool(profile and profile.is_admin)

    # =========================================================================
    # PUBLIC
    # =========================================================================

    @classmethod
    def list_reviews(cls, reviewee_id: Optional[int] = None):
        queryset = Review.objects.filter(status=Review.APPROVED).select_related('reviewer', 'reviewee')
        if reviewee_id:
            queryset = queryset.filter(reviewee_id=reviewee_id)
        return queryset

    @classmethod
    def create_review(cls, reviewer: User, data: Dict) -> ServiceResponse:
        reviewee = data.get('reviewee')
        if reviewee is None:
            return cls.error("Reviewee is required")
        if reviewee.id == reviewer.id:
            return cls.error("You cannot review yourself")

        try:
            review = Review(
                reviewer=reviewer,
                reviewee=reviewee,
                rating=data.get('rating'),
                comment=data.get('comment', ''),
                review_type=data.get('review_type') or 'donor_review',
                blood_request=data.get('blood_request'),
            )
            review.full_clean()
            review.save()

            profile = getattr(reviewee, 'profile', None)
            if profile and profile.is_donor:
                LeaderboardService.add_review_points(reviewee)

            logger.info(f"Review {review.id} by {reviewer.username} for {reviewee.username}")
            return cls.success(review, message="Review submitted successfully")

        except Exception as e:
            return cls.handle_exception(e, "review creation")

    @classmethod
    def update_review(cls, review_id: int, user: User, data: Dict) -> ServiceResponse:
        try:
            review = Review.objects.get(id=review_id)
            if review.reviewer_id != user.id and not cls._is_admin(user):
                return cls.forbidden("You can only edit your own reviews")

            for field in cls.EDITABLE_FIELDS:
                if field in data:
                    setattr(review, field, data[field])
            review.full_clean()
            review.save()
            return cls.success(review, message="Review updated")

        except Review.DoesNotExist:
            return cls.not_found("Review not found")
        except Exception as e:
            return cls.handle_exception(e, "review update")

    @classmethod
    def delete_review(cls, review_id: int, user: User) -> ServiceResponse:
        review = Review.objects.filter(id=review_id).first()
        if review is None:
            return cls.not_found("Review not found")
        if review.reviewer_id != user.id and not cls._is_admin(user):
            return cls.forbidden("You can only delete your own reviews")

        review.delete()
        return cls.success(message="Review deleted")

    @classmethod
    def get_average_rating(cls, user_id: int) -> Dict:
        result = Review.objects.filter(reviewee_id=user_id, status=Review.APPROVED).aggregate(
            average=Avg('rating'),
            count=Count('id'),
        )
        return {
            'user_id': user_id,
            'average_rating': round(result['average'], 2) if result['average'] else 0,
            'total_reviews': result['count'],
        }

    @classmethod
    def report_review(cls, review_id: int, user: User, reason: str = '') -> ServiceResponse:
        try:
            with transaction.atomic():
                review = Review.objects.select_for_update().get(id=review_id)
                if review.reviewer_id == user.id:
                    return cls.error("You cannot report your own review")
                if any(report.get('user_id') == user.id for report in review.reports):
                    return cls.error("You have already reported this review", code=ServiceResponse.CONFLICT)

                review.reports = review.reports + [{
                    'user_id': user.id,
                    'reason': reason or '',
                    'reported_at': timezone.now().isoformat(),
                }]
                review.report_count += 1
                if review.report_count >= Review.AUTO_HIDE_REPORTS:
                    review.status = Review.PENDING
                review.save(update_fields=['reports', 'report_count', 'status', 'updated_at'])

            if review.status == Review.PENDING:
                logger.warning(f"Review {review.id} hidden after {review.report_count} reports")

            return cls.success({
                'review_id': review.id,
                'report_count': review.report_count,
                'auto_hidden': review.status == Review.PENDING,
            }, message="Review reported successfully. Our team will review it.")

        except Review.DoesNotExist:
            return cls.not_found("Review not found")
        except Exception as e:
            return cls.handle_exception(e, "review report")

    # =========================================================================
    # MODERATION
    # =========================================================================

    @classmethod
    def get_moderation_queue(cls, status: str = 'pending'):
        queryset = Review.objects.select_related('reviewer', 'reviewee', 'moderated_by')
        if status == 'pending':
            queryset = queryset.filter(status=Review.PENDING)
        elif status == 'reported':
            queryset = queryset.filter(report_count__gte=1)
        elif status == 'all':
            queryset = queryset.filter(Q(status=Review.PENDING) | Q(report_count__gte=1))
        return queryset.order_by('-report_count', '-created_at')

    @classmethod
    def get_moderation_stats(cls) -> Dict:
        by_status = {
            row['status']: {'count': row['count'], 'average_rating': row['average']}
            for row in Review.objects.values('status').annotate(count=Count('id'), average=Avg('rating'))
        }
        reported = Review.objects.filter(report_count__gte=1).aggregate(
            total_reported=Count('id'),
            total_reports=Sum('report_count'),
        )
        return {
            'status_breakdown': by_status,
            'report_stats': {
                'total_reported': reported['total_reported'],
                'total_reports': reported['total_reports'] or 0,
                'highly_reported': Review.objects.filter(report_count__gte=3).count(),
            },
            'summary': {
                'total': Review.objects.count(),
                'approved': Review.objects.filter(status=Review.APPROVED).count(),
                'pending': Review.objects.filter(status=Review.PENDING).count(),
                'rejected': Review.objects.filter(status=Review.REJECTED).count(),
            },
        }

    @classmethod
    def _moderate(cls, review_id: int, admin: User, status: str, note: str) -> Review:
        with transaction.atomic():
            review = Review.objects.select_for_update().get(id=review_id)
            previous = review.status
            review.status = status
            review.moderated_by = admin
            review.moderated_at = timezone.now()
            review.moderation_note = note
            review.save()
        review.previous_status = previous
        return review

    @classmethod
    def approve_review(cls, review_id: int, admin: User, reason: str = '', request=None) -> ServiceResponse:
        try:
            note = reason or 'Approved by admin'
            review = cls._moderate(review_id, admin, Review.APPROVED, note)
            AuditService.log_action(
                performed_by=admin,
                action='review_approved',
                category='moderation',
                description=f"Review {review.id} approved",
                target_model='Review',
                target_id=review.id,
                before={'status': review.previous_status},
                after={'status': review.status},
                reason=note,
                severity='low',
                request=request,
            )
            return cls.success(review, message="Review approved successfully")

        except Review.DoesNotExist:
            return cls.not_found("Review not found")
        except Exception as e:
            return cls.handle_exception(e, "review approval")

    @classmethod
    def reject_review(cls, review_id: int, admin: User, reason: str, request=None) -> ServiceResponse:
        if not reason or len(reason.strip()) < cls.MIN_REJECT_REASON_LENGTH:
            return cls.error(
                f"Rejection reason is required (min {cls.MIN_REJECT_REASON_LENGTH} characters)"
            )

        try:
            review = cls._moderate(review_id, admin, Review.REJECTED, reason)

            NotificationService.create_notification(
                user=review.reviewer,
                notification_type=Notification.SYSTEM,
                title="Review Removed",
                message=f"Your review has been removed by a moderator. Reason: {reason}",
                related_model='Review',
                related_id=review.id,
            )
            AuditService.log_action(
                performed_by=admin,
                action='review_rejected',
                category='moderation',
                description=f"Review {review.id} rejected",
                target_model='Review',
                target_id=review.id,
                before={'status': review.previous_status},
                after={'status': review.status},
                reason=reason,
                request=request,
            )
            return cls.success(review, message="Review rejected and hidden")

        except Review.DoesNotExist:
            return cls.not_found("Review not found")
        except Exception as e:
            return cls.handle_exception(e, "review rejection")

    @classmethod
    def clear_reports(cls, review_id: int, admin: User, reason: str = '', request=None) -> ServiceResponse:
        note = reason or 'Reports cleared after review'
        try:
            with transaction.atomic():
                review = Review.objects.select_for_update().get(id=review_id)
                previous_count = review.report_count
                review.report_count = 0
                review.reports = []
                review.moderated_by = admin
                review.moderated_at = timezone.now()
                review.moderation_note = note
                review.save()

            AuditService.log_action(
                performed_by=admin,
                action='review_reports_cleared',
                category='moderation',
                description=f"Reports cleared on review {review.id}",
                target_model='Review',
                target_id=review.id,
                before={'report_count': previous_count},
                after={'report_count': 0},
                reason=note,
                severity='low',
                request=request,
            )
            return cls.success(review, message="Reports cleared successfully")

        except Review.DoesNotExist:
            return cls.not_found("Review not found")
        except Exception as e:
            return cls.handle_exception(e, "clearing review reports")
