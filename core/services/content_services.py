"""
Content Service - blog posts, comments and blood camp events
"""
from django.db import transaction
from django.db.models import Count, F, Q
from typing import Dict, Optional
import logging

from core.models import BlogPost, BlogComment, BloodCampEvent, User
from core.services.base import BaseService, ServiceResponse
from core.services.card_services import CardService

logger = logging.getLogger(__name__)


def _is_admin(user: Optional[User]) -> bool:
    if user is None or not user.is_authenticated:
        return False
    profile = getattr(user, 'profile', None)
    return user.is_superuser or bool(profile and profile.is_admin)


class BlogService(BaseService):

    EDITABLE_FIELDS = ('title', 'excerpt', 'content', 'cover_image', 'category', 'tags', 'status')

    @classmethod
    def list_posts(cls, user: Optional[User], params: Dict):
        queryset = BlogPost.objects.select_related('author').annotate(
            like_count=Count('likes', distinct=True),
            comment_count=Count('comments', distinct=True),
        )

        if _is_admin(user):
            status = params.get('status')
            if status:
                queryset = queryset.filter(status=status)
        else:
            queryset = queryset.filter(status=BlogPost.PUBLISHED)

        category = params.get('category')
        if category:
            queryset = queryset.filter(category=category)

        tag = params.get('tag')
        if tag:
            queryset = queryset.filter(tags__icontains=tag)

        search = params.get('search')
        if search:
            queryset = queryset.filter(
                Q(title__icontains=search) | Q(excerpt__icontains=search) | Q(content__icontains=search)
            )
        return queryset

    @classmethod
    def get_post(cls, slug: str, user: Optional[User]) -> ServiceResponse:
        queryset = BlogPost.objects.select_related('author')
        if not _is_admin(user):
            queryset = queryset.filter(status=BlogPost.PUBLISHED)

        post = queryset.filter(slug=slug).first()
        if post is None:
            return cls.not_found("Blog post not found")

        BlogPost.objects.filter(id=post.id).update(view_count=F('view_count') + 1)
        post.refresh_from_db(fields=['view_count'])
        return cls.success(post)

    @classmethod
    def create_post(cls, author: User, data: Dict) -> ServiceResponse:
        try:
            post = BlogPost(author=author, **{k: v for k, v in data.items() if k in cls.EDITABLE_FIELDS})
            post.full_clean(exclude=['slug'])
            post.save()
            logger.info(f"Blog post '{post.title}' created by {author.username}")
            return cls.success(post, message="Blog post created")
        except Exception as e:
            return cls.handle_exception(e, "blog creation")

    @classmethod
    def update_post(cls, post_id: int, data: Dict) -> ServiceResponse:
        try:
            post = BlogPost.objects.get(id=post_id)
            for field in cls.EDITABLE_FIELDS:
                if field in data:
                    setattr(post, field, data[field])
            post.full_clean()
            post.save()
            return cls.success(post, message="Blog post updated")
        except BlogPost.DoesNotExist:
            return cls.not_found("Blog post not found")
        except Exception as e:
            return cls.handle_exception(e, "blog update")

    @classmethod
    def delete_post(cls, post_id: int) -> ServiceResponse:
        deleted, _ = BlogPost.objects.filter(id=post_id).delete()
        if not deleted:
            return cls.not_found("Blog post not found")
        return cls.success(message="Blog post deleted")

    @classmethod
    def toggle_like(cls, post_id: int, user: User) -> ServiceResponse:
        post = BlogPost.objects.filter(id=post_id, status=BlogPost.PUBLISHED).first()
        if post is None:
            return cls.not_found("Blog post not found")

        if post.likes.filter(id=user.id).exists():
            post.likes.remove(user)
            liked = False
        else:
            post.likes.add(user)
            liked = True
        return cls.success({'liked': liked, 'like_count': post.likes.count()})

    @classmethod
    def add_comment(cls, post_id: int, user: User, content: str) -> ServiceResponse:
        if not content or not content.strip():
            return cls.error("Comment content is required")

        post = BlogPost.objects.filter(id=post_id, status=BlogPost.PUBLISHED).first()
        if post is None:
            return cls.not_found("Blog post not found")

        try:
            comment = BlogComment(post=post, user=user, content=content.strip())
            comment.full_clean()
            comment.save()
            return cls.success(comment, message="Comment added")
        except Exception as e:
            return cls.handle_exception(e, "adding comment")


class EventService(BaseService):

    EDITABLE_FIELDS = ('title', 'description', 'organizer', 'venue_name', 'location', 'latitude',
                       'longitude', 'start_datetime', 'end_datetime', 'target_donors', 'status',
                       'is_published')

    @classmethod
    def list_events(cls, user: Optional[User], params: Dict):
        queryset = BloodCampEvent.objects.annotate(registered_count=Count('registered_donors'))
        if not _is_admin(user):
            queryset = queryset.filter(is_published=True)

        status = params.get('status')
        if status:
            queryset = queryset.filter(status=status)
        return queryset

    @classmethod
    def create_event(cls, admin: User, data: Dict) -> ServiceResponse:
        try:
            event = BloodCampEvent(
                created_by=admin,
                **{k: v for k, v in data.items() if k in cls.EDITABLE_FIELDS}
            )
            event.full_clean()
            event.save()
            logger.info(f"Event '{event.title}' created by {admin.username}")
            return cls.success(event, message="Event created successfully")
        except Exception as e:
            return cls.handle_exception(e, "event creation")

    @classmethod
    def update_event(cls, event_id: int, data: Dict) -> ServiceResponse:
        try:
            event = BloodCampEvent.objects.get(id=event_id)
            for field in cls.EDITABLE_FIELDS:
                if field in data:
                    setattr(event, field, data[field])
            event.full_clean()
            event.save()
            return cls.success(event, message="Event updated")
        except BloodCampEvent.DoesNotExist:
            return cls.not_found("Event not found")
        except Exception as e:
            return cls.handle_exception(e, "event update")

    @classmethod
    def delete_event(cls, event_id: int) -> ServiceResponse:
        deleted, _ = BloodCampEvent.objects.filter(id=event_id).delete()
        if not deleted:
            return cls.not_found("Event not found")
        return cls.success(message="Event deleted")

    @classmethod
    def register_donor(cls, event_id: int, user: User) -> ServiceResponse:
        """Register a donor and hand back the signed check-in QR"""
        profile = getattr(user, 'profile', None)
        if profile is None or not profile.is_donor:
            return cls.forbidden("Only donors can register for events")

        try:
            with transaction.atomic():
                event = BloodCampEvent.objects.select_for_update().get(id=event_id)
                event.register(user)

            qr = CardService.generate_event_qr(event.id, user.id)
            logger.info(f"Donor {user.username} registered for event {event.id}")
            return cls.success({
                'event': event,
                'registered_count': event.registered_donors.count(),
                'qr_code': qr['qr_code'],
                'qr_data': qr['qr_data'],
            }, message="Registered for event successfully")

        except BloodCampEvent.DoesNotExist:
            return cls.not_found("Event not found")
        except Exception as e:
            return cls.handle_exception(e, "event registration")
