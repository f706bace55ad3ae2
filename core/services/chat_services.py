"""
Chat Service - one-to-one conversations, message reports and admin moderation
"""
from django.core.exceptions import PermissionDenied
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone
from typing import Any, Dict, Optional
import logging

from core.models import BloodRequest, Chat, ChatMessage, Notification, User
from core.services.base import BaseService, ServiceResponse
from core.services.audit_services import AuditService
from core.services.notification_services import NotificationService
from core.utils import chat_group_name, push_to_group

logger = logging.getLogger(__name__)


class ChatService(BaseService):

    MAX_MESSAGE_LENGTH = 2000
    MIN_REASON_LENGTH = 10

    @staticmethod
    def message_payload(message: ChatMessage) -> Dict[str, Any]:
        return {
            'id': message.id,
            'chat': message.chat_id,
            'sender': message.sender_id,
            'sender_name': message.sender.get_full_name() or message.sender.username,
            'content': message.content,
            'message_type': message.message_type,
            'created_at': message.created_at.isoformat(),
        }

    @classmethod
    def _get_participant_chat(cls, chat_id: int, user: User) -> Chat:
        chat = Chat.objects.get(id=chat_id)
        if not chat.has_participant(user):
            raise PermissionDenied("You do not have access to this chat")
        return chat

    # =========================================================================
    # CONVERSATIONS
    # =========================================================================

    @classmethod
    def list_chats(cls, user: User):
        return Chat.objects.filter(participants=user, is_active=True).prefetch_related(
            'participants', 'participants__profile'
        ).select_related('blood_request')

    @classmethod
    def get_or_create_chat(cls, user: User, participant_id, blood_request_id=None) -> ServiceResponse:
        """Return the single chat between two users, creating it on first contact"""
        if not participant_id:
            return cls.error("participant_id is required")

        try:
            participant = User.objects.get(id=participant_id, is_active=True)
        except (User.DoesNotExist, ValueError, TypeError):
            return cls.not_found("Participant not found")

        if participant.id == user.id:
            return cls.error("You cannot start a chat with yourself")

        blood_request = None
        if blood_request_id:
            try:
                blood_request = BloodRequest.objects.get(id=blood_request_id)
            except (BloodRequest.DoesNotExist, ValueError, TypeError):
                return cls.not_found("Blood request not found")

        try:
            with transaction.atomic():
                chat = Chat.objects.filter(participants=user).filter(participants=participant).first()
                created = chat is None
                if created:
                    chat = Chat.objects.create(blood_request=blood_request)
                    chat.participants.add(user, participant)
                    logger.info(f"Chat {chat.id} opened between users {user.id} and {participant.id}")
                elif blood_request and not chat.blood_request_id:
                    chat.blood_request = blood_request
                    chat.save(update_fields=['blood_request', 'updated_at'])

            return cls.success({'chat': chat, 'created': created})

        except Exception as e:
            return cls.handle_exception(e, "chat creation")

    @classmethod
    def get_messages(cls, chat_id: int, user: User) -> ServiceResponse:
        """Messages visible to a participant; unread incoming messages are marked read"""
        try:
            chat = cls._get_participant_chat(chat_id, user)
        except Chat.DoesNotExist:
            return cls.not_found("Chat not found")
        except PermissionDenied as e:
            return cls.forbidden(str(e))

        chat.messages.filter(is_read=False).exclude(sender=user).update(
            is_read=True,
            read_at=timezone.now(),
        )
        messages = chat.messages.filter(is_hidden=False).select_related('sender')
        return cls.success(messages)

    @classmethod
    def send_message(cls, chat_id: int, user: User, content: str) -> ServiceResponse:
        content = (content or '').strip()
        if not content:
            return cls.error("Message content is required")
        if len(content) > cls.MAX_MESSAGE_LENGTH:
            return cls.error(f"Message cannot exceed {cls.MAX_MESSAGE_LENGTH} characters")

        try:
            with transaction.atomic():
                chat = cls._get_participant_chat(chat_id, user)
                if not chat.is_active:
                    return cls.error("This chat has been closed")

                message = ChatMessage.objects.create(chat=chat, sender=user, content=content)
                chat.last_message = content[:200]
                chat.last_message_at = message.created_at
                chat.save(update_fields=['last_message', 'last_message_at', 'updated_at'])

                recipient = chat.other_participant(user)
                if recipient:
                    sender_name = user.get_full_name() or user.username
                    NotificationService.create_notification(
                        user=recipient,
                        notification_type=Notification.CHAT_MESSAGE,
                        title=f"New message from {sender_name}",
                        message=content[:100],
                        data={'chat_id': chat.id, 'message_id': message.id},
                        related_model='Chat',
                        related_id=chat.id,
                    )

            push_to_group(chat_group_name(chat.id), 'chat.message', cls.message_payload(message))
            return cls.success(message, message="Message sent")

        except Chat.DoesNotExist:
            return cls.not_found("Chat not found")
        except PermissionDenied as e:
            return cls.forbidden(str(e))
        except Exception as e:
            return cls.handle_exception(e, "sending chat message")

    @classmethod
    def report_message(cls, message_id: int, user: User, reason: str, category: str) -> ServiceResponse:
        if not reason or len(reason.strip()) < cls.MIN_REASON_LENGTH:
            return cls.error(f"Report reason is required (minimum {cls.MIN_REASON_LENGTH} characters)")
        if category not in ChatMessage.REPORT_CATEGORIES:
            return cls.error(f"Category must be one of: {', '.join(ChatMessage.REPORT_CATEGORIES)}")

        try:
            with transaction.atomic():
                message = ChatMessage.objects.select_for_update().select_related('chat').get(id=message_id)
                if not message.chat.has_participant(user):
                    return cls.forbidden("You do not have access to this chat")
                if message.sender_id == user.id:
                    return cls.error("You cannot report your own message")
                if message.has_report_from(user):
                    return cls.error("You have already reported this message", code=ServiceResponse.CONFLICT)

                message.reports = message.reports + [{
                    'user_id': user.id,
                    'reason': reason.strip(),
                    'category': category,
                    'reported_at': timezone.now().isoformat(),
                }]
                message.report_count += 1
                message.save(update_fields=['reports', 'report_count', 'updated_at'])

            logger.info(f"Chat message {message.id} reported ({category}) by user {user.id}")
            return cls.success({
                'message_id': message.id,
                'report_count': message.report_count,
            }, message="Message reported successfully. Our team will review it.")

        except ChatMessage.DoesNotExist:
            return cls.not_found("Message not found")
        except Exception as e:
            return cls.handle_exception(e, "message report")

    # =========================================================================
    # MODERATION
    # =========================================================================

    @classmethod
    def list_all_chats(cls, search: Optional[str] = None):
        queryset = Chat.objects.prefetch_related('participants').select_related('blood_request')
        if search:
            queryset = queryset.filter(
                Q(participants__username__icontains=search)
                | Q(participants__email__icontains=search)
                | Q(participants__first_name__icontains=search)
            ).distinct()
        return queryset

    @classmethod
    def get_chat_messages_admin(cls, chat_id: int) -> ServiceResponse:
        """Full transcript including hidden messages"""
        try:
            chat = Chat.objects.get(id=chat_id)
        except Chat.DoesNotExist:
            return cls.not_found("Chat not found")
        return cls.success(chat.messages.select_related('sender', 'flagged_by', 'hidden_by'))

    @classmethod
    def flagged_messages(cls):
        return ChatMessage.objects.filter(is_flagged=True).select_related(
            'sender', 'flagged_by', 'chat'
        ).order_by('-flagged_at')

    @classmethod
    def reported_messages(cls):
        return ChatMessage.objects.filter(report_count__gt=0).select_related(
            'sender', 'chat'
        ).order_by('-report_count', '-created_at')

    @classmethod
    def _require_reason(cls, reason: str, action: str) -> Optional[ServiceResponse]:
        if not reason or len(reason.strip()) < cls.MIN_REASON_LENGTH:
            return cls.error(f"{action} reason is required (minimum {cls.MIN_REASON_LENGTH} characters)")
        return None

    @classmethod
    def _log_moderation(cls, admin, message, action, before, after, reason, request=None):
        AuditService.log_action(
            performed_by=admin,
            action=action,
            category='moderation',
            description=f"Chat message {message.id} by {message.sender.username}: {action.replace('_', ' ')}",
            target_model='ChatMessage',
            target_id=message.id,
            target_identifier=f"chat {message.chat_id}",
            before=before,
            after=after,
            reason=reason,
            request=request,
        )

    @classmethod
    def flag_message(cls, message_id: int, admin: User, reason: str, request=None) -> ServiceResponse:
        invalid = cls._require_reason(reason, "Flag")
        if invalid:
            return invalid

        try:
            with transaction.atomic():
                message = ChatMessage.objects.select_for_update().select_related('sender').get(id=message_id)
                if message.is_flagged:
                    return cls.error("Message is already flagged", code=ServiceResponse.CONFLICT)

                message.is_flagged = True
                message.flagged_by = admin
                message.flagged_at = timezone.now()
                message.flag_reason = reason.strip()
                message.save()

            cls._log_moderation(admin, message, 'message_flagged',
                                {'is_flagged': False}, {'is_flagged': True}, reason, request)
            return cls.success(message, message="Message flagged successfully")

        except ChatMessage.DoesNotExist:
            return cls.not_found("Message not found")
        except Exception as e:
            return cls.handle_exception(e, "flagging message")

    @classmethod
    def hide_message(cls, message_id: int, admin: User, reason: str, request=None) -> ServiceResponse:
        invalid = cls._require_reason(reason, "Hide")
        if invalid:
            return invalid

        try:
            with transaction.atomic():
                message = ChatMessage.objects.select_for_update().select_related('sender').get(id=message_id)
                if message.is_hidden:
                    return cls.error("Message is already hidden", code=ServiceResponse.CONFLICT)

                message.is_hidden = True
                message.hidden_by = admin
                message.hidden_at = timezone.now()
                message.hidden_reason = reason.strip()
                message.save()

            cls._log_moderation(admin, message, 'message_hidden',
                                {'is_hidden': False}, {'is_hidden': True}, reason, request)
            return cls.success(message, message="Message hidden successfully")

        except ChatMessage.DoesNotExist:
            return cls.not_found("Message not found")
        except Exception as e:
            return cls.handle_exception(e, "hiding message")

    @classmethod
    def unhide_message(cls, message_id: int, admin: User, reason: str = '', request=None) -> ServiceResponse:
        try:
            with transaction.atomic():
                message = ChatMessage.objects.select_for_update().select_related('sender').get(id=message_id)
                if not message.is_hidden:
                    return cls.error("Message is not hidden")

                message.is_hidden = False
                message.hidden_by = None
                message.hidden_at = None
                message.hidden_reason = ''
                message.save()

            cls._log_moderation(admin, message, 'message_unhidden',
                                {'is_hidden': True}, {'is_hidden': False}, reason, request)
            return cls.success(message, message="Message unhidden successfully")

        except ChatMessage.DoesNotExist:
            return cls.not_found("Message not found")
        except Exception as e:
            return cls.handle_exception(e, "unhiding message")

    @classmethod
    def get_moderation_stats(cls) -> Dict[str, int]:
        counts = ChatMessage.objects.aggregate(
            total_messages=Count('id'),
            flagged_messages=Count('id', filter=Q(is_flagged=True)),
            hidden_messages=Count('id', filter=Q(is_hidden=True)),
            reported_messages=Count('id', filter=Q(report_count__gt=0)),
            pending_review=Count('id', filter=Q(report_count__gt=0, is_flagged=False, is_hidden=False)),
            total_reports=Sum('report_count'),
        )
        counts['total_reports'] = counts['total_reports'] or 0
        counts['total_chats'] = Chat.objects.count()
        return counts
