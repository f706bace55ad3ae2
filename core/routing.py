"""
WebSocket routing and token authentication
Clients connect with ?token=<JWT access token>
"""
from urllib.parse import parse_qs
import logging

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser, User
from django.urls import path
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken

from . import consumers

logger = logging.getLogger(__name__)


@database_sync_to_async
def get_user_for_token(raw_token):
    try:
        token = AccessToken(raw_token)
        return User.objects.get(id=token[api_settings.USER_ID_CLAIM], is_active=True)
    except (TokenError, KeyError, User.DoesNotExist) as e:
        logger.info(f"WebSocket token rejected: {e}")
        return AnonymousUser()


class JWTAuthMiddleware(BaseMiddleware):
    """Populate scope['user'] from the access token in the query string"""

    async def __call__(self, scope, receive, send):
        query = parse_qs(scope.get('query_string', b'').decode())
        tokens = query.get('token')
        scope['user'] = await get_user_for_token(tokens[0]) if tokens else AnonymousUser()
        return await super().__call__(scope, receive, send)


websocket_urlpatterns = [
    path('ws/notifications/', consumers.NotificationConsumer.as_asgi()),
    path('ws/chats/<int:chat_id>/', consumers.ChatConsumer.as_asgi()),
]
