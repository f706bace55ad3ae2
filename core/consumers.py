import json
from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.utils import timezone

from core.models import Chat
from core.utils import chat_group_name, user_group_name


class NotificationConsumer(AsyncWebsocketConsumer):
    async def connect(self):
        # Group membership comes from the authenticated user, never the URL
        self.user = self.scope["user"]

        if not self.user.is_authenticated:
            await self.close()
            return

        self.room_group_name = user_group_name(self.user.id)

        await self.channel_layer.group_add(
            self.room_group_name,
            self.channel_name
        )

        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, 'room_group_name'):
            await self.channel_layer.group_discard(
                self.room_group_name,
                self.channel_name
            )

    async def receive(self, text_data):
        # Push-only
        pass

    async def notification_message(self, event):
        await self.send(text_data=json.dumps({
            'type': 'notification',
            'message': event['message']
        }))


class ChatConsumer(AsyncWebsocketConsumer):
    """Live messages for one chat; sending goes through the REST endpoint"""

    async def connect(self):
        self.user = self.scope["user"]
        self.chat_id = self.scope["url_route"]["kwargs"]["chat_id"]

        if not self.user.is_authenticated or not await self.is_participant():
            await self.close()
            return

        self.room_group_name = chat_group_name(self.chat_id)

        await self.channel_layer.group_add(
            self.room_group_name,
            self.channel_name
        )

        await self.accept()
        await self.mark_read()

    async def disconnect(self, close_code):
        if hasattr(self, 'room_group_name'):
            await self.channel_layer.group_discard(
                self.room_group_name,
                self.channel_name
            )

    async def receive(self, text_data):
        pass

    async def chat_message(self, event):
        message = event['message']
        await self.send(text_data=json.dumps({
            'type': 'chat_message',
            'message': message
        }))
        if message.get('sender') != self.user.id:
            await self.mark_read()

    @database_sync_to_async
    def is_participant(self):
        return Chat.objects.filter(id=self.chat_id, participants=self.user).exists()

    @database_sync_to_async
    def mark_read(self):
        return Chat.objects.get(id=self.chat_id).messages.filter(is_read=False).exclude(
            sender=self.user
        ).update(is_read=True, read_at=timezone.now())
