"""
Utility functions - geo math, notifications and request metadata
"""
from typing import Optional, Dict, Any, Tuple
import logging
import math
import re

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

from .models import Notification

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


# ============================================================================
# GEO
# ============================================================================

def _to_float(value) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def calculate_distance(lat1, lng1, lat2, lng2) -> float:
    """
    Haversine distance in kilometres.
    Returns infinity when any coordinate is missing.
    """
    coords = [_to_float(v) for v in (lat1, lng1, lat2, lng2)]
    if any(c is None for c in coords):
        return math.inf

    lat1, lng1, lat2, lng2 = coords
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def get_bounding_box(lat, lng, radius_km) -> Dict[str, float]:
    """Lat/lng box enclosing the radius, used to prefilter queries"""
    lat = float(lat)
    lng = float(lng)
    lat_delta = math.degrees(radius_km / EARTH_RADIUS_KM)
    cos_lat = math.cos(math.radians(lat))
    lng_delta = 180.0 if cos_lat < 1e-12 else math.degrees(radius_km / (EARTH_RADIUS_KM * cos_lat))

    return {
        'min_lat': max(lat - lat_delta, -90.0),
        'max_lat': min(lat + lat_delta, 90.0),
        'min_lng': max(lng - lng_delta, -180.0),
        'max_lng': min(lng + lng_delta, 180.0),
    }


def format_distance(distance_km) -> str:
    if distance_km is None or math.isinf(distance_km):
        return 'Unknown'
    if distance_km < 1:
        return f"{round(distance_km * 1000)} m"
    if distance_km < 10:
        return f"{distance_km:.1f} km"
    return f"{round(distance_km)} km"


# ============================================================================
# NOTIFICATIONS
# ============================================================================

def user_group_name(user_id) -> str:
    return f'notifications_{user_id}'


def chat_group_name(chat_id) -> str:
    return f'chat_{chat_id}'


def push_to_group(group: str, event_type: str, payload: Dict[str, Any]) -> None:
    """
    Send an event to a channels group once the current transaction commits.
    Delivery failures are logged and never roll back the caller.
    """
    def _send():
        channel_layer = get_channel_layer()
        if channel_layer is None:
            return
        try:
            async_to_sync(channel_layer.group_send)(group, {'type': event_type, 'message': payload})
        except Exception as e:
            logger.warning(f"Realtime push to {group} failed: {e}")

    transaction.on_commit(_send)


def serialize_notification(notification: Notification) -> Dict[str, Any]:
    return {
        'id': notification.id,
        'notification_type': notification.notification_type,
        'title': notification.title,
        'message': notification.message,
        'data': notification.data,
        'priority': notification.priority,
        'related_model': notification.related_model,
        'related_id': notification.related_id,
        'is_read': notification.is_read,
        'created_at': notification.created_at.isoformat(),
    }


def store_notification(
    user,
    notification_type: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
    priority: str = Notification.MEDIUM,
    related_model: str = '',
    related_id: Any = '',
) -> Optional[Notification]:
    """
    Unified notification creator.
    Persists the DB record and pushes it to the user's websocket group.
    """
    notification = Notification.objects.create(
        user=user,
        notification_type=notification_type,
        title=title,
        message=message,
        data=data or {},
        priority=priority,
        related_model=related_model,
        related_id=str(related_id) if related_id not in (None, '') else '',
    )
    push_to_group(user_group_name(user.id), 'notification.message', serialize_notification(notification))
    return notification


# ============================================================================
# REQUEST METADATA
# ============================================================================

def get_client_info(request) -> Tuple[Optional[str], str]:
    """IP address and user agent for audit entries"""
    if request is None:
        return None, ''

    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        ip = forwarded.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    user_agent = request.META.get('HTTP_USER_AGENT', '')[:255]
    return ip or None, user_agent


def normalize_phone_number(phone: str) -> str:
    """Normalize Bangladeshi mobile numbers to the local 01XXXXXXXXX form"""
    cleaned = re.sub(r'[\s\-\(\)]', '', phone or '')

    if cleaned.startswith('+880'):
        return '0' + cleaned[4:]
    return cleaned
