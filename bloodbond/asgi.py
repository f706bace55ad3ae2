"""
ASGI config for BloodBond project.

It exposes the ASGI callable as a module-level variable named ``application``.
HTTP goes to Django, WebSockets to the channels consumers in core.routing.
"""

import os
import sys
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

sys.path.append(str(BASE_DIR))

load_dotenv(os.path.join(BASE_DIR, '.env'))

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'bloodbond.settings')

from django.core.asgi import get_asgi_application

# Initialise Django before importing consumers that touch models
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter
from channels.security.websocket import AllowedHostsOriginValidator

from core.routing import JWTAuthMiddleware, websocket_urlpatterns

application = ProtocolTypeRouter({
    'http': django_asgi_app,
    'websocket': AllowedHostsOriginValidator(
        JWTAuthMiddleware(URLRouter(websocket_urlpatterns))
    ),
})
