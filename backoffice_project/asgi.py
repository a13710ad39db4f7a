"""
ASGI config for backoffice_project project.

It exposes the ASGI callable as a module-level variable named ``application``.
"""

import os
from django.core.asgi import get_asgi_application

# Initialize Django ASGI application early to ensure the AppRegistry
# is populated before importing code that may import app modules.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'backoffice_project.settings')
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter
from channels.security.websocket import AllowedHostsOriginValidator
import core.routing

application = ProtocolTypeRouter({
    # Django's ASGI application to handle traditional HTTP requests
    "http": django_asgi_app,

    # Interactive form sessions (create/edit pages)
    "websocket": AllowedHostsOriginValidator(
        URLRouter(core.routing.websocket_urlpatterns)
    ),
})
