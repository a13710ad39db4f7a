from django.urls import re_path
from core import consumers

websocket_urlpatterns = [
    # One interactive session per open create/edit page, e.g. ws/forms/restaurant_create/
    re_path(r'ws/forms/(?P<page_name>\w+)/$', consumers.FormSessionConsumer.as_asgi()),
]
