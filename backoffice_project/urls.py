from django.urls import path
from django.views.generic import TemplateView

urlpatterns = [
    # Form pages are served over websocket sessions (see core.routing);
    # the HTTP side only exposes the landing shell.
    path('', TemplateView.as_view(template_name='core/index.html'), name='index'),
]
