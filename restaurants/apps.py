from django.apps import AppConfig
from django.test.signals import setting_changed


def _reset_api_backend(setting, **kwargs):
    if setting == 'FORM_ENGINE':
        from .services import get_backend
        get_backend.cache_clear()


class RestaurantsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "restaurants"

    def ready(self):
        # override_settings(FORM_ENGINE=...) swaps the API backend in tests
        setting_changed.connect(_reset_api_backend)
