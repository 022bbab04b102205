from django.apps import AppConfig


class RendersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "renders"
