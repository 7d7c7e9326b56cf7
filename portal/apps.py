from django.apps import AppConfig


class PortalConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "portal"
    verbose_name = "Intranet portal"

    def ready(self) -> None:
        # connects the notification feed signal handlers
        from .realtime import signals  # noqa: F401
