from django.apps import AppConfig


class EventsConfig(AppConfig):
    """Configuration for the events app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "events"

    def ready(self) -> None:
        """Subscribe the app's registration listeners.

        Called once Django is fully loaded.
        """
        from events.listeners import connect

        connect()
