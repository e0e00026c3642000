from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core"
    verbose_name = "Core"

    def ready(self):
        """
        Bridge post_save / post_delete of every record-store collection to the
        realtime change feed.

        Important:
        - Collections are resolved here (after the app registry is ready),
          not at import time.
        """
        from core.realtime import connect_model_signals
        from core.store import collection_models, to_row

        connect_model_signals(collection_models(), to_row)
