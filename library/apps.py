import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class LibraryConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "library"

    def ready(self):
        # Only warn in the server/worker processes, not in migrations
        import sys

        if "runserver" in sys.argv or "worker" in sys.argv:
            from .scanner import get_library_roots

            if not get_library_roots():
                logger.warning(
                    "GAME_LIBRARY_ROOTS is empty: reindexing will find no games"
                )
