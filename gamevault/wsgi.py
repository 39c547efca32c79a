"""WSGI entry point for the GameVault server."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "gamevault.settings")

application = get_wsgi_application()
