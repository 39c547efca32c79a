"""
Django settings for the GameVault library server.

Every deployment-specific value is read from the environment so the same
settings module serves development, tests and container deployments.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: list[str], separator: str = ",") -> list[str]:
    value = os.environ.get(name)
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(separator) if item.strip()]


SECRET_KEY = os.environ.get(
    "SECRET_KEY", "django-insecure-gamevault-development-key-change-me"
)
DEBUG = _env_bool("DEBUG", False)
ALLOWED_HOSTS = _env_list("ALLOWED_HOSTS", ["*"])

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "procrastinate.contrib.django",
    "library",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "gamevault.urls"
WSGI_APPLICATION = "gamevault.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# Database: PostgreSQL when POSTGRES_DB is set (required by the Procrastinate
# worker), SQLite otherwise.
if os.environ.get("POSTGRES_DB"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ["POSTGRES_DB"],
            "USER": os.environ.get("POSTGRES_USER", "gamevault"),
            "PASSWORD": os.environ.get("POSTGRES_PASSWORD", ""),
            "HOST": os.environ.get("POSTGRES_HOST", "localhost"),
            "PORT": os.environ.get("POSTGRES_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
        }
    }
    # Procrastinate's schema is PostgreSQL-only; its models are unmanaged, so
    # skipping the migrations leaves nothing to create on SQLite.
    MIGRATION_MODULES = {"procrastinate": None}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.environ.get("TZ", "UTC")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# -----------------------------------------------------------------------------
# Game library
# -----------------------------------------------------------------------------

# Directories scanned by a reindex, separated like PATH entries.
GAME_LIBRARY_ROOTS = _env_list("GAME_LIBRARY_ROOTS", [], separator=os.pathsep)

# fnmatch patterns matched against file/directory names and root-relative paths.
GAME_IGNORE_PATTERNS = _env_list(
    "GAME_IGNORE_PATTERNS",
    [".*", "*.part", "*.tmp", "*.crdownload", "Thumbs.db", "desktop.ini"],
)

# Extension allow-list (".zip", ".7z", ...). Empty means every regular file.
GAME_FILE_EXTENSIONS = [
    ext.lower() if ext.startswith(".") else f".{ext.lower()}"
    for ext in _env_list("GAME_FILE_EXTENSIONS", [])
]

# Server-wide ceiling applied to every download, in KiB/s. 0 disables it.
DOWNLOAD_SPEED_LIMIT_KIBPS = int(os.environ.get("DOWNLOAD_SPEED_LIMIT_KIBPS", "0"))

# Periodic reindex through the Procrastinate worker.
INDEX_SCHEDULE_ENABLED = _env_bool("INDEX_SCHEDULE_ENABLED", False)

# A RUNNING IndexJob older than this is treated as abandoned by a killed process.
INDEX_JOB_STALE_AFTER_SECONDS = int(
    os.environ.get("INDEX_JOB_STALE_AFTER_SECONDS", str(6 * 60 * 60))
)

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "library": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "procrastinate": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
    },
}
