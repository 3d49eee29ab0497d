"""Django settings for romcurator.

The project has no web surface; Django provides settings, logging and the
``manage.py curate`` command.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "romcurator-insecure-local-key")

DEBUG = os.environ.get("DJANGO_DEBUG", "false").lower() == "true"

ALLOWED_HOSTS: list[str] = []

INSTALLED_APPS = [
    "curation",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = "UTC"

# Default run configuration file for `manage.py curate`
ROM_CURATOR_CONFIG = os.environ.get("ROM_CURATOR_CONFIG", "config.json")

# Worker threads used to classify identity groups (1 = single-threaded)
ROM_CURATOR_WORKERS = int(os.environ.get("ROM_CURATOR_WORKERS", "1"))

LOG_LEVEL = os.environ.get("ROM_CURATOR_LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "[{asctime}] [{levelname}] {name}: {message}",
            "style": "{",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "curation": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
}
