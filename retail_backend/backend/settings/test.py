# backend/settings/test.py
"""
PATH: backend/settings/test.py

TEST SETTINGS

- In-memory SQLite by default (row locks degrade to no-ops; lock-dependent tests skip themselves)
- TEST_DATABASE_URL=postgres://... runs the suite on Postgres, lock tests included
- Migrations disabled: tables are built straight from the models
- Logging silenced
- Deterministic ledger policy (KES, 2dp, zero tolerance unless a test overrides it)
"""

from __future__ import annotations

from .base import *  # noqa: F403
from .base import LEDGER, REST_FRAMEWORK, env

DEBUG = False
ALLOWED_HOSTS = ["*"]
SECRET_KEY = "test-secret-key-not-for-production"
TESTING = True

if (env("TEST_DATABASE_URL", default="") or "").strip():
    DATABASES = {"default": env.db("TEST_DATABASE_URL")}
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": ":memory:",
        }
    }


class DisableMigrations:
    def __contains__(self, item):
        return True

    def __getitem__(self, item):
        return None


MIGRATION_MODULES = DisableMigrations()

PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

LEDGER = {
    **LEDGER,
    "CURRENCY": "KES",
    "CURRENCY_EXPONENT": 2,
    "CREDIT_DEFAULT_DURATION_DAYS": 30,
    "CASH_VARIANCE_TOLERANCE": 0,
    "CASH_VARIANCE_TOLERANCE_BY_CHANNEL": {},
    "VARIANCE_NOTIFICATION_THRESHOLD": 100,
}

REST_FRAMEWORK = {
    **REST_FRAMEWORK,
    "DEFAULT_THROTTLE_CLASSES": (),
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "null": {
            "class": "logging.NullHandler",
        },
    },
    "root": {
        "handlers": ["null"],
        "level": "INFO",
    },
}
