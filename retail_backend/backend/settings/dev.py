# backend/settings/dev.py
"""
PATH: backend/settings/dev.py

LOCAL DEVELOPMENT SETTINGS

SQLite is fine for clicking through the API, but it ignores
SELECT ... FOR UPDATE: concurrent allocations / credit checks are only
serialized against Postgres (set DATABASE_URL to exercise that locally).
"""

from __future__ import annotations

from .base import *  # noqa: F403
from .base import LOGGING, env

DEBUG = True

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=["localhost", "127.0.0.1"])

# POS / back-office frontends served from the usual dev ports
CORS_ALLOWED_ORIGINS = env.list("CORS_ALLOWED_ORIGINS", default=["http://localhost:4200", "http://localhost:5173"])
CSRF_TRUSTED_ORIGINS = env.list("CSRF_TRUSTED_ORIGINS", default=["http://localhost:4200", "http://localhost:5173"])
CORS_ALLOW_CREDENTIALS = True

# Allocation traces are noisy in prod, useful here.
LOGGING["loggers"]["payments"]["level"] = env("PAYMENTS_LOG_LEVEL", default="DEBUG")
