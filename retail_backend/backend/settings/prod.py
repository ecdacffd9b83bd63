# backend/settings/prod.py
"""
PATH: backend/settings/prod.py

PRODUCTION SETTINGS

Fail closed on anything the ledger relies on:
- Postgres only: credit checks, allocations and session closes serialize on
  SELECT ... FOR UPDATE, which SQLite silently ignores
- Ledger policy must be sane before the first request (currency, tolerances)
- SECRET_KEY / hosts / origins must be explicit
"""

from __future__ import annotations

from django.core.exceptions import ImproperlyConfigured

from .base import *  # noqa: F403
from .base import BASE_DIR, LEDGER, MIDDLEWARE, env

DEBUG = False

# ----------------------------
# Secrets / hosts
# ----------------------------
SECRET_KEY = (env("SECRET_KEY", default="") or "").strip()
if len(SECRET_KEY) < 32 or SECRET_KEY == "dev-insecure-change-me":
    raise ImproperlyConfigured("SECRET_KEY must be set to a strong value (32+ chars) in production.")

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=[])
if not ALLOWED_HOSTS:
    raise ImproperlyConfigured("ALLOWED_HOSTS must be set in production.")

# ----------------------------
# Database: row locks are load-bearing
# ----------------------------
_database_url = (env("DATABASE_URL", default="") or "").strip()
if not _database_url.startswith(("postgres://", "postgresql://", "pgsql://")):
    raise ImproperlyConfigured("DATABASE_URL must point at Postgres in production.")

DATABASES = {"default": env.db("DATABASE_URL")}
DATABASES["default"]["CONN_MAX_AGE"] = env.int("DB_CONN_MAX_AGE", default=60)
# Each request is not one transaction; services open their own atomic blocks.
DATABASES["default"]["ATOMIC_REQUESTS"] = False

# ----------------------------
# Ledger policy sanity
# ----------------------------
if not (0 <= LEDGER["CURRENCY_EXPONENT"] <= 4):
    raise ImproperlyConfigured("LEDGER_CURRENCY_EXPONENT must be between 0 and 4.")
if len(LEDGER["CURRENCY"]) != 3:
    raise ImproperlyConfigured("LEDGER_CURRENCY must be a 3-letter ISO 4217 code.")
if LEDGER["CREDIT_DEFAULT_DURATION_DAYS"] < 1:
    raise ImproperlyConfigured("CREDIT_DEFAULT_DURATION_DAYS must be at least 1.")
_tolerances = [LEDGER["CASH_VARIANCE_TOLERANCE"], *LEDGER["CASH_VARIANCE_TOLERANCE_BY_CHANNEL"].values()]
if any(t < 0 for t in _tolerances):
    raise ImproperlyConfigured("Cash variance tolerances cannot be negative.")

# ----------------------------
# Static files (admin + Swagger UI only)
# ----------------------------
STATIC_ROOT = env("STATIC_ROOT", default=str(BASE_DIR / "staticfiles"))
MIDDLEWARE.insert(1, "whitenoise.middleware.WhiteNoiseMiddleware")
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

# ----------------------------
# TLS / headers / cookies
# ----------------------------
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_SSL_REDIRECT = env.bool("SECURE_SSL_REDIRECT", default=True)
SECURE_HSTS_SECONDS = env.int("SECURE_HSTS_SECONDS", default=3600)
SECURE_HSTS_INCLUDE_SUBDOMAINS = env.bool("SECURE_HSTS_INCLUDE_SUBDOMAINS", default=True)
SECURE_HSTS_PRELOAD = env.bool("SECURE_HSTS_PRELOAD", default=False)
SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_REFERRER_POLICY = "same-origin"
X_FRAME_OPTIONS = "DENY"

SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SESSION_COOKIE_HTTPONLY = True

# ----------------------------
# CORS / CSRF: explicit https origins only
# ----------------------------
CORS_ALLOWED_ORIGINS = env.list("CORS_ALLOWED_ORIGINS", default=[])
CSRF_TRUSTED_ORIGINS = env.list("CSRF_TRUSTED_ORIGINS", default=[])
CORS_ALLOW_CREDENTIALS = False

for _name, _origins in (
    ("CORS_ALLOWED_ORIGINS", CORS_ALLOWED_ORIGINS),
    ("CSRF_TRUSTED_ORIGINS", CSRF_TRUSTED_ORIGINS),
):
    if not _origins:
        raise ImproperlyConfigured(f"{_name} must be set in production.")
    if any(not o.startswith("https://") or "localhost" in o or "127.0.0.1" in o for o in _origins):
        raise ImproperlyConfigured(f"{_name} must list public https:// origins only.")
