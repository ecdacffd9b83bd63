# backend/wsgi.py
"""
WSGI entrypoint for the retail ledger API (gunicorn backend.wsgi).

prod settings refuse to start without Postgres, so a misconfigured
DJANGO_SETTINGS_MODULE fails here rather than on the first allocation.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings.dev")

application = get_wsgi_application()
