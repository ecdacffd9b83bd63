#!/usr/bin/env python
"""
Management entrypoint for the retail ledger backend.

Common commands:
    manage.py migrate && manage.py seed_chart && manage.py seed_users --password ...
    manage.py check_ledger_integrity --strict

DJANGO_SETTINGS_MODULE falls back to backend.settings.dev when it is unset or
names the bare "backend.settings" package (which configures nothing).
"""

from __future__ import annotations

import os
import sys

DEFAULT_SETTINGS = "backend.settings.dev"


def main() -> None:
    if (os.environ.get("DJANGO_SETTINGS_MODULE") or "").strip() in ("", "backend.settings"):
        os.environ["DJANGO_SETTINGS_MODULE"] = DEFAULT_SETTINGS

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Install the project (pip install -e .) "
            "in an activated virtual environment first."
        ) from exc

    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
