# backend/settings/__init__.py
"""
Settings are split per environment; nothing is imported here.

- backend.settings.dev   local API work (SQLite allowed)
- backend.settings.prod  Postgres only, ledger policy validated at import
- backend.settings.test  in-memory SQLite, no migrations, fixed KES policy
"""
