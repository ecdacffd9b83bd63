# permissions/apps.py

"""
PERMISSIONS APP CONFIG

Role -> capability mapping for the API layer, plus the seed_users command.
Roles are read from user.role, superuser status or Django group names.
"""

from django.apps import AppConfig


class PermissionsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "permissions"
    verbose_name = "Staff Permissions"
