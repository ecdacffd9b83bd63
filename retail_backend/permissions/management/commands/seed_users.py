# permissions/management/commands/seed_users.py
"""
Seed the role groups the capability map is keyed on, plus demo users.

    manage.py seed_users --password 'S3cret-pass'
    manage.py seed_users --password 'S3cret-pass' --tills 3   # cashier, till2, till3
    manage.py seed_users --groups-only

Re-running never resets passwords of existing users.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from permissions.roles import (
    ROLE_ACCOUNTANT,
    ROLE_ADMIN,
    ROLE_CASHIER,
    ROLE_MANAGER,
    ROLE_CAPABILITIES,
    STAFF_ROLES,
)

BACK_OFFICE = [
    ("admin", ROLE_ADMIN),
    ("manager", ROLE_MANAGER),
    ("accountant", ROLE_ACCOUNTANT),
]


def till_usernames(tills: int) -> list[str]:
    # The first till keeps the plain "cashier" login used by the POS demo.
    return ["cashier"] + [f"till{n}" for n in range(2, tills + 1)]


class Command(BaseCommand):
    help = "Create role groups and one login per back-office role plus one per till."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="", help="Password for newly created users (min 8 chars).")
        parser.add_argument("--tills", type=int, default=1, help="Number of cashier logins to create (default 1).")
        parser.add_argument("--groups-only", action="store_true", help="Only create the role groups.")

    @transaction.atomic
    def handle(self, *args, **options):
        password = options["password"] or ""
        tills = options["tills"]

        groups = {role: Group.objects.get_or_create(name=role)[0] for role in sorted(STAFF_ROLES)}
        if options["groups_only"]:
            self.stdout.write(f"groups: {', '.join(sorted(groups))}")
            return

        if len(password) < 8:
            raise CommandError("--password is required (at least 8 characters)")
        if tills < 1:
            raise CommandError("--tills must be at least 1")

        wanted = BACK_OFFICE + [(name, ROLE_CASHIER) for name in till_usernames(tills)]
        User = get_user_model()

        for username, role in wanted:
            user, created = User.objects.get_or_create(
                username=username,
                defaults={"is_staff": role != ROLE_CASHIER, "is_superuser": role == ROLE_ADMIN},
            )
            if created:
                user.set_password(password)
                user.save(update_fields=["password"])
            user.groups.add(groups[role])

            caps = ", ".join(sorted(ROLE_CAPABILITIES.get(role, ())))
            self.stdout.write(f"{'created' if created else 'exists '}  {username:<12} {role:<10} {caps}")
