# permissions/tests/test_roles.py

from __future__ import annotations

from io import StringIO
from types import SimpleNamespace

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser, Group
from django.core.management import CommandError, call_command
from django.test import TestCase
from rest_framework.test import APIRequestFactory

from permissions.roles import (
    CAP_CASHIER_OPERATE,
    CAP_CASHIER_REVIEW,
    CAP_LEDGER_POST,
    CAP_LEDGER_VIEW,
    CAP_PAYMENTS_ALLOCATE,
    CAP_RECONCILIATION_APPROVE,
    ROLE_ADMIN,
    ROLE_CASHIER,
    HasCapability,
    actor_label,
    get_user_role,
    user_has_capability,
)

User = get_user_model()


class RoleResolutionTests(TestCase):
    """
    GUARANTEES
    - Superusers resolve to admin
    - Group names (case-insensitive) resolve to roles
    - Unknown or anonymous users have no capabilities
    """

    def test_superuser_is_admin(self):
        user = User.objects.create_superuser(username="root", password="pass1234")
        self.assertEqual(get_user_role(user), ROLE_ADMIN)
        self.assertTrue(user_has_capability(user, CAP_LEDGER_POST))

    def test_group_name_resolves_role(self):
        user = User.objects.create_user(username="till3", password="pass1234")
        user.groups.add(Group.objects.create(name="Cashier"))

        self.assertEqual(get_user_role(user), ROLE_CASHIER)
        self.assertTrue(user_has_capability(user, CAP_PAYMENTS_ALLOCATE))
        self.assertTrue(user_has_capability(user, CAP_CASHIER_OPERATE))
        self.assertFalse(user_has_capability(user, CAP_CASHIER_REVIEW))
        self.assertFalse(user_has_capability(user, CAP_LEDGER_VIEW))

    def test_manager_reviews_but_does_not_post(self):
        user = User.objects.create_user(username="sup", password="pass1234")
        user.groups.add(Group.objects.create(name="manager"))

        self.assertTrue(user_has_capability(user, CAP_RECONCILIATION_APPROVE))
        self.assertFalse(user_has_capability(user, CAP_LEDGER_POST))

    def test_no_role_no_capabilities(self):
        user = User.objects.create_user(username="nobody", password="pass1234")

        self.assertIsNone(get_user_role(user))
        self.assertIsNone(get_user_role(AnonymousUser()))
        self.assertFalse(user_has_capability(user, CAP_LEDGER_VIEW))

    def test_actor_label(self):
        user = User.objects.create_user(username="books", password="pass1234")
        self.assertEqual(actor_label(user), "books")
        self.assertEqual(actor_label(AnonymousUser()), "")


class HasCapabilityPermissionTests(TestCase):
    """
    GUARANTEES
    - Views without required_capability deny by default
    """

    # ----------------------------------------------------------------------
    # Helpers
    # ----------------------------------------------------------------------
    def _request_for(self, user):
        request = APIRequestFactory().get("/")
        request.user = user
        return request

    def test_required_capability(self):
        user = User.objects.create_user(username="acct", password="pass1234")
        user.groups.add(Group.objects.create(name="accountant"))
        request = self._request_for(user)

        self.assertTrue(
            HasCapability().has_permission(request, SimpleNamespace(required_capability=CAP_LEDGER_VIEW))
        )
        self.assertFalse(
            HasCapability().has_permission(request, SimpleNamespace(required_capability=CAP_CASHIER_REVIEW))
        )
        self.assertFalse(HasCapability().has_permission(request, SimpleNamespace()))

    def test_anonymous_denied(self):
        request = self._request_for(AnonymousUser())
        self.assertFalse(
            HasCapability().has_permission(request, SimpleNamespace(required_capability=CAP_LEDGER_VIEW))
        )


class SeedUsersCommandTests(TestCase):
    def test_seed_users_is_idempotent(self):
        call_command("seed_users", "--password", "Seed-pass-123", stdout=StringIO())
        call_command("seed_users", "--password", "Seed-pass-123", stdout=StringIO())

        self.assertEqual(User.objects.filter(username__in=["admin", "manager", "accountant", "cashier"]).count(), 4)
        self.assertEqual(get_user_role(User.objects.get(username="cashier")), ROLE_CASHIER)

    def test_one_cashier_login_per_till(self):
        out = StringIO()
        call_command("seed_users", "--password", "Seed-pass-123", "--tills", "3", stdout=out)

        for username in ("cashier", "till2", "till3"):
            user = User.objects.get(username=username)
            self.assertEqual(get_user_role(user), ROLE_CASHIER)
            self.assertFalse(user.is_staff)
        self.assertIn("cashier.operate", out.getvalue())

    def test_short_password_rejected(self):
        with self.assertRaises(CommandError):
            call_command("seed_users", "--password", "short", stdout=StringIO())

    def test_groups_only_creates_no_users(self):
        call_command("seed_users", "--groups-only", stdout=StringIO())
        self.assertEqual(User.objects.count(), 0)
        self.assertTrue(Group.objects.filter(name=ROLE_CASHIER).exists())
