# accounting/tests/test_money_and_api.py

from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from accounting.models import JournalEntry
from accounting.money import MoneyConversionError, to_major_units, to_minor_units
from accounting.services.account_resolver import ensure_default_chart
from accounting.services.balance_service import get_account_balance

User = get_user_model()


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def _user_with_role(username: str, role: str):
    user = User.objects.create_user(username=username, password="pass1234")
    group, _ = Group.objects.get_or_create(name=role)
    user.groups.add(group)
    return user


class MoneyConversionTests(TestCase):
    """
    GUARANTEES
    - Major-unit values convert to integer minor units, half-up at the currency exponent
    - Garbage, empty and boolean inputs are rejected
    """

    def test_decimal_string_to_minor_units(self):
        self.assertEqual(to_minor_units("1250.50"), 125_050)
        self.assertEqual(to_minor_units("12.345"), 1_235)
        self.assertEqual(to_minor_units(Decimal("0.01")), 1)
        self.assertEqual(to_minor_units(7), 700)

    def test_minor_to_major_units(self):
        self.assertEqual(to_major_units(125_050), Decimal("1250.50"))
        self.assertEqual(to_major_units(-5), Decimal("-0.05"))

    @override_settings(LEDGER={"CURRENCY": "UGX", "CURRENCY_EXPONENT": 0})
    def test_zero_exponent_currency(self):
        self.assertEqual(to_minor_units("1500.4"), 1_500)
        self.assertEqual(to_major_units(1_500), Decimal("1500"))

    def test_invalid_inputs(self):
        for bad in ("", None, "abc", True, "NaN", "Infinity", "1e30", "99999999999999999999", "-99999999999999999999"):
            with self.subTest(value=bad):
                with self.assertRaises(MoneyConversionError):
                    to_minor_units(bad)

        with self.assertRaises(MoneyConversionError):
            to_major_units(12.5)

    def test_largest_storable_amount(self):
        self.assertEqual(to_minor_units("92233720368547758.07"), 2**63 - 1)
        with self.assertRaises(MoneyConversionError):
            to_minor_units("92233720368547758.08")


class JournalApiTests(TestCase):
    """
    GUARANTEES
    - Only ledger.post holders can post manual entries
    - Amounts are accepted as decimal strings and stored as minor units
    - Unbalanced input -> 400, duplicate source -> 409
    - Trial balance requires ledger.view
    """

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------
    def setUp(self):
        ensure_default_chart()
        self.client = APIClient()
        self.accountant = _user_with_role("acc", "accountant")
        self.cashier = _user_with_role("cash", "cashier")

    def _payload(self, source_id="M-1", debit="100.00", credit="100.00"):
        return {
            "memo": "Owner float",
            "source_id": source_id,
            "lines": [
                {"account_code": "1000", "debit": debit},
                {"account_code": "4000", "credit": credit},
            ],
        }

    # ------------------------------------------------------------------
    # Tests
    # ------------------------------------------------------------------
    def test_accountant_posts_entry(self):
        self.client.force_authenticate(self.accountant)
        resp = self.client.post("/api/accounting/journal-entries/post/", self._payload(), format="json")

        self.assertEqual(resp.status_code, 201, resp.data)
        self.assertEqual(resp.data["reference"], "manual:M-1")
        self.assertEqual(resp.data["created_by"], "acc")
        self.assertEqual(get_account_balance("1000"), 10_000)

    def test_cashier_cannot_post(self):
        self.client.force_authenticate(self.cashier)
        resp = self.client.post("/api/accounting/journal-entries/post/", self._payload(), format="json")

        self.assertEqual(resp.status_code, 403)
        self.assertFalse(JournalEntry.objects.exists())

    def test_unbalanced_payload_is_400(self):
        self.client.force_authenticate(self.accountant)
        resp = self.client.post(
            "/api/accounting/journal-entries/post/",
            self._payload(credit="99.99"),
            format="json",
        )
        self.assertEqual(resp.status_code, 400)

    def test_out_of_range_amount_is_400(self):
        self.client.force_authenticate(self.accountant)
        for huge in ("1e30", "99999999999999999999"):
            with self.subTest(amount=huge):
                resp = self.client.post(
                    "/api/accounting/journal-entries/post/",
                    self._payload(source_id=f"M-{huge}", debit=huge, credit=huge),
                    format="json",
                )
                self.assertEqual(resp.status_code, 400)
        self.assertFalse(JournalEntry.objects.exists())

    def test_duplicate_source_is_409(self):
        self.client.force_authenticate(self.accountant)
        self.client.post("/api/accounting/journal-entries/post/", self._payload(), format="json")
        resp = self.client.post("/api/accounting/journal-entries/post/", self._payload(), format="json")

        self.assertEqual(resp.status_code, 409)
        self.assertIsNotNone(resp.data["existing_entry_id"])

    def test_trial_balance_requires_ledger_view(self):
        self.client.force_authenticate(self.cashier)
        self.assertEqual(self.client.get("/api/accounting/trial-balance/").status_code, 403)

        self.client.force_authenticate(self.accountant)
        resp = self.client.get("/api/accounting/trial-balance/")
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data["is_balanced"])


# ----------------------------------------------------------------------
# Health
# ----------------------------------------------------------------------
class HealthCheckTests(TestCase):
    """
    GUARANTEES
    - The health endpoint is public
    - An unseeded chart is reported as degraded (503) with the missing keys
    """

    def test_unseeded_chart_is_degraded(self):
        resp = APIClient().get("/api/health/")
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.data["chart"], "unseeded")
        self.assertIn("CASH_SHORT_OVER", resp.data["missing_accounts"])

    def test_seeded_chart_is_ok(self):
        ensure_default_chart()
        resp = APIClient().get("/api/health/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["status"], "ok")
        self.assertEqual(resp.data["missing_accounts"], [])
