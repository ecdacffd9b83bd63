# permissions/roles.py

from __future__ import annotations

from typing import Optional

from rest_framework.permissions import BasePermission


# =========================================================
# ROLE CONSTANTS (STAFF JOB ROLES)
# =========================================================
# They describe what the staff member does.
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"  # supervisor: reviews variances, approves reconciliations
ROLE_ACCOUNTANT = "accountant"
ROLE_CASHIER = "cashier"

STAFF_ROLES = {
    ROLE_ADMIN,
    ROLE_MANAGER,
    ROLE_ACCOUNTANT,
    ROLE_CASHIER,
}


# =========================================================
# CAPABILITIES (THE REAL PERMISSION LANGUAGE)
# =========================================================
# Views protect capabilities, not raw roles.
CAP_LEDGER_VIEW = "ledger.view"
CAP_LEDGER_POST = "ledger.post"               # manual entries + reversals

CAP_CREDIT_VIEW = "credit.view"
CAP_CREDIT_MANAGE = "credit.manage"           # approve / limit / duration / freeze

CAP_INVOICES_MANAGE = "invoices.manage"
CAP_PAYMENTS_ALLOCATE = "payments.allocate"

CAP_CASHIER_OPERATE = "cashier.operate"       # open/close own session, counts
CAP_CASHIER_REVIEW = "cashier.review"         # variance review, mobile money verification
CAP_RECONCILIATION_APPROVE = "reconciliation.approve"

ALL_CAPABILITIES = {
    CAP_LEDGER_VIEW,
    CAP_LEDGER_POST,
    CAP_CREDIT_VIEW,
    CAP_CREDIT_MANAGE,
    CAP_INVOICES_MANAGE,
    CAP_PAYMENTS_ALLOCATE,
    CAP_CASHIER_OPERATE,
    CAP_CASHIER_REVIEW,
    CAP_RECONCILIATION_APPROVE,
}


# =========================================================
# ROLE → CAPABILITY MAP (DEFAULT)
# =========================================================
ROLE_CAPABILITIES: dict[str, set[str]] = {
    ROLE_ADMIN: {
        *ALL_CAPABILITIES,
    },
    ROLE_MANAGER: {
        CAP_LEDGER_VIEW,
        CAP_CREDIT_VIEW,
        CAP_CREDIT_MANAGE,
        CAP_INVOICES_MANAGE,
        CAP_PAYMENTS_ALLOCATE,
        CAP_CASHIER_OPERATE,
        CAP_CASHIER_REVIEW,
        CAP_RECONCILIATION_APPROVE,
    },
    ROLE_ACCOUNTANT: {
        CAP_LEDGER_VIEW,
        CAP_LEDGER_POST,
        CAP_CREDIT_VIEW,
        CAP_INVOICES_MANAGE,
        CAP_PAYMENTS_ALLOCATE,
    },
    ROLE_CASHIER: {
        CAP_CREDIT_VIEW,
        CAP_PAYMENTS_ALLOCATE,
        CAP_CASHIER_OPERATE,
        # deliberately NOT review: a cashier never signs off their own variance
    },
}


# =========================================================
# Helpers
# =========================================================
def get_user_role(user) -> Optional[str]:
    """
    Role resolution (identity is issued elsewhere):
    - explicit user.role attribute (custom user models)
    - superuser -> admin
    - first Django group whose name is a known role
    """
    if not user or not getattr(user, "is_authenticated", False):
        return None

    role = getattr(user, "role", None)
    if role in STAFF_ROLES:
        return role

    if getattr(user, "is_superuser", False):
        return ROLE_ADMIN

    groups = getattr(user, "groups", None)
    if groups is not None:
        for name in groups.values_list("name", flat=True):
            normalized = (name or "").strip().lower()
            if normalized in STAFF_ROLES:
                return normalized

    return None


def effective_capabilities_for(user) -> set[str]:
    return set(ROLE_CAPABILITIES.get(get_user_role(user), set()))


def user_has_capability(user, capability: str) -> bool:
    return capability in effective_capabilities_for(user)


def actor_label(user) -> str:
    """Stable string recorded in created_by / approved_by audit fields."""
    if not user or not getattr(user, "is_authenticated", False):
        return ""
    return str(getattr(user, "username", "") or user.pk)


# =========================================================
# Capability Permissions
# =========================================================
class HasCapability(BasePermission):
    """
    Require a specific capability.

    Usage:
        permission_classes = [IsAuthenticated, HasCapability]
        view.required_capability = CAP_PAYMENTS_ALLOCATE
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = getattr(view, "required_capability", None)
        if not required:
            # If not set, deny-by-default to avoid accidental open endpoints
            return False

        return user_has_capability(user, required)

