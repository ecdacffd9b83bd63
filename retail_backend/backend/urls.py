# backend/urls.py
"""
PROJECT URLS

/api/                 index of the engine modules
/api/health/          liveness + ledger readiness (AllowAny)
/api/schema/, /docs/  OpenAPI (drf-spectacular)
/api/auth/jwt/...     SimpleJWT token pair / refresh

/api/accounting/      ledger store (accounts, journal entries, trial balance)
/api/credit/          parties + credit policy
/api/payments/        invoices + payment allocation
/api/cashier/         cashier sessions, cash counts, reconciliation

The admin mount point comes from settings.ADMIN_PATH (default "admin/").
"""

from __future__ import annotations

from django.conf import settings
from django.contrib import admin
from django.db import DatabaseError, connection
from django.urls import include, path
from django.views.generic import RedirectView
from drf_spectacular.utils import extend_schema, inline_serializer
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework import serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from accounting.services.account_resolver import missing_chart_keys
from accounting.services.exceptions import AccountResolutionError

ENGINE_MODULES = ("accounting", "credit", "payments", "cashier")


@extend_schema(
    responses=inline_serializer(
        "ApiIndex",
        fields={
            "service": serializers.CharField(),
            "currency": serializers.CharField(),
            "modules": serializers.DictField(child=serializers.CharField()),
        },
    )
)
@api_view(["GET"])
@permission_classes([AllowAny])
def api_index(request):
    return Response(
        {
            "service": "retail-ledger",
            "currency": settings.LEDGER["CURRENCY"],
            "modules": {name: f"/api/{name}/" for name in ENGINE_MODULES},
            "auth": "/api/auth/jwt/create/",
            "docs": "/api/docs/",
        }
    )


@extend_schema(
    responses={
        200: inline_serializer(
            "Health",
            fields={
                "status": serializers.CharField(),
                "db": serializers.CharField(),
                "chart": serializers.CharField(),
                "missing_accounts": serializers.ListField(child=serializers.CharField()),
            },
        ),
        503: dict,
    }
)
@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request):
    """
    200 only when the database answers and every default ledger account exists.
    """
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        missing = missing_chart_keys()
    except DatabaseError as exc:
        return Response({"status": "degraded", "db": "down", "error": str(exc)}, status=503)
    except AccountResolutionError as exc:
        return Response({"status": "degraded", "db": "ok", "chart": "misconfigured", "error": str(exc)}, status=503)

    if missing:
        return Response(
            {"status": "degraded", "db": "ok", "chart": "unseeded", "missing_accounts": missing},
            status=503,
        )
    return Response({"status": "ok", "db": "ok", "chart": "ok", "missing_accounts": []})


admin_path = getattr(settings, "ADMIN_PATH", "admin/")
if not admin_path.endswith("/"):
    admin_path += "/"

api_urlpatterns = [
    path("", api_index, name="api-root"),
    path("health/", health_check, name="health-check"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("auth/jwt/create/", TokenObtainPairView.as_view(), name="jwt-create"),
    path("auth/jwt/refresh/", TokenRefreshView.as_view(), name="jwt-refresh"),
] + [path(f"{name}/", include(f"{name}.api.urls")) for name in ENGINE_MODULES]

urlpatterns = [
    path(admin_path, admin.site.urls),
    path("", RedirectView.as_view(url="/api/docs/", permanent=False), name="root"),
    path("api/", include(api_urlpatterns)),
]
