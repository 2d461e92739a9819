from django.conf import settings
from django.contrib import admin
from django.http import JsonResponse
from django.urls import include, path
from django.views.generic import RedirectView
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView, SpectacularSwaggerView

from apps.authentication.urls import user_router
from apps.orders.views_media import SecureMediaView


# ---------- Health / Readiness probes -----------------------------------------

def health_check(request):
    """Liveness probe: 200 while the process is up."""
    return JsonResponse({"status": "ok"})


def readiness_check(request):
    """Readiness probe: database and cache must answer."""
    from django.db import connection
    from django.core.cache import cache
    checks = {"db": "ok", "cache": "ok"}
    status_code = 200

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except Exception as exc:
        checks["db"] = str(exc)
        status_code = 503

    try:
        cache.set("_readiness_probe", "1", timeout=5)
        if cache.get("_readiness_probe") != "1":
            checks["cache"] = "read-back failed"
            status_code = 503
    except Exception as exc:
        checks["cache"] = str(exc)
        status_code = 503

    overall = "ready" if status_code == 200 else "not_ready"
    return JsonResponse({"status": overall, **checks}, status=status_code)


urlpatterns = [
    path("", RedirectView.as_view(url="/admin/", permanent=False)),
    path("admin/", admin.site.urls),

    # Health probes
    path("health/", health_check, name="health-check"),
    path("api/health/", health_check, name="api-health-check"),
    path("api/readiness/", readiness_check, name="readiness-check"),

    path("api/auth/", include("apps.authentication.urls")),
    path("api/users/", include(user_router.urls)),
    path("api/orders/", include("apps.orders.urls")),
    path("api/tasks/", include("apps.tasks.urls")),
    path("api/notifications/", include("apps.notifications.urls")),
    path("api/products/", include("apps.products.urls")),

    # Authenticated media serving
    path("api/media/<path:file_path>", SecureMediaView.as_view(), name="secure-media"),
]

if getattr(settings, "ENABLE_API_DOCS", False):
    urlpatterns += [
        path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
        path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
        path("api/redoc/", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    ]
