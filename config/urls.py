"""
URL configuration for the coding grader backend
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularSwaggerView,
)


@require_http_methods(["GET"])
def health_view(request):
    """Minimal health check for connectivity verification. No auth required."""
    return JsonResponse({'status': 'ok', 'service': 'coding-grader'})


@require_http_methods(["GET"])
def system_health_view(request):
    """
    Full system health check for monitoring.
    Returns db and sandbox backend status. No auth required.
    """
    from django.conf import settings
    result = {'db': 'ok', 'coding': 'ok', 'sandbox': settings.SANDBOX_BACKEND}
    try:
        from django.db import connection
        connection.ensure_connection()
    except Exception as e:
        result['db'] = f'error: {str(e)[:80]}'
    try:
        from coding.models import CodingAssignment
        CodingAssignment.objects.exists()
    except Exception as e:
        result['coding'] = f'error: {str(e)[:80]}'
    return JsonResponse(result)


urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/health/', health_view, name='api-health'),
    path('api/system/health/', system_health_view, name='api-system-health'),

    # API Schema
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # API endpoints
    path('api/auth/', include('accounts.urls')),
    path('api/', include('coding.urls')),
]
