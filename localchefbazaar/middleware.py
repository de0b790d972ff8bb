from django.conf import settings
from django.http import JsonResponse
from django.urls import reverse


class MaintenanceModeMiddleware:
    """Answer every API request with 503 while maintenance mode is on.

    The admin site and the payment webhook stay reachable.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if getattr(settings, "MAINTENANCE_MODE", False):
            excluded_paths = ["/admin/", reverse("payments:stripe_webhook")]
            static_prefix = getattr(settings, "STATIC_URL", "/static/")
            if (
                not request.path.startswith(tuple(excluded_paths))
                and not request.path.startswith(static_prefix)
            ):
                return JsonResponse(
                    {"success": False, "message": "Service under maintenance"},
                    status=503,
                )
        return self.get_response(request)
