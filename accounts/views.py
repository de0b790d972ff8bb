from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from orders.exceptions import OrderError

from .services import mark_fraud


@csrf_exempt
@require_http_methods(["PUT"])
def mark_fraud_view(request, account_id: str):
    try:
        account = mark_fraud(account_id)
    except OrderError as e:
        return JsonResponse(e.as_dict(), status=e.status_code)
    return JsonResponse({
        "success": True,
        "message": "User marked as fraud successfully",
        "data": {"id": account.pk, "email": account.email, "status": account.status},
    })
