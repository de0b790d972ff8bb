from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from orders.exceptions import OrderError
from orders.store import OrderStore

from .services import CheckoutService


def _error(e: OrderError):
    return JsonResponse(e.as_dict(), status=e.status_code)


@csrf_exempt
@require_POST
def create_checkout_session_view(request, order_id: str):
    try:
        session = CheckoutService().initiate_checkout(order_id)
    except OrderError as e:
        return _error(e)
    return JsonResponse({"success": True, "url": session.url, "sessionId": session.id})


@require_GET
def payment_status_view(request, order_id: str):
    """Client polling after the checkout redirect.

    With ``?session_id=`` the session is pulled from the processor and applied
    when paid, so the customer sees the result even before the webhook lands.
    """
    store = OrderStore()
    session_id = request.GET.get("session_id", "")
    try:
        order = store.find(order_id)
        if session_id and not order.is_paid:
            CheckoutService(store=store).sync_session(order_id, session_id)
            order = store.find(order_id)
    except OrderError as e:
        return _error(e)

    return JsonResponse({
        "success": True,
        "data": {
            "orderId": order.order_id,
            "orderStatus": order.order_status,
            "paymentStatus": order.payment_status,
            "paymentTime": order.payment_time.isoformat() if order.payment_time else None,
            "isPaid": order.is_paid,
        },
    })
