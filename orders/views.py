import json

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods

from .exceptions import OrderError
from .services import OrderStateMachine
from .store import OrderStore


def _json_body(request):
    try: return json.loads(request.body.decode("utf-8"))
    except Exception: return None


def _error(e: OrderError):
    return JsonResponse(e.as_dict(), status=e.status_code)


@csrf_exempt
@require_http_methods(["GET", "POST"])
def orders_view(request):
    if request.method == "GET":
        email = request.GET.get("email", "")
        if not email:
            return JsonResponse({"success": False, "message": "Email is required"}, status=400)
        orders = OrderStore().for_customer(email)
        return JsonResponse({"success": True, "data": [o.as_dict() for o in orders]})

    body = _json_body(request)
    if not isinstance(body, dict):
        return JsonResponse({"success": False, "message": "Invalid JSON body"}, status=400)
    try:
        order = OrderStateMachine().place_order(body)
    except OrderError as e:
        return _error(e)
    return JsonResponse(
        {"success": True, "message": "Order placed successfully", "data": order.as_dict()},
        status=201,
    )


@require_GET
def order_detail_view(request, order_id: str):
    try:
        order = OrderStore().find(order_id)
    except OrderError as e:
        return _error(e)
    return JsonResponse({"success": True, "data": order.as_dict()})


@csrf_exempt
@require_http_methods(["PUT", "PATCH"])
def order_status_view(request, order_id: str):
    body = _json_body(request)
    if not isinstance(body, dict):
        body = {}
    try:
        order = OrderStateMachine().set_status(order_id, body.get("status"))
    except OrderError as e:
        return _error(e)
    return JsonResponse({
        "success": True,
        "message": f"Order {order.order_status} successfully",
        "data": order.as_dict(),
    })


@require_GET
def chef_orders_view(request):
    chef_id = request.GET.get("chefId", "")
    if not chef_id:
        return JsonResponse({"success": False, "message": "chefId is required"}, status=400)
    orders = OrderStore().for_chef(chef_id)
    return JsonResponse({"success": True, "data": [o.as_dict() for o in orders]})
