import logging
from dataclasses import dataclass
from enum import Enum

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from orders.exceptions import InvalidStateError, NotFoundError, OrderError, SignatureError
from orders.services import OrderStateMachine

from .integrations.stripe_checkout import StripeGateway, completed_session_from
from .services import refs_from_session

logger = logging.getLogger(__name__)

COMPLETED = "checkout.session.completed"
ASYNC_SUCCEEDED = "checkout.session.async_payment_succeeded"


class Outcome(str, Enum):
    REJECTED = "rejected"
    IGNORED = "ignored"
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass
class WebhookResult:
    outcome: Outcome
    event_id: str = ""
    order_id: str = ""
    detail: str = ""

    @property
    def acknowledged(self) -> bool:
        return self.outcome != Outcome.REJECTED


class PaymentWebhookHandler:
    """Verify a processor event and reconcile it against the order it names.

    Only signature failures are reported back to the processor; anything
    that goes wrong after verification is logged and acknowledged.
    """

    def __init__(self, gateway: StripeGateway | None = None, machine: OrderStateMachine | None = None):
        self.gateway = gateway or StripeGateway()
        self.machine = machine or OrderStateMachine()

    def handle(self, payload: bytes, signature: str) -> WebhookResult:
        try:
            event = self.gateway.verify_event(payload, signature)
        except SignatureError as e:
            logger.warning("Rejected webhook: %s", e.message)
            return WebhookResult(Outcome.REJECTED, detail=e.message)

        event_id = str(event.get("id") or "")
        kind = str(event.get("type") or "")
        data = event.get("data")
        obj = data.get("object") if isinstance(data, dict) else None
        if not isinstance(obj, dict):
            obj = {}

        if kind not in (COMPLETED, ASYNC_SUCCEEDED):
            logger.info("Ignoring webhook %s of type %s", event_id, kind or "unknown")
            return WebhookResult(Outcome.IGNORED, event_id=event_id, detail=kind)

        try:
            session = completed_session_from(obj)
        except (TypeError, ValueError) as e:
            logger.error("Webhook %s: malformed checkout session %s: %s", event_id, obj.get("id"), e)
            return WebhookResult(Outcome.FAILED, event_id=event_id, detail="malformed session")
        if not session.is_paid:
            # delayed methods complete first and settle with async_payment_succeeded
            logger.info("Session %s completed with payment_status=%s; waiting for settlement",
                        session.session_id, session.payment_status or "unknown")
            return WebhookResult(Outcome.IGNORED, event_id=event_id, order_id=session.order_id,
                                 detail="unpaid")

        order_id = session.order_id
        if not order_id:
            logger.error("Webhook %s: session %s carries no orderId metadata", event_id, session.session_id)
            return WebhookResult(Outcome.FAILED, event_id=event_id, detail="missing orderId")

        try:
            entry, created = self.machine.confirm_payment(order_id, session.amount_total, refs_from_session(session))
        except NotFoundError as e:
            logger.error("Webhook %s: %s (session %s)", event_id, e.message, session.session_id)
            return WebhookResult(Outcome.FAILED, event_id=event_id, order_id=order_id, detail=e.code)
        except InvalidStateError as e:
            logger.error("Webhook %s: order %s rejected payment, %s: %s (session %s)",
                         event_id, order_id, e.reason, e.message, session.session_id)
            return WebhookResult(Outcome.FAILED, event_id=event_id, order_id=order_id, detail=e.reason)
        except OrderError as e:
            logger.error("Webhook %s: order %s: %s", event_id, order_id, e.message)
            return WebhookResult(Outcome.FAILED, event_id=event_id, order_id=order_id, detail=e.code)
        except Exception:
            logger.exception("Webhook %s: reconciliation crashed for order %s", event_id, order_id)
            return WebhookResult(Outcome.FAILED, event_id=event_id, order_id=order_id, detail="error")

        if not created:
            logger.info("Webhook %s: session %s already recorded for order %s", event_id, entry.session_id, order_id)
            return WebhookResult(Outcome.DUPLICATE, event_id=event_id, order_id=order_id)
        return WebhookResult(Outcome.APPLIED, event_id=event_id, order_id=order_id)


@csrf_exempt
@require_POST
def stripe_webhook(request):
    signature = request.headers.get("Stripe-Signature", "")
    result = PaymentWebhookHandler().handle(request.body, signature)
    if not result.acknowledged:
        return JsonResponse({"received": False, "error": result.detail}, status=400)
    return JsonResponse({"received": True})
