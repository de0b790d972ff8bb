# payments/services.py
import logging

from django.conf import settings

from orders.services import OrderStateMachine, PaymentRefs
from orders.store import OrderStore

from .integrations.stripe_checkout import CheckoutSession, CompletedSession, StripeGateway

logger = logging.getLogger(__name__)

SUCCESS_PATH = "/dashboard/payment-success?session_id={CHECKOUT_SESSION_ID}"
CANCEL_PATH = "/dashboard/payment-cancelled?orderId={order_id}"


def refs_from_session(session: CompletedSession) -> PaymentRefs:
    return PaymentRefs(
        session_id=session.session_id,
        payment_intent_id=session.payment_intent_id,
        currency=session.currency or settings.STRIPE_CURRENCY,
        payment_method=session.payment_method,
        payer_email=session.payer_email,
        payload=session.payload,
    )


class CheckoutService:
    """Turns an accepted, unpaid order into a hosted checkout session."""

    def __init__(self, store: OrderStore | None = None, gateway: StripeGateway | None = None,
                 machine: OrderStateMachine | None = None):
        self.store = store or OrderStore()
        self.gateway = gateway or StripeGateway()
        self.machine = machine or OrderStateMachine(store=self.store)

    def initiate_checkout(self, order_id: str) -> CheckoutSession:
        order = self.store.find(order_id)
        amount_minor = self.machine.check_payable(order)

        client_url = settings.CLIENT_URL.rstrip("/")
        metadata = {"orderId": order.order_id, "customerEmail": order.user_email}
        session = self.gateway.create_checkout_session(
            amount_minor=amount_minor,
            currency=settings.STRIPE_CURRENCY,
            product_name=f"{order.meal_name} x {order.quantity}",
            metadata=metadata,
            customer_email=order.user_email,
            success_url=client_url + SUCCESS_PATH,
            cancel_url=client_url + CANCEL_PATH.format(order_id=order.order_id),
        )
        # audit only; order/payment status stay untouched until the payment is confirmed
        self.store.update_fields(order.order_id, {"checkout_session_id": session.id})
        logger.info("Checkout session %s created for order %s (%s minor units)", session.id, order.order_id, amount_minor)
        return session

    def sync_session(self, order_id: str, session_id: str):
        """Pull a session from the processor and apply it if it is paid.

        Used by client polling and the reconcile command; the webhook path
        reaches the same ``confirm_payment``. Returns the ledger entry or
        ``None`` while the session is still unpaid.
        """
        session = self.gateway.retrieve_session(session_id)
        if session.order_id != order_id:
            logger.warning("Session %s belongs to order %s, not %s", session_id, session.order_id, order_id)
            return None
        if not session.is_paid:
            return None
        entry, _ = self.machine.confirm_payment(order_id, session.amount_total, refs_from_session(session))
        return entry
