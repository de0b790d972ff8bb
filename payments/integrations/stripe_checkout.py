"""Stripe Checkout adapter.

Everything that talks to Stripe goes through :class:`StripeGateway`; callers
only see :class:`CheckoutSession` / :class:`CompletedSession` and the errors
from :mod:`orders.exceptions`. Amounts are integral minor units (cents) in
both directions.
"""

import json
import logging
from dataclasses import dataclass, field

import stripe
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from orders.exceptions import SignatureError, UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class CheckoutSession:
    id: str
    url: str


@dataclass
class CompletedSession:
    session_id: str
    payment_status: str
    amount_total: int
    currency: str
    metadata: dict = field(default_factory=dict)
    payment_intent_id: str = ""
    payment_method: str = ""
    customer_email: str = ""
    payload: dict = field(default_factory=dict)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    @property
    def order_id(self) -> str:
        return str(self.metadata.get("orderId") or "")

    @property
    def payer_email(self) -> str:
        return self.metadata.get("customerEmail") or self.customer_email or ""


def completed_session_from(obj: dict) -> CompletedSession:
    """Normalise a Checkout Session object as it appears in events and API responses."""
    obj = obj or {}
    intent = obj.get("payment_intent") or ""
    if isinstance(intent, dict):
        intent = intent.get("id") or ""
    methods = obj.get("payment_method_types") or []
    details = obj.get("customer_details") or {}
    return CompletedSession(
        session_id=obj.get("id") or "",
        payment_status=obj.get("payment_status") or "",
        amount_total=int(obj.get("amount_total") or 0),
        currency=(obj.get("currency") or "").lower(),
        metadata=dict(obj.get("metadata") or {}),
        payment_intent_id=intent,
        payment_method=methods[0] if methods else "",
        customer_email=details.get("email") or obj.get("customer_email") or "",
        payload=obj,
    )


class StripeGateway:
    def __init__(self, api_key=None, webhook_secret=None, tolerance=None):
        self.api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET
        self.tolerance = tolerance if tolerance is not None else getattr(settings, "STRIPE_WEBHOOK_TOLERANCE", 300)

    def create_checkout_session(self, *, amount_minor: int, currency: str, product_name: str,
                                metadata: dict, success_url: str, cancel_url: str,
                                customer_email: str = "") -> CheckoutSession:
        if not self.api_key:
            raise ImproperlyConfigured("STRIPE_SECRET_KEY setting is required to create checkout sessions")
        params = {
            "mode": "payment",
            "line_items": [{
                "price_data": {
                    "currency": currency,
                    "unit_amount": int(amount_minor),
                    "product_data": {"name": product_name},
                },
                "quantity": 1,
            }],
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if customer_email:
            params["customer_email"] = customer_email
        try:
            session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        except stripe.StripeError as e:
            logger.error("Stripe checkout session creation failed for metadata=%s: %s", metadata, e)
            raise UpstreamError(f"Could not create payment session: {e}")
        if not session.url:
            raise UpstreamError("Redirect URL missing in payment session response")
        return CheckoutSession(id=session.id, url=session.url)

    def retrieve_session(self, session_id: str) -> CompletedSession:
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.StripeError as e:
            raise UpstreamError(f"Could not retrieve payment session {session_id}: {e}")
        return completed_session_from(session.to_dict())

    def verify_event(self, payload: bytes, signature: str) -> dict:
        """Check the ``Stripe-Signature`` header and return the decoded event."""
        if not self.webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET missing in settings")
            raise ImproperlyConfigured("STRIPE_WEBHOOK_SECRET setting is required to verify webhooks")
        try:
            body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
            stripe.WebhookSignature.verify_header(body, signature or "", self.webhook_secret, self.tolerance)
            event = json.loads(body)
        except (stripe.SignatureVerificationError, UnicodeDecodeError, ValueError) as e:
            raise SignatureError(f"Invalid webhook signature: {e}")
        if not isinstance(event, dict):
            raise SignatureError("Invalid webhook payload")
        return event
