import hashlib
import hmac
import json
import time
from decimal import Decimal
from unittest.mock import patch

from django.conf import settings
from django.test import TestCase

from orders.models import OrderStatus, PaymentStatus
from orders.services import OrderStateMachine

from .integrations.stripe_checkout import CheckoutSession
from .models import PaymentLedgerEntry
from .webhook import Outcome, PaymentWebhookHandler


def sign(payload: str, secret: str | None = None, timestamp: int | None = None) -> str:
    secret = secret or settings.STRIPE_WEBHOOK_SECRET
    timestamp = timestamp or int(time.time())
    mac = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={mac}"


def completion_event(order_id, session_id="cs_test_1", amount=1000, kind="checkout.session.completed",
                     payment_status="paid", event_id="evt_1"):
    return {
        "id": event_id,
        "object": "event",
        "type": kind,
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "amount_total": amount,
                "currency": "usd",
                "payment_status": payment_status,
                "payment_intent": "pi_1",
                "payment_method_types": ["card"],
                "customer_details": {"email": "u@x.com"},
                "metadata": {"orderId": order_id, "customerEmail": "u@x.com"},
            }
        },
    }


class StripeWebhookTests(TestCase):
    def setUp(self):
        self.machine = OrderStateMachine()
        self.order = self.machine.place_order({
            "foodId": "m1",
            "mealName": "Curry",
            "price": 10,
            "chefId": "c1",
            "userEmail": "u@x.com",
            "userAddress": "Addr",
        })

    def _post(self, event: dict, signature: str | None = None):
        payload = json.dumps(event)
        return self.client.post(
            "/payments/webhook",
            data=payload,
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE=signature if signature is not None else sign(payload),
        )

    def test_completed_session_marks_order_paid(self):
        self.machine.set_status(self.order.order_id, "accepted")

        resp = self._post(completion_event(self.order.order_id))

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"received": True})
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PAID)
        self.assertIsNotNone(self.order.payment_time)
        entry = PaymentLedgerEntry.objects.get()
        self.assertEqual(entry.amount, Decimal("10.00"))
        self.assertEqual(entry.payment_intent_id, "pi_1")
        self.assertEqual(entry.payment_method, "card")
        self.assertEqual(entry.payer_email, "u@x.com")

    def test_redelivered_event_is_acknowledged_once_recorded(self):
        self.machine.set_status(self.order.order_id, "accepted")
        event = completion_event(self.order.order_id)

        first = self._post(event)
        second = self._post(event)

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 200)
        self.assertEqual(PaymentLedgerEntry.objects.count(), 1)

    def test_invalid_signature_is_rejected_without_mutation(self):
        self.machine.set_status(self.order.order_id, "accepted")
        event = completion_event(self.order.order_id, amount=500)

        with self.assertLogs("payments.webhook", level="WARNING"):
            resp = self._post(event, signature="t=1,v1=deadbeef")

        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.json()["received"])
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PENDING)
        self.assertFalse(PaymentLedgerEntry.objects.exists())

    def test_wrong_secret_is_rejected(self):
        self.machine.set_status(self.order.order_id, "accepted")
        payload = json.dumps(completion_event(self.order.order_id))
        resp = self._post(json.loads(payload), signature=sign(payload, secret="whsec_other"))
        self.assertEqual(resp.status_code, 400)

    def test_missing_signature_is_rejected(self):
        resp = self.client.post("/payments/webhook", data=json.dumps(completion_event(self.order.order_id)),
                                content_type="application/json")
        self.assertEqual(resp.status_code, 400)

    def test_unhandled_kind_is_acknowledged_without_touching_orders(self):
        self.machine.set_status(self.order.order_id, "accepted")
        event = completion_event(self.order.order_id, kind="subscription.updated")

        resp = self._post(event)

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"received": True})
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PENDING)

    def test_completed_but_unpaid_session_waits_for_settlement(self):
        self.machine.set_status(self.order.order_id, "accepted")

        self._post(completion_event(self.order.order_id, payment_status="unpaid"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PENDING)

        self._post(completion_event(self.order.order_id, kind="checkout.session.async_payment_succeeded",
                                    event_id="evt_2"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PAID)

    def test_unknown_order_is_logged_and_acknowledged(self):
        with self.assertLogs("payments.webhook", level="ERROR") as cm:
            resp = self._post(completion_event("NOPE"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"received": True})
        self.assertIn("Order not found: NOPE", cm.output[0])

    def test_malformed_amount_gets_200(self):
        self.machine.set_status(self.order.order_id, "accepted")
        with self.assertLogs("payments.webhook", level="ERROR"):
            resp = self._post(completion_event(self.order.order_id, amount="lots"))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"received": True})

    def test_payment_for_pending_order_is_logged_and_acknowledged(self):
        with self.assertLogs("payments.webhook", level="ERROR") as cm:
            resp = self._post(completion_event(self.order.order_id))
        self.assertEqual(resp.status_code, 200)
        self.assertIn("not_accepted", cm.output[0])
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PENDING)


class PaymentWebhookHandlerTests(TestCase):
    def setUp(self):
        self.machine = OrderStateMachine()
        self.handler = PaymentWebhookHandler(machine=self.machine)
        self.order = self.machine.place_order({
            "foodId": "m1",
            "mealName": "Curry",
            "price": 10,
            "chefId": "c1",
            "userEmail": "u@x.com",
            "userAddress": "Addr",
        })
        self.machine.set_status(self.order.order_id, "accepted")

    def _handle(self, event):
        payload = json.dumps(event)
        return self.handler.handle(payload.encode(), sign(payload))

    def test_outcomes(self):
        self.assertEqual(self._handle(completion_event(self.order.order_id)).outcome, Outcome.APPLIED)
        self.assertEqual(self._handle(completion_event(self.order.order_id)).outcome, Outcome.DUPLICATE)
        self.assertEqual(
            self._handle(completion_event(self.order.order_id, kind="charge.refunded")).outcome, Outcome.IGNORED
        )
        with self.assertLogs("payments.webhook", level="ERROR"):
            result = self._handle(completion_event(self.order.order_id, session_id="cs_test_2"))
        self.assertEqual(result.outcome, Outcome.FAILED)
        self.assertEqual(result.detail, "already_paid")
        self.assertTrue(result.acknowledged)

    def test_missing_order_metadata(self):
        event = completion_event(self.order.order_id)
        event["data"]["object"]["metadata"] = {}
        with self.assertLogs("payments.webhook", level="ERROR"):
            result = self._handle(event)
        self.assertEqual(result.outcome, Outcome.FAILED)

    def test_non_numeric_amount_is_logged_and_acknowledged(self):
        event = completion_event(self.order.order_id, amount="lots")
        with self.assertLogs("payments.webhook", level="ERROR"):
            result = self._handle(event)
        self.assertEqual(result.outcome, Outcome.FAILED)
        self.assertTrue(result.acknowledged)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PENDING)
        self.assertFalse(PaymentLedgerEntry.objects.exists())

    def test_stale_timestamp_is_rejected(self):
        payload = json.dumps(completion_event(self.order.order_id))
        with self.assertLogs("payments.webhook", level="WARNING"):
            result = self.handler.handle(payload.encode(), sign(payload, timestamp=int(time.time()) - 3600))
        self.assertEqual(result.outcome, Outcome.REJECTED)
        self.assertFalse(result.acknowledged)


class CheckoutToWebhookScenarioTests(TestCase):
    def test_place_accept_checkout_pay(self):
        resp = self.client.post("/orders", data=json.dumps({
            "foodId": "m1",
            "mealName": "Curry",
            "price": 10,
            "chefId": "c1",
            "userEmail": "u@x.com",
            "userAddress": "Addr",
        }), content_type="application/json")
        data = resp.json()["data"]
        order_id = data["orderId"]
        self.assertEqual((data["orderStatus"], data["paymentStatus"]), ("pending", "pending"))

        self.client.put(f"/orders/status/{order_id}", data=json.dumps({"status": "accepted"}),
                        content_type="application/json")

        created = CheckoutSession(id="cs_live_1", url="https://checkout.stripe.test/c/pay/cs_live_1")
        with patch("payments.services.StripeGateway.create_checkout_session", return_value=created) as create:
            resp = self.client.post(f"/payments/checkout/{order_id}")
        self.assertEqual(resp.json()["url"], "https://checkout.stripe.test/c/pay/cs_live_1")
        self.assertEqual(create.call_args.kwargs["amount_minor"], 1000)

        payload = json.dumps(completion_event(order_id, session_id="cs_live_1"))
        resp = self.client.post("/payments/webhook", data=payload, content_type="application/json",
                                HTTP_STRIPE_SIGNATURE=sign(payload))
        self.assertEqual(resp.json(), {"received": True})

        resp = self.client.get(f"/orders/{order_id}")
        self.assertEqual(resp.json()["data"]["paymentStatus"], "paid")
        entries = PaymentLedgerEntry.objects.filter(order_id=order_id)
        self.assertEqual(entries.count(), 1)
        self.assertEqual(entries.get().amount, Decimal("10"))

        resp = self.client.put(f"/orders/status/{order_id}", data=json.dumps({"status": "delivered"}),
                               content_type="application/json")
        self.assertEqual(resp.json()["data"]["orderStatus"], OrderStatus.DELIVERED)
