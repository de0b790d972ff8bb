from io import StringIO
from unittest.mock import MagicMock, patch

import stripe
from django.core.management import call_command
from django.test import TestCase

from orders.exceptions import InvalidStateError, NotFoundError, UpstreamError
from orders.models import Order, PaymentStatus
from orders.services import OrderStateMachine

from .integrations.stripe_checkout import CheckoutSession, StripeGateway, completed_session_from
from .models import PaymentLedgerEntry
from .services import CheckoutService


def make_order(machine, **overrides):
    data = {
        "foodId": "m1",
        "mealName": "Curry",
        "price": 10,
        "chefId": "c1",
        "userEmail": "u@x.com",
        "userAddress": "Addr",
    }
    data.update(overrides)
    return machine.place_order(data)


def paid_session(order_id, session_id="cs_test_1", amount=1000):
    return completed_session_from({
        "id": session_id,
        "payment_status": "paid",
        "amount_total": amount,
        "currency": "usd",
        "payment_intent": "pi_1",
        "payment_method_types": ["card"],
        "metadata": {"orderId": order_id, "customerEmail": "u@x.com"},
    })


class FakeGateway:
    def __init__(self, sessions=None):
        self.created = []
        self.sessions = sessions or {}

    def create_checkout_session(self, **kwargs):
        self.created.append(kwargs)
        return CheckoutSession(id="cs_test_1", url="https://checkout.stripe.test/c/pay/cs_test_1")

    def retrieve_session(self, session_id):
        return self.sessions[session_id]


class CheckoutServiceTests(TestCase):
    def setUp(self):
        self.machine = OrderStateMachine()
        self.gateway = FakeGateway()
        self.service = CheckoutService(gateway=self.gateway)
        self.order = make_order(self.machine)

    def test_pending_order_cannot_checkout(self):
        with self.assertRaises(InvalidStateError) as cm:
            self.service.initiate_checkout(self.order.order_id)
        self.assertEqual(cm.exception.reason, InvalidStateError.NOT_ACCEPTED)
        self.assertEqual(cm.exception.message, "Order must be accepted before payment")
        self.assertEqual(self.gateway.created, [])

    def test_paid_order_cannot_checkout(self):
        self.machine.set_status(self.order.order_id, "accepted")
        self.service.initiate_checkout(self.order.order_id)
        self.gateway.sessions["cs_test_1"] = paid_session(self.order.order_id)
        self.service.sync_session(self.order.order_id, "cs_test_1")

        with self.assertRaises(InvalidStateError) as cm:
            self.service.initiate_checkout(self.order.order_id)
        self.assertEqual(cm.exception.reason, InvalidStateError.ALREADY_PAID)

    def test_unknown_order(self):
        with self.assertRaises(NotFoundError):
            self.service.initiate_checkout("NOPE")

    def test_accepted_order_returns_redirect(self):
        self.machine.set_status(self.order.order_id, "accepted")

        session = self.service.initiate_checkout(self.order.order_id)

        self.assertEqual(session.url, "https://checkout.stripe.test/c/pay/cs_test_1")
        request = self.gateway.created[0]
        self.assertEqual(request["amount_minor"], 1000)
        self.assertEqual(request["currency"], "usd")
        self.assertEqual(request["metadata"], {"orderId": self.order.order_id, "customerEmail": "u@x.com"})
        self.assertEqual(
            request["success_url"],
            "https://bazaar.example.com/dashboard/payment-success?session_id={CHECKOUT_SESSION_ID}",
        )
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PENDING)
        self.assertEqual(self.order.order_status, "accepted")
        self.assertEqual(self.order.checkout_session_id, "cs_test_1")

    def test_sync_unpaid_session_changes_nothing(self):
        self.machine.set_status(self.order.order_id, "accepted")
        session = paid_session(self.order.order_id)
        session.payment_status = "unpaid"
        self.gateway.sessions["cs_test_1"] = session

        self.assertIsNone(self.service.sync_session(self.order.order_id, "cs_test_1"))
        self.assertFalse(PaymentLedgerEntry.objects.exists())

    def test_sync_session_for_other_order_is_ignored(self):
        self.machine.set_status(self.order.order_id, "accepted")
        self.gateway.sessions["cs_test_1"] = paid_session("SOMEONEELSE")

        with self.assertLogs("payments.services", level="WARNING"):
            self.assertIsNone(self.service.sync_session(self.order.order_id, "cs_test_1"))
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PENDING)


class StripeGatewayTests(TestCase):
    def test_checkout_session_request_uses_minor_units(self):
        fake = MagicMock(id="cs_test_9", url="https://checkout.stripe.test/cs_test_9")
        with patch("stripe.checkout.Session.create", return_value=fake) as create:
            session = StripeGateway().create_checkout_session(
                amount_minor=1000,
                currency="usd",
                product_name="Curry x 1",
                metadata={"orderId": "O1", "customerEmail": "u@x.com"},
                customer_email="u@x.com",
                success_url="https://a/s",
                cancel_url="https://a/c",
            )

        self.assertEqual(session, CheckoutSession(id="cs_test_9", url="https://checkout.stripe.test/cs_test_9"))
        kwargs = create.call_args.kwargs
        self.assertEqual(kwargs["api_key"], "sk_test_localchefbazaar")
        self.assertEqual(kwargs["mode"], "payment")
        self.assertEqual(kwargs["line_items"][0]["price_data"]["unit_amount"], 1000)
        self.assertEqual(kwargs["metadata"]["orderId"], "O1")

    def test_processor_failure_is_upstream_error(self):
        with patch("stripe.checkout.Session.create", side_effect=stripe.StripeError("boom")):
            with self.assertLogs("payments.integrations.stripe_checkout", level="ERROR"):
                with self.assertRaises(UpstreamError):
                    StripeGateway().create_checkout_session(
                        amount_minor=1000, currency="usd", product_name="Curry", metadata={"orderId": "O1"},
                        success_url="https://a/s", cancel_url="https://a/c",
                    )

    def test_completed_session_normalisation(self):
        session = completed_session_from({
            "id": "cs_1",
            "payment_status": "paid",
            "amount_total": 2500,
            "currency": "USD",
            "payment_intent": {"id": "pi_9"},
            "customer_details": {"email": "payer@x.com"},
            "metadata": {"orderId": "O1"},
        })
        self.assertTrue(session.is_paid)
        self.assertEqual(session.order_id, "O1")
        self.assertEqual(session.currency, "usd")
        self.assertEqual(session.payment_intent_id, "pi_9")
        self.assertEqual(session.payer_email, "payer@x.com")

    def test_retrieved_session_is_normalised(self):
        remote = stripe.checkout.Session.construct_from({
            "id": "cs_test_5",
            "object": "checkout.session",
            "payment_status": "paid",
            "amount_total": 1250,
            "currency": "usd",
            "payment_intent": "pi_5",
            "payment_method_types": ["card"],
            "metadata": {"orderId": "O5"},
        }, "sk_test_localchefbazaar")
        with patch("stripe.checkout.Session.retrieve", return_value=remote) as retrieve:
            session = StripeGateway().retrieve_session("cs_test_5")

        retrieve.assert_called_once_with("cs_test_5", api_key="sk_test_localchefbazaar")
        self.assertTrue(session.is_paid)
        self.assertEqual(session.amount_total, 1250)
        self.assertEqual(session.order_id, "O5")
        self.assertEqual(session.payment_intent_id, "pi_5")

    def test_retrieve_failure_is_upstream_error(self):
        with patch("stripe.checkout.Session.retrieve", side_effect=stripe.StripeError("down")):
            with self.assertRaises(UpstreamError):
                StripeGateway().retrieve_session("cs_test_5")


class CheckoutViewTests(TestCase):
    def setUp(self):
        self.machine = OrderStateMachine()
        self.order = make_order(self.machine)
        self.gateway = FakeGateway()
        patcher = patch("payments.services.StripeGateway", return_value=self.gateway)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_checkout_on_pending_order_is_conflict(self):
        resp = self.client.post(f"/payments/checkout/{self.order.order_id}")
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["reason"], "not_accepted")
        self.assertEqual(resp.json()["message"], "Order must be accepted before payment")

    def test_checkout_on_accepted_order(self):
        self.machine.set_status(self.order.order_id, "accepted")
        resp = self.client.post(f"/payments/checkout/{self.order.order_id}")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["url"], "https://checkout.stripe.test/c/pay/cs_test_1")

    def test_checkout_unknown_order(self):
        resp = self.client.post("/payments/checkout/NOPE")
        self.assertEqual(resp.status_code, 404)

    def test_status_polling_applies_paid_session(self):
        self.machine.set_status(self.order.order_id, "accepted")
        self.gateway.sessions["cs_test_1"] = paid_session(self.order.order_id)

        resp = self.client.get(f"/payments/status/{self.order.order_id}", {"session_id": "cs_test_1"})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"]["paymentStatus"], "paid")
        self.assertEqual(PaymentLedgerEntry.objects.count(), 1)

    def test_status_polling_without_session(self):
        resp = self.client.get(f"/payments/status/{self.order.order_id}")
        self.assertEqual(resp.json()["data"]["paymentStatus"], "pending")
        self.assertFalse(resp.json()["data"]["isPaid"])


class ReconcileCommandTests(TestCase):
    def test_paid_sessions_are_applied(self):
        machine = OrderStateMachine()
        paid = make_order(machine)
        waiting = make_order(machine, userEmail="w@x.com")
        for order, sid in ((paid, "cs_paid"), (waiting, "cs_wait")):
            machine.set_status(order.order_id, "accepted")
            Order.objects.filter(pk=order.pk).update(checkout_session_id=sid)

        unpaid = paid_session(waiting.order_id, session_id="cs_wait")
        unpaid.payment_status = "unpaid"
        gateway = FakeGateway({"cs_paid": paid_session(paid.order_id, session_id="cs_paid"), "cs_wait": unpaid})

        out = StringIO()
        with patch("payments.services.StripeGateway", return_value=gateway):
            call_command("reconcile_stripe_payments", "--sleep", "0", "--older-than-minutes", "0", stdout=out)

        paid.refresh_from_db()
        waiting.refresh_from_db()
        self.assertEqual(paid.payment_status, PaymentStatus.PAID)
        self.assertEqual(waiting.payment_status, PaymentStatus.PENDING)
        self.assertIn("Checked 2, marked 1 paid.", out.getvalue())

    def test_nothing_to_do(self):
        out = StringIO()
        call_command("reconcile_stripe_payments", "--sleep", "0", stdout=out)
        self.assertIn("No unpaid orders to reconcile.", out.getvalue())
