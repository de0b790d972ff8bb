import json
from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.test import TestCase
from django.utils import timezone

from accounts.models import Account
from payments.models import PaymentLedgerEntry

from .exceptions import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from .models import Order, OrderStatus, PaymentStatus
from .services import OrderStateMachine, PaymentRefs
from .store import OrderStore


def draft(**overrides):
    data = {
        "foodId": "m1",
        "mealName": "Curry",
        "price": 10,
        "chefId": "c1",
        "userEmail": "u@x.com",
        "userAddress": "Addr",
    }
    data.update(overrides)
    return data


class PlaceOrderTests(TestCase):
    def setUp(self):
        self.machine = OrderStateMachine()

    def test_new_order_is_pending_and_unpaid(self):
        order = self.machine.place_order(draft())

        order.refresh_from_db()
        self.assertEqual(order.order_status, OrderStatus.PENDING)
        self.assertEqual(order.payment_status, PaymentStatus.PENDING)
        self.assertEqual(order.price, Decimal("10.00"))
        self.assertEqual(order.quantity, 1)
        self.assertIsNotNone(order.order_time)
        self.assertIsNone(order.delivery_time)
        self.assertIsNone(order.payment_time)
        self.assertTrue(order.order_id)
        self.assertLessEqual(len(order.order_id), 20)

    def test_missing_field_is_named(self):
        for name in ["foodId", "mealName", "price", "chefId", "userEmail", "userAddress"]:
            with self.subTest(field=name):
                data = draft()
                del data[name]
                with self.assertRaises(ValidationError) as cm:
                    self.machine.place_order(data)
                self.assertEqual(cm.exception.message, f"Missing required field: {name}")
        self.assertFalse(Order.objects.exists())

    def test_invalid_price_and_quantity(self):
        with self.assertRaises(ValidationError):
            self.machine.place_order(draft(price="abc"))
        with self.assertRaises(ValidationError):
            self.machine.place_order(draft(price="-3"))
        with self.assertRaises(ValidationError):
            self.machine.place_order(draft(quantity=0))

    def test_fractional_or_boolean_quantity_is_rejected(self):
        for raw in [2.7, 1.9, "2.5", True, False, "abc"]:
            with self.subTest(quantity=raw):
                with self.assertRaises(ValidationError):
                    self.machine.place_order(draft(quantity=raw))
        self.assertFalse(Order.objects.exists())

    def test_whole_number_quantity_forms_are_accepted(self):
        order = self.machine.place_order(draft(quantity="3"))
        self.assertEqual(order.quantity, 3)
        order = self.machine.place_order(draft(quantity=2.0))
        self.assertEqual(order.quantity, 2)

    def test_out_of_range_quantity_and_price_are_rejected(self):
        for overrides in [{"quantity": 10**20}, {"price": "123456789012.5"}, {"price": "99999999.999"},
                          {"price": True}, {"price": "1e40"}]:
            with self.subTest(**overrides):
                with self.assertRaises(ValidationError):
                    self.machine.place_order(draft(**overrides))
        self.assertFalse(Order.objects.exists())

    def test_largest_price_fits_the_column(self):
        order = self.machine.place_order(draft(price="99999999.99"))
        order.refresh_from_db()
        self.assertEqual(order.price, Decimal("99999999.99"))


    def test_fraud_customer_is_forbidden(self):
        Account.objects.create(email="u@x.com", status=Account.Status.FRAUD)

        with self.assertRaises(ForbiddenError):
            self.machine.place_order(draft())
        self.assertFalse(Order.objects.exists())

    def test_fraud_check_runs_before_field_validation(self):
        Account.objects.create(email="u@x.com", status=Account.Status.FRAUD)

        with self.assertRaises(ForbiddenError):
            self.machine.place_order(draft(userAddress=""))


class SetStatusTests(TestCase):
    def setUp(self):
        self.machine = OrderStateMachine()
        self.order = self.machine.place_order(draft())

    def test_delivered_stamps_delivery_time(self):
        order = self.machine.set_status(self.order.order_id, "delivered")
        self.assertEqual(order.order_status, OrderStatus.DELIVERED)
        self.assertIsNotNone(order.delivery_time)

    def test_accepted_leaves_delivery_time_null(self):
        order = self.machine.set_status(self.order.order_id, "accepted")
        self.assertEqual(order.order_status, OrderStatus.ACCEPTED)
        self.assertIsNone(order.delivery_time)

    def test_leaving_delivered_clears_delivery_time(self):
        self.machine.set_status(self.order.order_id, "delivered")
        order = self.machine.set_status(self.order.order_id, "cancelled")
        self.assertIsNone(order.delivery_time)

    def test_missing_or_unknown_status(self):
        with self.assertRaises(ValidationError):
            self.machine.set_status(self.order.order_id, None)
        with self.assertRaises(ValidationError):
            self.machine.set_status(self.order.order_id, "shipped")
        self.order.refresh_from_db()
        self.assertEqual(self.order.order_status, OrderStatus.PENDING)

    def test_unknown_order(self):
        with self.assertRaises(NotFoundError):
            self.machine.set_status("NOPE", "accepted")

    def test_status_never_touches_payment(self):
        order = self.machine.set_status(self.order.order_id, "delivered")
        self.assertEqual(order.payment_status, PaymentStatus.PENDING)


class ConfirmPaymentTests(TestCase):
    def setUp(self):
        self.machine = OrderStateMachine()
        self.order = self.machine.place_order(draft(quantity=2))
        self.refs = PaymentRefs(session_id="cs_test_1", payment_intent_id="pi_1", currency="usd",
                                payment_method="card", payer_email="u@x.com")

    def test_payment_before_acceptance_is_refused(self):
        with self.assertRaises(InvalidStateError) as cm:
            self.machine.confirm_payment(self.order.order_id, 2000, self.refs)
        self.assertEqual(cm.exception.reason, InvalidStateError.NOT_ACCEPTED)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PENDING)
        self.assertFalse(PaymentLedgerEntry.objects.exists())

    def test_confirm_marks_paid_and_records_entry(self):
        self.machine.set_status(self.order.order_id, "accepted")

        entry, created = self.machine.confirm_payment(self.order.order_id, 2000, self.refs)

        self.assertTrue(created)
        self.assertEqual(entry.amount_minor, 2000)
        self.assertEqual(entry.amount, Decimal("20.00"))
        self.assertEqual(entry.order_id, self.order.order_id)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, PaymentStatus.PAID)
        self.assertEqual(self.order.order_status, OrderStatus.ACCEPTED)
        self.assertIsNotNone(self.order.payment_time)

    def test_same_session_twice_is_one_entry(self):
        self.machine.set_status(self.order.order_id, "accepted")

        first, created1 = self.machine.confirm_payment(self.order.order_id, 2000, self.refs)
        second, created2 = self.machine.confirm_payment(self.order.order_id, 2000, self.refs)

        self.assertTrue(created1)
        self.assertFalse(created2)
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(PaymentLedgerEntry.objects.count(), 1)

    def test_concurrent_insert_of_same_session_returns_existing_entry(self):
        self.machine.set_status(self.order.order_id, "accepted")
        # the other confirmation committed its entry after our ledger lookup ran
        winner = PaymentLedgerEntry.objects.create(
            order=self.order, amount_minor=2000, currency="usd", session_id=self.refs.session_id,
            paid_at=timezone.now(),
        )
        missed = MagicMock()
        missed.first.return_value = None

        with patch.object(PaymentLedgerEntry.objects, "filter", return_value=missed):
            entry, created = self.machine.confirm_payment(self.order.order_id, 2000, self.refs)

        self.assertFalse(created)
        self.assertEqual(entry.pk, winner.pk)
        self.assertEqual(PaymentLedgerEntry.objects.count(), 1)


    def test_redelivery_after_delivery_is_still_a_noop(self):
        self.machine.set_status(self.order.order_id, "accepted")
        self.machine.confirm_payment(self.order.order_id, 2000, self.refs)
        self.machine.set_status(self.order.order_id, "delivered")

        _, created = self.machine.confirm_payment(self.order.order_id, 2000, self.refs)
        self.assertFalse(created)

    def test_second_session_for_paid_order_is_refused(self):
        self.machine.set_status(self.order.order_id, "accepted")
        self.machine.confirm_payment(self.order.order_id, 2000, self.refs)

        other = PaymentRefs(session_id="cs_test_2")
        with self.assertRaises(InvalidStateError) as cm:
            self.machine.confirm_payment(self.order.order_id, 2000, other)
        self.assertEqual(cm.exception.reason, InvalidStateError.ALREADY_PAID)
        self.assertEqual(PaymentLedgerEntry.objects.count(), 1)

    def test_amount_mismatch_is_logged_and_recorded(self):
        self.machine.set_status(self.order.order_id, "accepted")
        with self.assertLogs("orders.services", level="WARNING") as cm:
            entry, _ = self.machine.confirm_payment(self.order.order_id, 1500, self.refs)
        self.assertEqual(entry.amount_minor, 1500)
        self.assertIn(self.order.order_id, cm.output[0])

    def test_unknown_order(self):
        with self.assertRaises(NotFoundError):
            self.machine.confirm_payment("NOPE", 2000, self.refs)

    def test_session_id_required(self):
        self.machine.set_status(self.order.order_id, "accepted")
        with self.assertRaises(ValidationError):
            self.machine.confirm_payment(self.order.order_id, 2000, PaymentRefs(session_id=""))

    def test_ledger_entries_are_immutable(self):
        self.machine.set_status(self.order.order_id, "accepted")
        entry, _ = self.machine.confirm_payment(self.order.order_id, 2000, self.refs)
        entry.amount_minor = 1
        with self.assertRaises(ValueError):
            entry.save()

    def test_receipt_sent_after_commit(self):
        from django.core import mail

        self.machine.set_status(self.order.order_id, "accepted")
        with self.captureOnCommitCallbacks(execute=True):
            self.machine.confirm_payment(self.order.order_id, 2000, self.refs)
        self.assertTrue(any("u@x.com" in m.to for m in mail.outbox))


class CheckPayableTests(TestCase):
    def setUp(self):
        self.machine = OrderStateMachine()
        self.order = self.machine.place_order(draft(price="12.50", quantity=3))

    def test_pending_order(self):
        with self.assertRaises(InvalidStateError) as cm:
            self.machine.check_payable(self.order)
        self.assertEqual(cm.exception.reason, InvalidStateError.NOT_ACCEPTED)
        self.assertEqual(cm.exception.message, "Order must be accepted before payment")

    def test_accepted_order_amount_in_cents(self):
        order = self.machine.set_status(self.order.order_id, "accepted")
        self.assertEqual(self.machine.check_payable(order), 3750)


class OrderStoreTests(TestCase):
    def test_update_fields_unknown_order(self):
        with self.assertRaises(NotFoundError):
            OrderStore().update_fields("NOPE", {"order_status": OrderStatus.ACCEPTED})

    def test_listing_filters(self):
        machine = OrderStateMachine()
        machine.place_order(draft())
        machine.place_order(draft(userEmail="other@x.com", chefId="c2"))
        store = OrderStore()
        self.assertEqual(store.for_customer("u@x.com").count(), 1)
        self.assertEqual(store.for_chef("c2").count(), 1)


class OrderViewTests(TestCase):
    def _post(self, payload):
        return self.client.post("/orders", data=json.dumps(payload), content_type="application/json")

    def test_place_order(self):
        resp = self._post(draft())
        self.assertEqual(resp.status_code, 201)
        data = resp.json()["data"]
        self.assertEqual(data["orderStatus"], "pending")
        self.assertEqual(data["paymentStatus"], "pending")
        self.assertIsNone(data["deliveryTime"])

    def test_place_order_missing_field(self):
        resp = self._post(draft(mealName=""))
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Missing required field: mealName")

    def test_place_order_bad_quantity_is_400(self):
        for raw in [1.9, 10**20]:
            with self.subTest(quantity=raw):
                resp = self._post(draft(quantity=raw))
                self.assertEqual(resp.status_code, 400)
        self.assertFalse(Order.objects.exists())

    def test_place_order_invalid_json(self):
        resp = self.client.post("/orders", data="{", content_type="application/json")
        self.assertEqual(resp.status_code, 400)

    def test_fraud_user_gets_403(self):
        Account.objects.create(email="u@x.com", status=Account.Status.FRAUD)
        resp = self._post(draft())
        self.assertEqual(resp.status_code, 403)

    def test_status_update_and_listing(self):
        order_id = self._post(draft()).json()["data"]["orderId"]

        resp = self.client.put(f"/orders/status/{order_id}", data=json.dumps({"status": "delivered"}),
                               content_type="application/json")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["message"], "Order delivered successfully")
        self.assertIsNotNone(resp.json()["data"]["deliveryTime"])

        resp = self.client.get("/orders", {"email": "u@x.com"})
        self.assertEqual([o["orderId"] for o in resp.json()["data"]], [order_id])

        resp = self.client.get("/chef-orders", {"chefId": "c1"})
        self.assertEqual(len(resp.json()["data"]), 1)

        resp = self.client.get(f"/orders/{order_id}")
        self.assertEqual(resp.json()["data"]["orderStatus"], "delivered")

    def test_status_required(self):
        order_id = self._post(draft()).json()["data"]["orderId"]
        resp = self.client.put(f"/orders/status/{order_id}", data=json.dumps({}), content_type="application/json")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Status is required")

    def test_status_unknown_order(self):
        resp = self.client.put("/orders/status/NOPE", data=json.dumps({"status": "accepted"}),
                               content_type="application/json")
        self.assertEqual(resp.status_code, 404)

    def test_listing_requires_query(self):
        self.assertEqual(self.client.get("/orders").status_code, 400)
        self.assertEqual(self.client.get("/chef-orders").status_code, 400)
