"""Persistence seam for orders.

The state machine, checkout service and webhook handler receive an
``OrderStore`` instead of reaching for ``Order.objects`` directly.
"""

from django.utils import timezone

from .exceptions import NotFoundError
from .models import Order, OrderStatus, PaymentStatus


class OrderStore:
    model = Order

    def find(self, order_id: str) -> Order:
        try:
            return self.model.objects.get(order_id=order_id)
        except self.model.DoesNotExist:
            raise NotFoundError(f"Order not found: {order_id}")

    def find_for_update(self, order_id: str) -> Order:
        """Row-locked lookup; call inside ``transaction.atomic()``."""
        try:
            return self.model.objects.select_for_update().get(order_id=order_id)
        except self.model.DoesNotExist:
            raise NotFoundError(f"Order not found: {order_id}")

    def insert(self, order: Order) -> Order:
        order.save(force_insert=True)
        return order

    def update_fields(self, order_id: str, fields: dict) -> Order:
        """Apply ``fields`` with a single UPDATE statement and return the fresh row."""
        updated = self.model.objects.filter(order_id=order_id).update(**fields)
        if not updated:
            raise NotFoundError(f"Order not found: {order_id}")
        return self.find(order_id)

    def for_customer(self, email: str):
        return self.model.objects.filter(user_email=email).order_by("-order_time")

    def for_chef(self, chef_id: str):
        return self.model.objects.filter(chef_id=chef_id).order_by("-order_time")

    def awaiting_payment(self, older_than=None):
        qs = (
            self.model.objects.filter(order_status=OrderStatus.ACCEPTED, payment_status=PaymentStatus.PENDING)
            .exclude(checkout_session_id="")
            .order_by("order_time")
        )
        if older_than is not None:
            qs = qs.filter(order_time__lt=timezone.now() - older_than)
        return qs
