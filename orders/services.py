"""Order lifecycle.

``orderStatus`` is driven by the chef through :meth:`OrderStateMachine.set_status`;
``paymentStatus`` only ever moves through :meth:`OrderStateMachine.confirm_payment`,
which requires the order to be accepted first.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.db import IntegrityError, transaction
from django.utils import timezone

from accounts.services import AccountDirectory
from payments.emails import send_payment_receipt
from payments.models import PaymentLedgerEntry

from .exceptions import ForbiddenError, InvalidStateError, ValidationError
from .models import Order, OrderStatus, PaymentStatus
from .store import OrderStore

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ["foodId", "mealName", "price", "chefId", "userEmail", "userAddress"]


@dataclass
class PaymentRefs:
    session_id: str
    payment_intent_id: str = ""
    currency: str = "usd"
    payment_method: str = ""
    payer_email: str = ""
    payload: dict = field(default_factory=dict)


MAX_PRICE = Decimal("99999999.99")
MAX_QUANTITY = 2147483647


def _parse_price(raw) -> Decimal:
    if isinstance(raw, bool):
        raise ValidationError("Invalid price")
    try:
        price = Decimal(str(raw).strip())
    except (InvalidOperation, TypeError):
        raise ValidationError("Invalid price")
    if not price.is_finite() or price <= 0:
        raise ValidationError("Price must be > 0")
    # anything that rounds above the column limit is out of range
    if price >= MAX_PRICE + Decimal("0.005"):
        raise ValidationError(f"Price must be <= {MAX_PRICE}")
    return price.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _parse_quantity(raw) -> int:
    if raw in (None, ""):
        return 1
    if isinstance(raw, bool):
        raise ValidationError("Invalid quantity")
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, TypeError):
        raise ValidationError("Invalid quantity")
    if not value.is_finite() or value != value.to_integral_value():
        raise ValidationError("Quantity must be a whole number")
    quantity = int(value)
    if quantity < 1:
        raise ValidationError("Quantity must be >= 1")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"Quantity must be <= {MAX_QUANTITY}")
    return quantity


class OrderStateMachine:
    def __init__(self, store: OrderStore | None = None, accounts: AccountDirectory | None = None):
        self.store = store or OrderStore()
        self.accounts = accounts or AccountDirectory()

    def place_order(self, draft: dict) -> Order:
        draft = draft or {}
        if self.accounts.is_fraud(draft.get("userEmail")):
            raise ForbiddenError("Fraud users cannot place orders")

        missing = next((f for f in REQUIRED_FIELDS if not draft.get(f)), None)
        if missing:
            raise ValidationError(f"Missing required field: {missing}")

        order = Order(
            food_id=str(draft["foodId"]),
            meal_name=str(draft["mealName"]),
            chef_id=str(draft["chefId"]),
            chef_name=str(draft.get("chefName") or ""),
            user_email=str(draft["userEmail"]).strip(),
            user_name=str(draft.get("userName") or ""),
            user_address=str(draft["userAddress"]),
            price=_parse_price(draft["price"]),
            quantity=_parse_quantity(draft.get("quantity")),
            order_status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
        )
        self.store.insert(order)
        logger.info("Order %s placed by %s for meal %s", order.order_id, order.user_email, order.food_id)
        return order

    def set_status(self, order_id: str, status) -> Order:
        if not status:
            raise ValidationError("Status is required")
        try:
            new_status = OrderStatus(str(status).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown order status: {status}")

        fields = {"order_status": new_status, "delivery_time": None}
        if new_status == OrderStatus.DELIVERED:
            fields["delivery_time"] = timezone.now()
        order = self.store.update_fields(order_id, fields)
        logger.info("Order %s -> %s", order_id, new_status)
        return order

    def check_payable(self, order: Order) -> int:
        """Return the amount due in minor units, or raise if the order cannot be paid now."""
        if order.is_paid:
            raise InvalidStateError("Order is already paid", InvalidStateError.ALREADY_PAID)
        if order.order_status != OrderStatus.ACCEPTED:
            raise InvalidStateError("Order must be accepted before payment", InvalidStateError.NOT_ACCEPTED)
        return order.amount_minor

    def confirm_payment(self, order_id: str, amount_minor: int, refs: PaymentRefs):
        """Mark the order paid and append its ledger entry.

        Returns ``(entry, created)``. A repeated confirmation for a session
        that is already in the ledger returns the existing entry with
        ``created=False``.
        """
        if not refs.session_id:
            raise ValidationError("Missing payment session id")

        with transaction.atomic():
            order = self.store.find_for_update(order_id)

            existing = PaymentLedgerEntry.objects.filter(session_id=refs.session_id).first()
            if existing is not None:
                if existing.order_id != order.order_id:
                    logger.warning(
                        "Session %s already recorded for order %s, not %s",
                        refs.session_id, existing.order_id, order.order_id,
                    )
                return existing, False

            self.check_payable(order)

            expected = order.amount_minor
            if int(amount_minor) != expected:
                logger.warning(
                    "Order %s settled %s minor units, expected %s", order.order_id, amount_minor, expected
                )

            now = timezone.now()
            try:
                with transaction.atomic():
                    entry = PaymentLedgerEntry.objects.create(
                        order=order,
                        amount_minor=int(amount_minor),
                        currency=(refs.currency or "usd").lower(),
                        payment_method=refs.payment_method or "",
                        payer_email=refs.payer_email or "",
                        session_id=refs.session_id,
                        payment_intent_id=refs.payment_intent_id or "",
                        gateway_meta=refs.payload or None,
                        paid_at=now,
                    )
            except IntegrityError:
                # concurrent confirmation of the same session won the insert
                return PaymentLedgerEntry.objects.get(session_id=refs.session_id), False

            paid = self.store.update_fields(
                order.order_id, {"payment_status": PaymentStatus.PAID, "payment_time": now}
            )
            transaction.on_commit(lambda: send_payment_receipt(order=paid, entry=entry))

        logger.info(
            "Order %s paid: %s %s (session %s)", order.order_id, entry.amount, entry.currency, entry.session_id
        )
        return entry, True
