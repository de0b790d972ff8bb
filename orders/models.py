from django.db import models

from .utils import generate_order_id, to_minor_units


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    CANCELLED = "cancelled", "Cancelled"
    DELIVERED = "delivered", "Delivered"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"


class Order(models.Model):
    order_id = models.CharField(max_length=20, unique=True, db_index=True, default=generate_order_id)

    food_id = models.CharField(max_length=64)
    meal_name = models.CharField(max_length=200)
    chef_id = models.CharField(max_length=64, db_index=True)
    chef_name = models.CharField(max_length=150, blank=True, default="")

    user_email = models.EmailField(db_index=True)
    user_name = models.CharField(max_length=150, blank=True, default="")
    user_address = models.CharField(max_length=300)

    price = models.DecimalField(max_digits=10, decimal_places=2)
    quantity = models.PositiveIntegerField(default=1)

    order_status = models.CharField(max_length=16, choices=OrderStatus.choices, default=OrderStatus.PENDING, db_index=True)
    payment_status = models.CharField(max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True)

    order_time = models.DateTimeField(auto_now_add=True)
    delivery_time = models.DateTimeField(blank=True, null=True)
    payment_time = models.DateTimeField(blank=True, null=True)

    # last checkout session handed to the customer; audit/reconciliation only
    checkout_session_id = models.CharField(max_length=255, blank=True, default="", db_index=True)

    class Meta:
        ordering = ("-order_time",)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def amount_minor(self) -> int:
        return to_minor_units(self.price * self.quantity)

    def as_dict(self) -> dict:
        return {
            "orderId": self.order_id,
            "foodId": self.food_id,
            "mealName": self.meal_name,
            "price": str(self.price),
            "quantity": self.quantity,
            "chefId": self.chef_id,
            "chefName": self.chef_name,
            "userEmail": self.user_email,
            "userName": self.user_name,
            "userAddress": self.user_address,
            "orderStatus": self.order_status,
            "paymentStatus": self.payment_status,
            "orderTime": self.order_time.isoformat() if self.order_time else None,
            "deliveryTime": self.delivery_time.isoformat() if self.delivery_time else None,
            "paymentTime": self.payment_time.isoformat() if self.payment_time else None,
        }

    def __str__(self):
        return f"{self.order_id} ({self.order_status}/{self.payment_status})"
