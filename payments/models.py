from django.db import models

from orders.utils import from_minor_units


class PaymentLedgerEntry(models.Model):
    """One confirmed payment. Rows are written once and never updated."""

    order = models.ForeignKey(
        "orders.Order", to_field="order_id", on_delete=models.PROTECT, related_name="payments"
    )
    amount_minor = models.PositiveIntegerField()  # cents
    currency = models.CharField(max_length=8, default="usd")
    payment_method = models.CharField(max_length=32, blank=True, default="")
    payer_email = models.EmailField(blank=True, default="")

    # processor references; session_id is the dedupe key for redelivered events
    session_id = models.CharField(max_length=255, unique=True)
    payment_intent_id = models.CharField(max_length=255, blank=True, default="", db_index=True)

    gateway_meta = models.JSONField(blank=True, null=True)
    paid_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-paid_at",)

    @property
    def amount(self):
        return from_minor_units(self.amount_minor)

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Payment ledger entries are immutable")
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.order_id} {self.currency.upper()} {self.amount} ({self.session_id})"
