from django.contrib import admin
from .models import PaymentLedgerEntry


@admin.register(PaymentLedgerEntry)
class PaymentLedgerEntryAdmin(admin.ModelAdmin):
    list_display = ("session_id", "order", "amount_minor", "currency", "payment_method", "payer_email", "paid_at")
    search_fields = ("order__order_id", "session_id", "payment_intent_id", "payer_email")
    list_filter = ("currency", "payment_method", "paid_at")
    readonly_fields = [f.name for f in PaymentLedgerEntry._meta.fields]

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
