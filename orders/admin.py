from django.contrib import admin

from .models import Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_id", "meal_name", "user_email", "chef_id", "order_status", "payment_status", "price", "quantity", "order_time")
    search_fields = ("order_id", "user_email", "chef_id", "food_id", "checkout_session_id")
    list_filter = ("order_status", "payment_status", "order_time")
    readonly_fields = ("order_time", "delivery_time", "payment_time", "payment_status", "checkout_session_id")
    ordering = ("-order_time",)
