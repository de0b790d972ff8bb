from django.urls import path
from . import views
from .webhook import stripe_webhook

app_name = "payments"
urlpatterns = [
    path("checkout/<str:order_id>", views.create_checkout_session_view, name="create_checkout_session"),
    path("status/<str:order_id>", views.payment_status_view, name="payment_status"),
    path("webhook", stripe_webhook, name="stripe_webhook"),
]
