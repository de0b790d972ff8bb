from django.urls import path
from . import views

app_name = "accounts"
urlpatterns = [
    path("users/fraud/<str:account_id>", views.mark_fraud_view, name="mark_fraud"),
]
