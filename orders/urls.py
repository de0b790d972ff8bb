from django.urls import path
from . import views

app_name = "orders"
urlpatterns = [
    path("orders", views.orders_view, name="orders"),
    path("orders/status/<str:order_id>", views.order_status_view, name="order_status"),
    path("orders/<str:order_id>", views.order_detail_view, name="order_detail"),
    path("chef-orders", views.chef_orders_view, name="chef_orders"),
]
