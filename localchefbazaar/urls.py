from django.contrib import admin
from django.urls import include, path

from . import views

urlpatterns = [
    path("", views.root_view, name="root"),
    path("admin/", admin.site.urls),
    path("", include("orders.urls")),
    path("", include("accounts.urls")),
    path("payments/", include("payments.urls")),
]

handler404 = "localchefbazaar.views.error_404_view"
handler500 = "localchefbazaar.views.error_500_view"
