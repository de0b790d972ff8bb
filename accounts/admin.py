from django.contrib import admin
from .models import Account


@admin.register(Account)
class AccountAdmin(admin.ModelAdmin):
    list_display = ("email", "name", "role", "status", "created_at")
    search_fields = ("email", "name")
    list_filter = ("role", "status", "created_at")
    readonly_fields = ("created_at", "updated_at")
