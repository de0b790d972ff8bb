from django.db import models


class Account(models.Model):
    class Role(models.TextChoices):
        USER = "user", "User"
        CHEF = "chef", "Chef"
        ADMIN = "admin", "Admin"

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        FRAUD = "fraud", "Fraud"

    email = models.EmailField(unique=True)
    name = models.CharField(max_length=150, blank=True, default="")
    role = models.CharField(max_length=8, choices=Role.choices, default=Role.USER)
    status = models.CharField(max_length=8, choices=Status.choices, default=Status.ACTIVE, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)

    @property
    def is_fraud(self) -> bool:
        return self.status == self.Status.FRAUD

    def __str__(self) -> str:
        return f"{self.email} ({self.role}/{self.status})"
