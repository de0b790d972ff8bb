import logging

from orders.exceptions import ForbiddenError, NotFoundError

from .models import Account

logger = logging.getLogger(__name__)


def normalize_email(email: str | None) -> str | None:
    return email.strip().lower() if email else None


class AccountDirectory:
    """Read side of the accounts app as seen by order placement."""

    def is_fraud(self, email: str | None) -> bool:
        email_norm = normalize_email(email)
        if not email_norm:
            return False
        return Account.objects.filter(email__iexact=email_norm, status=Account.Status.FRAUD).exists()


def mark_fraud(account_id) -> Account:
    try:
        account = Account.objects.get(pk=account_id)
    except (Account.DoesNotExist, ValueError):
        raise NotFoundError("User not found")
    if account.role == Account.Role.ADMIN:
        raise ForbiddenError("Admin cannot be fraud")
    account.status = Account.Status.FRAUD
    account.save(update_fields=["status", "updated_at"])
    logger.warning("Account %s flagged as fraud", account.email)
    return account
