import logging
from typing import List

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)


def _fail_silently() -> bool:
    return getattr(settings, "EMAIL_FAIL_SILENTLY", True)


def _admin_recipients() -> List[str]:
    # Comma-separated list via env or settings; fall back to DEFAULT_FROM_EMAIL
    raw = getattr(settings, "PAYMENTS_ADMIN_EMAILS", None) or getattr(settings, "DEFAULT_FROM_EMAIL", "")
    emails = [e.strip() for e in (raw or "").split(",") if e and e.strip()]
    # Deduplicate while preserving order
    seen = set()
    uniq: List[str] = []
    for e in emails:
        if e.lower() not in seen:
            seen.add(e.lower())
            uniq.append(e)
    return uniq


def send_payment_receipt(*, order, entry) -> None:
    """Send a receipt to the customer and a notification to admins for a paid order.

    Runs after the payment transaction commits; mail failures are logged and
    never propagate into the payment path.
    """
    context = {
        "order_id": order.order_id,
        "meal_name": order.meal_name,
        "quantity": order.quantity,
        "amount": entry.amount,
        "currency": entry.currency.upper(),
        "payment_method": entry.payment_method,
        "session_id": entry.session_id,
        "customer_email": order.user_email,
        "customer_name": order.user_name,
        "chef_name": order.chef_name,
    }
    from_email = getattr(settings, "DEFAULT_FROM_EMAIL", None)
    recipient = entry.payer_email or order.user_email

    try:
        if recipient:
            subject = f"Payment received: {order.order_id} – {context['currency']} {entry.amount}"
            text = render_to_string("emails/payment_receipt_customer.txt", context)
            html = render_to_string("emails/payment_receipt_customer.html", context)
            msg = EmailMultiAlternatives(subject, text, from_email, [recipient])
            msg.attach_alternative(html, "text/html")
            msg.send(fail_silently=_fail_silently())
    except Exception:
        logger.exception("Failed to send payment receipt to %s", recipient)

    try:
        admins = _admin_recipients()
        if admins:
            subject = f"New payment: {order.order_id} – {context['currency']} {entry.amount}"
            text = render_to_string("emails/payment_notification_admin.txt", context)
            EmailMultiAlternatives(subject, text, from_email, admins).send(fail_silently=_fail_silently())
    except Exception:
        logger.exception("Failed to send payment admin notification for %s", order.order_id)
