import time
from datetime import timedelta

from django.core.management.base import BaseCommand

from orders.exceptions import OrderError
from orders.store import OrderStore
from payments.services import CheckoutService


class Command(BaseCommand):
    help = "Poll Stripe for accepted, unpaid orders with a checkout session and apply completed payments"

    def add_arguments(self, parser):
        parser.add_argument("--max", type=int, default=50)
        parser.add_argument("--sleep", type=float, default=0.5)
        parser.add_argument("--older-than-minutes", type=int, default=1)

    def handle(self, *args, **opts):
        store = OrderStore()
        service = CheckoutService(store=store)
        older_than = timedelta(minutes=opts["older_than_minutes"]) if opts["older_than_minutes"] > 0 else None
        qs = store.awaiting_payment(older_than=older_than)[:opts["max"]]

        orders = list(qs)
        if not orders:
            self.stdout.write(self.style.SUCCESS("No unpaid orders to reconcile."))
            return

        paid = 0
        for o in orders:
            try:
                entry = service.sync_session(o.order_id, o.checkout_session_id)
            except OrderError as e:
                self.stdout.write(self.style.WARNING(f"{o.order_id}: {e.message}"))
            else:
                if entry is None:
                    self.stdout.write(f"{o.order_id}: session {o.checkout_session_id} not paid yet")
                else:
                    paid += 1
                    self.stdout.write(self.style.SUCCESS(f"Updated {o.order_id} -> paid"))
            if opts["sleep"]:
                time.sleep(opts["sleep"])

        self.stdout.write(self.style.SUCCESS(f"Checked {len(orders)}, marked {paid} paid."))
