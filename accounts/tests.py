from django.test import TestCase

from orders.exceptions import ForbiddenError, NotFoundError

from .models import Account
from .services import AccountDirectory, mark_fraud


class MarkFraudTests(TestCase):
    def test_user_is_flagged(self):
        account = Account.objects.create(email="u@x.com")

        mark_fraud(account.pk)
        account.refresh_from_db()

        self.assertTrue(account.is_fraud)
        self.assertTrue(AccountDirectory().is_fraud("U@X.com "))

    def test_admin_cannot_be_flagged(self):
        admin = Account.objects.create(email="admin@x.com", role=Account.Role.ADMIN)

        with self.assertRaises(ForbiddenError):
            mark_fraud(admin.pk)
        admin.refresh_from_db()
        self.assertEqual(admin.status, Account.Status.ACTIVE)

    def test_unknown_account(self):
        with self.assertRaises(NotFoundError):
            mark_fraud(999)
        with self.assertRaises(NotFoundError):
            mark_fraud("not-a-number")

    def test_unknown_email_is_not_fraud(self):
        self.assertFalse(AccountDirectory().is_fraud("nobody@x.com"))
        self.assertFalse(AccountDirectory().is_fraud(None))


class MarkFraudViewTests(TestCase):
    def test_put_flags_account(self):
        account = Account.objects.create(email="chef@x.com", role=Account.Role.CHEF)
        resp = self.client.put(f"/users/fraud/{account.pk}")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"]["status"], "fraud")

    def test_admin_is_403(self):
        admin = Account.objects.create(email="admin@x.com", role=Account.Role.ADMIN)
        resp = self.client.put(f"/users/fraud/{admin.pk}")
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["message"], "Admin cannot be fraud")

    def test_unknown_is_404(self):
        self.assertEqual(self.client.put("/users/fraud/999").status_code, 404)
