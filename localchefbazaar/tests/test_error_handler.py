from django.test import SimpleTestCase, TestCase, override_settings


@override_settings(DEBUG=False)
class ErrorHandlerTests(SimpleTestCase):
    def test_unknown_url_is_json_404(self):
        response = self.client.get('/this-url-does-not-exist/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"success": False, "message": "Not found"})

    def test_root_route(self):
        response = self.client.get('/')
        self.assertEqual(response.status_code, 200)
        self.assertIn(b"LocalChefBazaar", response.content)


class MaintenanceModeTests(TestCase):
    @override_settings(MAINTENANCE_MODE=True)
    def test_api_answers_503(self):
        response = self.client.get('/orders', {"email": "u@x.com"})
        self.assertEqual(response.status_code, 503)
        self.assertFalse(response.json()["success"])

    @override_settings(MAINTENANCE_MODE=True)
    def test_webhook_stays_reachable(self):
        response = self.client.post('/payments/webhook', data="{}", content_type="application/json")
        # reaches the handler, which rejects the unsigned payload
        self.assertEqual(response.status_code, 400)
