from .base import *

DEBUG = False

SECRET_KEY = 'test-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

ALLOWED_HOSTS = ['testserver']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

STRIPE_SECRET_KEY = 'sk_test_localchefbazaar'
STRIPE_WEBHOOK_SECRET = 'whsec_test_localchefbazaar'
STRIPE_CURRENCY = 'usd'
CLIENT_URL = 'https://bazaar.example.com'

MAINTENANCE_MODE = False
