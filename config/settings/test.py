"""Settings used by the test suite.

A file-backed SQLite test database, local-memory mail outbox, eager Celery and fixed
payment provider credentials so signatures can be computed in tests.
"""

import os

from .base import *  # noqa: F401,F403

DEBUG = False

SECRET_KEY = 'test-secret-key'

ALLOWED_HOSTS = ['*']

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'OPTIONS': {'transaction_mode': 'IMMEDIATE', 'timeout': 20},
        # File backed so concurrent booking tests get one connection per thread.
        'TEST': {'NAME': os.environ.get('TEST_DB_NAME', str(BASE_DIR / 'test_findoorz.sqlite3'))},
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = False

PAYMENTS = {
    'DEFAULT_PROVIDER': 'razorpay',
    'CURRENCY': 'INR',
    'TIMEOUT': 5,
    'MAX_RETRIES': 0,
    'MAX_ORDER_AMOUNT': 10_000_000,
    'PENDING_TTL_HOURS': 24,
    'SWEEP_BATCH_SIZE': 100,
    'SWEEP_MIN_AGE_SECONDS': 120,
    'FRONTEND_URL': 'http://frontend.test',
    'RAZORPAY': {
        'KEY_ID': 'rzp_test_key',
        'KEY_SECRET': 'rzp_test_secret',
        'WEBHOOK_SECRET': 'rzp_webhook_secret',
        'BASE_URL': 'https://razorpay.test/v1',
    },
    'CASHFREE': {
        'KEY_ID': 'cf_test_app',
        'KEY_SECRET': 'cf_test_secret',
        'WEBHOOK_SECRET': '',
        'ENVIRONMENT': 'sandbox',
        'BASE_URL': 'https://cashfree.test/pg',
    },
}

NOTIFICATION_RETENTION_DAYS = 21

LOG_LEVEL = 'WARNING'
LOGGING['handlers']['console']['level'] = LOG_LEVEL  # noqa: F405
