"""Settings used by the test suite.

File-backed SQLite, in-memory cache and mail, eager Celery. Property time
zone is fixed so lifecycle tests do not depend on the host machine.
"""

import tempfile
from pathlib import Path

from .base import *  # noqa: F401,F403

DEBUG = False

# A file, not :memory:, so threads get their own connections and writers
# queue on the database lock instead of failing on shared-cache table locks.
TEST_DB_PATH = str(Path(tempfile.gettempdir()) / 'stayhost-test.sqlite3')

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': TEST_DB_PATH,
        'OPTIONS': {
            'timeout': 20,
            'transaction_mode': 'IMMEDIATE',
        },
        'TEST': {'NAME': TEST_DB_PATH},
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'stayhost-tests',
    }
}

TIME_ZONE = 'America/Sao_Paulo'

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

ENCRYPTION_KEY = 'test-encryption-key'
CALENDAR_FEED_URL = ''
REGISTRATION_BASE_URL = 'https://stay.example.com'

REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    'DEFAULT_THROTTLE_RATES': {'registration': '1000/min'},
}

# Let records reach the root logger so pytest can capture them
LOGGING = {
    **LOGGING,  # noqa: F405
    "loggers": {
        "django": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        "apps": {"level": "INFO", "propagate": True},
        "shared": {"level": "INFO", "propagate": True},
    },
}
