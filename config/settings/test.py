"""
Test settings: in-memory SQLite, local sandbox, fast fault backoff.
"""
import os

os.environ.setdefault('DATABASE_URL', 'sqlite://:memory:')

from .base import *

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

SANDBOX_BACKEND = 'local'
SANDBOX_FAULT_BACKOFF_SECONDS = 0.0

LOGGING['loggers']['coding']['level'] = 'WARNING'
LOGGING['loggers']['config']['level'] = 'WARNING'
