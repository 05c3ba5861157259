"""
Development settings
"""
from .base import *

DEBUG = True

# Email backend (console for development)
EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'

LOGGING['loggers']['coding']['level'] = 'DEBUG'
