"""
Django settings for the coding grader backend - Base configuration
"""
from pathlib import Path
from datetime import timedelta
import environ

# Build paths inside the project
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Environment variables
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, []),
)

# Read .env file if exists
env_file = BASE_DIR / '.env'
if env_file.exists():
    environ.Env.read_env(env_file)

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env('DJANGO_SECRET_KEY', default='django-insecure-dev-key-change-in-production')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env('DEBUG', default=False)

ALLOWED_HOSTS = env.list('ALLOWED_HOSTS', default=['localhost', '127.0.0.1'])

# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third party
    'rest_framework',
    'rest_framework_simplejwt',
    'corsheaders',
    'drf_spectacular',

    # Local apps
    'accounts',
    'coding',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    'config.middleware.GradingRequestLogMiddleware',
]

# Disable APPEND_SLASH for API endpoints (REST APIs typically don't use trailing slashes)
APPEND_SLASH = False

ROOT_URLCONF = 'config.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'config.wsgi.application'

# Database: PostgreSQL (see config/settings/database.py for DATABASE_URL or DB_* logic)
from .database import get_database_config
DATABASES = {
    'default': get_database_config(env),
}

# Custom User Model
AUTH_USER_MODEL = 'accounts.User'

AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# REST Framework
REST_FRAMEWORK = {
    'EXCEPTION_HANDLER': 'config.exceptions.custom_exception_handler',
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
    'DEFAULT_PAGINATION_CLASS': 'rest_framework.pagination.PageNumberPagination',
    'PAGE_SIZE': 50,
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
}

# JWT Settings
SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(
        minutes=env.int('JWT_ACCESS_LIFETIME_MINUTES', default=60)
    ),
    'REFRESH_TOKEN_LIFETIME': timedelta(
        days=env.int('JWT_REFRESH_LIFETIME_DAYS', default=7)
    ),
    'ROTATE_REFRESH_TOKENS': False,
    'BLACKLIST_AFTER_ROTATION': False,
    'AUTH_HEADER_TYPES': ('Bearer',),
    'AUTH_HEADER_NAME': 'HTTP_AUTHORIZATION',
    'USER_ID_FIELD': 'id',
    'USER_ID_CLAIM': 'user_id',
}

# CORS Settings
CORS_ALLOWED_ORIGINS = env.list(
    'CORS_ALLOWED_ORIGINS',
    default=['http://localhost:5173']
)
CORS_ALLOW_CREDENTIALS = True

CSRF_TRUSTED_ORIGINS = env.list(
    'CSRF_TRUSTED_ORIGINS',
    default=['http://localhost:5173']
)

# API Schema (drf-spectacular)
SPECTACULAR_SETTINGS = {
    'TITLE': 'Coding Grader API',
    'DESCRIPTION': 'Sandboxed execution and auto-grading of coding assignment submissions',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
}

# Code execution sandbox
# local: subprocess + rlimits on this host (dev/test). docker: one container per run (production).
SANDBOX_BACKEND = env('SANDBOX_BACKEND', default='local')
SANDBOX_TIMEOUT_SECONDS = env.float('SANDBOX_TIMEOUT_SECONDS', default=5.0)
SANDBOX_MAX_TIMEOUT_SECONDS = env.float('SANDBOX_MAX_TIMEOUT_SECONDS', default=5.0)
SANDBOX_COMPILE_TIMEOUT_SECONDS = env.float('SANDBOX_COMPILE_TIMEOUT_SECONDS', default=15.0)
SANDBOX_MEMORY_LIMIT_MB = env.int('SANDBOX_MEMORY_LIMIT_MB', default=256)
SANDBOX_OUTPUT_LIMIT_BYTES = env.int('SANDBOX_OUTPUT_LIMIT_BYTES', default=64 * 1024)
SANDBOX_FAULT_RETRIES = env.int('SANDBOX_FAULT_RETRIES', default=3)
SANDBOX_FAULT_BACKOFF_SECONDS = env.float('SANDBOX_FAULT_BACKOFF_SECONDS', default=0.25)
SANDBOX_DOCKER_IMAGES = {
    'python': env('SANDBOX_IMAGE_PYTHON', default='python:3.12-slim'),
    'javascript': env('SANDBOX_IMAGE_JAVASCRIPT', default='node:20-alpine'),
    'java': env('SANDBOX_IMAGE_JAVA', default='eclipse-temurin:17-jdk'),
    'c': env('SANDBOX_IMAGE_C', default='gcc:13'),
    'cpp': env('SANDBOX_IMAGE_CPP', default='gcc:13'),
}

# Host directory bind-mounted into sandbox containers (must be visible to the docker daemon)
SANDBOX_SHARED_DIR = env('SANDBOX_SHARED_DIR', default=None)

# Grading
GRADER_MAX_WORKERS = env.int('GRADER_MAX_WORKERS', default=4)
# 0 = derive from per-case timeouts (sum of run timeouts, plus compile time for compiled languages)
GRADER_SUBMISSION_BUDGET_SECONDS = env.float('GRADER_SUBMISSION_BUDGET_SECONDS', default=0.0)

# Logging
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s | %(name)-24s | %(levelname)-8s | %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': env('LOG_LEVEL', default='WARNING'),
    },
    'loggers': {
        'coding': {
            'handlers': ['console'],
            'level': env('GRADER_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
        'config': {
            'handlers': ['console'],
            'level': env('GRADER_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
    },
}
