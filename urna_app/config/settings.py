from pathlib import Path
import os
import sys

import environ
from django.core.exceptions import ImproperlyConfigured

BASE_DIR = Path(__file__).resolve().parent.parent

env = environ.Env(
    DEBUG=(bool, False),
)

# Optional local env file support (docker-compose already sets env vars).
environ.Env.read_env(os.path.join(BASE_DIR, ".env"))

DEBUG = env.bool("DEBUG", default=False)

# Test runs (pytest or `manage.py test`) skip the production configuration checks.
TESTING = env.bool("TESTING", default="pytest" in sys.modules or sys.argv[1:2] == ["test"])

SECRET_KEY = env(
    "SECRET_KEY",
    default="django-insecure-dev-only-change-me",
)
if not DEBUG and SECRET_KEY.startswith("django-insecure-dev-only") and not TESTING:
    raise ImproperlyConfigured("SECRET_KEY must be set in production.")

_dev_allowed_hosts = ["localhost", "127.0.0.1", "[::1]", "testserver"]
ALLOWED_HOSTS = env.list(
    "ALLOWED_HOSTS",
    default=_dev_allowed_hosts if DEBUG or TESTING else [],
)

INSTALLED_APPS = [
    'jazzmin',
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'core.apps.CoreConfig',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

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

# Database
# https://docs.djangoproject.com/en/5.1/ref/databases/
# Production runs on PostgreSQL via DATABASE_URL; the SQLite default is for
# local development and the test suite.
DATABASES = {
    'default': {
        **env.db(
            'DATABASE_URL',
            default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        ),
    }
}
if DATABASES['default']['ENGINE'] == 'django.db.backends.sqlite3':
    # BEGIN IMMEDIATE takes the write lock up front, so concurrent voters queue
    # on the busy timeout instead of failing on a lock upgrade.
    DATABASES['default'].setdefault('OPTIONS', {}).update(
        {
            'transaction_mode': 'IMMEDIATE',
            'timeout': env.int('SQLITE_TIMEOUT_SECONDS', default=20),
        }
    )
    # A file-backed test database lets worker threads share it.
    DATABASES['default']['TEST'] = {'NAME': str(BASE_DIR / 'test_db.sqlite3')}

JAZZMIN_SETTINGS = {
    "site_title": "Urna",
    "site_header": "Urna elections",
}

# Internationalization
# https://docs.djangoproject.com/en/5.1/topics/i18n/
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Security
# Keep these production-oriented but configurable; many deployments sit behind
# a TLS-terminating proxy/load balancer.
if not DEBUG:
    if env.bool("SECURE_PROXY_SSL", default=True):
        SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

    SECURE_SSL_REDIRECT = env.bool("SECURE_SSL_REDIRECT", default=False)
    SESSION_COOKIE_SECURE = env.bool("SESSION_COOKIE_SECURE", default=True)
    CSRF_COOKIE_SECURE = env.bool("CSRF_COOKIE_SECURE", default=True)
    SECURE_CONTENT_TYPE_NOSNIFF = True
    SECURE_REFERRER_POLICY = env("SECURE_REFERRER_POLICY", default="same-origin")

    CSRF_TRUSTED_ORIGINS = env.list("CSRF_TRUSTED_ORIGINS", default=[])

SESSION_COOKIE_AGE = env.int("SESSION_COOKIE_AGE", default=60 * 60 * 8)

# Static files (CSS, JavaScript, Images)
STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Fenix (university identity provider and degree catalog)
FENIX_API_BASE_URL = env("FENIX_API_BASE_URL", default="https://fenix.tecnico.ulisboa.pt/tecnico-api/v2")
FENIX_OAUTH_BASE_URL = env("FENIX_OAUTH_BASE_URL", default="https://fenix.tecnico.ulisboa.pt/oauth")
FENIX_CLIENT_ID = env("FENIX_CLIENT_ID", default="")
FENIX_CLIENT_SECRET = env("FENIX_CLIENT_SECRET", default="")
FENIX_REDIRECT_URL = env("FENIX_REDIRECT_URL", default="http://localhost:8000/login")
if not DEBUG and not TESTING and not FENIX_CLIENT_SECRET:
    raise ImproperlyConfigured("FENIX_CLIENT_SECRET must be set.")
# Degree catalog and active academic year staleness bound.
FENIX_CACHE_TTL_SECONDS = env.int("FENIX_CACHE_TTL_SECONDS", default=600)
FENIX_REQUEST_TIMEOUT_SECONDS = env.int("FENIX_REQUEST_TIMEOUT_SECONDS", default=10)

# Caching
CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'urna',
        'TIMEOUT': 300,
    }
}

# Logging
# Ensure app logs are visible in container stdout.
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'filters': {
        'skip_healthz': {
            '()': 'core.logging_filters.SkipHealthzFilter',
        },
    },
    'formatters': {
        'console': {
            'format': '[{asctime}] {levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'console',
            'filters': ['skip_healthz'],
        },
    },
    'loggers': {
        # Our app
        'core': {
            'handlers': ['console'],
            'level': 'DEBUG' if DEBUG else 'INFO',
            'propagate': False,
        },
        # Django request errors still visible
        'django.request': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
        # Access logs from `runserver`.
        'django.server': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}
