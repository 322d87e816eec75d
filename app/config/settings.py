"""
Django settings for the billing service.

Every value comes from the environment through django-environ; the schema
below declares the cast and default of each billing variable in one place.
A local .env.development file is read when present (override the path with
ENV_FILE), otherwise the process environment is used as-is.

Minimum production environment:
    SECRET_KEY, DATABASE_URL, CACHE_URL=redis://..., ALLOWED_HOSTS,
    MERCADOPAGO_ACCESS_TOKEN, MERCADOPAGO_WEBHOOK_SECRET,
    BILLING_BASE_URL, BILLING_TRUSTED_ORIGINS

https://docs.djangoproject.com/en/5.2/ref/settings/
"""

import os
from datetime import timedelta
from pathlib import Path

import environ

BASE_DIR = Path(__file__).resolve().parent.parent

env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, []),
    LOG_LEVEL=(str, "INFO"),
    # MercadoPago credentials (TEST-... tokens in sandbox, APP_USR-... live)
    MERCADOPAGO_ACCESS_TOKEN=(str, ""),
    MERCADOPAGO_WEBHOOK_SECRET=(str, ""),
    MERCADOPAGO_API_TIMEOUT_SECONDS=(int, 10),
    MERCADOPAGO_MAX_RETRIES=(int, 3),
    # OAuth application, only needed to onboard marketplace sellers
    MERCADOPAGO_APP_ID=(str, ""),
    MERCADOPAGO_APP_SECRET=(str, ""),
    # Billing behaviour
    BILLING_BASE_URL=(str, "http://localhost:8000"),
    BILLING_NOTIFICATION_URL=(str, ""),
    BILLING_TRUSTED_ORIGINS=(list, []),
    BILLING_CACHE_ALIAS=(str, "default"),
    BILLING_IDEMPOTENCY_STORE=(str, "billing.idempotency.CacheIdempotencyStore"),
    BILLING_IDEMPOTENCY_TTL_SECONDS=(int, 24 * 60 * 60),
    BILLING_RATE_LIMITER=(str, "billing.rate_limit.CacheRateLimiter"),
    BILLING_PAYMENT_RATE_LIMIT=(int, 10),
    BILLING_WEBHOOK_RATE_LIMIT=(int, 1000),
    BILLING_RATE_LIMIT_WINDOW_SECONDS=(int, 60),
    BILLING_ON_PAYMENT_UPDATE=(str, ""),
    BILLING_ON_SUBSCRIPTION_UPDATE=(str, ""),
    BILLING_ON_SUBSCRIPTION_PAYMENT=(str, ""),
)

env_file = os.environ.get("ENV_FILE", BASE_DIR.parent / ".env.development")
if Path(env_file).exists():
    environ.Env.read_env(env_file)

SECRET_KEY = env("SECRET_KEY")
DEBUG = env("DEBUG")
ALLOWED_HOSTS = env("ALLOWED_HOSTS")

# =============================================================================
# MercadoPago
# =============================================================================
MERCADOPAGO_ACCESS_TOKEN = env("MERCADOPAGO_ACCESS_TOKEN")
# Empty secret skips x-signature verification; never leave it empty in production
MERCADOPAGO_WEBHOOK_SECRET = env("MERCADOPAGO_WEBHOOK_SECRET")
MERCADOPAGO_API_TIMEOUT_SECONDS = env("MERCADOPAGO_API_TIMEOUT_SECONDS")
MERCADOPAGO_MAX_RETRIES = env("MERCADOPAGO_MAX_RETRIES")
MERCADOPAGO_APP_ID = env("MERCADOPAGO_APP_ID")
MERCADOPAGO_APP_SECRET = env("MERCADOPAGO_APP_SECRET")

# =============================================================================
# Billing
# =============================================================================
# Default back URLs are {BILLING_BASE_URL}/payment/success etc.
BILLING_BASE_URL = env("BILLING_BASE_URL")
BILLING_NOTIFICATION_URL = env("BILLING_NOTIFICATION_URL")

# Hosts accepted in client redirect URLs; "*.example.com" matches subdomains
BILLING_TRUSTED_ORIGINS = env("BILLING_TRUSTED_ORIGINS")
BILLING_REQUIRE_HTTPS = env.bool("BILLING_REQUIRE_HTTPS", default=not DEBUG)

BILLING_CACHE_ALIAS = env("BILLING_CACHE_ALIAS")
BILLING_IDEMPOTENCY_STORE = env("BILLING_IDEMPOTENCY_STORE")
BILLING_IDEMPOTENCY_TTL_SECONDS = env("BILLING_IDEMPOTENCY_TTL_SECONDS")
BILLING_RATE_LIMITER = env("BILLING_RATE_LIMITER")
BILLING_PAYMENT_RATE_LIMIT = env("BILLING_PAYMENT_RATE_LIMIT")
BILLING_WEBHOOK_RATE_LIMIT = env("BILLING_WEBHOOK_RATE_LIMIT")
BILLING_RATE_LIMIT_WINDOW_SECONDS = env("BILLING_RATE_LIMIT_WINDOW_SECONDS")

# Dotted paths to host callables, see billing.hooks
BILLING_ON_PAYMENT_UPDATE = env("BILLING_ON_PAYMENT_UPDATE")
BILLING_ON_SUBSCRIPTION_UPDATE = env("BILLING_ON_SUBSCRIPTION_UPDATE")
BILLING_ON_SUBSCRIPTION_PAYMENT = env("BILLING_ON_SUBSCRIPTION_PAYMENT")

# =============================================================================
# Applications
# =============================================================================
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework_simplejwt",
    "django_celery_beat",
    "drf_spectacular",
    "core",
    "billing",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"
ASGI_APPLICATION = "config.asgi.application"

# Only the admin renders templates
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# =============================================================================
# Storage
# =============================================================================
# postgres://user:pass@db:5432/billing in production
DATABASES = {
    "default": env.db("DATABASE_URL", default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}

# Holds webhook dedupe marks, replayable creation responses and rate limit
# windows. Must be shared between workers: redis://redis:6379/0 (django-redis).
CACHES = {
    "default": env.cache("CACHE_URL", default="locmemcache://"),
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================================================================
# API
# =============================================================================
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework_simplejwt.authentication.JWTAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.IsAuthenticated"],
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_PARSER_CLASSES": ["rest_framework.parsers.JSONParser"],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_PAGINATION_CLASS": "billing.pagination.BillingPagination",
    "PAGE_SIZE": 10,
}
if DEBUG:
    REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"].append(
        "rest_framework.renderers.BrowsableAPIRenderer"
    )

# Tokens are issued by the host application; this service only validates them
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=60),
    "SIGNING_KEY": env("JWT_SIGNING_KEY", default=SECRET_KEY),
    "AUTH_HEADER_TYPES": ("Bearer",),
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Billing API",
    "DESCRIPTION": "MercadoPago checkouts, subscriptions, plans and webhooks",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "SCHEMA_PATH_PREFIX": r"/api/v[0-9]+",
    "COMPONENT_SPLIT_REQUEST": True,
    "SORT_OPERATIONS": False,
    "SECURITY": [{"Bearer": []}],
    "APPEND_COMPONENTS": {
        "securitySchemes": {
            "Bearer": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"},
        }
    },
}

# =============================================================================
# Celery
# =============================================================================
# Only periodic maintenance runs on the queue; webhooks are handled in-request
CELERY_BROKER_URL = env("CELERY_BROKER_URL", default="redis://redis:6379/1")
CELERY_RESULT_BACKEND = env("CELERY_RESULT_BACKEND", default="redis://redis:6379/1")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = "UTC"
CELERY_TASK_TIME_LIMIT = 5 * 60
CELERY_BEAT_SCHEDULER = "django_celery_beat.schedulers:DatabaseScheduler"

# =============================================================================
# Internationalization & static files
# =============================================================================
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = env("STATIC_URL", default="/static/")
STATIC_ROOT = BASE_DIR / "staticfiles"
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {
        "BACKEND": (
            "django.contrib.staticfiles.storage.StaticFilesStorage"
            if DEBUG
            else "whitenoise.storage.CompressedManifestStaticFilesStorage"
        ),
    },
}

# =============================================================================
# Logging
# =============================================================================
# Billing modules log structured context through `extra=`; access tokens and
# signature values are never passed to a logger.
LOG_LEVEL = env("LOG_LEVEL")
LOG_DIR = Path(env("LOG_DIR", default=str(BASE_DIR / "logs")))
LOG_FILE_NAME = env("LOG_FILE_NAME", default="billing.log")
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "console": {
            "format": "{asctime} {levelname} {name}: {message}",
            "style": "{",
        },
        "file": {
            "format": "[{asctime}] {levelname} {name} {module}:{lineno} pid={process:d} - {message}",
            "style": "{",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "console"},
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": LOG_DIR / LOG_FILE_NAME,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "formatter": "file",
            "encoding": "utf-8",
        },
    },
    "root": {"handlers": ["console", "file"], "level": LOG_LEVEL},
    "loggers": {
        "django.request": {
            "handlers": ["console", "file"],
            "level": "ERROR",
            "propagate": False,
        },
        "celery": {"handlers": ["console", "file"], "level": LOG_LEVEL, "propagate": False},
        "billing": {
            "handlers": ["console", "file"],
            "level": env("BILLING_LOG_LEVEL", default=LOG_LEVEL),
            "propagate": False,
        },
    },
}

# =============================================================================
# Production hardening
# =============================================================================
if not DEBUG:
    SECURE_SSL_REDIRECT = env.bool("SECURE_SSL_REDIRECT", default=True)
    SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_HSTS_SECONDS = env.int("SECURE_HSTS_SECONDS", default=31536000)
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_CONTENT_TYPE_NOSNIFF = True
    X_FRAME_OPTIONS = "DENY"
