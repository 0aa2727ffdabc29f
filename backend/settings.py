"""
Django settings for learnhub_backend project - Production Ready
"""

import os
import dj_database_url
from pathlib import Path
from datetime import timedelta

# Load .env for development
from dotenv import load_dotenv

load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.environ.get(
    "SECRET_KEY", "django-insecure-l3arnhub-7q!v0x^m2k#c9s@r1d8z$u4w&e6y*t5b-pn+a"
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.environ.get("DEBUG", "True").lower() == "true"

# Production-ready ALLOWED_HOSTS
ALLOWED_HOSTS = os.environ.get("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")

# Application definition
INSTALLED_APPS = [
    "jazzmin",
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "django_extensions",
    # Third Party Apps
    "corsheaders",
    "rest_framework",
    "rest_framework_simplejwt",
    "rest_framework_simplejwt.token_blacklist",
    # Local Apps
    "elearning.apps.ElearningConfig",
    "core.stripe_integration.apps.StripeIntegrationConfig",
    # Stripe App
    "djstripe",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

# CORS Settings - Production-ready
CORS_ALLOWED_ORIGINS = os.environ.get(
    "CORS_ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:8080"
).split(",")
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_METHODS = [
    "DELETE",
    "GET",
    "OPTIONS",
    "PATCH",
    "POST",
    "PUT",
]
CORS_ALLOW_HEADERS = [
    "accept",
    "accept-encoding",
    "authorization",
    "content-type",
    "dnt",
    "origin",
    "user-agent",
    "x-csrftoken",
    "x-requested-with",
    "cache-control",
]
CORS_ALLOWED_ORIGIN_REGEXES = [
    r"^http://localhost:517[0-9]$",
    r"^http://127\.0\.0\.1:517[0-9]$",
]

ROOT_URLCONF = "backend.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "backend.wsgi.application"

# Database - PostgreSQL in production, SQLite for development
if os.environ.get("DATABASE_URL"):
    DATABASES = {"default": dj_database_url.parse(os.environ.get("DATABASE_URL"))}
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

# Cache Configuration - Redis in production (also backs the exchange-rate cache)
if os.environ.get("REDIS_URL"):
    CACHES = {
        "default": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": os.environ.get("REDIS_URL"),
            "OPTIONS": {
                "CLIENT_CLASS": "django_redis.client.DefaultClient",
                "CONNECTION_POOL_KWARGS": {
                    "max_connections": 20,
                    "retry_on_timeout": True,
                },
            },
        }
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "learnhub-cache",
        }
    }

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"
    },
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# Static files (CSS, JavaScript, Images) - Production-ready
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"
    },
}

# Security Settings for Production
if not DEBUG:
    SECURE_BROWSER_XSS_FILTER = True
    SECURE_CONTENT_TYPE_NOSNIFF = True
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_SECONDS = 31536000
    SECURE_REDIRECT_EXEMPT = []
    SECURE_SSL_REDIRECT = True
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True

# Default primary key field type
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# REST Framework Settings
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": ("backend.custom_auth.JWTAuthentication",),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.IsAuthenticated",),
}

# Simple JWT Settings
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(
        minutes=int(os.environ.get("JWT_ACCESS_TOKEN_LIFETIME_MINUTES", "15"))
    ),
    "REFRESH_TOKEN_LIFETIME": timedelta(
        days=int(os.environ.get("JWT_REFRESH_TOKEN_LIFETIME_DAYS", "1"))
    ),
    "ROTATE_REFRESH_TOKENS": True,
    "BLACKLIST_AFTER_ROTATION": True,
    "UPDATE_LAST_LOGIN": True,
    "ALGORITHM": "HS256",
    "SIGNING_KEY": SECRET_KEY,
    "AUTH_HEADER_TYPES": ("Bearer",),
    "AUTH_HEADER_NAME": "HTTP_AUTHORIZATION",
    "USER_ID_FIELD": "id",
    "USER_ID_CLAIM": "user_id",
    "AUTH_TOKEN_CLASSES": ("rest_framework_simplejwt.tokens.AccessToken",),
    "TOKEN_TYPE_CLAIM": "token_type",
    "JTI_CLAIM": "jti",
}

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "elearning": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "core": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}

# Frontend URL for success/cancel/callback links
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:5173")

# Jazzmin Settings
JAZZMIN_SETTINGS = {
    "site_title": "LearnHub Admin",
    "site_header": "LearnHub Backend",
    "site_brand": "LearnHub Backend",
    "welcome_sign": "Welcome to the LearnHub admin area",
    "copyright": "LearnHub Team",
    "topmenu_links": [
        {"name": "Home", "url": "admin:index", "permissions": ["auth.view_user"]},
    ],
    "icons": {
        "auth": "fas fa-users-cog",
        "auth.user": "fas fa-user",
        "auth.Group": "fas fa-users",
        "elearning": "fas fa-graduation-cap",
        "elearning.Payment": "fas fa-credit-card",
        "elearning.Enrollment": "fas fa-user-graduate",
        "elearning.CertificateRequest": "fas fa-certificate",
    },
    "show_ui_builder": False,
    "changeform_format": "horizontal_tabs",
    "order_with_respect_to": [
        "auth",
        "elearning",
    ],
}

# ---- Catalog / Enrollment ----
# Catalog prices are expressed in this currency.
CATALOG_CURRENCY = os.environ.get("CATALOG_CURRENCY", "USD").upper()

# Server-side enrollment intents expire after this many seconds (24h).
ENROLLMENT_INTENT_TTL_SECONDS = int(
    os.environ.get("ENROLLMENT_INTENT_TTL_SECONDS", str(24 * 60 * 60))
)

# Timeout for every outgoing payment-provider HTTP call.
PAYMENT_PROVIDER_TIMEOUT_SECONDS = int(
    os.environ.get("PAYMENT_PROVIDER_TIMEOUT_SECONDS", "30")
)

# ---- Payments / Stripe / dj-stripe (card-network provider) ----
# Mode toggle
#    - If STRIPE_LIVE_MODE=True → project uses LIVE Stripe environment (real payments).
#    - If STRIPE_LIVE_MODE=False → project uses TEST environment (fake payments).
STRIPE_LIVE_MODE = os.environ.get("STRIPE_LIVE_MODE", "False").lower() == "true"

# Secret keys (backend only). NEVER expose to frontend or commit to Git.
STRIPE_TEST_SECRET_KEY = os.environ.get("STRIPE_TEST_SECRET_KEY", "")  # sk_test_xxx
STRIPE_LIVE_SECRET_KEY = os.environ.get("STRIPE_LIVE_SECRET_KEY", "")  # sk_live_xxx

# Publishable keys (frontend safe)
STRIPE_TEST_PUBLISHABLE_KEY = os.environ.get(
    "STRIPE_TEST_PUBLISHABLE_KEY", ""
)  # pk_test_xxx
STRIPE_LIVE_PUBLISHABLE_KEY = os.environ.get(
    "STRIPE_LIVE_PUBLISHABLE_KEY", ""
)  # pk_live_xxx

# Webhook secret used by dj-stripe to verify incoming events.
DJSTRIPE_WEBHOOK_SECRET = os.environ.get("DJSTRIPE_WEBHOOK_SECRET", "")

DJSTRIPE_STRIPE_API_VERSION = os.environ.get(
    "DJSTRIPE_STRIPE_API_VERSION", "2024-06-20"
)

# Active keys at runtime, selected by STRIPE_LIVE_MODE.
STRIPE_SECRET_KEY = (
    STRIPE_LIVE_SECRET_KEY if STRIPE_LIVE_MODE else STRIPE_TEST_SECRET_KEY
)
STRIPE_PUBLISHABLE_KEY = (
    STRIPE_LIVE_PUBLISHABLE_KEY if STRIPE_LIVE_MODE else STRIPE_TEST_PUBLISHABLE_KEY
)

# dj-stripe relation mode: use Stripe object "id" (e.g., "cus_...") as FK target
DJSTRIPE_FOREIGN_KEY_TO_FIELD = "id"

# ---- Payments / Paystack (regional provider) ----
PAYSTACK_SECRET_KEY = os.environ.get("PAYSTACK_SECRET_KEY", "")  # sk_xxx
PAYSTACK_PUBLIC_KEY = os.environ.get("PAYSTACK_PUBLIC_KEY", "")  # pk_xxx
PAYSTACK_API_BASE_URL = os.environ.get("PAYSTACK_API_BASE_URL", "https://api.paystack.co")
# Paystack settles in this currency; catalog prices are converted before charging.
PAYSTACK_SETTLEMENT_CURRENCY = os.environ.get("PAYSTACK_SETTLEMENT_CURRENCY", "NGN").upper()

# ---- Exchange rates ----
# GET {EXCHANGE_RATE_API_URL}/{FROM} → {"result": "success", "rates": {"NGN": 1600.0, ...}}
EXCHANGE_RATE_API_URL = os.environ.get(
    "EXCHANGE_RATE_API_URL", "https://open.er-api.com/v6/latest"
)
EXCHANGE_RATE_TIMEOUT_SECONDS = int(os.environ.get("EXCHANGE_RATE_TIMEOUT_SECONDS", "10"))
EXCHANGE_RATE_MAX_RETRIES = int(os.environ.get("EXCHANGE_RATE_MAX_RETRIES", "2"))
EXCHANGE_RATE_CACHE_SECONDS = int(os.environ.get("EXCHANGE_RATE_CACHE_SECONDS", "300"))
