# config/settings.py

import os
from pathlib import Path
from dotenv import load_dotenv

# ──────────────────────────────────────────────────────────────────────────────
# Base & Env (환경별 .env 자동 로딩)
# ──────────────────────────────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# DJANGO_ENV 에 따라 .env.<DJANGO_ENV> → .env 순서로 로드
# 예) dev → .env.dev, prod → .env.prod
DJANGO_ENV = os.getenv("DJANGO_ENV", "dev").strip().lower()
env_file = BASE_DIR / f".env.{DJANGO_ENV}"
if env_file.exists():
    load_dotenv(env_file, override=True)

# 공통 키 보완용(.env). 이미 로드된 값은 유지(override=False)
common_env = BASE_DIR / ".env"
if common_env.exists():
    load_dotenv(common_env, override=False)


def _env_bool(name: str, default: str = "0") -> bool:
    # "1/true/yes/on" 다 허용 (대소문자 무시)
    return str(os.getenv(name, default)).strip().lower() in ("1", "true", "yes", "on")


# ──────────────────────────────────────────────────────────────────────────────
# Core Settings
# ──────────────────────────────────────────────────────────────────────────────
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-secret")
DEBUG = _env_bool("DEBUG", "1")
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost").split(",")

# ──────────────────────────────────────────────────────────────────────────────
# Applications
# ──────────────────────────────────────────────────────────────────────────────
INSTALLED_APPS = [
    # Django
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "django_celery_beat",

    # 3rd party
    "rest_framework",
    "drf_spectacular",
    "corsheaders",

    # Domain apps
    "domains.tracking",
]

# ──────────────────────────────────────────────────────────────────────────────
# Middleware
# ──────────────────────────────────────────────────────────────────────────────
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

# ──────────────────────────────────────────────────────────────────────────────
# URL & Templates
# ──────────────────────────────────────────────────────────────────────────────
ROOT_URLCONF = "config.urls"
APPEND_SLASH = True

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
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

WSGI_APPLICATION = "config.wsgi.application"

# ──────────────────────────────────────────────────────────────────────────────
# Database (PostgreSQL, DB_NAME 이 없으면 로컬/테스트용 sqlite)
# ──────────────────────────────────────────────────────────────────────────────
if os.getenv("DB_NAME"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("DB_NAME"),
            "USER": os.getenv("DB_USER"),
            "PASSWORD": os.getenv("DB_PASSWORD"),
            "HOST": os.getenv("DB_HOST"),
            "PORT": os.getenv("DB_PORT", "5432"),
            "CONN_MAX_AGE": int(os.getenv("DJANGO_DB_CONN_MAX_AGE", "60")),
            "OPTIONS": {"sslmode": os.getenv("DJANGO_DB_SSLMODE", "require")},
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ──────────────────────────────────────────────────────────────────────────────
# Cache (재조회 패스 락: 웹 프로세스와 Celery 워커가 같은 Redis 를 봐야 한다)
# ──────────────────────────────────────────────────────────────────────────────
CACHE_REDIS_URL = os.getenv("CACHE_REDIS_URL")
if CACHE_REDIS_URL:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": CACHE_REDIS_URL,
        }
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "tracking",
        }
    }

# ──────────────────────────────────────────────────────────────────────────────
# Internationalization
# ──────────────────────────────────────────────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

# ──────────────────────────────────────────────────────────────────────────────
# Static Files
# ──────────────────────────────────────────────────────────────────────────────
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

# ──────────────────────────────────────────────────────────────────────────────
# DRF & OpenAPI
# ──────────────────────────────────────────────────────────────────────────────
REST_FRAMEWORK = {
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Carrier Tracking API",
    "DESCRIPTION": "Multi-carrier shipment tracking: live queries, stored tracking, reconciliation, reports.",
    "VERSION": "1.0.0",
    "SCHEMA_PATH_PREFIX": r"/api/v1",
    "SERVE_INCLUDE_SCHEMA": False,
    "COMPONENT_SPLIT_REQUEST": True,
    "DISABLE_ERRORS_AND_WARNINGS": True,
    "SWAGGER_UI_SETTINGS": {
        "deepLinking": True,
        "displayRequestDuration": True,
    },
    "SERVERS": [{"url": "/"}],
}

# ──────────────────────────────────────────────────────────────────────────────
# Security & CORS
# ──────────────────────────────────────────────────────────────────────────────
COOKIE_SECURE = not DEBUG
SESSION_COOKIE_SECURE = COOKIE_SECURE
CSRF_COOKIE_SECURE = COOKIE_SECURE

CORS_ALLOWED_ORIGINS = [
    o for o in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",") if o
]

# ──────────────────────────────────────────────────────────────────────────────
# Logging
# ──────────────────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        },
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "default"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "domains.tracking": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "zeep": {"handlers": ["console"], "level": "WARNING", "propagate": False},
    },
}

# ──────────────────────────────────────────────────────────────────────────────
# Tracking (재조회 주기/에러 임계치/캐리어 등록)
# ──────────────────────────────────────────────────────────────────────────────
TRACKING = {
    "REFRESH_INTERVAL_MINUTES": float(os.getenv("TRACKING_REFRESH_INTERVAL_MINUTES", "15")),
    "MAX_ERROR_COUNT": int(os.getenv("TRACKING_MAX_ERROR_COUNT", "10")),
    "INTER_CALL_DELAY_SECONDS": float(os.getenv("TRACKING_INTER_CALL_DELAY_SECONDS", "0.5")),
    # Celery beat 없이 웹 프로세스 하나로 돌릴 때만 켠다
    "SCHEDULER_AUTOSTART": _env_bool("TRACKING_SCHEDULER_AUTOSTART", "0"),
    # 패스 락 임대 시간. 운송장 하나 처리할 때마다 연장된다
    "PASS_LOCK_TIMEOUT_SECONDS": int(os.getenv("TRACKING_PASS_LOCK_TIMEOUT_SECONDS", "600")),
    # beat 패스 하드 타임아웃 (전역 CELERY_TASK_TIME_LIMIT 대신)
    "PASS_TIME_LIMIT_SECONDS": int(os.getenv("TRACKING_PASS_TIME_LIMIT_SECONDS", str(6 * 60 * 60))),
    "CARRIERS": {
        "purolator": "domains.tracking.carriers.purolator.PurolatorAdapter",
        "ups": "domains.tracking.carriers.ups.UpsAdapter",
    },
}

_PUROLATOR_PROD = os.getenv("PUROLATOR_ENVIRONMENT", "development").strip().lower() == "production"
_PUROLATOR_HOST = "https://webservices.purolator.com" if _PUROLATOR_PROD else "https://devwebservices.purolator.com"
_PUROLATOR_ENDPOINT = f"{_PUROLATOR_HOST}/EWS/v2/ShipmentTracking/ShipmentTrackingService.asmx"

_UPS_PROD = os.getenv("UPS_ENVIRONMENT", "development").strip().lower() == "production"
_UPS_HOST = "https://onlinetools.ups.com" if _UPS_PROD else "https://wwwcie.ups.com"

CARRIER_CREDENTIALS = {
    "purolator": {
        "ACTIVATION_KEY": os.getenv("PUROLATOR_ACTIVATION_KEY", ""),
        "ACCOUNT_NUMBER": os.getenv("PUROLATOR_ACCOUNT_NUMBER", ""),
        "ENDPOINT": _PUROLATOR_ENDPOINT,
        "WSDL_URL": os.getenv("PUROLATOR_WSDL_URL", f"{_PUROLATOR_ENDPOINT}?wsdl"),
        "VERSION": "2.0",
        "LANGUAGE": os.getenv("PUROLATOR_LANGUAGE", "en"),
        "GROUP_ID": os.getenv("PUROLATOR_GROUP_ID", "e-tracking"),
        "USER_TOKEN": os.getenv("PUROLATOR_USER_TOKEN", ""),
    },
    "ups": {
        "CLIENT_ID": os.getenv("UPS_CLIENT_ID", ""),
        "CLIENT_SECRET": os.getenv("UPS_CLIENT_SECRET", ""),
        "BASE_URL": f"{_UPS_HOST}/api",
        "TOKEN_URL": f"{_UPS_HOST}/security/v1/oauth/token",
        "TRANSACTION_SRC": os.getenv("UPS_TRANSACTION_SRC", "e-tracking"),
    },
}

# ──────────────────────────────────────────────────────────────────────────────
# Celery Configuration
# ──────────────────────────────────────────────────────────────────────────────
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0")
_result_env = os.environ.get("CELERY_RESULT_BACKEND")
CELERY_RESULT_BACKEND = _result_env or None
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TIME_LIMIT = 60 * 10
CELERY_TASK_TRACK_STARTED = True
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_BROKER_CONNECTION_RETRY_ON_STARTUP = True
CELERY_TASK_IGNORE_RESULT = True

CELERY_BEAT_SCHEDULE = {
    "reconcile-tracked-shipments": {
        "task": "domains.tracking.tasks.reconcile_tracked_shipments",
        "schedule": TRACKING["REFRESH_INTERVAL_MINUTES"] * 60,
        "args": [],
        "kwargs": {},
    },
}
