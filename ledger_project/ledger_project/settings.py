import os
from pathlib import Path

import dj_database_url
from celery.schedules import crontab
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "changeme-ledger-dev-key")
DEBUG = os.getenv("DJANGO_DEBUG", "True") == "True"
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost").split(",")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "ledger_core.apps.LedgerCoreConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "ledger_project.urls"

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
    }
]

# =============================================================================
# Database
# =============================================================================
# Postgres in production (row locks are real there);
# SQLite serializes writers, which is enough for local work and tests
DATABASES = {
    "default": dj_database_url.config(
        env="DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================================================================
# Ledger
# =============================================================================
# Entry number series: <PREFIX>-<YYYY>-<NNNNNN>
LEDGER_ENTRY_PREFIX = os.getenv("LEDGER_ENTRY_PREFIX", "JE")
LEDGER_RECONCILIATION_PREFIX = os.getenv("LEDGER_RECONCILIATION_PREFIX", "REC")

# How far apart (in days) a bank line and a book line may be dated
# and still be suggested as a match
RECONCILIATION_MATCH_WINDOW_DAYS = int(os.getenv("RECONCILIATION_MATCH_WINDOW_DAYS", "3"))

# Hour of day (TIME_ZONE) at which beat triggers the recurring-entry run
RECURRING_SCHEDULE_HOUR = int(os.getenv("RECURRING_SCHEDULE_HOUR", "1"))

# =============================================================================
# Celery
# =============================================================================
CELERY_BROKER_URL = os.getenv("REDIS_URL", "redis://127.0.0.1:6379/0")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TIME_LIMIT = 10 * 60
CELERY_BEAT_SCHEDULE = {
    "process-recurring-journal-entries": {
        "task": "ledger_core.tasks.process_recurring_entries",
        "schedule": crontab(hour=RECURRING_SCHEDULE_HOUR, minute=0),
    },
}

# =============================================================================
# Logging
# =============================================================================
from .logging_config import get_logging_config  # noqa: E402

LOGGING = get_logging_config(DEBUG)
