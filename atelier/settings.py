import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

# ---------------------------------
#   .env
# ---------------------------------
# Load .env from the project root when present
env_path = BASE_DIR / ".env"
if env_path.exists():
    load_dotenv(env_path)

# ---------------------------------
#   Security and debug
# ---------------------------------
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "change-me-in-development-only")

DEBUG = os.getenv("DJANGO_DEBUG", "True") == "True"

# Example: "127.0.0.1 localhost studio.example.com"
_raw_hosts = os.getenv("DJANGO_ALLOWED_HOSTS", "")
if _raw_hosts.strip():
    ALLOWED_HOSTS = _raw_hosts.split()
else:
    ALLOWED_HOSTS = ["127.0.0.1", "localhost", "testserver"]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "core.apps.CoreConfig",
    "contacts.apps.ContactsConfig",
    "orders.apps.OrdersConfig",
    "accounting.apps.AccountingConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "atelier.urls"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("DATABASE_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

LANGUAGE_CODE = "en"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -----------------------------
#   Workflow engine
# -----------------------------
ATELIER = {
    # collection name -> "app_label.Model"
    "RECORD_STORE_COLLECTIONS": {
        "orders": "orders.Order",
        "edit_requests": "orders.EditRequest",
        "edit_comments": "orders.EditComment",
        "invoices": "accounting.Invoice",
        "notifications": "core.Notification",
        "customers": "contacts.Customer",
        "employees": "contacts.Employee",
    },
    "DEAD_LETTER_LOGGER": "atelier.deadletter",
    "ORDER_NUMBER_PATTERN": "ORD-{year}-{seq:04d}",
}

# -----------------------------
#   Logging
# -----------------------------
LOG_LEVEL = os.getenv("DJANGO_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        # failed non-critical effects (notifications, audit comments)
        "atelier.deadletter": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
    },
}
