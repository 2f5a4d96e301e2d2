import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-insecure-key")
DEBUG = os.getenv("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = [h for h in os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",") if h]

INSTALLED_APPS = [
    "orders",
    "partners",
]

MIDDLEWARE = [
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "quickcommerce.urls"
WSGI_APPLICATION = "quickcommerce.wsgi.application"

# sqlite por defecto; postgres en despliegue (DB_ENGINE=django.db.backends.postgresql)
DATABASES = {
    "default": {
        "ENGINE": os.getenv("DB_ENGINE", "django.db.backends.sqlite3"),
        "NAME": os.getenv("DB_NAME", str(BASE_DIR / "db.sqlite3")),
        "USER": os.getenv("DB_USER", ""),
        "PASSWORD": os.getenv("DB_PASSWORD", ""),
        "HOST": os.getenv("DB_HOST", ""),
        "PORT": os.getenv("DB_PORT", ""),
    }
}

if DATABASES["default"]["ENGINE"] == "django.db.backends.sqlite3":
    # BEGIN IMMEDIATE: los escritores concurrentes esperan el lock en vez de fallar
    DATABASES["default"]["OPTIONS"] = {"timeout": 20, "transaction_mode": "IMMEDIATE"}
    # base de tests en archivo para que los hilos compartan datos
    DATABASES["default"]["TEST"] = {"NAME": str(BASE_DIR / "test_db.sqlite3")}

CACHES = {
    "default": {
        "BACKEND": os.getenv("CACHE_BACKEND", "django.core.cache.backends.locmem.LocMemCache"),
        "LOCATION": os.getenv("CACHE_LOCATION", "dispatch-eta"),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
USE_TZ = True
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "orders": {"handlers": ["console"], "level": os.getenv("LOG_LEVEL", "INFO")},
        "partners": {"handlers": ["console"], "level": os.getenv("LOG_LEVEL", "INFO")},
    },
}

# --- Motor de despacho ---
SLA_BUDGET_MINUTES = int(os.getenv("SLA_BUDGET_MINUTES", "10"))
CANCELLATION_WINDOW_SECONDS = int(os.getenv("CANCELLATION_WINDOW_SECONDS", "60"))
COMMISSION_RATE = os.getenv("COMMISSION_RATE", "0.15")
MIN_WITHDRAWAL_AMOUNT = os.getenv("MIN_WITHDRAWAL_AMOUNT", "100")

# --- Ubicación / ETA ---
ETA_MIN_INTERVAL_SECONDS = int(os.getenv("ETA_MIN_INTERVAL_SECONDS", "5"))
ETA_CACHE_SECONDS = int(os.getenv("ETA_CACHE_SECONDS", str(6 * 3600)))
GEO_TIMEOUT_SECONDS = float(os.getenv("GEO_TIMEOUT_SECONDS", "5"))
OSRM_SERVER_URL = os.getenv("OSRM_SERVER_URL", "https://router.project-osrm.org")
GEOCODER = os.getenv("GEOCODER", "nominatim")  # nominatim | google
GEOCODER_USER_AGENT = os.getenv("GEOCODER_USER_AGENT", "quickcommerce-dispatch")
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY", "")
AVG_SPEED_KMH = float(os.getenv("AVG_SPEED_KMH", "25"))
STRAIGHT_LINE_DETOUR_FACTOR = float(os.getenv("STRAIGHT_LINE_DETOUR_FACTOR", "1.4"))
