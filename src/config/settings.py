"""Django settings for the EV charge planner project."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
PROJECT_ROOT = BASE_DIR.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "change-me-in-production")
DEBUG = os.getenv("DJANGO_DEBUG", "1") == "1"
ALLOWED_HOSTS = [host for host in os.getenv("DJANGO_ALLOWED_HOSTS", "").split(",") if host]

INSTALLED_APPS = [
    "charge_planner",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

WSGI_APPLICATION = "config.wsgi.application"

# Trip plans are computed per request; nothing is stored.
DATABASES: dict[str, dict[str, str]] = {}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "charge-planner-cache",
        "OPTIONS": {
            "MAX_ENTRIES": int(os.getenv("CACHE_MAX_ENTRIES", "2000")),
        },
    }
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "charge_planner": {
            "handlers": ["console"],
            "level": os.getenv("CHARGE_PLANNER_LOG_LEVEL", "INFO"),
        },
    },
}

ORS_GEOCODE_URL = os.getenv(
    "ORS_GEOCODE_URL", "https://api.openrouteservice.org/geocode/search"
)
ORS_DIRECTIONS_URL = os.getenv(
    "ORS_DIRECTIONS_URL",
    "https://api.openrouteservice.org/v2/directions/driving-car/geojson",
)
ORS_API_KEY = os.getenv("ORS_API_KEY", "")
ORS_TIMEOUT_SECONDS = float(os.getenv("ORS_TIMEOUT_SECONDS", "12"))
ORS_RETRY_COUNT = int(os.getenv("ORS_RETRY_COUNT", "0"))

OCM_BASE_URL = os.getenv("OCM_BASE_URL", "https://api.openchargemap.io/v3")
OCM_API_KEY = os.getenv("OCM_API_KEY", "")
OCM_USER_AGENT = os.getenv("OCM_USER_AGENT", "ev-charge-planner/1.0")
OCM_TIMEOUT_SECONDS = float(os.getenv("OCM_TIMEOUT_SECONDS", "12"))
OCM_RETRY_COUNT = int(os.getenv("OCM_RETRY_COUNT", "0"))

GEOCODE_CACHE_TTL_SECONDS = int(os.getenv("GEOCODE_CACHE_TTL_SECONDS", "86400"))
ROUTE_CACHE_TTL_SECONDS = int(os.getenv("ROUTE_CACHE_TTL_SECONDS", "600"))
CHARGER_CACHE_TTL_SECONDS = int(os.getenv("CHARGER_CACHE_TTL_SECONDS", "600"))

MANUAL_ENERGY_TAGS_PATH = os.getenv("MANUAL_ENERGY_TAGS_PATH", "")
CHARGING_CURRENCY = os.getenv("CHARGING_CURRENCY", "INR")
CHARGING_BASE_TARIFF_PER_KWH = float(os.getenv("CHARGING_BASE_TARIFF_PER_KWH", "12"))
