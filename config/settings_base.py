from __future__ import annotations

from pathlib import Path

import environ

BASE_DIR = Path(__file__).resolve().parent.parent

env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, []),
    CORS_ALLOWED_ORIGINS=(list, []),
    CSRF_TRUSTED_ORIGINS=(list, []),

    # Remote shop API (coupon verification, customer check, order create)
    STOREFRONT_API_BASE_URL=(str, "https://darurialese.com/wp-json/sarbu"),
    STOREFRONT_API_TIMEOUT=(int, 20),

    # Shipping (flat per-method rates, free above threshold)
    CHECKOUT_FREE_SHIPPING_THRESHOLD=(str, "200"),
    CHECKOUT_DEFAULT_DELIVERY_METHOD=(str, "sameday"),
    CHECKOUT_PICKUP_METHODS=(list, ["pickup"]),
    CHECKOUT_LOCKER_METHODS=(list, ["easybox"]),

    # Debounce windows (seconds)
    COUPON_REVALIDATE_DELAY_SECONDS=(float, 0.45),
    CUSTOMER_LOOKUP_DELAY_SECONDS=(float, 0.5),

    # Checkout draft persistence
    CHECKOUT_DRAFT_PASSPHRASE=(str, "daruri-alese-checkout-v1"),
    CHECKOUT_DRAFT_STORAGE_KEY=(str, "checkout-form"),
    COUPON_STORAGE_KEY=(str, "cartCouponCode"),
    CHECKOUT_DRAFT_TTL_SECONDS=(int, 60 * 60 * 24 * 14),

    # Reference datasets (file path or URL)
    LOCALITY_DATASET=(str, ""),
    LOCKER_DATASET=(str, ""),
)

# Loads variables from .env if present (dev convenience). In prod use real env vars.
environ.Env.read_env(BASE_DIR / ".env")

SECRET_KEY = env("SECRET_KEY", default="unsafe-dev-secret-key")
DEBUG = env.bool("DEBUG", default=False)

NINJA_ENABLE_DOCS = env.bool("NINJA_ENABLE_DOCS", default=DEBUG)

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=["localhost", "127.0.0.1"])

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.staticfiles",
    "corsheaders",
    "api",
    "storefront",
    "accounts",
    "shipping",
    "checkout",
    "promotions",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

WSGI_APPLICATION = "config.wsgi.application"

# Checkout core keeps no server-side order storage; the DB only backs Django internals.
DATABASES = {
    "default": env.db(
        "DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
    )
}

CACHES = {
    "default": env.cache("CACHE_URL", default="locmemcache://checkout"),
}

LANGUAGE_CODE = env("LANGUAGE_CODE", default="ro")
TIME_ZONE = env("TIME_ZONE", default="Europe/Bucharest")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "root": {"handlers": ["console"], "level": env("LOG_LEVEL", default="INFO")},
}

# --- Remote shop API ---
STOREFRONT_API_BASE_URL = env("STOREFRONT_API_BASE_URL").rstrip("/")
STOREFRONT_API_TIMEOUT = env.int("STOREFRONT_API_TIMEOUT")

# --- Shipping ---
CHECKOUT_FREE_SHIPPING_THRESHOLD = env("CHECKOUT_FREE_SHIPPING_THRESHOLD")
CHECKOUT_DEFAULT_DELIVERY_METHOD = env("CHECKOUT_DEFAULT_DELIVERY_METHOD")
CHECKOUT_PICKUP_METHODS = [m.strip().lower() for m in env.list("CHECKOUT_PICKUP_METHODS") if m.strip()]
CHECKOUT_LOCKER_METHODS = [m.strip().lower() for m in env.list("CHECKOUT_LOCKER_METHODS") if m.strip()]

# Flat shipping fee per delivery method (RON). Override with
# CHECKOUT_SHIPPING_RATES="sameday=17,dpd=20,fan=21,easybox=13,pickup=0".
CHECKOUT_SHIPPING_RATES = {
    k.strip().lower(): str(v).strip()
    for k, v in env.dict(
        "CHECKOUT_SHIPPING_RATES",
        default={"sameday": "17", "dpd": "20", "fan": "21", "easybox": "13", "pickup": "0"},
    ).items()
}

# Shop-side shipping method instance ids sent with the order.
CHECKOUT_SHIPPING_INSTANCE_IDS = {"dpd": 2, "pickup": 1, "sameday": 4, "easybox": 4}

# Courier service descriptors sent with the order (service_id, service_code).
CHECKOUT_COURIER_SERVICES = {"easybox": (15, "LN"), "sameday": (7, "24")}

# --- Debounce windows ---
COUPON_REVALIDATE_DELAY_SECONDS = env.float("COUPON_REVALIDATE_DELAY_SECONDS")
CUSTOMER_LOOKUP_DELAY_SECONDS = env.float("CUSTOMER_LOOKUP_DELAY_SECONDS")

# --- Draft persistence ---
CHECKOUT_DRAFT_PASSPHRASE = env("CHECKOUT_DRAFT_PASSPHRASE")
CHECKOUT_DRAFT_STORAGE_KEY = env("CHECKOUT_DRAFT_STORAGE_KEY")
COUPON_STORAGE_KEY = env("COUPON_STORAGE_KEY")
CHECKOUT_DRAFT_TTL_SECONDS = env.int("CHECKOUT_DRAFT_TTL_SECONDS")

# --- Reference datasets ---
LOCALITY_DATASET = env("LOCALITY_DATASET") or str(BASE_DIR / "data" / "retea-sameday.json")
LOCKER_DATASET = env("LOCKER_DATASET") or str(BASE_DIR / "data" / "sameday-lockers.json")

# --- API/front-end integration ---
CORS_ALLOWED_ORIGINS = env.list(
    "CORS_ALLOWED_ORIGINS",
    default=["http://localhost:5173", "http://127.0.0.1:5173"],
)
CORS_ALLOW_CREDENTIALS = env.bool("CORS_ALLOW_CREDENTIALS", default=True)

CSRF_TRUSTED_ORIGINS = env.list(
    "CSRF_TRUSTED_ORIGINS",
    default=["http://localhost:5173", "http://127.0.0.1:5173"],
)

API_BASE_PATH = env("API_BASE_PATH", default="api")
