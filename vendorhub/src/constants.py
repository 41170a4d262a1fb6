"""
Application configuration and constants for VendorHub API Server.

This module centralizes environment-based configuration, resource limits,
regular expressions, payment gateway settings and default documents.

Configuration values can be overridden via environment variables.
"""

from os import environ


# ---------------------------------------------------------------------------
# Application metadata
# ---------------------------------------------------------------------------
API_TITLE = "VendorHub API Server"
API_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# PostgreSQL configuration
# ---------------------------------------------------------------------------
PSQL_DB_DRIVER = environ.get("PSQL_DB_DRIVER", "postgresql")
PSQL_DB_USERNAME = environ.get("PSQL_DB_USERNAME", "postgres")
PSQL_DB_PORT = environ.get("PSQL_DB_PORT", "5432")
PSQL_DB_PASSWORD = environ.get("PSQL_DB_PASSWORD", "password")
PSQL_DB_HOST = environ.get("PSQL_DB_HOST", "localhost")
PSQL_DB_NAME = environ.get("PSQL_DB_NAME", "postgres")


# ---------------------------------------------------------------------------
# OpenObserve configuration
# ---------------------------------------------------------------------------
OPENOBSERVE_ENABLED = environ.get("OPENOBSERVE_ENABLED", "true").lower() == "true"
OPENOBSERVE_PROTOCOL = environ.get("OPENOBSERVE_PROTOCOL", "http")
OPENOBSERVE_HOST = environ.get("OPENOBSERVE_HOST", "localhost")
OPENOBSERVE_PORT = environ.get("OPENOBSERVE_PORT", "5080")
OPENOBSERVE_USERNAME = environ.get("OPENOBSERVE_USERNAME", "admin@vendorhub.app")
OPENOBSERVE_PASSWORD = environ.get("OPENOBSERVE_PASSWORD", "password")
OPENOBSERVE_ORG = environ.get("OPENOBSERVE_ORG", "vendorhub")
OPENOBSERVE_STREAM = environ.get("OPENOBSERVE_STREAM", "vendorhub-api-server")
OPENOBSERVE_TIMEOUT = 5  # Request timeout (in seconds)


# ---------------------------------------------------------------------------
# Redis configuration
# ---------------------------------------------------------------------------
REDIS_HOST = environ.get("REDIS_HOST", "localhost")
REDIS_PORT = environ.get("REDIS_PORT", "6379")
REDIS_PASSWORD = environ.get("REDIS_PASSWORD", "password")


# ---------------------------------------------------------------------------
# Lipila payment gateway configuration
# ---------------------------------------------------------------------------
LIPILA_SECRET_KEY = environ.get("LIPILA_SECRET_KEY", "")
LIPILA_BASE_URL = environ.get("LIPILA_BASE_URL", "https://lipila-prod.hobbiton.app")
LIPILA_CURRENCY = environ.get("LIPILA_CURRENCY", "ZMW")
LIPILA_MOCK_MODE = environ.get("LIPILA_MOCK_MODE", "false").lower() == "true"
LIPILA_CALLBACK_URL = environ.get("LIPILA_CALLBACK_URL", "")
LIPILA_REDIRECT_URL = environ.get("LIPILA_REDIRECT_URL", "")
LIPILA_TIMEOUT = 30  # Request timeout (in seconds)
LIPILA_MAX_RETRIES = 3  # Attempts per request on gateway errors, timeouts and refused connections
LIPILA_RETRY_DELAY = 2  # Base retry delay (in seconds), multiplied by attempt
LIPILA_RETRY_STATUS = (502, 503, 504)
LIPILA_COUNTRY_CODE = "260"
# Worst case of one gateway call: connect and read timeouts on every attempt plus the backoff
LIPILA_MAX_CALL_TIME = LIPILA_MAX_RETRIES * 2 * LIPILA_TIMEOUT + LIPILA_RETRY_DELAY * sum(
    range(LIPILA_MAX_RETRIES)
)


# ---------------------------------------------------------------------------
# Payment polling
# ---------------------------------------------------------------------------
PAYMENT_POLL_INTERVAL = 10  # Seconds between two status checks
PAYMENT_POLL_MAX_ATTEMPTS = 30  # 30 x 10s = 5 minutes
RECONCILER_INTERVAL = 60  # Seconds between two reconciler sweeps
RECONCILER_MAX_WORKERS = 8  # Concurrent pollers in the reconciler


# ---------------------------------------------------------------------------
# Resource upper limits
# ---------------------------------------------------------------------------
MAX_ADMIN_TOKENS = 5  # Maximum tokens per admin
MAX_VENDOR_TOKENS = 3  # Maximum tokens per vendor
MAX_TOKEN_VALIDITY = 7 * 24 * 60 * 60  # Token validity (in seconds, 7 days)
SUBSCRIPTION_HISTORY_SIZE = 10  # Subscriptions returned as history
TOP_ANALYTICS_ENTRIES = 5  # Entries in top routes / top buses
DEFAULT_ANALYTICS_PERIOD = 30  # Days


# ---------------------------------------------------------------------------
# Regex constants (input validation)
# ---------------------------------------------------------------------------
REGEX_USERNAME = r"^[a-zA-Z][a-zA-Z0-9-.@_]*$"
REGEX_PASSWORD = r"^[a-zA-Z0-9-+,.@_$%&*#!^=/?]*$"
REGEX_NUMBER_PLATE = r"^[A-Z0-9 -]{2,16}$"
REGEX_CLOCK_TIME = r"^([01][0-9]|2[0-3]):[0-5][0-9]$"
REGEX_HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


# ---------------------------------------------------------------------------
# Redis mutex lock constants
# ---------------------------------------------------------------------------
MUTEX_LOCK_TIMEOUT = 60  # Lock timeout (in seconds)
MUTEX_LOCK_MAX_WAIT_TIME = 10  # Max blocking wait time (in seconds)
SUBSCRIPTION_LOCK_TIMEOUT = LIPILA_MAX_CALL_TIME + MUTEX_LOCK_TIMEOUT  # Outlives a charge
RECONCILER_LOCK_REFRESH = MUTEX_LOCK_TIMEOUT // 2  # Seconds between two lock renewals


# ---------------------------------------------------------------------------
# Compliance reporting
# ---------------------------------------------------------------------------
COMPLIANCE_REVIEW_PERIOD = 90  # Days between two compliance reviews
COMPLIANCE_RATINGS = ((90, "Excellent"), (80, "Good"), (70, "Fair"), (0, "Poor"))


# ---------------------------------------------------------------------------
# Default settings documents
# ---------------------------------------------------------------------------
DEFAULT_BUS_SETTINGS = {
    "company_name": "",
    "description": "",
    "address": "",
    "city": "",
    "country": "Zambia",
    "phone": "",
    "email": "",
    "website": "",
    "currency": "ZMW",
    "timezone": "Africa/Lusaka",
    "operating_hours": {"start": "06:00", "end": "22:00"},
    "features": {
        "online_booking": True,
        "seat_selection": True,
        "mobile_app": False,
        "notifications": True,
        "loyalty_program": False,
        "group_bookings": True,
    },
    "policies": {
        "cancellation_policy": "",
        "refund_policy": "",
        "baggage_policy": "",
        "child_policy": "",
    },
    "branding": {
        "primary_color": "#3B82F6",
        "secondary_color": "#1E40AF",
        "logo": "",
        "company_image": "",
    },
}

DEFAULT_PLATFORM_SETTINGS = {
    "general": {
        "site_name": "VendorHub",
        "site_description": "Multi-vending platform for institutions",
        "site_url": environ.get("SITE_URL", "http://localhost:3000"),
        "admin_email": "admin@vendorhub.app",
        "timezone": "UTC",
        "currency": "ZMW",
        "language": "en",
    },
    "security": {
        "enable_two_factor": False,
        "session_timeout": 30,
        "password_min_length": 8,
        "enable_email_verification": True,
        "enable_kyc_verification": True,
        "max_login_attempts": 5,
    },
    "email": {
        "smtp_host": environ.get("SMTP_HOST", "smtp.gmail.com"),
        "smtp_port": int(environ.get("SMTP_PORT", "587")),
        "smtp_user": environ.get("SMTP_USER", ""),
        "smtp_password": environ.get("SMTP_PASSWORD", ""),
        "from_email": environ.get("SMTP_FROM_EMAIL", "noreply@vendorhub.app"),
        "from_name": "VendorHub Platform",
    },
    "payment": {
        "lipila_public_key": "",
        "lipila_secret_key": "",
        "enable_mobile_money": True,
        "enable_card": True,
    },
    "notifications": {
        "enable_email_notifications": True,
        "enable_sms_notifications": False,
        "enable_push_notifications": True,
        "notification_frequency": "immediate",
    },
    "maintenance": {
        "maintenance_mode": False,
        "maintenance_message": "We are currently performing scheduled maintenance. Please check back later.",
        "allow_admin_access": True,
    },
}

# Setting keys never echoed back in clear text
SECRET_SETTING_KEYS = ("smtp_password", "lipila_secret_key")
MASKED_VALUE = "********"
