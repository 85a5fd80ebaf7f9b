import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# Storage
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./rsvp.db")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# One-time codes
OTP_TTL_MINUTES = int(os.getenv("OTP_TTL_MINUTES", "10"))
OTP_RETENTION_MINUTES = int(os.getenv("OTP_RETENTION_MINUTES", "60"))
OTP_CLEANUP_INTERVAL_SECONDS = int(os.getenv("OTP_CLEANUP_INTERVAL_SECONDS", "900"))

# Per-event lock guarding attendee writes
LOCK_TIMEOUT_SECONDS = int(os.getenv("LOCK_TIMEOUT_SECONDS", "10"))
LOCK_BLOCKING_TIMEOUT_SECONDS = float(os.getenv("LOCK_BLOCKING_TIMEOUT_SECONDS", "5"))

# Mail delivery; without SMTP_HOST messages are only logged
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL", "noreply@eventplatform.com")
SMTP_FROM_NAME = os.getenv("SMTP_FROM_NAME", "Event Platform")
SMTP_USE_TLS = _env_bool("SMTP_USE_TLS", True)
SMTP_TIMEOUT_SECONDS = int(os.getenv("SMTP_TIMEOUT_SECONDS", "15"))
NOTIFY_ADDRESS_TEMPLATE = os.getenv("NOTIFY_ADDRESS_TEMPLATE", "user-{user_id}@users.eventplatform.com")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]


def get_redis_url():
    return REDIS_URL


def get_database_url():
    return DATABASE_URL
