import os
from datetime import timedelta


def normalize_database_url(raw_url: str) -> str:
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql://", 1)
    return raw_url


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-unsafe-key")
    SQLALCHEMY_DATABASE_URI = normalize_database_url(
        os.getenv("DATABASE_URL", "sqlite:///instance/grumming.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }
    CACHE_TYPE = os.getenv("CACHE_TYPE", "SimpleCache")
    CACHE_DEFAULT_TIMEOUT = int(os.getenv("CACHE_DEFAULT_TIMEOUT", "120"))
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "200 per day;80 per hour")

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"
    PERMANENT_SESSION_LIFETIME = timedelta(days=int(os.getenv("SESSION_DAYS", "7")))
    REMEMBER_COOKIE_HTTPONLY = True

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    SENTRY_DSN = os.getenv("SENTRY_DSN")

    PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:5000")
    CORS_ALLOW_ORIGIN = os.getenv("CORS_ALLOW_ORIGIN", "*")
    LOGIN_LINK_MAX_AGE_SECONDS = int(os.getenv("LOGIN_LINK_MAX_AGE_SECONDS", "600"))

    # Payment gateway
    RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
    RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")
    # Dashboard webhook secret; falls back to the API secret.
    RAZORPAY_WEBHOOK_SECRET = os.getenv("RAZORPAY_WEBHOOK_SECRET") or RAZORPAY_KEY_SECRET
    PLATFORM_FEE_PCT = os.getenv("PLATFORM_FEE_PCT", "8")
    WALLET_TOPUP_MIN = int(os.getenv("WALLET_TOPUP_MIN", "50"))
    WALLET_TOPUP_MAX = int(os.getenv("WALLET_TOPUP_MAX", "10000"))
    SETTLEMENT_SYNC_COUNT = 50
    SETTLEMENT_TRANSACTION_COUNT = 100

    # SMS
    TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
    TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")
    FAST2SMS_API_KEY = os.getenv("FAST2SMS_API_KEY")

    # Email
    RESEND_API_KEY = os.getenv("RESEND_API_KEY")
    EMAIL_FROM = os.getenv("EMAIL_FROM", "Grumming <onboarding@resend.dev>")
    RECEIPT_MAX_ATTEMPTS = int(os.getenv("RECEIPT_MAX_ATTEMPTS", "5"))

    # Maps / identity
    MAPBOX_TOKEN = os.getenv("MAPBOX_PUBLIC_TOKEN") or os.getenv("MAPBOX_ACCESS_TOKEN")
    FIREBASE_WEB_API_KEY = os.getenv("FIREBASE_WEB_API_KEY")
    HTTP_TIMEOUT_SECONDS = int(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

    # OTP
    SMS_OTP_TTL_SECONDS = 5 * 60
    EMAIL_OTP_TTL_SECONDS = 10 * 60
    OTP_SEND_WINDOW_SECONDS = 60
    OTP_SEND_MAX_ATTEMPTS = 3
    OTP_VERIFY_WINDOW_SECONDS = 5 * 60
    OTP_VERIFY_MAX_FAILURES = 5
    OTP_ATTEMPT_RETENTION_SECONDS = 60 * 60


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SESSION_COOKIE_SECURE = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class ProductionConfig(BaseConfig):
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True


class TestingConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    CACHE_TYPE = "NullCache"
    RATELIMIT_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    SENTRY_DSN = None
    RAZORPAY_KEY_ID = "rzp_test_key"
    RAZORPAY_KEY_SECRET = "rzp_test_secret"
    RAZORPAY_WEBHOOK_SECRET = "rzp_test_webhook_secret"
    MAPBOX_TOKEN = "pk.test"
    FIREBASE_WEB_API_KEY = "firebase-test-key"
    PUBLIC_BASE_URL = "http://testserver"


config_by_env = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
