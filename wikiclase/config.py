import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name, default):
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "default-secret")
    FLASK_ENV = os.getenv("FLASK_ENV", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    PLATFORM_NAME = os.getenv("PLATFORM_NAME", "La Wikiclase")

    # Database
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///wikiclase.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "jwt-secret")

    # Mail Configuration
    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.zoho.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", 587))
    MAIL_USE_TLS = _flag("MAIL_USE_TLS", "True")
    MAIL_USE_SSL = _flag("MAIL_USE_SSL", "False")
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "La Wikiclase <no-reply@wikiclase.com>")

    # Payment processor
    PAYMENT_API_BASE = os.getenv("PAYMENT_API_BASE", "https://api.stripe.com/v1")
    PAYMENT_SECRET_KEY = os.getenv("PAYMENT_SECRET_KEY")
    PAYMENT_WEBHOOK_SECRET = os.getenv("PAYMENT_WEBHOOK_SECRET")
    PAYMENT_TIMEOUT = int(os.getenv("PAYMENT_TIMEOUT", 10))
    PAYMENT_SIGNATURE_TOLERANCE = int(os.getenv("PAYMENT_SIGNATURE_TOLERANCE", 300))

    # Identity provider
    IDENTITY_WEBHOOK_SECRET = os.getenv("IDENTITY_WEBHOOK_SECRET")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    JWT_SECRET_KEY = "test-jwt-secret-with-enough-length-for-hs256"
    MAIL_SUPPRESS_SEND = True
    PAYMENT_SECRET_KEY = "sk_test_wikiclase"
    PAYMENT_WEBHOOK_SECRET = "whsec_test_wikiclase"
    IDENTITY_WEBHOOK_SECRET = None
