import logging
import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = _get_int(os.getenv("PORT"), 8080)
CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:4200"])

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./medsched.db")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = _get_int(os.getenv("JWT_EXPIRES_MINUTES"), 60)
JWT_REFRESH_EXPIRES_MINUTES = _get_int(os.getenv("JWT_REFRESH_EXPIRES_MINUTES"), 60 * 24 * 7)

CANCELLATION_NOTICE_MINUTES = _get_int(os.getenv("CANCELLATION_NOTICE_MINUTES"), 60)
DEFAULT_APPOINTMENT_MINUTES = _get_int(os.getenv("DEFAULT_APPOINTMENT_MINUTES"), 30)
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

VERIFICATION_TOKEN_HOURS = _get_int(os.getenv("VERIFICATION_TOKEN_HOURS"), 24)
PASSWORD_RESET_TOKEN_MINUTES = _get_int(os.getenv("PASSWORD_RESET_TOKEN_MINUTES"), 30)

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = _get_int(os.getenv("SMTP_PORT"), 587)
SMTP_USERNAME = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS = _get_bool(os.getenv("SMTP_USE_TLS"), default=True)
EMAIL_FROM = os.getenv("EMAIL_FROM", "noreply@medsched.local")

TOTP_ISSUER = os.getenv("TOTP_ISSUER", "medsched")


def configure_logging() -> None:
    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
