"""Application configuration read from the environment (and an optional .env)."""

import os

from dotenv import load_dotenv

_BASE_DIR = os.path.dirname(os.path.abspath(__file__))
_DOTENV_PATH = os.path.join(_BASE_DIR, ".env")

if os.path.exists(_DOTENV_PATH):
    load_dotenv(_DOTENV_PATH)


class ConfigError(RuntimeError):
    """Raised when configuration values are missing or invalid."""


def _int_env(name, default):
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _list_env(name, default):
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


# --- DATABASE ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./campus.db")
# Render/Heroku style urls
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# --- AUTH ---
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRE_MINUTES = _int_env("JWT_EXPIRE_MINUTES", 8 * 60)
AUTH_COOKIE_NAME = "auth-token"
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"

if JWT_EXPIRE_MINUTES <= 0:
    raise ConfigError("JWT_EXPIRE_MINUTES must be positive")

CORS_ORIGINS = _list_env(
    "CORS_ORIGINS", ["http://localhost:3000", "http://127.0.0.1:3000"]
)

# --- MAIL (approval notices) ---
MAIL_SERVER = os.getenv("MAIL_SERVER", "")
MAIL_PORT = _int_env("MAIL_PORT", 587)
MAIL_USERNAME = os.getenv("MAIL_USERNAME", "")
MAIL_PASSWORD = os.getenv("MAIL_PASSWORD", "")
MAIL_FROM = os.getenv("MAIL_FROM", "noreply@campusportal.org")
MAIL_STARTTLS = os.getenv("MAIL_STARTTLS", "true").lower() == "true"
MAIL_SSL_TLS = os.getenv("MAIL_SSL_TLS", "false").lower() == "true"
PORTAL_URL = os.getenv("PORTAL_URL", "http://localhost:3000")

# --- CLOUDINARY (assignment uploads) ---
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY", "")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET", "")
UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "campus/submissions")

# --- INTERNAL MARKS ---
MAX_SESSIONAL_MARK = 70
MAX_ATTENDANCE_MARK = 30
MAX_TOTAL_MARK = 100


def mail_configured():
    return bool(MAIL_SERVER and MAIL_USERNAME)


def storage_configured():
    return bool(CLOUDINARY_CLOUD_NAME and CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET)
