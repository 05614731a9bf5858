import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _get_int(name, default):
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise EnvironmentError(f"Environment variable {name} must be an integer, got {value!r}")


def _get_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Get database connection settings from environment variables(.env)
def get_db_params():
    return {
        "dbname": os.environ.get("DB_NAME", "url_shortener"),
        "user": os.environ.get("DB_USER", "postgres"),
        "password": os.environ.get("DB_PASSWORD", "postgres"),
        "host": os.environ.get("DB_HOST", "localhost"),
        "port": os.environ.get("DB_PORT", "5432")
    }


# Pool sizing and timeouts, all timeouts in milliseconds
def get_pool_settings():
    return {
        "max_connections": _get_int("DB_MAX_CONNECTIONS", 20),
        "idle_timeout_ms": _get_int("DB_IDLE_TIMEOUT", 30000),
        "connection_timeout_ms": _get_int("DB_CONNECTION_TIMEOUT", 2000),
        "statement_timeout_ms": _get_int("DB_STATEMENT_TIMEOUT", 10000),
    }


def get_rate_limit_settings():
    return {
        "enabled": _get_bool("RATE_LIMIT_ENABLED", True),
        "window_seconds": _get_int("RATE_LIMIT_WINDOW_SECONDS", 15 * 60),
        "max_requests": _get_int("RATE_LIMIT_MAX_REQUESTS", 100),
        "storage_uri": os.environ.get("RATE_LIMIT_STORAGE_URI", "memory://"),
    }


def get_store_backend():
    return os.environ.get("STORE_BACKEND", "postgres").strip().lower()


def get_short_code_length():
    return _get_int("SHORT_CODE_LENGTH", 6)


def get_public_base_url():
    """Public base URL override, e.g. https://sho.rt (no trailing slash)."""
    base = os.environ.get("PUBLIC_BASE_URL", "").strip()
    return base.rstrip("/") or None


def get_environment():
    return os.environ.get("ENVIRONMENT", "development").strip().lower()


def is_production():
    return get_environment() == "production"
