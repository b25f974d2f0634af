import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


class Config:
    # Provide a safe development fallback to avoid 500s when SECRET_KEY is missing.
    SECRET_KEY = os.getenv('SECRET_KEY') or 'dev-secret-key-change-me'
    DATABASE_URL = os.getenv('DATABASE_URL')
    SQLALCHEMY_DATABASE_URI = DATABASE_URL or 'sqlite:///sessionbook.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_COOKIE_SECURE = _env_flag('SESSION_COOKIE_SECURE', 'false')
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    REMEMBER_COOKIE_SECURE = SESSION_COOKIE_SECURE
    REMEMBER_COOKIE_HTTPONLY = True
    WTF_CSRF_TIME_LIMIT = None

    # Rate limiting; point at redis:// in production deployments
    RATELIMIT_ENABLED = _env_flag('RATELIMIT_ENABLED', 'true')
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')

    # All session dates and wall-clock times are local to this zone
    FACILITY_TIMEZONE = os.getenv('FACILITY_TIMEZONE', 'America/New_York')

    # List endpoints: ?limit= defaults to DEFAULT_PAGE_SIZE and is capped at MAX_PAGE_SIZE
    DEFAULT_PAGE_SIZE = int(os.getenv('DEFAULT_PAGE_SIZE', '10'))
    MAX_PAGE_SIZE = int(os.getenv('MAX_PAGE_SIZE', '100'))

    # Create missing tables on startup (development without migrations)
    AUTO_CREATE_TABLES = _env_flag('AUTO_CREATE_TABLES', 'true')
