import os
import secrets
from dotenv import load_dotenv
from typing import Optional

basedir = os.path.abspath(os.path.dirname(__file__))

# Values in .env never override variables already exported by the shell
load_dotenv(os.path.join(basedir, '.env'))

REQUIRED_IN_PRODUCTION = ('DATABASE_URL',)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid"""
    pass


def _env_bool(key: str, default: str = 'false') -> bool:
    return os.environ.get(key, default).strip().lower() in ('1', 'true', 'yes', 'on')


def _with_ssl_params(url: str) -> str:
    """Managed Redis/Valkey over rediss:// needs ssl_cert_reqs on the URL."""
    if not url.startswith('rediss://') or 'ssl_cert_reqs' in url:
        return url
    separator = '&' if '?' in url else '?'
    return f"{url}{separator}ssl_cert_reqs=CERT_NONE"


class Config:
    """
    Settings shared by every environment.

    Only bootstrap values live here. Gemini, WhatsApp, automation and funnel
    settings a broker edits from the dashboard are stored per tenant in the
    database; GEMINI_API_KEY is used only while no AI settings row has a key.
    """
    SECRET_KEY = os.environ.get('SECRET_KEY') or secrets.token_hex(32)
    FLASK_ENV = os.environ.get('FLASK_ENV')

    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'flowrealtors.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    GEMINI_API_KEY = os.environ.get('GEMINI_API_KEY')
    GEMINI_API_BASE = os.environ.get('GEMINI_API_BASE', 'https://generativelanguage.googleapis.com/v1beta')
    GEMINI_TIMEOUT = float(os.environ.get('GEMINI_TIMEOUT') or 30)

    WHATSAPP_TIMEOUT = float(os.environ.get('WHATSAPP_TIMEOUT') or 15)

    # A claimed job whose worker never acks it is retried after this lease
    AUTOMATION_LEASE_SECONDS = int(os.environ.get('AUTOMATION_LEASE_SECONDS') or 300)
    AUTOMATION_BATCH_SIZE = int(os.environ.get('AUTOMATION_BATCH_SIZE') or 50)
    AUTOMATION_MAX_ATTEMPTS = int(os.environ.get('AUTOMATION_MAX_ATTEMPTS') or 5)

    # 'redis' is the docker-compose service name
    CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL') or os.environ.get('REDIS_URL') or 'redis://redis:6379/0'
    CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND') or os.environ.get('REDIS_URL') or 'redis://redis:6379/0'

    # /api/dev/* mock-message endpoint
    DEV_ENDPOINTS_ENABLED = _env_bool('DEV_ENDPOINTS_ENABLED')

    SENTRY_DSN = os.environ.get('SENTRY_DSN')

    MAX_CONTENT_LENGTH = 2 * 1024 * 1024
    JSON_SORT_KEYS = False

    @classmethod
    def validate_required_config(cls) -> None:
        if os.environ.get('FLASK_ENV') == 'testing' or os.environ.get('SKIP_ENV_VALIDATION'):
            return

        missing = [name for name in REQUIRED_IN_PRODUCTION if not os.environ.get(name)]
        if missing:
            raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

    @classmethod
    def init_app(cls, app):
        pass


class DevelopmentConfig(Config):
    DEBUG = True
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or Config.SQLALCHEMY_DATABASE_URI
    DEV_ENDPOINTS_ENABLED = _env_bool('DEV_ENDPOINTS_ENABLED', 'true')


class TestingConfig(Config):
    """In-memory SQLite, eager Celery and no Gemini key, so AI calls take the fallback path"""
    TESTING = True
    DEBUG = True

    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'

    CELERY_BROKER_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'
    CELERY_TASK_ALWAYS_EAGER = True

    GEMINI_API_KEY = None
    GEMINI_TIMEOUT = 1
    WHATSAPP_TIMEOUT = 1
    DEV_ENDPOINTS_ENABLED = True
    SENTRY_DSN = None


class ProductionConfig(Config):
    DEBUG = False
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', '')

    REDIS_URL = os.environ.get('REDIS_URL', '')
    CELERY_BROKER_URL = _with_ssl_params(os.environ.get('CELERY_BROKER_URL') or REDIS_URL)
    CELERY_RESULT_BACKEND = _with_ssl_params(os.environ.get('CELERY_RESULT_BACKEND') or REDIS_URL)

    DEV_ENDPOINTS_ENABLED = False

    @classmethod
    def init_app(cls, app):
        cls.validate_required_config()
        if not app.config.get('SQLALCHEMY_DATABASE_URI'):
            raise ConfigurationError("Required environment variable DATABASE_URL is not set")


config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name: Optional[str] = None) -> type[Config]:
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')
    return config.get(config_name, DevelopmentConfig)
