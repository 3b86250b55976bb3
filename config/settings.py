# config/settings.py
"""
Environment-based configuration for the TokenFlow waitlist service
"""

import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.environ.get(name)
    if value is None or value == '':
        return default
    return float(value)


class BaseConfig:
    """Settings shared by every environment"""

    VERSION = os.environ.get('APP_VERSION', '1.0.0')

    # HTTP server
    HOST = os.environ.get('HOST', '0.0.0.0')
    PORT = int(os.environ.get('PORT', 3000))
    STATIC_ROOT = os.environ.get('STATIC_ROOT') or os.getcwd()
    CORS_ORIGINS = '*'

    # Storage
    DATABASE_URL = os.environ.get('DATABASE_URL', 'sqlite:///' + os.path.join(os.getcwd(), 'mailing_list.db'))
    STORAGE_REQUIRED = _env_flag('STORAGE_REQUIRED', True)

    # Mail transport
    EMAIL_HOST = os.environ.get('EMAIL_HOST')
    EMAIL_PORT = int(os.environ.get('EMAIL_PORT') or 587)
    EMAIL_SECURE = os.environ.get('EMAIL_SECURE') == 'true'
    EMAIL_USER = os.environ.get('EMAIL_USER')
    EMAIL_PASS = os.environ.get('EMAIL_PASS')
    EMAIL_FROM = os.environ.get('EMAIL_FROM') or '"TokenFlow" <hello@tokenflow.xyz>'
    EMAIL_SEND_TIMEOUT = _env_float('EMAIL_SEND_TIMEOUT', None)
    ETHEREAL_API_URL = os.environ.get('ETHEREAL_API_URL', 'https://api.nodemailer.com/user')

    # Transport bootstrap
    TRANSPORT_BOOTSTRAP = True
    TRANSPORT_WAIT_TIMEOUT = _env_float('TRANSPORT_WAIT_TIMEOUT', 0.0)
    TRANSPORT_STARTUP_WAIT = _env_float('TRANSPORT_STARTUP_WAIT', 0.0)

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FILE = os.environ.get('LOG_FILE')

    # Security headers
    SECURITY_HEADERS = {
        'X-Content-Type-Options': 'nosniff',
        'X-Frame-Options': 'DENY',
        'Referrer-Policy': 'strict-origin-when-cross-origin',
        'Permissions-Policy': 'camera=(), microphone=(), geolocation=()'
    }


class DevelopmentConfig(BaseConfig):
    """Local development settings"""
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class TestingConfig(BaseConfig):
    """Settings for the test suite: no network bootstrap, throwaway database"""
    TESTING = True
    DATABASE_URL = 'sqlite:///:memory:'
    TRANSPORT_BOOTSTRAP = False
    TRANSPORT_WAIT_TIMEOUT = 0.0
    LOG_FILE = None


class ProductionConfig(BaseConfig):
    """Production settings"""
    DEBUG = False
    SECURITY_HEADERS = dict(
        BaseConfig.SECURITY_HEADERS,
        **{'Strict-Transport-Security': 'max-age=31536000; includeSubDomains'}
    )


CONFIGS = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}


def get_config(config_name: Optional[str] = None):
    """Return the configuration class for ``config_name`` or ``FLASK_ENV``"""
    name = config_name or os.environ.get('FLASK_ENV', 'production')
    return CONFIGS.get(name, ProductionConfig)
