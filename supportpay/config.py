import os
from dataclasses import dataclass, fields
from typing import Any, Mapping

from dotenv import load_dotenv

from supportpay.errors import ConfigurationError

load_dotenv()


def _env(name: str, default=None, aliases=()):
    """
    Read an MPESA_* setting.

    The primary name wins; older aliases come next, and the VITE_-prefixed
    names of the front-end deploy are consulted last.
    """
    names = (name,) + tuple(aliases)
    for candidate in names + tuple(f'VITE_{n}' for n in names):
        value = os.getenv(candidate)
        if value is not None:
            return value
    return default


class Config:
    """Base configuration"""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    DEDUP_WINDOW_SECONDS = int(os.getenv('DEDUP_WINDOW_SECONDS', '60'))

    # M-Pesa (Daraja) Configuration
    MPESA_CONSUMER_KEY = _env('MPESA_CONSUMER_KEY')
    MPESA_CONSUMER_SECRET = _env('MPESA_CONSUMER_SECRET')
    MPESA_PASSKEY = _env('MPESA_PASSKEY')
    MPESA_SHORTCODE = _env('MPESA_SHORTCODE')
    MPESA_CALLBACK_URL = _env('MPESA_CALLBACK_URL')
    MPESA_ENV = _env('MPESA_ENV', 'sandbox', aliases=('MPESA_ENVIRONMENT',))
    MPESA_TRANSACTION_TYPE = _env('MPESA_TRANSACTION_TYPE', 'CustomerPayBillOnline')
    MPESA_ACCOUNT_REFERENCE = _env('MPESA_ACCOUNT_REFERENCE', 'MwendaChronicles')
    MPESA_TRANSACTION_DESC = _env('MPESA_TRANSACTION_DESC', 'Support')
    MPESA_TIMEOUT = float(_env('MPESA_TIMEOUT', '30'))
    MPESA_TOKEN_TIMEOUT = float(_env('MPESA_TOKEN_TIMEOUT', '15'))
    MPESA_TOKEN_RETRIES = int(_env('MPESA_TOKEN_RETRIES', '3'))
    MPESA_TOKEN_BACKOFF = float(_env('MPESA_TOKEN_BACKOFF', '0.5'))


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    LOG_LEVEL = 'DEBUG'

    MPESA_CONSUMER_KEY = 'test_consumer_key'
    MPESA_CONSUMER_SECRET = 'test_consumer_secret'
    MPESA_PASSKEY = 'test_passkey'
    MPESA_SHORTCODE = '174379'
    MPESA_CALLBACK_URL = 'https://example.com/api/mpesa/callback'
    MPESA_ENV = 'sandbox'
    MPESA_TOKEN_BACKOFF = 0


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


@dataclass(frozen=True)
class MpesaSettings:
    """Gateway settings handed to the provider and services at construction."""

    consumer_key: str
    consumer_secret: str
    passkey: str
    shortcode: str
    callback_url: str
    environment: str = 'sandbox'
    transaction_type: str = 'CustomerPayBillOnline'
    account_reference: str = 'MwendaChronicles'
    transaction_desc: str = 'Support'
    timeout: float = 30.0
    token_timeout: float = 15.0
    token_retries: int = 3
    token_backoff: float = 0.5

    REQUIRED = ('consumer_key', 'consumer_secret', 'passkey', 'shortcode', 'callback_url')
    ENVIRONMENTS = ('sandbox', 'production')

    @classmethod
    def from_mapping(cls, app_config: Mapping[str, Any]) -> 'MpesaSettings':
        """Build settings from Flask config (``MPESA_*`` keys) and validate them."""
        values = {}
        for field in fields(cls):
            key = f'MPESA_{field.name.upper()}'
            if field.name == 'environment':
                key = 'MPESA_ENV'
            if app_config.get(key) is not None:
                values[field.name] = app_config[key]

        if 'shortcode' in values:
            values['shortcode'] = str(values['shortcode'])
        if 'environment' in values:
            values['environment'] = str(values['environment']).lower()

        missing = [name for name in cls.REQUIRED if not values.get(name)]
        if missing:
            raise ConfigurationError(
                'Missing required M-Pesa settings: '
                + ', '.join(f'MPESA_{name.upper()}' for name in missing)
            )

        settings = cls(**values)
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.environment not in self.ENVIRONMENTS:
            raise ConfigurationError(
                f"MPESA_ENV must be 'sandbox' or 'production', got '{self.environment}'"
            )
        if self.token_retries < 0:
            raise ConfigurationError('MPESA_TOKEN_RETRIES must not be negative')
