from flask import current_app

from supportpay.config import MpesaSettings
from supportpay.providers.mpesa_provider import MPesaProvider


def get_settings() -> MpesaSettings:
    """Gateway settings validated by create_app()."""
    return current_app.extensions['mpesa_settings']


def get_provider() -> MPesaProvider:
    """
    Build a provider for the current request.

    Each invocation gets its own instance; nothing is shared between requests.
    """
    return MPesaProvider(get_settings())


__all__ = ['get_provider', 'get_settings', 'MPesaProvider']
