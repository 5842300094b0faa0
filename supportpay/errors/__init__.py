from supportpay.errors.exceptions import (
    AppError,
    AuthError,
    CallbackParseError,
    ConfigurationError,
    DuplicateRequest,
    GatewayError,
    ValidationError,
)

__all__ = [
    'AppError',
    'AuthError',
    'CallbackParseError',
    'ConfigurationError',
    'DuplicateRequest',
    'GatewayError',
    'ValidationError',
]
