"""
Utils Package
Utility functions and helpers
"""

from supportpay.utils.logger import get_logger, configure_app_logging, mask_phone, RequestLogger
from supportpay.utils.validators import (
    KENYA,
    PhoneFormat,
    normalize_phone_number,
    validate_amount,
    validate_phone_number,
    whole_amount,
)

__all__ = [
    'get_logger',
    'configure_app_logging',
    'mask_phone',
    'RequestLogger',
    'KENYA',
    'PhoneFormat',
    'normalize_phone_number',
    'validate_amount',
    'validate_phone_number',
    'whole_amount',
]
