"""
Schemas Package
Marshmallow schemas for request validation
"""

from supportpay.schemas.callback_schema import MPesaCallbackSchema
from supportpay.schemas.payment_schema import InitiatePaymentSchema, StatusQuerySchema

__all__ = [
    'InitiatePaymentSchema',
    'MPesaCallbackSchema',
    'StatusQuerySchema',
]
