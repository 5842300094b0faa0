from supportpay.models.payment import (
    CallbackResult,
    Credential,
    MetadataItem,
    PaymentRequest,
    PaymentState,
    SignedEnvelope,
)

__all__ = ['CallbackResult', 'Credential', 'MetadataItem', 'PaymentRequest', 'PaymentState', 'SignedEnvelope']
