from supportpay.services.callback_service import CallbackService
from supportpay.services.idempotency_service import IdempotencyService
from supportpay.services.payment_service import PaymentOutcome, PaymentService

__all__ = ['CallbackService', 'IdempotencyService', 'PaymentOutcome', 'PaymentService']
