import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from marshmallow import ValidationError as SchemaValidationError

from supportpay.config import MpesaSettings
from supportpay.errors import AppError, DuplicateRequest, ValidationError
from supportpay.models import PaymentRequest, PaymentState
from supportpay.providers.envelope import build_envelope
from supportpay.providers.mpesa_provider import MPesaProvider
from supportpay.schemas.payment_schema import InitiatePaymentSchema, StatusQuerySchema
from supportpay.services.idempotency_service import IN_FLIGHT, IdempotencyService
from supportpay.utils.logger import get_logger, mask_phone

logger = get_logger(__name__)

# STK Push query result codes
_QUERY_STATUS = {
    '0':    'completed',
    '1032': 'cancelled',
    '1037': 'timeout',
}


@dataclass
class PaymentOutcome:
    state: PaymentState
    response: Dict[str, Any]
    request: Optional[PaymentRequest] = None
    duplicate: bool = False

    @property
    def checkout_request_id(self) -> Optional[str]:
        return self.response.get('CheckoutRequestID')


class PaymentService:
    """
    STK Push initiation.

    One call walks idle -> validating -> auth_acquired -> submitted and ends in
    acknowledged, rejected (gateway refused the push) or failed (exception raised).
    """

    def __init__(
        self,
        settings: MpesaSettings,
        provider: MPesaProvider,
        dedup_window: int = IdempotencyService.DEFAULT_TTL,
        clock: Callable[[], Optional[datetime]] = lambda: None,
    ):
        self.settings = settings
        self.provider = provider
        self.dedup_window = dedup_window
        self.clock = clock
        self.state = PaymentState.IDLE

    def _transition(self, state: PaymentState):
        logger.debug(f'Payment state {self.state.value} -> {state.value}')
        self.state = state

    @property
    def claim_ttl(self) -> int:
        """
        Lifetime of the in-flight marker: the dedup window, or the slowest
        possible initiation if that is longer, so the marker cannot lapse mid-push.

        Each attempt may spend its timeout on connect and again on read.
        """
        s = self.settings
        token_attempts = s.token_retries + 1
        backoff = sum(min(s.token_backoff * 2 ** n, 120) for n in range(s.token_retries))
        slowest = token_attempts * 2 * s.token_timeout + backoff + 2 * s.timeout
        return max(self.dedup_window, math.ceil(slowest))

    def parse_request(self, body) -> PaymentRequest:
        """
        Validate and normalise an initiation body.

        Raises:
            ValidationError: missing or invalid phone number / amount
        """
        if not isinstance(body, dict):
            raise ValidationError('Phone number and amount are required')

        schema = InitiatePaymentSchema(
            default_reference=self.settings.account_reference,
            default_description=self.settings.transaction_desc,
        )
        try:
            return schema.load(body)
        except SchemaValidationError as e:
            missing = [
                name for name in ('phoneNumber', 'amount')
                if name not in body or body[name] in (None, '')
            ]
            if missing:
                message = 'Phone number and amount are required'
            else:
                message = '; '.join(
                    msg for msgs in e.messages.values() for msg in (msgs if isinstance(msgs, list) else [msgs])
                )
            raise ValidationError(message, details=e.messages)

    def initiate(self, body, idempotency_key: Optional[str] = None) -> PaymentOutcome:
        """
        Validate the body, fetch a token, sign and submit the STK Push.

        Exactly one token request and one push request are made unless the
        request is rejected during validation or answered from the duplicate guard.
        """
        self._transition(PaymentState.VALIDATING)
        try:
            payment = self.parse_request(body)
        except ValidationError:
            self._transition(PaymentState.FAILED)
            raise

        dedup_key = None
        if self.dedup_window > 0:
            dedup_key = idempotency_key or IdempotencyService.fingerprint(payment)
            duplicate = self._check_duplicate(dedup_key, payment)
            if duplicate is not None:
                return duplicate

        try:
            credential = self.provider.get_access_token()
            self._transition(PaymentState.AUTH_ACQUIRED)

            envelope = build_envelope(payment, self.settings, now=self.clock())
            self._transition(PaymentState.SUBMITTED)
            response = self.provider.stk_push(envelope, credential)
        except AppError as e:
            self._transition(PaymentState.FAILED)
            IdempotencyService.release(dedup_key)
            logger.error(f'STK Push failed for {mask_phone(payment.phone_number)}: {e.message}')
            raise

        if str(response.get('ResponseCode')) == '0':
            self._transition(PaymentState.ACKNOWLEDGED)
            logger.info(
                f'STK Push accepted: {response.get("CheckoutRequestID")} '
                f'({mask_phone(payment.phone_number)}, KES {payment.amount})'
            )
            if dedup_key:
                IdempotencyService.cache_response(dedup_key, response, ttl=self.dedup_window)
        else:
            self._transition(PaymentState.REJECTED)
            logger.warning(f'STK Push rejected by gateway: {response}')
            IdempotencyService.release(dedup_key)

        return PaymentOutcome(state=self.state, response=response, request=payment)

    def _check_duplicate(self, dedup_key: str, payment: PaymentRequest) -> Optional[PaymentOutcome]:
        cached = IdempotencyService.get_cached_response(dedup_key)
        if cached is None and IdempotencyService.claim(dedup_key, ttl=self.claim_ttl):
            return None

        if cached is None:
            # Lost the claim race; read what the winner left behind
            cached = IdempotencyService.get_cached_response(dedup_key)

        if cached is None or cached == IN_FLIGHT:
            self._transition(PaymentState.FAILED)
            raise DuplicateRequest('An identical payment request is already being processed')

        logger.info(
            f'Duplicate STK Push for {mask_phone(payment.phone_number)} answered from cache: '
            f'{cached.get("CheckoutRequestID")}'
        )
        self._transition(PaymentState.ACKNOWLEDGED)
        return PaymentOutcome(state=self.state, response=cached, request=payment, duplicate=True)

    def query_status(self, body) -> Dict[str, Any]:
        """Poll the gateway for the outcome of a previous push."""
        if not isinstance(body, dict):
            raise ValidationError('checkoutRequestId is required')
        try:
            data = StatusQuerySchema().load(body)
        except SchemaValidationError as e:
            raise ValidationError('checkoutRequestId is required', details=e.messages)

        credential = self.provider.get_access_token()
        response = self.provider.query_status(data['checkout_request_id'], credential)

        result_code = response.get('ResultCode')
        if result_code is None:
            status = 'pending'
        else:
            status = _QUERY_STATUS.get(str(result_code), 'failed')

        return {
            'status': status,
            'paid': status == 'completed',
            'checkoutRequestId': data['checkout_request_id'],
            'resultDesc': response.get('ResultDesc'),
            'gatewayResponse': response,
        }
