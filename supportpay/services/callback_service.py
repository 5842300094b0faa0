"""
Callback Service
Parses STK Push result notifications from the gateway
"""

from typing import Callable, Optional

from marshmallow import ValidationError as SchemaValidationError

from supportpay.errors import CallbackParseError
from supportpay.models import CallbackResult
from supportpay.schemas.callback_schema import MPesaCallbackSchema
from supportpay.utils.logger import get_logger, mask_phone

logger = get_logger(__name__)

# The gateway keeps redelivering (for up to 24h) until it sees one of these with HTTP 200
ACK_SUCCESS = {'ResultCode': 0, 'ResultDesc': 'Success'}
ACK_ACCEPTED = {'ResultCode': 0, 'ResultDesc': 'Accepted'}
ACK_ACCEPTED_WITH_ERROR = {'ResultCode': 0, 'ResultDesc': 'Accepted with error'}


class CallbackService:
    """Turn a raw callback body into a CallbackResult and hand it on."""

    def __init__(self, on_result: Optional[Callable[[CallbackResult], None]] = None):
        self.on_result = on_result

    @staticmethod
    def parse(payload) -> CallbackResult:
        """
        Raises:
            CallbackParseError: body missing, not an object, or without Body.stkCallback
        """
        if not payload or not isinstance(payload, dict):
            raise CallbackParseError('Empty callback body received')

        try:
            return MPesaCallbackSchema().load(payload)
        except SchemaValidationError as e:
            raise CallbackParseError(f'Malformed callback body: {e.messages}')

    def handle(self, payload) -> dict:
        """Process one delivery and return the acknowledgement to send back."""
        try:
            result = self.parse(payload)
        except CallbackParseError as e:
            logger.error(e.message)
            return dict(ACK_ACCEPTED)

        logger.info(f'Callback for {result.checkout_request_id}: {result.result_desc}')

        try:
            if result.is_success:
                logger.info(
                    f'SUCCESS: Received KES {result.amount} from {mask_phone(result.phone_number)}. '
                    f'Receipt: {result.receipt_number}'
                )
            else:
                logger.warning(
                    f'CANCELLED/FAILED ({result.result_code}): {result.result_desc}'
                )

            if self.on_result is not None:
                self.on_result(result)
        except Exception as e:
            logger.exception(f'Callback Error: {e}')
            return dict(ACK_ACCEPTED_WITH_ERROR)

        return dict(ACK_SUCCESS)
