"""
Payment form controller

Holds the state the support-page form renders: a status value and a message.
idle -> pending -> success | error
"""

import re
from enum import Enum
from typing import Optional

import requests

from supportpay.utils.logger import get_logger
from supportpay.utils.validators import normalize_phone_number, validate_phone_number

logger = get_logger(__name__)

PHONE_INPUT_MAX_LENGTH = 10

MSG_INVALID_PHONE = 'Please enter a valid phone number (e.g., 0712345678)'
MSG_PENDING = 'Sending STK Push to your phone...'
MSG_SUCCESS = 'STK Push sent! Please enter your M-Pesa PIN on your phone to complete the payment.'
MSG_REJECTED = 'M-Pesa rejected the request. Try again.'
MSG_NOT_JSON = 'Server error: Check if your API route is correctly deployed.'
MSG_NETWORK = 'Network error. Please check your connection.'


class FormStatus(str, Enum):
    IDLE = 'idle'
    PENDING = 'pending'
    SUCCESS = 'success'
    ERROR = 'error'


class PaymentForm:
    """Drives the STK Push endpoint for one support tier."""

    def __init__(
        self,
        amount: int,
        tier_name: str,
        endpoint: str = 'http://localhost:5000/api/mpesa/stkpush',
        session: Optional[requests.Session] = None,
        timeout: float = 60,
    ):
        self.amount = amount
        self.tier_name = tier_name
        self.endpoint = endpoint
        self.session = session or requests.Session()
        self.timeout = timeout

        self.phone_number = ''
        self.status = FormStatus.IDLE
        self.message = ''

    @property
    def loading(self) -> bool:
        return self.status == FormStatus.PENDING

    @property
    def can_submit(self) -> bool:
        return bool(self.phone_number) and not self.loading

    @property
    def account_reference(self) -> str:
        compact = re.sub(r'\s+', '', self.tier_name)
        return f'Mwenda-{compact}'

    @property
    def transaction_desc(self) -> str:
        return f'Support: {self.tier_name} tier'

    def set_phone(self, value: str):
        """Keep digits only, as typed into a tel input; editing clears an error."""
        self.phone_number = re.sub(r'\D', '', value or '')[:PHONE_INPUT_MAX_LENGTH]
        if self.status == FormStatus.ERROR:
            self.status = FormStatus.IDLE

    def _fail(self, message: str) -> FormStatus:
        self.status = FormStatus.ERROR
        self.message = message
        return self.status

    def submit(self) -> FormStatus:
        if self.loading:
            return self.status

        is_valid, _ = validate_phone_number(self.phone_number)
        if not is_valid:
            return self._fail(MSG_INVALID_PHONE)

        self.status = FormStatus.PENDING
        self.message = MSG_PENDING

        try:
            response = self.session.post(
                self.endpoint,
                json={
                    'phoneNumber': normalize_phone_number(self.phone_number),
                    'amount': self.amount,
                    'accountReference': self.account_reference,
                    'transactionDesc': self.transaction_desc,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f'Payment Error: {e}')
            return self._fail(str(e) or MSG_NETWORK)

        if 'application/json' not in response.headers.get('Content-Type', ''):
            return self._fail(MSG_NOT_JSON)

        try:
            data = response.json()
        except ValueError:
            return self._fail(MSG_NOT_JSON)

        if not isinstance(data, dict):
            return self._fail(MSG_REJECTED)

        if response.ok and (str(data.get('ResponseCode')) == '0' or data.get('success')):
            self.status = FormStatus.SUCCESS
            self.message = MSG_SUCCESS
            return self.status

        return self._fail(data.get('CustomerMessage') or data.get('errorMessage') or MSG_REJECTED)
