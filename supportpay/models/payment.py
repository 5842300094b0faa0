from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class PaymentState(str, Enum):
    IDLE = 'idle'
    VALIDATING = 'validating'
    AUTH_ACQUIRED = 'auth_acquired'
    SUBMITTED = 'submitted'
    ACKNOWLEDGED = 'acknowledged'
    REJECTED = 'rejected'
    FAILED = 'failed'


# M-Pesa callback / query result codes
RESULT_SUCCESS = 0
RESULT_INSUFFICIENT_FUNDS = 1
RESULT_CANCELLED = 1032
RESULT_TIMEOUT = 1037
RESULT_WRONG_PIN = 2001


@dataclass(frozen=True)
class PaymentRequest:
    phone_number: str
    amount: int
    reference: str
    description: str


@dataclass(frozen=True)
class Credential:
    access_token: str
    obtained_at: datetime
    expires_in: Optional[int] = None


@dataclass(frozen=True)
class SignedEnvelope:
    short_code: str
    password: str
    timestamp: str
    transaction_type: str
    amount: int
    party_a: str
    party_b: str
    phone_number: str
    callback_url: str
    reference: str
    description: str

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with the field names the STK Push endpoint expects."""
        return {
            'BusinessShortCode': self.short_code,
            'Password': self.password,
            'Timestamp': self.timestamp,
            'TransactionType': self.transaction_type,
            'Amount': self.amount,
            'PartyA': self.party_a,
            'PartyB': self.party_b,
            'PhoneNumber': self.phone_number,
            'CallBackURL': self.callback_url,
            'AccountReference': self.reference,
            'TransactionDesc': self.description,
        }


@dataclass(frozen=True)
class MetadataItem:
    name: str
    value: Any = None


@dataclass(frozen=True)
class CallbackResult:
    checkout_request_id: str
    result_code: int
    result_desc: str
    merchant_request_id: Optional[str] = None
    metadata: Optional[List[MetadataItem]] = field(default=None)

    @property
    def is_success(self) -> bool:
        return self.result_code == RESULT_SUCCESS

    def get(self, name: str, default=None):
        """Look up a CallbackMetadata item by name; position is irrelevant."""
        for item in self.metadata or ():
            if item.name == name:
                return item.value
        return default

    @property
    def amount(self):
        return self.get('Amount')

    @property
    def receipt_number(self):
        return self.get('MpesaReceiptNumber')

    @property
    def phone_number(self):
        return self.get('PhoneNumber')

    @property
    def transaction_date(self):
        return self.get('TransactionDate')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'checkout_request_id': self.checkout_request_id,
            'merchant_request_id': self.merchant_request_id,
            'result_code': self.result_code,
            'result_desc': self.result_desc,
            'paid': self.is_success,
            'amount': self.amount,
            'receipt_number': self.receipt_number,
            'phone_number': self.phone_number,
            'transaction_date': self.transaction_date,
        }
