"""
STK Push request envelope.

Password = Base64(BusinessShortCode + Passkey + Timestamp)
Timestamp = YYYYMMDDHHmmss, Nairobi time (UTC+3, no DST)
"""

import base64
from datetime import datetime, timedelta, timezone
from typing import Optional

from supportpay.config import MpesaSettings
from supportpay.models import PaymentRequest, SignedEnvelope

EAT = timezone(timedelta(hours=3), 'EAT')

# Daraja field limits
MAX_REFERENCE_LENGTH = 12
MAX_DESCRIPTION_LENGTH = 13


def make_timestamp(now: Optional[datetime] = None) -> str:
    if now is None:
        now = datetime.now(EAT)
    elif now.tzinfo is not None:
        now = now.astimezone(EAT)
    return now.strftime('%Y%m%d%H%M%S')


def make_password(short_code: str, passkey: str, timestamp: str) -> str:
    raw = f'{short_code}{passkey}{timestamp}'
    return base64.b64encode(raw.encode('utf-8')).decode('utf-8')


def build_envelope(
    payment: PaymentRequest,
    settings: MpesaSettings,
    now: Optional[datetime] = None,
) -> SignedEnvelope:
    """
    Build the signed STK Push envelope for one payment.

    The timestamp is taken once and shared by the Password and Timestamp
    fields; the gateway rejects a password derived from a different second.
    """
    timestamp = make_timestamp(now)

    return SignedEnvelope(
        short_code=settings.shortcode,
        password=make_password(settings.shortcode, settings.passkey, timestamp),
        timestamp=timestamp,
        transaction_type=settings.transaction_type,
        amount=payment.amount,
        party_a=payment.phone_number,
        party_b=settings.shortcode,
        phone_number=payment.phone_number,
        callback_url=settings.callback_url,
        reference=payment.reference[:MAX_REFERENCE_LENGTH],
        description=payment.description[:MAX_DESCRIPTION_LENGTH],
    )
