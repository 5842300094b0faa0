"""
Custom Validators
Phone number normalisation and amount checks for M-Pesa payments
"""

import math
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple

from supportpay.errors import ValidationError


@dataclass(frozen=True)
class PhoneFormat:
    """Shape of a valid MSISDN for one country/carrier."""
    country_code: str = '254'
    trunk_prefix: str = '0'
    mobile_prefixes: Tuple[str, ...] = ('7', '1')
    subscriber_digits: int = 9

    @property
    def length(self) -> int:
        return len(self.country_code) + self.subscriber_digits

    @property
    def pattern(self):
        leading = ''.join(self.mobile_prefixes)
        return re.compile(
            rf'^{self.country_code}[{leading}]\d{{{self.subscriber_digits - 1}}}$'
        )


KENYA = PhoneFormat()


def normalize_phone_number(phone, fmt: PhoneFormat = KENYA) -> str:
    """
    Normalise a free-form phone number to the gateway format (2547XXXXXXXX).

    Accepts: +254712345678, 0712345678, 254712345678, 712345678, "0712 345 678"

    Raises:
        ValidationError: if the result is not a valid mobile number
    """
    if phone is None or str(phone).strip() == '':
        raise ValidationError('Phone number is required')

    digits = re.sub(r'\D', '', str(phone))

    if fmt.trunk_prefix and digits.startswith(fmt.trunk_prefix):
        digits = fmt.country_code + digits[len(fmt.trunk_prefix):]
    elif digits.startswith(fmt.mobile_prefixes) and len(digits) == fmt.subscriber_digits:
        digits = fmt.country_code + digits

    if not fmt.pattern.match(digits):
        raise ValidationError(
            f'Invalid phone number. Use a format like 0712345678 or {fmt.country_code}712345678'
        )

    return digits


def validate_phone_number(phone, fmt: PhoneFormat = KENYA) -> Tuple[bool, Optional[str]]:
    """
    Validate phone number format

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        normalize_phone_number(phone, fmt)
    except ValidationError as e:
        return False, e.message
    return True, None


def whole_amount(amount) -> int:
    """
    Convert an amount to the whole currency units the gateway accepts.

    Fractions are truncated (500.9 -> 500), never rounded.

    Raises:
        ValidationError: if the amount is missing, not numeric, or below 1
    """
    if amount is None or isinstance(amount, bool) or amount == '':
        raise ValidationError('Amount is required')

    try:
        if isinstance(amount, Decimal):
            amount_decimal = amount
        else:
            amount_decimal = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f'Invalid amount: {amount!r}')

    if not amount_decimal.is_finite():
        raise ValidationError(f'Invalid amount: {amount!r}')

    value = math.floor(amount_decimal)
    if value < 1:
        raise ValidationError('Amount must be at least 1')

    return int(value)


def validate_amount(amount) -> Tuple[bool, Optional[str]]:
    """
    Validate payment amount

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        whole_amount(amount)
    except ValidationError as e:
        return False, e.message
    return True, None
