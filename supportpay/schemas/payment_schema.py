from marshmallow import EXCLUDE, Schema, ValidationError, fields, post_load

from supportpay.models import PaymentRequest
from supportpay.utils.validators import (
    normalize_phone_number,
    validate_amount,
    validate_phone_number,
    whole_amount,
)


def _check_phone(value):
    is_valid, message = validate_phone_number(value)
    if not is_valid:
        raise ValidationError(message)


def _check_amount(value):
    is_valid, message = validate_amount(value)
    if not is_valid:
        raise ValidationError(message)


class InitiatePaymentSchema(Schema):
    """STK Push initiation request body (camelCase, as sent by the payment form)"""

    class Meta:
        unknown = EXCLUDE

    phone_number = fields.Str(required=True, data_key='phoneNumber', validate=_check_phone)
    # int, float or numeric string; truncated to whole units in post_load
    amount = fields.Raw(required=True, validate=_check_amount)
    account_reference = fields.Str(required=False, allow_none=True, data_key='accountReference')
    transaction_desc = fields.Str(required=False, allow_none=True, data_key='transactionDesc')

    def __init__(self, default_reference='', default_description='', **kwargs):
        super().__init__(**kwargs)
        self.default_reference = default_reference
        self.default_description = default_description

    @post_load
    def make_payment_request(self, data, **kwargs):
        return PaymentRequest(
            phone_number=normalize_phone_number(data['phone_number']),
            amount=whole_amount(data['amount']),
            reference=(data.get('account_reference') or '').strip() or self.default_reference,
            description=(data.get('transaction_desc') or '').strip() or self.default_description,
        )


class StatusQuerySchema(Schema):
    """STK Push status query body"""

    class Meta:
        unknown = EXCLUDE

    checkout_request_id = fields.Str(required=True, data_key='checkoutRequestId')
