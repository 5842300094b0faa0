"""
M-Pesa Callback Validation Schemas

{"Body": {"stkCallback": {"MerchantRequestID", "CheckoutRequestID", "ResultCode",
 "ResultDesc", "CallbackMetadata": {"Item": [{"Name", "Value"}, ...]}}}}
"""

from marshmallow import EXCLUDE, Schema, fields, post_load

from supportpay.models import CallbackResult, MetadataItem


def _metadata_items(metadata):
    """
    Keep the usable CallbackMetadata entries.

    The gateway adds and drops items between releases; an entry that is not an
    object or has no string Name is skipped instead of failing the callback.
    """
    if not isinstance(metadata, dict):
        return None

    items = metadata.get('Item')
    if isinstance(items, dict):
        items = [items]
    if not isinstance(items, list):
        return []

    return [
        MetadataItem(name=item['Name'], value=item.get('Value'))
        for item in items
        if isinstance(item, dict) and isinstance(item.get('Name'), str) and item['Name']
    ]


class StkCallbackSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    MerchantRequestID = fields.Str(load_default=None, allow_none=True)
    CheckoutRequestID = fields.Str(required=True)
    ResultCode = fields.Int(required=True)
    ResultDesc = fields.Str(load_default='', allow_none=True)
    # Free-form; filtered in make_result
    CallbackMetadata = fields.Raw(load_default=None, allow_none=True)

    @post_load
    def make_result(self, data, **kwargs):
        return CallbackResult(
            checkout_request_id=data['CheckoutRequestID'],
            merchant_request_id=data.get('MerchantRequestID'),
            result_code=data['ResultCode'],
            result_desc=data.get('ResultDesc') or '',
            metadata=_metadata_items(data.get('CallbackMetadata')),
        )


class CallbackBodySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    stkCallback = fields.Nested(StkCallbackSchema, required=True)


class MPesaCallbackSchema(Schema):
    """M-Pesa STK callback validation schema"""

    class Meta:
        unknown = EXCLUDE

    Body = fields.Nested(CallbackBodySchema, required=True)

    @post_load
    def unwrap(self, data, **kwargs):
        return data['Body']['stkCallback']
