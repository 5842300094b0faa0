"""
Pytest Configuration and Fixtures
"""
from unittest.mock import patch

import fakeredis
import pytest

from supportpay import create_app
from supportpay.config import MpesaSettings


@pytest.fixture(scope='session')
def app():
    """Create application for testing"""
    app = create_app('testing')

    # Establish application context
    ctx = app.app_context()
    ctx.push()

    yield app

    ctx.pop()


@pytest.fixture(scope='function')
def client(app):
    """Create a test client"""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def redis_client():
    """
    Fake Redis for tests + patch the duplicate guard's redis client.
    """
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)

    with patch("supportpay.services.idempotency_service.redis_client", fake_redis):
        yield fake_redis

    fake_redis.flushall()


@pytest.fixture
def settings():
    return MpesaSettings(
        consumer_key='test_consumer_key',
        consumer_secret='test_consumer_secret',
        passkey='test_passkey',
        shortcode='174379',
        callback_url='https://example.com/api/mpesa/callback',
        environment='sandbox',
        token_backoff=0,
    )


@pytest.fixture
def stk_accepted():
    """Daraja acknowledgement for an accepted STK Push"""
    return {
        'MerchantRequestID': '29115-34620561-1',
        'CheckoutRequestID': 'ws_CO_191220191020363925',
        'ResponseCode': '0',
        'ResponseDescription': 'Success. Request accepted for processing',
        'CustomerMessage': 'Success. Request accepted for processing',
    }


@pytest.fixture
def stk_success_callback():
    """STK callback for a completed payment"""
    return {
        'Body': {
            'stkCallback': {
                'MerchantRequestID': '29115-34620561-1',
                'CheckoutRequestID': 'ws_CO_191220191020363925',
                'ResultCode': 0,
                'ResultDesc': 'The service request is processed successfully.',
                'CallbackMetadata': {
                    'Item': [
                        {'Name': 'Amount', 'Value': 500},
                        {'Name': 'MpesaReceiptNumber', 'Value': 'NLJ7RT61SV'},
                        {'Name': 'Balance'},
                        {'Name': 'TransactionDate', 'Value': 20191219102115},
                        {'Name': 'PhoneNumber', 'Value': 254712345678},
                    ]
                }
            }
        }
    }
