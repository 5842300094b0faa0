"""
Integration tests for the STK Push result callback

Whatever arrives, the gateway must get HTTP 200 with ResultCode 0 back.
"""
from unittest.mock import Mock

import pytest

CALLBACK_URL = '/api/mpesa/callback'


class TestCallbackEndpoint:

    def test_successful_payment(self, client, stk_success_callback):
        response = client.post(CALLBACK_URL, json=stk_success_callback)

        assert response.status_code == 200
        assert response.get_json() == {'ResultCode': 0, 'ResultDesc': 'Success'}

    def test_cancelled_payment(self, client):
        response = client.post(CALLBACK_URL, json={
            'Body': {
                'stkCallback': {
                    'MerchantRequestID': '29115-34620561-1',
                    'CheckoutRequestID': 'ws_CO_191220191020363925',
                    'ResultCode': 1032,
                    'ResultDesc': 'Request cancelled by user',
                }
            }
        })

        assert response.status_code == 200
        assert response.get_json()['ResultCode'] == 0

    @pytest.mark.parametrize('kwargs', [
        {'json': {}},
        {'json': {'Body': {}}},
        {'json': {'unexpected': True}},
        {'data': 'not json', 'content_type': 'text/plain'},
        {'data': '{broken', 'content_type': 'application/json'},
    ])
    def test_malformed_body_is_accepted(self, client, kwargs):
        response = client.post(CALLBACK_URL, **kwargs)

        assert response.status_code == 200
        assert response.get_json() == {'ResultCode': 0, 'ResultDesc': 'Accepted'}

    def test_result_handler_receives_result(self, app, client, monkeypatch, stk_success_callback):
        handler = Mock()
        monkeypatch.setitem(app.config, 'CALLBACK_RESULT_HANDLER', handler)

        client.post(CALLBACK_URL, json=stk_success_callback)

        handler.assert_called_once()
        assert handler.call_args[0][0].receipt_number == 'NLJ7RT61SV'

    def test_result_handler_error_is_accepted(self, app, client, monkeypatch, stk_success_callback):
        monkeypatch.setitem(app.config, 'CALLBACK_RESULT_HANDLER', Mock(side_effect=RuntimeError('boom')))

        response = client.post(CALLBACK_URL, json=stk_success_callback)

        assert response.status_code == 200
        assert response.get_json() == {'ResultCode': 0, 'ResultDesc': 'Accepted with error'}

    def test_get_not_allowed(self, client):
        response = client.get(CALLBACK_URL)

        assert response.status_code == 405
