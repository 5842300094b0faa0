"""
Unit Tests for the M-Pesa (Daraja) provider

All HTTP goes through two sessions on the provider instance:
  - provider._token_session.get  -> OAuth token endpoint (retried)
  - provider._session.post       -> STK Push / query (never retried)
"""

import json
import threading
from datetime import datetime
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest.mock import Mock, patch

import pytest
import requests

from supportpay.errors import AuthError, GatewayError
from supportpay.models import Credential, PaymentRequest
from supportpay.providers.envelope import build_envelope
from supportpay.providers.mpesa_provider import MPesaProvider, _BASE_URLS


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------

def _mock_http_response(json_data, status_code: int = 200) -> Mock:
    """Return a mock requests.Response whose .json() returns json_data."""
    resp = Mock()
    resp.ok = 200 <= status_code < 400
    resp.status_code = status_code
    resp.json.return_value = json_data
    resp.text = json.dumps(json_data)
    resp.headers = {"Content-Type": "application/json"}
    return resp


def _daraja_token_resp() -> Mock:
    """Valid Daraja OAuth token response (expires in ~1 hour)."""
    return _mock_http_response({"access_token": "daraja_tok_abc", "expires_in": "3599"})


def _credential() -> Credential:
    return Credential(access_token="daraja_tok_abc", obtained_at=datetime.now())


class TestMPesaProvider:

    @pytest.fixture
    def provider(self, settings):
        return MPesaProvider(settings)

    @pytest.fixture
    def envelope(self, settings):
        payment = PaymentRequest(
            phone_number="254712345678", amount=500,
            reference="Mwenda-Coffee", description="Support",
        )
        return build_envelope(payment, settings, now=datetime(2024, 1, 2, 3, 4, 5))

    # ── initialisation ────────────────────────────────────────────────────

    def test_sandbox_url(self, provider):
        assert provider.base_url == _BASE_URLS["sandbox"]
        assert provider.base_url == "https://sandbox.safaricom.co.ke"

    def test_production_url(self, settings):
        from dataclasses import replace
        prod = MPesaProvider(replace(settings, environment="production"))
        assert prod.base_url == "https://api.safaricom.co.ke"

    def test_token_session_retries_transient_failures(self, provider):
        retry = provider._token_session.get_adapter("https://sandbox.safaricom.co.ke").max_retries
        assert retry.total == 3
        assert 503 in retry.status_forcelist
        assert 401 not in retry.status_forcelist

    def test_push_session_never_retries(self, provider):
        retry = provider._session.get_adapter("https://sandbox.safaricom.co.ke").max_retries
        assert retry.total == 0

    # ── access token ──────────────────────────────────────────────────────

    def test_get_access_token(self, provider):
        with patch.object(provider._token_session, "get", return_value=_daraja_token_resp()) as mock_get:
            credential = provider.get_access_token()

        assert credential.access_token == "daraja_tok_abc"
        assert credential.expires_in == 3599
        url = mock_get.call_args[0][0]
        assert url == "https://sandbox.safaricom.co.ke/oauth/v1/generate?grant_type=client_credentials"
        assert mock_get.call_args[1]["auth"] == ("test_consumer_key", "test_consumer_secret")

    def test_token_http_error_raises_auth_error(self, provider):
        resp = _mock_http_response({"errorMessage": "Invalid credentials"}, status_code=401)
        with patch.object(provider._token_session, "get", return_value=resp):
            with pytest.raises(AuthError, match="HTTP 401"):
                provider.get_access_token()

    def test_token_missing_field_raises_auth_error(self, provider):
        with patch.object(provider._token_session, "get", return_value=_mock_http_response({"expires_in": "3599"})):
            with pytest.raises(AuthError, match="access_token"):
                provider.get_access_token()

    def test_token_network_error_raises_auth_error(self, provider):
        with patch.object(provider._token_session, "get", side_effect=requests.ConnectionError("down")):
            with pytest.raises(AuthError, match="down"):
                provider.get_access_token()

    def test_token_non_json_raises_auth_error(self, provider):
        resp = _mock_http_response(None)
        resp.json.side_effect = ValueError("no json")
        with patch.object(provider._token_session, "get", return_value=resp):
            with pytest.raises(AuthError):
                provider.get_access_token()

    # ── STK Push ──────────────────────────────────────────────────────────

    def test_stk_push_posts_envelope(self, provider, envelope, stk_accepted):
        with patch.object(provider._session, "post", return_value=_mock_http_response(stk_accepted)) as mock_post:
            result = provider.stk_push(envelope, _credential())

        assert result == stk_accepted
        mock_post.assert_called_once()
        assert mock_post.call_args[0][0] == "https://sandbox.safaricom.co.ke/mpesa/stkpush/v1/processrequest"
        assert mock_post.call_args[1]["headers"]["Authorization"] == "Bearer daraja_tok_abc"
        body = mock_post.call_args[1]["json"]
        assert body["Amount"] == 500
        assert body["PartyA"] == body["PhoneNumber"] == "254712345678"
        assert body["Timestamp"] == "20240102030405"

    def test_stk_push_business_rejection_is_returned(self, provider, envelope):
        rejected = {"ResponseCode": "1", "ResponseDescription": "Rejected", "CustomerMessage": "Rejected"}
        with patch.object(provider._session, "post", return_value=_mock_http_response(rejected)):
            assert provider.stk_push(envelope, _credential()) == rejected

    def test_stk_push_http_error_raises_gateway_error(self, provider, envelope):
        body = {"requestId": "r-1", "errorCode": "400.002.02", "errorMessage": "Bad Request - Invalid Amount"}
        with patch.object(provider._session, "post", return_value=_mock_http_response(body, 400)):
            with pytest.raises(GatewayError) as exc_info:
                provider.stk_push(envelope, _credential())

        error = exc_info.value.to_dict()
        assert error["errorCode"] == "400.002.02"
        assert error["errorMessage"] == "Bad Request - Invalid Amount"

    def test_stk_push_network_error_raises_gateway_error(self, provider, envelope):
        with patch.object(provider._session, "post", side_effect=requests.Timeout("timed out")):
            with pytest.raises(GatewayError, match="timed out"):
                provider.stk_push(envelope, _credential())

    def test_stk_push_non_json_raises_gateway_error(self, provider, envelope):
        resp = _mock_http_response(None, 502)
        resp.json.side_effect = ValueError("no json")
        resp.text = "<html>Bad gateway</html>"
        with patch.object(provider._session, "post", return_value=resp):
            with pytest.raises(GatewayError, match="unreadable"):
                provider.stk_push(envelope, _credential())

    # ── status query ──────────────────────────────────────────────────────

    def test_query_status(self, provider):
        query_resp = _mock_http_response({"ResultCode": "1032", "ResultDesc": "Request cancelled by user"})
        with patch.object(provider._session, "post", return_value=query_resp) as mock_post:
            result = provider.query_status("ws_CO_1", _credential())

        assert result["ResultCode"] == "1032"
        body = mock_post.call_args[1]["json"]
        assert body["CheckoutRequestID"] == "ws_CO_1"
        assert body["BusinessShortCode"] == "174379"
        assert mock_post.call_args[0][0].endswith("/mpesa/stkpushquery/v1/query")


# ---------------------------------------------------------------------------
# Token retry over a real socket (exercises the mounted HTTPAdapter)
# ---------------------------------------------------------------------------

class _ScriptedTokenHandler(BaseHTTPRequestHandler):
    """Answers each GET with the next status in ``script``; the last one repeats."""

    script = []
    hits = []

    def do_GET(self):
        self.hits.append(self.path)
        status = self.script[min(len(self.hits), len(self.script)) - 1]
        body = b'{"errorMessage": "Service Unavailable"}'
        if status == 200:
            body = b'{"access_token": "daraja_tok_abc", "expires_in": "3599"}'
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def token_server():
    _ScriptedTokenHandler.script = []
    _ScriptedTokenHandler.hits = []
    server = ThreadingHTTPServer(("127.0.0.1", 0), _ScriptedTokenHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield server, _ScriptedTokenHandler

    server.shutdown()
    server.server_close()


class TestTokenRetry:

    @pytest.fixture
    def provider(self, settings, token_server):
        server, _ = token_server
        provider = MPesaProvider(settings)
        provider.base_url = f"http://127.0.0.1:{server.server_address[1]}"
        provider._token_session.trust_env = False
        return provider

    def test_transient_failures_are_retried(self, provider, token_server):
        _, handler = token_server
        handler.script = [503, 503, 200]

        credential = provider.get_access_token()

        assert credential.access_token == "daraja_tok_abc"
        assert len(handler.hits) == 3
        assert all(path.startswith("/oauth/v1/generate") for path in handler.hits)

    def test_retries_are_bounded(self, provider, token_server, settings):
        _, handler = token_server
        handler.script = [503]

        with pytest.raises(AuthError, match="HTTP 503"):
            provider.get_access_token()

        assert len(handler.hits) == settings.token_retries + 1

    def test_client_errors_are_not_retried(self, provider, token_server):
        _, handler = token_server
        handler.script = [401]

        with pytest.raises(AuthError, match="HTTP 401"):
            provider.get_access_token()

        assert len(handler.hits) == 1
