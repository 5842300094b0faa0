"""
M-Pesa Payment Provider
Based on the Safaricom Daraja API.

Supported flows
---------------
Authentication
    GET  /oauth/v1/generate?grant_type=client_credentials  (Basic auth)
    A fresh token is fetched for every payment; transient failures are
    retried with exponential backoff.

STK Push (Lipa na M-Pesa Online)
    POST /mpesa/stkpush/v1/processrequest     (never retried)
    POST /mpesa/stkpushquery/v1/query         (status poll)
"""

from datetime import datetime, timezone
from typing import Any, Dict

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from supportpay.config import MpesaSettings
from supportpay.errors import AuthError, GatewayError
from supportpay.models import Credential, SignedEnvelope
from supportpay.providers.envelope import make_password, make_timestamp
from supportpay.utils.logger import get_logger, mask_phone

logger = get_logger(__name__)

# Daraja base URLs
_BASE_URLS = {
    "sandbox":    "https://sandbox.safaricom.co.ke",
    "production": "https://api.safaricom.co.ke",
}

_RETRY_STATUSES = (429, 500, 502, 503, 504)


class MPesaProvider:
    """M-Pesa (Daraja API) STK Push client."""

    # Daraja endpoint paths
    _EP_AUTH      = "/oauth/v1/generate"
    _EP_STK_PUSH  = "/mpesa/stkpush/v1/processrequest"
    _EP_STK_QUERY = "/mpesa/stkpushquery/v1/query"

    def __init__(self, settings: MpesaSettings):
        self.settings = settings
        self.base_url = _BASE_URLS[settings.environment]

        self._token_session = requests.Session()
        retry = Retry(
            total=settings.token_retries,
            connect=settings.token_retries,
            read=settings.token_retries,
            status=settings.token_retries,
            backoff_factor=settings.token_backoff,
            status_forcelist=_RETRY_STATUSES,
            allowed_methods=frozenset(["GET"]),
            raise_on_status=False,
        )
        self._token_session.mount("https://", HTTPAdapter(max_retries=retry))
        self._token_session.mount("http://", HTTPAdapter(max_retries=retry))

        # Payment requests must reach the gateway at most once
        self._session = requests.Session()
        self._session.mount("https://", HTTPAdapter(max_retries=0))
        self._session.mount("http://", HTTPAdapter(max_retries=0))
        self._session.headers.update({"Content-Type": "application/json"})

    # Auth

    def get_access_token(self) -> Credential:
        """
        Obtain a short-lived bearer token from the OAuth endpoint.

        Raises:
            AuthError: on transport failure, non-2xx status, or a body without access_token
        """
        url = f"{self.base_url}{self._EP_AUTH}?grant_type=client_credentials"
        try:
            resp = self._token_session.get(
                url,
                auth=(self.settings.consumer_key, self.settings.consumer_secret),
                timeout=self.settings.token_timeout,
            )
        except requests.RequestException as exc:
            logger.error("MPesaProvider: token request failed: %s", exc)
            raise AuthError(f"Failed to fetch M-Pesa access token: {exc}") from exc

        if not resp.ok:
            logger.error("MPesaProvider: token endpoint HTTP %s: %s", resp.status_code, resp.text[:300])
            raise AuthError(f"M-Pesa Auth Failed: HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise AuthError("M-Pesa Auth Failed: token response is not JSON") from exc

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise AuthError("M-Pesa Auth Failed: response has no access_token")

        expires_in = data.get("expires_in")
        logger.debug("MPesaProvider: access token obtained (expires in %ss)", expires_in)
        return Credential(
            access_token=token,
            obtained_at=datetime.now(timezone.utc),
            expires_in=int(expires_in) if expires_in else None,
        )

    # STK Push

    def stk_push(self, envelope: SignedEnvelope, credential: Credential) -> Dict[str, Any]:
        """
        Submit a signed envelope. Returns the gateway JSON unchanged.

        Raises:
            GatewayError: on transport failure, non-2xx status, or a non-JSON body
        """
        logger.info(
            "MPesaProvider: initiating STK Push to %s for KES %s",
            mask_phone(envelope.phone_number), envelope.amount,
        )
        return self._post(self._EP_STK_PUSH, envelope.to_payload(), credential, context="stk_push")

    def query_status(self, checkout_request_id: str, credential: Credential) -> Dict[str, Any]:
        """Query the status of an STK Push by its CheckoutRequestID."""
        timestamp = make_timestamp()
        payload = {
            "BusinessShortCode": self.settings.shortcode,
            "Password":          make_password(self.settings.shortcode, self.settings.passkey, timestamp),
            "Timestamp":         timestamp,
            "CheckoutRequestID": checkout_request_id,
        }
        return self._post(self._EP_STK_QUERY, payload, credential, context="stk_query")

    # HTTP helpers

    def _post(
        self, endpoint: str, payload: Dict[str, Any], credential: Credential, context: str
    ) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {credential.access_token}",
            "Content-Type":  "application/json",
        }
        url = f"{self.base_url}{endpoint}"
        try:
            resp = self._session.post(url, json=payload, headers=headers, timeout=self.settings.timeout)
        except requests.RequestException as exc:
            logger.error("MPesa [%s] network error: %s", context, exc)
            raise GatewayError(f"M-Pesa request failed: {exc}") from exc

        return self._handle_response(resp, context)

    @staticmethod
    def _handle_response(resp: requests.Response, context: str) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            logger.error("MPesa [%s] HTTP %s non-JSON body: %s", context, resp.status_code, resp.text[:300])
            raise GatewayError(f"M-Pesa returned an unreadable response (HTTP {resp.status_code})")

        if not isinstance(data, dict):
            raise GatewayError(f"M-Pesa returned an unexpected response (HTTP {resp.status_code})")

        logger.debug("MPesa [%s] HTTP %s: %s", context, resp.status_code, data)

        if not resp.ok:
            message = data.get("errorMessage") or data.get("ResponseDescription") or f"HTTP {resp.status_code}"
            logger.error("MPesa [%s] HTTP %s: %s", context, resp.status_code, message)
            raise GatewayError(f"M-Pesa error: {message}", gateway_response=data)

        return data
