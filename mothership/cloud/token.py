# Mothership - Arduino IoT Cloud Token Provider
# -*- coding: utf-8 -*-
"""
 Access token cache for the Arduino IoT Cloud API

 The cloud issues short lived bearer tokens through a client-credentials
 exchange. TokenProvider caches the current token and performs a new exchange
 when it is about to expire. The provider is shared by every gateway call and
 is safe to use from the executor threads: refreshes are serialized by a lock,
 so callers racing on an expired token trigger a single exchange.

 Class:
    TokenProvider(client_id, client_secret, api_base, space_id, require_space, timeout)

 Functions:
    get_token()   - return a valid bearer token, refreshing it when needed
    invalidate()  - drop the cached token (e.g. after a 401)
"""
import logging
import threading
import time
from typing import Callable, NamedTuple, Optional

import requests

from mothership.exceptions import AuthError, CredentialError

# Defaults
TOKEN_PATH = "/v1/clients/token"
EXPIRY_MARGIN = 30          # Refresh this many seconds before the token expires
DEFAULT_EXPIRES_IN = 300    # Used when the token response has no expires_in
TOKEN_TIMEOUT = 10          # Time in seconds to wait for the token endpoint

log = logging.getLogger(__name__)


class AccessToken(NamedTuple):
    value: str
    expires_at: float  # Unix timestamp when the token should be refreshed


class TokenProvider:
    def __init__(self, client_id: str, client_secret: str, api_base: str,
                 space_id: Optional[str] = None, require_space: bool = True,
                 timeout: float = TOKEN_TIMEOUT,
                 session: Optional[requests.Session] = None,
                 clock: Callable[[], float] = time.time):
        self.client_id = client_id or ""
        self.client_secret = client_secret or ""
        self.api_base = api_base.rstrip("/")
        self.space_id = space_id or ""
        self.require_space = require_space
        self.timeout = timeout
        self.session = session or requests.Session()
        self.clock = clock
        self.exchanges = 0  # number of token exchanges performed
        self._token: Optional[AccessToken] = None
        self._lock = threading.Lock()

    @property
    def token(self) -> Optional[AccessToken]:
        return self._token

    def check_credentials(self):
        if not self.client_id or not self.client_secret:
            raise CredentialError("Missing ARDUINO_CLIENT_ID/ARDUINO_CLIENT_SECRET")
        if self.require_space and not self.space_id:
            raise CredentialError("Missing SPACE_ID (required for shared-space Things)")

    def _cached(self) -> Optional[str]:
        token = self._token
        if token and self.clock() < token.expires_at:
            return token.value
        return None

    def get_token(self) -> str:
        """Return a valid bearer token, performing a token exchange if needed."""
        self.check_credentials()
        value = self._cached()
        if value:
            return value
        with self._lock:
            # Another thread may have refreshed while we waited
            value = self._cached()
            if value:
                return value
            self._token = self._exchange()
            return self._token.value

    def invalidate(self):
        """Forget the cached token so the next get_token() performs an exchange."""
        with self._lock:
            self._token = None

    def _exchange(self) -> AccessToken:
        url = f"{self.api_base}{TOKEN_PATH}"
        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "audience": self.api_base,
        }
        if self.space_id:
            data["organization_id"] = self.space_id
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        log.info("Requesting new access token")
        now = self.clock()
        self.exchanges += 1
        try:
            response = self.session.post(url, data=data, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout:
            log.error(f"Timeout requesting token from {url}")
            raise AuthError(f"Token error: timeout after {self.timeout}s")
        except requests.exceptions.RequestException as e:
            log.error(f"Unable to reach token endpoint {url}: {e}")
            raise AuthError(f"Token error: {e}")
        if not response.ok:
            log.error(f"Unable to get token. Response code: {response.status_code}")
            raise AuthError(f"Token error: {response.status_code} {response.text}",
                            status_code=response.status_code, body=response.text)
        try:
            payload = response.json()
        except ValueError:
            raise AuthError("Token error: invalid JSON in token response",
                            status_code=response.status_code, body=response.text)
        access = payload.get("access_token")
        if not access:
            raise AuthError("Token error: no access_token in token response",
                            status_code=response.status_code, body=response.text)
        expires_in = payload.get("expires_in") or DEFAULT_EXPIRES_IN
        token = AccessToken(access, now + float(expires_in) - EXPIRY_MARGIN)
        log.debug(f"  Response Code: {response.status_code}")
        log.debug(f"  Token expires in {expires_in}s")
        return token
