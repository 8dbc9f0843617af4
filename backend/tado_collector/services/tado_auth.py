"""
Tado Auth Session
=================

Owns the OAuth session with tado° and keeps it alive without an operator.

HOW LOGIN WORKS (device flow):
-----------------------------
1. start_device_authorization() asks tado for a device code + user code
2. The user opens the verification URL and approves the code
3. Meanwhile the login helper calls poll_for_token(device_code) every few
   seconds. Until the user approves, tado answers "authorization_pending",
   which we hand back as a PendingAuthorization (not an error!)
4. Once approved, tado sends a token set. We save it to disk and we're in.

HOW REFRESH WORKS:
-----------------
authorized_request() sends the access token. If tado answers 401, we swap
the refresh token for a new token set, save it, and retry the request ONCE.
A second 401 is an AuthError; we never loop.

If there is no refresh token, or the refresh itself fails, the session
drops back to UNAUTHENTICATED. The token file is left alone on disk.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Union

import httpx
from pydantic import ValidationError

from tado_collector.models import (
    DeviceAuthorization,
    PendingAuthorization,
    SessionState,
    TokenSet,
)
from tado_collector.services.errors import AuthError
from tado_collector.services.token_store import TokenStore

logger = logging.getLogger(__name__)


DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"


class TadoSession:
    """
    Device-flow login plus transparent refresh-on-401.

    HOW TO USE:
    ----------
    session = TadoSession(client_id="...", store=TokenStore(path))
    session.load()

    response = await session.authorized_request("GET", url)
    """

    AUTH_URL = "https://login.tado.com/oauth2"
    SCOPE = "offline_access home.user"

    def __init__(
        self,
        client_id: str,
        store: TokenStore,
        request_timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Set up the session.

        Args:
            client_id: OAuth client id of the tado app
            store: Where the token set is persisted
            request_timeout: Per-call timeout in seconds
            http_client: Pre-built client (tests pass one with a mock transport)
        """
        self.client_id = client_id
        self.store = store
        self.http_client = http_client or httpx.AsyncClient(timeout=request_timeout)

        self._token: Optional[TokenSet] = None
        self._state = SessionState.UNAUTHENTICATED
        self._refresh_lock = asyncio.Lock()

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def token(self) -> Optional[TokenSet]:
        return self._token

    def load(self):
        """Pick up the persisted token set, if any. Called once at startup."""
        self._set_token(self.store.load())

    def is_authenticated(self) -> bool:
        """True iff a token set with an access token is held (no server check)."""
        return self._token is not None and bool(self._token.access_token)

    def _set_token(self, token: Optional[TokenSet]):
        self._token = token
        self._state = SessionState.AUTHENTICATED if token else SessionState.UNAUTHENTICATED

    def _store_token(self, data: dict) -> TokenSet:
        token = TokenSet.model_validate(data)
        if token.obtained_at is None:
            token.obtained_at = datetime.now(timezone.utc)
        self.store.save(token)
        self._set_token(token)
        return token

    # =========================================================================
    # DEVICE FLOW
    # =========================================================================

    async def start_device_authorization(self) -> DeviceAuthorization:
        """Start the device flow. Raises AuthError if tado refuses us."""
        try:
            response = await self.http_client.post(
                f"{self.AUTH_URL}/device_authorize",
                data={"client_id": self.client_id, "scope": self.SCOPE},
            )
        except httpx.HTTPError as e:
            logger.error(f"Error starting auth: {e}")
            raise AuthError(f"Device authorization failed: {e}") from e

        if response.is_error:
            detail = _error_code(response) or f"HTTP {response.status_code}"
            logger.error(f"Error starting auth: {detail}")
            raise AuthError(f"Device authorization rejected: {detail}")

        try:
            return DeviceAuthorization.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise AuthError(f"Unexpected device authorization response: {e}") from e

    async def poll_for_token(self, device_code: str) -> Union[TokenSet, PendingAuthorization]:
        """
        Exchange a device code for a token set.

        Returns:
            TokenSet once the user has approved (already saved to disk), or
            PendingAuthorization while approval is still outstanding

        Raises:
            AuthError for any other answer (expired, denied, ...)
        """
        try:
            response = await self.http_client.post(
                f"{self.AUTH_URL}/token",
                data={
                    "client_id": self.client_id,
                    "grant_type": DEVICE_CODE_GRANT,
                    "device_code": device_code,
                },
            )
        except httpx.HTTPError as e:
            raise AuthError(f"Token request failed: {e}") from e

        if response.is_error:
            code = _error_code(response)
            if code == "authorization_pending":
                return PendingAuthorization()
            raise AuthError(f"Token request rejected: {code or f'HTTP {response.status_code}'}")

        data = _json_body(response)
        if not data.get("access_token"):
            raise AuthError("Token response did not include an access token")

        try:
            token = self._store_token(data)
        except ValidationError as e:
            raise AuthError(f"Unexpected token response: {e}") from e
        logger.info("Device login completed, token saved")
        return token

    # =========================================================================
    # REFRESH
    # =========================================================================

    async def refresh(self) -> TokenSet:
        """
        Swap the refresh token for a new token set.

        On any failure the session becomes UNAUTHENTICATED and AuthError is
        raised. The token file on disk is not touched in that case.
        """
        async with self._refresh_lock:
            if self._token is None or not self._token.refresh_token:
                self._set_token(None)
                raise AuthError("No refresh token available")

            self._state = SessionState.REFRESHING
            try:
                response = await self.http_client.post(
                    f"{self.AUTH_URL}/token",
                    data={
                        "client_id": self.client_id,
                        "grant_type": "refresh_token",
                        "refresh_token": self._token.refresh_token,
                    },
                )
                if response.is_error:
                    code = _error_code(response) or f"HTTP {response.status_code}"
                    raise AuthError(f"Token refresh rejected: {code}")
                data = _json_body(response)
                if not data.get("access_token"):
                    raise AuthError("Refresh response did not include an access token")
                token = self._store_token(data)
            except AuthError as e:
                logger.error(f"Error refreshing token: {e}")
                self._set_token(None)
                raise
            except (httpx.HTTPError, ValidationError, OSError) as e:
                logger.error(f"Error refreshing token: {e}")
                self._set_token(None)
                raise AuthError(f"Token refresh failed: {e}") from e

            logger.info("Access token refreshed")
            return token

    # =========================================================================
    # AUTHORIZED REQUESTS
    # =========================================================================

    async def authorized_request(self, method: str, url: str) -> httpx.Response:
        """
        Send a request with the bearer token, refreshing once on 401.

        Non-401 responses are returned as-is; the caller decides what a
        404 or 500 means.
        """
        if not self.is_authenticated():
            raise AuthError("Not authenticated")

        response = await self._send(method, url)
        if response.status_code != 401:
            return response

        logger.info("Token expired, refreshing...")
        await self.refresh()

        response = await self._send(method, url)
        if response.status_code == 401:
            raise AuthError("Request still unauthorized after token refresh")
        return response

    async def _send(self, method: str, url: str) -> httpx.Response:
        return await self.http_client.request(
            method,
            url,
            headers={"Authorization": f"Bearer {self._token.access_token}"},
        )

    async def close(self):
        await self.http_client.aclose()


def _json_body(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError as e:
        raise AuthError(f"Invalid JSON from token endpoint: {e}") from e
    if not isinstance(data, dict):
        raise AuthError("Unexpected token endpoint response")
    return data


def _error_code(response: httpx.Response) -> Optional[str]:
    """The OAuth "error" field of an error response, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("error")
    return None
