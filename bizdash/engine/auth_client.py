"""
BizDash Auth API Client — Outbound calls to the dashboard REST API auth routes.

Endpoints (paths configurable via ApiConfig):
    GET  /auth/test         — token validation check (2xx = valid)
    POST /auth/local/login  — {email, password} → {accessToken, refreshToken, user}
    POST /auth/local/register — {name, email, password[, role]} → same as login
    POST /auth/refresh      — {refreshToken} → {accessToken, refreshToken}
    POST /auth/logout       — server-side logout
    GET  /auth/profile      — current user

Uses one pooled httpx.AsyncClient per AuthApiClient. Every failure, HTTP or
transport, surfaces as BizDashIntegrationError (BizDashAuthCheckError for the token
check). Nothing is retried here.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional, Tuple

import httpx

from bizdash.engine.errors import (
    BizDashAuthCheckError,
    BizDashIntegrationError,
    BizDashSessionError,
)
from bizdash.engine.logging import log_auth_call
from bizdash.engine.session import Role, Session

logger = logging.getLogger("bizdash.engine.auth_client")


def bearer_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class AuthApiClient:
    """Async client for the auth routes of the dashboard API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        auth_check_path: str = "/auth/test",
        login_path: str = "/auth/local/login",
        register_path: str = "/auth/local/register",
        refresh_path: str = "/auth/refresh",
        logout_path: str = "/auth/logout",
        profile_path: str = "/auth/profile",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        log_queue=None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._auth_check_path = auth_check_path
        self._login_path = login_path
        self._register_path = register_path
        self._refresh_path = refresh_path
        self._logout_path = logout_path
        self._profile_path = profile_path
        self._transport = transport
        self._log_queue = log_queue
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, api_config, transport=None, log_queue=None) -> "AuthApiClient":
        return cls(
            base_url=api_config.base_url,
            timeout=api_config.timeout,
            auth_check_path=api_config.auth_check_path,
            login_path=api_config.login_path,
            register_path=api_config.register_path,
            refresh_path=api_config.refresh_path,
            logout_path=api_config.logout_path,
            profile_path=api_config.profile_path,
            transport=transport,
            log_queue=log_queue,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout, connect=min(self._timeout, 10.0)),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AuthApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # -----------------------------------------------------------------------
    # Endpoints
    # -----------------------------------------------------------------------

    async def check_auth(self, token: str) -> None:
        """
        Call the auth-check endpoint with a bearer token.

        Returns None on 2xx.

        Raises:
            BizDashAuthCheckError on non-2xx or when no response arrives.
        """
        try:
            await self._request("GET", self._auth_check_path, headers=bearer_headers(token))
        except BizDashIntegrationError as e:
            raise BizDashAuthCheckError(
                f"Token validation failed: {e.message}",
                endpoint=self._auth_check_path,
                status_code=e.status_code,
                transport_error=e.status_code is None,
            ) from e

    async def login(self, email: str, password: str) -> Session:
        """
        Exchange credentials for a Session.

        Raises:
            BizDashIntegrationError if the API rejects the credentials.
            BizDashSessionError if the response lacks tokens, user id or a known role.
        """
        body = await self._request(
            "POST", self._login_path, json={"email": email, "password": password}
        )
        return self._session_from_login(body)

    async def register(
        self, name: str, email: str, password: str, role: Optional[str] = None
    ) -> Session:
        """Create an account; the API signs the new user in straight away."""
        payload: Dict[str, Any] = {"name": name, "email": email, "password": password}
        if role:
            payload["role"] = role
        body = await self._request("POST", self._register_path, json=payload)
        return self._session_from_login(body, endpoint=self._register_path)

    async def refresh(self, refresh_token: str) -> Tuple[str, str]:
        """Exchange a refresh token for a new (access_token, refresh_token) pair."""
        body = await self._request(
            "POST", self._refresh_path, json={"refreshToken": refresh_token}
        )
        access = (body or {}).get("accessToken")
        refresh = (body or {}).get("refreshToken")
        if not access or not refresh:
            raise BizDashSessionError(
                "Refresh response is missing tokens", endpoint=self._refresh_path
            )
        return access, refresh

    async def logout(self, token: str) -> None:
        await self._request("POST", self._logout_path, headers=bearer_headers(token))

    async def get_profile(self, token: str) -> Dict[str, Any]:
        body = await self._request("GET", self._profile_path, headers=bearer_headers(token))
        return body if isinstance(body, dict) else {}

    # -----------------------------------------------------------------------
    # HTTP
    # -----------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Execute one call; returns the parsed JSON body (or text, or None)."""
        client = self._get_client()
        start = time.monotonic()
        try:
            response = await client.request(method, path, headers=headers, json=json)
        except (httpx.HTTPError, UnicodeEncodeError) as e:
            # A token that is not ASCII fails header encoding before sending
            duration_ms = (time.monotonic() - start) * 1000
            logger.warning(f"{method} {path} failed without response: {e!r}")
            self._emit(path, method, None, duration_ms, False, error=type(e).__name__)
            raise BizDashIntegrationError(
                f"{method} {path} failed: {type(e).__name__}",
                endpoint=path,
                status_code=None,
            ) from e

        duration_ms = (time.monotonic() - start) * 1000
        success = response.is_success
        self._emit(path, method, response.status_code, duration_ms, success)

        if not success:
            logger.info(f"{method} {path} → {response.status_code}")
            raise BizDashIntegrationError(
                f"{method} {path} returned {response.status_code}",
                endpoint=path,
                status_code=response.status_code,
                response_body=response.text[:500],
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def _emit(self, endpoint, method, status_code, duration_ms, success, error=None) -> None:
        if self._log_queue is not None:
            self._log_queue.push(
                log_auth_call(endpoint, method, status_code, duration_ms, success, error=error)
            )

    def _session_from_login(self, body: Any, endpoint: Optional[str] = None) -> Session:
        endpoint = endpoint or self._login_path
        if not isinstance(body, dict):
            raise BizDashSessionError("Login response is not a JSON object", endpoint=endpoint)

        user = body.get("user") or {}
        access = body.get("accessToken")
        refresh = body.get("refreshToken")
        user_id = user.get("id")
        role = Role.parse(user.get("role"))

        if not access or not refresh or user_id in (None, "") or role is None:
            raise BizDashSessionError(
                "Login response is missing tokens, user id or a known role",
                endpoint=endpoint,
            )
        return Session(
            access_token=access,
            refresh_token=refresh,
            role=role,
            user_id=str(user_id),
        )
