"""
BizDash Security Engine — Role checks and route gating.

Implements:
- AuthorizationService: is_authenticated / has_role / has_any_role over the
  injected SessionStore, plus login / logout / token refresh
- AccessController: per-navigation guard state machine
- RouteGuardResult: Authorized | Unauthorized(reason) | Pending

Guard state machine (per navigation):
    public path                    → Authorized (no token check)
    store not hydrated             → Pending    (no redirect, no render)
    no access token                → Unauthorized("no-token"), redirect
    token, check succeeds          → Authorized
    token, check fails (any cause) → Unauthorized("invalid-token"),
                                     clear session, redirect

Role gating for sections never redirects on a role miss: it yields
Unauthorized("forbidden") so the caller renders an access-denied fallback.
Only a missing session redirects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, TypeVar, Union

from bizdash.engine.errors import (
    BizDashError,
    BizDashIntegrationError,
    BizDashSecurityError,
    BizDashSessionError,
)
from bizdash.engine.logging import log_guard_decision
from bizdash.engine.session import ROLE_RANKS, Role, Session, SessionStore

logger = logging.getLogger("bizdash.engine.security")

RoleLike = Union[Role, str]
T = TypeVar("T")

NO_TOKEN = "no-token"
INVALID_TOKEN = "invalid-token"
FORBIDDEN = "forbidden"


def _as_role(value: Optional[RoleLike]) -> Optional[Role]:
    if isinstance(value, Role):
        return value
    return Role.parse(value)


def role_satisfies(role: Optional[RoleLike], required: RoleLike) -> bool:
    """
    True iff rank(role) >= rank(required).

    An absent or unknown role never satisfies anything; an unknown required
    role is unsatisfiable.
    """
    have = _as_role(role)
    need = _as_role(required)
    if have is None or need is None:
        return False
    return ROLE_RANKS[have] >= ROLE_RANKS[need]


def _denial_detail(error: BizDashError) -> str:
    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        return f"status {status_code}"
    if isinstance(error, BizDashIntegrationError):
        return "transport"
    return error.error_type


# ---------------------------------------------------------------------------
# Guard result
# ---------------------------------------------------------------------------

class GuardStatus(str, Enum):
    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"
    PENDING = "pending"


@dataclass(frozen=True)
class RouteGuardResult:
    status: GuardStatus
    reason: Optional[str] = None

    @classmethod
    def authorized(cls) -> "RouteGuardResult":
        return cls(GuardStatus.AUTHORIZED)

    @classmethod
    def pending(cls) -> "RouteGuardResult":
        return cls(GuardStatus.PENDING)

    @classmethod
    def unauthorized(cls, reason: str) -> "RouteGuardResult":
        return cls(GuardStatus.UNAUTHORIZED, reason)

    @property
    def is_authorized(self) -> bool:
        return self.status is GuardStatus.AUTHORIZED

    @property
    def is_pending(self) -> bool:
        return self.status is GuardStatus.PENDING

    @property
    def is_forbidden(self) -> bool:
        return self.status is GuardStatus.UNAUTHORIZED and self.reason == FORBIDDEN


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------

class Navigator(Protocol):
    def redirect(self, path: str) -> None: ...


class RecordingNavigator:
    """
    Navigator that records redirects instead of performing them.

    The Reflex state and the CLI translate `pending_redirect` into their own
    navigation; tests read `current_path`.
    """

    def __init__(self, current_path: str = "/"):
        self.current_path = current_path
        self.history: List[str] = []
        self.pending_redirect: Optional[str] = None

    def redirect(self, path: str) -> None:
        self.history.append(path)
        self.current_path = path
        self.pending_redirect = path

    def take_redirect(self) -> Optional[str]:
        target, self.pending_redirect = self.pending_redirect, None
        return target


# ---------------------------------------------------------------------------
# Authorization Service
# ---------------------------------------------------------------------------

class AuthorizationService:
    """
    Single source of truth for "who is signed in and what may they see".

    Backs both the page-level guard and the role-gated section wrapper, so
    there is one redirect policy and one role hierarchy.
    """

    def __init__(self, session_store: SessionStore, auth_client=None):
        self._store = session_store
        self._client = auth_client

    @property
    def session_store(self) -> SessionStore:
        return self._store

    @property
    def role(self) -> Optional[Role]:
        return self._store.role

    @property
    def session(self) -> Optional[Session]:
        return self._store.session

    def is_authenticated(self) -> bool:
        return self._store.is_hydrated and self._store.access_token is not None

    def has_role(self, required: RoleLike) -> bool:
        return role_satisfies(self._store.role, required)

    def has_any_role(self, required: Iterable[RoleLike]) -> bool:
        return any(self.has_role(r) for r in required)

    def require_role(self, required: RoleLike) -> None:
        """Raise BizDashSecurityError unless the session role satisfies `required`."""
        if not self.has_role(required):
            role = self._store.role
            raise BizDashSecurityError(
                f"Role {role.value if role else 'none'} does not satisfy {required}",
                user_id=self._store.user_id,
                role=role.value if role else None,
                required_role=str(getattr(required, "value", required)),
            )

    async def validate_token(self, token: str) -> None:
        """Run the backend token check. Raises BizDashAuthCheckError on failure."""
        if self._client is None:
            raise BizDashSessionError("No auth API client configured for token validation")
        await self._client.check_auth(token)

    async def login(self, email: str, password: str) -> Session:
        """Authenticate against the API and persist the resulting session."""
        if self._client is None:
            raise BizDashSessionError("No auth API client configured for login")
        session = await self._client.login(email, password)
        self._store.save(session)
        logger.info(f"User {session.user_id} signed in as {session.role.value}")
        return session

    async def register(
        self, name: str, email: str, password: str, role: Optional[RoleLike] = None
    ) -> Session:
        """Create an account and persist the session the API returns for it."""
        if self._client is None:
            raise BizDashSessionError("No auth API client configured for registration")
        role_value = str(getattr(role, "value", role)) if role else None
        session = await self._client.register(name, email, password, role=role_value)
        self._store.save(session)
        logger.info(f"User {session.user_id} registered as {session.role.value}")
        return session

    async def fetch_profile(self) -> Dict[str, Any]:
        """The signed-in user's profile. A 401 triggers one refresh and retry."""
        if self._client is None:
            raise BizDashSessionError("No auth API client configured for profile lookup")
        return await self._call_with_reauth(self._client.get_profile)

    async def logout(self) -> None:
        """
        Sign out: best-effort server call, then always clear the local session.
        """
        token = self._store.access_token
        if token and self._client is not None:
            try:
                await self._call_with_reauth(self._client.logout)
            except (BizDashIntegrationError, BizDashSessionError) as e:
                logger.warning(f"Server logout failed, clearing local session anyway: {e.message}")
        self._store.clear()

    async def refresh_tokens(self) -> Optional[Session]:
        """
        Exchange the refresh token for new tokens.

        Returns the updated Session, or None when no refresh was possible,
        in which case the session has been cleared.
        """
        refresh_token = self._store.refresh_token
        if not refresh_token or self._client is None:
            self._store.clear()
            return None
        try:
            access, refresh = await self._client.refresh(refresh_token)
        except (BizDashIntegrationError, BizDashSessionError) as e:
            logger.info(f"Token refresh failed: {e.message}")
            self._store.clear()
            return None
        return self._store.update_tokens(access, refresh)

    async def _call_with_reauth(self, call: Callable[[str], Awaitable[T]]) -> T:
        """
        Run `call(access_token)`. On HTTP 401, refresh the tokens and retry
        once with the new access token.

        Raises:
            BizDashSessionError when signed out or the refresh fails (the
            session is cleared in that case).
            BizDashIntegrationError for any other API failure.
        """
        token = self._store.access_token
        if not token:
            raise BizDashSessionError("Not signed in")
        try:
            return await call(token)
        except BizDashIntegrationError as e:
            if e.status_code != 401:
                raise
            logger.info(f"{e.endpoint} returned 401, refreshing tokens")
            refreshed = await self.refresh_tokens()
            if refreshed is None:
                raise BizDashSessionError("Session expired, sign in again", endpoint=e.endpoint) from e
        return await call(refreshed.access_token)


# ---------------------------------------------------------------------------
# Access Controller
# ---------------------------------------------------------------------------

class AccessController:
    """
    Decides whether a route renders.

    Overlapping evaluations are neither deduplicated nor cancelled: a check
    that completes after the user navigated away still clears and redirects.
    """

    def __init__(
        self,
        authorization: AuthorizationService,
        navigator: Navigator,
        public_paths: Sequence[str] = ("/login",),
        login_path: str = "/login",
        log_queue=None,
    ):
        self._auth = authorization
        self._navigator = navigator
        self._login_path = login_path
        paths = list(public_paths)
        if login_path not in paths:
            paths.insert(0, login_path)
        self._public_paths = tuple(paths)
        self._log_queue = log_queue

    @property
    def authorization(self) -> AuthorizationService:
        return self._auth

    @property
    def login_path(self) -> str:
        return self._login_path

    @property
    def public_paths(self) -> tuple:
        return self._public_paths

    def is_public_path(self, path: str) -> bool:
        return any(path.startswith(p) for p in self._public_paths)

    async def evaluate(self, path: str) -> RouteGuardResult:
        """Run the guard for one navigation to `path`."""
        if self.is_public_path(path):
            return self._decide(path, RouteGuardResult.authorized())

        store = self._auth.session_store
        if not store.is_hydrated:
            return self._decide(path, RouteGuardResult.pending())

        token = store.access_token
        if not token:
            self._navigator.redirect(self._login_path)
            return self._decide(path, RouteGuardResult.unauthorized(NO_TOKEN))

        try:
            await self._auth.validate_token(token)
        except BizDashError as e:
            store.clear()
            self._navigator.redirect(self._login_path)
            return self._decide(
                path, RouteGuardResult.unauthorized(INVALID_TOKEN), detail=_denial_detail(e)
            )

        return self._decide(path, RouteGuardResult.authorized())

    def check_section(self, path: str, required_role: Optional[RoleLike] = None) -> RouteGuardResult:
        """
        Synchronous gate for a role-restricted section.

        No session → redirect + Unauthorized("no-token").
        Role too low → Unauthorized("forbidden"), no redirect.
        """
        store = self._auth.session_store
        if not store.is_hydrated:
            return RouteGuardResult.pending()

        if not self._auth.is_authenticated():
            self._navigator.redirect(self._login_path)
            return self._decide(path, RouteGuardResult.unauthorized(NO_TOKEN))

        if required_role is not None:
            try:
                self._auth.require_role(required_role)
            except BizDashSecurityError as e:
                return self._decide(
                    path,
                    RouteGuardResult.unauthorized(FORBIDDEN),
                    detail=e.message,
                    required_role=e.required_role,
                )

        return RouteGuardResult.authorized()

    def _decide(
        self,
        path: str,
        result: RouteGuardResult,
        detail: Optional[str] = None,
        required_role: Optional[str] = None,
    ) -> RouteGuardResult:
        if result.status is GuardStatus.UNAUTHORIZED:
            logger.info(f"Guard denied {path}: {result.reason}" + (f" ({detail})" if detail else ""))
        if self._log_queue is not None:
            store = self._auth.session_store
            self._log_queue.push(
                log_guard_decision(
                    path=path,
                    status=result.status.value,
                    reason=result.reason,
                    user_id=store.user_id,
                    role=store.role.value if store.role else None,
                    required_role=required_role,
                    redirect_to=self._login_path if result.reason in (NO_TOKEN, INVALID_TOKEN) else None,
                    detail=detail,
                )
            )
        return result
