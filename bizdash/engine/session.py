"""
BizDash Session Store — Role model, Session record and hydrate-once store.

A Session is all-or-nothing: the four storage keys (accessToken,
refreshToken, role, userId) are written together and removed together.
A partial set found at hydration is discarded in full.

Lifecycle:
    SessionStore(storage)  → not hydrated (guards report Pending)
    .hydrate()             → reads storage once
    .save(session)         → login
    .update_tokens(a, r)   → token refresh
    .clear()               → logout / failed validation
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from bizdash.engine.errors import BizDashSessionError
from bizdash.engine.logging import log_session_event
from bizdash.engine.storage import KeyValueStorage

logger = logging.getLogger("bizdash.engine.session")

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
ROLE_KEY = "role"
USER_ID_KEY = "userId"

SESSION_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, ROLE_KEY, USER_ID_KEY)


class Role(str, Enum):
    """Access tiers, lowest first. Compare with rank, never with identity."""

    STAFF = "STAFF"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"

    @property
    def rank(self) -> int:
        return ROLE_RANKS[self]

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Role"]:
        """Parse a stored role string. Unknown or empty → None."""
        if not value:
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None


ROLE_RANKS: Dict[Role, int] = {
    Role.STAFF: 0,
    Role.MANAGER: 1,
    Role.ADMIN: 2,
}


@dataclass(frozen=True)
class Session:
    """Authenticated identity and credentials for one client context."""

    access_token: str
    refresh_token: str
    role: Role
    user_id: str

    def to_storage(self) -> Dict[str, str]:
        return {
            ACCESS_TOKEN_KEY: self.access_token,
            REFRESH_TOKEN_KEY: self.refresh_token,
            ROLE_KEY: self.role.value,
            USER_ID_KEY: self.user_id,
        }

    @classmethod
    def from_storage(cls, values: Dict[str, Optional[str]]) -> Optional["Session"]:
        """
        Build a Session from raw storage values.

        Returns None unless every key is present and non-empty and the role
        is a known Role.
        """
        if not all(values.get(k) for k in SESSION_KEYS):
            return None
        role = Role.parse(values[ROLE_KEY])
        if role is None:
            return None
        return cls(
            access_token=values[ACCESS_TOKEN_KEY],
            refresh_token=values[REFRESH_TOKEN_KEY],
            role=role,
            user_id=values[USER_ID_KEY],
        )

    def __repr__(self) -> str:
        # Tokens stay out of reprs and tracebacks
        return f"Session(user_id={self.user_id!r}, role={self.role.value})"


class SessionStore:
    """
    Process-wide session holder over a KeyValueStorage.

    Injected into the access controller and the authorization service;
    nothing else reads the session keys directly.
    """

    def __init__(self, storage: KeyValueStorage, log_queue=None):
        self._storage = storage
        self._log_queue = log_queue
        self._session: Optional[Session] = None
        self._hydrated = False

    @property
    def storage(self) -> KeyValueStorage:
        return self._storage

    @property
    def is_hydrated(self) -> bool:
        return self._hydrated

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def access_token(self) -> Optional[str]:
        return self._session.access_token if self._session else None

    @property
    def refresh_token(self) -> Optional[str]:
        return self._session.refresh_token if self._session else None

    @property
    def role(self) -> Optional[Role]:
        return self._session.role if self._session else None

    @property
    def user_id(self) -> Optional[str]:
        return self._session.user_id if self._session else None

    def hydrate(self, force: bool = False) -> Optional[Session]:
        """
        Load the session from storage. Runs once unless force=True.

        A partial or malformed session is removed from storage entirely.
        """
        if self._hydrated and not force:
            return self._session

        values = {key: self._storage.get_item(key) for key in SESSION_KEYS}
        present = [k for k, v in values.items() if v]
        session = Session.from_storage(values)

        if session is None and present:
            logger.warning(f"Discarding partial session (present keys: {present})")
            self._emit("partial_discarded", keys=present)
            self._remove_all(user_id=None)

        self._session = session
        self._hydrated = True
        if session:
            self._emit("hydrated", user_id=session.user_id, role=session.role.value)
        return session

    def save(self, session: Session) -> None:
        """Persist all four keys and mark the store hydrated."""
        for key, value in session.to_storage().items():
            self._storage.set_item(key, value)
        self._session = session
        self._hydrated = True
        logger.info(f"Session saved for user {session.user_id} ({session.role.value})")
        self._emit("saved", user_id=session.user_id, role=session.role.value)

    def update_tokens(self, access_token: str, refresh_token: str) -> Session:
        """Replace both tokens after a refresh, keeping role and user."""
        if self._session is None:
            raise BizDashSessionError("Cannot update tokens without an active session")
        updated = Session(
            access_token=access_token,
            refresh_token=refresh_token,
            role=self._session.role,
            user_id=self._session.user_id,
        )
        self._storage.set_item(ACCESS_TOKEN_KEY, access_token)
        self._storage.set_item(REFRESH_TOKEN_KEY, refresh_token)
        self._session = updated
        self._emit("tokens_updated", user_id=updated.user_id)
        return updated

    def clear(self) -> None:
        """
        Drop the session and remove all four keys. Safe to call with no session.

        The in-memory session is dropped even when storage refuses a removal;
        that failure is logged as a clear_failed security event.
        """
        user_id = self.user_id
        self._session = None
        if self._remove_all(user_id=user_id):
            logger.info(f"Session cleared (user: {user_id or '-'})")
            self._emit("cleared", user_id=user_id, keys=list(SESSION_KEYS))

    def _remove_all(self, user_id: Optional[str]) -> bool:
        """Try every key; returns False if any removal failed."""
        failed: List[str] = []
        error: Optional[BizDashSessionError] = None
        for key in SESSION_KEYS:
            try:
                self._storage.remove_item(key)
            except BizDashSessionError as e:
                failed.append(key)
                error = e
        if error is not None:
            logger.error(f"Session keys left in storage {failed}: {error.message}")
            self._emit("clear_failed", user_id=user_id, keys=failed, detail=error.message)
            return False
        return True

    def _emit(self, event: str, keys: Optional[List[str]] = None, **fields) -> None:
        if self._log_queue is not None:
            self._log_queue.push(log_session_event(event, keys=keys, **fields))
