"""
BizDash UI — Reflex state for sign-in and route guarding.

The four session keys live in browser localStorage through rx.LocalStorage
vars. LocalStorageAdapter exposes those vars to the engine as a
KeyValueStorage, so the guard, the role checks and login/logout all go
through the same AuthorizationService the CLI uses.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import reflex as rx

from bizdash.engine.errors import BizDashIntegrationError, BizDashSessionError
from bizdash.engine.runtime import get_runtime
from bizdash.engine.security import AuthorizationService, GuardStatus, RecordingNavigator, role_satisfies
from bizdash.engine.session import (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    ROLE_KEY,
    USER_ID_KEY,
    Role,
)

logger = logging.getLogger("bizdash.ui.state")

# storage key → GuardState attribute
_STORAGE_ATTRS = {
    ACCESS_TOKEN_KEY: "access_token",
    REFRESH_TOKEN_KEY: "refresh_token",
    ROLE_KEY: "role",
    USER_ID_KEY: "user_id",
}


class LocalStorageAdapter:
    """KeyValueStorage over a GuardState instance. Empty string means absent."""

    def __init__(self, state: "GuardState"):
        self._state = state
        self.removed: List[str] = []

    def get_item(self, key: str) -> Optional[str]:
        return getattr(self._state, _STORAGE_ATTRS[key]) or None

    def set_item(self, key: str, value: str) -> None:
        setattr(self._state, _STORAGE_ATTRS[key], value)
        if key in self.removed:
            self.removed.remove(key)

    def remove_item(self, key: str) -> None:
        setattr(self._state, _STORAGE_ATTRS[key], "")
        if key not in self.removed:
            self.removed.append(key)


class GuardState(rx.State):
    """Session + guard state for every dashboard page."""

    # Browser localStorage
    access_token: str = rx.LocalStorage(name=ACCESS_TOKEN_KEY)
    refresh_token: str = rx.LocalStorage(name=REFRESH_TOKEN_KEY)
    role: str = rx.LocalStorage(name=ROLE_KEY)
    user_id: str = rx.LocalStorage(name=USER_ID_KEY)

    # Guard
    guard_status: str = GuardStatus.PENDING.value
    guard_reason: str = ""

    # Login form
    login_error: str = ""
    is_loading: bool = False

    @rx.var
    def is_authenticated(self) -> bool:
        return self.access_token != ""

    @rx.var
    def is_staff(self) -> bool:
        return role_satisfies(self.role, Role.STAFF)

    @rx.var
    def is_manager(self) -> bool:
        return role_satisfies(self.role, Role.MANAGER)

    @rx.var
    def is_admin(self) -> bool:
        return role_satisfies(self.role, Role.ADMIN)

    def _authorization(self, adapter: LocalStorageAdapter) -> AuthorizationService:
        authorization = get_runtime().build_authorization(adapter)
        if self.is_hydrated:
            authorization.session_store.hydrate()
        return authorization

    @staticmethod
    def _effects(adapter: LocalStorageAdapter, navigator: Optional[RecordingNavigator] = None) -> list:
        events = [rx.remove_local_storage(key) for key in adapter.removed]
        target = navigator.take_redirect() if navigator else None
        if target:
            events.append(rx.redirect(target))
        return events

    async def check_auth(self):
        """on_load guard for protected pages."""
        path = self.router.page.path
        adapter = LocalStorageAdapter(self)
        authorization = self._authorization(adapter)
        navigator = RecordingNavigator(current_path=path)
        controller = get_runtime().new_controller(navigator, authorization)

        result = await controller.evaluate(path)
        self.guard_status = result.status.value
        self.guard_reason = result.reason or ""
        return self._effects(adapter, navigator)

    def check_section(self, required_role: str):
        """on_mount gate for a role-restricted section. Only redirects when signed out."""
        path = self.router.page.path
        adapter = LocalStorageAdapter(self)
        authorization = self._authorization(adapter)
        navigator = RecordingNavigator(current_path=path)
        controller = get_runtime().new_controller(navigator, authorization)

        controller.check_section(path, required_role or None)
        return self._effects(adapter, navigator)

    async def login(self, form_data: dict):
        """Handle login form submission."""
        self.is_loading = True
        self.login_error = ""

        email = form_data.get("email", "").strip()
        password = form_data.get("password", "")
        if not email or not password:
            self.login_error = "Email and password are required"
            self.is_loading = False
            return None

        adapter = LocalStorageAdapter(self)
        authorization = self._authorization(adapter)
        try:
            await authorization.login(email, password)
        except BizDashIntegrationError as e:
            logger.info(f"Login rejected: {e.message}")
            self.login_error = "Login failed"
            self.is_loading = False
            return None
        except BizDashSessionError as e:
            logger.warning(f"Login response unusable: {e.message}")
            self.login_error = "Login failed"
            self.is_loading = False
            return None

        self.is_loading = False
        self.guard_status = GuardStatus.PENDING.value
        return rx.redirect(get_runtime().config.guard.home_path)

    async def logout(self):
        adapter = LocalStorageAdapter(self)
        authorization = self._authorization(adapter)
        await authorization.logout()
        self.guard_status = GuardStatus.PENDING.value
        self.guard_reason = ""
        return [*self._effects(adapter), rx.redirect(get_runtime().config.guard.login_path)]
