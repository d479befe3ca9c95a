"""
BizDash UI — Thin guard wrappers over GuardState.

auth_guard(content)                        — page-level: render only when the
                                             session check said Authorized
protected_route(content, role, fallback)   — section-level: role gate with an
                                             access-denied fallback
"""

from __future__ import annotations

from typing import Optional, Union

import reflex as rx

from bizdash.engine.security import GuardStatus
from bizdash.engine.session import Role
from bizdash.ui.state import GuardState

_ROLE_VARS = {
    Role.STAFF: GuardState.is_staff,
    Role.MANAGER: GuardState.is_manager,
    Role.ADMIN: GuardState.is_admin,
}


def verifying_session(recheck: bool = False) -> rx.Component:
    """Spinner shown while the guard is Pending."""
    triggers = {"on_mount": GuardState.check_auth} if recheck else {}
    return rx.center(
        rx.vstack(
            rx.spinner(size="3"),
            rx.text("Verifying session...", size="2", color="gray"),
            align="center",
            spacing="3",
        ),
        min_height="100vh",
        **triggers,
    )


def access_denied() -> rx.Component:
    return rx.center(
        rx.vstack(
            rx.heading("Access Denied", size="6"),
            rx.text("You don't have permission to access this page."),
            align="center",
            spacing="3",
        ),
        min_height="60vh",
    )


def auth_guard(content: rx.Component) -> rx.Component:
    """
    Render `content` only once the guard is Authorized.

    Pending shows a spinner; the hydrated spinner re-runs the check because
    on_load may fire before localStorage has reached the backend.
    Unauthorized renders nothing (the redirect is already on its way).
    """
    return rx.cond(
        GuardState.guard_status == GuardStatus.AUTHORIZED.value,
        content,
        rx.cond(
            GuardState.guard_status == GuardStatus.PENDING.value,
            rx.cond(
                rx.State.is_hydrated,
                verifying_session(recheck=True),
                verifying_session(),
            ),
            rx.fragment(),
        ),
    )


def protected_route(
    content: rx.Component,
    required_role: Optional[Union[Role, str]] = None,
    fallback: Optional[rx.Component] = None,
) -> rx.Component:
    """
    Role-gated section.

    Signed out → `fallback` (default: nothing) and a redirect to login.
    Signed in with too low a role → access-denied panel, no redirect.
    """
    role = Role.parse(required_role.value if isinstance(required_role, Role) else required_role)
    if required_role is not None and role is None:
        raise ValueError(f"Unknown role: {required_role}")

    granted = _ROLE_VARS[role] if role else GuardState.is_authenticated
    return rx.box(
        rx.cond(
            GuardState.is_authenticated,
            rx.cond(granted, content, access_denied()),
            fallback if fallback is not None else rx.fragment(),
        ),
        on_mount=GuardState.check_section(role.value if role else ""),
        width="100%",
    )
