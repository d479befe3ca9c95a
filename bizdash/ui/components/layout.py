"""
BizDash UI — Layout component (sidebar + header), wrapped in the auth guard.
"""

import reflex as rx

from bizdash.ui.guards import auth_guard
from bizdash.ui.state import GuardState


def dashboard_layout(content: rx.Component) -> rx.Component:
    """Wrap page content in the guarded dashboard layout."""
    return auth_guard(
        rx.hstack(
            _sidebar(),
            rx.box(
                _header(),
                rx.divider(),
                content,
                flex="1",
                overflow_y="auto",
                height="100vh",
            ),
            spacing="0",
            width="100%",
            height="100vh",
        )
    )


def _sidebar() -> rx.Component:
    """Navigation; manager and admin sections only show to those roles."""
    return rx.box(
        rx.vstack(
            rx.heading("BizDash", size="4", padding="4"),
            rx.divider(),
            _nav_item("Dashboard", "/", "layout-dashboard"),
            rx.cond(
                GuardState.is_manager,
                rx.vstack(
                    rx.divider(),
                    _nav_item("Reports", "/reports", "bar-chart-3"),
                    spacing="1",
                    width="100%",
                ),
            ),
            rx.cond(
                GuardState.is_admin,
                rx.vstack(
                    rx.divider(),
                    _nav_item("Settings", "/settings", "settings"),
                    spacing="1",
                    width="100%",
                ),
            ),
            spacing="1",
            padding="3",
            width="100%",
        ),
        width="220px",
        min_width="220px",
        height="100vh",
        border_right="1px solid var(--gray-5)",
        background="var(--gray-2)",
    )


def _nav_item(label: str, href: str, icon: str) -> rx.Component:
    return rx.link(
        rx.hstack(
            rx.icon(icon, size=16),
            rx.text(label, size="2"),
            spacing="2",
            padding_x="3",
            padding_y="2",
            border_radius="6px",
            width="100%",
            _hover={"background": "var(--gray-4)"},
        ),
        href=href,
        width="100%",
        underline="none",
    )


def _header() -> rx.Component:
    return rx.hstack(
        rx.spacer(),
        rx.badge(GuardState.role, variant="soft"),
        rx.text(GuardState.user_id, size="2", color="gray"),
        rx.button(
            "Logout",
            size="1",
            variant="ghost",
            on_click=GuardState.logout,
        ),
        padding="3",
        width="100%",
        align="center",
    )
