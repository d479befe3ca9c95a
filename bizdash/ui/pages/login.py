"""
BizDash — Login Page

Route: /login (public)
"""

import reflex as rx

from bizdash.ui.state import GuardState


def login_page() -> rx.Component:
    return rx.center(
        rx.card(
            rx.vstack(
                rx.heading("BizDash", size="6", text_align="center"),
                rx.text("Sign in to the dashboard", color="gray", text_align="center"),
                rx.divider(),
                rx.form(
                    rx.vstack(
                        rx.text("Email", size="2", weight="bold"),
                        rx.input(
                            placeholder="you@company.com",
                            name="email",
                            type="email",
                            required=True,
                            size="3",
                        ),
                        rx.text("Password", size="2", weight="bold"),
                        rx.input(
                            placeholder="••••••••",
                            name="password",
                            type="password",
                            required=True,
                            size="3",
                        ),
                        rx.cond(
                            GuardState.login_error != "",
                            rx.callout(
                                GuardState.login_error,
                                icon="triangle_alert",
                                color_scheme="red",
                                size="1",
                            ),
                        ),
                        rx.button(
                            "Sign In",
                            type="submit",
                            size="3",
                            width="100%",
                            loading=GuardState.is_loading,
                        ),
                        spacing="3",
                        width="100%",
                    ),
                    on_submit=GuardState.login,
                    width="100%",
                ),
                spacing="4",
                width="100%",
                padding="6",
            ),
            width="400px",
        ),
        min_height="100vh",
    )
