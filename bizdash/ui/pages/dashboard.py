"""
BizDash — Dashboard Pages

Routes:
    /          — any signed-in role
    /reports   — MANAGER and above
    /settings  — ADMIN only

Page bodies are placeholders; the data widgets belong to the API-backed
dashboard modules.
"""

import reflex as rx

from bizdash.engine.session import Role
from bizdash.ui.components.layout import dashboard_layout
from bizdash.ui.guards import protected_route
from bizdash.ui.state import GuardState


def home_page() -> rx.Component:
    return dashboard_layout(
        rx.vstack(
            rx.heading("Dashboard", size="6"),
            rx.text(f"Signed in as {GuardState.user_id}", color="gray"),
            rx.divider(),
            rx.grid(
                _section_card("Inventory", "Products and restock"),
                _section_card("Billing", "Bills, challans and payments"),
                _section_card("Expenses", "Expense tracking"),
                columns="3",
                spacing="4",
                width="100%",
            ),
            spacing="5",
            width="100%",
            padding="6",
        ),
    )


def reports_page() -> rx.Component:
    return dashboard_layout(
        protected_route(
            rx.vstack(
                rx.heading("Reports", size="6"),
                rx.text("Financial, inventory and investor reports", color="gray"),
                spacing="4",
                padding="6",
            ),
            required_role=Role.MANAGER,
        ),
    )


def settings_page() -> rx.Component:
    return dashboard_layout(
        protected_route(
            rx.vstack(
                rx.heading("Settings", size="6"),
                rx.text("Users, roles and business settings", color="gray"),
                spacing="4",
                padding="6",
            ),
            required_role=Role.ADMIN,
        ),
    )


def _section_card(title: str, description: str) -> rx.Component:
    return rx.card(
        rx.vstack(
            rx.text(title, weight="bold", size="3"),
            rx.text(description, color="gray", size="2"),
            spacing="1",
        ),
    )
