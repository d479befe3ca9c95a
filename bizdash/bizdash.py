"""
BizDash — Main Reflex application entry point.

Boot sequence:
    1. Load bizdash.yaml and start the DashboardRuntime
    2. Create rx.App() and register pages; protected pages run
       GuardState.check_auth on load
"""

import logging

import reflex as rx

from bizdash.engine.config import load_config
from bizdash.engine.runtime import init_runtime
from bizdash.ui.pages.dashboard import home_page, reports_page, settings_page
from bizdash.ui.pages.login import login_page
from bizdash.ui.state import GuardState

logger = logging.getLogger("bizdash.startup")

_config = load_config()
init_runtime(config=_config)

app = rx.App()

app.add_page(login_page, route=_config.guard.login_path, title="BizDash — Login")
app.add_page(home_page, route="/", title="BizDash — Dashboard", on_load=GuardState.check_auth)
app.add_page(reports_page, route="/reports", title="BizDash — Reports", on_load=GuardState.check_auth)
app.add_page(settings_page, route="/settings", title="BizDash — Settings", on_load=GuardState.check_auth)

logger.info(f"BizDash UI ready ({_config.environment}, API {_config.api.base_url})")
