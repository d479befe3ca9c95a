"""
BizDash — Reflex configuration.

Routes:
  /login     → sign-in (public)
  /          → dashboard home
  /reports   → MANAGER and above
  /settings  → ADMIN only
"""

import reflex as rx

config = rx.Config(
    app_name="bizdash",
    frontend_port=3000,
    backend_port=8000,
    telemetry_enabled=False,
    disable_plugins=["reflex.plugins.sitemap.SitemapPlugin"],
)
