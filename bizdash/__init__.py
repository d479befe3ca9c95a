"""
BizDash — Access control for the business-management dashboard.

Session gating and role-based view access in front of the dashboard REST
API, with a Reflex UI and a small CLI.
"""

__version__ = "1.0.0"
__all__ = ["engine", "ui", "cli"]
