"""BizDash engine — session, authorization and guard services."""

from bizdash.engine.errors import (
    BizDashAuthCheckError,
    BizDashConfigError,
    BizDashError,
    BizDashIntegrationError,
    BizDashSecurityError,
    BizDashSessionError,
)
from bizdash.engine.security import (
    AccessController,
    AuthorizationService,
    GuardStatus,
    RecordingNavigator,
    RouteGuardResult,
    role_satisfies,
)
from bizdash.engine.session import SESSION_KEYS, Role, Session, SessionStore

__all__ = [
    "AccessController",
    "AuthorizationService",
    "BizDashAuthCheckError",
    "BizDashConfigError",
    "BizDashError",
    "BizDashIntegrationError",
    "BizDashSecurityError",
    "BizDashSessionError",
    "GuardStatus",
    "RecordingNavigator",
    "Role",
    "RouteGuardResult",
    "SESSION_KEYS",
    "Session",
    "SessionStore",
    "role_satisfies",
]
