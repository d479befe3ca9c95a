"""
BizDash Error Hierarchy — Structured exceptions for the access-control layer.

All errors serialize to JSON so they can be written to the structured logs.

Hierarchy:
    BizDashError
    ├── BizDashSecurityError       — Role check denied
    ├── BizDashSessionError        — Session missing / partial / invalid
    ├── BizDashIntegrationError    — REST API call failed
    │   └── BizDashAuthCheckError  — Token validation check rejected
    └── BizDashConfigError         — Invalid bizdash.yaml
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class BizDashError(Exception):
    """
    Base error for all BizDash failures.
    All context is kept serializable for logging.
    """

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.error_type: str = self.__class__.__name__
        self.context: Dict[str, Any] = context
        self.path: Optional[str] = context.get("path")
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to a JSON-compatible dict."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "path": self.path,
            "timestamp": self.timestamp,
            "context": {k: str(v) for k, v in self.context.items() if k != "path"},
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.path:
            parts.append(f"path={self.path}")
        return " | ".join(parts)


class BizDashSecurityError(BizDashError):
    """
    Access denied by a role check.
    Includes the session role and the role that was required.
    """

    def __init__(self, message: str, **context: Any):
        self.user_id: Optional[str] = context.get("user_id")
        self.role: Optional[str] = context.get("role")
        self.required_role: Optional[str] = context.get("required_role")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["user_id"] = self.user_id
        d["role"] = self.role
        d["required_role"] = self.required_role
        return d


class BizDashSessionError(BizDashError):
    """Session is missing, partial, or could not be established."""
    pass


class BizDashIntegrationError(BizDashError):
    """A call to the dashboard REST API failed."""

    def __init__(self, message: str, **context: Any):
        self.endpoint: Optional[str] = context.get("endpoint")
        self.status_code: Optional[int] = context.get("status_code")
        self.response_body: Optional[str] = context.get("response_body")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["endpoint"] = self.endpoint
        d["status_code"] = self.status_code
        return d


class BizDashAuthCheckError(BizDashIntegrationError):
    """
    The token validation call did not return 2xx.

    transport_error is True when no HTTP response was received at all
    (DNS, connect, timeout). Guards treat both cases the same.
    """

    def __init__(self, message: str, **context: Any):
        self.transport_error: bool = bool(context.get("transport_error", False))
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["transport_error"] = self.transport_error
        return d


class BizDashConfigError(BizDashError):
    """Configuration error — invalid bizdash.yaml."""
    pass
