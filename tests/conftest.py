"""
BizDash Test Suite — Shared fixtures and configuration.

Run:  pytest tests/ -v
"""

from __future__ import annotations

import json
from typing import Callable, Dict, List

import httpx
import pytest

from bizdash.engine.auth_client import AuthApiClient
from bizdash.engine.security import AccessController, AuthorizationService, RecordingNavigator
from bizdash.engine.session import Role, Session, SessionStore
from bizdash.engine.storage import MemoryStorage


# ---------------------------------------------------------------------------
# Global singletons — reset between tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_globals():
    import bizdash.engine.config as cfg_mod
    import bizdash.engine.logging as log_mod
    import bizdash.engine.runtime as rt_mod

    cfg_mod._config = None
    rt_mod._runtime = None
    yield
    if log_mod._global_queue is not None:
        log_mod.shutdown_logging()
    rt_mod._runtime = None


# ---------------------------------------------------------------------------
# Session fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def manager_session() -> Session:
    return Session(
        access_token="abc123",
        refresh_token="ref456",
        role=Role.MANAGER,
        user_id="u-42",
    )


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def stored_storage(manager_session) -> MemoryStorage:
    """Storage already holding a full MANAGER session."""
    return MemoryStorage(manager_session.to_storage())


# ---------------------------------------------------------------------------
# HTTP mocking — httpx.MockTransport, no network
# ---------------------------------------------------------------------------

class ApiRecorder:
    """Routes requests to per-path handlers and records every request."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def route(self, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[path] = handler

    def respond(self, path: str, status_code: int = 200, body=None) -> None:
        self.routes[path] = lambda request: httpx.Response(status_code, json=body)

    def respond_sequence(self, path: str, *responses) -> None:
        """Answer successive calls with (status, body) pairs; the last one repeats."""
        remaining = list(responses)

        def handler(request):
            status_code, body = remaining.pop(0) if len(remaining) > 1 else remaining[0]
            return httpx.Response(status_code, json=body)
        self.routes[path] = handler

    def fail(self, path: str, exc_type=httpx.ConnectError) -> None:
        def handler(request):
            raise exc_type("connection refused", request=request)
        self.routes[path] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"message": "not found"})
        return handler(request)

    def calls_to(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    @staticmethod
    def body(request: httpx.Request):
        return json.loads(request.content.decode("utf-8"))


@pytest.fixture
def api() -> ApiRecorder:
    return ApiRecorder()


@pytest.fixture
def auth_client(api) -> AuthApiClient:
    return AuthApiClient(
        base_url="http://api.test",
        transport=httpx.MockTransport(api),
    )


@pytest.fixture
def navigator() -> RecordingNavigator:
    return RecordingNavigator(current_path="/reports")


@pytest.fixture
def make_controller(auth_client, navigator):
    """Build (controller, store) over a given storage."""

    def _make(storage, hydrate: bool = True, log_queue=None):
        store = SessionStore(storage, log_queue=log_queue)
        if hydrate:
            store.hydrate()
        authorization = AuthorizationService(store, auth_client)
        controller = AccessController(
            authorization=authorization,
            navigator=navigator,
            public_paths=["/login"],
            login_path="/login",
            log_queue=log_queue,
        )
        return controller, store

    return _make
