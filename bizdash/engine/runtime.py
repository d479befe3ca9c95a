"""
BizDash Runtime — Wires config, storage, API client and guards together.

Lifecycle:
    runtime = DashboardRuntime(config)
    runtime.startup()            # logging, storage, client, authorization
    controller = runtime.new_controller(navigator)
    ...
    await runtime.ashutdown()    # close httpx client, flush logs

The CLI uses the runtime's own storage. The Reflex UI owns one storage per
browser and calls build_authorization(storage) for each client.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from bizdash.engine.auth_client import AuthApiClient
from bizdash.engine.config import DashboardConfig, get_config
from bizdash.engine.logging import (
    AsyncLogQueue,
    init_logging,
    log,
    log_system_event,
    shutdown_logging,
)
from bizdash.engine.security import AccessController, AuthorizationService, Navigator
from bizdash.engine.session import SessionStore
from bizdash.engine.storage import KeyValueStorage, create_storage

logger = logging.getLogger("bizdash.engine.runtime")


class DashboardRuntime:
    """Holds the shared services for one process."""

    def __init__(
        self,
        config: Optional[DashboardConfig] = None,
        storage: Optional[KeyValueStorage] = None,
        auth_client: Optional[AuthApiClient] = None,
    ):
        self.config = config or get_config()
        self._storage_override = storage
        self._client_override = auth_client

        # Set in startup()
        self.log_queue: Optional[AsyncLogQueue] = None
        self.storage: Optional[KeyValueStorage] = None
        self.auth_client: Optional[AuthApiClient] = None
        self.session_store: Optional[SessionStore] = None
        self.authorization: Optional[AuthorizationService] = None

        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started

    def startup(self) -> None:
        if self._started:
            logger.warning("Runtime already started")
            return

        cfg = self.config
        logger.info(f"Starting {cfg.name} runtime ({cfg.environment})")

        # 1. Logging
        if cfg.logging.structured:
            self.log_queue = init_logging(
                log_dir=cfg.logging.directory,
                level=cfg.logging.level,
                flush_interval_ms=cfg.logging.async_queue.flush_interval_ms,
                max_queue_size=cfg.logging.async_queue.max_queue_size,
            )
        else:
            logging.getLogger("bizdash").setLevel(cfg.logging.level.upper())

        # 2. Session storage
        self.storage = self._storage_override or create_storage(
            backend=cfg.session.backend,
            file_path=cfg.session.file_path,
            redis_url=cfg.session.redis_url,
            redis_db=cfg.session.redis_db,
            key_prefix=cfg.session.key_prefix,
        )

        # 3. API client
        self.auth_client = self._client_override or AuthApiClient.from_config(
            cfg.api, log_queue=self.log_queue
        )

        # 4. Process-level session + authorization
        self.session_store = SessionStore(self.storage, log_queue=self.log_queue)
        self.authorization = AuthorizationService(self.session_store, self.auth_client)

        self._started = True
        log(log_system_event("runtime_started", details={
            "environment": cfg.environment,
            "session_backend": cfg.session.backend,
            "api": cfg.api.base_url,
        }))

    def build_authorization(self, storage: KeyValueStorage) -> AuthorizationService:
        """Authorization service over a caller-owned storage, sharing the API client."""
        self._require_started()
        return AuthorizationService(
            SessionStore(storage, log_queue=self.log_queue),
            self.auth_client,
        )

    def new_controller(
        self,
        navigator: Navigator,
        authorization: Optional[AuthorizationService] = None,
    ) -> AccessController:
        self._require_started()
        return AccessController(
            authorization=authorization or self.authorization,
            navigator=navigator,
            public_paths=self.config.guard.public_paths,
            login_path=self.config.guard.login_path,
            log_queue=self.log_queue,
        )

    async def ashutdown(self) -> None:
        if not self._started:
            return
        if self.auth_client is not None:
            await self.auth_client.aclose()
        log(log_system_event("runtime_stopped"))
        shutdown_logging()
        self._started = False
        logger.info("Runtime stopped")

    def shutdown(self) -> None:
        """Synchronous shutdown for callers outside an event loop."""
        asyncio.run(self.ashutdown())

    def _require_started(self) -> None:
        if not self._started:
            raise RuntimeError("Runtime not started. Call startup() first.")


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_runtime: Optional[DashboardRuntime] = None


def init_runtime(**kwargs: Any) -> DashboardRuntime:
    """Create and start the global runtime."""
    global _runtime
    _runtime = DashboardRuntime(**kwargs)
    _runtime.startup()
    return _runtime


def get_runtime() -> DashboardRuntime:
    if _runtime is None:
        raise RuntimeError("BizDash runtime not initialized. Call init_runtime() first.")
    return _runtime


def reset_runtime() -> None:
    global _runtime
    _runtime = None
