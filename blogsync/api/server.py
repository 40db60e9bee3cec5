"""blogsync API server implementation using Starlette."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Dict, Optional

from ..sync import SyncClient, SyncSettings

if TYPE_CHECKING:
    from ..configuration import ConfigurationBundle

logger = logging.getLogger("blogsync.api.server")


class APIServerState(str, Enum):
    """API server lifecycle states."""
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass
class BlogsyncAPIServer:
    """HTTP front end for publishing and deleting content remotely."""

    config_bundle: "ConfigurationBundle"
    client_factory: Callable[[SyncSettings], SyncClient] = SyncClient

    # Server state
    _state: APIServerState = field(default=APIServerState.STOPPED, init=False)
    _server: Optional[Any] = field(default=None, init=False)
    _thread: Optional[threading.Thread] = field(default=None, init=False)
    _loop: Optional[asyncio.AbstractEventLoop] = field(default=None, init=False)

    @property
    def state(self) -> APIServerState:
        """Current server state."""
        return self._state

    @property
    def host(self) -> str:
        """Configured host address."""
        return str(self._get_api_config().get("host", "127.0.0.1"))

    @property
    def port(self) -> int:
        """Configured port number."""
        return int(self._get_api_config().get("port", 8000))

    @property
    def settings(self) -> SyncSettings:
        return SyncSettings.from_config(self.config_bundle.merged)

    def client(self) -> SyncClient:
        return self.client_factory(self.settings)

    def _get_api_config(self) -> Dict[str, Any]:
        """Get API configuration from bundle."""
        if self.config_bundle.merged:
            return self.config_bundle.merged.get("api", {}) or {}
        return {}

    def create_app(self) -> Any:
        """Create the Starlette application."""
        from starlette.applications import Starlette
        from starlette.middleware import Middleware
        from starlette.middleware.cors import CORSMiddleware
        from starlette.routing import Route

        from .routes import (
            batch_delete_handler,
            commits_handler,
            delete_post_handler,
            head_handler,
            health_handler,
            post_handler,
            publish_handler,
            site_handler,
            site_update_handler,
        )

        middleware = []
        cors_origins = self._get_api_config().get("cors_origins", [])
        if cors_origins:
            middleware.append(
                Middleware(
                    CORSMiddleware,
                    allow_origins=cors_origins,
                    allow_credentials=True,
                    allow_methods=["*"],
                    allow_headers=["*"],
                )
            )

        routes = [
            Route("/health", health_handler, methods=["GET"]),
            Route("/api/v1/head", head_handler, methods=["GET"]),
            Route("/api/v1/commits", commits_handler, methods=["GET"]),
            Route("/api/v1/posts", publish_handler, methods=["POST"]),
            Route("/api/v1/posts/delete", batch_delete_handler, methods=["POST"]),
            Route("/api/v1/posts/{slug}", post_handler, methods=["GET"]),
            Route("/api/v1/posts/{slug}", delete_post_handler, methods=["DELETE"]),
            Route("/api/v1/site", site_handler, methods=["GET"]),
            Route("/api/v1/site", site_update_handler, methods=["PUT"]),
        ]

        app = Starlette(
            routes=routes,
            middleware=middleware,
            lifespan=self._lifespan,
        )
        app.state.blogsync_server = self
        return app

    @asynccontextmanager
    async def _lifespan(self, app: Any) -> AsyncIterator[None]:
        logger.info("API server starting on %s:%s", self.host, self.port)
        self._state = APIServerState.RUNNING
        yield
        logger.info("API server shutting down")
        self._state = APIServerState.STOPPED

    def start(self, blocking: bool = False) -> bool:
        """Start the API server.

        Args:
            blocking: If True, block until server stops. If False, run in background thread.

        Returns:
            True if server started successfully.
        """
        if self._state == APIServerState.RUNNING:
            logger.warning("API server is already running")
            return False

        import uvicorn

        self._state = APIServerState.STARTING
        config = uvicorn.Config(
            self.create_app(),
            host=self.host,
            port=self.port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)

        if blocking:
            try:
                asyncio.run(self._server.serve())
            except (OSError, SystemExit) as exc:
                logger.error("API server error: %s", exc)
                self._state = APIServerState.ERROR
                return False
            return True

        self._thread = threading.Thread(
            target=self._run_in_thread,
            daemon=True,
            name="blogsync-api-server",
        )
        self._thread.start()

        for _ in range(20):  # Wait up to 2 seconds
            time.sleep(0.1)
            if self._state != APIServerState.STARTING:
                break

        return self._state == APIServerState.RUNNING

    def _run_in_thread(self) -> None:
        """Run the server in a background thread."""
        try:
            self._loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self._loop)
            self._loop.run_until_complete(self._server.serve())
        except (OSError, SystemExit) as exc:
            # uvicorn exits via SystemExit when the port cannot be bound.
            logger.error("API server thread error: %s", exc)
            self._state = APIServerState.ERROR
            return
        finally:
            if self._loop:
                self._loop.close()
        self._state = APIServerState.STOPPED

    def stop(self) -> bool:
        """Stop the API server.

        Returns:
            True if server stopped successfully.
        """
        if self._state != APIServerState.RUNNING:
            logger.warning("API server is not running")
            return False

        self._state = APIServerState.STOPPING
        if self._server:
            self._server.should_exit = True
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

        self._state = APIServerState.STOPPED
        self._server = None
        self._thread = None
        return True

    def status(self) -> Dict[str, Any]:
        """Get server status information."""
        return {
            "state": self._state.value,
            "host": self.host,
            "port": self.port,
            "url": f"http://{self.host}:{self.port}" if self._state == APIServerState.RUNNING else None,
        }


__all__ = ["BlogsyncAPIServer", "APIServerState"]
