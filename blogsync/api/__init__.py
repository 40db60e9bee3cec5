"""blogsync HTTP API server module."""

from __future__ import annotations

from .server import APIServerState, BlogsyncAPIServer

__all__ = ["BlogsyncAPIServer", "APIServerState"]
