"""HTTP API for node status and metrics."""

from .server import ApiServer, ApiServerConfig

__all__ = ["ApiServer", "ApiServerConfig"]
