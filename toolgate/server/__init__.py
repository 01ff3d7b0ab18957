"""
Toolgate Server - session-scoped JSON-RPC gateway for remote tools.

Run with:
    toolgate-server              # CLI entry point
    python -m toolgate.server    # Module entry point

Or programmatically:
    from toolgate.server import ToolgateServer
    server = ToolgateServer(port=8080)
    server.run()
"""

from .app import ToolgateServer, create_app
from .config import ServerConfig
from .sessions import SessionRegistry
from .transport import SessionTransport

__all__ = [
    "create_app",
    "ToolgateServer",
    "ServerConfig",
    "SessionRegistry",
    "SessionTransport",
]
