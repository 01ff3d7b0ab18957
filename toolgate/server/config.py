"""
Server configuration for the toolgate gateway.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_SESSION_HEADER = "Session-Id"


@dataclass
class ServerConfig:
    """Configuration for the gateway server."""

    host: str = "0.0.0.0"
    port: int = 8080

    cors_origins: list = field(default_factory=lambda: ["*"])

    session_header: str = DEFAULT_SESSION_HEADER

    # Seconds a session may stay idle before it is retired. None keeps
    # sessions for the lifetime of the process.
    session_idle_timeout: Optional[float] = None
    reap_interval: float = 60.0

    debug: bool = False

    log_level: str = "info"

    def __post_init__(self):
        if self.session_idle_timeout is not None and self.session_idle_timeout <= 0:
            raise ValueError("session_idle_timeout must be positive")
        if self.reap_interval <= 0:
            raise ValueError("reap_interval must be positive")

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Create configuration from environment variables."""
        origins = os.environ.get("TOOLGATE_CORS_ORIGINS")
        idle = os.environ.get("TOOLGATE_SESSION_IDLE_TIMEOUT")
        return cls(
            host=os.environ.get("TOOLGATE_HOST", "0.0.0.0"),
            port=int(os.environ.get("TOOLGATE_PORT", "8080")),
            cors_origins=origins.split(",") if origins else ["*"],
            session_idle_timeout=float(idle) if idle else None,
            debug=os.environ.get("TOOLGATE_DEBUG", "").lower() == "true",
            log_level=os.environ.get("TOOLGATE_LOG_LEVEL", "info"),
        )
