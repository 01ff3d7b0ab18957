"""
FastAPI application for the toolgate gateway.

    POST   /invoke   JSON-RPC request for a session (allocates one if needed)
    GET    /invoke   poll an existing session for pending notifications
    DELETE /invoke   retire an existing session
    GET    /health   liveness and session count
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager, suppress
from typing import Any, Optional

from fastapi import FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..exceptions import (
    INTERNAL_ERROR,
    BadSessionError,
    ParseError,
    ProtocolError,
    to_jsonrpc_error,
)
from ..tools import RemoteToolService
from .config import ServerConfig
from .sessions import SessionRegistry

logger = logging.getLogger("toolgate.server.app")


def _jsonrpc_error_response(
    exc: Exception,
    status_code: int,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(to_jsonrpc_error(exc), status_code=status_code, headers=headers)


def _status_for(reply: dict[str, Any]) -> int:
    error = reply.get("error")
    if error is None:
        return 200
    if error.get("code") == INTERNAL_ERROR:
        return 500
    return 400


async def _reap_idle(registry: SessionRegistry, max_idle: float, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        registry.evict_idle(max_idle)


def create_app(
    config: Optional[ServerConfig] = None,
    service: Optional[RemoteToolService] = None,
    registry: Optional[SessionRegistry] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    if config is None:
        config = ServerConfig.from_env()
    if registry is None:
        registry = SessionRegistry(service or RemoteToolService())

    header = config.session_header

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        reaper = None
        if config.session_idle_timeout:
            reaper = asyncio.create_task(
                _reap_idle(registry, config.session_idle_timeout, config.reap_interval)
            )
        try:
            yield
        finally:
            if reaper is not None:
                reaper.cancel()
                with suppress(asyncio.CancelledError):
                    await reaper

    app = FastAPI(
        title="Toolgate",
        description="Session-scoped JSON-RPC tool gateway",
        version="0.1.0",
        lifespan=lifespan,
        debug=config.debug,
    )
    app.state.config = config
    app.state.registry = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[header],
    )

    def resolve_session(request: Request, session: Optional[str]) -> Optional[str]:
        # the query parameter wins over the header
        return session or request.headers.get(header) or None

    @app.get("/health")
    async def health():
        return {"status": "ok", "sessions": len(registry)}

    @app.post("/invoke")
    async def post_invoke(request: Request):
        try:
            body = await request.json()
        except ValueError:
            return _jsonrpc_error_response(ParseError("Parse error"), 400)

        session_id = request.headers.get(header) or str(uuid.uuid4())
        headers = {header: session_id}

        try:
            transport = registry.get_or_create(session_id)
            reply = await transport.handle_message(body)
        except ProtocolError as e:
            return _jsonrpc_error_response(e, 400, headers)
        except Exception as e:
            logger.exception("Session %s: request failed", session_id)
            return _jsonrpc_error_response(e, 500, headers)

        if reply is None:
            return Response(status_code=202, headers=headers)
        return JSONResponse(reply, status_code=_status_for(reply), headers=headers)

    @app.get("/invoke")
    async def get_invoke(request: Request, session: Optional[str] = Query(None)):
        session_id = resolve_session(request, session)
        transport = registry.get(session_id)
        if transport is None:
            return _jsonrpc_error_response(BadSessionError(), 400)

        try:
            pending = await transport.poll()
        except BadSessionError as e:
            return _jsonrpc_error_response(e, 400)
        except Exception as e:
            logger.exception("Session %s: poll failed", session_id)
            return _jsonrpc_error_response(e, 500)

        return JSONResponse(pending, headers={header: transport.session_id})

    @app.delete("/invoke")
    async def delete_invoke(request: Request, session: Optional[str] = Query(None)):
        session_id = resolve_session(request, session)
        if session_id is None or not registry.retire(session_id):
            return _jsonrpc_error_response(BadSessionError(), 400)
        return Response(status_code=204)

    return app


class ToolgateServer:
    """High-level server class for running the gateway."""

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 8080,
        service: Optional[RemoteToolService] = None,
        **kwargs,
    ):
        self.config = ServerConfig(host=host, port=port, **kwargs)
        self.app = create_app(self.config, service=service)

    @property
    def registry(self) -> SessionRegistry:
        return self.app.state.registry

    def run(self):
        """Run the server (blocking)."""
        import uvicorn

        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level,
        )

    async def run_async(self):
        """Run the server asynchronously."""
        import uvicorn

        config = uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level,
        )
        server = uvicorn.Server(config)
        await server.serve()
