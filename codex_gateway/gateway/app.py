from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response, StreamingResponse

from codex_gateway.config.settings import Settings, get_settings
from codex_gateway.events.notifier import ActivityNotifier
from codex_gateway.gateway.dispatch import McpDispatcher
from codex_gateway.gateway.protocol import jsonrpc_error, parse_rpc_request
from codex_gateway.gateway.security import Authenticator, Principal, check_origin
from codex_gateway.gateway.sse import SSE_HEADERS, EventStreamHub, format_sse, wants_event_stream
from codex_gateway.github.client import GitHubClient
from codex_gateway.infra.errors import (
    INTERNAL_ERROR,
    UNSUPPORTED_PROTOCOL_VERSION,
    AuthError,
    ProtocolError,
)
from codex_gateway.infra.logging import bind_request_context, setup_logging
from codex_gateway.session.manager import SessionStore
from codex_gateway.tools.builtins import register_builtins
from codex_gateway.tools.registry import ToolRegistry

logger = structlog.get_logger()

SESSION_HEADER = "Mcp-Session-Id"
PROTOCOL_HEADER = "MCP-Protocol-Version"


def create_app(
    settings: Settings | None = None,
    *,
    github: GitHubClient | None = None,
    authenticator: Authenticator | None = None,
) -> FastAPI:
    """Assemble the gateway: registry, session store, dispatcher, event stream, routes.

    github/authenticator may be injected (tests); otherwise built from settings.
    """
    settings = settings or get_settings()
    owns_github = github is None
    if github is None:
        github = GitHubClient(
            settings.github,
            user_agent=f"{settings.mcp.server_name}/{settings.mcp.server_version}",
        )
    authenticator = authenticator or Authenticator(settings.auth)

    notifier = ActivityNotifier()
    registry = ToolRegistry()
    register_builtins(registry)
    sessions = SessionStore()
    dispatcher = McpDispatcher(
        mcp_settings=settings.mcp,
        registry=registry,
        sessions=sessions,
        github=github,
        notifier=notifier,
        enforce_scopes=settings.auth.require_oauth,
    )
    hub = EventStreamHub(notifier)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(
            json_output=settings.log.json_output,
            log_level=settings.log.level,
            service=settings.mcp.server_name,
        )
        logger.info(
            "gateway_started",
            host=settings.gateway.host,
            port=settings.gateway.port,
            protocol_version=settings.mcp.protocol_version,
            require_oauth=settings.auth.require_oauth,
            tools=[str(tool.name) for tool in registry.list_tools()],
        )

        yield

        hub.close()
        if owns_github:
            await github.aclose()
        logger.info("gateway_stopped")

    app = FastAPI(
        title="Codex MCP Gateway", version=settings.mcp.server_version, lifespan=lifespan
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.gateway.origin_list or ["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["authorization", "content-type", "mcp-protocol-version", "mcp-session-id", "accept"],
        expose_headers=[SESSION_HEADER],
    )

    app.state.settings = settings
    app.state.notifier = notifier
    app.state.registry = registry
    app.state.sessions = sessions
    app.state.dispatcher = dispatcher
    app.state.event_hub = hub

    async def authorize(request: Request) -> Principal:
        check_origin(settings.gateway.origin_list, request.headers.get("origin"))
        return await authenticator.authenticate(request.headers.get("authorization"))

    @app.exception_handler(AuthError)
    async def _auth_error(request: Request, exc: AuthError) -> JSONResponse:
        logger.warning("request_rejected", path=request.url.path, status=exc.status_code, error=str(exc))
        body: dict[str, str] = {"error": str(exc)}
        if exc.details:
            body["details"] = exc.details
        return JSONResponse(body, status_code=exc.status_code)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/mcp")
    async def mcp_post(request: Request, principal: Principal = Depends(authorize)) -> Response:
        header_version = request.headers.get(PROTOCOL_HEADER)
        if header_version and header_version != settings.mcp.protocol_version:
            return JSONResponse(
                jsonrpc_error(
                    None,
                    UNSUPPORTED_PROTOCOL_VERSION,
                    f"Unsupported protocol version {header_version}",
                ),
                status_code=426,
            )

        try:
            rpc_request = parse_rpc_request(await request.body())
        except ProtocolError as e:
            logger.warning("rpc_envelope_rejected", code=e.code, error=str(e))
            return JSONResponse(jsonrpc_error(None, e.rpc_code, str(e)), status_code=400)

        session = sessions.get_session(request.headers.get(SESSION_HEADER))
        bind_request_context(
            method=rpc_request.method,
            request_id=rpc_request.id,
            session_id=session.id if session is not None else None,
        )
        if session is not None and principal.scopes is not None:
            session = sessions.assign_scopes(session.id, principal.scopes)

        try:
            result = await dispatcher.handle_request(session, rpc_request)
        except Exception:
            logger.exception("mcp_request_failed", method=rpc_request.method, request_id=rpc_request.id)
            return JSONResponse(
                jsonrpc_error(rpc_request.id, INTERNAL_ERROR, "Internal error"), status_code=500
            )

        effective = result.session
        if effective is not None and effective is not session and principal.scopes is not None:
            effective = sessions.assign_scopes(effective.id, principal.scopes)

        headers = {SESSION_HEADER: effective.id} if effective is not None else {}
        if wants_event_stream(request.headers.get("accept")):
            event_id = None if rpc_request.id is None else str(rpc_request.id)
            return Response(
                content=format_sse("response", result.response, event_id),
                media_type="text/event-stream",
                headers={**SSE_HEADERS, **headers},
            )
        return JSONResponse(result.response, headers=headers)

    @app.get("/mcp")
    async def mcp_events(request: Request, _: Principal = Depends(authorize)) -> Response:
        if not wants_event_stream(request.headers.get("accept")):
            return JSONResponse({"error": "Use POST for JSON-RPC requests"}, status_code=405)
        return StreamingResponse(hub.stream(), media_type="text/event-stream", headers=SSE_HEADERS)

    @app.get("/sse")
    async def sse_redirect(_: Principal = Depends(authorize)) -> RedirectResponse:
        return RedirectResponse("/mcp", status_code=307)

    return app
