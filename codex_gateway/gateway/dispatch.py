"""MCP method dispatch: initialize / initialized / tools/list / tools/call.

The dispatcher is stateless per request; session state lives in the
SessionStore it owns. Protocol-tier failures are raised as ProtocolError
inside the method handlers and turned into JSON-RPC error objects here.
Tool-tier failures never become JSON-RPC errors: they are reported as a
successful envelope carrying isError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from codex_gateway.gateway.protocol import (
    InitializeParams,
    JsonRpcRequest,
    McpMethod,
    ToolCallParams,
    jsonrpc_error,
    jsonrpc_result,
    tool_error,
    tool_result,
    validation_details,
)
from codex_gateway.infra.errors import (
    INSUFFICIENT_PERMISSIONS,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    MISSING_SESSION,
    UNSUPPORTED_PROTOCOL_VERSION,
    GitHubError,
    ProtocolError,
)
from codex_gateway.tools.context import ToolContext

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from codex_gateway.config.settings import McpSettings
    from codex_gateway.events.notifier import ActivityNotifier
    from codex_gateway.github.client import GitHubClient
    from codex_gateway.session.manager import Session, SessionStore
    from codex_gateway.tools.base import BaseTool
    from codex_gateway.tools.registry import ToolRegistry

    _MethodHandler = Callable[[Session | None, JsonRpcRequest], Awaitable["DispatchResult"]]

logger = structlog.get_logger()


@dataclass
class DispatchResult:
    """JSON-RPC response plus the session in effect after the request.

    session is the newly created one for a successful initialize, otherwise
    whatever session the caller passed in.
    """

    response: dict[str, Any]
    session: Session | None = None


class McpDispatcher:
    def __init__(
        self,
        *,
        mcp_settings: McpSettings,
        registry: ToolRegistry,
        sessions: SessionStore,
        github: GitHubClient,
        notifier: ActivityNotifier,
        enforce_scopes: bool = False,
    ) -> None:
        self._mcp = mcp_settings
        self._registry = registry
        self._sessions = sessions
        self._github = github
        self._notifier = notifier
        self._enforce_scopes = enforce_scopes

        self._handlers: dict[McpMethod, _MethodHandler] = {
            McpMethod.initialize: self._handle_initialize,
            McpMethod.initialized: self._handle_initialized,
            McpMethod.tools_list: self._handle_tools_list,
            McpMethod.tools_call: self._handle_tools_call,
        }
        unhandled = set(McpMethod) - set(self._handlers)
        if unhandled:
            raise RuntimeError(f"No handler for MCP methods: {sorted(unhandled)}")

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    async def handle_request(
        self, session: Session | None, request: JsonRpcRequest
    ) -> DispatchResult:
        """Route one JSON-RPC request. Never raises for protocol or tool failures."""
        try:
            method = McpMethod(request.method)
        except ValueError:
            logger.warning("method_not_found", method=request.method, request_id=request.id)
            return DispatchResult(
                jsonrpc_error(
                    request.id, METHOD_NOT_FOUND, f"Method {request.method} not implemented"
                ),
                session,
            )

        try:
            return await self._handlers[method](session, request)
        except ProtocolError as e:
            logger.warning(
                "protocol_error",
                method=str(method),
                rpc_code=e.rpc_code,
                error=str(e),
                request_id=request.id,
            )
            return DispatchResult(jsonrpc_error(request.id, e.rpc_code, str(e), e.data), session)

    # ------------------------------------------------------------------
    # Method handlers
    # ------------------------------------------------------------------

    async def _handle_initialize(
        self, session: Session | None, request: JsonRpcRequest
    ) -> DispatchResult:
        try:
            params = InitializeParams.model_validate(request.params)
        except ValidationError as e:
            raise ProtocolError(
                "Invalid initialize params",
                rpc_code=INVALID_PARAMS,
                data=validation_details(e),
                code="INVALID_PARAMS",
            ) from e

        if params.protocol_version != self._mcp.protocol_version:
            raise ProtocolError(
                f"Unsupported protocol version {params.protocol_version}",
                rpc_code=UNSUPPORTED_PROTOCOL_VERSION,
                code="UNSUPPORTED_PROTOCOL_VERSION",
            )

        new_session = self._sessions.create_session(params.protocol_version)
        logger.info(
            "mcp_initialized",
            session_id=new_session.id,
            client_name=params.client_info.name,
            client_version=params.client_info.version,
        )
        result = {
            "protocolVersion": new_session.protocol_version,
            "serverInfo": {
                "name": self._mcp.server_name,
                "version": self._mcp.server_version,
            },
            "capabilities": {"tools": {"listChanged": True}},
            "sessionId": new_session.id,
        }
        return DispatchResult(jsonrpc_result(request.id, result), new_session)

    async def _handle_initialized(
        self, session: Session | None, request: JsonRpcRequest
    ) -> DispatchResult:
        return DispatchResult(jsonrpc_result(request.id, {"ok": True}), session)

    async def _handle_tools_list(
        self, session: Session | None, request: JsonRpcRequest
    ) -> DispatchResult:
        # No session required: the catalog is static and public.
        return DispatchResult(
            jsonrpc_result(request.id, {"tools": self._registry.descriptors()}), session
        )

    async def _handle_tools_call(
        self, session: Session | None, request: JsonRpcRequest
    ) -> DispatchResult:
        if session is None:
            raise ProtocolError(
                "Missing session", rpc_code=MISSING_SESSION, code="MISSING_SESSION"
            )

        try:
            params = ToolCallParams.model_validate(request.params)
        except ValidationError as e:
            raise ProtocolError(
                "Invalid tool call params",
                rpc_code=INVALID_PARAMS,
                data=validation_details(e),
                code="INVALID_PARAMS",
            ) from e

        tool = self._registry.get(params.name)
        if tool is None:
            raise ProtocolError(
                f"Tool {params.name} not found", rpc_code=METHOD_NOT_FOUND, code="TOOL_NOT_FOUND"
            )

        if self._enforce_scopes:
            self._check_scopes(tool, session)

        response = await self._run_tool(tool, params.arguments, session, request)
        return DispatchResult(response, session)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_scopes(tool: BaseTool, session: Session) -> None:
        required = tool.required_scopes
        if all(scope in session.scopes for scope in required):
            return
        raise ProtocolError(
            "Insufficient permissions",
            rpc_code=INSUFFICIENT_PERMISSIONS,
            data={"required": list(required), "provided": sorted(session.scopes)},
            code="INSUFFICIENT_PERMISSIONS",
        )

    async def _run_tool(
        self,
        tool: BaseTool,
        raw_arguments: Any,
        session: Session,
        request: JsonRpcRequest,
    ) -> dict[str, Any]:
        log = logger.bind(tool_name=str(tool.name), session_id=session.id, request_id=request.id)

        try:
            arguments = tool.parse_arguments(raw_arguments)
        except ValidationError as e:
            details = validation_details(e)
            summary = "; ".join(
                f"{'.'.join(str(part) for part in item['loc']) or 'arguments'}: {item['msg']}"
                for item in details
            )
            log.warning("tool_arguments_invalid", errors=details)
            return tool_error(request.id, f"Validation error: {summary}", details)

        context = ToolContext(
            github=self._github, notifier=self._notifier, session_id=session.id
        )
        try:
            output = await tool.execute(arguments, context)
        except GitHubError as e:
            log.warning("tool_github_error", status=e.status)
            return tool_error(
                request.id,
                f"GitHub API error ({e.status})",
                {"status": e.status, "payload": e.payload},
            )
        except Exception as e:
            log.exception("tool_failed")
            return tool_error(request.id, str(e) or type(e).__name__)

        log.info("tool_completed")
        return tool_result(
            request.id, output.model_dump(mode="json", by_alias=True, exclude_none=True)
        )
