"""Custom exception hierarchy for the gateway.

All application-specific exceptions inherit from GatewayBaseError,
which carries a string code for log correlation. Protocol-tier errors
additionally carry the numeric JSON-RPC code sent on the wire.
"""

from __future__ import annotations

from typing import Any

# JSON-RPC 2.0 standard codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# MCP gateway codes (server-defined range)
UNSUPPORTED_PROTOCOL_VERSION = -32001
MISSING_SESSION = -32002
INSUFFICIENT_PERMISSIONS = -32003


class GatewayBaseError(Exception):
    """Base exception for all gateway errors."""

    def __init__(self, message: str, *, code: str = "INTERNAL_ERROR") -> None:
        super().__init__(message)
        self.code = code


class ProtocolError(GatewayBaseError):
    """The request could not be dispatched. Maps to a JSON-RPC error object."""

    def __init__(
        self,
        message: str,
        *,
        rpc_code: int,
        data: Any = None,
        code: str = "PROTOCOL_ERROR",
    ) -> None:
        super().__init__(message, code=code)
        self.rpc_code = rpc_code
        self.data = data


class GitHubError(GatewayBaseError):
    """Non-2xx response from the GitHub REST API."""

    def __init__(self, status: int, payload: Any = None) -> None:
        super().__init__(f"GitHub API error: {status}", code="GITHUB_ERROR")
        self.status = status
        self.payload = payload


class GitHubConfigError(GatewayBaseError):
    """GitHub client used without the credentials it needs."""

    def __init__(self, message: str = "Missing GitHub token configuration") -> None:
        super().__init__(message, code="GITHUB_CONFIG_ERROR")


class AuthError(GatewayBaseError):
    """Request rejected by the authentication layer (HTTP-level, not JSON-RPC)."""

    def __init__(
        self, message: str, *, status_code: int = 403, details: str | None = None
    ) -> None:
        super().__init__(message, code="AUTH_ERROR")
        self.status_code = status_code
        self.details = details
