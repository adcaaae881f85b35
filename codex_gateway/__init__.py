"""MCP gateway exposing GitHub pull request and workflow operations."""

__version__ = "0.1.0"
