from __future__ import annotations

from typing import TYPE_CHECKING

from codex_gateway.pulls.gate import GateResult, PrGateInput, evaluate_pull_request_gate
from codex_gateway.tools.base import BaseTool, ToolName

if TYPE_CHECKING:
    from codex_gateway.tools.context import ToolContext


class PrGateTool(BaseTool):
    """Read-only: reports readiness, never changes the pull request."""

    @property
    def name(self) -> ToolName:
        return ToolName.pr_gate

    @property
    def title(self) -> str:
        return "Evaluate pull request gate"

    @property
    def description(self) -> str:
        return "Gather mergeability, checks, and approvals to determine readiness"

    @property
    def required_scopes(self) -> tuple[str, ...]:
        return ("mcp.pr.gate",)

    @property
    def input_model(self) -> type[PrGateInput]:
        return PrGateInput

    @property
    def output_model(self) -> type[GateResult]:
        return GateResult

    async def execute(self, arguments: PrGateInput, context: ToolContext) -> GateResult:
        return await evaluate_pull_request_gate(arguments, context.github, context.notifier)
