from __future__ import annotations

from typing import TYPE_CHECKING

from codex_gateway.pulls.merge import MergeResult, PrMergeInput, merge_pull_request
from codex_gateway.tools.base import BaseTool, ToolName

if TYPE_CHECKING:
    from codex_gateway.tools.context import ToolContext


class PrMergeTool(BaseTool):
    @property
    def name(self) -> ToolName:
        return ToolName.pr_merge

    @property
    def title(self) -> str:
        return "Merge a pull request with gating"

    @property
    def description(self) -> str:
        return "Merge a PR after verifying gate status"

    @property
    def required_scopes(self) -> tuple[str, ...]:
        return ("mcp.pr.merge",)

    @property
    def input_model(self) -> type[PrMergeInput]:
        return PrMergeInput

    @property
    def output_model(self) -> type[MergeResult]:
        return MergeResult

    async def execute(self, arguments: PrMergeInput, context: ToolContext) -> MergeResult:
        return await merge_pull_request(arguments, context.github, context.notifier)
