from __future__ import annotations

from codex_gateway.tools.builtins.launch_codex_task import LaunchCodexTaskTool
from codex_gateway.tools.builtins.pr_gate import PrGateTool
from codex_gateway.tools.builtins.pr_merge import PrMergeTool
from codex_gateway.tools.builtins.pr_review import PrReviewTool
from codex_gateway.tools.builtins.trigger_validation import TriggerValidationTool
from codex_gateway.tools.registry import ToolRegistry


def register_builtins(registry: ToolRegistry) -> None:
    """Register the five gateway tools in wire order and seal the registry.

    Clients may cache positional assumptions about tools/list, so the
    registration order below is part of the interface.
    """
    registry.register(LaunchCodexTaskTool())
    registry.register(PrReviewTool())
    registry.register(PrGateTool())
    registry.register(PrMergeTool())
    registry.register(TriggerValidationTool())
    registry.seal()
