from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from pydantic import BaseModel, Field

from codex_gateway.events.notifier import EventName
from codex_gateway.tools.base import BaseTool, ToolInput, ToolName

if TYPE_CHECKING:
    from codex_gateway.tools.context import ToolContext

NonEmptyStr = Annotated[str, Field(min_length=1)]


class TriggerValidationInput(ToolInput):
    owner: NonEmptyStr
    repo: NonEmptyStr
    ref: NonEmptyStr
    workflow: NonEmptyStr
    inputs: dict[str, str] | None = None


class TriggerValidationOutput(BaseModel):
    run_id: str


class TriggerValidationTool(BaseTool):
    """Dispatch any workflow with optional string inputs."""

    @property
    def name(self) -> ToolName:
        return ToolName.trigger_validation

    @property
    def title(self) -> str:
        return "Trigger a validation workflow"

    @property
    def description(self) -> str:
        return "Dispatch any workflow with optional inputs"

    @property
    def required_scopes(self) -> tuple[str, ...]:
        return ("mcp.validation.trigger",)

    @property
    def input_model(self) -> type[TriggerValidationInput]:
        return TriggerValidationInput

    @property
    def output_model(self) -> type[TriggerValidationOutput]:
        return TriggerValidationOutput

    async def execute(
        self, arguments: TriggerValidationInput, context: ToolContext
    ) -> TriggerValidationOutput:
        await context.github.dispatch_workflow(
            owner=arguments.owner,
            repo=arguments.repo,
            workflow=arguments.workflow,
            ref=arguments.ref,
            inputs=arguments.inputs,
        )
        run_id = f"{arguments.owner}/{arguments.repo}@{arguments.ref}#{arguments.workflow}"
        context.notifier.emit(
            EventName.codex_task_completed,
            {
                "owner": arguments.owner,
                "repo": arguments.repo,
                "workflow": arguments.workflow,
                "run_id": run_id,
            },
            arguments.correlation_id,
        )
        return TriggerValidationOutput(run_id=run_id)
