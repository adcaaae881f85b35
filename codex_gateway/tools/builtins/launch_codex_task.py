"""launch_codex_task: dispatch the codex-task workflow on a repository."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

import structlog
from pydantic import BaseModel, Field

from codex_gateway.events.notifier import EventName
from codex_gateway.tools.base import BaseTool, ToolInput, ToolName

if TYPE_CHECKING:
    from codex_gateway.tools.context import ToolContext

logger = structlog.get_logger()

CODEX_WORKFLOW = "codex-task.yml"

NonEmptyStr = Annotated[str, Field(min_length=1)]


class LaunchCodexTaskInput(ToolInput):
    owner: NonEmptyStr
    repo: NonEmptyStr
    ref: NonEmptyStr
    instruction: NonEmptyStr
    working_dir: str | None = None
    codex_args: list[str] | None = None


class LaunchCodexTaskOutput(BaseModel):
    run_id: str
    audit_url: str


class LaunchCodexTaskTool(BaseTool):
    """Dispatch codex-task.yml and report where to follow the run.

    The workflow dispatch API returns no run id, so run_id is the
    owner/repo@ref triple and audit_url points at the Actions page.
    """

    @property
    def name(self) -> ToolName:
        return ToolName.launch_codex_task

    @property
    def title(self) -> str:
        return "Launch Codex task via GitHub"

    @property
    def description(self) -> str:
        return "Dispatch the codex-task workflow on a repository"

    @property
    def required_scopes(self) -> tuple[str, ...]:
        return ("mcp.codex.launch",)

    @property
    def input_model(self) -> type[LaunchCodexTaskInput]:
        return LaunchCodexTaskInput

    @property
    def output_model(self) -> type[LaunchCodexTaskOutput]:
        return LaunchCodexTaskOutput

    async def execute(
        self, arguments: LaunchCodexTaskInput, context: ToolContext
    ) -> LaunchCodexTaskOutput:
        notifier = context.notifier
        notifier.emit(
            EventName.codex_task_requested,
            {"owner": arguments.owner, "repo": arguments.repo, "ref": arguments.ref},
            arguments.correlation_id,
        )

        await context.github.dispatch_workflow(
            owner=arguments.owner,
            repo=arguments.repo,
            workflow=CODEX_WORKFLOW,
            ref=arguments.ref,
            inputs={
                "instruction": arguments.instruction,
                "working_dir": arguments.working_dir or "",
                "codex_args": " ".join(arguments.codex_args or []),
                "correlation_id": arguments.correlation_id or "",
            },
        )

        run_id = f"{arguments.owner}/{arguments.repo}@{arguments.ref}"
        audit_url = f"https://github.com/{arguments.owner}/{arguments.repo}/actions"
        logger.info("codex_task_dispatched", run_id=run_id, session_id=context.session_id)

        notifier.emit(
            EventName.codex_task_accepted,
            {
                "run_id": run_id,
                "audit_url": audit_url,
                "owner": arguments.owner,
                "repo": arguments.repo,
                "workflow": CODEX_WORKFLOW,
            },
            arguments.correlation_id,
        )
        notifier.emit(
            EventName.codex_task_completed,
            {
                "owner": arguments.owner,
                "repo": arguments.repo,
                "workflow": CODEX_WORKFLOW,
                "run_id": run_id,
            },
            arguments.correlation_id,
        )
        return LaunchCodexTaskOutput(run_id=run_id, audit_url=audit_url)
