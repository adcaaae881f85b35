from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

if TYPE_CHECKING:
    from codex_gateway.tools.context import ToolContext


class ToolName(StrEnum):
    """The closed set of tools. Adding a member is a breaking wire change."""

    launch_codex_task = "launch_codex_task"
    pr_review = "pr_review"
    pr_gate = "pr_gate"
    pr_merge = "pr_merge"
    trigger_validation = "trigger_validation"


class ToolInput(BaseModel):
    """Base for tool argument models. Unknown keys are dropped."""

    correlation_id: str | None = None


class BaseTool(ABC):
    """Abstract base class for gateway tools.

    The pydantic input/output models are the single source for both argument
    validation and the JSON schemas advertised by tools/list.
    """

    @property
    @abstractmethod
    def name(self) -> ToolName:
        """Unique tool name used in tools/call."""
        ...

    @property
    @abstractmethod
    def title(self) -> str: ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        ...

    @property
    @abstractmethod
    def input_model(self) -> type[ToolInput]: ...

    @property
    @abstractmethod
    def output_model(self) -> type[BaseModel]: ...

    @property
    def required_scopes(self) -> tuple[str, ...]:
        """Scopes a session must hold when scope checking is enforced. Default: none."""
        return ()

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.input_model.model_json_schema()

    @property
    def output_schema(self) -> dict[str, Any]:
        return self.output_model.model_json_schema(mode="serialization", by_alias=True)

    def descriptor(self) -> dict[str, Any]:
        """Wire descriptor for tools/list."""
        return {
            "name": str(self.name),
            "title": self.title,
            "description": self.description,
            "inputSchema": self.input_schema,
            "outputSchema": self.output_schema,
            "requiredScopes": list(self.required_scopes),
        }

    def parse_arguments(self, arguments: Any) -> ToolInput:
        """Validate raw arguments. Raises pydantic.ValidationError."""
        return self.input_model.model_validate(arguments)

    @abstractmethod
    async def execute(self, arguments: Any, context: ToolContext) -> BaseModel:
        """Run the tool with validated arguments (an instance of input_model)."""
        ...
