"""pr_review: submit a pull request review with optional inline comments."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Literal

from pydantic import BaseModel, Field

from codex_gateway.events.notifier import EventName
from codex_gateway.tools.base import BaseTool, ToolInput, ToolName

if TYPE_CHECKING:
    from codex_gateway.tools.context import ToolContext

NonEmptyStr = Annotated[str, Field(min_length=1)]
PositiveInt = Annotated[int, Field(strict=True, gt=0)]


class InlineComment(BaseModel):
    path: NonEmptyStr
    body: NonEmptyStr
    position: PositiveInt | None = None
    line: PositiveInt | None = None
    side: Literal["LEFT", "RIGHT"] | None = None


class PrReviewInput(ToolInput):
    owner: NonEmptyStr
    repo: NonEmptyStr
    number: PositiveInt
    event: Literal["COMMENT", "APPROVE", "REQUEST_CHANGES"]
    body: str | None = None
    comments: list[InlineComment] | None = None


class PrReviewOutput(BaseModel):
    review_id: int
    html_url: str


class PrReviewTool(BaseTool):
    @property
    def name(self) -> ToolName:
        return ToolName.pr_review

    @property
    def title(self) -> str:
        return "Submit a pull request review"

    @property
    def description(self) -> str:
        return "Create a review on a pull request with optional inline comments"

    @property
    def required_scopes(self) -> tuple[str, ...]:
        return ("mcp.pr.review",)

    @property
    def input_model(self) -> type[PrReviewInput]:
        return PrReviewInput

    @property
    def output_model(self) -> type[PrReviewOutput]:
        return PrReviewOutput

    async def execute(self, arguments: PrReviewInput, context: ToolContext) -> PrReviewOutput:
        comments = None
        if arguments.comments is not None:
            # GitHub rejects explicit nulls for position/line/side
            comments = [comment.model_dump(exclude_none=True) for comment in arguments.comments]

        review = await context.github.create_review(
            owner=arguments.owner,
            repo=arguments.repo,
            number=arguments.number,
            event=arguments.event,
            body=arguments.body,
            comments=comments,
        )

        context.notifier.emit(
            EventName.pr_reviewed,
            {
                "owner": arguments.owner,
                "repo": arguments.repo,
                "number": arguments.number,
                "review_id": review.id,
                "state": review.state,
            },
            arguments.correlation_id,
        )
        return PrReviewOutput(review_id=review.id, html_url=review.html_url)
