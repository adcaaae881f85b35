"""Pull request readiness gate.

Aggregates three independent facts (mergeability, commit statuses, review
approvals) into an OK/BLOCKED verdict. All three checks always run so the
caller sees every failing condition, and reasons are always ordered
mergeable -> status_checks -> approvals.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Annotated, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field

from codex_gateway.events.notifier import EventName
from codex_gateway.tools.base import ToolInput

if TYPE_CHECKING:
    from codex_gateway.events.notifier import ActivityNotifier
    from codex_gateway.github.client import CombinedStatus, GitHubClient, PullRequest, Review

logger = structlog.get_logger()

NonEmptyStr = Annotated[str, Field(min_length=1)]
PositiveInt = Annotated[int, Field(strict=True, gt=0)]


class ReasonKind(StrEnum):
    mergeable = "mergeable"
    status_checks = "status_checks"
    approvals = "approvals"


class PrGateInput(ToolInput):
    owner: NonEmptyStr
    repo: NonEmptyStr
    number: PositiveInt


class GateReason(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: ReasonKind = Field(serialization_alias="type")
    message: str


class GateResult(BaseModel):
    verdict: Literal["OK", "BLOCKED"]
    reasons: list[GateReason]
    mergeable_state: str | None = None


def compute_gate(
    pr: PullRequest, status: CombinedStatus, reviews: list[Review]
) -> GateResult:
    """Pure aggregation of the three gate facts. No I/O."""
    reasons: list[GateReason] = []

    # Only an explicit False blocks; None means GitHub has not computed it yet.
    if pr.mergeable is False:
        state = pr.mergeable_state if pr.mergeable_state is not None else "unknown"
        reasons.append(
            GateReason(
                kind=ReasonKind.mergeable,
                message=f"Pull request is not mergeable ({state})",
            )
        )
    elif pr.mergeable is None:
        logger.debug("gate_mergeable_unknown", number=pr.number, mergeable_state=pr.mergeable_state)

    failing = [item for item in status.statuses if item.state != "success"]
    if failing:
        listed = ", ".join(f"{item.context}:{item.state}" for item in failing)
        reasons.append(
            GateReason(kind=ReasonKind.status_checks, message=f"Failing status checks: {listed}")
        )

    approvals = sum(1 for review in reviews if review.state == "APPROVED")
    if approvals == 0:
        reasons.append(GateReason(kind=ReasonKind.approvals, message="No approving reviews"))

    return GateResult(
        verdict="OK" if not reasons else "BLOCKED",
        reasons=reasons,
        mergeable_state=pr.mergeable_state,
    )


async def evaluate_pull_request_gate(
    request: PrGateInput, github: GitHubClient, notifier: ActivityNotifier
) -> GateResult:
    """Fetch PR, head-commit statuses and reviews, then compute and announce the verdict."""
    pr = await github.get_pull_request(
        owner=request.owner, repo=request.repo, number=request.number
    )
    status = await github.get_commit_status(
        owner=request.owner, repo=request.repo, ref=pr.head.sha
    )
    reviews = await github.list_reviews(
        owner=request.owner, repo=request.repo, number=request.number
    )

    result = compute_gate(pr, status, reviews)
    logger.info(
        "pr_gated",
        owner=request.owner,
        repo=request.repo,
        number=request.number,
        verdict=result.verdict,
        reasons=[str(reason.kind) for reason in result.reasons],
    )

    notifier.emit(
        EventName.pr_gated,
        {
            "owner": request.owner,
            "repo": request.repo,
            "number": request.number,
            "verdict": result.verdict,
            "reasons": [reason.model_dump(mode="json", by_alias=True) for reason in result.reasons],
        },
        request.correlation_id,
    )
    return result
