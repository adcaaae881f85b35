"""Gated merge: never calls the upstream merge unless the gate passes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

import structlog
from pydantic import BaseModel

from codex_gateway.events.notifier import EventName
from codex_gateway.pulls.gate import PrGateInput, evaluate_pull_request_gate

if TYPE_CHECKING:
    from codex_gateway.events.notifier import ActivityNotifier
    from codex_gateway.github.client import GitHubClient

logger = structlog.get_logger()


class PrMergeInput(PrGateInput):
    method: Literal["merge", "squash", "rebase"] | None = None


class MergeResult(BaseModel):
    merged: bool
    message: str


async def merge_pull_request(
    request: PrMergeInput, github: GitHubClient, notifier: ActivityNotifier
) -> MergeResult:
    """Gate, then merge.

    A BLOCKED gate or an upstream ``merged: false`` is a negative result, not
    an error. GitHub/transport failures propagate to the caller.
    """
    gate = await evaluate_pull_request_gate(request, github, notifier)
    if gate.verdict != "OK":
        return MergeResult(
            merged=False,
            message="PR blocked: " + "; ".join(reason.message for reason in gate.reasons),
        )

    method = request.method or "merge"
    response = await github.merge_pull_request(
        owner=request.owner, repo=request.repo, number=request.number, method=method
    )
    if not response.merged:
        logger.info(
            "pr_merge_declined",
            owner=request.owner,
            repo=request.repo,
            number=request.number,
            message=response.message,
        )
        return MergeResult(merged=False, message=response.message)

    notifier.emit(
        EventName.pr_merged,
        {
            "owner": request.owner,
            "repo": request.repo,
            "number": request.number,
            "method": method,
        },
        request.correlation_id,
    )
    return MergeResult(merged=True, message=response.message)
