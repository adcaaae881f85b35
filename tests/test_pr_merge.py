"""Tests for the gated merge orchestrator."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from codex_gateway.github.client import MergeResponse
from codex_gateway.infra.errors import GitHubError
from codex_gateway.pulls.merge import PrMergeInput, merge_pull_request


def _request(**overrides) -> PrMergeInput:
    return PrMergeInput(owner="octo", repo="repo", number=1, **overrides)


class TestBlocked:
    @pytest.mark.asyncio
    async def test_blocked_gate_never_calls_merge(self, github_factory, notifier) -> None:
        github = github_factory(mergeable=False, statuses=[("ci", "failure")], review_states=[])

        result = await merge_pull_request(_request(), github, notifier)

        assert result.merged is False
        assert result.message == (
            "PR blocked: Pull request is not mergeable (clean); "
            "Failing status checks: ci:failure; No approving reviews"
        )
        assert github.calls_to("merge_pull_request") == []

    @pytest.mark.asyncio
    async def test_blocked_emits_gate_event_only(self, github_factory, notifier, recorder) -> None:
        github = github_factory(review_states=[])

        await merge_pull_request(_request(), github, notifier)

        assert recorder.names == ["pr.gated"]


class TestMerged:
    @pytest.mark.asyncio
    async def test_default_method_is_merge(self, fake_github, notifier, recorder) -> None:
        result = await merge_pull_request(_request(correlation_id="c-9"), fake_github, notifier)

        assert result.merged is True
        assert result.message == "merged"
        assert fake_github.calls_to("merge_pull_request") == [
            {"owner": "octo", "repo": "repo", "number": 1, "method": "merge"}
        ]
        assert recorder.names == ["pr.gated", "pr.merged"]
        merged_event = recorder.events[1]
        assert merged_event.data["method"] == "merge"
        assert merged_event.correlation_id == "c-9"

    @pytest.mark.asyncio
    async def test_requested_method_is_forwarded(self, fake_github, notifier) -> None:
        await merge_pull_request(_request(method="squash"), fake_github, notifier)

        assert fake_github.calls_to("merge_pull_request")[0]["method"] == "squash"

    @pytest.mark.asyncio
    async def test_upstream_declined_merge_is_negative_result(
        self, github_factory, notifier, recorder
    ) -> None:
        github = github_factory(
            merge_response=MergeResponse(merged=False, message="Head branch was modified")
        )

        result = await merge_pull_request(_request(), github, notifier)

        assert result.merged is False
        assert result.message == "Head branch was modified"
        assert "pr.merged" not in recorder.names

    @pytest.mark.asyncio
    async def test_upstream_error_propagates(self, fake_github, notifier) -> None:
        fake_github.merge_pull_request = AsyncMock(
            side_effect=GitHubError(405, {"message": "Pull Request is not mergeable"})
        )

        with pytest.raises(GitHubError) as exc_info:
            await merge_pull_request(_request(), fake_github, notifier)
        assert exc_info.value.status == 405


class TestInput:
    def test_unknown_method_rejected(self) -> None:
        with pytest.raises(ValueError):
            _request(method="fast-forward")
