"""Shared pytest fixtures for gateway tests.

FakeGitHub stands in for the REST client: canned pull request, statuses and
reviews, with every call recorded so tests can assert on upstream traffic.
"""

from __future__ import annotations

from typing import Any

import pytest

from codex_gateway.config.settings import McpSettings
from codex_gateway.events.notifier import ActivityNotifier, DomainEvent
from codex_gateway.gateway.dispatch import McpDispatcher
from codex_gateway.github.client import (
    CombinedStatus,
    CommitStatus,
    MergeResponse,
    PullRequest,
    Ref,
    Review,
)
from codex_gateway.session.manager import SessionStore
from codex_gateway.tools.builtins import register_builtins
from codex_gateway.tools.registry import ToolRegistry

PROTOCOL_VERSION = "2025-06-18"


class FakeGitHub:
    """In-memory GitHubClient double."""

    def __init__(
        self,
        *,
        mergeable: bool | None = True,
        mergeable_state: str | None = "clean",
        statuses: list[tuple[str, str]] | None = None,
        review_states: list[str] | None = None,
        merge_response: MergeResponse | None = None,
    ) -> None:
        self.pull_request = PullRequest(
            number=1,
            state="open",
            mergeable=mergeable,
            mergeable_state=mergeable_state,
            head=Ref(ref="feature", sha="abc123"),
            base=Ref(ref="main", sha="def456"),
            html_url="https://github.com/octo/repo/pull/1",
        )
        self.status = CombinedStatus(
            state="success",
            statuses=[CommitStatus(context=c, state=s) for c, s in (statuses or [])],
        )
        self.reviews = [
            Review(id=i + 1, state=state, html_url=f"https://github.com/octo/repo/pull/1#r{i + 1}")
            for i, state in enumerate(["APPROVED"] if review_states is None else review_states)
        ]
        self.merge_response = merge_response or MergeResponse(merged=True, message="merged")
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def calls_to(self, name: str) -> list[dict[str, Any]]:
        return [kwargs for call, kwargs in self.calls if call == name]

    async def dispatch_workflow(self, **kwargs: Any) -> None:
        self.calls.append(("dispatch_workflow", kwargs))

    async def create_review(self, **kwargs: Any) -> Review:
        self.calls.append(("create_review", kwargs))
        return Review(id=42, state="APPROVED", html_url="https://github.com/octo/repo/pull/1#r42")

    async def get_pull_request(self, **kwargs: Any) -> PullRequest:
        self.calls.append(("get_pull_request", kwargs))
        return self.pull_request

    async def get_commit_status(self, **kwargs: Any) -> CombinedStatus:
        self.calls.append(("get_commit_status", kwargs))
        return self.status

    async def list_reviews(self, **kwargs: Any) -> list[Review]:
        self.calls.append(("list_reviews", kwargs))
        return self.reviews

    async def merge_pull_request(self, **kwargs: Any) -> MergeResponse:
        self.calls.append(("merge_pull_request", kwargs))
        return self.merge_response


class EventRecorder:
    def __init__(self, notifier: ActivityNotifier) -> None:
        self.events: list[DomainEvent] = []
        notifier.subscribe(self.events.append)

    @property
    def names(self) -> list[str]:
        return [str(event.name) for event in self.events]


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def notifier() -> ActivityNotifier:
    return ActivityNotifier()


@pytest.fixture
def recorder(notifier: ActivityNotifier) -> EventRecorder:
    return EventRecorder(notifier)


@pytest.fixture
def registry() -> ToolRegistry:
    reg = ToolRegistry()
    register_builtins(reg)
    return reg


@pytest.fixture
def github_factory() -> type[FakeGitHub]:
    """FakeGitHub class, for tests that need a non-default pull request."""
    return FakeGitHub


@pytest.fixture
def make_dispatcher(notifier: ActivityNotifier):
    """Factory: dispatcher over a fresh SessionStore and the shared notifier."""

    def _make(github: Any, *, enforce_scopes: bool = False) -> McpDispatcher:
        registry = ToolRegistry()
        register_builtins(registry)
        return McpDispatcher(
            mcp_settings=McpSettings(protocol_version=PROTOCOL_VERSION),
            registry=registry,
            sessions=SessionStore(),
            github=github,
            notifier=notifier,
            enforce_scopes=enforce_scopes,
        )

    return _make
