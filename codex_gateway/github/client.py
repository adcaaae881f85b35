"""Thin async wrapper over the GitHub REST API.

One request per call: no retries, no pagination beyond the first page.
Non-2xx responses raise GitHubError carrying the status and decoded body.
"""

from __future__ import annotations

from typing import Any, Literal

import httpx
import structlog
from pydantic import BaseModel, ConfigDict

from codex_gateway.config.settings import GitHubSettings
from codex_gateway.infra.errors import GitHubConfigError, GitHubError

logger = structlog.get_logger()

MergeMethod = Literal["merge", "squash", "rebase"]


class _GitHubModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Ref(_GitHubModel):
    ref: str | None = None
    sha: str


class PullRequest(_GitHubModel):
    number: int
    state: str
    mergeable: bool | None = None
    mergeable_state: str | None = None
    head: Ref
    base: Ref | None = None
    html_url: str | None = None


class CommitStatus(_GitHubModel):
    context: str
    state: str


class CombinedStatus(_GitHubModel):
    state: str
    statuses: list[CommitStatus] = []


class Review(_GitHubModel):
    id: int
    state: str | None = None
    html_url: str
    body: str | None = None


class MergeResponse(_GitHubModel):
    merged: bool
    message: str = ""
    sha: str | None = None


def _decode_body(response: httpx.Response) -> Any:
    """JSON body, raw text for non-JSON error pages, None when empty."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class GitHubClient:
    """Async GitHub REST client used by the tool handlers."""

    def __init__(
        self,
        settings: GitHubSettings,
        *,
        user_agent: str = "codex-mcp-gateway/0.1.0",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.api_base.rstrip("/"),
            timeout=settings.timeout_seconds,
            headers={
                "Accept": "application/vnd.github+json",
                "User-Agent": user_agent,
            },
            transport=transport,
            follow_redirects=True,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _auth_headers(self) -> dict[str, str]:
        if not self._settings.token:
            raise GitHubConfigError()
        return {"Authorization": f"Bearer {self._settings.token}"}

    async def _request(
        self, method: str, path: str, *, json: dict[str, Any] | None = None
    ) -> Any:
        response = await self._client.request(
            method, path, json=json, headers=self._auth_headers()
        )
        data = _decode_body(response)
        if response.is_error:
            logger.warning(
                "github_request_failed",
                method=method,
                path=path,
                status=response.status_code,
            )
            raise GitHubError(response.status_code, data)
        return data

    async def dispatch_workflow(
        self,
        *,
        owner: str,
        repo: str,
        workflow: str,
        ref: str,
        inputs: dict[str, str] | None = None,
    ) -> None:
        body: dict[str, Any] = {"ref": ref}
        if inputs is not None:
            body["inputs"] = inputs
        await self._request(
            "POST",
            f"/repos/{owner}/{repo}/actions/workflows/{workflow}/dispatches",
            json=body,
        )

    async def create_review(
        self,
        *,
        owner: str,
        repo: str,
        number: int,
        event: str,
        body: str | None = None,
        comments: list[dict[str, Any]] | None = None,
    ) -> Review:
        payload: dict[str, Any] = {"event": event}
        if body is not None:
            payload["body"] = body
        if comments is not None:
            payload["comments"] = comments
        data = await self._request(
            "POST", f"/repos/{owner}/{repo}/pulls/{number}/reviews", json=payload
        )
        return Review.model_validate(data)

    async def get_pull_request(self, *, owner: str, repo: str, number: int) -> PullRequest:
        data = await self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}")
        return PullRequest.model_validate(data)

    async def get_commit_status(self, *, owner: str, repo: str, ref: str) -> CombinedStatus:
        """Combined status for a commit (legacy statuses API, not check runs)."""
        data = await self._request("GET", f"/repos/{owner}/{repo}/commits/{ref}/status")
        return CombinedStatus.model_validate(data)

    async def list_reviews(self, *, owner: str, repo: str, number: int) -> list[Review]:
        data = await self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}/reviews")
        return [Review.model_validate(item) for item in data or []]

    async def merge_pull_request(
        self,
        *,
        owner: str,
        repo: str,
        number: int,
        method: MergeMethod = "merge",
    ) -> MergeResponse:
        data = await self._request(
            "PUT",
            f"/repos/{owner}/{repo}/pulls/{number}/merge",
            json={"merge_method": method},
        )
        return MergeResponse.model_validate(data)
