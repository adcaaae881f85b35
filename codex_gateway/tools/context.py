from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from codex_gateway.events.notifier import ActivityNotifier
    from codex_gateway.github.client import GitHubClient


@dataclass(frozen=True)
class ToolContext:
    """Runtime collaborators injected into tool execution by the dispatcher.

    session_id: calling session (for audit/logging only).
    """

    github: GitHubClient
    notifier: ActivityNotifier
    session_id: str
