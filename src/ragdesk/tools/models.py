"""Tool catalog types and remote-repository value objects."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path

# (payload, project_root) -> text; raises on failure
ToolAction = Callable[[str | None, Path | None], Awaitable[str]]


@dataclass(frozen=True)
class ToolDefinition:
    id: str
    server_id: str
    label: str
    description: str
    enabled_by_default: bool
    invoke: ToolAction


@dataclass(frozen=True)
class ServerDefinition:
    id: str
    name: str
    description: str
    online: bool
    tools: tuple[ToolDefinition, ...] = ()


@dataclass(frozen=True)
class ToolState:
    id: str
    server_id: str
    label: str
    description: str
    enabled: bool


@dataclass(frozen=True)
class ServerState:
    id: str
    name: str
    description: str
    online: bool
    tools: tuple[ToolState, ...] = ()


@dataclass(frozen=True)
class ToolSummary:
    """One enabled tool as listed to the model."""

    id: str
    server_name: str
    description: str


@dataclass(frozen=True)
class ToolResult:
    """Outcome of ToolRegistry.run_tool().

    Exactly one of *output* (ok=True) or *error* (ok=False) is meaningful.
    """

    tool_id: str
    ok: bool
    output: str = ""
    error: str = ""

    @property
    def text(self) -> str:
        return self.output if self.ok else self.error


@dataclass(frozen=True)
class RepoRef:
    host: str
    owner: str
    repo: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class GithubConfig:
    """Fully resolved repository + credentials for GitHub REST calls."""

    token: str
    owner: str
    repo: str
    api_url: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __repr__(self) -> str:
        return (
            f"GithubConfig(owner={self.owner!r}, repo={self.repo!r}, "
            f"api_url={self.api_url!r}, token='***')"
        )


@dataclass(frozen=True)
class PullRequestSummary:
    number: int
    title: str
    author: str
    url: str
    updated_at: str
    body: str
    additions: int
    deletions: int
    changed_files: int
    base_branch: str
    head_branch: str


@dataclass(frozen=True)
class PullRequestFile:
    filename: str
    status: str
    additions: int
    deletions: int
    changes: int
    patch: str | None = None


@dataclass(frozen=True)
class PullRequestReviewBundle:
    summary: PullRequestSummary
    files: list[PullRequestFile] = field(default_factory=list)
    diff: str = ""
