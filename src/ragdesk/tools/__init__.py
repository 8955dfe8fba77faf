"""MCP-style tools: catalog, execution, request parsing, remote clients."""

from ragdesk.tools.models import (
    GithubConfig,
    PullRequestFile,
    PullRequestReviewBundle,
    PullRequestSummary,
    RepoRef,
    ServerState,
    ToolResult,
    ToolState,
    ToolSummary,
)
from ragdesk.tools.protocol import (
    TOOL_MARKER,
    ToolRequest,
    contains_tool_marker,
    extract_last_code_block,
    parse_tool_request,
)
from ragdesk.tools.registry import TASK_CREATION_TOOLS, ToolRegistry

__all__ = [
    "GithubConfig",
    "PullRequestFile",
    "PullRequestReviewBundle",
    "PullRequestSummary",
    "RepoRef",
    "ServerState",
    "TASK_CREATION_TOOLS",
    "TOOL_MARKER",
    "ToolRegistry",
    "ToolRequest",
    "ToolResult",
    "ToolState",
    "ToolSummary",
    "contains_tool_marker",
    "extract_last_code_block",
    "parse_tool_request",
]
