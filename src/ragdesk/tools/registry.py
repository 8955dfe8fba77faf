"""Tool catalog + executor.

The catalog is rebuilt on every call from two groups:

  workspace  always present; online only when a project is selected
  github     present only when a token is set and the repository resolves
             (explicit owner+repo, else the project's ``origin`` remote)

A tool's effective enabled flag is the persisted user override, else its
default. run_tool() never raises for protocol problems (unknown id, disabled
tool, bad payload, failing action): it returns ToolResult(ok=False) with a
message the model can act on.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ragdesk.config import GithubSettings
from ragdesk.errors import ConfigurationError, RagdeskError
from ragdesk.log import snippet
from ragdesk.settings import SettingsStore
from ragdesk.tools import github as gh
from ragdesk.tools.git import GitClient
from ragdesk.tools.github import GithubClient
from ragdesk.tools.models import (
    GithubConfig,
    PullRequestReviewBundle,
    PullRequestSummary,
    ServerDefinition,
    ServerState,
    ToolDefinition,
    ToolResult,
    ToolState,
    ToolSummary,
)
from ragdesk.tracker.issues import IssueRepository
from ragdesk.tracker.tasks import TaskTracker, parse_draft_list_payload, parse_draft_payload

logger = logging.getLogger(__name__)

WORKSPACE_SERVER = "workspace"
GITHUB_SERVER = "github"
TASK_CREATION_TOOLS: frozenset[str] = frozenset(
    ["workspace-create-task", "workspace-create-tasks-batch"]
)


class ToolRegistry:
    def __init__(
        self,
        settings: SettingsStore,
        git: GitClient,
        github: GithubClient,
        issues: IssueRepository,
        tasks: TaskTracker,
        github_settings: GithubSettings | None = None,
    ) -> None:
        self.settings = settings
        self.git = git
        self.github = github
        self.issues = issues
        self.tasks = tasks
        self.github_settings = github_settings

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def servers(self, project_root: Path | None) -> list[ServerState]:
        overrides = self.settings.tool_overrides()
        return [
            ServerState(
                id=server.id,
                name=server.name,
                description=server.description,
                online=server.online,
                tools=tuple(
                    ToolState(
                        id=tool.id,
                        server_id=server.id,
                        label=tool.label,
                        description=tool.description,
                        enabled=overrides.get(tool.id, tool.enabled_by_default),
                    )
                    for tool in server.tools
                ),
            )
            for server in await self._build_servers(project_root)
        ]

    async def enabled_tools(self, project_root: Path | None) -> list[ToolSummary]:
        return [
            ToolSummary(id=tool.id, server_name=server.name, description=tool.description)
            for server in await self.servers(project_root)
            for tool in server.tools
            if tool.enabled
        ]

    async def set_tool_enabled(
        self, tool_id: str, enabled: bool, project_root: Path | None
    ) -> list[ServerState]:
        self.settings.set_tool_enabled(tool_id, enabled)
        return await self.servers(project_root)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run_tool(
        self, tool_id: str, payload: str | None, project_root: Path | None
    ) -> ToolResult:
        logger.info("Executing tool %s (payload=%s)", tool_id, payload is not None)
        wanted = tool_id.lower()
        definition = next(
            (
                tool
                for server in await self._build_servers(project_root)
                for tool in server.tools
                if tool.id.lower() == wanted
            ),
            None,
        )
        if definition is None:
            return ToolResult(tool_id=tool_id, ok=False, error=f"Unknown MCP tool: {tool_id}")

        enabled = self.settings.tool_overrides().get(definition.id, definition.enabled_by_default)
        if not enabled:
            return ToolResult(
                tool_id=definition.id, ok=False, error=f"Tool {tool_id} is disabled by the user"
            )

        try:
            output = await definition.invoke(payload, project_root)
        except RagdeskError as exc:
            logger.info("Tool %s failed: %s", definition.id, exc)
            return ToolResult(tool_id=definition.id, ok=False, error=str(exc) or "tool error")
        except Exception as exc:
            logger.exception("Tool %s handler error: %s", definition.id, exc)
            return ToolResult(
                tool_id=definition.id, ok=False, error=str(exc) or type(exc).__name__
            )
        logger.info("Tool %s succeeded (%s)", definition.id, snippet(output, 120))
        return ToolResult(tool_id=definition.id, ok=True, output=output)

    # ------------------------------------------------------------------
    # Direct GitHub access (review assembler, poller)
    # ------------------------------------------------------------------

    async def list_pull_requests(
        self, project_root: Path | None, limit: int = 10
    ) -> list[PullRequestSummary]:
        """Open PRs with detail (additions, updated_at, ...) for each.

        Raises:
            ConfigurationError: GitHub is not configured or the repo is unknown.
            BackendError: The PR listing failed.
        """
        config = await self._require_github(project_root)
        summaries: list[PullRequestSummary] = []
        for pr in await self.github.fetch_pull_requests(config, limit=limit):
            number = pr.get("number")
            if number is None:
                continue
            detailed = pr
            try:
                detailed = await self.github.fetch_pull_request(config, int(number))
            except RagdeskError as exc:
                logger.warning("Failed to fetch PR detail for #%s: %s", number, exc)
            summary = gh.summary_from_json(detailed) or gh.summary_from_json(pr)
            if summary is not None:
                summaries.append(summary)
        return summaries

    async def pull_request_review_bundle(
        self, project_root: Path | None, number: int
    ) -> PullRequestReviewBundle:
        config = await self._require_github(project_root)
        summary = gh.summary_from_json(await self.github.fetch_pull_request(config, number))
        if summary is None:
            raise ConfigurationError(f"Pull request {number} is missing required metadata.")
        files = await self.github.fetch_pull_request_files(config, number)
        diff = await self.github.fetch_pull_request_diff(config, number)
        return PullRequestReviewBundle(summary=summary, files=files, diff=diff)

    async def resolve_github(self, project_root: Path | None) -> GithubConfig | None:
        """Resolve credentials + repository, or None if GitHub is unavailable."""
        settings = self.github_settings
        if settings is None:
            logger.debug("No GitHub token configured; skipping GitHub tools")
            return None
        if settings.owner and settings.repo:
            return GithubConfig(
                token=settings.token,
                owner=settings.owner,
                repo=settings.repo,
                api_url=settings.api_url or gh.DEFAULT_API_URL,
            )
        if project_root is None:
            logger.debug("Cannot derive GitHub repo without a project path")
            return None
        ref = await self.git.detect_remote_repo(project_root)
        if ref is None:
            return None
        logger.debug("Detected GitHub remote %s/%s", ref.host, ref.slug)
        return GithubConfig(
            token=settings.token,
            owner=ref.owner,
            repo=ref.repo,
            api_url=settings.api_url or gh.api_url_for_host(ref.host),
        )

    async def _require_github(self, project_root: Path | None) -> GithubConfig:
        if self.github_settings is None:
            raise ConfigurationError("GitHub MCP is not configured.")
        config = await self.resolve_github(project_root)
        if config is None:
            raise ConfigurationError("Unable to detect GitHub repository for the selected project.")
        return config

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    async def _build_servers(self, project_root: Path | None) -> list[ServerDefinition]:
        servers = [self._workspace_server(project_root)]
        config = await self.resolve_github(project_root)
        if config is not None:
            servers.append(self._github_server(config))
        return servers

    def _workspace_server(self, project_root: Path | None) -> ServerDefinition:
        async def user_issues(payload: str | None, root: Path | None) -> str:
            return self.issues.format_for_tool(await self.issues.load_issues(root))

        async def list_tasks(payload: str | None, root: Path | None) -> str:
            return self.tasks.format_for_tool(await self.tasks.load_tasks(root))

        async def create_task(payload: str | None, root: Path | None) -> str:
            task = await self.tasks.create_task(root, parse_draft_payload(payload))
            return (
                f"Created task {task.id} [{task.priority.value}] {task.title} "
                f"in {self.tasks.tasks_file(root)}"
            )

        async def create_tasks(payload: str | None, root: Path | None) -> str:
            created = await self.tasks.create_tasks(root, parse_draft_list_payload(payload))
            lines = [f"Created {len(created)} tasks in {self.tasks.tasks_file(root)}:"]
            lines.extend(f"- {t.id} [{t.priority.value}] {t.title}" for t in created)
            return "\n".join(lines)

        def tool(tool_id: str, label: str, description: str, action) -> ToolDefinition:
            return ToolDefinition(
                id=tool_id,
                server_id=WORKSPACE_SERVER,
                label=label,
                description=description,
                enabled_by_default=True,
                invoke=action,
            )

        return ServerDefinition(
            id=WORKSPACE_SERVER,
            name="Workspace",
            description="Local tools for the currently selected project.",
            online=project_root is not None,
            tools=(
                tool(
                    "workspace-user-issues", "User issues",
                    "Reads issues/user_issues.json from the selected project.", user_issues,
                ),
                tool(
                    "workspace-tasks", "Task tracker",
                    "Reads task_tracker/tasks.json from the selected project.", list_tasks,
                ),
                tool(
                    "workspace-create-task", "Create task",
                    "Appends one task to task_tracker/tasks.json. Payload: "
                    '{"title","description","priority","requirements"}.', create_task,
                ),
                tool(
                    "workspace-create-tasks-batch", "Create tasks (batch)",
                    "Appends several tasks at once. Payload: a JSON array of task "
                    'objects or {"tasks": [...]}.', create_tasks,
                ),
            ),
        )

    def _github_server(self, config: GithubConfig) -> ServerDefinition:
        slug = config.slug
        client = self.github

        async def overview(payload: str | None, root: Path | None) -> str:
            return gh.format_repository(slug, await client.fetch_repository(config))

        async def open_issues(payload: str | None, root: Path | None) -> str:
            return gh.format_issues(slug, await client.fetch_open_issues(config))

        async def open_prs(payload: str | None, root: Path | None) -> str:
            return gh.format_pull_requests(slug, await client.fetch_open_pull_requests(config))

        async def commits(payload: str | None, root: Path | None) -> str:
            return gh.format_commits(slug, await client.fetch_latest_commits(config))

        async def branches(payload: str | None, root: Path | None) -> str:
            return gh.format_branches(slug, await client.fetch_branches(config))

        async def contributors(payload: str | None, root: Path | None) -> str:
            return gh.format_contributors(slug, await client.fetch_contributors(config))

        specs = [
            ("github-repo-overview", "Repository overview",
             f"Summarizes description, language, branch, and counters for {slug}.", True, overview),
            ("github-open-issues", "Open issues",
             f"Lists the latest open GitHub issues for {slug}.", False, open_issues),
            ("github-open-prs", "Open pull requests",
             f"Lists the latest open pull requests for {slug}.", False, open_prs),
            ("github-latest-commits", "Recent commits",
             f"Shows the latest commits merged into {slug}.", False, commits),
            ("github-branches", "Latest branches",
             f"Lists the most recently updated branches for {slug}.", False, branches),
            ("github-top-contributors", "Top contributors",
             f"Lists the most active contributors for {slug}.", False, contributors),
        ]
        return ServerDefinition(
            id=GITHUB_SERVER,
            name="GitHub",
            description=f"Model Context Protocol bridge for {slug} via the GitHub API.",
            online=True,
            tools=tuple(
                ToolDefinition(
                    id=tool_id,
                    server_id=GITHUB_SERVER,
                    label=label,
                    description=description,
                    enabled_by_default=default,
                    invoke=action,
                )
                for tool_id, label, description, default, action in specs
            ),
        )
