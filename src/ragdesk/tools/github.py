"""GitHub REST client (async httpx) and the text formatters used by GitHub tools.

Every request carries::

    Authorization: Bearer <token>
    Accept: application/vnd.github+json
    X-GitHub-Api-Version: 2022-11-28
    User-Agent: ragdesk

The unified diff is fetched from the pull request endpoint with
``Accept: application/vnd.github.v3.diff``. The token never appears in logs
or exception messages.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ragdesk.errors import BackendError
from ragdesk.tools.models import GithubConfig, PullRequestFile, PullRequestSummary

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
JSON_ACCEPT = "application/vnd.github+json"
DIFF_ACCEPT = "application/vnd.github.v3.diff"
USER_AGENT = "ragdesk"
REQUEST_TIMEOUT = 30.0


def api_url_for_host(host: str) -> str:
    """REST base URL for *host*: api.github.com for github.com, else /api/v3."""
    normalized = host.strip().rstrip("/")
    if normalized.lower() == "github.com":
        return DEFAULT_API_URL
    return f"https://{normalized}/api/v3"


class GithubClient:
    def __init__(self, timeout: float = REQUEST_TIMEOUT) -> None:
        self.timeout = timeout

    @staticmethod
    def _headers(config: GithubConfig, accept: str = JSON_ACCEPT) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {config.token}",
            "Accept": accept,
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": USER_AGENT,
        }

    async def _get(
        self,
        config: GithubConfig,
        path: str,
        params: dict[str, Any] | None = None,
        accept: str = JSON_ACCEPT,
    ) -> httpx.Response:
        url = f"{config.api_url.rstrip('/')}/repos/{config.owner}/{config.repo}{path}"
        logger.debug("GET %s params=%s", url, params)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    url, params=params, headers=self._headers(config, accept)
                )
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as exc:
            raise BackendError(
                f"GitHub API returned {exc.response.status_code} for {config.slug}{path}"
            ) from exc
        except httpx.HTTPError as exc:
            raise BackendError(f"GitHub API request failed for {config.slug}{path}: {exc}") from exc

    async def _get_json(
        self, config: GithubConfig, path: str, params: dict[str, Any] | None = None
    ) -> Any:
        response = await self._get(config, path, params)
        try:
            return response.json()
        except ValueError as exc:
            raise BackendError(f"GitHub API returned invalid JSON for {config.slug}{path}") from exc

    async def _get_list(
        self, config: GithubConfig, path: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        data = await self._get_json(config, path, params)
        if not isinstance(data, list):
            raise BackendError(f"GitHub API returned an unexpected payload for {config.slug}{path}")
        return [item for item in data if isinstance(item, dict)]

    # ------------------------------------------------------------------
    # Typed fetches
    # ------------------------------------------------------------------

    async def fetch_repository(self, config: GithubConfig) -> dict[str, Any]:
        data = await self._get_json(config, "")
        return data if isinstance(data, dict) else {}

    async def fetch_open_issues(self, config: GithubConfig, limit: int = 5) -> list[dict[str, Any]]:
        return await self._get_list(config, "/issues", {"state": "open", "per_page": limit})

    async def fetch_pull_requests(
        self, config: GithubConfig, state: str = "open", limit: int = 20
    ) -> list[dict[str, Any]]:
        return await self._get_list(config, "/pulls", {"state": state, "per_page": limit})

    async def fetch_open_pull_requests(
        self, config: GithubConfig, limit: int = 5
    ) -> list[dict[str, Any]]:
        return await self.fetch_pull_requests(config, state="open", limit=limit)

    async def fetch_pull_request(self, config: GithubConfig, number: int) -> dict[str, Any]:
        data = await self._get_json(config, f"/pulls/{number}")
        return data if isinstance(data, dict) else {}

    async def fetch_pull_request_diff(self, config: GithubConfig, number: int) -> str:
        response = await self._get(config, f"/pulls/{number}", accept=DIFF_ACCEPT)
        return response.text

    async def fetch_pull_request_files(
        self, config: GithubConfig, number: int, limit: int = 100
    ) -> list[PullRequestFile]:
        raw = await self._get_list(config, f"/pulls/{number}/files", {"per_page": limit})
        return [
            PullRequestFile(
                filename=str(item["filename"]),
                status=str(item.get("status") or ""),
                additions=int(item.get("additions") or 0),
                deletions=int(item.get("deletions") or 0),
                changes=int(item.get("changes") or 0),
                patch=item.get("patch"),
            )
            for item in raw
            if item.get("filename")
        ]

    async def fetch_latest_commits(self, config: GithubConfig, limit: int = 5) -> list[dict[str, Any]]:
        return await self._get_list(config, "/commits", {"per_page": limit})

    async def fetch_branches(self, config: GithubConfig, limit: int = 5) -> list[dict[str, Any]]:
        return await self._get_list(config, "/branches", {"per_page": limit})

    async def fetch_contributors(self, config: GithubConfig, limit: int = 5) -> list[dict[str, Any]]:
        return await self._get_list(config, "/contributors", {"per_page": limit})


# ------------------------------------------------------------------
# JSON → value objects
# ------------------------------------------------------------------


def _login(item: dict[str, Any]) -> str:
    user = item.get("user") or {}
    return user.get("login") or "unknown"


def _branch(ref: Any) -> str:
    if not isinstance(ref, dict):
        return "unknown"
    return ref.get("ref") or ref.get("label") or "unknown"


def summary_from_json(pr: dict[str, Any]) -> PullRequestSummary | None:
    """Build a PullRequestSummary; None when the payload has no number."""
    number = pr.get("number")
    if number is None:
        return None
    return PullRequestSummary(
        number=int(number),
        title=pr.get("title") or "",
        author=_login(pr),
        url=pr.get("html_url") or "",
        updated_at=pr.get("updated_at") or "",
        body=pr.get("body") or "",
        additions=int(pr.get("additions") or 0),
        deletions=int(pr.get("deletions") or 0),
        changed_files=int(pr.get("changed_files") or 0),
        base_branch=_branch(pr.get("base")),
        head_branch=_branch(pr.get("head")),
    )


# ------------------------------------------------------------------
# Tool output formatters
# ------------------------------------------------------------------


def format_repository(slug: str, repo: dict[str, Any]) -> str:
    lines = [f"Repository: {slug}"]
    for label, key in (
        ("Description", "description"),
        ("Language", "language"),
        ("Default branch", "default_branch"),
        ("Stars", "stargazers_count"),
        ("Open issues", "open_issues_count"),
        ("URL", "html_url"),
    ):
        value = repo.get(key)
        if value is not None:
            lines.append(f"{label}: {value}")
    return "\n".join(lines)


def format_issues(slug: str, issues: list[dict[str, Any]]) -> str:
    if not issues:
        return f"No open issues found for {slug}."
    lines = [f"Open issues for {slug}:"]
    lines.extend(
        f"#{i.get('number', '?')} {i.get('title') or ''} (by {_login(i)}) {i.get('html_url') or ''}".rstrip()
        for i in issues
    )
    return "\n".join(lines)


def format_pull_requests(slug: str, pulls: list[dict[str, Any]]) -> str:
    if not pulls:
        return f"No open pull requests found for {slug}."
    lines = [f"Open pull requests for {slug}:"]
    lines.extend(
        f"PR #{p.get('number', '?')} {p.get('title') or ''} (by {_login(p)}) {p.get('html_url') or ''}".rstrip()
        for p in pulls
    )
    return "\n".join(lines)


def format_commits(slug: str, commits: list[dict[str, Any]]) -> str:
    if not commits:
        return f"GitHub returned no recent commits for {slug}."
    lines = [f"Latest commits for {slug}:"]
    for c in commits:
        detail = c.get("commit") or {}
        message = (detail.get("message") or "").splitlines()
        title = message[0].strip() if message else ""
        author = (detail.get("author") or {}).get("name") or "unknown"
        sha = (c.get("sha") or "???????")[:7]
        lines.append(f"{sha} {title or '(no message)'} by {author} {c.get('html_url') or ''}".rstrip())
    return "\n".join(lines)


def format_branches(slug: str, branches: list[dict[str, Any]]) -> str:
    if not branches:
        return f"No branches returned for {slug}."
    lines = [f"Branches for {slug}:"]
    for b in branches:
        sha = ((b.get("commit") or {}).get("sha") or "???????")[:7]
        lines.append(f"{b.get('name') or 'unknown'} @ {sha}")
    return "\n".join(lines)


def format_contributors(slug: str, contributors: list[dict[str, Any]]) -> str:
    if not contributors:
        return f"GitHub returned no contributors for {slug}."
    lines = [f"Top contributors for {slug}:"]
    lines.extend(
        f"{c.get('login') or 'unknown'} ({c.get('contributions') or 0} commits) {c.get('html_url') or ''}".rstrip()
        for c in contributors
    )
    return "\n".join(lines)
