"""Local git helper: current branch and origin-remote detection.

Security requirements:
- shell=False always (argv list via create_subprocess_exec).
- Remote URLs are scrubbed of credentials before they reach logs or errors.
"""

from __future__ import annotations

import asyncio
import logging
import re
import urllib.parse
from pathlib import Path

from ragdesk.errors import GitError
from ragdesk.tools.models import RepoRef

logger = logging.getLogger(__name__)

_REMOTE_SCHEMES = {"https", "http", "ssh", "git", "git+ssh"}
# user@host:owner/repo  (no scheme)
_SCP_RE = re.compile(r"^(?:[^@/\s]+@)?(?P<host>[^:/\s]+):(?P<path>\S+)$")
_CRED_RE = re.compile(r"(\w+://)([^@/\s]+@)")


def _sanitise_url(url: str) -> str:
    """Remove embedded credentials from a URL for safe logging / error messages."""
    return _CRED_RE.sub(r"\1***@", url)


def parse_remote_url(url: str) -> RepoRef | None:
    """Parse a GitHub remote URL into a RepoRef.

    Recognised shapes::

        https://host/owner/repo(.git)
        ssh://[user@]host[:port]/owner/repo(.git)
        git://host/owner/repo(.git)
        user@host:owner/repo(.git)

    Returns None for anything else, or when the host does not contain "github".
    """
    text = url.strip()
    if not text:
        return None

    if "://" in text:
        parsed = urllib.parse.urlparse(text)
        if parsed.scheme.lower() not in _REMOTE_SCHEMES:
            return None
        host = parsed.hostname or ""
        path = parsed.path
    else:
        match = _SCP_RE.match(text)
        if match is None:
            return None
        host = match.group("host")
        path = match.group("path")

    parts = [p for p in path.strip("/").split("/") if p]
    if len(parts) < 2 or "github" not in host.lower():
        return None
    owner, repo = parts[-2], parts[-1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not owner or not repo:
        return None
    return RepoRef(host=host, owner=owner, repo=repo)


class GitClient:
    def __init__(self, executable: str = "git") -> None:
        self.executable = executable

    async def _run(self, repository: Path, *args: str) -> str:
        cwd = repository if repository.is_dir() else repository.parent
        try:
            process = await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                cwd=str(cwd),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            raise GitError(f"Cannot run {self.executable}: {exc}") from exc
        stdout, _ = await process.communicate()
        output = stdout.decode("utf-8", errors="replace").strip()
        if process.returncode != 0:
            detail = _sanitise_url(output) or f"git exited with code {process.returncode}"
            raise GitError(detail)
        return output

    async def current_branch(self, repository: Path) -> str:
        """Return the checked-out branch name (``HEAD`` when detached).

        Raises:
            GitError: If *repository* is not a git work tree.
        """
        return await self._run(repository, "rev-parse", "--abbrev-ref", "HEAD")

    async def remote_url(self, repository: Path, remote: str = "origin") -> str:
        return await self._run(repository, "remote", "get-url", remote)

    async def detect_remote_repo(self, repository: Path) -> RepoRef | None:
        """RepoRef for the ``origin`` remote, or None if absent or not on GitHub."""
        try:
            url = await self.remote_url(repository)
        except GitError as exc:
            logger.debug("No usable git remote in %s: %s", repository, exc)
            return None
        ref = parse_remote_url(url)
        if ref is None:
            logger.debug("Remote %s is not a GitHub repository", _sanitise_url(url))
        return ref
