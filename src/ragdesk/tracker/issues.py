"""Read-only access to ``issues/user_issues.json`` in the selected project.

File format (JSON array)::

    [{"userName": "alice",
      "issue": {"issueId": "ISS-1", "issueNumber": 1,
                "subject": "Login fails", "issue": "Steps to reproduce ..."}}]
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ragdesk.errors import PersistenceError
from ragdesk.tracker.storage import normalize_root, read_json_array, require_root

ISSUES_RELATIVE_PATH = Path("issues") / "user_issues.json"


@dataclass(frozen=True)
class IssueDetails:
    issue_id: str
    issue_number: int
    subject: str
    description: str


@dataclass(frozen=True)
class UserIssue:
    user_name: str
    issue: IssueDetails

    @classmethod
    def from_dict(cls, data: Any) -> UserIssue:
        """Build from the persisted JSON shape. Raises KeyError/TypeError/ValueError."""
        details = data["issue"]
        return cls(
            user_name=str(data["userName"]),
            issue=IssueDetails(
                issue_id=str(details["issueId"]),
                issue_number=int(details["issueNumber"]),
                subject=str(details["subject"]),
                description=str(details["issue"]),
            ),
        )


class IssueRepository:
    def issues_file(self, project_root: Path | None) -> Path | None:
        root = normalize_root(project_root)
        return root / ISSUES_RELATIVE_PATH if root is not None else None

    async def load_issues(self, project_root: Path | None) -> list[UserIssue]:
        """Load all user issues for *project_root*.

        Raises:
            ConfigurationError: No project selected.
            PersistenceError: File missing, unreadable, or malformed.
        """
        path = require_root(project_root) / ISSUES_RELATIVE_PATH
        return await asyncio.to_thread(self._read, path)

    def _read(self, path: Path) -> list[UserIssue]:
        raw = read_json_array(path, "Issues")
        try:
            return [UserIssue.from_dict(item) for item in raw]
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Failed to parse user issues JSON: {exc!r}", path) from exc

    @staticmethod
    def format_for_tool(issues: list[UserIssue]) -> str:
        if not issues:
            return f"No user issues recorded in {ISSUES_RELATIVE_PATH.as_posix()}."
        lines = ["User issues:"]
        for index, item in enumerate(issues, start=1):
            lines.append(
                f"{index}. {item.issue.subject} "
                f"(ID={item.issue.issue_id}, #{item.issue.issue_number})"
            )
            lines.append(f"   Reporter: {item.user_name}")
            lines.append(f"   Details: {item.issue.description.strip()}")
        return "\n".join(lines)
