"""Project-local trackers: tasks (read/write) and user issues (read-only)."""

from ragdesk.tracker.issues import IssueDetails, IssueRepository, UserIssue
from ragdesk.tracker.tasks import (
    Task,
    TaskDraft,
    TaskPriority,
    TaskTracker,
    generate_task_id,
    normalize_payload,
    parse_draft_list_payload,
    parse_draft_payload,
)

__all__ = [
    "IssueDetails",
    "IssueRepository",
    "Task",
    "TaskDraft",
    "TaskPriority",
    "TaskTracker",
    "UserIssue",
    "generate_task_id",
    "normalize_payload",
    "parse_draft_list_payload",
    "parse_draft_payload",
]
