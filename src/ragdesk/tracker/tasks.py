"""Task tracker: ``task_tracker/tasks.json`` + parsing of model-supplied task drafts.

The tracker file is a JSON array of tasks; creation appends, deletion removes
one entry, and every write rewrites the whole file atomically. Writes through
one TaskTracker instance are serialized with an asyncio.Lock; separate
processes writing the same file still race (last writer wins).

Draft payloads arrive from the model, often wrapped in a ``` fence::

    {"title": "Fix login", "description": "...", "priority": "HIGH",
     "requirements": ["Reproduce", "Add test"]}

Batch payloads are either an array of such objects or ``{"tasks": [...]}``.
"""

from __future__ import annotations

import asyncio
import json
import re
import time
import uuid
from collections.abc import Collection
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from ragdesk.atomic import atomic_write_text
from ragdesk.errors import PayloadError, PersistenceError
from ragdesk.tracker.storage import normalize_root, read_json_array, require_root

TASKS_RELATIVE_PATH = Path("task_tracker") / "tasks.json"

_SLUG_RE = re.compile(r"[^a-z0-9]+")
_SLUG_MAX = 24
_FENCE = "```"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @classmethod
    def parse(cls, value: Any) -> TaskPriority:
        """Case-insensitive lookup; None means MEDIUM."""
        if value is None:
            return cls.MEDIUM
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            allowed = ", ".join(p.value for p in cls)
            raise PayloadError(
                f"Unknown task priority '{value}'. Use one of: {allowed}."
            ) from None


@dataclass
class TaskDraft:
    title: str
    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    requirements: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> TaskDraft:
        if not isinstance(data, dict):
            raise PayloadError("Each task must be a JSON object.")
        if "title" not in data or data["title"] is None:
            raise PayloadError("Task payload is missing the required 'title' field.")
        requirements = data.get("requirements") or []
        if not isinstance(requirements, list):
            raise PayloadError("Task 'requirements' must be an array of strings.")
        return cls(
            title=str(data["title"]),
            description=str(data.get("description") or ""),
            priority=TaskPriority.parse(data.get("priority")),
            requirements=[str(r) for r in requirements if r is not None],
        )


@dataclass
class Task:
    id: str
    title: str
    description: str
    priority: TaskPriority
    requirements: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["priority"] = self.priority.value
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Task:
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            description=str(data.get("description") or ""),
            priority=TaskPriority.parse(data.get("priority")),
            requirements=[str(r) for r in data.get("requirements") or []],
        )


# ------------------------------------------------------------------
# Draft payload parsing
# ------------------------------------------------------------------


def normalize_payload(raw: str) -> str:
    """Strip a surrounding ``` fence (opening line and closing fence) from *raw*."""
    trimmed = raw.strip()
    if not trimmed.startswith(_FENCE):
        return trimmed
    fence_end = trimmed.find("\n")
    if fence_end <= 0:
        return trimmed
    body = trimmed[fence_end + 1:]
    closing = body.rfind(_FENCE)
    if closing >= 0:
        return body[:closing].strip()
    return body.strip()


def _load_json(payload: str | None, missing: str, empty: str) -> Any:
    if payload is None or not payload.strip():
        raise PayloadError(missing)
    normalized = normalize_payload(payload)
    if not normalized:
        raise PayloadError(empty)
    try:
        return json.loads(normalized)
    except json.JSONDecodeError as exc:
        raise PayloadError(f"Task payload is not valid JSON: {exc}") from exc


def parse_draft_payload(payload: str | None) -> TaskDraft:
    """Parse a single-task payload.

    Raises:
        PayloadError: Missing/empty payload, invalid JSON, or wrong shape.
    """
    data = _load_json(
        payload,
        "Task creation tool requires a JSON payload with title, description, "
        "priority, and requirements.",
        "Task creation tool received an empty payload after stripping formatting.",
    )
    if not isinstance(data, dict):
        raise PayloadError("Task creation tool expects a single JSON object.")
    return TaskDraft.from_dict(data)


def parse_draft_list_payload(payload: str | None) -> list[TaskDraft]:
    """Parse a batch payload: an array, or an object with a ``tasks`` array.

    Raises:
        PayloadError: Missing/empty payload, invalid JSON, or wrong shape.
    """
    data = _load_json(
        payload,
        "Task batch creation tool requires a JSON payload containing an array of tasks.",
        "Task batch creation tool received an empty payload after stripping formatting.",
    )
    if isinstance(data, dict) and isinstance(data.get("tasks"), list):
        data = data["tasks"]
    if not isinstance(data, list):
        raise PayloadError("Expected an array of tasks or an object with a 'tasks' array.")
    return [TaskDraft.from_dict(item) for item in data]


def generate_task_id(
    title: str,
    now: float | None = None,
    taken: Collection[str] = (),
) -> str:
    """Slug of *title* (max 24 chars) + '-' + hex milliseconds.

    Blank titles get a random UUID. If the candidate is already in *taken*,
    the millisecond suffix is bumped until the id is free.
    """
    if not title.strip():
        return str(uuid.uuid4())
    slug = _SLUG_RE.sub("-", title.strip().lower()).strip("-")[:_SLUG_MAX]
    millis = int((time.time() if now is None else now) * 1000)
    while True:
        suffix = format(millis, "x")
        candidate = f"{slug}-{suffix}" if slug else suffix
        if candidate not in taken:
            return candidate
        millis += 1


# ------------------------------------------------------------------
# Repository
# ------------------------------------------------------------------


class TaskTracker:
    def __init__(self) -> None:
        self._write_lock = asyncio.Lock()

    def tasks_file(self, project_root: Path | None) -> Path | None:
        root = normalize_root(project_root)
        return root / TASKS_RELATIVE_PATH if root is not None else None

    async def load_tasks(self, project_root: Path | None) -> list[Task]:
        """Load all tasks.

        Raises:
            ConfigurationError: No project selected.
            PersistenceError: File missing, unreadable, or malformed.
        """
        path = require_root(project_root) / TASKS_RELATIVE_PATH
        return await asyncio.to_thread(_read_tasks, path)

    async def create_task(self, project_root: Path | None, draft: TaskDraft) -> Task:
        created = await self.create_tasks(project_root, [draft])
        return created[0]

    async def create_tasks(
        self, project_root: Path | None, drafts: list[TaskDraft]
    ) -> list[Task]:
        """Append one task per draft and return the new tasks in order."""
        if not drafts:
            raise PayloadError("Task list for batch creation is empty.")
        path = require_root(project_root) / TASKS_RELATIVE_PATH
        async with self._write_lock:
            current = await asyncio.to_thread(_read_tasks, path) if path.exists() else []
            taken = {t.id for t in current}
            new_tasks: list[Task] = []
            for draft in drafts:
                task = _task_from_draft(draft, taken)
                taken.add(task.id)
                new_tasks.append(task)
            await asyncio.to_thread(_write_tasks, path, current + new_tasks)
        return new_tasks

    async def delete_task(self, project_root: Path | None, task_id: str) -> Task:
        """Remove the task whose id matches *task_id* (case-insensitive)."""
        path = require_root(project_root) / TASKS_RELATIVE_PATH
        async with self._write_lock:
            current = await asyncio.to_thread(_read_tasks, path)
            wanted = task_id.lower()
            for index, task in enumerate(current):
                if task.id.lower() == wanted:
                    break
            else:
                raise PersistenceError(f"Task with id={task_id} was not found.", path)
            removed = current.pop(index)
            await asyncio.to_thread(_write_tasks, path, current)
        return removed

    @staticmethod
    def format_for_tool(tasks: list[Task]) -> str:
        if not tasks:
            return "Task tracker is empty."
        lines = [f"Project task tracker ({len(tasks)} tasks):"]
        for index, task in enumerate(tasks, start=1):
            lines.append(f"{index}. [{task.priority.value}] {task.title} (ID={task.id})")
            if task.description.strip():
                lines.append(f"   Description: {task.description}")
            if task.requirements:
                lines.append("   Requirements:")
                lines.extend(f"     - {r.strip()}" for r in task.requirements)
        return "\n".join(lines)


def _task_from_draft(draft: TaskDraft, taken: Collection[str]) -> Task:
    return Task(
        id=generate_task_id(draft.title, taken=taken),
        title=draft.title.strip(),
        description=draft.description.strip(),
        priority=draft.priority,
        requirements=[r.strip() for r in draft.requirements if r.strip()],
    )


def _read_tasks(path: Path) -> list[Task]:
    raw = read_json_array(path, "Task tracker")
    try:
        return [Task.from_dict(item) for item in raw]
    except (KeyError, TypeError, AttributeError, PayloadError) as exc:
        raise PersistenceError(f"Failed to parse task tracker JSON: {exc}", path) from exc


def _write_tasks(path: Path, tasks: list[Task]) -> None:
    content = json.dumps([t.to_dict() for t in tasks], indent=2, ensure_ascii=False)
    try:
        atomic_write_text(path, content + "\n")
    except OSError as exc:
        raise PersistenceError(f"Cannot write task tracker file {path}: {exc}", path) from exc
