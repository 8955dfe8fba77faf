"""Persisted user state: last project, last models, per-tool overrides.

Stored as JSON in ``~/.ragdesk/state.json``. This is state the CLI remembers
between runs, not configuration; configuration lives in config.py.
An unreadable or corrupt state file falls back to defaults (logged).
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path

from ragdesk.atomic import atomic_write_text

logger = logging.getLogger(__name__)

_STATE_PATH: Path = Path.home() / ".ragdesk" / "state.json"


@dataclass
class UserSettings:
    last_project: str | None = None
    last_chat_model: str | None = None
    last_embedding_model: str | None = None
    tool_overrides: dict[str, bool] = field(default_factory=dict)


class SettingsStore:
    """Load/update the user state file.

    Args:
        path: State file location. Defaults to ``~/.ragdesk/state.json``.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path if path is not None else _STATE_PATH

    def load(self) -> UserSettings:
        if not self.path.exists():
            return UserSettings()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, exc)
            return UserSettings()
        if not isinstance(raw, dict):
            logger.warning("Ignoring state file %s: not a JSON object", self.path)
            return UserSettings()

        overrides = raw.get("tool_overrides") or {}
        return UserSettings(
            last_project=raw.get("last_project") or None,
            last_chat_model=raw.get("last_chat_model") or None,
            last_embedding_model=raw.get("last_embedding_model") or None,
            tool_overrides={
                str(k): bool(v) for k, v in overrides.items()
            } if isinstance(overrides, dict) else {},
        )

    def update(
        self,
        project_path: Path | None = None,
        chat_model: str | None = None,
        embedding_model: str | None = None,
    ) -> UserSettings:
        """Overwrite the given fields and persist. None leaves a field unchanged."""
        current = self.load()
        updated = replace(
            current,
            last_project=str(project_path.resolve()) if project_path else current.last_project,
            last_chat_model=chat_model or current.last_chat_model,
            last_embedding_model=embedding_model or current.last_embedding_model,
        )
        self._save(updated)
        return updated

    def set_tool_enabled(self, tool_id: str, enabled: bool) -> UserSettings:
        current = self.load()
        overrides = dict(current.tool_overrides)
        overrides[tool_id] = enabled
        updated = replace(current, tool_overrides=overrides)
        self._save(updated)
        return updated

    def tool_overrides(self) -> dict[str, bool]:
        return self.load().tool_overrides

    def _save(self, settings: UserSettings) -> None:
        atomic_write_text(self.path, json.dumps(asdict(settings), indent=2) + "\n")
