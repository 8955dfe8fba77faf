"""Exception hierarchy shared by the ragdesk core.

Taxonomy:
  ConfigurationError     no project selected, GitHub not configured, ...
  BackendError           chat / embedding / GitHub transport failure
  PersistenceError       task or issue file missing, unreadable, unparsable
  PayloadError           malformed task-draft JSON supplied by the model
  GitError               local git command failed
  ToolLimitExceededError tool round-trip budget exhausted (terminal)

Errors raised inside a tool action are converted into a failed ToolResult by
the registry and fed back to the model; everything else propagates to the
caller of the top-level operation.
"""

from __future__ import annotations

from pathlib import Path


class RagdeskError(Exception):
    """Base class for all ragdesk errors."""


class ConfigurationError(RagdeskError):
    """Raised when a required setting or selection is missing."""


class BackendError(RagdeskError):
    """Raised when the chat/embedding backend or a remote API call fails."""


class PersistenceError(RagdeskError):
    """Raised when a project file cannot be read, parsed, or written.

    Attributes:
        path: The offending file, if known.
    """

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class PayloadError(RagdeskError, ValueError):
    """Raised when a tool payload is missing or has the wrong JSON shape."""


class ToolLimitExceededError(RagdeskError):
    """Raised when a conversation exceeds its tool round-trip budget."""


class GitError(RagdeskError):
    """Raised when a local git command fails."""
