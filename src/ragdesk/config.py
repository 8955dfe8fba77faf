"""ragdesk configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (RAGDESK_BASE_URL, RAGDESK_CHAT_MODEL, RAGDESK_EMBEDDING_MODEL)
  3. Per-project ragdesk.yaml  (in the selected project root)
  4. Global ~/.ragdesk/config.yaml  (model defaults only, no tokens)
  5. Hardcoded defaults

Credentials never live in config files: the GitHub token is read from
MCP_GITHUB_TOKEN / GITHUB_TOKEN and the webhook secret from GITHUB_WEBHOOK_SECRET.
All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".ragdesk"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "ragdesk.yaml"

# Fields that look like credentials, forbidden in any config file.
# Does NOT match legitimate keys like max_tokens or diff_limit.
_SECRET_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["ollama", "github", "webhook", "review", "chat"]
)

_TOKEN_ENV_VARS: tuple[str, ...] = ("MCP_GITHUB_TOKEN", "GITHUB_TOKEN")
_WEBHOOK_SECRET_ENV: str = "GITHUB_WEBHOOK_SECRET"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class OllamaCfg:
    """Chat / embedding backend (ragdesk.yaml: ollama:)."""

    base_url: str = "http://localhost:11434"
    chat_model: str = "llama3.1"
    embedding_model: str = "llama3.1"


@dataclass
class GithubCfg:
    """Remote repository settings (ragdesk.yaml: github:).

    Attributes:
        owner: Explicit repository owner. Takes precedence over git remote detection
            only when *repo* is also set.
        repo: Explicit repository name.
        api_url: REST API base URL. Derived from the remote host when unset.
    """

    owner: str | None = None
    repo: str | None = None
    api_url: str | None = None


@dataclass
class WebhookCfg:
    """GitHub webhook listener (ragdesk.yaml: webhook:)."""

    port: int | None = None
    path: str = "/github/webhook"


@dataclass
class ReviewCfg:
    """Pull request review settings (ragdesk.yaml: review:)."""

    diff_limit: int = 120_000
    language: str = "English"
    poll_interval: float = 60.0


@dataclass
class ChatCfg:
    """Conversation loop bounds (ragdesk.yaml: chat:)."""

    max_tool_attempts: int = 6
    history_limit: int = 10


@dataclass
class AssistantConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    ollama: OllamaCfg = field(default_factory=OllamaCfg)
    github: GithubCfg = field(default_factory=GithubCfg)
    webhook: WebhookCfg = field(default_factory=WebhookCfg)
    review: ReviewCfg = field(default_factory=ReviewCfg)
    chat: ChatCfg = field(default_factory=ChatCfg)


@dataclass
class GithubSettings:
    """Resolved GitHub credentials + optional explicit repository.

    Built by github_settings(); None when no token is available.
    """

    token: str
    owner: str | None = None
    repo: str | None = None
    api_url: str | None = None


@dataclass
class WebhookSettings:
    port: int
    path: str = "/github/webhook"
    secret: str | None = None


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_secrets(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any credential-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _SECRET_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
                        f"  Tokens and secrets must be set via environment variables.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export MCP_GITHUB_TOKEN=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}'; ignored.",
                UserWarning,
                stacklevel=4,
            )


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config '{path}' is not valid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Config '{path}' must contain a mapping at the top level.")
    return raw


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _cfg_from_dict(data: dict[str, Any]) -> AssistantConfig:
    """Build an *AssistantConfig* from a merged raw YAML dict."""
    cfg = AssistantConfig()

    if "ollama" in data:
        o = data["ollama"] or {}
        cfg.ollama = OllamaCfg(
            base_url=str(o.get("base_url", cfg.ollama.base_url)).rstrip("/"),
            chat_model=str(o.get("chat_model", cfg.ollama.chat_model)),
            embedding_model=str(o.get("embedding_model", cfg.ollama.embedding_model)),
        )

    if "github" in data:
        g = data["github"] or {}
        cfg.github = GithubCfg(
            owner=_opt_str(g.get("owner")),
            repo=_opt_str(g.get("repo")),
            api_url=_opt_str(g.get("api_url")),
        )

    if "webhook" in data:
        w = data["webhook"] or {}
        port = w.get("port")
        cfg.webhook = WebhookCfg(
            port=int(port) if port is not None else None,
            path=str(w.get("path", cfg.webhook.path)),
        )

    if "review" in data:
        r = data["review"] or {}
        cfg.review = ReviewCfg(
            diff_limit=int(r.get("diff_limit", cfg.review.diff_limit)),
            language=str(r.get("language", cfg.review.language)),
            poll_interval=float(r.get("poll_interval", cfg.review.poll_interval)),
        )

    if "chat" in data:
        c = data["chat"] or {}
        cfg.chat = ChatCfg(
            max_tool_attempts=int(c.get("max_tool_attempts", cfg.chat.max_tool_attempts)),
            history_limit=int(c.get("history_limit", cfg.chat.history_limit)),
        )

    if cfg.chat.max_tool_attempts < 1:
        raise ConfigError("chat.max_tool_attempts must be >= 1")

    return cfg


def _apply_env_overrides(cfg: AssistantConfig) -> AssistantConfig:
    """Apply RAGDESK_* environment variable overrides."""
    if url := os.environ.get("RAGDESK_BASE_URL"):
        cfg.ollama.base_url = url.rstrip("/")
    if model := os.environ.get("RAGDESK_CHAT_MODEL"):
        cfg.ollama.chat_model = model
    if model := os.environ.get("RAGDESK_EMBEDDING_MODEL"):
        cfg.ollama.embedding_model = model
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> AssistantConfig:
    """Load and return a merged *AssistantConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *ragdesk.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If a config file contains credential-like keys or is not
            a YAML mapping.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()
    if search_dir.is_file():
        search_dir = search_dir.parent

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_secrets(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _check_no_secrets(raw_project, project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)
    return _apply_env_overrides(cfg)


def github_settings(cfg: AssistantConfig) -> GithubSettings | None:
    """Return GitHub settings, or None if no token is present in the environment."""
    token = next(
        (v.strip() for name in _TOKEN_ENV_VARS if (v := os.environ.get(name)) and v.strip()),
        None,
    )
    if token is None:
        return None
    return GithubSettings(
        token=token,
        owner=cfg.github.owner or _opt_str(os.environ.get("MCP_GITHUB_OWNER")),
        repo=cfg.github.repo or _opt_str(os.environ.get("MCP_GITHUB_REPO")),
        api_url=cfg.github.api_url or _opt_str(os.environ.get("MCP_GITHUB_API_URL")),
    )


def webhook_settings(cfg: AssistantConfig, port: int | None = None) -> WebhookSettings | None:
    """Return webhook settings, or None if no port is configured.

    Port priority: *port* argument → webhook.port → GITHUB_WEBHOOK_PORT.
    """
    if port is None:
        port = cfg.webhook.port
    if port is None:
        env_port = _opt_str(os.environ.get("GITHUB_WEBHOOK_PORT"))
        if env_port is None or not env_port.isdigit():
            return None
        port = int(env_port)
    return WebhookSettings(
        port=port,
        path=cfg.webhook.path,
        secret=_opt_str(os.environ.get(_WEBHOOK_SECRET_ENV)),
    )


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.ragdesk/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# ragdesk global configuration: model defaults only.\n"
            "# NEVER store tokens here; use environment variables:\n"
            "#   export MCP_GITHUB_TOKEN=ghp_...\n"
            "#   export GITHUB_WEBHOOK_SECRET=...\n"
            "\n"
            "ollama:\n"
            "  base_url: http://localhost:11434\n"
            "  chat_model: llama3.1\n"
            "  embedding_model: llama3.1\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
