"""Tests for ragdesk config loader."""

from __future__ import annotations

import stat
import warnings
from pathlib import Path

import pytest
import yaml

from ragdesk.config import (
    AssistantConfig,
    ConfigError,
    ensure_global_config,
    github_settings,
    load_config,
    webhook_settings,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.dump(data), encoding="utf-8")


def _load(tmp_path: Path, global_path: Path | None = None) -> AssistantConfig:
    return load_config(
        project_dir=tmp_path,
        global_config_path=global_path or tmp_path / "nonexistent" / "config.yaml",
    )


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    cfg = _load(tmp_path)

    assert cfg.ollama.base_url == "http://localhost:11434"
    assert cfg.ollama.chat_model == "llama3.1"
    assert cfg.ollama.embedding_model == "llama3.1"
    assert cfg.github.owner is None
    assert cfg.webhook.path == "/github/webhook"
    assert cfg.review.diff_limit == 120_000
    assert cfg.review.language == "English"
    assert cfg.review.poll_interval == 60.0
    assert cfg.chat.max_tool_attempts == 6
    assert cfg.chat.history_limit == 10


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_global_config_sets_models(tmp_path: Path) -> None:
    global_path = tmp_path / "global" / "config.yaml"
    _write_yaml(global_path, {"ollama": {"chat_model": "qwen2.5", "embedding_model": "nomic-embed-text"}})

    cfg = _load(tmp_path, global_path)

    assert cfg.ollama.chat_model == "qwen2.5"
    assert cfg.ollama.embedding_model == "nomic-embed-text"


def test_project_config_overrides_global(tmp_path: Path) -> None:
    global_path = tmp_path / "global" / "config.yaml"
    _write_yaml(global_path, {"ollama": {"chat_model": "qwen2.5", "base_url": "http://gpu:11434"}})
    _write_yaml(tmp_path / "ragdesk.yaml", {"ollama": {"chat_model": "mistral"}})

    cfg = _load(tmp_path, global_path)

    assert cfg.ollama.chat_model == "mistral"
    # untouched keys survive the deep merge
    assert cfg.ollama.base_url == "http://gpu:11434"


def test_env_overrides_project(tmp_path: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / "ragdesk.yaml", {"ollama": {"chat_model": "mistral"}})
    monkeypatch.setenv("RAGDESK_CHAT_MODEL", "phi3")
    monkeypatch.setenv("RAGDESK_BASE_URL", "http://remote:11434/")

    cfg = _load(tmp_path)

    assert cfg.ollama.chat_model == "phi3"
    assert cfg.ollama.base_url == "http://remote:11434"


def test_project_dir_may_be_a_file(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "ragdesk.yaml", {"review": {"language": "German"}})
    readme = tmp_path / "README.md"
    readme.write_text("x", encoding="utf-8")

    cfg = load_config(project_dir=readme, global_config_path=tmp_path / "none.yaml")

    assert cfg.review.language == "German"


def test_review_and_chat_sections(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / "ragdesk.yaml",
        {
            "review": {"diff_limit": 5000, "poll_interval": 15},
            "chat": {"max_tool_attempts": 3, "history_limit": 4},
        },
    )

    cfg = _load(tmp_path)

    assert cfg.review.diff_limit == 5000
    assert cfg.review.poll_interval == 15.0
    assert cfg.chat.max_tool_attempts == 3
    assert cfg.chat.history_limit == 4


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("key", ["token", "api_key", "webhook_secret", "password"])
def test_secret_like_keys_rejected(tmp_path: Path, key: str) -> None:
    _write_yaml(tmp_path / "ragdesk.yaml", {"github": {key: "ghp_abc"}})

    with pytest.raises(ConfigError, match="forbidden key"):
        _load(tmp_path)


def test_unknown_top_level_key_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "ragdesk.yaml", {"ollamaa": {"chat_model": "x"}})

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        _load(tmp_path)

    assert any("ollamaa" in str(w.message) for w in caught)


def test_non_mapping_yaml_rejected(tmp_path: Path) -> None:
    (tmp_path / "ragdesk.yaml").write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="mapping"):
        _load(tmp_path)


def test_invalid_yaml_rejected(tmp_path: Path) -> None:
    (tmp_path / "ragdesk.yaml").write_text("ollama: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="not valid YAML"):
        _load(tmp_path)


def test_zero_tool_attempts_rejected(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "ragdesk.yaml", {"chat": {"max_tool_attempts": 0}})

    with pytest.raises(ConfigError, match="max_tool_attempts"):
        _load(tmp_path)


# ---------------------------------------------------------------------------
# Credentials from the environment
# ---------------------------------------------------------------------------


def test_github_settings_none_without_token(tmp_path: Path) -> None:
    assert github_settings(_load(tmp_path)) is None


def test_github_settings_prefers_mcp_token(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_fallback")
    monkeypatch.setenv("MCP_GITHUB_TOKEN", "ghp_primary")

    settings = github_settings(_load(tmp_path))

    assert settings is not None
    assert settings.token == "ghp_primary"


def test_github_settings_owner_repo_from_config_then_env(tmp_path: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / "ragdesk.yaml", {"github": {"owner": "acme"}})
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_x")
    monkeypatch.setenv("MCP_GITHUB_OWNER", "ignored")
    monkeypatch.setenv("MCP_GITHUB_REPO", "widgets")

    settings = github_settings(_load(tmp_path))

    assert settings.owner == "acme"
    assert settings.repo == "widgets"


def test_webhook_settings_from_env(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("GITHUB_WEBHOOK_PORT", "8787")
    monkeypatch.setenv("GITHUB_WEBHOOK_SECRET", "s3cret")

    hook = webhook_settings(_load(tmp_path))

    assert hook.port == 8787
    assert hook.secret == "s3cret"
    assert hook.path == "/github/webhook"


def test_webhook_settings_none_without_port(tmp_path: Path) -> None:
    assert webhook_settings(_load(tmp_path)) is None


def test_webhook_settings_explicit_port_wins(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("GITHUB_WEBHOOK_PORT", "8787")

    hook = webhook_settings(_load(tmp_path), port=9000)

    assert hook.port == 9000


# ---------------------------------------------------------------------------
# ensure_global_config
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_private_file(tmp_path: Path) -> None:
    target = tmp_path / ".ragdesk" / "config.yaml"

    path = ensure_global_config(target)

    assert path == target
    assert target.exists()
    assert stat.S_IMODE(target.stat().st_mode) == 0o600
    loaded = yaml.safe_load(target.read_text(encoding="utf-8"))
    assert loaded["ollama"]["chat_model"] == "llama3.1"


def test_ensure_global_config_keeps_existing(tmp_path: Path) -> None:
    target = tmp_path / ".ragdesk" / "config.yaml"
    _write_yaml(target, {"ollama": {"chat_model": "mine"}})

    ensure_global_config(target)

    assert yaml.safe_load(target.read_text(encoding="utf-8"))["ollama"]["chat_model"] == "mine"
