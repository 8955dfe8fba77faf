"""CLI test fixtures."""

from __future__ import annotations

import pytest

from ragdesk.cli import ask, ingest, init, issues, review, session, status, tasks, tools


@pytest.fixture(autouse=True)
def wide_consoles(monkeypatch):
    """Render rich output without wrapping long paths and table cells."""
    for module in (ask, ingest, init, issues, review, session, status, tasks, tools):
        monkeypatch.setattr(module.console, "width", 200)
