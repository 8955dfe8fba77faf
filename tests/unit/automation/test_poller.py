"""Tests for the auto-review poller."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from ragdesk.automation.poller import AutoReviewPoller, ModelSelection, next_candidate
from ragdesk.errors import BackendError, ConfigurationError
from ragdesk.tools.models import PullRequestSummary

MODELS = ModelSelection("http://localhost:11434", "llama3.1", "nomic-embed-text")


def _pr(number: int, updated_at: str = "2024-01-01T00:00:00Z") -> PullRequestSummary:
    return PullRequestSummary(
        number=number, title=f"PR {number}", author="amy", url="", updated_at=updated_at,
        body="", additions=0, deletions=0, changed_files=0,
        base_branch="main", head_branch="topic",
    )


def _poller(tmp_path: Path, pulls, review="Review text", **kwargs) -> tuple[AutoReviewPoller, MagicMock]:
    assistant = MagicMock()
    assistant.list_pull_requests = AsyncMock(return_value=pulls)
    assistant.review_pull_request = AsyncMock(
        side_effect=review if isinstance(review, BaseException) else None,
        return_value=review,
    )
    return AutoReviewPoller(assistant, tmp_path, MODELS, **kwargs), assistant


# ------------------------------------------------------------------
# next_candidate
# ------------------------------------------------------------------


def test_candidate_is_first_unreviewed() -> None:
    pulls = [_pr(1), _pr(2)]

    assert next_candidate(pulls, {1: pulls[0].updated_at}) is pulls[1]


def test_candidate_when_updated_at_changes() -> None:
    pulls = [_pr(1, "t2")]

    assert next_candidate(pulls, {1: "t1"}) is pulls[0]


def test_no_candidate_when_all_marked() -> None:
    assert next_candidate([_pr(1, "t1")], {1: "t1"}) is None


# ------------------------------------------------------------------
# poll_once
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_poll_reviews_and_marks(tmp_path: Path) -> None:
    reviews: list[tuple[int, str]] = []
    statuses: list[str] = []

    async def on_review(pr: PullRequestSummary, text: str) -> None:
        reviews.append((pr.number, text))

    poller, assistant = _poller(
        tmp_path, [_pr(5, "t1")], on_review=on_review, on_status=statuses.append
    )

    reviewed = await poller.poll_once()

    assert reviewed is not None and reviewed.number == 5
    assert poller.marks == {5: "t1"}
    assert reviews == [(5, "Review text")]
    assistant.review_pull_request.assert_awaited_once_with(
        5, MODELS.base_url, MODELS.chat_model, MODELS.embedding_model, tmp_path
    )
    assert statuses == ["Checking pull requests...", "Reviewing PR #5...", "Auto-reviewed PR #5"]


@pytest.mark.asyncio
async def test_second_poll_is_idle(tmp_path: Path) -> None:
    statuses: list[str] = []
    poller, assistant = _poller(tmp_path, [_pr(5, "t1")], on_status=statuses.append)

    await poller.poll_once()
    assert await poller.poll_once() is None

    assert assistant.review_pull_request.await_count == 1
    assert statuses[-1] == "Auto review idle (no changes)."


@pytest.mark.asyncio
async def test_failed_review_leaves_marker_unset(tmp_path: Path) -> None:
    statuses: list[str] = []
    poller, _ = _poller(
        tmp_path, [_pr(5)], review=BackendError("model offline"), on_status=statuses.append
    )

    assert await poller.poll_once() is None

    assert poller.marks == {}
    assert statuses[-1] == "Auto review failed: model offline"


@pytest.mark.asyncio
async def test_listing_failure_reported(tmp_path: Path) -> None:
    statuses: list[str] = []
    poller, assistant = _poller(tmp_path, [], on_status=statuses.append)
    assistant.list_pull_requests.side_effect = ConfigurationError("GitHub MCP is not configured.")

    assert await poller.poll_once() is None

    assert statuses[-1] == "Auto review failed to load PRs: GitHub MCP is not configured."


# ------------------------------------------------------------------
# start / stop
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_start_and_stop(tmp_path: Path) -> None:
    statuses: list[str] = []
    poller, assistant = _poller(tmp_path, [], on_status=statuses.append, interval=3600)

    task = poller.start()
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert poller.running
    assert poller.start() is task
    await poller.stop()

    assert not poller.running
    assert task.cancelled()
    assert statuses[0] == "Auto review is active."
    assert statuses[-1] == "Auto review is disabled."
    assistant.list_pull_requests.assert_awaited()


@pytest.mark.asyncio
async def test_stop_without_start_is_noop(tmp_path: Path) -> None:
    statuses: list[str] = []
    poller, _ = _poller(tmp_path, [], on_status=statuses.append)

    await poller.stop()

    assert statuses == []


@pytest.mark.asyncio
async def test_callback_failure_is_reported(tmp_path: Path) -> None:
    statuses: list[str] = []
    on_review = AsyncMock(side_effect=RuntimeError("console closed"))
    poller, _ = _poller(
        tmp_path, [_pr(5, "t1")], on_review=on_review, on_status=statuses.append
    )

    reviewed = await poller.poll_once()

    assert reviewed is not None and reviewed.number == 5
    assert poller.marks == {5: "t1"}
    assert statuses[-1] == "Auto review of PR #5 could not be delivered: console closed"


@pytest.mark.asyncio
async def test_loop_survives_callback_failure(tmp_path: Path) -> None:
    statuses: list[str] = []
    on_review = AsyncMock(side_effect=RuntimeError("console closed"))
    poller, assistant = _poller(
        tmp_path, [_pr(5, "t1")], on_review=on_review, on_status=statuses.append, interval=0
    )

    task = poller.start()
    for _ in range(5):
        await asyncio.sleep(0)

    assert poller.running
    await poller.stop()

    assert task.cancelled()
    assert "Auto review idle (no changes)." in statuses
    assert statuses[-1] == "Auto review is disabled."
    assert assistant.review_pull_request.await_count == 1
