"""Background auto-review of open pull requests.

Every ``interval`` seconds the poller lists open PRs and reviews the first one
whose ``updated_at`` string differs from the marker recorded at its last
successful review (or that was never reviewed). Markers compare by plain
string inequality, so any change in the timestamp text triggers a review.
A failed review leaves the marker untouched; the PR is retried next cycle.
A failing on_review callback is reported through on_status and does not stop
the loop; the review itself counts as done.

stop() cancels the polling task; an in-flight call is interrupted at its next
await like any cancelled asyncio task.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from ragdesk.errors import RagdeskError
from ragdesk.tools.models import PullRequestSummary

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 60.0

ReviewCallback = Callable[[PullRequestSummary, str], Awaitable[None]]
StatusCallback = Callable[[str], None]


@dataclass(frozen=True)
class ModelSelection:
    base_url: str
    chat_model: str
    embedding_model: str


def next_candidate(
    pulls: Sequence[PullRequestSummary], marks: dict[int, str]
) -> PullRequestSummary | None:
    """First PR never reviewed or whose updated_at text changed since."""
    for pr in pulls:
        marker = marks.get(pr.number)
        if marker is None or marker != pr.updated_at:
            return pr
    return None


class AutoReviewPoller:
    """Poll-and-review loop bound to one project.

    Args:
        assistant: Object exposing list_pull_requests() and review_pull_request().
        project_root: Project whose repository is watched.
        models: Backend URL and model names used for reviews.
        on_review: Awaited with (pr, review_text) after each successful review.
        on_status: Called with a one-line status after every step.
        interval: Seconds between polls.
    """

    def __init__(
        self,
        assistant,
        project_root: Path,
        models: ModelSelection,
        on_review: ReviewCallback | None = None,
        on_status: StatusCallback | None = None,
        interval: float = DEFAULT_INTERVAL,
    ) -> None:
        self.assistant = assistant
        self.project_root = project_root
        self.models = models
        self.on_review = on_review
        self.on_status = on_status
        self.interval = interval
        self.marks: dict[int, str] = {}
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _status(self, message: str) -> None:
        logger.info(message)
        if self.on_status is not None:
            self.on_status(message)

    async def poll_once(self) -> PullRequestSummary | None:
        """Run one cycle; return the PR that was reviewed successfully, if any."""
        self._status("Checking pull requests...")
        try:
            pulls = await self.assistant.list_pull_requests(self.project_root)
        except RagdeskError as exc:
            self._status(f"Auto review failed to load PRs: {exc}")
            return None

        pr = next_candidate(pulls, self.marks)
        if pr is None:
            self._status("Auto review idle (no changes).")
            return None

        self._status(f"Reviewing PR #{pr.number}...")
        try:
            text = await self.assistant.review_pull_request(
                pr.number,
                self.models.base_url,
                self.models.chat_model,
                self.models.embedding_model,
                self.project_root,
            )
        except RagdeskError as exc:
            self._status(f"Auto review failed: {exc}")
            return None

        self.marks[pr.number] = pr.updated_at
        if self.on_review is not None:
            try:
                await self.on_review(pr, text)
            except Exception as exc:
                logger.exception("Review callback failed for PR #%d", pr.number)
                self._status(f"Auto review of PR #{pr.number} could not be delivered: {exc}")
                return pr
        self._status(f"Auto-reviewed PR #{pr.number}")
        return pr

    async def run(self) -> None:
        self._status("Auto review is active.")
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="ragdesk-auto-review")
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._status("Auto review is disabled.")
