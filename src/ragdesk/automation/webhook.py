"""GitHub webhook listener (FastAPI).

POST {path}
  X-GitHub-Event: pull_request        other events → 202 "Ignored"
  X-Hub-Signature-256: sha256=<hex>   HMAC-SHA256 of the raw body; checked
                                      only when a secret is configured

Valid pull_request events are acknowledged with 202 and handed to the
handler as a background task after the response is sent. Events for a
repository other than the watched one are dropped by the handler built in
make_review_handler().
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import APIRouter, BackgroundTasks, FastAPI, Request
from fastapi.responses import PlainTextResponse

from ragdesk.tools.models import RepoRef

logger = logging.getLogger(__name__)

DEFAULT_PATH = "/github/webhook"


@dataclass(frozen=True)
class PullRequestEvent:
    owner: str
    repo: str
    number: int
    action: str
    ref: str | None = None


EventHandler = Callable[[PullRequestEvent], Awaitable[None]]


def verify_signature(secret: str | None, body: bytes, header: str | None) -> bool:
    """True if *header* is ``sha256=<hmac of body>``; always True without a secret."""
    if not secret:
        return True
    if not header:
        return False
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(header, f"sha256={digest}")


def parse_pull_request_event(payload: dict) -> PullRequestEvent | None:
    """Extract the fields a review needs; None if owner/repo/number are missing."""
    repository = payload.get("repository") or {}
    pull = payload.get("pull_request") or {}
    owner = (repository.get("owner") or {}).get("login")
    repo = repository.get("name")
    number = pull.get("number")
    if not owner or not repo or not isinstance(number, int):
        return None
    return PullRequestEvent(
        owner=str(owner),
        repo=str(repo),
        number=number,
        action=str(payload.get("action") or "unknown"),
        ref=(pull.get("head") or {}).get("ref"),
    )


def create_webhook_app(
    handler: EventHandler,
    secret: str | None = None,
    path: str = DEFAULT_PATH,
) -> FastAPI:
    router = APIRouter(tags=["github"])

    @router.post(path)
    async def github_webhook(request: Request, background: BackgroundTasks) -> PlainTextResponse:
        body = await request.body()
        if not verify_signature(secret, body, request.headers.get("X-Hub-Signature-256")):
            logger.warning("Rejected webhook delivery with invalid signature")
            return PlainTextResponse("Invalid signature", status_code=401)

        if request.headers.get("X-GitHub-Event") != "pull_request":
            return PlainTextResponse("Ignored", status_code=202)

        try:
            payload = json.loads(body)
        except ValueError:
            logger.warning("Webhook body is not valid JSON")
            return PlainTextResponse("Accepted", status_code=202)

        event = parse_pull_request_event(payload) if isinstance(payload, dict) else None
        if event is not None:
            logger.info("Webhook: PR #%d %s in %s/%s", event.number, event.action, event.owner, event.repo)
            background.add_task(handler, event)
        return PlainTextResponse("Accepted", status_code=202)

    app = FastAPI(title="ragdesk webhook", docs_url=None, redoc_url=None)
    app.include_router(router)
    return app


def make_review_handler(
    watched: RepoRef | None,
    review: Callable[[int], Awaitable[None]],
    on_status: Callable[[str], None] | None = None,
) -> EventHandler:
    """Handler that reviews PRs of *watched* and ignores everything else."""

    def status(message: str) -> None:
        logger.info(message)
        if on_status is not None:
            on_status(message)

    async def handle(event: PullRequestEvent) -> None:
        if watched is None:
            status("Webhook ignored: repository not detected for current project.")
            return
        if watched.owner.lower() != event.owner.lower() or watched.repo.lower() != event.repo.lower():
            status(f"Webhook ignored: event for {event.owner}/{event.repo}.")
            return
        status(f"Webhook: reviewing PR #{event.number}")
        await review(event.number)

    return handle
