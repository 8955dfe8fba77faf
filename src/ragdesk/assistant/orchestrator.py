"""Conversation orchestrator: RAG context + bounded tool loop around one chat model.

Per request the conversation moves through::

    RETRIEVING_CONTEXT → PROMPTING → {AWAITING_TOOL ⇄ PROMPTING} → DONE | FAILED

Loop rules (ask):
  - at most ``max_tool_attempts`` chat calls; running out raises ToolLimitExceededError
  - a chat/embedding failure raises BackendError at once (no retry here)
  - a reply with a tool request is never returned: the raw reply is appended as
    an assistant message, the tool runs, and its result (or failure text) is
    appended as a system message
  - a reply carrying the marker without a tool id is never returned either; it
    gets a malformed-request message and uses up an attempt
  - while task creation is still required, a reply without a request gets a
    reminder instead of being returned
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ragdesk.assistant import prompts, review
from ragdesk.assistant.structure import describe_project
from ragdesk.errors import BackendError, ConfigurationError, RagdeskError, ToolLimitExceededError
from ragdesk.log import snippet
from ragdesk.rag.knowledge import EmbeddedFragment, KnowledgeStore
from ragdesk.rag.llm_client import ChatMessage, LlmClient
from ragdesk.rag.loader import DocumentLoader, TextFragment
from ragdesk.rag.ranker import build_context, format_context
from ragdesk.tools.git import GitClient
from ragdesk.tools.models import PullRequestSummary, ServerState
from ragdesk.tools.protocol import contains_tool_marker, parse_tool_request
from ragdesk.tools.registry import TASK_CREATION_TOOLS, ToolRegistry
from ragdesk.tracker.issues import IssueRepository, UserIssue
from ragdesk.tracker.tasks import Task, TaskDraft, TaskTracker

logger = logging.getLogger(__name__)

MAX_TOOL_REQUEST_ATTEMPTS = 6
MAX_HISTORY_MESSAGES = 10
SEARCH_TOP_K = 8
CONTEXT_LIMIT = 4
LIMIT_EXCEEDED = "Exceeded MCP tool request limit."

_TASK_TOOLS_LOWER = frozenset(t.lower() for t in TASK_CREATION_TOOLS)


class ConversationState(str, Enum):
    RETRIEVING_CONTEXT = "retrieving_context"
    PROMPTING = "prompting"
    AWAITING_TOOL = "awaiting_tool"
    DONE = "done"
    FAILED = "failed"


StateListener = Callable[[ConversationState], None]


@dataclass
class IngestResult:
    sources: list[str] = field(default_factory=list)
    chunk_count: int = 0
    warnings: list[str] = field(default_factory=list)


class Assistant:
    """Owns the knowledge store and drives every model-facing operation.

    Args:
        store: Knowledge store shared by ingest and retrieval.
        loader: Document loader used by ingest().
        llm: Chat / embedding client.
        registry: Tool catalog + executor.
        git: Local git helper.
        issues: User issue repository.
        tasks: Task tracker.
        max_tool_attempts: Chat calls allowed per ask().
        history_limit: Prior messages forwarded to the model.
        review_language: Language the PR review is written in.
        diff_limit: Diff characters sent with a review request.
    """

    def __init__(
        self,
        store: KnowledgeStore,
        loader: DocumentLoader,
        llm: LlmClient,
        registry: ToolRegistry,
        git: GitClient,
        issues: IssueRepository,
        tasks: TaskTracker,
        *,
        max_tool_attempts: int = MAX_TOOL_REQUEST_ATTEMPTS,
        history_limit: int = MAX_HISTORY_MESSAGES,
        review_language: str = "English",
        diff_limit: int = review.DEFAULT_DIFF_LIMIT,
    ) -> None:
        self.store = store
        self.loader = loader
        self.llm = llm
        self.registry = registry
        self.git = git
        self.issues = issues
        self.tasks = tasks
        self.max_tool_attempts = max_tool_attempts
        self.history_limit = history_limit
        self.review_language = review_language
        self.diff_limit = diff_limit

    # ------------------------------------------------------------------
    # Ingest
    # ------------------------------------------------------------------

    async def ingest(self, path: Path, base_url: str, embedding_model: str) -> IngestResult:
        """Load, embed and store every fragment under *path*.

        Embedding failures become warnings; the store is replaced with the
        fragments that embedded successfully.
        """
        loaded = await asyncio.to_thread(self.loader.load_sources, path)
        warnings = list(loaded.skipped)
        embedded: list[EmbeddedFragment] = []

        for fragment in loaded.fragments:
            try:
                vector = await self._embed_fragment(base_url, embedding_model, fragment)
            except BackendError as exc:
                logger.warning("Embedding failed for %s: %s", fragment.source, exc)
                warnings.append(f"Embedding failed for {fragment.source}: {exc}")
                continue
            embedded.append(
                EmbeddedFragment(
                    source=fragment.source, content=fragment.content, embedding=tuple(vector)
                )
            )

        self.store.replace_all(embedded)
        return IngestResult(
            sources=self.store.sources(), chunk_count=len(embedded), warnings=warnings
        )

    async def _embed_fragment(
        self, base_url: str, model: str, fragment: TextFragment
    ) -> list[float]:
        enriched = f"Source: {fragment.source}\n{fragment.content}"
        vector = await self.llm.embed(base_url, model, enriched)
        logger.debug("Embedded %s dim=%d", fragment.source, len(vector))
        return vector

    # ------------------------------------------------------------------
    # Ask
    # ------------------------------------------------------------------

    async def ask(
        self,
        question: str,
        chat_model: str,
        embedding_model: str,
        base_url: str,
        git_branch: str | None = None,
        project_root: Path | None = None,
        require_task_creation: bool = False,
        history: Sequence[ChatMessage] = (),
        extra_system_prompt: str | None = None,
        on_state: StateListener | None = None,
    ) -> str:
        """Answer *question*, running tools the model asks for along the way.

        Raises:
            BackendError: A chat or embedding call failed.
            ToolLimitExceededError: The model kept requesting tools.
        """

        def transition(state: ConversationState) -> None:
            logger.debug("ask state → %s", state.value)
            if on_state is not None:
                on_state(state)

        help_request = prompts.is_help_request(question)
        logger.info("Incoming question (help=%s): %s", help_request, snippet(question))
        try:
            transition(ConversationState.RETRIEVING_CONTEXT)
            if help_request:
                query = prompts.strip_help_prefix(question) or question
                context = await self.project_context(query, base_url, embedding_model)
            else:
                context = prompts.CONTEXT_NOT_REQUESTED

            tools = await self.registry.enabled_tools(project_root)
            conversation = [
                ChatMessage(
                    "system",
                    prompts.build_system_prompt(context, tools, git_branch, extra_system_prompt),
                ),
                *prompts.history_messages(history, self.history_limit),
                prompts.build_user_message(question),
            ]

            pending_task_creation = require_task_creation
            for attempt in range(1, self.max_tool_attempts + 1):
                transition(ConversationState.PROMPTING)
                logger.info(
                    "Chat request attempt=%d model=%s messages=%d",
                    attempt, chat_model, len(conversation),
                )
                content = await self.llm.chat(base_url, chat_model, conversation)
                logger.debug("Chat response attempt=%d: %s", attempt, snippet(content))

                request = parse_tool_request(content)
                if request is None and contains_tool_marker(content):
                    logger.warning("Malformed tool request on attempt=%d", attempt)
                    conversation.append(ChatMessage("assistant", content))
                    conversation.append(ChatMessage("system", prompts.MALFORMED_TOOL_REQUEST))
                    continue
                if request is None:
                    if pending_task_creation:
                        conversation.append(ChatMessage("system", prompts.TASK_REMINDER))
                        continue
                    transition(ConversationState.DONE)
                    return content

                transition(ConversationState.AWAITING_TOOL)
                logger.info("Model requested tool %r on attempt=%d", request.tool_id, attempt)
                conversation.append(ChatMessage("assistant", content))
                result = await self.registry.run_tool(
                    request.tool_id, request.payload, project_root
                )
                conversation.append(prompts.tool_result_message(request.tool_id, result.text))
                if result.ok and request.tool_id.lower() in _TASK_TOOLS_LOWER:
                    pending_task_creation = False

            raise ToolLimitExceededError(LIMIT_EXCEEDED)
        except RagdeskError:
            transition(ConversationState.FAILED)
            raise

    async def project_context(self, query: str, base_url: str, embedding_model: str) -> str:
        """Embed *query*, search top 8, rerank, keep top 4, format."""
        vector = await self.llm.embed(base_url, embedding_model, query)
        candidates = self.store.search(vector, top_k=SEARCH_TOP_K)
        return build_context(query, candidates, limit=CONTEXT_LIMIT)

    async def rag_context_from_query(self, query: str, base_url: str, embedding_model: str) -> str:
        """Top 8 matches formatted without rerank; a placeholder when nothing matches."""
        logger.debug("Generating context for query %r", snippet(query))
        vector = await self.llm.embed(base_url, embedding_model, query)
        matches = self.store.search(vector, top_k=SEARCH_TOP_K)
        if not matches:
            return review.NO_CONTEXT
        return format_context(matches)

    # ------------------------------------------------------------------
    # Single-shot requests
    # ------------------------------------------------------------------

    async def review_pull_request(
        self,
        pr_number: int,
        base_url: str,
        chat_model: str,
        embedding_model: str,
        project_root: Path | None,
    ) -> str:
        """Structured review of one pull request (one chat call, no tools)."""
        logger.info("Preparing review for PR #%d", pr_number)
        bundle = await self.registry.pull_request_review_bundle(project_root, pr_number)
        try:
            rag_context = await self.rag_context_from_query(
                review.build_context_query(bundle), base_url, embedding_model
            )
        except BackendError as exc:
            logger.warning("Embedding for PR context failed: %s", exc)
            rag_context = f"RAG context unavailable ({exc})"

        messages = review.build_review_messages(
            bundle, rag_context, language=self.review_language, diff_limit=self.diff_limit
        )
        logger.info("Sending review request for PR #%d (diff length=%d)", pr_number, len(bundle.diff))
        return await self.llm.chat(base_url, chat_model, messages)

    async def propose_issue_solution(
        self,
        issue: UserIssue,
        base_url: str,
        chat_model: str,
        embedding_model: str,
    ) -> str:
        query = f"{issue.issue.subject}\n{issue.issue.description}".strip()
        try:
            context = await self.rag_context_from_query(query, base_url, embedding_model)
        except BackendError as exc:
            context = f"RAG context unavailable: {exc}"
        messages = prompts.issue_solution_messages(
            user_name=issue.user_name,
            issue_id=issue.issue.issue_id,
            issue_number=issue.issue.issue_number,
            subject=issue.issue.subject,
            description=issue.issue.description,
            context=context,
            language=self.review_language,
        )
        return await self.llm.chat(base_url, chat_model, messages)

    # ------------------------------------------------------------------
    # Pass-throughs
    # ------------------------------------------------------------------

    async def list_models(self, base_url: str) -> list[str]:
        return await self.llm.list_models(base_url)

    async def fetch_branch(self, project_root: Path | None) -> str:
        if project_root is None:
            raise ConfigurationError("Project path is not selected")
        return await self.git.current_branch(project_root)

    async def tool_servers(self, project_root: Path | None) -> list[ServerState]:
        return await self.registry.servers(project_root)

    async def set_tool_enabled(
        self, tool_id: str, enabled: bool, project_root: Path | None
    ) -> list[ServerState]:
        return await self.registry.set_tool_enabled(tool_id, enabled, project_root)

    async def list_pull_requests(self, project_root: Path | None, limit: int = 10) -> list[PullRequestSummary]:
        return await self.registry.list_pull_requests(project_root, limit=limit)

    async def load_issues(self, project_root: Path | None) -> list[UserIssue]:
        return await self.issues.load_issues(project_root)

    async def load_tasks(self, project_root: Path | None) -> list[Task]:
        return await self.tasks.load_tasks(project_root)

    async def create_task(self, project_root: Path | None, draft: TaskDraft) -> Task:
        return await self.tasks.create_task(project_root, draft)

    async def create_tasks(self, project_root: Path | None, drafts: list[TaskDraft]) -> list[Task]:
        return await self.tasks.create_tasks(project_root, drafts)

    async def delete_task(self, project_root: Path | None, task_id: str) -> Task:
        return await self.tasks.delete_task(project_root, task_id)

    def knowledge_sources(self) -> list[str]:
        return self.store.sources()

    def describe_project(self, root: Path, question: str | None = None) -> str:
        return describe_project(root, self.knowledge_sources(), question)
