"""Question answering over a user's notes.

``ChatOrchestrator.ask_question`` searches the index for the asker's own
chunks, returns them straight away and streams the grounded answer through
the event bus in a background task.
"""

import asyncio
import logging
import uuid
from enum import Enum
from typing import Any, Optional, Union

from .base import BaseVectorIndex
from .document import SearchResult
from .events import EndEvent, ErrorEvent, EventBus, StartEvent, TokenEvent
from .lifecycle import IndexManager
from .providers.base import BaseCompletionProvider, StreamHandler
from .vectorstore import owner_filter

logger = logging.getLogger(__name__)

SYSTEM_TEMPLATE = """Use the following pieces of context to answer the users question.
If you don't know the answer, just say that you don't know, don't try to make up an answer.
The following context originates from the users notes.
----------------
{context}"""

FALLBACK_ERROR = "An error occurred please try again."


class ChatState(str, Enum):
    """Lifecycle of a single question."""
    IDLE = "idle"
    SEARCHING = "searching"
    PROMPT_BUILT = "prompt_built"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ChatRequest:
    """State of one in-flight question."""

    def __init__(self, question: str, owner_id: str):
        self.id = uuid.uuid4().hex
        self.question = question
        self.owner_id = owner_id
        self.state = ChatState.IDLE
        self.messages: list[dict[str, Any]] = []
        self.answer = ""
        self.task: Optional[asyncio.Task] = None

    @property
    def finished(self) -> bool:
        return self.state in (ChatState.COMPLETED, ChatState.FAILED, ChatState.CANCELLED)

    def __repr__(self) -> str:
        return f"ChatRequest(id={self.id!r}, owner_id={self.owner_id!r}, state={self.state.value})"


class _BusPublisher(StreamHandler):
    """Republishes provider callbacks as chat events for one request."""

    def __init__(self, bus: EventBus, request: ChatRequest):
        self.bus = bus
        self.request = request

    def on_start(self) -> None:
        self.bus.publish(StartEvent(owner_id=self.request.owner_id))

    def on_token(self, text: str) -> None:
        self.bus.publish(TokenEvent(text=text, owner_id=self.request.owner_id))

    def on_end(self) -> None:
        self.request.state = ChatState.COMPLETED
        self.bus.publish(EndEvent(owner_id=self.request.owner_id))

    def on_error(self, error: BaseException) -> None:
        self.request.state = ChatState.FAILED
        message = str(error) or FALLBACK_ERROR
        logger.warning(f"Generation failed for request {self.request.id}: {message}")
        self.bus.publish(ErrorEvent(error=message, owner_id=self.request.owner_id))


def format_context(results: list[SearchResult]) -> str:
    """Join retrieved chunk texts in ranked order."""
    return "\n\n".join(result.content for result in results)


def build_messages(question: str, results: list[SearchResult]) -> list[dict[str, Any]]:
    """Build the grounded prompt for a question."""
    return [
        {"role": "system", "content": SYSTEM_TEMPLATE.format(context=format_context(results))},
        {"role": "user", "content": question},
    ]


class ChatOrchestrator:
    """Answers questions from the asker's own notes.

    Example:
        ```python
        chat = ChatOrchestrator(index_manager, OpenAICompletionProvider(), bus)
        sources = await chat.ask_question("Where did I travel?", owner_id="u1")
        # The answer arrives as events on bus.subscribe("u1")
        ```
    """

    def __init__(
        self,
        index: Union[BaseVectorIndex, IndexManager],
        provider: BaseCompletionProvider,
        bus: EventBus,
        top_k: int = 5,
    ):
        """Initialize the orchestrator.

        Args:
            index: The vector index, or the manager that hands it out
            provider: Streaming completion provider
            bus: Bus the answer events are published on
            top_k: Number of chunks retrieved per question
        """
        self.index = index
        self.provider = provider
        self.bus = bus
        self.top_k = top_k
        self._requests: dict[str, ChatRequest] = {}

    async def _resolve_index(self) -> BaseVectorIndex:
        if isinstance(self.index, IndexManager):
            return await self.index.get()
        return self.index

    async def ask_question(self, question: str, owner_id: str) -> list[SearchResult]:
        """Search the owner's notes and start streaming an answer.

        Args:
            question: The user's question
            owner_id: Identity of the asker; only their chunks are used

        Returns:
            The retrieved chunks, before generation has finished

        Raises:
            ValueError: If the question is empty
            EmbeddingFailure: If the question could not be embedded
        """
        if not question or not question.strip():
            raise ValueError("Question is required")

        request = ChatRequest(question, owner_id)
        request.state = ChatState.SEARCHING

        index = await self._resolve_index()
        try:
            sources = await index.search(question, self.top_k, owner_filter(owner_id))
        except Exception:
            request.state = ChatState.FAILED
            raise

        request.messages = build_messages(question, sources)
        request.state = ChatState.PROMPT_BUILT

        request.task = asyncio.create_task(self._generate(request))
        self._requests[request.id] = request
        request.task.add_done_callback(lambda task: self._finish(request, task))

        logger.debug(f"Started request {request.id} with {len(sources)} sources")
        return sources

    def _finish(self, request: ChatRequest, task: asyncio.Task) -> None:
        self._requests.pop(request.id, None)
        if task.cancelled():
            request.state = ChatState.CANCELLED

    async def _generate(self, request: ChatRequest) -> None:
        request.state = ChatState.GENERATING
        handler = _BusPublisher(self.bus, request)

        try:
            request.answer = await self.provider.stream_complete(request.messages, handler)
        except asyncio.CancelledError:
            request.state = ChatState.CANCELLED
            logger.info(f"Request {request.id} cancelled")
            raise
        except Exception as e:
            # Failures outside the token stream, e.g. the provider failing to start
            if not request.finished:
                handler.on_error(e)

    def pending(self, owner_id: Optional[str] = None) -> list[ChatRequest]:
        """Return in-flight requests, optionally for one owner."""
        return [
            request for request in self._requests.values()
            if owner_id is None or request.owner_id == owner_id
        ]

    async def cancel(self, owner_id: str) -> int:
        """Cancel every in-flight generation for an owner.

        Nothing further is published for the cancelled requests.

        Returns:
            Number of requests cancelled
        """
        requests = self.pending(owner_id)
        await self._cancel(requests)
        return len(requests)

    async def join(self) -> None:
        """Wait until every in-flight generation has finished."""
        tasks = [request.task for request in self.pending() if request.task]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel all in-flight generations."""
        await self._cancel(self.pending())

    async def _cancel(self, requests: list[ChatRequest]) -> None:
        tasks = [request.task for request in requests if request.task and not request.task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
