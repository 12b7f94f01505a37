"""
Generation providers.

Every agent talks to the model through a single capability:
``call(request: GenerationRequest) -> str``. Providers never retry on their own;
the retry policy belongs to the orchestrator so a test double can decide
per call whether it fails or succeeds.
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import List, Optional, Protocol

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_core.runnables import Runnable

from models import GenerationRequest


class ProviderError(Exception):
    """The generation backend failed to answer."""


class ProviderTimeout(ProviderError):
    """The backend did not answer within the per-call timeout."""


class PipelineCancelled(Exception):
    """The run was cancelled or ran past its deadline."""


class GenerationProvider(Protocol):
    name: str

    def call(self, request: GenerationRequest) -> str:
        ...


def build_messages(request: GenerationRequest) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    if request.system_instruction:
        messages.append(SystemMessage(content=request.system_instruction))
    messages.append(HumanMessage(content=request.user_instruction))
    return messages


def _message_text(content) -> str:
    # Anthropic/Gemini may answer with a list of content blocks
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class ChatModelProvider:
    """Adapts any LangChain chat model to the provider interface."""

    def __init__(self, llm: Runnable, name: Optional[str] = None):
        self.llm = llm
        self.name = name or type(llm).__name__

    def call(self, request: GenerationRequest) -> str:
        params = {"temperature": request.temperature}
        if request.max_tokens:
            params["max_tokens"] = request.max_tokens
        try:
            response = self.llm.bind(**params).invoke(build_messages(request))
        except Exception as e:
            raise ProviderError(f"{self.name}: {e}") from e
        return _message_text(getattr(response, "content", response))


class CancellationToken:
    """
    Cooperative cancellation shared by one pipeline run.

    The token is cancelled explicitly with ``cancel()`` or implicitly once the
    optional deadline (seconds from creation) has passed.
    """

    def __init__(self, deadline: Optional[float] = None):
        self._event = threading.Event()
        self._expires_at = time.monotonic() + deadline if deadline is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise PipelineCancelled("Pipeline cancelled")

    def wait(self, seconds: float) -> bool:
        """Sleeps up to ``seconds``; returns True if the token got cancelled meanwhile."""
        if seconds <= 0:
            return self.cancelled
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self._event.wait(seconds)
        return self.cancelled


class BoundedProvider:
    """
    Wraps a provider with a per-call timeout and a cancellation token.

    With no timeout and no deadline the call runs inline. Otherwise it runs on a
    worker thread and is abandoned when the time is up; the stuck backend call
    is left to finish on its own.
    """

    def __init__(self, provider: GenerationProvider, timeout: Optional[float] = None,
                 token: Optional[CancellationToken] = None):
        self.provider = provider
        self.timeout = timeout
        self.token = token or CancellationToken()
        self.name = getattr(provider, "name", type(provider).__name__)

    def _budget(self) -> Optional[float]:
        remaining = self.token.remaining()
        if self.timeout is None:
            return remaining
        if remaining is None:
            return self.timeout
        return min(self.timeout, remaining)

    def call(self, request: GenerationRequest) -> str:
        self.token.raise_if_cancelled()
        budget = self._budget()
        if budget is None:
            return self.provider.call(request)

        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(self.provider.call, request)
            try:
                return future.result(timeout=budget)
            except FutureTimeoutError:
                self.token.raise_if_cancelled()
                raise ProviderTimeout(f"{self.name} did not answer within {budget:.1f}s")
        finally:
            executor.shutdown(wait=False)
