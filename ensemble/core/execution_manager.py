"""
Execution manager for invoking provider agents.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ensemble.models.orchestration_models import (
    AgentResponse,
    ChatMessage,
    ChatOptions
)
from .errors import AgentFailure, OperationCancelled, StreamTimeout
from .provider_registry import ProviderRegistry


logger = logging.getLogger(__name__)


MAX_CALL_RECORDS = 10000

AgentCall = Tuple[str, List[ChatMessage]]


@dataclass
class CallRecord:
    """Bookkeeping for one agent invocation."""
    agent: str
    mode: Optional[str]
    success: bool
    streamed: bool
    latency: float
    error_message: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)


def _check_cancelled(cancel_event: Optional[asyncio.Event]):
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelled("Operation cancelled by caller")


async def await_with_cancel(
    awaitable: Awaitable[Any],
    timeout: Optional[float] = None,
    cancel_event: Optional[asyncio.Event] = None
) -> Any:
    """
    Await a provider operation under a time limit and a cancellation signal.

    The operation runs as its own task, raced against the signal. Whichever
    of the signal or the time limit comes first cancels the task, so the
    provider call is aborted rather than left running.

    Args:
        awaitable: Operation to run
        timeout: Limit in seconds, or None for no limit
        cancel_event: Caller cancellation signal

    Returns:
        Result of the operation

    Raises:
        asyncio.TimeoutError: If the time limit passed first
        OperationCancelled: If the caller cancelled first
    """
    if cancel_event is not None and cancel_event.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise OperationCancelled("Operation cancelled by caller")
    task = asyncio.ensure_future(awaitable)
    waiters = {task}
    cancel_waiter = None
    if cancel_event is not None:
        cancel_waiter = asyncio.ensure_future(cancel_event.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if cancel_waiter is not None:
            cancel_waiter.cancel()
        if not task.done():
            task.cancel()
            await asyncio.wait({task})

    if task in done:
        return task.result()
    _check_cancelled(cancel_event)
    raise asyncio.TimeoutError()


class AgentInvoker:
    """
    Invokes provider agents with time budgets and failure isolation.

    Every call is converted into either an AgentResponse or an AgentFailure.
    Cancellation is never converted: OperationCancelled and task cancellation
    propagate unchanged.
    """

    def __init__(self, registry: ProviderRegistry, default_timeout: float = 120.0, stream_timeout: float = 180.0):
        """
        Initialize the agent invoker.

        Args:
            registry: Registry of providers
            default_timeout: Budget in seconds for a buffered call
            stream_timeout: Budget in seconds between two stream chunks
        """
        self.registry = registry
        self.default_timeout = default_timeout
        self.stream_timeout = stream_timeout
        self._call_records: List[CallRecord] = []
        self._execution_callbacks: List[Callable] = []

    def add_execution_callback(self, callback: Callable):
        """
        Add a callback to be called on execution events.

        Args:
            callback: Function or coroutine function taking (event_type, data)
        """
        self._execution_callbacks.append(callback)

    def remove_execution_callback(self, callback: Callable):
        if callback in self._execution_callbacks:
            self._execution_callbacks.remove(callback)

    def _get_provider(self, agent_name: str):
        provider = self.registry.get(agent_name)
        if provider is None:
            raise AgentFailure(agent_name, "provider not registered")
        if not provider.is_available:
            raise AgentFailure(agent_name, "provider not available")
        return provider

    async def call(
        self,
        agent_name: str,
        messages: List[ChatMessage],
        options: Optional[ChatOptions] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
        mode: Optional[str] = None
    ) -> AgentResponse:
        """
        Run one buffered agent call.

        Args:
            agent_name: Provider to call
            messages: Conversation to send
            options: Generation options
            timeout: Budget in seconds, defaults to the invoker's
            cancel_event: Caller cancellation signal
            mode: Collaboration mode, for bookkeeping

        Returns:
            AgentResponse with the reply

        Raises:
            AgentFailure: If the provider is missing, fails or times out
            OperationCancelled: If the caller cancelled
        """
        _check_cancelled(cancel_event)
        budget = timeout or self.default_timeout
        start = time.monotonic()

        try:
            provider = self._get_provider(agent_name)
            response = await await_with_cancel(provider.chat(messages, options), budget, cancel_event)
        except asyncio.TimeoutError:
            failure = StreamTimeout(agent_name, f"no reply within {budget}s")
            await self._record_failure(agent_name, mode, False, start, failure)
            raise failure
        except AgentFailure as failure:
            await self._record_failure(agent_name, mode, False, start, failure)
            raise
        except OperationCancelled:
            raise
        except Exception as e:
            failure = AgentFailure(agent_name, str(e) or type(e).__name__)
            await self._record_failure(agent_name, mode, False, start, failure)
            raise failure from e

        _check_cancelled(cancel_event)
        latency = time.monotonic() - start
        result = AgentResponse(agent=agent_name, content=response.content, execution_time=latency)
        self._record_call(CallRecord(agent_name, mode, True, False, latency))
        await self._notify_callbacks("agent_completed", {"agent_name": agent_name, "result": result})
        return result

    async def call_many(
        self,
        calls: Sequence[AgentCall],
        options: Optional[ChatOptions] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
        mode: Optional[str] = None
    ) -> List[Union[AgentResponse, AgentFailure]]:
        """
        Run buffered calls concurrently and wait for all of them to settle.

        Args:
            calls: Sequence of (agent name, messages)

        Returns:
            One AgentResponse or AgentFailure per call, in input order

        Raises:
            OperationCancelled: If the caller cancelled
        """
        _check_cancelled(cancel_event)
        tasks = [
            self.call(agent_name, messages, options, timeout, cancel_event, mode)
            for agent_name, messages in calls
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        settled = []
        for (agent_name, _), result in zip(calls, results):
            if isinstance(result, OperationCancelled):
                raise result
            if isinstance(result, AgentFailure):
                logger.warning(f"Agent {agent_name} failed: {result.reason}")
                settled.append(result)
            elif isinstance(result, BaseException):
                settled.append(AgentFailure(agent_name, str(result)))
            else:
                settled.append(result)
        return settled

    async def stream(
        self,
        agent_name: str,
        messages: List[ChatMessage],
        options: Optional[ChatOptions] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
        mode: Optional[str] = None
    ) -> AsyncIterator[str]:
        """
        Stream text deltas from one agent.

        Native chunks are mapped through the provider's registered normalizer.
        The provider stream is closed when the consumer stops early.

        Args:
            agent_name: Provider to call
            messages: Conversation to send
            timeout: Budget in seconds for the whole stream; the invoker's
                stream_timeout additionally limits the wait for each chunk

        Yields:
            Non-empty text deltas

        Raises:
            StreamTimeout: If the budget runs out or a chunk does not arrive in time
            AgentFailure: If the provider is missing or fails mid-stream
            OperationCancelled: If the caller cancelled
        """
        _check_cancelled(cancel_event)
        start = time.monotonic()
        deadline = start + timeout if timeout else None

        try:
            provider = self._get_provider(agent_name)
        except AgentFailure as failure:
            await self._record_failure(agent_name, mode, True, start, failure)
            raise

        normalizer = self.registry.get_normalizer(agent_name)
        chunks = provider.stream_chat(messages, options).__aiter__()
        try:
            while True:
                wait = self.stream_timeout
                remaining = deadline - time.monotonic() if deadline is not None else None
                if remaining is not None and remaining < wait:
                    wait = remaining
                try:
                    if wait <= 0:
                        raise asyncio.TimeoutError()
                    chunk = await await_with_cancel(chunks.__anext__(), wait, cancel_event)
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError:
                    if remaining is not None and remaining <= self.stream_timeout:
                        reason = f"stream not finished within {timeout}s"
                    else:
                        reason = f"no chunk within {self.stream_timeout}s"
                    failure = StreamTimeout(agent_name, reason)
                    await self._record_failure(agent_name, mode, True, start, failure)
                    raise failure
                except (AgentFailure, OperationCancelled):
                    raise
                except Exception as e:
                    failure = AgentFailure(agent_name, str(e) or type(e).__name__)
                    await self._record_failure(agent_name, mode, True, start, failure)
                    raise failure from e

                delta = normalizer(chunk)
                if delta:
                    yield delta
        finally:
            aclose = getattr(chunks, "aclose", None)
            if aclose is not None:
                await aclose()

        latency = time.monotonic() - start
        self._record_call(CallRecord(agent_name, mode, True, True, latency))
        await self._notify_callbacks("agent_completed", {"agent_name": agent_name, "streamed": True})

    async def _record_failure(self, agent_name: str, mode: Optional[str], streamed: bool, start: float, failure: AgentFailure):
        self._record_call(CallRecord(
            agent_name, mode, False, streamed, time.monotonic() - start, error_message=failure.reason
        ))
        await self._notify_callbacks("agent_failed", {"agent_name": agent_name, "error": failure})

    def _record_call(self, record: CallRecord):
        self._call_records.append(record)

        # Keep only last 10000 calls
        if len(self._call_records) > MAX_CALL_RECORDS:
            self._call_records = self._call_records[-MAX_CALL_RECORDS:]

    def get_call_records(self, limit: Optional[int] = None, agent_name: Optional[str] = None) -> List[CallRecord]:
        """
        Get call records, most recent first.

        Args:
            limit: Maximum number of records to return
            agent_name: Filter by agent name

        Returns:
            List of call records
        """
        records = self._call_records
        if agent_name:
            records = [r for r in records if r.agent == agent_name]
        records = list(reversed(records))
        if limit:
            records = records[:limit]
        return records

    async def _notify_callbacks(self, event_type: str, data: Dict[str, Any]):
        """Notify all registered callbacks about an event."""
        for callback in self._execution_callbacks:
            try:
                if asyncio.iscoroutinefunction(callback):
                    await callback(event_type, data)
                else:
                    callback(event_type, data)
            except Exception as e:
                logger.error(f"Execution callback error: {e}")

    def get_execution_statistics(self) -> Dict[str, Any]:
        """
        Get execution statistics.

        Returns:
            Dictionary containing call statistics
        """
        total_calls = len(self._call_records)
        successful_calls = sum(1 for r in self._call_records if r.success)

        calls_by_agent = {}
        for record in self._call_records:
            calls_by_agent[record.agent] = calls_by_agent.get(record.agent, 0) + 1

        return {
            "total_calls": total_calls,
            "successful_calls": successful_calls,
            "call_success_rate": successful_calls / total_calls if total_calls > 0 else 0.0,
            "calls_by_agent": calls_by_agent
        }
