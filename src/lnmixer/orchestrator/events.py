"""Event delivery from the orchestrator to an observer."""

import asyncio
import logging
from collections import deque
from typing import Callable, Optional

from lnmixer.models import EventType, OrchestratorEvent

logger = logging.getLogger(__name__)

EventSink = Callable[[OrchestratorEvent], None]


class EventChannel:
    """Bounded buffer of events, consumed as an async iterator.

    emit() never blocks. When the buffer is full the oldest buffered event
    is dropped, so the newest (including the terminal event) always gets in.
    """

    def __init__(self, maxsize: int = 100):
        if maxsize < 1:
            raise ValueError("EventChannel maxsize must be at least 1")
        self.maxsize = maxsize
        self.dropped = 0
        self._buffer: deque[OrchestratorEvent] = deque()
        self._ready = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: OrchestratorEvent) -> None:
        if self._closed:
            logger.warning(f"Event {event.type.value} emitted after channel closed")
            return
        if len(self._buffer) >= self.maxsize:
            dropped = self._buffer.popleft()
            self.dropped += 1
            logger.warning(f"Event buffer full, dropped {dropped.type.value}")
        self._buffer.append(event)
        self._ready.set()

    __call__ = emit

    def close(self) -> None:
        self._closed = True
        self._ready.set()

    def __aiter__(self) -> "EventChannel":
        return self

    async def __anext__(self) -> OrchestratorEvent:
        while not self._buffer:
            if self._closed:
                raise StopAsyncIteration
            self._ready.clear()
            await self._ready.wait()
        return self._buffer.popleft()


class ProgressEmitter:
    """Builds events for one run and hands them to the sink.

    Progress never goes backwards: a lower checkpoint is raised to the last
    value emitted. The error event is the exception and always reports 0.
    A sink that raises is logged and ignored so observers cannot break a run.
    """

    def __init__(self, sink: EventSink):
        self._sink = sink
        self.last_progress = 0

    def emit(
        self,
        event_type: EventType,
        message: Optional[str] = None,
        progress: Optional[int] = None,
        **fields,
    ) -> OrchestratorEvent:
        if progress is not None and event_type != EventType.MIX_ERROR:
            progress = max(progress, self.last_progress)
            self.last_progress = progress

        event = OrchestratorEvent(type=event_type, message=message, progress=progress, **fields)
        try:
            self._sink(event)
        except Exception:
            logger.exception(f"Event sink raised while handling {event_type.value}")
        return event
