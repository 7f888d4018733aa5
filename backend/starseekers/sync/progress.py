"""Sync progress events and the single-producer channel that carries them."""

from __future__ import annotations

import queue
import threading
from typing import Annotated, Any, Iterator, Literal, Union

import orjson
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ProgressEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def terminal(self) -> bool:
        return False

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class StartEvent(ProgressEvent):
    status: Literal["start"] = "start"


class FetchEvent(ProgressEvent):
    status: Literal["fetch"] = "fetch"
    page: int
    fetched: int
    total_fetched: int = Field(alias="totalFetched")


class EmbedEvent(ProgressEvent):
    status: Literal["embed"] = "embed"
    completed: int
    total: int


class UpsertEvent(ProgressEvent):
    status: Literal["upsert"] = "upsert"
    completed: int
    total: int


class CompleteEvent(ProgressEvent):
    status: Literal["complete"] = "complete"
    synced: int
    total: int

    @property
    def terminal(self) -> bool:
        return True


class ErrorEvent(ProgressEvent):
    status: Literal["error"] = "error"
    message: str

    @property
    def terminal(self) -> bool:
        return True


SyncEvent = Annotated[
    Union[StartEvent, FetchEvent, EmbedEvent, UpsertEvent, CompleteEvent, ErrorEvent],
    Field(discriminator="status"),
]

_EVENT_ADAPTER: TypeAdapter[SyncEvent] = TypeAdapter(SyncEvent)


def encode_event(event: ProgressEvent) -> bytes:
    """Serialise one event as an NDJSON line."""
    return orjson.dumps(event.to_wire()) + b"\n"


def decode_event(line: str | bytes) -> ProgressEvent:
    """Parse one NDJSON line back into a typed event."""
    return _EVENT_ADAPTER.validate_python(orjson.loads(line.strip()))


class ChannelClosed(RuntimeError):
    """Raised when an event is emitted after the terminal event."""


class ProgressChannel:
    """Bounded, forward-only event channel between one producer and one consumer.

    The channel closes itself after the first terminal event. If the consumer
    detaches, later events are dropped so the producer can run to completion.
    """

    def __init__(self, maxsize: int = 256, put_timeout: float = 0.1) -> None:
        self._queue: queue.Queue[ProgressEvent] = queue.Queue(maxsize=maxsize)
        self._put_timeout = put_timeout
        self._lock = threading.Lock()
        self._closed = False
        self._detached = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def detached(self) -> bool:
        return self._detached.is_set()

    def emit(self, event: ProgressEvent) -> None:
        with self._lock:
            if self._closed:
                raise ChannelClosed(f"cannot emit '{event.status}' after the terminal event")
            if event.terminal:
                self._closed = True
        while not self._detached.is_set():
            try:
                self._queue.put(event, timeout=self._put_timeout)
                return
            except queue.Full:
                continue

    def detach(self) -> None:
        """Stop consuming; pending and future events are discarded."""
        self._detached.set()
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return

    def __iter__(self) -> Iterator[ProgressEvent]:
        while not self._detached.is_set():
            event = self._queue.get()
            yield event
            if event.terminal:
                return

    def ndjson(self) -> Iterator[bytes]:
        """Drain the channel as NDJSON lines, detaching if the consumer stops early."""
        try:
            for event in self:
                yield encode_event(event)
        finally:
            self.detach()


__all__ = [
    "ProgressEvent",
    "StartEvent",
    "FetchEvent",
    "EmbedEvent",
    "UpsertEvent",
    "CompleteEvent",
    "ErrorEvent",
    "SyncEvent",
    "ProgressChannel",
    "ChannelClosed",
    "encode_event",
    "decode_event",
]
