"""Progress sinks: fan-out bus and callback adapters for typed events."""

from __future__ import annotations

from collections.abc import Callable

from shardwise.core.logging import get_logger
from shardwise.core.protocols import IProgressSink
from shardwise.models.events import ProgressEvent

logger = get_logger(__name__)


class NullSink:
    """IProgressSink that drops every event."""

    def emit(self, event: ProgressEvent) -> None:
        return None


class CallbackSink:
    """Adapts a plain callable, optionally filtered to some event names."""

    def __init__(self, callback: Callable[[ProgressEvent], None],
                 event_names: set[str] | None = None) -> None:
        self._callback = callback
        self._event_names = event_names

    def emit(self, event: ProgressEvent) -> None:
        if self._event_names is None or event.event_name in self._event_names:
            self._callback(event)


class EventBus:
    """Fans events out to subscribed sinks.

    Subscribers are monitoring collaborators: a failing subscriber is logged
    and skipped so it cannot break shard processing.
    """

    def __init__(self, *sinks: IProgressSink) -> None:
        self._sinks: list[IProgressSink] = list(sinks)

    def subscribe(self, sink: IProgressSink) -> None:
        self._sinks.append(sink)

    def emit(self, event: ProgressEvent) -> None:
        for sink in self._sinks:
            try:
                sink.emit(event)
            except Exception:
                logger.exception(
                    "sink.failed", sink=type(sink).__name__, event=event.event_name,
                    shard_id=event.shard_id,
                )
