"""
Event delivery: the registry hands each committed event to every sink, in order.
"""
from __future__ import annotations

import logging
from typing import Callable, Iterable

from paygate.paywall.models import PaywallEvent

logger = logging.getLogger(__name__)

EventSink = Callable[[PaywallEvent], None]


def log_event(event: PaywallEvent) -> None:
    """Sink writing one structured log line per event."""
    logger.info("paywall_event", extra=event.to_payload())


class EventDispatcher:
    """Fans events out to sinks. A failing sink is logged; the operation stays committed."""

    def __init__(self, sinks: Iterable[EventSink] = ()) -> None:
        self._sinks: list[EventSink] = list(sinks)

    def subscribe(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def emit(self, event: PaywallEvent) -> None:
        for sink in self._sinks:
            try:
                sink(event)
            except Exception:
                logger.exception(
                    "paywall_event_sink_failed",
                    extra={"event_name": event.event_name, "error": getattr(sink, "__name__", repr(sink))},
                )
