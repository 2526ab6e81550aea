"""Structured events emitted at each major step of graph construction.

Events go to the emitting component's logger and, when configured, to an
injected sink (any callable taking a GraphEvent), e.g. a UI bridge or a test
recorder.
"""

import logging
import time
from typing import Any, Callable, Literal, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

EventCategory = Literal["graph", "expansion", "hydration", "detection", "cache", "error"]


class GraphEvent(BaseModel):
    category: EventCategory
    component: str
    message: str
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=time.time)


EventSink = Callable[[GraphEvent], None]


class EventEmitter:
    """Emits events for one component.

    Args:
        component: Component name carried on every event
        sink: Optional callable receiving each event
        log: Logger used for the log line (defaults to this module's)
    """

    def __init__(
        self,
        component: str,
        sink: Optional[EventSink] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.component = component
        self.sink = sink
        self._logger = log or logger

    def emit(self, category: EventCategory, message: str, **payload: Any) -> GraphEvent:
        event = GraphEvent(
            category=category,
            component=self.component,
            message=message,
            payload=payload,
        )

        level = logging.WARNING if category == "error" else logging.DEBUG
        self._logger.log(level, f"[{category}] {self.component}: {message} {payload or ''}".rstrip())

        if self.sink is not None:
            try:
                self.sink(event)
            except Exception as e:
                logger.warning(f"Event sink failed for {self.component} {category} event: {e}")

        return event
