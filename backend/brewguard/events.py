"""Structured event sink shared by every pipeline component.

Recent events are kept in a bounded in-memory log, written through the standard
``logging`` module and optionally forwarded to an HTTP collector. Forwarding
is fire-and-forget: a failed delivery is logged locally and never raised.
"""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Literal, Optional, Set, Tuple

import aiohttp

from .config import Settings

logger = logging.getLogger(__name__)

MAX_RETAINED_EVENTS = 1000

EventLevel = Literal["info", "warn", "error", "debug"]

LOG_LEVELS: Dict[str, int] = {
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "debug": logging.DEBUG,
}


@dataclass(frozen=True)
class Event:
    timestamp: str
    level: EventLevel
    context: str
    message: str
    data: Optional[Dict[str, Any]] = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "level": self.level,
            "context": self.context,
            "message": self.message,
        }
        if self.data is not None:
            payload["data"] = self.data
        return payload

    def format(self) -> str:
        return f"[{self.timestamp}] [{self.level.upper()}] [{self.context}]: {self.message}"


@dataclass
class EventSink:
    """Append-only event emitter injected into the pipeline components."""

    enabled: bool = True
    endpoint: Optional[str] = None
    forward_timeout: float = 5.0
    max_retained: int = MAX_RETAINED_EVENTS
    _events: Deque[Event] = field(init=False, repr=False)
    _pending: Set["asyncio.Task[None]"] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self) -> None:
        # Oldest events drop off; logging and forwarding still see every one.
        self._events = deque(maxlen=self.max_retained)

    @classmethod
    def from_settings(cls, settings: Settings) -> "EventSink":
        return cls(
            enabled=not settings.is_production or settings.debug,
            endpoint=settings.log_endpoint,
        )

    @property
    def events(self) -> Tuple[Event, ...]:
        return tuple(self._events)

    def info(self, message: str, *, context: str = "app", data: Optional[Dict[str, Any]] = None) -> None:
        self.emit("info", message, context=context, data=data)

    def warn(self, message: str, *, context: str = "app", data: Optional[Dict[str, Any]] = None) -> None:
        self.emit("warn", message, context=context, data=data)

    def debug(self, message: str, *, context: str = "app", data: Optional[Dict[str, Any]] = None) -> None:
        self.emit("debug", message, context=context, data=data)

    def error(
        self,
        message: str,
        exc: Optional[BaseException] = None,
        *,
        context: str = "app",
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        payload = dict(data or {})
        if exc is not None:
            payload["error"] = {"name": type(exc).__name__, "message": str(exc)}
        self.emit("error", message, context=context, data=payload or None)

    def emit(
        self,
        level: EventLevel,
        message: str,
        *,
        context: str = "app",
        data: Optional[Dict[str, Any]] = None,
    ) -> Optional[Event]:
        # Errors are recorded even when the sink is muted.
        if not self.enabled and level != "error":
            return None

        event = Event(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            context=context or "app",
            message=message,
            data=data,
        )
        self._events.append(event)
        if data is not None:
            logger.log(LOG_LEVELS[level], "%s %s", event.format(), data)
        else:
            logger.log(LOG_LEVELS[level], event.format())

        if self.endpoint:
            self._schedule_forward(event)
        return event

    def _schedule_forward(self, event: Event) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; event not forwarded to %s", self.endpoint)
            return
        task = loop.create_task(self._forward(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _forward(self, event: Event) -> None:
        timeout = aiohttp.ClientTimeout(total=self.forward_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.endpoint, json=event.as_dict()) as response:
                    if response.status >= 400:
                        logger.warning("Event collector %s answered %s", self.endpoint, response.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("Failed to send event to %s: %s", self.endpoint, exc)

    async def flush(self) -> None:
        """Wait for outstanding forwards; used at shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


__all__ = ["LOG_LEVELS", "MAX_RETAINED_EVENTS", "Event", "EventLevel", "EventSink"]
