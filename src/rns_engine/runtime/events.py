"""Minimal event bus used to surface engine activity to adapters."""

from __future__ import annotations

from typing import Callable, Dict

EventCallback = Callable[[object], None]


class EventBus:
    """Synchronous subscribe/emit bus; callbacks run in subscription order."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, list[EventCallback]] = {}

    def subscribe(self, event: str, callback: EventCallback) -> None:
        self._subscribers.setdefault(event, []).append(callback)

    def emit(self, event: str, payload: object | None = None) -> None:
        for callback in list(self._subscribers.get(event, [])):
            callback(payload)


__all__ = ["EventBus", "EventCallback"]
