"""
Listener registry delivering segmentation events to consumers
"""
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

import structlog

logger = structlog.get_logger(__name__)


class EventType(Enum):
    """Events a session delivers to its consumer"""
    SPEECH_START = "speech_start"
    SPEECH_END = "speech_end"
    CLIP_READY = "clip_ready"
    UTTERANCE_DISCARDED = "utterance_discarded"
    STATE_CHANGE = "state_change"
    ERROR = "error"


@dataclass
class Event:
    """Generic event container"""
    type: Union[EventType, str]
    data: Dict[str, Any]
    timestamp: float = field(default_factory=lambda: time.time() * 1000)
    source: Optional[str] = None

    def __getitem__(self, key: str) -> Any:
        return self.data[key]


def _event_name(event_type: Union[EventType, str]) -> str:
    return event_type.value if isinstance(event_type, EventType) else event_type


class EventEmitter:
    """
    Thread-safe synchronous event emitter

    Listeners run on the emitting thread in registration order, so events
    emitted in sequence are observed in that sequence. A failing listener is
    logged and skipped; it never reaches the emitter.
    """

    def __init__(self, source: Optional[str] = None):
        self.source = source
        self._listeners: Dict[str, List[Callable]] = defaultdict(list)
        self._once_listeners: Dict[str, List[Callable]] = defaultdict(list)
        self._wildcard_listeners: List[Callable] = []
        self._lock = threading.RLock()

    def on(self, event_type: Union[EventType, str], callback: Callable[[Event], None]) -> 'EventEmitter':
        """Register a listener; returns self for chaining"""
        event_name = _event_name(event_type)

        with self._lock:
            if callback not in self._listeners[event_name]:
                self._listeners[event_name].append(callback)
                logger.debug("Listener registered", event_name=event_name)

        return self

    def once(self, event_type: Union[EventType, str], callback: Callable[[Event], None]) -> 'EventEmitter':
        """Register a listener removed after its first call"""
        with self._lock:
            self._once_listeners[_event_name(event_type)].append(callback)

        return self

    def on_any(self, callback: Callable[[Event], None]) -> 'EventEmitter':
        """Register a listener for every event"""
        with self._lock:
            if callback not in self._wildcard_listeners:
                self._wildcard_listeners.append(callback)

        return self

    def off(self, event_type: Union[EventType, str], callback: Callable) -> 'EventEmitter':
        """Remove a listener"""
        event_name = _event_name(event_type)

        with self._lock:
            if callback in self._listeners[event_name]:
                self._listeners[event_name].remove(callback)
            if callback in self._once_listeners[event_name]:
                self._once_listeners[event_name].remove(callback)

        return self

    def off_all(self, event_type: Optional[Union[EventType, str]] = None) -> 'EventEmitter':
        """Remove all listeners for one event type, or for everything"""
        with self._lock:
            if event_type is None:
                self._listeners.clear()
                self._once_listeners.clear()
                self._wildcard_listeners.clear()
            else:
                event_name = _event_name(event_type)
                self._listeners[event_name] = []
                self._once_listeners[event_name] = []

        return self

    def emit(self, event_type: Union[EventType, str], data: Optional[Dict[str, Any]] = None, **kwargs) -> bool:
        """
        Deliver an event to its listeners

        Returns:
            True if any listener was called
        """
        event_name = _event_name(event_type)
        event = Event(type=event_type, data={**(data or {}), **kwargs}, source=self.source)

        with self._lock:
            callbacks = list(self._listeners.get(event_name, []))
            callbacks += self._once_listeners.pop(event_name, [])
            callbacks += self._wildcard_listeners

        # Listeners run outside the lock so they may register or emit
        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error("Listener error", event_name=event_name, error=str(e), exc_info=True)

        return bool(callbacks)

    def listener_count(self, event_type: Optional[Union[EventType, str]] = None) -> int:
        """Number of listeners for an event type, or overall"""
        with self._lock:
            if event_type is None:
                return (
                    sum(len(l) for l in self._listeners.values())
                    + sum(len(l) for l in self._once_listeners.values())
                    + len(self._wildcard_listeners)
                )

            event_name = _event_name(event_type)
            return len(self._listeners.get(event_name, [])) + len(self._once_listeners.get(event_name, []))
