# -*- coding: utf-8 -*-
"""
Event Bus Module - Publish-Subscribe Pattern Implementation

Notifies the UI layer about queue and playback changes without the services
knowing who listens.

Design Notes:
- Pure Python, no UI framework dependency
- One instance per application container (no global singleton)
- publish_sync runs callbacks in the caller's thread, which keeps them on the
  same thread as the player state mutations
"""

from typing import Dict, Callable, Any, Optional
from enum import Enum
import threading
import uuid
import logging
from concurrent.futures import ThreadPoolExecutor

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event type enumeration"""

    # Playback events
    TRACK_LOADED = "track_loaded"
    TRACK_STARTED = "track_started"
    TRACK_PAUSED = "track_paused"
    TRACK_ENDED = "track_ended"
    PLAYBACK_STOPPED = "playback_stopped"  # Manual stop or forced reset (distinguished from natural end)
    PLAYBACK_FAILED = "playback_failed"
    POSITION_CHANGED = "position_changed"
    DURATION_CHANGED = "duration_changed"
    VOLUME_CHANGED = "volume_changed"
    PLAY_MODE_CHANGED = "play_mode_changed"

    # Queue events
    QUEUE_CHANGED = "queue_changed"
    TRACK_ADDED = "track_added"
    TRACK_REMOVED = "track_removed"

    # System events
    ERROR_OCCURRED = "error_occurred"


class EventBus:
    """
    Event Bus

    Provides publish-subscribe pattern event system, supports asynchronous event handling.

    Usage example:
        event_bus = EventBus()

        # Subscribe to event
        def on_track_started(track):
            logger.info("Playing: %s", track.title)

        sub_id = event_bus.subscribe(EventType.TRACK_STARTED, on_track_started)

        # Publish event
        event_bus.publish_sync(EventType.TRACK_STARTED, track)

        # Unsubscribe
        event_bus.unsubscribe(sub_id)
    """

    def __init__(self, max_workers: int = 2):
        self._subscribers: Dict[EventType, Dict[str, Callable]] = {}
        self._executor: Optional[ThreadPoolExecutor] = None
        self._max_workers = max_workers
        self._sub_lock = threading.Lock()
        self._closed = False

    def subscribe(
        self,
        event_type: EventType,
        callback: Callable[[Any], None]
    ) -> str:
        """
        Subscribe to event

        Args:
            event_type: Event type
            callback: Callback function, receiving event data as an argument

        Returns:
            str: Subscription ID, used for unsubscription
        """
        subscription_id = str(uuid.uuid4())

        with self._sub_lock:
            if event_type not in self._subscribers:
                self._subscribers[event_type] = {}
            self._subscribers[event_type][subscription_id] = callback

        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """
        Unsubscribe

        Args:
            subscription_id: The ID returned when subscribing

        Returns:
            bool: Whether the unsubscription was successful
        """
        with self._sub_lock:
            for event_type in self._subscribers:
                if subscription_id in self._subscribers[event_type]:
                    del self._subscribers[event_type][subscription_id]
                    return True
        return False

    def publish(self, event_type: EventType, data: Any = None) -> None:
        """
        Publish event asynchronously

        The callback function will be executed in the thread pool. Listeners that
        touch the player must use publish_sync instead.
        """
        with self._sub_lock:
            if self._closed:
                logger.debug("Event bus shut down, dropping %s", event_type)
                return
            callbacks = list(self._subscribers.get(event_type, {}).values())
            if callbacks and self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="EventBus"
                )
            # Submitted under the lock so shutdown() cannot close the pool in between
            for callback in callbacks:
                self._executor.submit(self._safe_call, callback, data)

    def publish_sync(self, event_type: EventType, data: Any = None) -> None:
        """
        Publish event synchronously

        All callbacks are executed in the current thread, in subscription order.
        """
        with self._sub_lock:
            callbacks = list(self._subscribers.get(event_type, {}).values())

        for callback in callbacks:
            self._safe_call(callback, data)

    def _safe_call(self, callback: Callable, data: Any) -> None:
        """Safely call a callback function"""
        try:
            callback(data)
        except Exception as e:
            # Avoid loop: Do not use publish to report error events
            logger.error("Event callback execution error: %s", e)

    def subscriber_count(self, event_type: EventType) -> int:
        with self._sub_lock:
            return len(self._subscribers.get(event_type, {}))

    def clear(self) -> None:
        """Clear all subscriptions"""
        with self._sub_lock:
            self._subscribers.clear()

    def shutdown(self) -> None:
        """Shutdown the event bus; later asynchronous publishes are dropped"""
        with self._sub_lock:
            self._closed = True
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
