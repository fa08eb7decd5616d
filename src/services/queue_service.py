"""
Queue Service Module

Owns the ordered track list and the current track index.
"""

from typing import List, Optional, Callable, Iterable
import dataclasses
import threading
import logging

from core.errors import TrackNotFoundError
from core.event_bus import EventBus, EventType
from models.track import Track, IdGenerator, new_track_id

logger = logging.getLogger(__name__)


class QueueService:
    """
    Queue Service

    Keeps the playback queue and "current index". The index always points at
    a track in the queue, or is None when the queue is empty.

    The queue never talks to the playback device. When the current track is
    removed it calls the handler registered with set_on_current_removed(),
    which the player uses to stop playback.

    Example:
        queue = QueueService(event_bus, id_generator=SequentialIdGenerator())
        queue.add([Track(title="Intro", artist="Band")])
        index = queue.select(track_id)
        matches = queue.filter("band")
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        id_generator: Optional[IdGenerator] = None,
        tracks: Optional[Iterable[Track]] = None,
    ):
        self._event_bus = event_bus or EventBus()
        self._id_generator = id_generator or new_track_id

        # Shared with the player: guards queue and playback state as one unit
        self._lock = threading.RLock()

        self._tracks: List[Track] = []
        self._current_index: Optional[int] = None
        self._on_current_removed: Optional[Callable[[Track], None]] = None

        if tracks:
            self.add(tracks)

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    @property
    def tracks(self) -> List[Track]:
        """Snapshot of the queue in order"""
        with self._lock:
            return self._tracks.copy()

    @property
    def current_index(self) -> Optional[int]:
        with self._lock:
            return self._current_index

    @property
    def current_track(self) -> Optional[Track]:
        with self._lock:
            if self._current_index is None:
                return None
            return self._tracks[self._current_index]

    def __len__(self) -> int:
        with self._lock:
            return len(self._tracks)

    def is_empty(self) -> bool:
        return len(self) == 0

    def set_on_current_removed(self, callback: Optional[Callable[[Track], None]]) -> None:
        """Set the callback invoked (under the queue lock) after the current track is removed"""
        self._on_current_removed = callback

    def add(self, tracks: Iterable[Track]) -> List[Track]:
        """
        Append tracks at the end, preserving their order

        Each stored track gets a fresh id from the id generator, so ids
        supplied by the caller never collide with retained ones.

        Returns:
            List[Track]: The stored copies carrying their new ids
        """
        with self._lock:
            added = [dataclasses.replace(track, id=self._id_generator()) for track in tracks]
            if not added:
                return []

            self._tracks.extend(added)
            if self._current_index is None:
                self._current_index = 0

            for track in added:
                self._event_bus.publish_sync(EventType.TRACK_ADDED, track)
            self._event_bus.publish_sync(EventType.QUEUE_CHANGED, self._tracks.copy())

        logger.debug("Added %d track(s) to queue", len(added))
        return added

    def remove(self, track_id: str) -> bool:
        """
        Remove a track by id

        Unknown ids are a no-op. Removing the current track resets the current
        index to 0 (None if the queue is now empty) and notifies the
        current-removed handler. Removing an earlier track keeps the current
        index on the same track.

        Returns:
            bool: Whether a track was removed
        """
        with self._lock:
            index = self._index_of(track_id)
            if index is None:
                logger.debug("Remove ignored, track not in queue: %s", track_id)
                return False

            removed = self._tracks.pop(index)
            was_current = index == self._current_index

            if not self._tracks:
                self._current_index = None
            elif was_current:
                self._current_index = 0
            elif self._current_index is not None and index < self._current_index:
                self._current_index -= 1

            self._event_bus.publish_sync(EventType.TRACK_REMOVED, {
                "track": removed,
                "was_current": was_current,
            })
            self._event_bus.publish_sync(EventType.QUEUE_CHANGED, self._tracks.copy())

            if was_current and self._on_current_removed:
                self._on_current_removed(removed)

        return True

    def select(self, track_id: str) -> Optional[int]:
        """
        Current position of a track

        Returns:
            Optional[int]: Index in the queue, or None if the id is unknown
        """
        with self._lock:
            return self._index_of(track_id)

    def get(self, track_id: str) -> Track:
        """
        Look up a track by id

        Raises:
            TrackNotFoundError: If the id is not in the queue
        """
        with self._lock:
            index = self._index_of(track_id)
            if index is None:
                raise TrackNotFoundError(track_id)
            return self._tracks[index]

    def filter(self, query: str) -> List[Track]:
        """
        Case-insensitive substring search over "title artist"

        An empty query returns the whole queue in order.
        """
        needle = (query or "").lower()
        with self._lock:
            if not needle:
                return self._tracks.copy()
            return [track for track in self._tracks if needle in track.search_text]

    def set_current(self, index: int) -> Track:
        """
        Make the track at index current

        Raises:
            IndexError: If index is outside the queue
        """
        with self._lock:
            if not 0 <= index < len(self._tracks):
                raise IndexError(f"Queue index out of range: {index}")
            self._current_index = index
            return self._tracks[index]

    def clear(self) -> None:
        """Remove every track"""
        with self._lock:
            current = self.current_track
            self._tracks.clear()
            self._current_index = None
            self._event_bus.publish_sync(EventType.QUEUE_CHANGED, [])
            if current is not None and self._on_current_removed:
                self._on_current_removed(current)

    def _index_of(self, track_id: str) -> Optional[int]:
        for i, track in enumerate(self._tracks):
            if track.id == track_id:
                return i
        return None
