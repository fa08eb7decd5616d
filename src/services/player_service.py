"""
Playback Service Module

Owns the transport state (playing/paused, position, volume, shuffle, repeat)
and drives the audio device, advancing through the queue as tracks end.
"""

from typing import List, Optional, Iterable
from concurrent.futures import Future
from dataclasses import dataclass, replace
from enum import Enum
from functools import partial
import math
import random
import logging

from core.audio_device import AudioDeviceBase, DeviceSubscription
from core.event_bus import EventBus, EventType
from models.track import Track, format_seconds
from services.queue_service import QueueService

logger = logging.getLogger(__name__)


class RepeatMode(Enum):
    """Repeat mode, cycled NONE -> ALL -> ONE -> NONE"""
    NONE = "none"      # Stop after the last track
    ALL = "all"        # Wrap around the queue
    ONE = "one"        # Repeat the current track

    def next(self) -> "RepeatMode":
        order = [RepeatMode.NONE, RepeatMode.ALL, RepeatMode.ONE]
        return order[(order.index(self) + 1) % len(order)]


class TransportState(Enum):
    """Transport status derived from PlaybackState"""
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True)
class PlaybackFailure:
    """A play command the device rejected"""
    track: Track
    error: str


@dataclass
class PlaybackState:
    """Playback state"""
    current_track: Optional[Track] = None
    is_playing: bool = False
    position_seconds: float = 0.0
    duration_seconds: float = 0.0       # 0 = unknown
    volume: float = 1.0
    shuffle: bool = False
    repeat_mode: RepeatMode = RepeatMode.NONE
    last_error: Optional[PlaybackFailure] = None

    @property
    def status(self) -> TransportState:
        if self.current_track is None:
            return TransportState.STOPPED
        return TransportState.PLAYING if self.is_playing else TransportState.PAUSED

    @property
    def position_str(self) -> str:
        return format_seconds(self.position_seconds)

    @property
    def duration_str(self) -> str:
        return format_seconds(self.duration_seconds)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class PlayerService:
    """
    Playback Service

    Issues commands to the device and reacts to its events (position,
    metadata, end of track). Device listeners are scoped to the current
    track: entering a track opens a subscription, leaving it (next, previous,
    play_track, forced reset after removal, cleanup) closes it.

    Every track switch and every play/pause command bumps a generation
    counter. A play completion or device event carrying an older generation
    is stale and ignored.

    Example:
        player = PlayerService(device, queue, event_bus)

        player.add_tracks(tracks)
        player.play_pause()
        player.next()
    """

    def __init__(
        self,
        device: AudioDeviceBase,
        queue: QueueService,
        event_bus: Optional[EventBus] = None,
        config=None,
        rng: Optional[random.Random] = None,
    ):
        self._device = device
        self._queue = queue
        self._event_bus = event_bus or EventBus()
        self._rng = rng or random.Random()

        # Queue and playback state are guarded by one lock
        self._lock = queue.lock

        self._restart_threshold = 3.0
        self._seek_step = 5.0
        self._shuffle_avoid_current = False
        default_volume = 1.0
        if config is not None:
            self._restart_threshold = float(config.get("playback.restart_threshold_seconds", 3.0))
            self._seek_step = float(config.get("playback.seek_step_seconds", 5.0))
            self._shuffle_avoid_current = bool(config.get("playback.shuffle_avoid_current", False))
            default_volume = float(config.get("playback.default_volume", 1.0))

        self._state = PlaybackState(volume=_clamp(default_volume, 0.0, 1.0))

        self._subscription: Optional[DeviceSubscription] = None
        self._loaded_track_id: Optional[str] = None
        self._track_generation = 0
        self._play_generation = 0
        self._pending_play: Optional[Future] = None

        self._queue.set_on_current_removed(self._on_current_removed)
        self._device.set_volume(self._state.volume)

    # ===== State access =====

    @property
    def state(self) -> PlaybackState:
        """Snapshot of the current playback state"""
        with self._lock:
            return replace(self._state, current_track=self._queue.current_track)

    @property
    def current_track(self) -> Optional[Track]:
        return self._queue.current_track

    @property
    def current_index(self) -> Optional[int]:
        return self._queue.current_index

    @property
    def is_playing(self) -> bool:
        with self._lock:
            return self._state.is_playing

    @property
    def queue(self) -> List[Track]:
        return self._queue.tracks

    # ===== Queue mutations =====

    def add_tracks(self, tracks: Iterable[Track]) -> List[Track]:
        """Append tracks to the queue; the first track of an empty queue is loaded"""
        with self._lock:
            added = self._queue.add(tracks)
            self._ensure_loaded()
        return added

    def remove_track(self, track_id: str) -> bool:
        """Remove a track; removing the current one stops playback"""
        return self._queue.remove(track_id)

    def play_track(self, track_id: str) -> bool:
        """
        Make a queued track current and start it

        Returns:
            bool: Whether playback is now running. False, with no state
            change, if the id is not in the queue.
        """
        with self._lock:
            index = self._queue.select(track_id)
            if index is None:
                logger.warning("Cannot play, track not in queue: %s", track_id)
                self._event_bus.publish_sync(EventType.ERROR_OCCURRED, {
                    "source": "PlayerService",
                    "kind": "not_found",
                    "track_id": track_id,
                })
                return False

            self._switch_to(index)
            return self._state.is_playing

    # ===== Transport =====

    def play(self) -> bool:
        """Start or resume the current track"""
        with self._lock:
            if self._state.is_playing:
                return True
            return self._start_playback()

    def pause(self) -> None:
        """Pause playback"""
        with self._lock:
            if not self._state.is_playing:
                return
            self._invalidate_play()
            self._state.is_playing = False
            self._device.pause()
            self._event_bus.publish_sync(EventType.TRACK_PAUSED, self._queue.current_track)

    def play_pause(self) -> bool:
        """
        Toggle play/pause

        Returns:
            bool: Whether playing after the toggle (stays False with an empty queue)
        """
        with self._lock:
            if self._state.is_playing:
                self.pause()
                return False
            return self.play()

    def stop(self) -> None:
        """Pause and rewind the current track"""
        with self._lock:
            self._invalidate_play()
            self._state.is_playing = False
            self._state.position_seconds = 0.0
            if self._loaded_track_id is not None:
                self._device.pause()
                self._device.set_position(0.0)
            self._event_bus.publish_sync(EventType.PLAYBACK_STOPPED, {
                "track": self._queue.current_track,
                "reason": "stopped",
            })

    def seek_to(self, seconds: float) -> float:
        """
        Seek within the current track

        The target is clamped to [0, duration]; while the duration is unknown
        that range is just 0.

        Returns:
            float: The position actually applied
        """
        with self._lock:
            if self._ensure_loaded() is None:
                return 0.0

            if seconds is None or math.isnan(seconds):
                seconds = 0.0
            target = _clamp(float(seconds), 0.0, self._state.duration_seconds)

            self._state.position_seconds = target
            self._device.set_position(target)
            self._event_bus.publish_sync(EventType.POSITION_CHANGED, {
                "position": target,
                "duration": self._state.duration_seconds,
            })
            return target

    def seek_relative(self, delta_seconds: float) -> float:
        with self._lock:
            return self.seek_to(self._state.position_seconds + delta_seconds)

    def seek_forward(self) -> float:
        return self.seek_relative(self._seek_step)

    def seek_backward(self) -> float:
        return self.seek_relative(-self._seek_step)

    def next(self) -> Optional[Track]:
        """
        Advance to the next track and play it

        With shuffle on, picks a uniformly random index over the whole queue
        (the current track may be picked again unless
        playback.shuffle_avoid_current is set).

        Returns:
            Track: The new current track, or None if the queue is empty
        """
        with self._lock:
            count = len(self._queue)
            if count == 0:
                self._reset_to_stopped()
                return None

            current = self._queue.current_index or 0
            if self._state.shuffle:
                index = self._pick_shuffle_index(current, count)
            else:
                index = (current + 1) % count
            return self._switch_to(index)

    def previous(self) -> Optional[Track]:
        """
        Go back one track, or restart the current one

        Past the restart threshold (3 s) the current track is rewound without
        navigating; otherwise the previous track (wrapping) is played.
        """
        with self._lock:
            count = len(self._queue)
            if count == 0:
                self._reset_to_stopped()
                return None

            if self._state.position_seconds > self._restart_threshold:
                self.seek_to(0.0)
                return self._queue.current_track

            current = self._queue.current_index or 0
            return self._switch_to((current - 1 + count) % count)

    def on_track_ended(self) -> None:
        """Handle the end of the current track according to the repeat mode"""
        with self._lock:
            track = self._queue.current_track
            self._event_bus.publish_sync(EventType.TRACK_ENDED, {
                "track": track,
                "repeat_mode": self._state.repeat_mode,
            })
            if track is None:
                self._reset_to_stopped()
                return

            mode = self._state.repeat_mode
            if mode == RepeatMode.ONE:
                self.seek_to(0.0)
                self._start_playback()
            elif mode == RepeatMode.ALL:
                self.next()
            elif self._queue.current_index < len(self._queue) - 1:
                self.next()
            else:
                self._invalidate_play()
                self._state.is_playing = False
                logger.info("Reached end of queue")
                self._event_bus.publish_sync(EventType.PLAYBACK_STOPPED, {
                    "track": track,
                    "reason": "queue_finished",
                })

    # ===== Modes and volume =====

    def toggle_shuffle(self) -> bool:
        """Flip shuffle; the current track is unchanged"""
        with self._lock:
            self._state.shuffle = not self._state.shuffle
            self._publish_play_mode()
            return self._state.shuffle

    def set_shuffle(self, enabled: bool) -> None:
        with self._lock:
            if self._state.shuffle != enabled:
                self.toggle_shuffle()

    def cycle_repeat(self) -> RepeatMode:
        """Cycle repeat mode NONE -> ALL -> ONE -> NONE"""
        with self._lock:
            self._state.repeat_mode = self._state.repeat_mode.next()
            self._publish_play_mode()
            return self._state.repeat_mode

    def set_repeat_mode(self, mode: RepeatMode) -> None:
        with self._lock:
            self._state.repeat_mode = mode
            self._publish_play_mode()

    def set_volume(self, volume: float) -> float:
        """
        Set volume, clamped to [0.0, 1.0], and apply it to the device

        Returns:
            float: The volume actually applied
        """
        with self._lock:
            if volume is None or math.isnan(volume):
                logger.warning("Ignoring invalid volume: %r", volume)
                return self._state.volume

            self._state.volume = _clamp(float(volume), 0.0, 1.0)
            self._device.set_volume(self._state.volume)
            self._event_bus.publish_sync(EventType.VOLUME_CHANGED, self._state.volume)
            return self._state.volume

    def get_volume(self) -> float:
        with self._lock:
            return self._state.volume

    def cleanup(self) -> None:
        """Release the device subscription and the device"""
        with self._lock:
            self._leave_track()
            self._state.is_playing = False
            self._queue.set_on_current_removed(None)
        self._device.cleanup()

    # ===== Device events =====

    def _on_position_changed(self, generation: int, seconds: float) -> None:
        with self._lock:
            if generation != self._track_generation:
                return
            if seconds is None or not math.isfinite(seconds):
                return
            self._state.position_seconds = max(0.0, float(seconds))
            self._event_bus.publish_sync(EventType.POSITION_CHANGED, {
                "position": self._state.position_seconds,
                "duration": self._state.duration_seconds,
            })

    def _on_metadata_ready(self, generation: int, duration: float) -> None:
        with self._lock:
            if generation != self._track_generation:
                return
            if duration is None or not math.isfinite(duration) or duration < 0:
                duration = 0.0
            self._state.duration_seconds = float(duration)
            self._event_bus.publish_sync(EventType.DURATION_CHANGED, self._state.duration_seconds)

    def _on_device_ended(self, generation: int) -> None:
        with self._lock:
            if generation != self._track_generation:
                logger.debug("Ignoring end-of-track from a released track")
                return
            self.on_track_ended()

    def _on_play_finished(self, generation: int, track: Track, future: Future) -> None:
        """Completion of device.play(); may arrive after further state changes"""
        with self._lock:
            if future.cancelled() or generation != self._play_generation:
                logger.debug("Ignoring stale play completion for %s", track.display_name)
                return
            if self._pending_play is future:
                self._pending_play = None

            error = future.exception()
            if error is not None:
                self._state.is_playing = False
                failure = PlaybackFailure(track=track, error=str(error))
                self._state.last_error = failure
                logger.warning("Playback failed for %s: %s", track.display_name, error)
                self._event_bus.publish_sync(EventType.PLAYBACK_FAILED, failure)
                return

            logger.info("Now playing: %s", track.display_name)
            self._event_bus.publish_sync(EventType.TRACK_STARTED, track)

    def _on_current_removed(self, removed: Track) -> None:
        """Forced reset after the current track left the queue (queue lock held)"""
        self._leave_track()
        self._state.is_playing = False
        self._state.position_seconds = 0.0
        self._state.duration_seconds = 0.0
        self._device.pause()
        self._event_bus.publish_sync(EventType.PLAYBACK_STOPPED, {
            "track": removed,
            "reason": "removed",
        })
        self._ensure_loaded()

    # ===== Internals =====

    def _switch_to(self, index: int) -> Track:
        """Make index current, reload it and play"""
        track = self._queue.set_current(index)
        self._enter_track(track)
        self._start_playback()
        return track

    def _enter_track(self, track: Track) -> None:
        """Subscribe to the device for this track, then load its source"""
        self._leave_track()
        self._track_generation += 1
        generation = self._track_generation

        self._subscription = self._device.subscribe(
            on_position=partial(self._on_position_changed, generation),
            on_metadata=partial(self._on_metadata_ready, generation),
            on_ended=partial(self._on_device_ended, generation),
        )
        self._loaded_track_id = track.id
        self._state.position_seconds = 0.0
        self._state.duration_seconds = 0.0

        if not self._device.load(track.source_ref):
            logger.warning("Device could not load %s", track.source_ref)
        self._event_bus.publish_sync(EventType.TRACK_LOADED, track)

    def _leave_track(self) -> None:
        """Drop the pending play and the device subscription of the current track"""
        self._invalidate_play()
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        self._loaded_track_id = None

    def _ensure_loaded(self) -> Optional[Track]:
        track = self._queue.current_track
        if track is None:
            if self._loaded_track_id is not None:
                self._leave_track()
            return None
        if track.id != self._loaded_track_id:
            self._enter_track(track)
        return track

    def _start_playback(self) -> bool:
        track = self._ensure_loaded()
        if track is None:
            self._state.is_playing = False
            return False

        self._invalidate_play()
        generation = self._play_generation
        self._state.is_playing = True
        self._state.last_error = None

        future = self._device.play()
        self._pending_play = future
        # Runs immediately if the device already resolved the future
        future.add_done_callback(partial(self._on_play_finished, generation, track))
        return self._state.is_playing

    def _invalidate_play(self) -> None:
        self._play_generation += 1
        pending, self._pending_play = self._pending_play, None
        if pending is not None:
            pending.cancel()

    def _reset_to_stopped(self) -> None:
        self._leave_track()
        self._state.is_playing = False
        self._state.position_seconds = 0.0
        self._state.duration_seconds = 0.0

    def _pick_shuffle_index(self, current: int, count: int) -> int:
        if self._shuffle_avoid_current and count > 1:
            index = self._rng.randrange(count - 1)
            return index + 1 if index >= current else index
        return self._rng.randrange(count)

    def _publish_play_mode(self) -> None:
        self._event_bus.publish_sync(EventType.PLAY_MODE_CHANGED, {
            "shuffle": self._state.shuffle,
            "repeat_mode": self._state.repeat_mode,
        })
