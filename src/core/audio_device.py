"""
Audio Device Module - The Playback Output Capability

Loads a playable source, starts/pauses it, moves the play head and reports
position, duration and end-of-track back to its subscribers.

Events are delivered through DeviceSubscription handles: a subscriber that
closes its handle receives nothing afterwards, so a controller can scope its
listeners to the lifetime of one track.
"""

from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Optional, Callable, Dict, List
from enum import Enum
import math
import threading
import time
import uuid
import logging

from core.errors import PlaybackStartFailed
from core.metadata import MetadataParser

logger = logging.getLogger(__name__)


class DeviceState(Enum):
    """Device Status"""
    IDLE = "idle"           # Nothing loaded
    LOADED = "loaded"       # Source loaded, not started
    PLAYING = "playing"     # Playing
    PAUSED = "paused"       # Paused
    ENDED = "ended"         # Reached end of source
    ERROR = "error"         # Source could not be loaded


PositionCallback = Callable[[float], None]
MetadataCallback = Callable[[float], None]
EndedCallback = Callable[[], None]


class DeviceSubscription:
    """
    Scoped listener registration on a device

    Obtained from AudioDeviceBase.subscribe(). Closing is idempotent; the
    handle is also a context manager.
    """

    def __init__(
        self,
        device: "AudioDeviceBase",
        on_position: Optional[PositionCallback] = None,
        on_metadata: Optional[MetadataCallback] = None,
        on_ended: Optional[EndedCallback] = None,
    ):
        self.id = str(uuid.uuid4())
        self._device = device
        self._on_position = on_position
        self._on_metadata = on_metadata
        self._on_ended = on_ended
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def close(self) -> None:
        if not self._active:
            return
        self._active = False
        self._device._release(self.id)

    def __enter__(self) -> "DeviceSubscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _deliver_position(self, seconds: float) -> None:
        if self._active and self._on_position:
            self._on_position(seconds)

    def _deliver_metadata(self, duration: float) -> None:
        if self._active and self._on_metadata:
            self._on_metadata(duration)

    def _deliver_ended(self) -> None:
        if self._active and self._on_ended:
            self._on_ended()


class AudioDeviceBase(ABC):
    """
    Abstract Base Class for Audio Devices

    Defines the standard device interface, with concrete implementations provided by subclasses.
    play() is asynchronous: it returns a Future that resolves to True, or fails
    with PlaybackStartFailed.
    """

    def __init__(self):
        self._state: DeviceState = DeviceState.IDLE
        self._volume: float = 1.0
        self._current_source: Optional[str] = None
        self._duration: float = 0.0
        self._subscriptions: Dict[str, DeviceSubscription] = {}
        self._sub_lock = threading.Lock()

    @staticmethod
    def probe() -> bool:
        """
        Check if device dependencies are available (without opening the device)

        Returns:
            bool: True if dependencies are available
        """
        return False

    @property
    def state(self) -> DeviceState:
        """Get the current device state"""
        return self._state

    @property
    def volume(self) -> float:
        """Get the current volume"""
        return self._volume

    @property
    def current_source(self) -> Optional[str]:
        """Get the currently loaded source"""
        return self._current_source

    @property
    def duration(self) -> float:
        """Duration of the loaded source in seconds (0.0 = unknown)"""
        return self._duration

    # ===== Event subscription =====

    def subscribe(
        self,
        on_position: Optional[PositionCallback] = None,
        on_metadata: Optional[MetadataCallback] = None,
        on_ended: Optional[EndedCallback] = None,
    ) -> DeviceSubscription:
        """
        Subscribe to device events

        Args:
            on_position: Called with the play head position in seconds
            on_metadata: Called with the source duration in seconds once known
            on_ended: Called when the source plays to its end

        Returns:
            DeviceSubscription: Handle to close when no longer interested
        """
        subscription = DeviceSubscription(self, on_position, on_metadata, on_ended)
        with self._sub_lock:
            self._subscriptions[subscription.id] = subscription
        return subscription

    @property
    def subscription_count(self) -> int:
        with self._sub_lock:
            return len(self._subscriptions)

    def _release(self, subscription_id: str) -> None:
        with self._sub_lock:
            self._subscriptions.pop(subscription_id, None)

    def _active_subscriptions(self) -> List[DeviceSubscription]:
        with self._sub_lock:
            return list(self._subscriptions.values())

    def _emit_position(self, seconds: float) -> None:
        for subscription in self._active_subscriptions():
            subscription._deliver_position(seconds)

    def _emit_metadata(self, duration: float) -> None:
        for subscription in self._active_subscriptions():
            subscription._deliver_metadata(duration)

    def _emit_ended(self) -> None:
        for subscription in self._active_subscriptions():
            subscription._deliver_ended()

    @staticmethod
    def _resolved(result: bool = True) -> Future:
        future: Future = Future()
        future.set_result(result)
        return future

    @staticmethod
    def _failed(error: Exception) -> Future:
        future: Future = Future()
        future.set_exception(error)
        return future

    # ===== Commands =====

    @abstractmethod
    def load(self, source_ref: str) -> bool:
        """
        Load a playable source

        Returns:
            bool: True if loading was successful
        """
        pass

    @abstractmethod
    def play(self) -> Future:
        """Start or resume playback of the loaded source"""
        pass

    @abstractmethod
    def pause(self) -> None:
        """Pause playback"""
        pass

    @abstractmethod
    def set_position(self, seconds: float) -> None:
        """Move the play head; playback continues from there if playing"""
        pass

    @abstractmethod
    def set_volume(self, volume: float) -> None:
        """Set the volume (0.0 - 1.0)"""
        pass

    @abstractmethod
    def get_position(self) -> float:
        """Current play head position in seconds"""
        pass

    @abstractmethod
    def poll(self) -> None:
        """
        Emit position updates and detect end of playback

        Called periodically from the thread that owns the player.
        """
        pass

    def cleanup(self) -> None:
        """Release every subscription"""
        for subscription in self._active_subscriptions():
            subscription.close()

    def get_device_name(self) -> str:
        return "base"


class PygameAudioDevice(AudioDeviceBase):
    """
    Audio device based on pygame.mixer.music

    pygame reports the time since the last play() call, so the absolute
    position is tracked as an offset plus that elapsed time.
    """

    _initialized = False
    _mixer_refcount = 0
    _lock = threading.Lock()

    @staticmethod
    def probe() -> bool:
        """Check if pygame dependency is available (without initializing mixer)"""
        try:
            import pygame
            return hasattr(pygame, 'mixer')
        except ImportError:
            return False

    def __init__(self):
        super().__init__()
        self._offset: float = 0.0
        self._cleaned_up = False
        self._load_error: Optional[str] = None
        self._acquire_mixer()

    def _acquire_mixer(self) -> None:
        """Initialize global pygame mixer and use reference counting to avoid accidental shutdown."""
        with PygameAudioDevice._lock:
            if not PygameAudioDevice._initialized:
                import pygame
                pygame.mixer.init(frequency=44100, size=-16, channels=2, buffer=2048)
                PygameAudioDevice._initialized = True

            PygameAudioDevice._mixer_refcount += 1

    def load(self, source_ref: str) -> bool:
        """Load an audio file"""
        import pygame

        if self._state in (DeviceState.PLAYING, DeviceState.PAUSED):
            pygame.mixer.music.stop()

        self._offset = 0.0
        self._duration = 0.0
        try:
            pygame.mixer.music.load(source_ref)
        except Exception as e:
            self._state = DeviceState.ERROR
            self._current_source = source_ref
            self._load_error = str(e)
            logger.warning("Failed to load %s: %s", source_ref, e)
            return False

        self._current_source = source_ref
        self._load_error = None
        self._state = DeviceState.LOADED

        self._duration = MetadataParser.probe_duration(source_ref)
        if self._duration > 0:
            self._emit_metadata(self._duration)
        return True

    def play(self) -> Future:
        """Start playback"""
        import pygame

        if self._current_source is None:
            return self._failed(PlaybackStartFailed("No source loaded"))
        if self._state == DeviceState.ERROR:
            return self._failed(PlaybackStartFailed(
                f"Source could not be loaded: {self._load_error}", self._current_source
            ))

        try:
            if self._state == DeviceState.PAUSED:
                pygame.mixer.music.unpause()
            elif self._state != DeviceState.PLAYING:
                pygame.mixer.music.play(start=self._offset)
        except Exception as e:
            return self._failed(PlaybackStartFailed(f"Playback failed: {e}", self._current_source))

        self._state = DeviceState.PLAYING
        return self._resolved()

    def pause(self) -> None:
        """Pause playback"""
        import pygame

        if self._state == DeviceState.PLAYING:
            pygame.mixer.music.pause()
            self._state = DeviceState.PAUSED

    def set_position(self, seconds: float) -> None:
        """
        Seek to a specified position

        SDL_mixer stops the music when it cannot position the stream, so a
        failed seek leaves the device LOADED at the old position rather than
        letting the next poll() report an end of track.
        """
        import pygame

        previous = self.get_position()
        self._offset = max(0.0, seconds)
        try:
            if self._state == DeviceState.PLAYING:
                pygame.mixer.music.play(start=self._offset)
            elif self._state == DeviceState.PAUSED:
                pygame.mixer.music.play(start=self._offset)
                pygame.mixer.music.pause()
            elif self._state == DeviceState.ENDED:
                self._state = DeviceState.LOADED
        except Exception as e:
            logger.warning("Seek failed: %s", e)
            self._offset = previous
            self._state = DeviceState.LOADED

    def set_volume(self, volume: float) -> None:
        """Set the volume"""
        import pygame

        self._volume = max(0.0, min(1.0, volume))
        pygame.mixer.music.set_volume(self._volume)

    def get_position(self) -> float:
        """Get the current playback position"""
        import pygame

        if self._state in (DeviceState.PLAYING, DeviceState.PAUSED):
            elapsed_ms = pygame.mixer.music.get_pos()
            return self._offset + max(0, elapsed_ms) / 1000.0
        return self._offset

    def poll(self) -> None:
        """
        Report position and detect end of playback

        Called periodically by the main thread, ensuring thread safety.
        """
        import pygame

        if self._state != DeviceState.PLAYING:
            return

        try:
            busy = pygame.mixer.music.get_busy()
        except Exception as e:
            logger.warning("Pygame mixer not initialized, cannot check playback status: %s", e)
            self._state = DeviceState.ERROR
            return

        if busy:
            self._emit_position(self.get_position())
            return

        self._state = DeviceState.ENDED
        self._offset = 0.0
        if self._duration > 0:
            self._emit_position(self._duration)
        self._emit_ended()

    def cleanup(self) -> None:
        """Clean up resources"""
        super().cleanup()
        import pygame

        with PygameAudioDevice._lock:
            if self._cleaned_up:
                return
            self._cleaned_up = True

            if PygameAudioDevice._mixer_refcount > 0:
                PygameAudioDevice._mixer_refcount -= 1

            should_quit = PygameAudioDevice._initialized and PygameAudioDevice._mixer_refcount == 0

        try:
            pygame.mixer.music.stop()
        except Exception as e:
            logger.debug("Pygame stop during cleanup failed: %s", e)

        if should_quit:
            try:
                pygame.mixer.quit()
            except Exception as e:
                logger.warning("Pygame cleanup failed: %s", e)
            finally:
                with PygameAudioDevice._lock:
                    PygameAudioDevice._initialized = False

    def get_device_name(self) -> str:
        return "pygame"


class NullAudioDevice(AudioDeviceBase):
    """
    Silent device driven by a clock

    Behaves like a real output (position advances while playing, ended fires
    at the source duration) without producing sound. Used on headless hosts
    and in tests, where the clock is injected.
    """

    @staticmethod
    def probe() -> bool:
        return True

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        duration_probe: Callable[[str], float] = MetadataParser.probe_duration,
    ):
        super().__init__()
        self._clock = clock
        self._duration_probe = duration_probe
        self._offset = 0.0
        self._anchor = 0.0

    def load(self, source_ref: str) -> bool:
        self._current_source = source_ref
        self._offset = 0.0
        self._state = DeviceState.LOADED
        duration = self._duration_probe(source_ref) or 0.0
        self._duration = duration if math.isfinite(duration) and duration > 0 else 0.0
        if self._duration > 0:
            self._emit_metadata(self._duration)
        return True

    def play(self) -> Future:
        if self._current_source is None:
            return self._failed(PlaybackStartFailed("No source loaded"))
        if self._state != DeviceState.PLAYING:
            self._anchor = self._clock() - self._offset
            self._state = DeviceState.PLAYING
        return self._resolved()

    def pause(self) -> None:
        if self._state == DeviceState.PLAYING:
            self._offset = self.get_position()
            self._state = DeviceState.PAUSED

    def set_position(self, seconds: float) -> None:
        self._offset = max(0.0, seconds)
        if self._state == DeviceState.PLAYING:
            self._anchor = self._clock() - self._offset
        elif self._state == DeviceState.ENDED:
            self._state = DeviceState.LOADED

    def set_volume(self, volume: float) -> None:
        self._volume = max(0.0, min(1.0, volume))

    def get_position(self) -> float:
        if self._state != DeviceState.PLAYING:
            return self._offset
        position = self._clock() - self._anchor
        if self._duration > 0:
            position = min(position, self._duration)
        return max(0.0, position)

    def poll(self) -> None:
        if self._state != DeviceState.PLAYING:
            return
        position = self.get_position()
        self._emit_position(position)
        if self._duration > 0 and position >= self._duration:
            self._state = DeviceState.ENDED
            self._offset = 0.0
            self._emit_ended()

    def get_device_name(self) -> str:
        return "null"
