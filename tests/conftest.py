"""
Test Configuration File

Unified setup for Python path, avoiding sys.path.insert in each test file.
Provides a scriptable audio device and ready-wired queue/player fixtures.
"""

import random
import sys
from concurrent.futures import Future
from pathlib import Path

import pytest

# Add the src directory to the Python path
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from core.audio_device import AudioDeviceBase, DeviceState  # noqa: E402
from core.errors import PlaybackStartFailed  # noqa: E402


class FakeAudioDevice(AudioDeviceBase):
    """
    Scriptable device

    Records every command. With auto_resolve=False, play() returns futures
    that already count as running (cancel() has no effect), and the test
    decides when and how they complete.
    """

    def __init__(self, auto_resolve: bool = True, durations=None):
        super().__init__()
        self.auto_resolve = auto_resolve
        self.durations = dict(durations or {})
        self.fail_sources = set()
        self.commands = []
        self.play_futures = []
        self.position = 0.0

    def load(self, source_ref):
        self.commands.append(("load", source_ref))
        self._current_source = source_ref
        self._state = DeviceState.LOADED
        self.position = 0.0
        self._duration = self.durations.get(source_ref, 0.0)
        if self._duration:
            self._emit_metadata(self._duration)
        return True

    def play(self):
        self.commands.append(("play", self._current_source))
        future = Future()
        future.set_running_or_notify_cancel()
        self.play_futures.append(future)
        if self.auto_resolve:
            self.complete(future)
        return future

    def complete(self, future, error=None):
        if error is None and self._current_source in self.fail_sources:
            error = PlaybackStartFailed("unsupported source", self._current_source)
        if error is not None:
            future.set_exception(error)
        else:
            self._state = DeviceState.PLAYING
            future.set_result(True)

    def pause(self):
        self.commands.append(("pause",))
        self._state = DeviceState.PAUSED

    def set_position(self, seconds):
        self.commands.append(("set_position", seconds))
        self.position = seconds

    def set_volume(self, volume):
        self.commands.append(("set_volume", volume))
        self._volume = volume

    def get_position(self):
        return self.position

    def poll(self):
        self.commands.append(("poll",))

    # Test helpers: simulate device events
    def emit_position(self, seconds):
        self.position = seconds
        self._emit_position(seconds)

    def emit_metadata(self, duration):
        self._duration = duration
        self._emit_metadata(duration)

    def emit_ended(self):
        self._state = DeviceState.ENDED
        self._emit_ended()

    def names(self):
        return [command[0] for command in self.commands]


def make_tracks(*titles):
    from models.track import Track
    return [
        Track(title=title, artist=f"Artist {title}", source_ref=f"/music/{title}.mp3")
        for title in titles
    ]


@pytest.fixture
def event_bus():
    from core.event_bus import EventBus
    bus = EventBus()
    yield bus
    bus.shutdown()


@pytest.fixture
def device():
    return FakeAudioDevice()


@pytest.fixture
def queue(event_bus):
    from models.track import SequentialIdGenerator
    from services.queue_service import QueueService
    return QueueService(event_bus=event_bus, id_generator=SequentialIdGenerator())


@pytest.fixture
def player(device, queue, event_bus):
    from services.player_service import PlayerService
    service = PlayerService(device, queue, event_bus, rng=random.Random(1234))
    yield service
    service.cleanup()


@pytest.fixture
def loaded_player(player):
    """Player with queue [A, B, C], A current and loaded, not playing"""
    player.add_tracks(make_tracks("A", "B", "C"))
    return player


@pytest.fixture
def recorder(event_bus):
    """Collects (event_type, data) for every published event"""
    from core.event_bus import EventType

    events = []
    for event_type in EventType:
        event_bus.subscribe(event_type, lambda data, et=event_type: events.append((et, data)))
    return events


@pytest.fixture(scope="session")
def qapp():
    """
    Create QCoreApplication for tests using Qt timers.

    Uses session scope to avoid creating multiple application instances.
    """
    from PyQt6.QtCore import QCoreApplication

    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app
