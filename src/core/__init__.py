"""
Queue Player Core Module
"""

from .event_bus import EventBus, EventType
from .audio_device import (
    AudioDeviceBase,
    DeviceState,
    DeviceSubscription,
    NullAudioDevice,
    PygameAudioDevice,
)
from .device_factory import AudioDeviceFactory
from .errors import PlayerError, TrackNotFoundError, PlaybackStartFailed
from .metadata import MetadataParser, AudioMetadata

__all__ = [
    'EventBus',
    'EventType',
    'AudioDeviceBase',
    'DeviceState',
    'DeviceSubscription',
    'NullAudioDevice',
    'PygameAudioDevice',
    'AudioDeviceFactory',
    'PlayerError',
    'TrackNotFoundError',
    'PlaybackStartFailed',
    'MetadataParser',
    'AudioMetadata',
]
