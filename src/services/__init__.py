"""
Service Layer Module
"""

from .player_service import (
    PlayerService,
    PlaybackState,
    PlaybackFailure,
    RepeatMode,
    TransportState,
)
from .queue_service import QueueService
from .config_service import ConfigService
from .track_importer import TrackImporter

__all__ = [
    'PlayerService',
    'PlaybackState',
    'PlaybackFailure',
    'RepeatMode',
    'TransportState',
    'QueueService',
    'ConfigService',
    'TrackImporter',
]
