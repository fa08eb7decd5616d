# -*- coding: utf-8 -*-
"""
Application Container Module

Holds the service instances of one player application.

Design Principles:
- The entry point holds the complete AppContainer
- Display code reads state through the player and queue, it never reaches into internals
- No module-level singletons: everything shared lives here
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.audio_device import AudioDeviceBase
    from core.event_bus import EventBus
    from services.config_service import ConfigService
    from services.player_service import PlayerService
    from services.queue_service import QueueService
    from services.track_importer import TrackImporter


@dataclass
class AppContainer:
    """Application Dependency Container

    Composition root result of AppContainerFactory.

    Usage Example:
        container = AppContainerFactory.create()
        container.player.add_tracks(container.importer.from_paths(paths))
        container.player.play()
    """

    config: "ConfigService"
    event_bus: "EventBus"
    device: "AudioDeviceBase"
    queue: "QueueService"
    player: "PlayerService"
    importer: "TrackImporter"

    def cleanup(self) -> None:
        """Clean up all resources

        Should be called when the application exits.
        """
        self.player.cleanup()
        self.event_bus.shutdown()
