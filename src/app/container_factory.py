# -*- coding: utf-8 -*-
"""
Container Factory Module

Responsible for creating and assembling all application dependencies.

This is the **only** instance creation point (Composition Root) for the application.
"""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from app.container import AppContainer
    from core.audio_device import AudioDeviceBase
    from models.track import IdGenerator

logger = logging.getLogger(__name__)


class AppContainerFactory:
    """Application Container Factory

    Usage Example:
        # In main.py
        container = AppContainerFactory.create(config_path="config.yaml")

        # In tests (silent device, deterministic ids and shuffle)
        container = AppContainerFactory.create_for_testing()
    """

    @staticmethod
    def create(
        config_path: Optional[str] = None,
        backend: Optional[str] = None,
        device: Optional["AudioDeviceBase"] = None,
        id_generator: Optional["IdGenerator"] = None,
        rng: Optional[random.Random] = None,
    ) -> "AppContainer":
        """Create Application Container

        Creates all service instances in dependency order and assembles them into the container.

        Args:
            config_path: Configuration file path (None = user configuration directory)
            backend: Audio backend name, overrides audio.backend
            device: Ready-made device, skips the device factory
            id_generator: Track id generator (defaults to UUID4)
            rng: Random source for shuffle

        Returns:
            A configured AppContainer instance
        """
        from app.container import AppContainer
        from core.device_factory import AudioDeviceFactory
        from core.event_bus import EventBus
        from services.config_service import ConfigService
        from services.player_service import PlayerService
        from services.queue_service import QueueService
        from services.track_importer import TrackImporter

        logger.info("Creating application container...")

        # === 1. Infrastructure Layer ===
        config = ConfigService(config_path)
        event_bus = EventBus()

        # === 2. Audio Device ===
        if device is None:
            backend = backend or config.get("audio.backend", "pygame")
            device = AudioDeviceFactory.create(backend)
        logger.info("Audio device: %s", device.get_device_name())

        # === 3. Service Layer ===
        queue = QueueService(event_bus=event_bus, id_generator=id_generator)
        player = PlayerService(
            device=device,
            queue=queue,
            event_bus=event_bus,
            config=config,
            rng=rng,
        )
        importer = TrackImporter(config)

        return AppContainer(
            config=config,
            event_bus=event_bus,
            device=device,
            queue=queue,
            player=player,
            importer=importer,
        )

    @staticmethod
    def create_for_testing(
        config_path: Optional[str] = None,
        device: Optional["AudioDeviceBase"] = None,
        seed: int = 0,
    ) -> "AppContainer":
        """Create an isolated container with a silent device and sequential ids"""
        from core.audio_device import NullAudioDevice
        from models.track import SequentialIdGenerator

        return AppContainerFactory.create(
            config_path=config_path,
            device=device or NullAudioDevice(duration_probe=lambda _source: 0.0),
            id_generator=SequentialIdGenerator(),
            rng=random.Random(seed),
        )
