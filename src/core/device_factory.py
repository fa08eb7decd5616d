"""
Audio Device Factory

Creates playback devices by backend name, falling back to the next available backend.
"""

import logging
from typing import List, Type, Dict, Optional

from core.audio_device import AudioDeviceBase, PygameAudioDevice, NullAudioDevice

logger = logging.getLogger(__name__)

# Device registry
_DEVICE_REGISTRY: Dict[str, Type[AudioDeviceBase]] = {}


def register_device(name: str, device_class: Type[AudioDeviceBase]) -> None:
    """
    Register an audio device backend.

    Args:
        name: Backend name identifier
        device_class: Device class
    """
    _DEVICE_REGISTRY[name] = device_class


register_device("pygame", PygameAudioDevice)
register_device("null", NullAudioDevice)


class AudioDeviceFactory:
    """
    Audio Device Factory

    Usage Example:
        # Create a specific backend
        device = AudioDeviceFactory.create("pygame")

        # Automatically select the best available backend
        device = AudioDeviceFactory.create_best_available()
    """

    # Backend priority (fallback order)
    PRIORITY_ORDER = ["pygame", "null"]

    @classmethod
    def create(cls, backend: str = "pygame") -> AudioDeviceBase:
        """
        Create a specified audio device.

        If the specified backend is unavailable, it will automatically fall back to an available one.

        Raises:
            RuntimeError: If no backends are available
        """
        if backend in _DEVICE_REGISTRY:
            try:
                device = _DEVICE_REGISTRY[backend]()
                logger.info("Using audio backend: %s", backend)
                return device
            except Exception as e:
                logger.warning("Failed to create %s backend: %s, attempting fallback", backend, e)
        else:
            logger.warning("Unknown audio backend: %s, attempting fallback", backend)

        return cls.create_best_available(exclude=[backend])

    @classmethod
    def create_best_available(
        cls, exclude: Optional[List[str]] = None
    ) -> AudioDeviceBase:
        """
        Create the best available audio device, trying each backend in priority order.

        Raises:
            RuntimeError: If no backends are available
        """
        exclude = exclude or []

        for backend in cls.PRIORITY_ORDER:
            if backend in exclude or backend not in _DEVICE_REGISTRY:
                continue

            try:
                device = _DEVICE_REGISTRY[backend]()
                logger.info("Using audio backend: %s", backend)
                return device
            except Exception as e:
                logger.debug("Backend %s unavailable: %s", backend, e)

        raise RuntimeError("No audio backends available. Please install pygame.")

    @classmethod
    def get_available_backends(cls) -> List[str]:
        """List of backends whose dependencies are importable, sorted by priority."""
        return [backend for backend in cls.PRIORITY_ORDER if cls.is_available(backend)]

    @classmethod
    def is_available(cls, backend: str) -> bool:
        """Check if a backend is available (uses the class probe, never opens the device)."""
        if backend not in _DEVICE_REGISTRY:
            return False
        try:
            return bool(_DEVICE_REGISTRY[backend].probe())
        except Exception:
            return False
