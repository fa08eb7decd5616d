# -*- coding: utf-8 -*-
"""
Device Poller

Polls the audio device from the Qt main thread so position updates and
end-of-track events reach the player on the same thread as user actions.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

if TYPE_CHECKING:
    from core.audio_device import AudioDeviceBase

logger = logging.getLogger(__name__)


class DevicePoller(QObject):
    """Periodic device.poll() driven by a QTimer

    Usage Example:
        poller = DevicePoller(container.device, interval_ms=250)
        poller.start()
    """

    polled = pyqtSignal()

    def __init__(
        self,
        device: "AudioDeviceBase",
        interval_ms: int = 250,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._device = device
        self._timer = QTimer(self)
        self._timer.setInterval(max(10, int(interval_ms)))
        self._timer.timeout.connect(self.tick)

    @property
    def interval_ms(self) -> int:
        return self._timer.interval()

    def is_active(self) -> bool:
        return self._timer.isActive()

    def start(self) -> None:
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()

    def tick(self) -> None:
        """Poll the device once"""
        try:
            self._device.poll()
        except Exception as e:
            logger.error("Device poll failed: %s", e)
        self.polled.emit()
