# -*- coding: utf-8 -*-
"""
Protocols Definition Module

Defines the interface protocols (Protocol) the display layer and the composition root rely on.

Design Decisions:
- Default to using Protocol + @runtime_checkable
- ABC is only used for base classes that share default implementations (AudioDeviceBase)
- Runtime checks are one-time assertions during testing
"""

from __future__ import annotations

from concurrent.futures import Future
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    List,
    Optional,
    Protocol,
    runtime_checkable,
)

if TYPE_CHECKING:
    from models.track import Track
    from services.player_service import PlaybackState, RepeatMode


@runtime_checkable
class IEventBus(Protocol):
    """Event Bus Interface"""

    def subscribe(self, event_type: Enum, callback: Callable[[Any], None]) -> str:
        ...

    def unsubscribe(self, subscription_id: str) -> bool:
        ...

    def publish(self, event_type: Enum, data: Any = None) -> None:
        ...

    def publish_sync(self, event_type: Enum, data: Any = None) -> None:
        ...


@runtime_checkable
class IConfigService(Protocol):
    """Configuration Service Interface"""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def save(self) -> bool:
        ...


@runtime_checkable
class IAudioDevice(Protocol):
    """Audio Device Interface

    play() completes asynchronously; events arrive through subscribe().
    """

    def load(self, source_ref: str) -> bool:
        ...

    def play(self) -> Future:
        ...

    def pause(self) -> None:
        ...

    def set_position(self, seconds: float) -> None:
        ...

    def set_volume(self, volume: float) -> None:
        ...

    def subscribe(
        self,
        on_position: Optional[Callable[[float], None]] = None,
        on_metadata: Optional[Callable[[float], None]] = None,
        on_ended: Optional[Callable[[], None]] = None,
    ) -> Any:
        ...

    def poll(self) -> None:
        ...

    def cleanup(self) -> None:
        ...


@runtime_checkable
class IQueueService(Protocol):
    """Queue Manager Interface"""

    def add(self, tracks: List["Track"]) -> List["Track"]:
        ...

    def remove(self, track_id: str) -> bool:
        ...

    def select(self, track_id: str) -> Optional[int]:
        ...

    def filter(self, query: str) -> List["Track"]:
        ...


@runtime_checkable
class IPlayerService(Protocol):
    """Playback Controller Interface"""

    @property
    def state(self) -> "PlaybackState":
        ...

    def play_pause(self) -> bool:
        ...

    def seek_to(self, seconds: float) -> float:
        ...

    def next(self) -> Optional["Track"]:
        ...

    def previous(self) -> Optional["Track"]:
        ...

    def on_track_ended(self) -> None:
        ...

    def toggle_shuffle(self) -> bool:
        ...

    def cycle_repeat(self) -> "RepeatMode":
        ...

    def set_volume(self, volume: float) -> float:
        ...
