# -*- coding: utf-8 -*-
"""
Event Types Module

Re-exports EventType from core.event_bus for display code, so it does not
need to import from the core layer.

Usage Example:
    from app.events import EventType

    container.event_bus.subscribe(EventType.TRACK_STARTED, on_track_started)
"""

from core.event_bus import EventType

__all__ = ["EventType"]
