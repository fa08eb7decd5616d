"""
Data Models Module
"""

from .track import Track, SequentialIdGenerator, new_track_id, format_seconds

__all__ = ['Track', 'SequentialIdGenerator', 'new_track_id', 'format_seconds']
