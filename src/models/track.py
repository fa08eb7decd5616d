"""
Track data model
"""

from dataclasses import dataclass, field
from typing import Optional, Callable
import itertools
import math
import threading
import uuid


def new_track_id() -> str:
    """Default id generator: random UUID4 string"""
    return str(uuid.uuid4())


class SequentialIdGenerator:
    """
    Monotonic id generator

    Produces "track-1", "track-2", ... and never repeats a value, which keeps
    queue tests deterministic.
    """

    def __init__(self, prefix: str = "track", start: int = 1):
        self._prefix = prefix
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            return f"{self._prefix}-{next(self._counter)}"


IdGenerator = Callable[[], str]


def format_seconds(seconds: Optional[float]) -> str:
    """Format seconds as m:ss ("0:00" for unknown values)"""
    if seconds is None or not math.isfinite(seconds) or seconds < 0:
        return "0:00"
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"


@dataclass
class Track:
    """
    Track data model

    A playable queue entry. Identity is by id, not by position in the queue.
    source_ref and cover_ref are opaque handles understood by the device and
    the display layer respectively.
    """

    id: str = field(default_factory=new_track_id)
    title: str = ""
    artist: str = ""
    source_ref: str = ""
    cover_ref: Optional[str] = None

    @property
    def display_name(self) -> str:
        """Display name"""
        if self.artist:
            return f"{self.artist} - {self.title}"
        return self.title

    @property
    def search_text(self) -> str:
        """Lower-cased title and artist, used by queue filtering"""
        return f"{self.title} {self.artist}".lower()

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            'id': self.id,
            'title': self.title,
            'artist': self.artist,
            'source_ref': self.source_ref,
            'cover_ref': self.cover_ref,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Track':
        """Create Track object from dictionary"""
        return cls(
            id=data.get('id') or new_track_id(),
            title=data.get('title', ''),
            artist=data.get('artist', ''),
            source_ref=data.get('source_ref', ''),
            cover_ref=data.get('cover_ref'),
        )

    @classmethod
    def from_metadata(cls, metadata, cover_ref: Optional[str] = None) -> 'Track':
        """Create Track object from AudioMetadata"""
        return cls(
            title=metadata.title,
            artist=metadata.artist,
            source_ref=metadata.file_path,
            cover_ref=cover_ref,
        )
