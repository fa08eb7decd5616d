"""
Metadata Parser Module

Reads the display metadata (title, artist, album) and duration of local audio files.
Supports the formats mutagen understands: MP3, FLAC, WAV, OGG, M4A, AAC, OPUS.
"""

from dataclasses import dataclass
from typing import Optional, List
from pathlib import Path
import logging

logger = logging.getLogger(__name__)


@dataclass
class AudioMetadata:
    """Audio metadata"""

    title: str = ""
    artist: str = ""
    album: str = ""
    duration_seconds: float = 0.0
    format: str = ""
    file_path: str = ""


class MetadataParser:
    """
    Metadata parser

    Uses mutagen's "easy" tag interface so one code path covers ID3, Vorbis
    comments and MP4 atoms.

    Usage example:
        metadata = MetadataParser.parse("path/to/song.mp3")
        if metadata:
            print(f"Title: {metadata.title}")
    """

    SUPPORTED_FORMATS = {'.mp3', '.flac', '.wav', '.ogg', '.m4a', '.aac', '.opus'}

    @classmethod
    def parse(cls, file_path: str) -> Optional[AudioMetadata]:
        """
        Parse audio file metadata

        Args:
            file_path: Audio file path

        Returns:
            AudioMetadata: Metadata object, returns None if parsing fails
        """
        path = Path(file_path)

        if not path.exists():
            return None

        suffix = path.suffix.lower()
        if suffix not in cls.SUPPORTED_FORMATS:
            return None

        try:
            from mutagen import File

            audio = File(file_path, easy=True)
            if audio is None:
                return None

            metadata = AudioMetadata(file_path=str(path), format=suffix[1:].upper())

            if audio.info:
                metadata.duration_seconds = float(getattr(audio.info, 'length', 0.0) or 0.0)

            tags = audio.tags
            if tags is not None and hasattr(tags, 'get'):
                metadata.title = cls._first(tags.get('title'))
                metadata.artist = cls._first(tags.get('artist'))
                metadata.album = cls._first(tags.get('album'))

            # If no title, use filename
            if not metadata.title:
                metadata.title = path.name

            return metadata

        except Exception as e:
            logger.debug("Parsing failed: %s, Error: %s", file_path, e)
            return None

    @classmethod
    def probe_duration(cls, file_path: str) -> float:
        """Duration in seconds, 0.0 when unknown"""
        try:
            from mutagen import File
            audio = File(file_path)
            if audio and audio.info:
                return float(audio.info.length)
        except Exception as e:
            logger.debug("Duration probe failed for %s: %s", file_path, e)
        return 0.0

    @staticmethod
    def _first(values) -> str:
        if not values:
            return ""
        return str(values[0])

    @staticmethod
    def get_supported_formats() -> List[str]:
        """Get list of supported formats"""
        return sorted(MetadataParser.SUPPORTED_FORMATS)

    @staticmethod
    def is_supported(file_path: str) -> bool:
        """Check if file format is supported"""
        suffix = Path(file_path).suffix.lower()
        return suffix in MetadataParser.SUPPORTED_FORMATS
