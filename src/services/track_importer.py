"""
Track Importer Module

Turns local audio files into queue tracks.
"""

from typing import Iterable, List, Optional, Union
from pathlib import Path
import os
import logging

from core.metadata import MetadataParser
from models.track import Track

logger = logging.getLogger(__name__)


class TrackImporter:
    """
    Track Importer

    Reads title and artist with MetadataParser. Files without tags fall back
    to the file name and the configured default artist ("Local"). Ids are
    assigned later, when the queue stores the tracks.

    Usage Example:
        importer = TrackImporter(config)
        tracks = importer.from_paths(["a.mp3", "b.flac"])
        player.add_tracks(tracks)
    """

    def __init__(self, config=None):
        self._default_artist = "Local"
        self._default_cover: Optional[str] = None
        self._supported = set(MetadataParser.SUPPORTED_FORMATS)

        if config is not None:
            self._default_artist = config.get("library.default_artist", "Local")
            self._default_cover = config.get("library.default_cover") or None
            formats = config.get("library.supported_formats")
            if formats:
                self._supported = {f".{fmt.lower().lstrip('.')}" for fmt in formats}

    def is_supported(self, path: Union[str, os.PathLike]) -> bool:
        return Path(path).suffix.lower() in self._supported

    def from_paths(self, paths: Iterable[Union[str, os.PathLike]]) -> List[Track]:
        """
        Build tracks for the given files, in order

        Missing and unsupported files are skipped with a warning.
        """
        tracks: List[Track] = []
        for raw_path in paths:
            path = Path(raw_path)
            if not path.is_file():
                logger.warning("Skipping missing file: %s", path)
                continue
            if not self.is_supported(path):
                logger.warning("Skipping unsupported file: %s", path)
                continue
            tracks.append(self.from_path(path))

        logger.debug("Imported %d track(s)", len(tracks))
        return tracks

    def from_path(self, path: Union[str, os.PathLike]) -> Track:
        """Build one track, falling back to the file name when tags are missing"""
        path = Path(path).resolve()
        metadata = MetadataParser.parse(str(path))

        if metadata is None:
            return Track(
                title=path.name,
                artist=self._default_artist,
                source_ref=str(path),
                cover_ref=self._default_cover,
            )

        track = Track.from_metadata(metadata, cover_ref=self._default_cover)
        if not track.artist:
            track.artist = self._default_artist
        return track
