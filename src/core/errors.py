"""
Player Errors

None of these are fatal: callers log or surface them and wait for a new user action.
"""


class PlayerError(Exception):
    """Base class for playback and queue errors"""


class TrackNotFoundError(PlayerError, KeyError):
    """A track id does not refer to a track in the queue"""

    def __init__(self, track_id: str):
        super().__init__(track_id)
        self.track_id = track_id

    def __str__(self) -> str:
        return f"Track not in queue: {self.track_id}"


class PlaybackStartFailed(PlayerError):
    """The device rejected a play command (unsupported source, device busy, ...)"""

    def __init__(self, message: str, source_ref: str = ""):
        super().__init__(message)
        self.source_ref = source_ref
