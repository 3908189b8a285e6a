"""Exceptions raised at the playlist persistence boundary."""


class PlaylistError(Exception):
    """Base class for playlist engine errors."""
    pass


class SessionFormatError(PlaylistError, ValueError):
    """Raised when stored session data cannot be decoded."""
    pass


class SessionRestoreError(PlaylistError, ValueError):
    """Raised when a decoded session is structurally inconsistent."""

    def __init__(self, message: str, problems: list[str] | None = None):
        super().__init__(message)
        self.problems = problems or []
