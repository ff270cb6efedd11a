"""Exceptions raised by the session core."""


class MediaSessionError(Exception):
    """Base class for all session core errors."""


class CredentialCorruptError(MediaSessionError):
    """Stored credential bytes could not be parsed into a descriptor."""


class ApiError(MediaSessionError):
    """A media server API call failed."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class AuthError(ApiError):
    """The media server rejected the supplied credentials."""
